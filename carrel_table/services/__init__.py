"""
Services: storage backends plus selection persistence and export-to-storage
built on them
"""

from .export_service import ExportService
from .selection_store import SelectionStore
from .storage import InMemoryStorage, LocalFileSystemStorage, StorageBackend

__all__ = [
    "ExportService",
    "InMemoryStorage",
    "LocalFileSystemStorage",
    "SelectionStore",
    "StorageBackend",
]
