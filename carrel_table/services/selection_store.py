from __future__ import annotations

import logging
import re

from carrel_table.selection.manager import SelectionManager
from carrel_table.services.storage import StorageBackend

logger = logging.getLogger(__name__)

_SAFE_VIEW_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class SelectionStore:
    """
    Persists SelectionManager snapshots per table view, so a view can come
    back with the rows and cells the user had selected.

    Snapshots live at `selection/<view_id>.json`.
    """

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    @staticmethod
    def path_for(view_id: str) -> str:
        """
        Raises:
            ValueError: if view_id is empty or contains path separators
        """
        if not view_id or not _SAFE_VIEW_ID.match(view_id) or view_id in (".", ".."):
            raise ValueError(f"Invalid view id: {view_id!r}")
        return f"selection/{view_id}.json"

    def save(self, view_id: str, manager: SelectionManager) -> str:
        path = self.path_for(view_id)
        self.storage.write_bytes(path, manager.serialize().encode("utf-8"))
        logger.debug(
            "Saved selection",
            extra={"view_id": view_id, **manager.get_selection_summary()},
        )
        return path

    def restore(self, view_id: str, manager: SelectionManager) -> bool:
        """
        Apply the stored snapshot for `view_id` to `manager`.

        :return: True if a snapshot existed and was applied
        """
        path = self.path_for(view_id)
        if not self.storage.exists(path):
            return False

        try:
            raw = self.storage.read_bytes(path)
        except OSError:
            logger.exception("Failed to read selection for view %s", view_id)
            return False

        return manager.deserialize(raw.decode("utf-8", errors="replace"))

    def forget(self, view_id: str) -> None:
        self.storage.delete(self.path_for(view_id))
