from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List


class StorageBackend(ABC):
    """
    Abstract interface for blob storage keyed by relative, '/'-separated paths
    (local disk, in-memory, object stores).
    """

    @abstractmethod
    def write_bytes(self, path: str, data: bytes) -> None:
        pass

    @abstractmethod
    def read_bytes(self, path: str) -> bytes:
        """:raises FileNotFoundError: if nothing is stored at `path`"""
        pass

    @abstractmethod
    def list_files(self, prefix: str, suffix: str = "") -> List[str]:
        """Paths directly under `prefix` ending with `suffix`, sorted."""
        pass

    @abstractmethod
    def exists(self, path: str) -> bool:
        pass

    @abstractmethod
    def delete(self, path: str) -> None:
        """Remove `path` if present."""
        pass


class LocalFileSystemStorage(StorageBackend):
    """
    Storage rooted at a local directory. Paths escaping the root are refused.
    """

    def __init__(self, root: Path):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        full_path = (self.root / path).resolve()
        if full_path != self.root and self.root not in full_path.parents:
            raise ValueError(f"Access denied: {path}")
        return full_path

    def write_bytes(self, path: str, data: bytes) -> None:
        p = self._resolve(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)

    def read_bytes(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def list_files(self, prefix: str, suffix: str = "") -> List[str]:
        # Prefix is a directory on local disk
        p = self._resolve(prefix)
        if not p.is_dir():
            return []

        return sorted(
            f.relative_to(self.root).as_posix()
            for f in p.glob(f"*{suffix}")
            if f.is_file()
        )

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def delete(self, path: str) -> None:
        p = self._resolve(path)
        if p.is_file():
            p.unlink()


class InMemoryStorage(StorageBackend):
    """Dict-backed storage for tests and ephemeral sessions."""

    def __init__(self) -> None:
        self._blobs: Dict[str, bytes] = {}

    @staticmethod
    def _normalise(path: str) -> str:
        parts = [p for p in path.replace("\\", "/").split("/") if p not in ("", ".")]
        if ".." in parts:
            raise ValueError(f"Access denied: {path}")
        return "/".join(parts)

    def write_bytes(self, path: str, data: bytes) -> None:
        self._blobs[self._normalise(path)] = bytes(data)

    def read_bytes(self, path: str) -> bytes:
        key = self._normalise(path)
        try:
            return self._blobs[key]
        except KeyError:
            raise FileNotFoundError(path)

    def list_files(self, prefix: str, suffix: str = "") -> List[str]:
        base = self._normalise(prefix)
        base = f"{base}/" if base else ""
        return sorted(
            key for key in self._blobs
            if key.startswith(base) and "/" not in key[len(base):] and key.endswith(suffix)
        )

    def exists(self, path: str) -> bool:
        return self._normalise(path) in self._blobs

    def delete(self, path: str) -> None:
        self._blobs.pop(self._normalise(path), None)
