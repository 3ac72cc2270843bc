# cartsync/storage.py
"""
Small file-backed key/value store standing in for browser localStorage.
Each key is one JSON file inside DATA_DIR. Uses file locking so two
processes writing the same key do not corrupt the file.

Usage:
    from cartsync.storage import FileBackedStorage
    storage = FileBackedStorage()
    storage.set_item("cart", {"items": [], "savedItems": []})
    storage.get_item("cart")
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, Optional
from filelock import FileLock

from cartsync.config import settings


_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class FileBackedStorage:
    """
    Manages one JSON file per key inside data_dir.
    Values are anything json can serialize; reads of a missing key return None.
    """

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir if data_dir is not None else settings.DATA_DIR)
        # one FileLock per path so nested acquires from this process re-enter
        self._locks: Dict[Path, FileLock] = {}

    def _file_path(self, key: str) -> Path:
        if not key:
            raise ValueError("storage key must be non-empty")
        return self.data_dir / f"{_SAFE_KEY.sub('_', key)}.json"

    def _lock_for(self, path: Path) -> FileLock:
        lock = self._locks.get(path)
        if lock is None:
            lock = self._locks[path] = FileLock(str(path) + ".lock")
        return lock

    def _read_nolock(self, path: Path) -> Optional[str]:
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def _write_nolock(self, path: Path, raw: str) -> None:
        """
        Write `raw` to `path` WITHOUT acquiring the file lock.
        Use this only when the caller already holds the lock.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(raw, encoding="utf-8")
        tmp.replace(path)

    # --- localStorage-style primitives ---

    def get_raw(self, key: str) -> Optional[str]:
        path = self._file_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock_for(path):
            return self._read_nolock(path)

    def get_item(self, key: str) -> Any:
        """
        Return the decoded value stored under key, or None if missing.
        Raises ValueError when the file holds something that is not JSON.
        """
        raw = self.get_raw(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set_item(self, key: str, value: Any) -> None:
        path = self._file_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        raw = json.dumps(value, ensure_ascii=False)
        with self._lock_for(path):
            self._write_nolock(path, raw)

    def remove_item(self, key: str) -> bool:
        """Delete the key. Returns True if something was removed."""
        path = self._file_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock_for(path):
            if not path.exists():
                return False
            path.unlink()
            return True

    def lock(self, key: str) -> FileLock:
        """Lock guarding `key`, for callers doing a read-modify-write cycle."""
        path = self._file_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        return self._lock_for(path)
