"""Client-side persisted chat state: threads, per-thread messages and the active thread."""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote, unquote

from schemas.threads import Thread, utc_now_iso

logger = logging.getLogger(__name__)

# Storage keys
KEY_PREFIX = "stackpath_"
THREADS_KEY = f"{KEY_PREFIX}threads"
MESSAGES_KEY_PREFIX = f"{KEY_PREFIX}messages_"
ACTIVE_THREAD_KEY = f"{KEY_PREFIX}active_thread"


class QuotaExceededError(OSError):
    """Raised when a write would push the store past its byte quota."""


class FileStorage:
    """
    String key/value storage with one file per key, in the spirit of browser localStorage.

    An optional quota bounds the total size of keys plus values.
    """

    def __init__(self, root: Path, quota_bytes: Optional[int] = None):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.quota_bytes = quota_bytes

    def _path(self, key: str) -> Path:
        return self.root / quote(key, safe="")

    def keys(self) -> List[str]:
        return sorted(unquote(path.name) for path in self.root.iterdir() if path.is_file())

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            current = self.get_item(key)
            used = self.size() - (len(key) + len(current) if current is not None else 0)
            if used + len(key) + len(value) > self.quota_bytes:
                raise QuotaExceededError(f"Storage quota of {self.quota_bytes} bytes exceeded")

        path = self._path(key)
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(value, encoding="utf-8")
        os.replace(tmp_path, path)

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()

    def size(self) -> int:
        return sum(len(key) + len(self.get_item(key) or "") for key in self.keys())


class LocalStore:
    """Thread, message and active-thread records on top of a FileStorage."""

    def __init__(self, storage: FileStorage):
        self.storage = storage

    def _read_json(self, key: str, default: Any) -> Any:
        try:
            data = self.storage.get_item(key)
            return json.loads(data) if data else default
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load {key}: {e}")
            return default

    def _write_json(self, key: str, value: Any) -> bool:
        try:
            self.storage.set_item(key, json.dumps(value))
            return True
        except QuotaExceededError as e:
            logger.error(f"Failed to save {key}: {e}. Consider clearing old threads.")
        except OSError as e:
            logger.error(f"Failed to save {key}: {e}")
        return False

    # Thread operations

    def get_threads(self) -> List[Dict[str, Any]]:
        threads = self._read_json(THREADS_KEY, [])
        return threads if isinstance(threads, list) else []

    def get_thread(self, thread_id: str) -> Optional[Dict[str, Any]]:
        return next((t for t in self.get_threads() if t.get("id") == thread_id), None)

    def save_thread(self, thread: Dict[str, Any]) -> Dict[str, Any]:
        """Insert or update a thread, refreshing ``updatedAt``. New threads go first."""
        threads = self.get_threads()
        updated = {**Thread.model_validate(thread).to_record(), "updatedAt": utc_now_iso()}

        index = next((i for i, t in enumerate(threads) if t.get("id") == updated["id"]), None)
        if index is None:
            threads.insert(0, updated)
        else:
            threads[index] = updated
        self._write_json(THREADS_KEY, threads)
        return updated

    def delete_thread(self, thread_id: str) -> None:
        threads = [t for t in self.get_threads() if t.get("id") != thread_id]
        self._write_json(THREADS_KEY, threads)
        try:
            self.storage.remove_item(f"{MESSAGES_KEY_PREFIX}{thread_id}")
        except OSError as e:
            logger.error(f"Failed to delete messages of thread {thread_id}: {e}")

    # Message operations

    def get_messages(self, thread_id: str) -> List[Dict[str, Any]]:
        messages = self._read_json(f"{MESSAGES_KEY_PREFIX}{thread_id}", [])
        return messages if isinstance(messages, list) else []

    def save_messages(self, thread_id: str, messages: List[Dict[str, Any]]) -> None:
        """Persist a thread's messages and bump the thread's ``updatedAt``."""
        if not self._write_json(f"{MESSAGES_KEY_PREFIX}{thread_id}", messages):
            return
        thread = self.get_thread(thread_id)
        if thread:
            self.save_thread(thread)

    # Active thread persistence

    def get_active_thread_id(self) -> Optional[str]:
        try:
            return self.storage.get_item(ACTIVE_THREAD_KEY) or None
        except OSError as e:
            logger.error(f"Failed to load active thread: {e}")
            return None

    def set_active_thread_id(self, thread_id: Optional[str]) -> None:
        try:
            if thread_id:
                self.storage.set_item(ACTIVE_THREAD_KEY, thread_id)
            else:
                self.storage.remove_item(ACTIVE_THREAD_KEY)
        except OSError as e:
            logger.error(f"Failed to save active thread: {e}")

    # Storage management utilities

    def get_storage_size(self) -> int:
        return self.storage.size()

    def clear_all_data(self) -> None:
        for key in self.storage.keys():
            if key.startswith(KEY_PREFIX):
                self.storage.remove_item(key)
