"""Thread management for the chat client."""
import logging
from typing import Any, Dict, List, Optional

from client.local_store import LocalStore
from schemas.threads import Thread

logger = logging.getLogger(__name__)


class ThreadManager:
    """Create, switch and delete threads, keeping the active pointer in the store."""

    def __init__(self, store: LocalStore):
        self.store = store
        self.active_thread_id: Optional[str] = store.get_active_thread_id()

    @property
    def threads(self) -> List[Dict[str, Any]]:
        return self.store.get_threads()

    def create_thread(self) -> Dict[str, Any]:
        """Create a new thread and make it active."""
        thread = self.store.save_thread(Thread().to_record())
        self.switch_thread(thread["id"])
        logger.info(f"Created thread {thread['id']}")
        return thread

    def switch_thread(self, thread_id: Optional[str]) -> None:
        self.active_thread_id = thread_id
        self.store.set_active_thread_id(thread_id)

    def delete_thread(self, thread_id: str) -> None:
        """Delete a thread and its messages; clears the active pointer if it pointed there."""
        self.store.delete_thread(thread_id)
        if self.active_thread_id == thread_id:
            self.switch_thread(None)

    def rename_thread(self, thread_id: str, title: str) -> Optional[Dict[str, Any]]:
        thread = self.store.get_thread(thread_id)
        if thread is None:
            return None
        return self.store.save_thread({**thread, "title": title})
