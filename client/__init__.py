from .local_store import FileStorage, LocalStore, QuotaExceededError
from .threads import ThreadManager
from .chat import ChatService, ChatController, MessageOptions, StreamEvent, ChatBusyError, ChatServiceError

__all__ = ["FileStorage", "LocalStore", "QuotaExceededError", "ThreadManager",
           "ChatService", "ChatController", "MessageOptions", "StreamEvent", "ChatBusyError", "ChatServiceError"]
