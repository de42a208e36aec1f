"""chatstore – persisted, observable conversation history for chat clients."""

from .models import (
    ChatState,
    Conversation,
    Message,
    create_conversation,
    create_message,
    default_state,
)
from .persistence import ChatPersistence, FileStorage, MemoryStorage, open_store
from .store import ConversationStore
from .views import (
    ERROR_CONVERSATION,
    ActiveConfiguration,
    ActiveConfigurationAccessor,
    ConversationSummary,
    active_conversation,
    conversation_names,
    conversation_title,
)

__version__ = "0.1.0"

__all__ = [
    "ERROR_CONVERSATION",
    "ActiveConfiguration",
    "ActiveConfigurationAccessor",
    "ChatPersistence",
    "ChatState",
    "Conversation",
    "ConversationStore",
    "ConversationSummary",
    "FileStorage",
    "MemoryStorage",
    "Message",
    "active_conversation",
    "conversation_names",
    "conversation_title",
    "create_conversation",
    "create_message",
    "default_state",
    "open_store",
]
