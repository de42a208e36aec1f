"""Module-level constants for chatstore."""

from __future__ import annotations

from pathlib import Path

# Conversations kept by add_conversation (newest first)
MAX_CONVERSATIONS = 20

# Durable storage slot holding the serialized store state
STORAGE_NAME = "app-chats"
STORAGE_VERSION = 0

CHATSTORE_HOME = Path.home() / ".chatstore"
STORAGE_DIR = CHATSTORE_HOME / "storage"

DEFAULT_CONVERSATION_ID = "default"
DEFAULT_CONVERSATION_NAME = "Conversation"
DEFAULT_SYSTEM_PURPOSE_ID = "Generic"
DEFAULT_CHAT_MODEL_ID = "gpt-4"

# Placeholder returned when the active id does not resolve
MISSING_CONVERSATION_ID = "error-missing"
MISSING_CONVERSATION_NAME = "Missing Conversation"
MISSING_SYSTEM_PURPOSE_ID = "Developer"

ROLES: tuple[str, ...] = ("assistant", "system", "user")

# Pretty sender names
SENDER_USER = "You"
SENDER_BOT = "Bot"
