"""Persistence layer – durable storage backends and the store writer."""

from ._base import FileStorage, MemoryStorage, StorageBackend
from .chats import ChatPersistence, deserialize_state, open_store, serialize_state

__all__ = [
    "ChatPersistence",
    "FileStorage",
    "MemoryStorage",
    "StorageBackend",
    "deserialize_state",
    "open_store",
    "serialize_state",
]
