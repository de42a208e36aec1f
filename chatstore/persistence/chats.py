"""Persistence of the conversation store to the ``app-chats`` slot.

The blob is ``{"state": {"conversations": [...], "activeConversationId":
...}, "version": 0}``. Restoring happens once, before the first external
mutation; after that every new snapshot is written back. Writing is best
effort: a failed write is logged and the in-memory state stays
authoritative.
"""

from __future__ import annotations

import json
from dataclasses import replace
from functools import partial
from typing import Any

from ..constants import STORAGE_NAME, STORAGE_VERSION
from ..log import logger
from ..models import ChatState, Conversation, default_state
from ..preferences import Preferences, load_preferences
from ..store import ConversationStore, Unsubscribe
from ._base import FileStorage, StorageBackend


def serialize_state(state: ChatState, version: int = STORAGE_VERSION) -> str:
    """Encode *state* as the persisted JSON blob."""
    return json.dumps({"state": state.to_dict(), "version": version}, ensure_ascii=False)


def deserialize_state(
    blob: str, defaults: ChatState, version: int = STORAGE_VERSION
) -> ChatState:
    """Decode a persisted blob, shallow-merging its keys onto *defaults*.

    Raises:
        ValueError: If the blob is not valid JSON, has the wrong shape or
            was written under another version.
    """
    payload = json.loads(blob)  # JSONDecodeError is a ValueError
    if not isinstance(payload, dict) or not isinstance(payload.get("state"), dict):
        raise ValueError("persisted blob has no 'state' object")
    if payload.get("version", 0) != version:
        raise ValueError(
            f"persisted version {payload.get('version')!r} does not match {version}"
        )
    persisted: dict[str, Any] = payload["state"]
    changes: dict[str, Any] = {}
    if "conversations" in persisted:
        conversations = persisted["conversations"]
        if not isinstance(conversations, list):
            raise ValueError("persisted 'conversations' must be a list")
        changes["conversations"] = tuple(Conversation.from_dict(c) for c in conversations)
    if "activeConversationId" in persisted:
        active_id = persisted["activeConversationId"]
        if active_id is not None and not isinstance(active_id, str):
            raise ValueError(f"invalid activeConversationId: {active_id!r}")
        changes["active_conversation_id"] = active_id
    return replace(defaults, **changes)


class ChatPersistence:
    """Restores a store from, and writes it back to, a storage slot."""

    def __init__(
        self,
        store: ConversationStore,
        backend: StorageBackend,
        name: str = STORAGE_NAME,
        version: int = STORAGE_VERSION,
    ) -> None:
        self.store = store
        self.backend = backend
        self.name = name
        self.version = version
        self._unsubscribe: Unsubscribe | None = None

    def hydrate(self) -> bool:
        """Replace the store state with the persisted one, if any.

        Returns True if persisted state was applied. Absent or malformed
        blobs leave the current (default) state in place.
        """
        blob = self.backend.get_item(self.name)
        if blob is None:
            logger.debug("no persisted state in slot %s", self.name)
            return False
        try:
            state = deserialize_state(blob, self.store.state, self.version)
        except ValueError:
            logger.warning(
                "ignoring malformed persisted state in slot %s", self.name, exc_info=True
            )
            return False
        self.store.replace_state(state)
        return True

    def attach(self) -> None:
        """Write every subsequent snapshot to the slot."""
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self._on_change)

    def _on_change(self, state: ChatState, _previous: ChatState) -> None:
        self._write(state)

    def _write(self, state: ChatState) -> bool:
        try:
            self.backend.set_item(self.name, serialize_state(state, self.version))
        except (OSError, TypeError, ValueError):
            logger.warning("failed to persist state to slot %s", self.name, exc_info=True)
            return False
        return True


def open_store(
    preferences: Preferences | None = None,
    backend: StorageBackend | None = None,
) -> ConversationStore:
    """Build a store from *preferences*, restored from and saved to storage.

    When storage is disabled in the preferences the store is purely
    in-memory.
    """
    prefs = preferences or load_preferences()
    store = ConversationStore(
        default_factory=partial(
            default_state,
            prefs.defaults.system_purpose_id,
            prefs.defaults.chat_model_id,
        )
    )
    if not prefs.storage.enabled:
        return store
    persistence = ChatPersistence(store, backend or FileStorage(prefs.storage.directory))
    persistence.hydrate()
    persistence.attach()
    return store
