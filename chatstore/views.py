"""Read-only projections over a :class:`ChatState` snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import Callable

from .constants import (
    DEFAULT_CHAT_MODEL_ID,
    MISSING_CONVERSATION_ID,
    MISSING_CONVERSATION_NAME,
    MISSING_SYSTEM_PURPOSE_ID,
)
from .models import ChatState, Conversation, create_conversation
from .store import ConversationStore

# Rendered when the active id points nowhere. Never stored or persisted.
ERROR_CONVERSATION: Conversation = create_conversation(
    MISSING_CONVERSATION_ID,
    MISSING_CONVERSATION_NAME,
    MISSING_SYSTEM_PURPOSE_ID,
    DEFAULT_CHAT_MODEL_ID,
)


def active_conversation(state: ChatState) -> Conversation:
    """Return the active conversation, or :data:`ERROR_CONVERSATION` on a miss."""
    for conversation in state.conversations:
        if conversation.id == state.active_conversation_id:
            return conversation
    return ERROR_CONVERSATION


@dataclass(frozen=True)
class ConversationSummary:
    """Lightweight listing entry for navigation UIs."""

    id: str
    name: str
    system_purpose_id: str


def conversation_names(state: ChatState) -> list[ConversationSummary]:
    """Project every conversation to a summary, preserving list order."""
    return [
        ConversationSummary(c.id, c.name, c.system_purpose_id)
        for c in state.conversations
    ]


def conversation_title(conversation: Conversation) -> str:
    """Display name: the user's title, else the generated one, else the name."""
    return conversation.user_title or conversation.auto_title or conversation.name


@dataclass(frozen=True)
class ActiveConfiguration:
    """The active conversation's purpose and model, with setters bound to it."""

    conversation_id: str
    system_purpose_id: str
    chat_model_id: str
    set_system_purpose_id: Callable[[str], None]
    set_chat_model_id: Callable[[str], None]


class ActiveConfigurationAccessor:
    """Builds :class:`ActiveConfiguration` values for a store.

    The bound setters are kept across calls and only re-created when the
    resolved conversation id changes, so callers can compare them by
    identity.
    """

    def __init__(self, store: ConversationStore) -> None:
        self._store = store
        self._bound_id: str | None = None
        self._setters: tuple[Callable[[str], None], Callable[[str], None]] | None = None

    def _setters_for(
        self, conversation_id: str
    ) -> tuple[Callable[[str], None], Callable[[str], None]]:
        if self._setters is None or self._bound_id != conversation_id:
            self._bound_id = conversation_id
            self._setters = (
                partial(self._store.set_system_purpose_id, conversation_id),
                partial(self._store.set_chat_model_id, conversation_id),
            )
        return self._setters

    def current(self) -> ActiveConfiguration:
        conversation = active_conversation(self._store.state)
        set_purpose, set_model = self._setters_for(conversation.id)
        return ActiveConfiguration(
            conversation_id=conversation.id,
            system_purpose_id=conversation.system_purpose_id,
            chat_model_id=conversation.chat_model_id,
            set_system_purpose_id=set_purpose,
            set_chat_model_id=set_model,
        )
