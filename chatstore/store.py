"""Observable, snapshot-based conversation store.

Every mutation builds a new :class:`ChatState` from the current one and
swaps it in under a lock. Only the conversation a mutation touches is
rebuilt; every other conversation and message keeps its identity, so
subscribers can compare slices with ``is``.

Missing conversation or message ids never raise. The operation still
publishes a new snapshot with unchanged content.
"""

from __future__ import annotations

import operator
import threading
from dataclasses import replace
from typing import Any, Callable, Iterable, Mapping, TypeVar

from ._utils import now_ms, replace_by_id, sum_cache_tokens, without_id
from .constants import MAX_CONVERSATIONS
from .log import logger
from .models import ChatState, Conversation, Message, default_state

S = TypeVar("S")

Listener = Callable[[ChatState, ChatState], None]
Unsubscribe = Callable[[], None]


class ConversationStore:
    """Holds the conversation list and the active-conversation pointer."""

    def __init__(
        self,
        initial_state: ChatState | None = None,
        *,
        default_factory: Callable[[], ChatState] = default_state,
        max_conversations: int = MAX_CONVERSATIONS,
    ) -> None:
        self._default_factory = default_factory
        self._max_conversations = max_conversations
        self._state = initial_state if initial_state is not None else default_factory()
        self._listeners: list[Listener] = []
        # one writer at a time; re-entrant so listeners may mutate
        self._lock = threading.RLock()

    # -- read API -------------------------------------------------------------

    @property
    def state(self) -> ChatState:
        return self._state

    def get_state(self) -> ChatState:
        return self._state

    def subscribe(self, listener: Listener) -> Unsubscribe:
        """Call ``listener(state, previous)`` after every state change."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def select(
        self,
        selector: Callable[[ChatState], S],
        listener: Callable[[S], None],
        equality: Callable[[S, S], bool] = operator.is_,
    ) -> Unsubscribe:
        """Call ``listener(slice)`` whenever ``selector(state)`` changes.

        Slices are compared with *equality* (identity by default).
        """
        current = [selector(self._state)]

        def on_change(state: ChatState, _previous: ChatState) -> None:
            selected = selector(state)
            if equality(selected, current[0]):
                return
            current[0] = selected
            listener(selected)

        return self.subscribe(on_change)

    # -- state transitions ----------------------------------------------------

    def set_state(self, update: Callable[[ChatState], ChatState]) -> None:
        """Apply *update* to the current snapshot and publish the result."""
        with self._lock:
            previous = self._state
            self._state = update(previous)
            for listener in list(self._listeners):
                try:
                    listener(self._state, previous)
                except Exception:
                    logger.exception("state listener %r failed", listener)

    def replace_state(self, state: ChatState) -> None:
        """Swap in a whole snapshot (used when restoring persisted state)."""
        self.set_state(lambda _previous: state)

    def _update_conversations(
        self, update: Callable[[tuple[Conversation, ...]], Iterable[Conversation]]
    ) -> None:
        self.set_state(
            lambda state: replace(state, conversations=tuple(update(state.conversations)))
        )

    def _update_conversation(
        self, conversation_id: str, update: Callable[[Conversation], Conversation]
    ) -> None:
        self._update_conversations(
            lambda conversations: replace_by_id(conversations, conversation_id, update)
        )

    # -- conversation list ----------------------------------------------------

    def add_conversation(self, conversation: Conversation) -> None:
        """Prepend *conversation*, keeping only the newest conversations.

        Duplicate ids are not checked; callers supply a fresh id.
        """
        keep = self._max_conversations - 1
        self._update_conversations(
            lambda conversations: (conversation, *conversations[:keep])
        )

    def delete_conversation(self, conversation_id: str) -> None:
        self._update_conversations(
            lambda conversations: without_id(conversations, conversation_id)
        )

    def reset_conversations(self) -> None:
        """Replace every conversation with a single fresh default one."""
        self._update_conversations(lambda _: self._default_factory().conversations)

    def set_active_conversation_id(self, conversation_id: str) -> None:
        """Point at *conversation_id* without checking that it exists."""
        self.set_state(
            lambda state: replace(state, active_conversation_id=conversation_id)
        )

    # -- conversation settings ------------------------------------------------

    def set_system_purpose_id(self, conversation_id: str, system_purpose_id: str) -> None:
        self._update_conversation(
            conversation_id,
            lambda c: replace(c, system_purpose_id=system_purpose_id, updated=now_ms()),
        )

    def set_chat_model_id(self, conversation_id: str, chat_model_id: str) -> None:
        # token counts are independent of the selected model
        self._update_conversation(
            conversation_id,
            lambda c: replace(c, chat_model_id=chat_model_id, updated=now_ms()),
        )

    # -- messages -------------------------------------------------------------

    def add_message(self, conversation_id: str, message: Message) -> None:
        self._update_conversation(
            conversation_id,
            lambda c: _with_messages(c, (*c.messages, message)),
        )

    def edit_message(
        self,
        conversation_id: str,
        message_id: str,
        updated_message: Mapping[str, Any],
    ) -> None:
        """Merge *updated_message* into one message and restamp it.

        Keys may use attribute names or their persisted camelCase form.
        Keys that name no message field are dropped.
        """
        changes = _message_changes(updated_message)

        def edit(message: Message) -> Message:
            return replace(message, **changes, updated=now_ms())

        self._update_conversation(
            conversation_id,
            lambda c: _with_messages(c, replace_by_id(c.messages, message_id, edit)),
        )

    def remove_message(self, conversation_id: str, message_id: str) -> None:
        self._update_conversation(
            conversation_id,
            lambda c: _with_messages(c, without_id(c.messages, message_id)),
        )

    def replace_messages(self, conversation_id: str, messages: Iterable[Message]) -> None:
        new_messages = tuple(messages)
        self._update_conversation(
            conversation_id,
            lambda c: _with_messages(c, new_messages),
        )


def _with_messages(conversation: Conversation, messages: tuple[Message, ...]) -> Conversation:
    """Return *conversation* holding *messages*, with the token total recomputed."""
    return replace(
        conversation,
        messages=messages,
        cache_tokens_count=sum_cache_tokens(messages),
        updated=now_ms(),
    )


def _message_changes(updated_message: Mapping[str, Any]) -> dict[str, Any]:
    known = Message.field_names()
    changes: dict[str, Any] = {}
    for key, value in updated_message.items():
        attr = Message.normalize_key(key)
        if attr == "updated":
            continue  # restamped by edit_message
        if attr not in known:
            logger.debug("ignoring unknown message field %r in edit", key)
            continue
        changes[attr] = value
    return changes
