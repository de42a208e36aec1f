"""Conversation and message records, plus the store snapshot.

All records are frozen: a mutation always builds a new object with
``dataclasses.replace`` and leaves the previous one intact for anyone still
holding it.

The dict form uses camelCase keys (``chatModelId``, ``cacheTokensCount``
...) so the persisted blob keeps the layout the web client has always
written.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields
from typing import Any, Literal

from ._utils import now_ms, sum_cache_tokens, token_count
from .constants import (
    DEFAULT_CHAT_MODEL_ID,
    DEFAULT_CONVERSATION_ID,
    DEFAULT_CONVERSATION_NAME,
    DEFAULT_SYSTEM_PURPOSE_ID,
    ROLES,
    SENDER_BOT,
    SENDER_USER,
)

Role = Literal["assistant", "system", "user"]

# attribute name -> persisted key, only where the two differ
_MESSAGE_KEYS = {
    "model_id": "modelId",
    "purpose_id": "purposeId",
    "cache_tokens_count": "cacheTokensCount",
}
_MESSAGE_ATTRS = {persisted: attr for attr, persisted in _MESSAGE_KEYS.items()}
_CONVERSATION_KEYS = {
    "system_purpose_id": "systemPurposeId",
    "chat_model_id": "chatModelId",
    "user_title": "userTitle",
    "auto_title": "autoTitle",
    "cache_tokens_count": "cacheTokensCount",
}


def _require(data: dict, key: str, kind: type | tuple[type, ...]) -> Any:
    value = data.get(key)
    if not isinstance(value, kind):
        raise ValueError(f"invalid or missing {key!r}: {value!r}")
    return value


@dataclass(frozen=True)
class Message:
    """A single turn in a conversation, sent or received by humans or bots."""

    id: str
    text: str
    sender: str  # pretty name: "You", "Bot" or anything else
    role: Role
    avatar: str | None = None  # None, or image url
    typing: bool = False
    model_id: str | None = None  # assistant only, may be unknown to the catalog
    purpose_id: str | None = None  # assistant/system only
    cache_tokens_count: int | None = None
    created: int = field(default_factory=now_ms)
    updated: int | None = None

    @classmethod
    def field_names(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls))

    @staticmethod
    def normalize_key(key: str) -> str:
        """Map a persisted (camelCase) key to its attribute name."""
        return _MESSAGE_ATTRS.get(key, key)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "sender": self.sender,
            "avatar": self.avatar,
            "typing": self.typing,
            "role": self.role,
        }
        for attr, key in _MESSAGE_KEYS.items():
            value = getattr(self, attr)
            if attr == "cache_tokens_count":
                # only counts that restore are written
                value = token_count(value)
            if value is not None:
                data[key] = value
        data["created"] = self.created
        data["updated"] = self.updated
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Message:
        """Build a message from its persisted form.

        Raises:
            ValueError: If *data* is not a mapping or lacks required keys.
        """
        if not isinstance(data, dict):
            raise ValueError(f"message must be an object, got {type(data).__name__}")
        role = _require(data, "role", str)
        if role not in ROLES:
            raise ValueError(f"unknown message role: {role!r}")
        return cls(
            id=_require(data, "id", str),
            text=str(data.get("text") or ""),
            sender=str(data.get("sender") or ""),
            role=role,
            avatar=data.get("avatar"),
            typing=bool(data.get("typing", False)),
            model_id=data.get("modelId"),
            purpose_id=data.get("purposeId"),
            cache_tokens_count=token_count(data.get("cacheTokensCount")),
            created=_require(data, "created", (int, float)),
            updated=data.get("updated"),
        )


@dataclass(frozen=True)
class Conversation:
    """An ordered, named thread of messages."""

    id: str
    name: str
    system_purpose_id: str
    chat_model_id: str
    messages: tuple[Message, ...] = ()
    user_title: str | None = None
    auto_title: str | None = None
    cache_tokens_count: int = 0
    created: int = field(default_factory=now_ms)
    updated: int | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.messages, tuple):
            object.__setattr__(self, "messages", tuple(self.messages))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "messages": [message.to_dict() for message in self.messages],
        }
        for attr, key in _CONVERSATION_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        data["created"] = self.created
        data["updated"] = self.updated
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Conversation:
        """Build a conversation from its persisted form.

        The token aggregate is recomputed from the messages rather than
        trusted from the blob.

        Raises:
            ValueError: If *data* or any of its messages is malformed.
        """
        if not isinstance(data, dict):
            raise ValueError(
                f"conversation must be an object, got {type(data).__name__}"
            )
        raw_messages = data.get("messages", [])
        if not isinstance(raw_messages, list):
            raise ValueError("conversation 'messages' must be a list")
        messages = tuple(Message.from_dict(m) for m in raw_messages)
        return cls(
            id=_require(data, "id", str),
            name=str(data.get("name") or ""),
            system_purpose_id=_require(data, "systemPurposeId", str),
            chat_model_id=_require(data, "chatModelId", str),
            messages=messages,
            user_title=data.get("userTitle"),
            auto_title=data.get("autoTitle"),
            cache_tokens_count=sum_cache_tokens(messages),
            created=_require(data, "created", (int, float)),
            updated=data.get("updated"),
        )


@dataclass(frozen=True)
class ChatState:
    """Snapshot of the whole store at one instant."""

    conversations: tuple[Conversation, ...] = ()
    active_conversation_id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.conversations, tuple):
            object.__setattr__(self, "conversations", tuple(self.conversations))

    def to_dict(self) -> dict[str, Any]:
        return {
            "conversations": [c.to_dict() for c in self.conversations],
            "activeConversationId": self.active_conversation_id,
        }


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def create_conversation(
    conversation_id: str,
    name: str,
    system_purpose_id: str,
    chat_model_id: str,
) -> Conversation:
    """Return an empty conversation stamped with the current time."""
    now = now_ms()
    return Conversation(
        id=conversation_id,
        name=name,
        system_purpose_id=system_purpose_id,
        chat_model_id=chat_model_id,
        created=now,
        updated=now,
    )


def create_message(
    text: str,
    role: Role = "user",
    *,
    sender: str | None = None,
    message_id: str | None = None,
    **extra: Any,
) -> Message:
    """Return a new message with a fresh id.

    *sender* defaults to "You" for user messages and "Bot" for the rest.
    Remaining keyword arguments are passed through to :class:`Message`.
    """
    if sender is None:
        sender = SENDER_USER if role == "user" else SENDER_BOT
    return Message(
        id=message_id or str(uuid.uuid4()),
        text=text,
        sender=sender,
        role=role,
        **extra,
    )


def default_state(
    system_purpose_id: str = DEFAULT_SYSTEM_PURPOSE_ID,
    chat_model_id: str = DEFAULT_CHAT_MODEL_ID,
) -> ChatState:
    """First-run state: one empty default conversation, which is active."""
    conversation = create_conversation(
        DEFAULT_CONVERSATION_ID,
        DEFAULT_CONVERSATION_NAME,
        system_purpose_id,
        chat_model_id,
    )
    return ChatState(
        conversations=(conversation,),
        active_conversation_id=conversation.id,
    )
