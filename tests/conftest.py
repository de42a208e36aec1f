"""Shared test fixtures for the chatstore test suite."""

from __future__ import annotations

import pytest

from chatstore.models import Message, create_conversation, default_state
from chatstore.store import ConversationStore


@pytest.fixture
def store() -> ConversationStore:
    """A fresh in-memory store holding only the default conversation."""
    return ConversationStore(default_state())


@pytest.fixture
def make_message():
    """Factory for messages with fixed ids and optional token counts."""

    def _make(
        message_id: str,
        text: str = "",
        role: str = "user",
        cache_tokens_count: int | None = None,
        **extra,
    ) -> Message:
        return Message(
            id=message_id,
            text=text,
            sender="You" if role == "user" else "Bot",
            role=role,
            cache_tokens_count=cache_tokens_count,
            created=1_700_000_000_000,
            **extra,
        )

    return _make


@pytest.fixture
def make_conversation():
    """Factory for empty conversations with the stock purpose and model."""

    def _make(conversation_id: str, name: str | None = None):
        return create_conversation(
            conversation_id, name or f"Chat {conversation_id}", "Generic", "gpt-4"
        )

    return _make
