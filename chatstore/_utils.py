"""Shared helpers for building new snapshots out of old ones."""

from __future__ import annotations

import time
from typing import Callable, Iterable, Protocol, TypeVar


class _Identified(Protocol):
    id: str


T = TypeVar("T", bound=_Identified)


def now_ms() -> int:
    """Current wall-clock time in integer milliseconds since the epoch."""
    return int(time.time() * 1000)


def replace_by_id(
    items: Iterable[T], item_id: str, update: Callable[[T], T]
) -> tuple[T, ...]:
    """Return a new tuple where items with ``id == item_id`` go through *update*.

    Every other element is carried over as the same object, so observers
    can detect what changed with ``is``.
    """
    return tuple(update(item) if item.id == item_id else item for item in items)


def without_id(items: Iterable[T], item_id: str) -> tuple[T, ...]:
    """Return a new tuple with every item whose id matches removed."""
    return tuple(item for item in items if item.id != item_id)


def token_count(value: object) -> int | None:
    """Return *value* if it is a usable token count, else ``None``."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def sum_cache_tokens(messages: Iterable) -> int:
    """Sum ``cache_tokens_count`` over *messages*.

    ``None`` and anything that is not an integer count as 0.
    """
    return sum(token_count(message.cache_tokens_count) or 0 for message in messages)
