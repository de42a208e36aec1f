"""Durable key/blob storage backends."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Protocol

from ..log import logger


class StorageBackend(Protocol):
    """Opaque named-slot storage, one text blob per name."""

    def get_item(self, name: str) -> str | None: ...

    def set_item(self, name: str, value: str) -> None: ...


class FileStorage:
    """One file per slot under *directory*, written atomically.

    Reads never raise: a missing or unreadable slot comes back as ``None``.
    Writes raise ``OSError`` and leave any previous blob intact.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def path_for(self, name: str) -> Path:
        return self.directory / f"{name}.json"

    # -- core I/O -------------------------------------------------------------

    def get_item(self, name: str) -> str | None:
        path = self.path_for(name)
        try:
            if path.exists():
                return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            logger.debug("failed to read storage slot %s", path, exc_info=True)
        return None

    def set_item(self, name: str, value: str) -> None:
        path = self.path_for(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(value, encoding="utf-8")
        os.replace(tmp, path)


class MemoryStorage:
    """Dict-backed storage, for tests and throwaway stores."""

    def __init__(self, items: dict[str, str] | None = None) -> None:
        self.items: dict[str, str] = dict(items or {})

    def get_item(self, name: str) -> str | None:
        return self.items.get(name)

    def set_item(self, name: str, value: str) -> None:
        self.items[name] = value
