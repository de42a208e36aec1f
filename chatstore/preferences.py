"""User preferences for chatstore.

Loads settings from ~/.chatstore/preferences.yaml.
Falls back to sensible defaults if the file doesn't exist or is invalid.
Creates a default file on first run so users can discover and edit it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .constants import (
    CHATSTORE_HOME,
    DEFAULT_CHAT_MODEL_ID,
    DEFAULT_SYSTEM_PURPOSE_ID,
    STORAGE_DIR,
)
from .log import logger

PREFS_PATH = CHATSTORE_HOME / "preferences.yaml"

_DEFAULT_YAML = """\
# chatstore preferences
# Delete this file to reset to defaults.

storage:
  directory: "~/.chatstore/storage"  # one JSON file per storage slot
  enabled: true                      # false keeps conversations in memory only

defaults:
  system_purpose_id: "Generic"       # purpose for new default conversations
  chat_model_id: "gpt-4"             # model for new default conversations

logging:
  level: "WARNING"                   # DEBUG, INFO, WARNING, ERROR
"""


@dataclass
class StoragePreferences:
    """Where and whether conversations are persisted."""

    directory: Path = STORAGE_DIR
    enabled: bool = True


@dataclass
class DefaultsPreferences:
    """Configuration used for the synthesized default conversation."""

    system_purpose_id: str = DEFAULT_SYSTEM_PURPOSE_ID
    chat_model_id: str = DEFAULT_CHAT_MODEL_ID


@dataclass
class Preferences:
    """Top-level chatstore preferences."""

    storage: StoragePreferences = field(default_factory=StoragePreferences)
    defaults: DefaultsPreferences = field(default_factory=DefaultsPreferences)
    log_level: str = "WARNING"


def load_preferences(path: Path | None = None) -> Preferences:
    """Load preferences from YAML file.

    Falls back to sensible defaults if the file doesn't exist or is invalid.
    Creates a default preferences file on first run.
    """
    path = path or PREFS_PATH
    prefs = Preferences()

    if path.exists():
        try:
            data = yaml.safe_load(path.read_text()) or {}
            if not isinstance(data, dict):
                raise ValueError("preferences file is not a mapping")
            if isinstance(data.get("storage"), dict):
                sdata = data["storage"]
                if sdata.get("directory"):
                    prefs.storage.directory = Path(str(sdata["directory"])).expanduser()
                if "enabled" in sdata:
                    prefs.storage.enabled = bool(sdata["enabled"])
            if isinstance(data.get("defaults"), dict):
                ddata = data["defaults"]
                if ddata.get("system_purpose_id"):
                    prefs.defaults.system_purpose_id = str(ddata["system_purpose_id"])
                if ddata.get("chat_model_id"):
                    prefs.defaults.chat_model_id = str(ddata["chat_model_id"])
            if isinstance(data.get("logging"), dict):
                ldata = data["logging"]
                if ldata.get("level"):
                    prefs.log_level = str(ldata["level"]).upper()
        except (OSError, ValueError, yaml.YAMLError):
            logger.debug("failed to load preferences from %s", path, exc_info=True)
    else:
        # Create default file for user to customize
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(_DEFAULT_YAML)
        except OSError:
            logger.debug("failed to write default preferences to %s", path, exc_info=True)

    return prefs


def save_default_chat_model(model: str, path: Path | None = None) -> None:
    """Persist the default chat model to the preferences file.

    Surgically updates only the chat_model_id line, preserving the rest of
    the file (including user comments) as-is.
    """
    path = path or PREFS_PATH
    try:
        if path.exists():
            text = path.read_text()
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            text = _DEFAULT_YAML

        value = f'"{model}"'
        if re.search(r"^\s+chat_model_id:", text, re.MULTILINE):
            # keep any trailing comment
            text = re.sub(
                r'^(\s+chat_model_id:)\s*(?:"[^"]*"|\S+)?(.*?)$',
                lambda m: f"{m.group(1)} {value}{m.group(2)}",
                text,
                count=1,
                flags=re.MULTILINE,
            )
        elif re.search(r"^defaults:", text, re.MULTILINE):
            text = re.sub(
                r"^(defaults:.*)$",
                lambda m: f"{m.group(1)}\n  chat_model_id: {value}",
                text,
                count=1,
                flags=re.MULTILINE,
            )
        else:
            text = text.rstrip() + f"\n\ndefaults:\n  chat_model_id: {value}\n"

        path.write_text(text)
    except OSError:
        logger.debug("failed to save default chat model to %s", path, exc_info=True)
