"""Entry point for the chatstore CLI.

Inspects and resets the persisted conversation history, and switches the
chat model of the active conversation.
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime
from pathlib import Path

from .log import configure, logger
from .persistence import open_store
from .preferences import load_preferences, save_default_chat_model
from .store import ConversationStore
from .views import (
    ERROR_CONVERSATION,
    ActiveConfigurationAccessor,
    active_conversation,
    conversation_names,
    conversation_title,
)


def _format_ts(ts: int | None) -> str:
    if not ts:
        return "-"
    return datetime.fromtimestamp(ts / 1000).strftime("%Y-%m-%d %H:%M")


def _cmd_list(store: ConversationStore) -> int:
    state = store.state
    summaries = conversation_names(state)
    if not summaries:
        print("No conversations.")
        return 0
    for summary in summaries:
        marker = "*" if summary.id == state.active_conversation_id else " "
        print(f"{marker} {summary.id:36s}  {summary.system_purpose_id:12s}  {summary.name}")
    return 0


def _cmd_show(store: ConversationStore, conversation_id: str | None) -> int:
    state = store.state
    if conversation_id is None:
        conversation = active_conversation(state)
    else:
        matches = [c for c in state.conversations if c.id == conversation_id]
        if not matches:
            print(f"No conversation with id {conversation_id!r}.", file=sys.stderr)
            return 1
        conversation = matches[0]

    print(f"{conversation_title(conversation)}  [{conversation.id}]")
    print(
        f"  purpose: {conversation.system_purpose_id}  "
        f"model: {conversation.chat_model_id}  "
        f"cached tokens: {conversation.cache_tokens_count}  "
        f"updated: {_format_ts(conversation.updated)}"
    )
    print()
    for message in conversation.messages:
        text = message.text if len(message.text) <= 200 else message.text[:197] + "..."
        print(f"[{_format_ts(message.created)}] {message.sender} ({message.role}): {text}")
    return 0


def _cmd_reset(store: ConversationStore) -> int:
    store.reset_conversations()
    store.set_active_conversation_id(store.state.conversations[0].id)
    print("Conversations reset.")
    return 0


def _cmd_set_model(store: ConversationStore, model: str, prefs_path: Path | None) -> int:
    config = ActiveConfigurationAccessor(store).current()
    if config.conversation_id == ERROR_CONVERSATION.id:
        print("No active conversation; only the default model was changed.")
    else:
        config.set_chat_model_id(model)
        print(f"Conversation {config.conversation_id} now uses {model}.")
    # new default conversations pick it up too
    save_default_chat_model(model, prefs_path)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="chatstore",
        description="Inspect the persisted chat conversation history",
    )
    parser.add_argument(
        "--prefs",
        type=Path,
        default=None,
        help="Path to preferences.yaml (default: ~/.chatstore/preferences.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="List stored conversations (* marks the active one)")
    show = sub.add_parser("show", help="Print a conversation's messages")
    show.add_argument("conversation_id", nargs="?", help="Defaults to the active one")
    sub.add_parser("reset", help="Replace all conversations with a fresh default")
    set_model = sub.add_parser(
        "set-model", help="Switch the active conversation and the default to MODEL"
    )
    set_model.add_argument("model", help="Chat model id, e.g. gpt-3.5-turbo")

    args = parser.parse_args(argv)
    prefs = load_preferences(args.prefs)
    configure("DEBUG" if args.verbose else prefs.log_level)
    logger.debug("using storage directory %s", prefs.storage.directory)

    store = open_store(prefs)
    if args.command == "list":
        return _cmd_list(store)
    if args.command == "show":
        return _cmd_show(store, args.conversation_id)
    if args.command == "set-model":
        return _cmd_set_model(store, args.model, args.prefs)
    return _cmd_reset(store)


if __name__ == "__main__":
    sys.exit(main())
