"""Tests for ConversationStore mutations and its subscribe/select API."""

from __future__ import annotations

import operator

import pytest

from chatstore.constants import MAX_CONVERSATIONS
from chatstore.models import ChatState, default_state
from chatstore.store import ConversationStore
from chatstore.views import ERROR_CONVERSATION, active_conversation


def _default(store: ConversationStore):
    return store.state.conversations[0]


def _token_sum(conversation) -> int:
    return sum(m.cache_tokens_count or 0 for m in conversation.messages)


# ═══════════════════════════════════════════════════════════════════════
# Initial state
# ═══════════════════════════════════════════════════════════════════════


class TestInitialState:
    def test_default_conversation(self, store):
        assert len(store.state.conversations) == 1
        conversation = _default(store)
        assert conversation.id == "default"
        assert conversation.name == "Conversation"
        assert conversation.messages == ()
        assert conversation.cache_tokens_count == 0

    def test_default_is_active(self, store):
        assert store.state.active_conversation_id == "default"

    def test_get_state_matches_property(self, store):
        assert store.get_state() is store.state

    def test_default_factory_used_without_initial_state(self):
        s = ConversationStore(default_factory=lambda: default_state("Coder", "gpt-3.5"))
        assert _default(s).system_purpose_id == "Coder"
        assert _default(s).chat_model_id == "gpt-3.5"


# ═══════════════════════════════════════════════════════════════════════
# Conversation list
# ═══════════════════════════════════════════════════════════════════════


class TestAddConversation:
    def test_prepends(self, store, make_conversation):
        store.add_conversation(make_conversation("c1"))
        ids = [c.id for c in store.state.conversations]
        assert ids == ["c1", "default"]

    def test_capacity_scenario(self, store, make_conversation):
        store.delete_conversation("default")
        for i in range(1, 26):
            store.add_conversation(make_conversation(f"c{i}"))
        ids = [c.id for c in store.state.conversations]
        assert len(ids) == 20
        assert ids == [f"c{i}" for i in range(25, 5, -1)]

    def test_never_exceeds_capacity(self, store, make_conversation):
        for i in range(MAX_CONVERSATIONS * 2):
            store.add_conversation(make_conversation(f"c{i}"))
            assert len(store.state.conversations) <= MAX_CONVERSATIONS
            assert store.state.conversations[0].id == f"c{i}"

    def test_custom_capacity(self, make_conversation):
        s = ConversationStore(default_state(), max_conversations=3)
        for i in range(5):
            s.add_conversation(make_conversation(f"c{i}"))
        assert [c.id for c in s.state.conversations] == ["c4", "c3", "c2"]

    def test_keeps_existing_identity(self, store, make_conversation):
        before = _default(store)
        store.add_conversation(make_conversation("c1"))
        assert store.state.conversations[1] is before

    def test_does_not_change_active_id(self, store, make_conversation):
        store.add_conversation(make_conversation("c1"))
        assert store.state.active_conversation_id == "default"


class TestDeleteConversation:
    def test_removes_match(self, store, make_conversation):
        store.add_conversation(make_conversation("c1"))
        store.delete_conversation("c1")
        assert [c.id for c in store.state.conversations] == ["default"]

    def test_missing_id_is_noop_with_new_snapshot(self, store):
        before = store.state
        store.delete_conversation("nope")
        assert store.state is not before
        assert store.state == before

    def test_deleted_active_resolves_to_sentinel(self, store):
        store.delete_conversation("default")
        assert store.state.active_conversation_id == "default"
        assert active_conversation(store.state) is ERROR_CONVERSATION


class TestResetConversations:
    def test_single_empty_conversation(self, store, make_conversation, make_message):
        store.add_conversation(make_conversation("c1"))
        store.add_message("c1", make_message("m1", cache_tokens_count=4))
        store.reset_conversations()
        conversations = store.state.conversations
        assert len(conversations) == 1
        assert conversations[0].messages == ()
        assert conversations[0].cache_tokens_count == 0

    def test_reset_builds_fresh_default(self, store):
        before = _default(store)
        store.reset_conversations()
        assert _default(store) is not before
        assert _default(store).id == "default"

    def test_reset_leaves_active_id(self, store):
        store.set_active_conversation_id("c9")
        store.reset_conversations()
        assert store.state.active_conversation_id == "c9"


class TestSetActiveConversationId:
    def test_sets_unvalidated(self, store):
        store.set_active_conversation_id("does-not-exist")
        assert store.state.active_conversation_id == "does-not-exist"

    def test_keeps_conversation_tuple(self, store):
        before = store.state.conversations
        store.set_active_conversation_id("x")
        assert store.state.conversations is before


# ═══════════════════════════════════════════════════════════════════════
# Conversation settings
# ═══════════════════════════════════════════════════════════════════════


class TestConversationSettings:
    def test_set_system_purpose_id(self, store, make_conversation):
        store.add_conversation(make_conversation("c1"))
        untouched = store.state.conversations[1]
        store.set_system_purpose_id("c1", "Scientist")
        assert store.state.conversations[0].system_purpose_id == "Scientist"
        assert store.state.conversations[1] is untouched

    def test_set_chat_model_id(self, store):
        store.set_chat_model_id("default", "gpt-3.5-turbo")
        assert _default(store).chat_model_id == "gpt-3.5-turbo"

    def test_accepts_unknown_ids(self, store):
        store.set_chat_model_id("default", "model-from-the-future")
        assert _default(store).chat_model_id == "model-from-the-future"

    def test_bumps_updated(self, store, monkeypatch):
        monkeypatch.setattr("chatstore.store.now_ms", lambda: 42)
        store.set_system_purpose_id("default", "Catalyst")
        assert _default(store).updated == 42

    def test_chat_model_does_not_touch_tokens(self, store, make_message):
        store.add_message("default", make_message("m1", cache_tokens_count=7))
        store.set_chat_model_id("default", "gpt-3.5-turbo")
        assert _default(store).cache_tokens_count == 7

    def test_missing_conversation_is_noop(self, store):
        before = _default(store)
        store.set_system_purpose_id("nope", "Developer")
        assert _default(store) is before


# ═══════════════════════════════════════════════════════════════════════
# Messages
# ═══════════════════════════════════════════════════════════════════════


class TestMessages:
    def test_token_scenario(self, store, make_message):
        store.add_message("default", make_message("m1", "hi", "user", 3))
        c = _default(store)
        assert [m.id for m in c.messages] == ["m1"]
        assert c.cache_tokens_count == 3

        store.add_message("default", make_message("m2", "hello", "assistant", 5))
        assert _default(store).cache_tokens_count == 8

        store.remove_message("default", "m1")
        c = _default(store)
        assert [m.id for m in c.messages] == ["m2"]
        assert c.cache_tokens_count == 5

    def test_add_without_tokens(self, store, make_message):
        store.add_message("default", make_message("m1"))
        assert _default(store).cache_tokens_count == 0

    def test_add_keeps_order(self, store, make_message):
        for i in range(4):
            store.add_message("default", make_message(f"m{i}"))
        assert [m.id for m in _default(store).messages] == ["m0", "m1", "m2", "m3"]

    def test_add_keeps_message_identity(self, store, make_message):
        first = make_message("m1")
        store.add_message("default", first)
        store.add_message("default", make_message("m2"))
        assert _default(store).messages[0] is first

    def test_previous_snapshot_untouched(self, store, make_message):
        before = store.state
        store.add_message("default", make_message("m1", cache_tokens_count=2))
        assert before.conversations[0].messages == ()
        assert before.conversations[0].cache_tokens_count == 0

    def test_add_to_missing_conversation(self, store, make_message):
        before = _default(store)
        store.add_message("nope", make_message("m1"))
        assert _default(store) is before

    def test_replace_messages(self, store, make_message):
        store.add_message("default", make_message("m1", cache_tokens_count=10))
        store.replace_messages(
            "default",
            [make_message("a", cache_tokens_count=1), make_message("b", cache_tokens_count=2)],
        )
        c = _default(store)
        assert [m.id for m in c.messages] == ["a", "b"]
        assert isinstance(c.messages, tuple)
        assert c.cache_tokens_count == 3

    def test_replace_with_empty(self, store, make_message):
        store.add_message("default", make_message("m1", cache_tokens_count=10))
        store.replace_messages("default", [])
        assert _default(store).cache_tokens_count == 0

    def test_remove_missing_message(self, store, make_message):
        store.add_message("default", make_message("m1", cache_tokens_count=3))
        store.remove_message("default", "nope")
        assert [m.id for m in _default(store).messages] == ["m1"]
        assert _default(store).cache_tokens_count == 3

    def test_aggregate_after_mixed_sequence(self, store, make_message):
        store.add_message("default", make_message("m1", cache_tokens_count=3))
        store.add_message("default", make_message("m2"))
        store.edit_message("default", "m2", {"cache_tokens_count": 11})
        store.add_message("default", make_message("m3", cache_tokens_count=1))
        store.remove_message("default", "m1")
        store.edit_message("default", "m3", {"cacheTokensCount": None})
        c = _default(store)
        assert c.cache_tokens_count == _token_sum(c) == 11


class TestEditMessage:
    def test_merges_fields(self, store, make_message):
        store.add_message("default", make_message("m1", "draft", typing=True))
        store.edit_message("default", "m1", {"text": "final", "typing": False})
        m = _default(store).messages[0]
        assert m.text == "final"
        assert m.typing is False
        assert m.role == "user"

    def test_restamps_updated(self, store, make_message, monkeypatch):
        store.add_message("default", make_message("m1"))
        monkeypatch.setattr("chatstore.store.now_ms", lambda: 99)
        store.edit_message("default", "m1", {"text": "x", "updated": 1})
        assert _default(store).messages[0].updated == 99
        assert _default(store).updated == 99

    def test_recomputes_aggregate(self, store, make_message):
        store.add_message("default", make_message("m1", cache_tokens_count=3))
        store.add_message("default", make_message("m2", cache_tokens_count=5))
        store.edit_message("default", "m1", {"cache_tokens_count": 10})
        assert _default(store).cache_tokens_count == 15

    def test_camel_case_keys(self, store, make_message):
        store.add_message("default", make_message("m1", role="assistant"))
        store.edit_message("default", "m1", {"modelId": "gpt-4", "cacheTokensCount": 2})
        m = _default(store).messages[0]
        assert m.model_id == "gpt-4"
        assert m.cache_tokens_count == 2

    def test_unknown_fields_dropped(self, store, make_message):
        store.add_message("default", make_message("m1", "a"))
        store.edit_message("default", "m1", {"text": "b", "reactions": ["+1"]})
        m = _default(store).messages[0]
        assert m.text == "b"
        assert not hasattr(m, "reactions")

    def test_other_messages_keep_identity(self, store, make_message):
        other = make_message("m2")
        store.add_message("default", make_message("m1"))
        store.add_message("default", other)
        store.edit_message("default", "m1", {"text": "changed"})
        assert _default(store).messages[1] is other

    def test_idempotent(self, store, make_message):
        store.add_message("default", make_message("m1", "a", cache_tokens_count=1))
        payload = {"text": "b", "cache_tokens_count": 4}
        store.edit_message("default", "m1", payload)
        once = store.state
        store.edit_message("default", "m1", payload)
        twice = store.state

        def strip(state: ChatState):
            return [
                (c.id, c.cache_tokens_count, [(m.id, m.text, m.cache_tokens_count) for m in c.messages])
                for c in state.conversations
            ]

        assert strip(once) == strip(twice)

    def test_non_integer_token_count_merged_without_raising(self, store, make_message):
        store.add_message("default", make_message("m1", cache_tokens_count=3))
        store.add_message("default", make_message("m2", cache_tokens_count=4))
        store.edit_message("default", "m1", {"cacheTokensCount": "5"})
        c = _default(store)
        assert c.messages[0].cache_tokens_count == "5"
        assert c.cache_tokens_count == 4

    @pytest.mark.parametrize("bad", ["7", 2.5, True, [1]], ids=["str", "float", "bool", "list"])
    def test_non_integer_token_count_in_added_messages(self, store, make_message, bad):
        store.add_message("default", make_message("m1", cache_tokens_count=bad))
        store.replace_messages(
            "default", [make_message("m2", cache_tokens_count=bad), make_message("m3", cache_tokens_count=6)]
        )
        assert _default(store).cache_tokens_count == 6

    def test_missing_message_is_noop(self, store, make_message):
        store.add_message("default", make_message("m1", "a", cache_tokens_count=2))
        store.edit_message("default", "nope", {"text": "b"})
        c = _default(store)
        assert c.messages[0].text == "a"
        assert c.cache_tokens_count == 2


# ═══════════════════════════════════════════════════════════════════════
# Subscriptions
# ═══════════════════════════════════════════════════════════════════════


class TestSubscribe:
    def test_listener_receives_new_and_previous(self, store):
        calls = []
        store.subscribe(lambda state, previous: calls.append((state, previous)))
        before = store.state
        store.set_active_conversation_id("x")
        assert len(calls) == 1
        assert calls[0][0] is store.state
        assert calls[0][1] is before

    def test_unsubscribe(self, store):
        calls = []
        unsubscribe = store.subscribe(lambda *_: calls.append(1))
        unsubscribe()
        unsubscribe()
        store.set_active_conversation_id("x")
        assert calls == []

    def test_failing_listener_does_not_block_others(self, store):
        calls = []

        def broken(*_):
            raise RuntimeError("boom")

        store.subscribe(broken)
        store.subscribe(lambda *_: calls.append(1))
        store.set_active_conversation_id("x")
        assert calls == [1]
        assert store.state.active_conversation_id == "x"

    def test_listener_may_mutate(self, store):
        def follow(state, _previous):
            if state.active_conversation_id == "redirect":
                store.set_active_conversation_id("default")

        store.subscribe(follow)
        store.set_active_conversation_id("redirect")
        assert store.state.active_conversation_id == "default"


class TestSelect:
    def test_fires_only_when_slice_changes(self, store, make_conversation):
        seen = []
        store.select(lambda s: s.active_conversation_id, seen.append, operator.eq)
        store.add_conversation(make_conversation("c1"))
        store.set_active_conversation_id("default")
        store.set_active_conversation_id("c1")
        assert seen == ["c1"]

    def test_identity_default(self, store, make_conversation):
        seen = []
        store.select(lambda s: s.conversations, seen.append)
        store.set_active_conversation_id("elsewhere")
        assert seen == []
        store.add_conversation(make_conversation("c1"))
        assert len(seen) == 1
        assert seen[0] is store.state.conversations

    def test_unsubscribe(self, store):
        seen = []
        unsubscribe = store.select(lambda s: s.active_conversation_id, seen.append)
        unsubscribe()
        store.set_active_conversation_id("x")
        assert seen == []


@pytest.mark.parametrize(
    "mutate",
    [
        lambda s: s.add_message("default", s.state.conversations[0].messages[0]),
        lambda s: s.remove_message("default", "m1"),
        lambda s: s.edit_message("default", "m2", {"cache_tokens_count": 20}),
        lambda s: s.replace_messages("default", s.state.conversations[0].messages[::-1]),
    ],
    ids=["add", "remove", "edit", "replace"],
)
def test_aggregate_matches_sum(store, make_message, mutate):
    store.add_message("default", make_message("m1", cache_tokens_count=3))
    store.add_message("default", make_message("m2", cache_tokens_count=None))
    mutate(store)
    c = store.state.conversations[0]
    assert c.cache_tokens_count == _token_sum(c)
