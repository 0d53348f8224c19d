"""Unit tests for editor/services/conversation_store.py — ConversationStore."""

import pytest

from shared.repositories import ChatMessageRepository
from editor.models.conversation import ChatMessage
from editor.services.conversation_store import ConversationStore


def seed_messages(db_manager, syllabus_id, count, username="alice"):
    with db_manager.session_scope() as session:
        repo = ChatMessageRepository(session)
        for i in range(count):
            repo.create(syllabus_id, username, "user" if i % 2 == 0 else "assistant", f"message {i}")


class TestLoad:
    @pytest.mark.asyncio
    async def test_hydrates_most_recent_messages_oldest_first(self, db_manager, syllabus_id):
        seed_messages(db_manager, syllabus_id, 12)
        store = ConversationStore(db_manager, history_limit=10)

        state = await store.load("alice", syllabus_id)

        assert [m.content for m in state.history] == [f"message {i}" for i in range(2, 12)]

    @pytest.mark.asyncio
    async def test_state_retained_across_loads(self, db_manager, syllabus_id):
        store = ConversationStore(db_manager)

        first = await store.load("alice", syllabus_id)
        first.append_message(ChatMessage(role="user", content="in memory only"))
        second = await store.load("alice", syllabus_id)

        assert second is first

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, db_manager, syllabus_id):
        seed_messages(db_manager, syllabus_id, 2, username="bob")
        store = ConversationStore(db_manager)

        alice = await store.load("alice", syllabus_id)
        bob = await store.load("bob", syllabus_id)

        assert alice.history == []
        assert len(bob.history) == 2

    @pytest.mark.asyncio
    async def test_forget_rehydrates(self, db_manager, syllabus_id):
        store = ConversationStore(db_manager)
        first = await store.load("alice", syllabus_id)

        store.forget("alice", syllabus_id)

        assert await store.load("alice", syllabus_id) is not first


class TestOwnership:
    @pytest.mark.asyncio
    async def test_claim_returns_displaced_owner(self, db_manager, syllabus_id):
        store = ConversationStore(db_manager)
        state = await store.load("alice", syllabus_id)
        old, new = object(), object()

        assert store.claim(state, old) is None
        assert store.claim(state, old) is None
        assert store.claim(state, new) is old
        assert store.owner_of("alice", syllabus_id) is new

    @pytest.mark.asyncio
    async def test_release_only_by_current_owner(self, db_manager, syllabus_id):
        store = ConversationStore(db_manager)
        state = await store.load("alice", syllabus_id)
        old, new = object(), object()
        store.claim(state, old)
        store.claim(state, new)

        store.release(state, old)
        assert store.owner_of("alice", syllabus_id) is new

        store.release(state, new)
        assert store.owner_of("alice", syllabus_id) is None

    @pytest.mark.asyncio
    async def test_release_by_owner_evicts_and_next_load_rehydrates(self, db_manager, syllabus_id):
        store = ConversationStore(db_manager)
        state = await store.load("alice", syllabus_id)
        owner = object()
        store.claim(state, owner)
        await store.append(state, ChatMessage(role="user", content="Hi"))

        store.release(state, owner)

        reloaded = await store.load("alice", syllabus_id)
        assert reloaded is not state
        assert [m.content for m in reloaded.history] == ["Hi"]

    @pytest.mark.asyncio
    async def test_release_by_displaced_owner_keeps_state(self, db_manager, syllabus_id):
        store = ConversationStore(db_manager)
        state = await store.load("alice", syllabus_id)
        old, new = object(), object()
        store.claim(state, old)
        store.claim(state, new)

        store.release(state, old)

        assert await store.load("alice", syllabus_id) is state


class TestPersistence:
    @pytest.mark.asyncio
    async def test_append_persists(self, db_manager, db_session, syllabus_id):
        store = ConversationStore(db_manager)
        state = await store.load("alice", syllabus_id)

        await store.append(state, ChatMessage(role="user", content="Hi"))
        await store.append(state, ChatMessage(role="assistant", content="Hello"))

        records = ChatMessageRepository(db_session).list_messages(syllabus_id, "alice")
        assert [(r.role, r.content) for r in records] == [("user", "Hi"), ("assistant", "Hello")]
        assert [m.content for m in state.history] == ["Hi", "Hello"]

    @pytest.mark.asyncio
    async def test_append_keeps_memory_within_history_limit(self, db_manager, db_session, syllabus_id):
        store = ConversationStore(db_manager, history_limit=3)
        state = await store.load("alice", syllabus_id)

        for i in range(5):
            await store.append(state, ChatMessage(role="user", content=f"message {i}"))

        assert [m.content for m in state.history] == ["message 2", "message 3", "message 4"]
        records = ChatMessageRepository(db_session).list_messages(syllabus_id, "alice")
        assert len(records) == 5

    @pytest.mark.asyncio
    async def test_clear_empties_memory_and_database(self, db_manager, db_session, syllabus_id):
        seed_messages(db_manager, syllabus_id, 3)
        store = ConversationStore(db_manager)
        state = await store.load("alice", syllabus_id)

        deleted = await store.clear(state)

        assert deleted == 3
        assert state.history == []
        assert ChatMessageRepository(db_session).list_messages(syllabus_id, "alice") == []
        assert (await store.load("alice", syllabus_id)) is state
