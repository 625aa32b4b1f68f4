"""
Tests for the keyed-row stores and the services built on them.
"""

import asyncio
import gc

import pytest

from companion.core.errors import (
    InvalidSessionTransition,
    MemoryNotFound,
    SessionAlreadyActive,
    SessionNotActive,
    SessionNotFound,
    ValidationError,
)
from companion.models import MemoryCreate, MemoryUpdate, SessionStartRequest, SessionStatus
from companion.storage.base_store import is_safe_id


class TestSafeIds:
    def test_accepts_uuid_like(self):
        assert is_safe_id("2b1f0c8e-0d3a-4c5e-9f11-2a7c1d3e4b5f")

    @pytest.mark.parametrize("value", ["", None, "../etc", "a/b", "x" * 129])
    def test_rejects_unsafe(self, value):
        assert not is_safe_id(value)


class TestOwnerLocks:
    def test_lock_shared_while_held_and_released_after(self, context):
        store = context.session_store
        lock = store.owner_lock("owner-a")

        assert store.owner_lock("owner-a") is lock
        assert store.owner_lock("owner-b") is not lock

        del lock
        gc.collect()
        assert "owner-a" not in store._locks
        assert len(store._locks) == 0

    @pytest.mark.asyncio
    async def test_no_lock_left_behind_after_writes(self, context, owner):
        await context.session_store.create(owner.id, "Write docs", 25, 15)
        gc.collect()

        assert len(context.session_store._locks) == 0


class TestSessionStore:
    """Session lifecycle and the single-active invariant."""

    @pytest.mark.asyncio
    async def test_second_active_session_rejected(self, context, owner):
        first = await context.session_store.create(owner.id, "One", 25, 15)

        with pytest.raises(SessionAlreadyActive) as exc_info:
            await context.session_store.create(owner.id, "Two", 25, 15)

        assert exc_info.value.active_session_id == first.id
        _, total = await context.session_store.list_history(owner.id)
        assert total == 1

    @pytest.mark.asyncio
    async def test_concurrent_starts_create_one_session(self, context, owner):
        results = await asyncio.gather(
            *[context.session_store.create(owner.id, f"Task {i}", 25, 15) for i in range(5)],
            return_exceptions=True,
        )

        created = [r for r in results if not isinstance(r, Exception)]
        assert len(created) == 1
        assert all(isinstance(r, SessionAlreadyActive) for r in results if isinstance(r, Exception))

    @pytest.mark.asyncio
    async def test_complete_sets_outcome_and_duration(self, context, owner):
        session = await context.session_store.create(owner.id, "Write", 25, 15)

        done = await context.session_store.complete(session.id, owner.id, "Wrote two pages")

        assert done.status == SessionStatus.COMPLETED
        assert done.outcome == "Wrote two pages"
        assert done.ended_at is not None
        assert done.duration_actual == 0
        assert not await context.session_store.is_active(session.id, owner.id)

    @pytest.mark.asyncio
    async def test_terminal_session_cannot_end_again(self, context, owner):
        session = await context.session_store.create(owner.id, "Write", 25, 15)
        await context.session_store.abandon(session.id, owner.id)

        with pytest.raises(SessionNotActive):
            await context.session_store.complete(session.id, owner.id)

    @pytest.mark.asyncio
    async def test_resume(self, context, owner):
        session = await context.session_store.create(owner.id, "Write", 25, 15)
        await context.session_store.complete(session.id, owner.id)

        resumed = await context.session_store.resume(session.id, owner.id)

        assert resumed.status == SessionStatus.ACTIVE
        assert resumed.ended_at is None
        with pytest.raises(InvalidSessionTransition):
            await context.session_store.resume(session.id, owner.id)

    @pytest.mark.asyncio
    async def test_resume_blocked_by_other_active(self, context, owner):
        old = await context.session_store.create(owner.id, "Old", 25, 15)
        await context.session_store.complete(old.id, owner.id)
        current = await context.session_store.create(owner.id, "New", 25, 15)

        with pytest.raises(SessionAlreadyActive) as exc_info:
            await context.session_store.resume(old.id, owner.id)
        assert exc_info.value.active_session_id == current.id

    @pytest.mark.asyncio
    async def test_foreign_session_invisible(self, context, owner, other_owner):
        session = await context.session_store.create(owner.id, "Mine", 25, 15)

        assert await context.session_store.find(session.id, other_owner.id) is None
        assert not await context.session_store.is_active(session.id, other_owner.id)
        with pytest.raises(SessionNotFound):
            await context.session_store.complete(session.id, other_owner.id)

    @pytest.mark.asyncio
    async def test_history_newest_first_with_paging(self, context, owner):
        ids = []
        for i in range(3):
            session = await context.session_store.create(owner.id, f"Task {i}", 25, 15)
            await context.session_store.complete(session.id, owner.id)
            ids.append(session.id)

        page, total = await context.session_store.list_history(owner.id, limit=2, offset=0)

        assert total == 3
        assert [s.id for s in page] == [ids[2], ids[1]]


class TestChatHistory:
    """Append-only turn log."""

    @pytest.mark.asyncio
    async def test_turns_in_creation_order(self, context, owner):
        session = await context.session_store.create(owner.id, "Write", 25, 15)
        await context.chat_history.append_turn(owner.id, session.id, "assistant", "Hi")
        await context.chat_history.append_turn(owner.id, session.id, "user", "Hello")

        turns = await context.chat_history.list_turns(owner.id, session.id)

        assert [(t.role, t.content) for t in turns] == [("assistant", "Hi"), ("user", "Hello")]

    @pytest.mark.asyncio
    async def test_scoped_by_owner(self, context, owner, other_owner):
        session = await context.session_store.create(owner.id, "Write", 25, 15)

        with pytest.raises(SessionNotFound):
            await context.chat_history.append_turn(other_owner.id, session.id, "user", "sneaky")
        with pytest.raises(SessionNotFound):
            await context.chat_history.list_turns(other_owner.id, session.id)


class TestMemoryStore:
    """Memory rows."""

    @pytest.mark.asyncio
    async def test_crud(self, context, owner):
        memory = await context.memory_store.create(owner.id, MemoryCreate(category="goal", content="Ship v2", importance=3))

        updated = await context.memory_store.update(owner.id, memory.id, MemoryUpdate(importance=5))
        assert updated.importance == 5
        assert updated.content == "Ship v2"

        assert await context.memory_store.delete(owner.id, memory.id)
        assert await context.memory_store.get(owner.id, memory.id) is None
        with pytest.raises(MemoryNotFound):
            await context.memory_store.update(owner.id, memory.id, MemoryUpdate(importance=1))

    @pytest.mark.asyncio
    async def test_touch_only_named_rows(self, context, owner):
        a = await context.memory_store.create(owner.id, MemoryCreate(category="win", content="A"))
        b = await context.memory_store.create(owner.id, MemoryCreate(category="win", content="B"))

        assert await context.memory_store.touch(owner.id, [a.id, "missing"]) == 1

        assert (await context.memory_store.get(owner.id, a.id)).last_referenced > a.last_referenced
        assert (await context.memory_store.get(owner.id, b.id)).last_referenced == b.last_referenced

    @pytest.mark.asyncio
    async def test_search_and_stats(self, context, owner, other_owner):
        await context.memory_store.create(owner.id, MemoryCreate(category="project", content="Rust parser"))
        await context.memory_store.create(owner.id, MemoryCreate(category="interest", content="Bouldering"))
        await context.memory_store.create(other_owner.id, MemoryCreate(category="project", content="Parser too"))

        found = await context.memory_store.search(owner.id, "PARSER")
        stats = await context.memory_store.stats(owner.id)

        assert [m.content for m in found] == ["Rust parser"]
        assert stats.total == 2
        assert stats.by_category["project"] == 1
        assert stats.by_category["interest"] == 1
        assert stats.recently_added == 2


class TestSessionService:
    """Session start with greeting."""

    @pytest.mark.asyncio
    async def test_start_persists_greeting(self, context, owner, fake_provider):
        response = await context.sessions.start(owner.id, SessionStartRequest(declared_task="Write docs"))

        assert response.greeting == fake_provider.greeting
        assert response.session.duration_planned == 25
        turns = await context.chat_history.list_turns(owner.id, response.session.id)
        assert [(t.role, t.content) for t in turns] == [("assistant", fake_provider.greeting)]

    @pytest.mark.asyncio
    async def test_greeting_references_last_session(self, context, owner, fake_provider):
        first = await context.sessions.start(owner.id, SessionStartRequest(declared_task="Fix the build"))
        await context.sessions.end(owner.id, first.session.id, "Green again")

        await context.sessions.start(owner.id, SessionStartRequest(declared_task="Write docs"))

        request = fake_provider.complete_calls[-1][-1].content
        assert "Fix the build" in request

    @pytest.mark.asyncio
    async def test_greeting_failure_does_not_fail_start(self, context, owner, fake_provider):
        fake_provider.fail_after = 0

        response = await context.sessions.start(owner.id, SessionStartRequest(declared_task="Write docs"))

        assert response.greeting is None
        assert response.session.is_active
        assert await context.chat_history.list_turns(owner.id, response.session.id) == []

    @pytest.mark.asyncio
    async def test_task_too_long(self, context, owner):
        with pytest.raises(ValidationError) as exc_info:
            await context.sessions.start(owner.id, SessionStartRequest(declared_task="x" * 501))
        assert exc_info.value.code == "task_too_long"
        assert await context.session_store.get_active(owner.id) is None

    @pytest.mark.asyncio
    async def test_purge_cascades(self, context, owner):
        response = await context.sessions.start(owner.id, SessionStartRequest(declared_task="Write"))

        assert await context.sessions.purge(owner.id, response.session.id)

        with pytest.raises(SessionNotFound):
            await context.sessions.messages(owner.id, response.session.id)


class TestMemoryService:
    """Validation on memory writes."""

    @pytest.mark.asyncio
    async def test_invalid_category(self, context, owner):
        with pytest.raises(ValidationError) as exc_info:
            await context.memories.create(owner.id, MemoryCreate(category="gossip", content="x"))
        assert exc_info.value.code == "invalid_category"

    @pytest.mark.parametrize("importance", [0, 6])
    @pytest.mark.asyncio
    async def test_importance_out_of_range(self, context, owner, importance):
        with pytest.raises(ValidationError) as exc_info:
            await context.memories.create(owner.id, MemoryCreate(category="goal", content="x", importance=importance))
        assert exc_info.value.code == "invalid_importance"

    @pytest.mark.asyncio
    async def test_content_too_long(self, context, owner):
        with pytest.raises(ValidationError) as exc_info:
            await context.memories.create(owner.id, MemoryCreate(category="goal", content="x" * 5001))
        assert exc_info.value.code == "memory_content_too_long"

    @pytest.mark.asyncio
    async def test_bulk_is_all_or_nothing(self, context, owner):
        with pytest.raises(ValidationError):
            await context.memories.create_many(owner.id, [
                MemoryCreate(category="goal", content="fine"),
                MemoryCreate(category="nope", content="bad"),
            ])
        assert await context.memory_store.list_owner_memories(owner.id) == []

    @pytest.mark.asyncio
    async def test_delete_missing(self, context, owner):
        with pytest.raises(MemoryNotFound):
            await context.memories.delete(owner.id, "missing")
