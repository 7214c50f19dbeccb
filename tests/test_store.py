"""Tests for SessionStore: CRUD, TTL eviction and the session cap."""

import asyncio
from datetime import timedelta

import pytest

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from origination.models.conversation import ConversationState, utcnow
from origination.store import SessionStore, new_session_id


class TestSessionCrud:
    def test_create_and_get(self):
        store = SessionStore(ttl_seconds=3600, max_sessions=10)
        session = store.create()
        assert store.get(session.id) is session
        assert session.state == ConversationState.INITIAL
        assert session.id in store
        assert len(store) == 1

    def test_create_with_explicit_id(self):
        store = SessionStore(ttl_seconds=3600, max_sessions=10)
        session = store.create("abc")
        assert session.id == "abc"
        with pytest.raises(ValueError):
            store.create("abc")

    def test_delete(self):
        store = SessionStore(ttl_seconds=3600, max_sessions=10)
        session = store.create()
        assert store.delete(session.id) is True
        assert store.get(session.id) is None
        assert store.delete(session.id) is False

    def test_put_refreshes_activity(self):
        store = SessionStore(ttl_seconds=3600, max_sessions=10)
        session = store.create()
        session.last_active = utcnow() - timedelta(minutes=30)
        store.put(session)
        assert utcnow() - session.last_active < timedelta(seconds=5)

    def test_put_after_delete_is_dropped(self):
        store = SessionStore(ttl_seconds=3600, max_sessions=10)
        session = store.create("gone")
        store.delete("gone")
        assert store.put(session) is False
        assert "gone" not in store

    def test_delete_listeners(self):
        store = SessionStore(ttl_seconds=60, max_sessions=1)
        deleted = []
        store.on_delete(deleted.append)
        store.create("a")
        store.create("b")
        store.get("b").last_active = utcnow() - timedelta(minutes=5)
        store.get("b")
        store.delete("missing")
        assert deleted == ["a", "b"]

    def test_session_ids_are_unique(self):
        ids = {new_session_id() for _ in range(200)}
        assert len(ids) == 200


class TestEviction:
    def test_expired_session_is_gone_on_access(self):
        store = SessionStore(ttl_seconds=60, max_sessions=10)
        session = store.create()
        session.last_active = utcnow() - timedelta(seconds=61)
        assert store.get(session.id) is None
        assert session.id not in store

    def test_evict_expired(self):
        store = SessionStore(ttl_seconds=60, max_sessions=10)
        stale = store.create("stale")
        store.create("live")
        stale.last_active = utcnow() - timedelta(minutes=5)
        assert store.evict_expired() == ["stale"]
        assert store.ids() == ["live"]

    def test_zero_ttl_never_expires(self):
        store = SessionStore(ttl_seconds=0, max_sessions=10)
        session = store.create()
        session.last_active = utcnow() - timedelta(days=30)
        assert store.get(session.id) is session

    def test_cap_evicts_least_recently_active(self):
        store = SessionStore(ttl_seconds=3600, max_sessions=2)
        oldest = store.create("a")
        store.create("b")
        oldest.last_active = utcnow() - timedelta(minutes=10)
        store.create("c")
        assert set(store.ids()) == {"b", "c"}


class TestLocks:
    @pytest.mark.asyncio
    async def test_lock_is_exclusive_per_session(self):
        store = SessionStore(ttl_seconds=3600, max_sessions=10)
        store.create("x")
        order = []

        async def worker(name):
            async with store.locked("x"):
                order.append(f"{name}-in")
                await asyncio.sleep(0)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert order == ["a-in", "a-out", "b-in", "b-out"]

    @pytest.mark.asyncio
    async def test_lock_on_unknown_session_is_released(self):
        store = SessionStore(ttl_seconds=3600, max_sessions=10)
        async with store.locked("nobody"):
            assert store.lock_count == 1
        assert store.lock_count == 0

    @pytest.mark.asyncio
    async def test_deleting_under_lock_drops_it_afterwards(self):
        store = SessionStore(ttl_seconds=3600, max_sessions=10)
        store.create("x")
        async with store.locked("x"):
            store.delete("x")
            assert store.lock_count == 1
        assert store.lock_count == 0

    @pytest.mark.asyncio
    async def test_evicted_sessions_leave_no_locks(self):
        store = SessionStore(ttl_seconds=3600, max_sessions=2)
        for i in range(20):
            store.create(f"s{i}")
            async with store.locked(f"s{i}"):
                pass
        assert len(store) == 2
        assert store.lock_count == 2
