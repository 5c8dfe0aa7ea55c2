"""Unit tests for auth/sessions.py -- SessionStore.

Covers:
- get() hides and evicts expired sessions (lazy expiry)
- remove() is idempotent and repairs the principal index
- put_if_absent() keeps the existing live session, replaces an expired one
- sweep() evicts only expired entries and never changes lookup results
- concurrent put_if_absent() for one principal yields a single winner
"""

from __future__ import annotations

import threading
from datetime import timedelta

from auth.models import Principal, Session
from auth.sessions import SessionStore
from conftest import FakeClock

FOO = Principal(username="foo")
BAR = Principal(username="bar")


def _session(clock: FakeClock, token: str, principal: Principal = FOO, ttl: int = 60) -> Session:
    now = clock()
    return Session(token=token, principal=principal, issued_at=now, expires_at=now + timedelta(seconds=ttl))


class TestGet:
    def test_absent(self, store: SessionStore) -> None:
        assert store.get("missing") is None

    def test_live_session(self, store: SessionStore, clock: FakeClock) -> None:
        s = _session(clock, "t1")
        store.put(s)
        assert store.get("t1") is s

    def test_expired_session_is_hidden_and_evicted(self, store: SessionStore, clock: FakeClock) -> None:
        store.put(_session(clock, "t1", ttl=60))
        clock.advance(60)
        assert store.get("t1") is None
        assert len(store) == 0
        assert store.get_active_by_principal("foo") is None

    def test_get_active_by_principal(self, store: SessionStore, clock: FakeClock) -> None:
        s = _session(clock, "t1")
        store.put(s)
        assert store.get_active_by_principal("foo") is s
        assert store.get_active_by_principal("bar") is None


class TestRemove:
    def test_remove_live(self, store: SessionStore, clock: FakeClock) -> None:
        store.put(_session(clock, "t1"))
        assert store.remove("t1") is True
        assert store.get("t1") is None
        assert store.get_active_by_principal("foo") is None

    def test_remove_is_idempotent(self, store: SessionStore, clock: FakeClock) -> None:
        store.put(_session(clock, "t1"))
        store.remove("t1")
        assert store.remove("t1") is False
        assert store.remove("never-existed") is False

    def test_remove_old_token_keeps_newer_index(self, store: SessionStore, clock: FakeClock) -> None:
        store.put(_session(clock, "old"))
        newer = _session(clock, "new")
        store.put(newer)
        store.remove("old")
        assert store.get_active_by_principal("foo") is newer


class TestPutIfAbsent:
    def test_inserts_when_empty(self, store: SessionStore, clock: FakeClock) -> None:
        s = _session(clock, "t1")
        assert store.put_if_absent(s) is s
        assert store.get("t1") is s

    def test_existing_live_session_wins(self, store: SessionStore, clock: FakeClock) -> None:
        first = _session(clock, "t1")
        store.put_if_absent(first)
        second = _session(clock, "t2")
        assert store.put_if_absent(second) is first
        assert store.get("t2") is None

    def test_expired_session_is_replaced(self, store: SessionStore, clock: FakeClock) -> None:
        store.put_if_absent(_session(clock, "t1", ttl=10))
        clock.advance(11)
        fresh = _session(clock, "t2")
        assert store.put_if_absent(fresh) is fresh
        assert store.get("t1") is None

    def test_principals_are_independent(self, store: SessionStore, clock: FakeClock) -> None:
        a = store.put_if_absent(_session(clock, "t1", FOO))
        b = store.put_if_absent(_session(clock, "t2", BAR))
        assert a.token != b.token

    def test_concurrent_callers_share_one_winner(self, store: SessionStore, clock: FakeClock) -> None:
        results: list[Session] = []
        lock = threading.Lock()
        barrier = threading.Barrier(16)

        def worker(i: int) -> None:
            candidate = _session(clock, f"t{i}")
            barrier.wait()
            winner = store.put_if_absent(candidate)
            with lock:
                results.append(winner)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len({s.token for s in results}) == 1
        assert len(store) == 1


class TestSweep:
    def test_sweep_evicts_only_expired(self, store: SessionStore, clock: FakeClock) -> None:
        store.put(_session(clock, "short", FOO, ttl=10))
        store.put(_session(clock, "long", BAR, ttl=100))
        clock.advance(50)
        assert store.sweep() == 1
        assert store.get("long") is not None
        assert store.get_active_by_principal("foo") is None

    def test_sweep_on_empty_store(self, store: SessionStore) -> None:
        assert store.sweep() == 0


class TestSessionArithmetic:
    def test_expires_in_floors_and_clamps(self, clock: FakeClock) -> None:
        s = _session(clock, "t1", ttl=60)
        assert s.expires_in(clock()) == 60
        clock.advance(0.5)
        assert s.expires_in(clock()) == 59
        clock.advance(120)
        assert s.expires_in(clock()) == 0

    def test_expiry_boundary(self, clock: FakeClock) -> None:
        s = _session(clock, "t1", ttl=60)
        clock.advance(59.999)
        assert not s.is_expired(clock())
        clock.advance(0.001)
        assert s.is_expired(clock())

    def test_reads_under_a_second_apart_can_match(self, clock: FakeClock) -> None:
        s = _session(clock, "t1", ttl=60)
        clock.advance(0.5)
        first = s.expires_in(clock())
        clock.advance(0.1)
        assert s.expires_in(clock()) == first
        clock.advance(1)
        assert s.expires_in(clock()) < first
