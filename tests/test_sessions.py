"""Tests for the per-session controller registry."""

import pytest

from src.orchestrator.controller import OrchestrationController
from src.orchestrator.schemas import JobStatus, RunState
from src.orchestrator.sessions import SessionNotFoundError, SessionRegistry


@pytest.fixture
def sessions(retriever, framework_registry, backend_factory, clock, composer):
    def make_controller(session_id: str) -> OrchestrationController:
        return OrchestrationController(
            retriever,
            framework_registry.list_all(),
            backend_factory,
            cooldown_seconds=60,
            clock=clock,
            composer=composer,
            label=session_id[:8],
        )

    return SessionRegistry(make_controller, ttl_seconds=600, clock=clock)


class TestSessionRegistry:

    def test_create_and_get(self, sessions):
        session_id = sessions.create()
        assert sessions.count() == 1
        assert isinstance(sessions.get(session_id), OrchestrationController)

    def test_sessions_have_independent_controllers(self, sessions):
        first, second = sessions.create(), sessions.create()
        assert sessions.get(first) is not sessions.get(second)

    def test_unknown_session(self, sessions):
        with pytest.raises(SessionNotFoundError) as exc_info:
            sessions.get("nope")
        assert str(exc_info.value) == "Session not found: nope"

    def test_delete(self, sessions):
        session_id = sessions.create()
        sessions.delete(session_id)
        with pytest.raises(SessionNotFoundError):
            sessions.get(session_id)
        with pytest.raises(SessionNotFoundError):
            sessions.delete(session_id)

    def test_idle_sessions_expire(self, sessions, clock):
        stale = sessions.create()
        clock.advance(500)
        fresh = sessions.create()
        clock.advance(200)

        assert sessions.prune_expired() == 1
        with pytest.raises(SessionNotFoundError):
            sessions.get(stale)
        sessions.get(fresh)

    def test_expired_session_is_gone_on_lookup(self, sessions, clock):
        session_id = sessions.create()
        clock.advance(601)

        with pytest.raises(SessionNotFoundError):
            sessions.get(session_id)
        assert sessions.count() == 0

    def test_lookup_at_the_ttl_still_succeeds(self, sessions, clock):
        session_id = sessions.create()
        clock.advance(600)
        assert isinstance(sessions.get(session_id), OrchestrationController)

    def test_access_keeps_a_session_alive(self, sessions, clock):
        session_id = sessions.create()
        clock.advance(500)
        sessions.get(session_id)
        clock.advance(500)
        assert sessions.prune_expired() == 0

    async def test_status_reflects_the_run(self, sessions):
        session_id = sessions.create()
        empty = sessions.status(session_id)
        assert empty.state == RunState.IDLE
        assert empty.interpretation is None
        assert empty.cooldown_remaining_seconds == 0

        await sessions.get(session_id).submit("What is a rule?")

        status = sessions.status(session_id)
        assert len(status.statuses) == 14
        assert set(status.statuses.values()) == {JobStatus.COMPLETE}
        assert status.summary is not None
        assert status.cooldown_remaining_seconds == 60
