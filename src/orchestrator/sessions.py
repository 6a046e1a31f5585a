"""Per-session controller registry.

Each client session owns one OrchestrationController, and therefore its
own snapshot and its own submission cooldown.
"""

import logging
import math
import time
import uuid
from typing import Callable, Optional

from src import config
from src.orchestrator.controller import OrchestrationController
from src.orchestrator.rate_limit import Clock
from src.orchestrator.schemas import SessionStatus

logger = logging.getLogger(__name__)

ControllerFactory = Callable[[str], OrchestrationController]


class SessionNotFoundError(KeyError):
    """No live session with that id."""

    def __str__(self) -> str:
        return f"Session not found: {self.args[0]}"


class SessionRegistry:
    """Creates, looks up and expires sessions."""

    def __init__(
        self,
        controller_factory: ControllerFactory,
        ttl_seconds: float = config.SESSION_TTL_SECONDS,
        clock: Clock = time.monotonic,
    ):
        self._controller_factory = controller_factory
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._controllers: dict[str, OrchestrationController] = {}
        self._last_seen: dict[str, float] = {}

    def create(self) -> str:
        """Create a new session and return its id."""
        self.prune_expired()
        session_id = uuid.uuid4().hex
        self._controllers[session_id] = self._controller_factory(session_id)
        self._last_seen[session_id] = self._clock()
        logger.info(f"Created session {session_id} ({len(self._controllers)} live)")
        return session_id

    def get(self, session_id: str) -> OrchestrationController:
        """Look up a session's controller and mark it as recently used.

        Raises:
            SessionNotFoundError: If the session does not exist or expired
        """
        self.prune_expired()
        controller = self._controllers.get(session_id)
        if controller is None:
            raise SessionNotFoundError(session_id)
        self._last_seen[session_id] = self._clock()
        return controller

    def delete(self, session_id: str) -> None:
        if session_id not in self._controllers:
            raise SessionNotFoundError(session_id)
        del self._controllers[session_id]
        self._last_seen.pop(session_id, None)
        logger.info(f"Deleted session {session_id}")

    def prune_expired(self) -> int:
        """Drop idle sessions older than the TTL. Busy sessions are kept."""
        now = self._clock()
        expired = [
            sid for sid, seen in self._last_seen.items()
            if now - seen > self._ttl_seconds and not self._controllers[sid].is_busy
        ]
        for sid in expired:
            del self._controllers[sid]
            del self._last_seen[sid]
        if expired:
            logger.info(f"Pruned {len(expired)} expired sessions")
        return len(expired)

    def count(self) -> int:
        return len(self._controllers)

    def status(self, session_id: str) -> SessionStatus:
        """Build the client-facing status for a session."""
        controller = self.get(session_id)
        return SessionStatus(
            session_id=session_id,
            state=controller.state,
            statuses=controller.statuses(),
            interpretation=controller.interpretation,
            error=controller.error,
            summary=controller.summary,
            cooldown_remaining_seconds=math.ceil(controller.rate_limit.remaining()),
        )
