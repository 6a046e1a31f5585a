"""Run orchestration: state machine, snapshot aggregation, rate limiting and sessions."""

from src.orchestrator.aggregator import merge, summarize_run
from src.orchestrator.controller import NothingToRetryError, OrchestrationController, RunInProgressError
from src.orchestrator.rate_limit import RateLimitWindow, RequestRateLimiter, SubmissionThrottled
from src.orchestrator.schemas import FrameworkState, Interpretation, JobStatus, RunState
from src.orchestrator.sessions import SessionNotFoundError, SessionRegistry

__all__ = [
    "FrameworkState",
    "Interpretation",
    "JobStatus",
    "NothingToRetryError",
    "OrchestrationController",
    "RateLimitWindow",
    "RequestRateLimiter",
    "RunInProgressError",
    "RunState",
    "SessionNotFoundError",
    "SessionRegistry",
    "SubmissionThrottled",
    "merge",
    "summarize_run",
]
