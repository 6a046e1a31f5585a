"""Session API routes: full multi-framework runs.

Endpoints:
    POST   /v1/sessions                                   Create a session
    GET    /v1/sessions/{id}                              Run state, statuses and snapshot
    POST   /v1/sessions/{id}/questions                    Submit a question (starts a run)
    POST   /v1/sessions/{id}/frameworks/{fid}/retry       Re-run one framework
    POST   /v1/sessions/{id}/reset                        Clear the snapshot
    DELETE /v1/sessions/{id}                              Drop the session

Runs and retries execute in the background by default; clients poll
GET /v1/sessions/{id}. Pass ?wait=true to block until they settle.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from src.api.credentials import bearer_credential
from src.api.services import ServiceContainer, get_services
from src.frameworks.registry import UnknownFrameworkError
from src.orchestrator.controller import NothingToRetryError, OrchestrationController, RunInProgressError
from src.orchestrator.rate_limit import SubmissionThrottled
from src.orchestrator.schemas import SessionStatus, SubmitQuestionRequest
from src.orchestrator.sessions import SessionNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _controller(services: ServiceContainer, session_id: str) -> OrchestrationController:
    try:
        return services.sessions.get(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("", response_model=SessionStatus, status_code=201)
async def create_session(services: ServiceContainer = Depends(get_services)) -> SessionStatus:
    """Create a session with its own snapshot and submission cooldown."""
    session_id = services.sessions.create()
    return services.sessions.status(session_id)


@router.get("/{session_id}", response_model=SessionStatus)
async def get_session(
    session_id: str,
    services: ServiceContainer = Depends(get_services),
) -> SessionStatus:
    """Get the current run state and snapshot for a session."""
    _controller(services, session_id)
    return services.sessions.status(session_id)


@router.post("/{session_id}/questions", response_model=SessionStatus, status_code=202)
async def submit_question(
    session_id: str,
    request: SubmitQuestionRequest,
    wait: bool = Query(default=False, description="Block until the run has finished"),
    services: ServiceContainer = Depends(get_services),
    credential: Optional[str] = Depends(bearer_credential),
) -> SessionStatus:
    """Start a full run for a question.

    Returns 429 with Retry-After while the submission cooldown is active,
    and 409 if a run is already in progress.
    """
    controller = _controller(services, session_id)
    try:
        if wait:
            await controller.submit(request.question, credential)
        else:
            controller.submit_in_background(request.question, credential)
    except SubmissionThrottled as e:
        raise HTTPException(
            status_code=429,
            detail=str(e),
            headers={"Retry-After": str(e.wait_seconds)},
        )
    except RunInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return services.sessions.status(session_id)


@router.post("/{session_id}/frameworks/{framework_id}/retry", response_model=SessionStatus, status_code=202)
async def retry_framework(
    session_id: str,
    framework_id: str,
    wait: bool = Query(default=False, description="Block until the retry has settled"),
    services: ServiceContainer = Depends(get_services),
    credential: Optional[str] = Depends(bearer_credential),
) -> SessionStatus:
    """Re-run a single framework against the current run's citations."""
    controller = _controller(services, session_id)
    try:
        if wait:
            await controller.retry(framework_id, credential)
        else:
            controller.retry_in_background(framework_id, credential)
    except UnknownFrameworkError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except NothingToRetryError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return services.sessions.status(session_id)


@router.post("/{session_id}/reset", response_model=SessionStatus)
async def reset_session(
    session_id: str,
    services: ServiceContainer = Depends(get_services),
) -> SessionStatus:
    """Clear the session's snapshot. The submission cooldown is kept."""
    controller = _controller(services, session_id)
    try:
        controller.reset()
    except RunInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return services.sessions.status(session_id)


@router.delete("/{session_id}", status_code=204)
async def delete_session(
    session_id: str,
    services: ServiceContainer = Depends(get_services),
) -> None:
    """Delete a session."""
    try:
        services.sessions.delete(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
