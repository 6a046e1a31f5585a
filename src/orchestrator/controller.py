"""Orchestration controller: one question, N framework jobs, one snapshot.

Run lifecycle:
    idle -> retrieving-primary -> retrieving-secondary -> generating -> finalizing -> idle

A fatal primary-retrieval failure returns straight to idle. Each framework
job moves loading -> complete | error, and back to loading only through an
explicit retry. All snapshot changes go through the aggregator's merge.

Concurrency is single-threaded asyncio: state is only read and written
between awaits, so no locks are needed. Every dispatch takes a token from
a controller-wide counter; a job's result is applied only if its token is
still the latest one for that framework (last dispatch wins).
"""

import asyncio
import itertools
import logging
import time
from typing import Callable, Coroutine, Optional

from src import config
from src.frameworks.registry import UnknownFrameworkError
from src.frameworks.schemas import FrameworkDefinition, FrameworkKind
from src.interpretation.job import CREDENTIAL_MESSAGE, job_error_from, run_interpretation_job
from src.interpretation.prompts import PromptComposer
from src.interpretation.schemas import JobOutcome
from src.llm.backends import ModelBackend
from src.llm.factory import BackendFactory
from src.orchestrator.aggregator import merge, summarize_run
from src.orchestrator.rate_limit import Clock, RateLimitWindow
from src.orchestrator.schemas import (
    ControllerEvent,
    FrameworkState,
    Interpretation,
    InterpretationUpdate,
    JobStatus,
    Query,
    RunError,
    RunErrorKind,
    RunState,
    RunSummary,
)
from src.retrieval.retriever import NoPassagesFound, PassageRetriever, RetrievalError
from src.retrieval.schemas import Citation, CitationOrigin

logger = logging.getLogger(__name__)

Listener = Callable[[ControllerEvent], None]


class RunInProgressError(RuntimeError):
    """A full run is already active on this controller."""


class NothingToRetryError(RuntimeError):
    """There is no settled snapshot slot to retry for that framework."""


class OrchestrationController:
    """Drives runs and retries for a single session.

    Usage:
        controller = OrchestrationController(retriever, registry.list_all(), backend_factory_for())
        snapshot = await controller.submit("What is a language game?")
        await controller.retry("resolute")
    """

    def __init__(
        self,
        retriever: PassageRetriever,
        frameworks: list[FrameworkDefinition],
        backend_factory: BackendFactory,
        *,
        cooldown_seconds: float = config.SUBMISSION_COOLDOWN_SECONDS,
        clock: Clock = time.monotonic,
        composer: Optional[PromptComposer] = None,
        label: str = "controller",
    ):
        self._retriever = retriever
        self._frameworks = list(frameworks)
        self._by_id = {f.id: f for f in self._frameworks}
        self._backend_factory = backend_factory
        self._composer = composer
        self._label = label

        self.rate_limit = RateLimitWindow(cooldown_seconds, clock)

        self._state = RunState.IDLE
        self._interpretation: Optional[Interpretation] = None
        self._error: Optional[RunError] = None
        self._summary: Optional[RunSummary] = None

        self._tokens = itertools.count(1)
        self._latest_dispatch: dict[str, int] = {}
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def interpretation(self) -> Optional[Interpretation]:
        return self._interpretation

    @property
    def error(self) -> Optional[RunError]:
        return self._error

    @property
    def summary(self) -> Optional[RunSummary]:
        return self._summary

    @property
    def frameworks(self) -> list[FrameworkDefinition]:
        return list(self._frameworks)

    @property
    def is_busy(self) -> bool:
        return self._state != RunState.IDLE

    def statuses(self) -> dict[str, JobStatus]:
        if self._interpretation is None:
            return {}
        return self._interpretation.statuses()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _emit(self, kind: str, **fields) -> None:
        event = ControllerEvent(kind=kind, state=self._state, **fields)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"[{self._label}] Listener failed on {kind} event: {e}", exc_info=True)

    def _set_state(self, state: RunState) -> None:
        if state == self._state:
            return
        logger.info(f"[{self._label}] {self._state.value} -> {state.value}")
        self._state = state
        self._emit("state")

    def _apply(self, update: InterpretationUpdate) -> None:
        """Merge an update into the current snapshot (no-op after reset)."""
        if self._interpretation is None:
            return
        self._interpretation = merge(self._interpretation, update)
        for entry in update.frameworks or []:
            self._emit("snapshot", framework_id=entry.id, status=entry.status)
        if update.citations:
            self._emit("snapshot")

    # ------------------------------------------------------------------
    # Full runs
    # ------------------------------------------------------------------

    def start(self, question: str) -> Query:
        """Validate and open a run without awaiting anything.

        Raises:
            ValueError: If the question is empty
            RunInProgressError: If a run is already active
            SubmissionThrottled: If the cooldown has not elapsed
        """
        text = question.strip()
        if not text:
            raise ValueError("Question must not be empty")
        if self.is_busy:
            raise RunInProgressError(f"A run is already in progress ({self._state.value})")
        self.rate_limit.check_and_record()

        query = Query(text=text)
        self._interpretation = Interpretation(question=text, timestamp=query.submitted_at)
        self._error = None
        self._summary = None
        self._latest_dispatch.clear()
        logger.info(f"[{self._label}] Accepted question ({len(text)} chars)")
        self._set_state(RunState.RETRIEVING_PRIMARY)
        return query

    async def submit(self, question: str, credential: Optional[str] = None) -> Optional[Interpretation]:
        """Run the full pipeline for a question and return the final snapshot."""
        query = self.start(question)
        await self._run(query, credential)
        return self._interpretation

    def submit_in_background(self, question: str, credential: Optional[str] = None) -> asyncio.Task:
        """Validate synchronously, then run the pipeline as a background task."""
        query = self.start(question)
        return self._spawn(self._run(query, credential))

    async def _run(self, query: Query, credential: Optional[str]) -> None:
        try:
            try:
                primary = await self._retriever.retrieve_primary(query.text, credential=credential)
            except NoPassagesFound as e:
                self._fail(RunErrorKind.NO_PASSAGES, str(e))
                return
            except RetrievalError as e:
                logger.error(f"[{self._label}] Primary retrieval failed: {e}")
                if e.credential_rejected:
                    self._fail(RunErrorKind.CREDENTIAL, CREDENTIAL_MESSAGE, requires_credential=True)
                    return
                self._fail(
                    RunErrorKind.RETRIEVAL_FAILED,
                    "Sorry, I could not search the passages for your question. Please try again.",
                )
                return
            self._apply(InterpretationUpdate(citations=primary))

            self._set_state(RunState.RETRIEVING_SECONDARY)
            secondary = await self._retriever.retrieve_secondary(query.text, credential=credential)
            self._apply(InterpretationUpdate(citations=secondary))

            self._set_state(RunState.GENERATING)
            self._apply(InterpretationUpdate(
                frameworks=[FrameworkState.loading(f) for f in self._frameworks]
            ))
            backend = self._backend_factory(credential)
            dispatches = [
                self._dispatch(f, self._claim(f.id), query.text, primary, secondary, backend)
                for f in self._frameworks
            ]
            results = await asyncio.gather(*dispatches, return_exceptions=True)
            failed = sum(1 for r in results if isinstance(r, BaseException) or not r.ok)
            logger.info(
                f"[{self._label}] Fan-out settled: {len(results) - failed}/{len(results)} succeeded"
            )

            self._set_state(RunState.FINALIZING)
            if self._interpretation is not None:
                self._summary = summarize_run(self._interpretation)
                self._emit("summary", message=self._summary.message)
        finally:
            self._set_state(RunState.IDLE)

    def _fail(self, kind: RunErrorKind, message: str, requires_credential: bool = False) -> None:
        self._error = RunError(kind=kind, message=message, requires_credential=requires_credential)
        logger.warning(f"[{self._label}] Run aborted ({kind.value}): {message}")
        self._emit("error", message=message)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _claim(self, framework_id: str) -> int:
        token = next(self._tokens)
        self._latest_dispatch[framework_id] = token
        return token

    async def _dispatch(
        self,
        framework: FrameworkDefinition,
        token: int,
        query_text: str,
        primary: list[Citation],
        secondary: list[Citation],
        backend: ModelBackend,
    ) -> JobOutcome:
        theory = secondary if framework.kind == FrameworkKind.SYNTHESIS else None
        try:
            outcome = await run_interpretation_job(
                framework, query_text, primary, theory,
                backend=backend, composer=self._composer,
            )
        except Exception as e:
            logger.error(f"[{self._label}:{framework.id}] Dispatch failed: {e}", exc_info=True)
            outcome = JobOutcome(framework_id=framework.id, error=job_error_from(e, framework))

        if self._latest_dispatch.get(framework.id) != token:
            logger.info(f"[{self._label}:{framework.id}] Discarding superseded result (dispatch {token})")
            return outcome

        self._apply(InterpretationUpdate(frameworks=[FrameworkState.settled(framework, outcome)]))
        return outcome

    # ------------------------------------------------------------------
    # Retry
    # ------------------------------------------------------------------

    def _prepare_retry(self, framework_id: str) -> tuple[FrameworkDefinition, int, str, list[Citation], list[Citation]]:
        framework = self._by_id.get(framework_id)
        if framework is None:
            raise UnknownFrameworkError(framework_id, list(self._by_id))

        snapshot = self._interpretation
        if snapshot is None or snapshot.framework(framework_id) is None:
            raise NothingToRetryError(f"No interpretation to retry for framework '{framework_id}'")
        primary = snapshot.citations_for(CitationOrigin.PRIMARY)
        if not primary:
            raise NothingToRetryError("The current run has no passages to interpret")
        secondary = snapshot.citations_for(CitationOrigin.SECONDARY)

        token = self._claim(framework_id)
        logger.info(f"[{self._label}:{framework_id}] Retry dispatched (dispatch {token})")
        self._apply(InterpretationUpdate(frameworks=[FrameworkState.loading(framework)]))
        return framework, token, snapshot.question, primary, secondary

    async def retry(self, framework_id: str, credential: Optional[str] = None) -> Optional[FrameworkState]:
        """Re-run one framework with the current run's citations.

        Only that framework's slot changes. Returns its state after the
        retry settles (None if the snapshot was reset meanwhile).

        Raises:
            UnknownFrameworkError: If framework_id is not configured
            NothingToRetryError: If there is no run to retry against
        """
        framework, token, question, primary, secondary = self._prepare_retry(framework_id)
        await self._dispatch(framework, token, question, primary, secondary, self._backend_factory(credential))
        if self._interpretation is None:
            return None
        return self._interpretation.framework(framework_id)

    def retry_in_background(self, framework_id: str, credential: Optional[str] = None) -> asyncio.Task:
        """Validate and mark the framework loading synchronously, then retry in a task."""
        framework, token, question, primary, secondary = self._prepare_retry(framework_id)
        return self._spawn(
            self._dispatch(framework, token, question, primary, secondary, self._backend_factory(credential))
        )

    # ------------------------------------------------------------------
    # Reset and background tasks
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Clear the snapshot, statuses, error and summary.

        The cooldown window is kept. In-flight retries are not cancelled;
        their results are discarded when they arrive.

        Raises:
            RunInProgressError: If a run is active
        """
        if self.is_busy:
            raise RunInProgressError("Cannot reset while a run is in progress")
        self._interpretation = None
        self._error = None
        self._summary = None
        self._latest_dispatch.clear()
        logger.info(f"[{self._label}] Reset")
        self._emit("state")

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"[{self._label}] Background task failed: {exc!r}")

    async def wait_idle(self) -> None:
        """Wait until every background run and retry has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
