"""Run-level schemas for the orchestration controller.

The snapshot models here are frozen: every update produces a new
Interpretation via the aggregator, so readers holding an older snapshot
never observe a change.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from src.frameworks.schemas import FrameworkDefinition
from src.interpretation.schemas import JobError, JobOutcome, RelevantQuote
from src.retrieval.schemas import CamelModel, Citation, CitationOrigin

FROZEN = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

LOADING_PLACEHOLDER = "Loading interpretation..."


class RunState(str, Enum):
    """Controller lifecycle states."""
    IDLE = "idle"
    RETRIEVING_PRIMARY = "retrieving-primary"
    RETRIEVING_SECONDARY = "retrieving-secondary"
    GENERATING = "generating"
    FINALIZING = "finalizing"


class JobStatus(str, Enum):
    """Per-framework job lifecycle."""
    LOADING = "loading"
    COMPLETE = "complete"
    ERROR = "error"


class Query(CamelModel):
    model_config = FROZEN

    text: str
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FrameworkState(CamelModel):
    """One framework's slot in a run snapshot.

    `status` is the only lifecycle field; the loading and error flags are
    derived from it.
    """

    model_config = FROZEN

    id: str
    name: str
    description: str = ""
    status: JobStatus
    interpretation: str = ""
    key_insights: list[str] = Field(default_factory=list)
    relevant_quotes: list[RelevantQuote] = Field(default_factory=list)
    reference_passages: list[Citation] = Field(default_factory=list)
    error: Optional[JobError] = None

    @computed_field
    @property
    def is_loading(self) -> bool:
        return self.status == JobStatus.LOADING

    @computed_field
    @property
    def has_error(self) -> bool:
        return self.status == JobStatus.ERROR

    @classmethod
    def loading(cls, framework: FrameworkDefinition) -> "FrameworkState":
        return cls(
            id=framework.id,
            name=framework.name,
            description=framework.description,
            status=JobStatus.LOADING,
            interpretation=LOADING_PLACEHOLDER,
        )

    @classmethod
    def settled(cls, framework: FrameworkDefinition, outcome: JobOutcome) -> "FrameworkState":
        """Build the terminal state for a finished job."""
        if outcome.result is not None:
            result = outcome.result
            return cls(
                id=framework.id,
                name=framework.name,
                description=framework.description,
                status=JobStatus.COMPLETE,
                interpretation=result.main_interpretation,
                key_insights=result.key_insights,
                relevant_quotes=result.relevant_quotes,
                reference_passages=result.reference_passages,
            )
        return cls(
            id=framework.id,
            name=framework.name,
            description=framework.description,
            status=JobStatus.ERROR,
            interpretation=outcome.error.message if outcome.error else "",
            error=outcome.error,
        )


class Interpretation(CamelModel):
    """Immutable snapshot of a run: the question, its citations, and every framework slot."""

    model_config = FROZEN

    question: str
    frameworks: list[FrameworkState] = Field(default_factory=list)
    citations: list[Citation] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def framework(self, framework_id: str) -> Optional[FrameworkState]:
        for entry in self.frameworks:
            if entry.id == framework_id:
                return entry
        return None

    def statuses(self) -> dict[str, JobStatus]:
        return {entry.id: entry.status for entry in self.frameworks}

    def citations_for(self, origin: CitationOrigin) -> list[Citation]:
        return [c for c in self.citations if c.origin == origin]


class InterpretationUpdate(CamelModel):
    """A partial update to merge into a snapshot."""

    model_config = FROZEN

    citations: Optional[list[Citation]] = None
    frameworks: Optional[list[FrameworkState]] = None


class RunOutcome(str, Enum):
    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL = "partial"
    ALL_FAILED = "all_failed"


class RunSummary(CamelModel):
    """Aggregate result of a finished fan-out."""

    model_config = FROZEN

    total: int
    complete: int
    failed: int
    outcome: RunOutcome
    message: str


class RunErrorKind(str, Enum):
    NO_PASSAGES = "no_passages"
    RETRIEVAL_FAILED = "retrieval_failed"
    CREDENTIAL = "credential"


class RunError(CamelModel):
    """A fatal error that ended a run before any job was dispatched."""

    model_config = FROZEN

    kind: RunErrorKind
    message: str
    requires_credential: bool = False


class ControllerEvent(CamelModel):
    """Notification delivered to controller listeners."""

    model_config = FROZEN

    kind: str = Field(..., description="'state', 'snapshot', 'error' or 'summary'")
    state: RunState
    framework_id: Optional[str] = None
    status: Optional[JobStatus] = None
    message: Optional[str] = None


class SessionStatus(CamelModel):
    """Everything a client needs to render one session."""

    session_id: str
    state: RunState
    statuses: dict[str, JobStatus] = Field(default_factory=dict)
    interpretation: Optional[Interpretation] = None
    error: Optional[RunError] = None
    summary: Optional[RunSummary] = None
    cooldown_remaining_seconds: int = 0


class SubmitQuestionRequest(CamelModel):
    question: str = Field(..., min_length=1)
