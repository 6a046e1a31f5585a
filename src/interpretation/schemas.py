"""Interpretation job schemas: structured results, errors, and request/response models."""

from enum import Enum
from typing import Optional

from pydantic import AliasChoices, Field

from src.retrieval.schemas import CamelModel, Citation

NO_MAIN_INTERPRETATION = "No main interpretation generated."
NO_KEY_INSIGHTS = "No key insights generated."
NO_QUOTE_TEXT = "No relevant quotes identified."
NO_QUOTE_EXPLANATION = "No explanation provided."
UNSTRUCTURED_INSIGHT = "Could not extract structured insights."
UNSTRUCTURED_QUOTE_TEXT = "No structured quotes available."
UNSTRUCTURED_QUOTE_EXPLANATION = "Response format error."


class RelevantQuote(CamelModel):
    """A quoted passage with the model's explanation of its significance."""

    text: str
    explanation: str = ""
    from_primary: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("fromPrimary", "from_primary", "isWittgenstein"),
        description="Synthesis jobs only: True if quoted from the primary corpus",
    )


class StructuredInterpretation(CamelModel):
    """The three-part answer every framework job produces."""

    main_interpretation: str
    key_insights: list[str]
    relevant_quotes: list[RelevantQuote]


class InterpretationResult(CamelModel):
    """Successful output of one interpretation job."""

    framework_id: str
    main_interpretation: str
    key_insights: list[str]
    relevant_quotes: list[RelevantQuote]
    reference_passages: list[Citation] = Field(
        default_factory=list,
        description="The passages actually embedded in the prompt",
    )
    structured: bool = Field(
        default=True,
        description="False when the model output could not be parsed and was kept as raw text",
    )
    model_used: str = ""
    duration_ms: int = 0

    def as_structured(self) -> StructuredInterpretation:
        return StructuredInterpretation(
            main_interpretation=self.main_interpretation,
            key_insights=self.key_insights,
            relevant_quotes=self.relevant_quotes,
        )


class JobErrorKind(str, Enum):
    """Why an interpretation job failed."""
    CREDENTIAL = "credential"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    PROVIDER = "provider"
    INTERNAL = "internal"


class JobError(CamelModel):
    """A user-facing, actionable description of a failed job."""

    kind: JobErrorKind
    message: str
    retryable: bool = True
    requires_credential: bool = False


class JobOutcome(CamelModel):
    """Either a result or an error, never both."""

    framework_id: str
    result: Optional[InterpretationResult] = None
    error: Optional[JobError] = None

    @property
    def ok(self) -> bool:
        return self.result is not None


# =============================================================================
# HTTP request / response models
# =============================================================================


class FrameworkInterpretRequest(CamelModel):
    query: str = Field(..., min_length=1)
    passages: list[Citation] = Field(..., min_length=1)
    framework: str = Field(..., min_length=1, description="Framework id or display name")


class TransactionInterpretRequest(CamelModel):
    query: str = Field(..., min_length=1)
    witt_passages: list[Citation] = Field(..., min_length=1)
    trans_passages: list[Citation] = Field(default_factory=list)


class InterpretResponse(CamelModel):
    interpretation: str
    structured_interpretation: StructuredInterpretation
    reference_passages: list[Citation]
    framework: str


class TransactionInterpretResponse(CamelModel):
    interpretation: str
    structured_interpretation: StructuredInterpretation
    witt_reference_passages: list[Citation]
    trans_reference_passages: list[Citation]
    framework: str


class QuestionFormRequest(CamelModel):
    question: str = Field(..., min_length=1)


class ImprovedQuestion(CamelModel):
    improved_question: str
    explanation: str = ""
