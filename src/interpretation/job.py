"""Interpretation jobs: one LLM call per framework.

A job never raises. Provider failures become a JobError on the outcome,
and unparseable model output degrades to raw text with placeholder
insights and quotes. This keeps a single failing framework from
affecting its siblings in a fan-out.
"""

import json
import logging
from typing import Any, AsyncIterator, Optional

from src import config
from src.frameworks.schemas import FrameworkDefinition
from src.interpretation.prompts import PromptComposer, get_prompt_composer
from src.interpretation.schemas import (
    NO_KEY_INSIGHTS,
    NO_MAIN_INTERPRETATION,
    NO_QUOTE_EXPLANATION,
    NO_QUOTE_TEXT,
    UNSTRUCTURED_INSIGHT,
    UNSTRUCTURED_QUOTE_EXPLANATION,
    UNSTRUCTURED_QUOTE_TEXT,
    InterpretationResult,
    JobError,
    JobErrorKind,
    JobOutcome,
    RelevantQuote,
    StructuredInterpretation,
)
from src.llm.backends import ModelBackend
from src.llm.client import parse_llm_json_response
from src.llm.errors import ProviderError
from src.retrieval.schemas import Citation

logger = logging.getLogger(__name__)

RATE_LIMITED_MESSAGE = "The server is currently experiencing high traffic. Please wait a moment and try again."
CREDENTIAL_MESSAGE = (
    "API key required. The server's key is missing or was rejected; "
    "please provide your own API key (Authorization: Bearer <key>) to use this feature."
)


def _coerce_quotes(raw: Any) -> list[RelevantQuote]:
    quotes = []
    for item in raw:
        if isinstance(item, dict) and item.get("text"):
            from_primary = item.get("fromPrimary", item.get("isWittgenstein"))
            quotes.append(RelevantQuote(
                text=str(item["text"]),
                explanation=str(item.get("explanation") or NO_QUOTE_EXPLANATION),
                from_primary=from_primary if isinstance(from_primary, bool) else None,
            ))
        elif isinstance(item, str) and item.strip():
            quotes.append(RelevantQuote(text=item.strip(), explanation=NO_QUOTE_EXPLANATION))
    return quotes


def parse_structured_output(raw_text: str) -> tuple[StructuredInterpretation, bool]:
    """Parse model output into a StructuredInterpretation.

    Returns:
        (interpretation, structured) where structured is False if the
        output was not a JSON object and was kept verbatim
    """
    try:
        data = parse_llm_json_response(raw_text)
    except (json.JSONDecodeError, ValueError):
        return StructuredInterpretation(
            main_interpretation=raw_text.strip() or NO_MAIN_INTERPRETATION,
            key_insights=[UNSTRUCTURED_INSIGHT],
            relevant_quotes=[
                RelevantQuote(text=UNSTRUCTURED_QUOTE_TEXT, explanation=UNSTRUCTURED_QUOTE_EXPLANATION)
            ],
        ), False

    main = data.get("mainInterpretation")
    if not isinstance(main, str) or not main.strip():
        main = NO_MAIN_INTERPRETATION

    insights_raw = data.get("keyInsights")
    insights = []
    if isinstance(insights_raw, list):
        insights = [str(i).strip() for i in insights_raw if str(i).strip()]
    if not insights:
        insights = [NO_KEY_INSIGHTS]

    quotes_raw = data.get("relevantQuotes")
    quotes = _coerce_quotes(quotes_raw) if isinstance(quotes_raw, list) else []
    if not quotes:
        quotes = [RelevantQuote(text=NO_QUOTE_TEXT, explanation=NO_QUOTE_EXPLANATION)]

    return StructuredInterpretation(
        main_interpretation=main.strip(),
        key_insights=insights,
        relevant_quotes=quotes,
    ), True


def job_error_from(exc: BaseException, framework: FrameworkDefinition) -> JobError:
    """Map an exception raised during a job to a user-facing JobError."""
    if isinstance(exc, ProviderError):
        if exc.kind == JobErrorKind.CREDENTIAL.value:
            return JobError(
                kind=JobErrorKind.CREDENTIAL,
                message=CREDENTIAL_MESSAGE,
                retryable=False,
                requires_credential=True,
            )
        if exc.kind == JobErrorKind.RATE_LIMITED.value:
            return JobError(kind=JobErrorKind.RATE_LIMITED, message=RATE_LIMITED_MESSAGE)
        if exc.kind == JobErrorKind.TIMEOUT.value:
            return JobError(
                kind=JobErrorKind.TIMEOUT,
                message=f"The {framework.name} interpretation timed out. You can try again using the retry button.",
            )
        return JobError(
            kind=JobErrorKind.PROVIDER,
            message=(
                f"Failed to generate interpretation for {framework.name}. "
                f"The server may be busy. You can try again using the retry button."
            ),
        )
    return JobError(
        kind=JobErrorKind.INTERNAL,
        message=f"An unexpected error occurred while generating the {framework.name} interpretation.",
    )


async def run_interpretation_job(
    framework: FrameworkDefinition,
    query: str,
    passages: list[Citation],
    theory_passages: Optional[list[Citation]] = None,
    *,
    backend: ModelBackend,
    composer: Optional[PromptComposer] = None,
    max_tokens: int = config.INTERPRETATION_MAX_TOKENS,
    temperature: float = config.INTERPRETATION_TEMPERATURE,
) -> JobOutcome:
    """Generate one framework's interpretation.

    The same function serves every framework; synthesis frameworks differ
    only in that their prompt also embeds theory_passages.

    Args:
        framework: Framework to interpret through
        query: The user's question
        passages: Primary-corpus citations
        theory_passages: Secondary-corpus citations (synthesis frameworks only)
        backend: Generation backend carrying the request's credential

    Returns:
        JobOutcome with either result or error set
    """
    label = framework.id
    composer = composer or get_prompt_composer()

    try:
        prompt = composer.compose_interpretation(framework, query, passages, theory_passages)
        call = await backend.complete(
            prompt.system,
            prompt.user,
            max_tokens=max_tokens,
            temperature=temperature,
            json_mode=True,
            label=label,
        )
    except ProviderError as e:
        logger.error(f"[{label}] Job failed ({e.kind}): {e}")
        return JobOutcome(framework_id=framework.id, error=job_error_from(e, framework))
    except Exception as e:
        logger.error(f"[{label}] Job failed unexpectedly: {e}", exc_info=True)
        return JobOutcome(framework_id=framework.id, error=job_error_from(e, framework))

    structured, parsed = parse_structured_output(call.content)
    if not parsed:
        logger.warning(f"[{label}] Output was not valid JSON, keeping raw text ({len(call.content)} chars)")

    return JobOutcome(
        framework_id=framework.id,
        result=InterpretationResult(
            framework_id=framework.id,
            main_interpretation=structured.main_interpretation,
            key_insights=structured.key_insights,
            relevant_quotes=structured.relevant_quotes,
            reference_passages=prompt.passages + prompt.theory_passages,
            structured=parsed,
            model_used=call.model_id,
            duration_ms=call.duration_ms,
        ),
    )


async def stream_interpretation(
    framework: FrameworkDefinition,
    query: str,
    passages: list[Citation],
    theory_passages: Optional[list[Citation]] = None,
    *,
    backend: ModelBackend,
    composer: Optional[PromptComposer] = None,
    max_tokens: int = config.INTERPRETATION_MAX_TOKENS,
    temperature: float = config.INTERPRETATION_TEMPERATURE,
) -> AsyncIterator[str]:
    """Yield the model's output for one framework as text increments.

    Each call starts a fresh provider stream. Joining the increments and
    passing them to parse_structured_output gives the same result shape
    as run_interpretation_job.

    Raises:
        ProviderError: If the provider fails before or during the stream
    """
    composer = composer or get_prompt_composer()
    prompt = composer.compose_interpretation(framework, query, passages, theory_passages)
    async for delta in backend.stream(
        prompt.system,
        prompt.user,
        max_tokens=max_tokens,
        temperature=temperature,
        label=f"{framework.id}:stream",
    ):
        yield delta
