"""Single-framework interpretation API routes.

Endpoints:
    POST /v1/interpret/framework          One framework over caller-supplied passages
    POST /v1/interpret/transaction        The synthesis framework over both corpora
    POST /v1/interpret/framework/stream   Same as /framework, streamed as SSE
    POST /v1/form-question                Rewrite a question before submission

Every endpoint here calls a generation provider and accepts
'Authorization: Bearer <key>' in place of the server-side key.
"""

import json
import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from src.api.credentials import bearer_credential
from src.api.services import ServiceContainer, get_services
from src.frameworks.registry import UnknownFrameworkError
from src.frameworks.schemas import FrameworkDefinition, FrameworkKind
from src.interpretation.job import (
    job_error_from,
    parse_structured_output,
    run_interpretation_job,
    stream_interpretation,
)
from src.interpretation.prompts import MAX_PASSAGES
from src.interpretation.question_former import QuestionFormatError, improve_question
from src.interpretation.schemas import (
    FrameworkInterpretRequest,
    ImprovedQuestion,
    InterpretationResult,
    InterpretResponse,
    JobErrorKind,
    JobOutcome,
    QuestionFormRequest,
    TransactionInterpretRequest,
    TransactionInterpretResponse,
)
from src.llm.errors import ProviderError
from src.retrieval.schemas import Citation, CitationOrigin

logger = logging.getLogger(__name__)

router = APIRouter(tags=["interpret"])

ERROR_STATUS = {
    JobErrorKind.CREDENTIAL: 401,
    JobErrorKind.RATE_LIMITED: 429,
    JobErrorKind.TIMEOUT: 504,
    JobErrorKind.PROVIDER: 502,
    JobErrorKind.INTERNAL: 500,
}


def _resolve_framework(services: ServiceContainer, name_or_id: str) -> FrameworkDefinition:
    try:
        return services.frameworks.resolve(name_or_id)
    except UnknownFrameworkError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _synthesis_framework(services: ServiceContainer) -> FrameworkDefinition:
    synthesis = services.frameworks.list_by_kind(FrameworkKind.SYNTHESIS)
    if not synthesis:
        raise HTTPException(status_code=404, detail="No synthesis framework configured")
    return synthesis[0]


def _tagged(passages: list[Citation], origin: CitationOrigin) -> list[Citation]:
    return [p if p.origin == origin else p.model_copy(update={"origin": origin}) for p in passages]


def _result_or_raise(outcome: JobOutcome) -> InterpretationResult:
    if outcome.error is not None:
        raise HTTPException(
            status_code=ERROR_STATUS[outcome.error.kind],
            detail=outcome.error.model_dump(by_alias=True, mode="json"),
        )
    return outcome.result


@router.post("/interpret/framework", response_model=InterpretResponse)
async def interpret_framework(
    request: FrameworkInterpretRequest,
    services: ServiceContainer = Depends(get_services),
    credential: Optional[str] = Depends(bearer_credential),
) -> InterpretResponse:
    """Interpret a question through one framework using the given passages."""
    framework = _resolve_framework(services, request.framework)
    outcome = await run_interpretation_job(
        framework,
        request.query,
        _tagged(request.passages, CitationOrigin.PRIMARY),
        backend=services.backend_factory(credential),
        composer=services.composer,
    )
    result = _result_or_raise(outcome)
    return InterpretResponse(
        interpretation=result.main_interpretation,
        structured_interpretation=result.as_structured(),
        reference_passages=result.reference_passages,
        framework=framework.name,
    )


@router.post("/interpret/transaction", response_model=TransactionInterpretResponse)
async def interpret_transaction(
    request: TransactionInterpretRequest,
    services: ServiceContainer = Depends(get_services),
    credential: Optional[str] = Depends(bearer_credential),
) -> TransactionInterpretResponse:
    """Interpret a question by synthesizing primary passages with transaction theory."""
    framework = _synthesis_framework(services)
    outcome = await run_interpretation_job(
        framework,
        request.query,
        _tagged(request.witt_passages, CitationOrigin.PRIMARY),
        _tagged(request.trans_passages, CitationOrigin.SECONDARY),
        backend=services.backend_factory(credential),
        composer=services.composer,
    )
    result = _result_or_raise(outcome)
    return TransactionInterpretResponse(
        interpretation=result.main_interpretation,
        structured_interpretation=result.as_structured(),
        witt_reference_passages=[p for p in result.reference_passages if p.origin == CitationOrigin.PRIMARY],
        trans_reference_passages=[p for p in result.reference_passages if p.origin == CitationOrigin.SECONDARY],
        framework=framework.name,
    )


def _sse(event: dict) -> str:
    return f"data: {json.dumps(event)}\n\n"


@router.post("/interpret/framework/stream")
async def interpret_framework_stream(
    request: FrameworkInterpretRequest,
    services: ServiceContainer = Depends(get_services),
    credential: Optional[str] = Depends(bearer_credential),
) -> StreamingResponse:
    """Stream one framework's interpretation as server-sent events.

    Events:
        {"type": "delta", "text": ...}    one per text increment
        {"type": "done", ...}             parsed result once the stream ends
        {"type": "error", ...}            any failure; no done event follows
    """
    framework = _resolve_framework(services, request.framework)
    passages = _tagged(request.passages, CitationOrigin.PRIMARY)
    backend = services.backend_factory(credential)

    async def event_stream() -> AsyncIterator[str]:
        chunks: list[str] = []
        try:
            async for delta in stream_interpretation(
                framework,
                request.query,
                passages,
                backend=backend,
                composer=services.composer,
            ):
                chunks.append(delta)
                yield _sse({"type": "delta", "text": delta})
        except ProviderError as e:
            logger.error(f"[{framework.id}:stream] Failed ({e.kind}): {e}")
            error = job_error_from(e, framework)
            yield _sse({"type": "error", **error.model_dump(by_alias=True, mode="json")})
            return
        except Exception as e:
            logger.error(f"[{framework.id}:stream] Unexpected failure: {e}", exc_info=True)
            error = job_error_from(e, framework)
            yield _sse({"type": "error", **error.model_dump(by_alias=True, mode="json")})
            return

        structured, parsed = parse_structured_output("".join(chunks))
        yield _sse({
            "type": "done",
            "framework": framework.name,
            "structured": parsed,
            "structuredInterpretation": structured.model_dump(by_alias=True, mode="json"),
            "referencePassages": [
                p.model_dump(by_alias=True, mode="json") for p in passages[:MAX_PASSAGES]
            ],
        })

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/form-question", response_model=ImprovedQuestion)
async def form_question(
    request: QuestionFormRequest,
    services: ServiceContainer = Depends(get_services),
    credential: Optional[str] = Depends(bearer_credential),
) -> ImprovedQuestion:
    """Suggest a clearer, more philosophically precise version of a question."""
    try:
        return await improve_question(
            request.question,
            services.question_backend_factory(credential),
            composer=services.composer,
        )
    except QuestionFormatError as e:
        logger.error(f"[question-former] {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ProviderError as e:
        logger.error(f"[question-former] Provider failed ({e.kind}): {e}")
        status = ERROR_STATUS.get(JobErrorKind(e.kind), 502)
        raise HTTPException(status_code=status, detail=str(e))
