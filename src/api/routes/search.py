"""Passage search API routes.

Endpoints:
    GET  /v1/search                  List searchable corpora
    POST /v1/search/{corpus}         Search one corpus (e.g. 'wittgenstein', 'transaction')

Search is limited per client address with a fixed window; every response
carries X-RateLimit-* headers.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from src.api.credentials import bearer_credential
from src.api.services import ServiceContainer, get_services
from src.interpretation.job import CREDENTIAL_MESSAGE
from src.orchestrator.rate_limit import RequestAllowance
from src.retrieval.retriever import RetrievalError
from src.retrieval.schemas import CorpusSpec, SearchRequest, SearchResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["search"])


def _rate_limit_headers(allowance: RequestAllowance) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(allowance.limit),
        "X-RateLimit-Remaining": str(allowance.remaining),
        "X-RateLimit-Reset": str(max(0, math.ceil(allowance.reset_in))),
    }


def enforce_search_limit(
    request: Request,
    response: Response,
    services: ServiceContainer = Depends(get_services),
) -> None:
    """Count this request against the caller's search allowance."""
    client_key = request.client.host if request.client else "unknown"
    allowance = services.search_limiter.hit(client_key)
    headers = _rate_limit_headers(allowance)
    if not allowance.allowed:
        raise HTTPException(
            status_code=429,
            detail="Too many requests, please try again later.",
            headers={**headers, "Retry-After": headers["X-RateLimit-Reset"]},
        )
    response.headers.update(headers)


@router.get("", response_model=list[CorpusSpec])
async def list_corpora(services: ServiceContainer = Depends(get_services)) -> list[CorpusSpec]:
    """List the logical corpora that can be searched."""
    return services.corpora.list_all()


@router.post(
    "/{corpus_key}",
    response_model=SearchResponse,
    dependencies=[Depends(enforce_search_limit)],
)
async def search_corpus(
    corpus_key: str,
    body: SearchRequest,
    services: ServiceContainer = Depends(get_services),
    credential: Optional[str] = Depends(bearer_credential),
) -> SearchResponse:
    """Search one corpus for passages relevant to the query.

    A required corpus with no matches yields 404; an optional corpus
    returns an empty list instead, even if the search itself failed.
    A missing or rejected embedding key is reported as 401 for either.
    """
    corpus = services.corpora.get(corpus_key)
    if corpus is None:
        raise HTTPException(
            status_code=404,
            detail=f"Corpus not found: {corpus_key}. Available: {services.corpora.list_keys()}",
        )

    retriever = services.retriever
    try:
        passages = await retriever.search(corpus, body.query, body.collection_name, credential)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RetrievalError as e:
        if e.credential_rejected:
            logger.warning(f"[search:{corpus.key}] Embedding credential rejected: {e}")
            raise HTTPException(status_code=401, detail=CREDENTIAL_MESSAGE)
        if corpus.required:
            logger.error(f"[search:{corpus.key}] {e}")
            raise HTTPException(status_code=502, detail="Failed to search passages")
        logger.warning(f"[search:{corpus.key}] Optional corpus search failed: {e}")
        passages = []

    if corpus.required and not passages:
        raise HTTPException(status_code=404, detail=f"No relevant passages found in {corpus.name}.")

    return SearchResponse(
        corpus=corpus.key,
        query=body.query,
        passages=passages,
        count=len(passages),
        timestamp=datetime.now(timezone.utc),
    )
