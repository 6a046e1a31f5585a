"""Service wiring for the API.

Routes receive a ServiceContainer through FastAPI dependency injection;
tests replace it with `app.dependency_overrides[get_services]`.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from src import config
from src.frameworks.registry import FrameworkRegistry, get_framework_registry
from src.interpretation.prompts import PromptComposer, get_prompt_composer
from src.llm.factory import BackendFactory, backend_factory_for
from src.orchestrator.controller import OrchestrationController
from src.orchestrator.rate_limit import RequestRateLimiter
from src.orchestrator.sessions import SessionRegistry
from src.retrieval.corpora import CorpusRegistry, get_corpus_registry
from src.retrieval.embeddings import OpenAIEmbeddingProvider
from src.retrieval.retriever import PassageRetriever
from src.retrieval.vector_store import QdrantVectorStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    frameworks: FrameworkRegistry
    corpora: CorpusRegistry
    retriever: PassageRetriever
    backend_factory: BackendFactory
    question_backend_factory: BackendFactory
    sessions: SessionRegistry
    search_limiter: RequestRateLimiter
    composer: PromptComposer


def build_services(
    retriever: Optional[PassageRetriever] = None,
    backend_factory: Optional[BackendFactory] = None,
    question_backend_factory: Optional[BackendFactory] = None,
    frameworks: Optional[FrameworkRegistry] = None,
    cooldown_seconds: float = config.SUBMISSION_COOLDOWN_SECONDS,
) -> ServiceContainer:
    """Assemble the services, defaulting to the configured Qdrant/OpenAI/LLM stack."""
    frameworks = frameworks or get_framework_registry()
    corpora = get_corpus_registry()
    composer = get_prompt_composer()
    retriever = retriever or PassageRetriever(
        QdrantVectorStore(),
        OpenAIEmbeddingProvider(),
        corpora=corpora,
    )
    backend_factory = backend_factory or backend_factory_for(config.INTERPRETATION_MODEL)
    question_backend_factory = question_backend_factory or backend_factory_for(config.QUESTION_FORMER_MODEL)

    def make_controller(session_id: str) -> OrchestrationController:
        return OrchestrationController(
            retriever,
            frameworks.list_all(),
            backend_factory,
            cooldown_seconds=cooldown_seconds,
            composer=composer,
            label=f"session {session_id[:8]}",
        )

    return ServiceContainer(
        frameworks=frameworks,
        corpora=corpora,
        retriever=retriever,
        backend_factory=backend_factory,
        question_backend_factory=question_backend_factory,
        sessions=SessionRegistry(make_controller),
        search_limiter=RequestRateLimiter(
            config.SEARCH_RATE_LIMIT_MAX_REQUESTS,
            config.SEARCH_RATE_LIMIT_WINDOW_SECONDS,
        ),
        composer=composer,
    )


_services: Optional[ServiceContainer] = None


def get_services() -> ServiceContainer:
    """Get the global service container instance."""
    global _services
    if _services is None:
        _services = build_services()
        logger.info("Service container initialized")
    return _services
