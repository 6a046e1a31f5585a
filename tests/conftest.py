"""Shared fakes and fixtures.

The fakes stand in for Qdrant, the embedding provider and the generation
backend so the pipeline can be exercised end to end without network access.
"""

import asyncio
import json
from typing import Any, AsyncIterator, Optional

import pytest

from src.frameworks.registry import FrameworkRegistry
from src.interpretation.prompts import PromptComposer
from src.llm.backends import LLMCallResult
from src.llm.errors import CredentialError
from src.retrieval.corpora import CorpusRegistry
from src.retrieval.retriever import PassageRetriever
from src.retrieval.schemas import FilterClause, SearchHit

WITT_NAMESPACE = "witt-writings"
TRANS_NAMESPACE = "transactional"

DEFAULT_RESPONSE = json.dumps({
    "mainInterpretation": "Meaning is use within a form of life.",
    "keyInsights": ["Language games are embedded in practice", "Rules do not interpret themselves"],
    "relevantQuotes": [
        {"text": "the meaning of a word is its use", "explanation": "Grounds meaning in practice"},
    ],
})


def make_hit(index: int, text: str, source: str, score: float = 0.9) -> SearchHit:
    return SearchHit(
        id=f"point-{index}",
        score=score,
        payload={"content": text, "metadata": {"source": source}},
    )


WITT_HITS = [
    make_hit(0, "43. For a large class of cases the meaning of a word is its use in the language.",
             "Philosophical Investigations § 43", 0.92),
    make_hit(1, "7. Whereof one cannot speak, thereof one must be silent.", "Tractatus", 0.88),
    make_hit(2, "23. The speaking of language is part of an activity, or of a form of life.",
             "Philosophical Investigations § 23", 0.85),
]

TRANS_HITS = [
    make_hit(10, "Every transaction presupposes shared rules of exchange between the parties.",
             "Transaction Theory", 0.81),
    make_hit(11, "A transaction is completed only when both parties recognise it as such.",
             "Transaction Theory", 0.77),
]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeVectorStore:
    """In-memory vector store keyed by the namespace clause of each search."""

    def __init__(
        self,
        hits_by_namespace: Optional[dict[str, list[SearchHit]]] = None,
        fail_namespaces: Optional[set[str]] = None,
    ):
        self.hits_by_namespace = hits_by_namespace if hits_by_namespace is not None else {
            WITT_NAMESPACE: list(WITT_HITS),
            TRANS_NAMESPACE: list(TRANS_HITS),
        }
        self.fail_namespaces = fail_namespaces or set()
        self.searches: list[tuple[str, str, int]] = []
        self.upserts: list[tuple[str, list[dict[str, Any]]]] = []
        self.collections: dict[str, int] = {}

    @staticmethod
    def _namespace(should: list[FilterClause]) -> Optional[str]:
        for clause in should:
            if clause.key == "metadata.namespace":
                return clause.value
        return None

    async def search(self, collection, vector, should, top_k):
        namespace = self._namespace(should)
        self.searches.append((collection, namespace, top_k))
        if namespace in self.fail_namespaces:
            raise ConnectionError(f"qdrant unavailable for {namespace}")
        return self.hits_by_namespace.get(namespace, [])[:top_k]

    async def upsert(self, collection, points):
        self.upserts.append((collection, points))

    async def list_collections(self):
        return list(self.collections)

    async def create_collection(self, collection, dimension):
        self.collections[collection] = dimension

    async def ensure_collection(self, collection, dimension):
        if collection in self.collections:
            return False
        await self.create_collection(collection, dimension)
        return True


class FakeEmbedder:
    """Records texts and credentials. With accepted_key set, any other key is refused."""

    dimension = 8

    def __init__(self, accepted_key: Optional[str] = None):
        self.embedded: list[str] = []
        self.credentials: list[Optional[str]] = []
        self.accepted_key = accepted_key

    async def embed(self, text: str, credential: Optional[str] = None) -> list[float]:
        if not text.strip():
            raise ValueError("Cannot embed empty text")
        self.credentials.append(credential)
        if self.accepted_key is not None and credential != self.accepted_key:
            raise CredentialError("Incorrect API key provided")
        self.embedded.append(text)
        return [0.1] * self.dimension

    async def embed_many(self, texts: list[str], credential: Optional[str] = None) -> list[list[float]]:
        self.embedded.extend(texts)
        return [[float(i)] * self.dimension for i, _ in enumerate(texts)]


class FakeBackend:
    """Scripted generation backend.

    Responses and failures are keyed by call label (the framework id for
    interpretation jobs). A label registered with hold() blocks its next
    call until the returned event is set; the response is chosen when the
    call starts.
    """

    def __init__(self, model_id: str = "fake-model"):
        self._model_id = model_id
        self.responses: dict[str, str] = {}
        self.failures: dict[str, BaseException] = {}
        self.calls: list[dict[str, Any]] = []
        self._holds: dict[str, asyncio.Event] = {}
        self.default_response = DEFAULT_RESPONSE

    @property
    def model_id(self) -> str:
        return self._model_id

    def hold(self, label: str) -> asyncio.Event:
        event = asyncio.Event()
        self._holds[label] = event
        return event

    def labels(self) -> list[str]:
        return [c["label"] for c in self.calls]

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int,
        temperature: float = 0.7,
        json_mode: bool = False,
        label: str = "",
    ) -> LLMCallResult:
        self.calls.append({"label": label, "system": system_prompt, "user": user_message, "json_mode": json_mode})
        content = self.responses.get(label, self.default_response)
        failure = self.failures.get(label)

        hold = self._holds.pop(label, None)
        if hold is not None:
            await hold.wait()
        else:
            await asyncio.sleep(0)

        if failure is not None:
            raise failure
        return LLMCallResult(content=content, model_id=self._model_id, input_tokens=10, output_tokens=20, duration_ms=5)

    async def stream(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int,
        temperature: float = 0.7,
        label: str = "",
    ) -> AsyncIterator[str]:
        self.calls.append({"label": label, "system": system_prompt, "user": user_message, "json_mode": False})
        content = self.responses.get(label, self.default_response)
        failure = self.failures.get(label)
        if failure is not None:
            raise failure
        for start in range(0, len(content), 40):
            yield content[start:start + 40]


class RecordingFactory:
    """Backend factory that remembers which credential each dispatch used."""

    def __init__(self, backend: FakeBackend):
        self.backend = backend
        self.credentials: list[Optional[str]] = []

    def __call__(self, api_key: Optional[str] = None) -> FakeBackend:
        self.credentials.append(api_key)
        return self.backend


@pytest.fixture
def framework_registry():
    registry = FrameworkRegistry()
    registry.load()
    return registry


@pytest.fixture
def corpus_registry():
    return CorpusRegistry()


@pytest.fixture
def composer():
    return PromptComposer()


@pytest.fixture
def store():
    return FakeVectorStore()


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def retriever(store, embedder, corpus_registry):
    return PassageRetriever(store, embedder, corpora=corpus_registry, collection="test-collection")


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def backend_factory(backend):
    return RecordingFactory(backend)


@pytest.fixture
def clock():
    return FakeClock()
