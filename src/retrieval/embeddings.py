"""Embedding generation via the OpenAI embeddings API."""

import logging
from typing import Optional, Protocol, runtime_checkable

from openai import AsyncOpenAI

from src import config
from src.llm.client import get_openai_client
from src.llm.errors import classify_provider_error

logger = logging.getLogger(__name__)

EMBEDDING_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}
DEFAULT_DIMENSION = 1536

# Model input limit is ~8191 tokens; rough estimate 1 token = 4 chars
MAX_INPUT_CHARS = 30000


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding providers."""

    @property
    def dimension(self) -> int: ...

    async def embed(self, text: str, credential: Optional[str] = None) -> list[float]: ...

    async def embed_many(self, texts: list[str], credential: Optional[str] = None) -> list[list[float]]: ...


class OpenAIEmbeddingProvider:
    """Embeds text with an OpenAI embedding model.

    The client is created on first use so the service can start (and serve
    framework metadata) without an embedding key configured.
    """

    def __init__(
        self,
        model: str = config.EMBEDDING_MODEL,
        api_key: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self._model = model
        self._api_key = api_key
        self._client = client

    @property
    def model(self) -> str:
        return self._model

    @property
    def dimension(self) -> int:
        return EMBEDDING_DIMENSIONS.get(self._model, DEFAULT_DIMENSION)

    def _get_client(self, credential: Optional[str] = None) -> AsyncOpenAI:
        # A caller credential gets its own client; the shared one keeps the server key
        if credential:
            return get_openai_client(credential)
        if self._client is None:
            self._client = get_openai_client(self._api_key)
        return self._client

    async def embed(self, text: str, credential: Optional[str] = None) -> list[float]:
        """Embed a single text.

        Args:
            text: Text to embed
            credential: Caller-supplied OpenAI key; overrides the server key

        Raises:
            ValueError: If text is empty
            ProviderError: If the embedding call fails (CredentialError when no key works)
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")
        vectors = await self.embed_many([text], credential)
        return vectors[0]

    async def embed_many(self, texts: list[str], credential: Optional[str] = None) -> list[list[float]]:
        """Embed a batch of texts in one request, preserving order."""
        if not texts:
            return []
        inputs = [t[:MAX_INPUT_CHARS] for t in texts]
        client = self._get_client(credential)
        try:
            response = await client.embeddings.create(model=self._model, input=inputs)
        except Exception as e:
            raise classify_provider_error(e) from e

        vectors = [item.embedding for item in sorted(response.data, key=lambda d: d.index)]
        logger.debug(f"Embedded {len(vectors)} texts with {self._model}")
        return vectors
