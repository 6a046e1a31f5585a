"""Two-stage passage retrieval.

The primary corpus must return at least one passage or the run aborts;
the secondary corpus is best-effort and degrades to an empty list.
"""

import logging
import re
from collections import OrderedDict
from typing import Any, Optional

from src import config
from src.llm.errors import CredentialError
from src.retrieval.corpora import CorpusRegistry, get_corpus_registry
from src.retrieval.embeddings import EmbeddingProvider
from src.retrieval.schemas import Citation, CorpusSpec, RetrievalResult, SearchHit
from src.retrieval.vector_store import VectorStore

logger = logging.getLogger(__name__)

SECTION_PATTERN = re.compile(r"(?:§|section)\s*(\d+(?:\.\d+)*)", re.IGNORECASE)
LEADING_NUMBERING = re.compile(r"^\d+\.\s+")


class RetrievalError(RuntimeError):
    """The vector store or embedding provider failed during a search."""

    @property
    def credential_rejected(self) -> bool:
        """True when the embedding provider had no usable key."""
        return isinstance(self.__cause__, CredentialError)


class NoPassagesFound(RetrievalError):
    """A required corpus returned zero passages for the query."""


def extract_section(*candidates: Optional[str]) -> Optional[str]:
    """Find a section reference like '§ 43' or 'section 6.54' in the first candidate that has one."""
    for candidate in candidates:
        if not candidate:
            continue
        match = SECTION_PATTERN.search(candidate)
        if match:
            return match.group(1)
    return None


def shape_citation(hit: SearchHit, corpus: CorpusSpec, index: int) -> Citation:
    """Convert a raw search hit into a Citation for the given corpus."""
    payload = hit.payload
    metadata: dict[str, Any] = payload.get("metadata") or {}

    text = str(payload.get("content") or payload.get("text") or "").strip()
    if corpus.clean_text:
        text = LEADING_NUMBERING.sub("", text)

    source = metadata.get("source") or metadata.get("title") or corpus.default_source
    section = metadata.get("section")
    if section is None:
        section = extract_section(source, text)
    page = metadata.get("page")

    return Citation(
        id=f"{corpus.origin.value}-{index}",
        text=text,
        source=str(source),
        section=str(section) if section is not None else None,
        page=str(page) if page is not None else None,
        score=hit.score,
        origin=corpus.origin,
    )


class PassageRetriever:
    """Searches the primary and secondary corpora for a query.

    Usage:
        retriever = PassageRetriever(store, embedder)
        result = await retriever.retrieve("What is a language game?")
    """

    def __init__(
        self,
        store: VectorStore,
        embedder: EmbeddingProvider,
        corpora: Optional[CorpusRegistry] = None,
        collection: str = config.QDRANT_COLLECTION,
        cache_size: int = 32,
    ):
        self.store = store
        self.embedder = embedder
        self.corpora = corpora or get_corpus_registry()
        self.collection = collection
        self._cache_size = cache_size
        self._embedding_cache: OrderedDict[str, list[float]] = OrderedDict()

    async def _embed_query(self, query: str, credential: Optional[str] = None) -> list[float]:
        """Embed a query, reusing the vector across both retrieval stages."""
        cached = self._embedding_cache.get(query)
        if cached is not None:
            self._embedding_cache.move_to_end(query)
            return cached

        vector = await self.embedder.embed(query, credential)
        self._embedding_cache[query] = vector
        if len(self._embedding_cache) > self._cache_size:
            self._embedding_cache.popitem(last=False)
        return vector

    async def search(
        self,
        corpus: CorpusSpec,
        query: str,
        collection: Optional[str] = None,
        credential: Optional[str] = None,
    ) -> list[Citation]:
        """Search one corpus.

        A caller credential is used for the query embedding in place of the
        server key.

        Returns:
            Citations ordered by descending similarity (possibly empty)

        Raises:
            ValueError: If the query is empty
            RetrievalError: If embedding or the vector search fails; check
                credential_rejected for a missing or refused key
        """
        query = query.strip()
        if not query:
            raise ValueError("Query must not be empty")

        target = collection or self.collection
        try:
            vector = await self._embed_query(query, credential)
            hits = await self.store.search(target, vector, corpus.should, corpus.top_k)
        except Exception as e:
            raise RetrievalError(f"Search of '{corpus.name}' failed: {e}") from e

        citations = [
            shape_citation(hit, corpus, i)
            for i, hit in enumerate(h for h in hits if h.payload.get("content") or h.payload.get("text"))
        ]
        logger.info(f"[{corpus.key}] {len(citations)} passages for query ({len(query)} chars) in {target}")
        return citations

    async def retrieve_primary(
        self, query: str, collection: Optional[str] = None, credential: Optional[str] = None,
    ) -> list[Citation]:
        """Search the primary corpus.

        Raises:
            NoPassagesFound: If the primary corpus has no matching passages
            RetrievalError: If the search itself fails
        """
        corpus = self.corpora.primary
        citations = await self.search(corpus, query, collection, credential)
        if not citations:
            raise NoPassagesFound(
                f"No relevant passages found in {corpus.name}. Try rephrasing your question."
            )
        return citations

    async def retrieve_secondary(
        self, query: str, collection: Optional[str] = None, credential: Optional[str] = None,
    ) -> list[Citation]:
        """Search the secondary corpus. Never raises for search failures; returns [] instead."""
        corpus = self.corpora.secondary
        try:
            citations = await self.search(corpus, query, collection, credential)
        except RetrievalError as e:
            logger.warning(f"[{corpus.key}] Secondary retrieval failed, continuing without it: {e}")
            return []
        if not citations:
            logger.warning(f"[{corpus.key}] No secondary passages found, continuing without them")
        return citations

    async def retrieve(
        self, query: str, collection: Optional[str] = None, credential: Optional[str] = None,
    ) -> RetrievalResult:
        """Run both stages sequentially: primary, then secondary."""
        primary = await self.retrieve_primary(query, collection, credential)
        secondary = await self.retrieve_secondary(query, collection, credential)
        return RetrievalResult(primary=primary, secondary=secondary)
