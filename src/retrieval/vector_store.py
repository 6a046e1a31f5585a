"""Vector store access over Qdrant.

The rest of the service only sees the VectorStore protocol; the Qdrant
implementation translates corpus filter clauses into Qdrant filters and
scored points into SearchHits.
"""

import logging
from typing import Any, Optional, Protocol, runtime_checkable

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchAny,
    MatchValue,
    PointStruct,
    VectorParams,
)

from src import config
from src.retrieval.schemas import FilterClause, SearchHit

logger = logging.getLogger(__name__)


@runtime_checkable
class VectorStore(Protocol):
    """Protocol for vector store implementations."""

    async def search(
        self,
        collection: str,
        vector: list[float],
        should: list[FilterClause],
        top_k: int,
    ) -> list[SearchHit]: ...

    async def upsert(self, collection: str, points: list[dict[str, Any]]) -> None: ...

    async def list_collections(self) -> list[str]: ...

    async def create_collection(self, collection: str, dimension: int) -> None: ...

    async def ensure_collection(self, collection: str, dimension: int) -> bool: ...


def build_filter(should: list[FilterClause]) -> Optional[Filter]:
    """Translate disjunctive filter clauses into a Qdrant Filter."""
    if not should:
        return None

    conditions = []
    for clause in should:
        if clause.any:
            conditions.append(FieldCondition(key=clause.key, match=MatchAny(any=clause.any)))
        elif clause.value is not None:
            conditions.append(FieldCondition(key=clause.key, match=MatchValue(value=clause.value)))
        else:
            logger.warning(f"Ignoring filter clause with no match value: {clause.key}")
    return Filter(should=conditions) if conditions else None


class QdrantVectorStore:
    """Async Qdrant-backed vector store."""

    def __init__(
        self,
        url: str = config.QDRANT_URL,
        api_key: Optional[str] = config.QDRANT_API_KEY,
        timeout: int = config.QDRANT_TIMEOUT_SECONDS,
        client: Optional[AsyncQdrantClient] = None,
    ):
        self._client = client or AsyncQdrantClient(url=url, api_key=api_key, timeout=timeout)

    async def search(
        self,
        collection: str,
        vector: list[float],
        should: list[FilterClause],
        top_k: int,
    ) -> list[SearchHit]:
        """Return the top_k nearest points matching any of the clauses."""
        results = await self._client.query_points(
            collection_name=collection,
            query=vector,
            query_filter=build_filter(should),
            limit=top_k,
            with_payload=True,
        )
        return [
            SearchHit(id=str(point.id), score=point.score, payload=point.payload or {})
            for point in results.points
        ]

    async def upsert(self, collection: str, points: list[dict[str, Any]]) -> None:
        """Insert or replace points given as {id, vector, payload} dicts."""
        await self._client.upsert(
            collection_name=collection,
            points=[
                PointStruct(id=p["id"], vector=p["vector"], payload=p.get("payload", {}))
                for p in points
            ],
            wait=True,
        )
        logger.info(f"Upserted {len(points)} points into {collection}")

    async def list_collections(self) -> list[str]:
        response = await self._client.get_collections()
        return [c.name for c in response.collections]

    async def create_collection(self, collection: str, dimension: int) -> None:
        """Create a cosine-distance collection of the given dimension."""
        await self._client.create_collection(
            collection_name=collection,
            vectors_config=VectorParams(size=dimension, distance=Distance.COSINE),
        )
        logger.info(f"Created collection {collection} (dimension={dimension}, cosine)")

    async def ensure_collection(self, collection: str, dimension: int) -> bool:
        """Create the collection if it does not exist.

        Returns:
            True if the collection was created
        """
        if collection in await self.list_collections():
            return False
        await self.create_collection(collection, dimension)
        return True

    async def close(self) -> None:
        await self._client.close()
