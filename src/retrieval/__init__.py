"""Passage retrieval over the shared vector collection."""

from src.retrieval.retriever import NoPassagesFound, PassageRetriever, RetrievalError
from src.retrieval.schemas import Citation, CitationOrigin, CorpusSpec, RetrievalResult

__all__ = [
    "Citation",
    "CitationOrigin",
    "CorpusSpec",
    "NoPassagesFound",
    "PassageRetriever",
    "RetrievalError",
    "RetrievalResult",
]
