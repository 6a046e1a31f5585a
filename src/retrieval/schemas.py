"""Schemas for passage retrieval.

Citations are the unit every other component exchanges: the retriever
produces them, interpretation jobs embed them in prompts, and the
aggregator unions them into the run snapshot.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for wire-facing models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CitationOrigin(str, Enum):
    """Which corpus a citation was retrieved from."""
    PRIMARY = "primary"
    SECONDARY = "secondary"


class Citation(CamelModel):
    """A retrieved passage plus provenance.

    Provenance is carried by `origin`; the id prefix is only there to keep
    ids unique across corpora within one run.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(..., description="Ordinal id scoped to its corpus, e.g. 'primary-0'")
    text: str
    source: str = Field(default="Unknown source")
    section: Optional[str] = None
    page: Optional[str] = None
    score: Optional[float] = None
    origin: CitationOrigin = CitationOrigin.PRIMARY


class SearchHit(BaseModel):
    """One raw vector-store result."""

    id: str
    score: float
    payload: dict[str, Any] = Field(default_factory=dict)


class FilterClause(BaseModel):
    """A single metadata condition: exact value or any-of match."""

    key: str = Field(..., description="Payload path, e.g. 'metadata.namespace'")
    value: Optional[str] = None
    any: Optional[list[str]] = None


class CorpusSpec(BaseModel):
    """A logical corpus: a metadata-filtered view of the shared collection."""

    key: str = Field(..., description="URL-safe corpus key, e.g. 'wittgenstein'")
    name: str
    origin: CitationOrigin
    top_k: int = Field(default=5, ge=1)
    required: bool = Field(
        default=False,
        description="Zero hits on a required corpus aborts the run",
    )
    clean_text: bool = Field(
        default=False,
        description="Strip leading paragraph numbering ('12. ') from passage text",
    )
    default_source: str = "Unknown source"
    should: list[FilterClause] = Field(
        default_factory=list,
        description="Disjunctive metadata conditions (any must match)",
    )


class RetrievalResult(BaseModel):
    """Both retrieval stages for one query."""

    primary: list[Citation]
    secondary: list[Citation] = Field(default_factory=list)


class SearchRequest(CamelModel):
    query: str = Field(..., min_length=1)
    collection_name: Optional[str] = None


class SearchResponse(CamelModel):
    corpus: str
    query: str
    passages: list[Citation]
    count: int
    timestamp: datetime
