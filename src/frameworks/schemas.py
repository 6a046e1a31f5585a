"""Framework definition schemas.

A framework is a named interpretative lens. Definitions are static: they
are loaded once at startup and never change while the service runs.
"""

from enum import Enum
from typing import Optional

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.retrieval.schemas import CamelModel


class FrameworkKind(str, Enum):
    """How a framework's job consumes retrieved passages."""
    STANDARD = "standard"  # primary passages only
    SYNTHESIS = "synthesis"  # primary and secondary passages


class KeyAuthor(CamelModel):
    name: str
    description: str
    notable_works: list[str] = Field(default_factory=list)
    link: Optional[str] = None


class KeyPublication(CamelModel):
    title: str
    author: str
    year: str
    description: str


class FrameworkDefinition(CamelModel):
    """Static description of one interpretative framework."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(..., description="Stable framework id, e.g. 'resolute'")
    name: str = Field(..., description="Display name, e.g. 'Resolute Reading'")
    description: str = Field(..., description="One-line summary")
    long_description: str = ""
    kind: FrameworkKind = FrameworkKind.STANDARD
    stance: Optional[str] = Field(
        default=None,
        description="Interpretive posture injected into the generation prompt",
    )
    key_authors: list[KeyAuthor] = Field(default_factory=list)
    key_publications: list[KeyPublication] = Field(default_factory=list)


class FrameworkSummary(CamelModel):
    """Lightweight framework listing entry."""

    id: str
    name: str
    description: str
    kind: FrameworkKind
