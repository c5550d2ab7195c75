"""
Intermediate and response types.

Extraction types are plain dataclasses (they never hit storage); search
responses are pydantic models so callers can serialize them directly.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from fact_memory.models.fact import FactKind


ENTITY_TYPES = ("person", "organization", "location", "date", "other")


@dataclass
class ExtractedEntity:
    """A named entity found in the source text."""

    name: str
    type: str = "other"


@dataclass
class ExtractedFact:
    """A candidate fact produced by extraction, before it is stored."""

    content: str
    is_static: bool = False
    confidence: float = 0.8
    kind: FactKind = FactKind.FACT
    expires_at: datetime | None = None
    entities: list[str] = field(default_factory=list)
    speaker: str | None = None


@dataclass
class ExtractionResult:
    """Everything one extraction pass produces."""

    facts: list[ExtractedFact] = field(default_factory=list)
    title: str = ""
    summary: str = ""
    entities: list[ExtractedEntity] = field(default_factory=list)

    @property
    def raw_entities(self) -> list[str]:
        return [entity.name for entity in self.entities]


class SearchResult(BaseModel):
    """A single ranked fact returned from search."""

    id: str
    memory: str = Field(description="The fact content")
    similarity: float = Field(description="Final adjusted score")
    is_static: bool = False
    kind: str = FactKind.FACT.value
    is_latest: bool = True
    version: int = 1
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SearchResponse(BaseModel):
    """Results of one search call."""

    results: list[SearchResult] = Field(default_factory=list)
    total: int = 0
    timing_ms: float = 0.0
