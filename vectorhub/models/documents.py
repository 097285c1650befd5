"""Normalized document, collection and search models.

Every adapter converts its backend's native shapes into these models so the
API layer never has to know which database answered.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import ConfigDict, Field, model_validator

from vectorhub.models.connections import CamelModel, DistanceMetric

COLLECTION_NAME_PATTERN = r"^[a-zA-Z][a-zA-Z0-9_-]*$"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VectorDocument(CamelModel):
    """A stored unit of text with optional embedding and metadata.

    Backends may hold documents with empty content (embedding-only rows), so
    ``content`` is not length-checked here; inbound documents use
    :class:`NewDocument`.
    """

    id: str | None = None
    content: str = ""
    embedding: list[float] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class NewDocument(VectorDocument):
    """A document submitted for insertion; content must be non-empty."""

    content: str = Field(min_length=1)


class DocumentUpdate(CamelModel):
    """Partial update for one stored document; unset fields are left untouched."""

    id: str = Field(min_length=1)
    content: str | None = Field(default=None, min_length=1)
    embedding: list[float] | None = None
    metadata: dict[str, Any] | None = None

    def changes(self) -> dict[str, Any]:
        """Return the fields the caller actually supplied, excluding ``id``."""
        return self.model_dump(exclude_unset=True, exclude_none=True, exclude={"id"})



class CollectionInfo(CamelModel):
    name: str
    document_count: int = 0
    dimensions: int = 0
    distance_metric: DistanceMetric = DistanceMetric.COSINE


class CreateCollectionConfig(CamelModel):
    name: str = Field(min_length=1, max_length=64, pattern=COLLECTION_NAME_PATTERN)
    description: str | None = Field(default=None, max_length=500)
    dimensions: int = Field(ge=1, le=10000)
    distance_metric: DistanceMetric = DistanceMetric.COSINE
    index_type: str | None = Field(default=None, pattern=r"^(hnsw|flat|ivf)$")


class UpdateCollectionConfig(CamelModel):
    description: str | None = Field(default=None, max_length=500)
    index_type: str | None = Field(default=None, pattern=r"^(hnsw|flat|ivf)$")
    metadata: dict[str, Any] | None = None


class CollectionStats(CamelModel):
    vector_count: int = 0
    index_size: int = 0
    last_updated: datetime = Field(default_factory=_utcnow)


class SearchQuery(CamelModel):
    """A similarity or keyword query.

    At least one of ``vector`` and ``text`` must be present.  When only
    ``text`` is given, callers may embed it first; adapters receiving a
    text-only query run their keyword search.
    """

    vector: list[float] | None = None
    text: str | None = None
    top_k: int = Field(default=10, ge=1, le=100)
    min_score: float = Field(default=0.0, ge=0.0, le=1.0)
    filter: dict[str, Any] | None = None
    include_metadata: bool = True
    include_content: bool = True

    @model_validator(mode="after")
    def _require_vector_or_text(self) -> SearchQuery:
        if not self.vector and not (self.text and self.text.strip()):
            raise ValueError("Either vector or text must be provided")
        return self


class SearchResult(CamelModel):
    id: str
    score: float
    content: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class TestConnectionResult(CamelModel):
    __test__ = False  # not a pytest test class

    success: bool
    message: str


class IngestionResult(CamelModel):
    """Outcome of chunking, embedding and storing one text."""

    model_config = ConfigDict(frozen=True)

    collection: str
    ids: list[str] = Field(default_factory=list)
    chunks_created: int = 0
    embedded: int = Field(default=0, description="Chunks stored with a vector.")
    duration_ms: float = 0.0


class DocumentSyncResult(CamelModel):
    """Outcome of reconciling a batch of documents with a collection."""

    model_config = ConfigDict(frozen=True)

    collection: str
    connection_id: str | None = None
    synced_count: int = 0
    synced_ids: list[str] = Field(default_factory=list)
    created_ids: list[str] = Field(default_factory=list)
    updated_ids: list[str] = Field(default_factory=list)
    synced_at: datetime = Field(default_factory=_utcnow)
