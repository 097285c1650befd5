"""Pydantic request/response schemas for the VectorHub API.

Domain models (documents, collections, registry entries) are returned as-is
from ``vectorhub.models``; this module only holds the request envelopes and
the response shapes that exist purely for HTTP.

Every schema inherits :class:`CamelModel`, so JSON bodies are camelCase
(``topK``, ``chunkSize``) while Python code stays snake_case.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import Field

from vectorhub.models.connections import CamelModel
from vectorhub.models.documents import (
    DocumentUpdate,
    IngestionResult,
    NewDocument,
    SearchQuery,
)
from vectorhub.models.webhooks import ShortLabel, WebhookDeliveryResult

_MAX_DOCUMENTS_PER_REQUEST = 1000


class ErrorResponse(CamelModel):
    """Standard error response body."""

    code: str
    message: str
    details: dict[str, list[str]] | None = None


class OkResponse(CamelModel):
    ok: bool = True


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class DatabaseCheck(CamelModel):
    status: Literal["up", "down"]
    latency_ms: float | None = None
    message: str | None = None


class MemoryCheck(CamelModel):
    status: Literal["ok", "warning", "critical"]
    rss_mb: float


class HealthChecks(CamelModel):
    database: DatabaseCheck
    memory: MemoryCheck


class HealthResponse(CamelModel):
    """Application health: database reachability and process memory."""

    status: Literal["healthy", "degraded", "unhealthy"]
    timestamp: datetime
    version: str
    uptime: int = Field(description="Seconds since startup")
    checks: HealthChecks


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class AddDocumentsRequest(CamelModel):
    collection: str = Field(min_length=1)
    documents: list[NewDocument] = Field(min_length=1, max_length=_MAX_DOCUMENTS_PER_REQUEST)


class UpdateDocumentsRequest(CamelModel):
    collection: str = Field(min_length=1)
    documents: list[DocumentUpdate] = Field(min_length=1, max_length=_MAX_DOCUMENTS_PER_REQUEST)


class DeleteDocumentsRequest(CamelModel):
    collection: str = Field(min_length=1)
    ids: list[str] = Field(min_length=1, max_length=_MAX_DOCUMENTS_PER_REQUEST)


class DocumentIdsResponse(CamelModel):
    ids: list[str]


class CountResponse(CamelModel):
    collection: str
    count: int


class UploadTextRequest(CamelModel):
    """Raw text to chunk, embed and store in one call."""

    collection: str = Field(min_length=1)
    content: str = Field(min_length=1)
    title: str | None = Field(default=None, max_length=256)
    source: str | None = Field(default=None, max_length=512)
    chunk_size: int | None = Field(default=None, ge=1)
    chunk_overlap: int | None = Field(default=None, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)


class SyncDocumentsRequest(CamelModel):
    """Upsert a batch: stored ids are updated, the rest inserted."""

    collection: str = Field(min_length=1)
    documents: list[NewDocument] = Field(min_length=1, max_length=_MAX_DOCUMENTS_PER_REQUEST)
    connection_id: str | None = None


# ---------------------------------------------------------------------------
# Scraping
# ---------------------------------------------------------------------------


class ScrapeRequest(CamelModel):
    """A page to scrape; with ``collection`` set the page is also ingested."""

    url: str = Field(min_length=1, max_length=2048, pattern=r"^https?://\S+$")
    formats: list[str] | None = Field(default=None, min_length=1)
    only_main_content: bool = True
    collection: str | None = Field(default=None, min_length=1)
    title: str | None = Field(default=None, max_length=256)
    chunk_size: int | None = Field(default=None, ge=1)
    chunk_overlap: int | None = Field(default=None, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ScrapeResponse(CamelModel):
    url: str
    title: str | None = None
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    ingestion: IngestionResult | None = None


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class SearchRequest(CamelModel):
    collection: str = Field(min_length=1)
    query: SearchQuery


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------


class BroadcastRequest(CamelModel):
    event_type: ShortLabel
    data: dict[str, Any] = Field(default_factory=dict)


class BroadcastResponse(CamelModel):
    event_type: str
    delivered: int
    failed: int
    results: dict[str, WebhookDeliveryResult] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Integrations
# ---------------------------------------------------------------------------


class SaveKeyRequest(CamelModel):
    key: str = Field(min_length=1, max_length=128)
    value: str = Field(min_length=1)


class DeleteKeyRequest(CamelModel):
    key: str = Field(min_length=1, max_length=128)


class KeySavedResponse(CamelModel):
    ok: bool = True
    key: str
