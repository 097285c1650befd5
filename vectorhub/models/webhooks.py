"""Webhook and MCP registry models, plus delivery / health results."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import ConfigDict, Field

from vectorhub.models.connections import CamelModel, ConnectionStatus

# Event type names emitted by the API layer.
EVENT_DOCUMENT_CREATED = "document.created"
EVENT_DOCUMENT_UPDATED = "document.updated"
EVENT_DOCUMENT_DELETED = "document.deleted"
EVENT_COLLECTION_CREATED = "collection.created"
EVENT_COLLECTION_DELETED = "collection.deleted"
EVENT_WEBHOOK_TEST = "webhook.test"
WILDCARD_EVENT = "*"

ShortLabel = Annotated[str, Field(min_length=1, max_length=64)]


class WebhookConnection(CamelModel):
    """A registered outbound webhook subscription."""

    id: str
    name: str
    url: str
    event_types: list[str] = Field(default_factory=list)
    status: ConnectionStatus = ConnectionStatus.CONNECTED
    last_delivery: datetime | None = None
    secret_configured: bool = False

    def subscribes_to(self, event_type: str) -> bool:
        return event_type in self.event_types or WILDCARD_EVENT in self.event_types


class WebhookCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    url: str = Field(min_length=1, max_length=512, pattern=r"^https?://")
    event_types: list[ShortLabel] = Field(min_length=1, max_length=50)
    secret_configured: bool = False


class WebhookUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    url: str | None = Field(default=None, min_length=1, max_length=512, pattern=r"^https?://")
    event_types: list[ShortLabel] | None = Field(default=None, min_length=1, max_length=50)
    status: ConnectionStatus | None = None
    last_delivery: datetime | None = None
    secret_configured: bool | None = None


class WebhookPayload(CamelModel):
    """The JSON body POSTed to every subscriber of an event."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    timestamp: str
    data: dict[str, Any] = Field(default_factory=dict)


class DeliveryOptions(CamelModel):
    max_retries: int = Field(default=3, ge=1)
    retry_delay_ms: int = Field(default=1000, ge=0)
    timeout_ms: int = Field(default=30000, ge=1)


class WebhookDeliveryResult(CamelModel):
    success: bool
    status_code: int | None = None
    error: str | None = None
    duration_ms: float = 0.0
    attempts: int = 0


class McpConnection(CamelModel):
    """A registered MCP server endpoint (registry entry, not a DB adapter)."""

    id: str
    name: str
    endpoint: str
    status: ConnectionStatus = ConnectionStatus.CONNECTED
    last_sync: datetime | None = None
    tags: list[str] = Field(default_factory=list)


class McpConnectionCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    endpoint: str = Field(min_length=1, max_length=512, pattern=r"^https?://")
    tags: list[ShortLabel] = Field(default_factory=list, max_length=20)


class McpConnectionUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    endpoint: str | None = Field(default=None, min_length=1, max_length=512, pattern=r"^https?://")
    status: ConnectionStatus | None = None
    last_sync: datetime | None = None
    tags: list[ShortLabel] | None = Field(default=None, max_length=20)


class McpServerInfo(CamelModel):
    name: str | None = None
    version: str | None = None
    capabilities: list[str] = Field(default_factory=list)


class McpHealthCheckResult(CamelModel):
    healthy: bool
    latency_ms: float | None = None
    error: str | None = None
    server_info: McpServerInfo | None = None


class McpSyncResult(CamelModel):
    success: bool
    items_synced: int | None = None
    error: str | None = None
    duration_ms: float = 0.0


class ApiKeyEntry(CamelModel):
    """One API key as exposed by the key store (value masked by the API)."""

    id: str
    name: str
    type: str = "api_key"
    provider: str
    key: str
    is_active: bool = True
