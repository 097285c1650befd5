"""In-memory webhook and MCP registries.

Entries live for the lifetime of the process.  Each store owns an
``asyncio.Lock`` so concurrent requests never interleave a read-modify-write.
"""

from __future__ import annotations

import asyncio
import uuid

import structlog

from vectorhub.interfaces.connection_store import IMcpStore, IWebhookStore
from vectorhub.models.connections import ConnectionStatus
from vectorhub.models.webhooks import (
    McpConnection,
    McpConnectionCreate,
    McpConnectionUpdate,
    WebhookConnection,
    WebhookCreate,
    WebhookUpdate,
)

logger = structlog.get_logger(logger_name=__name__)


class MemoryWebhookStore(IWebhookStore):
    """Process-local webhook registry."""

    def __init__(self) -> None:
        self._items: dict[str, WebhookConnection] = {}
        self._lock = asyncio.Lock()

    async def list(self) -> list[WebhookConnection]:
        return list(self._items.values())

    async def create(self, data: WebhookCreate) -> WebhookConnection:
        webhook = WebhookConnection(
            id=str(uuid.uuid4()),
            name=data.name,
            url=data.url,
            event_types=list(data.event_types),
            status=ConnectionStatus.CONNECTED,
            secret_configured=data.secret_configured,
        )
        async with self._lock:
            self._items[webhook.id] = webhook
        logger.info("webhook_registered", webhook_id=webhook.id, url=webhook.url)
        return webhook

    async def get(self, webhook_id: str) -> WebhookConnection | None:
        return self._items.get(webhook_id)

    async def update(self, webhook_id: str, updates: WebhookUpdate) -> WebhookConnection | None:
        async with self._lock:
            current = self._items.get(webhook_id)
            if current is None:
                return None
            merged = current.model_copy(update=updates.model_dump(exclude_none=True))
            self._items[webhook_id] = merged
        return merged

    async def delete(self, webhook_id: str) -> bool:
        async with self._lock:
            removed = self._items.pop(webhook_id, None) is not None
        if removed:
            logger.info("webhook_deleted", webhook_id=webhook_id)
        return removed


class MemoryMcpStore(IMcpStore):
    """Process-local MCP server registry."""

    def __init__(self) -> None:
        self._items: dict[str, McpConnection] = {}
        self._lock = asyncio.Lock()

    async def list(self) -> list[McpConnection]:
        return list(self._items.values())

    async def create(self, data: McpConnectionCreate) -> McpConnection:
        connection = McpConnection(
            id=str(uuid.uuid4()),
            name=data.name,
            endpoint=data.endpoint,
            status=ConnectionStatus.CONNECTED,
            tags=list(data.tags),
        )
        async with self._lock:
            self._items[connection.id] = connection
        logger.info("mcp_connection_registered", connection_id=connection.id)
        return connection

    async def get(self, connection_id: str) -> McpConnection | None:
        return self._items.get(connection_id)

    async def update(
        self, connection_id: str, updates: McpConnectionUpdate
    ) -> McpConnection | None:
        async with self._lock:
            current = self._items.get(connection_id)
            if current is None:
                return None
            merged = current.model_copy(update=updates.model_dump(exclude_none=True))
            self._items[connection_id] = merged
        return merged

    async def delete(self, connection_id: str) -> bool:
        async with self._lock:
            return self._items.pop(connection_id, None) is not None
