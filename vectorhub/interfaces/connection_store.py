"""Registry interfaces for webhook subscriptions and MCP server entries.

Both registries expose the same small CRUD surface.  Implementations live
in ``vectorhub/providers/store/``: an in-memory one (process lifetime) and an
aiosqlite-backed one.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from vectorhub.models.webhooks import (
    McpConnection,
    McpConnectionCreate,
    McpConnectionUpdate,
    WebhookConnection,
    WebhookCreate,
    WebhookUpdate,
)


class IWebhookStore(ABC):
    """Persistence contract for :class:`WebhookConnection` entries."""

    async def initialize(self) -> None:
        """Prepare backing storage.  No-op unless the store persists."""

    @abstractmethod
    async def list(self) -> list[WebhookConnection]:
        """Return all registered webhooks, oldest first."""

    @abstractmethod
    async def create(self, data: WebhookCreate) -> WebhookConnection:
        """Register a webhook.  New entries start ``connected``."""

    @abstractmethod
    async def get(self, webhook_id: str) -> WebhookConnection | None:
        """Return the webhook with *webhook_id*, or ``None``."""

    @abstractmethod
    async def update(self, webhook_id: str, updates: WebhookUpdate) -> WebhookConnection | None:
        """Merge the non-``None`` fields of *updates*; ``None`` if not found."""

    @abstractmethod
    async def delete(self, webhook_id: str) -> bool:
        """Remove a webhook.  Returns ``True`` when something was deleted."""


class IMcpStore(ABC):
    """Persistence contract for :class:`McpConnection` entries."""

    async def initialize(self) -> None:
        """Prepare backing storage.  No-op unless the store persists."""

    @abstractmethod
    async def list(self) -> list[McpConnection]:
        """Return all registered MCP servers, oldest first."""

    @abstractmethod
    async def create(self, data: McpConnectionCreate) -> McpConnection:
        """Register an MCP server.  New entries start ``connected``."""

    @abstractmethod
    async def get(self, connection_id: str) -> McpConnection | None:
        """Return the entry with *connection_id*, or ``None``."""

    @abstractmethod
    async def update(
        self, connection_id: str, updates: McpConnectionUpdate
    ) -> McpConnection | None:
        """Merge the non-``None`` fields of *updates*; ``None`` if not found."""

    @abstractmethod
    async def delete(self, connection_id: str) -> bool:
        """Remove an entry.  Returns ``True`` when something was deleted."""
