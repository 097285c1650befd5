"""SQLite-backed webhook and MCP registries.

Persists registry entries to a local SQLite database (``data/vectorhub.db``
by default) using ``aiosqlite`` for async I/O.  List-valued fields are stored
as JSON text.  Call :meth:`initialize` once at startup to create the tables.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
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

_DEFAULT_DB_PATH = Path("data/vectorhub.db")

_CREATE_WEBHOOKS_SQL = """\
CREATE TABLE IF NOT EXISTS webhooks (
    id                TEXT PRIMARY KEY,
    name              TEXT    NOT NULL,
    url               TEXT    NOT NULL,
    event_types       TEXT    NOT NULL DEFAULT '[]',
    status            TEXT    NOT NULL DEFAULT 'connected',
    last_delivery     TEXT,
    secret_configured INTEGER NOT NULL DEFAULT 0,
    created_at        TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_CREATE_MCP_SQL = """\
CREATE TABLE IF NOT EXISTS mcp_connections (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    endpoint    TEXT NOT NULL,
    status      TEXT NOT NULL DEFAULT 'connected',
    last_sync   TEXT,
    tags        TEXT NOT NULL DEFAULT '[]',
    created_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_INSERT_WEBHOOK_SQL = """\
INSERT INTO webhooks (id, name, url, event_types, status, last_delivery, secret_configured)
VALUES (?, ?, ?, ?, ?, ?, ?);
"""

_UPDATE_WEBHOOK_SQL = """\
UPDATE webhooks
SET name = ?, url = ?, event_types = ?, status = ?, last_delivery = ?, secret_configured = ?
WHERE id = ?;
"""

_INSERT_MCP_SQL = """\
INSERT INTO mcp_connections (id, name, endpoint, status, last_sync, tags)
VALUES (?, ?, ?, ?, ?, ?);
"""

_UPDATE_MCP_SQL = """\
UPDATE mcp_connections
SET name = ?, endpoint = ?, status = ?, last_sync = ?, tags = ?
WHERE id = ?;
"""


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


async def _create_tables(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(str(db_path)) as db:
        await db.execute(_CREATE_WEBHOOKS_SQL)
        await db.execute(_CREATE_MCP_SQL)
        await db.commit()


class SQLiteWebhookStore(IWebhookStore):
    """SQLite-backed webhook registry."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the registry tables if they don't exist."""
        await _create_tables(self._db_path)
        logger.info("webhook_store_initialized", path=str(self._db_path))

    @staticmethod
    def _row_to_model(row: Any) -> WebhookConnection:
        return WebhookConnection(
            id=row["id"],
            name=row["name"],
            url=row["url"],
            event_types=json.loads(row["event_types"]),
            status=ConnectionStatus(row["status"]),
            last_delivery=row["last_delivery"],
            secret_configured=bool(row["secret_configured"]),
        )

    async def list(self) -> list[WebhookConnection]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM webhooks ORDER BY created_at, rowid")
            rows = await cursor.fetchall()
        return [self._row_to_model(r) for r in rows]

    async def create(self, data: WebhookCreate) -> WebhookConnection:
        webhook = WebhookConnection(
            id=str(uuid.uuid4()),
            name=data.name,
            url=data.url,
            event_types=list(data.event_types),
            status=ConnectionStatus.CONNECTED,
            secret_configured=data.secret_configured,
        )
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                _INSERT_WEBHOOK_SQL,
                (
                    webhook.id,
                    webhook.name,
                    webhook.url,
                    json.dumps(webhook.event_types),
                    webhook.status.value,
                    None,
                    int(webhook.secret_configured),
                ),
            )
            await db.commit()
        logger.info("webhook_registered", webhook_id=webhook.id, url=webhook.url)
        return webhook

    async def get(self, webhook_id: str) -> WebhookConnection | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM webhooks WHERE id = ?", (webhook_id,))
            row = await cursor.fetchone()
        return self._row_to_model(row) if row else None

    async def update(self, webhook_id: str, updates: WebhookUpdate) -> WebhookConnection | None:
        current = await self.get(webhook_id)
        if current is None:
            return None
        merged = current.model_copy(update=updates.model_dump(exclude_none=True))
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                _UPDATE_WEBHOOK_SQL,
                (
                    merged.name,
                    merged.url,
                    json.dumps(merged.event_types),
                    ConnectionStatus(merged.status).value,
                    _iso(merged.last_delivery),
                    int(merged.secret_configured),
                    webhook_id,
                ),
            )
            await db.commit()
        return merged

    async def delete(self, webhook_id: str) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("DELETE FROM webhooks WHERE id = ?", (webhook_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("webhook_deleted", webhook_id=webhook_id)
        return deleted


class SQLiteMcpStore(IMcpStore):
    """SQLite-backed MCP server registry."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        await _create_tables(self._db_path)
        logger.info("mcp_store_initialized", path=str(self._db_path))

    @staticmethod
    def _row_to_model(row: Any) -> McpConnection:
        return McpConnection(
            id=row["id"],
            name=row["name"],
            endpoint=row["endpoint"],
            status=ConnectionStatus(row["status"]),
            last_sync=row["last_sync"],
            tags=json.loads(row["tags"]),
        )

    async def list(self) -> list[McpConnection]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM mcp_connections ORDER BY created_at, rowid")
            rows = await cursor.fetchall()
        return [self._row_to_model(r) for r in rows]

    async def create(self, data: McpConnectionCreate) -> McpConnection:
        connection = McpConnection(
            id=str(uuid.uuid4()),
            name=data.name,
            endpoint=data.endpoint,
            status=ConnectionStatus.CONNECTED,
            tags=list(data.tags),
        )
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                _INSERT_MCP_SQL,
                (
                    connection.id,
                    connection.name,
                    connection.endpoint,
                    connection.status.value,
                    None,
                    json.dumps(connection.tags),
                ),
            )
            await db.commit()
        logger.info("mcp_connection_registered", connection_id=connection.id)
        return connection

    async def get(self, connection_id: str) -> McpConnection | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM mcp_connections WHERE id = ?", (connection_id,)
            )
            row = await cursor.fetchone()
        return self._row_to_model(row) if row else None

    async def update(
        self, connection_id: str, updates: McpConnectionUpdate
    ) -> McpConnection | None:
        current = await self.get(connection_id)
        if current is None:
            return None
        merged = current.model_copy(update=updates.model_dump(exclude_none=True))
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                _UPDATE_MCP_SQL,
                (
                    merged.name,
                    merged.endpoint,
                    ConnectionStatus(merged.status).value,
                    _iso(merged.last_sync),
                    json.dumps(merged.tags),
                    connection_id,
                ),
            )
            await db.commit()
        return merged

    async def delete(self, connection_id: str) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "DELETE FROM mcp_connections WHERE id = ?", (connection_id,)
            )
            await db.commit()
            return cursor.rowcount > 0
