"""Health checks and sync for registered MCP server endpoints.

These operate on registry entries (:class:`McpConnection`), not on MCP
vector-database connections; they answer "is this server up?" for the
connections screen and keep each entry's status and ``last_sync`` current.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone

import httpx
import structlog

from vectorhub.interfaces.connection_store import IMcpStore
from vectorhub.models.connections import ConnectionStatus
from vectorhub.models.webhooks import (
    McpConnection,
    McpConnectionUpdate,
    McpHealthCheckResult,
    McpServerInfo,
    McpSyncResult,
)

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_HEALTH_TIMEOUT_MS = 10000
SYNC_HEALTH_TIMEOUT_MS = 5000

_HEALTH_HEADERS = {"Accept": "application/json", "User-Agent": "VectorHub/1.0"}


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def status_from_health(result: McpHealthCheckResult) -> ConnectionStatus:
    return ConnectionStatus.CONNECTED if result.healthy else ConnectionStatus.ERROR


class McpHealthService:
    """Checks MCP endpoints over HTTP and records results in the registry.

    Parameters
    ----------
    http_client:
        Shared ``httpx.AsyncClient``.
    store:
        MCP registry; when given, :meth:`check_and_record` and
        :meth:`sync_and_record` persist status changes.
    """

    def __init__(self, http_client: httpx.AsyncClient, store: IMcpStore | None = None) -> None:
        self._http = http_client
        self._store = store

    async def check_mcp_health(
        self, connection: McpConnection, timeout_ms: int = DEFAULT_HEALTH_TIMEOUT_MS
    ) -> McpHealthCheckResult:
        """GET the endpoint and report reachability, latency and server info."""
        start = time.perf_counter()
        try:
            response = await self._http.get(
                connection.endpoint, headers=_HEALTH_HEADERS, timeout=timeout_ms / 1000
            )
        except httpx.TimeoutException:
            return self._failed(connection, start, f"Connection timeout after {timeout_ms}ms")
        except httpx.HTTPError as exc:
            return self._failed(connection, start, str(exc) or type(exc).__name__)

        latency = _elapsed_ms(start)
        if not response.is_success:
            return McpHealthCheckResult(
                healthy=False,
                latency_ms=latency,
                error=f"HTTP {response.status_code}: {response.reason_phrase}",
            )

        server_info: McpServerInfo | None = None
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            capabilities = data.get("capabilities")
            server_info = McpServerInfo(
                name=data.get("name") or data.get("serverName"),
                version=data.get("version"),
                capabilities=capabilities if isinstance(capabilities, list) else [],
            )

        logger.info(
            "mcp_health_check_passed",
            connection_id=connection.id,
            endpoint=connection.endpoint,
            latency_ms=latency,
        )
        return McpHealthCheckResult(healthy=True, latency_ms=latency, server_info=server_info)

    def _failed(self, connection: McpConnection, start: float, error: str) -> McpHealthCheckResult:
        logger.error(
            "mcp_health_check_failed",
            connection_id=connection.id,
            endpoint=connection.endpoint,
            error=error,
        )
        return McpHealthCheckResult(healthy=False, latency_ms=_elapsed_ms(start), error=error)

    async def sync_mcp_connection(self, connection: McpConnection) -> McpSyncResult:
        """Verify the server is reachable, then run the sync step.

        Resource listing over the MCP protocol is not wired up yet, so a
        successful sync reports zero items.
        """
        start = time.perf_counter()
        health = await self.check_mcp_health(connection, SYNC_HEALTH_TIMEOUT_MS)
        if not health.healthy:
            return McpSyncResult(
                success=False,
                error=health.error or "Health check failed",
                duration_ms=_elapsed_ms(start),
            )

        logger.info("mcp_sync_completed", connection_id=connection.id, items_synced=0)
        return McpSyncResult(success=True, items_synced=0, duration_ms=_elapsed_ms(start))

    # ------------------------------------------------------------------
    # Registry-aware helpers
    # ------------------------------------------------------------------

    async def check_and_record(self, connection: McpConnection) -> McpHealthCheckResult:
        result = await self.check_mcp_health(connection)
        if self._store is not None:
            await self._store.update(
                connection.id, McpConnectionUpdate(status=status_from_health(result))
            )
        return result

    async def sync_and_record(self, connection: McpConnection) -> McpSyncResult:
        result = await self.sync_mcp_connection(connection)
        if self._store is not None:
            if result.success:
                update = McpConnectionUpdate(
                    status=ConnectionStatus.CONNECTED, last_sync=datetime.now(timezone.utc)
                )
            else:
                update = McpConnectionUpdate(status=ConnectionStatus.ERROR)
            await self._store.update(connection.id, update)
        return result
