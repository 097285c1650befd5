"""Adapter for Model Context Protocol (MCP) servers.

The backend is a JSON-RPC 2.0 peer reached by HTTP POST.  Connecting sends
``initialize``; every CRUD and search operation is a ``tools/call`` request
naming one ``vector_*`` tool.  Write and search operations are gated on the
capability flags configured for the connection, optionally narrowed by what
the server declares during ``initialize``.  A gated call fails before any
network I/O.
"""

from __future__ import annotations

import itertools
import time
from datetime import datetime, timezone
from typing import Any

import httpx
import structlog

from vectorhub.models.connections import (
    ConnectionConfig,
    ConnectionStatus,
    MCPCapabilities,
    MCPConfig,
)
from vectorhub.models.documents import (
    CollectionInfo,
    CollectionStats,
    CreateCollectionConfig,
    DocumentUpdate,
    SearchQuery,
    SearchResult,
    TestConnectionResult,
    UpdateCollectionConfig,
    VectorDocument,
)
from vectorhub.providers.vector_db.base import NetworkAdapter
from vectorhub.utils.errors import (
    AdapterError,
    CapabilityUnsupportedError,
    ConfigurationError,
    NotFoundError,
)

logger = structlog.get_logger(logger_name=__name__)

PROTOCOL_VERSION = "2024-11-05"
CLIENT_INFO = {"name": "VectorHub", "version": "1.0.0"}

# Capability flag -> human-readable operation family for error messages.
_CAPABILITY_LABELS: dict[str, str] = {
    "vector_create": "vector creation",
    "vector_update": "vector updates",
    "vector_delete": "vector deletion",
    "vector_search": "vector search",
}


class MCPAdapter(NetworkAdapter):
    """JSON-RPC tool-call adapter for MCP servers.

    Parameters
    ----------
    http_client:
        Shared ``httpx.AsyncClient``; one is created and owned if omitted.
    strict_reads:
        Re-raise failures from best-effort reads instead of returning defaults.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        strict_reads: bool = False,
    ) -> None:
        super().__init__(strict_reads=strict_reads)
        self._http = http_client
        self._owns_client = http_client is None
        self._config: MCPConfig | None = None
        self._capabilities = MCPCapabilities()
        self._request_ids = itertools.count(1)
        self._server_info: dict[str, Any] = {}

    def get_provider_name(self) -> str:
        return "mcp"

    @property
    def capabilities(self) -> MCPCapabilities:
        """Effective capability set after negotiation."""
        return self._capabilities

    # ------------------------------------------------------------------
    # JSON-RPC plumbing
    # ------------------------------------------------------------------

    async def _rpc(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Send one JSON-RPC request and return its ``result`` member."""
        if self._http is None or self._config is None:
            raise AdapterError(message="MCP client not initialised", provider_name="mcp")

        headers = {"Content-Type": "application/json"}
        if self._config.auth_token:
            headers["Authorization"] = f"Bearer {self._config.auth_token}"

        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params or {},
        }
        try:
            response = await self._http.post(
                self._config.server_url,
                json=payload,
                headers=headers,
                timeout=self._config.timeout_ms / 1000,
            )
        except httpx.TimeoutException as exc:
            raise AdapterError(
                message=f"MCP request timed out after {self._config.timeout_ms}ms",
                provider_name="mcp",
            ) from exc
        except httpx.HTTPError as exc:
            raise AdapterError(message=f"MCP request failed: {exc}", provider_name="mcp") from exc

        if response.status_code >= 400:
            raise AdapterError(
                message=f"MCP request failed: {response.status_code} {response.reason_phrase}",
                provider_name="mcp",
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise AdapterError(
                message="MCP server returned a non-JSON response", provider_name="mcp"
            ) from exc
        if not isinstance(body, dict):
            raise AdapterError(
                message="MCP server returned a malformed JSON-RPC response", provider_name="mcp"
            )

        error = body.get("error")
        if error:
            message = error.get("message", "Unknown error") if isinstance(error, dict) else str(error)
            if "not found" in message.lower():
                raise NotFoundError(message=f"MCP error: {message}", provider_name="mcp")
            raise AdapterError(message=f"MCP error: {message}", provider_name="mcp")
        return body.get("result")

    async def _call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        return await self._rpc("tools/call", {"name": name, "arguments": arguments})

    def _require(self, capability: str) -> None:
        if not getattr(self._capabilities, capability):
            raise CapabilityUnsupportedError(
                message=f"MCP server does not support {_CAPABILITY_LABELS[capability]}",
                provider_name="mcp",
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, config: ConnectionConfig) -> None:
        if not isinstance(config.config, MCPConfig):
            self._status = ConnectionStatus.ERROR
            raise ConfigurationError(
                message="MCP connection requires an MCP config block", provider_name="mcp"
            )
        self._config = config.config
        self._capabilities = config.config.capabilities
        if self._http is None:
            self._http = httpx.AsyncClient()
            self._owns_client = True

        try:
            result = await self._rpc(
                "initialize",
                {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {
                        "tools": self._capabilities.model_dump(by_alias=True),
                    },
                    "clientInfo": CLIENT_INFO,
                },
            )
        except Exception:
            self._status = ConnectionStatus.ERROR
            logger.warning("mcp_connect_failed", server_url=self._config.server_url)
            if self._owns_client and self._http is not None:
                await self._http.aclose()
                self._http = None
            raise

        self._negotiate(result or {})
        self._status = ConnectionStatus.CONNECTED
        logger.info(
            "mcp_connected",
            server_url=self._config.server_url,
            server=self._server_info.get("name"),
            capabilities=self._capabilities.model_dump(),
        )

    def _negotiate(self, result: dict[str, Any]) -> None:
        """Narrow configured capabilities by those declared in ``initialize``."""
        self._server_info = result.get("serverInfo") or {}
        declared = (result.get("capabilities") or {}).get("tools")
        if not isinstance(declared, dict):
            return
        server_caps = MCPCapabilities.model_validate(declared)
        fields_declared = server_caps.model_fields_set
        narrowed = {
            name: getattr(self._capabilities, name)
            and (getattr(server_caps, name) if name in fields_declared else True)
            for name in MCPCapabilities.model_fields
        }
        self._capabilities = MCPCapabilities(**narrowed)

    async def disconnect(self) -> None:
        if self._status == ConnectionStatus.CONNECTED:
            try:
                await self._rpc("shutdown")
            except Exception as exc:  # noqa: BLE001
                logger.debug("mcp_shutdown_ignored", error=str(exc))
        if self._owns_client and self._http is not None:
            await self._http.aclose()
            self._http = None
        self._status = ConnectionStatus.DISCONNECTED

    async def test_connection(self) -> TestConnectionResult:
        try:
            await self._rpc("ping")
            return TestConnectionResult(success=True, message="MCP server responded to ping")
        except Exception as exc:  # noqa: BLE001
            return TestConnectionResult(success=False, message=str(exc))

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def list_collections(self) -> list[CollectionInfo]:
        self._ensure_connected()
        try:
            result = await self._call_tool("vector_list_collections", {})
        except Exception as exc:  # noqa: BLE001
            return self._degraded("list_collections", exc, [])
        items = (result or {}).get("collections", []) if isinstance(result, dict) else result or []
        return [CollectionInfo.model_validate(item) for item in items]

    async def create_collection(self, config: CreateCollectionConfig) -> CollectionInfo:
        self._ensure_connected()
        self._require("vector_create")
        result = await self._call_tool(
            "vector_create_collection", config.model_dump(mode="json", by_alias=True)
        )
        if isinstance(result, dict) and "name" in result:
            return CollectionInfo.model_validate(result)
        return CollectionInfo(
            name=config.name,
            dimensions=config.dimensions,
            distance_metric=config.distance_metric,
        )

    async def get_collection(self, name: str) -> CollectionInfo:
        self._ensure_connected()
        result = await self._call_tool("vector_get_collection", {"name": name})
        if not result:
            raise NotFoundError(message=f"Collection '{name}' not found", provider_name="mcp")
        return CollectionInfo.model_validate(result)

    async def update_collection(
        self, name: str, updates: UpdateCollectionConfig
    ) -> CollectionInfo:
        self._ensure_connected()
        self._require("vector_update")
        result = await self._call_tool(
            "vector_update_collection",
            {"name": name, **updates.model_dump(mode="json", by_alias=True, exclude_none=True)},
        )
        if isinstance(result, dict) and "name" in result:
            return CollectionInfo.model_validate(result)
        return await self.get_collection(name)

    async def delete_collection(self, name: str, cascade: bool = False) -> None:
        self._ensure_connected()
        self._require("vector_delete")
        await self._call_tool("vector_delete_collection", {"name": name, "cascade": cascade})

    async def get_collection_stats(self, name: str) -> CollectionStats:
        self._ensure_connected()
        try:
            result = await self._call_tool("vector_collection_stats", {"name": name})
            return CollectionStats.model_validate(result or {})
        except Exception as exc:  # noqa: BLE001
            return self._degraded(
                "get_collection_stats",
                exc,
                CollectionStats(last_updated=datetime.now(timezone.utc)),
            )

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def add_documents(
        self, collection: str, documents: list[VectorDocument]
    ) -> list[str]:
        self._ensure_connected()
        self._require("vector_create")
        if self._config is None:
            raise self._not_connected()
        prefs = self._config.model_preferences
        result = await self._call_tool(
            "vector_add_documents",
            {
                "collection": collection,
                "documents": [d.model_dump(mode="json", exclude_none=True) for d in documents],
                "embeddingModel": prefs.embedding_model,
                "dimensions": prefs.dimensions,
            },
        )
        ids = result.get("ids") if isinstance(result, dict) else None
        if ids:
            return [str(i) for i in ids]
        stamp = int(time.time() * 1000)
        return [doc.id or f"mcp-doc-{stamp}-{i}" for i, doc in enumerate(documents)]

    async def get_documents(self, collection: str, ids: list[str]) -> list[VectorDocument]:
        self._ensure_connected()
        result = await self._call_tool(
            "vector_get_documents", {"collection": collection, "ids": ids}
        )
        items = (result or {}).get("documents", []) if isinstance(result, dict) else result or []
        return [VectorDocument.model_validate(item) for item in items]

    async def update_documents(self, collection: str, updates: list[DocumentUpdate]) -> None:
        self._ensure_connected()
        self._require("vector_update")
        await self._call_tool(
            "vector_update_documents",
            {
                "collection": collection,
                "documents": [u.model_dump(mode="json", exclude_unset=True) for u in updates],
            },
        )

    async def delete_documents(self, collection: str, ids: list[str]) -> None:
        self._ensure_connected()
        self._require("vector_delete")
        await self._call_tool("vector_delete_documents", {"collection": collection, "ids": ids})

    async def count_documents(
        self, collection: str, filter: dict[str, Any] | None = None
    ) -> int:
        self._ensure_connected()
        try:
            result = await self._call_tool(
                "vector_count_documents", {"collection": collection, "filter": filter}
            )
        except Exception as exc:  # noqa: BLE001
            return self._degraded("count_documents", exc, 0)
        if isinstance(result, dict):
            return int(result.get("count", 0))
        return int(result or 0)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, collection: str, query: SearchQuery) -> list[SearchResult]:
        self._ensure_connected()
        self._require("vector_search")
        result = await self._call_tool(
            "vector_search",
            {
                "collection": collection,
                **query.model_dump(mode="json", by_alias=True, exclude_none=True),
            },
        )
        items = (result or {}).get("results", []) if isinstance(result, dict) else result or []
        results = [SearchResult.model_validate(item) for item in items]
        return [r for r in results if r.score >= query.min_score]
