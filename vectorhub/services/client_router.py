"""Client router: picks the adapter for a connection and proxies calls to it.

Adapters are registered per backend kind in a factory table.  Kinds with no
registered factory (the many backends listed in
:class:`~vectorhub.models.connections.VectorDBType` without a native adapter)
are served by :class:`MockAdapter` so the dashboard stays usable.

A :class:`VectorDBClient` is built per request from the connection config,
owns exactly one adapter, and is discarded after the request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

import httpx
import structlog

from vectorhub.interfaces.vector_db_adapter import IVectorDBAdapter
from vectorhub.models.connections import (
    ConnectionConfig,
    ConnectionStatus,
    MCPConfig,
    MongoDBAtlasConfig,
    SupabaseConfig,
    VectorDBType,
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
from vectorhub.providers.vector_db.mcp_adapter import MCPAdapter
from vectorhub.providers.vector_db.mock_adapter import MockAdapter, MockDataStore
from vectorhub.providers.vector_db.mongodb_adapter import MongoDBAdapter
from vectorhub.providers.vector_db.supabase_adapter import SupabaseAdapter
from vectorhub.providers.vector_db.webhook_adapter import WebhookAdapter

logger = structlog.get_logger(logger_name=__name__)


@dataclass
class AdapterContext:
    """Shared resources handed to adapter factories."""

    http_client: httpx.AsyncClient | None = None
    mock_store: MockDataStore = field(default_factory=MockDataStore)
    strict_reads: bool = False


AdapterFactory = Callable[[AdapterContext], IVectorDBAdapter]

_ADAPTER_FACTORIES: dict[VectorDBType, AdapterFactory] = {}


def register_adapter(db_type: VectorDBType, factory: AdapterFactory) -> None:
    """Register (or replace) the factory used for *db_type*."""
    _ADAPTER_FACTORIES[db_type] = factory


def registered_types() -> list[VectorDBType]:
    return list(_ADAPTER_FACTORIES)


def create_adapter(db_type: VectorDBType, context: AdapterContext) -> IVectorDBAdapter:
    """Instantiate the adapter for *db_type*, falling back to the mock adapter."""
    factory = _ADAPTER_FACTORIES.get(db_type)
    if factory is None:
        logger.debug("adapter_fallback_to_mock", requested=db_type.value)
        return MockAdapter(store=context.mock_store, provider_name=db_type.value)
    return factory(context)


register_adapter(
    VectorDBType.MONGODB_ATLAS,
    lambda ctx: MongoDBAdapter(strict_reads=ctx.strict_reads),
)
register_adapter(
    VectorDBType.SUPABASE,
    lambda ctx: SupabaseAdapter(strict_reads=ctx.strict_reads),
)
register_adapter(
    VectorDBType.WEBHOOK,
    lambda ctx: WebhookAdapter(http_client=ctx.http_client, strict_reads=ctx.strict_reads),
)
register_adapter(
    VectorDBType.MCP,
    lambda ctx: MCPAdapter(http_client=ctx.http_client, strict_reads=ctx.strict_reads),
)
register_adapter(
    VectorDBType.MOCK,
    lambda ctx: MockAdapter(store=ctx.mock_store),
)


class VectorDBClient:
    """One connection, one adapter.

    Parameters
    ----------
    connection:
        The parsed connection config.
    context:
        Shared resources (HTTP client, mock data, read strictness).
    """

    def __init__(self, connection: ConnectionConfig, context: AdapterContext | None = None) -> None:
        self._connection = connection
        self._adapter = create_adapter(connection.db_type, context or AdapterContext())

    @property
    def connection(self) -> ConnectionConfig:
        return self._connection

    @property
    def adapter(self) -> IVectorDBAdapter:
        return self._adapter

    @property
    def expected_dimensions(self) -> int | None:
        """Embedding size the backend was configured for, when known."""
        cfg = self._connection.config
        if isinstance(cfg, (MongoDBAtlasConfig, SupabaseConfig)):
            return cfg.dimensions
        if isinstance(cfg, MCPConfig):
            return cfg.model_preferences.dimensions
        return None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        await self._adapter.connect(self._connection)

    async def disconnect(self) -> None:
        await self._adapter.disconnect()

    async def test_connection(self) -> TestConnectionResult:
        return await self._adapter.test_connection()

    def get_connection_status(self) -> ConnectionStatus:
        return self._adapter.get_connection_status()

    # ------------------------------------------------------------------
    # Proxied operations
    # ------------------------------------------------------------------

    async def list_collections(self) -> list[CollectionInfo]:
        return await self._adapter.list_collections()

    async def create_collection(self, config: CreateCollectionConfig) -> CollectionInfo:
        return await self._adapter.create_collection(config)

    async def get_collection(self, name: str) -> CollectionInfo:
        return await self._adapter.get_collection(name)

    async def update_collection(self, name: str, updates: UpdateCollectionConfig) -> CollectionInfo:
        return await self._adapter.update_collection(name, updates)

    async def delete_collection(self, name: str, cascade: bool = False) -> None:
        await self._adapter.delete_collection(name, cascade)

    async def get_collection_stats(self, name: str) -> CollectionStats:
        return await self._adapter.get_collection_stats(name)

    async def add_documents(self, collection: str, documents: list[VectorDocument]) -> list[str]:
        return await self._adapter.add_documents(collection, documents)

    async def get_documents(self, collection: str, ids: list[str]) -> list[VectorDocument]:
        return await self._adapter.get_documents(collection, ids)

    async def update_documents(self, collection: str, updates: list[DocumentUpdate]) -> None:
        await self._adapter.update_documents(collection, updates)

    async def delete_documents(self, collection: str, ids: list[str]) -> None:
        await self._adapter.delete_documents(collection, ids)

    async def count_documents(self, collection: str, filter: dict[str, Any] | None = None) -> int:
        return await self._adapter.count_documents(collection, filter)

    async def search(self, collection: str, query: SearchQuery) -> list[SearchResult]:
        return await self._adapter.search(collection, query)
