"""Unit tests for adapter selection and the per-request client."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from vectorhub.models.connections import GenericConnection, VectorDBType, parse_connection_config
from vectorhub.models.documents import SearchQuery, VectorDocument
from vectorhub.providers.vector_db.mcp_adapter import MCPAdapter
from vectorhub.providers.vector_db.mock_adapter import MockAdapter, MockDataStore
from vectorhub.providers.vector_db.mongodb_adapter import MongoDBAdapter
from vectorhub.providers.vector_db.supabase_adapter import SupabaseAdapter
from vectorhub.providers.vector_db.webhook_adapter import WebhookAdapter
from vectorhub.services import client_router
from vectorhub.services.client_router import (
    AdapterContext,
    VectorDBClient,
    create_adapter,
    register_adapter,
    registered_types,
)


class TestCreateAdapter:
    @pytest.mark.parametrize(
        ("db_type", "expected"),
        [
            (VectorDBType.MONGODB_ATLAS, MongoDBAdapter),
            (VectorDBType.SUPABASE, SupabaseAdapter),
            (VectorDBType.WEBHOOK, WebhookAdapter),
            (VectorDBType.MCP, MCPAdapter),
            (VectorDBType.MOCK, MockAdapter),
        ],
    )
    def test_native_adapters(self, db_type: VectorDBType, expected: type) -> None:
        assert isinstance(create_adapter(db_type, AdapterContext()), expected)

    def test_unregistered_kind_falls_back_to_mock(self) -> None:
        adapter = create_adapter(VectorDBType.PINECONE, AdapterContext())
        assert isinstance(adapter, MockAdapter)
        assert adapter.get_provider_name() == "pinecone"

    def test_registered_types(self) -> None:
        types = registered_types()
        assert VectorDBType.MONGODB_ATLAS in types
        assert VectorDBType.QDRANT not in types

    def test_register_adapter_replaces_factory(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(client_router, "_ADAPTER_FACTORIES", dict(client_router._ADAPTER_FACTORIES))
        sentinel = MagicMock()
        register_adapter(VectorDBType.QDRANT, lambda ctx: sentinel)
        assert create_adapter(VectorDBType.QDRANT, AdapterContext()) is sentinel

    def test_context_http_client_is_shared(self, mock_http_client: MagicMock) -> None:
        adapter = create_adapter(VectorDBType.WEBHOOK, AdapterContext(http_client=mock_http_client))
        assert adapter._http is mock_http_client


class TestVectorDBClient:
    @pytest.mark.asyncio
    async def test_proxies_to_mock_store(
        self, sample_store: MockDataStore, mock_connection: GenericConnection
    ) -> None:
        client = VectorDBClient(mock_connection, AdapterContext(mock_store=sample_store))
        await client.connect()
        try:
            ids = await client.add_documents("sample_docs", [VectorDocument(content="proxied text")])
            docs = await client.get_documents("sample_docs", ids)
            assert docs[0].content == "proxied text"
            assert await client.count_documents("sample_docs") == 4

            results = await client.search("sample_docs", SearchQuery(text="proxied"))
            assert results[0].id == ids[0]
        finally:
            await client.disconnect()

    @pytest.mark.asyncio
    async def test_generic_kind_uses_shared_mock_data(self, sample_store: MockDataStore) -> None:
        conn = parse_connection_config({"id": "q", "name": "Qdrant", "type": "qdrant"})
        client = VectorDBClient(conn, AdapterContext(mock_store=sample_store))
        await client.connect()
        collections = await client.list_collections()
        assert [c.name for c in collections] == ["sample_docs"]

    def test_expected_dimensions(self) -> None:
        mongo = parse_connection_config(
            {
                "id": "m",
                "name": "m",
                "type": "mongodb_atlas",
                "config": {"connectionString": "mongodb://x", "database": "d", "dimensions": 768},
            }
        )
        assert VectorDBClient(mongo).expected_dimensions == 768

        mcp = parse_connection_config(
            {
                "id": "p",
                "name": "p",
                "type": "mcp",
                "config": {"serverUrl": "https://m", "modelPreferences": {"dimensions": 384}},
            }
        )
        assert VectorDBClient(mcp).expected_dimensions == 384

        generic = GenericConnection(id="g", name="g", type="mock")
        assert VectorDBClient(generic).expected_dimensions is None
