"""Unit tests for the MCP JSON-RPC adapter (httpx mocked)."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock, patch

import httpx
import pytest

from vectorhub.models.connections import ConnectionStatus, MCPDBConnection, parse_connection_config
from vectorhub.models.documents import (
    CreateCollectionConfig,
    DocumentUpdate,
    SearchQuery,
    UpdateCollectionConfig,
    VectorDocument,
)
from vectorhub.providers.vector_db.mcp_adapter import (
    CLIENT_INFO,
    PROTOCOL_VERSION,
    MCPAdapter,
)
from vectorhub.utils.errors import AdapterError, CapabilityUnsupportedError, NotFoundError

_ASYNC_CLIENT = "vectorhub.providers.vector_db.mcp_adapter.httpx.AsyncClient"


def _rpc_result(response_factory, result: Any, request_id: int = 1):
    return response_factory(200, {"jsonrpc": "2.0", "id": request_id, "result": result})


def _rpc_error(response_factory, message: str):
    return response_factory(
        200, {"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": message}}
    )


def _sent(mock_http_client: MagicMock, index: int = -1) -> dict[str, Any]:
    return mock_http_client.post.await_args_list[index].kwargs["json"]


@pytest.fixture()
async def adapter(
    mock_http_client: MagicMock, mcp_connection: MCPDBConnection, response_factory
) -> MCPAdapter:
    mock_http_client.post.return_value = _rpc_result(response_factory, {"serverInfo": {"name": "vec"}})
    adapter = MCPAdapter(http_client=mock_http_client)
    await adapter.connect(mcp_connection)
    return adapter


class TestConnect:
    @pytest.mark.asyncio
    async def test_initialize_handshake(
        self, adapter: MCPAdapter, mock_http_client: MagicMock
    ) -> None:
        payload = _sent(mock_http_client, 0)
        assert payload["jsonrpc"] == "2.0"
        assert payload["method"] == "initialize"
        assert payload["params"]["protocolVersion"] == PROTOCOL_VERSION
        assert payload["params"]["clientInfo"] == CLIENT_INFO
        assert payload["params"]["capabilities"]["tools"]["vectorSearch"] is True

        kwargs = mock_http_client.post.await_args_list[0].kwargs
        assert kwargs["headers"]["Authorization"] == "Bearer mcp-secret"
        assert mock_http_client.post.await_args_list[0].args[0] == "https://mcp.example.test/rpc"
        assert adapter.get_connection_status() == ConnectionStatus.CONNECTED

    @pytest.mark.asyncio
    async def test_connect_failure_sets_error_status(
        self, mock_http_client: MagicMock, mcp_connection: MCPDBConnection
    ) -> None:
        mock_http_client.post.side_effect = httpx.ConnectError("refused")
        adapter = MCPAdapter(http_client=mock_http_client)
        with pytest.raises(AdapterError):
            await adapter.connect(mcp_connection)
        assert adapter.get_connection_status() == ConnectionStatus.ERROR

    @pytest.mark.asyncio
    async def test_connect_failure_closes_owned_client(
        self, mock_http_client: MagicMock, mcp_connection: MCPDBConnection
    ) -> None:
        mock_http_client.post.side_effect = httpx.ConnectError("refused")
        with patch(_ASYNC_CLIENT, return_value=mock_http_client):
            adapter = MCPAdapter()
            with pytest.raises(AdapterError):
                await adapter.connect(mcp_connection)
        mock_http_client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connect_failure_keeps_shared_client(
        self, mock_http_client: MagicMock, mcp_connection: MCPDBConnection
    ) -> None:
        mock_http_client.post.side_effect = httpx.ConnectError("refused")
        adapter = MCPAdapter(http_client=mock_http_client)
        with pytest.raises(AdapterError):
            await adapter.connect(mcp_connection)
        mock_http_client.aclose.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_server_declaration_narrows_capabilities(
        self, mock_http_client: MagicMock, mcp_connection: MCPDBConnection, response_factory
    ) -> None:
        mock_http_client.post.return_value = _rpc_result(
            response_factory, {"capabilities": {"tools": {"vectorDelete": False}}}
        )
        adapter = MCPAdapter(http_client=mock_http_client)
        await adapter.connect(mcp_connection)

        assert adapter.capabilities.vector_delete is False
        assert adapter.capabilities.vector_search is True

        calls_before = mock_http_client.post.await_count
        with pytest.raises(CapabilityUnsupportedError, match="vector deletion"):
            await adapter.delete_documents("docs", ["1"])
        assert mock_http_client.post.await_count == calls_before

    @pytest.mark.asyncio
    async def test_server_cannot_widen_capabilities(
        self, mock_http_client: MagicMock, response_factory
    ) -> None:
        conn = parse_connection_config(
            {"id": "m", "name": "m", "type": "mcp", "config": {"serverUrl": "https://m.test"}}
        )
        mock_http_client.post.return_value = _rpc_result(
            response_factory, {"capabilities": {"tools": {"vectorSearch": True}}}
        )
        adapter = MCPAdapter(http_client=mock_http_client)
        await adapter.connect(conn)
        assert adapter.capabilities.vector_search is False

    @pytest.mark.asyncio
    async def test_request_ids_increase(
        self, adapter: MCPAdapter, mock_http_client: MagicMock, response_factory
    ) -> None:
        mock_http_client.post.return_value = _rpc_result(response_factory, {"collections": []})
        await adapter.list_collections()
        await adapter.list_collections()
        ids = [c.kwargs["json"]["id"] for c in mock_http_client.post.await_args_list]
        assert ids == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_disconnect_sends_shutdown(
        self, adapter: MCPAdapter, mock_http_client: MagicMock
    ) -> None:
        await adapter.disconnect()
        assert _sent(mock_http_client)["method"] == "shutdown"
        assert adapter.get_connection_status() == ConnectionStatus.DISCONNECTED
        mock_http_client.aclose.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_test_connection_pings(
        self, adapter: MCPAdapter, mock_http_client: MagicMock, response_factory
    ) -> None:
        mock_http_client.post.return_value = _rpc_result(response_factory, {})
        result = await adapter.test_connection()
        assert result.success is True
        assert _sent(mock_http_client)["method"] == "ping"


class TestCapabilityGating:
    @pytest.fixture()
    async def readonly_adapter(self, mock_http_client: MagicMock, response_factory) -> MCPAdapter:
        conn = parse_connection_config(
            {"id": "m", "name": "m", "type": "mcp", "config": {"serverUrl": "https://m.test"}}
        )
        mock_http_client.post.return_value = _rpc_result(response_factory, {})
        adapter = MCPAdapter(http_client=mock_http_client)
        await adapter.connect(conn)
        mock_http_client.post.reset_mock()
        return adapter

    @pytest.mark.asyncio
    async def test_gated_operations_fail_without_io(
        self, readonly_adapter: MCPAdapter, mock_http_client: MagicMock
    ) -> None:
        calls = [
            (readonly_adapter.create_collection(CreateCollectionConfig(name="c", dimensions=3)), "creation"),
            (readonly_adapter.update_collection("c", UpdateCollectionConfig()), "updates"),
            (readonly_adapter.delete_collection("c"), "deletion"),
            (readonly_adapter.add_documents("c", [VectorDocument(content="x")]), "creation"),
            (readonly_adapter.update_documents("c", [DocumentUpdate(id="1", content="x")]), "updates"),
            (readonly_adapter.delete_documents("c", ["1"]), "deletion"),
            (readonly_adapter.search("c", SearchQuery(text="x")), "search"),
        ]
        for coro, label in calls:
            with pytest.raises(CapabilityUnsupportedError, match=label):
                await coro
        mock_http_client.post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reads_are_not_gated(
        self, readonly_adapter: MCPAdapter, mock_http_client: MagicMock, response_factory
    ) -> None:
        mock_http_client.post.return_value = _rpc_result(
            response_factory, {"documents": [{"id": "1", "content": "hello"}]}
        )
        docs = await readonly_adapter.get_documents("c", ["1"])
        assert docs[0].content == "hello"


class TestToolCalls:
    @pytest.mark.asyncio
    async def test_search_tool_call(
        self, adapter: MCPAdapter, mock_http_client: MagicMock, response_factory
    ) -> None:
        mock_http_client.post.return_value = _rpc_result(
            response_factory,
            {"results": [{"id": "a", "score": 0.8}, {"id": "b", "score": 0.1}]},
        )
        results = await adapter.search("docs", SearchQuery(vector=[0.1, 0.2, 0.3], min_score=0.5))
        assert [r.id for r in results] == ["a"]

        payload = _sent(mock_http_client)
        assert payload["method"] == "tools/call"
        assert payload["params"]["name"] == "vector_search"
        assert payload["params"]["arguments"]["collection"] == "docs"
        assert payload["params"]["arguments"]["topK"] == 10

    @pytest.mark.asyncio
    async def test_add_documents_sends_model_preferences(
        self, adapter: MCPAdapter, mock_http_client: MagicMock, response_factory
    ) -> None:
        mock_http_client.post.return_value = _rpc_result(response_factory, {"ids": [11]})
        ids = await adapter.add_documents("docs", [VectorDocument(content="x")])
        assert ids == ["11"]
        args = _sent(mock_http_client)["params"]["arguments"]
        assert args["embeddingModel"] == "text-embedding-3-small"
        assert args["dimensions"] == 3

    @pytest.mark.asyncio
    async def test_not_found_error_message(
        self, adapter: MCPAdapter, mock_http_client: MagicMock, response_factory
    ) -> None:
        mock_http_client.post.return_value = _rpc_error(response_factory, "Collection not found")
        with pytest.raises(NotFoundError, match="MCP error: Collection not found"):
            await adapter.get_collection("ghost")

    @pytest.mark.asyncio
    async def test_other_rpc_error_is_adapter_error(
        self, adapter: MCPAdapter, mock_http_client: MagicMock, response_factory
    ) -> None:
        mock_http_client.post.return_value = _rpc_error(response_factory, "Internal failure")
        with pytest.raises(AdapterError, match="Internal failure"):
            await adapter.get_documents("docs", ["1"])

    @pytest.mark.asyncio
    async def test_http_error_status(
        self, adapter: MCPAdapter, mock_http_client: MagicMock, response_factory
    ) -> None:
        mock_http_client.post.return_value = response_factory(502, text="bad gateway")
        with pytest.raises(AdapterError, match="502"):
            await adapter.get_collection("docs")

    @pytest.mark.asyncio
    async def test_count_degrades_on_failure(
        self, adapter: MCPAdapter, mock_http_client: MagicMock
    ) -> None:
        mock_http_client.post.side_effect = httpx.ReadTimeout("slow")
        assert await adapter.count_documents("docs") == 0

    @pytest.mark.asyncio
    async def test_non_json_body_is_adapter_error(
        self, adapter: MCPAdapter, mock_http_client: MagicMock, response_factory
    ) -> None:
        mock_http_client.post.return_value = response_factory(200, text="<html>proxy login</html>")
        with pytest.raises(AdapterError, match="non-JSON"):
            await adapter.get_collection("docs")

    @pytest.mark.asyncio
    async def test_non_object_body_is_adapter_error(
        self, adapter: MCPAdapter, mock_http_client: MagicMock, response_factory
    ) -> None:
        mock_http_client.post.return_value = response_factory(200, ["not", "an", "object"])
        with pytest.raises(AdapterError, match="malformed"):
            await adapter.get_documents("docs", ["1"])

    @pytest.mark.asyncio
    async def test_update_sends_only_supplied_fields(
        self, adapter: MCPAdapter, mock_http_client: MagicMock, response_factory
    ) -> None:
        mock_http_client.post.return_value = _rpc_result(response_factory, {"updated": 1})
        await adapter.update_documents("docs", [DocumentUpdate(id="1", embedding=[0.1, 0.2, 0.3])])
        payload = _sent(mock_http_client)
        assert payload["params"]["name"] == "vector_update_documents"
        assert payload["params"]["arguments"]["documents"] == [
            {"id": "1", "embedding": [0.1, 0.2, 0.3]}
        ]
