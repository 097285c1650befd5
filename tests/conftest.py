"""Shared pytest fixtures for the VectorHub test suite."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from vectorhub.interfaces.embedding_provider import IEmbeddingProvider
from vectorhub.models.connections import (
    GenericConnection,
    MCPDBConnection,
    WebhookDBConnection,
    parse_connection_config,
)
from vectorhub.models.webhooks import WebhookConnection
from vectorhub.providers.vector_db.mock_adapter import MockDataStore


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------


def _make_response(
    status_code: int = 200,
    json_body: Any = None,
    method: str = "POST",
    url: str = "https://example.test/endpoint",
    text: str | None = None,
) -> httpx.Response:
    """Build a real ``httpx.Response`` bound to a request.

    Binding a request lets ``raise_for_status()`` work the way it does on
    responses returned by a live client.
    """
    request = httpx.Request(method, url)
    if json_body is not None:
        return httpx.Response(status_code, json=json_body, request=request)
    return httpx.Response(status_code, text=text or "", request=request)


@pytest.fixture
def mock_http_client() -> MagicMock:
    """An ``httpx.AsyncClient`` stand-in with async verb methods."""
    client = MagicMock(spec=httpx.AsyncClient)
    client.post = AsyncMock()
    client.get = AsyncMock()
    client.request = AsyncMock()
    client.aclose = AsyncMock()
    return client


# ---------------------------------------------------------------------------
# Connections
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_connection() -> GenericConnection:
    return GenericConnection(id="mock", name="Demo data", type="mock")


@pytest.fixture
def webhook_connection() -> WebhookDBConnection:
    return parse_connection_config(
        {
            "id": "wh-db",
            "name": "REST backend",
            "type": "webhook",
            "config": {
                "baseUrl": "https://db.example.test/api/",
                "authType": "bearer",
                "authValue": "token-123",
                "headers": {"X-Tenant": "acme"},
                "retryCount": 2,
                "timeoutMs": 5000,
            },
        }
    )


@pytest.fixture
def mcp_connection() -> MCPDBConnection:
    return parse_connection_config(
        {
            "id": "mcp-db",
            "name": "MCP vectors",
            "type": "mcp",
            "config": {
                "serverUrl": "https://mcp.example.test/rpc",
                "authToken": "mcp-secret",
                "capabilities": {
                    "vectorCreate": True,
                    "vectorUpdate": True,
                    "vectorDelete": True,
                    "vectorSearch": True,
                },
                "modelPreferences": {"embeddingModel": "text-embedding-3-small", "dimensions": 3},
            },
        }
    )


@pytest.fixture
def sample_store() -> MockDataStore:
    return MockDataStore.with_sample_data()


# ---------------------------------------------------------------------------
# Webhook registry entries
# ---------------------------------------------------------------------------


def _make_webhook(**overrides: Any) -> WebhookConnection:
    defaults: dict[str, Any] = {
        "id": "wh-1",
        "name": "Indexer",
        "url": "https://hooks.example.test/vectorhub",
        "event_types": ["document.created"],
    }
    defaults.update(overrides)
    return WebhookConnection(**defaults)


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_embedder() -> MagicMock:
    """Available embedding provider returning a fixed 3-dim vector."""
    embedder = MagicMock(spec=IEmbeddingProvider)
    embedder.is_available.return_value = True
    embedder.get_dimension.return_value = 3
    embedder.get_provider_name.return_value = "mock-embedder"
    embedder.embed_single = AsyncMock(return_value=[0.1, 0.2, 0.3])
    embedder.embed = AsyncMock(return_value=[[0.1, 0.2, 0.3]])
    return embedder


@pytest.fixture
def response_factory():
    """Return the :func:`_make_response` builder."""
    return _make_response


@pytest.fixture
def webhook_factory():
    """Return the :func:`_make_webhook` builder."""
    return _make_webhook
