"""Unit tests for the Supabase / pgvector adapter (supabase client mocked)."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from postgrest.exceptions import APIError

from vectorhub.models.connections import SupabaseConnection, parse_connection_config
from vectorhub.models.documents import (
    CreateCollectionConfig,
    DocumentUpdate,
    SearchQuery,
    VectorDocument,
)
from vectorhub.providers.vector_db.supabase_adapter import SupabaseAdapter
from vectorhub.utils.errors import (
    AdapterError,
    NotConnectedError,
    NotFoundError,
    UnsupportedOperationError,
)

_CREATE_CLIENT = "vectorhub.providers.vector_db.supabase_adapter.acreate_client"

_CHAIN_METHODS = (
    "select", "contains", "limit", "in_", "insert", "upsert", "update", "delete", "eq", "ilike"
)


def _builder(data: Any = None, count: int | None = None, error: Exception | None = None) -> MagicMock:
    """A postgrest request builder whose chain methods return itself."""
    builder = MagicMock()
    for name in _CHAIN_METHODS:
        getattr(builder, name).return_value = builder
    if error is not None:
        builder.execute = AsyncMock(side_effect=error)
    else:
        builder.execute = AsyncMock(return_value=MagicMock(data=data, count=count))
    return builder


def _connection(**config: Any) -> SupabaseConnection:
    base = {
        "projectUrl": "https://ref.supabase.co",
        "anonKey": "anon",
        "serviceRoleKey": "service",
        "tables": ["documents", "faq"],
        "dimensions": 3,
    }
    base.update(config)
    return parse_connection_config(
        {"id": "supa", "name": "Supa", "type": "supabase", "config": base}
    )


@pytest.fixture()
def supa() -> dict[str, MagicMock]:
    client = MagicMock()
    db = MagicMock()
    client.schema.return_value = db
    return {"client": client, "db": db}


@pytest.fixture()
async def adapter(supa: dict[str, MagicMock]) -> SupabaseAdapter:
    with patch(_CREATE_CLIENT, new_callable=AsyncMock, return_value=supa["client"]) as create:
        adapter = SupabaseAdapter()
        await adapter.connect(_connection())
    create.assert_awaited_once_with("https://ref.supabase.co", "service")
    return adapter


class TestConnect:
    @pytest.mark.asyncio
    async def test_anon_key_used_without_service_role(self, supa: dict[str, MagicMock]) -> None:
        with patch(_CREATE_CLIENT, new_callable=AsyncMock, return_value=supa["client"]) as create:
            await SupabaseAdapter().connect(_connection(serviceRoleKey=None))
        create.assert_awaited_once_with("https://ref.supabase.co", "anon")

    @pytest.mark.asyncio
    async def test_client_creation_failure(self) -> None:
        with patch(_CREATE_CLIENT, new_callable=AsyncMock, side_effect=ValueError("bad url")):
            with pytest.raises(AdapterError, match="Failed to create Supabase client"):
                await SupabaseAdapter().connect(_connection())

    def test_schema_access_before_connect(self) -> None:
        with pytest.raises(NotConnectedError):
            SupabaseAdapter()._db()

    @pytest.mark.asyncio
    async def test_schema_is_applied(self, adapter: SupabaseAdapter, supa: dict[str, MagicMock]) -> None:
        supa["db"].table.return_value = _builder(data=[])
        result = await adapter.test_connection()
        assert result.success is True
        supa["client"].schema.assert_called_with("public")


class TestCollections:
    @pytest.mark.asyncio
    async def test_list_collections_counts_each_table(
        self, adapter: SupabaseAdapter, supa: dict[str, MagicMock]
    ) -> None:
        builder = _builder(count=4)
        supa["db"].table.return_value = builder
        infos = await adapter.list_collections()
        assert [(i.name, i.document_count) for i in infos] == [("documents", 4), ("faq", 4)]
        builder.select.assert_called_with("id", count="exact", head=True)

    @pytest.mark.asyncio
    async def test_list_collections_degrades(
        self, adapter: SupabaseAdapter, supa: dict[str, MagicMock]
    ) -> None:
        supa["db"].table.return_value = _builder(error=APIError({"message": "permission denied"}))
        assert await adapter.list_collections() == []

    @pytest.mark.asyncio
    async def test_unknown_table_not_found(self, adapter: SupabaseAdapter) -> None:
        with pytest.raises(NotFoundError):
            await adapter.get_collection("secrets")

    @pytest.mark.asyncio
    async def test_create_and_delete_unsupported(self, adapter: SupabaseAdapter) -> None:
        with pytest.raises(UnsupportedOperationError):
            await adapter.create_collection(CreateCollectionConfig(name="new", dimensions=3))
        with pytest.raises(UnsupportedOperationError):
            await adapter.delete_collection("documents")


class TestDocuments:
    @pytest.mark.asyncio
    async def test_add_documents_returns_row_ids(
        self, adapter: SupabaseAdapter, supa: dict[str, MagicMock]
    ) -> None:
        builder = _builder(data=[{"id": 1}, {"id": 2}])
        supa["db"].table.return_value = builder
        ids = await adapter.add_documents(
            "documents",
            [VectorDocument(content="a", embedding=[0.1, 0.2, 0.3]), VectorDocument(content="b")],
        )
        assert ids == ["1", "2"]
        rows = builder.insert.call_args.args[0]
        assert rows[0]["embedding"] == [0.1, 0.2, 0.3]
        assert "embedding" not in rows[1]
        assert "id" not in rows[0]

    @pytest.mark.asyncio
    async def test_get_documents_parses_vector_text(
        self, adapter: SupabaseAdapter, supa: dict[str, MagicMock]
    ) -> None:
        supa["db"].table.return_value = _builder(
            data=[{"id": 7, "content": "hi", "metadata": None, "embedding": "[0.5,0.25]"}]
        )
        docs = await adapter.get_documents("documents", ["7"])
        assert docs[0].id == "7"
        assert docs[0].embedding == [0.5, 0.25]
        assert docs[0].metadata == {}

    @pytest.mark.asyncio
    async def test_row_without_content(
        self, adapter: SupabaseAdapter, supa: dict[str, MagicMock]
    ) -> None:
        supa["db"].table.return_value = _builder(data=[{"id": 8, "content": None}])
        docs = await adapter.get_documents("documents", ["8"])
        assert docs[0].content == ""

    @pytest.mark.asyncio
    async def test_update_sends_only_supplied_fields(
        self, adapter: SupabaseAdapter, supa: dict[str, MagicMock]
    ) -> None:
        builder = _builder(data=[])
        supa["db"].table.return_value = builder
        await adapter.update_documents(
            "documents",
            [DocumentUpdate(id="7", metadata={"tag": "new"}), DocumentUpdate(id="8")],
        )
        builder.update.assert_called_once_with({"metadata": {"tag": "new"}})
        builder.eq.assert_called_once_with("id", "7")
        builder.upsert.assert_not_called()
        assert builder.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_count_with_filter_uses_contains(
        self, adapter: SupabaseAdapter, supa: dict[str, MagicMock]
    ) -> None:
        builder = _builder(count=2)
        supa["db"].table.return_value = builder
        assert await adapter.count_documents("documents", {"source": "faq"}) == 2
        builder.contains.assert_called_with("metadata", {"source": "faq"})


class TestSearch:
    @pytest.mark.asyncio
    async def test_vector_search_calls_match_function(
        self, adapter: SupabaseAdapter, supa: dict[str, MagicMock]
    ) -> None:
        supa["db"].rpc.return_value = _builder(
            data=[{"id": 1, "content": "a", "metadata": {}, "similarity": 0.91}]
        )
        results = await adapter.search(
            "documents", SearchQuery(vector=[0.1, 0.2, 0.3], top_k=5, min_score=0.2)
        )
        assert results[0].id == "1"
        assert results[0].score == pytest.approx(0.91)

        name, params = supa["db"].rpc.call_args.args
        assert name == "match_documents"
        assert params == {"query_embedding": [0.1, 0.2, 0.3], "match_threshold": 0.2, "match_count": 5}

    @pytest.mark.asyncio
    async def test_text_search_uses_ilike(
        self, adapter: SupabaseAdapter, supa: dict[str, MagicMock]
    ) -> None:
        builder = _builder(data=[{"id": 1, "content": "alpha"}, {"id": 2, "content": "alphabet"}])
        supa["db"].table.return_value = builder
        results = await adapter.search("documents", SearchQuery(text="alpha"))
        assert [r.score for r in results] == pytest.approx([1.0, 0.9])
        builder.ilike.assert_called_with("content", "%alpha%")
        builder.limit.assert_called_with(10)

    @pytest.mark.asyncio
    async def test_search_error_degrades(
        self, adapter: SupabaseAdapter, supa: dict[str, MagicMock]
    ) -> None:
        supa["db"].rpc.return_value = _builder(error=APIError({"message": "function missing"}))
        assert await adapter.search("documents", SearchQuery(vector=[0.1])) == []

    @pytest.mark.asyncio
    async def test_text_search_keeps_rank_scored_rows(
        self, adapter: SupabaseAdapter, supa: dict[str, MagicMock]
    ) -> None:
        supa["db"].table.return_value = _builder(
            data=[{"id": i, "content": f"alpha {i}"} for i in range(15)]
        )
        results = await adapter.search(
            "documents", SearchQuery(text="alpha", top_k=15, min_score=0.3)
        )
        assert len(results) == 15
        assert min(r.score for r in results) == 0.0

    @pytest.mark.asyncio
    async def test_vector_rows_below_min_score_dropped(
        self, adapter: SupabaseAdapter, supa: dict[str, MagicMock]
    ) -> None:
        supa["db"].rpc.return_value = _builder(
            data=[{"id": 1, "similarity": 0.8}, {"id": 2, "similarity": 0.1}]
        )
        results = await adapter.search("documents", SearchQuery(vector=[0.1], min_score=0.5))
        assert [r.id for r in results] == ["1"]
