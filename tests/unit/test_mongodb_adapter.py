"""Unit tests for the MongoDB Atlas adapter (pymongo client mocked)."""

from __future__ import annotations

import re
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from bson import ObjectId
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from vectorhub.models.connections import (
    ConnectionStatus,
    MongoDBAtlasConfig,
    MongoDBConnection,
    parse_connection_config,
)
from vectorhub.models.documents import DocumentUpdate, SearchQuery, VectorDocument
from vectorhub.providers.vector_db.mongodb_adapter import (
    MongoDBAdapter,
    _to_object_id,
    build_regex_filter,
    build_vector_search_pipeline,
)
from vectorhub.utils.errors import AdapterError, NotConnectedError, NotFoundError

_CLIENT = "vectorhub.providers.vector_db.mongodb_adapter.AsyncMongoClient"


def _connection() -> MongoDBConnection:
    return parse_connection_config(
        {
            "id": "atlas",
            "name": "Atlas",
            "type": "mongodb_atlas",
            "config": {
                "connectionString": "mongodb+srv://user:pw@cluster.test",
                "database": "vectors",
                "embeddingField": "vec",
                "dimensions": 3,
            },
        }
    )


def _cursor(records: list[dict] | None = None, error: Exception | None = None) -> MagicMock:
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.limit.return_value = cursor
    if error is not None:
        cursor.to_list = AsyncMock(side_effect=error)
    else:
        cursor.to_list = AsyncMock(return_value=records or [])
    return cursor


@pytest.fixture()
def mongo() -> dict[str, MagicMock]:
    client = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1})
    client.close = AsyncMock()
    db = MagicMock()
    col = MagicMock()
    client.__getitem__.return_value = db
    db.__getitem__.return_value = col
    return {"client": client, "db": db, "col": col}


@pytest.fixture()
async def adapter(mongo: dict[str, MagicMock]) -> MongoDBAdapter:
    with patch(_CLIENT, return_value=mongo["client"]):
        adapter = MongoDBAdapter()
        await adapter.connect(_connection())
    return adapter


# ======================================================================
# Pure helpers
# ======================================================================


class TestHelpers:
    def test_object_id_conversion(self) -> None:
        oid = ObjectId()
        assert _to_object_id(str(oid)) == oid
        assert _to_object_id("custom-id") == "custom-id"

    def test_vector_search_pipeline(self) -> None:
        config = MongoDBAtlasConfig(
            connection_string="mongodb://x", database="d", vector_search_index_name="idx"
        )
        query = SearchQuery(vector=[0.1, 0.2], top_k=4, min_score=0.3, filter={"source": "a"})
        pipeline = build_vector_search_pipeline(config, query)

        stage = pipeline[0]["$vectorSearch"]
        assert stage["index"] == "idx"
        assert stage["path"] == "embedding"
        assert stage["queryVector"] == [0.1, 0.2]
        assert stage["numCandidates"] == 40
        assert stage["limit"] == 4
        assert stage["filter"] == {"source": "a"}
        assert pipeline[1]["$project"]["score"] == {"$meta": "vectorSearchScore"}
        assert pipeline[2] == {"$match": {"score": {"$gte": 0.3}}}

    def test_pipeline_without_filter(self) -> None:
        config = MongoDBAtlasConfig(connection_string="mongodb://x", database="d")
        pipeline = build_vector_search_pipeline(config, SearchQuery(vector=[1.0]))
        assert "filter" not in pipeline[0]["$vectorSearch"]

    def test_regex_filter_escapes_and_ignores_case(self) -> None:
        flt = build_regex_filter("C++ guide")
        fields = [next(iter(clause)) for clause in flt["$or"]]
        assert fields == ["content", "metadata.source", "metadata.title"]
        pattern = flt["$or"][0]["content"]["$regex"]
        assert pattern.flags & re.IGNORECASE
        assert pattern.search("a c++ book")
        assert pattern.search("GUIDE")


# ======================================================================
# Adapter
# ======================================================================


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_pings(self, adapter: MongoDBAdapter, mongo: dict[str, MagicMock]) -> None:
        mongo["client"].admin.command.assert_awaited_with("ping")
        assert adapter.get_connection_status() == ConnectionStatus.CONNECTED

    @pytest.mark.asyncio
    async def test_connect_failure(self, mongo: dict[str, MagicMock]) -> None:
        mongo["client"].admin.command = AsyncMock(side_effect=ServerSelectionTimeoutError("no servers"))
        with patch(_CLIENT, return_value=mongo["client"]):
            adapter = MongoDBAdapter()
            with pytest.raises(AdapterError, match="Failed to connect to MongoDB"):
                await adapter.connect(_connection())
        assert adapter.get_connection_status() == ConnectionStatus.ERROR
        mongo["client"].close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_database_access_before_connect(self) -> None:
        adapter = MongoDBAdapter()
        with pytest.raises(NotConnectedError):
            adapter._db

    @pytest.mark.asyncio
    async def test_disconnect_closes_client(
        self, adapter: MongoDBAdapter, mongo: dict[str, MagicMock]
    ) -> None:
        await adapter.disconnect()
        mongo["client"].close.assert_awaited_once()
        assert adapter.get_connection_status() == ConnectionStatus.DISCONNECTED


class TestCollections:
    @pytest.mark.asyncio
    async def test_list_collections_with_counts(
        self, adapter: MongoDBAdapter, mongo: dict[str, MagicMock]
    ) -> None:
        mongo["db"].list_collection_names = AsyncMock(return_value=["a", "b"])
        mongo["col"].estimated_document_count = AsyncMock(return_value=5)
        infos = await adapter.list_collections()
        assert [(i.name, i.document_count, i.dimensions) for i in infos] == [("a", 5, 3), ("b", 5, 3)]

    @pytest.mark.asyncio
    async def test_get_missing_collection(
        self, adapter: MongoDBAdapter, mongo: dict[str, MagicMock]
    ) -> None:
        mongo["db"].list_collection_names = AsyncMock(return_value=[])
        with pytest.raises(NotFoundError):
            await adapter.get_collection("ghost")

    @pytest.mark.asyncio
    async def test_stats_from_coll_stats(
        self, adapter: MongoDBAdapter, mongo: dict[str, MagicMock]
    ) -> None:
        mongo["db"].command = AsyncMock(return_value={"count": 12, "totalIndexSize": 4096})
        stats = await adapter.get_collection_stats("docs")
        assert stats.vector_count == 12
        assert stats.index_size == 4096
        mongo["db"].command.assert_awaited_with("collStats", "docs")

    @pytest.mark.asyncio
    async def test_stats_degrade_on_error(
        self, adapter: MongoDBAdapter, mongo: dict[str, MagicMock]
    ) -> None:
        mongo["db"].command = AsyncMock(side_effect=OperationFailure("ns not found"))
        stats = await adapter.get_collection_stats("docs")
        assert stats.vector_count == 0


class TestDocuments:
    @pytest.mark.asyncio
    async def test_add_documents_uses_embedding_field(
        self, adapter: MongoDBAdapter, mongo: dict[str, MagicMock]
    ) -> None:
        oid = ObjectId()
        mongo["col"].insert_many = AsyncMock(return_value=MagicMock(inserted_ids=[oid, "raw-id"]))
        ids = await adapter.add_documents(
            "docs",
            [
                VectorDocument(content="a", embedding=[0.1, 0.2, 0.3]),
                VectorDocument(id="raw-id", content="b"),
            ],
        )
        assert ids == [str(oid), "raw-id"]

        records = mongo["col"].insert_many.await_args.args[0]
        assert records[0]["vec"] == [0.1, 0.2, 0.3]
        assert "vec" not in records[1]
        assert records[1]["_id"] == "raw-id"
        assert "createdAt" in records[0]

    @pytest.mark.asyncio
    async def test_get_documents_converts_ids(
        self, adapter: MongoDBAdapter, mongo: dict[str, MagicMock]
    ) -> None:
        oid = ObjectId()
        mongo["col"].find = MagicMock(
            return_value=_cursor([{"_id": oid, "content": "hello", "vec": [1.0], "metadata": {}}])
        )
        docs = await adapter.get_documents("docs", [str(oid)])
        assert docs[0].id == str(oid)
        assert docs[0].embedding == [1.0]
        assert mongo["col"].find.call_args.args[0] == {"_id": {"$in": [oid]}}

    @pytest.mark.asyncio
    async def test_get_document_without_content(
        self, adapter: MongoDBAdapter, mongo: dict[str, MagicMock]
    ) -> None:
        mongo["col"].find = MagicMock(return_value=_cursor([{"_id": "e1", "vec": [0.5]}]))
        docs = await adapter.get_documents("docs", ["e1"])
        assert docs[0].content == ""
        assert docs[0].embedding == [0.5]

    @pytest.mark.asyncio
    async def test_update_sets_only_supplied_fields(
        self, adapter: MongoDBAdapter, mongo: dict[str, MagicMock]
    ) -> None:
        oid = ObjectId()
        mongo["col"].update_one = AsyncMock()
        await adapter.update_documents(
            "docs",
            [
                DocumentUpdate(id=str(oid), content="new text"),
                DocumentUpdate(id="raw-id", embedding=[0.1, 0.2, 0.3]),
                DocumentUpdate(id="untouched"),
            ],
        )

        calls = mongo["col"].update_one.await_args_list
        assert len(calls) == 2
        assert calls[0].args == ({"_id": oid}, {"$set": {"content": "new text"}})
        assert calls[1].args == ({"_id": "raw-id"}, {"$set": {"vec": [0.1, 0.2, 0.3]}})

    @pytest.mark.asyncio
    async def test_count_documents_with_filter(
        self, adapter: MongoDBAdapter, mongo: dict[str, MagicMock]
    ) -> None:
        mongo["col"].count_documents = AsyncMock(return_value=2)
        assert await adapter.count_documents("docs", {"metadata.source": "x"}) == 2
        mongo["col"].count_documents.assert_awaited_with({"metadata.source": "x"})


class TestSearch:
    @pytest.mark.asyncio
    async def test_vector_search(self, adapter: MongoDBAdapter, mongo: dict[str, MagicMock]) -> None:
        oid = ObjectId()
        mongo["col"].aggregate = AsyncMock(
            return_value=_cursor([{"_id": oid, "content": "hit", "metadata": {"a": 1}, "score": 0.87}])
        )
        results = await adapter.search("docs", SearchQuery(vector=[0.1, 0.2, 0.3]))
        assert results[0].id == str(oid)
        assert results[0].score == pytest.approx(0.87)
        pipeline = mongo["col"].aggregate.await_args.args[0]
        assert pipeline[0]["$vectorSearch"]["path"] == "vec"

    @pytest.mark.asyncio
    async def test_text_search_falls_back_to_regex(
        self, adapter: MongoDBAdapter, mongo: dict[str, MagicMock]
    ) -> None:
        text_cursor = _cursor(error=OperationFailure("text index required for $text query"))
        regex_cursor = _cursor(
            [
                {"_id": "1", "content": "first"},
                {"_id": "2", "content": "second"},
            ]
        )
        mongo["col"].find = MagicMock(side_effect=[text_cursor, regex_cursor])

        results = await adapter.search("docs", SearchQuery(text="first second"))
        assert [r.id for r in results] == ["1", "2"]
        assert results[0].score == pytest.approx(1.0)
        assert results[1].score == pytest.approx(0.9)
        assert "$or" in mongo["col"].find.call_args_list[1].args[0]

    @pytest.mark.asyncio
    async def test_text_search_uses_text_score(
        self, adapter: MongoDBAdapter, mongo: dict[str, MagicMock]
    ) -> None:
        mongo["col"].find = MagicMock(
            return_value=_cursor([{"_id": "1", "content": "x", "score": 0.42}])
        )
        results = await adapter.search("docs", SearchQuery(text="x"))
        assert results[0].score == pytest.approx(0.42)
        assert mongo["col"].find.call_args.args[0] == {"$text": {"$search": "x"}}

    @pytest.mark.asyncio
    async def test_regex_fallback_keeps_every_hit(
        self, adapter: MongoDBAdapter, mongo: dict[str, MagicMock]
    ) -> None:
        text_cursor = _cursor(error=OperationFailure("text index required for $text query"))
        regex_cursor = _cursor([{"_id": str(i), "content": f"match {i}"} for i in range(15)])
        mongo["col"].find = MagicMock(side_effect=[text_cursor, regex_cursor])

        results = await adapter.search(
            "docs", SearchQuery(text="match", top_k=15, min_score=0.5)
        )
        assert [r.id for r in results] == [str(i) for i in range(15)]
        assert all(0.0 <= r.score <= 1.0 for r in results)
        assert results[-1].score == 0.0

    @pytest.mark.asyncio
    async def test_text_score_below_min_score_dropped(
        self, adapter: MongoDBAdapter, mongo: dict[str, MagicMock]
    ) -> None:
        mongo["col"].find = MagicMock(
            return_value=_cursor(
                [{"_id": "1", "content": "x", "score": 0.9}, {"_id": "2", "content": "x", "score": 0.2}]
            )
        )
        results = await adapter.search("docs", SearchQuery(text="x", min_score=0.5))
        assert [r.id for r in results] == ["1"]
