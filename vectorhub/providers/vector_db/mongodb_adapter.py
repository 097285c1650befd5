"""MongoDB Atlas adapter using pymongo's native asyncio client.

Documents are stored as ``{_id, content, <embedding_field>, metadata,
createdAt}``.  Similarity search runs an Atlas ``$vectorSearch`` aggregation;
text-only queries use a ``$text`` index and fall back to a case-insensitive
regex over ``content``, ``metadata.source`` and ``metadata.title`` when no
text index exists.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

import structlog
from bson import ObjectId
from pymongo import AsyncMongoClient
from pymongo.errors import OperationFailure, PyMongoError

from vectorhub.models.connections import (
    ConnectionConfig,
    ConnectionStatus,
    DistanceMetric,
    MongoDBAtlasConfig,
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
from vectorhub.providers.vector_db.base import NetworkAdapter, rank_score
from vectorhub.utils.concurrency import throttled_gather
from vectorhub.utils.errors import AdapterError, ConfigurationError, NotFoundError

logger = structlog.get_logger(logger_name=__name__)

_SERVER_SELECTION_TIMEOUT_MS = 10000

# Candidate pool handed to $vectorSearch per requested result.
_CANDIDATE_MULTIPLIER = 10


def _to_object_id(value: str) -> ObjectId | str:
    """Return an ObjectId for hex ids and the raw string otherwise."""
    return ObjectId(value) if ObjectId.is_valid(value) else value


def build_vector_search_pipeline(
    config: MongoDBAtlasConfig, query: SearchQuery
) -> list[dict[str, Any]]:
    """Build the ``$vectorSearch`` aggregation for *query*."""
    vector_stage: dict[str, Any] = {
        "index": config.vector_search_index_name or "vector_index",
        "path": config.embedding_field or "embedding",
        "queryVector": query.vector,
        "numCandidates": query.top_k * _CANDIDATE_MULTIPLIER,
        "limit": query.top_k,
    }
    if query.filter:
        vector_stage["filter"] = query.filter

    return [
        {"$vectorSearch": vector_stage},
        {
            "$project": {
                "_id": 1,
                "content": 1,
                "metadata": 1,
                "score": {"$meta": "vectorSearchScore"},
            }
        },
        {"$match": {"score": {"$gte": query.min_score}}},
    ]


def build_regex_filter(text: str) -> dict[str, Any]:
    """OR together the query words as a case-insensitive regex."""
    words = [re.escape(w) for w in text.split() if w]
    pattern = re.compile("|".join(words), re.IGNORECASE)
    return {
        "$or": [
            {"content": {"$regex": pattern}},
            {"metadata.source": {"$regex": pattern}},
            {"metadata.title": {"$regex": pattern}},
        ]
    }


class MongoDBAdapter(NetworkAdapter):
    """Adapter for MongoDB Atlas Vector Search."""

    def __init__(self, strict_reads: bool = False) -> None:
        super().__init__(strict_reads=strict_reads)
        self._client: AsyncMongoClient | None = None
        self._config: MongoDBAtlasConfig | None = None

    def get_provider_name(self) -> str:
        return "mongodb_atlas"

    @property
    def _cfg(self) -> MongoDBAtlasConfig:
        if self._config is None:
            raise self._not_connected()
        return self._config

    @property
    def _db(self) -> Any:
        if self._client is None:
            raise self._not_connected()
        return self._client[self._cfg.database]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, config: ConnectionConfig) -> None:
        if not isinstance(config.config, MongoDBAtlasConfig):
            self._status = ConnectionStatus.ERROR
            raise ConfigurationError(
                message="MongoDB connection requires a mongodb_atlas config block",
                provider_name=self.get_provider_name(),
            )
        self._config = config.config
        client: AsyncMongoClient | None = None
        try:
            client = AsyncMongoClient(
                self._config.connection_string,
                serverSelectionTimeoutMS=_SERVER_SELECTION_TIMEOUT_MS,
            )
            await client.admin.command("ping")
        except PyMongoError as exc:
            self._status = ConnectionStatus.ERROR
            if client is not None:
                await client.close()
            raise AdapterError(
                message=f"Failed to connect to MongoDB: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        self._client = client
        self._status = ConnectionStatus.CONNECTED
        logger.info("mongodb_connected", database=self._config.database)

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
        self._status = ConnectionStatus.DISCONNECTED

    async def test_connection(self) -> TestConnectionResult:
        if self._client is None:
            return TestConnectionResult(success=False, message="Not connected")
        try:
            await self._client.admin.command("ping")
            return TestConnectionResult(success=True, message="Connected to MongoDB Atlas")
        except PyMongoError as exc:
            return TestConnectionResult(success=False, message=str(exc))

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def _collection_info(self, name: str, count: int = 0) -> CollectionInfo:
        return CollectionInfo(
            name=name,
            document_count=count,
            dimensions=self._cfg.dimensions,
            distance_metric=DistanceMetric.COSINE,
        )

    async def list_collections(self) -> list[CollectionInfo]:
        self._ensure_connected()
        try:
            names = await self._db.list_collection_names()
        except PyMongoError as exc:
            return self._degraded("list_collections", exc, [])

        counts = await throttled_gather(
            [self._db[name].estimated_document_count() for name in names]
        )
        infos: list[CollectionInfo] = []
        for name, count in zip(names, counts):
            if isinstance(count, BaseException):
                logger.warning("mongodb_count_failed", collection=name, error=str(count))
                count = 0
            infos.append(self._collection_info(name, int(count)))
        return infos

    async def create_collection(self, config: CreateCollectionConfig) -> CollectionInfo:
        self._ensure_connected()
        try:
            await self._db.create_collection(config.name)
        except PyMongoError as exc:
            raise AdapterError(
                message=f"Failed to create collection '{config.name}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return CollectionInfo(
            name=config.name,
            dimensions=config.dimensions,
            distance_metric=config.distance_metric,
        )

    async def get_collection(self, name: str) -> CollectionInfo:
        self._ensure_connected()
        names = await self._db.list_collection_names(filter={"name": name})
        if name not in names:
            raise NotFoundError(
                message=f"Collection '{name}' not found", provider_name=self.get_provider_name()
            )
        count = await self._db[name].estimated_document_count()
        return self._collection_info(name, int(count))

    async def update_collection(
        self, name: str, updates: UpdateCollectionConfig
    ) -> CollectionInfo:
        # Collections carry no mutable settings beyond their name.
        return await self.get_collection(name)

    async def delete_collection(self, name: str, cascade: bool = False) -> None:
        self._ensure_connected()
        await self._db.drop_collection(name)
        logger.info("mongodb_collection_dropped", collection=name)

    async def get_collection_stats(self, name: str) -> CollectionStats:
        self._ensure_connected()
        try:
            stats = await self._db.command("collStats", name)
        except PyMongoError as exc:
            return self._degraded("get_collection_stats", exc, CollectionStats())
        return CollectionStats(
            vector_count=int(stats.get("count", 0)),
            index_size=int(stats.get("totalIndexSize", 0)),
            last_updated=datetime.now(timezone.utc),
        )

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def _to_mongo(self, doc: VectorDocument) -> dict[str, Any]:
        record: dict[str, Any] = {
            "_id": _to_object_id(doc.id) if doc.id else ObjectId(),
            "content": doc.content,
            "metadata": doc.metadata,
            "createdAt": datetime.now(timezone.utc),
        }
        if doc.embedding is not None:
            record[self._cfg.embedding_field] = doc.embedding
        return record

    def _from_mongo(self, record: dict[str, Any]) -> VectorDocument:
        return VectorDocument(
            id=str(record["_id"]),
            content=record.get("content") or "",
            embedding=record.get(self._cfg.embedding_field),
            metadata=record.get("metadata") or {},
        )

    async def add_documents(
        self, collection: str, documents: list[VectorDocument]
    ) -> list[str]:
        self._ensure_connected()
        records = [self._to_mongo(d) for d in documents]
        result = await self._db[collection].insert_many(records)
        return [str(i) for i in result.inserted_ids]

    async def get_documents(self, collection: str, ids: list[str]) -> list[VectorDocument]:
        self._ensure_connected()
        cursor = self._db[collection].find({"_id": {"$in": [_to_object_id(i) for i in ids]}})
        records = await cursor.to_list(length=None)
        return [self._from_mongo(r) for r in records]

    async def update_documents(self, collection: str, updates: list[DocumentUpdate]) -> None:
        self._ensure_connected()
        col = self._db[collection]
        for update in updates:
            fields = update.changes()
            if "embedding" in fields:
                fields[self._cfg.embedding_field] = fields.pop("embedding")
            if not fields:
                continue
            await col.update_one({"_id": _to_object_id(update.id)}, {"$set": fields})

    async def delete_documents(self, collection: str, ids: list[str]) -> None:
        self._ensure_connected()
        await self._db[collection].delete_many(
            {"_id": {"$in": [_to_object_id(i) for i in ids]}}
        )

    async def count_documents(
        self, collection: str, filter: dict[str, Any] | None = None
    ) -> int:
        self._ensure_connected()
        try:
            return int(await self._db[collection].count_documents(filter or {}))
        except PyMongoError as exc:
            return self._degraded("count_documents", exc, 0)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, collection: str, query: SearchQuery) -> list[SearchResult]:
        self._ensure_connected()
        col = self._db[collection]

        if query.vector:
            cursor = await col.aggregate(build_vector_search_pipeline(self._cfg, query))
            records = await cursor.to_list(length=None)
            return [self._to_result(r, float(r.get("score", 0.0)), query) for r in records]

        records = await self._text_search(col, query)
        results: list[SearchResult] = []
        for i, record in enumerate(records):
            if "score" in record:
                # $text relevance is a real score; regex hits only have a rank.
                score = float(record["score"])
                if score < query.min_score:
                    continue
            else:
                score = rank_score(i)
            results.append(self._to_result(record, score, query))
        return results

    async def _text_search(self, col: Any, query: SearchQuery) -> list[dict[str, Any]]:
        text = query.text or ""
        base_filter = dict(query.filter or {})
        try:
            cursor = (
                col.find(
                    {**base_filter, "$text": {"$search": text}},
                    {"score": {"$meta": "textScore"}, "content": 1, "metadata": 1},
                )
                .sort([("score", {"$meta": "textScore"})])
                .limit(query.top_k)
            )
            return await cursor.to_list(length=None)
        except OperationFailure as exc:
            logger.info("mongodb_text_index_missing", error=str(exc))

        regex_filter = build_regex_filter(text)
        if base_filter:
            regex_filter = {"$and": [base_filter, regex_filter]}
        cursor = col.find(regex_filter, {"content": 1, "metadata": 1}).limit(query.top_k)
        return await cursor.to_list(length=None)

    @staticmethod
    def _to_result(record: dict[str, Any], score: float, query: SearchQuery) -> SearchResult:
        return SearchResult(
            id=str(record["_id"]),
            score=score,
            content=(record.get("content") or "") if query.include_content else "",
            metadata=(record.get("metadata") or {}) if query.include_metadata else {},
        )
