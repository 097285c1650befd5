"""In-process mock adapter.

Serves demo mode (requests without a connection config) and every backend
kind that has no native adapter yet.  Data lives in a :class:`MockDataStore`
which the application shares across requests, so documents added in one
request are visible to the next.
"""

from __future__ import annotations

import asyncio
import math
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from vectorhub.interfaces.vector_db_adapter import IVectorDBAdapter
from vectorhub.models.connections import ConnectionConfig, ConnectionStatus, DistanceMetric
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
from vectorhub.utils.errors import InvalidRequestError, NotFoundError

logger = structlog.get_logger(logger_name=__name__)

_WORD_RE = re.compile(r"\w+")

# Rough per-document footprint used for index size estimates.
_BYTES_PER_FLOAT = 4


@dataclass
class _MockCollection:
    name: str
    dimensions: int
    distance_metric: DistanceMetric
    description: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    documents: dict[str, VectorDocument] = field(default_factory=dict)
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def info(self) -> CollectionInfo:
        return CollectionInfo(
            name=self.name,
            document_count=len(self.documents),
            dimensions=self.dimensions,
            distance_metric=self.distance_metric,
        )

    def touch(self) -> None:
        self.last_updated = datetime.now(timezone.utc)


class MockDataStore:
    """Shared in-memory collections backing every :class:`MockAdapter`."""

    def __init__(self) -> None:
        self.collections: dict[str, _MockCollection] = {}
        self.lock = asyncio.Lock()

    @classmethod
    def with_sample_data(cls) -> MockDataStore:
        """Return a store pre-populated with a small demo collection."""
        store = cls()
        sample = _MockCollection(
            name="sample_docs",
            dimensions=1536,
            distance_metric=DistanceMetric.COSINE,
            description="Demo collection",
        )
        for index, text in enumerate(
            (
                "Vector databases store embeddings for similarity search.",
                "Chunking splits long documents into overlapping windows.",
                "Webhooks notify subscribers when documents change.",
            )
        ):
            doc_id = f"sample-{index + 1}"
            sample.documents[doc_id] = VectorDocument(
                id=doc_id, content=text, metadata={"source": "demo", "title": "Sample"}
            )
        store.collections[sample.name] = sample
        return store


# ---------------------------------------------------------------------------
# Scoring helpers
# ---------------------------------------------------------------------------


def _vector_score(a: list[float], b: list[float], metric: DistanceMetric) -> float:
    if len(a) != len(b):
        return 0.0
    if metric == DistanceMetric.DOT_PRODUCT:
        return sum(x * y for x, y in zip(a, b))
    if metric == DistanceMetric.EUCLIDEAN:
        distance = math.sqrt(sum((x - y) ** 2 for x, y in zip(a, b)))
        return 1.0 / (1.0 + distance)
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return sum(x * y for x, y in zip(a, b)) / (norm_a * norm_b)


def _text_score(query: str, content: str) -> float:
    terms = {t.lower() for t in _WORD_RE.findall(query)}
    if not terms:
        return 0.0
    words = {w.lower() for w in _WORD_RE.findall(content)}
    return len(terms & words) / len(terms)


def _matches_filter(metadata: dict[str, Any], flt: dict[str, Any] | None) -> bool:
    if not flt:
        return True
    return all(metadata.get(key) == value for key, value in flt.items())


class MockAdapter(IVectorDBAdapter):
    """Adapter over a :class:`MockDataStore`.

    Parameters
    ----------
    store:
        Shared data store.  A private empty store is used when omitted.
    provider_name:
        Reported backend kind; the router passes the requested type so
        unimplemented kinds still report what the caller asked for.
    """

    def __init__(self, store: MockDataStore | None = None, provider_name: str = "mock") -> None:
        super().__init__()
        self._store = store or MockDataStore()
        self._provider_name = provider_name

    def get_provider_name(self) -> str:
        return self._provider_name

    async def connect(self, config: ConnectionConfig) -> None:
        self._status = ConnectionStatus.CONNECTED
        logger.debug("mock_adapter_connected", connection_id=config.id, kind=self._provider_name)

    async def disconnect(self) -> None:
        self._status = ConnectionStatus.DISCONNECTED

    async def test_connection(self) -> TestConnectionResult:
        return TestConnectionResult(success=True, message="Mock adapter is always reachable")

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def _collection(self, name: str) -> _MockCollection:
        collection = self._store.collections.get(name)
        if collection is None:
            raise NotFoundError(
                message=f"Collection '{name}' not found", provider_name=self._provider_name
            )
        return collection

    async def list_collections(self) -> list[CollectionInfo]:
        self._ensure_connected()
        return [c.info() for c in self._store.collections.values()]

    async def create_collection(self, config: CreateCollectionConfig) -> CollectionInfo:
        self._ensure_connected()
        async with self._store.lock:
            if config.name in self._store.collections:
                raise InvalidRequestError(
                    message=f"Collection '{config.name}' already exists",
                    provider_name=self._provider_name,
                )
            collection = _MockCollection(
                name=config.name,
                dimensions=config.dimensions,
                distance_metric=config.distance_metric,
                description=config.description,
            )
            self._store.collections[config.name] = collection
        return collection.info()

    async def get_collection(self, name: str) -> CollectionInfo:
        self._ensure_connected()
        return self._collection(name).info()

    async def update_collection(
        self, name: str, updates: UpdateCollectionConfig
    ) -> CollectionInfo:
        self._ensure_connected()
        collection = self._collection(name)
        if updates.description is not None:
            collection.description = updates.description
        if updates.metadata:
            collection.metadata.update(updates.metadata)
        collection.touch()
        return collection.info()

    async def delete_collection(self, name: str, cascade: bool = False) -> None:
        self._ensure_connected()
        async with self._store.lock:
            self._collection(name)
            del self._store.collections[name]

    async def get_collection_stats(self, name: str) -> CollectionStats:
        self._ensure_connected()
        collection = self._collection(name)
        index_size = sum(
            len(doc.embedding or []) * _BYTES_PER_FLOAT for doc in collection.documents.values()
        )
        return CollectionStats(
            vector_count=len(collection.documents),
            index_size=index_size,
            last_updated=collection.last_updated,
        )

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def add_documents(
        self, collection: str, documents: list[VectorDocument]
    ) -> list[str]:
        self._ensure_connected()
        target = self._collection(collection)
        ids: list[str] = []
        async with self._store.lock:
            for doc in documents:
                doc_id = doc.id or str(uuid.uuid4())
                target.documents[doc_id] = doc.model_copy(update={"id": doc_id})
                ids.append(doc_id)
            target.touch()
        return ids

    async def get_documents(self, collection: str, ids: list[str]) -> list[VectorDocument]:
        self._ensure_connected()
        target = self._collection(collection)
        return [target.documents[i] for i in ids if i in target.documents]

    async def update_documents(self, collection: str, updates: list[DocumentUpdate]) -> None:
        self._ensure_connected()
        target = self._collection(collection)
        async with self._store.lock:
            for update in updates:
                existing = target.documents.get(update.id)
                if existing is not None:
                    target.documents[update.id] = existing.model_copy(update=update.changes())
            target.touch()

    async def delete_documents(self, collection: str, ids: list[str]) -> None:
        self._ensure_connected()
        target = self._collection(collection)
        async with self._store.lock:
            for doc_id in ids:
                target.documents.pop(doc_id, None)
            target.touch()

    async def count_documents(
        self, collection: str, filter: dict[str, Any] | None = None
    ) -> int:
        self._ensure_connected()
        target = self._collection(collection)
        return sum(1 for d in target.documents.values() if _matches_filter(d.metadata, filter))

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, collection: str, query: SearchQuery) -> list[SearchResult]:
        self._ensure_connected()
        target = self._collection(collection)

        results: list[SearchResult] = []
        for doc in target.documents.values():
            if not _matches_filter(doc.metadata, query.filter):
                continue
            if query.vector and doc.embedding:
                score = _vector_score(query.vector, doc.embedding, target.distance_metric)
            elif query.text:
                score = _text_score(query.text, doc.content)
            else:
                continue
            if score < query.min_score or score <= 0:
                continue
            results.append(
                SearchResult(
                    id=doc.id or "",
                    score=score,
                    content=doc.content if query.include_content else "",
                    metadata=doc.metadata if query.include_metadata else {},
                )
            )

        results.sort(key=lambda r: r.score, reverse=True)
        return results[: query.top_k]
