"""Supabase (Postgres + pgvector) adapter.

Each configured table is exposed as a collection with columns
``id``, ``content``, ``metadata`` (jsonb) and ``embedding`` (vector).
Vector search calls the ``match_documents`` stored procedure; text-only
queries fall back to an ``ilike`` scan of ``content``.  Creating or dropping
tables needs DDL rights the REST API does not grant, so those operations
raise :class:`UnsupportedOperationError`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from vectorhub.models.connections import (
    ConnectionConfig,
    ConnectionStatus,
    DistanceMetric,
    SupabaseConfig,
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
from vectorhub.utils.errors import (
    AdapterError,
    ConfigurationError,
    NotFoundError,
    UnsupportedOperationError,
)

logger = structlog.get_logger(logger_name=__name__)


class SupabaseAdapter(NetworkAdapter):
    """Adapter for pgvector tables behind the Supabase REST API."""

    def __init__(self, strict_reads: bool = False) -> None:
        super().__init__(strict_reads=strict_reads)
        self._client: AsyncClient | None = None
        self._config: SupabaseConfig | None = None

    def get_provider_name(self) -> str:
        return "supabase"

    @property
    def _cfg(self) -> SupabaseConfig:
        if self._config is None:
            raise self._not_connected()
        return self._config

    def _db(self) -> Any:
        if self._client is None:
            raise self._not_connected()
        return self._client.schema(self._cfg.schema_name)

    def _require_table(self, name: str) -> None:
        if name not in self._cfg.tables:
            raise NotFoundError(
                message=f"Collection '{name}' not found", provider_name=self.get_provider_name()
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, config: ConnectionConfig) -> None:
        if not isinstance(config.config, SupabaseConfig):
            self._status = ConnectionStatus.ERROR
            raise ConfigurationError(
                message="Supabase connection requires a supabase config block",
                provider_name=self.get_provider_name(),
            )
        self._config = config.config
        key = self._config.service_role_key or self._config.anon_key
        try:
            self._client = await acreate_client(self._config.project_url, key)
        except Exception as exc:
            self._status = ConnectionStatus.ERROR
            raise AdapterError(
                message=f"Failed to create Supabase client: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        self._status = ConnectionStatus.CONNECTED
        logger.info("supabase_connected", project_url=self._config.project_url)

    async def disconnect(self) -> None:
        self._client = None
        self._status = ConnectionStatus.DISCONNECTED

    async def test_connection(self) -> TestConnectionResult:
        if self._client is None or self._config is None:
            return TestConnectionResult(success=False, message="Not configured")
        table = self._config.tables[0] if self._config.tables else "documents"
        try:
            await self._db().table(table).select("id").limit(1).execute()
            return TestConnectionResult(success=True, message="Supabase connection successful")
        except APIError as exc:
            return TestConnectionResult(success=False, message=f"Connection failed: {exc.message}")

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def _count(self, table: str, filter: dict[str, Any] | None = None) -> int:
        request = self._db().table(table).select("id", count="exact", head=True)
        if filter:
            request = request.contains("metadata", filter)
        response = await request.execute()
        return int(response.count or 0)

    def _info(self, name: str, count: int) -> CollectionInfo:
        return CollectionInfo(
            name=name,
            document_count=count,
            dimensions=self._cfg.dimensions,
            distance_metric=DistanceMetric.COSINE,
        )

    async def list_collections(self) -> list[CollectionInfo]:
        self._ensure_connected()
        infos: list[CollectionInfo] = []
        try:
            for table in self._cfg.tables:
                infos.append(self._info(table, await self._count(table)))
        except APIError as exc:
            return self._degraded("list_collections", exc, [])
        return infos

    async def create_collection(self, config: CreateCollectionConfig) -> CollectionInfo:
        raise UnsupportedOperationError(
            message=(
                "Supabase collections are Postgres tables; create the table and "
                "match_documents function with a migration"
            ),
            provider_name=self.get_provider_name(),
        )

    async def get_collection(self, name: str) -> CollectionInfo:
        self._ensure_connected()
        self._require_table(name)
        try:
            count = await self._count(name)
        except APIError as exc:
            count = self._degraded("get_collection", exc, 0)
        return self._info(name, count)

    async def update_collection(
        self, name: str, updates: UpdateCollectionConfig
    ) -> CollectionInfo:
        return await self.get_collection(name)

    async def delete_collection(self, name: str, cascade: bool = False) -> None:
        raise UnsupportedOperationError(
            message="Dropping Supabase tables is not supported; use a migration",
            provider_name=self.get_provider_name(),
        )

    async def get_collection_stats(self, name: str) -> CollectionStats:
        self._ensure_connected()
        self._require_table(name)
        try:
            count = await self._count(name)
        except APIError as exc:
            return self._degraded("get_collection_stats", exc, CollectionStats())
        return CollectionStats(
            vector_count=count, index_size=0, last_updated=datetime.now(timezone.utc)
        )

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @staticmethod
    def _to_row(doc: VectorDocument) -> dict[str, Any]:
        row: dict[str, Any] = {"content": doc.content, "metadata": doc.metadata}
        if doc.id:
            row["id"] = doc.id
        if doc.embedding is not None:
            row["embedding"] = doc.embedding
        return row

    @staticmethod
    def _from_row(row: dict[str, Any]) -> VectorDocument:
        embedding = row.get("embedding")
        if isinstance(embedding, str):
            # pgvector columns come back as "[0.1,0.2,...]" text.
            embedding = [float(x) for x in embedding.strip("[]").split(",") if x]
        return VectorDocument(
            id=str(row["id"]),
            content=row.get("content") or "",
            embedding=embedding,
            metadata=row.get("metadata") or {},
        )

    async def add_documents(
        self, collection: str, documents: list[VectorDocument]
    ) -> list[str]:
        self._ensure_connected()
        self._require_table(collection)
        response = await (
            self._db().table(collection).insert([self._to_row(d) for d in documents]).execute()
        )
        return [str(row["id"]) for row in response.data or []]

    async def get_documents(self, collection: str, ids: list[str]) -> list[VectorDocument]:
        self._ensure_connected()
        self._require_table(collection)
        response = await self._db().table(collection).select("*").in_("id", ids).execute()
        return [self._from_row(row) for row in response.data or []]

    async def update_documents(self, collection: str, updates: list[DocumentUpdate]) -> None:
        self._ensure_connected()
        self._require_table(collection)
        for update in updates:
            changes = update.changes()
            if changes:
                await self._db().table(collection).update(changes).eq("id", update.id).execute()

    async def delete_documents(self, collection: str, ids: list[str]) -> None:
        self._ensure_connected()
        self._require_table(collection)
        await self._db().table(collection).delete().in_("id", ids).execute()

    async def count_documents(
        self, collection: str, filter: dict[str, Any] | None = None
    ) -> int:
        self._ensure_connected()
        self._require_table(collection)
        try:
            return await self._count(collection, filter)
        except APIError as exc:
            return self._degraded("count_documents", exc, 0)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, collection: str, query: SearchQuery) -> list[SearchResult]:
        self._ensure_connected()
        self._require_table(collection)
        try:
            if query.vector:
                params: dict[str, Any] = {
                    "query_embedding": query.vector,
                    "match_threshold": query.min_score,
                    "match_count": query.top_k,
                }
                if query.filter:
                    params["filter"] = query.filter
                response = await self._db().rpc(self._cfg.match_function, params).execute()
                rows = response.data or []
                scored = [(row, float(row.get("similarity", 0.0))) for row in rows]
                scored = [(row, s) for row, s in scored if s >= query.min_score]
            else:
                request = (
                    self._db()
                    .table(collection)
                    .select("id, content, metadata")
                    .ilike("content", f"%{query.text}%")
                )
                if query.filter:
                    request = request.contains("metadata", query.filter)
                response = await request.limit(query.top_k).execute()
                scored = [(row, rank_score(i)) for i, row in enumerate(response.data or [])]
        except APIError as exc:
            return self._degraded("search", exc, [])

        results = [
            SearchResult(
                id=str(row["id"]),
                score=score,
                content=(row.get("content") or "") if query.include_content else "",
                metadata=(row.get("metadata") or {}) if query.include_metadata else {},
            )
            for row, score in scored
        ]
        return results
