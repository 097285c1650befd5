"""Abstract base class for vector-database adapters.

Every backend (MongoDB Atlas, Supabase, a generic REST webhook, an MCP
server, the in-process mock) implements this contract so the API layer can
treat them interchangeably.  Adapters are created per request by
:mod:`vectorhub.services.client_router` and are not shared between
requests.

Lifecycle::

    disconnected --connect() ok--> connected --disconnect()--> disconnected
    disconnected --connect() fails--> error

Every data operation on an adapter that is not connected raises
:class:`~vectorhub.utils.errors.NotConnectedError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from vectorhub.models.connections import ConnectionConfig, ConnectionStatus
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
from vectorhub.utils.errors import NotConnectedError


# Concrete implementations (vectorhub/providers/vector_db/):
#   MockAdapter      -- in-process data, used for demo mode and unknown kinds
#   MongoDBAdapter   -- Atlas $vectorSearch via pymongo's async client
#   SupabaseAdapter  -- pgvector tables + match_documents RPC
#   WebhookAdapter   -- user-defined REST endpoints over httpx
#   MCPAdapter       -- JSON-RPC 2.0 tool calls over httpx
class IVectorDBAdapter(ABC):
    """Contract for a vector database backend."""

    def __init__(self) -> None:
        self._status = ConnectionStatus.DISCONNECTED

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    async def connect(self, config: ConnectionConfig) -> None:
        """Open a session against the backend described by *config*.

        Parameters
        ----------
        config:
            The connection whose ``config`` block matches this adapter.

        Raises
        ------
        vectorhub.utils.errors.AdapterError
            If the backend cannot be reached.  The adapter's status is
            ``error`` afterwards.
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Release backend resources.  Safe to call when not connected."""

    @abstractmethod
    async def test_connection(self) -> TestConnectionResult:
        """Check the backend without raising.

        Returns
        -------
        TestConnectionResult
            ``success=False`` with a message when the check fails.
        """

    def get_connection_status(self) -> ConnectionStatus:
        return self._status

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the backend kind handled by this adapter, e.g. ``"mongodb_atlas"``."""

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_collections(self) -> list[CollectionInfo]:
        """Return every collection with its live document count."""

    @abstractmethod
    async def create_collection(self, config: CreateCollectionConfig) -> CollectionInfo:
        """Create a collection.

        Raises
        ------
        vectorhub.utils.errors.UnsupportedOperationError
            If the backend does not allow creating collections.
        """

    @abstractmethod
    async def get_collection(self, name: str) -> CollectionInfo:
        """Return one collection.

        Raises
        ------
        vectorhub.utils.errors.NotFoundError
            If no collection called *name* exists.
        """

    @abstractmethod
    async def update_collection(
        self, name: str, updates: UpdateCollectionConfig
    ) -> CollectionInfo:
        """Apply metadata-level updates and return the resulting collection."""

    @abstractmethod
    async def delete_collection(self, name: str, cascade: bool = False) -> None:
        """Drop a collection.  *cascade* also removes its documents where relevant."""

    @abstractmethod
    async def get_collection_stats(self, name: str) -> CollectionStats:
        """Return vector count, index size in bytes and last-updated time."""

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @abstractmethod
    async def add_documents(
        self, collection: str, documents: list[VectorDocument]
    ) -> list[str]:
        """Insert *documents* and return their ids in input order.

        Documents without an ``id`` get one assigned by the adapter or the
        backend.
        """

    @abstractmethod
    async def get_documents(self, collection: str, ids: list[str]) -> list[VectorDocument]:
        """Fetch documents by id.  Unknown ids are skipped."""

    @abstractmethod
    async def update_documents(self, collection: str, updates: list[DocumentUpdate]) -> None:
        """Apply partial updates; fields left unset on an update are kept as stored."""

    @abstractmethod
    async def delete_documents(self, collection: str, ids: list[str]) -> None:
        """Delete documents by id."""

    @abstractmethod
    async def count_documents(
        self, collection: str, filter: dict[str, Any] | None = None
    ) -> int:
        """Count documents, optionally restricted by an equality *filter*."""

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    @abstractmethod
    async def search(self, collection: str, query: SearchQuery) -> list[SearchResult]:
        """Run a similarity search (vector) or keyword search (text only).

        Results are ordered by descending score.  Similarity scores below
        ``query.min_score`` are dropped; keyword fallbacks without a native
        relevance score use rank-based scores in [0, 1] and are not filtered.
        """

    # ------------------------------------------------------------------
    # Helpers for implementations
    # ------------------------------------------------------------------

    def _ensure_connected(self) -> None:
        if self._status != ConnectionStatus.CONNECTED:
            raise NotConnectedError(provider_name=self.get_provider_name())
