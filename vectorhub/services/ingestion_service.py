"""Ingestion pipeline: chunk -> embed -> store.

Raw text uploaded through the API (or scraped from a URL) is split by
:class:`TextChunker`, each chunk is embedded with bounded concurrency, and
the chunks are written through the request's :class:`VectorDBClient`.
Document batches can also be synced: ids already stored are updated, the
rest inserted.  Webhook events for a finished run are built by
:meth:`IngestionService.created_event` and :meth:`IngestionService.sync_events`
and published by the caller, after the response is sent.

A chunk whose embedding fails is still stored, without a vector, so keyword
search can find it; the failure is logged.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any

import structlog

from vectorhub.interfaces.embedding_provider import IEmbeddingProvider
from vectorhub.interfaces.web_scraper import ScrapedPage
from vectorhub.models.documents import (
    DocumentSyncResult,
    DocumentUpdate,
    IngestionResult,
    VectorDocument,
)
from vectorhub.models.webhooks import EVENT_DOCUMENT_CREATED, EVENT_DOCUMENT_UPDATED
from vectorhub.services.chunker import TextChunker
from vectorhub.services.client_router import VectorDBClient
from vectorhub.utils.concurrency import throttled_gather

logger = structlog.get_logger(logger_name=__name__)


class IngestionService:
    """Coordinates chunking, embedding and storage of uploaded text.

    Parameters
    ----------
    embedding_provider:
        Embeds chunks; ``None`` stores chunks without vectors.
    embedding_concurrency:
        Maximum simultaneous embedding calls.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider | None = None,
        embedding_concurrency: int = 4,
    ) -> None:
        self._embedder = embedding_provider
        self._embedding_concurrency = embedding_concurrency

    async def ingest_text(
        self,
        client: VectorDBClient,
        collection: str,
        content: str,
        title: str | None = None,
        source: str | None = None,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        metadata: dict[str, Any] | None = None,
    ) -> IngestionResult:
        start = time.perf_counter()
        base_metadata: dict[str, Any] = dict(metadata or {})
        if title:
            base_metadata["title"] = title
        if source:
            base_metadata["source"] = source

        chunks = TextChunker(chunk_size, chunk_overlap).chunk(content, base_metadata)
        if not chunks:
            return IngestionResult(collection=collection)

        chunks = await self._embed_chunks(chunks)
        ids = await client.add_documents(collection, chunks)
        embedded = sum(1 for c in chunks if c.embedding is not None)

        result = IngestionResult(
            collection=collection,
            ids=ids,
            chunks_created=len(chunks),
            embedded=embedded,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        logger.info(
            "ingestion_complete",
            collection=collection,
            title=title,
            chunks=result.chunks_created,
            embedded=embedded,
            duration_ms=result.duration_ms,
        )
        return result

    async def ingest_page(
        self,
        client: VectorDBClient,
        collection: str,
        page: ScrapedPage,
        title: str | None = None,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        metadata: dict[str, Any] | None = None,
    ) -> IngestionResult:
        """Ingest a scraped page, tagging chunks with the URL and scrape time."""
        page_metadata: dict[str, Any] = {
            "source_type": "web",
            "url": page.url,
            "scraped_at": datetime.now(timezone.utc).isoformat(),
            **(metadata or {}),
        }
        return await self.ingest_text(
            client,
            collection,
            page.content,
            title=title or page.title,
            source=page.url,
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            metadata=page_metadata,
        )

    async def sync_documents(
        self,
        client: VectorDBClient,
        collection: str,
        documents: list[VectorDocument],
        connection_id: str | None = None,
    ) -> DocumentSyncResult:
        """Make *collection* hold *documents*: known ids are updated, the rest inserted.

        Documents without an embedding are embedded first when a provider is
        available.  Stored documents absent from the batch are left alone.
        """
        documents = await self._embed_chunks(documents)
        given_ids = [d.id for d in documents if d.id]
        existing: set[str] = set()
        if given_ids:
            existing = {d.id for d in await client.get_documents(collection, given_ids) if d.id}

        updates = [
            DocumentUpdate(
                id=d.id, content=d.content, embedding=d.embedding, metadata=d.metadata
            )
            for d in documents
            if d.id in existing
        ]
        inserts = [d for d in documents if d.id not in existing]

        if updates:
            await client.update_documents(collection, updates)
        created_ids = await client.add_documents(collection, inserts) if inserts else []
        updated_ids = [u.id for u in updates]

        logger.info(
            "documents_synced",
            collection=collection,
            connection_id=connection_id,
            created=len(created_ids),
            updated=len(updated_ids),
        )
        return DocumentSyncResult(
            collection=collection,
            connection_id=connection_id,
            synced_count=len(created_ids) + len(updated_ids),
            synced_ids=updated_ids + created_ids,
            created_ids=created_ids,
            updated_ids=updated_ids,
        )

    @staticmethod
    def created_event(
        result: IngestionResult, title: str | None = None
    ) -> tuple[str, dict[str, Any]] | None:
        """Return ``(event_type, data)`` for *result*, or ``None`` when nothing was stored."""
        if not result.ids:
            return None
        return EVENT_DOCUMENT_CREATED, {
            "collection": result.collection,
            "ids": result.ids,
            "title": title,
            "count": len(result.ids),
        }

    @staticmethod
    def sync_events(result: DocumentSyncResult) -> list[tuple[str, dict[str, Any]]]:
        events: list[tuple[str, dict[str, Any]]] = []
        if result.created_ids:
            events.append(
                (
                    EVENT_DOCUMENT_CREATED,
                    {
                        "collection": result.collection,
                        "ids": result.created_ids,
                        "count": len(result.created_ids),
                    },
                )
            )
        if result.updated_ids:
            events.append(
                (
                    EVENT_DOCUMENT_UPDATED,
                    {"collection": result.collection, "ids": result.updated_ids},
                )
            )
        return events

    async def _embed_chunks(self, chunks: list[VectorDocument]) -> list[VectorDocument]:
        pending = [c for c in chunks if c.embedding is None]
        if not pending:
            return chunks
        if self._embedder is None or not self._embedder.is_available():
            logger.info("ingestion_embedding_skipped", chunks=len(pending))
            return chunks

        semaphore = asyncio.Semaphore(self._embedding_concurrency)
        vectors = iter(
            await throttled_gather(
                [self._embedder.embed_single(c.content) for c in pending],
                semaphore=semaphore,
            )
        )

        embedded: list[VectorDocument] = []
        for chunk in chunks:
            if chunk.embedding is not None:
                embedded.append(chunk)
                continue
            vector = next(vectors)
            if isinstance(vector, BaseException):
                logger.warning(
                    "ingestion_chunk_embedding_failed",
                    chunk_index=chunk.metadata.get("chunk_index"),
                    error=str(vector),
                )
                embedded.append(chunk)
            else:
                embedded.append(chunk.model_copy(update={"embedding": vector}))
        return embedded
