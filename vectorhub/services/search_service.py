"""Search orchestration: query embedding, dimension checks, text fallback.

Given a :class:`SearchQuery`, the service decides what the adapter receives:

1. A vector whose length differs from the backend's configured dimensions is
   regenerated from ``text`` when possible, otherwise rejected with
   :class:`DimensionMismatchError`.
2. A text-only query is embedded first.  If embedding is unavailable or
   fails, the adapter receives the text-only query and runs its keyword
   search instead.
"""

from __future__ import annotations

import structlog

from vectorhub.interfaces.embedding_provider import IEmbeddingProvider
from vectorhub.models.documents import SearchQuery, SearchResult
from vectorhub.services.client_router import VectorDBClient
from vectorhub.utils.errors import (
    ConfigurationError,
    DimensionMismatchError,
    EmbeddingError,
    InvalidRequestError,
)

logger = structlog.get_logger(logger_name=__name__)


class SearchService:
    """Runs searches through a :class:`VectorDBClient`.

    Parameters
    ----------
    embedding_provider:
        Used to turn query text into a vector.  ``None`` disables semantic
        search for text-only queries.
    """

    def __init__(self, embedding_provider: IEmbeddingProvider | None = None) -> None:
        self._embedder = embedding_provider

    async def search(
        self, client: VectorDBClient, collection: str, query: SearchQuery
    ) -> list[SearchResult]:
        prepared = await self.prepare_query(query, client.expected_dimensions)
        results = await client.search(collection, prepared)
        logger.info(
            "search_completed",
            provider=client.adapter.get_provider_name(),
            collection=collection,
            mode="vector" if prepared.vector else "text",
            results=len(results),
            top_k=prepared.top_k,
        )
        return results

    async def prepare_query(
        self, query: SearchQuery, expected_dimensions: int | None
    ) -> SearchQuery:
        """Return the query the adapter should run."""
        if query.vector:
            if expected_dimensions is None or len(query.vector) == expected_dimensions:
                return query
            if query.text:
                logger.info(
                    "search_vector_regenerated",
                    supplied=len(query.vector),
                    expected=expected_dimensions,
                )
                vector = await self._embed(query.text)
                if vector is not None and len(vector) == expected_dimensions:
                    return query.model_copy(update={"vector": vector})
            raise DimensionMismatchError(
                message=(
                    f"Query vector has {len(query.vector)} dimensions, "
                    f"expected {expected_dimensions}"
                ),
                details={"vector": [f"expected {expected_dimensions} dimensions"]},
            )

        if not query.text:
            raise InvalidRequestError(
                message="Either vector or text must be provided",
                details={"query": ["Either vector or text must be provided"]},
            )
        vector = await self._embed(query.text)
        if vector is None:
            logger.info("search_text_fallback", reason="embedding_unavailable")
            return query
        return query.model_copy(update={"vector": vector})

    async def _embed(self, text: str) -> list[float] | None:
        if self._embedder is None or not self._embedder.is_available():
            return None
        try:
            return await self._embedder.embed_single(text)
        except (EmbeddingError, ConfigurationError) as exc:
            logger.warning("search_embedding_failed", error=str(exc))
            return None
