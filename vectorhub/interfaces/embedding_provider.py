"""Abstract base class for text-embedding providers.

Embeddings produced here are stored alongside document chunks during
ingestion and used as query vectors by the search service.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class IEmbeddingProvider(ABC):
    """Contract for text-embedding services."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            Text strings to embed.  Each is normalized (newlines collapsed,
            surrounding whitespace stripped) before it is sent.

        Returns
        -------
        list[list[float]]
            Vectors corresponding positionally to *texts*.

        Raises
        ------
        vectorhub.utils.errors.EmbeddingError
            If any input is empty after normalization or the API call fails.
        vectorhub.utils.errors.ConfigurationError
            If no API key is available.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the length of produced vectors, e.g. ``1536``."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai-text-embedding-3-small"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are present (no network call)."""
