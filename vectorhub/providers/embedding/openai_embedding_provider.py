"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Uses ``text-embedding-3-small`` (1536 dims) unless another model is
configured.  The API key comes from settings first and, when that is empty,
from the key store so keys saved at runtime take effect without a restart.
"""

from __future__ import annotations

import openai
import structlog

from vectorhub.config.settings import Settings
from vectorhub.interfaces.embedding_provider import IEmbeddingProvider
from vectorhub.interfaces.key_store import IKeyStore
from vectorhub.utils.errors import ConfigurationError, EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}

_DEFAULT_MODEL = "text-embedding-3-small"


def normalize_embedding_input(text: str) -> str:
    """Collapse newlines to spaces and strip surrounding whitespace."""
    return text.replace("\r\n", " ").replace("\n", " ").strip()


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    The underlying ``AsyncOpenAI`` client is created lazily on first use so
    that a key written to the key store after startup is still picked up.
    """

    def __init__(self, settings: Settings, key_store: IKeyStore | None = None) -> None:
        self._settings = settings
        self._key_store = key_store
        self._client: openai.AsyncOpenAI | None = None
        self._client_key: str | None = None
        self._model = settings.openai_embedding_model or _DEFAULT_MODEL
        self._dimension = _MODEL_DIMENSIONS.get(self._model, 1536)

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Splits into batches of 2048 inputs per API call.
        """
        if not texts:
            return []

        cleaned = [normalize_embedding_input(t) for t in texts]
        if any(not t for t in cleaned):
            raise EmbeddingError(
                message="Cannot embed empty text",
                provider_name=self.get_provider_name(),
            )

        client = self._get_client()
        try:
            all_embeddings: list[list[float]] = []
            for start in range(0, len(cleaned), _OPENAI_BATCH_LIMIT):
                batch = cleaned[start : start + _OPENAI_BATCH_LIMIT]
                response = await client.embeddings.create(input=batch, model=self._model)
                all_embeddings.extend(item.embedding for item in response.data)
                logger.info(
                    "openai_embedding_batch",
                    model=self._model,
                    batch_size=len(batch),
                    tokens=response.usage.total_tokens if response.usage else None,
                )
            return all_embeddings
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"OpenAI embeddings API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return f"openai-{self._model}"

    def is_available(self) -> bool:
        return bool(self._resolve_api_key())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve_api_key(self) -> str:
        if self._settings.openai_api_key:
            return self._settings.openai_api_key
        if self._key_store is not None:
            return self._key_store.get("OPENAI_API_KEY") or ""
        return ""

    def _get_client(self) -> openai.AsyncOpenAI:
        api_key = self._resolve_api_key()
        if not api_key:
            raise ConfigurationError(
                message="OPENAI_API_KEY is not set",
                provider_name=self.get_provider_name(),
            )
        if self._client is None or api_key != self._client_key:
            client_kwargs: dict = {"api_key": api_key}
            if self._settings.openai_base_url:
                client_kwargs["base_url"] = self._settings.openai_base_url
            self._client = openai.AsyncOpenAI(**client_kwargs)
            self._client_key = api_key
        return self._client
