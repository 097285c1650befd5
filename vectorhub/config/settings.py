"""Application settings loaded from environment variables via pydantic-settings.

Two sources, in priority order:

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-abc123``
  2. The ``.env`` file in the working directory

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.  Defaults apply
when neither source defines a value.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """VectorHub application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # === Embeddings ===
    # Empty string = "not configured"; the embedding provider then falls
    # back to reading the key store file before giving up.
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_embedding_model: str = "text-embedding-3-small"

    # === Web scraping ===
    # Key may also be saved later through the key store (FIRECRAWL_API_KEY).
    firecrawl_api_key: str = ""
    firecrawl_base_url: str = "https://api.firecrawl.dev/v1"
    firecrawl_timeout_seconds: float = 60.0

    # === Webhook delivery ===
    webhook_secret: str = ""
    webhook_max_retries: int = 3
    webhook_retry_delay_ms: int = 1000
    webhook_timeout_ms: int = 30000
    webhook_test_timeout_ms: int = 10000

    # === Chunking ===
    chunk_size: int = 1000
    chunk_overlap: int = 200

    # === Adapters ===
    # When False, best-effort reads (list, stats, count) log a warning and
    # return defaults on backend failure.  When True they re-raise.
    adapter_strict_reads: bool = False
    http_timeout_seconds: float = 30.0
    embedding_concurrency: int = 4

    # === Connection registries ===
    store_backend: str = "memory"  # "memory" | "sqlite"
    store_db_path: str = "data/vectorhub.db"

    # === API key store ===
    env_file_path: str = ".env"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: str = "*"

    def get_cors_origins(self) -> list[str]:
        """Return the comma-separated ``cors_origins`` value as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]
