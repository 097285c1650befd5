"""VectorHub FastAPI application entry point.

Wires together registries, the key store, the embedding provider, and all
services via dependency injection.  Loads configuration from ``.env`` and
``config/config.yaml`` and configures structured logging.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from vectorhub import __version__
from vectorhub.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    register_exception_handlers,
)
from vectorhub.api.routes import router as api_router
from vectorhub.config.loader import load_config
from vectorhub.config.settings import Settings
from vectorhub.interfaces.connection_store import IMcpStore, IWebhookStore
from vectorhub.models.webhooks import DeliveryOptions
from vectorhub.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from vectorhub.providers.keys.env_file_key_store import EnvFileKeyStore
from vectorhub.providers.scraper.firecrawl_scraper import FirecrawlScraper
from vectorhub.providers.store.memory_store import MemoryMcpStore, MemoryWebhookStore
from vectorhub.providers.store.sqlite_store import SQLiteMcpStore, SQLiteWebhookStore
from vectorhub.providers.vector_db.mock_adapter import MockDataStore
from vectorhub.services.ingestion_service import IngestionService
from vectorhub.services.mcp_health import McpHealthService
from vectorhub.services.rate_limiter import RateLimiter
from vectorhub.services.search_service import SearchService
from vectorhub.services.webhook_delivery import WebhookDeliveryService
from vectorhub.utils.errors import ConfigurationError
from vectorhub.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Registry selection
# ---------------------------------------------------------------------------


def _build_stores(app_settings: Settings) -> tuple[IWebhookStore, IMcpStore]:
    """Pick the webhook / MCP registry backend named by ``STORE_BACKEND``."""
    backend = app_settings.store_backend.lower()
    if backend == "memory":
        return MemoryWebhookStore(), MemoryMcpStore()
    if backend == "sqlite":
        return (
            SQLiteWebhookStore(db_path=app_settings.store_db_path),
            SQLiteMcpStore(db_path=app_settings.store_db_path),
        )
    raise ConfigurationError(
        message=f"Unknown STORE_BACKEND {app_settings.store_backend!r} (expected memory or sqlite)"
    )


# ---------------------------------------------------------------------------
# Full DI assembly for the FastAPI application
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    config = load_config(settings=app_settings)

    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=app_settings.http_timeout_seconds)
    webhook_store, mcp_store = _build_stores(app_settings)
    key_store = EnvFileKeyStore(path=app_settings.env_file_path)

    # -- Embeddings (key may also arrive later through the key store) --
    embedding_provider = OpenAIEmbeddingProvider(settings=app_settings, key_store=key_store)

    # -- Services --
    delivery_service = WebhookDeliveryService(
        http_client=http_client,
        store=webhook_store,
        secret=app_settings.webhook_secret,
        default_options=DeliveryOptions(
            max_retries=app_settings.webhook_max_retries,
            retry_delay_ms=app_settings.webhook_retry_delay_ms,
            timeout_ms=app_settings.webhook_timeout_ms,
        ),
        test_timeout_ms=app_settings.webhook_test_timeout_ms,
    )
    mcp_health = McpHealthService(http_client=http_client, store=mcp_store)
    search_service = SearchService(embedding_provider=embedding_provider)
    ingestion_service = IngestionService(
        embedding_provider=embedding_provider,
        embedding_concurrency=app_settings.embedding_concurrency,
    )
    scraper = FirecrawlScraper(
        settings=app_settings, http_client=http_client, key_store=key_store
    )
    rate_limiter = RateLimiter(config.get("rate_limits"))

    return {
        "settings": app_settings,
        "config": config,
        "http_client": http_client,
        "webhook_store": webhook_store,
        "mcp_store": mcp_store,
        "key_store": key_store,
        "embedding_provider": embedding_provider,
        "delivery_service": delivery_service,
        "mcp_health": mcp_health,
        "search_service": search_service,
        "ingestion_service": ingestion_service,
        "scraper": scraper,
        "rate_limiter": rate_limiter,
        "mock_store": MockDataStore.with_sample_data(),
        "strict_reads": app_settings.adapter_strict_reads,
        "started_at": time.time(),
    }


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    # Creates the SQLite tables when that backend is selected.
    await components["webhook_store"].initialize()
    await components["mcp_store"].initialize()

    app_config = components["config"]["app"]
    _logger.info(
        "app_startup",
        app=app_config.get("name", "vectorhub"),
        version=__version__,
        environment=app_config["env"],
        listen=f"{app_config['host']}:{app_config['port']}",
        store_backend=settings.store_backend,
        embedding=components["embedding_provider"].get_provider_name(),
        embedding_available=components["embedding_provider"].is_available(),
        scraper_available=components["scraper"].is_available(),
    )

    yield

    # -- Shutdown: close shared httpx client --
    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="VectorHub API",
        version=__version__,
        description=(
            "Manage collections and documents across vector databases "
            "(MongoDB Atlas, Supabase, custom webhooks, MCP servers) through "
            "one API, with text ingestion, semantic search and signed "
            "webhook notifications."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=settings.get_cors_origins())
    register_exception_handlers(application)

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "vectorhub.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
