"""Business-logic services.

- **chunker** -- character-window text splitting with boundary snapping.
- **client_router** -- per-connection adapter selection (``VectorDBClient``).
- **webhook_delivery** -- signed outbound event delivery with retries.
- **mcp_health** -- reachability checks and sync for MCP registry entries.
- **rate_limiter** -- fixed-window request budgets per route category.
- **search_service** / **ingestion_service** -- embedding-aware search and
  the chunk -> embed -> store upload pipeline.
"""

from vectorhub.services.chunker import TextChunker, split_text
from vectorhub.services.client_router import (
    AdapterContext,
    VectorDBClient,
    create_adapter,
    register_adapter,
    registered_types,
)
from vectorhub.services.ingestion_service import IngestionService
from vectorhub.services.mcp_health import McpHealthService, status_from_health
from vectorhub.services.rate_limiter import RateLimiter, client_identifier
from vectorhub.services.search_service import SearchService
from vectorhub.services.webhook_delivery import (
    WebhookDeliveryService,
    create_webhook_payload,
    generate_signature,
    verify_signature,
)

__all__ = [
    "AdapterContext",
    "IngestionService",
    "McpHealthService",
    "RateLimiter",
    "SearchService",
    "TextChunker",
    "VectorDBClient",
    "WebhookDeliveryService",
    "client_identifier",
    "create_adapter",
    "create_webhook_payload",
    "generate_signature",
    "register_adapter",
    "registered_types",
    "split_text",
    "status_from_health",
    "verify_signature",
]
