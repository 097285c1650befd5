"""Utility modules for VectorHub.

- **errors** -- Exception hierarchy rooted at VectorHubError; each class
  carries a stable error ``code`` and the HTTP status the API answers with.
- **concurrency** -- Semaphore-bounded ``asyncio.gather`` helpers used for
  webhook broadcast, chunk embedding and per-collection counting.
- **logging** -- structlog setup with console output in development and
  JSON in production.
"""

from vectorhub.utils.concurrency import throttled_gather
from vectorhub.utils.errors import (
    AdapterError,
    CapabilityUnsupportedError,
    ConfigurationError,
    DimensionMismatchError,
    EmbeddingError,
    InvalidRequestError,
    NotConnectedError,
    NotFoundError,
    ProviderUnavailableError,
    RateLimitError,
    UnsupportedOperationError,
    VectorHubError,
)
from vectorhub.utils.logging import configure_logging, get_logger

__all__ = [
    "AdapterError",
    "CapabilityUnsupportedError",
    "ConfigurationError",
    "DimensionMismatchError",
    "EmbeddingError",
    "InvalidRequestError",
    "NotConnectedError",
    "NotFoundError",
    "ProviderUnavailableError",
    "RateLimitError",
    "UnsupportedOperationError",
    "VectorHubError",
    "configure_logging",
    "get_logger",
    "throttled_gather",
]
