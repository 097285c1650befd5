"""Custom exception hierarchy for VectorHub.

All application exceptions inherit from :class:`VectorHubError`, which
carries an optional ``provider_name`` so error handlers can identify which
backend (e.g. "mongodb_atlas", "supabase", "openai") caused the failure.

Every class also declares a stable machine-readable ``code`` and the HTTP
``status_code`` the API layer answers with:

    VectorHubError               INTERNAL_ERROR          500
    +-- NotFoundError            NOT_FOUND               404
    +-- InvalidRequestError      VALIDATION_ERROR        400
    +-- DimensionMismatchError   DIMENSION_MISMATCH      400
    +-- RateLimitError           RATE_LIMIT_EXCEEDED     429
    +-- NotConnectedError        NOT_CONNECTED           409
    +-- CapabilityUnsupportedError CAPABILITY_UNSUPPORTED 400
    +-- UnsupportedOperationError NOT_SUPPORTED          501
    +-- AdapterError             INTERNAL_ERROR          500
    +-- EmbeddingError           EMBEDDING_ERROR         502
    +-- ScrapeError              SCRAPE_FAILED           502
    +-- ProviderUnavailableError PROVIDER_UNAVAILABLE    503
    +-- ConfigurationError       CONFIGURATION_ERROR     500

Adapters raise these; :class:`~vectorhub.api.middleware.ErrorHandlingMiddleware`
turns them into ``{"code", "message"}`` JSON bodies.
"""

from __future__ import annotations

from typing import Any


class VectorHubError(Exception):
    """Base exception for all VectorHub errors.

    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[mongodb_atlas] Not connected``.
    """

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        self._details = details
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    @property
    def details(self) -> dict[str, Any] | None:
        return self._details

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Request errors
# ---------------------------------------------------------------------------

class NotFoundError(VectorHubError):
    """Raised when a collection, document or registry entry does not exist."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, details=details)


class InvalidRequestError(VectorHubError):
    """Raised when caller input fails validation (bad chunk size, empty query, ...)."""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(
        self,
        message: str = "Request validation failed",
        provider_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, details=details)


class DimensionMismatchError(InvalidRequestError):
    """Raised when a query vector does not match the backend's embedding size."""

    code = "DIMENSION_MISMATCH"
    status_code = 400

    def __init__(
        self,
        message: str = "Query vector dimensions do not match the collection",
        provider_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, details=details)


class RateLimitError(VectorHubError):
    """Raised when a client exceeds its per-window request budget.

    ``retry_after`` is the number of seconds until the window resets and is
    echoed back in the ``Retry-After`` header.
    """

    code = "RATE_LIMIT_EXCEEDED"
    status_code = 429

    def __init__(
        self,
        message: str = "Too many requests. Please try again later.",
        provider_name: str | None = None,
        retry_after: int = 60,
        limit: int | None = None,
        reset_at: float | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self.retry_after = retry_after
        self.limit = limit
        self.reset_at = reset_at


# ---------------------------------------------------------------------------
# Adapter errors
# ---------------------------------------------------------------------------

class NotConnectedError(VectorHubError):
    """Raised when a data operation is invoked on a disconnected adapter."""

    code = "NOT_CONNECTED"
    status_code = 409

    def __init__(
        self,
        message: str = "Not connected",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class CapabilityUnsupportedError(VectorHubError):
    """Raised when an MCP server has not negotiated the required capability."""

    code = "CAPABILITY_UNSUPPORTED"
    status_code = 400

    def __init__(
        self,
        message: str = "Capability not supported by server",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnsupportedOperationError(VectorHubError):
    """Raised for operations a backend cannot perform (e.g. Supabase DDL)."""

    code = "NOT_SUPPORTED"
    status_code = 501

    def __init__(
        self,
        message: str = "Operation not supported by this backend",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class AdapterError(VectorHubError):
    """Raised when a backend call fails (network, protocol, or server error)."""

    def __init__(
        self,
        message: str = "Vector database operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / configuration errors
# ---------------------------------------------------------------------------

class EmbeddingError(VectorHubError):
    """Raised when embedding generation fails or receives empty input."""

    code = "EMBEDDING_ERROR"
    status_code = 502

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ScrapeError(VectorHubError):
    """Raised when a page cannot be fetched or converted by the scraping service."""

    code = "SCRAPE_FAILED"
    status_code = 502

    def __init__(
        self,
        message: str = "Scraping failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(VectorHubError):
    """Raised when an external service is unreachable."""

    code = "PROVIDER_UNAVAILABLE"
    status_code = 503

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(VectorHubError):
    """Raised when configuration is invalid or a required secret is missing."""

    code = "CONFIGURATION_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
