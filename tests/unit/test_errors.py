"""Unit tests for the VectorHub exception hierarchy."""

from __future__ import annotations

import pytest

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


class TestVectorHubError:
    def test_str_without_provider(self) -> None:
        assert str(VectorHubError("boom")) == "boom"

    def test_str_with_provider_prefix(self) -> None:
        err = AdapterError("timed out", provider_name="webhook")
        assert str(err) == "[webhook] timed out"
        assert err.message == "timed out"
        assert err.provider_name == "webhook"

    def test_details_are_kept(self) -> None:
        err = InvalidRequestError("bad", details={"name": ["required"]})
        assert err.details == {"name": ["required"]}


@pytest.mark.parametrize(
    ("exc_type", "code", "status"),
    [
        (VectorHubError, "INTERNAL_ERROR", 500),
        (NotFoundError, "NOT_FOUND", 404),
        (InvalidRequestError, "VALIDATION_ERROR", 400),
        (DimensionMismatchError, "DIMENSION_MISMATCH", 400),
        (RateLimitError, "RATE_LIMIT_EXCEEDED", 429),
        (NotConnectedError, "NOT_CONNECTED", 409),
        (CapabilityUnsupportedError, "CAPABILITY_UNSUPPORTED", 400),
        (UnsupportedOperationError, "NOT_SUPPORTED", 501),
        (AdapterError, "INTERNAL_ERROR", 500),
        (EmbeddingError, "EMBEDDING_ERROR", 502),
        (ProviderUnavailableError, "PROVIDER_UNAVAILABLE", 503),
        (ConfigurationError, "CONFIGURATION_ERROR", 500),
    ],
)
def test_codes_and_status(exc_type: type[VectorHubError], code: str, status: int) -> None:
    err = exc_type()
    assert err.code == code
    assert err.status_code == status
    assert isinstance(err, VectorHubError)


def test_dimension_mismatch_is_invalid_request() -> None:
    assert issubclass(DimensionMismatchError, InvalidRequestError)


def test_rate_limit_error_carries_window_info() -> None:
    err = RateLimitError(retry_after=12, limit=30, reset_at=1700000000.0)
    assert err.retry_after == 12
    assert err.limit == 30
    assert err.reset_at == 1700000000.0
