"""Shared plumbing for network-backed adapters.

Listing collections, reading stats and counting documents are treated as
best-effort reads: a backend failure is logged as ``adapter_read_degraded``
and a neutral default is returned so dashboards still render.  Setting
``adapter_strict_reads`` flips this to re-raising.
"""

from __future__ import annotations

from typing import TypeVar

import structlog

from vectorhub.interfaces.vector_db_adapter import IVectorDBAdapter
from vectorhub.utils.errors import NotConnectedError

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")

# Score step between consecutive hits of an unranked keyword search.
_RANK_STEP = 0.1


def rank_score(position: int) -> float:
    """Score for the hit at *position* of a keyword search with no native relevance."""
    return max(0.0, 1.0 - position * _RANK_STEP)


class NetworkAdapter(IVectorDBAdapter):
    """Base for adapters that talk to a remote backend."""

    def __init__(self, strict_reads: bool = False) -> None:
        super().__init__()
        self._strict_reads = strict_reads

    def _degraded(self, operation: str, exc: Exception, default: _T) -> _T:
        """Log a failed best-effort read and return *default*, or re-raise."""
        logger.warning(
            "adapter_read_degraded",
            provider=self.get_provider_name(),
            operation=operation,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        if self._strict_reads:
            raise exc
        return default

    def _not_connected(self) -> NotConnectedError:
        return NotConnectedError(provider_name=self.get_provider_name())
