"""Abstract base class for API key storage."""

from __future__ import annotations

from abc import ABC, abstractmethod

from vectorhub.models.webhooks import ApiKeyEntry


class IKeyStore(ABC):
    """Contract for reading and writing third-party API keys."""

    @abstractmethod
    def list_keys(self) -> list[ApiKeyEntry]:
        """Return every known key that currently has a value."""

    @abstractmethod
    def get(self, name: str) -> str | None:
        """Return the value stored under *name* (aliases accepted), or ``None``."""

    @abstractmethod
    def set_key(self, name: str, value: str) -> str:
        """Store *value* under *name* and return the canonical variable name."""

    @abstractmethod
    def delete_key(self, name: str) -> bool:
        """Remove *name*.  Returns ``True`` when a line was removed."""
