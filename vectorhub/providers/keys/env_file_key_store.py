"""API key store backed by a ``.env`` file.

Reads and writes ``KEY=value`` lines with python-dotenv so keys saved from
the integrations screen survive restarts and are picked up by
:class:`~vectorhub.config.settings.Settings` on the next start.
"""

from __future__ import annotations

from pathlib import Path

import structlog
from dotenv import dotenv_values, set_key, unset_key

from vectorhub.interfaces.key_store import IKeyStore
from vectorhub.models.webhooks import ApiKeyEntry

logger = structlog.get_logger(logger_name=__name__)

# Keys always shown even when unset elsewhere, mapped to their provider.
KNOWN_KEYS: dict[str, str] = {
    "OPENAI_API_KEY": "openai",
    "FIRECRAWL_API_KEY": "firecrawl",
    "ANTHROPIC_API_KEY": "anthropic",
    "COHERE_API_KEY": "cohere",
}

KEY_ALIASES: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "firecrawl": "FIRECRAWL_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "cohere": "COHERE_API_KEY",
}

_API_KEY_SUFFIX = "_API_KEY"


def canonical_key_name(name: str) -> str:
    """Map an alias such as ``"openai"`` to its variable name."""
    return KEY_ALIASES.get(name.strip().lower(), name.strip().upper())


def mask_key(value: str) -> str:
    """Return *value* with everything but the first 4 and last 4 characters hidden."""
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}{'*' * (len(value) - 8)}{value[-4:]}"


class EnvFileKeyStore(IKeyStore):
    """Stores API keys as lines in a dotenv file.

    Parameters
    ----------
    path:
        Location of the dotenv file.  Created on first write.
    """

    def __init__(self, path: str | Path = ".env") -> None:
        self._path = Path(path)

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        return {k: v for k, v in dotenv_values(self._path).items() if v}

    def list_keys(self) -> list[ApiKeyEntry]:
        values = self._read()
        entries: list[ApiKeyEntry] = []
        for name, value in values.items():
            if name not in KNOWN_KEYS and not name.endswith(_API_KEY_SUFFIX):
                continue
            provider = KNOWN_KEYS.get(name, name[: -len(_API_KEY_SUFFIX)].lower())
            entries.append(
                ApiKeyEntry(
                    id=name.lower(),
                    name=name,
                    provider=provider,
                    key=value,
                    is_active=True,
                )
            )
        return entries

    def get(self, name: str) -> str | None:
        return self._read().get(canonical_key_name(name))

    def set_key(self, name: str, value: str) -> str:
        key_name = canonical_key_name(name)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.touch(exist_ok=True)
        set_key(str(self._path), key_name, value, quote_mode="never")
        logger.info("api_key_saved", key=key_name, path=str(self._path))
        return key_name

    def delete_key(self, name: str) -> bool:
        key_name = canonical_key_name(name)
        if key_name not in self._read():
            return False
        removed, _ = unset_key(str(self._path), key_name, quote_mode="never")
        if removed:
            logger.info("api_key_deleted", key=key_name, path=str(self._path))
        return bool(removed)
