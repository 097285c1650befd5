"""Firecrawl scraping provider over httpx.

Posts ``{url, formats, onlyMainContent}`` to ``{base_url}/scrape`` with a
bearer key and reads the first requested format back out of ``data``.  The
key comes from ``FIRECRAWL_API_KEY`` in settings, or from the key store so a
key saved through the integrations API takes effect without a restart.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from vectorhub.config.settings import Settings
from vectorhub.interfaces.key_store import IKeyStore
from vectorhub.interfaces.web_scraper import SCRAPE_FORMATS, IWebScraper, ScrapedPage
from vectorhub.utils.errors import ConfigurationError, InvalidRequestError, ScrapeError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_FORMATS = ["markdown"]


class FirecrawlScraper(IWebScraper):
    """Scrapes pages through the Firecrawl REST API.

    Parameters
    ----------
    settings:
        Supplies the base URL, timeout and (optionally) the API key.
    http_client:
        Shared ``httpx.AsyncClient``.
    key_store:
        Fallback source for ``FIRECRAWL_API_KEY``.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        key_store: IKeyStore | None = None,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._key_store = key_store
        self._base_url = settings.firecrawl_base_url.rstrip("/")

    def get_provider_name(self) -> str:
        return "firecrawl"

    def is_available(self) -> bool:
        return bool(self._resolve_api_key())

    def _resolve_api_key(self) -> str:
        if self._settings.firecrawl_api_key:
            return self._settings.firecrawl_api_key
        if self._key_store is not None:
            return self._key_store.get("FIRECRAWL_API_KEY") or ""
        return ""

    async def scrape(
        self,
        url: str,
        formats: list[str] | None = None,
        only_main_content: bool = True,
    ) -> ScrapedPage:
        api_key = self._resolve_api_key()
        if not api_key:
            raise ConfigurationError(
                message="FIRECRAWL_API_KEY is not set", provider_name=self.get_provider_name()
            )
        formats = list(formats or _DEFAULT_FORMATS)
        unknown = [f for f in formats if f not in SCRAPE_FORMATS]
        if unknown:
            raise InvalidRequestError(
                message=f"Unsupported scrape format: {', '.join(unknown)}",
                details={"formats": [f"expected one of {', '.join(SCRAPE_FORMATS)}"]},
            )

        try:
            response = await self._http.post(
                f"{self._base_url}/scrape",
                json={"url": url, "formats": formats, "onlyMainContent": only_main_content},
                headers={"Authorization": f"Bearer {api_key}"},
                timeout=self._settings.firecrawl_timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            raise ScrapeError(
                message=f"Firecrawl timed out scraping {url}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise ScrapeError(
                message=f"Failed to connect to Firecrawl: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        body = _json_object(response)
        if response.status_code >= 400:
            raise ScrapeError(
                message=body.get("error") or f"Request failed with status {response.status_code}",
                provider_name=self.get_provider_name(),
            )
        if not body.get("success"):
            raise ScrapeError(
                message=body.get("error") or "Unknown error from Firecrawl",
                provider_name=self.get_provider_name(),
            )

        data = body.get("data") or {}
        content = next((data[f] for f in formats if data.get(f)), None) or data.get("content")
        if not content:
            raise ScrapeError(
                message=f"Firecrawl returned no content for {url}",
                provider_name=self.get_provider_name(),
            )

        metadata: dict[str, Any] = data.get("metadata") or {}
        logger.info("page_scraped", url=url, formats=formats, content_length=len(content))
        return ScrapedPage(
            url=url,
            content=content,
            title=metadata.get("title") or None,
            metadata=metadata,
        )


def _json_object(response: httpx.Response) -> dict[str, Any]:
    """Decode *response* as a JSON object; anything else reads as empty."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
