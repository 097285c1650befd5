"""Abstract base class for web scraping providers.

A scraper turns a URL into clean text (markdown by default) that the
ingestion pipeline can chunk and embed like any uploaded document.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

SCRAPE_FORMATS = ("markdown", "html", "rawHtml")


@dataclass(frozen=True)
class ScrapedPage:
    """Content extracted from one web page.

    Attributes
    ----------
    url:
        The URL that was scraped.
    content:
        Page text in the first requested format the service returned.
    title:
        Page title when the service reports one.
    metadata:
        Service-reported page metadata (description, language, status...).
    """

    url: str
    content: str
    title: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class IWebScraper(ABC):
    """Contract for services that fetch a URL and return its readable content."""

    @abstractmethod
    async def scrape(
        self,
        url: str,
        formats: list[str] | None = None,
        only_main_content: bool = True,
    ) -> ScrapedPage:
        """Scrape *url* and return its content.

        Parameters
        ----------
        url:
            Page to fetch.
        formats:
            Output formats in order of preference; ``["markdown"]`` when omitted.
        only_main_content:
            Strip navigation, footers and other boilerplate.

        Raises
        ------
        vectorhub.utils.errors.ConfigurationError
            If no API key is configured.
        vectorhub.utils.errors.ScrapeError
            If the service is unreachable, rejects the request, or returns
            no content.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"firecrawl"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` when credentials are configured."""
