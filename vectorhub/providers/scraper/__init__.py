"""Web scraping provider implementations.

    FirecrawlScraper -- Firecrawl ``/scrape`` over httpx; key from settings
                        or key store.
"""
