"""Abstract interfaces for VectorHub's swappable components.

Every backend integration is written against one of these ABCs so that
callers depend on the contract, not the concrete class:

- ``IVectorDBAdapter``  -- vector database backends (Mongo, Supabase, ...)
- ``IEmbeddingProvider`` -- text-to-vector services
- ``IWebhookStore`` / ``IMcpStore`` -- registry persistence
- ``IKeyStore`` -- third-party API key storage
- ``IWebScraper`` -- URL-to-text scraping services
"""

from vectorhub.interfaces.connection_store import IMcpStore, IWebhookStore
from vectorhub.interfaces.embedding_provider import IEmbeddingProvider
from vectorhub.interfaces.key_store import IKeyStore
from vectorhub.interfaces.vector_db_adapter import IVectorDBAdapter
from vectorhub.interfaces.web_scraper import IWebScraper

__all__ = [
    "IEmbeddingProvider",
    "IKeyStore",
    "IMcpStore",
    "IVectorDBAdapter",
    "IWebhookStore",
    "IWebScraper",
]
