"""Embedding provider implementations.

    OpenAIEmbeddingProvider -- text-embedding-3-small (1536 dims) via the
                               ``openai`` SDK; key from settings or key store.
"""
