"""Webhook / MCP registry implementations (in-memory and SQLite)."""

from vectorhub.providers.store.memory_store import MemoryMcpStore, MemoryWebhookStore
from vectorhub.providers.store.sqlite_store import SQLiteMcpStore, SQLiteWebhookStore

__all__ = ["MemoryMcpStore", "MemoryWebhookStore", "SQLiteMcpStore", "SQLiteWebhookStore"]
