"""Vector database adapters.

Each adapter implements :class:`~vectorhub.interfaces.vector_db_adapter.IVectorDBAdapter`:

    MockAdapter      -- in-process data (demo mode and unimplemented kinds)
    MongoDBAdapter   -- MongoDB Atlas Vector Search (pymongo async client)
    SupabaseAdapter  -- pgvector tables via the supabase client
    WebhookAdapter   -- arbitrary REST endpoints (httpx)
    MCPAdapter       -- JSON-RPC 2.0 tool calls to an MCP server (httpx)
"""

from vectorhub.providers.vector_db.mcp_adapter import MCPAdapter
from vectorhub.providers.vector_db.mock_adapter import MockAdapter, MockDataStore
from vectorhub.providers.vector_db.mongodb_adapter import MongoDBAdapter
from vectorhub.providers.vector_db.supabase_adapter import SupabaseAdapter
from vectorhub.providers.vector_db.webhook_adapter import WebhookAdapter

__all__ = [
    "MCPAdapter",
    "MockAdapter",
    "MockDataStore",
    "MongoDBAdapter",
    "SupabaseAdapter",
    "WebhookAdapter",
]
