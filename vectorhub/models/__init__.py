"""Pydantic v2 data models for VectorHub.

- **connections** -- backend kinds, per-backend config blocks and the
  ``ConnectionConfig`` tagged union consumed by the client router.
- **documents** -- documents, collections, search queries and results.
- **webhooks** -- webhook / MCP registry entries and delivery results.
"""

from vectorhub.models.connections import (
    CamelModel,
    ConnectionConfig,
    ConnectionStatus,
    DistanceMetric,
    GenericConnection,
    MCPCapabilities,
    MCPConfig,
    MCPDBConnection,
    MongoDBAtlasConfig,
    MongoDBConnection,
    SupabaseConfig,
    SupabaseConnection,
    VectorDBType,
    WebhookAuthType,
    WebhookConfig,
    WebhookDBConnection,
    WebhookEndpoints,
    default_mock_connection,
    parse_connection_config,
)
from vectorhub.models.documents import (
    CollectionInfo,
    CollectionStats,
    CreateCollectionConfig,
    DocumentSyncResult,
    DocumentUpdate,
    IngestionResult,
    NewDocument,
    SearchQuery,
    SearchResult,
    TestConnectionResult,
    UpdateCollectionConfig,
    VectorDocument,
)
from vectorhub.models.webhooks import (
    ApiKeyEntry,
    DeliveryOptions,
    McpConnection,
    McpHealthCheckResult,
    McpServerInfo,
    McpSyncResult,
    WebhookConnection,
    WebhookDeliveryResult,
    WebhookPayload,
)

__all__ = [
    "ApiKeyEntry",
    "CamelModel",
    "CollectionInfo",
    "CollectionStats",
    "ConnectionConfig",
    "ConnectionStatus",
    "CreateCollectionConfig",
    "DeliveryOptions",
    "DistanceMetric",
    "DocumentSyncResult",
    "DocumentUpdate",
    "GenericConnection",
    "IngestionResult",
    "MCPCapabilities",
    "MCPConfig",
    "MCPDBConnection",
    "McpConnection",
    "McpHealthCheckResult",
    "McpServerInfo",
    "McpSyncResult",
    "MongoDBAtlasConfig",
    "MongoDBConnection",
    "NewDocument",
    "SearchQuery",
    "SearchResult",
    "SupabaseConfig",
    "SupabaseConnection",
    "TestConnectionResult",
    "UpdateCollectionConfig",
    "VectorDBType",
    "VectorDocument",
    "WebhookAuthType",
    "WebhookConfig",
    "WebhookConnection",
    "WebhookDBConnection",
    "WebhookDeliveryResult",
    "WebhookEndpoints",
    "WebhookPayload",
    "default_mock_connection",
    "parse_connection_config",
]
