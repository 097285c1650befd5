"""Connection models: which backend to talk to and how.

A :class:`ConnectionConfig` is the unit the client router consumes.  It is a
tagged union discriminated by ``type``: the four backends with native
adapters get a typed ``config`` block, every other kind falls into
:class:`GenericConnection` with a free-form ``config`` dict (and is served by
the mock adapter).

JSON on the wire is camelCase (``lastSync``, ``connectionString``); Python
code uses snake_case attributes.  Both spellings are accepted on input.
"""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from vectorhub.utils.errors import InvalidRequestError


class CamelModel(BaseModel):
    """Base model serialising to camelCase and accepting either case on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VectorDBType(str, Enum):
    """Every backend kind a connection may declare."""

    CHROMADB = "chromadb"
    MONGODB_ATLAS = "mongodb_atlas"
    SUPABASE = "supabase"
    WEAVIATE = "weaviate"
    PINECONE = "pinecone"
    QDRANT = "qdrant"
    REDIS = "redis"
    UPSTASH = "upstash"
    NEO4J = "neo4j"
    MILVUS = "milvus"
    ELASTICSEARCH = "elasticsearch"
    PGVECTOR = "pgvector"
    OPENSEARCH = "opensearch"
    ASTRA_DB = "astra_db"
    SINGLESTORE = "singlestore"
    VESPA = "vespa"
    TYPESENSE = "typesense"
    MARQO = "marqo"
    TURBOPUFFER = "turbopuffer"
    LANCEDB = "lancedb"
    WEBHOOK = "webhook"
    MCP = "mcp"
    MOCK = "mock"


class ConnectionStatus(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class DistanceMetric(str, Enum):
    COSINE = "cosine"
    EUCLIDEAN = "euclidean"
    DOT_PRODUCT = "dot_product"


class WebhookAuthType(str, Enum):
    NONE = "none"
    API_KEY = "api_key"
    BEARER = "bearer"
    BASIC = "basic"


# ---------------------------------------------------------------------------
# Backend-specific configuration blocks
# ---------------------------------------------------------------------------


class MongoDBAtlasConfig(CamelModel):
    connection_string: str = Field(description="mongodb+srv:// connection URI.")
    database: str = Field(description="Database holding the collections.")
    vector_search_index_name: str = Field(
        default="vector_index", description="Atlas Vector Search index name."
    )
    embedding_field: str = Field(
        default="embedding", description="Document field storing the vector."
    )
    dimensions: int = Field(default=1536, ge=1, le=10000)


class SupabaseConfig(CamelModel):
    project_url: str = Field(description="https://<ref>.supabase.co")
    anon_key: str
    service_role_key: str | None = None
    schema_name: str = Field(default="public", alias="schema")
    tables: list[str] = Field(
        default_factory=lambda: ["documents"],
        description="Tables exposed as collections.",
    )
    match_function: str = Field(
        default="match_documents", description="Stored procedure used for vector search."
    )
    dimensions: int = Field(default=1536, ge=1, le=10000)


class WebhookEndpoints(CamelModel):
    create: str = "/create"
    read: str = "/read"
    update: str = "/update"
    delete: str = "/delete"
    search: str = "/search"


class WebhookConfig(CamelModel):
    base_url: str
    auth_type: WebhookAuthType = WebhookAuthType.NONE
    auth_value: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    endpoints: WebhookEndpoints = Field(default_factory=WebhookEndpoints)
    retry_count: int = Field(default=3, ge=0, le=10)
    timeout_ms: int = Field(default=30000, ge=1)


class MCPCapabilities(CamelModel):
    """Operations the MCP server is allowed to perform.

    A missing flag means unsupported; servers can only narrow this set
    during ``initialize``.
    """

    vector_create: bool = False
    vector_update: bool = False
    vector_delete: bool = False
    vector_search: bool = False


class MCPModelPreferences(CamelModel):
    embedding_model: str | None = None
    dimensions: int | None = None


class MCPConfig(CamelModel):
    server_url: str
    auth_token: str | None = None
    timeout_ms: int = Field(default=30000, ge=1)
    capabilities: MCPCapabilities = Field(default_factory=MCPCapabilities)
    model_preferences: MCPModelPreferences = Field(default_factory=MCPModelPreferences)


# ---------------------------------------------------------------------------
# Tagged connection union
# ---------------------------------------------------------------------------


class _ConnectionBase(CamelModel):
    id: str
    name: str
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    last_sync: datetime | None = None

    @property
    def db_type(self) -> VectorDBType:
        return VectorDBType(self.type)  # type: ignore[attr-defined]


class MongoDBConnection(_ConnectionBase):
    type: Literal["mongodb_atlas"]
    config: MongoDBAtlasConfig


class SupabaseConnection(_ConnectionBase):
    type: Literal["supabase"]
    config: SupabaseConfig


class WebhookDBConnection(_ConnectionBase):
    type: Literal["webhook"]
    config: WebhookConfig


class MCPDBConnection(_ConnectionBase):
    type: Literal["mcp"]
    config: MCPConfig


class GenericConnection(_ConnectionBase):
    """Any backend kind without a native adapter yet."""

    type: Literal[
        "chromadb",
        "weaviate",
        "pinecone",
        "qdrant",
        "redis",
        "upstash",
        "neo4j",
        "milvus",
        "elasticsearch",
        "pgvector",
        "opensearch",
        "astra_db",
        "singlestore",
        "vespa",
        "typesense",
        "marqo",
        "turbopuffer",
        "lancedb",
        "mock",
    ]
    config: dict[str, Any] = Field(default_factory=dict)


ConnectionConfig = Annotated[
    Union[
        MongoDBConnection,
        SupabaseConnection,
        WebhookDBConnection,
        MCPDBConnection,
        GenericConnection,
    ],
    Field(discriminator="type"),
]

_connection_adapter: TypeAdapter[ConnectionConfig] = TypeAdapter(ConnectionConfig)


def parse_connection_config(raw: str | bytes | dict[str, Any]) -> ConnectionConfig:
    """Parse a connection from a JSON string or a dict.

    Raises
    ------
    InvalidRequestError
        If the payload is not JSON or does not describe a known connection.
    """
    try:
        if isinstance(raw, (str, bytes)):
            data = json.loads(raw)
        else:
            data = raw
        return _connection_adapter.validate_python(data)
    except json.JSONDecodeError as exc:
        raise InvalidRequestError(
            message="Connection config is not valid JSON",
            details={"connection": [str(exc)]},
        ) from exc
    except ValidationError as exc:
        details: dict[str, list[str]] = {}
        for err in exc.errors():
            key = ".".join(str(p) for p in err["loc"]) or "connection"
            details.setdefault(key, []).append(err["msg"])
        raise InvalidRequestError(message="Invalid connection config", details=details) from exc


def default_mock_connection() -> GenericConnection:
    """Connection used when a request carries no connection config."""
    return GenericConnection(id="mock", name="Demo data", type="mock")
