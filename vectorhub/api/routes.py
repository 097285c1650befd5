"""FastAPI routes for VectorHub.

Every route is prefixed with ``/api/v1``.  Shared services are resolved from
``app.state`` (populated at startup in ``main._build_all``) through small
``_get_*`` helpers and ``Annotated[..., Depends(...)]`` aliases.

Routes that touch a vector database receive a :class:`VectorDBClient` built
from the ``x-connection-config`` header.  A request without the header is
served by the shared mock store (demo mode).  The client is connected before
the handler runs and disconnected afterwards.

Endpoint                                   Method            Rate category
-----------------------------------------  ----------------  -------------
/health                                    GET               health
/connections/test                          POST              default
/collections                               GET, POST         default, write
/collections/{name}                        GET, PATCH, DEL   default, write
/collections/{name}/stats                  GET               default
/documents                                 GET, POST, PATCH, DELETE
/documents/count                           GET               default
/documents/upload                          POST              write
/documents/sync                            POST              write
/scrape                                    POST              write
/search                                    POST              search
/webhooks[/{id}]                           CRUD              webhooks
/webhooks/{id}/test, /webhooks/broadcast   POST              webhooks
/mcp/connections[/{id}]                    CRUD              default
/mcp/connections/{id}/health|sync          POST              default
/integrations/keys                         GET, POST, DELETE write
"""

from __future__ import annotations

import json
import resource
import sys
import time
from datetime import datetime, timezone
from typing import Annotated, Any, AsyncIterator, Callable

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Header, Query, Request, Response

from vectorhub import __version__
from vectorhub.api.schemas import (
    AddDocumentsRequest,
    BroadcastRequest,
    BroadcastResponse,
    CountResponse,
    DatabaseCheck,
    DeleteDocumentsRequest,
    DeleteKeyRequest,
    DocumentIdsResponse,
    HealthChecks,
    HealthResponse,
    KeySavedResponse,
    MemoryCheck,
    OkResponse,
    SaveKeyRequest,
    ScrapeRequest,
    ScrapeResponse,
    SearchRequest,
    SyncDocumentsRequest,
    UpdateDocumentsRequest,
    UploadTextRequest,
)
from vectorhub.config.settings import Settings
from vectorhub.interfaces.connection_store import IMcpStore, IWebhookStore
from vectorhub.interfaces.key_store import IKeyStore
from vectorhub.interfaces.web_scraper import IWebScraper
from vectorhub.models.connections import (
    ConnectionStatus,
    default_mock_connection,
    parse_connection_config,
)
from vectorhub.models.documents import (
    CollectionInfo,
    CollectionStats,
    CreateCollectionConfig,
    DocumentSyncResult,
    IngestionResult,
    SearchResult,
    TestConnectionResult,
    UpdateCollectionConfig,
    VectorDocument,
)
from vectorhub.models.webhooks import (
    EVENT_COLLECTION_CREATED,
    EVENT_COLLECTION_DELETED,
    EVENT_DOCUMENT_CREATED,
    EVENT_DOCUMENT_DELETED,
    EVENT_DOCUMENT_UPDATED,
    ApiKeyEntry,
    McpConnection,
    McpConnectionCreate,
    McpConnectionUpdate,
    McpHealthCheckResult,
    McpSyncResult,
    WebhookConnection,
    WebhookCreate,
    WebhookDeliveryResult,
    WebhookUpdate,
)
from vectorhub.providers.keys.env_file_key_store import mask_key
from vectorhub.services.client_router import AdapterContext, VectorDBClient
from vectorhub.services.ingestion_service import IngestionService
from vectorhub.services.mcp_health import McpHealthService
from vectorhub.services.rate_limiter import RateLimiter, client_identifier
from vectorhub.services.search_service import SearchService
from vectorhub.services.webhook_delivery import WebhookDeliveryService
from vectorhub.utils.errors import InvalidRequestError, NotFoundError
from vectorhub.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

# Resident-set thresholds for the health check's memory status.
_MEMORY_WARNING_MB = 1024
_MEMORY_CRITICAL_MB = 2048


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _get_webhook_store(request: Request) -> IWebhookStore:
    return request.app.state.webhook_store


def _get_mcp_store(request: Request) -> IMcpStore:
    return request.app.state.mcp_store


def _get_key_store(request: Request) -> IKeyStore:
    return request.app.state.key_store


def _get_delivery_service(request: Request) -> WebhookDeliveryService:
    return request.app.state.delivery_service


def _get_mcp_health(request: Request) -> McpHealthService:
    return request.app.state.mcp_health


def _get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service


def _get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion_service


def _get_scraper(request: Request) -> IWebScraper:
    return request.app.state.scraper


SettingsDep = Annotated[Settings, Depends(_get_settings)]
WebhookStoreDep = Annotated[IWebhookStore, Depends(_get_webhook_store)]
McpStoreDep = Annotated[IMcpStore, Depends(_get_mcp_store)]
KeyStoreDep = Annotated[IKeyStore, Depends(_get_key_store)]
DeliveryDep = Annotated[WebhookDeliveryService, Depends(_get_delivery_service)]
McpHealthDep = Annotated[McpHealthService, Depends(_get_mcp_health)]
SearchServiceDep = Annotated[SearchService, Depends(_get_search_service)]
IngestionDep = Annotated[IngestionService, Depends(_get_ingestion_service)]
ScraperDep = Annotated[IWebScraper, Depends(_get_scraper)]
ConnectionHeader = Annotated[str | None, Header(alias="x-connection-config")]


def _build_client(request: Request, raw_config: str | None) -> VectorDBClient:
    """Build an unconnected client for the request's connection."""
    if raw_config:
        connection = parse_connection_config(raw_config)
    else:
        connection = default_mock_connection()
    state = request.app.state
    context = AdapterContext(
        http_client=getattr(state, "http_client", None),
        mock_store=state.mock_store,
        strict_reads=getattr(state, "strict_reads", False),
    )
    return VectorDBClient(connection, context)


async def _get_vector_client(
    request: Request, x_connection_config: ConnectionHeader = None
) -> AsyncIterator[VectorDBClient]:
    client = _build_client(request, x_connection_config)
    try:
        await client.connect()
        yield client
    finally:
        await client.disconnect()


VectorClientDep = Annotated[VectorDBClient, Depends(_get_vector_client)]


def _rate_limit(category: str) -> Callable[[Request, Response], None]:
    """Dependency factory enforcing the *category* budget per client and path."""

    def _dependency(request: Request, response: Response) -> None:
        limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)
        if limiter is None:
            return
        client = client_identifier(
            request.headers.get("x-forwarded-for"), request.headers.get("x-real-ip")
        )
        result = limiter.enforce(f"{client}:{request.url.path}", category)
        response.headers.update(result.headers())

    return _dependency


_default_limit = [Depends(_rate_limit("default"))]
_write_limit = [Depends(_rate_limit("write"))]
_search_limit = [Depends(_rate_limit("search"))]
_webhooks_limit = [Depends(_rate_limit("webhooks"))]
_health_limit = [Depends(_rate_limit("health"))]


def _get_rss_mb() -> float:
    """Return peak process RSS in megabytes (0.0 where unsupported)."""
    try:
        rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    except OSError:
        return 0.0
    # macOS reports bytes; Linux reports kilobytes.
    return round(rss / (1024 * 1024) if sys.platform == "darwin" else rss / 1024, 1)


# ---------------------------------------------------------------------------
# Health & connection test
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Database reachability and process health",
    dependencies=_health_limit,
)
async def health_check(
    request: Request, response: Response, x_connection_config: ConnectionHeader = None
) -> HealthResponse:
    """Report ``healthy``, ``degraded`` or ``unhealthy`` (503)."""
    started_at: float = getattr(request.app.state, "started_at", time.time())

    client = _build_client(request, x_connection_config)
    db_start = time.perf_counter()
    try:
        await client.connect()
        await client.list_collections()
        database = DatabaseCheck(
            status="up", latency_ms=round((time.perf_counter() - db_start) * 1000, 2)
        )
    except Exception as exc:
        database = DatabaseCheck(status="down", message=str(exc) or type(exc).__name__)
    finally:
        await client.disconnect()

    rss_mb = _get_rss_mb()
    if rss_mb > _MEMORY_CRITICAL_MB:
        memory = MemoryCheck(status="critical", rss_mb=rss_mb)
    elif rss_mb > _MEMORY_WARNING_MB:
        memory = MemoryCheck(status="warning", rss_mb=rss_mb)
    else:
        memory = MemoryCheck(status="ok", rss_mb=rss_mb)

    if database.status == "down" or memory.status == "critical":
        status = "unhealthy"
    elif memory.status == "warning":
        status = "degraded"
    else:
        status = "healthy"

    if status == "unhealthy":
        response.status_code = 503
        _logger.warning("health_check_unhealthy", database=database.status, memory=memory.status)

    return HealthResponse(
        status=status,
        timestamp=datetime.now(timezone.utc),
        version=__version__,
        uptime=int(time.time() - started_at),
        checks=HealthChecks(database=database, memory=memory),
    )


@router.post(
    "/connections/test",
    response_model=TestConnectionResult,
    summary="Test the connection described by the x-connection-config header",
    dependencies=_default_limit,
)
async def test_connection(
    request: Request, x_connection_config: ConnectionHeader = None
) -> TestConnectionResult:
    client = _build_client(request, x_connection_config)
    try:
        await client.connect()
        return await client.test_connection()
    except Exception as exc:
        _logger.info("connection_test_failed", error=str(exc))
        return TestConnectionResult(success=False, message=str(exc) or type(exc).__name__)
    finally:
        await client.disconnect()


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


@router.get("/collections", response_model=list[CollectionInfo], dependencies=_default_limit)
async def list_collections(client: VectorClientDep) -> list[CollectionInfo]:
    return await client.list_collections()


@router.post(
    "/collections",
    response_model=CollectionInfo,
    status_code=201,
    dependencies=_write_limit,
)
async def create_collection(
    body: CreateCollectionConfig,
    client: VectorClientDep,
    delivery: DeliveryDep,
    background_tasks: BackgroundTasks,
) -> CollectionInfo:
    created = await client.create_collection(body)
    background_tasks.add_task(
        delivery.publish,
        EVENT_COLLECTION_CREATED,
        {"name": created.name, "dimensions": created.dimensions},
    )
    return created


@router.get("/collections/{name}", response_model=CollectionInfo, dependencies=_default_limit)
async def get_collection(name: str, client: VectorClientDep) -> CollectionInfo:
    return await client.get_collection(name)


@router.patch("/collections/{name}", response_model=CollectionInfo, dependencies=_write_limit)
async def update_collection(
    name: str, body: UpdateCollectionConfig, client: VectorClientDep
) -> CollectionInfo:
    return await client.update_collection(name, body)


@router.delete("/collections/{name}", response_model=OkResponse, dependencies=_write_limit)
async def delete_collection(
    name: str,
    client: VectorClientDep,
    delivery: DeliveryDep,
    background_tasks: BackgroundTasks,
    cascade: bool = False,
) -> OkResponse:
    await client.delete_collection(name, cascade)
    background_tasks.add_task(delivery.publish, EVENT_COLLECTION_DELETED, {"name": name})
    return OkResponse()


@router.get(
    "/collections/{name}/stats", response_model=CollectionStats, dependencies=_default_limit
)
async def get_collection_stats(name: str, client: VectorClientDep) -> CollectionStats:
    return await client.get_collection_stats(name)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.get("/documents", response_model=list[VectorDocument], dependencies=_default_limit)
async def get_documents(
    client: VectorClientDep,
    collection: Annotated[str, Query(min_length=1)],
    ids: Annotated[list[str], Query(min_length=1, max_length=1000)],
) -> list[VectorDocument]:
    return await client.get_documents(collection, ids)


@router.post(
    "/documents",
    response_model=DocumentIdsResponse,
    status_code=201,
    dependencies=_write_limit,
)
async def add_documents(
    body: AddDocumentsRequest,
    client: VectorClientDep,
    delivery: DeliveryDep,
    background_tasks: BackgroundTasks,
) -> DocumentIdsResponse:
    ids = await client.add_documents(body.collection, body.documents)
    background_tasks.add_task(
        delivery.publish,
        EVENT_DOCUMENT_CREATED,
        {"collection": body.collection, "ids": ids, "count": len(ids)},
    )
    return DocumentIdsResponse(ids=ids)


@router.patch("/documents", response_model=OkResponse, dependencies=_write_limit)
async def update_documents(
    body: UpdateDocumentsRequest,
    client: VectorClientDep,
    delivery: DeliveryDep,
    background_tasks: BackgroundTasks,
) -> OkResponse:
    await client.update_documents(body.collection, body.documents)
    background_tasks.add_task(
        delivery.publish,
        EVENT_DOCUMENT_UPDATED,
        {"collection": body.collection, "ids": [d.id for d in body.documents]},
    )
    return OkResponse()


@router.delete("/documents", response_model=OkResponse, dependencies=_write_limit)
async def delete_documents(
    body: DeleteDocumentsRequest,
    client: VectorClientDep,
    delivery: DeliveryDep,
    background_tasks: BackgroundTasks,
) -> OkResponse:
    await client.delete_documents(body.collection, body.ids)
    background_tasks.add_task(
        delivery.publish,
        EVENT_DOCUMENT_DELETED,
        {"collection": body.collection, "ids": body.ids},
    )
    return OkResponse()


@router.get("/documents/count", response_model=CountResponse, dependencies=_default_limit)
async def count_documents(
    client: VectorClientDep,
    collection: Annotated[str, Query(min_length=1)],
    filter: Annotated[str | None, Query(description="JSON-encoded equality filter")] = None,
) -> CountResponse:
    parsed: dict[str, Any] | None = None
    if filter:
        try:
            parsed = json.loads(filter)
        except json.JSONDecodeError as exc:
            raise InvalidRequestError(
                message="filter must be a JSON object", details={"filter": [str(exc)]}
            ) from exc
        if not isinstance(parsed, dict):
            raise InvalidRequestError(
                message="filter must be a JSON object",
                details={"filter": ["Expected an object"]},
            )
    count = await client.count_documents(collection, parsed)
    return CountResponse(collection=collection, count=count)


@router.post(
    "/documents/upload",
    response_model=IngestionResult,
    status_code=201,
    dependencies=_write_limit,
)
async def upload_text(
    body: UploadTextRequest,
    client: VectorClientDep,
    ingestion: IngestionDep,
    delivery: DeliveryDep,
    settings: SettingsDep,
    background_tasks: BackgroundTasks,
) -> IngestionResult:
    """Chunk, embed and store a block of text."""
    result = await ingestion.ingest_text(
        client,
        body.collection,
        body.content,
        title=body.title,
        source=body.source,
        chunk_size=body.chunk_size or settings.chunk_size,
        chunk_overlap=(
            body.chunk_overlap if body.chunk_overlap is not None else settings.chunk_overlap
        ),
        metadata=body.metadata,
    )
    event = ingestion.created_event(result, body.title)
    if event is not None:
        background_tasks.add_task(delivery.publish, *event)
    return result


@router.post(
    "/documents/sync",
    response_model=DocumentSyncResult,
    dependencies=_write_limit,
)
async def sync_documents(
    body: SyncDocumentsRequest,
    client: VectorClientDep,
    ingestion: IngestionDep,
    delivery: DeliveryDep,
    background_tasks: BackgroundTasks,
) -> DocumentSyncResult:
    """Update documents whose ids are already stored and insert the rest."""
    result = await ingestion.sync_documents(
        client, body.collection, list(body.documents), connection_id=body.connection_id
    )
    for event in ingestion.sync_events(result):
        background_tasks.add_task(delivery.publish, *event)
    return result


# ---------------------------------------------------------------------------
# Scraping
# ---------------------------------------------------------------------------


@router.post("/scrape", response_model=ScrapeResponse, dependencies=_write_limit)
async def scrape_page(
    body: ScrapeRequest,
    client: VectorClientDep,
    scraper: ScraperDep,
    ingestion: IngestionDep,
    delivery: DeliveryDep,
    settings: SettingsDep,
    background_tasks: BackgroundTasks,
) -> ScrapeResponse:
    """Scrape a URL and, when a collection is named, ingest the page into it."""
    page = await scraper.scrape(
        body.url, formats=body.formats, only_main_content=body.only_main_content
    )
    result: IngestionResult | None = None
    if body.collection:
        result = await ingestion.ingest_page(
            client,
            body.collection,
            page,
            title=body.title,
            chunk_size=body.chunk_size or settings.chunk_size,
            chunk_overlap=(
                body.chunk_overlap if body.chunk_overlap is not None else settings.chunk_overlap
            ),
            metadata=body.metadata,
        )
        event = ingestion.created_event(result, body.title or page.title)
        if event is not None:
            background_tasks.add_task(delivery.publish, *event)
    return ScrapeResponse(
        url=page.url,
        title=page.title,
        content=page.content,
        metadata=page.metadata,
        ingestion=result,
    )


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@router.post("/search", response_model=list[SearchResult], dependencies=_search_limit)
async def search(
    body: SearchRequest, client: VectorClientDep, search_service: SearchServiceDep
) -> list[SearchResult]:
    return await search_service.search(client, body.collection, body.query)


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------


async def _require_webhook(store: IWebhookStore, webhook_id: str) -> WebhookConnection:
    webhook = await store.get(webhook_id)
    if webhook is None:
        raise NotFoundError(message=f'Webhook with id "{webhook_id}" was not found')
    return webhook


@router.get("/webhooks", response_model=list[WebhookConnection], dependencies=_webhooks_limit)
async def list_webhooks(store: WebhookStoreDep) -> list[WebhookConnection]:
    return await store.list()


@router.post(
    "/webhooks",
    response_model=WebhookConnection,
    status_code=201,
    dependencies=_webhooks_limit,
)
async def create_webhook(body: WebhookCreate, store: WebhookStoreDep) -> WebhookConnection:
    return await store.create(body)


@router.post(
    "/webhooks/broadcast", response_model=BroadcastResponse, dependencies=_webhooks_limit
)
async def broadcast_event(body: BroadcastRequest, delivery: DeliveryDep) -> BroadcastResponse:
    """Deliver an event to every connected subscriber and record outcomes."""
    results = await delivery.publish(body.event_type, body.data)
    delivered = sum(1 for r in results.values() if r.success)
    return BroadcastResponse(
        event_type=body.event_type,
        delivered=delivered,
        failed=len(results) - delivered,
        results=results,
    )


@router.get(
    "/webhooks/{webhook_id}", response_model=WebhookConnection, dependencies=_webhooks_limit
)
async def get_webhook(webhook_id: str, store: WebhookStoreDep) -> WebhookConnection:
    return await _require_webhook(store, webhook_id)


@router.patch(
    "/webhooks/{webhook_id}", response_model=WebhookConnection, dependencies=_webhooks_limit
)
async def update_webhook(
    webhook_id: str, body: WebhookUpdate, store: WebhookStoreDep
) -> WebhookConnection:
    updated = await store.update(webhook_id, body)
    if updated is None:
        raise NotFoundError(message=f'Webhook with id "{webhook_id}" was not found')
    return updated


@router.delete("/webhooks/{webhook_id}", response_model=OkResponse, dependencies=_webhooks_limit)
async def delete_webhook(webhook_id: str, store: WebhookStoreDep) -> OkResponse:
    if not await store.delete(webhook_id):
        raise NotFoundError(message=f'Webhook with id "{webhook_id}" was not found')
    return OkResponse()


@router.post(
    "/webhooks/{webhook_id}/test",
    response_model=WebhookDeliveryResult,
    dependencies=_webhooks_limit,
)
async def test_webhook(
    webhook_id: str, store: WebhookStoreDep, delivery: DeliveryDep
) -> WebhookDeliveryResult:
    """Send a single ``webhook.test`` event and record the outcome."""
    webhook = await _require_webhook(store, webhook_id)
    result = await delivery.test_webhook(webhook)
    if result.success:
        update = WebhookUpdate(
            status=ConnectionStatus.CONNECTED, last_delivery=datetime.now(timezone.utc)
        )
    else:
        update = WebhookUpdate(status=ConnectionStatus.ERROR)
    await store.update(webhook_id, update)
    return result


# ---------------------------------------------------------------------------
# MCP connections
# ---------------------------------------------------------------------------


async def _require_mcp(store: IMcpStore, connection_id: str) -> McpConnection:
    connection = await store.get(connection_id)
    if connection is None:
        raise NotFoundError(message=f'MCP connection with id "{connection_id}" was not found')
    return connection


@router.get("/mcp/connections", response_model=list[McpConnection], dependencies=_default_limit)
async def list_mcp_connections(store: McpStoreDep) -> list[McpConnection]:
    return await store.list()


@router.post(
    "/mcp/connections",
    response_model=McpConnection,
    status_code=201,
    dependencies=_write_limit,
)
async def create_mcp_connection(body: McpConnectionCreate, store: McpStoreDep) -> McpConnection:
    return await store.create(body)


@router.get(
    "/mcp/connections/{connection_id}",
    response_model=McpConnection,
    dependencies=_default_limit,
)
async def get_mcp_connection(connection_id: str, store: McpStoreDep) -> McpConnection:
    return await _require_mcp(store, connection_id)


@router.patch(
    "/mcp/connections/{connection_id}",
    response_model=McpConnection,
    dependencies=_write_limit,
)
async def update_mcp_connection(
    connection_id: str, body: McpConnectionUpdate, store: McpStoreDep
) -> McpConnection:
    updated = await store.update(connection_id, body)
    if updated is None:
        raise NotFoundError(message=f'MCP connection with id "{connection_id}" was not found')
    return updated


@router.delete(
    "/mcp/connections/{connection_id}", response_model=OkResponse, dependencies=_write_limit
)
async def delete_mcp_connection(connection_id: str, store: McpStoreDep) -> OkResponse:
    if not await store.delete(connection_id):
        raise NotFoundError(message=f'MCP connection with id "{connection_id}" was not found')
    return OkResponse()


@router.post(
    "/mcp/connections/{connection_id}/health",
    response_model=McpHealthCheckResult,
    dependencies=_default_limit,
)
async def check_mcp_connection(
    connection_id: str, store: McpStoreDep, health: McpHealthDep
) -> McpHealthCheckResult:
    connection = await _require_mcp(store, connection_id)
    return await health.check_and_record(connection)


@router.post(
    "/mcp/connections/{connection_id}/sync",
    response_model=McpSyncResult,
    dependencies=_default_limit,
)
async def sync_mcp_connection(
    connection_id: str, store: McpStoreDep, health: McpHealthDep
) -> McpSyncResult:
    connection = await _require_mcp(store, connection_id)
    return await health.sync_and_record(connection)


# ---------------------------------------------------------------------------
# Integration keys
# ---------------------------------------------------------------------------


@router.get("/integrations/keys", response_model=list[ApiKeyEntry], dependencies=_default_limit)
async def list_keys(key_store: KeyStoreDep) -> list[ApiKeyEntry]:
    """List stored API keys with their values masked."""
    return [
        entry.model_copy(update={"key": mask_key(entry.key)}) for entry in key_store.list_keys()
    ]


@router.post(
    "/integrations/keys",
    response_model=KeySavedResponse,
    status_code=201,
    dependencies=_write_limit,
)
async def save_key(body: SaveKeyRequest, key_store: KeyStoreDep) -> KeySavedResponse:
    return KeySavedResponse(key=key_store.set_key(body.key, body.value))


@router.delete("/integrations/keys", response_model=OkResponse, dependencies=_write_limit)
async def delete_key(body: DeleteKeyRequest, key_store: KeyStoreDep) -> OkResponse:
    if not key_store.delete_key(body.key):
        raise NotFoundError(message=f'API key "{body.key}" was not found')
    return OkResponse()
