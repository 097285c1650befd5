"""Adapter for user-defined REST backends.

The "database" is any HTTP service exposing five endpoints (``create``,
``read``, ``update``, ``delete``, ``search``) relative to ``base_url``.  Each
operation is one JSON request, retried ``retry_count`` times after the first
attempt with a linear back-off of one second per attempt.
"""

from __future__ import annotations

import asyncio
import base64
import time
from typing import Any
from urllib.parse import quote, urlencode

import httpx
import structlog

from vectorhub.models.connections import (
    ConnectionConfig,
    ConnectionStatus,
    WebhookAuthType,
    WebhookConfig,
)
from vectorhub.models.documents import (
    CollectionInfo,
    CollectionStats,
    CreateCollectionConfig,
    DocumentUpdate,
    SearchQuery,
    SearchResult,
    TestConnectionResult,
    UpdateCollectionConfig,
    VectorDocument,
)
from vectorhub.providers.vector_db.base import NetworkAdapter
from vectorhub.utils.errors import AdapterError, ConfigurationError, NotFoundError

logger = structlog.get_logger(logger_name=__name__)

_RETRY_BASE_DELAY_SECONDS = 1.0


class WebhookAdapter(NetworkAdapter):
    """Maps the adapter contract onto a configurable REST endpoint set.

    Parameters
    ----------
    http_client:
        Shared ``httpx.AsyncClient``.  When omitted the adapter creates its
        own on connect and closes it on disconnect.
    strict_reads:
        Re-raise failures from best-effort reads instead of returning defaults.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        strict_reads: bool = False,
    ) -> None:
        super().__init__(strict_reads=strict_reads)
        self._http = http_client
        self._owns_client = http_client is None
        self._config: WebhookConfig | None = None

    def get_provider_name(self) -> str:
        return "webhook"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, config: ConnectionConfig) -> None:
        if not isinstance(config.config, WebhookConfig):
            self._status = ConnectionStatus.ERROR
            raise ConfigurationError(
                message="Webhook connection requires a webhook config block",
                provider_name=self.get_provider_name(),
            )
        self._config = config.config
        if self._http is None:
            self._http = httpx.AsyncClient()
            self._owns_client = True
        self._status = ConnectionStatus.CONNECTED
        logger.info("webhook_adapter_connected", base_url=self._config.base_url)

    async def disconnect(self) -> None:
        if self._owns_client and self._http is not None:
            await self._http.aclose()
            self._http = None
        self._config = None
        self._status = ConnectionStatus.DISCONNECTED

    async def test_connection(self) -> TestConnectionResult:
        try:
            self._ensure_connected()
            await self._request("GET", self._cfg.endpoints.read)
            return TestConnectionResult(success=True, message="Webhook endpoint reachable")
        except Exception as exc:  # noqa: BLE001
            return TestConnectionResult(success=False, message=str(exc))

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    @property
    def _cfg(self) -> WebhookConfig:
        if self._config is None:
            raise self._not_connected()
        return self._config

    def _build_headers(self) -> dict[str, str]:
        cfg = self._cfg
        headers = {"Content-Type": "application/json"}
        if cfg.auth_type == WebhookAuthType.API_KEY and cfg.auth_value:
            headers["X-API-Key"] = cfg.auth_value
        elif cfg.auth_type == WebhookAuthType.BEARER and cfg.auth_value:
            headers["Authorization"] = f"Bearer {cfg.auth_value}"
        elif cfg.auth_type == WebhookAuthType.BASIC and cfg.auth_value:
            token = base64.b64encode(cfg.auth_value.encode()).decode()
            headers["Authorization"] = f"Basic {token}"
        headers.update(cfg.headers)
        return headers

    async def _request(self, method: str, endpoint: str, body: Any = None) -> Any:
        """Send one request with retries and return the decoded JSON body.

        A 404 maps to :class:`NotFoundError`; any other failure is retried
        and finally surfaces as :class:`AdapterError`.
        """
        if self._http is None:
            raise self._not_connected()
        cfg = self._cfg
        url = f"{cfg.base_url.rstrip('/')}{endpoint}"
        timeout = cfg.timeout_ms / 1000
        last_exc: Exception | None = None
        last_message = ""

        for attempt in range(cfg.retry_count + 1):
            try:
                response = await self._http.request(
                    method,
                    url,
                    headers=self._build_headers(),
                    json=body,
                    timeout=timeout,
                )
                if response.status_code == 404:
                    raise NotFoundError(
                        message=f"Webhook endpoint returned 404 for {endpoint}",
                        provider_name=self.get_provider_name(),
                    )
                response.raise_for_status()
                if not response.content:
                    return None
                return response.json()
            except httpx.TimeoutException as exc:
                last_exc = exc
                last_message = f"Request to {url} timed out after {cfg.timeout_ms}ms"
            except httpx.HTTPStatusError as exc:
                last_exc = exc
                last_message = f"HTTP {exc.response.status_code}: {exc.response.text}"
            except (httpx.HTTPError, ValueError) as exc:
                last_exc = exc
                last_message = f"Request to {url} failed: {exc}"

            logger.warning(
                "webhook_adapter_request_failed",
                method=method,
                url=url,
                attempt=attempt + 1,
                error=last_message,
            )
            if attempt < cfg.retry_count:
                await asyncio.sleep(_RETRY_BASE_DELAY_SECONDS * (attempt + 1))

        raise AdapterError(message=last_message, provider_name=self.get_provider_name()) from last_exc

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def list_collections(self) -> list[CollectionInfo]:
        self._ensure_connected()
        try:
            data = await self._request("GET", self._cfg.endpoints.read)
        except Exception as exc:  # noqa: BLE001
            return self._degraded("list_collections", exc, [])
        items = data.get("collections", []) if isinstance(data, dict) else data or []
        return [CollectionInfo.model_validate(item) for item in items]

    async def create_collection(self, config: CreateCollectionConfig) -> CollectionInfo:
        self._ensure_connected()
        data = await self._request(
            "POST", self._cfg.endpoints.create, config.model_dump(mode="json", by_alias=True)
        )
        if isinstance(data, dict) and "name" in data:
            return CollectionInfo.model_validate(data)
        return CollectionInfo(
            name=config.name,
            dimensions=config.dimensions,
            distance_metric=config.distance_metric,
        )

    async def get_collection(self, name: str) -> CollectionInfo:
        self._ensure_connected()
        data = await self._request("GET", f"{self._cfg.endpoints.read}/{quote(name)}")
        if not data:
            raise NotFoundError(
                message=f"Collection '{name}' not found", provider_name=self.get_provider_name()
            )
        return CollectionInfo.model_validate(data)

    async def update_collection(
        self, name: str, updates: UpdateCollectionConfig
    ) -> CollectionInfo:
        self._ensure_connected()
        data = await self._request(
            "PUT",
            f"{self._cfg.endpoints.update}/{quote(name)}",
            updates.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        if isinstance(data, dict) and "name" in data:
            return CollectionInfo.model_validate(data)
        return await self.get_collection(name)

    async def delete_collection(self, name: str, cascade: bool = False) -> None:
        self._ensure_connected()
        endpoint = f"{self._cfg.endpoints.delete}/{quote(name)}"
        if cascade:
            endpoint = f"{endpoint}?{urlencode({'cascade': 'true'})}"
        await self._request("DELETE", endpoint)

    async def get_collection_stats(self, name: str) -> CollectionStats:
        self._ensure_connected()
        try:
            data = await self._request("GET", f"{self._cfg.endpoints.read}/{quote(name)}/stats")
            return CollectionStats.model_validate(data or {})
        except Exception as exc:  # noqa: BLE001
            return self._degraded("get_collection_stats", exc, CollectionStats())

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def add_documents(
        self, collection: str, documents: list[VectorDocument]
    ) -> list[str]:
        self._ensure_connected()
        data = await self._request(
            "POST",
            self._cfg.endpoints.create,
            {
                "collection": collection,
                "documents": [d.model_dump(mode="json", exclude_none=True) for d in documents],
            },
        )
        ids = data.get("ids") if isinstance(data, dict) else None
        if ids:
            return [str(i) for i in ids]
        stamp = int(time.time() * 1000)
        return [doc.id or f"doc-{stamp}-{i}" for i, doc in enumerate(documents)]

    async def get_documents(self, collection: str, ids: list[str]) -> list[VectorDocument]:
        self._ensure_connected()
        params = urlencode({"collection": collection, "ids": ",".join(ids)})
        data = await self._request("GET", f"{self._cfg.endpoints.read}?{params}")
        items = data.get("documents", []) if isinstance(data, dict) else data or []
        return [VectorDocument.model_validate(item) for item in items]

    async def update_documents(self, collection: str, updates: list[DocumentUpdate]) -> None:
        self._ensure_connected()
        await self._request(
            "PUT",
            self._cfg.endpoints.update,
            {
                "collection": collection,
                "documents": [u.model_dump(mode="json", exclude_unset=True) for u in updates],
            },
        )

    async def delete_documents(self, collection: str, ids: list[str]) -> None:
        self._ensure_connected()
        await self._request(
            "DELETE", self._cfg.endpoints.delete, {"collection": collection, "ids": ids}
        )

    async def count_documents(
        self, collection: str, filter: dict[str, Any] | None = None
    ) -> int:
        self._ensure_connected()
        params = urlencode({"collection": collection})
        try:
            data = await self._request(
                "POST", f"{self._cfg.endpoints.read}/count?{params}", {"filter": filter}
            )
        except Exception as exc:  # noqa: BLE001
            return self._degraded("count_documents", exc, 0)
        if isinstance(data, dict):
            return int(data.get("count", 0))
        return int(data or 0)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, collection: str, query: SearchQuery) -> list[SearchResult]:
        self._ensure_connected()
        body = {
            "collection": collection,
            **query.model_dump(mode="json", by_alias=True, exclude_none=True),
        }
        data = await self._request("POST", self._cfg.endpoints.search, body)
        items = data.get("results", []) if isinstance(data, dict) else data or []
        results = [SearchResult.model_validate(item) for item in items]
        return [r for r in results if r.score >= query.min_score]
