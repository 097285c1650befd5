"""Outbound webhook delivery with HMAC signing and exponential back-off.

Every event becomes one :class:`WebhookPayload` (UUID id, ISO timestamp)
POSTed as JSON to each subscribed webhook.  Delivery outcome rules:

* 2xx        -- success, no further attempts
* 4xx        -- permanent failure, returned after a single attempt
* 5xx, network error, timeout -- retried up to ``max_retries`` attempts in
  total, sleeping ``retry_delay_ms * 2 ** (attempt - 1)`` between attempts

When a secret is supplied and the webhook is marked ``secret_configured``,
the body is signed with HMAC-SHA256 and sent as
``X-Webhook-Signature: sha256=<hex>``.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import time
import uuid
from datetime import datetime, timezone
from typing import Any

import httpx
import structlog

from vectorhub.interfaces.connection_store import IWebhookStore
from vectorhub.models.connections import ConnectionStatus
from vectorhub.models.webhooks import (
    EVENT_WEBHOOK_TEST,
    DeliveryOptions,
    WebhookConnection,
    WebhookDeliveryResult,
    WebhookPayload,
    WebhookUpdate,
)
from vectorhub.utils.concurrency import throttled_gather

logger = structlog.get_logger(logger_name=__name__)

SIGNATURE_PREFIX = "sha256="


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------


def generate_signature(payload: str, secret: str) -> str:
    """Return the hex HMAC-SHA256 of *payload* keyed by *secret*."""
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(payload: str, signature: str, secret: str) -> bool:
    """Constant-time check of *signature* against *payload*.

    Accepts the bare hex digest or the ``sha256=`` header form.  Signatures
    of the wrong length simply fail.
    """
    if signature.startswith(SIGNATURE_PREFIX):
        signature = signature[len(SIGNATURE_PREFIX):]
    expected = generate_signature(payload, secret)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("ascii", "replace"))


def create_webhook_payload(event_type: str, data: dict[str, Any]) -> WebhookPayload:
    """Wrap *data* in an envelope with a fresh id and UTC timestamp."""
    return WebhookPayload(
        id=str(uuid.uuid4()),
        type=event_type,
        timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace(
            "+00:00", "Z"
        ),
        data=data,
    )


def serialize_payload(payload: WebhookPayload) -> str:
    """Serialize exactly the bytes that are signed and sent."""
    return json.dumps(payload.model_dump(mode="json"), separators=(",", ":"))


# ---------------------------------------------------------------------------
# Delivery service
# ---------------------------------------------------------------------------


class WebhookDeliveryService:
    """Delivers events to registered webhooks.

    Parameters
    ----------
    http_client:
        Shared ``httpx.AsyncClient`` used for every delivery.
    store:
        Registry used by :meth:`publish` to find subscribers and record
        delivery outcomes.  Optional for direct delivery.
    secret:
        Signing secret (``WEBHOOK_SECRET``).  Empty means unsigned.
    default_options:
        Retry / timeout defaults for :meth:`deliver_webhook`.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        store: IWebhookStore | None = None,
        secret: str | None = None,
        default_options: DeliveryOptions | None = None,
        test_timeout_ms: int = 10000,
    ) -> None:
        self._http = http_client
        self._store = store
        self._secret = secret or None
        self._default_options = default_options or DeliveryOptions()
        self._test_timeout_ms = test_timeout_ms

    def _build_headers(
        self, connection: WebhookConnection, payload: WebhookPayload, body: str, secret: str | None
    ) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "X-Webhook-ID": payload.id,
            "X-Webhook-Timestamp": payload.timestamp,
            "X-Webhook-Event": payload.type,
        }
        if secret and connection.secret_configured:
            headers["X-Webhook-Signature"] = f"{SIGNATURE_PREFIX}{generate_signature(body, secret)}"
        return headers

    async def deliver_webhook(
        self,
        connection: WebhookConnection,
        payload: WebhookPayload,
        secret: str | None = None,
        options: DeliveryOptions | None = None,
    ) -> WebhookDeliveryResult:
        """POST *payload* to *connection* following the retry policy."""
        opts = options or self._default_options
        secret = secret if secret is not None else self._secret
        body = serialize_payload(payload)
        headers = self._build_headers(connection, payload, body, secret)

        start = time.perf_counter()
        attempts = 0
        last_error: str | None = None
        last_status: int | None = None

        while attempts < opts.max_retries:
            attempts += 1
            try:
                response = await self._http.post(
                    connection.url,
                    content=body,
                    headers=headers,
                    timeout=opts.timeout_ms / 1000,
                )
                last_status = response.status_code

                if 200 <= response.status_code < 300:
                    return self._finish(connection, payload, start, attempts, True, last_status)

                last_error = f"HTTP {response.status_code}: {response.text}"
                if 400 <= response.status_code < 500:
                    return self._finish(
                        connection, payload, start, attempts, False, last_status, last_error
                    )
            except httpx.TimeoutException:
                last_error = "Request timeout"
                last_status = None
            except httpx.HTTPError as exc:
                last_error = str(exc) or type(exc).__name__
                last_status = None

            logger.warning(
                "webhook_delivery_attempt_failed",
                webhook_id=connection.id,
                event=payload.type,
                attempt=attempts,
                error=last_error,
            )
            if attempts < opts.max_retries:
                delay_ms = opts.retry_delay_ms * (2 ** (attempts - 1))
                await asyncio.sleep(delay_ms / 1000)

        return self._finish(
            connection, payload, start, attempts, False, last_status, last_error
        )

    def _finish(
        self,
        connection: WebhookConnection,
        payload: WebhookPayload,
        start: float,
        attempts: int,
        success: bool,
        status_code: int | None,
        error: str | None = None,
    ) -> WebhookDeliveryResult:
        result = WebhookDeliveryResult(
            success=success,
            status_code=status_code,
            error=error,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            attempts=attempts,
        )
        log = logger.info if success else logger.warning
        log(
            "webhook_delivered" if success else "webhook_delivery_failed",
            webhook_id=connection.id,
            event=payload.type,
            status=status_code,
            attempts=attempts,
            duration_ms=result.duration_ms,
            error=error,
        )
        return result

    async def broadcast_webhook(
        self,
        webhooks: list[WebhookConnection],
        event_type: str,
        data: dict[str, Any],
        secret: str | None = None,
    ) -> dict[str, WebhookDeliveryResult]:
        """Deliver one event to every connected webhook subscribed to it.

        Returns a map of webhook id to delivery result; webhooks that are not
        connected or not subscribed are absent from the map.
        """
        targets = [
            w for w in webhooks
            if w.status == ConnectionStatus.CONNECTED and w.subscribes_to(event_type)
        ]
        if not targets:
            return {}

        payload = create_webhook_payload(event_type, data)
        results = await throttled_gather(
            [self.deliver_webhook(w, payload, secret) for w in targets],
            return_exceptions=False,
        )
        return {w.id: r for w, r in zip(targets, results)}

    async def test_webhook(
        self, connection: WebhookConnection, secret: str | None = None
    ) -> WebhookDeliveryResult:
        """Send a single-attempt ``webhook.test`` event to *connection*."""
        payload = create_webhook_payload(
            EVENT_WEBHOOK_TEST,
            {
                "message": "This is a test webhook from VectorHub",
                "webhookName": connection.name,
                "subscribedEvents": connection.event_types,
            },
        )
        options = DeliveryOptions(max_retries=1, timeout_ms=self._test_timeout_ms)
        return await self.deliver_webhook(connection, payload, secret, options)

    async def publish(self, event_type: str, data: dict[str, Any]) -> dict[str, WebhookDeliveryResult]:
        """Broadcast to the registry's subscribers and record each outcome."""
        store = self._store
        if store is None:
            return {}
        webhooks = await store.list()
        results = await self.broadcast_webhook(webhooks, event_type, data)
        for webhook_id, result in results.items():
            await self._record(store, webhook_id, result)
        return results

    @staticmethod
    async def _record(
        store: IWebhookStore, webhook_id: str, result: WebhookDeliveryResult
    ) -> None:
        if result.success:
            update = WebhookUpdate(
                status=ConnectionStatus.CONNECTED, last_delivery=datetime.now(timezone.utc)
            )
        else:
            update = WebhookUpdate(status=ConnectionStatus.ERROR)
        await store.update(webhook_id, update)
