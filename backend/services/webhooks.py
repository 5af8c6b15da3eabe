"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  BizFlow Pro - Outbound webhooks (fan-out)                                   ║
║                                                                              ║
║  trigger_webhooks() is FIRE AND FORGET:                                      ║
║  - returns immediately, the caller never waits for any HTTP delivery         ║
║  - one independent POST per matching active subscription                     ║
║  - a failing delivery is logged and never affects its siblings               ║
║  - no retry, no backoff, no receipt, no dead-letter (at-most-once)           ║
║                                                                              ║
║  Headers: X-BizFlow-Event = event name                                       ║
║           X-BizFlow-Signature = raw subscription secret (not an HMAC)        ║
║  Body:    {"event": ..., "timestamp": ISO-8601, "payload": {...}}            ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import asyncio
import logging
from typing import Optional, List, Dict, Any

import httpx

from config import db, now_iso, new_id, WEBHOOK_TIMEOUT_SECONDS, WEBHOOK_MAX_CONCURRENCY
from models import WILDCARD_EVENT
from services.errors import NotFoundError
from services.event_logger import log_event

logger = logging.getLogger("webhooks")

EVENT_HEADER = "X-BizFlow-Event"
SIGNATURE_HEADER = "X-BizFlow-Signature"


def event_matches(events: str, event_name: str) -> bool:
    """
    "a,b" matches "a" and "b" (entries trimmed), "*" matches everything.
    """
    events = events or ""
    if events.strip() == WILDCARD_EVENT:
        return True
    return event_name in [e.strip() for e in events.split(",")]


def build_delivery(webhook: Dict, event_name: str, payload: Any, timestamp: str = None) -> tuple:
    """Returns (headers, body) for one delivery"""
    headers = {
        "Content-Type": "application/json",
        EVENT_HEADER: event_name,
        SIGNATURE_HEADER: webhook.get("secret") or "",
    }
    body = {
        "event": event_name,
        "timestamp": timestamp or now_iso(),
        "payload": payload,
    }
    return headers, body


class WebhookDispatcher:
    """
    Detached-task runner for webhook deliveries.

    Every submitted coroutine runs in its own task with its own error
    boundary. Concurrent HTTP deliveries are bounded by a semaphore.
    """

    def __init__(
        self,
        max_concurrency: int = WEBHOOK_MAX_CONCURRENCY,
        timeout: float = WEBHOOK_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.max_concurrency = max(1, max_concurrency)
        self.timeout = timeout
        self.transport = transport
        self._tasks = set()
        self._semaphore = None
        self._loop = None

    def _get_semaphore(self) -> asyncio.Semaphore:
        # One semaphore per event loop
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._loop is not loop:
            self._semaphore = asyncio.Semaphore(self.max_concurrency)
            self._loop = loop
        return self._semaphore

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, coro, label: str = "webhook") -> asyncio.Task:
        """Schedule a coroutine without awaiting it"""
        task = asyncio.get_running_loop().create_task(self._guard(coro, label))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(self, coro, label: str):
        try:
            return await coro
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"[WEBHOOK] {label} failed")
            return None

    async def deliver(self, webhook: Dict, event_name: str, payload: Any, timestamp: str = None) -> Optional[int]:
        """
        One POST to one subscriber. Returns the status code, or None on
        network failure. Never raises for HTTP-level problems.
        """
        headers, body = build_delivery(webhook, event_name, payload, timestamp)
        url = webhook.get("url")

        async with self._get_semaphore():
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                    response = await client.post(url, json=body, headers=headers)
            except httpx.HTTPError as e:
                logger.error(f"[WEBHOOK] Error sending {event_name} to {url}: {type(e).__name__}: {e}")
                return None

        if not response.is_success:
            logger.warning(
                f"[WEBHOOK] Failed to send {event_name} to {url}: "
                f"{response.status_code} {response.reason_phrase}"
            )
        else:
            logger.info(f"[WEBHOOK] {event_name} -> {url} ({response.status_code})")
        return response.status_code

    async def fan_out(self, tenant_id: str, event_name: str, payload: Any) -> List[asyncio.Task]:
        """
        Load active subscriptions of the tenant, keep the matching ones and
        schedule one independent delivery each.
        """
        webhooks = await db.webhooks.find(
            {"tenant_id": tenant_id, "is_active": True}, {"_id": 0}
        ).to_list(1000)

        matching = [w for w in webhooks if event_matches(w.get("events", ""), event_name)]
        if not matching:
            return []

        logger.info(f"[WEBHOOK] Triggering {len(matching)} webhooks for event: {event_name} tenant={tenant_id}")

        timestamp = now_iso()
        return [
            self.submit(
                self.deliver(w, event_name, payload, timestamp),
                label=f"delivery {w.get('id')} {event_name}"
            )
            for w in matching
        ]

    async def drain(self):
        """Wait for every in-flight task (shutdown, tests)"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


# Global instance
dispatcher = WebhookDispatcher()


def trigger_webhooks(tenant_id: str, event_name: str, payload: Any) -> Optional[asyncio.Task]:
    """
    Fire and forget. Returns the detached fan-out task (callers normally
    ignore it) or None when called outside an event loop.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        logger.warning(f"[WEBHOOK] No running event loop, {event_name} dropped")
        return None

    return dispatcher.submit(
        dispatcher.fan_out(tenant_id, event_name, payload),
        label=f"fan-out {event_name}"
    )


# ==================== SUBSCRIPTIONS ====================

async def list_webhooks(tenant_id: str) -> List[Dict]:
    """Newest first. Secrets are masked."""
    webhooks = await db.webhooks.find(
        {"tenant_id": tenant_id}, {"_id": 0}
    ).sort("created_at", -1).to_list(500)
    for w in webhooks:
        w["has_secret"] = bool(w.get("secret"))
        w.pop("secret", None)
    return webhooks


async def create_webhook(tenant_id: str, url: str, events: str = WILDCARD_EVENT,
                         secret: str = None, user: str = "system") -> Dict:
    webhook = {
        "id": new_id(),
        "tenant_id": tenant_id,
        "url": url,
        "events": events,
        "secret": secret,
        "is_active": True,
        "created_at": now_iso(),
    }
    await db.webhooks.insert_one(webhook)
    webhook.pop("_id", None)

    await log_event("webhook_create", "webhook", webhook["id"], tenant_id=tenant_id, user=user,
                    details={"url": url, "events": events})
    logger.info(f"[WEBHOOK] subscription {webhook['id']} created tenant={tenant_id} events={events}")
    return webhook


async def delete_webhook(tenant_id: str, webhook_id: str, user: str = "system") -> Dict:
    result = await db.webhooks.delete_one({"id": webhook_id, "tenant_id": tenant_id})
    if result.deleted_count == 0:
        raise NotFoundError("Webhook", webhook_id)

    await log_event("webhook_delete", "webhook", webhook_id, tenant_id=tenant_id, user=user)
    return {"success": True}


async def set_webhook_active(tenant_id: str, webhook_id: str, is_active: bool, user: str = "system") -> Dict:
    result = await db.webhooks.update_one(
        {"id": webhook_id, "tenant_id": tenant_id},
        {"$set": {"is_active": is_active}}
    )
    if result.matched_count == 0:
        raise NotFoundError("Webhook", webhook_id)

    await log_event("webhook_toggle", "webhook", webhook_id, tenant_id=tenant_id, user=user,
                    details={"is_active": is_active})
    webhook = await db.webhooks.find_one({"id": webhook_id, "tenant_id": tenant_id}, {"_id": 0})
    webhook["has_secret"] = bool(webhook.get("secret"))
    webhook.pop("secret", None)
    return webhook
