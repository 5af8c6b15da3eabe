"""
BizFlow Pro - Webhook fan-out

Tests for:
1. Event filter ("a,b", "*", whitespace)
2. Exactly one POST per matching active subscription
3. A failing subscriber never blocks its siblings
4. Headers / body shape
5. trigger_webhooks() returns before any delivery
6. Subscription management (secret masking, tenant scoping)
"""

import asyncio
import json

import httpx
import pytest

from services import webhooks
from services.webhooks import (
    event_matches,
    build_delivery,
    trigger_webhooks,
    create_webhook,
    list_webhooks,
    delete_webhook,
    set_webhook_active,
    EVENT_HEADER,
    SIGNATURE_HEADER,
)
from services.errors import NotFoundError
from tests.conftest import TENANT_ID, OTHER_TENANT_ID


def _hook(hook_id, url, events, tenant_id=TENANT_ID, secret=None, is_active=True):
    return {
        "id": hook_id, "tenant_id": tenant_id, "url": url, "events": events,
        "secret": secret, "is_active": is_active, "created_at": "2026-01-01T00:00:00+00:00",
    }


class TestEventMatching:

    def test_list_matches_members_only(self):
        assert event_matches("a,b", "a")
        assert event_matches("a,b", "b")
        assert not event_matches("a,b", "c")

    def test_wildcard_matches_everything(self):
        assert event_matches("*", "order.created")
        assert event_matches(" * ", "anything.at.all")

    def test_entries_are_trimmed(self):
        assert event_matches("order.created, contact.created", "contact.created")

    def test_no_prefix_matching(self):
        assert not event_matches("order", "order.created")
        assert not event_matches("", "order.created")
        assert not event_matches(None, "order.created")


class TestDelivery:

    def test_headers_and_body(self):
        headers, body = build_delivery(
            {"url": "https://x.test", "secret": "s3cret"}, "order.created", {"id": "O1"},
            timestamp="2026-05-01T10:00:00+00:00"
        )
        assert headers[EVENT_HEADER] == "order.created"
        assert headers[SIGNATURE_HEADER] == "s3cret"
        assert headers["Content-Type"] == "application/json"
        assert body == {"event": "order.created", "timestamp": "2026-05-01T10:00:00+00:00",
                        "payload": {"id": "O1"}}

    def test_missing_secret_sends_empty_signature(self):
        headers, _ = build_delivery({"url": "https://x.test"}, "e", {})
        assert headers[SIGNATURE_HEADER] == ""


class TestFanOut:

    @pytest.mark.asyncio
    async def test_filtered_subscriptions_receive_one_post_each(self, fake_db, webhook_calls):
        """events="order.created" and events="*" -> exactly two POSTs"""
        fake_db.webhooks.seed(
            _hook("W1", "https://a.test/hook", "order.created", secret="sa"),
            _hook("W2", "https://b.test/hook", "*"),
            _hook("W3", "https://c.test/hook", "contact.created"),
            _hook("W4", "https://d.test/hook", "*", is_active=False),
            _hook("W5", "https://e.test/hook", "*", tenant_id=OTHER_TENANT_ID),
        )

        trigger_webhooks(TENANT_ID, "order.created", {"id": "O1"})
        await webhook_calls.dispatcher.drain()

        urls = sorted(str(r.url) for r in webhook_calls.requests)
        assert urls == ["https://a.test/hook", "https://b.test/hook"]

        by_url = {str(r.url): r for r in webhook_calls.requests}
        signed = by_url["https://a.test/hook"]
        assert signed.method == "POST"
        assert signed.headers[EVENT_HEADER] == "order.created"
        assert signed.headers[SIGNATURE_HEADER] == "sa"
        body = json.loads(signed.content)
        assert body["event"] == "order.created"
        assert body["payload"] == {"id": "O1"}
        assert body["timestamp"]

    @pytest.mark.asyncio
    async def test_list_subscription(self, fake_db, webhook_calls):
        """events="a,b" fires for a and b, never for c"""
        fake_db.webhooks.seed(_hook("W1", "https://a.test/hook", "a,b"))

        for name in ("a", "b", "c"):
            trigger_webhooks(TENANT_ID, name, {})
        await webhook_calls.dispatcher.drain()

        fired = [r.headers[EVENT_HEADER] for r in webhook_calls.requests]
        assert sorted(fired) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_block_others(self, fake_db, webhook_calls):
        fake_db.webhooks.seed(
            _hook("W1", "https://down.test/hook", "*"),
            _hook("W2", "https://error.test/hook", "*"),
            _hook("W3", "https://ok.test/hook", "*"),
        )
        webhook_calls.responses["https://down.test/hook"] = httpx.ConnectError("connection refused")
        webhook_calls.responses["https://error.test/hook"] = 500

        trigger_webhooks(TENANT_ID, "order.created", {"id": "O1"})
        await webhook_calls.dispatcher.drain()

        urls = sorted(str(r.url) for r in webhook_calls.requests)
        assert urls == ["https://down.test/hook", "https://error.test/hook", "https://ok.test/hook"]

    @pytest.mark.asyncio
    async def test_deliver_reports_status(self, webhook_calls):
        webhook_calls.responses["https://error.test/hook"] = 503
        webhook_calls.responses["https://down.test/hook"] = httpx.ReadTimeout("timeout")
        d = webhook_calls.dispatcher

        assert await d.deliver({"url": "https://ok.test/hook"}, "e", {}) == 200
        assert await d.deliver({"url": "https://error.test/hook"}, "e", {}) == 503
        assert await d.deliver({"url": "https://down.test/hook"}, "e", {}) is None

    @pytest.mark.asyncio
    async def test_trigger_returns_before_delivery(self, fake_db, webhook_calls):
        fake_db.webhooks.seed(_hook("W1", "https://a.test/hook", "*"))

        task = trigger_webhooks(TENANT_ID, "order.created", {})

        assert isinstance(task, asyncio.Task)
        assert webhook_calls.requests == []
        assert webhook_calls.dispatcher.pending >= 1
        await webhook_calls.dispatcher.drain()
        assert len(webhook_calls.requests) == 1
        assert webhook_calls.dispatcher.pending == 0

    def test_no_event_loop_drops_event(self):
        assert trigger_webhooks(TENANT_ID, "order.created", {}) is None

    @pytest.mark.asyncio
    async def test_fan_out_error_is_contained(self, webhook_calls, monkeypatch):
        """A crash while loading subscriptions is logged inside the detached task"""
        class BrokenDb:
            def __getattr__(self, name):
                raise RuntimeError("db down")

        monkeypatch.setattr(webhooks, "db", BrokenDb())

        task = trigger_webhooks(TENANT_ID, "order.created", {})
        assert await task is None


class TestSubscriptions:

    @pytest.mark.asyncio
    async def test_create_and_list_masks_secret(self, fake_db):
        created = await create_webhook(TENANT_ID, "https://a.test/hook", "order.created", secret="s3cret")
        await create_webhook(OTHER_TENANT_ID, "https://b.test/hook")

        listed = await list_webhooks(TENANT_ID)

        assert len(listed) == 1
        assert listed[0]["id"] == created["id"]
        assert listed[0]["has_secret"] is True
        assert "secret" not in listed[0]
        log = await fake_db.event_log.find_one({"action": "webhook_create"})
        assert log["details"]["url"] == "https://a.test/hook"

    @pytest.mark.asyncio
    async def test_delete_is_tenant_scoped(self, fake_db):
        created = await create_webhook(TENANT_ID, "https://a.test/hook")

        with pytest.raises(NotFoundError):
            await delete_webhook(OTHER_TENANT_ID, created["id"])

        assert await delete_webhook(TENANT_ID, created["id"]) == {"success": True}
        assert await list_webhooks(TENANT_ID) == []

    @pytest.mark.asyncio
    async def test_deactivated_subscription_is_skipped(self, fake_db, webhook_calls):
        created = await create_webhook(TENANT_ID, "https://a.test/hook")
        toggled = await set_webhook_active(TENANT_ID, created["id"], False)
        assert toggled["is_active"] is False

        trigger_webhooks(TENANT_ID, "order.created", {})
        await webhook_calls.dispatcher.drain()
        assert webhook_calls.requests == []
