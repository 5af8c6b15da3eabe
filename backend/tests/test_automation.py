"""
BizFlow Pro - Automation engine

Tests for:
1. VIP rule after orders (score threshold, single welcome email)
2. Trigger condition matching
3. Workflow execution (ordered actions, failure isolation)
4. CRM write paths firing CONTACT_CREATED / TAG_ADDED
"""

import asyncio

import pytest

from services.automation import (
    evaluate_order_triggers,
    process_trigger_event,
    trigger_matches,
    create_workflow,
    list_workflows,
    set_workflow_active,
    VIP_RULE,
)
from services.contacts import create_contact, add_tag
from services.errors import NotFoundError
from tests.conftest import TENANT_ID, OTHER_TENANT_ID


def _contact(contact_id="C1", score=0, email="jane@acme.io", tags=None, tenant_id=TENANT_ID):
    return {
        "id": contact_id, "tenant_id": tenant_id, "name": "Jane", "email": email, "phone": "",
        "stage": "CUSTOMER", "score": score, "tags": tags or [],
        "created_at": "2026-01-01T00:00:00+00:00", "updated_at": "2026-01-01T00:00:00+00:00",
    }


class TestVipRule:

    @pytest.mark.asyncio
    async def test_score_above_threshold_fires_once(self, fake_db, sent_emails):
        fake_db.contacts.seed(_contact(score=60))

        fired = await evaluate_order_triggers(TENANT_ID, "C1", "O1")
        again = await evaluate_order_triggers(TENANT_ID, "C1", "O2")

        assert fired == [VIP_RULE]
        assert again == [VIP_RULE]
        assert len(sent_emails) == 1
        assert sent_emails[0]["to"] == "jane@acme.io"
        contact = await fake_db.contacts.find_one({"id": "C1"})
        assert contact["tags"] == ["VIP"]

    @pytest.mark.asyncio
    async def test_overlapping_orders_send_one_email(self, fake_db, sent_emails, yielding_reads):
        """Two post-commit evaluations both read the contact before either tags it"""
        fake_db.contacts.seed(_contact(score=100))
        yielding_reads(fake_db.contacts)

        fired = await asyncio.gather(
            evaluate_order_triggers(TENANT_ID, "C1", "O1"),
            evaluate_order_triggers(TENANT_ID, "C1", "O2"),
        )

        assert fired == [[VIP_RULE], [VIP_RULE]]
        assert len(sent_emails) == 1
        contact = await fake_db.contacts.find_one({"id": "C1"})
        assert contact["tags"] == ["VIP"]

    @pytest.mark.asyncio
    async def test_threshold_is_strict(self, fake_db, sent_emails):
        fake_db.contacts.seed(_contact(score=50))

        assert await evaluate_order_triggers(TENANT_ID, "C1", "O1") == []
        assert sent_emails == []

    @pytest.mark.asyncio
    async def test_unknown_contact(self, fake_db, sent_emails):
        assert await evaluate_order_triggers(TENANT_ID, "missing", "O1") == []

    @pytest.mark.asyncio
    async def test_sixth_purchase_makes_a_vip(self, fake_db, seed_product, webhook_calls, sent_emails):
        """10 on creation + 10 per purchase: the 6th checkout crosses 50"""
        from services.orders import create_order
        seed_product("P1", stock=100)

        for _ in range(5):
            await create_order(TENANT_ID, "Jane", "jane@acme.io", [{"product_id": "P1", "quantity": 1}])
        assert sent_emails == []

        await create_order(TENANT_ID, "Jane", "jane@acme.io", [{"product_id": "P1", "quantity": 1}])
        assert len(sent_emails) == 1
        await webhook_calls.dispatcher.drain()


class TestTriggerMatching:

    def test_empty_config_matches(self):
        assert trigger_matches({}, {"tag": "hot"})

    def test_all_keys_must_match(self):
        assert trigger_matches({"tag": "hot"}, {"tag": "hot", "contact_id": "C1"})
        assert not trigger_matches({"tag": "hot"}, {"tag": "cold"})
        assert not trigger_matches({"tag": "hot", "form_id": "F1"}, {"tag": "hot"})


class TestWorkflows:

    @pytest.mark.asyncio
    async def test_actions_run_in_order(self, fake_db, sent_emails):
        fake_db.contacts.seed(_contact())
        await create_workflow(TENANT_ID, "Hot lead", {"type": "TAG_ADDED", "config": {"tag": "hot"}}, [
            {"type": "UPDATE_CONTACT_STAGE", "config": {"stage": "PROSPECT"}, "order": 2},
            {"type": "SEND_EMAIL", "config": {"subject": "Hi", "body": "<p>Hello</p>"}, "order": 1},
            {"type": "CREATE_TASK", "config": {"title": "Call back", "due_in_days": 2}, "order": 3},
        ])

        results = await process_trigger_event(TENANT_ID, "TAG_ADDED", {"contact_id": "C1", "tag": "hot"})

        assert len(results) == 1
        assert [a["type"] for a in results[0]["actions"]] == ["SEND_EMAIL", "UPDATE_CONTACT_STAGE", "CREATE_TASK"]
        assert all(a["success"] for a in results[0]["actions"])
        assert sent_emails[0]["to"] == "jane@acme.io"
        contact = await fake_db.contacts.find_one({"id": "C1"})
        assert contact["stage"] == "PROSPECT"
        task = await fake_db.tasks.find_one({"contact_id": "C1"})
        assert task["title"] == "Call back"
        assert task["status"] == "TODO"

    @pytest.mark.asyncio
    async def test_failing_action_does_not_stop_the_next(self, fake_db, sent_emails):
        fake_db.contacts.seed(_contact())
        await create_workflow(TENANT_ID, "Broken", {"type": "CONTACT_CREATED"}, [
            {"type": "UPDATE_CONTACT_STAGE", "config": {"stage": "NOT_A_STAGE"}},
            {"type": "ADD_TAG", "config": {"tag": "welcomed"}},
        ])

        results = await process_trigger_event(TENANT_ID, "CONTACT_CREATED", {"contact_id": "C1"})

        actions = results[0]["actions"]
        assert actions[0]["success"] is False
        assert "error" in actions[0]
        assert actions[1]["success"] is True
        contact = await fake_db.contacts.find_one({"id": "C1"})
        assert contact["tags"] == ["welcomed"]

    @pytest.mark.asyncio
    async def test_inactive_other_type_and_other_tenant_are_skipped(self, fake_db, sent_emails):
        fake_db.contacts.seed(_contact())
        inactive = await create_workflow(TENANT_ID, "Off", {"type": "TAG_ADDED"},
                                         [{"type": "ADD_TAG", "config": {"tag": "x"}}])
        await set_workflow_active(TENANT_ID, inactive["id"], False)
        await create_workflow(TENANT_ID, "Other type", {"type": "FORM_SUBMITTED"},
                              [{"type": "ADD_TAG", "config": {"tag": "y"}}])
        await create_workflow(OTHER_TENANT_ID, "Other tenant", {"type": "TAG_ADDED"},
                              [{"type": "ADD_TAG", "config": {"tag": "z"}}])

        results = await process_trigger_event(TENANT_ID, "TAG_ADDED", {"contact_id": "C1", "tag": "hot"})

        assert results == []

    @pytest.mark.asyncio
    async def test_webhook_action_goes_through_fan_out(self, fake_db, webhook_calls):
        fake_db.webhooks.seed({
            "id": "W1", "tenant_id": TENANT_ID, "url": "https://a.test/hook", "events": "*",
            "secret": None, "is_active": True, "created_at": "",
        })
        await create_workflow(TENANT_ID, "Relay", {"type": "FORM_SUBMITTED"},
                              [{"type": "WEBHOOK", "config": {"event": "form.relayed"}}])

        await process_trigger_event(TENANT_ID, "FORM_SUBMITTED", {"form_id": "F1"})
        await webhook_calls.dispatcher.drain()

        assert len(webhook_calls.requests) == 1
        assert webhook_calls.requests[0].headers["X-BizFlow-Event"] == "form.relayed"

    @pytest.mark.asyncio
    async def test_workflow_crud(self, fake_db):
        workflow = await create_workflow(TENANT_ID, "W", {"type": "CONTACT_CREATED"}, [])
        assert [w["id"] for w in await list_workflows(TENANT_ID)] == [workflow["id"]]
        assert await list_workflows(OTHER_TENANT_ID) == []

        with pytest.raises(NotFoundError):
            await set_workflow_active(OTHER_TENANT_ID, workflow["id"], False)


class TestCrmTriggers:

    @pytest.mark.asyncio
    async def test_contact_creation_fires_workflow(self, fake_db, webhook_calls, sent_emails):
        await create_workflow(TENANT_ID, "Welcome", {"type": "CONTACT_CREATED"},
                              [{"type": "ADD_TAG", "config": {"tag": "new"}}])

        contact = await create_contact(TENANT_ID, "Jane", "jane@acme.io")

        stored = await fake_db.contacts.find_one({"id": contact["id"]})
        assert stored["tags"] == ["new"]
        await webhook_calls.dispatcher.drain()

    @pytest.mark.asyncio
    async def test_tag_added_fires_matching_workflow_only(self, fake_db, sent_emails):
        fake_db.contacts.seed(_contact())
        await create_workflow(TENANT_ID, "Hot", {"type": "TAG_ADDED", "config": {"tag": "hot"}},
                              [{"type": "UPDATE_CONTACT_STAGE", "config": {"stage": "PROSPECT"}}])

        await add_tag(TENANT_ID, "C1", "cold")
        assert (await fake_db.contacts.find_one({"id": "C1"}))["stage"] == "CUSTOMER"

        await add_tag(TENANT_ID, "C1", "hot")
        assert (await fake_db.contacts.find_one({"id": "C1"}))["stage"] == "PROSPECT"

    @pytest.mark.asyncio
    async def test_broken_workflow_does_not_fail_contact_creation(self, fake_db, webhook_calls, monkeypatch):
        import services.automation

        async def broken(tenant_id, event_type, data):
            raise RuntimeError("automation down")

        monkeypatch.setattr(services.automation, "process_trigger_event", broken)

        contact = await create_contact(TENANT_ID, "Jane", "jane@acme.io")
        assert contact["stage"] == "LEAD"
        await webhook_calls.dispatcher.drain()
