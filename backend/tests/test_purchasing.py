"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  BizFlow Pro - Purchasing                                                    ║
║                                                                              ║
║  1. Suppliers and purchase orders (exact totals, supplier currency)          ║
║  2. Containers: loading purchase orders, costs                               ║
║  3. Receiving: landed cost allocation, new products, restock, one commit     ║
║  4. Receiving rejections and rollback, concurrent receipt                    ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import asyncio
import json
from decimal import Decimal

import pytest
from pymongo.errors import DuplicateKeyError

from services import purchasing
from services.purchasing import allocate_landed_costs
from services.errors import NotFoundError, ConflictError
from tests.conftest import TENANT_ID, OTHER_TENANT_ID


def _doc(collection, record_id):
    return next(d for d in collection.docs if d["id"] == record_id)


async def _loaded_container(fake_db, items, costs=None):
    supplier = await purchasing.create_supplier(TENANT_ID, "Stone Co", currency="eur")
    po = await purchasing.create_purchase_order(TENANT_ID, "PO-1", supplier["id"], items)
    container = await purchasing.create_container(TENANT_ID, "MSCU1234567", eta="2026-11-01")
    await purchasing.add_po_to_container(TENANT_ID, container["id"], po["id"])
    if costs:
        await purchasing.update_container_costs(TENANT_ID, container["id"], costs)
    return container, po


class TestSuppliersAndOrders:

    @pytest.mark.asyncio
    async def test_supplier_list_counts_orders(self, fake_db):
        supplier = await purchasing.create_supplier(TENANT_ID, "Stone Co", email="Sales@Stone.io")
        await purchasing.create_purchase_order(
            TENANT_ID, "PO-1", supplier["id"], [{"description": "Slab", "quantity": 1, "unit_price": 5}]
        )

        listed = await purchasing.list_suppliers(TENANT_ID)

        assert [(s["name"], s["email"], s["purchase_order_count"]) for s in listed] == \
            [("Stone Co", "sales@stone.io", 1)]
        assert await purchasing.list_suppliers(OTHER_TENANT_ID) == []

    @pytest.mark.asyncio
    async def test_purchase_order_total_is_exact(self, fake_db):
        supplier = await purchasing.create_supplier(TENANT_ID, "Stone Co", currency="EUR")

        po = await purchasing.create_purchase_order(TENANT_ID, "PO-7", supplier["id"], [
            {"description": "Tile", "quantity": 3, "unit_price": 0.1},
            {"description": "Grout", "quantity": 1, "unit_price": 0.2},
        ])

        assert [i["total_price"] for i in po["items"]] == [0.3, 0.2]
        assert po["total_amount"] == 0.5
        assert po["currency"] == "EUR"
        assert po["status"] == "OPEN"
        assert all(i["received"] is False for i in po["items"])

    @pytest.mark.asyncio
    async def test_purchase_order_rejections(self, fake_db, seed_product):
        supplier = await purchasing.create_supplier(TENANT_ID, "Stone Co")
        item = {"description": "Slab", "quantity": 1, "unit_price": 5}

        with pytest.raises(NotFoundError):
            await purchasing.create_purchase_order(TENANT_ID, "PO-1", "missing", [item])
        with pytest.raises(NotFoundError):
            await purchasing.create_purchase_order(OTHER_TENANT_ID, "PO-1", supplier["id"], [item])
        with pytest.raises(NotFoundError):
            await purchasing.create_purchase_order(TENANT_ID, "PO-1", supplier["id"],
                                                   [{**item, "product_id": "NOPE"}])
        with pytest.raises(ValueError):
            await purchasing.create_purchase_order(TENANT_ID, "PO-1", supplier["id"], [])

        await purchasing.create_purchase_order(TENANT_ID, "PO-1", supplier["id"], [item])
        with pytest.raises(DuplicateKeyError):
            await purchasing.create_purchase_order(TENANT_ID, "PO-1", supplier["id"], [item])


class TestContainers:

    @pytest.mark.asyncio
    async def test_load_purchase_order(self, fake_db):
        container, po = await _loaded_container(fake_db, [{"description": "Slab", "quantity": 2, "unit_price": 50}])

        loaded = await purchasing.get_container(TENANT_ID, container["id"])

        assert [p["id"] for p in loaded["purchase_orders"]] == [po["id"]]
        assert loaded["purchase_orders"][0]["status"] == "IN_TRANSIT"
        assert (await purchasing.list_containers(TENANT_ID))[0]["purchase_order_count"] == 1

    @pytest.mark.asyncio
    async def test_purchase_order_goes_in_one_container(self, fake_db):
        container, po = await _loaded_container(fake_db, [{"description": "Slab", "quantity": 2, "unit_price": 50}])
        other = await purchasing.create_container(TENANT_ID, "MSCU7654321")

        with pytest.raises(ConflictError):
            await purchasing.add_po_to_container(TENANT_ID, other["id"], po["id"])

        assert _doc(fake_db.containers, other["id"])["purchase_order_ids"] == []
        assert _doc(fake_db.purchase_orders, po["id"])["container_id"] == container["id"]

    @pytest.mark.asyncio
    async def test_unknown_container_rolls_back_the_load(self, fake_db):
        supplier = await purchasing.create_supplier(TENANT_ID, "Stone Co")
        po = await purchasing.create_purchase_order(
            TENANT_ID, "PO-1", supplier["id"], [{"description": "Slab", "quantity": 1, "unit_price": 5}]
        )

        with pytest.raises(NotFoundError):
            await purchasing.add_po_to_container(TENANT_ID, "missing", po["id"])

        assert _doc(fake_db.purchase_orders, po["id"])["status"] == "OPEN"

    @pytest.mark.asyncio
    async def test_costs(self, fake_db):
        container = await purchasing.create_container(TENANT_ID, "MSCU1234567")

        updated = await purchasing.update_container_costs(
            TENANT_ID, container["id"], {"freight_cost": 1200.456, "customs_cost": 300}
        )

        assert updated["freight_cost"] == 1200.46
        assert updated["customs_cost"] == 300.0
        assert updated["trucking_cost"] == 0.0


class TestReceiving:

    def test_allocation_adds_up_to_the_costs(self):
        items = [{"total_price": 100.0}, {"total_price": 100.0}, {"total_price": 100.0}]

        shares = allocate_landed_costs(items, Decimal("10.00"))

        assert shares == [Decimal("3.33"), Decimal("3.33"), Decimal("3.34")]
        assert sum(shares) == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_receive_books_inventory(self, fake_db, seed_product, webhook_calls):
        seed_product("P1", name="Granite", price=200.0, stock=10)
        fake_db.webhooks.seed({
            "id": "W1", "tenant_id": TENANT_ID, "url": "https://hooks.example.com/stock",
            "events": "container.received", "secret": None, "is_active": True, "created_at": "",
        })
        container, po = await _loaded_container(fake_db, [
            {"description": "Marble slab", "quantity": 10, "unit_price": 10},
            {"description": "Granite slab", "quantity": 3, "unit_price": 100, "product_id": "P1"},
        ], costs={"freight_cost": 25, "customs_cost": 15})
        fake_db.unsessioned_writes.clear()
        committed = fake_db.transactions_committed

        result = await purchasing.receive_container(TENANT_ID, container["id"])
        await webhook_calls.dispatcher.drain()

        # value 100 / 300 of 400, costs 40 -> 10 / 30
        assert result["products_restocked"] == ["P1"]
        assert len(result["products_created"]) == 1
        created = _doc(fake_db.products, result["products_created"][0])
        assert created["name"] == "Marble slab"
        assert created["stock"] == 10
        assert created["last_landed_cost"] == 11.0
        assert created["price"] == 16.5
        assert created["sku"].startswith("PO-1-MAR-")

        restocked = _doc(fake_db.products, "P1")
        assert restocked["stock"] == 13
        assert restocked["price"] == 200.0
        assert restocked["last_landed_cost"] == 110.0

        assert result["container"]["status"] == "RECEIVED"
        assert result["container"]["total_landed_cost"] == 40.0
        assert result["container"]["arrival_date"]
        stored_po = _doc(fake_db.purchase_orders, po["id"])
        assert stored_po["status"] == "COMPLETED"
        assert all(i["received"] for i in stored_po["items"])
        assert stored_po["items"][1]["product_id"] == "P1"

        assert fake_db.transactions_committed == committed + 1
        assert fake_db.unsessioned_writes == []
        assert [e["action"] for e in fake_db.event_log.docs][-1] == "container_receive"

        assert len(webhook_calls.requests) == 1
        body = json.loads(webhook_calls.requests[0].content)
        assert body["event"] == "container.received"
        assert body["payload"]["total_landed_cost"] == 40.0

    @pytest.mark.asyncio
    async def test_second_receipt_is_a_conflict(self, fake_db, seed_product, webhook_calls):
        seed_product("P1", stock=0)
        container, _ = await _loaded_container(
            fake_db, [{"description": "Slab", "quantity": 4, "unit_price": 10, "product_id": "P1"}]
        )
        await purchasing.receive_container(TENANT_ID, container["id"])

        with pytest.raises(ConflictError):
            await purchasing.receive_container(TENANT_ID, container["id"])
        with pytest.raises(ConflictError):
            await purchasing.update_container_costs(TENANT_ID, container["id"], {"freight_cost": 5})

        assert _doc(fake_db.products, "P1")["stock"] == 4
        await webhook_calls.dispatcher.drain()

    @pytest.mark.asyncio
    async def test_missing_product_rolls_everything_back(self, fake_db, seed_product):
        seed_product("P1", stock=0)
        container, po = await _loaded_container(fake_db, [
            {"description": "Marble slab", "quantity": 10, "unit_price": 10},
            {"description": "Granite slab", "quantity": 3, "unit_price": 100, "product_id": "P1"},
        ])
        fake_db.products.docs.clear()
        aborted = fake_db.transactions_aborted

        with pytest.raises(NotFoundError):
            await purchasing.receive_container(TENANT_ID, container["id"])

        assert fake_db.transactions_aborted == aborted + 1
        assert fake_db.products.docs == []
        assert _doc(fake_db.containers, container["id"])["status"] == "PLANNED"
        assert _doc(fake_db.purchase_orders, po["id"])["status"] == "IN_TRANSIT"

    @pytest.mark.asyncio
    async def test_nothing_to_receive(self, fake_db):
        container = await purchasing.create_container(TENANT_ID, "MSCU1234567")

        with pytest.raises(ValueError):
            await purchasing.receive_container(TENANT_ID, container["id"])
        with pytest.raises(NotFoundError):
            await purchasing.receive_container(OTHER_TENANT_ID, container["id"])

    @pytest.mark.asyncio
    async def test_concurrent_receipts_book_once(self, fake_db, seed_product, webhook_calls, yielding_reads):
        seed_product("P1", stock=0)
        container, _ = await _loaded_container(
            fake_db, [{"description": "Slab", "quantity": 4, "unit_price": 10, "product_id": "P1"}]
        )
        yielding_reads(fake_db.containers)

        results = await asyncio.gather(
            purchasing.receive_container(TENANT_ID, container["id"]),
            purchasing.receive_container(TENANT_ID, container["id"]),
            return_exceptions=True,
        )

        assert sum(isinstance(r, ConflictError) for r in results) == 1
        assert _doc(fake_db.products, "P1")["stock"] == 4
        await webhook_calls.dispatcher.drain()
