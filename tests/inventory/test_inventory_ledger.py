"""
Weighted-average cost ledger tests.

Covers:
- Average cost after every receipt equals the running weighted average
- Issues never change average cost and never drive stock negative
- Transaction history is append-only with a gapless per-item sequence
- Low-stock flag and item listing
"""

import random
from decimal import Decimal
from uuid import uuid4

import pytest

from erp_kernel.db.types import round_cost
from erp_kernel.exceptions import (
    InsufficientStockError,
    InvalidPayloadError,
    InvalidQuantityError,
    ItemNotFoundError,
)
from erp_modules.inventory.ledger import InventoryLedger
from erp_modules.inventory.models import ItemCategory, MovementType, NewItem


@pytest.fixture
def ledger(session, deterministic_clock) -> InventoryLedger:
    return InventoryLedger(session, deterministic_clock)


@pytest.fixture
def item_id(ledger, test_actor_id):
    item = ledger.create_item(
        NewItem(name="Anti-fouling paint", category="consumables", unit="litre", min_stock_level=5),
        actor_id=test_actor_id,
    )
    return item.id


class TestWeightedAverage:

    def test_two_receipts_blend(self, ledger, item_id):
        assert ledger.receive(item_id, 10, Decimal("5")) == Decimal("5")
        assert ledger.receive(item_id, 10, Decimal("7")) == Decimal("6")

        stock = ledger.get_stock(item_id)
        assert stock.current_stock == 20
        assert stock.avg_cost == Decimal("6")
        assert stock.stock_value == Decimal("120")

    def test_first_receipt_on_empty_item_takes_unit_cost(self, ledger, item_id):
        assert ledger.receive(item_id, 3, Decimal("12.345")) == Decimal("12.345")

    def test_zero_cost_receipt_dilutes_average(self, ledger, item_id):
        ledger.receive(item_id, 10, Decimal("8"))
        assert ledger.receive(item_id, 10, Decimal("0")) == Decimal("4")

    def test_repeating_average_rounded_to_cost_precision(self, ledger, item_id):
        ledger.receive(item_id, 1, Decimal("10"))
        avg = ledger.receive(item_id, 2, Decimal("5"))
        assert avg == round_cost(Decimal("20") / Decimal("3"))

    def test_random_receipt_sequences_track_running_average(self, ledger, item_id):
        rng = random.Random(20240101)
        total_qty = 0
        total_value = Decimal("0")
        for _ in range(25):
            qty = rng.randint(1, 50)
            cost = Decimal(rng.randint(0, 100_000)) / Decimal(100)
            avg = ledger.receive(item_id, qty, cost)
            total_qty += qty
            total_value += cost * qty
            expected = total_value / total_qty
            # rounding on each step drifts at most a few units in the 9th place
            assert abs(avg - expected) < Decimal("1e-7")
            assert ledger.get_stock(item_id).current_stock == total_qty

    def test_restock_after_draining_takes_new_cost(self, ledger, item_id):
        ledger.receive(item_id, 5, Decimal("10"))
        ledger.issue(item_id, 5)
        assert ledger.get_stock(item_id).avg_cost == Decimal("10")
        assert ledger.receive(item_id, 5, Decimal("20")) == Decimal("20")


class TestIssue:

    def test_issue_keeps_average(self, ledger, item_id):
        ledger.receive(item_id, 10, Decimal("5"))
        ledger.receive(item_id, 10, Decimal("7"))
        ledger.issue(item_id, 12)

        stock = ledger.get_stock(item_id)
        assert stock.current_stock == 8
        assert stock.avg_cost == Decimal("6")

    def test_over_issue_rejected_and_stock_unchanged(self, ledger, item_id, captured_logs):
        ledger.receive(item_id, 8, Decimal("6"))
        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.issue(item_id, 9)
        assert exc_info.value.requested == 9
        assert exc_info.value.available == 8
        assert ledger.get_stock(item_id).current_stock == 8
        assert any(r["message"] == "stock_issue_rejected" for r in captured_logs())

    def test_issue_entire_stock(self, ledger, item_id):
        ledger.receive(item_id, 4, Decimal("2.50"))
        ledger.issue(item_id, 4)
        assert ledger.get_stock(item_id).current_stock == 0

    @pytest.mark.parametrize("qty", [0, -1])
    def test_non_positive_quantity_rejected(self, ledger, item_id, qty):
        with pytest.raises(InvalidQuantityError):
            ledger.issue(item_id, qty)
        with pytest.raises(InvalidQuantityError):
            ledger.receive(item_id, qty, Decimal("1"))

    def test_negative_cost_rejected(self, ledger, item_id):
        with pytest.raises(InvalidQuantityError):
            ledger.receive(item_id, 1, Decimal("-0.01"))

    def test_unknown_item(self, ledger):
        with pytest.raises(ItemNotFoundError):
            ledger.issue(uuid4(), 1)
        with pytest.raises(ItemNotFoundError):
            ledger.get_stock(uuid4())


class TestTransactionHistory:

    def test_sequence_is_gapless_and_typed(self, ledger, item_id):
        ledger.receive(item_id, 10, Decimal("5"))
        ledger.issue(item_id, 3)
        ledger.receive(item_id, 2, Decimal("9"))

        txs = ledger.transactions(item_id)
        assert [t.sequence for t in txs] == [1, 2, 3]
        assert [t.movement_type for t in txs] == [
            MovementType.INFLOW, MovementType.OUTFLOW, MovementType.INFLOW,
        ]
        assert [t.quantity for t in txs] == [10, 3, 2]

    def test_outflow_costed_at_average(self, ledger, item_id):
        ledger.receive(item_id, 10, Decimal("5"))
        ledger.receive(item_id, 10, Decimal("7"))
        ledger.issue(item_id, 12)
        outflow = ledger.transactions(item_id)[-1]
        assert outflow.unit_cost == Decimal("6")
        assert outflow.total_cost == Decimal("72")

    def test_stock_equals_signed_sum_of_history(self, ledger, item_id):
        ledger.receive(item_id, 10, Decimal("5"))
        ledger.issue(item_id, 4)
        ledger.receive(item_id, 6, Decimal("5"))
        ledger.issue(item_id, 7)
        signed = sum(
            t.quantity if t.movement_type is MovementType.INFLOW else -t.quantity
            for t in ledger.transactions(item_id)
        )
        assert signed == ledger.get_stock(item_id).current_stock == 5

    def test_rejected_issue_writes_no_history(self, ledger, item_id):
        ledger.receive(item_id, 1, Decimal("5"))
        with pytest.raises(InsufficientStockError):
            ledger.issue(item_id, 2)
        assert len(ledger.transactions(item_id)) == 1


class TestItems:

    def test_new_item_is_empty(self, ledger, item_id):
        item = ledger.get_item(item_id)
        assert item.current_stock == 0
        assert item.avg_cost == Decimal("0")
        assert item.is_low_stock

    def test_low_stock_listing(self, ledger, item_id, test_actor_id):
        stocked = ledger.create_item(
            NewItem(name="Zinc anode", category="spare_parts", unit="pcs", min_stock_level=2),
            actor_id=test_actor_id,
        )
        ledger.receive(stocked.id, 10, Decimal("30"))

        low = {i.id for i in ledger.list_items(low_stock_only=True)}
        assert item_id in low
        assert stocked.id not in low
        assert {i.id for i in ledger.list_items()} >= {item_id, stocked.id}

    def test_negative_min_stock_rejected(self):
        with pytest.raises(InvalidQuantityError):
            NewItem(name="x", category="general", unit="u", min_stock_level=-1)

    def test_unknown_category_rejected(self):
        with pytest.raises(InvalidPayloadError, match="category"):
            NewItem(name="Bosun's chair", category="rigging", unit="pcs")

    def test_payload_description_stored(self, ledger, test_actor_id):
        item = ledger.create_item(NewItem.from_payload({
            "name": "Bilge pump", "category": "equipment", "unit": "pcs",
            "description": "12V, 2000 GPH",
        }), actor_id=test_actor_id)
        assert item.description == "12V, 2000 GPH"
        assert item.category == "equipment"

    @pytest.mark.parametrize("payload", [
        {"name": "x", "category": "paint", "unit": "u"},
        {"name": "x", "category": "general", "unit": "u", "description": 42},
        {"name": "x", "category": "general", "unit": "u", "notes": "unknown key"},
    ])
    def test_bad_item_payloads(self, payload):
        with pytest.raises(InvalidPayloadError):
            NewItem.from_payload(payload)

    def test_categories(self):
        assert {c.value for c in ItemCategory} == {
            "consumables", "tools", "equipment", "spare_parts", "general",
        }
