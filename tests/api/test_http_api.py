"""
HTTP API tests through the Flask test client.

Requests commit for real, so every test runs on ``session_factory`` which
deletes all rows at teardown.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session

import erp_api.context as api_context
from erp_api import create_app
from erp_kernel.config import ErpSettings
from erp_kernel.domain.clock import DeterministicClock


@pytest.fixture
def client(database_url, session_factory):
    app = create_app(
        ErpSettings(database_url=database_url),
        clock=DeterministicClock(),
        init_db=False,
    )
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def actor_headers():
    return {"X-Actor-Id": str(uuid4())}


def _create_item(client, name="Hydraulic oil", min_stock=0) -> str:
    resp = client.post("/api/inventory", json={
        "name": name, "category": "consumables", "unit": "litre", "minStockLevel": min_stock,
    })
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["id"]


def _receive(client, item_id, reference, qty, cost):
    return client.post("/api/goods-receipt", json={
        "reference": reference,
        "items": [{"inventoryItemId": item_id, "quantity": qty, "unitCost": cost}],
    })


def _create_invoice(client, number="INV-1", total="1000.00", **extra) -> dict:
    body = {
        "invoiceNumber": number,
        "supplierId": str(uuid4()),
        "invoiceDate": "2024-01-01",
        "dueDate": "2024-01-31",
        "items": [{"description": "Hull survey", "quantity": 1, "unitPrice": total,
                   "itemType": "service"}],
    }
    body.update(extra)
    resp = client.post("/api/purchase-invoices", json=body)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


class TestHealth:

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "ok"}


class TestInventoryApi:

    def test_receipt_and_issue_scenario(self, client, actor_headers):
        item_id = _create_item(client)

        assert _receive(client, item_id, "GR-1", 10, "5").status_code == 201
        resp = _receive(client, item_id, "GR-2", 10, "7")
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["receipt"]["reference"] == "GR-2"
        assert body["stock"][0]["currentStock"] == 20
        assert Decimal(body["stock"][0]["avgCost"]) == Decimal("6")

        resp = client.post("/api/goods-issue", headers=actor_headers, json={
            "reference": "GI-1", "items": [{"inventoryItemId": item_id, "quantity": 12}],
        })
        assert resp.status_code == 201
        assert resp.get_json()["issue"]["createdBy"] == actor_headers["X-Actor-Id"]

        resp = client.post("/api/goods-issue", json={
            "reference": "GI-2", "items": [{"inventoryItemId": item_id, "quantity": 9}],
        })
        assert resp.status_code == 400
        error = resp.get_json()
        assert error["error"] == "INSUFFICIENT_STOCK"
        assert error["requested"] == 9
        assert error["available"] == 8

        stock = client.get(f"/api/inventory/{item_id}").get_json()
        assert stock["currentStock"] == 8
        assert Decimal(stock["avgCost"]) == Decimal("6")
        assert Decimal(stock["stockValue"]) == Decimal("48")

    def test_transactions_listing(self, client):
        item_id = _create_item(client)
        _receive(client, item_id, "GR-1", 3, "2.50")
        txs = client.get(f"/api/inventory/{item_id}/transactions").get_json()
        assert [(t["sequence"], t["type"], t["reference"]) for t in txs] == [(1, "inflow", "GR-1")]

    def test_low_stock_filter(self, client):
        low = _create_item(client, "Zinc anode", min_stock=5)
        fine = _create_item(client, "Grease", min_stock=0)
        ids = [i["id"] for i in client.get("/api/inventory?lowStock=true").get_json()]
        assert low in ids
        assert fine not in ids

    def test_documents_readable(self, client):
        item_id = _create_item(client)
        receipt_id = _receive(client, item_id, "GR-1", 3, "2").get_json()["receipt"]["id"]
        assert client.get(f"/api/goods-receipt/{receipt_id}").get_json()["reference"] == "GR-1"
        assert len(client.get("/api/goods-receipt").get_json()) == 1
        assert client.get(f"/api/goods-receipt/{uuid4()}").status_code == 404
        assert client.get("/api/goods-issue").get_json() == []

    def test_unknown_item_is_404(self, client):
        resp = client.get(f"/api/inventory/{uuid4()}")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "ITEM_NOT_FOUND"

    def test_duplicate_reference_is_409(self, client):
        item_id = _create_item(client)
        _receive(client, item_id, "GR-1", 1, "1")
        resp = _receive(client, item_id, "GR-1", 1, "1")
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "DUPLICATE_REFERENCE"

    @pytest.mark.parametrize("body", [
        {"reference": "GR-X"},
        {"reference": "GR-X", "items": [{"inventoryItemId": "nope", "quantity": 1, "unitCost": "1"}]},
        {"reference": "GR-X", "items": [], "extra": True},
        ["not", "an", "object"],
    ])
    def test_malformed_receipt_is_400(self, client, body):
        resp = client.post("/api/goods-receipt", json=body)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "INVALID_PAYLOAD"

    def test_negative_quantity_is_400(self, client):
        item_id = _create_item(client)
        resp = _receive(client, item_id, "GR-1", -1, "1")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "INVALID_QUANTITY"

    def test_bad_actor_header(self, client):
        resp = client.get("/api/inventory", headers={"X-Actor-Id": "someone"})
        assert resp.status_code == 400

    def test_unknown_route_is_json_404(self, client):
        resp = client.get("/api/nowhere")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "NOT_FOUND"


class TestProcurementApi:

    def test_request_lifecycle(self, client, actor_headers):
        item_id = _create_item(client)
        resp = client.post("/api/purchase-requests", headers=actor_headers, json={
            "requestNumber": "PR-1",
            "urgency": "high",
            "items": [
                {"inventoryItemId": item_id, "quantity": 4, "unitPrice": "12.50"},
                {"description": "Life jackets", "quantity": 2},
            ],
        })
        assert resp.status_code == 201
        created = resp.get_json()
        assert created["status"] == "pending"
        assert created["estimatedTotal"] == "50.00"
        assert created["requestedBy"] == actor_headers["X-Actor-Id"]

        resp = client.put(f"/api/purchase-requests/{created['id']}/approve", headers=actor_headers)
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "approved"
        assert resp.get_json()["decisionDate"] == "2024-01-01"

        resp = client.put(f"/api/purchase-requests/{created['id']}/reject")
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "INVALID_STATE_TRANSITION"

        listed = client.get("/api/purchase-requests?status=approved").get_json()
        assert [r["id"] for r in listed] == [created["id"]]

    def test_unknown_request(self, client):
        assert client.get(f"/api/purchase-requests/{uuid4()}").status_code == 404
        assert client.put(f"/api/purchase-requests/{uuid4()}/approve").status_code == 404


class TestPayablesApi:

    def test_payment_scenario(self, client):
        invoice = _create_invoice(client)
        assert invoice["totalAmount"] == "1000.00"
        assert invoice["status"] == "pending"
        url = f"/api/purchase-invoices/{invoice['id']}/payments"

        def pay(amount):
            return client.post(url, json={
                "amount": amount, "paymentDate": "2024-01-05", "paymentMethod": "bank_transfer",
            })

        resp = pay("1200.00")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "OVERPAYMENT_NOT_ALLOWED"

        resp = pay("600.00")
        assert resp.status_code == 201
        assert resp.get_json()["invoice"]["status"] == "partially_paid"

        resp = pay("400.00")
        assert resp.get_json()["invoice"]["status"] == "paid"
        assert resp.get_json()["invoice"]["outstandingAmount"] == "0.00"

        assert pay("1.00").status_code == 400
        assert len(client.get(url).get_json()) == 2

    def test_json_number_amounts_parsed_as_decimal(self, client):
        invoice = _create_invoice(client, total="100.10")
        resp = client.post(
            f"/api/purchase-invoices/{invoice['id']}/payments",
            data='{"amount": 100.10, "paymentDate": "2024-01-05", "paymentMethod": "cash"}',
            content_type="application/json",
        )
        assert resp.status_code == 201
        assert resp.get_json()["invoice"]["status"] == "paid"

    def test_credit_note(self, client):
        invoice = _create_invoice(client)
        resp = client.post(f"/api/purchase-invoices/{invoice['id']}/credit-notes", json={
            "creditNoteNumber": "CN-1", "amount": "250.00", "creditNoteDate": "2024-01-06",
            "reason": "Short delivery",
        })
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["creditNote"]["creditNoteNumber"] == "CN-1"
        assert body["invoice"]["creditedAmount"] == "250.00"
        assert body["invoice"]["outstandingAmount"] == "750.00"
        notes = client.get(f"/api/purchase-invoices/{invoice['id']}/credit-notes").get_json()
        assert [n["amount"] for n in notes] == ["250.00"]

    def test_approval(self, client, actor_headers):
        invoice = _create_invoice(client)
        resp = client.patch(f"/api/purchase-invoices/{invoice['id']}/approve", headers=actor_headers)
        assert resp.status_code == 200
        assert resp.get_json()["approvalStatus"] == "approved"
        assert resp.get_json()["approvedBy"] == actor_headers["X-Actor-Id"]

        resp = client.patch(f"/api/purchase-invoices/{invoice['id']}/reject")
        assert resp.status_code == 409

    def test_rejected_invoice_cannot_be_paid(self, client):
        invoice = _create_invoice(client)
        client.patch(f"/api/purchase-invoices/{invoice['id']}/reject")
        resp = client.post(f"/api/purchase-invoices/{invoice['id']}/payments", json={
            "amount": "1.00", "paymentDate": "2024-01-05", "paymentMethod": "cash",
        })
        assert resp.status_code == 409

    def test_listing_and_lookup(self, client):
        first = _create_invoice(client, "INV-1")
        _create_invoice(client, "INV-2", supplierId=first["supplierId"])
        listed = client.get(f"/api/purchase-invoices?supplierId={first['supplierId']}").get_json()
        assert sorted(i["invoiceNumber"] for i in listed) == ["INV-1", "INV-2"]
        assert client.get(f"/api/purchase-invoices/{first['id']}").get_json()["invoiceNumber"] == "INV-1"
        assert client.get(f"/api/purchase-invoices/{uuid4()}").status_code == 404
        assert client.get("/api/purchase-invoices?status=bogus").status_code == 400

    def test_invalid_amount_precision(self, client):
        invoice = _create_invoice(client)
        resp = client.post(f"/api/purchase-invoices/{invoice['id']}/payments", json={
            "amount": "10.005", "paymentDate": "2024-01-05", "paymentMethod": "cash",
        })
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "INVALID_QUANTITY"


class TestPurchaseOrderApi:

    def _create_order(self, client, number="PO-1", **extra):
        body = {
            "poNumber": number,
            "supplierId": str(uuid4()),
            "paymentTerms": "Net 30",
            "items": [
                {"description": "Antifouling paint", "quantity": 10, "unitPrice": "45.00",
                 "taxRate": "20"},
                {"description": "Application labour", "quantity": 1, "unitPrice": "600.00",
                 "itemType": "service"},
            ],
        }
        body.update(extra)
        resp = client.post("/api/purchase-orders", json=body)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()

    def test_order_to_invoice(self, client, actor_headers):
        order = self._create_order(client)
        assert order["status"] == "draft"
        assert order["subtotal"] == "1050.00"
        assert order["taxAmount"] == "90.00"
        assert order["totalAmount"] == "1140.00"
        assert order["items"][0]["lineTotal"] == "540.00"
        url = f"/api/purchase-orders/{order['id']}"

        resp = client.post(f"{url}/convert-to-invoice", json={
            "invoiceNumber": "INV-PO-1", "invoiceDate": "2024-01-10",
        })
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "INVALID_STATE_TRANSITION"

        for action, status in [("send", "sent"), ("confirm", "confirmed")]:
            resp = client.put(f"{url}/{action}", headers=actor_headers)
            assert resp.status_code == 200
            assert resp.get_json()["status"] == status

        resp = client.post(f"{url}/convert-to-invoice", headers=actor_headers, json={
            "invoiceNumber": "INV-PO-1", "invoiceDate": "2024-01-10", "dueDate": "2024-02-09",
        })
        assert resp.status_code == 201, resp.get_json()
        invoice = resp.get_json()
        assert invoice["poId"] == order["id"]
        assert invoice["supplierId"] == order["supplierId"]
        assert invoice["totalAmount"] == "1140.00"
        assert invoice["paymentTerms"] == "Net 30"
        assert [line["itemType"] for line in invoice["items"]] == ["product", "service"]

        assert client.get(url).get_json()["invoiced"] is True
        resp = client.post(f"{url}/convert-to-invoice", json={
            "invoiceNumber": "INV-PO-2", "invoiceDate": "2024-01-10",
        })
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "DUPLICATE_REFERENCE"

        fetched = client.get(f"/api/purchase-invoices/{invoice['id']}").get_json()
        assert fetched["poId"] == order["id"]

    def test_draft_edit_and_delete(self, client):
        order = self._create_order(client)
        url = f"/api/purchase-orders/{order['id']}"
        resp = client.put(url, json={
            "poNumber": "PO-1", "supplierId": order["supplierId"],
            "items": [{"description": "Zinc anodes", "quantity": 4, "unitPrice": "25.00"}],
        })
        assert resp.status_code == 200
        assert resp.get_json()["totalAmount"] == "100.00"
        assert resp.get_json()["paymentTerms"] is None

        resp = client.delete(url)
        assert resp.status_code == 204
        assert client.get(url).status_code == 404
        assert client.get(url).get_json()["error"] == "PURCHASE_ORDER_NOT_FOUND"

    def test_sent_order_cannot_be_deleted(self, client):
        order = self._create_order(client)
        url = f"/api/purchase-orders/{order['id']}"
        client.put(f"{url}/send")
        assert client.delete(url).status_code == 409
        resp = client.put(f"{url}/cancel")
        assert resp.get_json()["status"] == "cancelled"

    def test_listing_and_bad_input(self, client):
        first = self._create_order(client, "PO-1")
        second = self._create_order(client, "PO-2")
        client.put(f"/api/purchase-orders/{second['id']}/send")

        listed = client.get("/api/purchase-orders?status=sent").get_json()
        assert [o["poNumber"] for o in listed] == ["PO-2"]
        listed = client.get(f"/api/purchase-orders?supplierId={first['supplierId']}").get_json()
        assert [o["poNumber"] for o in listed] == ["PO-1"]

        assert client.get("/api/purchase-orders?status=bogus").status_code == 400
        assert client.put(f"/api/purchase-orders/{first['id']}/approve").status_code == 404
        assert client.put(f"/api/purchase-orders/{uuid4()}/send").status_code == 404
        resp = client.post("/api/purchase-orders", json={"poNumber": "PO-3", "items": []})
        assert resp.status_code == 400
        resp = client.post("/api/purchase-orders", json={
            "poNumber": "PO-1", "supplierId": str(uuid4()),
            "items": [{"description": "x", "quantity": 1, "unitPrice": "1"}],
        })
        assert resp.status_code == 409


class TestStorageFailures:

    @pytest.fixture
    def dead_database(self, tmp_path, monkeypatch):
        engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'erp.db'}")
        monkeypatch.setattr(api_context, "get_session", lambda: Session(bind=engine))
        yield
        engine.dispose()

    @pytest.mark.parametrize("path", [
        "/api/inventory",
        f"/api/inventory/{uuid4()}",
        f"/api/inventory/{uuid4()}/transactions",
        "/api/purchase-orders",
        "/api/purchase-invoices",
    ])
    def test_reads_return_503(self, client, dead_database, path):
        resp = client.get(path)
        assert resp.status_code == 503
        assert resp.get_json()["error"] == "STORAGE_UNAVAILABLE"

    def test_writes_return_503(self, client, dead_database):
        resp = client.post("/api/inventory", json={
            "name": "Flares", "category": "consumables", "unit": "pcs",
        })
        assert resp.status_code == 503
        assert resp.get_json()["operation"] == "create_item"

    def test_driver_error_outside_services(self, client, dead_database):
        app = client.application

        @app.get("/raw-sql")
        def raw_sql():
            api_context.db_session().execute(text("SELECT 1"))
            return {}

        resp = client.get("/raw-sql")
        assert resp.status_code == 503
        assert resp.get_json()["error"] == "STORAGE_UNAVAILABLE"
