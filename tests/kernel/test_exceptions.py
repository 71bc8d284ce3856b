"""
Tests for the typed exception hierarchy.

Every error must be catchable by category and carry a stable code plus the
structured data the API serialises.
"""

from decimal import Decimal

import pytest

from erp_kernel.exceptions import (
    ConcurrencyError,
    DuplicateReferenceError,
    ErpKernelError,
    GoodsIssueNotFoundError,
    GoodsReceiptNotFoundError,
    InsufficientStockError,
    InvalidPayloadError,
    InvalidQuantityError,
    InvalidStateTransitionError,
    InventoryError,
    InvoiceNotFoundError,
    ItemNotFoundError,
    NotFoundError,
    OptimisticLockError,
    OverpaymentNotAllowedError,
    PaymentError,
    ProjectNotFoundError,
    PurchaseOrderNotFoundError,
    PurchaseRequestNotFoundError,
    StorageUnavailableError,
    ValidationError,
    WorkflowError,
)


@pytest.mark.parametrize("exc, category, code", [
    (InvalidQuantityError("quantity", -1, "must be greater than zero"), ValidationError, "INVALID_QUANTITY"),
    (InvalidPayloadError("goods issue", ["missing 'items'"]), ValidationError, "INVALID_PAYLOAD"),
    (InsufficientStockError("i-1", 12, 10), InventoryError, "INSUFFICIENT_STOCK"),
    (OverpaymentNotAllowedError("inv-1", Decimal("1200"), Decimal("1000")), PaymentError,
     "OVERPAYMENT_NOT_ALLOWED"),
    (InvalidStateTransitionError("purchase request", "r-1", "approved", "reject"), WorkflowError,
     "INVALID_STATE_TRANSITION"),
    (ItemNotFoundError("i-1"), NotFoundError, "ITEM_NOT_FOUND"),
    (GoodsReceiptNotFoundError("g-1"), NotFoundError, "GOODS_RECEIPT_NOT_FOUND"),
    (GoodsIssueNotFoundError("g-1"), NotFoundError, "GOODS_ISSUE_NOT_FOUND"),
    (PurchaseRequestNotFoundError("r-1"), NotFoundError, "PURCHASE_REQUEST_NOT_FOUND"),
    (PurchaseOrderNotFoundError("po-1"), NotFoundError, "PURCHASE_ORDER_NOT_FOUND"),
    (InvoiceNotFoundError("inv-1"), NotFoundError, "INVOICE_NOT_FOUND"),
    (ProjectNotFoundError("p-1"), NotFoundError, "PROJECT_NOT_FOUND"),
    (DuplicateReferenceError("goods receipt", "GR-1"), ErpKernelError, "DUPLICATE_REFERENCE"),
    (OptimisticLockError("InventoryItem", "i-1"), ConcurrencyError, "OPTIMISTIC_LOCK_CONFLICT"),
    (StorageUnavailableError("create_goods_issue", "connection refused"), ErpKernelError,
     "STORAGE_UNAVAILABLE"),
])
def test_category_and_code(exc, category, code):
    assert isinstance(exc, category)
    assert isinstance(exc, ErpKernelError)
    assert exc.code == code


class TestToDict:

    def test_insufficient_stock_carries_quantities(self):
        body = InsufficientStockError("i-1", requested=12, available=10).to_dict()
        assert body["error"] == "INSUFFICIENT_STOCK"
        assert body["item_id"] == "i-1"
        assert body["requested"] == 12
        assert body["available"] == 10
        assert "requested 12" in body["message"]

    def test_decimals_rendered_as_strings(self):
        body = OverpaymentNotAllowedError("inv-1", Decimal("1.00"), Decimal("0.00")).to_dict()
        assert body["amount"] == "1.00"
        assert body["outstanding"] == "0.00"

    def test_problem_list_kept(self):
        body = InvalidPayloadError("payment", ["missing 'amount'", "unknown key 'x'"]).to_dict()
        assert body["problems"] == ["missing 'amount'", "unknown key 'x'"]

    def test_not_found_message_names_entity(self):
        assert str(InvoiceNotFoundError("abc")) == "Purchase invoice not found: abc"
