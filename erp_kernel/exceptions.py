"""
Typed Exception Hierarchy for the ERP Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock and payables errors must be caught by type, not by parsing messages.
Every exception here has:
  1. A TYPED class (catch ``InsufficientStockError``, not ``ValueError``)
  2. A ``code`` class attribute (machine-readable, API-safe)
  3. Structured attributes carrying the data that caused the failure

Example - WRONG way to handle errors:
    try:
        inventory.create_goods_issue(...)
    except Exception as e:
        if "not enough" in str(e):  # FRAGILE - message might change
            ...

Example - RIGHT way:
    try:
        inventory.create_goods_issue(...)
    except InsufficientStockError as e:
        api_response(code=e.code, item=e.item_id, available=e.available)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ErpKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- InvalidPayloadError
    |
    +-- InventoryError
    |   +-- InsufficientStockError
    |
    +-- PaymentError
    |   +-- OverpaymentNotAllowedError
    |
    +-- WorkflowError
    |   +-- InvalidStateTransitionError
    |
    +-- NotFoundError
    |   +-- ItemNotFoundError
    |   +-- GoodsReceiptNotFoundError
    |   +-- GoodsIssueNotFoundError
    |   +-- PurchaseRequestNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- ProjectNotFoundError
    |
    +-- DuplicateReferenceError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- StorageUnavailableError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                       | When Raised
-------------|----------------------------|--------------------------------------
Validation   | INVALID_QUANTITY           | Quantity/cost non-positive or non-numeric
             | INVALID_PAYLOAD            | Unknown or malformed request shape
-------------|----------------------------|--------------------------------------
Inventory    | INSUFFICIENT_STOCK         | Issue exceeds current stock
-------------|----------------------------|--------------------------------------
Payment      | OVERPAYMENT_NOT_ALLOWED    | Amount exceeds outstanding balance
-------------|----------------------------|--------------------------------------
Workflow     | INVALID_STATE_TRANSITION   | Action not legal from current state
-------------|----------------------------|--------------------------------------
Lookup       | ITEM_NOT_FOUND             | Unknown inventory item id
             | GOODS_RECEIPT_NOT_FOUND    | Unknown goods receipt id
             | GOODS_ISSUE_NOT_FOUND      | Unknown goods issue id
             | PURCHASE_REQUEST_NOT_FOUND | Unknown purchase request id
             | PURCHASE_ORDER_NOT_FOUND   | Unknown purchase order id
             | INVOICE_NOT_FOUND          | Unknown purchase invoice id
             | PROJECT_NOT_FOUND          | Invoice linked to an unknown project
-------------|----------------------------|--------------------------------------
Uniqueness   | DUPLICATE_REFERENCE        | Document number already used
-------------|----------------------------|--------------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT   | Row version changed underneath us
-------------|----------------------------|--------------------------------------
Storage      | STORAGE_UNAVAILABLE        | Database unreachable or failing

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CATCH SPECIFIC EXCEPTIONS first, then the category:

    try:
        payables.record_payment(...)
    except OverpaymentNotAllowedError as e:
        notify_user(f"Only {e.outstanding} is outstanding")
    except PaymentError as e:
        log.error(f"Payment failed: {e.code}")

2. USE STRUCTURED DATA (not message parsing). The API layer serialises
   ``to_dict()`` straight into the error body.

3. NOTHING IS RETRIED AUTOMATICALLY. A failed document leaves no partial
   ledger change behind; the caller decides whether to resubmit.
"""

from decimal import Decimal
from typing import Any


class ErpKernelError(Exception):
    """
    Base exception for all ERP kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "ERP_KERNEL_ERROR"

    def to_dict(self) -> dict[str, Any]:
        """Structured representation: code, message and public attributes."""
        payload: dict[str, Any] = {"error": self.code, "message": str(self)}
        for key, value in vars(self).items():
            if key.startswith("_"):
                continue
            if isinstance(value, Decimal):
                value = str(value)
            elif value is not None and not isinstance(value, (str, int, bool, list, dict)):
                value = str(value)
            payload[key] = value
        return payload


# Validation exceptions


class ValidationError(ErpKernelError):
    """Base exception for input validation errors."""

    code: str = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """Quantity, cost or amount is non-positive, negative or non-numeric."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class InvalidPayloadError(ValidationError):
    """
    Request payload does not match the expected shape.

    Raised at the boundary before any ledger mutation, for unknown keys,
    missing required keys and wrongly-typed values.
    """

    code: str = "INVALID_PAYLOAD"

    def __init__(self, payload_type: str, problems: list[str]):
        self.payload_type = payload_type
        self.problems = problems
        super().__init__(
            f"Invalid {payload_type} payload: " + "; ".join(problems)
        )


# Inventory exceptions


class InventoryError(ErpKernelError):
    """Base exception for inventory ledger errors."""

    code: str = "INVENTORY_ERROR"


class InsufficientStockError(InventoryError):
    """Issue quantity exceeds the item's current stock."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, item_id: str, requested: int, available: int):
        self.item_id = item_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for item {item_id}: "
            f"requested {requested}, available {available}"
        )


# Payment exceptions


class PaymentError(ErpKernelError):
    """Base exception for payment reconciliation errors."""

    code: str = "PAYMENT_ERROR"


class OverpaymentNotAllowedError(PaymentError):
    """Payment or credit note exceeds the invoice's outstanding balance."""

    code: str = "OVERPAYMENT_NOT_ALLOWED"

    def __init__(self, invoice_id: str, amount: Decimal, outstanding: Decimal):
        self.invoice_id = invoice_id
        self.amount = amount
        self.outstanding = outstanding
        super().__init__(
            f"Amount {amount} exceeds outstanding balance {outstanding} "
            f"on invoice {invoice_id}"
        )


# Workflow exceptions


class WorkflowError(ErpKernelError):
    """Base exception for document workflow errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidStateTransitionError(WorkflowError):
    """Action is not legal from the document's current state."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, document_type: str, document_id: str, current_state: str, action: str):
        self.document_type = document_type
        self.document_id = document_id
        self.current_state = current_state
        self.action = action
        super().__init__(
            f"Cannot {action} {document_type} {document_id} "
            f"in state '{current_state}'"
        )


# Lookup exceptions


class NotFoundError(ErpKernelError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"
    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class ItemNotFoundError(NotFoundError):
    """Inventory item with given ID was not found."""

    code: str = "ITEM_NOT_FOUND"
    entity_type = "Inventory item"


class GoodsReceiptNotFoundError(NotFoundError):
    code: str = "GOODS_RECEIPT_NOT_FOUND"
    entity_type = "Goods receipt"


class GoodsIssueNotFoundError(NotFoundError):
    code: str = "GOODS_ISSUE_NOT_FOUND"
    entity_type = "Goods issue"


class PurchaseRequestNotFoundError(NotFoundError):
    code: str = "PURCHASE_REQUEST_NOT_FOUND"
    entity_type = "Purchase request"


class PurchaseOrderNotFoundError(NotFoundError):
    code: str = "PURCHASE_ORDER_NOT_FOUND"
    entity_type = "Purchase order"


class InvoiceNotFoundError(NotFoundError):
    """Purchase invoice with given ID was not found."""

    code: str = "INVOICE_NOT_FOUND"
    entity_type = "Purchase invoice"


class ProjectNotFoundError(NotFoundError):
    code: str = "PROJECT_NOT_FOUND"
    entity_type = "Project"


# Uniqueness exceptions


class DuplicateReferenceError(ErpKernelError):
    """Document number or reference is already in use."""

    code: str = "DUPLICATE_REFERENCE"

    def __init__(self, document_type: str, reference: str):
        self.document_type = document_type
        self.reference = reference
        super().__init__(f"{document_type} reference already exists: {reference}")


# Concurrency exceptions


class ConcurrencyError(ErpKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Storage exceptions


class StorageUnavailableError(ErpKernelError):
    """
    The underlying database is unreachable or failed mid-operation.

    The enclosing transaction has been rolled back when this is raised.
    """

    code: str = "STORAGE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage unavailable during {operation}: {detail}")
