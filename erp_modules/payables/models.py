"""
Payables Domain Models (``erp_modules.payables.models``).

Responsibility
--------------
Frozen value objects for purchase invoices, their lines, payments (with
attached file metadata) and credit notes, the validated input types built
from request bodies, and ``derive_status`` -- the read-time projection of
an invoice's payment status.

Architecture
------------
Layer: **Modules** -- pure domain data structures, no I/O.

Invariants
----------
- ``paid_amount + credited_amount <= total_amount``.
- Payment status is never stored: ``derive_status`` computes it from the
  amounts, the due date and the caller's notion of today.
- Money is ``Decimal`` with at most 2 decimal places at the boundary;
  line tax and totals are rounded half-up to cents.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from erp_kernel.db.types import ZERO, round_money, to_decimal, to_money, to_quantity
from erp_kernel.domain.payloads import (
    check_shape,
    parse_date,
    parse_optional_date,
    parse_optional_text,
    parse_optional_uuid,
    parse_text,
    parse_uuid,
    require_list,
)
from erp_kernel.exceptions import InvalidPayloadError, InvalidQuantityError
from erp_kernel.logging_config import get_logger
from erp_modules.procurement.models import LineItemType

logger = get_logger("modules.payables.models")

HUNDRED = Decimal("100")


class InvoiceStatus(Enum):
    """Derived payment status of a purchase invoice."""
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"


class ApprovalStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def derive_status(
    total_amount: Decimal,
    paid_amount: Decimal,
    credited_amount: Decimal,
    due_date: date | None,
    today: date,
) -> InvoiceStatus:
    """
    Payment status as of ``today``.

    ``paid`` once payments and credit notes settle the total; otherwise
    ``overdue`` past the due date; otherwise ``partially_paid`` if anything
    has been paid; otherwise ``pending``.
    """
    if paid_amount + credited_amount >= total_amount:
        return InvoiceStatus.PAID
    if due_date is not None and due_date < today:
        return InvoiceStatus.OVERDUE
    if paid_amount > 0:
        return InvoiceStatus.PARTIALLY_PAID
    return InvoiceStatus.PENDING


# =============================================================================
# Inputs
# =============================================================================


@dataclass(frozen=True)
class InvoiceLineInput:
    """
    One invoice line as submitted.

    Contract: ``quantity > 0``; ``unit_price >= 0``; ``0 <= tax_rate <= 100``
    (percent).  Either ``inventory_item_id`` or ``description`` is given.
    """
    quantity: int
    unit_price: Decimal
    tax_rate: Decimal = ZERO
    description: str | None = None
    inventory_item_id: UUID | None = None
    item_type: LineItemType = LineItemType.PRODUCT

    def __post_init__(self):
        if self.quantity <= 0:
            raise InvalidQuantityError("quantity", self.quantity, "must be greater than zero")
        if self.unit_price < 0:
            raise InvalidQuantityError("unitPrice", self.unit_price, "cannot be negative")
        if not ZERO <= self.tax_rate <= HUNDRED:
            raise InvalidQuantityError("taxRate", self.tax_rate, "must be between 0 and 100")
        if self.inventory_item_id is None and not self.description:
            raise InvalidPayloadError(
                "purchase invoice line",
                ["either 'inventoryItemId' or 'description' is required"],
            )

    @property
    def net_amount(self) -> Decimal:
        return round_money(self.unit_price * self.quantity)

    @property
    def tax_amount(self) -> Decimal:
        return round_money(self.net_amount * self.tax_rate / HUNDRED)

    @property
    def line_total(self) -> Decimal:
        return self.net_amount + self.tax_amount

    @classmethod
    def from_payload(cls, payload: Any) -> "InvoiceLineInput":
        data = check_shape(
            payload, "purchase invoice line",
            required=("quantity", "unitPrice"),
            optional=("taxRate", "description", "inventoryItemId", "itemType"),
        )
        item_type = data.get("itemType", LineItemType.PRODUCT.value)
        try:
            item_type = LineItemType(item_type)
        except ValueError:
            raise InvalidPayloadError(
                "purchase invoice line", ["'itemType' must be 'product' or 'service'"],
            ) from None
        return cls(
            quantity=to_quantity(data["quantity"], "quantity"),
            unit_price=to_money(data["unitPrice"], "unitPrice"),
            tax_rate=to_decimal(data.get("taxRate", 0), "taxRate"),
            description=parse_optional_text(
                data.get("description"), "purchase invoice line", "description", 500,
            ),
            inventory_item_id=parse_optional_uuid(
                data.get("inventoryItemId"), "purchase invoice line", "inventoryItemId",
            ),
            item_type=item_type,
        )


@dataclass(frozen=True)
class InvoiceInput:
    """Validated ``POST /purchase-invoices`` body."""
    invoice_number: str
    supplier_id: UUID
    invoice_date: date
    lines: tuple[InvoiceLineInput, ...]
    due_date: date | None = None
    project_id: UUID | None = None
    asset_instance_id: UUID | None = None
    payment_terms: str | None = None
    notes: str | None = None

    def __post_init__(self):
        if self.due_date is not None and self.due_date < self.invoice_date:
            raise InvalidPayloadError(
                "purchase invoice", ["'dueDate' cannot be before 'invoiceDate'"],
            )

    @classmethod
    def from_payload(cls, payload: Any) -> "InvoiceInput":
        data = check_shape(
            payload, "purchase invoice",
            required=("invoiceNumber", "supplierId", "invoiceDate", "items"),
            optional=("dueDate", "projectId", "assetInstanceId", "paymentTerms", "notes"),
        )
        items = require_list(data["items"], "purchase invoice", "items")
        return cls(
            invoice_number=parse_text(data["invoiceNumber"], "purchase invoice", "invoiceNumber", 100),
            supplier_id=parse_uuid(data["supplierId"], "purchase invoice", "supplierId"),
            invoice_date=parse_date(data["invoiceDate"], "purchase invoice", "invoiceDate"),
            lines=tuple(InvoiceLineInput.from_payload(item) for item in items),
            due_date=parse_optional_date(data.get("dueDate"), "purchase invoice", "dueDate"),
            project_id=parse_optional_uuid(data.get("projectId"), "purchase invoice", "projectId"),
            asset_instance_id=parse_optional_uuid(
                data.get("assetInstanceId"), "purchase invoice", "assetInstanceId",
            ),
            payment_terms=parse_optional_text(
                data.get("paymentTerms"), "purchase invoice", "paymentTerms", 200,
            ),
            notes=parse_optional_text(data.get("notes"), "purchase invoice", "notes"),
        )


@dataclass(frozen=True)
class OrderInvoiceRequest:
    """
    Validated ``POST /purchase-orders/<id>/convert-to-invoice`` body.

    Supplier and lines come from the order.  ``payment_terms`` and ``notes``
    fall back to the order's when omitted.
    """
    invoice_number: str
    invoice_date: date
    due_date: date | None = None
    project_id: UUID | None = None
    asset_instance_id: UUID | None = None
    payment_terms: str | None = None
    notes: str | None = None

    def __post_init__(self):
        if self.due_date is not None and self.due_date < self.invoice_date:
            raise InvalidPayloadError(
                "purchase invoice", ["'dueDate' cannot be before 'invoiceDate'"],
            )

    @classmethod
    def from_payload(cls, payload: Any) -> "OrderInvoiceRequest":
        data = check_shape(
            payload, "purchase invoice",
            required=("invoiceNumber", "invoiceDate"),
            optional=("dueDate", "projectId", "assetInstanceId", "paymentTerms", "notes"),
        )
        return cls(
            invoice_number=parse_text(data["invoiceNumber"], "purchase invoice", "invoiceNumber", 100),
            invoice_date=parse_date(data["invoiceDate"], "purchase invoice", "invoiceDate"),
            due_date=parse_optional_date(data.get("dueDate"), "purchase invoice", "dueDate"),
            project_id=parse_optional_uuid(data.get("projectId"), "purchase invoice", "projectId"),
            asset_instance_id=parse_optional_uuid(
                data.get("assetInstanceId"), "purchase invoice", "assetInstanceId",
            ),
            payment_terms=parse_optional_text(
                data.get("paymentTerms"), "purchase invoice", "paymentTerms", 200,
            ),
            notes=parse_optional_text(data.get("notes"), "purchase invoice", "notes"),
        )


@dataclass(frozen=True)
class PaymentFileInput:
    """Metadata of a document attached to a payment.  Content is stored elsewhere."""
    file_name: str
    original_name: str
    file_size: int | None = None
    mime_type: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "PaymentFileInput":
        data = check_shape(
            payload, "payment file",
            required=("fileName", "originalName"),
            optional=("fileSize", "mimeType"),
        )
        size = data.get("fileSize")
        if size is not None:
            size = to_quantity(size, "fileSize")
            if size < 0:
                raise InvalidQuantityError("fileSize", size, "cannot be negative")
        return cls(
            file_name=parse_text(data["fileName"], "payment file", "fileName", 255),
            original_name=parse_text(data["originalName"], "payment file", "originalName", 255),
            file_size=size,
            mime_type=parse_optional_text(data.get("mimeType"), "payment file", "mimeType", 100),
        )


@dataclass(frozen=True)
class PaymentRequest:
    """
    Validated ``POST /purchase-invoices/<id>/payments`` body.

    Contract: ``amount > 0`` with at most 2 decimal places.  The upper bound
    (outstanding balance) is checked by ``PayablesService`` under lock.
    """
    amount: Decimal
    payment_date: date
    payment_method: str
    reference_number: str | None = None
    notes: str | None = None
    files: tuple[PaymentFileInput, ...] = ()

    def __post_init__(self):
        if self.amount <= 0:
            raise InvalidQuantityError("amount", self.amount, "must be greater than zero")

    @classmethod
    def from_payload(cls, payload: Any) -> "PaymentRequest":
        data = check_shape(
            payload, "payment",
            required=("amount", "paymentDate", "paymentMethod"),
            optional=("referenceNumber", "notes", "files"),
        )
        files = data.get("files") or []
        if not isinstance(files, list):
            raise InvalidPayloadError("payment", ["'files' must be an array"])
        return cls(
            amount=to_money(data["amount"], "amount"),
            payment_date=parse_date(data["paymentDate"], "payment", "paymentDate"),
            payment_method=parse_text(data["paymentMethod"], "payment", "paymentMethod", 50),
            reference_number=parse_optional_text(
                data.get("referenceNumber"), "payment", "referenceNumber", 100,
            ),
            notes=parse_optional_text(data.get("notes"), "payment", "notes"),
            files=tuple(PaymentFileInput.from_payload(f) for f in files),
        )


@dataclass(frozen=True)
class CreditNoteRequest:
    """Validated ``POST /purchase-invoices/<id>/credit-notes`` body."""
    credit_note_number: str
    amount: Decimal
    credit_note_date: date
    reason: str | None = None

    def __post_init__(self):
        if self.amount <= 0:
            raise InvalidQuantityError("amount", self.amount, "must be greater than zero")

    @classmethod
    def from_payload(cls, payload: Any) -> "CreditNoteRequest":
        data = check_shape(
            payload, "credit note",
            required=("creditNoteNumber", "amount", "creditNoteDate"),
            optional=("reason",),
        )
        return cls(
            credit_note_number=parse_text(
                data["creditNoteNumber"], "credit note", "creditNoteNumber", 100,
            ),
            amount=to_money(data["amount"], "amount"),
            credit_note_date=parse_date(data["creditNoteDate"], "credit note", "creditNoteDate"),
            reason=parse_optional_text(data.get("reason"), "credit note", "reason"),
        )


# =============================================================================
# Stored documents
# =============================================================================


@dataclass(frozen=True)
class InvoiceLine:
    line_number: int
    quantity: int
    unit_price: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    line_total: Decimal
    item_type: LineItemType = LineItemType.PRODUCT
    description: str | None = None
    inventory_item_id: UUID | None = None


@dataclass(frozen=True)
class PurchaseInvoice:
    """
    A purchase invoice as of a given day.

    ``status`` was derived when this snapshot was built; it is not a stored
    field and goes stale as the calendar moves.
    """
    id: UUID
    invoice_number: str
    supplier_id: UUID
    invoice_date: date
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    credited_amount: Decimal
    status: InvoiceStatus
    approval_status: ApprovalStatus
    due_date: date | None = None
    project_id: UUID | None = None
    asset_instance_id: UUID | None = None
    po_id: UUID | None = None
    payment_terms: str | None = None
    notes: str | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    lines: tuple[InvoiceLine, ...] = field(default_factory=tuple)

    @property
    def outstanding(self) -> Decimal:
        return self.total_amount - self.paid_amount - self.credited_amount


@dataclass(frozen=True)
class PaymentFile:
    id: UUID
    file_name: str
    original_name: str
    file_size: int | None = None
    mime_type: str | None = None


@dataclass(frozen=True)
class Payment:
    """A recorded payment.  Immutable."""
    id: UUID
    invoice_id: UUID
    amount: Decimal
    payment_date: date
    payment_method: str
    recorded_by_id: UUID
    reference_number: str | None = None
    notes: str | None = None
    files: tuple[PaymentFile, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CreditNote:
    """A credit note applied against an invoice.  Immutable."""
    id: UUID
    invoice_id: UUID
    credit_note_number: str
    amount: Decimal
    credit_note_date: date
    reason: str | None = None


@dataclass(frozen=True)
class PaymentResult:
    """A recorded payment plus the invoice as it stands afterwards."""
    payment: Payment
    invoice: PurchaseInvoice


@dataclass(frozen=True)
class CreditNoteResult:
    credit_note: CreditNote
    invoice: PurchaseInvoice
