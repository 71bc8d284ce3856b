"""
Procurement Domain Models.

The nouns of procurement: purchase requests, purchase orders and their
lines, plus the validated input types the API builds from request bodies.
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
    parse_optional_date,
    parse_optional_text,
    parse_optional_uuid,
    parse_text,
    parse_uuid,
    require_list,
)
from erp_kernel.exceptions import InvalidPayloadError, InvalidQuantityError
from erp_kernel.logging_config import get_logger

logger = get_logger("modules.procurement.models")

HUNDRED = Decimal("100")


class RequestStatus(Enum):
    """Purchase request lifecycle states."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Urgency(Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class OrderStatus(Enum):
    """Purchase order lifecycle states."""
    DRAFT = "draft"
    SENT = "sent"
    CONFIRMED = "confirmed"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class LineItemType(Enum):
    PRODUCT = "product"
    SERVICE = "service"


@dataclass(frozen=True)
class RequestLineInput:
    """
    A requested line.  Either a stock item or a free-text description.

    Contract: ``quantity > 0``; ``unit_price >= 0`` when given.
    """
    quantity: int
    inventory_item_id: UUID | None = None
    description: str | None = None
    unit_price: Decimal | None = None

    def __post_init__(self):
        if self.quantity <= 0:
            raise InvalidQuantityError("quantity", self.quantity, "must be greater than zero")
        if self.unit_price is not None and self.unit_price < 0:
            raise InvalidQuantityError("unitPrice", self.unit_price, "cannot be negative")
        if self.inventory_item_id is None and not self.description:
            raise InvalidPayloadError(
                "purchase request line",
                ["either 'inventoryItemId' or 'description' is required"],
            )

    @classmethod
    def from_payload(cls, payload: Any) -> "RequestLineInput":
        data = check_shape(
            payload, "purchase request line",
            required=("quantity",),
            optional=("inventoryItemId", "description", "unitPrice"),
        )
        unit_price = data.get("unitPrice")
        return cls(
            quantity=to_quantity(data["quantity"], "quantity"),
            inventory_item_id=parse_optional_uuid(
                data.get("inventoryItemId"), "purchase request line", "inventoryItemId",
            ),
            description=parse_optional_text(
                data.get("description"), "purchase request line", "description", 500,
            ),
            unit_price=to_decimal(unit_price, "unitPrice") if unit_price is not None else None,
        )


@dataclass(frozen=True)
class PurchaseRequestInput:
    """Validated ``POST /purchase-requests`` body."""
    request_number: str
    lines: tuple[RequestLineInput, ...]
    urgency: Urgency = Urgency.NORMAL
    reason: str | None = None
    request_date: date | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "PurchaseRequestInput":
        data = check_shape(
            payload, "purchase request",
            required=("requestNumber", "items"),
            optional=("urgency", "reason", "requestDate"),
        )
        items = require_list(data["items"], "purchase request", "items")
        urgency_raw = data.get("urgency", Urgency.NORMAL.value)
        try:
            urgency = Urgency(urgency_raw)
        except ValueError:
            allowed = ", ".join(u.value for u in Urgency)
            raise InvalidPayloadError(
                "purchase request", [f"'urgency' must be one of {allowed}"],
            ) from None
        return cls(
            request_number=parse_text(data["requestNumber"], "purchase request", "requestNumber", 100),
            lines=tuple(RequestLineInput.from_payload(item) for item in items),
            urgency=urgency,
            reason=parse_optional_text(data.get("reason"), "purchase request", "reason"),
            request_date=parse_optional_date(data.get("requestDate"), "purchase request", "requestDate"),
        )


@dataclass(frozen=True)
class PurchaseRequestLine:
    """A stored line on a purchase request."""
    line_number: int
    quantity: int
    inventory_item_id: UUID | None = None
    description: str | None = None
    unit_price: Decimal | None = None


@dataclass(frozen=True)
class PurchaseRequest:
    """A purchase request.  Lines are immutable; only status moves."""
    id: UUID
    request_number: str
    request_date: date
    status: RequestStatus
    urgency: Urgency
    requested_by_id: UUID
    reason: str | None = None
    decided_by_id: UUID | None = None
    decision_date: date | None = None
    lines: tuple[PurchaseRequestLine, ...] = field(default_factory=tuple)

    @property
    def estimated_total(self) -> Decimal:
        return sum(
            (line.unit_price * line.quantity for line in self.lines if line.unit_price is not None),
            ZERO,
        )


# =============================================================================
# Purchase orders
# =============================================================================


@dataclass(frozen=True)
class OrderLineInput:
    """
    One purchase order line as submitted.

    Contract: ``quantity > 0``; ``unit_price >= 0`` with at most 2 decimal
    places; ``0 <= tax_rate <= 100`` (percent).  Either
    ``inventory_item_id`` or ``description`` is given.
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
                "purchase order line",
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
    def from_payload(cls, payload: Any) -> "OrderLineInput":
        data = check_shape(
            payload, "purchase order line",
            required=("quantity", "unitPrice"),
            optional=("taxRate", "description", "inventoryItemId", "itemType"),
        )
        try:
            item_type = LineItemType(data.get("itemType", LineItemType.PRODUCT.value))
        except ValueError:
            raise InvalidPayloadError(
                "purchase order line", ["'itemType' must be 'product' or 'service'"],
            ) from None
        return cls(
            quantity=to_quantity(data["quantity"], "quantity"),
            unit_price=to_money(data["unitPrice"], "unitPrice"),
            tax_rate=to_decimal(data.get("taxRate", 0), "taxRate"),
            description=parse_optional_text(
                data.get("description"), "purchase order line", "description", 500,
            ),
            inventory_item_id=parse_optional_uuid(
                data.get("inventoryItemId"), "purchase order line", "inventoryItemId",
            ),
            item_type=item_type,
        )


@dataclass(frozen=True)
class PurchaseOrderInput:
    """Validated ``POST`` / ``PUT /purchase-orders`` body."""
    po_number: str
    supplier_id: UUID
    lines: tuple[OrderLineInput, ...]
    order_date: date | None = None
    expected_delivery_date: date | None = None
    payment_terms: str | None = None
    delivery_terms: str | None = None
    notes: str | None = None

    def __post_init__(self):
        if (
            self.order_date is not None
            and self.expected_delivery_date is not None
            and self.expected_delivery_date < self.order_date
        ):
            raise InvalidPayloadError(
                "purchase order", ["'expectedDeliveryDate' cannot be before 'orderDate'"],
            )

    @classmethod
    def from_payload(cls, payload: Any) -> "PurchaseOrderInput":
        data = check_shape(
            payload, "purchase order",
            required=("poNumber", "supplierId", "items"),
            optional=(
                "orderDate", "expectedDeliveryDate", "paymentTerms", "deliveryTerms", "notes",
            ),
        )
        items = require_list(data["items"], "purchase order", "items")
        return cls(
            po_number=parse_text(data["poNumber"], "purchase order", "poNumber", 100),
            supplier_id=parse_uuid(data["supplierId"], "purchase order", "supplierId"),
            lines=tuple(OrderLineInput.from_payload(item) for item in items),
            order_date=parse_optional_date(data.get("orderDate"), "purchase order", "orderDate"),
            expected_delivery_date=parse_optional_date(
                data.get("expectedDeliveryDate"), "purchase order", "expectedDeliveryDate",
            ),
            payment_terms=parse_optional_text(
                data.get("paymentTerms"), "purchase order", "paymentTerms", 200,
            ),
            delivery_terms=parse_optional_text(
                data.get("deliveryTerms"), "purchase order", "deliveryTerms", 200,
            ),
            notes=parse_optional_text(data.get("notes"), "purchase order", "notes"),
        )


@dataclass(frozen=True)
class PurchaseOrderLine:
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
class PurchaseOrder:
    """
    A purchase order.

    Header and lines are editable only while ``draft``.  ``invoiced_at`` is
    set once, when the order is converted into a purchase invoice.
    """
    id: UUID
    po_number: str
    supplier_id: UUID
    order_date: date
    status: OrderStatus
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    created_by_id: UUID
    expected_delivery_date: date | None = None
    payment_terms: str | None = None
    delivery_terms: str | None = None
    notes: str | None = None
    invoiced_at: datetime | None = None
    lines: tuple[PurchaseOrderLine, ...] = field(default_factory=tuple)

    @property
    def is_invoiced(self) -> bool:
        return self.invoiced_at is not None
