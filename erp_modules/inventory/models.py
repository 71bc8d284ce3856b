"""
Inventory Domain Models (``erp_modules.inventory.models``).

Responsibility
--------------
Frozen value objects for the inventory ledger: item snapshots, validated
receipt and issue lines, ledger transactions, and the goods receipt / goods
issue documents returned to callers.

Architecture
------------
Layer: **Modules** -- pure domain data structures.  All dataclasses are
``frozen=True``; they carry no database identity and no I/O and are used as
DTOs between ``InventoryService`` and its callers (the API layer, tests).

Invariants
----------
- ``ReceiptLine.quantity > 0`` and ``ReceiptLine.unit_cost >= 0``.
- ``IssueLine.quantity > 0``.
- ``StockSnapshot.current_stock >= 0`` and ``avg_cost >= 0``.
- All cost fields use ``Decimal`` -- never ``float``.

Failure Modes
-------------
- ``InvalidQuantityError`` at construction for out-of-range numbers.
- ``InvalidPayloadError`` from ``from_payload`` for malformed shapes and
  unknown item categories.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from erp_kernel.db.types import ZERO, to_decimal, to_quantity
from erp_kernel.domain.payloads import (
    check_shape,
    parse_optional_text,
    parse_optional_uuid,
    parse_text,
    parse_uuid,
    require_list,
)
from erp_kernel.exceptions import InvalidPayloadError, InvalidQuantityError
from erp_kernel.logging_config import get_logger

logger = get_logger("modules.inventory.models")


class MovementType(Enum):
    """Direction of a ledger transaction."""
    INFLOW = "inflow"
    OUTFLOW = "outflow"


class ItemCategory(Enum):
    """Item categories used by the marine operations stores."""
    CONSUMABLES = "consumables"
    TOOLS = "tools"
    EQUIPMENT = "equipment"
    SPARE_PARTS = "spare_parts"
    GENERAL = "general"


CATEGORY_VALUES = frozenset(c.value for c in ItemCategory)


@dataclass(frozen=True)
class StockSnapshot:
    """
    Point-in-time stock position of one item.

    Contract: Immutable read model produced by ``InventoryLedger.get_stock``.
    """
    item_id: UUID
    current_stock: int
    avg_cost: Decimal
    min_stock_level: int = 0

    def __post_init__(self):
        if self.current_stock < 0:
            raise ValueError("current_stock cannot be negative")
        if self.avg_cost < 0:
            raise ValueError("avg_cost cannot be negative")

    @property
    def stock_value(self) -> Decimal:
        return self.avg_cost * self.current_stock

    @property
    def is_low_stock(self) -> bool:
        return self.current_stock < self.min_stock_level


@dataclass(frozen=True)
class InventoryItem:
    """An inventory item (stock-keeping unit) as held in the ledger."""
    id: UUID
    name: str
    category: str
    unit: str
    current_stock: int
    min_stock_level: int
    avg_cost: Decimal
    description: str | None = None

    @property
    def is_low_stock(self) -> bool:
        return self.current_stock < self.min_stock_level


@dataclass(frozen=True)
class NewItem:
    """Validated input for registering a new inventory item."""
    name: str
    category: str
    unit: str
    min_stock_level: int = 0
    description: str | None = None

    def __post_init__(self):
        if self.min_stock_level < 0:
            raise InvalidQuantityError("minStockLevel", self.min_stock_level, "cannot be negative")
        if self.category not in CATEGORY_VALUES:
            allowed = ", ".join(sorted(CATEGORY_VALUES))
            raise InvalidPayloadError(
                "inventory item", [f"'category' must be one of {allowed}"],
            )

    @classmethod
    def from_payload(cls, payload: Any) -> "NewItem":
        data = check_shape(
            payload, "inventory item",
            required=("name", "category", "unit"),
            optional=("minStockLevel", "description"),
        )
        return cls(
            name=parse_text(data["name"], "inventory item", "name", 200),
            category=parse_text(data["category"], "inventory item", "category", 50),
            unit=parse_text(data["unit"], "inventory item", "unit", 20),
            min_stock_level=to_quantity(data.get("minStockLevel", 0), "minStockLevel"),
            description=parse_optional_text(data.get("description"), "inventory item", "description"),
        )


@dataclass(frozen=True)
class ReceiptLine:
    """
    One line of a goods receipt.

    Contract: ``quantity > 0`` whole units; ``unit_cost >= 0`` (zero-cost
    receipts such as donated stock are legal).
    """
    inventory_item_id: UUID
    quantity: int
    unit_cost: Decimal

    def __post_init__(self):
        if self.quantity <= 0:
            raise InvalidQuantityError("quantity", self.quantity, "must be greater than zero")
        if self.unit_cost < 0:
            raise InvalidQuantityError("unitCost", self.unit_cost, "cannot be negative")

    @property
    def line_cost(self) -> Decimal:
        return self.unit_cost * self.quantity

    @classmethod
    def from_payload(cls, payload: Any) -> "ReceiptLine":
        data = check_shape(
            payload, "goods receipt line",
            required=("inventoryItemId", "quantity", "unitCost"),
        )
        return cls(
            inventory_item_id=parse_uuid(data["inventoryItemId"], "goods receipt line", "inventoryItemId"),
            quantity=to_quantity(data["quantity"], "quantity"),
            unit_cost=to_decimal(data["unitCost"], "unitCost"),
        )


@dataclass(frozen=True)
class IssueLine:
    """One line of a goods issue.  Contract: ``quantity > 0`` whole units."""
    inventory_item_id: UUID
    quantity: int

    def __post_init__(self):
        if self.quantity <= 0:
            raise InvalidQuantityError("quantity", self.quantity, "must be greater than zero")

    @classmethod
    def from_payload(cls, payload: Any) -> "IssueLine":
        data = check_shape(
            payload, "goods issue line",
            required=("inventoryItemId", "quantity"),
        )
        return cls(
            inventory_item_id=parse_uuid(data["inventoryItemId"], "goods issue line", "inventoryItemId"),
            quantity=to_quantity(data["quantity"], "quantity"),
        )


@dataclass(frozen=True)
class GoodsReceiptRequest:
    """Validated ``POST /goods-receipt`` body."""
    reference: str
    lines: tuple[ReceiptLine, ...]

    @classmethod
    def from_payload(cls, payload: Any) -> "GoodsReceiptRequest":
        data = check_shape(payload, "goods receipt", required=("reference", "items"))
        items = require_list(data["items"], "goods receipt", "items")
        return cls(
            reference=parse_text(data["reference"], "goods receipt", "reference", 100),
            lines=tuple(ReceiptLine.from_payload(item) for item in items),
        )


@dataclass(frozen=True)
class GoodsIssueRequest:
    """Validated ``POST /goods-issue`` body."""
    reference: str
    lines: tuple[IssueLine, ...]
    project_id: UUID | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "GoodsIssueRequest":
        data = check_shape(
            payload, "goods issue",
            required=("reference", "items"),
            optional=("projectId",),
        )
        items = require_list(data["items"], "goods issue", "items")
        return cls(
            reference=parse_text(data["reference"], "goods issue", "reference", 100),
            lines=tuple(IssueLine.from_payload(item) for item in items),
            project_id=parse_optional_uuid(data.get("projectId"), "goods issue", "projectId"),
        )


@dataclass(frozen=True)
class MovementSource:
    """The document a ledger movement is booked against."""
    reference: str
    document_id: UUID
    actor_id: UUID
    project_id: UUID | None = None


@dataclass(frozen=True)
class InventoryTransaction:
    """
    An append-only ledger row.

    Outflow rows carry the average cost in effect at issue time as
    ``unit_cost`` so that issued value can be reported without replaying
    the ledger.
    """
    id: UUID
    item_id: UUID
    sequence: int
    movement_type: MovementType
    quantity: int
    unit_cost: Decimal
    reference: str
    document_id: UUID
    timestamp: datetime
    created_by_id: UUID
    project_id: UUID | None = None

    @property
    def total_cost(self) -> Decimal:
        return self.unit_cost * self.quantity


@dataclass(frozen=True)
class GoodsReceipt:
    """A posted goods receipt.  Immutable once created."""
    id: UUID
    reference: str
    timestamp: datetime
    created_by_id: UUID
    lines: tuple[ReceiptLine, ...] = field(default_factory=tuple)

    @property
    def total_cost(self) -> Decimal:
        return sum((line.line_cost for line in self.lines), ZERO)


@dataclass(frozen=True)
class GoodsIssue:
    """A posted goods issue.  Immutable once created."""
    id: UUID
    reference: str
    timestamp: datetime
    created_by_id: UUID
    project_id: UUID | None = None
    lines: tuple[IssueLine, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class GoodsReceiptResult:
    """A created receipt plus the post-receipt stock of every touched item."""
    receipt: GoodsReceipt
    stock: tuple[StockSnapshot, ...]


@dataclass(frozen=True)
class GoodsIssueResult:
    """A created issue plus the post-issue stock of every touched item."""
    issue: GoodsIssue
    stock: tuple[StockSnapshot, ...]
