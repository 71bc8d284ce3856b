"""
SQLAlchemy ORM persistence models for the inventory module.

Responsibility
--------------
Database tables for the inventory ledger: the item row that carries the
running stock and weighted-average cost, the append-only transaction log,
and the goods receipt / goods issue document headers with their lines.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``InventoryLedger`` and
``InventoryService``.  Inherits from ``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* ``current_stock >= 0`` and ``avg_cost >= 0`` as CHECK constraints, so a
  bypass of the ledger still cannot store negative stock.
* ``version`` is the optimistic lock counter on the item row; every UPDATE
  is issued as ``... WHERE version = :expected``.
* Receipt and issue references are unique.
* Monetary fields use ``Decimal`` (Numeric(38,9)) -- never float.

Audit relevance
---------------
* ``InventoryTransactionModel`` is append-only: one row per receipt or issue
  line, never updated or deleted by application code.
* Document rows record ``created_by_id`` via ``TrackedBase``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import TrackedBase, UUIDString

# ---------------------------------------------------------------------------
# 1. InventoryItemModel
# ---------------------------------------------------------------------------


class InventoryItemModel(TrackedBase):
    """
    ORM model for inventory items.

    Maps to the ``InventoryItem`` and ``StockSnapshot`` frozen dataclasses.

    Guarantees:
        - current_stock and avg_cost are only written by InventoryLedger.
        - version is bumped by SQLAlchemy on every flush that updates the row.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        CheckConstraint("current_stock >= 0", name="ck_inventory_items_stock_non_negative"),
        CheckConstraint("avg_cost >= 0", name="ck_inventory_items_avg_cost_non_negative"),
        Index("idx_inventory_items_category", "category"),
        Index("idx_inventory_items_name", "name"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    current_stock: Mapped[int] = mapped_column(nullable=False, default=0)
    min_stock_level: Mapped[int] = mapped_column(nullable=False, default=0)
    avg_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    # Last allocated InventoryTransactionModel.sequence for this item.
    movement_seq: Mapped[int] = mapped_column(nullable=False, default=0)
    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.inventory.models import InventoryItem

        return InventoryItem(
            id=self.id,
            name=self.name,
            category=self.category,
            unit=self.unit,
            current_stock=self.current_stock,
            min_stock_level=self.min_stock_level,
            avg_cost=self.avg_cost,
            description=self.description,
        )

    def to_snapshot(self):
        from erp_modules.inventory.models import StockSnapshot

        return StockSnapshot(
            item_id=self.id,
            current_stock=self.current_stock,
            avg_cost=self.avg_cost,
            min_stock_level=self.min_stock_level,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryItemModel {self.name} "
            f"stock={self.current_stock} avg_cost={self.avg_cost} v{self.version}>"
        )


# ---------------------------------------------------------------------------
# 2. InventoryTransactionModel
# ---------------------------------------------------------------------------


class InventoryTransactionModel(TrackedBase):
    """
    ORM model for the append-only stock movement log.

    Guarantees:
        - item_id FK to inventory_items.id.
        - movement_type stored as string enum value ("inflow" / "outflow").
        - quantity is always positive; direction is carried by movement_type.
        - (item_id, sequence) is unique; sequence is allocated from the
          locked item row, never as max + 1.
    """

    __tablename__ = "inventory_transactions"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_inventory_transactions_quantity_positive"),
        UniqueConstraint("item_id", "sequence", name="uq_inventory_transactions_item_sequence"),
        Index("idx_inventory_transactions_item_id", "item_id"),
        Index("idx_inventory_transactions_document_id", "document_id"),
        Index("idx_inventory_transactions_project_id", "project_id"),
    )

    item_id: Mapped[UUID] = mapped_column(
        ForeignKey("inventory_items.id"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(nullable=False)
    movement_type: Mapped[str] = mapped_column(String(10), nullable=False)
    quantity: Mapped[int] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)
    reference: Mapped[str] = mapped_column(String(100), nullable=False)
    document_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    project_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.inventory.models import InventoryTransaction, MovementType

        return InventoryTransaction(
            id=self.id,
            item_id=self.item_id,
            sequence=self.sequence,
            movement_type=MovementType(self.movement_type),
            quantity=self.quantity,
            unit_cost=self.unit_cost,
            reference=self.reference,
            document_id=self.document_id,
            timestamp=self.occurred_at,
            created_by_id=self.created_by_id,
            project_id=self.project_id,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryTransactionModel {self.movement_type} "
            f"item={self.item_id} qty={self.quantity}>"
        )


# ---------------------------------------------------------------------------
# 3. GoodsReceiptModel / GoodsReceiptLineModel
# ---------------------------------------------------------------------------


class GoodsReceiptModel(TrackedBase):
    """
    ORM model for goods receipt headers.

    Guarantees:
        - reference is unique (uq_goods_receipts_reference).
        - Immutable after insert; lines cascade with the header.
    """

    __tablename__ = "goods_receipts"

    __table_args__ = (
        UniqueConstraint("reference", name="uq_goods_receipts_reference"),
    )

    reference: Mapped[str] = mapped_column(String(100), nullable=False)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    lines: Mapped[list["GoodsReceiptLineModel"]] = relationship(
        back_populates="receipt",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="GoodsReceiptLineModel.line_number",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.inventory.models import GoodsReceipt

        return GoodsReceipt(
            id=self.id,
            reference=self.reference,
            timestamp=self.received_at,
            created_by_id=self.created_by_id,
            lines=tuple(line.to_dto() for line in self.lines),
        )

    def __repr__(self) -> str:
        return f"<GoodsReceiptModel {self.reference} lines={len(self.lines)}>"


class GoodsReceiptLineModel(TrackedBase):
    """ORM model for goods receipt lines.  Each line belongs to one receipt."""

    __tablename__ = "goods_receipt_lines"

    __table_args__ = (
        Index("idx_goods_receipt_lines_receipt_id", "receipt_id"),
        Index("idx_goods_receipt_lines_item_id", "item_id"),
    )

    receipt_id: Mapped[UUID] = mapped_column(
        ForeignKey("goods_receipts.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(nullable=False)
    item_id: Mapped[UUID] = mapped_column(
        ForeignKey("inventory_items.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)

    receipt: Mapped["GoodsReceiptModel"] = relationship(
        back_populates="lines",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.inventory.models import ReceiptLine

        return ReceiptLine(
            inventory_item_id=self.item_id,
            quantity=self.quantity,
            unit_cost=self.unit_cost,
        )


# ---------------------------------------------------------------------------
# 4. GoodsIssueModel / GoodsIssueLineModel
# ---------------------------------------------------------------------------


class GoodsIssueModel(TrackedBase):
    """
    ORM model for goods issue headers.

    Guarantees:
        - reference is unique (uq_goods_issues_reference).
        - project_id is an optional soft reference to the projects table.
    """

    __tablename__ = "goods_issues"

    __table_args__ = (
        UniqueConstraint("reference", name="uq_goods_issues_reference"),
        Index("idx_goods_issues_project_id", "project_id"),
    )

    reference: Mapped[str] = mapped_column(String(100), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    project_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    lines: Mapped[list["GoodsIssueLineModel"]] = relationship(
        back_populates="issue",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="GoodsIssueLineModel.line_number",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.inventory.models import GoodsIssue

        return GoodsIssue(
            id=self.id,
            reference=self.reference,
            timestamp=self.issued_at,
            created_by_id=self.created_by_id,
            project_id=self.project_id,
            lines=tuple(line.to_dto() for line in self.lines),
        )

    def __repr__(self) -> str:
        return f"<GoodsIssueModel {self.reference} lines={len(self.lines)}>"


class GoodsIssueLineModel(TrackedBase):
    """ORM model for goods issue lines.

    ``unit_cost`` records the average cost in effect when the line was issued.
    """

    __tablename__ = "goods_issue_lines"

    __table_args__ = (
        Index("idx_goods_issue_lines_issue_id", "issue_id"),
        Index("idx_goods_issue_lines_item_id", "item_id"),
    )

    issue_id: Mapped[UUID] = mapped_column(
        ForeignKey("goods_issues.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(nullable=False)
    item_id: Mapped[UUID] = mapped_column(
        ForeignKey("inventory_items.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)

    issue: Mapped["GoodsIssueModel"] = relationship(
        back_populates="lines",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.inventory.models import IssueLine

        return IssueLine(
            inventory_item_id=self.item_id,
            quantity=self.quantity,
        )
