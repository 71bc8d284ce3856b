"""
SQLAlchemy ORM persistence models for the procurement module.

Responsibility
--------------
Tables for purchase request and purchase order headers and their lines.

Invariants enforced
-------------------
* ``request_number`` is unique.
* ``status`` holds a ``RequestStatus`` value; it is only written through the
  ``PURCHASE_REQUEST_WORKFLOW`` transitions in ``ProcurementService``.
* ``po_number`` is unique; order ``status`` is only written through
  ``PURCHASE_ORDER_WORKFLOW`` transitions.
* ``invoiced_at`` is written once, by ``PayablesService`` on a locked row.
* Line quantity is positive (CHECK constraint).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import TrackedBase, UUIDString

# ---------------------------------------------------------------------------
# 1. PurchaseRequestModel
# ---------------------------------------------------------------------------


class PurchaseRequestModel(TrackedBase):
    """
    ORM model for purchase requests.

    Guarantees:
        - request_number is unique (uq_purchase_requests_request_number).
        - decided_by_id / decision_date are set exactly once, by approve
          or reject.
    """

    __tablename__ = "purchase_requests"

    __table_args__ = (
        UniqueConstraint("request_number", name="uq_purchase_requests_request_number"),
        Index("idx_purchase_requests_status", "status"),
    )

    request_number: Mapped[str] = mapped_column(String(100), nullable=False)
    request_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    urgency: Mapped[str] = mapped_column(String(20), nullable=False, default="normal")
    reason: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    requested_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    decided_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    decision_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    lines: Mapped[list["PurchaseRequestLineModel"]] = relationship(
        back_populates="request",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PurchaseRequestLineModel.line_number",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.procurement.models import PurchaseRequest, RequestStatus, Urgency

        return PurchaseRequest(
            id=self.id,
            request_number=self.request_number,
            request_date=self.request_date,
            status=RequestStatus(self.status),
            urgency=Urgency(self.urgency),
            requested_by_id=self.requested_by_id,
            reason=self.reason,
            decided_by_id=self.decided_by_id,
            decision_date=self.decision_date,
            lines=tuple(line.to_dto() for line in self.lines),
        )

    def __repr__(self) -> str:
        return f"<PurchaseRequestModel {self.request_number} status={self.status}>"


# ---------------------------------------------------------------------------
# 2. PurchaseRequestLineModel
# ---------------------------------------------------------------------------


class PurchaseRequestLineModel(TrackedBase):
    """ORM model for purchase request lines."""

    __tablename__ = "purchase_request_lines"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_purchase_request_lines_quantity_positive"),
        Index("idx_purchase_request_lines_request_id", "request_id"),
    )

    request_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_requests.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(nullable=False)
    item_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("inventory_items.id"), nullable=True
    )
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    quantity: Mapped[int] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    request: Mapped["PurchaseRequestModel"] = relationship(
        back_populates="lines",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.procurement.models import PurchaseRequestLine

        return PurchaseRequestLine(
            line_number=self.line_number,
            quantity=self.quantity,
            inventory_item_id=self.item_id,
            description=self.description,
            unit_price=self.unit_price,
        )


# ---------------------------------------------------------------------------
# 3. PurchaseOrderModel
# ---------------------------------------------------------------------------


class PurchaseOrderModel(TrackedBase):
    """
    ORM model for purchase orders.

    Guarantees:
        - po_number is unique (uq_purchase_orders_po_number).
        - subtotal / tax_amount / total_amount are recomputed from the lines
          whenever the lines are replaced.
        - invoiced_at is NULL until the order is converted to an invoice.
    """

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("po_number", name="uq_purchase_orders_po_number"),
        CheckConstraint("total_amount >= 0", name="ck_purchase_orders_total_non_negative"),
        Index("idx_purchase_orders_status", "status"),
        Index("idx_purchase_orders_supplier_id", "supplier_id"),
    )

    po_number: Mapped[str] = mapped_column(String(100), nullable=False)
    supplier_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    payment_terms: Mapped[str | None] = mapped_column(String(200), nullable=True)
    delivery_terms: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    invoiced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    lines: Mapped[list["PurchaseOrderLineModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PurchaseOrderLineModel.line_number",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.procurement.models import OrderStatus, PurchaseOrder

        return PurchaseOrder(
            id=self.id,
            po_number=self.po_number,
            supplier_id=self.supplier_id,
            order_date=self.order_date,
            status=OrderStatus(self.status),
            subtotal=self.subtotal,
            tax_amount=self.tax_amount,
            total_amount=self.total_amount,
            created_by_id=self.created_by_id,
            expected_delivery_date=self.expected_delivery_date,
            payment_terms=self.payment_terms,
            delivery_terms=self.delivery_terms,
            notes=self.notes,
            invoiced_at=self.invoiced_at,
            lines=tuple(line.to_dto() for line in self.lines),
        )

    def __repr__(self) -> str:
        return (
            f"<PurchaseOrderModel {self.po_number} status={self.status} "
            f"total={self.total_amount}>"
        )


# ---------------------------------------------------------------------------
# 4. PurchaseOrderLineModel
# ---------------------------------------------------------------------------


class PurchaseOrderLineModel(TrackedBase):
    """ORM model for purchase order lines."""

    __tablename__ = "purchase_order_lines"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_purchase_order_lines_quantity_positive"),
        Index("idx_purchase_order_lines_order_id", "order_id"),
    )

    order_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_orders.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(nullable=False)
    item_type: Mapped[str] = mapped_column(String(20), nullable=False, default="product")
    item_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("inventory_items.id"), nullable=True
    )
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    quantity: Mapped[int] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    line_total: Mapped[Decimal] = mapped_column(nullable=False)

    order: Mapped["PurchaseOrderModel"] = relationship(
        back_populates="lines",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.procurement.models import LineItemType, PurchaseOrderLine

        return PurchaseOrderLine(
            line_number=self.line_number,
            quantity=self.quantity,
            unit_price=self.unit_price,
            tax_rate=self.tax_rate,
            tax_amount=self.tax_amount,
            line_total=self.line_total,
            item_type=LineItemType(self.item_type),
            description=self.description,
            inventory_item_id=self.item_id,
        )
