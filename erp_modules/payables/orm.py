"""
SQLAlchemy ORM persistence models for the payables module.

Responsibility
--------------
Tables for purchase invoices and their lines, invoice payments with
attached file metadata, and purchase credit notes.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``PayablesService``.

Invariants enforced
-------------------
* ``invoice_number`` and ``credit_note_number`` are unique.
* At most one invoice per purchase order (``po_id`` is unique).
* ``paid_amount + credited_amount <= total_amount`` as a CHECK constraint.
* No payment-status column: the status is derived on read
  (``derive_status``) so it cannot drift from the calendar.
* ``version`` is the optimistic lock counter on the invoice row.
* Payments and credit notes are insert-only.
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
# 1. PurchaseInvoiceModel
# ---------------------------------------------------------------------------


class PurchaseInvoiceModel(TrackedBase):
    """
    ORM model for purchase invoices.

    Maps to the ``PurchaseInvoice`` frozen dataclass.  Lines live in a child
    table via the ``lines`` relationship.

    Guarantees:
        - invoice_number is unique (uq_purchase_invoices_invoice_number).
        - paid_amount and credited_amount only grow, and only through
          PayablesService on a locked row.
        - approval_status stored as string enum value.
    """

    __tablename__ = "purchase_invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_purchase_invoices_invoice_number"),
        UniqueConstraint("po_id", name="uq_purchase_invoices_po_id"),
        CheckConstraint("paid_amount >= 0", name="ck_purchase_invoices_paid_non_negative"),
        CheckConstraint("credited_amount >= 0", name="ck_purchase_invoices_credited_non_negative"),
        CheckConstraint(
            "paid_amount + credited_amount <= total_amount",
            name="ck_purchase_invoices_settled_within_total",
        ),
        Index("idx_purchase_invoices_supplier_id", "supplier_id"),
        Index("idx_purchase_invoices_approval_status", "approval_status"),
        Index("idx_purchase_invoices_due_date", "due_date"),
    )

    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    supplier_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    project_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    asset_instance_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    po_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("purchase_orders.id"), nullable=True
    )
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_terms: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    credited_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    approval_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    lines: Mapped[list["PurchaseInvoiceLineModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PurchaseInvoiceLineModel.line_number",
    )

    def to_dto(self, today: date):
        """Convert ORM model to frozen dataclass, deriving status as of ``today``."""
        from erp_modules.payables.models import ApprovalStatus, PurchaseInvoice, derive_status

        return PurchaseInvoice(
            id=self.id,
            invoice_number=self.invoice_number,
            supplier_id=self.supplier_id,
            invoice_date=self.invoice_date,
            subtotal=self.subtotal,
            tax_amount=self.tax_amount,
            total_amount=self.total_amount,
            paid_amount=self.paid_amount,
            credited_amount=self.credited_amount,
            status=derive_status(
                self.total_amount, self.paid_amount, self.credited_amount,
                self.due_date, today,
            ),
            approval_status=ApprovalStatus(self.approval_status),
            due_date=self.due_date,
            project_id=self.project_id,
            asset_instance_id=self.asset_instance_id,
            po_id=self.po_id,
            payment_terms=self.payment_terms,
            notes=self.notes,
            approved_by_id=self.approved_by_id,
            approved_at=self.approved_at,
            lines=tuple(line.to_dto() for line in self.lines),
        )

    def __repr__(self) -> str:
        return (
            f"<PurchaseInvoiceModel {self.invoice_number} "
            f"total={self.total_amount} paid={self.paid_amount} "
            f"credited={self.credited_amount}>"
        )


# ---------------------------------------------------------------------------
# 2. PurchaseInvoiceLineModel
# ---------------------------------------------------------------------------


class PurchaseInvoiceLineModel(TrackedBase):
    """
    ORM model for purchase invoice lines.

    Guarantees:
        - invoice_id FK to purchase_invoices.id.
        - line_total == round(quantity * unit_price) + tax_amount, computed
          once at creation.
    """

    __tablename__ = "purchase_invoice_lines"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_purchase_invoice_lines_quantity_positive"),
        Index("idx_purchase_invoice_lines_invoice_id", "invoice_id"),
        Index("idx_purchase_invoice_lines_item_id", "item_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_invoices.id"), nullable=False
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

    invoice: Mapped["PurchaseInvoiceModel"] = relationship(
        back_populates="lines",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.payables.models import InvoiceLine, LineItemType

        return InvoiceLine(
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


# ---------------------------------------------------------------------------
# 3. InvoicePaymentModel / PaymentFileModel
# ---------------------------------------------------------------------------


class InvoicePaymentModel(TrackedBase):
    """
    ORM model for payments against purchase invoices.

    Guarantees:
        - amount > 0.
        - The sum of amounts per invoice equals the invoice's paid_amount;
          both are written in the same transaction.
    """

    __tablename__ = "purchase_invoice_payments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_purchase_invoice_payments_amount_positive"),
        Index("idx_purchase_invoice_payments_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_invoices.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    files: Mapped[list["PaymentFileModel"]] = relationship(
        back_populates="payment",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.payables.models import Payment

        return Payment(
            id=self.id,
            invoice_id=self.invoice_id,
            amount=self.amount,
            payment_date=self.payment_date,
            payment_method=self.payment_method,
            recorded_by_id=self.created_by_id,
            reference_number=self.reference_number,
            notes=self.notes,
            files=tuple(f.to_dto() for f in self.files),
        )

    def __repr__(self) -> str:
        return f"<InvoicePaymentModel invoice={self.invoice_id} amount={self.amount}>"


class PaymentFileModel(TrackedBase):
    """File metadata attached to a payment (receipts, bank advice)."""

    __tablename__ = "payment_files"

    __table_args__ = (
        Index("idx_payment_files_payment_id", "payment_id"),
    )

    payment_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_invoice_payments.id"), nullable=False
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int | None] = mapped_column(nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)

    payment: Mapped["InvoicePaymentModel"] = relationship(
        back_populates="files",
    )

    def to_dto(self):
        from erp_modules.payables.models import PaymentFile

        return PaymentFile(
            id=self.id,
            file_name=self.file_name,
            original_name=self.original_name,
            file_size=self.file_size,
            mime_type=self.mime_type,
        )


# ---------------------------------------------------------------------------
# 4. PurchaseCreditNoteModel
# ---------------------------------------------------------------------------


class PurchaseCreditNoteModel(TrackedBase):
    """
    ORM model for supplier credit notes applied to purchase invoices.

    Guarantees:
        - credit_note_number is unique (uq_purchase_credit_notes_number).
        - The sum of amounts per invoice equals the invoice's credited_amount.
    """

    __tablename__ = "purchase_credit_notes"

    __table_args__ = (
        UniqueConstraint("credit_note_number", name="uq_purchase_credit_notes_number"),
        CheckConstraint("amount > 0", name="ck_purchase_credit_notes_amount_positive"),
        Index("idx_purchase_credit_notes_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_invoices.id"), nullable=False
    )
    credit_note_number: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    credit_note_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from erp_modules.payables.models import CreditNote

        return CreditNote(
            id=self.id,
            invoice_id=self.invoice_id,
            credit_note_number=self.credit_note_number,
            amount=self.amount,
            credit_note_date=self.credit_note_date,
            reason=self.reason,
        )

    def __repr__(self) -> str:
        return (
            f"<PurchaseCreditNoteModel {self.credit_note_number} "
            f"invoice={self.invoice_id} amount={self.amount}>"
        )
