"""
Payables Module Service (``erp_modules.payables.service``).

Responsibility
--------------
Purchase invoice lifecycle: creation with computed totals (directly or by
converting a confirmed purchase order), payments and credit notes reconciled
against the outstanding balance, and approval with its side effects on
projects and asset instances.

Architecture position
---------------------
**Modules layer**.  ``PayablesService`` is the sole writer of
``paid_amount`` / ``credited_amount``.  It calls the ``ProjectCostSink`` and
``AssetMaintenanceSink`` collaborators inside its own transaction.

Invariants enforced
-------------------
* Each public mutating method owns the transaction boundary
  (``commit`` on success, ``rollback`` on failure or exception).
* ``0 < amount <= total - paid - credited`` for every payment and credit
  note, checked against the invoice row locked ``FOR UPDATE``; the
  ``version`` column backs the lock up.
* Payment status is derived on read from the injected clock.
* Approval side effects commit or roll back together with the approval.
* A purchase order is converted into at most one invoice; the order row is
  locked while its lines are copied.

Failure modes
-------------
* ``InvalidQuantityError``  -- non-positive or malformed amount.
* ``OverpaymentNotAllowedError``  -- amount exceeds the outstanding balance.
* ``InvalidStateTransitionError``  -- approve/reject of a decided invoice,
  or settling a rejected invoice.
* ``InvoiceNotFoundError`` / ``ItemNotFoundError`` / ``ProjectNotFoundError``
  / ``PurchaseOrderNotFoundError``.
* ``DuplicateReferenceError``  -- invoice or credit note number reused.

Audit relevance
---------------
``purchase_invoice_created``, ``invoice_payment_recorded``,
``purchase_order_invoiced``, ``credit_note_applied``,
``purchase_invoice_approved`` / ``purchase_invoice_rejected`` at INFO; ``overpayment_rejected`` at WARNING.

Usage::

    service = PayablesService(session, clock=clock)
    result = service.record_payment(
        invoice_id, Decimal("600.00"), date(2024, 1, 5), "bank_transfer",
        actor_id=actor_id,
    )
    assert result.invoice.status is InvoiceStatus.PARTIALLY_PAID
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.db.types import ZERO, to_decimal
from erp_kernel.domain.actors import SYSTEM_ACTOR_ID
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.workflow import resolve_transition
from erp_kernel.exceptions import (
    DuplicateReferenceError,
    InvalidPayloadError,
    InvalidQuantityError,
    InvalidStateTransitionError,
    InvoiceNotFoundError,
    ItemNotFoundError,
    OverpaymentNotAllowedError,
    PurchaseOrderNotFoundError,
)
from erp_kernel.logging_config import LogContext, get_logger
from erp_modules._service_helpers import (
    flush_document,
    flush_versioned,
    owned_transaction,
    read_scope,
)
from erp_modules.collaborators.interfaces import AssetMaintenanceSink, ProjectCostSink
from erp_modules.collaborators.sinks import (
    DatabaseAssetMaintenanceSink,
    DatabaseProjectCostSink,
)
from erp_modules.inventory.orm import InventoryItemModel
from erp_modules.payables.models import (
    ApprovalStatus,
    CreditNote,
    CreditNoteResult,
    InvoiceLineInput,
    InvoiceStatus,
    LineItemType,
    Payment,
    PaymentFileInput,
    PaymentResult,
    PurchaseInvoice,
)
from erp_modules.payables.orm import (
    InvoicePaymentModel,
    PaymentFileModel,
    PurchaseCreditNoteModel,
    PurchaseInvoiceLineModel,
    PurchaseInvoiceModel,
)
from erp_modules.payables.workflows import INVOICE_APPROVAL_WORKFLOW
from erp_modules.procurement.orm import PurchaseOrderModel
from erp_modules.procurement.workflows import INVOICEABLE_ORDER_STATES

logger = get_logger("modules.payables.service")


class PayablesService:
    """
    Purchase invoices, payments, credit notes and invoice approval.

    Contract:
        Mutating methods commit on success and roll back on any exception.
        Collaborator sinks default to the database-backed implementations
        bound to this service's session.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        project_sink: ProjectCostSink | None = None,
        asset_sink: AssetMaintenanceSink | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._project_sink = project_sink
        self._asset_sink = asset_sink

    # =========================================================================
    # Invoices
    # =========================================================================

    def create_invoice(
        self,
        invoice_number: str,
        supplier_id: UUID,
        lines: Sequence[InvoiceLineInput],
        invoice_date: date,
        due_date: date | None = None,
        project_id: UUID | None = None,
        asset_instance_id: UUID | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
        payment_terms: str | None = None,
        notes: str | None = None,
    ) -> PurchaseInvoice:
        """
        Create a pending invoice with totals computed from its lines.

        Postconditions:
            - subtotal = sum of line net amounts; tax = sum of line taxes;
              total = subtotal + tax.
            - paid and credited are zero; approval_status is pending.
        """
        lines = tuple(lines)
        with LogContext.bind(document_ref=invoice_number), \
                owned_transaction(self._session, "create_purchase_invoice"):
            model = self._insert_invoice(
                invoice_number, supplier_id, lines, invoice_date,
                due_date=due_date,
                project_id=project_id,
                asset_instance_id=asset_instance_id,
                actor_id=actor_id,
                payment_terms=payment_terms,
                notes=notes,
            )
            invoice = model.to_dto(self._clock.today())

        logger.info("purchase_invoice_created", extra={
            "invoice_id": str(invoice.id),
            "invoice_number": invoice_number,
            "supplier_id": str(supplier_id),
            "total_amount": str(invoice.total_amount),
            "line_count": len(lines),
        })
        return invoice

    def create_invoice_from_po(
        self,
        po_id: UUID,
        invoice_number: str,
        invoice_date: date,
        due_date: date | None = None,
        project_id: UUID | None = None,
        asset_instance_id: UUID | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
        payment_terms: str | None = None,
        notes: str | None = None,
    ) -> PurchaseInvoice:
        """
        Invoice a confirmed or received purchase order.

        Supplier and lines are copied from the order, and payment terms and
        notes too unless given.  The order row is locked for the duration,
        so an order is invoiced at most once even under concurrent requests.

        Raises:
            PurchaseOrderNotFoundError: unknown ``po_id``.
            InvalidStateTransitionError: the order is not confirmed or received.
            DuplicateReferenceError: the order was already invoiced, or the
                invoice number is taken.
        """
        with LogContext.bind(document_ref=invoice_number), \
                owned_transaction(self._session, "convert_purchase_order"):
            order = self._session.execute(
                select(PurchaseOrderModel)
                .where(PurchaseOrderModel.id == po_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if order is None:
                raise PurchaseOrderNotFoundError(str(po_id))
            if order.status not in INVOICEABLE_ORDER_STATES:
                raise InvalidStateTransitionError(
                    "purchase order", str(po_id), order.status, "convert_to_invoice",
                )
            if order.invoiced_at is not None:
                raise DuplicateReferenceError("purchase order invoice", order.po_number)

            lines = tuple(
                InvoiceLineInput(
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    tax_rate=line.tax_rate,
                    description=line.description,
                    inventory_item_id=line.item_id,
                    item_type=LineItemType(line.item_type),
                )
                for line in order.lines
            )
            model = self._insert_invoice(
                invoice_number, order.supplier_id, lines, invoice_date,
                due_date=due_date,
                project_id=project_id,
                asset_instance_id=asset_instance_id,
                actor_id=actor_id,
                payment_terms=payment_terms if payment_terms is not None else order.payment_terms,
                notes=notes if notes is not None else order.notes,
                po_id=order.id,
            )
            order.invoiced_at = self._clock.now()
            order.updated_by_id = actor_id
            self._session.flush()
            invoice = model.to_dto(self._clock.today())

        logger.info("purchase_order_invoiced", extra={
            "order_id": str(po_id),
            "po_number": order.po_number,
            "invoice_id": str(invoice.id),
            "invoice_number": invoice_number,
            "total_amount": str(invoice.total_amount),
        })
        return invoice

    def get_invoice(self, invoice_id: UUID) -> PurchaseInvoice:
        with read_scope(self._session, "get_purchase_invoice"):
            return self._get(invoice_id).to_dto(self._clock.today())

    def list_invoices(
        self,
        status: InvoiceStatus | None = None,
        supplier_id: UUID | None = None,
    ) -> list[PurchaseInvoice]:
        """Invoices newest first.  ``status`` filters on the derived status."""
        stmt = select(PurchaseInvoiceModel).order_by(
            PurchaseInvoiceModel.invoice_date.desc(), PurchaseInvoiceModel.invoice_number,
        )
        if supplier_id is not None:
            stmt = stmt.where(PurchaseInvoiceModel.supplier_id == supplier_id)
        today = self._clock.today()
        with read_scope(self._session, "list_purchase_invoices"):
            invoices = [m.to_dto(today) for m in self._session.execute(stmt).scalars()]
        if status is not None:
            invoices = [inv for inv in invoices if inv.status is status]
        return invoices

    # =========================================================================
    # Payments and credit notes
    # =========================================================================

    def record_payment(
        self,
        invoice_id: UUID,
        amount: Decimal,
        payment_date: date,
        payment_method: str,
        reference_number: str | None = None,
        notes: str | None = None,
        files: Sequence[PaymentFileInput] = (),
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> PaymentResult:
        """
        Record a payment against the invoice's outstanding balance.

        Preconditions:
            - 0 < amount <= total - paid - credited (checked under lock).
        Postconditions:
            - paid_amount increased by amount; one payment row (plus file
              rows) inserted; committed together.
        """
        amount = self._positive_amount(amount)
        with owned_transaction(self._session, "record_payment"):
            invoice = self._lock_for_settlement(invoice_id, amount, "record_payment")

            payment = InvoicePaymentModel(
                id=uuid4(),
                invoice_id=invoice.id,
                amount=amount,
                payment_date=payment_date,
                payment_method=payment_method,
                reference_number=reference_number,
                notes=notes,
                created_by_id=actor_id,
                files=[
                    PaymentFileModel(
                        file_name=f.file_name,
                        original_name=f.original_name,
                        file_size=f.file_size,
                        mime_type=f.mime_type,
                        created_by_id=actor_id,
                    )
                    for f in files
                ],
            )
            self._session.add(payment)
            invoice.paid_amount = invoice.paid_amount + amount
            invoice.updated_by_id = actor_id
            flush_versioned(self._session, "PurchaseInvoice", invoice.id)

            result = PaymentResult(
                payment=payment.to_dto(),
                invoice=invoice.to_dto(self._clock.today()),
            )

        logger.info("invoice_payment_recorded", extra={
            "invoice_id": str(invoice_id),
            "payment_id": str(result.payment.id),
            "amount": str(amount),
            "paid_amount": str(result.invoice.paid_amount),
            "status": result.invoice.status.value,
            "file_count": len(result.payment.files),
        })
        return result

    def apply_credit_note(
        self,
        invoice_id: UUID,
        credit_note_number: str,
        amount: Decimal,
        credit_note_date: date,
        reason: str | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> CreditNoteResult:
        """Apply a supplier credit note; same balance rule as payments."""
        amount = self._positive_amount(amount)
        with LogContext.bind(document_ref=credit_note_number), \
                owned_transaction(self._session, "apply_credit_note"):
            exists = self._session.execute(
                select(PurchaseCreditNoteModel.id)
                .where(PurchaseCreditNoteModel.credit_note_number == credit_note_number)
            ).first()
            if exists is not None:
                raise DuplicateReferenceError("credit note", credit_note_number)

            invoice = self._lock_for_settlement(invoice_id, amount, "apply_credit_note")

            note = PurchaseCreditNoteModel(
                id=uuid4(),
                invoice_id=invoice.id,
                credit_note_number=credit_note_number,
                amount=amount,
                credit_note_date=credit_note_date,
                reason=reason,
                created_by_id=actor_id,
            )
            self._session.add(note)
            flush_document(self._session, "credit note", credit_note_number)
            invoice.credited_amount = invoice.credited_amount + amount
            invoice.updated_by_id = actor_id
            flush_versioned(self._session, "PurchaseInvoice", invoice.id)

            result = CreditNoteResult(
                credit_note=note.to_dto(),
                invoice=invoice.to_dto(self._clock.today()),
            )

        logger.info("credit_note_applied", extra={
            "invoice_id": str(invoice_id),
            "credit_note_number": credit_note_number,
            "amount": str(amount),
            "credited_amount": str(result.invoice.credited_amount),
            "status": result.invoice.status.value,
        })
        return result

    def list_payments(self, invoice_id: UUID) -> list[Payment]:
        with read_scope(self._session, "list_payments"):
            self._get(invoice_id)
            rows = self._session.execute(
                select(InvoicePaymentModel)
                .where(InvoicePaymentModel.invoice_id == invoice_id)
                .order_by(InvoicePaymentModel.payment_date, InvoicePaymentModel.created_at)
            ).scalars()
            return [row.to_dto() for row in rows]

    def list_credit_notes(self, invoice_id: UUID) -> list[CreditNote]:
        with read_scope(self._session, "list_credit_notes"):
            self._get(invoice_id)
            rows = self._session.execute(
                select(PurchaseCreditNoteModel)
                .where(PurchaseCreditNoteModel.invoice_id == invoice_id)
                .order_by(
                    PurchaseCreditNoteModel.credit_note_date,
                    PurchaseCreditNoteModel.credit_note_number,
                )
            ).scalars()
            return [row.to_dto() for row in rows]

    # =========================================================================
    # Approval
    # =========================================================================

    def approve_invoice(self, invoice_id: UUID, actor_id: UUID = SYSTEM_ACTOR_ID) -> PurchaseInvoice:
        """
        Approve a pending invoice.

        Postconditions:
            - approval_status is approved, approver and time recorded.
            - Linked project: total added to its actual cost.
            - Linked asset instance: one maintenance record for the total.
            All in one transaction.
        """
        with owned_transaction(self._session, "approve_purchase_invoice"):
            invoice = self._lock(invoice_id)
            invoice.approval_status = resolve_transition(
                INVOICE_APPROVAL_WORKFLOW, "purchase invoice", invoice_id,
                invoice.approval_status, "approve",
            )
            invoice.approved_by_id = actor_id
            invoice.approved_at = self._clock.now()
            invoice.updated_by_id = actor_id
            flush_versioned(self._session, "PurchaseInvoice", invoice.id)

            if invoice.project_id is not None:
                sink = self._project_sink or DatabaseProjectCostSink(self._session, actor_id)
                sink.add_actual_cost(invoice.project_id, invoice.total_amount)
            if invoice.asset_instance_id is not None:
                asset_sink = self._asset_sink or DatabaseAssetMaintenanceSink(
                    self._session, self._clock, actor_id,
                )
                asset_sink.create_maintenance_record(
                    invoice.asset_instance_id, invoice.total_amount, invoice.invoice_number,
                )
            approved = invoice.to_dto(self._clock.today())

        logger.info("purchase_invoice_approved", extra={
            "invoice_id": str(invoice_id),
            "invoice_number": approved.invoice_number,
            "total_amount": str(approved.total_amount),
            "project_id": str(approved.project_id) if approved.project_id else None,
            "asset_instance_id": (
                str(approved.asset_instance_id) if approved.asset_instance_id else None
            ),
        })
        return approved

    def reject_invoice(self, invoice_id: UUID, actor_id: UUID = SYSTEM_ACTOR_ID) -> PurchaseInvoice:
        with owned_transaction(self._session, "reject_purchase_invoice"):
            invoice = self._lock(invoice_id)
            invoice.approval_status = resolve_transition(
                INVOICE_APPROVAL_WORKFLOW, "purchase invoice", invoice_id,
                invoice.approval_status, "reject",
            )
            invoice.updated_by_id = actor_id
            flush_versioned(self._session, "PurchaseInvoice", invoice.id)
            rejected = invoice.to_dto(self._clock.today())

        logger.info("purchase_invoice_rejected", extra={
            "invoice_id": str(invoice_id),
            "invoice_number": rejected.invoice_number,
        })
        return rejected

    # =========================================================================
    # Internals
    # =========================================================================

    def _insert_invoice(
        self,
        invoice_number: str,
        supplier_id: UUID,
        lines: tuple[InvoiceLineInput, ...],
        invoice_date: date,
        due_date: date | None,
        project_id: UUID | None,
        asset_instance_id: UUID | None,
        actor_id: UUID,
        payment_terms: str | None,
        notes: str | None,
        po_id: UUID | None = None,
    ) -> PurchaseInvoiceModel:
        if not lines:
            raise InvalidPayloadError("purchase invoice", ["'items' must be a non-empty array"])
        if due_date is not None and due_date < invoice_date:
            raise InvalidPayloadError(
                "purchase invoice", ["'dueDate' cannot be before 'invoiceDate'"],
            )
        self._require_items_exist(lines)

        subtotal = sum((line.net_amount for line in lines), ZERO)
        tax_amount = sum((line.tax_amount for line in lines), ZERO)
        total = subtotal + tax_amount
        if total <= 0:
            raise InvalidQuantityError("totalAmount", total, "must be greater than zero")

        exists = self._session.execute(
            select(PurchaseInvoiceModel.id)
            .where(PurchaseInvoiceModel.invoice_number == invoice_number)
        ).first()
        if exists is not None:
            raise DuplicateReferenceError("purchase invoice", invoice_number)

        model = PurchaseInvoiceModel(
            id=uuid4(),
            invoice_number=invoice_number,
            supplier_id=supplier_id,
            project_id=project_id,
            asset_instance_id=asset_instance_id,
            po_id=po_id,
            invoice_date=invoice_date,
            due_date=due_date,
            payment_terms=payment_terms,
            notes=notes,
            subtotal=subtotal,
            tax_amount=tax_amount,
            total_amount=total,
            paid_amount=ZERO,
            credited_amount=ZERO,
            approval_status=INVOICE_APPROVAL_WORKFLOW.initial_state,
            created_by_id=actor_id,
        )
        model.lines = [
            PurchaseInvoiceLineModel(
                line_number=number,
                item_type=line.item_type.value,
                item_id=line.inventory_item_id,
                description=line.description,
                quantity=line.quantity,
                unit_price=line.unit_price,
                tax_rate=line.tax_rate,
                tax_amount=line.tax_amount,
                line_total=line.line_total,
                created_by_id=actor_id,
            )
            for number, line in enumerate(lines, start=1)
        ]
        self._session.add(model)
        flush_document(self._session, "purchase invoice", invoice_number)
        return model

    @staticmethod
    def _positive_amount(amount) -> Decimal:
        amount = to_decimal(amount, "amount")
        if amount <= 0:
            raise InvalidQuantityError("amount", amount, "must be greater than zero")
        return amount

    def _get(self, invoice_id: UUID) -> PurchaseInvoiceModel:
        model = self._session.get(PurchaseInvoiceModel, invoice_id)
        if model is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return model

    def _lock(self, invoice_id: UUID) -> PurchaseInvoiceModel:
        model = self._session.execute(
            select(PurchaseInvoiceModel)
            .where(PurchaseInvoiceModel.id == invoice_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return model

    def _lock_for_settlement(
        self,
        invoice_id: UUID,
        amount: Decimal,
        action: str,
    ) -> PurchaseInvoiceModel:
        """Lock the invoice and check ``amount`` fits the outstanding balance."""
        invoice = self._lock(invoice_id)
        if invoice.approval_status == ApprovalStatus.REJECTED.value:
            raise InvalidStateTransitionError(
                "purchase invoice", str(invoice_id), invoice.approval_status, action,
            )
        outstanding = invoice.total_amount - invoice.paid_amount - invoice.credited_amount
        if amount > outstanding:
            logger.warning("overpayment_rejected", extra={
                "invoice_id": str(invoice_id),
                "action": action,
                "amount": str(amount),
                "outstanding": str(outstanding),
            })
            raise OverpaymentNotAllowedError(str(invoice_id), amount, outstanding)
        return invoice

    def _require_items_exist(self, lines: tuple[InvoiceLineInput, ...]) -> None:
        wanted = {line.inventory_item_id for line in lines if line.inventory_item_id}
        if not wanted:
            return
        found = set(self._session.execute(
            select(InventoryItemModel.id).where(InventoryItemModel.id.in_(wanted))
        ).scalars())
        missing = sorted(wanted - found, key=str)
        if missing:
            raise ItemNotFoundError(str(missing[0]))
