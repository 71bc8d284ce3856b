"""
Procurement Module Service (``erp_modules.procurement.service``).

Responsibility
--------------
Creates purchase requests and advances them through
``PURCHASE_REQUEST_WORKFLOW`` (approve / reject); creates, edits and
deletes draft purchase orders and advances them through
``PURCHASE_ORDER_WORKFLOW`` (send / confirm / receive / cancel).

Invariants enforced
-------------------
* Each public mutating method owns the transaction boundary.
* A request has at least one line and a unique request number.
* Lines that name an inventory item must name an existing one.
* Status changes go through ``resolve_transition`` on a locked row, so two
  concurrent approvals of one request cannot both succeed.
* Order header and lines change only while the order is ``draft``; order
  totals are recomputed from the lines on every write.
* An invoiced order cannot be cancelled.

Failure modes
-------------
* ``InvalidPayloadError`` / ``InvalidQuantityError`` -- malformed lines.
* ``ItemNotFoundError`` -- a line references an unknown item.
* ``DuplicateReferenceError`` -- request number already used.
* ``PurchaseRequestNotFoundError`` -- unknown request id.
* ``PurchaseOrderNotFoundError`` -- unknown order id.
* ``InvalidStateTransitionError`` -- approve/reject of a decided request,
  an order action not legal from its status, or editing a non-draft order.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.db.types import ZERO
from erp_kernel.domain.actors import SYSTEM_ACTOR_ID
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.workflow import resolve_transition
from erp_kernel.exceptions import (
    DuplicateReferenceError,
    InvalidPayloadError,
    InvalidStateTransitionError,
    ItemNotFoundError,
    PurchaseOrderNotFoundError,
    PurchaseRequestNotFoundError,
)
from erp_kernel.logging_config import LogContext, get_logger
from erp_modules._service_helpers import flush_document, owned_transaction, read_scope
from erp_modules.inventory.orm import InventoryItemModel
from erp_modules.procurement.models import (
    OrderLineInput,
    OrderStatus,
    PurchaseOrder,
    PurchaseOrderInput,
    PurchaseRequest,
    RequestLineInput,
    RequestStatus,
    Urgency,
)
from erp_modules.procurement.orm import (
    PurchaseOrderLineModel,
    PurchaseOrderModel,
    PurchaseRequestLineModel,
    PurchaseRequestModel,
)
from erp_modules.procurement.workflows import PURCHASE_ORDER_WORKFLOW, PURCHASE_REQUEST_WORKFLOW

logger = get_logger("modules.procurement.service")


class ProcurementService:
    """
    Purchase request and purchase order lifecycles.

    Contract:
        Mutating methods commit on success and roll back on any exception.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def create_request(
        self,
        request_number: str,
        lines: Sequence[RequestLineInput],
        urgency: Urgency = Urgency.NORMAL,
        reason: str | None = None,
        requested_by_id: UUID = SYSTEM_ACTOR_ID,
        request_date: date | None = None,
    ) -> PurchaseRequest:
        lines = tuple(lines)
        with LogContext.bind(document_ref=request_number), \
                owned_transaction(self._session, "create_purchase_request"):
            if not lines:
                raise InvalidPayloadError("purchase request", ["'items' must be a non-empty array"])
            self._require_items_exist(lines)
            exists = self._session.execute(
                select(PurchaseRequestModel.id)
                .where(PurchaseRequestModel.request_number == request_number)
            ).first()
            if exists is not None:
                raise DuplicateReferenceError("purchase request", request_number)

            model = PurchaseRequestModel(
                id=uuid4(),
                request_number=request_number,
                request_date=request_date or self._clock.today(),
                status=PURCHASE_REQUEST_WORKFLOW.initial_state,
                urgency=urgency.value,
                reason=reason,
                requested_by_id=requested_by_id,
                created_by_id=requested_by_id,
            )
            model.lines = [
                PurchaseRequestLineModel(
                    line_number=number,
                    item_id=line.inventory_item_id,
                    description=line.description,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    created_by_id=requested_by_id,
                )
                for number, line in enumerate(lines, start=1)
            ]
            self._session.add(model)
            flush_document(self._session, "purchase request", request_number)
            request = model.to_dto()

        logger.info("purchase_request_created", extra={
            "request_id": str(request.id),
            "request_number": request_number,
            "urgency": urgency.value,
            "line_count": len(lines),
        })
        return request

    def approve(self, request_id: UUID, actor_id: UUID = SYSTEM_ACTOR_ID) -> PurchaseRequest:
        return self._decide(request_id, "approve", actor_id)

    def reject(self, request_id: UUID, actor_id: UUID = SYSTEM_ACTOR_ID) -> PurchaseRequest:
        return self._decide(request_id, "reject", actor_id)

    def get_request(self, request_id: UUID) -> PurchaseRequest:
        with read_scope(self._session, "get_purchase_request"):
            model = self._session.get(PurchaseRequestModel, request_id)
            if model is None:
                raise PurchaseRequestNotFoundError(str(request_id))
            return model.to_dto()

    def list_requests(self, status: RequestStatus | None = None) -> list[PurchaseRequest]:
        stmt = select(PurchaseRequestModel).order_by(
            PurchaseRequestModel.request_date.desc(), PurchaseRequestModel.request_number,
        )
        if status is not None:
            stmt = stmt.where(PurchaseRequestModel.status == status.value)
        with read_scope(self._session, "list_purchase_requests"):
            return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    # =========================================================================
    # Purchase orders
    # =========================================================================

    def create_order(
        self,
        po_number: str,
        supplier_id: UUID,
        lines: Sequence[OrderLineInput],
        order_date: date | None = None,
        expected_delivery_date: date | None = None,
        payment_terms: str | None = None,
        delivery_terms: str | None = None,
        notes: str | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> PurchaseOrder:
        """
        Create a draft purchase order with totals computed from its lines.

        Postconditions:
            - subtotal = sum of line net amounts; tax = sum of line taxes;
              total = subtotal + tax.
            - status is ``draft``.
        """
        lines = tuple(lines)
        with LogContext.bind(document_ref=po_number), \
                owned_transaction(self._session, "create_purchase_order"):
            self._check_order_lines(lines)
            self._require_unique_po_number(po_number)

            model = PurchaseOrderModel(
                id=uuid4(),
                po_number=po_number,
                supplier_id=supplier_id,
                order_date=order_date or self._clock.today(),
                expected_delivery_date=expected_delivery_date,
                status=PURCHASE_ORDER_WORKFLOW.initial_state,
                payment_terms=payment_terms,
                delivery_terms=delivery_terms,
                notes=notes,
                created_by_id=actor_id,
            )
            self._set_order_lines(model, lines, actor_id)
            self._session.add(model)
            flush_document(self._session, "purchase order", po_number)
            order = model.to_dto()

        logger.info("purchase_order_created", extra={
            "order_id": str(order.id),
            "po_number": po_number,
            "supplier_id": str(supplier_id),
            "total_amount": str(order.total_amount),
            "line_count": len(lines),
        })
        return order

    def update_order(
        self,
        order_id: UUID,
        changes: PurchaseOrderInput,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> PurchaseOrder:
        """Replace a draft order's header and lines.  Totals are recomputed."""
        with LogContext.bind(document_ref=changes.po_number), \
                owned_transaction(self._session, "update_purchase_order"):
            self._check_order_lines(changes.lines)
            model = self._lock_order(order_id)
            self._require_draft(model, "update")
            if changes.po_number != model.po_number:
                self._require_unique_po_number(changes.po_number)

            model.po_number = changes.po_number
            model.supplier_id = changes.supplier_id
            if changes.order_date is not None:
                model.order_date = changes.order_date
            model.expected_delivery_date = changes.expected_delivery_date
            model.payment_terms = changes.payment_terms
            model.delivery_terms = changes.delivery_terms
            model.notes = changes.notes
            model.updated_by_id = actor_id
            self._set_order_lines(model, changes.lines, actor_id)
            flush_document(self._session, "purchase order", changes.po_number)
            order = model.to_dto()

        logger.info("purchase_order_updated", extra={
            "order_id": str(order_id),
            "po_number": order.po_number,
            "total_amount": str(order.total_amount),
            "line_count": len(order.lines),
        })
        return order

    def delete_order(self, order_id: UUID, actor_id: UUID = SYSTEM_ACTOR_ID) -> None:
        """Delete a draft order and its lines.  Anything past draft is cancelled instead."""
        with owned_transaction(self._session, "delete_purchase_order"):
            model = self._lock_order(order_id)
            self._require_draft(model, "delete")
            po_number = model.po_number
            self._session.delete(model)
            self._session.flush()

        logger.info("purchase_order_deleted", extra={
            "order_id": str(order_id),
            "po_number": po_number,
            "actor": str(actor_id),
        })

    def send_order(self, order_id: UUID, actor_id: UUID = SYSTEM_ACTOR_ID) -> PurchaseOrder:
        return self._advance_order(order_id, "send", actor_id)

    def confirm_order(self, order_id: UUID, actor_id: UUID = SYSTEM_ACTOR_ID) -> PurchaseOrder:
        return self._advance_order(order_id, "confirm", actor_id)

    def receive_order(self, order_id: UUID, actor_id: UUID = SYSTEM_ACTOR_ID) -> PurchaseOrder:
        """Mark the order delivered.  Stock moves only through goods receipts."""
        return self._advance_order(order_id, "receive", actor_id)

    def cancel_order(self, order_id: UUID, actor_id: UUID = SYSTEM_ACTOR_ID) -> PurchaseOrder:
        return self._advance_order(order_id, "cancel", actor_id)

    def get_order(self, order_id: UUID) -> PurchaseOrder:
        with read_scope(self._session, "get_purchase_order"):
            model = self._session.get(PurchaseOrderModel, order_id)
            if model is None:
                raise PurchaseOrderNotFoundError(str(order_id))
            return model.to_dto()

    def list_orders(
        self,
        status: OrderStatus | None = None,
        supplier_id: UUID | None = None,
    ) -> list[PurchaseOrder]:
        stmt = select(PurchaseOrderModel).order_by(
            PurchaseOrderModel.order_date.desc(), PurchaseOrderModel.po_number,
        )
        if status is not None:
            stmt = stmt.where(PurchaseOrderModel.status == status.value)
        if supplier_id is not None:
            stmt = stmt.where(PurchaseOrderModel.supplier_id == supplier_id)
        with read_scope(self._session, "list_purchase_orders"):
            return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    # =========================================================================
    # Internals
    # =========================================================================

    def _decide(self, request_id: UUID, action: str, actor_id: UUID) -> PurchaseRequest:
        with owned_transaction(self._session, f"{action}_purchase_request"):
            model = self._session.execute(
                select(PurchaseRequestModel)
                .where(PurchaseRequestModel.id == request_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if model is None:
                raise PurchaseRequestNotFoundError(str(request_id))

            previous = model.status
            model.status = resolve_transition(
                PURCHASE_REQUEST_WORKFLOW, "purchase request", request_id, previous, action,
            )
            model.decided_by_id = actor_id
            model.decision_date = self._clock.today()
            model.updated_by_id = actor_id
            self._session.flush()
            request = model.to_dto()

        logger.info("purchase_request_decided", extra={
            "request_id": str(request_id),
            "request_number": request.request_number,
            "action": action,
            "from_status": previous,
            "to_status": request.status.value,
        })
        return request

    def _require_items_exist(
        self, lines: tuple[RequestLineInput, ...] | tuple[OrderLineInput, ...],
    ) -> None:
        wanted = {line.inventory_item_id for line in lines if line.inventory_item_id}
        if not wanted:
            return
        found = set(self._session.execute(
            select(InventoryItemModel.id).where(InventoryItemModel.id.in_(wanted))
        ).scalars())
        missing = sorted(wanted - found, key=str)
        if missing:
            raise ItemNotFoundError(str(missing[0]))

    def _advance_order(self, order_id: UUID, action: str, actor_id: UUID) -> PurchaseOrder:
        with owned_transaction(self._session, f"{action}_purchase_order"):
            model = self._lock_order(order_id)
            previous = model.status
            target = resolve_transition(
                PURCHASE_ORDER_WORKFLOW, "purchase order", order_id, previous, action,
            )
            if action == "cancel" and model.invoiced_at is not None:
                raise InvalidStateTransitionError(
                    "purchase order", str(order_id), f"{previous} (invoiced)", action,
                )
            model.status = target
            model.updated_by_id = actor_id
            self._session.flush()
            order = model.to_dto()

        logger.info("purchase_order_status_changed", extra={
            "order_id": str(order_id),
            "po_number": order.po_number,
            "action": action,
            "from_status": previous,
            "to_status": order.status.value,
        })
        return order

    def _lock_order(self, order_id: UUID) -> PurchaseOrderModel:
        model = self._session.execute(
            select(PurchaseOrderModel)
            .where(PurchaseOrderModel.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise PurchaseOrderNotFoundError(str(order_id))
        return model

    @staticmethod
    def _require_draft(model: PurchaseOrderModel, action: str) -> None:
        if model.status != OrderStatus.DRAFT.value:
            raise InvalidStateTransitionError(
                "purchase order", str(model.id), model.status, action,
            )

    def _check_order_lines(self, lines: tuple[OrderLineInput, ...]) -> None:
        if not lines:
            raise InvalidPayloadError("purchase order", ["'items' must be a non-empty array"])
        self._require_items_exist(lines)

    def _require_unique_po_number(self, po_number: str) -> None:
        exists = self._session.execute(
            select(PurchaseOrderModel.id).where(PurchaseOrderModel.po_number == po_number)
        ).first()
        if exists is not None:
            raise DuplicateReferenceError("purchase order", po_number)

    @staticmethod
    def _set_order_lines(
        model: PurchaseOrderModel,
        lines: tuple[OrderLineInput, ...],
        actor_id: UUID,
    ) -> None:
        model.lines = [
            PurchaseOrderLineModel(
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
        model.subtotal = sum((line.net_amount for line in lines), ZERO)
        model.tax_amount = sum((line.tax_amount for line in lines), ZERO)
        model.total_amount = model.subtotal + model.tax_amount
