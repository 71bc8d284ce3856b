"""
Inventory Module Service (``erp_modules.inventory.service``).

Responsibility
--------------
Creates goods receipts and goods issues -- header + lines documents that
drive ``InventoryLedger`` mutations -- and serves the read side of those
documents and of the item master.

Architecture position
---------------------
**Modules layer**.  ``InventoryService`` is the sole public entry point for
document-driven stock movements.  It composes ``InventoryLedger`` (which
only flushes) and owns the transaction boundary itself.

Invariants enforced
-------------------
* Each public mutating method owns the transaction boundary
  (``commit`` on success, ``rollback`` on failure or exception).
* All-or-nothing documents: every line is validated (shape, range, item
  exists) before the ledger is touched, and any ledger failure rolls back
  the lines already applied in the same document.
* Goods issue sufficiency is checked against locked rows with lines for
  the same item aggregated, then re-checked by the ledger per line.
* Item rows are locked in a stable (sorted id) order so that two documents
  touching the same items cannot deadlock each other.

Failure modes
-------------
* ``InvalidPayloadError`` / ``InvalidQuantityError``  -> nothing written.
* ``ItemNotFoundError``  -> nothing written.
* ``DuplicateReferenceError``  -> nothing written.
* ``InsufficientStockError``  -> whole issue rolled back.
* ``StorageUnavailableError``  -> rolled back; database unreachable.

Audit relevance
---------------
``goods_receipt_created`` / ``goods_issue_created`` at INFO with reference,
line count and totals; ``goods_issue_rejected`` at WARNING.

Usage::

    service = InventoryService(session, clock=clock)
    result = service.create_goods_receipt(
        "GRN-0001",
        [ReceiptLine(item_id, 10, Decimal("5.00"))],
        actor_id=actor_id,
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.domain.actors import SYSTEM_ACTOR_ID
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.exceptions import (
    DuplicateReferenceError,
    GoodsIssueNotFoundError,
    GoodsReceiptNotFoundError,
    InsufficientStockError,
    InvalidPayloadError,
)
from erp_kernel.logging_config import LogContext, get_logger
from erp_modules._service_helpers import flush_document, owned_transaction, read_scope
from erp_modules.inventory.ledger import InventoryLedger
from erp_modules.inventory.models import (
    GoodsIssue,
    GoodsIssueResult,
    GoodsReceipt,
    GoodsReceiptResult,
    InventoryItem,
    InventoryTransaction,
    IssueLine,
    MovementSource,
    NewItem,
    ReceiptLine,
    StockSnapshot,
)
from erp_modules.inventory.orm import (
    GoodsIssueLineModel,
    GoodsIssueModel,
    GoodsReceiptLineModel,
    GoodsReceiptModel,
)

logger = get_logger("modules.inventory.service")


class InventoryService:
    """
    Goods receipt / goods issue documents over the inventory ledger.

    Contract:
        Every mutating method either commits the full document with all of
        its ledger movements, or rolls back and raises a typed
        ``ErpKernelError``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._ledger = InventoryLedger(session, self._clock)

    @property
    def ledger(self) -> InventoryLedger:
        return self._ledger

    # =========================================================================
    # Item master
    # =========================================================================

    def create_item(self, item: NewItem, actor_id: UUID = SYSTEM_ACTOR_ID) -> InventoryItem:
        with owned_transaction(self._session, "create_item"):
            created = self._ledger.create_item(item, actor_id)
        return created

    def list_items(self, low_stock_only: bool = False) -> list[InventoryItem]:
        with read_scope(self._session, "list_items"):
            return self._ledger.list_items(low_stock_only=low_stock_only)

    def get_stock(self, item_id: UUID) -> StockSnapshot:
        with read_scope(self._session, "get_stock"):
            return self._ledger.get_stock(item_id)

    def item_transactions(self, item_id: UUID) -> list[InventoryTransaction]:
        with read_scope(self._session, "item_transactions"):
            return self._ledger.transactions(item_id)

    # =========================================================================
    # Goods receipt
    # =========================================================================

    def create_goods_receipt(
        self,
        reference: str,
        lines: Sequence[ReceiptLine],
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> GoodsReceiptResult:
        """
        Post a goods receipt: one ``receive`` per line, in line order.

        Preconditions:
            - ``lines`` is non-empty; each line already range-validated by
              ``ReceiptLine``.
        Postconditions:
            - One receipt header, N lines, N inflow transactions, committed.
            - Returned stock snapshots reflect the committed state.
        """
        lines = tuple(lines)
        with LogContext.bind(document_ref=reference), \
                owned_transaction(self._session, "create_goods_receipt"):
            self._require_lines("goods receipt", lines)
            self._require_new_reference(GoodsReceiptModel, "goods receipt", reference)
            item_ids = self._lock_items(line.inventory_item_id for line in lines)

            receipt_id = uuid4()
            header = GoodsReceiptModel(
                id=receipt_id,
                reference=reference,
                received_at=self._clock.now(),
                created_by_id=actor_id,
            )
            header.lines = [
                GoodsReceiptLineModel(
                    line_number=number,
                    item_id=line.inventory_item_id,
                    quantity=line.quantity,
                    unit_cost=line.unit_cost,
                    created_by_id=actor_id,
                )
                for number, line in enumerate(lines, start=1)
            ]
            self._session.add(header)
            flush_document(self._session, "goods receipt", reference)

            source = MovementSource(reference, receipt_id, actor_id)
            for line in lines:
                self._ledger.receive(
                    line.inventory_item_id, line.quantity, line.unit_cost, source,
                )

            receipt = header.to_dto()
            stock = tuple(self._ledger.get_stock(item_id) for item_id in item_ids)

        logger.info("goods_receipt_created", extra={
            "receipt_id": str(receipt.id),
            "reference": reference,
            "line_count": len(lines),
            "total_cost": str(receipt.total_cost),
        })
        return GoodsReceiptResult(receipt=receipt, stock=stock)

    def get_goods_receipt(self, receipt_id: UUID) -> GoodsReceipt:
        with read_scope(self._session, "get_goods_receipt"):
            model = self._session.get(GoodsReceiptModel, receipt_id)
            if model is None:
                raise GoodsReceiptNotFoundError(str(receipt_id))
            return model.to_dto()

    def list_goods_receipts(self) -> list[GoodsReceipt]:
        with read_scope(self._session, "list_goods_receipts"):
            rows = self._session.execute(
                select(GoodsReceiptModel).order_by(
                    GoodsReceiptModel.received_at.desc(), GoodsReceiptModel.reference,
                )
            ).scalars()
            return [row.to_dto() for row in rows]

    # =========================================================================
    # Goods issue
    # =========================================================================

    def create_goods_issue(
        self,
        reference: str,
        lines: Sequence[IssueLine],
        actor_id: UUID = SYSTEM_ACTOR_ID,
        project_id: UUID | None = None,
    ) -> GoodsIssueResult:
        """
        Post a goods issue, all lines or none.

        Preconditions:
            - ``lines`` is non-empty.
            - For every item, the sum of its line quantities is available.
        Postconditions:
            - One issue header, N lines, N outflow transactions, committed.
            - avg_cost of every item unchanged.

        Raises:
            InsufficientStockError: carries the aggregated quantity requested
                for the first short item; no stock has changed.
        """
        lines = tuple(lines)
        with LogContext.bind(document_ref=reference), \
                owned_transaction(self._session, "create_goods_issue"):
            self._require_lines("goods issue", lines)
            self._require_new_reference(GoodsIssueModel, "goods issue", reference)
            item_ids = self._lock_items(line.inventory_item_id for line in lines)

            demand: dict[UUID, int] = {}
            for line in lines:
                demand[line.inventory_item_id] = (
                    demand.get(line.inventory_item_id, 0) + line.quantity
                )
            for item_id in item_ids:
                available = self._ledger.get_stock(item_id).current_stock
                if demand[item_id] > available:
                    logger.warning("goods_issue_rejected", extra={
                        "reference": reference,
                        "item_id": str(item_id),
                        "requested": demand[item_id],
                        "available": available,
                    })
                    raise InsufficientStockError(str(item_id), demand[item_id], available)

            issue_id = uuid4()
            header = GoodsIssueModel(
                id=issue_id,
                reference=reference,
                issued_at=self._clock.now(),
                project_id=project_id,
                created_by_id=actor_id,
                lines=[],
            )
            self._session.add(header)
            flush_document(self._session, "goods issue", reference)

            source = MovementSource(reference, issue_id, actor_id, project_id)
            for number, line in enumerate(lines, start=1):
                self._ledger.issue(line.inventory_item_id, line.quantity, source)
                header.lines.append(GoodsIssueLineModel(
                    line_number=number,
                    item_id=line.inventory_item_id,
                    quantity=line.quantity,
                    unit_cost=self._ledger.get_stock(line.inventory_item_id).avg_cost,
                    created_by_id=actor_id,
                ))
            self._session.flush()

            issue = header.to_dto()
            stock = tuple(self._ledger.get_stock(item_id) for item_id in item_ids)

        logger.info("goods_issue_created", extra={
            "issue_id": str(issue.id),
            "reference": reference,
            "project_id": str(project_id) if project_id else None,
            "line_count": len(lines),
        })
        return GoodsIssueResult(issue=issue, stock=stock)

    def get_goods_issue(self, issue_id: UUID) -> GoodsIssue:
        with read_scope(self._session, "get_goods_issue"):
            model = self._session.get(GoodsIssueModel, issue_id)
            if model is None:
                raise GoodsIssueNotFoundError(str(issue_id))
            return model.to_dto()

    def list_goods_issues(self) -> list[GoodsIssue]:
        with read_scope(self._session, "list_goods_issues"):
            rows = self._session.execute(
                select(GoodsIssueModel).order_by(
                    GoodsIssueModel.issued_at.desc(), GoodsIssueModel.reference,
                )
            ).scalars()
            return [row.to_dto() for row in rows]

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _require_lines(document_type: str, lines: tuple) -> None:
        if not lines:
            raise InvalidPayloadError(document_type, ["'items' must be a non-empty array"])

    def _require_new_reference(self, model, document_type: str, reference: str) -> None:
        exists = self._session.execute(
            select(model.id).where(model.reference == reference)
        ).first()
        if exists is not None:
            raise DuplicateReferenceError(document_type, reference)

    def _lock_items(self, item_ids) -> list[UUID]:
        """
        Lock every distinct item in sorted id order.

        Returns the distinct ids in first-appearance order.
        Raises ItemNotFoundError for the first unknown id.
        """
        ordered = list(dict.fromkeys(item_ids))
        for item_id in sorted(ordered, key=str):
            self._ledger.lock_item(item_id)
        return ordered
