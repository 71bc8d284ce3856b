"""
InventoryLedger -- stock and weighted-average cost per item.

Responsibility:
    The only component allowed to write ``current_stock`` and ``avg_cost``.
    Applies receipts (which blend their unit cost into the running average)
    and issues (which never touch the average), and appends one
    ``InventoryTransactionModel`` row per movement.

Architecture position:
    Modules > Inventory -- imperative shell over the ``inventory_items`` row.
    Called by ``InventoryService``; never commits.  The caller owns the
    transaction boundary, which is what lets a multi-line document roll
    every line back together.

Invariants enforced:
    - ``current_stock >= 0`` after every operation.
    - ``avg_cost`` after a receipt equals
      ``(stock * avg + quantity * unit_cost) / (stock + quantity)``
      rounded half-up to 9 decimal places.
    - Issues leave ``avg_cost`` unchanged.
    - Every mutation is a read-modify-write on a row locked with
      ``SELECT ... FOR UPDATE`` (``populate_existing`` so the locked values
      replace anything cached in the identity map).  The ``version`` column
      catches any writer that slipped past the lock.

Failure modes:
    - InvalidQuantityError: non-positive or non-numeric quantity, negative
      or non-numeric unit cost.
    - InsufficientStockError: issue quantity exceeds locked current stock;
      the row is left unchanged.
    - ItemNotFoundError: unknown item id.
    - OptimisticLockError: the row's version moved between read and flush.

Audit relevance:
    ``stock_received`` / ``stock_issued`` are logged at INFO with the before
    and after position; rejected issues log ``stock_issue_rejected``.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.db.types import round_cost, to_decimal, to_quantity
from erp_kernel.domain.actors import SYSTEM_ACTOR_ID
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    ItemNotFoundError,
)
from erp_kernel.logging_config import get_logger
from erp_modules._service_helpers import flush_versioned
from erp_modules.inventory.models import (
    InventoryItem,
    InventoryTransaction,
    MovementSource,
    MovementType,
    NewItem,
    StockSnapshot,
)
from erp_modules.inventory.orm import InventoryItemModel, InventoryTransactionModel

logger = get_logger("modules.inventory.ledger")


class InventoryLedger:
    """
    Per-item stock ledger with weighted-average costing.

    Contract:
        Operates inside the caller's session.  Flushes so that constraint
        and version violations surface inside the call, but never commits
        or rolls back.  Driver errors propagate untranslated;
        ``InventoryService`` maps them to kernel errors.

    Non-goals:
        - FIFO/LIFO layers; there is a single running average per item.
        - Reservations or allocations of stock.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    # =========================================================================
    # Items
    # =========================================================================

    def create_item(self, item: NewItem, actor_id: UUID = SYSTEM_ACTOR_ID) -> InventoryItem:
        """Register a new item with zero stock and zero average cost."""
        model = InventoryItemModel(
            id=uuid4(),
            name=item.name,
            description=item.description,
            category=item.category,
            unit=item.unit,
            current_stock=0,
            min_stock_level=item.min_stock_level,
            avg_cost=Decimal("0"),
            movement_seq=0,
            created_by_id=actor_id,
        )
        self._session.add(model)
        self._session.flush()
        logger.info("inventory_item_created", extra={
            "item_id": str(model.id),
            "item_name": model.name,
            "category": model.category,
        })
        return model.to_dto()

    def get_item(self, item_id: UUID) -> InventoryItem:
        return self._get(item_id).to_dto()

    def list_items(self, low_stock_only: bool = False) -> list[InventoryItem]:
        """All items ordered by name; optionally only those below min stock."""
        stmt = select(InventoryItemModel).order_by(InventoryItemModel.name, InventoryItemModel.id)
        if low_stock_only:
            stmt = stmt.where(
                InventoryItemModel.current_stock < InventoryItemModel.min_stock_level
            )
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    # =========================================================================
    # Reads
    # =========================================================================

    def get_stock(self, item_id: UUID) -> StockSnapshot:
        """Current stock and average cost.  Pure read, takes no lock."""
        return self._get(item_id).to_snapshot()

    def transactions(self, item_id: UUID) -> list[InventoryTransaction]:
        """Movement history for one item, oldest first."""
        self._get(item_id)
        rows = self._session.execute(
            select(InventoryTransactionModel)
            .where(InventoryTransactionModel.item_id == item_id)
            .order_by(InventoryTransactionModel.sequence)
        ).scalars()
        return [row.to_dto() for row in rows]

    # =========================================================================
    # Mutations
    # =========================================================================

    def receive(
        self,
        item_id: UUID,
        quantity: int,
        unit_cost: Decimal,
        source: MovementSource | None = None,
    ) -> Decimal:
        """
        Add ``quantity`` units at ``unit_cost`` and return the new average cost.

        Preconditions:
            - quantity > 0 (whole units), unit_cost >= 0.
        Postconditions:
            - current_stock increased by quantity.
            - avg_cost re-blended; on a zero-stock item it equals unit_cost.
            - One inflow transaction appended.
        """
        quantity = to_quantity(quantity, "quantity")
        unit_cost = to_decimal(unit_cost, "unitCost")
        if quantity <= 0:
            raise InvalidQuantityError("quantity", quantity, "must be greater than zero")
        if unit_cost < 0:
            raise InvalidQuantityError("unitCost", unit_cost, "cannot be negative")

        item = self.lock_item(item_id)
        stock_before = item.current_stock
        avg_before = item.avg_cost

        new_stock = stock_before + quantity
        new_avg = round_cost(
            (avg_before * stock_before + unit_cost * quantity) / new_stock
        )

        item.current_stock = new_stock
        item.avg_cost = new_avg
        self._append(item, MovementType.INFLOW, quantity, unit_cost, source)
        flush_versioned(self._session, "InventoryItem", item.id)

        logger.info("stock_received", extra={
            "item_id": str(item_id),
            "quantity": quantity,
            "unit_cost": str(unit_cost),
            "stock_before": stock_before,
            "stock_after": new_stock,
            "avg_cost_before": str(avg_before),
            "avg_cost_after": str(new_avg),
        })
        return new_avg

    def issue(
        self,
        item_id: UUID,
        quantity: int,
        source: MovementSource | None = None,
    ) -> None:
        """
        Remove ``quantity`` units at the current average cost.

        Preconditions:
            - 0 < quantity <= current_stock, checked against the locked row.
        Postconditions:
            - current_stock decreased by quantity; avg_cost unchanged.
            - One outflow transaction appended, costed at avg_cost.

        Raises:
            InsufficientStockError: stock is left exactly as it was.
        """
        quantity = to_quantity(quantity, "quantity")
        if quantity <= 0:
            raise InvalidQuantityError("quantity", quantity, "must be greater than zero")

        item = self.lock_item(item_id)
        if quantity > item.current_stock:
            logger.warning("stock_issue_rejected", extra={
                "item_id": str(item_id),
                "requested": quantity,
                "available": item.current_stock,
            })
            raise InsufficientStockError(str(item_id), quantity, item.current_stock)

        stock_before = item.current_stock
        item.current_stock = stock_before - quantity
        self._append(item, MovementType.OUTFLOW, quantity, item.avg_cost, source)
        flush_versioned(self._session, "InventoryItem", item.id)

        logger.info("stock_issued", extra={
            "item_id": str(item_id),
            "quantity": quantity,
            "stock_before": stock_before,
            "stock_after": item.current_stock,
            "avg_cost": str(item.avg_cost),
        })

    # =========================================================================
    # Internals
    # =========================================================================

    def _get(self, item_id: UUID) -> InventoryItemModel:
        item = self._session.get(InventoryItemModel, item_id)
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return item

    def lock_item(self, item_id: UUID) -> InventoryItemModel:
        # Concurrent issues serialise here; populate_existing replaces any
        # stale identity-map copy with the locked row.
        item = self._session.execute(
            select(InventoryItemModel)
            .where(InventoryItemModel.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return item

    def _append(
        self,
        item: InventoryItemModel,
        movement_type: MovementType,
        quantity: int,
        unit_cost: Decimal,
        source: MovementSource | None,
    ) -> None:
        if source is None:
            source = MovementSource(
                reference="ledger-adjustment",
                document_id=uuid4(),
                actor_id=SYSTEM_ACTOR_ID,
            )
        item.movement_seq += 1
        item.updated_by_id = source.actor_id
        self._session.add(InventoryTransactionModel(
            item_id=item.id,
            sequence=item.movement_seq,
            movement_type=movement_type.value,
            quantity=quantity,
            unit_cost=unit_cost,
            reference=source.reference,
            document_id=source.document_id,
            project_id=source.project_id,
            occurred_at=self._clock.now(),
            created_by_id=source.actor_id,
        ))
