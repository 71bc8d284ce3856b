"""
Inventory Module (``erp_modules.inventory``).

Responsibility
--------------
Item master, the per-item stock ledger with weighted-average costing, and
the goods receipt / goods issue documents that move stock.

Invariants enforced
-------------------
* ``InventoryLedger`` is the only writer of ``current_stock`` and ``avg_cost``.
* Stock never goes negative, including under concurrent issues.
* Transaction boundary owned by ``InventoryService``.
"""

from erp_modules.inventory.ledger import InventoryLedger
from erp_modules.inventory.models import (
    GoodsIssue,
    GoodsIssueRequest,
    GoodsIssueResult,
    GoodsReceipt,
    GoodsReceiptRequest,
    GoodsReceiptResult,
    InventoryItem,
    InventoryTransaction,
    IssueLine,
    ItemCategory,
    MovementSource,
    MovementType,
    NewItem,
    ReceiptLine,
    StockSnapshot,
)
from erp_modules.inventory.service import InventoryService

__all__ = [
    "InventoryLedger",
    "InventoryService",
    "GoodsIssue",
    "GoodsIssueRequest",
    "GoodsIssueResult",
    "GoodsReceipt",
    "GoodsReceiptRequest",
    "GoodsReceiptResult",
    "InventoryItem",
    "InventoryTransaction",
    "IssueLine",
    "ItemCategory",
    "MovementSource",
    "MovementType",
    "NewItem",
    "ReceiptLine",
    "StockSnapshot",
]
