"""
Procurement Module (``erp_modules.procurement``).

Purchase requests with their single-step approval workflow, and purchase
orders with their draft -> sent -> confirmed -> received lifecycle.
"""

from erp_modules.procurement.models import (
    LineItemType,
    OrderLineInput,
    OrderStatus,
    PurchaseOrder,
    PurchaseOrderInput,
    PurchaseOrderLine,
    PurchaseRequest,
    PurchaseRequestInput,
    PurchaseRequestLine,
    RequestLineInput,
    RequestStatus,
    Urgency,
)
from erp_modules.procurement.service import ProcurementService
from erp_modules.procurement.workflows import (
    INVOICEABLE_ORDER_STATES,
    PURCHASE_ORDER_WORKFLOW,
    PURCHASE_REQUEST_WORKFLOW,
)

__all__ = [
    "ProcurementService",
    "LineItemType",
    "OrderLineInput",
    "OrderStatus",
    "PurchaseOrder",
    "PurchaseOrderInput",
    "PurchaseOrderLine",
    "PurchaseRequest",
    "PurchaseRequestInput",
    "PurchaseRequestLine",
    "RequestLineInput",
    "RequestStatus",
    "Urgency",
    "INVOICEABLE_ORDER_STATES",
    "PURCHASE_ORDER_WORKFLOW",
    "PURCHASE_REQUEST_WORKFLOW",
]
