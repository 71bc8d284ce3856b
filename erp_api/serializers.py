"""
DTO -> camelCase JSON mappings for API responses.

Money is rendered as a 2-place string and costs as a 9-place string, so
clients never receive binary floats.
"""

from decimal import Decimal
from typing import Any

from erp_kernel.db.types import round_cost, round_money
from erp_modules.inventory.models import (
    GoodsIssue,
    GoodsReceipt,
    InventoryItem,
    InventoryTransaction,
    StockSnapshot,
)
from erp_modules.payables.models import CreditNote, Payment, PurchaseInvoice
from erp_modules.procurement.models import PurchaseOrder, PurchaseRequest


def _money(value: Decimal | None) -> str | None:
    return None if value is None else str(round_money(value))


def _cost(value: Decimal) -> str:
    return str(round_cost(value))


def _id(value) -> str | None:
    return None if value is None else str(value)


# Inventory


def item_to_json(item: InventoryItem) -> dict[str, Any]:
    return {
        "id": str(item.id),
        "name": item.name,
        "description": item.description,
        "category": item.category,
        "unit": item.unit,
        "currentStock": item.current_stock,
        "minStockLevel": item.min_stock_level,
        "avgCost": _cost(item.avg_cost),
        "isLowStock": item.is_low_stock,
    }


def stock_to_json(stock: StockSnapshot) -> dict[str, Any]:
    return {
        "inventoryItemId": str(stock.item_id),
        "currentStock": stock.current_stock,
        "avgCost": _cost(stock.avg_cost),
        "stockValue": _money(stock.stock_value),
        "isLowStock": stock.is_low_stock,
    }


def transaction_to_json(tx: InventoryTransaction) -> dict[str, Any]:
    return {
        "id": str(tx.id),
        "inventoryItemId": str(tx.item_id),
        "sequence": tx.sequence,
        "type": tx.movement_type.value,
        "quantity": tx.quantity,
        "unitCost": _cost(tx.unit_cost),
        "reference": tx.reference,
        "documentId": str(tx.document_id),
        "projectId": _id(tx.project_id),
        "timestamp": tx.timestamp.isoformat(),
        "createdBy": str(tx.created_by_id),
    }


def receipt_to_json(receipt: GoodsReceipt) -> dict[str, Any]:
    return {
        "id": str(receipt.id),
        "reference": receipt.reference,
        "timestamp": receipt.timestamp.isoformat(),
        "createdBy": str(receipt.created_by_id),
        "totalCost": _money(receipt.total_cost),
        "items": [
            {
                "inventoryItemId": str(line.inventory_item_id),
                "quantity": line.quantity,
                "unitCost": _cost(line.unit_cost),
            }
            for line in receipt.lines
        ],
    }


def issue_to_json(issue: GoodsIssue) -> dict[str, Any]:
    return {
        "id": str(issue.id),
        "reference": issue.reference,
        "timestamp": issue.timestamp.isoformat(),
        "createdBy": str(issue.created_by_id),
        "projectId": _id(issue.project_id),
        "items": [
            {"inventoryItemId": str(line.inventory_item_id), "quantity": line.quantity}
            for line in issue.lines
        ],
    }


# Procurement


def request_to_json(req: PurchaseRequest) -> dict[str, Any]:
    return {
        "id": str(req.id),
        "requestNumber": req.request_number,
        "requestDate": req.request_date.isoformat(),
        "status": req.status.value,
        "urgency": req.urgency.value,
        "reason": req.reason,
        "requestedBy": str(req.requested_by_id),
        "decidedBy": _id(req.decided_by_id),
        "decisionDate": req.decision_date.isoformat() if req.decision_date else None,
        "estimatedTotal": _money(req.estimated_total),
        "items": [
            {
                "inventoryItemId": _id(line.inventory_item_id),
                "description": line.description,
                "quantity": line.quantity,
                "unitPrice": _money(line.unit_price),
            }
            for line in req.lines
        ],
    }


def _priced_line(line) -> dict[str, Any]:
    return {
        "itemType": line.item_type.value,
        "inventoryItemId": _id(line.inventory_item_id),
        "description": line.description,
        "quantity": line.quantity,
        "unitPrice": _money(line.unit_price),
        "taxRate": str(line.tax_rate.normalize()),
        "taxAmount": _money(line.tax_amount),
        "lineTotal": _money(line.line_total),
    }


def order_to_json(order: PurchaseOrder) -> dict[str, Any]:
    return {
        "id": str(order.id),
        "poNumber": order.po_number,
        "supplierId": str(order.supplier_id),
        "status": order.status.value,
        "orderDate": order.order_date.isoformat(),
        "expectedDeliveryDate": (
            order.expected_delivery_date.isoformat() if order.expected_delivery_date else None
        ),
        "paymentTerms": order.payment_terms,
        "deliveryTerms": order.delivery_terms,
        "notes": order.notes,
        "subtotal": _money(order.subtotal),
        "taxAmount": _money(order.tax_amount),
        "totalAmount": _money(order.total_amount),
        "invoiced": order.is_invoiced,
        "invoicedAt": order.invoiced_at.isoformat() if order.invoiced_at else None,
        "createdBy": str(order.created_by_id),
        "items": [_priced_line(line) for line in order.lines],
    }


# Payables


def invoice_to_json(invoice: PurchaseInvoice) -> dict[str, Any]:
    return {
        "id": str(invoice.id),
        "invoiceNumber": invoice.invoice_number,
        "supplierId": str(invoice.supplier_id),
        "projectId": _id(invoice.project_id),
        "assetInstanceId": _id(invoice.asset_instance_id),
        "poId": _id(invoice.po_id),
        "invoiceDate": invoice.invoice_date.isoformat(),
        "dueDate": invoice.due_date.isoformat() if invoice.due_date else None,
        "paymentTerms": invoice.payment_terms,
        "notes": invoice.notes,
        "subtotal": _money(invoice.subtotal),
        "taxAmount": _money(invoice.tax_amount),
        "totalAmount": _money(invoice.total_amount),
        "paidAmount": _money(invoice.paid_amount),
        "creditedAmount": _money(invoice.credited_amount),
        "outstandingAmount": _money(invoice.outstanding),
        "status": invoice.status.value,
        "approvalStatus": invoice.approval_status.value,
        "approvedBy": _id(invoice.approved_by_id),
        "approvedAt": invoice.approved_at.isoformat() if invoice.approved_at else None,
        "items": [_priced_line(line) for line in invoice.lines],
    }


def payment_to_json(payment: Payment) -> dict[str, Any]:
    return {
        "id": str(payment.id),
        "invoiceId": str(payment.invoice_id),
        "amount": _money(payment.amount),
        "paymentDate": payment.payment_date.isoformat(),
        "paymentMethod": payment.payment_method,
        "referenceNumber": payment.reference_number,
        "notes": payment.notes,
        "recordedBy": str(payment.recorded_by_id),
        "files": [
            {
                "id": str(f.id),
                "fileName": f.file_name,
                "originalName": f.original_name,
                "fileSize": f.file_size,
                "mimeType": f.mime_type,
            }
            for f in payment.files
        ],
    }


def credit_note_to_json(note: CreditNote) -> dict[str, Any]:
    return {
        "id": str(note.id),
        "invoiceId": str(note.invoice_id),
        "creditNoteNumber": note.credit_note_number,
        "amount": _money(note.amount),
        "creditNoteDate": note.credit_note_date.isoformat(),
        "reason": note.reason,
    }
