"""
Payables Module (``erp_modules.payables``).

Responsibility
--------------
Purchase invoices, payment reconciliation (payments and credit notes against
the outstanding balance) and invoice approval with project / asset side
effects.

Invariants enforced
-------------------
* ``paid_amount + credited_amount <= total_amount`` under concurrency.
* Payment status is a read-time projection, never stored.
* Transaction boundary owned by ``PayablesService``.
"""

from erp_modules.payables.models import (
    ApprovalStatus,
    CreditNote,
    CreditNoteRequest,
    CreditNoteResult,
    InvoiceInput,
    InvoiceLine,
    InvoiceLineInput,
    InvoiceStatus,
    LineItemType,
    OrderInvoiceRequest,
    Payment,
    PaymentFile,
    PaymentFileInput,
    PaymentRequest,
    PaymentResult,
    PurchaseInvoice,
    derive_status,
)
from erp_modules.payables.service import PayablesService
from erp_modules.payables.workflows import INVOICE_APPROVAL_WORKFLOW

__all__ = [
    "PayablesService",
    "ApprovalStatus",
    "CreditNote",
    "CreditNoteRequest",
    "CreditNoteResult",
    "InvoiceInput",
    "InvoiceLine",
    "InvoiceLineInput",
    "InvoiceStatus",
    "LineItemType",
    "OrderInvoiceRequest",
    "Payment",
    "PaymentFile",
    "PaymentFileInput",
    "PaymentRequest",
    "PaymentResult",
    "PurchaseInvoice",
    "derive_status",
    "INVOICE_APPROVAL_WORKFLOW",
]
