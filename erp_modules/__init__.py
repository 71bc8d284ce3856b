"""
ERP Modules.

Document-level orchestration over the kernel.  Each module contains:
- Domain models (frozen dataclasses and validated payload types)
- ORM models (the tables the module owns)
- Workflows (state machines for approvals), where the documents have one
- A service that owns the transaction boundary

Modules:
- Inventory: item master, stock ledger, goods receipts and issues
- Procurement: purchase requests and their approval
- Payables: purchase invoices, payments, credit notes, invoice approval
- Collaborators: project cost and asset maintenance sinks
"""
