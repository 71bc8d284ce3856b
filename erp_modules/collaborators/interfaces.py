"""
Collaborator interfaces called by invoice approval.

Projects and asset instances belong to other parts of the ERP.  The payables
service only needs two narrow write operations on them, expressed here as
``Protocol`` classes so tests and other deployments can plug in their own.

Implementations must only flush: the approving service commits the invoice
state change and the side effect together.
"""

from decimal import Decimal
from typing import Protocol, runtime_checkable
from uuid import UUID


@runtime_checkable
class ProjectCostSink(Protocol):
    """Receives actual cost booked against a project."""

    def add_actual_cost(self, project_id: UUID, amount: Decimal) -> None:
        """Add ``amount`` to the project's actual cost."""
        ...


@runtime_checkable
class AssetMaintenanceSink(Protocol):
    """Receives maintenance cost booked against an asset instance."""

    def create_maintenance_record(
        self,
        asset_instance_id: UUID,
        cost: Decimal,
        invoice_ref: str,
    ) -> UUID:
        """Record a maintenance event and return its id."""
        ...
