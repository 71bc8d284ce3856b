"""
Database-backed collaborator sinks.

Default ``ProjectCostSink`` / ``AssetMaintenanceSink`` implementations that
write to the ``projects`` and ``asset_maintenance_records`` tables inside
the caller's session.  They flush but never commit.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.domain.actors import SYSTEM_ACTOR_ID
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.exceptions import ProjectNotFoundError
from erp_kernel.logging_config import get_logger
from erp_modules.collaborators.orm import AssetMaintenanceRecordModel, ProjectModel

logger = get_logger("modules.collaborators.sinks")


class DatabaseProjectCostSink:
    """Adds approved invoice totals to ``projects.actual_cost``."""

    def __init__(self, session: Session, actor_id: UUID = SYSTEM_ACTOR_ID):
        self._session = session
        self._actor_id = actor_id

    def add_actual_cost(self, project_id: UUID, amount: Decimal) -> None:
        project = self._session.execute(
            select(ProjectModel)
            .where(ProjectModel.id == project_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if project is None:
            raise ProjectNotFoundError(str(project_id))

        before = project.actual_cost
        project.actual_cost = before + amount
        project.updated_by_id = self._actor_id
        self._session.flush()

        logger.info("project_actual_cost_added", extra={
            "project_id": str(project_id),
            "amount": str(amount),
            "actual_cost_before": str(before),
            "actual_cost_after": str(project.actual_cost),
        })


class DatabaseAssetMaintenanceSink:
    """Creates an ``asset_maintenance_records`` row per approved asset invoice."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._actor_id = actor_id

    def create_maintenance_record(
        self,
        asset_instance_id: UUID,
        cost: Decimal,
        invoice_ref: str,
    ) -> UUID:
        record = AssetMaintenanceRecordModel(
            id=uuid4(),
            asset_instance_id=asset_instance_id,
            maintenance_cost=cost,
            maintenance_date=self._clock.today(),
            invoice_ref=invoice_ref,
            description=f"Maintenance from purchase invoice {invoice_ref}",
            created_by_id=self._actor_id,
        )
        self._session.add(record)
        self._session.flush()

        logger.info("asset_maintenance_recorded", extra={
            "asset_instance_id": str(asset_instance_id),
            "maintenance_record_id": str(record.id),
            "cost": str(cost),
            "invoice_ref": invoice_ref,
        })
        return record.id
