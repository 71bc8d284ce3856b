"""
SQLAlchemy ORM models for collaborator tables.

Only the columns the payables core writes are mapped: a project's title and
running actual cost, and asset maintenance records created by invoice
approval.  The rest of the project and asset schema is owned elsewhere.

Invariants enforced
-------------------
* ``actual_cost >= 0``.
* Maintenance records are insert-only from this core.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from erp_kernel.db.base import TrackedBase, UUIDString


class ProjectModel(TrackedBase):
    """
    ORM model for projects (vessel jobs).

    Guarantees:
        - actual_cost only grows through ProjectCostSink.add_actual_cost.
    """

    __tablename__ = "projects"

    __table_args__ = (
        CheckConstraint("actual_cost >= 0", name="ck_projects_actual_cost_non_negative"),
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    actual_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    def __repr__(self) -> str:
        return f"<ProjectModel {self.title} actual_cost={self.actual_cost}>"


class AssetMaintenanceRecordModel(TrackedBase):
    """ORM model for maintenance records raised against asset instances."""

    __tablename__ = "asset_maintenance_records"

    __table_args__ = (
        Index("idx_asset_maintenance_records_instance_id", "asset_instance_id"),
    )

    asset_instance_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    maintenance_cost: Mapped[Decimal] = mapped_column(nullable=False)
    maintenance_date: Mapped[date] = mapped_column(Date, nullable=False)
    invoice_ref: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<AssetMaintenanceRecordModel instance={self.asset_instance_id} "
            f"cost={self.maintenance_cost}>"
        )
