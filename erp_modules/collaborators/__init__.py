"""
Collaborators (``erp_modules.collaborators``).

Narrow write interfaces onto parts of the ERP this core does not own
(projects, asset instances), with database-backed defaults.
"""

from erp_modules.collaborators.interfaces import AssetMaintenanceSink, ProjectCostSink
from erp_modules.collaborators.sinks import (
    DatabaseAssetMaintenanceSink,
    DatabaseProjectCostSink,
)

__all__ = [
    "ProjectCostSink",
    "AssetMaintenanceSink",
    "DatabaseProjectCostSink",
    "DatabaseAssetMaintenanceSink",
]
