"""ORM models for the inventory kernel."""

from inventory_kernel.models.bom import BillOfMaterials, BOMLine, BOMRevision
from inventory_kernel.models.maintenance import MaintenanceMaterialUsage, MaintenanceRecord
from inventory_kernel.models.material import Material
from inventory_kernel.models.project import Project, ProjectAllocation
from inventory_kernel.models.stock_movement import StockMovement

__all__ = [
    "Material",
    "BillOfMaterials",
    "BOMLine",
    "BOMRevision",
    "Project",
    "ProjectAllocation",
    "MaintenanceRecord",
    "MaintenanceMaterialUsage",
    "StockMovement",
]
