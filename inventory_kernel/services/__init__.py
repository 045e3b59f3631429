"""Kernel write services and the release orchestrator."""

from inventory_kernel.services.allocation_service import AllocationService
from inventory_kernel.services.bom_service import BOMService
from inventory_kernel.services.demand_service import DemandService
from inventory_kernel.services.material_service import MaterialService
from inventory_kernel.services.release_coordinator import ReleaseCoordinator
from inventory_kernel.services.sequence_service import SequenceService
from inventory_kernel.services.stock_ledger import StockLedger

__all__ = [
    "AllocationService",
    "BOMService",
    "DemandService",
    "MaterialService",
    "ReleaseCoordinator",
    "SequenceService",
    "StockLedger",
]
