"""Read-only query selectors."""

from inventory_kernel.selectors.bom_selector import BOMSelector
from inventory_kernel.selectors.material_selector import MaterialSelector
from inventory_kernel.selectors.stock_alert_selector import StockAlertSelector
from inventory_kernel.selectors.stock_movement_selector import StockMovementSelector

__all__ = [
    "BOMSelector",
    "MaterialSelector",
    "StockAlertSelector",
    "StockMovementSelector",
]
