"""
Module: inventory_kernel.selectors.stock_alert_selector
Responsibility: The low-stock read path.  Flags active materials whose
    quantity_available is at or below min_stock_level, for the dashboard and
    notification layers.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - low_stock() is a generator that runs a fresh query on each call.
      Nothing is cached between calls, so it is always restartable and
      always reflects committed ledger state.
    - Never mutates anything; safe to run concurrently with every command.

Failure modes:
    - StorageUnavailableError only.  There are no business-rule failures.
"""

from typing import Iterator

from sqlalchemy import func, select

from inventory_kernel.domain.dtos import MaterialInfo, StockAlert
from inventory_kernel.domain.stock_alerts import classify_severity, shortfall_to_minimum
from inventory_kernel.models.material import Material
from inventory_kernel.selectors.base import BaseSelector


class StockAlertSelector(BaseSelector[Material]):
    """Low-stock queries."""

    @staticmethod
    def _low_stock_criteria():
        return (
            Material.is_active.is_(True),
            Material.quantity_available <= Material.min_stock_level,
        )

    def low_stock(self) -> Iterator[MaterialInfo]:
        """
        Yield every active material with quantity_available <= min_stock_level,
        ordered by serial number.
        """
        with self._storage_guard("low_stock"):
            materials = self.session.execute(
                select(Material)
                .where(*self._low_stock_criteria())
                .order_by(Material.serial_number)
                .execution_options(populate_existing=True)
            ).scalars().all()
        for material in materials:
            yield MaterialInfo.from_model(material)

    def alerts(self) -> Iterator[StockAlert]:
        """low_stock() with a severity and the units needed to reach minimum."""
        for material in self.low_stock():
            yield StockAlert(
                material=material,
                severity=classify_severity(material.quantity_available, material.min_stock_level),
                shortfall=shortfall_to_minimum(material.quantity_available, material.min_stock_level),
            )

    def count_low_stock(self) -> int:
        with self._storage_guard("count_low_stock"):
            return self.session.execute(
                select(func.count(Material.id)).where(*self._low_stock_criteria())
            ).scalar_one()
