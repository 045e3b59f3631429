"""
Module: inventory_kernel.selectors.material_selector
Responsibility: Read-only material queries: lookup, listing, category
    vocabulary and stock value by category.
Architecture position: Kernel > Selectors.  Read-only.
"""

from collections import defaultdict
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from inventory_kernel.db.types import round_money
from inventory_kernel.domain.dtos import CategoryValue, MaterialInfo
from inventory_kernel.domain.values import MaterialCategory, parse_enum
from inventory_kernel.models.material import Material
from inventory_kernel.selectors.base import BaseSelector


class MaterialSelector(BaseSelector[Material]):
    """Material read models."""

    def get(self, material_id: UUID, include_inactive: bool = False) -> MaterialInfo | None:
        with self._storage_guard("get_material"):
            material = self.session.execute(
                select(Material)
                .where(Material.id == material_id)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        if material is None or (not material.is_active and not include_inactive):
            return None
        return MaterialInfo.from_model(material)

    def get_by_serial(self, serial_number: str) -> MaterialInfo | None:
        with self._storage_guard("get_material_by_serial"):
            material = self.session.execute(
                select(Material).where(
                    Material.serial_number == serial_number,
                    Material.is_active.is_(True),
                )
            ).scalar_one_or_none()
        return MaterialInfo.from_model(material) if material else None

    def list_active(
        self,
        category: MaterialCategory | str | None = None,
        sub_category: str | None = None,
    ) -> list[MaterialInfo]:
        """Active materials, ordered by serial number."""
        stmt = select(Material).where(Material.is_active.is_(True))
        if category is not None:
            stmt = stmt.where(Material.category == parse_enum(MaterialCategory, category, "category"))
        if sub_category is not None:
            stmt = stmt.where(Material.sub_category == sub_category)
        with self._storage_guard("list_materials"):
            rows = self.session.execute(stmt.order_by(Material.serial_number)).scalars().all()
        return [MaterialInfo.from_model(row) for row in rows]

    def categories(self) -> dict[MaterialCategory, list[str]]:
        """Categories in use by active materials, with their sub-categories."""
        with self._storage_guard("material_categories"):
            rows = self.session.execute(
                select(Material.category, Material.sub_category)
                .where(Material.is_active.is_(True))
                .distinct()
            ).all()
        result: dict[MaterialCategory, set[str]] = {}
        for category, sub_category in rows:
            subs = result.setdefault(category, set())
            if sub_category:
                subs.add(sub_category)
        return {category: sorted(subs) for category, subs in sorted(result.items(), key=lambda kv: kv[0].value)}

    def inventory_value_by_category(self) -> list[CategoryValue]:
        """Stock value (quantity * unit price) of active materials per category."""
        with self._storage_guard("inventory_value_by_category"):
            rows = self.session.execute(
                select(Material.category, Material.quantity_available, Material.unit_price)
                .where(Material.is_active.is_(True))
            ).all()

        counts: dict[MaterialCategory, int] = defaultdict(int)
        quantities: dict[MaterialCategory, int] = defaultdict(int)
        values: dict[MaterialCategory, Decimal] = defaultdict(Decimal)
        for category, quantity, unit_price in rows:
            counts[category] += 1
            quantities[category] += quantity
            values[category] += unit_price * quantity

        return [
            CategoryValue(
                category=category,
                material_count=counts[category],
                total_quantity=quantities[category],
                total_value=round_money(values[category]),
            )
            for category in sorted(counts, key=lambda c: c.value)
        ]
