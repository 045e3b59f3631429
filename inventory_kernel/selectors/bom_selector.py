"""
Module: inventory_kernel.selectors.bom_selector
Responsibility: Read-only BOM queries: lookup, listing, revision history and
    cost analysis.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Cost analysis derives every figure from stored line totals; it never
      re-reads current material prices.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.dtos import (
    BOMInfo,
    CategoryCost,
    CostAnalysis,
    CostBreakdownLine,
    RevisionInfo,
)
from inventory_kernel.domain.values import BOMStatus, MaterialCategory, parse_enum
from inventory_kernel.models.bom import BillOfMaterials, BOMRevision
from inventory_kernel.models.material import Material
from inventory_kernel.selectors.base import BaseSelector

_PERCENT = Decimal("0.01")


def cost_percentage(part: Decimal, whole: Decimal) -> Decimal:
    """Share of ``whole`` as a percentage with two decimals (0 when whole is 0)."""
    if not whole:
        return Decimal("0.00")
    return (part * 100 / whole).quantize(_PERCENT, rounding=ROUND_HALF_UP)


class BOMSelector(BaseSelector[BillOfMaterials]):
    """BOM read models."""

    def _load(self, bom_id: UUID, include_inactive: bool) -> BillOfMaterials | None:
        with self._storage_guard("get_bom"):
            bom = self.session.execute(
                select(BillOfMaterials)
                .where(BillOfMaterials.id == bom_id)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        if bom is None or (not bom.is_active and not include_inactive):
            return None
        return bom

    def get(self, bom_id: UUID, include_inactive: bool = False) -> BOMInfo | None:
        bom = self._load(bom_id, include_inactive)
        return BOMInfo.from_model(bom) if bom else None

    def list(
        self,
        status: BOMStatus | str | None = None,
        project_id: UUID | None = None,
        include_inactive: bool = False,
    ) -> list[BOMInfo]:
        """BOMs ordered by code, optionally filtered by status and project."""
        stmt = select(BillOfMaterials)
        if not include_inactive:
            stmt = stmt.where(BillOfMaterials.is_active.is_(True))
        if status is not None:
            stmt = stmt.where(BillOfMaterials.status == parse_enum(BOMStatus, status, "status"))
        if project_id is not None:
            stmt = stmt.where(BillOfMaterials.project_id == project_id)
        with self._storage_guard("list_boms"):
            rows = self.session.execute(stmt.order_by(BillOfMaterials.bom_code)).scalars().all()
        return [BOMInfo.from_model(row) for row in rows]

    def revision_history(self, bom_id: UUID) -> list[RevisionInfo]:
        """Revisions of a BOM, oldest first."""
        with self._storage_guard("bom_revision_history"):
            rows = self.session.execute(
                select(BOMRevision)
                .where(BOMRevision.bom_id == bom_id)
                .order_by(BOMRevision.revision_no)
            ).scalars().all()
        return [RevisionInfo.from_model(row) for row in rows]

    def cost_analysis(self, bom_id: UUID) -> CostAnalysis | None:
        """
        Per-line cost with its share of the BOM total, plus totals per
        material category.
        """
        bom = self._load(bom_id, include_inactive=False)
        if bom is None:
            return None

        material_ids = {line.material_id for line in bom.lines}
        with self._storage_guard("bom_cost_analysis"):
            materials = {
                row.id: row
                for row in self.session.execute(
                    select(Material.id, Material.name, Material.category)
                    .where(Material.id.in_(material_ids))
                ).all()
            }

        lines = []
        category_totals: dict[MaterialCategory, Decimal] = defaultdict(Decimal)
        category_counts: dict[MaterialCategory, int] = defaultdict(int)
        for line in bom.lines:
            material = materials[line.material_id]
            lines.append(
                CostBreakdownLine(
                    line_no=line.line_no,
                    material_id=line.material_id,
                    material_name=material.name,
                    category=material.category,
                    quantity=line.quantity,
                    unit_cost=line.unit_cost,
                    total_cost=line.total_cost,
                    cost_percentage=cost_percentage(line.total_cost, bom.total_cost),
                )
            )
            category_totals[material.category] += line.total_cost
            category_counts[material.category] += 1

        categories = tuple(
            CategoryCost(category=category, total_cost=total, line_count=category_counts[category])
            for category, total in sorted(category_totals.items(), key=lambda kv: kv[0].value)
        )
        return CostAnalysis(
            bom_id=bom.id,
            bom_code=bom.bom_code,
            version=bom.version,
            total_cost=bom.total_cost,
            lines=tuple(lines),
            categories=categories,
        )
