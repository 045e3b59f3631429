"""Read access to the stock movement stream."""

from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.dtos import StockMovementInfo
from inventory_kernel.domain.values import StockSource, parse_enum
from inventory_kernel.models.stock_movement import StockMovement
from inventory_kernel.selectors.base import BaseSelector


class StockMovementSelector(BaseSelector[StockMovement]):

    def for_material(self, material_id: UUID, limit: int | None = None) -> list[StockMovementInfo]:
        """Movements of one material, oldest first."""
        stmt = (
            select(StockMovement)
            .where(StockMovement.material_id == material_id)
            .order_by(StockMovement.created_at)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._storage_guard("stock_movements_for_material"):
            rows = self.session.execute(stmt).scalars().all()
        return [StockMovementInfo.from_model(row) for row in rows]

    def for_source(self, source_type: StockSource | str, source_id: UUID) -> list[StockMovementInfo]:
        """Movements caused by one document (project, maintenance job, BOM)."""
        source_type = parse_enum(StockSource, source_type, "source_type")
        with self._storage_guard("stock_movements_for_source"):
            rows = self.session.execute(
                select(StockMovement)
                .where(
                    StockMovement.source_type == source_type,
                    StockMovement.source_id == source_id,
                )
                .order_by(StockMovement.created_at)
            ).scalars().all()
        return [StockMovementInfo.from_model(row) for row in rows]
