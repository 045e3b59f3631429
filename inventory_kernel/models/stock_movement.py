"""
Module: inventory_kernel.models.stock_movement
Responsibility: Append-only record of every successful stock adjustment.
Architecture position: Kernel > Models.  May import from db/ and domain/values
    only.

Invariants enforced:
    - Written only by StockLedger, in the same transaction as the quantity
      change it describes.  A rolled-back adjustment leaves no movement.
    - quantity_after >= 0.

Audit relevance:
    Summing delta per material reproduces quantity_available from the
    opening balance.  Downstream reporting and notification layers consume
    this table as the deduction event stream.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString
from inventory_kernel.db.types import UTCDateTime, enum_column
from inventory_kernel.domain.values import StockSource


class StockMovement(Base):
    """One applied change to a material's available quantity."""

    __tablename__ = "stock_movements"
    __table_args__ = (
        CheckConstraint("delta <> 0", name="ck_movement_delta_non_zero"),
        CheckConstraint("quantity_after >= 0", name="ck_movement_after_non_negative"),
        Index("idx_movement_material", "material_id", "created_at"),
        Index("idx_movement_source", "source_type", "source_id"),
    )

    material_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("materials.id"),
        nullable=False,
    )

    delta: Mapped[int] = mapped_column(nullable=False)
    quantity_after: Mapped[int] = mapped_column(nullable=False)

    reason: Mapped[str] = mapped_column(String(500), nullable=False)

    source_type: Mapped[StockSource] = mapped_column(
        enum_column(StockSource, length=20),
        nullable=False,
    )
    source_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<StockMovement {self.material_id} {self.delta:+d} -> {self.quantity_after}>"
