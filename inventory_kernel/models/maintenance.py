"""
Module: inventory_kernel.models.maintenance
Responsibility: Minimal ORM persistence for maintenance records and the
    materials consumed by them.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - total_cost == labor_cost + sum(usage.cost), recomputed by
      AllocationService whenever a usage row is appended.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, TrackedBase, UUIDString
from inventory_kernel.db.types import UTCDateTime


class MaintenanceRecord(TrackedBase):
    """A maintenance job on a machine that consumes materials."""

    __tablename__ = "maintenance_records"
    __table_args__ = (
        UniqueConstraint("maintenance_code", name="uq_maintenance_code"),
        CheckConstraint("labor_cost >= 0", name="ck_maintenance_labor_non_negative"),
    )

    # Generated code, e.g. MAINT-000012
    maintenance_code: Mapped[str] = mapped_column(String(50), nullable=False)

    machine_no: Mapped[str] = mapped_column(String(100), nullable=False)
    machine_name: Mapped[str] = mapped_column(String(200), nullable=False)

    labor_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    usages: Mapped[list["MaintenanceMaterialUsage"]] = relationship(
        back_populates="maintenance",
        cascade="all, delete-orphan",
        order_by="MaintenanceMaterialUsage.used_at",
    )

    def __repr__(self) -> str:
        return f"<MaintenanceRecord {self.maintenance_code}: {self.machine_no}>"


class MaintenanceMaterialUsage(Base):
    """Material consumed by a maintenance job."""

    __tablename__ = "maintenance_material_usages"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_usage_quantity_positive"),
        CheckConstraint("cost >= 0", name="ck_usage_cost_non_negative"),
        Index("idx_usage_maintenance", "maintenance_id"),
    )

    maintenance_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("maintenance_records.id"),
        nullable=False,
    )

    material_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("materials.id"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(nullable=False)
    cost: Mapped[Decimal] = mapped_column(nullable=False)

    used_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    used_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    maintenance: Mapped["MaintenanceRecord"] = relationship(back_populates="usages")
