"""
Module: inventory_kernel.models.project
Responsibility: Minimal ORM persistence for projects and their material
    allocations.  The project lifecycle itself is owned elsewhere; the kernel
    only needs the row to exist and to own its allocation sub-list.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - 0 <= quantity_used <= quantity_allocated on every allocation row.
    - Allocations are appended by AllocationService after the stock ledger
      has deducted the quantity; they never cache remaining stock.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, TrackedBase, UUIDString
from inventory_kernel.db.types import UTCDateTime


class Project(TrackedBase):
    """A project that BOMs belong to and that materials are allocated to."""

    __tablename__ = "projects"
    __table_args__ = (
        UniqueConstraint("project_code", name="uq_project_code"),
    )

    # Generated code, e.g. PRJ-000003
    project_code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    allocations: Mapped[list["ProjectAllocation"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectAllocation.allocated_at",
    )

    def __repr__(self) -> str:
        return f"<Project {self.project_code}: {self.name}>"


class ProjectAllocation(Base):
    """Material drawn from stock on behalf of a project."""

    __tablename__ = "project_allocations"
    __table_args__ = (
        CheckConstraint("quantity_allocated > 0", name="ck_allocation_quantity_positive"),
        CheckConstraint(
            "quantity_used >= 0 AND quantity_used <= quantity_allocated",
            name="ck_allocation_used_within_allocated",
        ),
        Index("idx_allocation_project", "project_id"),
        Index("idx_allocation_material", "material_id"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=False,
    )

    material_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("materials.id"),
        nullable=False,
    )

    quantity_allocated: Mapped[int] = mapped_column(nullable=False)
    quantity_used: Mapped[int] = mapped_column(default=0, nullable=False)

    allocated_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    allocated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    project: Mapped["Project"] = relationship(back_populates="allocations")

    def __repr__(self) -> str:
        return (
            f"<ProjectAllocation {self.material_id} "
            f"{self.quantity_used}/{self.quantity_allocated}>"
        )
