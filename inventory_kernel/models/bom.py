"""
Module: inventory_kernel.models.bom
Responsibility: ORM persistence for Bills of Materials, their ordered lines,
    and the append-only revision history.
Architecture position: Kernel > Models.  May import from db/ and domain/values
    only.

Invariants enforced:
    - bom_code is unique.
    - (bom_id, line_no) is unique; lines load ordered by line_no.
    - line quantity > 0, unit_cost >= 0.
    - total_cost is maintained by BOMService as the sum of line totals.
    - row_version is the optimistic concurrency token (version_id_col).

Failure modes:
    - StaleDataError on flush when a concurrent editor won the race
      (translated to ConcurrentModificationError).

Audit relevance:
    BOMRevision rows are never updated or deleted.  Together with
    approved_by/released_by they reconstruct who changed a BOM and when.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, TrackedBase, UUIDString
from inventory_kernel.db.types import UTCDateTime, enum_column
from inventory_kernel.domain.values import BOMStatus, UnitOfMeasure


class BillOfMaterials(TrackedBase):
    """
    A versioned list of materials required by a project.

    Guarantees:
        - status only moves forward (enforced by BOMService via
          domain.bom_lifecycle).
        - Released and obsolete BOMs are never edited.
    """

    __tablename__ = "bills_of_materials"
    __table_args__ = (
        UniqueConstraint("bom_code", name="uq_bom_code"),
        Index("idx_bom_project", "project_id"),
        Index("idx_bom_status", "status"),
    )

    # Generated code, e.g. BOM-000007
    bom_code: Mapped[str] = mapped_column(String(50), nullable=False)

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=False,
    )

    # Dotted major.minor
    version: Mapped[str] = mapped_column(String(20), default="1.0", nullable=False)

    status: Mapped[BOMStatus] = mapped_column(
        enum_column(BOMStatus, length=20),
        default=BOMStatus.DRAFT,
        nullable=False,
    )

    total_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    released_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Set on the BOM a new version was generated from
    superseded_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": row_version}

    # Relationships
    lines: Mapped[list["BOMLine"]] = relationship(
        back_populates="bom",
        cascade="all, delete-orphan",
        order_by="BOMLine.line_no",
        lazy="selectin",
    )

    revisions: Mapped[list["BOMRevision"]] = relationship(
        back_populates="bom",
        cascade="all, delete-orphan",
        order_by="BOMRevision.revision_no",
    )

    def __repr__(self) -> str:
        return f"<BillOfMaterials {self.bom_code} v{self.version} {self.status.value}>"


class BOMLine(Base):
    """One material requirement on a BOM."""

    __tablename__ = "bom_lines"
    __table_args__ = (
        UniqueConstraint("bom_id", "line_no", name="uq_bom_line_no"),
        CheckConstraint("quantity > 0", name="ck_bom_line_quantity_positive"),
        CheckConstraint("unit_cost >= 0", name="ck_bom_line_cost_non_negative"),
        Index("idx_bom_line_material", "material_id"),
    )

    bom_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("bills_of_materials.id"),
        nullable=False,
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    material_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("materials.id"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(nullable=False)

    unit: Mapped[UnitOfMeasure] = mapped_column(
        enum_column(UnitOfMeasure, length=10),
        nullable=False,
    )

    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(nullable=False)

    supplier: Mapped[str | None] = mapped_column(String(200), nullable=True)
    lead_time_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    is_alternative: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # For alternatives: the primary material this line can replace
    parent_material_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("materials.id"),
        nullable=True,
    )

    bom: Mapped["BillOfMaterials"] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<BOMLine {self.line_no}: {self.material_id} x{self.quantity}>"


class BOMRevision(Base):
    """Append-only record of one change to a BOM's lines."""

    __tablename__ = "bom_revisions"
    __table_args__ = (
        UniqueConstraint("bom_id", "revision_no", name="uq_bom_revision_no"),
    )

    bom_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("bills_of_materials.id"),
        nullable=False,
    )

    revision_no: Mapped[int] = mapped_column(Integer, nullable=False)

    # The version that was replaced by this change
    version: Mapped[str] = mapped_column(String(20), nullable=False)

    change_description: Mapped[str] = mapped_column(String(1000), nullable=False)

    changed_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    change_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    bom: Mapped["BillOfMaterials"] = relationship(back_populates="revisions")

    def __repr__(self) -> str:
        return f"<BOMRevision {self.revision_no} v{self.version}>"
