"""
Module: inventory_kernel.models.material
Responsibility: ORM persistence for materials -- the stock-keeping units whose
    available quantity every demand channel draws down.
Architecture position: Kernel > Models.  May import from db/ and domain/values
    only.

Invariants enforced:
    - quantity_available >= 0 (CHECK constraint, backed by the stock ledger's
      conditional UPDATE).
    - min_stock_level >= 0 and max_stock_level > min_stock_level.
    - serial_number is unique and never reassigned.
    - row_version is the optimistic concurrency token.  The ORM checks it on
      every flush (version_id_col) and the stock ledger increments it on
      every adjustment.

Failure modes:
    - IntegrityError on a duplicate serial_number or a violated CHECK.
    - StaleDataError on flush if another transaction bumped row_version
      (translated to ConcurrentModificationError by the services).

Audit relevance:
    Materials are never physically deleted: is_active=False hides them while
    keeping historical BOMs, allocations and stock movements resolvable.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase
from inventory_kernel.db.types import UTCDateTime, enum_column
from inventory_kernel.domain.stock_alerts import is_low_stock
from inventory_kernel.domain.values import MaterialCategory, QualityGrade, UnitOfMeasure


class Material(TrackedBase):
    """
    A stock-keeping unit with a tracked available quantity.

    Contract:
        quantity_available is written ONLY by StockLedger.  Other services
        may change descriptive fields, stock levels and price.

    Guarantees:
        - serial_number is unique (uq_material_serial).
        - is_active=False hides the material from every command.
    """

    __tablename__ = "materials"
    __table_args__ = (
        UniqueConstraint("serial_number", name="uq_material_serial"),
        CheckConstraint("quantity_available >= 0", name="ck_material_quantity_non_negative"),
        CheckConstraint("min_stock_level >= 0", name="ck_material_min_non_negative"),
        CheckConstraint("max_stock_level > min_stock_level", name="ck_material_max_above_min"),
        CheckConstraint("unit_price >= 0", name="ck_material_price_non_negative"),
        Index("idx_material_category", "category"),
        Index("idx_material_active_quantity", "is_active", "quantity_available"),
    )

    # Generated code, e.g. MAT-000042
    serial_number: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    category: Mapped[MaterialCategory] = mapped_column(
        enum_column(MaterialCategory, length=40),
        nullable=False,
    )
    sub_category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    unit: Mapped[UnitOfMeasure] = mapped_column(
        enum_column(UnitOfMeasure, length=10),
        nullable=False,
    )

    quality_grade: Mapped[QualityGrade] = mapped_column(
        enum_column(QualityGrade, length=1),
        default=QualityGrade.A,
        nullable=False,
    )

    # Stock position
    quantity_available: Mapped[int] = mapped_column(default=0, nullable=False)
    min_stock_level: Mapped[int] = mapped_column(default=10, nullable=False)
    max_stock_level: Mapped[int] = mapped_column(nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    # Supplier
    supplier_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    supplier_contact: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Storage location
    warehouse: Mapped[str | None] = mapped_column(String(100), nullable=True)
    rack: Mapped[str | None] = mapped_column(String(50), nullable=True)
    bin: Mapped[str | None] = mapped_column(String(50), nullable=True)

    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Stamped by the stock ledger on every quantity change
    last_updated: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": row_version}

    def __repr__(self) -> str:
        return f"<Material {self.serial_number}: {self.name} qty={self.quantity_available}>"

    @property
    def is_low_stock(self) -> bool:
        return is_low_stock(self.quantity_available, self.min_stock_level)
