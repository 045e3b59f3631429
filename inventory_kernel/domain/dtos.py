"""
DTOs -- Immutable data transfer objects for the inventory kernel.

Responsibility:
    Defines the frozen structures that cross the service boundary: typed
    commands (MaterialCreate, MaterialUpdate, BOMLineSpec,
    AllocationRequest), results (QuantityChange, AllocationResult,
    ReleaseResult), and read models (MaterialInfo, BOMInfo, StockAlert,
    CostAnalysis, ...).

Architecture position:
    Kernel > Domain -- pure, zero I/O.  from_model() class methods are
    boundary converters invoked only from services and selectors.

Invariants enforced:
    - Command quantities are positive ints (bool rejected) at construction.
    - Prices and costs are Decimal, never float.
    - Selectors return these DTOs, never ORM entities, so callers cannot
      mutate persisted state by accident.

Failure modes:
    - InvalidQuantityError on a non-positive or non-integer quantity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from inventory_kernel.domain.values import (
    AlertSeverity,
    BOMStatus,
    MaterialCategory,
    QualityGrade,
    QuantityOperation,
    StockSource,
    UnitOfMeasure,
)
from inventory_kernel.exceptions import InvalidQuantityError

if TYPE_CHECKING:
    from inventory_kernel.models.bom import BillOfMaterials, BOMLine, BOMRevision
    from inventory_kernel.models.maintenance import MaintenanceMaterialUsage, MaintenanceRecord
    from inventory_kernel.models.material import Material
    from inventory_kernel.models.project import Project, ProjectAllocation
    from inventory_kernel.models.stock_movement import StockMovement


def require_positive_int(field_name: str, value: object) -> int:
    """Validate a whole, strictly positive quantity."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuantityError(field_name, value, "must be an integer")
    if value <= 0:
        raise InvalidQuantityError(field_name, value, "must be greater than zero")
    return value


def require_non_negative_int(field_name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuantityError(field_name, value, "must be an integer")
    if value < 0:
        raise InvalidQuantityError(field_name, value, "must not be negative")
    return value


def require_non_negative_money(field_name: str, value: object) -> Decimal:
    if isinstance(value, float) or not isinstance(value, (Decimal, int)) or isinstance(value, bool):
        raise InvalidQuantityError(field_name, value, "must be a Decimal")
    value = Decimal(value)
    if value < 0:
        raise InvalidQuantityError(field_name, value, "must not be negative")
    return value


# =============================================================================
# Materials
# =============================================================================


@dataclass(frozen=True)
class MaterialCreate:
    """Command: register a new material.

    max_stock_level defaults to three times min_stock_level when omitted.
    """

    name: str
    category: MaterialCategory | str
    unit: UnitOfMeasure | str
    quantity_available: int = 0
    min_stock_level: int = 10
    max_stock_level: int | None = None
    unit_price: Decimal = Decimal("0")
    description: str | None = None
    sub_category: str | None = None
    quality_grade: QualityGrade | str = QualityGrade.A
    supplier_name: str | None = None
    supplier_contact: str | None = None
    warehouse: str | None = None
    rack: str | None = None
    bin: str | None = None
    expiry_date: date | None = None


@dataclass(frozen=True)
class MaterialUpdate:
    """Command: change descriptive fields, stock levels or price.

    Fields left as None are not touched.  quantity_available and
    serial_number are deliberately absent.
    """

    name: str | None = None
    description: str | None = None
    category: MaterialCategory | str | None = None
    sub_category: str | None = None
    unit: UnitOfMeasure | str | None = None
    quality_grade: QualityGrade | str | None = None
    min_stock_level: int | None = None
    max_stock_level: int | None = None
    unit_price: Decimal | None = None
    supplier_name: str | None = None
    supplier_contact: str | None = None
    warehouse: str | None = None
    rack: str | None = None
    bin: str | None = None
    expiry_date: date | None = None

    def changed_fields(self) -> dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in self.__dataclass_fields__
            if getattr(self, name) is not None
        }


@dataclass(frozen=True)
class MaterialInfo:
    """Read model of a material."""

    id: UUID
    serial_number: str
    name: str
    category: MaterialCategory
    unit: UnitOfMeasure
    quality_grade: QualityGrade
    quantity_available: int
    min_stock_level: int
    max_stock_level: int
    unit_price: Decimal
    is_active: bool
    row_version: int
    description: str | None = None
    sub_category: str | None = None
    supplier_name: str | None = None
    supplier_contact: str | None = None
    warehouse: str | None = None
    rack: str | None = None
    bin: str | None = None
    expiry_date: date | None = None
    last_updated: datetime | None = None

    @property
    def is_low_stock(self) -> bool:
        return self.quantity_available <= self.min_stock_level

    @property
    def stock_value(self) -> Decimal:
        return self.unit_price * self.quantity_available

    @classmethod
    def from_model(cls, model: Material) -> MaterialInfo:
        return cls(
            id=model.id,
            serial_number=model.serial_number,
            name=model.name,
            category=model.category,
            unit=model.unit,
            quality_grade=model.quality_grade,
            quantity_available=model.quantity_available,
            min_stock_level=model.min_stock_level,
            max_stock_level=model.max_stock_level,
            unit_price=model.unit_price,
            is_active=model.is_active,
            row_version=model.row_version,
            description=model.description,
            sub_category=model.sub_category,
            supplier_name=model.supplier_name,
            supplier_contact=model.supplier_contact,
            warehouse=model.warehouse,
            rack=model.rack,
            bin=model.bin,
            expiry_date=model.expiry_date,
            last_updated=model.last_updated,
        )


@dataclass(frozen=True)
class QuantityChange:
    """Result of a direct quantity edit (add / subtract / set)."""

    material_id: UUID
    operation: QuantityOperation
    previous_quantity: int
    new_quantity: int

    @property
    def delta(self) -> int:
        return self.new_quantity - self.previous_quantity


@dataclass(frozen=True)
class CategoryValue:
    """Stock value rolled up by material category."""

    category: MaterialCategory
    material_count: int
    total_quantity: int
    total_value: Decimal


# =============================================================================
# Stock movements
# =============================================================================


@dataclass(frozen=True)
class StockMovementInfo:
    id: UUID
    material_id: UUID
    delta: int
    quantity_after: int
    reason: str
    source_type: StockSource
    source_id: UUID | None
    actor_id: UUID
    created_at: datetime

    @classmethod
    def from_model(cls, model: StockMovement) -> StockMovementInfo:
        return cls(
            id=model.id,
            material_id=model.material_id,
            delta=model.delta,
            quantity_after=model.quantity_after,
            reason=model.reason,
            source_type=model.source_type,
            source_id=model.source_id,
            actor_id=model.actor_id,
            created_at=model.created_at,
        )


# =============================================================================
# Shortfalls and allocations
# =============================================================================


@dataclass(frozen=True)
class Shortfall:
    """
    One line that cannot be satisfied from current stock.

    ``missing=True`` means the material does not exist or is inactive; in
    that case ``available`` is 0.
    """

    material_id: UUID
    material_name: str
    serial_number: str | None
    required: int
    available: int
    missing: bool = False

    def describe(self) -> str:
        if self.missing:
            return f"material {self.material_id} not found"
        return f"{self.material_name} (required: {self.required}, available: {self.available})"

    def as_dict(self) -> dict[str, Any]:
        return {
            "material_id": str(self.material_id),
            "material_name": self.material_name,
            "serial_number": self.serial_number,
            "required": self.required,
            "available": self.available,
            "missing": self.missing,
        }


@dataclass(frozen=True)
class AllocationRequest:
    """Command line: draw ``quantity`` units of a material.

    ``cost`` only applies to maintenance usage; when omitted it is
    quantity * unit_price at the time of use.
    """

    material_id: UUID
    quantity: int
    cost: Decimal | None = None

    def __post_init__(self) -> None:
        require_positive_int("quantity", self.quantity)
        if self.cost is not None:
            require_non_negative_money("cost", self.cost)


@dataclass(frozen=True)
class AllocatedLine:
    material_id: UUID
    quantity: int
    new_quantity: int


@dataclass(frozen=True)
class AllocationResult:
    """Outcome of a successful allocation or maintenance usage batch."""

    owner_type: StockSource
    owner_id: UUID
    lines: tuple[AllocatedLine, ...]
    record_ids: tuple[UUID, ...]

    @property
    def new_quantities(self) -> dict[UUID, int]:
        """Final quantity per material (last line wins for repeated materials)."""
        return {line.material_id: line.new_quantity for line in self.lines}


@dataclass(frozen=True)
class ProjectAllocationInfo:
    id: UUID
    material_id: UUID
    quantity_allocated: int
    quantity_used: int
    allocated_by_id: UUID
    allocated_at: datetime

    @property
    def quantity_remaining(self) -> int:
        return self.quantity_allocated - self.quantity_used

    @classmethod
    def from_model(cls, model: ProjectAllocation) -> ProjectAllocationInfo:
        return cls(
            id=model.id,
            material_id=model.material_id,
            quantity_allocated=model.quantity_allocated,
            quantity_used=model.quantity_used,
            allocated_by_id=model.allocated_by_id,
            allocated_at=model.allocated_at,
        )


@dataclass(frozen=True)
class ProjectInfo:
    id: UUID
    project_code: str
    name: str
    is_active: bool
    allocations: tuple[ProjectAllocationInfo, ...] = ()

    @classmethod
    def from_model(cls, model: Project) -> ProjectInfo:
        return cls(
            id=model.id,
            project_code=model.project_code,
            name=model.name,
            is_active=model.is_active,
            allocations=tuple(ProjectAllocationInfo.from_model(a) for a in model.allocations),
        )


@dataclass(frozen=True)
class MaintenanceUsageInfo:
    id: UUID
    material_id: UUID
    quantity: int
    cost: Decimal
    used_at: datetime

    @classmethod
    def from_model(cls, model: MaintenanceMaterialUsage) -> MaintenanceUsageInfo:
        return cls(
            id=model.id,
            material_id=model.material_id,
            quantity=model.quantity,
            cost=model.cost,
            used_at=model.used_at,
        )


@dataclass(frozen=True)
class MaintenanceInfo:
    id: UUID
    maintenance_code: str
    machine_no: str
    machine_name: str
    labor_cost: Decimal
    total_cost: Decimal
    is_active: bool
    usages: tuple[MaintenanceUsageInfo, ...] = ()

    @classmethod
    def from_model(cls, model: MaintenanceRecord) -> MaintenanceInfo:
        return cls(
            id=model.id,
            maintenance_code=model.maintenance_code,
            machine_no=model.machine_no,
            machine_name=model.machine_name,
            labor_cost=model.labor_cost,
            total_cost=model.total_cost,
            is_active=model.is_active,
            usages=tuple(MaintenanceUsageInfo.from_model(u) for u in model.usages),
        )


# =============================================================================
# BOMs
# =============================================================================


@dataclass(frozen=True)
class BOMLineSpec:
    """
    Command line for create_bom / update_lines.

    unit, unit_cost and supplier default from the referenced material when
    left as None.
    """

    material_id: UUID
    quantity: int
    unit: UnitOfMeasure | str | None = None
    unit_cost: Decimal | None = None
    supplier: str | None = None
    lead_time_days: int | None = None
    notes: str | None = None
    is_alternative: bool = False
    parent_material_id: UUID | None = None

    def __post_init__(self) -> None:
        require_positive_int("quantity", self.quantity)
        if self.unit_cost is not None:
            require_non_negative_money("unit_cost", self.unit_cost)
        if self.lead_time_days is not None:
            require_non_negative_int("lead_time_days", self.lead_time_days)


@dataclass(frozen=True)
class BOMLineInfo:
    line_no: int
    material_id: UUID
    quantity: int
    unit: UnitOfMeasure
    unit_cost: Decimal
    total_cost: Decimal
    supplier: str | None = None
    lead_time_days: int | None = None
    notes: str | None = None
    is_alternative: bool = False
    parent_material_id: UUID | None = None

    def as_spec(self) -> BOMLineSpec:
        """Turn a persisted line back into a command line (for new versions)."""
        return BOMLineSpec(
            material_id=self.material_id,
            quantity=self.quantity,
            unit=self.unit,
            unit_cost=self.unit_cost,
            supplier=self.supplier,
            lead_time_days=self.lead_time_days,
            notes=self.notes,
            is_alternative=self.is_alternative,
            parent_material_id=self.parent_material_id,
        )

    @classmethod
    def from_model(cls, model: BOMLine) -> BOMLineInfo:
        return cls(
            line_no=model.line_no,
            material_id=model.material_id,
            quantity=model.quantity,
            unit=model.unit,
            unit_cost=model.unit_cost,
            total_cost=model.total_cost,
            supplier=model.supplier,
            lead_time_days=model.lead_time_days,
            notes=model.notes,
            is_alternative=model.is_alternative,
            parent_material_id=model.parent_material_id,
        )


@dataclass(frozen=True)
class RevisionInfo:
    revision_no: int
    version: str
    change_description: str
    changed_by_id: UUID
    change_date: datetime

    @classmethod
    def from_model(cls, model: BOMRevision) -> RevisionInfo:
        return cls(
            revision_no=model.revision_no,
            version=model.version,
            change_description=model.change_description,
            changed_by_id=model.changed_by_id,
            change_date=model.change_date,
        )


@dataclass(frozen=True)
class BOMInfo:
    """Read model of a BOM, lines included."""

    id: UUID
    bom_code: str
    project_id: UUID
    version: str
    status: BOMStatus
    total_cost: Decimal
    is_active: bool
    row_version: int
    created_by_id: UUID
    lines: tuple[BOMLineInfo, ...] = ()
    notes: str | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    released_by_id: UUID | None = None
    released_at: datetime | None = None
    superseded_by_id: UUID | None = None

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @classmethod
    def from_model(cls, model: BillOfMaterials) -> BOMInfo:
        return cls(
            id=model.id,
            bom_code=model.bom_code,
            project_id=model.project_id,
            version=model.version,
            status=model.status,
            total_cost=model.total_cost,
            is_active=model.is_active,
            row_version=model.row_version,
            created_by_id=model.created_by_id,
            lines=tuple(BOMLineInfo.from_model(line) for line in model.lines),
            notes=model.notes,
            approved_by_id=model.approved_by_id,
            approved_at=model.approved_at,
            released_by_id=model.released_by_id,
            released_at=model.released_at,
            superseded_by_id=model.superseded_by_id,
        )


@dataclass(frozen=True)
class CostBreakdownLine:
    line_no: int
    material_id: UUID
    material_name: str
    category: MaterialCategory
    quantity: int
    unit_cost: Decimal
    total_cost: Decimal
    cost_percentage: Decimal


@dataclass(frozen=True)
class CategoryCost:
    category: MaterialCategory
    total_cost: Decimal
    line_count: int


@dataclass(frozen=True)
class CostAnalysis:
    """Per-line and per-category cost view of one BOM."""

    bom_id: UUID
    bom_code: str
    version: str
    total_cost: Decimal
    lines: tuple[CostBreakdownLine, ...] = ()
    categories: tuple[CategoryCost, ...] = ()

    @property
    def material_count(self) -> int:
        return len(self.lines)


# =============================================================================
# Release
# =============================================================================


@dataclass(frozen=True)
class DeductedLine:
    material_id: UUID
    serial_number: str
    material_name: str
    quantity: int
    unit: UnitOfMeasure
    quantity_after: int


@dataclass(frozen=True)
class ReleaseResult:
    """Outcome of a successful BOM release."""

    bom_id: UUID
    bom_code: str
    version: str
    released_by_id: UUID
    released_at: datetime
    lines: tuple[DeductedLine, ...] = field(default_factory=tuple)

    @property
    def total_units(self) -> int:
        return sum(line.quantity for line in self.lines)


# =============================================================================
# Alerts
# =============================================================================


@dataclass(frozen=True)
class StockAlert:
    """A low-stock material with its derived severity."""

    material: MaterialInfo
    severity: AlertSeverity
    shortfall: int
