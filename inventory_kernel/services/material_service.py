"""
MaterialService -- material registration, typed updates and soft delete.

Responsibility:
    Creates materials with generated serial numbers, applies typed
    descriptive/stock-level/price updates under an optimistic lock, routes
    add/subtract/set quantity edits through the StockLedger, and
    deactivates materials.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes, never commits.

Invariants enforced:
    - min_stock_level >= 0 and max_stock_level > min_stock_level (max
      defaults to three times min when omitted).
    - quantity_available and serial_number are never touched by
      update_material.  Quantity changes go through StockLedger only.
    - Materials are never physically deleted.

Failure modes:
    - InvalidStockLevelsError, InvalidEnumValueError, InvalidQuantityError.
    - MaterialNotFoundError: missing or inactive material.
    - ConcurrentModificationError: stale expected_row_version, or a
      concurrent writer bumped row_version before flush.
    - UnauthorizedActorError: role not allowed for the command.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import (
    MaterialCreate,
    MaterialInfo,
    MaterialUpdate,
    QuantityChange,
    require_non_negative_int,
    require_non_negative_money,
    require_positive_int,
)
from inventory_kernel.domain.roles import RolePolicy, require_role
from inventory_kernel.domain.values import (
    Actor,
    MaterialCategory,
    QualityGrade,
    QuantityOperation,
    UnitOfMeasure,
    parse_enum,
)
from inventory_kernel.exceptions import InvalidStockLevelsError, MaterialNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.material import Material
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.sequence_service import SequenceService
from inventory_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.material")

MAX_STOCK_MULTIPLIER = 3

_ENUM_FIELDS = {
    "category": MaterialCategory,
    "unit": UnitOfMeasure,
    "quality_grade": QualityGrade,
}


def resolve_stock_levels(min_stock_level: int, max_stock_level: int | None) -> tuple[int, int]:
    """
    Validate stock levels, defaulting max to three times min.

    Raises:
        InvalidStockLevelsError: negative levels or max <= min.
    """
    if isinstance(min_stock_level, bool) or not isinstance(min_stock_level, int) or min_stock_level < 0:
        raise InvalidStockLevelsError(min_stock_level, max_stock_level)
    if max_stock_level is None:
        max_stock_level = min_stock_level * MAX_STOCK_MULTIPLIER
    if isinstance(max_stock_level, bool) or not isinstance(max_stock_level, int):
        raise InvalidStockLevelsError(min_stock_level, max_stock_level)
    if max_stock_level <= min_stock_level:
        raise InvalidStockLevelsError(min_stock_level, max_stock_level)
    return min_stock_level, max_stock_level


class MaterialService(BaseService[Material]):
    """
    Service for the material master record.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT search or page materials (MaterialSelector does).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        roles: RolePolicy | None = None,
    ):
        super().__init__(session, clock, roles)
        self._sequences = SequenceService(session)
        self._ledger = StockLedger(session, self.clock, self.roles)

    def _load(self, material_id: UUID) -> Material:
        material = self.session.execute(
            select(Material).where(Material.id == material_id)
        ).scalar_one_or_none()
        if material is None or not material.is_active:
            raise MaterialNotFoundError(str(material_id))
        return material

    def create_material(self, command: MaterialCreate, actor: Actor) -> MaterialInfo:
        """
        Register a new material.

        The opening quantity is written directly on INSERT; when non-zero it
        is also recorded as a stock movement so the movement stream sums to
        the current quantity.
        """
        require_role(actor, self.roles.material_editors, "create material")

        category = parse_enum(MaterialCategory, command.category, "category")
        unit = parse_enum(UnitOfMeasure, command.unit, "unit")
        grade = parse_enum(QualityGrade, command.quality_grade, "quality_grade")
        min_level, max_level = resolve_stock_levels(command.min_stock_level, command.max_stock_level)
        opening = require_non_negative_int("quantity_available", command.quantity_available)
        price = require_non_negative_money("unit_price", command.unit_price)

        now = self.clock.now()
        material = Material(
            serial_number=self._sequences.next_code(SequenceService.MATERIAL),
            name=command.name,
            description=command.description,
            category=category,
            sub_category=command.sub_category,
            unit=unit,
            quality_grade=grade,
            quantity_available=opening,
            min_stock_level=min_level,
            max_stock_level=max_level,
            unit_price=price,
            supplier_name=command.supplier_name,
            supplier_contact=command.supplier_contact,
            warehouse=command.warehouse,
            rack=command.rack,
            bin=command.bin,
            expiry_date=command.expiry_date,
            last_updated=now,
            created_by_id=actor.id,
        )
        self.session.add(material)
        self.session.flush()

        self._ledger.record_opening_balance(material.id, opening, actor)

        logger.info(
            "material_created",
            extra={
                "material_id": str(material.id),
                "serial_number": material.serial_number,
                "category": category.value,
                "quantity_available": opening,
            },
        )
        return MaterialInfo.from_model(material)

    def update_material(
        self,
        material_id: UUID,
        changes: MaterialUpdate,
        actor: Actor,
        expected_row_version: int | None = None,
    ) -> MaterialInfo:
        """
        Apply a typed update.

        Args:
            expected_row_version: When given, the update is rejected unless
                the material is still at this version.
        """
        require_role(actor, self.roles.material_editors, "update material")
        material = self._load(material_id)
        self._check_row_version("Material", material, expected_row_version)

        fields = changes.changed_fields()
        if not fields:
            return MaterialInfo.from_model(material)

        for name, enum_cls in _ENUM_FIELDS.items():
            if name in fields:
                fields[name] = parse_enum(enum_cls, fields[name], name)

        if "min_stock_level" in fields or "max_stock_level" in fields:
            new_min = fields.get("min_stock_level", material.min_stock_level)
            new_max = fields.get("max_stock_level")
            if new_max is None:
                # Keep the stored max unless min now reaches it
                new_max = material.max_stock_level
                if new_max <= new_min:
                    new_max = None
            fields["min_stock_level"], fields["max_stock_level"] = resolve_stock_levels(new_min, new_max)

        if "unit_price" in fields:
            fields["unit_price"] = require_non_negative_money("unit_price", fields["unit_price"])

        for name, value in fields.items():
            setattr(material, name, value)
        material.updated_by_id = actor.id

        with self._flush_guard("Material", material_id):
            self.session.flush()

        logger.info(
            "material_updated",
            extra={
                "material_id": str(material_id),
                "fields": sorted(fields),
                "row_version": material.row_version,
            },
        )
        return MaterialInfo.from_model(material)

    def change_quantity(
        self,
        material_id: UUID,
        operation: QuantityOperation | str,
        amount: int,
        actor: Actor,
        reason: str | None = None,
    ) -> QuantityChange:
        """
        Direct quantity edit: add, subtract or set.

        add/subtract go through the ledger's conditional UPDATE; set is a
        compare-and-swap against the quantity read here.
        """
        require_role(actor, self.roles.stock_operators, "change material quantity")
        operation = parse_enum(QuantityOperation, operation, "operation")
        reason = reason or f"quantity {operation.value}"

        if operation == QuantityOperation.SET:
            require_non_negative_int("amount", amount)
            previous = self._ledger.current_quantity(material_id)
            new_quantity = self._ledger.set_quantity(
                material_id, amount, actor, expected_quantity=previous, reason=reason,
            )
        else:
            require_positive_int("amount", amount)
            delta = amount if operation == QuantityOperation.ADD else -amount
            new_quantity = self._ledger.adjust(material_id, delta, actor, reason=reason)
            previous = new_quantity - delta

        return QuantityChange(
            material_id=material_id,
            operation=operation,
            previous_quantity=previous,
            new_quantity=new_quantity,
        )

    def deactivate(
        self,
        material_id: UUID,
        actor: Actor,
        expected_row_version: int | None = None,
    ) -> MaterialInfo:
        """Soft delete.  Historical references stay resolvable."""
        require_role(actor, self.roles.deleters, "deactivate material")
        material = self._load(material_id)
        self._check_row_version("Material", material, expected_row_version)

        material.is_active = False
        material.updated_by_id = actor.id
        with self._flush_guard("Material", material_id):
            self.session.flush()

        logger.info(
            "material_deactivated",
            extra={"material_id": str(material_id), "serial_number": material.serial_number},
        )
        return MaterialInfo.from_model(material)
