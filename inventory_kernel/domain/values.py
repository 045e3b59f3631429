"""
Values -- Closed enumerations and the acting-user value object.

Responsibility:
    Defines every closed vocabulary the kernel accepts (material category,
    unit of measure, quality grade, BOM status, actor role, stock movement
    source, quantity operation, alert severity) plus the ``Actor`` identity
    handed in by the external auth layer.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.

Invariants enforced:
    - Enum-typed inputs are parsed through ``parse_enum``; an unknown value
      raises InvalidEnumValueError naming the allowed members.
    - ``Actor.role`` is always an ``ActorRole`` member.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TypeVar
from uuid import UUID

from inventory_kernel.exceptions import InvalidEnumValueError


class MaterialCategory(str, Enum):
    """Material classification."""

    ELECTRONIC_COMPONENTS = "Electronic Components"
    MECHANICAL_PARTS = "Mechanical Parts"
    RAW_MATERIALS = "Raw Materials"
    PACKAGING_MATERIALS = "Packaging Materials"
    TOOLS_AND_EQUIPMENT = "Tools & Equipment"
    TESTING_EQUIPMENT = "Testing Equipment"
    CONSUMABLES = "Consumables"
    HARDWARE = "Hardware"
    SOFTWARE_COMPONENTS = "Software Components"
    SAFETY_EQUIPMENT = "Safety Equipment"


class UnitOfMeasure(str, Enum):
    """Unit a material is counted in."""

    PCS = "pcs"
    KG = "kg"
    GM = "gm"
    MT = "mt"
    LTR = "ltr"
    ML = "ml"
    FT = "ft"
    MT2 = "mt2"
    SET = "set"
    BOX = "box"
    ROLL = "roll"
    SHEET = "sheet"


class QualityGrade(str, Enum):
    A = "A"
    B = "B"
    C = "C"


class BOMStatus(str, Enum):
    """BOM lifecycle states."""

    DRAFT = "draft"
    APPROVED = "approved"
    RELEASED = "released"
    OBSOLETE = "obsolete"


class ActorRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    OPERATOR = "operator"
    VIEWER = "viewer"


class StockSource(str, Enum):
    """What caused a stock movement."""

    MANUAL = "manual"
    ALLOCATION = "allocation"
    MAINTENANCE = "maintenance"
    BOM_RELEASE = "bom_release"


class QuantityOperation(str, Enum):
    """Direct quantity edit operations."""

    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"


class AlertSeverity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: type[E], value: object, field: str) -> E:
    """
    Coerce ``value`` to a member of ``enum_cls``.

    Accepts a member or its value.  Raises InvalidEnumValueError otherwise.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidEnumValueError(
            field, value, (member.value for member in enum_cls)
        ) from None


@dataclass(frozen=True)
class Actor:
    """
    An already-authenticated user, as supplied by the auth layer.

    The kernel trusts this value and performs only role-shape checks.
    """

    id: UUID
    role: ActorRole

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", parse_enum(ActorRole, self.role, "role"))

    def has_role(self, *roles: ActorRole) -> bool:
        return self.role in roles
