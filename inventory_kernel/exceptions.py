"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock and BOM operations must fail precisely. Callers (the REST layer, batch
jobs, tests) decide what to do by exception TYPE and CODE, never by parsing
message strings:

    try:
        coordinator.release(bom_id, actor)
    except InsufficientMaterialsError as e:
        return {"error": e.code, "shortfalls": [s.as_dict() for s in e.shortfalls]}
    except ConcurrentModificationError:
        # Retry the whole logical operation -- the core never retries itself
        ...

Every exception:
  1. Has a typed class (catch by type, not message)
  2. Has a static ``code`` attribute (machine-readable, API-safe)
  3. Carries structured data as attributes (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from InventoryKernelError:

    InventoryKernelError (base)
    |
    +-- NotFoundError
    |   +-- MaterialNotFoundError
    |   +-- BOMNotFoundError
    |   +-- ProjectNotFoundError
    |   +-- MaintenanceRecordNotFoundError
    |   +-- AllocationNotFoundError
    |
    +-- StockError
    |   +-- InsufficientStockError          (single material)
    |       +-- InsufficientMaterialsError  (batch, full shortfall list)
    |
    +-- LifecycleError
    |   +-- InvalidStateTransitionError
    |       +-- NotApprovedError
    |       +-- AlreadyReleasedError
    |       +-- BOMReleasedError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- InvalidStockLevelsError
    |   +-- InvalidEnumValueError
    |   +-- InvalidVersionError
    |   +-- EmptyBOMError
    |
    +-- AuthorizationError
    |   +-- UnauthorizedActorError
    |
    +-- InfrastructureError
        +-- StorageUnavailableError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | MATERIAL_NOT_FOUND          | Material missing or inactive
                | BOM_NOT_FOUND               | BOM missing or soft-deleted
                | PROJECT_NOT_FOUND           | Project missing or inactive
                | MAINTENANCE_RECORD_NOT_FOUND| Maintenance record missing or inactive
                | ALLOCATION_NOT_FOUND        | Project allocation row missing
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK          | Adjustment would drive stock negative
                | INSUFFICIENT_MATERIALS      | Batch validation found shortfalls
----------------|-----------------------------|-----------------------------------------
Lifecycle       | INVALID_STATE_TRANSITION    | BOM event not valid from current status
                | BOM_NOT_APPROVED            | Release of a Draft BOM
                | BOM_ALREADY_RELEASED        | Release of a Released/Obsolete BOM
                | BOM_RELEASED                | Edit/delete of a Released BOM
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONCURRENT_MODIFICATION     | Optimistic token / CAS lost a race
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_QUANTITY            | Non-integer, zero or negative quantity
                | INVALID_STOCK_LEVELS        | Negative levels or max <= min
                | INVALID_ENUM_VALUE          | Value outside a closed enumeration
                | INVALID_VERSION             | BOM version not "major.minor"
                | EMPTY_BOM                   | BOM created/edited with no lines
----------------|-----------------------------|-----------------------------------------
Authorization   | UNAUTHORIZED_ACTOR          | Actor role lacks the required shape
----------------|-----------------------------|-----------------------------------------
Infrastructure  | STORAGE_UNAVAILABLE         | Database timeout / connection failure

===============================================================================
DESIGN DECISIONS
===============================================================================

1. WHY INHERIT FROM Exception (not ValueError, etc.)?
   Domain exceptions should be catchable as a group without mixing them
   with programming errors.

2. WHY A SEPARATE BATCH ERROR?
   Allocation and release always report the COMPLETE list of per-line
   failures in one response.  InsufficientStockError describes one
   material; InsufficientMaterialsError carries every shortfall.

3. WHY IS ConcurrentModificationError NEVER RETRIED HERE?
   A lost race invalidates the caller's snapshot.  Only the caller can
   decide whether re-running the whole logical operation is still correct.

===============================================================================
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from inventory_kernel.domain.dtos import Shortfall


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(InventoryKernelError):
    """Base exception for missing or inactive records."""

    code: str = "NOT_FOUND"


class MaterialNotFoundError(NotFoundError):
    """Material does not exist or has been deactivated."""

    code: str = "MATERIAL_NOT_FOUND"

    def __init__(self, material_id: str):
        self.material_id = material_id
        super().__init__(f"Material not found: {material_id}")


class BOMNotFoundError(NotFoundError):
    """BOM does not exist or has been soft-deleted."""

    code: str = "BOM_NOT_FOUND"

    def __init__(self, bom_id: str):
        self.bom_id = bom_id
        super().__init__(f"BOM not found: {bom_id}")


class ProjectNotFoundError(NotFoundError):
    """Project does not exist or is inactive."""

    code: str = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class MaintenanceRecordNotFoundError(NotFoundError):
    """Maintenance record does not exist or is inactive."""

    code: str = "MAINTENANCE_RECORD_NOT_FOUND"

    def __init__(self, maintenance_id: str):
        self.maintenance_id = maintenance_id
        super().__init__(f"Maintenance record not found: {maintenance_id}")


class AllocationNotFoundError(NotFoundError):
    """Project allocation row does not exist on the given project."""

    code: str = "ALLOCATION_NOT_FOUND"

    def __init__(self, project_id: str, allocation_id: str):
        self.project_id = project_id
        self.allocation_id = allocation_id
        super().__init__(
            f"Allocation {allocation_id} not found on project {project_id}"
        )


# Stock exceptions


class StockError(InventoryKernelError):
    """Base exception for quantity guard failures."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """
    A single adjustment would drive a material's stock below zero.

    Raised by the stock ledger's compare-and-swap; nothing was applied.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        material_id: str,
        material_name: str,
        required: int,
        available: int,
    ):
        self.material_id = material_id
        self.material_name = material_name
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient stock for {material_name} ({material_id}): "
            f"required {required}, available {available}"
        )


class InsufficientMaterialsError(InsufficientStockError):
    """
    Batch validation found one or more lines that cannot be satisfied.

    ``shortfalls`` holds EVERY failing line, not just the first one.
    ``material_id``, ``material_name``, ``required`` and ``available``
    describe the first shortfall, so callers catching InsufficientStockError
    see a batch rejection the same way as a single-material one.
    No material was mutated.
    """

    code: str = "INSUFFICIENT_MATERIALS"

    def __init__(self, shortfalls: Iterable[Shortfall]):
        self.shortfalls = list(shortfalls)
        if not self.shortfalls:
            raise ValueError("InsufficientMaterialsError needs at least one shortfall")
        first = self.shortfalls[0]
        self.material_id = str(first.material_id)
        self.material_name = first.material_name
        self.required = first.required
        self.available = first.available
        details = "; ".join(s.describe() for s in self.shortfalls)
        StockError.__init__(self, f"Insufficient materials in inventory: {details}")


# Lifecycle exceptions


class LifecycleError(InventoryKernelError):
    """Base exception for BOM lifecycle errors."""

    code: str = "LIFECYCLE_ERROR"


class InvalidStateTransitionError(LifecycleError):
    """The requested event is not valid from the BOM's current status."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, bom_id: str, current_status: str, requested: str):
        self.bom_id = bom_id
        self.current_status = current_status
        self.requested = requested
        super().__init__(
            f"Cannot {requested} BOM {bom_id} with status: {current_status}"
        )


class NotApprovedError(InvalidStateTransitionError):
    """Release attempted on a BOM that has not been approved."""

    code: str = "BOM_NOT_APPROVED"

    def __init__(self, bom_id: str, current_status: str):
        super().__init__(bom_id, current_status, "release")


class AlreadyReleasedError(InvalidStateTransitionError):
    """Release attempted on a BOM that was already released."""

    code: str = "BOM_ALREADY_RELEASED"

    def __init__(self, bom_id: str, current_status: str):
        super().__init__(bom_id, current_status, "release")


class BOMReleasedError(InvalidStateTransitionError):
    """
    Edit or delete attempted on a released BOM.

    Released BOMs are frozen; the caller must create a new version.
    """

    code: str = "BOM_RELEASED"

    def __init__(self, bom_id: str, requested: str, current_status: str = "released"):
        super().__init__(bom_id, current_status, requested)


# Concurrency exceptions


class ConcurrencyError(InventoryKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """
    Another transaction modified the entity after it was read.

    The caller should retry the WHOLE logical operation, not just the
    failed step.
    """

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_type: str, entity_id: str, detail: str | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.detail = detail
        message = (
            f"Concurrent modification of {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


# Validation exceptions


class ValidationError(InventoryKernelError):
    """Base exception for malformed input."""

    code: str = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """Quantity is not an integer, or is outside its allowed range."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class InvalidStockLevelsError(ValidationError):
    """Stock levels are negative or max_stock_level <= min_stock_level."""

    code: str = "INVALID_STOCK_LEVELS"

    def __init__(self, min_stock_level: int, max_stock_level: int | None):
        self.min_stock_level = min_stock_level
        self.max_stock_level = max_stock_level
        super().__init__(
            f"Invalid stock levels: min={min_stock_level}, max={max_stock_level} "
            "(both must be >= 0 and max must exceed min)"
        )


class InvalidEnumValueError(ValidationError):
    """Value is not a member of a closed enumeration."""

    code: str = "INVALID_ENUM_VALUE"

    def __init__(self, field: str, value: object, allowed: Iterable[str]):
        self.field = field
        self.value = value
        self.allowed = sorted(allowed)
        super().__init__(
            f"Invalid {field} {value!r}; expected one of {', '.join(self.allowed)}"
        )


class InvalidVersionError(ValidationError):
    """BOM version string is not of the form "major.minor"."""

    code: str = "INVALID_VERSION"

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"Invalid BOM version {version!r}; expected 'major.minor'")


class EmptyBOMError(ValidationError):
    """A BOM must have at least one line."""

    code: str = "EMPTY_BOM"

    def __init__(self):
        super().__init__("A BOM must contain at least one material line")


# Authorization exceptions


class AuthorizationError(InventoryKernelError):
    """Base exception for role-shape failures."""

    code: str = "AUTHORIZATION_ERROR"


class UnauthorizedActorError(AuthorizationError):
    """
    Actor's role is not allowed to perform the action.

    Authentication happens outside the kernel; this is only a role check.
    """

    code: str = "UNAUTHORIZED_ACTOR"

    def __init__(self, actor_id: str, role: str, action: str, allowed_roles: Iterable[str]):
        self.actor_id = actor_id
        self.role = role
        self.action = action
        self.allowed_roles = sorted(allowed_roles)
        super().__init__(
            f"Actor {actor_id} with role {role!r} may not {action}; "
            f"requires one of {', '.join(self.allowed_roles)}"
        )


# Infrastructure exceptions


class InfrastructureError(InventoryKernelError):
    """Base exception for storage and infrastructure failures."""

    code: str = "INFRASTRUCTURE_ERROR"


class StorageUnavailableError(InfrastructureError):
    """
    The database timed out or could not be reached.

    The enclosing transaction has been rolled back; no partial change
    is visible.
    """

    code: str = "STORAGE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage unavailable during {operation}: {detail}")
