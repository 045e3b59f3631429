"""
ReleaseCoordinator -- all-or-nothing BOM release.

Responsibility:
    Commits an Approved BOM's requirements against inventory: validates
    every line, deducts every line through the StockLedger and flips the
    BOM to Released, as one unit of work.

Architecture position:
    Kernel > Services -- orchestrator.  With ``auto_commit=True`` (the
    default) ``release()`` is its own transaction boundary: it commits on
    success and rolls back on any failure.  With ``auto_commit=False`` it
    only flushes and the caller's ``session_scope()`` decides.

Invariants enforced:
    - Only an Approved BOM can be released.  A second release of the same
      BOM is rejected, never re-applied, so stock is deducted once.
    - Validation reports EVERY shortfall (missing materials included) and
      mutates nothing.
    - Deductions and the status flip run inside one savepoint.  Any failure
      after the first deduction (ledger rejection, lost status
      compare-and-swap, database error, injected fault) rolls back every
      deduction of this release.
    - Material rows are locked in id order before validation, so
      concurrent releases and allocations cannot deadlock each other.
    - The status flip is a compare-and-swap on (status='approved',
      row_version=<read>); an editor or a second releaser that got there
      first makes this release fail instead of silently winning.

Failure modes:
    - BOMNotFoundError: missing or soft-deleted BOM.
    - NotApprovedError: BOM is still a draft.
    - AlreadyReleasedError: BOM is released or obsolete.
    - InsufficientMaterialsError: validation found shortfalls.
    - ConcurrentModificationError: stock or BOM changed between validation
      and commit.  Retry the whole release.
    - StorageUnavailableError: database timeout or disconnect (rolled back).
    - UnauthorizedActorError.

Audit relevance:
    Every deduction is a StockMovement with source_type=bom_release and
    source_id=<bom id>.  released_by/released_at are stamped on the BOM.
"""

import time
from uuid import UUID, uuid4

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from inventory_kernel.domain.bom_lifecycle import check_release
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import DeductedLine, ReleaseResult
from inventory_kernel.domain.roles import DEFAULT_ROLE_POLICY, RolePolicy, require_role
from inventory_kernel.domain.values import Actor, BOMStatus, StockSource
from inventory_kernel.exceptions import (
    ConcurrentModificationError,
    InsufficientMaterialsError,
    InsufficientStockError,
    StorageUnavailableError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.bom import BillOfMaterials
from inventory_kernel.services.bom_service import load_active_bom
from inventory_kernel.services.stock_ledger import StockLedger
from inventory_kernel.services.stock_validation import aggregate, find_shortfalls, lock_materials

logger = get_logger("services.release_coordinator")

# Columns the status compare-and-swap changes behind the identity map's back
_RELEASE_ATTRIBUTES = [
    "status",
    "row_version",
    "released_by_id",
    "released_at",
    "updated_by_id",
    "updated_at",
]


class ReleaseCoordinator:
    """
    Release an Approved BOM against inventory.

    Non-goals:
        - No partial release or back orders.
        - No automatic retry on ConcurrentModificationError.
        - No cancellation once the commit step has started.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        roles: RolePolicy | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._roles = roles or DEFAULT_ROLE_POLICY
        self._auto_commit = auto_commit
        self._ledger = StockLedger(session, self._clock, self._roles)

    def release(self, bom_id: UUID, actor: Actor) -> ReleaseResult:
        """
        Release the BOM.

        Returns:
            ReleaseResult listing every deducted line and its resulting
            quantity.
        """
        require_role(actor, self._roles.bom_releasers, "release BOM")

        correlation_id = str(uuid4())
        start = time.monotonic()
        with LogContext.bind(
            correlation_id=correlation_id,
            bom_id=str(bom_id),
            actor_id=str(actor.id),
            operation="release",
        ):
            logger.info("bom_release_started")
            try:
                result = self._release(bom_id, actor)
                if self._auto_commit:
                    self._session.commit()
            except OperationalError as exc:
                self._rollback()
                logger.error(
                    "bom_release_storage_error",
                    extra={"duration_ms": self._elapsed_ms(start)},
                    exc_info=True,
                )
                raise StorageUnavailableError("release", str(exc.orig)) from exc
            except Exception as exc:
                self._rollback()
                logger.warning(
                    "bom_release_failed",
                    extra={
                        "error_code": getattr(exc, "code", type(exc).__name__),
                        "duration_ms": self._elapsed_ms(start),
                    },
                )
                raise

            logger.info(
                "bom_released",
                extra={
                    "bom_code": result.bom_code,
                    "version": result.version,
                    "line_count": len(result.lines),
                    "total_units": result.total_units,
                    "duration_ms": self._elapsed_ms(start),
                },
            )
            return result

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _release(self, bom_id: UUID, actor: Actor) -> ReleaseResult:
        bom = load_active_bom(self._session, bom_id, for_update=True)
        check_release(str(bom_id), bom.status)
        expected_row_version = bom.row_version

        # Step 1: validate every line against locked rows
        required = aggregate((line.material_id, line.quantity) for line in bom.lines)
        materials = lock_materials(self._session, required)
        shortfalls = find_shortfalls(required, materials)
        if shortfalls:
            logger.warning(
                "release_rejected_insufficient",
                extra={"shortfalls": [s.as_dict() for s in shortfalls]},
            )
            raise InsufficientMaterialsError(shortfalls)

        # Step 2: deduct and flip status, all inside one savepoint
        now = self._clock.now()
        reason = f"BOM {bom.bom_code} v{bom.version} released"
        try:
            with self._session.begin_nested():
                deducted = []
                for line in bom.lines:
                    quantity_after = self._ledger.adjust(
                        line.material_id,
                        -line.quantity,
                        actor,
                        reason=reason,
                        source_type=StockSource.BOM_RELEASE,
                        source_id=bom.id,
                    )
                    material = materials[line.material_id]
                    deducted.append(
                        DeductedLine(
                            material_id=material.id,
                            serial_number=material.serial_number,
                            material_name=material.name,
                            quantity=line.quantity,
                            unit=line.unit,
                            quantity_after=quantity_after,
                        )
                    )
                self._flip_status(bom, expected_row_version, actor, now)
        except InsufficientStockError as exc:
            raise ConcurrentModificationError(
                "Material", exc.material_id, "stock changed after validation",
            ) from exc

        return ReleaseResult(
            bom_id=bom.id,
            bom_code=bom.bom_code,
            version=bom.version,
            released_by_id=actor.id,
            released_at=now,
            lines=tuple(deducted),
        )

    def _flip_status(
        self,
        bom: BillOfMaterials,
        expected_row_version: int,
        actor: Actor,
        now,
    ) -> None:
        """Approved -> Released, only if nobody touched the BOM since it was read."""
        flipped = self._session.execute(
            update(BillOfMaterials)
            .where(
                BillOfMaterials.id == bom.id,
                BillOfMaterials.status == BOMStatus.APPROVED,
                BillOfMaterials.row_version == expected_row_version,
            )
            .values(
                status=BOMStatus.RELEASED,
                row_version=expected_row_version + 1,
                released_by_id=actor.id,
                released_at=now,
                updated_by_id=actor.id,
            )
            .returning(BillOfMaterials.id)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()

        if flipped is None:
            raise ConcurrentModificationError(
                "BillOfMaterials", str(bom.id), "status changed during release",
            )
        self._session.expire(bom, _RELEASE_ATTRIBUTES)

    def _rollback(self) -> None:
        if self._auto_commit:
            self._session.rollback()

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return round((time.monotonic() - start) * 1000, 2)
