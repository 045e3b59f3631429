"""
StockLedger -- the only code path that mutates a material's quantity.

Responsibility:
    Applies signed quantity changes to materials and records each one as a
    StockMovement.  Allocation, maintenance usage, BOM release and direct
    quantity edits all route through here.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes, never commits.

Invariants enforced:
    - quantity_available >= 0 for every material at all times.  The
      non-negativity check and the write are ONE conditional UPDATE
      (compare-and-swap at the storage layer), never a read-then-write in
      Python:

          UPDATE materials
             SET quantity_available = quantity_available + :delta,
                 row_version = row_version + 1, ...
           WHERE id = :id AND is_active
             AND quantity_available + :delta >= 0
          RETURNING quantity_available

      PostgreSQL re-evaluates the WHERE clause after acquiring the row lock,
      so two concurrent decrements can never both pass against the same
      stock.  On SQLite the engine serializes writers with BEGIN IMMEDIATE.
    - Every applied change bumps row_version, so optimistic editors holding
      an older token lose their race.
    - Every applied change writes exactly one StockMovement in the same
      transaction.

Failure modes:
    - InvalidQuantityError: delta is zero, not an int, or a bool.
    - MaterialNotFoundError: material missing or inactive.  Nothing applied.
    - InsufficientStockError: current + delta < 0.  Nothing applied.
    - ConcurrentModificationError: set_quantity lost its compare-and-swap.

Audit relevance:
    The stock_movements table replays every quantity from its opening
    balance; each row names actor, reason and source document.
"""

from uuid import UUID

from sqlalchemy import select, update

from inventory_kernel.domain.values import Actor, StockSource, parse_enum
from inventory_kernel.exceptions import (
    ConcurrentModificationError,
    InsufficientStockError,
    InvalidQuantityError,
    MaterialNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.material import Material
from inventory_kernel.models.stock_movement import StockMovement
from inventory_kernel.services.base import BaseService

logger = get_logger("services.stock_ledger")

# Attributes the conditional UPDATE changes behind the identity map's back
_LEDGER_ATTRIBUTES = [
    "quantity_available",
    "row_version",
    "last_updated",
    "updated_by_id",
    "updated_at",
]


class StockLedger(BaseService[Material]):
    """
    Atomic increment/decrement of material stock.

    Contract:
        ``adjust`` either applies the whole delta and returns the new
        quantity, or raises and applies nothing.

    Non-goals:
        - No retries.  A rejected adjustment is reported to the caller,
          who decides whether to retry the whole logical operation.
        - No batching.  Multi-line atomicity belongs to the caller's
          transaction (see ReleaseCoordinator, AllocationService).
    """

    def adjust(
        self,
        material_id: UUID,
        delta: int,
        actor: Actor,
        reason: str = "manual adjustment",
        source_type: StockSource | str = StockSource.MANUAL,
        source_id: UUID | None = None,
    ) -> int:
        """
        Apply ``delta`` to the material's available quantity.

        Args:
            material_id: Material to adjust.
            delta: Positive to replenish, negative to consume.  Never zero.
            actor: Who is making the change.
            reason: Free-text reason stored on the movement.
            source_type: What kind of document caused the change.
            source_id: Id of that document (project, maintenance, BOM).

        Returns:
            The quantity after the change.

        Raises:
            InvalidQuantityError, MaterialNotFoundError, InsufficientStockError.
        """
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise InvalidQuantityError("delta", delta, "must be an integer")
        if delta == 0:
            raise InvalidQuantityError("delta", delta, "must not be zero")
        source_type = parse_enum(StockSource, source_type, "source_type")

        now = self.clock.now()
        new_quantity = self.session.execute(
            update(Material)
            .where(
                Material.id == material_id,
                Material.is_active.is_(True),
                Material.quantity_available + delta >= 0,
            )
            .values(
                quantity_available=Material.quantity_available + delta,
                row_version=Material.row_version + 1,
                last_updated=now,
                updated_by_id=actor.id,
            )
            .returning(Material.quantity_available)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()

        if new_quantity is None:
            self._raise_rejection(material_id, delta)

        self._expire_cached(material_id)
        self._record_movement(
            material_id, delta, new_quantity, actor, reason, source_type, source_id, now,
        )

        logger.info(
            "stock_adjusted",
            extra={
                "material_id": str(material_id),
                "delta": delta,
                "quantity_after": new_quantity,
                "source_type": source_type.value,
                "source_id": str(source_id) if source_id else None,
            },
        )
        return new_quantity

    def set_quantity(
        self,
        material_id: UUID,
        new_quantity: int,
        actor: Actor,
        expected_quantity: int | None = None,
        reason: str = "quantity set",
        source_type: StockSource | str = StockSource.MANUAL,
        source_id: UUID | None = None,
    ) -> int:
        """
        Overwrite the available quantity, guarded by the quantity observed.

        The write only lands if the quantity is still ``expected_quantity``
        (read here when not supplied).  Losing that race means someone else
        adjusted stock in between; the caller must re-read and decide again.

        Returns:
            The quantity after the change (== new_quantity).

        Raises:
            InvalidQuantityError: new_quantity negative or not an int.
            MaterialNotFoundError: material missing or inactive.
            ConcurrentModificationError: quantity changed since observed.
        """
        if isinstance(new_quantity, bool) or not isinstance(new_quantity, int):
            raise InvalidQuantityError("quantity", new_quantity, "must be an integer")
        if new_quantity < 0:
            raise InvalidQuantityError("quantity", new_quantity, "must not be negative")
        source_type = parse_enum(StockSource, source_type, "source_type")

        if expected_quantity is None:
            expected_quantity = self.current_quantity(material_id)
        if new_quantity == expected_quantity:
            return new_quantity

        now = self.clock.now()
        applied = self.session.execute(
            update(Material)
            .where(
                Material.id == material_id,
                Material.is_active.is_(True),
                Material.quantity_available == expected_quantity,
            )
            .values(
                quantity_available=new_quantity,
                row_version=Material.row_version + 1,
                last_updated=now,
                updated_by_id=actor.id,
            )
            .returning(Material.quantity_available)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()

        if applied is None:
            actual = self.current_quantity(material_id)
            logger.warning(
                "stock_set_conflict",
                extra={
                    "material_id": str(material_id),
                    "expected_quantity": expected_quantity,
                    "actual_quantity": actual,
                },
            )
            raise ConcurrentModificationError(
                "Material",
                str(material_id),
                f"expected quantity {expected_quantity}, found {actual}",
            )

        delta = new_quantity - expected_quantity
        self._expire_cached(material_id)
        self._record_movement(
            material_id, delta, new_quantity, actor, reason, source_type, source_id, now,
        )

        logger.info(
            "stock_set",
            extra={
                "material_id": str(material_id),
                "delta": delta,
                "quantity_after": new_quantity,
                "source_type": source_type.value,
            },
        )
        return new_quantity

    def record_opening_balance(self, material_id: UUID, quantity: int, actor: Actor) -> None:
        """
        Record the quantity a material was created with.

        The quantity itself is written by the INSERT; this only adds the
        matching movement so the movement stream sums to the stored value.
        """
        if quantity:
            self._record_movement(
                material_id, quantity, quantity, actor, "opening balance",
                StockSource.MANUAL, None, self.clock.now(),
            )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def current_quantity(self, material_id: UUID) -> int:
        """Available quantity of an active material (plain read, no lock)."""
        row = self.session.execute(
            select(Material.quantity_available, Material.is_active)
            .where(Material.id == material_id)
        ).one_or_none()
        if row is None or not row.is_active:
            raise MaterialNotFoundError(str(material_id))
        return row.quantity_available

    def _raise_rejection(self, material_id: UUID, delta: int) -> None:
        """Work out why the conditional UPDATE matched no row, and raise."""
        row = self.session.execute(
            select(Material.name, Material.quantity_available, Material.is_active)
            .where(Material.id == material_id)
        ).one_or_none()

        if row is None or not row.is_active:
            logger.warning(
                "stock_adjustment_rejected",
                extra={"material_id": str(material_id), "delta": delta, "reason": "not_found"},
            )
            raise MaterialNotFoundError(str(material_id))

        logger.warning(
            "stock_adjustment_rejected",
            extra={
                "material_id": str(material_id),
                "delta": delta,
                "reason": "insufficient_stock",
                "available": row.quantity_available,
            },
        )
        raise InsufficientStockError(
            material_id=str(material_id),
            material_name=row.name,
            required=-delta,
            available=row.quantity_available,
        )

    def _expire_cached(self, material_id: UUID) -> None:
        """Drop stale in-session copies of the columns the UPDATE changed."""
        key = self.session.identity_key(Material, material_id)
        cached = self.session.identity_map.get(key)
        if cached is not None:
            self.session.expire(cached, _LEDGER_ATTRIBUTES)

    def _record_movement(
        self,
        material_id: UUID,
        delta: int,
        quantity_after: int,
        actor: Actor,
        reason: str,
        source_type: StockSource,
        source_id: UUID | None,
        at,
    ) -> None:
        self.session.add(
            StockMovement(
                material_id=material_id,
                delta=delta,
                quantity_after=quantity_after,
                reason=reason,
                source_type=source_type,
                source_id=source_id,
                actor_id=actor.id,
                created_at=at,
            )
        )
        self.session.flush()
