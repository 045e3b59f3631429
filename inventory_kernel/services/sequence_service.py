"""
SequenceService -- human-readable code allocation via locked counter rows.

Responsibility:
    Hands out the numeric part of generated codes (MAT-000001,
    BOM-000001, PRJ-000001, MAINT-000001).  Uses a dedicated counter table
    with row-level locking (``SELECT ... FOR UPDATE``) so codes stay unique
    and ordered under concurrent creation.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by MaterialService, BOMService and DemandService.

Invariants enforced:
    - Codes come from the locked counter row, never from counting or
      max()+1 over the target table.
    - The increment is transactional: a rolled-back creation returns its
      number.

Failure modes:
    - IntegrityError: concurrent first use of a counter (handled via
      savepoint rollback and retry).
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from inventory_kernel.db.base import Base
from inventory_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is a named sequence with its last issued value.
    """

    __tablename__ = "sequence_counters"

    # Sequence name (e.g., "material", "bom")
    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for generating transactional sequence numbers and codes.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    # Well-known sequence names and their code prefixes
    MATERIAL = "material"
    BOM = "bom"
    PROJECT = "project"
    MAINTENANCE = "maintenance"

    PREFIXES = {
        MATERIAL: "MAT",
        BOM: "BOM",
        PROJECT: "PRJ",
        MAINTENANCE: "MAINT",
    }

    CODE_WIDTH = 6

    def __init__(self, session: Session):
        self._session = session

    def _lock_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the counter row (creating it on first use), increment it and
        return the new value.  Always > 0.
        """
        counter = self._lock_counter(sequence_name)

        if counter is None:
            # First use.  Another transaction may be creating the same row;
            # a savepoint keeps the caller's pending work on conflict.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._lock_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def next_code(self, sequence_name: str) -> str:
        """Next formatted code for a well-known sequence, e.g. ``MAT-000042``."""
        prefix = self.PREFIXES[sequence_name]
        return f"{prefix}-{self.next_value(sequence_name):0{self.CODE_WIDTH}d}"

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing, or None if never used."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None
