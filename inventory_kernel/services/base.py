"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write service.  Services receive a SQLAlchemy ``Session`` and use
    ``session.flush()`` -- never ``session.commit()``.  The caller
    (``session_scope()``, ReleaseCoordinator with auto_commit, or a test
    harness) owns commit/rollback.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Failure modes:
    - A subclass that commits on its own breaks the all-or-nothing
      guarantee of multi-step operations such as release.
"""

from abc import ABC
from contextlib import contextmanager
from typing import Generator, Generic, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from inventory_kernel.db.base import Base
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.roles import DEFAULT_ROLE_POLICY, RolePolicy
from inventory_kernel.exceptions import ConcurrentModificationError

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel write services.

    Guarantees:
        - The service never calls ``session.commit()``.
        - Time comes from the injected clock.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        roles: RolePolicy | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.roles = roles or DEFAULT_ROLE_POLICY

    @contextmanager
    def _flush_guard(self, entity_type: str, entity_id: object) -> Generator[None, None, None]:
        """
        Translate a lost optimistic-lock race into ConcurrentModificationError.

        Wraps code that flushes a versioned entity (Material, BOM).
        """
        try:
            yield
        except StaleDataError as exc:
            raise ConcurrentModificationError(entity_type, str(entity_id), "row_version mismatch") from exc

    @staticmethod
    def _check_row_version(entity_type: str, entity, expected_row_version: int | None) -> None:
        """Reject the command when the caller's token is out of date."""
        if expected_row_version is not None and entity.row_version != expected_row_version:
            raise ConcurrentModificationError(
                entity_type,
                str(entity.id),
                f"expected row_version {expected_row_version}, found {entity.row_version}",
            )
