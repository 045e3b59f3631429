"""
Module: inventory_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.  Selectors
    are the query side of the kernel: structured read access to materials,
    BOMs and stock movements without mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, domain/ and
    models/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(),
      session.delete(), session.commit(), or session.flush().
    - DTO return convention: selectors return frozen dataclasses, never ORM
      instances.
    - Session ownership: the caller owns the session and its transaction.

Failure modes:
    - StorageUnavailableError when the database times out or is unreachable.
      Read paths never fail on business-rule grounds.
"""

from abc import ABC
from contextlib import contextmanager
from typing import Generator, Generic, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base
from inventory_kernel.exceptions import StorageUnavailableError

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Guarantees:
        - session is stored as a public attribute for subclass query use.
        - No commit, flush, add, or delete operations are performed.
    """

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def _storage_guard(self, operation: str) -> Generator[None, None, None]:
        """Report database failures as StorageUnavailableError."""
        try:
            yield
        except OperationalError as exc:
            raise StorageUnavailableError(operation, str(exc.orig)) from exc
