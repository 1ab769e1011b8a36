"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer.  Kernel services receive a
    SQLAlchemy ``Session`` and use ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services.  Module services (scrap, production) own the
    transaction boundary and compose kernel services inside it.

Failure modes:
    - If a subclass calls ``session.commit()``, a scrap move could commit
      the stock decrement without its scrap record.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from mill_kernel.db.base import Base
from mill_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``; savepoints it opens are its own to
          release or roll back.
        - ``self.clock`` is the only source of "now".
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source; defaults to the system clock.
        """
        self.session = session
        self.clock = clock or SystemClock()
