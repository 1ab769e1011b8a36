"""
Named counters behind scrap and movement numbers.

Each name (``SCRAP-ACME-20240101``, ``MOV-ACME-20240101``, ...) owns one row
in ``sequence_counters``.  ``next_value`` locks that row with
``SELECT ... FOR UPDATE`` before bumping it, so two scrap moves for the same
company on the same day queue up on the lock instead of both counting the
existing records and picking the same number.

Allocation is part of the caller's transaction: if the scrap move rolls
back, the number is handed out again.
"""

from sqlalchemy import String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from mill_kernel.db.base import Base
from mill_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(100), unique=True)
    current_value: Mapped[int] = mapped_column(default=0)


class SequenceService:
    """Allocates per-name counter values; flushes but never commits."""

    def __init__(self, session: Session):
        self._session = session

    def _lock(self, name: str) -> SequenceCounter | None:
        stmt = (
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def _lock_or_create(self, name: str) -> SequenceCounter:
        counter = self._lock(name)
        if counter is not None:
            return counter

        savepoint = self._session.begin_nested()
        try:
            counter = SequenceCounter(name=name, current_value=0)
            self._session.add(counter)
            self._session.flush()
        except IntegrityError:
            # Someone else created the row first; wait on their lock.
            savepoint.rollback()
            logger.debug("sequence_counter_race_retry", extra={"sequence_name": name})
            return self._lock(name)
        savepoint.commit()
        return counter

    def next_value(self, name: str) -> int:
        """Increment the counter for ``name`` (creating it at 0) and return the new value."""
        counter = self._lock_or_create(name)
        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, name: str) -> int | None:
        return self._session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == name)
        ).scalar_one_or_none()

    def reset(self, name: str, value: int = 0) -> None:
        """
        Force the counter for ``name`` to ``value``.

        For tests and data repair only: rewinding makes the next number
        collide with one already issued.
        """
        self._lock_or_create(name).current_value = value
        self._session.flush()
