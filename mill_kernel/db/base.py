"""
Declarative bases shared by every mill table.

``Base`` gives each row a uuid4 key held as a 36-character string so the same
schema runs on PostgreSQL and SQLite.  Annotated ``Decimal`` attributes become
``Numeric(38, 9)``: meters, stock quantities and unit costs keep nine places
and are never stored as floats.  ``TrackedBase`` adds who/when columns.

Nothing in here imports from models/, services/, selectors/ or domain/.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """Python ``UUID`` on the model side, ``VARCHAR(36)`` in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        # sequence counters
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds creation and last-change stamps plus the acting user.

    ``created_by_id`` is mandatory: stage entries, scrap records and stock
    movements are always written on behalf of a user.  ``updated_by_id``
    stays NULL until the row is first edited.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())
    created_by_id: Mapped[PyUUID]
    updated_by_id: Mapped[PyUUID | None]


UUID = PyUUID
