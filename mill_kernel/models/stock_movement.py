"""
Module: mill_kernel.models.stock_movement
Responsibility: ORM persistence for the append-only stock movement audit
    trail.  One row per change to an inventory item's quantity.
Architecture position: Kernel > Models.  May import from db/base.py and
    db/types.py only.  MUST NOT import from services/, selectors/, domain/,
    or outer layers.

Invariants enforced:
    - Append-only: rows are never updated or deleted.  Enforced at the ORM
      level by mill_kernel.db.immutability.  Corrections are new rows.
    - movement_number is unique (uq_stock_movement_number).

Failure modes:
    - ImmutabilityViolationError on UPDATE or DELETE via the ORM.
    - IntegrityError on a duplicate movement_number.

Audit relevance:
    stock_before / stock_after and available_before / available_after are
    the snapshot an auditor uses to replay an item's stock history.  The
    reference_document_* columns point back to the business document (a
    scrap record for movement_type 'damage').
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mill_kernel.db.base import TrackedBase, UUIDString


class MovementType(str, Enum):
    """Kind of stock change recorded by a movement."""

    INWARD = "inward"
    OUTWARD = "outward"
    DAMAGE = "damage"
    ADJUSTMENT = "adjustment"


class StockMovement(TrackedBase):
    """
    Immutable record of one stock change.

    Guarantees:
        - quantity > 0; direction is carried by movement_type.
        - stock_after == stock_before - quantity for outward/damage
          movements, stock_before + quantity for inward ones.
    """

    __tablename__ = "stock_movements"

    __table_args__ = (
        UniqueConstraint("movement_number", name="uq_stock_movement_number"),
        Index("idx_stock_movement_item", "company_id", "item_id"),
        Index("idx_stock_movement_reference", "reference_document_id"),
    )

    movement_number: Mapped[str] = mapped_column(String(100), nullable=False)
    movement_date: Mapped[datetime] = mapped_column(nullable=False)

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id"),
        nullable=False,
    )
    item_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    item_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    movement_type: Mapped[MovementType] = mapped_column(String(20), nullable=False)

    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_value: Mapped[Decimal | None] = mapped_column(nullable=True)

    from_warehouse_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    from_warehouse_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Stock snapshot
    stock_before: Mapped[Decimal] = mapped_column(nullable=False)
    stock_after: Mapped[Decimal] = mapped_column(nullable=False)
    available_before: Mapped[Decimal] = mapped_column(nullable=False)
    available_after: Mapped[Decimal] = mapped_column(nullable=False)

    # Business document that caused the movement
    reference_document_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference_document_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reference_document_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    tags: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.movement_number} {self.movement_type} "
            f"qty={self.quantity}>"
        )
