"""
Module: mill_kernel.models.inventory_item
Responsibility: ORM persistence for stocked inventory items and their
    per-warehouse location balances.
Architecture position: Kernel > Models.  May import from db/base.py and
    db/types.py only.  MUST NOT import from services/, selectors/, domain/,
    or outer layers.

Invariants enforced:
    - current_stock >= 0.  Enforced by InventoryStockService, which is the
      only code path allowed to change the stock columns, and which always
      works on a row locked with SELECT ... FOR UPDATE.
    - available_stock == max(0, current_stock - reserved_stock) and
      total_value == current_stock * average_cost after every mutation.
    - InventoryLocation.quantity >= 0 (decrements are floored at zero).

Failure modes:
    - IntegrityError on duplicate (company_id, item_code).

Audit relevance:
    Every change to current_stock is paired with a StockMovement row (best
    effort for scrap moves).  total_inward / total_outward are running
    counters kept for reporting.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mill_kernel.db.base import TrackedBase, UUIDString
from mill_kernel.db.types import ZERO


class InventoryItem(TrackedBase):
    """
    A stocked item owned by one company.

    Contract:
        Stock columns are mutated only through InventoryStockService.
        Descriptive columns (name, unit, cost_price, batch/lot) may be
        edited by inventory maintenance outside this package.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        UniqueConstraint("company_id", "item_code", name="uq_inventory_item_code"),
        Index("idx_inventory_item_company", "company_id"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("companies.id"),
        nullable=False,
    )

    item_code: Mapped[str] = mapped_column(String(50), nullable=False)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    item_description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Pricing
    cost_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    # Stock
    current_stock: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    available_stock: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    reserved_stock: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_value: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    average_cost: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    # Tracking
    total_inward: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_outward: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    last_stock_update: Mapped[datetime | None] = mapped_column(nullable=True)
    last_movement_date: Mapped[datetime | None] = mapped_column(nullable=True)

    # Copied onto scrap records unless the request overrides them
    batch_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    lot_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    locations: Mapped[list["InventoryLocation"]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def location_for(self, warehouse_id: str | None) -> "InventoryLocation | None":
        """Return the active location row for a warehouse, if any."""
        if not warehouse_id:
            return None
        for location in self.locations:
            if location.warehouse_id == warehouse_id and location.is_active:
                return location
        return None

    def __repr__(self) -> str:
        return f"<InventoryItem {self.item_code}: stock={self.current_stock}>"


class InventoryLocation(TrackedBase):
    """Quantity of an inventory item held in one warehouse."""

    __tablename__ = "inventory_locations"

    __table_args__ = (
        UniqueConstraint("item_id", "warehouse_id", name="uq_inventory_location"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id"),
        nullable=False,
    )

    # Warehouses live outside this package; referenced by opaque id
    warehouse_id: Mapped[str] = mapped_column(String(50), nullable=False)
    warehouse_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    quantity: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    last_updated: Mapped[datetime | None] = mapped_column(nullable=True)

    item: Mapped[InventoryItem] = relationship(back_populates="locations")

    def __repr__(self) -> str:
        return f"<InventoryLocation {self.warehouse_id}: {self.quantity}>"
