"""
InventoryStockService -- the single mutator of inventory item stock.

Responsibility:
    Locks an inventory item row and applies outward (decrement) and inward
    (increment) quantity changes, keeping the derived stock columns
    consistent and returning a before/after snapshot for the audit trail.

Architecture position:
    Kernel > Services.  Every code path that changes
    ``InventoryItem.current_stock`` goes through this service: scrap moves,
    scrap cancellations, and any future dispatch or consumption flow.

Invariants enforced:
    - Per-item serialization: ``lock_item`` issues ``SELECT ... FOR UPDATE``
      and refreshes the identity map copy, so the stock check in
      ``apply_outward`` is made against the committed value and holds
      until the caller's transaction ends.
    - current_stock never goes negative.
    - available_stock = max(0, current_stock - reserved_stock).
    - total_value = current_stock * average_cost.
    - total_outward never goes negative on reversal.
    - Location quantities are floored at zero.

Failure modes:
    - InventoryItemNotFoundError: unknown or malformed item id.
    - InsufficientStockError: outward quantity exceeds current stock.
      Raised before any column is touched.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from mill_kernel.db.types import ZERO, floor_zero, to_uuid
from mill_kernel.exceptions import InsufficientStockError, InventoryItemNotFoundError
from mill_kernel.logging_config import get_logger
from mill_kernel.models.inventory_item import InventoryItem
from mill_kernel.services.base import BaseService

logger = get_logger("services.inventory_stock")


@dataclass(frozen=True)
class StockSnapshot:
    """Stock levels of one item either side of a change."""

    stock_before: Decimal
    stock_after: Decimal
    available_before: Decimal
    available_after: Decimal


class InventoryStockService(BaseService[InventoryItem]):
    """
    Applies stock changes to locked inventory items.

    Non-goals:
        - Does NOT check tenant ownership; callers compare company ids
          after locking.
        - Does NOT write stock movements; see StockMovementService.
    """

    def lock_item(self, item_id: UUID | str) -> InventoryItem:
        """
        Load an inventory item with a row lock held until commit/rollback.

        Raises:
            InventoryItemNotFoundError: If no item has this id.
        """
        try:
            item_uuid = to_uuid(item_id)
        except ValueError:
            raise InventoryItemNotFoundError(str(item_id)) from None

        item = self.session.execute(
            select(InventoryItem)
            .where(InventoryItem.id == item_uuid)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if item is None:
            raise InventoryItemNotFoundError(str(item_id))
        return item

    def apply_outward(
        self,
        item: InventoryItem,
        quantity: Decimal,
        warehouse_id: str | None = None,
    ) -> StockSnapshot:
        """
        Remove ``quantity`` from a locked item.

        Preconditions: item was returned by ``lock_item`` in this
            transaction; quantity > 0.
        Postconditions: current_stock decreased by exactly quantity;
            total_outward increased by quantity; the warehouse location,
            if given and present, decreased (floored at zero).

        Raises:
            InsufficientStockError: quantity > current_stock.
        """
        stock_before = item.current_stock or ZERO
        if quantity > stock_before:
            raise InsufficientStockError(str(item.id), stock_before, quantity)

        available_before = item.available_stock or ZERO
        now = self.clock.now()

        item.current_stock = stock_before - quantity
        self._recompute(item)
        item.total_outward = (item.total_outward or ZERO) + quantity

        location = item.location_for(warehouse_id)
        if location is not None:
            location.quantity = floor_zero((location.quantity or ZERO) - quantity)
            location.last_updated = now

        item.last_stock_update = now
        item.last_movement_date = now
        self.session.flush()

        snapshot = StockSnapshot(
            stock_before=stock_before,
            stock_after=item.current_stock,
            available_before=available_before,
            available_after=item.available_stock,
        )
        logger.info(
            "stock_outward_applied",
            extra={
                "item_id": str(item.id),
                "quantity": quantity,
                "stock_before": snapshot.stock_before,
                "stock_after": snapshot.stock_after,
                "warehouse_id": warehouse_id,
            },
        )
        return snapshot

    def apply_inward(
        self,
        item: InventoryItem,
        quantity: Decimal,
        reversal: bool = False,
    ) -> StockSnapshot:
        """
        Add ``quantity`` to a locked item.

        A reversal gives back an earlier outward change: total_outward is
        reduced (floored at zero) instead of total_inward being increased.
        """
        stock_before = item.current_stock or ZERO
        available_before = item.available_stock or ZERO
        now = self.clock.now()

        item.current_stock = stock_before + quantity
        self._recompute(item)
        if reversal:
            item.total_outward = floor_zero((item.total_outward or ZERO) - quantity)
        else:
            item.total_inward = (item.total_inward or ZERO) + quantity

        item.last_stock_update = now
        item.last_movement_date = now
        self.session.flush()

        logger.info(
            "stock_inward_applied",
            extra={
                "item_id": str(item.id),
                "quantity": quantity,
                "stock_before": stock_before,
                "stock_after": item.current_stock,
                "reversal": reversal,
            },
        )
        return StockSnapshot(
            stock_before=stock_before,
            stock_after=item.current_stock,
            available_before=available_before,
            available_after=item.available_stock,
        )

    @staticmethod
    def _recompute(item: InventoryItem) -> None:
        item.available_stock = floor_zero(item.current_stock - (item.reserved_stock or ZERO))
        item.total_value = item.current_stock * (item.average_cost or ZERO)
