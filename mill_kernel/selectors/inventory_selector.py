"""Read-side queries over inventory items and their stock movements."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from mill_kernel.db.types import to_uuid
from mill_kernel.models.inventory_item import InventoryItem
from mill_kernel.models.stock_movement import MovementType, StockMovement
from mill_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class StockMovementDTO:
    """Data transfer object for a stock movement."""

    id: UUID
    movement_number: str
    movement_date: datetime
    movement_type: MovementType
    item_id: UUID
    quantity: Decimal
    stock_before: Decimal
    stock_after: Decimal
    available_before: Decimal
    available_after: Decimal
    reference_document_type: str | None
    reference_document_id: UUID | None
    reference_document_number: str | None
    reason: str | None
    tags: tuple[str, ...]


@dataclass(frozen=True)
class StockLevelDTO:
    """Current stock columns of one inventory item."""

    item_id: UUID
    company_id: UUID
    item_code: str
    current_stock: Decimal
    available_stock: Decimal
    reserved_stock: Decimal
    total_value: Decimal
    total_outward: Decimal


class InventorySelector(BaseSelector[InventoryItem]):
    """Queries for inventory items and their movement history."""

    def stock_level(self, item_id: UUID | str) -> StockLevelDTO | None:
        try:
            item = self.session.get(InventoryItem, to_uuid(item_id))
        except ValueError:
            return None
        if item is None:
            return None
        return StockLevelDTO(
            item_id=item.id,
            company_id=item.company_id,
            item_code=item.item_code,
            current_stock=item.current_stock,
            available_stock=item.available_stock,
            reserved_stock=item.reserved_stock,
            total_value=item.total_value,
            total_outward=item.total_outward,
        )

    def movements_for_item(
        self,
        company_id: UUID | str,
        item_id: UUID | str,
    ) -> list[StockMovementDTO]:
        """Movements of one item, oldest first."""
        rows = self.session.execute(
            select(StockMovement)
            .where(
                StockMovement.company_id == to_uuid(company_id),
                StockMovement.item_id == to_uuid(item_id),
            )
            .order_by(StockMovement.movement_date, StockMovement.movement_number)
        ).scalars().all()
        return [self._to_dto(row) for row in rows]

    @staticmethod
    def _to_dto(row: StockMovement) -> StockMovementDTO:
        return StockMovementDTO(
            id=row.id,
            movement_number=row.movement_number,
            movement_date=row.movement_date,
            movement_type=MovementType(row.movement_type),
            item_id=row.item_id,
            quantity=row.quantity,
            stock_before=row.stock_before,
            stock_after=row.stock_after,
            available_before=row.available_before,
            available_after=row.available_after,
            reference_document_type=row.reference_document_type,
            reference_document_id=row.reference_document_id,
            reference_document_number=row.reference_document_number,
            reason=row.reason,
            tags=tuple(row.tags or ()),
        )
