"""
StockMovementService -- appends rows to the stock movement audit trail.

Responsibility:
    Builds and inserts one StockMovement per stock change, with a freshly
    allocated ``MOV-{companyCode}-{YYYYMMDD}-{seq}`` number.

Architecture position:
    Kernel > Services.  Flush only; the caller decides whether a failure
    here is fatal (the scrap module treats it as best effort).

Invariants enforced:
    - Append-only: this service only ever inserts.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from mill_kernel.domain.clock import Clock
from mill_kernel.logging_config import get_logger
from mill_kernel.models.inventory_item import InventoryItem
from mill_kernel.models.stock_movement import MovementType, StockMovement
from mill_kernel.services.base import BaseService
from mill_kernel.services.document_number_service import DocumentNumberService
from mill_kernel.services.inventory_stock_service import StockSnapshot

logger = get_logger("services.stock_movement")


class StockMovementService(BaseService[StockMovement]):
    """Records stock movements."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        numbers: DocumentNumberService | None = None,
    ):
        super().__init__(session, clock)
        self._numbers = numbers or DocumentNumberService(session, self.clock)

    def record(
        self,
        item: InventoryItem,
        movement_type: MovementType,
        quantity: Decimal,
        snapshot: StockSnapshot,
        actor_id: UUID,
        rate: Decimal | None = None,
        warehouse_id: str | None = None,
        warehouse_name: str | None = None,
        reference_document_type: str | None = None,
        reference_document_id: UUID | None = None,
        reference_document_number: str | None = None,
        reason: str | None = None,
        notes: str | None = None,
        tags: list[str] | None = None,
    ) -> StockMovement:
        """
        Insert a movement for ``item``.

        Returns:
            The flushed StockMovement.
        """
        movement = StockMovement(
            movement_number=self._numbers.next_movement_number(item.company_id),
            movement_date=self.clock.now(),
            company_id=item.company_id,
            item_id=item.id,
            item_code=item.item_code,
            item_name=item.item_name,
            movement_type=MovementType(movement_type).value,
            quantity=quantity,
            unit=item.unit,
            rate=rate,
            total_value=(rate * quantity) if rate is not None else None,
            from_warehouse_id=warehouse_id,
            from_warehouse_name=warehouse_name,
            stock_before=snapshot.stock_before,
            stock_after=snapshot.stock_after,
            available_before=snapshot.available_before,
            available_after=snapshot.available_after,
            reference_document_type=reference_document_type,
            reference_document_id=reference_document_id,
            reference_document_number=reference_document_number,
            reason=reason,
            notes=notes,
            tags=list(tags) if tags else None,
            created_by_id=actor_id,
        )
        self.session.add(movement)
        self.session.flush()

        logger.info(
            "stock_movement_recorded",
            extra={
                "movement_number": movement.movement_number,
                "movement_type": movement.movement_type,
                "item_id": str(item.id),
                "quantity": quantity,
                "reference_document_number": reference_document_number,
            },
        )
        return movement
