"""
Scrap movement recorder -- best-effort stock movement for a scrap move.

Every scrap move is meant to leave a ``damage`` StockMovement pointing back
at the scrap record.  Writing it is best effort: if it fails, the failure is
logged at WARNING with the scrap id and the scrap move still commits.  The
write runs in its own savepoint so a failed insert leaves the scrap record
and the stock decrement untouched.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from mill_kernel.logging_config import get_logger
from mill_kernel.models.inventory_item import InventoryItem
from mill_kernel.models.stock_movement import MovementType, StockMovement
from mill_kernel.services.inventory_stock_service import StockSnapshot
from mill_kernel.services.stock_movement_service import StockMovementService
from mill_modules.scrap.orm import ScrapModel

logger = get_logger("modules.scrap.audit")

REFERENCE_DOCUMENT_TYPE = "adjustment_note"
SCRAP_TAGS = ("scrap",)


class ScrapMovementRecorder:
    """Emits the audit movement for a scrap move; never raises on failure."""

    def __init__(self, session: Session, movements: StockMovementService):
        self._session = session
        self._movements = movements

    def record(
        self,
        scrap: ScrapModel,
        item: InventoryItem,
        snapshot: StockSnapshot,
        unit_cost: Decimal,
        actor_id: UUID,
    ) -> StockMovement | None:
        """
        Write the movement for ``scrap``.

        Returns:
            The movement, or None if the write failed.
        """
        scrap_id = str(scrap.id)
        scrap_number = scrap.scrap_number

        savepoint = self._session.begin_nested()
        try:
            movement = self._movements.record(
                item=item,
                movement_type=MovementType.DAMAGE,
                quantity=scrap.quantity,
                snapshot=snapshot,
                actor_id=actor_id,
                rate=unit_cost,
                warehouse_id=scrap.warehouse_id,
                warehouse_name=scrap.warehouse_name,
                reference_document_type=REFERENCE_DOCUMENT_TYPE,
                reference_document_id=scrap.id,
                reference_document_number=scrap_number,
                reason=f"Moved to scrap: {scrap.scrap_reason}",
                notes=scrap.scrap_reason_details or scrap.notes,
                tags=list(SCRAP_TAGS),
            )
            savepoint.commit()
        except Exception:
            savepoint.rollback()
            logger.warning(
                "stock_movement_write_failed",
                extra={"scrap_id": scrap_id, "scrap_number": scrap_number},
                exc_info=True,
            )
            return None
        return movement
