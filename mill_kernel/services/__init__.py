"""Services for the mill kernel (write side)."""

from mill_kernel.services.document_number_service import DocumentNumberService
from mill_kernel.services.inventory_stock_service import (
    InventoryStockService,
    StockSnapshot,
)
from mill_kernel.services.sequence_service import SequenceService
from mill_kernel.services.stock_movement_service import StockMovementService

__all__ = [
    "DocumentNumberService",
    "InventoryStockService",
    "SequenceService",
    "StockMovementService",
    "StockSnapshot",
]
