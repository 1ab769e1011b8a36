"""SQLAlchemy ORM models for the mill kernel."""

from mill_kernel.models.company import Company
from mill_kernel.models.inventory_item import InventoryItem, InventoryLocation
from mill_kernel.models.stock_movement import MovementType, StockMovement

__all__ = [
    "Company",
    "InventoryItem",
    "InventoryLocation",
    "MovementType",
    "StockMovement",
]
