"""Selectors for the mill kernel (read side)."""

from mill_kernel.selectors.inventory_selector import (
    InventorySelector,
    StockLevelDTO,
    StockMovementDTO,
)

__all__ = [
    "InventorySelector",
    "StockLevelDTO",
    "StockMovementDTO",
]
