"""
Scrap Module (``mill_modules.scrap``).

Responsibility
--------------
The scrap ledger: moving inventory to scrap, reversing a scrap, recording
disposal, and reporting on active scrap.  Stock changes go through the
kernel's ``InventoryStockService``; the accompanying stock movement is
written best effort by ``ScrapMovementRecorder``.

Invariants
----------
- Each service method owns its transaction boundary (commit / rollback).
- A move decreases current stock by exactly the scrapped quantity.
- Cancel restores stock only for active, non-disposed records.
"""

from mill_modules.scrap.audit import ScrapMovementRecorder
from mill_modules.scrap.models import (
    ApprovalStatus,
    Disposal,
    DisposalMethod,
    ItemBreakdown,
    MoveToScrapRequest,
    ReasonBreakdown,
    ScrapFilters,
    ScrapPage,
    ScrapReason,
    ScrapRecord,
    ScrapStatus,
    ScrapSummary,
    StockImpact,
)
from mill_modules.scrap.service import ScrapService

__all__ = [
    "ApprovalStatus",
    "Disposal",
    "DisposalMethod",
    "ItemBreakdown",
    "MoveToScrapRequest",
    "ReasonBreakdown",
    "ScrapFilters",
    "ScrapMovementRecorder",
    "ScrapPage",
    "ScrapReason",
    "ScrapRecord",
    "ScrapService",
    "ScrapStatus",
    "ScrapSummary",
    "StockImpact",
]
