"""
Production Module (``mill_modules.production``).

Responsibility
--------------
Tracks fabric lots through the fixed stage pipeline (bleaching through
packing): stage entries with input, processed and loss meters, and the lot
resolver that carries party/customer/quality forward and computes how much
upstream output is still available to each stage.

Invariants
----------
- Each service method owns its transaction boundary (commit / rollback).
- ``processed_meter + loss_meter <= input_meter`` on every entry.
- Available input meter is never negative.
"""

from mill_modules.production.lot_resolver import STAGE_SOURCES, LotResolver, StageSource
from mill_modules.production.models import (
    PIPELINE,
    InputMeterBreakdown,
    LossKind,
    LossStockEntry,
    LotDetails,
    StageEntry,
    StageModule,
    StageStatus,
)
from mill_modules.production.service import StageEntryService

__all__ = [
    "InputMeterBreakdown",
    "LossKind",
    "LossStockEntry",
    "LotDetails",
    "LotResolver",
    "PIPELINE",
    "STAGE_SOURCES",
    "StageEntry",
    "StageEntryService",
    "StageModule",
    "StageSource",
    "StageStatus",
]
