"""
Scrap Domain Models (``mill_modules.scrap.models``).

Responsibility
--------------
Enums and frozen value objects for the scrap ledger: the move request,
the persisted record as seen by callers, list filters and pages, and the
summary report.

Invariants
----------
- ``total_value == unit_cost * quantity`` on every record.
- ``stock_impact.inventory_stock_after == inventory_stock_before - quantity``.
- ``scrap_stock_before`` is recorded for reference only; nothing is gated
  on it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ScrapReason(str, Enum):
    DAMAGED = "damaged"
    DEFECTIVE = "defective"
    EXPIRED = "expired"
    OBSOLETE = "obsolete"
    PRODUCTION_WASTE = "production_waste"
    QUALITY_REJECT = "quality_reject"
    OTHER = "other"


class ScrapStatus(str, Enum):
    """Record lifecycle: active -> disposed, active/disposed -> cancelled."""

    ACTIVE = "active"
    DISPOSED = "disposed"
    CANCELLED = "cancelled"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


class DisposalMethod(str, Enum):
    SOLD = "sold"
    DONATED = "donated"
    RECYCLED = "recycled"
    DESTROYED = "destroyed"
    OTHER = "other"


@dataclass(frozen=True)
class MoveToScrapRequest:
    """Caller's request to move part of an item's stock to scrap."""

    quantity: Decimal
    scrap_reason: ScrapReason
    scrap_reason_details: str | None = None
    warehouse_id: str | None = None
    warehouse_name: str | None = None
    zone: str | None = None
    rack: str | None = None
    bin: str | None = None
    unit_cost: Decimal | None = None
    quality_grade: str | None = None
    defect_details: str | None = None
    batch_number: str | None = None
    lot_number: str | None = None
    notes: str | None = None
    tags: tuple[str, ...] = ()
    scrap_date: datetime | None = None
    approval_required: bool = False


@dataclass(frozen=True)
class StockImpact:
    inventory_stock_before: Decimal
    inventory_stock_after: Decimal
    scrap_stock_before: Decimal
    scrap_stock_after: Decimal


@dataclass(frozen=True)
class Disposal:
    disposed: bool = False
    disposal_method: DisposalMethod | None = None
    disposal_value: Decimal | None = None
    disposal_date: datetime | None = None
    disposal_notes: str | None = None
    disposed_by: UUID | None = None


@dataclass(frozen=True)
class ScrapRecord:
    """A scrap ledger entry as returned to callers."""

    id: UUID
    scrap_number: str
    company_id: UUID
    inventory_item_id: UUID
    item_code: str | None
    item_name: str | None
    item_description: str | None
    quantity: Decimal
    unit: str
    scrap_reason: ScrapReason
    scrap_reason_details: str | None
    scrap_date: datetime
    warehouse_id: str | None
    warehouse_name: str | None
    zone: str | None
    rack: str | None
    bin: str | None
    stock_impact: StockImpact
    unit_cost: Decimal
    total_value: Decimal
    quality_grade: str | None
    defect_details: str | None
    batch_number: str | None
    lot_number: str | None
    approval_required: bool
    approval_status: ApprovalStatus
    disposal: Disposal
    status: ScrapStatus
    notes: str | None
    tags: tuple[str, ...]
    created_by_id: UUID
    updated_by_id: UUID | None


@dataclass(frozen=True)
class ScrapFilters:
    status: ScrapStatus | None = None
    scrap_reason: ScrapReason | None = None
    inventory_item_id: UUID | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    disposed: bool | None = None


@dataclass(frozen=True)
class ScrapPage:
    items: tuple[ScrapRecord, ...]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


@dataclass(frozen=True)
class ReasonBreakdown:
    reason: ScrapReason
    quantity: Decimal
    value: Decimal
    count: int


@dataclass(frozen=True)
class ItemBreakdown:
    item_id: UUID
    item_code: str | None
    item_name: str | None
    quantity: Decimal
    value: Decimal


@dataclass(frozen=True)
class ScrapSummary:
    """Totals over active, non-disposed scrap in a date window."""

    total_scrap_quantity: Decimal
    total_scrap_value: Decimal
    by_reason: tuple[ReasonBreakdown, ...] = field(default_factory=tuple)
    by_item: tuple[ItemBreakdown, ...] = field(default_factory=tuple)
