"""
Production Domain Models (``mill_modules.production.models``).

Responsibility
--------------
The fixed stage pipeline, stage entry status rules, and the frozen DTOs the
production service and lot resolver hand back to callers.

Invariants
----------
- Pipeline order is the declaration order of ``StageModule``.
- ``pending_meter = input_meter - processed_meter - loss_meter`` and is
  never negative for a stored entry.
- Status is derived from meters, never set directly:
  pending (nothing recorded), in_progress (part recorded), completed
  (processed + loss has caught up with input).
- Every increase of an entry's loss meter is copied to the loss-stock
  ledger as one ``LossStockEntry``.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from mill_kernel.db.types import ZERO
from mill_kernel.exceptions import InvalidModuleError


class StageModule(str, Enum):
    """Production stages, in pipeline order."""

    BLEACHING = "bleaching"
    AFTER_BLEACHING = "after_bleaching"
    PRINTING = "printing"
    HAZER = "hazer"
    WASHING = "washing"
    FINISHING = "finishing"
    FELT = "felt"
    FOLDING = "folding"
    PACKING = "packing"


PIPELINE: tuple[StageModule, ...] = tuple(StageModule)


class StageStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def parse_stage(value: "StageModule | str | None") -> StageModule:
    """
    Resolve a stage identifier.

    Raises:
        InvalidModuleError: value is not one of the pipeline stages.
    """
    try:
        return StageModule(value)
    except ValueError:
        raise InvalidModuleError(str(value), [s.value for s in PIPELINE]) from None


def previous_stage(stage: StageModule) -> StageModule | None:
    """Stage immediately upstream of ``stage``; None for the first stage."""
    index = PIPELINE.index(stage)
    return PIPELINE[index - 1] if index > 0 else None


def pipeline_position(stage: StageModule | str) -> int:
    return PIPELINE.index(StageModule(stage))


def derive_status(input_meter: Decimal, processed_meter: Decimal, loss_meter: Decimal) -> StageStatus:
    recorded = processed_meter + loss_meter
    if recorded <= ZERO:
        return StageStatus.PENDING
    if recorded >= input_meter:
        return StageStatus.COMPLETED
    return StageStatus.IN_PROGRESS


@dataclass(frozen=True)
class StageEntry:
    """One operator-logged batch of a lot at one stage."""

    id: UUID
    company_id: UUID
    stage: StageModule
    lot_number: str
    party_name: str | None
    customer_id: str | None
    quality: str | None
    input_meter: Decimal
    processed_meter: Decimal
    loss_meter: Decimal
    status: StageStatus
    entry_date: datetime | None
    notes: str | None
    # Stage-specific names of the processed and loss meters
    output_field: str
    loss_field: str

    @property
    def pending_meter(self) -> Decimal:
        return self.input_meter - self.processed_meter - self.loss_meter


@dataclass(frozen=True)
class LotDetails:
    """Descriptive lot data, taken from the first stage that recorded the lot."""

    lot_number: str
    party_name: str | None
    customer_id: str | None
    quality: str | None
    source_module: StageModule


@dataclass(frozen=True)
class InputMeterBreakdown:
    """How the available input meter for a stage was computed."""

    target_module: StageModule
    source_module: StageModule | None
    upstream_output: Decimal
    already_claimed: Decimal
    upstream_entries: int

    @property
    def available(self) -> Decimal:
        if self.source_module is None:
            return ZERO
        remaining = self.upstream_output - self.already_claimed
        return remaining if remaining > ZERO else ZERO


class LossKind(str, Enum):
    """What a stage's loss meter measures, named after its loss field."""

    REJECTED = "rejected"
    LONGATION = "longation"
    SHRINKAGE = "shrinkage"
    LOSS = "loss"

    @classmethod
    def for_field(cls, loss_field: str) -> "LossKind":
        return cls(loss_field.removesuffix("_meter"))


@dataclass(frozen=True)
class LossStockEntry:
    """
    Meters a stage lost from a lot in one output update.

    Rows are append-only.  Summing ``meter`` for one source entry gives that
    entry's recorded loss.
    """

    id: UUID
    company_id: UUID
    lot_number: str
    party_name: str | None
    source_module: StageModule
    source_entry_id: UUID
    kind: LossKind
    meter: Decimal
    reason: str
    recorded_at: datetime
