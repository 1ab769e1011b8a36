"""
Module: mill_modules.production.orm
Responsibility: SQLAlchemy persistence for production stage entries and the
    loss-stock ledger.  All stages share one table (single-table inheritance
    on the ``stage`` column); each stage subclass exposes its own names for
    the output and loss meters as synonyms of the shared columns.

Architecture position: Modules > Production > ORM.  Inherits from
    TrackedBase (mill_kernel.db.base).

Invariants enforced:
    - All meter fields use Decimal (Numeric(38,9)).
    - processed_meter + loss_meter <= input_meter (enforced by
      StageEntryService).
    - Entries are never deleted; status changes only.
    - Loss-stock rows are append-only (mill_kernel.db.immutability).
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, synonym

from mill_kernel.db.base import TrackedBase, UUIDString
from mill_kernel.db.immutability import append_only
from mill_kernel.db.types import ZERO
from mill_modules.production.models import (
    LossKind,
    LossStockEntry,
    StageEntry,
    StageModule,
    StageStatus,
)


class ProductionStageEntry(TrackedBase):
    """
    ORM base for every stage's entries.

    Subclasses set ``stage_module`` and the stage-specific meter names.
    """

    __tablename__ = "production_stage_entries"

    __table_args__ = (
        Index("idx_stage_entry_lot", "company_id", "lot_number", "stage"),
        Index("idx_stage_entry_status", "status"),
    )

    stage_module: ClassVar[StageModule]
    output_field: ClassVar[str] = "processed_meter"
    loss_field: ClassVar[str] = "loss_meter"

    stage: Mapped[str] = mapped_column(String(30), nullable=False)

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    lot_number: Mapped[str] = mapped_column(String(100), nullable=False)

    # Descriptive, carried forward from the first stage that saw the lot
    party_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    quality: Mapped[str | None] = mapped_column(String(255), nullable=True)

    input_meter: Mapped[Decimal] = mapped_column(nullable=False)
    processed_meter: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    loss_meter: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=StageStatus.PENDING.value,
    )
    entry_date: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    __mapper_args__ = {"polymorphic_on": "stage"}

    def to_dto(self) -> StageEntry:
        """Convert ORM row to the frozen StageEntry DTO."""
        return StageEntry(
            id=self.id,
            company_id=self.company_id,
            stage=StageModule(self.stage),
            lot_number=self.lot_number,
            party_name=self.party_name,
            customer_id=self.customer_id,
            quality=self.quality,
            input_meter=self.input_meter,
            processed_meter=self.processed_meter,
            loss_meter=self.loss_meter,
            status=StageStatus(self.status),
            entry_date=self.entry_date,
            notes=self.notes,
            output_field=self.output_field,
            loss_field=self.loss_field,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} lot={self.lot_number} input={self.input_meter}>"


class BleachingEntry(ProductionStageEntry):
    __mapper_args__ = {"polymorphic_identity": StageModule.BLEACHING.value}
    stage_module = StageModule.BLEACHING
    output_field = "bleached_meter"
    bleached_meter = synonym("processed_meter")


class AfterBleachingEntry(ProductionStageEntry):
    """Longation check after bleaching; loss is recorded as longation."""

    __mapper_args__ = {"polymorphic_identity": StageModule.AFTER_BLEACHING.value}
    stage_module = StageModule.AFTER_BLEACHING
    output_field = "available_meter"
    loss_field = "longation_meter"
    available_meter = synonym("processed_meter")
    longation_meter = synonym("loss_meter")


class PrintingEntry(ProductionStageEntry):
    __mapper_args__ = {"polymorphic_identity": StageModule.PRINTING.value}
    stage_module = StageModule.PRINTING
    output_field = "printed_meter"
    loss_field = "rejected_meter"
    printed_meter = synonym("processed_meter")
    rejected_meter = synonym("loss_meter")


class HazerEntry(ProductionStageEntry):
    """Hazer / silicate / curing."""

    __mapper_args__ = {"polymorphic_identity": StageModule.HAZER.value}
    stage_module = StageModule.HAZER


class WashingEntry(ProductionStageEntry):
    __mapper_args__ = {"polymorphic_identity": StageModule.WASHING.value}
    stage_module = StageModule.WASHING
    output_field = "washed_meter"
    loss_field = "shrinkage_meter"
    washed_meter = synonym("processed_meter")
    shrinkage_meter = synonym("loss_meter")


class FinishingEntry(ProductionStageEntry):
    __mapper_args__ = {"polymorphic_identity": StageModule.FINISHING.value}
    stage_module = StageModule.FINISHING
    output_field = "finished_meter"
    finished_meter = synonym("processed_meter")


class FeltEntry(ProductionStageEntry):
    __mapper_args__ = {"polymorphic_identity": StageModule.FELT.value}
    stage_module = StageModule.FELT
    output_field = "felt_meter"
    felt_meter = synonym("processed_meter")


class FoldingEntry(ProductionStageEntry):
    """Folding / checking."""

    __mapper_args__ = {"polymorphic_identity": StageModule.FOLDING.value}
    stage_module = StageModule.FOLDING
    output_field = "checked_meter"
    loss_field = "rejected_meter"
    checked_meter = synonym("processed_meter")
    rejected_meter = synonym("loss_meter")


class PackingEntry(ProductionStageEntry):
    __mapper_args__ = {"polymorphic_identity": StageModule.PACKING.value}
    stage_module = StageModule.PACKING
    output_field = "packed_meter"
    packed_meter = synonym("processed_meter")


STAGE_MODELS: dict[StageModule, type[ProductionStageEntry]] = {
    model.stage_module: model
    for model in (
        BleachingEntry,
        AfterBleachingEntry,
        PrintingEntry,
        HazerEntry,
        WashingEntry,
        FinishingEntry,
        FeltEntry,
        FoldingEntry,
        PackingEntry,
    )
}


@append_only
class LossStockRecord(TrackedBase):
    """
    One increase of a stage entry's loss meter.

    Rejected printing and folding meters, after-bleaching longation and
    washing shrinkage all land here, so the mill can see what each lot lost
    where without replaying every entry.
    """

    __tablename__ = "production_loss_stock"

    __table_args__ = (
        Index("idx_loss_stock_lot", "company_id", "lot_number"),
        Index("idx_loss_stock_source", "source_entry_id"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    lot_number: Mapped[str] = mapped_column(String(100), nullable=False)
    party_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    source_module: Mapped[str] = mapped_column(String(30), nullable=False)
    source_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("production_stage_entries.id"),
        nullable=False,
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    meter: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(nullable=False)

    def to_dto(self) -> LossStockEntry:
        return LossStockEntry(
            id=self.id,
            company_id=self.company_id,
            lot_number=self.lot_number,
            party_name=self.party_name,
            source_module=StageModule(self.source_module),
            source_entry_id=self.source_entry_id,
            kind=LossKind(self.kind),
            meter=self.meter,
            reason=self.reason,
            recorded_at=self.recorded_at,
        )
