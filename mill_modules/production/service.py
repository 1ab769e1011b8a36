"""
Production Stage Entry Service (``mill_modules.production.service``).

Responsibility
--------------
Creates stage entries for a lot, records their output and loss meters, and
answers per-entry and per-lot queries.  Lot metadata and upstream
availability come from ``LotResolver``.

Invariants
----------
- Each public write method owns its transaction boundary: commit on
  success, rollback and re-raise on any failure.
- ``processed_meter + loss_meter <= input_meter`` on every stored entry.
- Recorded processed and loss meters never decrease.
- Status is re-derived from the meters on every write.
- Entries are never deleted.
- Each increase of a loss meter adds one loss-stock row; the rows of an
  entry sum to its loss meter.

Failure Modes
-------------
- ``InvalidModuleError`` -- unknown stage identifier.
- ``MissingParameterError`` / ``InvalidQuantityError`` -- bad input.
- ``InsufficientInputMeterError`` -- new entry claims more than upstream
  produced (when ``enforce_available_input`` is on).
- ``MeterRegressionError`` / ``MeterExceedsInputError`` -- bad output update.
- ``StageEntryNotFoundError`` / ``CrossTenantAccessError`` -- lookup.

Usage::

    service = StageEntryService(session, clock)
    entry = service.create_entry(company_id, "hazer", "L-1001",
                                 Decimal("500"), actor_id)
    service.record_output(company_id, entry.id, Decimal("480"),
                          Decimal("20"), actor_id)
"""

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from mill_config.schema import ProductionConfig
from mill_kernel.db.types import ZERO, to_decimal, to_uuid
from mill_kernel.domain.clock import Clock, SystemClock
from mill_kernel.domain.params import ensure_tenant, require_id, require_text
from mill_kernel.exceptions import (
    InsufficientInputMeterError,
    InvalidQuantityError,
    MeterExceedsInputError,
    MeterRegressionError,
    StageEntryNotFoundError,
)
from mill_kernel.logging_config import LogContext, get_logger
from mill_modules.production.lot_resolver import LotResolver
from mill_modules.production.models import (
    LossKind,
    LossStockEntry,
    StageEntry,
    StageModule,
    StageStatus,
    derive_status,
    parse_stage,
    pipeline_position,
)
from mill_modules.production.orm import STAGE_MODELS, LossStockRecord, ProductionStageEntry

logger = get_logger("modules.production.service")


def _meter(field: str, value: Any, allow_zero: bool) -> Decimal:
    try:
        meter = to_decimal(value)
    except ValueError:
        raise InvalidQuantityError(field, value, "must be a number") from None
    if meter < ZERO or (meter == ZERO and not allow_zero):
        reason = "cannot be negative" if allow_zero else "must be greater than 0"
        raise InvalidQuantityError(field, value, reason)
    return meter


class StageEntryService:
    """
    Stage entry lifecycle: create, record output, quick complete.

    Non-goals
    ---------
    - Does NOT move inventory.  Fabric meters are tracked per lot here;
      stocked items are handled by the scrap and inventory services.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ProductionConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ProductionConfig()
        self._resolver = LotResolver(session)

    @property
    def resolver(self) -> LotResolver:
        return self._resolver

    # =========================================================================
    # Writes
    # =========================================================================

    def create_entry(
        self,
        company_id: UUID | str,
        stage: StageModule | str,
        lot_number: str,
        input_meter: Decimal | int | str,
        actor_id: UUID | str,
        party_name: str | None = None,
        customer_id: str | None = None,
        quality: str | None = None,
        notes: str | None = None,
    ) -> StageEntry:
        """
        Log a batch of a lot arriving at a stage.

        Missing party, customer and quality are filled from the first stage
        that recorded the lot.

        Postconditions:
            - Entry stored with status ``pending`` and zero output/loss.
            - Session committed on success, rolled back on any failure.
        """
        module = parse_stage(stage)
        company = require_id(company_id, "companyId")
        lot = require_text(lot_number, "lotNumber")
        actor = require_id(actor_id, "userId")
        meter = _meter("inputMeter", input_meter, allow_zero=False)

        with LogContext.bind(lot_number=lot):
            try:
                if party_name is None or customer_id is None or quality is None:
                    details = self._resolver.resolve_lot_details(company, lot)
                    if details is not None:
                        party_name = party_name if party_name is not None else details.party_name
                        customer_id = customer_id if customer_id is not None else details.customer_id
                        quality = quality if quality is not None else details.quality

                if self._config.enforce_available_input:
                    self._check_available_input(company, lot, module, meter)

                model = STAGE_MODELS[module]
                entry = model(
                    company_id=company,
                    lot_number=lot,
                    party_name=party_name,
                    customer_id=customer_id,
                    quality=quality,
                    input_meter=meter,
                    processed_meter=ZERO,
                    loss_meter=ZERO,
                    status=StageStatus.PENDING.value,
                    entry_date=self._clock.now(),
                    notes=notes,
                    created_by_id=actor,
                )
                self._session.add(entry)
                self._session.flush()
                dto = entry.to_dto()
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "stage_entry_created",
                extra={
                    "entry_id": str(dto.id),
                    "stage": module.value,
                    "input_meter": meter,
                },
            )
        return dto

    def record_output(
        self,
        company_id: UUID | str,
        entry_id: UUID | str,
        processed_meter: Decimal | int | str,
        loss_meter: Decimal | int | str,
        actor_id: UUID | str,
    ) -> StageEntry:
        """
        Record the processed and loss meters of an entry.

        Values are absolute totals for the entry, not increments.  An increase
        of the loss meter is also written to the loss-stock ledger in the same
        transaction.

        Raises:
            MeterRegressionError: either value is below what is recorded.
            MeterExceedsInputError: processed + loss > input.
        """
        company = require_id(company_id, "companyId")
        actor = require_id(actor_id, "userId")
        processed = _meter("processedMeter", processed_meter, allow_zero=True)
        loss = _meter("lossMeter", loss_meter, allow_zero=True)

        try:
            entry = self._load_for_update(company, entry_id)
            entry_ref = str(entry.id)

            if processed < entry.processed_meter:
                raise MeterRegressionError(
                    entry_ref, "processedMeter", entry.processed_meter, processed
                )
            if loss < entry.loss_meter:
                raise MeterRegressionError(entry_ref, "lossMeter", entry.loss_meter, loss)
            if processed + loss > entry.input_meter:
                raise MeterExceedsInputError(entry_ref, entry.input_meter, processed, loss)

            previous_loss = entry.loss_meter
            self._apply(entry, processed, loss, actor)
            loss_entry = self._record_loss(entry, loss - previous_loss, actor)
            dto = entry.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        if loss_entry is not None:
            logger.info(
                "loss_stock_recorded",
                extra={
                    "entry_id": str(dto.id),
                    "lot_number": dto.lot_number,
                    "kind": loss_entry.kind.value,
                    "meter": loss_entry.meter,
                },
            )
        logger.info(
            "stage_output_recorded",
            extra={
                "entry_id": str(dto.id),
                "lot_number": dto.lot_number,
                "processed_meter": processed,
                "loss_meter": loss,
                "status": dto.status.value,
            },
        )
        return dto

    def quick_complete(
        self,
        company_id: UUID | str,
        entry_id: UUID | str,
        actor_id: UUID | str,
    ) -> StageEntry:
        """
        Mark an entry completed: all remaining input becomes processed.

        Loss keeps its recorded value (0 for an entry with nothing recorded).
        """
        company = require_id(company_id, "companyId")
        actor = require_id(actor_id, "userId")

        try:
            entry = self._load_for_update(company, entry_id)
            processed = entry.input_meter - entry.loss_meter
            self._apply(entry, processed, entry.loss_meter, actor)
            dto = entry.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "stage_entry_quick_completed",
            extra={
                "entry_id": str(dto.id),
                "lot_number": dto.lot_number,
                "processed_meter": dto.processed_meter,
            },
        )
        return dto

    # =========================================================================
    # Reads
    # =========================================================================

    def get_entry(self, company_id: UUID | str, entry_id: UUID | str) -> StageEntry:
        company = require_id(company_id, "companyId")
        entry = self._get(entry_id)
        ensure_tenant("Production stage entry", entry.id, entry.company_id, company)
        return entry.to_dto()

    def list_loss_stock(
        self,
        company_id: UUID | str,
        lot_number: str | None = None,
    ) -> list[LossStockEntry]:
        """Loss-stock rows of a company, oldest first; optionally one lot only."""
        company = require_id(company_id, "companyId")
        query = select(LossStockRecord).where(LossStockRecord.company_id == company)
        if lot_number is not None:
            query = query.where(
                LossStockRecord.lot_number == require_text(lot_number, "lotNumber")
            )
        rows = self._session.execute(
            query.order_by(LossStockRecord.recorded_at, LossStockRecord.created_at)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def list_lot_entries(self, company_id: UUID | str, lot_number: str) -> list[StageEntry]:
        """Every entry of a lot, in pipeline order then entry order."""
        company = require_id(company_id, "companyId")
        lot = require_text(lot_number, "lotNumber")
        rows = self._session.execute(
            select(ProductionStageEntry)
            .where(
                ProductionStageEntry.company_id == company,
                ProductionStageEntry.lot_number == lot,
            )
            .order_by(ProductionStageEntry.entry_date, ProductionStageEntry.created_at)
        ).scalars().all()
        entries = [row.to_dto() for row in rows]
        return sorted(entries, key=lambda e: pipeline_position(e.stage))

    # =========================================================================
    # Internals
    # =========================================================================

    def _check_available_input(
        self,
        company: UUID,
        lot: str,
        module: StageModule,
        meter: Decimal,
    ) -> None:
        breakdown = self._resolver.input_meter_breakdown(company, lot, module)
        # Lots may enter the pipeline mid-way; only lots with upstream
        # entries are held to the upstream output.
        if breakdown.source_module is None or breakdown.upstream_entries == 0:
            return
        if meter > breakdown.available:
            logger.warning(
                "stage_input_exceeds_available",
                extra={
                    "stage": module.value,
                    "available": breakdown.available,
                    "requested": meter,
                },
            )
            raise InsufficientInputMeterError(lot, module.value, breakdown.available, meter)

    def _apply(
        self,
        entry: ProductionStageEntry,
        processed: Decimal,
        loss: Decimal,
        actor: UUID,
    ) -> None:
        entry.processed_meter = processed
        entry.loss_meter = loss
        entry.status = derive_status(entry.input_meter, processed, loss).value
        entry.updated_by_id = actor
        self._session.flush()

    def _record_loss(
        self,
        entry: ProductionStageEntry,
        added: Decimal,
        actor: UUID,
    ) -> LossStockEntry | None:
        if added <= ZERO:
            return None
        kind = LossKind.for_field(entry.loss_field)
        record = LossStockRecord(
            company_id=entry.company_id,
            lot_number=entry.lot_number,
            party_name=entry.party_name,
            source_module=entry.stage,
            source_entry_id=entry.id,
            kind=kind.value,
            meter=added,
            reason=f"{entry.stage.replace('_', ' ')} {kind.value}",
            recorded_at=self._clock.now(),
            created_by_id=actor,
        )
        self._session.add(record)
        self._session.flush()
        return record.to_dto()

    def _get(self, entry_id: UUID | str) -> ProductionStageEntry:
        try:
            entry_uuid = to_uuid(entry_id)
        except ValueError:
            raise StageEntryNotFoundError(str(entry_id)) from None
        entry = self._session.get(ProductionStageEntry, entry_uuid)
        if entry is None:
            raise StageEntryNotFoundError(str(entry_id))
        return entry

    def _load_for_update(self, company: UUID, entry_id: UUID | str) -> ProductionStageEntry:
        try:
            entry_uuid = to_uuid(entry_id)
        except ValueError:
            raise StageEntryNotFoundError(str(entry_id)) from None
        entry = self._session.execute(
            select(ProductionStageEntry)
            .where(ProductionStageEntry.id == entry_uuid)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if entry is None:
            raise StageEntryNotFoundError(str(entry_id))
        ensure_tenant("Production stage entry", entry.id, entry.company_id, company)
        return entry
