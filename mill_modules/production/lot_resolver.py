"""
Lot Resolver (``mill_modules.production.lot_resolver``).

Responsibility
--------------
Answers the two read-only questions every stage entry form asks about a lot:

- ``resolve_lot_details``: party, customer and quality, inherited from the
  first stage (in pipeline order) that recorded the lot.
- ``resolve_available_input_meter``: how much good output the upstream stage
  has produced for the lot that the target stage has not yet claimed as
  input.

Stages are looked up through ``STAGE_SOURCES``, an ordered registry with one
line per stage.  Adding a stage means adding one ``StageSource``.

Consistency
-----------
Reads take no locks.  A value that is slightly stale relative to a
concurrent stage entry write is acceptable: ``StageEntryService`` re-checks
at write time and the operator re-submits if rejected.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from mill_kernel.db.types import ZERO, to_decimal
from mill_kernel.domain.params import require_id, require_text
from mill_kernel.logging_config import get_logger
from mill_modules.production.models import (
    InputMeterBreakdown,
    LotDetails,
    StageModule,
    parse_stage,
    previous_stage,
)
from mill_modules.production.orm import (
    AfterBleachingEntry,
    BleachingEntry,
    FeltEntry,
    FinishingEntry,
    FoldingEntry,
    HazerEntry,
    PackingEntry,
    PrintingEntry,
    ProductionStageEntry,
    WashingEntry,
)

logger = get_logger("modules.production.lot_resolver")


@dataclass(frozen=True)
class StageSource:
    """Where a stage's entries live and which columns hold its meters."""

    module: StageModule
    model: type[ProductionStageEntry]
    output_of: str
    input_of: str = "input_meter"

    def output_column(self):
        return getattr(self.model, self.output_of)

    def input_column(self):
        return getattr(self.model, self.input_of)


STAGE_SOURCES: tuple[StageSource, ...] = (
    StageSource(StageModule.BLEACHING, BleachingEntry, "bleached_meter"),
    StageSource(StageModule.AFTER_BLEACHING, AfterBleachingEntry, "available_meter"),
    StageSource(StageModule.PRINTING, PrintingEntry, "printed_meter"),
    StageSource(StageModule.HAZER, HazerEntry, "processed_meter"),
    StageSource(StageModule.WASHING, WashingEntry, "washed_meter"),
    StageSource(StageModule.FINISHING, FinishingEntry, "finished_meter"),
    StageSource(StageModule.FELT, FeltEntry, "felt_meter"),
    StageSource(StageModule.FOLDING, FoldingEntry, "checked_meter"),
    StageSource(StageModule.PACKING, PackingEntry, "packed_meter"),
)

class LotResolver:
    """Read-only lot queries across every production stage."""

    def __init__(self, session: Session, sources: tuple[StageSource, ...] = STAGE_SOURCES):
        self._session = session
        self._sources = sources
        self._by_module = {source.module: source for source in sources}

    def resolve_lot_details(self, company_id: UUID | str, lot_number: str) -> LotDetails | None:
        """
        Descriptive data for a lot, or None if no stage has recorded it.

        Raises:
            MissingParameterError: company_id or lot_number not supplied.
        """
        company = require_id(company_id, "companyId")
        lot = require_text(lot_number, "lotNumber")

        for source in self._sources:
            model = source.model
            row = self._session.execute(
                select(model)
                .where(
                    model.company_id == company,
                    model.lot_number == lot,
                    model.stage == source.module.value,
                )
                .order_by(model.created_at, model.id)
                .limit(1)
            ).scalars().first()
            if row is not None:
                logger.debug(
                    "lot_details_resolved",
                    extra={"lot_number": lot, "source_module": source.module.value},
                )
                return LotDetails(
                    lot_number=lot,
                    party_name=row.party_name,
                    customer_id=row.customer_id,
                    quality=row.quality,
                    source_module=source.module,
                )

        logger.debug("lot_details_not_found", extra={"lot_number": lot})
        return None

    def input_meter_breakdown(
        self,
        company_id: UUID | str,
        lot_number: str,
        target_module: StageModule | str,
    ) -> InputMeterBreakdown:
        """
        Upstream output and already-claimed input for ``target_module``.

        Raises:
            InvalidModuleError: target_module is not a pipeline stage.
            MissingParameterError: company_id or lot_number not supplied.
        """
        target = parse_stage(target_module)
        company = require_id(company_id, "companyId")
        lot = require_text(lot_number, "lotNumber")

        upstream = previous_stage(target)
        if upstream is None:
            return InputMeterBreakdown(
                target_module=target,
                source_module=None,
                upstream_output=ZERO,
                already_claimed=ZERO,
                upstream_entries=0,
            )

        upstream_output, upstream_entries = self._sum(
            self._by_module[upstream], "output", company, lot
        )
        already_claimed, _ = self._sum(self._by_module[target], "input", company, lot)

        return InputMeterBreakdown(
            target_module=target,
            source_module=upstream,
            upstream_output=upstream_output,
            already_claimed=already_claimed,
            upstream_entries=upstream_entries,
        )

    def resolve_available_input_meter(
        self,
        company_id: UUID | str,
        lot_number: str,
        target_module: StageModule | str,
    ) -> Decimal:
        """
        Upstream output not yet claimed by ``target_module``; never negative.

        The first pipeline stage has no upstream and always gets 0.
        """
        breakdown = self.input_meter_breakdown(company_id, lot_number, target_module)
        logger.debug(
            "available_input_meter_resolved",
            extra={
                "lot_number": str(lot_number),
                "target_module": breakdown.target_module.value,
                "upstream_output": breakdown.upstream_output,
                "already_claimed": breakdown.already_claimed,
                "available": breakdown.available,
            },
        )
        return breakdown.available

    def _sum(
        self,
        source: StageSource,
        side: str,
        company: UUID,
        lot: str,
    ) -> tuple[Decimal, int]:
        model = source.model
        column = source.output_column() if side == "output" else source.input_column()
        total, count = self._session.execute(
            select(func.coalesce(func.sum(column), 0), func.count(model.id))
            .where(
                model.company_id == company,
                model.lot_number == lot,
                model.stage == source.module.value,
            )
        ).one()
        return to_decimal(total, ZERO), int(count or 0)
