"""Lot queries: carried-forward details, available input meter, history and losses."""

from fastapi import APIRouter, Depends

from mill_api.dependencies import TenantContext, get_stage_entry_service, get_tenant
from mill_api.schemas import (
    AvailableMeterResponse,
    LossStockOut,
    LotDetailsOut,
    LotDetailsResponse,
    StageEntryOut,
    dump,
    envelope,
)
from mill_modules.production import StageEntryService

router = APIRouter(prefix="/production/lot", tags=["Production lots"])


@router.get("/{lot_number}/details")
def get_lot_details(
    lot_number: str,
    tenant: TenantContext = Depends(get_tenant),
    service: StageEntryService = Depends(get_stage_entry_service),
):
    details = service.resolver.resolve_lot_details(tenant.company_id, lot_number)
    lot_details = LotDetailsOut.model_validate(details) if details is not None else None
    return dump(LotDetailsResponse(lot_details=lot_details))


@router.get("/{lot_number}/input-meter/{target_module}")
def get_available_input_meter(
    lot_number: str,
    target_module: str,
    tenant: TenantContext = Depends(get_tenant),
    service: StageEntryService = Depends(get_stage_entry_service),
):
    available = service.resolver.resolve_available_input_meter(
        tenant.company_id, lot_number, target_module
    )
    return dump(AvailableMeterResponse(available_meter=available))


@router.get("/{lot_number}/entries")
def list_lot_entries(
    lot_number: str,
    tenant: TenantContext = Depends(get_tenant),
    service: StageEntryService = Depends(get_stage_entry_service),
):
    entries = service.list_lot_entries(tenant.company_id, lot_number)
    return envelope(
        f"{len(entries)} entries for lot {lot_number}",
        [StageEntryOut.model_validate(e) for e in entries],
    )


@router.get("/{lot_number}/loss-stock")
def list_lot_loss_stock(
    lot_number: str,
    tenant: TenantContext = Depends(get_tenant),
    service: StageEntryService = Depends(get_stage_entry_service),
):
    rows = service.list_loss_stock(tenant.company_id, lot_number)
    return envelope(
        f"{len(rows)} loss-stock rows for lot {lot_number}",
        [LossStockOut.model_validate(r) for r in rows],
    )
