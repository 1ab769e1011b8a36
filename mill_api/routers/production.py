"""Production stage entries: create, record output, quick complete."""

from fastapi import APIRouter, Depends

from mill_api.dependencies import TenantContext, get_stage_entry_service, get_tenant
from mill_api.schemas import CreateStageEntryIn, RecordOutputIn, StageEntryOut, envelope
from mill_modules.production import StageEntryService

router = APIRouter(prefix="/production/entries", tags=["Production entries"])


@router.post("/{stage}", status_code=201)
def create_stage_entry(
    stage: str,
    body: CreateStageEntryIn,
    tenant: TenantContext = Depends(get_tenant),
    service: StageEntryService = Depends(get_stage_entry_service),
):
    entry = service.create_entry(
        tenant.company_id,
        stage,
        body.lot_number,
        body.input_meter,
        tenant.require_user(),
        party_name=body.party_name,
        customer_id=body.customer_id,
        quality=body.quality,
        notes=body.notes,
    )
    return envelope("Stage entry created", StageEntryOut.model_validate(entry))


@router.put("/{entry_id}/output")
def record_output(
    entry_id: str,
    body: RecordOutputIn,
    tenant: TenantContext = Depends(get_tenant),
    service: StageEntryService = Depends(get_stage_entry_service),
):
    entry = service.record_output(
        tenant.company_id,
        entry_id,
        body.processed_meter,
        body.loss_meter,
        tenant.require_user(),
    )
    return envelope("Output recorded", StageEntryOut.model_validate(entry))


@router.post("/{entry_id}/quick-complete")
def quick_complete(
    entry_id: str,
    tenant: TenantContext = Depends(get_tenant),
    service: StageEntryService = Depends(get_stage_entry_service),
):
    entry = service.quick_complete(tenant.company_id, entry_id, tenant.require_user())
    return envelope("Stage entry completed", StageEntryOut.model_validate(entry))


@router.get("/{entry_id}")
def get_stage_entry(
    entry_id: str,
    tenant: TenantContext = Depends(get_tenant),
    service: StageEntryService = Depends(get_stage_entry_service),
):
    entry = service.get_entry(tenant.company_id, entry_id)
    return envelope("Stage entry", StageEntryOut.model_validate(entry))
