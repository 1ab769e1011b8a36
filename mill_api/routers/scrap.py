"""
Scrap ledger endpoints.

Static paths (``/summary``, ``/inventory/...``) are declared before
``/{scrap_id}`` so they are matched first.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic.alias_generators import to_snake

from mill_api.dependencies import TenantContext, get_scrap_service, get_tenant
from mill_api.schemas import (
    DisposeIn,
    MoveToScrapIn,
    ScrapOut,
    ScrapPageOut,
    ScrapSummaryOut,
    UpdateScrapIn,
    envelope,
)
from mill_modules.scrap import ScrapFilters, ScrapService

router = APIRouter(prefix="/scrap", tags=["Scrap"])


@router.post("/inventory/{inventory_item_id}/move", status_code=201)
def move_to_scrap(
    inventory_item_id: str,
    body: MoveToScrapIn,
    tenant: TenantContext = Depends(get_tenant),
    service: ScrapService = Depends(get_scrap_service),
):
    record = service.move_to_scrap(
        inventory_item_id,
        body.to_request(),
        tenant.require_user(),
        tenant.company_id,
    )
    return envelope("Item moved to scrap successfully", ScrapOut.model_validate(record))


@router.get("/summary")
def scrap_summary(
    date_from: datetime | None = Query(default=None, alias="dateFrom"),
    date_to: datetime | None = Query(default=None, alias="dateTo"),
    tenant: TenantContext = Depends(get_tenant),
    service: ScrapService = Depends(get_scrap_service),
):
    summary = service.get_scrap_summary(tenant.company_id, date_from, date_to)
    return envelope("Scrap summary", ScrapSummaryOut.model_validate(summary))


@router.get("/inventory/{inventory_item_id}")
def scraps_for_item(
    inventory_item_id: str,
    tenant: TenantContext = Depends(get_tenant),
    service: ScrapService = Depends(get_scrap_service),
):
    records = service.scraps_for_item(tenant.company_id, inventory_item_id)
    return envelope(
        f"{len(records)} scrap records",
        [ScrapOut.model_validate(r) for r in records],
    )


@router.get("")
def list_scraps(
    status: str | None = None,
    scrap_reason: str | None = Query(default=None, alias="scrapReason"),
    inventory_item_id: str | None = Query(default=None, alias="inventoryItemId"),
    date_from: datetime | None = Query(default=None, alias="dateFrom"),
    date_to: datetime | None = Query(default=None, alias="dateTo"),
    disposed: bool | None = None,
    page: int = 1,
    limit: int | None = None,
    sort_by: str = Query(default="scrap_date", alias="sortBy"),
    sort_order: str = Query(default="desc", alias="sortOrder"),
    tenant: TenantContext = Depends(get_tenant),
    service: ScrapService = Depends(get_scrap_service),
):
    filters = ScrapFilters(
        status=status,
        scrap_reason=scrap_reason,
        inventory_item_id=inventory_item_id,
        date_from=date_from,
        date_to=date_to,
        disposed=disposed,
    )
    result = service.list_scraps(
        tenant.company_id,
        filters,
        page=page,
        limit=limit,
        sort_by=to_snake(sort_by),
        sort_order=sort_order,
    )
    return envelope("Scrap records", ScrapPageOut.model_validate(result))


@router.get("/{scrap_id}")
def get_scrap(
    scrap_id: str,
    tenant: TenantContext = Depends(get_tenant),
    service: ScrapService = Depends(get_scrap_service),
):
    record = service.get_scrap(tenant.company_id, scrap_id)
    return envelope("Scrap record", ScrapOut.model_validate(record))


@router.put("/{scrap_id}")
def update_scrap(
    scrap_id: str,
    body: UpdateScrapIn,
    tenant: TenantContext = Depends(get_tenant),
    service: ScrapService = Depends(get_scrap_service),
):
    record = service.update_scrap(
        tenant.company_id,
        scrap_id,
        body.changes(),
        tenant.require_user(),
    )
    return envelope("Scrap record updated", ScrapOut.model_validate(record))


@router.post("/{scrap_id}/dispose")
def dispose_scrap(
    scrap_id: str,
    body: DisposeIn,
    tenant: TenantContext = Depends(get_tenant),
    service: ScrapService = Depends(get_scrap_service),
):
    record = service.mark_disposed(
        scrap_id,
        body.disposal_method,
        body.disposal_value,
        body.disposal_notes,
        tenant.require_user(),
        tenant.company_id,
    )
    return envelope("Scrap marked as disposed", ScrapOut.model_validate(record))


@router.delete("/{scrap_id}")
def cancel_scrap(
    scrap_id: str,
    tenant: TenantContext = Depends(get_tenant),
    service: ScrapService = Depends(get_scrap_service),
):
    record = service.cancel_scrap(scrap_id, tenant.company_id, tenant.user_id)
    return envelope("Scrap cancelled", ScrapOut.model_validate(record))
