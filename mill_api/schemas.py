"""
Request and response models for the HTTP API.

Field names are camelCase on the wire and snake_case in Python.  Quantities
are ``Decimal`` inside the service layer and JSON numbers on the way out.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel, to_snake

from mill_modules.production import LossKind, StageModule, StageStatus
from mill_modules.scrap import (
    ApprovalStatus,
    DisposalMethod,
    MoveToScrapRequest,
    ScrapReason,
    ScrapStatus,
)

Number = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def envelope(message: str, data: Any) -> dict[str, Any]:
    """Standard success body."""
    if isinstance(data, BaseModel):
        data = dump(data)
    elif isinstance(data, list):
        data = [dump(d) if isinstance(d, BaseModel) else d for d in data]
    return {"success": True, "message": message, "data": data}


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class MoveToScrapIn(CamelModel):
    quantity: Decimal
    scrap_reason: str
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
    tags: list[str] = Field(default_factory=list)
    scrap_date: datetime | None = None
    approval_required: bool = False

    def to_request(self) -> MoveToScrapRequest:
        fields = self.model_dump()
        fields["tags"] = tuple(self.tags)
        return MoveToScrapRequest(**fields)


class DisposeIn(CamelModel):
    disposal_method: str
    disposal_value: Decimal | None = None
    disposal_notes: str | None = None


class UpdateScrapIn(CamelModel):
    """
    Editable scrap fields.  Any other field is passed through so the service
    can reject it by name.
    """

    model_config = ConfigDict(extra="allow")

    scrap_reason: str | None = None
    scrap_reason_details: str | None = None
    warehouse_name: str | None = None
    zone: str | None = None
    rack: str | None = None
    bin: str | None = None
    quality_grade: str | None = None
    defect_details: str | None = None
    batch_number: str | None = None
    lot_number: str | None = None
    notes: str | None = None
    tags: list[str] | None = None

    def changes(self) -> dict[str, Any]:
        """Fields present in the request body, snake_case."""
        fields = {name: getattr(self, name) for name in self.model_fields_set if name in type(self).model_fields}
        fields.update({to_snake(name): value for name, value in (self.model_extra or {}).items()})
        return fields


class CreateStageEntryIn(CamelModel):
    lot_number: str
    input_meter: Decimal
    party_name: str | None = None
    customer_id: str | None = None
    quality: str | None = None
    notes: str | None = None


class RecordOutputIn(CamelModel):
    processed_meter: Decimal
    loss_meter: Decimal = Decimal("0")


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class StockImpactOut(CamelModel):
    inventory_stock_before: Number
    inventory_stock_after: Number
    scrap_stock_before: Number
    scrap_stock_after: Number


class DisposalOut(CamelModel):
    disposed: bool
    disposal_method: DisposalMethod | None = None
    disposal_value: Number | None = None
    disposal_date: datetime | None = None
    disposal_notes: str | None = None
    disposed_by: UUID | None = None


class ScrapOut(CamelModel):
    id: UUID
    scrap_number: str
    company_id: UUID
    inventory_item_id: UUID
    item_code: str | None
    item_name: str | None
    item_description: str | None
    quantity: Number
    unit: str
    scrap_reason: ScrapReason
    scrap_reason_details: str | None
    scrap_date: datetime
    warehouse_id: str | None
    warehouse_name: str | None
    zone: str | None
    rack: str | None
    bin: str | None
    stock_impact: StockImpactOut
    unit_cost: Number
    total_value: Number
    quality_grade: str | None
    defect_details: str | None
    batch_number: str | None
    lot_number: str | None
    approval_required: bool
    approval_status: ApprovalStatus
    disposal: DisposalOut
    status: ScrapStatus
    notes: str | None
    tags: list[str]
    created_by_id: UUID
    updated_by_id: UUID | None


class ScrapPageOut(CamelModel):
    items: list[ScrapOut]
    total: int
    page: int
    limit: int
    total_pages: int


class ReasonBreakdownOut(CamelModel):
    reason: ScrapReason
    quantity: Number
    value: Number
    count: int


class ItemBreakdownOut(CamelModel):
    item_id: UUID
    item_code: str | None
    item_name: str | None
    quantity: Number
    value: Number


class ScrapSummaryOut(CamelModel):
    total_scrap_quantity: Number
    total_scrap_value: Number
    by_reason: list[ReasonBreakdownOut]
    by_item: list[ItemBreakdownOut]


class StageEntryOut(CamelModel):
    id: UUID
    company_id: UUID
    stage: StageModule
    lot_number: str
    party_name: str | None
    customer_id: str | None
    quality: str | None
    input_meter: Number
    processed_meter: Number
    loss_meter: Number
    pending_meter: Number
    status: StageStatus
    entry_date: datetime | None
    notes: str | None
    output_field: str
    loss_field: str


class LossStockOut(CamelModel):
    id: UUID
    lot_number: str
    party_name: str | None
    source_module: StageModule
    source_entry_id: UUID
    kind: LossKind
    meter: Number
    reason: str
    recorded_at: datetime


class LotDetailsOut(CamelModel):
    party_name: str | None
    customer_id: str | None
    quality: str | None
    source_module: StageModule


class LotDetailsResponse(CamelModel):
    success: bool = True
    lot_details: LotDetailsOut | None


class AvailableMeterResponse(CamelModel):
    success: bool = True
    available_meter: Number
