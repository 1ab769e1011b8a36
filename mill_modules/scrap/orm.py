"""
Module: mill_modules.scrap.orm
Responsibility: SQLAlchemy persistence for the scrap ledger.

Architecture position: Modules > Scrap > ORM.  Inherits from TrackedBase
    (mill_kernel.db.base).  References InventoryItem by foreign key;
    warehouses are opaque string ids owned outside this package.

Invariants enforced:
    - scrap_number is unique (uq_scrap_number).  A duplicate raises
      IntegrityError, which ScrapService turns into a regenerate-and-retry.
    - Quantities, costs and stock snapshots use Decimal (Numeric(38,9)).
    - Enum fields stored as String for portability.
    - Rows are never deleted; cancellation is a status change.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mill_kernel.db.base import TrackedBase, UUIDString
from mill_kernel.db.types import ZERO
from mill_modules.scrap.models import (
    ApprovalStatus,
    Disposal,
    DisposalMethod,
    ScrapReason,
    ScrapRecord,
    ScrapStatus,
    StockImpact,
)


class ScrapModel(TrackedBase):
    """
    ORM model for a scrap ledger entry.

    Maps to: mill_modules.scrap.models.ScrapRecord (frozen dataclass).
    """

    __tablename__ = "scraps"

    __table_args__ = (
        UniqueConstraint("scrap_number", name="uq_scrap_number"),
        Index("idx_scrap_company_status", "company_id", "status"),
        Index("idx_scrap_item", "company_id", "inventory_item_id"),
        Index("idx_scrap_date", "scrap_date"),
    )

    scrap_number: Mapped[str] = mapped_column(String(100), nullable=False)
    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    inventory_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id"),
        nullable=False,
    )
    item_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    item_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    item_description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="pcs")

    scrap_reason: Mapped[str] = mapped_column(String(30), nullable=False)
    scrap_reason_details: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    scrap_date: Mapped[datetime] = mapped_column(nullable=False)

    # Where the scrapped stock was taken from
    warehouse_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    warehouse_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    zone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    rack: Mapped[str | None] = mapped_column(String(50), nullable=True)
    bin: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Stock snapshot at move time
    inventory_stock_before: Mapped[Decimal] = mapped_column(nullable=False)
    inventory_stock_after: Mapped[Decimal] = mapped_column(nullable=False)
    scrap_stock_before: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    scrap_stock_after: Mapped[Decimal] = mapped_column(nullable=False)

    unit_cost: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_value: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    quality_grade: Mapped[str | None] = mapped_column(String(50), nullable=True)
    defect_details: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    batch_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    lot_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    approval_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    approval_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ApprovalStatus.APPROVED.value,
    )

    # Disposal
    disposed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    disposal_method: Mapped[str | None] = mapped_column(String(20), nullable=True)
    disposal_value: Mapped[Decimal | None] = mapped_column(nullable=True)
    disposal_date: Mapped[datetime | None] = mapped_column(nullable=True)
    disposal_notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    disposed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ScrapStatus.ACTIVE.value,
    )

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    tags: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    @property
    def is_active(self) -> bool:
        return self.status == ScrapStatus.ACTIVE.value

    def to_dto(self) -> ScrapRecord:
        """Convert ORM row to the frozen ScrapRecord DTO."""
        return ScrapRecord(
            id=self.id,
            scrap_number=self.scrap_number,
            company_id=self.company_id,
            inventory_item_id=self.inventory_item_id,
            item_code=self.item_code,
            item_name=self.item_name,
            item_description=self.item_description,
            quantity=self.quantity,
            unit=self.unit,
            scrap_reason=ScrapReason(self.scrap_reason),
            scrap_reason_details=self.scrap_reason_details,
            scrap_date=self.scrap_date,
            warehouse_id=self.warehouse_id,
            warehouse_name=self.warehouse_name,
            zone=self.zone,
            rack=self.rack,
            bin=self.bin,
            stock_impact=StockImpact(
                inventory_stock_before=self.inventory_stock_before,
                inventory_stock_after=self.inventory_stock_after,
                scrap_stock_before=self.scrap_stock_before,
                scrap_stock_after=self.scrap_stock_after,
            ),
            unit_cost=self.unit_cost,
            total_value=self.total_value,
            quality_grade=self.quality_grade,
            defect_details=self.defect_details,
            batch_number=self.batch_number,
            lot_number=self.lot_number,
            approval_required=self.approval_required,
            approval_status=ApprovalStatus(self.approval_status),
            disposal=Disposal(
                disposed=self.disposed,
                disposal_method=(
                    DisposalMethod(self.disposal_method) if self.disposal_method else None
                ),
                disposal_value=self.disposal_value,
                disposal_date=self.disposal_date,
                disposal_notes=self.disposal_notes,
                disposed_by=self.disposed_by_id,
            ),
            status=ScrapStatus(self.status),
            notes=self.notes,
            tags=tuple(self.tags or ()),
            created_by_id=self.created_by_id,
            updated_by_id=self.updated_by_id,
        )

    def __repr__(self) -> str:
        return f"<ScrapModel {self.scrap_number} qty={self.quantity} status={self.status}>"
