"""
Scrap Ledger Service (``mill_modules.scrap.service``).

Responsibility
--------------
Moves inventory to scrap, reverses a scrap (cancel), records disposal, and
answers list / detail / summary queries.  Keeps ``InventoryItem`` stock,
the scrap record and its stock movement consistent.

Architecture
------------
Layer: **Modules** -- orchestration over kernel services:

1. ``InventoryStockService`` locks the item and applies the stock change.
2. ``DocumentNumberService`` allocates ``SCRAP-{code}-{YYYYMMDD}-{seq}``.
3. ``ScrapMovementRecorder`` writes the ``damage`` movement, best effort.

Invariants
----------
- Each public write method owns its transaction boundary: commit on
  success, rollback and re-raise on any failure.
- The item row is locked (``SELECT ... FOR UPDATE``) before the stock check,
  so two concurrent moves against one item cannot both pass it.
- After a move, ``current_stock`` has decreased by exactly ``quantity`` and
  ``stock_impact.inventory_stock_after`` equals the new value.
- Cancel restores stock only for an active, non-disposed record.  Disposal
  is terminal for stock purposes.
- Approval state does not gate the stock decrement.

Failure Modes
-------------
Checked in this order for a move, first failure wins:

1. ``InventoryItemNotFoundError``
2. ``CrossTenantAccessError``
3. ``InvalidQuantityError``
4. ``InsufficientStockError`` (carries available and requested)

``DuplicateDocumentNumberError`` if the scrap number still collides after
the configured retries.  A failed stock movement write is logged and
swallowed.
"""

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mill_config.schema import NumberingConfig, ScrapConfig
from mill_kernel.db.types import ZERO, to_decimal, to_uuid
from mill_kernel.domain.clock import Clock, SystemClock
from mill_kernel.domain.params import ensure_tenant, require_id
from mill_kernel.exceptions import (
    DuplicateDocumentNumberError,
    InsufficientStockError,
    InvalidQuantityError,
    ProtectedFieldError,
    ScrapAlreadyDisposedError,
    ScrapNotFoundError,
    ValidationError,
)
from mill_kernel.logging_config import LogContext, get_logger
from mill_kernel.services.document_number_service import DocumentNumberService
from mill_kernel.services.inventory_stock_service import InventoryStockService
from mill_kernel.services.stock_movement_service import StockMovementService
from mill_modules.scrap.audit import ScrapMovementRecorder
from mill_modules.scrap.models import (
    ApprovalStatus,
    DisposalMethod,
    ItemBreakdown,
    MoveToScrapRequest,
    ReasonBreakdown,
    ScrapFilters,
    ScrapPage,
    ScrapReason,
    ScrapRecord,
    ScrapStatus,
    ScrapSummary,
)
from mill_modules.scrap.orm import ScrapModel

logger = get_logger("modules.scrap.service")

# Descriptive fields that may change after the move
EDITABLE_FIELDS = frozenset({
    "scrap_reason",
    "scrap_reason_details",
    "warehouse_name",
    "zone",
    "rack",
    "bin",
    "quality_grade",
    "defect_details",
    "batch_number",
    "lot_number",
    "notes",
    "tags",
})

# Dropped from an update without error
IGNORED_UPDATE_FIELDS = frozenset({"quantity", "inventory_item_id", "stock_impact"})

SORTABLE_FIELDS = {
    "scrap_date": ScrapModel.scrap_date,
    "scrap_number": ScrapModel.scrap_number,
    "quantity": ScrapModel.quantity,
    "total_value": ScrapModel.total_value,
    "created_at": ScrapModel.created_at,
}


def _parse_reason(value: Any) -> ScrapReason:
    try:
        return ScrapReason(value)
    except ValueError:
        raise ValidationError(
            f"Invalid scrap reason '{value}'. Valid reasons: "
            f"{', '.join(r.value for r in ScrapReason)}"
        ) from None


def _parse_status(value: Any) -> ScrapStatus:
    try:
        return ScrapStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid scrap status '{value}'. Valid statuses: "
            f"{', '.join(s.value for s in ScrapStatus)}"
        ) from None


def _parse_disposal_method(value: Any) -> DisposalMethod:
    try:
        return DisposalMethod(value)
    except ValueError:
        raise ValidationError(
            f"Invalid disposal method '{value}'. Valid methods: "
            f"{', '.join(m.value for m in DisposalMethod)}"
        ) from None


def _check_update_types(changes: dict[str, Any]) -> None:
    for name, value in changes.items():
        if value is None:
            continue
        if name == "tags":
            if isinstance(value, str) or not isinstance(value, (list, tuple)):
                raise ValidationError("tags must be a list of strings")
            if not all(isinstance(tag, str) for tag in value):
                raise ValidationError("tags must be a list of strings")
        elif not isinstance(value, str):
            raise ValidationError(f"{name} must be a string")


def _first_cost(*candidates: Decimal | None) -> Decimal:
    """First candidate that is set and non-zero, else 0."""
    for candidate in candidates:
        if candidate:
            return to_decimal(candidate)
    return ZERO


class ScrapService:
    """
    Scrap ledger operations.

    Non-goals
    ---------
    - Does NOT approve or reject scrap; approval status is recorded only.
    - Does NOT delete records; ``cancel_scrap`` is the reversal.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        scrap_config: ScrapConfig | None = None,
        numbering_config: NumberingConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = scrap_config or ScrapConfig()
        self._numbering = numbering_config or NumberingConfig()

        self._numbers = DocumentNumberService(
            session,
            self._clock,
            fallback_company_code=self._numbering.fallback_company_code,
            sequence_width=self._numbering.sequence_width,
            scrap_prefix=self._numbering.scrap_prefix,
            movement_prefix=self._numbering.movement_prefix,
        )
        self._stock = InventoryStockService(session, self._clock)
        self._movements = StockMovementService(session, self._clock, self._numbers)
        self._recorder = ScrapMovementRecorder(session, self._movements)

    # =========================================================================
    # Writes
    # =========================================================================

    def move_to_scrap(
        self,
        inventory_item_id: UUID | str,
        request: MoveToScrapRequest,
        user_id: UUID | str,
        company_id: UUID | str,
    ) -> ScrapRecord:
        """
        Move ``request.quantity`` of an inventory item to scrap.

        Postconditions:
            - Scrap record stored with status ``active``; approval
              ``pending`` if requested, else ``approved``.
            - Item current_stock decreased by quantity; available stock,
              total value, total outward and timestamps updated; the
              warehouse location (if given) decreased, floored at zero.
            - A ``damage`` stock movement, unless its write failed.
            - Session committed on success, rolled back on any failure.
        """
        company = require_id(company_id, "companyId")
        actor = require_id(user_id, "userId")

        try:
            item = self._stock.lock_item(inventory_item_id)
            ensure_tenant("Inventory item", item.id, item.company_id, company)

            try:
                quantity = to_decimal(request.quantity)
            except ValueError:
                raise InvalidQuantityError("Quantity", request.quantity, "must be a number") from None
            if quantity <= ZERO:
                raise InvalidQuantityError("Quantity", request.quantity)

            stock_before = item.current_stock or ZERO
            if quantity > stock_before:
                logger.warning(
                    "scrap_insufficient_stock",
                    extra={
                        "item_id": str(item.id),
                        "available": stock_before,
                        "requested": quantity,
                    },
                )
                raise InsufficientStockError(str(item.id), stock_before, quantity)

            reason = _parse_reason(request.scrap_reason)
            scrap_before = self._active_scrap_quantity(company, item.id)
            try:
                unit_cost = _first_cost(request.unit_cost, item.cost_price, item.average_cost)
            except ValueError:
                raise InvalidQuantityError("unitCost", request.unit_cost, "must be a number") from None

            fields = dict(
                company_id=company,
                inventory_item_id=item.id,
                item_code=item.item_code,
                item_name=item.item_name,
                item_description=item.item_description,
                quantity=quantity,
                unit=item.unit or self._config.default_unit,
                scrap_reason=reason.value,
                scrap_reason_details=request.scrap_reason_details,
                scrap_date=request.scrap_date or self._clock.now(),
                warehouse_id=request.warehouse_id,
                warehouse_name=request.warehouse_name,
                zone=request.zone,
                rack=request.rack,
                bin=request.bin,
                inventory_stock_before=stock_before,
                inventory_stock_after=stock_before - quantity,
                scrap_stock_before=scrap_before,
                scrap_stock_after=scrap_before + quantity,
                unit_cost=unit_cost,
                total_value=unit_cost * quantity,
                quality_grade=request.quality_grade,
                defect_details=request.defect_details,
                batch_number=request.batch_number or item.batch_number,
                lot_number=request.lot_number or item.lot_number,
                approval_required=bool(request.approval_required),
                approval_status=(
                    ApprovalStatus.PENDING.value
                    if request.approval_required
                    else ApprovalStatus.APPROVED.value
                ),
                disposed=False,
                status=ScrapStatus.ACTIVE.value,
                notes=request.notes,
                tags=list(request.tags or ()),
                created_by_id=actor,
            )
            scrap = self._insert_numbered(company, fields)

            with LogContext.bind(document_id=str(scrap.id)):
                snapshot = self._stock.apply_outward(item, quantity, request.warehouse_id)
                self._recorder.record(scrap, item, snapshot, unit_cost, actor)

            record = scrap.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "scrap_moved",
            extra={
                "scrap_id": str(record.id),
                "scrap_number": record.scrap_number,
                "item_id": str(record.inventory_item_id),
                "quantity": record.quantity,
                "stock_after": record.stock_impact.inventory_stock_after,
                "approval_status": record.approval_status.value,
            },
        )
        return record

    def cancel_scrap(
        self,
        scrap_id: UUID | str,
        company_id: UUID | str,
        user_id: UUID | str | None = None,
    ) -> ScrapRecord:
        """
        Cancel a scrap record, restoring stock if it is still active.

        A disposed record is marked cancelled without restoring stock.  A
        record that is already cancelled is left as it is.
        """
        company = require_id(company_id, "companyId")
        actor = require_id(user_id, "userId") if user_id is not None else None

        try:
            scrap = self._load_for_update(company, scrap_id)
            restored = False

            if scrap.is_active and not scrap.disposed:
                item = self._stock.lock_item(scrap.inventory_item_id)
                self._stock.apply_inward(item, scrap.quantity, reversal=True)
                restored = True

            if scrap.status != ScrapStatus.CANCELLED.value:
                scrap.status = ScrapStatus.CANCELLED.value
                if actor is not None:
                    scrap.updated_by_id = actor
                self._session.flush()

            record = scrap.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "scrap_cancelled",
            extra={
                "scrap_id": str(record.id),
                "scrap_number": record.scrap_number,
                "stock_restored": restored,
            },
        )
        return record

    def mark_disposed(
        self,
        scrap_id: UUID | str,
        disposal_method: DisposalMethod | str,
        disposal_value: Decimal | int | str | None,
        disposal_notes: str | None,
        user_id: UUID | str,
        company_id: UUID | str,
    ) -> ScrapRecord:
        """
        Record what happened to scrapped material.  Stock is not touched.

        Raises:
            ScrapAlreadyDisposedError: disposal already recorded.
        """
        company = require_id(company_id, "companyId")
        actor = require_id(user_id, "userId")
        method = _parse_disposal_method(disposal_method)
        try:
            value = to_decimal(disposal_value, ZERO)
        except ValueError:
            raise InvalidQuantityError("disposalValue", disposal_value, "must be a number") from None
        if value < ZERO:
            raise InvalidQuantityError("disposalValue", disposal_value, "cannot be negative")

        try:
            scrap = self._load_for_update(company, scrap_id)
            if scrap.disposed:
                raise ScrapAlreadyDisposedError(str(scrap.id))

            scrap.disposed = True
            scrap.disposal_date = self._clock.now()
            scrap.disposal_method = method.value
            scrap.disposal_value = value
            scrap.disposal_notes = disposal_notes
            scrap.disposed_by_id = actor
            scrap.status = ScrapStatus.DISPOSED.value
            scrap.updated_by_id = actor
            self._session.flush()

            record = scrap.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "scrap_disposed",
            extra={
                "scrap_id": str(record.id),
                "disposal_method": method.value,
                "disposal_value": value,
            },
        )
        return record

    def update_scrap(
        self,
        company_id: UUID | str,
        scrap_id: UUID | str,
        changes: dict[str, Any],
        user_id: UUID | str,
    ) -> ScrapRecord:
        """
        Edit descriptive fields of a scrap record.

        ``quantity``, ``inventory_item_id`` and ``stock_impact`` are dropped
        from ``changes``.

        Raises:
            ProtectedFieldError: changes name any other non-editable field.
        """
        company = require_id(company_id, "companyId")
        actor = require_id(user_id, "userId")

        changes = {k: v for k, v in changes.items() if k not in IGNORED_UPDATE_FIELDS}
        protected = sorted(set(changes) - EDITABLE_FIELDS)
        if protected:
            raise ProtectedFieldError("Scrap", protected)
        _check_update_types(changes)
        if "scrap_reason" in changes:
            changes["scrap_reason"] = _parse_reason(changes["scrap_reason"]).value
        if "tags" in changes:
            changes["tags"] = list(changes["tags"] or ())

        try:
            scrap = self._load_for_update(company, scrap_id)
            for name, value in changes.items():
                setattr(scrap, name, value)
            scrap.updated_by_id = actor
            self._session.flush()

            record = scrap.to_dto()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "scrap_updated",
            extra={"scrap_id": str(record.id), "fields": sorted(changes)},
        )
        return record

    # =========================================================================
    # Reads
    # =========================================================================

    def get_scrap(self, company_id: UUID | str, scrap_id: UUID | str) -> ScrapRecord:
        company = require_id(company_id, "companyId")
        scrap = self._get(scrap_id)
        ensure_tenant("Scrap", scrap.id, scrap.company_id, company)
        return scrap.to_dto()

    def list_scraps(
        self,
        company_id: UUID | str,
        filters: ScrapFilters | None = None,
        page: int = 1,
        limit: int | None = None,
        sort_by: str = "scrap_date",
        sort_order: str = "desc",
    ) -> ScrapPage:
        """One page of a company's scrap records."""
        company = require_id(company_id, "companyId")
        filters = filters or ScrapFilters()

        if page < 1:
            raise ValidationError("page must be at least 1")
        limit = limit or self._config.default_page_size
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        limit = min(limit, self._config.max_page_size)

        sort_column = SORTABLE_FIELDS.get(sort_by)
        if sort_column is None:
            raise ValidationError(
                f"Cannot sort by '{sort_by}'. Valid fields: {', '.join(SORTABLE_FIELDS)}"
            )
        if sort_order not in ("asc", "desc"):
            raise ValidationError("sortOrder must be 'asc' or 'desc'")

        conditions = [ScrapModel.company_id == company]
        if filters.status is not None:
            conditions.append(ScrapModel.status == _parse_status(filters.status).value)
        if filters.scrap_reason is not None:
            conditions.append(ScrapModel.scrap_reason == _parse_reason(filters.scrap_reason).value)
        if filters.inventory_item_id is not None:
            conditions.append(
                ScrapModel.inventory_item_id == require_id(filters.inventory_item_id, "inventoryItemId")
            )
        if filters.date_from is not None:
            conditions.append(ScrapModel.scrap_date >= filters.date_from)
        if filters.date_to is not None:
            conditions.append(ScrapModel.scrap_date <= filters.date_to)
        if filters.disposed is not None:
            conditions.append(ScrapModel.disposed == filters.disposed)

        total = self._session.execute(
            select(func.count(ScrapModel.id)).where(*conditions)
        ).scalar_one()

        order = sort_column.desc() if sort_order == "desc" else sort_column.asc()
        rows = self._session.execute(
            select(ScrapModel)
            .where(*conditions)
            .order_by(order, ScrapModel.scrap_number)
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()

        return ScrapPage(
            items=tuple(row.to_dto() for row in rows),
            total=int(total),
            page=page,
            limit=limit,
        )

    def scraps_for_item(
        self,
        company_id: UUID | str,
        inventory_item_id: UUID | str,
    ) -> list[ScrapRecord]:
        """All scrap records of one item, newest first."""
        company = require_id(company_id, "companyId")
        item = require_id(inventory_item_id, "inventoryItemId")
        rows = self._session.execute(
            select(ScrapModel)
            .where(ScrapModel.company_id == company, ScrapModel.inventory_item_id == item)
            .order_by(ScrapModel.scrap_date.desc(), ScrapModel.scrap_number.desc())
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def total_scrap_quantity(
        self,
        company_id: UUID | str,
        inventory_item_id: UUID | str,
    ) -> Decimal:
        """Quantity held in active, non-disposed scrap for one item."""
        company = require_id(company_id, "companyId")
        item = require_id(inventory_item_id, "inventoryItemId")
        return self._active_scrap_quantity(company, item)

    def get_scrap_summary(
        self,
        company_id: UUID | str,
        date_from=None,
        date_to=None,
    ) -> ScrapSummary:
        """
        Totals over active, non-disposed scrap, optionally within a
        scrap-date window: overall, by reason, and the top items by quantity.
        """
        company = require_id(company_id, "companyId")

        conditions = [
            ScrapModel.company_id == company,
            ScrapModel.status == ScrapStatus.ACTIVE.value,
            ScrapModel.disposed.is_(False),
        ]
        if date_from is not None:
            conditions.append(ScrapModel.scrap_date >= date_from)
        if date_to is not None:
            conditions.append(ScrapModel.scrap_date <= date_to)

        total_quantity, total_value = self._session.execute(
            select(
                func.coalesce(func.sum(ScrapModel.quantity), 0),
                func.coalesce(func.sum(ScrapModel.total_value), 0),
            ).where(*conditions)
        ).one()

        quantity_sum = func.sum(ScrapModel.quantity)
        reason_rows = self._session.execute(
            select(
                ScrapModel.scrap_reason,
                quantity_sum,
                func.sum(ScrapModel.total_value),
                func.count(ScrapModel.id),
            )
            .where(*conditions)
            .group_by(ScrapModel.scrap_reason)
            .order_by(quantity_sum.desc(), ScrapModel.scrap_reason)
        ).all()

        item_rows = self._session.execute(
            select(
                ScrapModel.inventory_item_id,
                func.min(ScrapModel.item_code),
                func.min(ScrapModel.item_name),
                quantity_sum,
                func.sum(ScrapModel.total_value),
            )
            .where(*conditions)
            .group_by(ScrapModel.inventory_item_id)
            .order_by(quantity_sum.desc(), func.min(ScrapModel.item_code))
            .limit(self._config.top_items_limit)
        ).all()

        return ScrapSummary(
            total_scrap_quantity=to_decimal(total_quantity, ZERO),
            total_scrap_value=to_decimal(total_value, ZERO),
            by_reason=tuple(
                ReasonBreakdown(
                    reason=ScrapReason(reason),
                    quantity=to_decimal(quantity, ZERO),
                    value=to_decimal(value, ZERO),
                    count=int(count),
                )
                for reason, quantity, value, count in reason_rows
            ),
            by_item=tuple(
                ItemBreakdown(
                    item_id=item_id,
                    item_code=item_code,
                    item_name=item_name,
                    quantity=to_decimal(quantity, ZERO),
                    value=to_decimal(value, ZERO),
                )
                for item_id, item_code, item_name, quantity, value in item_rows
            ),
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _insert_numbered(self, company: UUID, fields: dict[str, Any]) -> ScrapModel:
        """
        Insert a scrap record under a freshly allocated number.

        A unique-constraint collision on the number rolls back the savepoint
        and retries with the next number.
        """
        attempts = self._numbering.max_number_retries + 1
        number = None
        for attempt in range(1, attempts + 1):
            number = self._numbers.next_scrap_number(company)
            scrap = ScrapModel(scrap_number=number, **fields)
            try:
                with self._session.begin_nested():
                    self._session.add(scrap)
                    self._session.flush()
                return scrap
            except IntegrityError as exc:
                if "scrap_number" not in str(exc.orig):
                    raise
                logger.warning(
                    "scrap_number_collision",
                    extra={"scrap_number": number, "attempt": attempt},
                )
        raise DuplicateDocumentNumberError("scrap", number, attempts)

    def _active_scrap_quantity(self, company: UUID, item_id: UUID) -> Decimal:
        total = self._session.execute(
            select(func.coalesce(func.sum(ScrapModel.quantity), 0)).where(
                ScrapModel.company_id == company,
                ScrapModel.inventory_item_id == item_id,
                ScrapModel.status == ScrapStatus.ACTIVE.value,
                ScrapModel.disposed.is_(False),
            )
        ).scalar_one()
        return to_decimal(total, ZERO)

    def _get(self, scrap_id: UUID | str) -> ScrapModel:
        try:
            scrap_uuid = to_uuid(scrap_id)
        except ValueError:
            raise ScrapNotFoundError(str(scrap_id)) from None
        scrap = self._session.get(ScrapModel, scrap_uuid)
        if scrap is None:
            raise ScrapNotFoundError(str(scrap_id))
        return scrap

    def _load_for_update(self, company: UUID, scrap_id: UUID | str) -> ScrapModel:
        try:
            scrap_uuid = to_uuid(scrap_id)
        except ValueError:
            raise ScrapNotFoundError(str(scrap_id)) from None
        scrap = self._session.execute(
            select(ScrapModel)
            .where(ScrapModel.id == scrap_uuid)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if scrap is None:
            raise ScrapNotFoundError(str(scrap_id))
        ensure_tenant("Scrap", scrap.id, scrap.company_id, company)
        return scrap
