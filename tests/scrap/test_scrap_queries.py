"""Tests for scrap reads, updates and the summary report."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from mill_config import ScrapConfig
from mill_kernel.exceptions import (
    CrossTenantAccessError,
    ProtectedFieldError,
    ScrapNotFoundError,
    ValidationError,
)
from mill_modules.scrap import ScrapFilters, ScrapReason, ScrapService, ScrapStatus


def _day(day: int) -> datetime:
    return datetime(2024, 1, day, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def second_item(company, item_factory):
    return item_factory(company, item_code="FAB-002")


@pytest.fixture
def ledger(scrap_service, company, item, second_item, move, test_actor_id):
    """
    Five scrap records for ACME:

    ============  ===========  ====  =====  =========
    item          reason       qty   day    state
    ============  ===========  ====  =====  =========
    FAB-001       damaged      10    5      active
    FAB-001       defective    5     6      active
    FAB-002       damaged      3     20     active
    FAB-002       expired      2     7      cancelled
    FAB-001       obsolete     1     8      disposed
    ============  ===========  ====  =====  =========
    """
    records = {
        "damaged": move(item, "10", scrap_reason="damaged", scrap_date=_day(5)),
        "defective": move(item, "5", scrap_reason="defective", scrap_date=_day(6)),
        "damaged_2": move(second_item, "3", scrap_reason="damaged", scrap_date=_day(20)),
        "expired": move(second_item, "2", scrap_reason="expired", scrap_date=_day(7)),
        "obsolete": move(item, "1", scrap_reason="obsolete", scrap_date=_day(8)),
    }
    scrap_service.cancel_scrap(records["expired"].id, company.id)
    scrap_service.mark_disposed(records["obsolete"].id, "destroyed", None, None, test_actor_id, company.id)
    return records


class TestListScraps:

    def test_default_order_is_newest_first(self, scrap_service, company, ledger):
        page = scrap_service.list_scraps(company.id)

        assert page.total == 5
        assert page.page == 1
        assert page.limit == ScrapConfig().default_page_size
        assert [r.quantity for r in page.items] == [
            Decimal("3"), Decimal("1"), Decimal("2"), Decimal("5"), Decimal("10"),
        ]

    def test_filter_by_status(self, scrap_service, company, ledger):
        page = scrap_service.list_scraps(company.id, ScrapFilters(status=ScrapStatus.CANCELLED))
        assert [r.id for r in page.items] == [ledger["expired"].id]

    def test_filter_by_reason(self, scrap_service, company, ledger):
        page = scrap_service.list_scraps(company.id, ScrapFilters(scrap_reason=ScrapReason.DAMAGED))
        assert page.total == 2

    def test_filter_by_item(self, scrap_service, company, second_item, ledger):
        page = scrap_service.list_scraps(company.id, ScrapFilters(inventory_item_id=second_item.id))
        assert {r.item_code for r in page.items} == {"FAB-002"}
        assert page.total == 2

    def test_filter_by_disposed(self, scrap_service, company, ledger):
        page = scrap_service.list_scraps(company.id, ScrapFilters(disposed=True))
        assert [r.id for r in page.items] == [ledger["obsolete"].id]

    def test_filter_by_date_window(self, scrap_service, company, ledger):
        filters = ScrapFilters(date_from=_day(6), date_to=_day(8))
        page = scrap_service.list_scraps(company.id, filters)
        assert page.total == 3

    def test_paging(self, scrap_service, company, ledger):
        page = scrap_service.list_scraps(company.id, page=3, limit=2)

        assert page.total == 5
        assert page.total_pages == 3
        assert len(page.items) == 1

    def test_limit_is_capped(self, scrap_service, company, ledger):
        page = scrap_service.list_scraps(company.id, limit=10_000)
        assert page.limit == ScrapConfig().max_page_size

    def test_sort_by_quantity_ascending(self, scrap_service, company, ledger):
        page = scrap_service.list_scraps(company.id, sort_by="quantity", sort_order="asc")
        assert page.items[0].quantity == Decimal("1")
        assert page.items[-1].quantity == Decimal("10")

    def test_other_company_sees_nothing(self, scrap_service, other_company, ledger):
        assert scrap_service.list_scraps(other_company.id).total == 0

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({"sort_by": "price"}, "Cannot sort by 'price'"),
            ({"sort_order": "up"}, "sortOrder"),
            ({"page": 0}, "page must be at least 1"),
            ({"filters": ScrapFilters(status="lost")}, "Invalid scrap status"),
            ({"filters": ScrapFilters(inventory_item_id="FAB-001")}, "inventoryItemId"),
        ],
    )
    def test_invalid_arguments(self, scrap_service, company, kwargs, message):
        with pytest.raises(ValidationError, match=message):
            scrap_service.list_scraps(company.id, **kwargs)


class TestGetScrap:

    def test_get(self, scrap_service, company, ledger):
        record = scrap_service.get_scrap(company.id, ledger["defective"].id)
        assert record.scrap_reason == ScrapReason.DEFECTIVE

    def test_unknown(self, scrap_service, company):
        with pytest.raises(ScrapNotFoundError, match="Scrap record not found"):
            scrap_service.get_scrap(company.id, uuid4())

    def test_malformed_id(self, scrap_service, company):
        with pytest.raises(ScrapNotFoundError):
            scrap_service.get_scrap(company.id, "SCRAP-1")

    def test_other_company(self, scrap_service, other_company, ledger):
        with pytest.raises(CrossTenantAccessError):
            scrap_service.get_scrap(other_company.id, ledger["damaged"].id)

    def test_scraps_for_item_newest_first(self, scrap_service, company, item, ledger):
        records = scrap_service.scraps_for_item(company.id, item.id)
        assert [r.scrap_reason for r in records] == [
            ScrapReason.OBSOLETE, ScrapReason.DEFECTIVE, ScrapReason.DAMAGED,
        ]

    def test_total_scrap_quantity_counts_active_only(self, scrap_service, company, item, second_item, ledger):
        assert scrap_service.total_scrap_quantity(company.id, item.id) == Decimal("15")
        assert scrap_service.total_scrap_quantity(company.id, second_item.id) == Decimal("3")


class TestUpdateScrap:

    def test_descriptive_fields_change(self, scrap_service, company, ledger, test_actor_id):
        updated = scrap_service.update_scrap(
            company.id,
            ledger["damaged"].id,
            {"notes": "Water damage", "zone": "Z-2", "tags": ["roof-leak"], "scrap_reason": "other"},
            test_actor_id,
        )

        assert updated.notes == "Water damage"
        assert updated.zone == "Z-2"
        assert updated.tags == ("roof-leak",)
        assert updated.scrap_reason == ScrapReason.OTHER
        assert updated.updated_by_id == test_actor_id

    def test_quantity_is_ignored(self, scrap_service, company, ledger, test_actor_id):
        updated = scrap_service.update_scrap(
            company.id,
            ledger["damaged"].id,
            {"quantity": Decimal("99"), "notes": "recount"},
            test_actor_id,
        )
        assert updated.quantity == Decimal("10")
        assert updated.notes == "recount"

    def test_protected_fields_are_rejected(self, scrap_service, company, ledger, test_actor_id):
        with pytest.raises(ProtectedFieldError) as exc_info:
            scrap_service.update_scrap(
                company.id,
                ledger["damaged"].id,
                {"scrap_number": "X", "status": "active", "notes": "n"},
                test_actor_id,
            )

        assert exc_info.value.fields == ["scrap_number", "status"]
        assert scrap_service.get_scrap(company.id, ledger["damaged"].id).notes is None

    def test_unknown_reason(self, scrap_service, company, ledger, test_actor_id):
        with pytest.raises(ValidationError):
            scrap_service.update_scrap(company.id, ledger["damaged"].id, {"scrap_reason": "lost"}, test_actor_id)

    @pytest.mark.parametrize(
        "changes, message",
        [
            ({"tags": "fragile"}, "tags must be a list of strings"),
            ({"tags": ["ok", 3]}, "tags must be a list of strings"),
            ({"lot_number": {"x": 1}}, "lot_number must be a string"),
            ({"notes": 12}, "notes must be a string"),
        ],
    )
    def test_wrong_value_types(self, scrap_service, company, ledger, test_actor_id, changes, message):
        with pytest.raises(ValidationError, match=message):
            scrap_service.update_scrap(company.id, ledger["damaged"].id, changes, test_actor_id)

        record = scrap_service.get_scrap(company.id, ledger["damaged"].id)
        assert record.tags == ()
        assert record.notes is None

    def test_clearing_tags(self, scrap_service, company, ledger, test_actor_id):
        scrap_service.update_scrap(company.id, ledger["damaged"].id, {"tags": ["a"]}, test_actor_id)
        updated = scrap_service.update_scrap(company.id, ledger["damaged"].id, {"tags": None}, test_actor_id)
        assert updated.tags == ()

    def test_other_company(self, scrap_service, other_company, ledger, test_actor_id):
        with pytest.raises(CrossTenantAccessError):
            scrap_service.update_scrap(other_company.id, ledger["damaged"].id, {"notes": "x"}, test_actor_id)


class TestScrapSummary:

    def test_totals_exclude_cancelled_and_disposed(self, scrap_service, company, ledger):
        summary = scrap_service.get_scrap_summary(company.id)

        assert summary.total_scrap_quantity == Decimal("18")
        assert summary.total_scrap_value == Decimal("45")

    def test_by_reason(self, scrap_service, company, ledger):
        summary = scrap_service.get_scrap_summary(company.id)

        rows = [(r.reason, r.quantity, r.value, r.count) for r in summary.by_reason]
        assert rows == [
            (ScrapReason.DAMAGED, Decimal("13"), Decimal("32.5"), 2),
            (ScrapReason.DEFECTIVE, Decimal("5"), Decimal("12.5"), 1),
        ]

    def test_by_item(self, scrap_service, company, item, second_item, ledger):
        summary = scrap_service.get_scrap_summary(company.id)

        rows = [(r.item_id, r.item_code, r.quantity, r.value) for r in summary.by_item]
        assert rows == [
            (item.id, "FAB-001", Decimal("15"), Decimal("37.5")),
            (second_item.id, "FAB-002", Decimal("3"), Decimal("7.5")),
        ]

    def test_date_window(self, scrap_service, company, ledger):
        summary = scrap_service.get_scrap_summary(company.id, date_from=_day(1), date_to=_day(10))

        assert summary.total_scrap_quantity == Decimal("15")
        assert [r.item_code for r in summary.by_item] == ["FAB-001"]

    def test_empty(self, scrap_service, company):
        summary = scrap_service.get_scrap_summary(company.id)

        assert summary.total_scrap_quantity == Decimal("0")
        assert summary.total_scrap_value == Decimal("0")
        assert summary.by_reason == ()
        assert summary.by_item == ()

    def test_top_items_limit(self, session, deterministic_clock, company, item, second_item, ledger):
        limited = ScrapService(session, deterministic_clock, scrap_config=ScrapConfig(top_items_limit=1))
        summary = limited.get_scrap_summary(company.id)

        assert [r.item_code for r in summary.by_item] == ["FAB-001"]
