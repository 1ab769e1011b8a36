"""Tests for scrap number collisions and regenerate-and-retry."""

from decimal import Decimal

import pytest

from mill_kernel.exceptions import DuplicateDocumentNumberError
from mill_kernel.selectors import InventorySelector
from mill_kernel.services import SequenceService

SCRAP_SEQUENCE = "SCRAP-ACME-20240101"


def _rewind(session, value: int) -> None:
    SequenceService(session).reset(SCRAP_SEQUENCE, value)
    session.commit()


class TestNumberCollisions:

    def test_collision_is_retried_with_next_number(self, session, item, move, captured_logs):
        move(item, "1")
        _rewind(session, 0)

        record = move(item, "1")

        assert record.scrap_number == "SCRAP-ACME-20240101-0002"
        collisions = [r for r in captured_logs() if r["message"] == "scrap_number_collision"]
        assert collisions[0]["scrap_number"] == "SCRAP-ACME-20240101-0001"
        assert collisions[0]["attempt"] == 1

    def test_retries_exhausted(self, session, scrap_service, company, item, move):
        move(item, "1")
        move(item, "1")
        _rewind(session, 0)

        with pytest.raises(DuplicateDocumentNumberError) as exc_info:
            move(item, "5")

        assert exc_info.value.code == "DUPLICATE_DOCUMENT_NUMBER"
        assert exc_info.value.attempts == 2
        assert InventorySelector(session).stock_level(item.id).current_stock == Decimal("48")
        assert scrap_service.list_scraps(company.id).total == 2

    def test_failed_move_rolls_back_counter(self, session, item, move):
        move(item, "1")
        move(item, "1")
        _rewind(session, 0)
        with pytest.raises(DuplicateDocumentNumberError):
            move(item, "1")

        assert SequenceService(session).current_value(SCRAP_SEQUENCE) == 0

        _rewind(session, 2)
        assert move(item, "1").scrap_number == "SCRAP-ACME-20240101-0003"
