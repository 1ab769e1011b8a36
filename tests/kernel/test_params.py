"""Tests for parameter validation and tenant ownership checks."""

from uuid import uuid4

import pytest

from mill_kernel.domain.params import ensure_tenant, require_id, require_text
from mill_kernel.exceptions import CrossTenantAccessError, MissingParameterError, ValidationError


class TestRequireId:

    def test_uuid_passes_through(self):
        uid = uuid4()
        assert require_id(uid, "companyId") == uid

    def test_string_is_parsed(self):
        uid = uuid4()
        assert require_id(f" {uid} ", "companyId") == uid

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing(self, value):
        with pytest.raises(MissingParameterError) as exc_info:
            require_id(value, "companyId")
        assert exc_info.value.parameter == "companyId"
        assert str(exc_info.value) == "companyId is required"

    def test_malformed(self):
        with pytest.raises(ValidationError, match="companyId is not a valid id"):
            require_id("acme", "companyId")


class TestRequireText:

    def test_strips(self):
        assert require_text("  LOT-1 ", "lotNumber") == "LOT-1"

    def test_blank_is_missing(self):
        with pytest.raises(MissingParameterError):
            require_text(" ", "lotNumber")


class TestEnsureTenant:

    def test_same_company_passes(self):
        company = uuid4()
        ensure_tenant("Scrap", uuid4(), company, company)

    def test_other_company_is_blocked_and_logged(self, captured_logs):
        entity_id = uuid4()
        with pytest.raises(CrossTenantAccessError) as exc_info:
            ensure_tenant("Scrap", entity_id, uuid4(), uuid4())

        assert exc_info.value.code == "CROSS_TENANT_ACCESS"
        blocked = [r for r in captured_logs() if r["message"] == "cross_tenant_access_blocked"]
        assert blocked[0]["level"] == "WARNING"
