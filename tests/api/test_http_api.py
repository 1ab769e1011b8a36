"""
HTTP API tests through FastAPI's TestClient.

Assertions go through responses.  The test session is only touched after
the last request, since the in-memory database has a single connection.
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from mill_modules.scrap import ScrapService


def _move(client, headers, item_id, quantity=20, reason="damaged", **fields):
    body = {"quantity": quantity, "scrapReason": reason, **fields}
    return client.post(f"/scrap/inventory/{item_id}/move", json=body, headers=headers)


class TestPlumbing:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": "1.0.0"}

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-Id": "req-42"})
        assert response.headers["X-Request-Id"] == "req-42"

    def test_request_id_generated(self, client):
        assert client.get("/health").headers["X-Request-Id"]

    def test_missing_company_header(self, client):
        response = client.get("/scrap/summary")

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "code": "MISSING_PARAMETER",
            "message": "companyId is required",
        }

    def test_malformed_company_header(self, client):
        response = client.get("/scrap/summary", headers={"X-Company-Id": "acme"})
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_write_without_user(self, client, company, item):
        response = _move(client, {"X-Company-Id": str(company.id)}, item.id)

        assert response.status_code == 400
        assert response.json()["message"] == "userId is required"

    def test_request_body_validation(self, client, tenant_headers, item):
        response = _move(client, tenant_headers, item.id, quantity="lots")

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "VALIDATION_ERROR"
        assert body["message"].startswith("quantity")

    def test_unexpected_error_is_500(self, app, tenant_headers, monkeypatch, captured_logs):
        def _boom(self, *args, **kwargs):
            raise RuntimeError("database on fire")

        monkeypatch.setattr(ScrapService, "get_scrap_summary", _boom)

        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/scrap/summary", headers=tenant_headers)

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
        }
        errors = [r for r in captured_logs() if r["message"] == "unhandled_request_error"]
        assert errors[0]["level"] == "ERROR"
        assert errors[0]["exc_type"] == "RuntimeError"


class TestScrapEndpoints:

    def test_move_to_scrap(self, client, tenant_headers, item):
        response = _move(client, tenant_headers, item.id, quantity=20, tags=["roll-end"])

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Item moved to scrap successfully"
        data = body["data"]
        assert data["scrapNumber"] == "SCRAP-ACME-20240101-0001"
        assert data["quantity"] == 20
        assert data["scrapReason"] == "damaged"
        assert data["stockImpact"] == {
            "inventoryStockBefore": 50,
            "inventoryStockAfter": 30,
            "scrapStockBefore": 0,
            "scrapStockAfter": 20,
        }
        assert data["unitCost"] == 2.5
        assert data["totalValue"] == 50
        assert data["approvalStatus"] == "approved"
        assert data["disposal"]["disposed"] is False
        assert data["status"] == "active"
        assert data["tags"] == ["roll-end"]

    def test_stock_is_decremented(self, client, tenant_headers, session, item):
        _move(client, tenant_headers, item.id, quantity=20)

        session.refresh(item)
        assert item.current_stock == Decimal("30")

    def test_insufficient_stock(self, client, tenant_headers, item):
        response = _move(client, tenant_headers, item.id, quantity=60)

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "code": "INSUFFICIENT_STOCK",
            "message": "Insufficient stock. Available: 50, Requested: 60",
        }

    def test_unknown_item(self, client, tenant_headers, random_id):
        response = _move(client, tenant_headers, random_id)

        assert response.status_code == 404
        assert response.json()["message"] == "Inventory item not found"

    def test_item_of_other_company(self, client, tenant_headers, other_item):
        response = _move(client, tenant_headers, other_item.id)

        assert response.status_code == 403
        assert response.json()["code"] == "CROSS_TENANT_ACCESS"

    def test_get_update_dispose_cancel(self, client, tenant_headers, item):
        scrap_id = _move(client, tenant_headers, item.id, quantity=10).json()["data"]["id"]

        fetched = client.get(f"/scrap/{scrap_id}", headers=tenant_headers)
        assert fetched.json()["data"]["id"] == scrap_id

        updated = client.put(
            f"/scrap/{scrap_id}",
            json={"notes": "Torn selvedge", "qualityGrade": "C", "quantity": 99},
            headers=tenant_headers,
        )
        assert updated.status_code == 200
        assert updated.json()["data"]["notes"] == "Torn selvedge"
        assert updated.json()["data"]["qualityGrade"] == "C"
        assert updated.json()["data"]["quantity"] == 10

        disposed = client.post(
            f"/scrap/{scrap_id}/dispose",
            json={"disposalMethod": "sold", "disposalValue": 7.5},
            headers=tenant_headers,
        )
        assert disposed.status_code == 200
        assert disposed.json()["message"] == "Scrap marked as disposed"
        assert disposed.json()["data"]["disposal"]["disposalValue"] == 7.5
        assert disposed.json()["data"]["status"] == "disposed"

        again = client.post(
            f"/scrap/{scrap_id}/dispose", json={"disposalMethod": "sold"}, headers=tenant_headers,
        )
        assert again.status_code == 400
        assert again.json()["code"] == "SCRAP_ALREADY_DISPOSED"

        cancelled = client.delete(f"/scrap/{scrap_id}", headers=tenant_headers)
        assert cancelled.status_code == 200
        assert cancelled.json()["data"]["status"] == "cancelled"

    def test_protected_update(self, client, tenant_headers, item):
        scrap_id = _move(client, tenant_headers, item.id, quantity=1).json()["data"]["id"]

        response = client.put(f"/scrap/{scrap_id}", json={"scrapNumber": "X"}, headers=tenant_headers)

        assert response.status_code == 400
        assert response.json()["code"] == "PROTECTED_FIELD"

    @pytest.mark.parametrize(
        "body",
        [{"tags": "fragile"}, {"lotNumber": {"x": 1}}, {"notes": 5}, {"tags": [1, 2]}],
    )
    def test_update_with_wrong_types(self, client, tenant_headers, item, body):
        scrap_id = _move(client, tenant_headers, item.id, quantity=1, tags=["keep"]).json()["data"]["id"]

        response = client.put(f"/scrap/{scrap_id}", json=body, headers=tenant_headers)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert client.get(f"/scrap/{scrap_id}", headers=tenant_headers).json()["data"]["tags"] == ["keep"]

    def test_update_tags(self, client, tenant_headers, item):
        scrap_id = _move(client, tenant_headers, item.id, quantity=1).json()["data"]["id"]

        response = client.put(f"/scrap/{scrap_id}", json={"tags": ["fragile", "roll-end"]}, headers=tenant_headers)

        assert response.status_code == 200
        assert response.json()["data"]["tags"] == ["fragile", "roll-end"]

    def test_unknown_scrap(self, client, tenant_headers, random_id):
        response = client.get(f"/scrap/{random_id}", headers=tenant_headers)
        assert response.status_code == 404
        assert response.json()["code"] == "SCRAP_NOT_FOUND"

    def test_list_and_filters(self, client, tenant_headers, item):
        _move(client, tenant_headers, item.id, quantity=5, reason="damaged")
        _move(client, tenant_headers, item.id, quantity=3, reason="defective")
        _move(client, tenant_headers, item.id, quantity=2, reason="defective")

        everything = client.get("/scrap", headers=tenant_headers).json()["data"]
        assert everything["total"] == 3
        assert everything["totalPages"] == 1

        defective = client.get(
            "/scrap",
            params={"scrapReason": "defective", "sortBy": "quantity", "sortOrder": "asc"},
            headers=tenant_headers,
        ).json()["data"]
        assert [r["quantity"] for r in defective["items"]] == [2, 3]

        paged = client.get("/scrap", params={"limit": 2, "page": 2}, headers=tenant_headers).json()["data"]
        assert len(paged["items"]) == 1

    def test_invalid_sort(self, client, tenant_headers):
        response = client.get("/scrap", params={"sortBy": "price"}, headers=tenant_headers)
        assert response.status_code == 400

    def test_summary(self, client, tenant_headers, item):
        _move(client, tenant_headers, item.id, quantity=6, reason="damaged")
        cancelled_id = _move(client, tenant_headers, item.id, quantity=4, reason="expired").json()["data"]["id"]
        client.delete(f"/scrap/{cancelled_id}", headers=tenant_headers)

        data = client.get("/scrap/summary", headers=tenant_headers).json()["data"]

        assert data["totalScrapQuantity"] == 6
        assert data["totalScrapValue"] == 15
        assert data["byReason"] == [{"reason": "damaged", "quantity": 6, "value": 15, "count": 1}]
        assert data["byItem"][0]["itemCode"] == "FAB-001"

    def test_scraps_for_item(self, client, tenant_headers, item):
        _move(client, tenant_headers, item.id, quantity=1)
        _move(client, tenant_headers, item.id, quantity=2)

        response = client.get(f"/scrap/inventory/{item.id}", headers=tenant_headers)

        assert response.status_code == 200
        assert len(response.json()["data"]) == 2


class TestProductionEndpoints:

    @pytest.fixture
    def printing_done(self, client, tenant_headers):
        created = client.post(
            "/production/entries/printing",
            json={"lotNumber": "L-1001", "inputMeter": 520, "partyName": "Sharma Fabrics", "quality": "60x60"},
            headers=tenant_headers,
        )
        entry_id = created.json()["data"]["id"]
        client.put(
            f"/production/entries/{entry_id}/output",
            json={"processedMeter": 500, "lossMeter": 20},
            headers=tenant_headers,
        )
        return entry_id

    def test_create_entry(self, client, tenant_headers):
        response = client.post(
            "/production/entries/bleaching",
            json={"lotNumber": "L-1", "inputMeter": 1000},
            headers=tenant_headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Stage entry created"
        assert body["data"]["stage"] == "bleaching"
        assert body["data"]["status"] == "pending"
        assert body["data"]["pendingMeter"] == 1000
        assert body["data"]["outputField"] == "bleached_meter"

    def test_invalid_stage(self, client, tenant_headers):
        response = client.post(
            "/production/entries/dyeing", json={"lotNumber": "L-1", "inputMeter": 10}, headers=tenant_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_MODULE"

    def test_record_output(self, client, tenant_headers, printing_done):
        response = client.get(f"/production/entries/{printing_done}", headers=tenant_headers)

        data = response.json()["data"]
        assert data["processedMeter"] == 500
        assert data["lossMeter"] == 20
        assert data["status"] == "completed"

    def test_output_above_input(self, client, tenant_headers):
        entry_id = client.post(
            "/production/entries/washing", json={"lotNumber": "L-1", "inputMeter": 100}, headers=tenant_headers,
        ).json()["data"]["id"]

        response = client.put(
            f"/production/entries/{entry_id}/output",
            json={"processedMeter": 90, "lossMeter": 20},
            headers=tenant_headers,
        )

        assert response.status_code == 400
        assert response.json()["code"] == "METER_EXCEEDS_INPUT"
        assert response.json()["message"].startswith("Processed + Loss cannot exceed input")

    def test_quick_complete(self, client, tenant_headers):
        entry_id = client.post(
            "/production/entries/folding", json={"lotNumber": "L-1", "inputMeter": 80}, headers=tenant_headers,
        ).json()["data"]["id"]

        response = client.post(f"/production/entries/{entry_id}/quick-complete", headers=tenant_headers)

        assert response.json()["message"] == "Stage entry completed"
        assert response.json()["data"]["processedMeter"] == 80
        assert response.json()["data"]["status"] == "completed"

    def test_unknown_entry(self, client, tenant_headers, random_id):
        response = client.get(f"/production/entries/{random_id}", headers=tenant_headers)
        assert response.status_code == 404

    def test_lot_details(self, client, tenant_headers, printing_done):
        response = client.get("/production/lot/L-1001/details", headers=tenant_headers)

        assert response.json() == {
            "success": True,
            "lotDetails": {
                "partyName": "Sharma Fabrics",
                "customerId": None,
                "quality": "60x60",
                "sourceModule": "printing",
            },
        }

    def test_unknown_lot_details(self, client, tenant_headers):
        response = client.get("/production/lot/L-404/details", headers=tenant_headers)
        assert response.json() == {"success": True, "lotDetails": None}

    def test_available_input_meter(self, client, tenant_headers, printing_done):
        before = client.get("/production/lot/L-1001/input-meter/hazer", headers=tenant_headers)
        assert before.json() == {"success": True, "availableMeter": 500}

        created = client.post(
            "/production/entries/hazer",
            json={"lotNumber": "L-1001", "inputMeter": 500},
            headers=tenant_headers,
        )
        assert created.json()["data"]["partyName"] == "Sharma Fabrics"

        after = client.get("/production/lot/L-1001/input-meter/hazer", headers=tenant_headers)
        assert after.json()["availableMeter"] == 0

    def test_claim_above_available(self, client, tenant_headers, printing_done):
        response = client.post(
            "/production/entries/hazer",
            json={"lotNumber": "L-1001", "inputMeter": 501},
            headers=tenant_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INSUFFICIENT_INPUT_METER"

    def test_invalid_target_module(self, client, tenant_headers):
        response = client.get("/production/lot/L-1/input-meter/dyeing", headers=tenant_headers)
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_MODULE"

    def test_lot_entries(self, client, tenant_headers, printing_done):
        client.post(
            "/production/entries/hazer", json={"lotNumber": "L-1001", "inputMeter": 200}, headers=tenant_headers,
        )

        response = client.get("/production/lot/L-1001/entries", headers=tenant_headers)

        assert [e["stage"] for e in response.json()["data"]] == ["printing", "hazer"]

    def test_lot_loss_stock(self, client, tenant_headers, printing_done):
        response = client.get("/production/lot/L-1001/loss-stock", headers=tenant_headers)

        (row,) = response.json()["data"]
        assert row["sourceModule"] == "printing"
        assert row["sourceEntryId"] == printing_done
        assert row["kind"] == "rejected"
        assert row["meter"] == 20
        assert row["partyName"] == "Sharma Fabrics"
