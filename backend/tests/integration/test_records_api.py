"""API tests for the record and analytics routes, backed by the in-memory store."""

import json

import pytest
from httpx import ASGITransport, AsyncClient

from branchdesk.application.services import AuditTrail
from branchdesk.domain.entities import TableName
from branchdesk.infrastructure.dependencies import get_record_store
from branchdesk.main import create_app
from branchdesk.presentation.api.response_hooks import ResponseHookRegistry, SecurityMonitor
from tests.fakes import FakeRecordStore

BOSS_HEADERS = {"X-User-Id": "u-boss", "X-User-Role": "boss"}
MANAGER_A_HEADERS = {"X-User-Id": "u-mgr-a", "X-User-Role": "Manager", "X-Branch-Id": "branchA"}


def _client(store: FakeRecordStore, registry: ResponseHookRegistry | None = None) -> AsyncClient:
    app = create_app(response_hooks=registry or ResponseHookRegistry())
    app.dependency_overrides[get_record_store] = lambda: store
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


# ── Records ──


@pytest.mark.asyncio
async def test_invalid_table_returns_400_without_store_call():
    store = FakeRecordStore()
    async with _client(store) as client:
        response = await client.get("/api/v1/data/invalid_table", headers=BOSS_HEADERS)

    assert response.status_code == 400
    assert "invalid_table" in response.json()["detail"]
    assert store.call_count() == 0


@pytest.mark.asyncio
async def test_missing_identity_returns_401():
    store = FakeRecordStore()
    async with _client(store) as client:
        response = await client.get("/api/v1/data/stock")

    assert response.status_code == 401
    assert store.call_count() == 0


@pytest.mark.asyncio
async def test_create_returns_201_with_stamps_and_branch():
    store = FakeRecordStore()
    async with _client(store) as client:
        response = await client.post(
            "/api/v1/data/stock",
            headers=MANAGER_A_HEADERS,
            json={"product_name": "Cement", "quantity_available": 10, "unit_price": 7.5},
        )

    assert response.status_code == 201
    data = response.json()
    assert data["table"] == "stock"
    assert data["fields"]["branch_id"] == "branchA"
    assert data["created_by"] == "u-mgr-a"
    assert data["created_at"] is not None


@pytest.mark.asyncio
async def test_create_missing_required_field_returns_422():
    store = FakeRecordStore()
    async with _client(store) as client:
        response = await client.post("/api/v1/data/vehicles", headers=BOSS_HEADERS, json={"make": "Isuzu"})

    assert response.status_code == 422
    assert store.call_count("create") == 0


@pytest.mark.asyncio
async def test_list_sends_default_sort_and_branch_filter():
    store = FakeRecordStore()
    store.seed(TableName.SALES, {"total_amount": 5, "branch_id": "branchA"})
    store.seed(TableName.SALES, {"total_amount": 9, "branch_id": "branchB"})
    async with _client(store) as client:
        response = await client.get("/api/v1/data/sales", headers=MANAGER_A_HEADERS)

    assert response.status_code == 200
    assert [r["fields"]["total_amount"] for r in response.json()] == [5]
    _, formula, sort = store.finds[0]
    assert formula == "{branch_id} = 'branchA'"
    assert sort == [{"field": "created_at", "direction": "desc"}]


@pytest.mark.asyncio
async def test_list_with_bad_sort_returns_422():
    store = FakeRecordStore()
    async with _client(store) as client:
        response = await client.get(
            "/api/v1/data/sales", headers=BOSS_HEADERS, params={"sort": json.dumps({"field": "x"})}
        )

    assert response.status_code == 422
    assert store.call_count() == 0


@pytest.mark.asyncio
async def test_get_other_branch_record_returns_403():
    store = FakeRecordStore()
    other = store.seed(TableName.STOCK, {"product_name": "Sand", "branch_id": "branchB"})
    async with _client(store) as client:
        response = await client.get(f"/api/v1/data/stock/{other.id}", headers=MANAGER_A_HEADERS)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_update_and_delete_round():
    store = FakeRecordStore()
    rec = store.seed(TableName.VEHICLES, {"plate_number": "KAA 001A"})
    async with _client(store) as client:
        updated = await client.put(
            f"/api/v1/data/vehicles/{rec.id}", headers=BOSS_HEADERS, json={"status": "inactive"}
        )
        deleted = await client.delete(f"/api/v1/data/vehicles/{rec.id}", headers=BOSS_HEADERS)
        missing = await client.delete(f"/api/v1/data/vehicles/{rec.id}", headers=BOSS_HEADERS)

    assert updated.status_code == 200
    assert updated.json()["fields"]["status"] == "inactive"
    assert updated.json()["updated_by"] == "u-boss"
    assert deleted.status_code == 200
    assert deleted.json() == {"id": rec.id, "deleted": True, "message": "Record deleted successfully"}
    assert missing.status_code == 404


# ── Bulk ──


@pytest.mark.asyncio
async def test_bulk_is_forbidden_for_manager():
    store = FakeRecordStore()
    async with _client(store) as client:
        response = await client.post(
            "/api/v1/data/trips/bulk",
            headers=MANAGER_A_HEADERS,
            json={"operation": "delete", "records": ["id1"]},
        )

    assert response.status_code == 403
    assert store.call_count() == 0


@pytest.mark.asyncio
async def test_bulk_delete_reports_partial_failure():
    store = FakeRecordStore()
    store.seed(TableName.TRIPS, {"vehicle_plate_number": "KAA 001A"}, record_id="id1")
    store.seed(TableName.TRIPS, {"vehicle_plate_number": "KAA 001A"}, record_id="id3")
    async with _client(store) as client:
        response = await client.post(
            "/api/v1/data/trips/bulk",
            headers=BOSS_HEADERS,
            json={"operation": "delete", "records": ["id1", "id2", "id3"]},
        )

    assert response.status_code == 200
    data = response.json()
    assert data["success_count"] == 2
    assert data["total_count"] == 3
    assert [e["id"] for e in data["errors"]] == ["id2"]
    assert data["errors"][0]["message"]


@pytest.mark.asyncio
async def test_bulk_unknown_operation_returns_422():
    store = FakeRecordStore()
    async with _client(store) as client:
        response = await client.post(
            "/api/v1/data/trips/bulk",
            headers=BOSS_HEADERS,
            json={"operation": "merge", "records": []},
        )

    assert response.status_code == 422


# ── Analytics ──


@pytest.mark.asyncio
async def test_fleet_analytics():
    store = FakeRecordStore()
    store.seed(TableName.VEHICLES, {"plate_number": "KAA 001A"})
    for charged, fuel in [(1000, 200), (2000, 300), (1500, 250)]:
        store.seed(
            TableName.TRIPS,
            {"vehicle_plate_number": "KAA 001A", "amount_charged": charged, "fuel_cost": fuel},
        )
    async with _client(store) as client:
        response = await client.get("/api/v1/analytics/fleet", headers=BOSS_HEADERS)

    assert response.status_code == 200
    data = response.json()
    vehicle = data["ranked_breakdown"][0]
    assert vehicle["key"] == "KAA 001A"
    assert vehicle["stats"]["total_revenue"] == 4500
    assert vehicle["stats"]["total_profit"] == 3750
    assert vehicle["stats"]["trip_count"] == 3
    assert data["computed_stats"]["total_trips"] == 3
    assert len(data["related_entities"]["trips"]) == 3


@pytest.mark.asyncio
async def test_analytics_forbidden_for_sales_role():
    store = FakeRecordStore()
    async with _client(store) as client:
        response = await client.get(
            "/api/v1/analytics/fleet",
            headers={"X-User-Id": "u1", "X-User-Role": "sales", "X-Branch-Id": "branchA"},
        )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_branch_dashboard_for_other_branch_returns_403():
    store = FakeRecordStore()
    async with _client(store) as client:
        response = await client.get("/api/v1/analytics/branches/branchB/dashboard", headers=MANAGER_A_HEADERS)

    assert response.status_code == 403


# ── Response hooks ──


@pytest.mark.asyncio
async def test_security_monitor_records_rejected_requests():
    store = FakeRecordStore()
    registry = ResponseHookRegistry()
    registry.register(SecurityMonitor(lambda request: AuditTrail(store)))

    async with _client(store, registry) as client:
        forbidden = await client.post(
            "/api/v1/data/trips/bulk",
            headers=MANAGER_A_HEADERS,
            json={"operation": "delete", "records": ["id1"]},
        )
        ok = await client.get("/api/v1/health")

    assert forbidden.status_code == 403
    assert forbidden.json()["detail"]
    assert ok.status_code == 200

    entries = list(store.rows(TableName.AUDIT_LOGS).values())
    assert len(entries) == 1
    entry = entries[0]
    assert entry["action"] == "UNAUTHORIZED_ACCESS"
    assert entry["severity"] == "high"
    assert entry["user_id"] == "u-mgr-a"
    assert entry["resource"] == "/api/v1/data/trips/bulk"
    assert entry["method"] == "POST"
    assert json.loads(entry["details"])["status_code"] == 403


@pytest.mark.asyncio
async def test_failing_hook_does_not_change_the_response():
    store = FakeRecordStore()
    registry = ResponseHookRegistry()

    async def broken_hook(request, status_code, body):
        raise RuntimeError("hook exploded")

    registry.register(broken_hook)
    async with _client(store, registry) as client:
        response = await client.get("/api/v1/data/stock")

    assert response.status_code == 401
    assert response.json()["detail"] == "Missing caller identity"
