from __future__ import annotations

from unittest.mock import patch

from fastapi.testclient import TestClient

from rent_tracker import api as api_module
from rent_tracker.config import Settings
from rent_tracker.main import create_app

BASE = "/api/v1/rent"
_QUIET_SETTINGS = Settings(recompute_on_change=False)
_ADMIN_SETTINGS = Settings(recompute_on_change=False, admin_api_key="test-admin-key-123")


def _client() -> TestClient:
    api_module.reset_runtime_state_for_tests()
    return TestClient(create_app())


def _tenant_payload(name: str = "Jane Doe", **overrides: object) -> dict:
    payload: dict = {
        "name": name,
        "address": "1 Main St",
        "phone": "555-0100",
        "rent_amount": 1000.0,
    }
    payload.update(overrides)
    return payload


def test_tenant_crud_and_conflicts() -> None:
    client = _client()
    with patch.object(api_module, "_settings", _QUIET_SETTINGS):
        created = client.post(f"{BASE}/tenants", json=_tenant_payload())
        assert created.status_code == 201
        assert created.json()["tenant"]["tenant_id"] == "tnt_000001"

        duplicate = client.post(f"{BASE}/tenants", json=_tenant_payload("JANE DOE"))
        assert duplicate.status_code == 409
        assert duplicate.json()["detail"]["reason"] == "duplicate_name"

        invalid = client.post(f"{BASE}/tenants", json=_tenant_payload("Bob", rent_amount=0))
        assert invalid.status_code == 422
        assert invalid.json()["detail"]["reason"] == "invalid_rent"

        client.post(f"{BASE}/tenants", json=_tenant_payload("Alice", rent_amount=1500.0))
        listing = client.get(f"{BASE}/tenants", params={"sort_key": "rent_amount", "direction": "desc"})
        assert [tenant["name"] for tenant in listing.json()["tenants"]] == ["Alice", "Jane Doe"]

        renamed = client.patch(f"{BASE}/tenants/Jane Doe", json={"name": "Jane Smith"})
        assert renamed.status_code == 200
        assert client.get(f"{BASE}/tenants/Jane Doe").status_code == 404
        assert client.get(f"{BASE}/tenants/jane smith").json()["tenant_id"] == "tnt_000001"

        deleted = client.delete(f"{BASE}/tenants/Jane Smith")
        assert deleted.status_code == 200
        assert client.delete(f"{BASE}/tenants/Jane Smith").status_code == 404


def test_due_then_paid_scenario() -> None:
    client = _client()
    with patch.object(api_module, "_settings", _QUIET_SETTINGS):
        client.put(f"{BASE}/settings/window", json={"start_day": 1, "end_day": 5})
        client.post(f"{BASE}/tenants", json=_tenant_payload())

        due = client.get(f"{BASE}/tenants/Jane Doe/status", params={"as_of": "2026-03-03T10:00:00"})
        assert due.status_code == 200
        assert due.json()["status"] == "Due"
        assert due.json()["can_pay"] is True

        paid = client.post(
            f"{BASE}/tenants/Jane Doe/payments",
            json={"paid_at": "2026-03-03T10:05:00"},
        )
        assert paid.status_code == 201
        assert paid.json()["amount"] == 1000.0
        assert paid.json()["month"] == 3

        after = client.get(f"{BASE}/tenants/Jane Doe/status", params={"as_of": "2026-03-03T11:00:00"}).json()
        assert after["status"] == "Paid"
        assert after["paid_this_cycle"] == 1000.0
        assert after["can_pay"] is False

        stats = client.get(f"{BASE}/tenants/Jane Doe/stats").json()
        assert (stats["payment_count"], stats["on_time_count"], stats["late_count"]) == (1, 1, 0)

        summary = client.get(f"{BASE}/ledger/summary").json()
        assert summary["total_revenue"] == 1000.0
        assert summary["recent_transactions"][0]["tenant_name"] == "Jane Doe"


def test_overdue_recompute_appends_one_late_notice() -> None:
    client = _client()
    with patch.object(api_module, "_settings", _QUIET_SETTINGS):
        client.post(f"{BASE}/tenants", json=_tenant_payload())
        status = client.get(f"{BASE}/tenants/Jane Doe/status", params={"as_of": "2026-03-10T09:00:00"}).json()
        assert status["status"] == "Overdue"

        first = client.post(f"{BASE}/reminders/recompute", json={"now_override": "2026-03-10T09:00:00"})
        assert first.status_code == 200
        assert first.json()["appended_count"] == 1
        assert first.json()["appended"][0]["type"] == "late"

        second = client.post(f"{BASE}/reminders/recompute", json={"now_override": "2026-03-10T12:00:00"})
        assert second.json()["changed"] is False

        log = client.get(f"{BASE}/reminders").json()["items"]
        assert [(item["tenant_name"], item["type"]) for item in log] == [("Jane Doe", "late")]

        runs = client.get(f"{BASE}/reminders/runs").json()["runs"]
        assert [run["appended_count"] for run in runs] == [0, 1]


def test_mutations_trigger_recompute_when_enabled() -> None:
    client = _client()
    with patch.object(api_module, "_settings", Settings(recompute_on_change=True)):
        client.post(f"{BASE}/tenants", json=_tenant_payload())
    runs = api_module.recompute_service.list_runs()
    assert len(runs) == 1
    assert runs[0].trigger == "on_change"
    assert runs[0].evaluated_count == 1


def test_manual_reminder_and_template_preview() -> None:
    client = _client()
    with patch.object(api_module, "_settings", _QUIET_SETTINGS):
        client.post(f"{BASE}/tenants", json=_tenant_payload("Jane Doe", rent_amount=950.0))
        client.put(
            f"{BASE}/settings/templates",
            json={"reminder": "Hi {tenant_name}, rent is {rent_amount} due by {due_date_end}", "late": "late"},
        )

        preview = client.get(f"{BASE}/tenants/Jane Doe/templates/reminder/preview")
        assert preview.status_code == 200
        assert preview.json()["message"] == "Hi Jane, rent is $950.00 due by 5"

        sent = client.post(
            f"{BASE}/tenants/jane doe/reminders/manual",
            json={"message": preview.json()["message"]},
        )
        assert sent.status_code == 201
        assert sent.json()["type"] == "manual"
        assert sent.json()["tenant_name"] == "Jane Doe"

        missing = client.post(f"{BASE}/tenants/Ghost/reminders/manual", json={"message": "hi"})
        assert missing.status_code == 404
        blank = client.post(f"{BASE}/tenants/Jane Doe/reminders/manual", json={"message": "   "})
        assert blank.status_code == 422


def test_payment_validation_and_receipt() -> None:
    client = _client()
    with patch.object(api_module, "_settings", _QUIET_SETTINGS):
        client.post(f"{BASE}/tenants", json=_tenant_payload())
        assert client.post(f"{BASE}/tenants/Ghost/payments", json={"amount": 10}).status_code == 404
        assert client.post(f"{BASE}/tenants/Jane Doe/payments", json={"amount": -1}).status_code == 422

        payment = client.post(f"{BASE}/tenants/Jane Doe/payments", json={"amount": 250.25}).json()
        listing = client.get(f"{BASE}/tenants/Jane Doe/payments").json()
        assert [value["id"] for value in listing] == [payment["id"]]

        receipt = client.get(f"{BASE}/tenants/Jane Doe/payments/{payment['id']}/receipt")
        assert receipt.status_code == 200
        assert receipt.headers["content-type"] == "application/pdf"
        assert receipt.content.startswith(b"%PDF")

        assert client.get(f"{BASE}/tenants/Jane Doe/payments/PAY-missing/receipt").status_code == 404


def test_calendar_endpoint() -> None:
    client = _client()
    with patch.object(api_module, "_settings", _QUIET_SETTINGS):
        client.post(f"{BASE}/tenants", json=_tenant_payload())
        calendar = client.get(
            f"{BASE}/tenants/Jane Doe/calendar",
            params={"year": 2026, "month": 2, "as_of": "2026-03-10T09:00:00"},
        ).json()
        assert calendar["paid"] is False
        assert calendar["overdue"] is True
        assert len(calendar["days"]) == 28

        assert client.get(f"{BASE}/tenants/Jane Doe/calendar", params={"month": 13}).status_code == 422
        assert client.get(f"{BASE}/tenants/Jane Doe/calendar", params={"year": 0}).status_code == 422
        assert client.get(f"{BASE}/tenants/Jane Doe/calendar", params={"year": 10000, "month": 1}).status_code == 422
        assert client.get(f"{BASE}/tenants/Ghost/calendar").status_code == 404


def test_window_validation() -> None:
    client = _client()
    with patch.object(api_module, "_settings", _QUIET_SETTINGS):
        assert client.put(f"{BASE}/settings/window", json={"start_day": 9, "end_day": 2}).status_code == 422
        assert client.put(f"{BASE}/settings/window", json={"start_day": 0, "end_day": 2}).status_code == 422
        assert client.get(f"{BASE}/settings/window").json() == {"start_day": 1, "end_day": 5}


def test_admin_key_guards_writes() -> None:
    client = _client()
    with patch.object(api_module, "_settings", _ADMIN_SETTINGS):
        assert client.post(f"{BASE}/tenants", json=_tenant_payload()).status_code == 401
        wrong = client.post(f"{BASE}/tenants", json=_tenant_payload(), headers={"X-Admin-Key": "nope"})
        assert wrong.status_code == 401
        ok = client.post(
            f"{BASE}/tenants",
            json=_tenant_payload(),
            headers={"X-Admin-Key": "test-admin-key-123"},
        )
        assert ok.status_code == 201
        # Reads and tenant payments stay open.
        assert client.get(f"{BASE}/tenants").status_code == 200
        assert client.post(f"{BASE}/tenants/Jane Doe/payments", json={}).status_code == 201


def test_blank_admin_key_leaves_writes_open() -> None:
    client = _client()
    with patch.object(api_module, "_settings", Settings(recompute_on_change=False, admin_api_key="   ")):
        assert client.post(f"{BASE}/tenants", json=_tenant_payload()).status_code == 201
        assert client.post(f"{BASE}/reminders/recompute", json={}).status_code == 200


def test_tenant_requires_phone_and_sub_tenant_lease_details() -> None:
    client = _client()
    with patch.object(api_module, "_settings", _QUIET_SETTINGS):
        blank_phone = client.post(f"{BASE}/tenants", json=_tenant_payload(phone="  "))
        assert blank_phone.status_code == 422
        assert blank_phone.json()["detail"]["reason"] == "blank_field"

        missing_lease = client.post(
            f"{BASE}/tenants",
            json=_tenant_payload(sub_tenants=[{"name": "Kid"}]),
        )
        assert missing_lease.status_code == 422
        assert client.get(f"{BASE}/tenants").json()["tenants"] == []

        client.post(f"{BASE}/tenants", json=_tenant_payload())
        assert client.patch(f"{BASE}/tenants/Jane Doe", json={"phone": ""}).status_code == 422
        assert client.get(f"{BASE}/tenants/Jane Doe").json()["phone"] == "555-0100"
