"""End-to-end tests for the HTTP layer: ranges, availability checks and imports."""

from __future__ import annotations

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from booking_conflicts.domain.models import AuditAction
from booking_conflicts.main import app, audit_repo, property_locks, property_repo, range_repo

HEADERS = {"X-User-Id": "user-1"}


@pytest.fixture(autouse=True)
def _clear_repos():
    """Reset in-memory repos before each test."""
    property_repo._store.clear()
    range_repo._store.clear()
    audit_repo._entries.clear()
    yield
    property_repo._store.clear()
    range_repo._store.clear()
    audit_repo._entries.clear()


@pytest.fixture()
def client():
    return TestClient(app)


@pytest.fixture()
def property_id(client) -> str:
    resp = client.post("/properties", json={"name": "Casa Lumen"}, headers=HEADERS)
    assert resp.status_code == 201
    return resp.json()["id"]


def _dt(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _create(client, property_id: str, kind: str, start: str, end: str, **extra):
    body = {"kind": kind, "start": start, "end": end, **extra}
    return client.post(f"/properties/{property_id}/ranges", json=body, headers=HEADERS)


# ---------------------------------------------------------------------------
# Properties and auth
# ---------------------------------------------------------------------------


def test_mutations_require_user_header(client, property_id):
    resp = client.post(
        f"/properties/{property_id}/ranges",
        json={"kind": "CONFIRMED", "start": "2025-01-01T00:00:00Z", "end": "2025-01-05T00:00:00Z"},
    )
    assert resp.status_code == 401
    assert client.post("/properties", json={"name": "x"}).status_code == 401


def test_list_ranges_unknown_property(client):
    assert client.get("/properties/nope/ranges").status_code == 404


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


def test_create_range_and_list(client, property_id):
    resp = _create(
        client, property_id, "CONFIRMED", "2025-01-01T00:00:00Z", "2025-01-05T00:00:00Z",
        guest_name="Ada",
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["owner_id"] == property_id
    assert body["priority"] == 20
    assert body["status"] == "active"

    listed = client.get(f"/properties/{property_id}/ranges").json()
    assert [r["id"] for r in listed] == [body["id"]]


def test_blocking_conflict_rejected_with_details(client, property_id):
    hold = _create(client, property_id, "MAINTENANCE", "2025-01-03T00:00:00Z", "2025-01-04T00:00:00Z")
    resp = _create(client, property_id, "CONFIRMED", "2025-01-01T00:00:00Z", "2025-01-05T00:00:00Z")

    assert resp.status_code == 409
    detail = resp.json()["detail"]
    assert [c["id"] for c in detail["conflicts"]] == [hold.json()["id"]]
    assert detail["details"][0]["severity"] == "blocking"
    assert detail["details"][0]["conflict_type"] == "encompassing"
    assert len(range_repo.list_ranges_by_property(property_id)) == 1


def test_override_creates_over_blocking_conflict(client, property_id):
    _create(client, property_id, "CONFIRMED", "2025-01-01T00:00:00Z", "2025-01-05T00:00:00Z")
    resp = _create(
        client, property_id, "CONFIRMED", "2025-01-02T00:00:00Z", "2025-01-06T00:00:00Z",
        override=True,
    )
    assert resp.status_code == 201
    assert len(range_repo.list_ranges_by_property(property_id)) == 2


def test_soft_conflict_is_allowed(client, property_id):
    _create(client, property_id, "TENTATIVE", "2025-01-01T00:00:00Z", "2025-01-05T00:00:00Z")
    resp = _create(client, property_id, "CONTRACT", "2025-01-02T00:00:00Z", "2025-01-04T00:00:00Z")
    assert resp.status_code == 201


def test_back_to_back_ranges_allowed(client, property_id):
    _create(client, property_id, "CONFIRMED", "2025-01-01T00:00:00Z", "2025-01-05T00:00:00Z")
    resp = _create(client, property_id, "CONFIRMED", "2025-01-05T00:00:00Z", "2025-01-09T00:00:00Z")
    assert resp.status_code == 201


def test_create_on_unknown_property_is_404(client):
    resp = _create(client, "ghost", "CONFIRMED", "2025-01-01T00:00:00Z", "2025-01-05T00:00:00Z")
    assert resp.status_code == 404


def test_unknown_property_takes_no_lock(client):
    _create(client, "ghost-create", "CONFIRMED", "2025-01-01T00:00:00Z", "2025-01-05T00:00:00Z")
    rows = [{"property_id": "ghost-import", "kind": "CONFIRMED", "start": "2025-06-01", "end": "2025-06-10"}]
    client.post("/imports", json={"rows": rows}, headers=HEADERS)

    assert "ghost-create" not in property_locks._locks
    assert "ghost-import" not in property_locks._locks


def test_create_with_inverted_dates_is_422(client, property_id):
    resp = _create(client, property_id, "CONFIRMED", "2025-01-05T00:00:00Z", "2025-01-01T00:00:00Z")
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------


def test_update_excludes_own_range(client, property_id):
    created = _create(client, property_id, "CONFIRMED", "2025-01-01T00:00:00Z", "2025-01-05T00:00:00Z")
    range_id = created.json()["id"]

    resp = client.patch(
        f"/ranges/{range_id}",
        json={"start": "2025-01-02T00:00:00Z", "end": "2025-01-06T00:00:00Z"},
        headers=HEADERS,
    )

    assert resp.status_code == 200
    assert _dt(resp.json()["start"]) == _dt("2025-01-02T00:00:00Z")
    assert resp.json()["updated_at"] is not None


def test_update_into_conflict_rejected(client, property_id):
    _create(client, property_id, "BLOCKED", "2025-01-10T00:00:00Z", "2025-01-12T00:00:00Z")
    created = _create(client, property_id, "CONFIRMED", "2025-01-01T00:00:00Z", "2025-01-05T00:00:00Z")
    range_id = created.json()["id"]

    resp = client.patch(f"/ranges/{range_id}", json={"end": "2025-01-11T00:00:00Z"}, headers=HEADERS)

    assert resp.status_code == 409
    assert _dt(range_repo.get(range_id).end.isoformat()) == _dt("2025-01-05T00:00:00Z")


def test_update_with_end_before_start_is_422(client, property_id):
    created = _create(client, property_id, "CONFIRMED", "2025-01-05T00:00:00Z", "2025-01-09T00:00:00Z")
    resp = client.patch(
        f"/ranges/{created.json()['id']}", json={"end": "2025-01-02T00:00:00Z"}, headers=HEADERS
    )
    assert resp.status_code == 422


def test_cancelled_range_frees_its_dates(client, property_id):
    created = _create(client, property_id, "CONFIRMED", "2025-01-01T00:00:00Z", "2025-01-05T00:00:00Z")
    resp = client.patch(
        f"/ranges/{created.json()['id']}", json={"status": "cancelled"}, headers=HEADERS
    )
    assert resp.status_code == 200

    again = _create(client, property_id, "CONFIRMED", "2025-01-01T00:00:00Z", "2025-01-05T00:00:00Z")
    assert again.status_code == 201


def test_delete_range(client, property_id):
    created = _create(client, property_id, "CONFIRMED", "2025-01-01T00:00:00Z", "2025-01-05T00:00:00Z")
    range_id = created.json()["id"]

    assert client.delete(f"/ranges/{range_id}", headers=HEADERS).json() == {"status": "deleted"}
    assert client.delete(f"/ranges/{range_id}", headers=HEADERS).status_code == 404
    assert client.patch(f"/ranges/{range_id}", json={}, headers=HEADERS).status_code == 404


# ---------------------------------------------------------------------------
# Availability
# ---------------------------------------------------------------------------


def test_basic_availability(client, property_id):
    _create(client, property_id, "CONFIRMED", "2025-01-05T00:00:00Z", "2025-01-10T00:00:00Z")

    busy = client.post(
        f"/properties/{property_id}/availability",
        json={"start": "2025-01-08T00:00:00Z", "end": "2025-01-12T00:00:00Z"},
    ).json()
    free = client.post(
        f"/properties/{property_id}/availability",
        json={"start": "2025-01-10T00:00:00Z", "end": "2025-01-12T00:00:00Z"},
    ).json()

    assert busy["available"] is False
    assert len(busy["conflicts"]) == 1
    assert free == {"available": True, "conflicts": []}


def test_advanced_availability_payload(client, property_id):
    _create(client, property_id, "CONFIRMED", "2025-01-05T00:00:00Z", "2025-01-10T00:00:00Z")

    resp = client.post(
        f"/properties/{property_id}/availability/advanced",
        json={"start": "2025-01-05T00:00:00Z", "end": "2025-01-10T00:00:00Z", "grace_hours": 0},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["blocking"] is True
    assert len(body["conflicts"]) == 1
    assert [(_dt(s["start"]), _dt(s["end"])) for s in body["suggestions"]] == [
        (_dt("2024-12-31T00:00:00Z"), _dt("2025-01-05T00:00:00Z")),
        (_dt("2025-01-10T00:00:00Z"), _dt("2025-01-15T00:00:00Z")),
        (_dt("2024-12-30T00:00:00Z"), _dt("2025-01-04T00:00:00Z")),
    ]


def test_advanced_availability_rejects_large_grace(client, property_id):
    resp = client.post(
        f"/properties/{property_id}/availability/advanced",
        json={"start": "2025-01-05T00:00:00Z", "end": "2025-01-10T00:00:00Z", "grace_hours": 49},
    )
    assert resp.status_code == 422


def test_availability_unknown_property(client):
    resp = client.post(
        "/properties/ghost/availability",
        json={"start": "2025-01-05T00:00:00Z", "end": "2025-01-10T00:00:00Z"},
    )
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def test_import_persists_and_summarizes(client, property_id):
    rows = [
        {"property_id": property_id, "kind": "CONFIRMED", "start": "2025-06-01", "end": "2025-06-10"},
        {"property_id": property_id, "kind": "CONFIRMED", "start": "2025-06-05", "end": "2025-06-15",
         "skip_conflicts": True},
        {"property_id": property_id, "kind": "OWNER", "start": "2025-06-01", "end": "2025-06-10",
         "update_existing": True},
        {"property_id": "ghost", "kind": "CONFIRMED", "start": "2025-06-01", "end": "2025-06-10"},
    ]

    resp = client.post("/imports", json={"rows": rows}, headers=HEADERS)

    assert resp.status_code == 200
    body = resp.json()
    assert body == {
        "imported": 1,
        "updated": 1,
        "skipped": 1,
        "errors": [{"row": 4, "error": "property 'ghost' not found"}],
    }
    stored = range_repo.list_ranges_by_property(property_id)
    assert [r.kind for r in stored] == ["OWNER"]

    entries = audit_repo.list_for_entity("bulk_import")
    assert [e.action for e in entries] == [AuditAction.IMPORT]


def test_import_updates_stored_range(client, property_id):
    created = _create(client, property_id, "TENTATIVE", "2025-06-01T00:00:00Z", "2025-06-10T00:00:00Z")
    rows = [{"property_id": property_id, "kind": "CONFIRMED", "start": "2025-06-02", "end": "2025-06-09"}]

    body = client.post(
        "/imports", json={"rows": rows, "update_existing": True}, headers=HEADERS
    ).json()

    assert body["updated"] == 1
    stored = range_repo.get(created.json()["id"])
    assert stored.kind == "CONFIRMED"
    assert stored.start.day == 2


def test_import_missing_fields_fail_only_their_row(client, property_id):
    rows = [
        {"property_id": property_id, "kind": "CONFIRMED", "start": "2025-06-01", "end": "2025-06-10"},
        {"property_id": property_id, "kind": "CONFIRMED", "start": None, "end": "2025-06-20"},
        {"property_id": property_id, "start": "2025-06-12", "end": "2025-06-14"},
    ]

    resp = client.post("/imports", json={"rows": rows}, headers=HEADERS)

    assert resp.status_code == 200
    body = resp.json()
    assert body["imported"] == 1
    assert body["errors"] == [
        {"row": 2, "error": "missing start date"},
        {"row": 3, "error": "missing range kind"},
    ]
    assert len(range_repo.list_ranges_by_property(property_id)) == 1


def test_imported_owner_ranges_are_audited(client, property_id):
    owner = _create(
        client, property_id, "OWNER", "2025-07-01T00:00:00Z", "2025-07-05T00:00:00Z"
    ).json()
    audit_repo._entries.clear()
    rows = [
        {"property_id": property_id, "kind": "OWNER_STAY", "start": "2025-06-01", "end": "2025-06-10"},
        {"property_id": property_id, "kind": "CONFIRMED", "start": "2025-06-12", "end": "2025-06-14"},
        {"property_id": property_id, "kind": "CONFIRMED", "start": "2025-07-01", "end": "2025-07-05",
         "update_existing": True},
    ]

    client.post("/imports", json={"rows": rows}, headers=HEADERS)

    by_action = {}
    for entry in audit_repo.list_all():
        by_action.setdefault(entry.action, []).append(entry)
    (created,) = by_action[AuditAction.CREATE]
    assert created.changes["created"]["kind"] == "OWNER_STAY"
    (updated,) = by_action[AuditAction.UPDATE]
    assert updated.entity_id == owner["id"]
    assert updated.changes["changes"]["kind"] == "CONFIRMED"
    assert len(by_action[AuditAction.IMPORT]) == 1


def test_import_row_limit(client, property_id):
    rows = [
        {"property_id": property_id, "kind": "CONFIRMED", "start": "2025-06-01", "end": "2025-06-02"}
    ] * 101
    resp = client.post("/imports", json={"rows": rows}, headers=HEADERS)
    assert resp.status_code == 422


def test_import_needs_rows(client):
    assert client.post("/imports", json={"rows": []}, headers=HEADERS).status_code == 422
