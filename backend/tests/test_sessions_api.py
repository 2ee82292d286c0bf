import datetime as dt

import pytest

from nightbase.models.db import LedgerEntry


@pytest.fixture
def session_id(client, venue, pricing_policy, session_start) -> str:
    response = client.post(
        "/api/sessions",
        json={"venue_id": venue.id, "start_time": session_start.isoformat()},
    )
    assert response.status_code == 200
    return response.json()["id"]


def _add_named_guest(client, session_id: str, name: str | None = None) -> dict:
    response = client.post(f"/api/sessions/{session_id}/guests/by-name", json={"guest_name": name})
    assert response.status_code == 200
    return response.json()


def _run_accrual(client, at: dt.datetime) -> dict:
    response = client.post("/api/accrual/run", json={"now": at.isoformat()})
    assert response.status_code == 200
    return response.json()


def test_create_session_uses_default_policy(client, session_id, pricing_policy):
    data = client.get(f"/api/sessions/{session_id}").json()

    assert data["status"] == "active"
    assert data["pricing_policy_id"] == pricing_policy.id
    assert data["guest_count"] == 0
    assert data["end_time"] is None
    assert data["guests"] == [] and data["entries"] == []


def test_create_session_rejects_unknown_policy_and_table(client, venue):
    response = client.post("/api/sessions", json={"venue_id": venue.id, "pricing_policy_id": "nope"})
    assert response.status_code == 404
    response = client.post("/api/sessions", json={"venue_id": venue.id, "table_id": 999})
    assert response.status_code == 404


def test_unknown_session_is_404(client):
    assert client.get("/api/sessions/missing").status_code == 404
    assert client.post("/api/sessions/missing/checkout").status_code == 404


def test_named_guests_get_default_names(client, session_id):
    first = _add_named_guest(client, session_id)
    second = _add_named_guest(client, session_id, "  Sato  ")

    assert first["guest_name"] == "Guest 1"
    assert second["guest_name"] == "Sato"
    assert client.get(f"/api/sessions/{session_id}").json()["guest_count"] == 2


def test_adding_a_profile_guest_twice_keeps_one_link(client, session_id, guest_profile):
    url = f"/api/sessions/{session_id}/guests"
    first = client.post(url, json={"guest_id": guest_profile.id}).json()
    second = client.post(url, json={"guest_id": guest_profile.id}).json()

    assert first["id"] == second["id"]
    assert client.get(f"/api/sessions/{session_id}").json()["guest_count"] == 1


def test_removing_a_guest_drops_only_its_fee_entries(client, db_session, session_id, session_start, cast_profile):
    leaving = _add_named_guest(client, session_id, "Leaving")
    staying = _add_named_guest(client, session_id, "Staying")

    client.post(
        "/api/engagements",
        json={
            "session_id": session_id,
            "staff_id": cast_profile.id,
            "session_guest_id": leaving["id"],
            "tag": "nomination",
        },
    )
    order = client.post(
        f"/api/sessions/{session_id}/orders",
        json={"item_name": "Highball", "amount": 800, "session_guest_id": leaving["id"]},
    ).json()
    _run_accrual(client, session_start + dt.timedelta(minutes=95))

    response = client.delete(f"/api/sessions/{session_id}/guests/{leaving['id']}")
    assert response.status_code == 200
    # two table-seat extensions plus the nomination
    assert response.json()["removed_fee_entries"] == 3

    rows = db_session.query(LedgerEntry).filter(LedgerEntry.session_id == session_id).all()
    by_id = {r.id: r for r in rows}
    assert by_id[order["id"]].session_guest_id is None
    fee_rows = [r for r in rows if r.category is not None]
    assert len(fee_rows) == 2
    assert all(r.session_guest_id == staying["id"] for r in fee_rows)

    detail = client.get(f"/api/sessions/{session_id}").json()
    assert detail["guest_count"] == 1
    assert [g["id"] for g in detail["guests"]] == [staying["id"]]


def test_remove_unknown_guest_is_404(client, session_id):
    assert client.delete(f"/api/sessions/{session_id}/guests/nobody").status_code == 404


def test_orders_lifecycle(client, db_session, session_id, venue):
    from nightbase.models.db import MenuItem

    menu = MenuItem(venue_id=venue.id, name="Whisky", price=1200)
    db_session.add(menu)
    db_session.commit()

    response = client.post(f"/api/sessions/{session_id}/orders", json={"menu_id": menu.id, "quantity": 2})
    assert response.status_code == 200
    order = response.json()
    assert (order["item_name"], order["amount"], order["quantity"]) == ("Whisky", 1200, 2)

    response = client.patch(f"/api/sessions/{session_id}/orders/{order['id']}", json={"status": "cancelled"})
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    assert client.post(f"/api/sessions/{session_id}/orders", json={"quantity": 1}).status_code == 422
    assert client.delete(f"/api/sessions/{session_id}/orders/{order['id']}").status_code == 204
    assert client.delete(f"/api/sessions/{session_id}/orders/{order['id']}").status_code == 404


def test_bill_needs_bill_settings(client, session_id):
    response = client.get(f"/api/sessions/{session_id}/bill")
    assert response.status_code == 409


def test_bill_and_checkout(client, session_id, session_start, bill_settings, cast_profile):
    guest = _add_named_guest(client, session_id)
    _add_named_guest(client, session_id)
    client.post(
        "/api/engagements",
        json={
            "session_id": session_id,
            "staff_id": cast_profile.id,
            "session_guest_id": guest["id"],
            "tag": "nomination",
        },
    )
    client.post(f"/api/sessions/{session_id}/orders", json={"item_name": "Highball", "amount": 800, "quantity": 2})
    _run_accrual(client, session_start + dt.timedelta(minutes=65))

    at = session_start + dt.timedelta(minutes=65)
    bill = client.get(f"/api/sessions/{session_id}/bill", params={"at": at.isoformat()}).json()
    # base 3000 x 2, one extension per guest, nomination, drinks
    assert bill["time_charge"]["base_price"] == 6000
    assert bill["time_charge"]["extension_price"] == 2000
    assert bill["cast_fees"]["shime_total"] == 5000
    assert bill["orders"]["total"] == 1600
    assert bill["subtotal"] == 14600
    assert bill["total"] == 14600 + 1460 + 1606

    response = client.post(f"/api/sessions/{session_id}/checkout")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "completed"
    assert data["end_time"] is not None
    assert data["total_amount"] == bill["total"]
    engagements = [e for e in data["entries"] if e["engagement_status"] is not None]
    assert engagements and all(e["engagement_status"] == "ended" for e in engagements)

    assert client.post(f"/api/sessions/{session_id}/checkout").status_code == 409
    assert client.post(f"/api/sessions/{session_id}/orders", json={"item_name": "Late", "amount": 1}).status_code == 409


def test_reopen_and_delete(client, db_session, session_id):
    _add_named_guest(client, session_id)
    client.post(f"/api/sessions/{session_id}/checkout")

    response = client.post(f"/api/sessions/{session_id}/reopen")
    assert response.status_code == 200
    assert response.json()["status"] == "active"
    assert response.json()["end_time"] is None

    assert client.delete(f"/api/sessions/{session_id}").status_code == 204
    assert client.get(f"/api/sessions/{session_id}").status_code == 404
    assert db_session.query(LedgerEntry).filter(LedgerEntry.session_id == session_id).count() == 0


def test_active_session_cannot_get_end_time(client, session_id):
    response = client.patch(f"/api/sessions/{session_id}", json={"end_time": "2026-01-10T23:00:00"})
    assert response.status_code == 409


def test_list_sessions_filters_by_status(client, session_id, venue):
    assert [s["id"] for s in client.get("/api/sessions", params={"status": "active"}).json()] == [session_id]
    assert client.get("/api/sessions", params={"status": "completed", "venue_id": venue.id}).json() == []


def test_offset_start_time_is_stored_as_utc(client, venue, pricing_policy):
    response = client.post(
        "/api/sessions",
        json={"venue_id": venue.id, "start_time": "2026-01-11T05:00:00+09:00"},
    )
    assert response.status_code == 200
    session_id = response.json()["id"]
    assert response.json()["start_time"] == "2026-01-10T20:00:00"

    response = client.patch(f"/api/sessions/{session_id}", json={"start_time": "2026-01-10T20:30:00Z"})
    assert response.status_code == 200
    assert response.json()["start_time"] == "2026-01-10T20:30:00"


@pytest.mark.parametrize("at", ["2026-01-10T21:35:00Z", "2026-01-10T21:35:00+00:00", "2026-01-11T06:35:00+09:00"])
def test_bill_accepts_offset_time(client, session_id, bill_settings, at):
    _add_named_guest(client, session_id)

    response = client.get(f"/api/sessions/{session_id}/bill", params={"at": at})

    assert response.status_code == 200
    assert response.json()["time_charge"]["duration_minutes"] == 95
    assert response.json()["time_charge"]["extension_minutes"] == 35
