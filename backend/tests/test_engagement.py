import datetime as dt

import pytest

from nightbase.core.errors import EntryNotFound, InvalidTransition, SessionStateError
from nightbase.models.db import LedgerEntry
from nightbase.models.entities import EngagementTag, FeeCategory
from nightbase.services.engagement_service import (
    EngagementService,
    TransitionKind,
    classify_transition,
    parse_tag,
)
from nightbase.services.session_service import SessionService


@pytest.fixture
def service(db_session, locks):
    return EngagementService(db_session, locks)


@pytest.fixture
def guest_link(open_session):
    return open_session.guests[0]


def _entries(db_session, session_id):
    return db_session.query(LedgerEntry).filter(LedgerEntry.session_id == session_id).all()


@pytest.mark.parametrize(
    "current,new,kind",
    [
        (EngagementTag.WAITING, EngagementTag.WAITING, TransitionKind.NOOP),
        (EngagementTag.WAITING, EngagementTag.NOMINATION, TransitionKind.RETAG_IN_PLACE),
        (EngagementTag.WAITING, EngagementTag.ESCORT, TransitionKind.RETAG_IN_PLACE),
        (EngagementTag.SERVING, EngagementTag.COMPANION, TransitionKind.CLOSE_AND_REOPEN),
        (EngagementTag.NOMINATION, EngagementTag.COMPANION, TransitionKind.CLOSE_AND_REOPEN),
        (EngagementTag.NOMINATION, EngagementTag.SERVING, TransitionKind.CLOSE_AND_REOPEN),
        (EngagementTag.WAITING, EngagementTag.SERVING, TransitionKind.STATUS_IN_PLACE),
        (EngagementTag.SERVING, EngagementTag.ENDED, TransitionKind.STATUS_IN_PLACE),
    ],
)
def test_classify_transition(current, new, kind):
    assert classify_transition(current, new) is kind


def test_parse_tag_rejects_unknown_value():
    assert parse_tag("companion") is EngagementTag.COMPANION
    with pytest.raises(InvalidTransition):
        parse_tag("vip")


def test_add_engagement_prices_fee_tag(service, open_session, guest_link, cast_profile):
    entry = service.add_engagement(open_session.id, cast_profile.id, guest_link.id, tag="nomination")

    assert entry.category is FeeCategory.NOMINATION
    assert entry.amount == 5000
    assert entry.engagement_status is EngagementTag.NOMINATION
    assert entry.session_guest_id == guest_link.id
    assert entry.start_time is not None
    assert entry.end_time is None


def test_add_engagement_defaults_to_serving(service, open_session, cast_profile):
    entry = service.add_engagement(open_session.id, cast_profile.id)
    assert entry.engagement_status is EngagementTag.SERVING
    assert entry.category is None
    assert entry.amount == 0


def test_add_engagement_rejects_ended_and_closed_sessions(db_session, service, open_session, cast_profile):
    with pytest.raises(InvalidTransition):
        service.add_engagement(open_session.id, cast_profile.id, tag="ended")

    SessionService.checkout(db_session, open_session.id)
    with pytest.raises(SessionStateError):
        service.add_engagement(open_session.id, cast_profile.id)


def test_add_engagement_requires_guest_on_session(service, open_session, cast_profile):
    with pytest.raises(InvalidTransition):
        service.add_engagement(open_session.id, cast_profile.id, "not-a-guest", tag="nomination")


def test_waiting_to_nomination_retags_in_place(db_session, service, open_session, guest_link, cast_profile):
    waiting = service.add_engagement(open_session.id, cast_profile.id, guest_link.id, tag="waiting")
    assert waiting.amount == 0

    result = service.change_engagement_tag(waiting.id, "nomination")

    assert result.id == waiting.id
    assert result.amount == 5000
    assert result.category is FeeCategory.NOMINATION
    assert result.engagement_status is EngagementTag.NOMINATION
    assert len(_entries(db_session, open_session.id)) == 1


def test_nomination_to_companion_closes_and_reopens(db_session, service, open_session, guest_link, cast_profile):
    started = dt.datetime(2026, 1, 10, 21, 0)
    switched = started + dt.timedelta(minutes=40)
    nomination = service.add_engagement(
        open_session.id, cast_profile.id, guest_link.id, tag="nomination", now=started
    )

    companion = service.change_engagement_tag(nomination.id, EngagementTag.COMPANION, now=switched)

    assert companion.id != nomination.id
    assert companion.category is FeeCategory.COMPANION
    assert companion.amount == 3000
    assert companion.engagement_status is EngagementTag.COMPANION
    assert companion.start_time == switched
    assert companion.staff_id == cast_profile.id
    assert companion.session_guest_id == guest_link.id

    closed = service.repo.get_entry(nomination.id)
    assert closed.engagement_status is EngagementTag.ENDED
    assert closed.end_time == switched
    assert closed.amount == 5000
    assert len(_entries(db_session, open_session.id)) == 2


def test_fee_to_pure_status_opens_unpriced_entry(service, open_session, guest_link, cast_profile):
    nomination = service.add_engagement(open_session.id, cast_profile.id, guest_link.id, tag="nomination")

    serving = service.change_engagement_tag(nomination.id, "serving")

    assert serving.id != nomination.id
    assert serving.amount == 0
    assert serving.category is None
    assert service.repo.get_entry(nomination.id).engagement_status is EngagementTag.ENDED


def test_pure_status_change_updates_in_place(db_session, service, open_session, cast_profile):
    entry = service.add_engagement(open_session.id, cast_profile.id, tag="waiting")
    ended_at = dt.datetime(2026, 1, 10, 23, 0)

    serving = service.change_engagement_tag(entry.id, "serving")
    assert serving.id == entry.id
    assert serving.end_time is None

    ended = service.change_engagement_tag(entry.id, "ended", now=ended_at)
    assert ended.id == entry.id
    assert ended.engagement_status is EngagementTag.ENDED
    assert ended.end_time == ended_at
    assert ended.amount == 0
    assert len(_entries(db_session, open_session.id)) == 1


def test_same_tag_is_a_no_op(db_session, service, open_session, guest_link, cast_profile):
    entry = service.add_engagement(open_session.id, cast_profile.id, guest_link.id, tag="nomination")
    assert service.change_engagement_tag(entry.id, "nomination") == entry
    assert len(_entries(db_session, open_session.id)) == 1


def test_change_tag_errors(service, open_session, cast_profile):
    with pytest.raises(EntryNotFound):
        service.change_engagement_tag("missing", "serving")

    entry = service.add_engagement(open_session.id, cast_profile.id, tag="waiting")
    with pytest.raises(InvalidTransition):
        service.change_engagement_tag(entry.id, "vip")
    with pytest.raises(InvalidTransition):
        service.change_engagement_tag(entry.id, "nomination", pricing_policy_id="no-such-policy")

    # nothing was mutated by the rejected changes
    assert service.repo.get_entry(entry.id).engagement_status is EngagementTag.WAITING


def test_change_tag_rejects_plain_orders(db_session, service, open_session):
    from nightbase.services.order_service import OrderService

    order = OrderService.place_order(db_session, open_session.id, item_name="Highball", amount=800)
    with pytest.raises(InvalidTransition):
        service.change_engagement_tag(order.id, "nomination")


def test_update_times_and_remove(db_session, service, open_session, cast_profile):
    entry = service.add_engagement(open_session.id, cast_profile.id, tag="serving")
    start = dt.datetime(2026, 1, 10, 20, 30)
    end = dt.datetime(2026, 1, 10, 21, 15)

    updated = service.update_engagement_times(entry.id, start_time=start, end_time=end)
    assert (updated.start_time, updated.end_time) == (start, end)

    cleared = service.update_engagement_times(entry.id, clear_end_time=True)
    assert cleared.end_time is None

    service.remove_engagement(entry.id)
    assert _entries(db_session, open_session.id) == []


# -- HTTP -------------------------------------------------------------------


def test_engagement_endpoints(client, open_session, guest_link, cast_profile):
    response = client.post(
        "/api/engagements",
        json={
            "session_id": open_session.id,
            "staff_id": cast_profile.id,
            "session_guest_id": guest_link.id,
            "tag": "waiting",
        },
    )
    assert response.status_code == 200
    entry_id = response.json()["id"]

    response = client.post(f"/api/engagements/{entry_id}/tag", json={"tag": "escort"})
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == entry_id
    assert data["amount"] == 8000
    assert data["category"] == "escort"

    assert client.post(f"/api/engagements/{entry_id}/tag", json={"tag": "vip"}).status_code == 400
    assert client.post("/api/engagements/missing/tag", json={"tag": "serving"}).status_code == 404

    assert client.delete(f"/api/engagements/{entry_id}").status_code == 204
    assert client.delete(f"/api/engagements/{entry_id}").status_code == 404


def test_engagement_times_accept_offsets(client, open_session, cast_profile):
    entry_id = client.post(
        "/api/engagements",
        json={"session_id": open_session.id, "staff_id": cast_profile.id, "tag": "serving"},
    ).json()["id"]

    response = client.patch(
        f"/api/engagements/{entry_id}/times",
        json={"start_time": "2026-01-11T05:30:00+09:00", "end_time": "2026-01-10T21:15:00Z"},
    )

    assert response.status_code == 200
    assert response.json()["start_time"] == "2026-01-10T20:30:00"
    assert response.json()["end_time"] == "2026-01-10T21:15:00"
