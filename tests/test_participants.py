from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import T0, make_event, make_participant
from event_core import (
    EventNotFound,
    InvalidParticipantUpdate,
    ParticipantNotFound,
    SideEffectFailure,
    attendance_summary,
    auto_confirm_participants,
    mark_no_shows,
    reconcile_event,
    record_result,
    set_participant_status,
)


def _seed(store, *participants, status="live"):
    store.add_event(make_event("ev-1", status=status, start=T0 - timedelta(hours=1)))
    for p in participants:
        store.add_participant(p)


def test_auto_confirm_is_idempotent(store):
    _seed(
        store,
        make_participant("p-1", status="registered"),
        make_participant("p-2", status="registered"),
        make_participant("p-3", status="no_show"),
    )
    assert auto_confirm_participants(store, "ev-1", now=T0) == 2
    assert auto_confirm_participants(store, "ev-1", now=T0) == 0
    assert store.get_participant("p-1").status == "confirmed"
    assert store.get_participant("p-1").updated_at == T0
    assert store.get_participant("p-3").status == "no_show"


def test_auto_confirm_only_touches_its_event(store):
    _seed(store, make_participant("p-1"))
    store.add_event(make_event("ev-2", start=T0 + timedelta(hours=1)))
    store.add_participant(make_participant("p-other", event_id="ev-2"))

    auto_confirm_participants(store, "ev-1", now=T0)

    assert store.get_participant("p-other").status == "registered"


def test_mark_no_shows_grace_period_boundary(store):
    _seed(
        store,
        make_participant("p-20", status="confirmed", updated_at=T0 - timedelta(minutes=20)),
        make_participant("p-5", status="confirmed", updated_at=T0 - timedelta(minutes=5)),
        make_participant("p-15", status="confirmed", updated_at=T0 - timedelta(minutes=15)),
    )
    assert mark_no_shows(store, "ev-1", now=T0, grace_period_minutes=15) == 1
    assert store.get_participant("p-20").status == "no_show"
    assert store.get_participant("p-5").status == "confirmed"
    # Strictly before the threshold only.
    assert store.get_participant("p-15").status == "confirmed"


def test_mark_no_shows_with_zero_grace(store):
    _seed(store, make_participant("p-1", status="registered", updated_at=T0 - timedelta(seconds=1)))
    assert mark_no_shows(store, "ev-1", now=T0, grace_period_minutes=0) == 1


def test_bulk_failures_raise_side_effect_failure(store):
    class BrokenStore(type(store)):
        def update_participant_statuses(self, *args, **kwargs):
            raise RuntimeError("disk full")

    broken = BrokenStore()
    _seed(broken, make_participant("p-1"))
    with pytest.raises(SideEffectFailure, match="auto-confirm participants for event ev-1: disk full"):
        auto_confirm_participants(broken, "ev-1", now=T0)
    with pytest.raises(SideEffectFailure, match="mark no-shows"):
        mark_no_shows(broken, "ev-1", now=T0)


def test_manual_override_can_move_backwards(store):
    _seed(store, make_participant("p-1", status="no_show"))
    updated = set_participant_status(store, "ev-1", "p-1", "attended", now=T0)
    assert updated.status == "attended"
    assert updated.updated_at == T0

    updated = set_participant_status(store, "ev-1", "p-1", "Registered", now=T0)
    assert updated.status == "registered"


def test_manual_override_rejects_unknown_status(store):
    _seed(store, make_participant("p-1"))
    with pytest.raises(ValueError, match="Invalid participant status"):
        set_participant_status(store, "ev-1", "p-1", "cancelled", now=T0)


def test_manual_override_checks_event_membership(store):
    _seed(store, make_participant("p-1"))
    with pytest.raises(ParticipantNotFound):
        set_participant_status(store, "ev-2", "p-1", "attended", now=T0)
    with pytest.raises(ParticipantNotFound):
        set_participant_status(store, "ev-1", "p-404", "attended", now=T0)


def test_record_result_requires_attended(store):
    _seed(store, make_participant("p-1", status="confirmed"))
    with pytest.raises(InvalidParticipantUpdate, match="attended"):
        record_result(store, "ev-1", "p-1", score=10)


def test_record_result_keeps_status_and_updated_at(store):
    original = make_participant("p-1", status="attended", updated_at=T0 - timedelta(hours=2))
    _seed(store, original)

    updated = record_result(store, "ev-1", "p-1", score=42.5)
    assert updated.score == 42.5
    assert updated.placement is None

    updated = record_result(store, "ev-1", "p-1", placement=2)
    assert updated.score == 42.5
    assert updated.placement == 2
    assert updated.status == "attended"
    assert updated.updated_at == original.updated_at


@pytest.mark.parametrize(
    "kwargs",
    [
        {},
        {"placement": 0},
        {"placement": -3},
        {"placement": True},
        {"score": float("nan")},
        {"score": float("inf")},
    ],
)
def test_record_result_validates_input(store, kwargs):
    _seed(store, make_participant("p-1", status="attended"))
    with pytest.raises(ValueError, match="Invalid result"):
        record_result(store, "ev-1", "p-1", **kwargs)


def test_reconcile_live_event_confirms(store):
    _seed(store, make_participant("p-1", status="registered"))
    result = reconcile_event(store, "ev-1", now=T0)
    assert result == {
        "eventId": "ev-1",
        "status": "live",
        "confirmed": 1,
        "noShows": 0,
        "message": None,
    }


def test_reconcile_completed_event_marks_no_shows(store):
    _seed(
        store,
        make_participant("p-1", status="confirmed", updated_at=T0 - timedelta(hours=1)),
        status="completed",
    )
    result = reconcile_event(store, "ev-1", now=T0)
    assert result["noShows"] == 1
    assert store.get_participant("p-1").status == "no_show"


def test_reconcile_other_statuses_do_nothing(store):
    _seed(store, make_participant("p-1"), status="cancelled")
    result = reconcile_event(store, "ev-1", now=T0)
    assert result["confirmed"] == 0 and result["noShows"] == 0
    assert "nothing to reconcile" in result["message"]
    with pytest.raises(EventNotFound):
        reconcile_event(store, "missing", now=T0)


def test_attendance_summary_counts_and_rate():
    participants = [
        make_participant("a", status="attended"),
        make_participant("b", status="attended"),
        make_participant("c", status="no_show"),
        make_participant("d", status="confirmed"),
        make_participant("e", status="registered"),
        make_participant("f", status="attended"),
    ]
    assert attendance_summary(participants) == {
        "total": 6,
        "registered": 1,
        "confirmed": 1,
        "attended": 3,
        "no_show": 1,
        "attendanceRate": 50,
    }
    assert attendance_summary([])["attendanceRate"] == 0
