"""Participant attendance bookkeeping.

Automatic operations (invoked by event transitions):
- auto_confirm_participants: registered -> confirmed when an event goes live
- mark_no_shows: registered/confirmed -> no_show when an event completes,
  skipping anyone whose status changed within the grace period

Organizer operations:
- set_participant_status: manual override, bypasses the automatic rules
- record_result: score and/or placement for an attended participant
- reconcile_event: re-run the bulk update matching the event's status

Automatic operations never move a participant backward; both are bulk,
filter-scoped updates, so re-running them is a no-op.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable

from .errors import (
    EventNotFound,
    InvalidParticipantUpdate,
    ParticipantNotFound,
    SideEffectFailure,
)
from .store import EventStore
from .types import PARTICIPANT_STATUSES, AttendanceSummary, EventParticipant, ReconcileResult
from .validation import InputSanitizer

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD_MINUTES = 15


def auto_confirm_participants(store: EventStore, event_id: str, *, now: datetime) -> int:
    """Confirm every ``registered`` participant of the event.

    Returns:
        Number of participants confirmed.

    Raises:
        SideEffectFailure: if the bulk update fails.
    """
    try:
        confirmed = store.update_participant_statuses(
            event_id, ("registered",), "confirmed", now=now
        )
    except Exception as exc:
        logger.error(f"Failed to auto-confirm participants for event {event_id}: {exc}")
        raise SideEffectFailure("auto-confirm participants", event_id, exc) from exc
    logger.info(f"Auto-confirmed {confirmed} registered participants for event {event_id}")
    return confirmed


def mark_no_shows(
    store: EventStore,
    event_id: str,
    *,
    now: datetime,
    grace_period_minutes: int = DEFAULT_GRACE_PERIOD_MINUTES,
) -> int:
    """Mark registered/confirmed participants as ``no_show``.

    Only participants whose status was last written strictly before
    ``now - grace_period_minutes`` are touched, so a last-second check-in is
    not marked absent.

    Raises:
        SideEffectFailure: if the bulk update fails.
    """
    grace_time = now - timedelta(minutes=max(0, int(grace_period_minutes)))
    try:
        marked = store.update_participant_statuses(
            event_id,
            ("registered", "confirmed"),
            "no_show",
            now=now,
            updated_before=grace_time,
        )
    except Exception as exc:
        logger.error(f"Failed to mark no-shows for event {event_id}: {exc}")
        raise SideEffectFailure("mark no-shows", event_id, exc) from exc
    logger.info(
        f"Marked {marked} no-shows for event {event_id} "
        f"(grace period: {grace_period_minutes} minutes)"
    )
    return marked


def _load_participant(store: EventStore, event_id: str, participant_id: str) -> EventParticipant:
    participant = store.get_participant(participant_id)
    if participant is None or participant.event_id != event_id:
        raise ParticipantNotFound(participant_id, event_id)
    return participant


def set_participant_status(
    store: EventStore,
    event_id: str,
    participant_id: str,
    status: str,
    *,
    now: datetime,
) -> EventParticipant:
    """Organizer override: any status to any status."""
    validated = InputSanitizer.validate_participant_status(
        {"participant_id": participant_id, "status": status}
    )
    current = _load_participant(store, event_id, validated.participant_id)
    updated = store.set_participant_status(validated.participant_id, validated.status, now=now)
    if updated is None:
        raise ParticipantNotFound(validated.participant_id, event_id)
    logger.info(
        f"Participant {updated.id} in event {event_id} manually set: "
        f"{current.status} -> {updated.status}"
    )
    return updated


def record_result(
    store: EventStore,
    event_id: str,
    participant_id: str,
    *,
    score: float | None = None,
    placement: int | None = None,
) -> EventParticipant:
    """Set score and/or placement on an attended participant. Status is unchanged."""
    validated = InputSanitizer.validate_result(
        {"participant_id": participant_id, "score": score, "placement": placement}
    )
    current = _load_participant(store, event_id, validated.participant_id)
    if current.status != "attended":
        raise InvalidParticipantUpdate(
            f"Participant {current.id} must be marked attended before results are recorded "
            f"(status: {current.status})"
        )
    updated = store.set_participant_result(
        validated.participant_id, score=validated.score, placement=validated.placement
    )
    if updated is None:
        raise ParticipantNotFound(validated.participant_id, event_id)
    return updated


def reconcile_event(
    store: EventStore,
    event_id: str,
    *,
    now: datetime,
    grace_period_minutes: int = DEFAULT_GRACE_PERIOD_MINUTES,
) -> ReconcileResult:
    """Repair bookkeeping for an event whose transition side effect failed."""
    event = store.get_event(event_id)
    if event is None:
        raise EventNotFound(event_id)

    result: ReconcileResult = {
        "eventId": event_id,
        "status": event.status,
        "confirmed": 0,
        "noShows": 0,
        "message": None,
    }
    if event.status == "live":
        result["confirmed"] = auto_confirm_participants(store, event_id, now=now)
    elif event.status in ("completed", "archived"):
        result["noShows"] = mark_no_shows(
            store, event_id, now=now, grace_period_minutes=grace_period_minutes
        )
    else:
        result["message"] = f"nothing to reconcile for status '{event.status}'"
    return result


def attendance_summary(participants: Iterable[EventParticipant]) -> AttendanceSummary:
    summary: AttendanceSummary = {
        "total": 0,
        "registered": 0,
        "confirmed": 0,
        "attended": 0,
        "no_show": 0,
        "attendanceRate": 0,
    }
    for p in participants:
        summary["total"] += 1
        if p.status in PARTICIPANT_STATUSES:
            summary[p.status] += 1
    if summary["total"]:
        summary["attendanceRate"] = round(summary["attended"] / summary["total"] * 100)
    return summary
