"""Store collaborator: protocol and an in-memory implementation.

Every status write is a compare-and-swap: it only succeeds while the stored
status still equals the value the caller read. Callers treat ``False`` (zero
rows affected) as "already transitioned by another actor".
"""
from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Collection, Dict, List, Protocol, Tuple

from .clock import ensure_aware
from .errors import EventNotFound
from .types import Event, EventParticipant, EventStatus, ParticipantStatus, ReminderKind


class EventStore(Protocol):
    def get_event(self, event_id: str) -> Event | None:
        ...

    def update_event_status(
        self,
        event_id: str,
        expected_status: EventStatus,
        new_status: EventStatus,
        *,
        now: datetime,
    ) -> bool:
        ...

    def find_events_to_start(self, before: datetime) -> List[Event]:
        ...

    def find_events_to_complete(self, before: datetime) -> List[Event]:
        ...

    def find_events_starting_between(
        self, start: datetime, end: datetime, status: EventStatus = "upcoming"
    ) -> List[Event]:
        ...

    def list_participants(self, event_id: str) -> List[EventParticipant]:
        ...

    def get_participant(self, participant_id: str) -> EventParticipant | None:
        ...

    def update_participant_statuses(
        self,
        event_id: str,
        from_statuses: Collection[ParticipantStatus],
        to_status: ParticipantStatus,
        *,
        now: datetime,
        updated_before: datetime | None = None,
    ) -> int:
        ...

    def set_participant_status(
        self, participant_id: str, status: ParticipantStatus, *, now: datetime
    ) -> EventParticipant | None:
        ...

    def set_participant_result(
        self,
        participant_id: str,
        *,
        score: float | None = None,
        placement: int | None = None,
    ) -> EventParticipant | None:
        ...

    def claim_reminder(self, event_id: str, kind: ReminderKind, *, now: datetime) -> bool:
        ...

    def ping(self) -> None:
        ...


class InMemoryEventStore:
    """Thread-safe dict-backed store, used by tests and local tooling."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: Dict[str, Event] = {}
        self._participants: Dict[str, EventParticipant] = {}
        self._reminders: Dict[Tuple[str, str], datetime] = {}

    # Seeding

    def add_event(self, event: Event) -> Event:
        ensure_aware(event.start_time, "start_time")
        if event.end_time is not None:
            ensure_aware(event.end_time, "end_time")
        with self._lock:
            self._events[event.id] = event
        return event

    def add_participant(self, participant: EventParticipant) -> EventParticipant:
        with self._lock:
            if participant.event_id not in self._events:
                raise KeyError(f"Unknown event {participant.event_id}")
            self._participants[participant.id] = participant
        return participant

    # Events

    def get_event(self, event_id: str) -> Event | None:
        with self._lock:
            return self._events.get(event_id)

    def update_event_status(
        self,
        event_id: str,
        expected_status: EventStatus,
        new_status: EventStatus,
        *,
        now: datetime,
    ) -> bool:
        with self._lock:
            current = self._events.get(event_id)
            if current is None or current.status != expected_status:
                return False
            self._events[event_id] = replace(current, status=new_status, updated_at=now)
            return True

    def find_events_to_start(self, before: datetime) -> List[Event]:
        with self._lock:
            found = [
                ev
                for ev in self._events.values()
                if ev.status == "upcoming" and ev.start_time <= before
            ]
        return sorted(found, key=lambda ev: (ev.start_time, ev.id))

    def find_events_to_complete(self, before: datetime) -> List[Event]:
        with self._lock:
            found = [
                ev
                for ev in self._events.values()
                if ev.status == "live" and ev.end_time is not None and ev.end_time <= before
            ]
        return sorted(found, key=lambda ev: (ev.end_time, ev.id))

    def find_events_starting_between(
        self, start: datetime, end: datetime, status: EventStatus = "upcoming"
    ) -> List[Event]:
        with self._lock:
            found = [
                ev
                for ev in self._events.values()
                if ev.status == status and start <= ev.start_time <= end
            ]
        return sorted(found, key=lambda ev: (ev.start_time, ev.id))

    # Participants

    def list_participants(self, event_id: str) -> List[EventParticipant]:
        with self._lock:
            return [p for p in self._participants.values() if p.event_id == event_id]

    def get_participant(self, participant_id: str) -> EventParticipant | None:
        with self._lock:
            return self._participants.get(participant_id)

    def update_participant_statuses(
        self,
        event_id: str,
        from_statuses: Collection[ParticipantStatus],
        to_status: ParticipantStatus,
        *,
        now: datetime,
        updated_before: datetime | None = None,
    ) -> int:
        wanted = set(from_statuses)
        changed = 0
        with self._lock:
            for pid, p in list(self._participants.items()):
                if p.event_id != event_id or p.status not in wanted:
                    continue
                if updated_before is not None and (
                    p.updated_at is None or p.updated_at >= updated_before
                ):
                    continue
                self._participants[pid] = replace(p, status=to_status, updated_at=now)
                changed += 1
        return changed

    def set_participant_status(
        self, participant_id: str, status: ParticipantStatus, *, now: datetime
    ) -> EventParticipant | None:
        with self._lock:
            current = self._participants.get(participant_id)
            if current is None:
                return None
            updated = replace(current, status=status, updated_at=now)
            self._participants[participant_id] = updated
            return updated

    def set_participant_result(
        self,
        participant_id: str,
        *,
        score: float | None = None,
        placement: int | None = None,
    ) -> EventParticipant | None:
        with self._lock:
            current = self._participants.get(participant_id)
            if current is None:
                return None
            updated = replace(
                current,
                score=current.score if score is None else score,
                placement=current.placement if placement is None else placement,
            )
            self._participants[participant_id] = updated
            return updated

    # Reminders

    def claim_reminder(self, event_id: str, kind: ReminderKind, *, now: datetime) -> bool:
        key = (event_id, kind)
        with self._lock:
            if event_id not in self._events:
                raise EventNotFound(event_id)
            if key in self._reminders:
                return False
            self._reminders[key] = now
            return True

    def ping(self) -> None:
        return None
