from __future__ import annotations

from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest

from event_core import (
    CoreSettings,
    Event,
    EventLifecycle,
    EventParticipant,
    EventScheduler,
    FixedClock,
    InMemoryEventStore,
)

T0 = datetime(2026, 5, 1, 18, 0, tzinfo=timezone.utc)


class InlineExecutor(Executor):
    """Runs submitted calls immediately so notifications can be asserted right away."""

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


@dataclass
class RecordingNotifier:
    status_changes: list[tuple[str, str, str]] = field(default_factory=list)
    reminders: list[tuple[str, str]] = field(default_factory=list)
    fail_status: bool = False
    fail_reminder_for: set[str] = field(default_factory=set)

    def notify_status_change(self, event_id, new_status, previous_status):
        if self.fail_status:
            raise RuntimeError("push service down")
        self.status_changes.append((event_id, new_status, previous_status))

    def notify_reminder(self, event_id, reminder_kind):
        if event_id in self.fail_reminder_for:
            raise RuntimeError("push service down")
        self.reminders.append((event_id, reminder_kind))


def make_event(event_id="ev-1", status="upcoming", start=None, end=None, **kwargs) -> Event:
    return Event(
        id=event_id,
        status=status,
        start_time=start or T0 + timedelta(hours=2),
        end_time=end,
        title=kwargs.pop("title", f"Event {event_id}"),
        **kwargs,
    )


def make_participant(
    pid,
    event_id="ev-1",
    status="registered",
    updated_at=None,
    **kwargs,
) -> EventParticipant:
    return EventParticipant(
        id=pid,
        event_id=event_id,
        user_id=kwargs.pop("user_id", f"user-{pid}"),
        status=status,
        updated_at=updated_at or T0 - timedelta(hours=1),
        **kwargs,
    )


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def settings():
    return CoreSettings()


@pytest.fixture
def store():
    return InMemoryEventStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def lifecycle(store, notifier, clock, settings):
    return EventLifecycle(
        store, notifier=notifier, clock=clock, settings=settings, executor=InlineExecutor()
    )


@pytest.fixture
def sweep(lifecycle, notifier):
    return EventScheduler(lifecycle, notifier=notifier)
