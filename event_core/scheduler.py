"""Time-driven sweep: automatic transitions and reminder dispatch.

Run on a fixed interval (cron, or ``event_core.cron --watch``). Each run is
stateless: eligibility is re-queried every time and every write is guarded,
so overlapping or repeated runs are safe.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List

from .config import CoreSettings
from .lifecycle import EventLifecycle
from .notifications import Notifier, NullNotifier
from .types import (
    Event,
    EventStatus,
    HealthStatus,
    ReminderKind,
    SchedulerDetails,
    SchedulerResult,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderWindow:
    kind: ReminderKind
    offset: timedelta
    tolerance: timedelta

    def bounds(self, now: datetime) -> tuple[datetime, datetime]:
        center = now + self.offset
        return center - self.tolerance, center + self.tolerance


def reminder_windows(settings: CoreSettings) -> tuple[ReminderWindow, ...]:
    tolerance = timedelta(minutes=settings.reminder_tolerance_minutes)
    return (
        ReminderWindow("24h", timedelta(hours=24), tolerance),
        ReminderWindow("1h", timedelta(hours=1), tolerance),
        ReminderWindow(
            "starting",
            timedelta(0),
            timedelta(minutes=settings.starting_reminder_tolerance_minutes),
        ),
    )


def _error_message(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


class EventScheduler:
    def __init__(
        self,
        lifecycle: EventLifecycle,
        *,
        notifier: Notifier | None = None,
    ) -> None:
        self.lifecycle = lifecycle
        self.store = lifecycle.store
        self.clock = lifecycle.clock
        # Same settings as the lifecycle, so queried events pass its checks.
        self.settings = lifecycle.settings
        self.notifier: Notifier = notifier or NullNotifier()

    def _query(
        self, label: str, fetch: Callable[[], List[Event]], result: SchedulerResult
    ) -> List[Event]:
        try:
            found = fetch()
        except Exception as exc:
            msg = f"Failed to fetch {label}: {_error_message(exc)}"
            logger.error(f"[Event Scheduler] {msg}")
            result["errors"].append(msg)
            return []
        logger.info(f"[Event Scheduler] Found {len(found)} {label}")
        return found

    def _transition_all(
        self,
        events: List[Event],
        target: EventStatus,
        counter: str,
        verb: str,
        result: SchedulerResult,
    ) -> None:
        details = result["details"]
        for event in events:
            try:
                outcome = self.lifecycle.apply_transition(event.id, target, "system")
            except Exception as exc:
                msg = f"Failed to {verb} event {event.id}: {_error_message(exc)}"
                result["errors"].append(msg)
                details["failed"] += 1
                logger.error(f"[Event Scheduler] {msg}")
                continue
            if not outcome.applied:
                details["skipped"] += 1
                continue
            details[counter] += 1  # type: ignore[literal-required]
            for side_effect_error in outcome.side_effect_errors:
                result["errors"].append(side_effect_error)
            logger.info(f"[Event Scheduler] Transitioned event {event.id} to {target}")

    def _send_reminders(self, now: datetime, result: SchedulerResult) -> None:
        details = result["details"]
        for window in reminder_windows(self.settings):
            start, end = window.bounds(now)
            events = self._query(
                f"events for {window.kind} reminder",
                lambda: self.store.find_events_starting_between(start, end, "upcoming"),
                result,
            )
            for event in events:
                try:
                    if not self.store.claim_reminder(event.id, window.kind, now=now):
                        logger.debug(
                            f"[Event Scheduler] {window.kind} reminder for event {event.id} already sent"
                        )
                        continue
                    self.notifier.notify_reminder(event.id, window.kind)
                except Exception as exc:
                    msg = (
                        f"Failed to send {window.kind} reminder for event {event.id}: "
                        f"{_error_message(exc)}"
                    )
                    result["errors"].append(msg)
                    details["failed"] += 1
                    logger.error(f"[Event Scheduler] {msg}")
                    continue
                details["remindersSent"] += 1

    def run_scheduled_transitions(self) -> SchedulerResult:
        """Process all events that need automatic transitions or reminders.

        Returns a summary; never raises for per-event failures.
        """
        details: SchedulerDetails = {
            "transitionedToLive": 0,
            "transitionedToCompleted": 0,
            "remindersSent": 0,
            "failed": 0,
            "skipped": 0,
        }
        now = self.clock.now()
        result: SchedulerResult = {
            "success": True,
            "processed": 0,
            "errors": [],
            "details": details,
            "timestamp": now.isoformat(),
        }

        logger.info("[Event Scheduler] Starting scheduled status transitions...")
        effective_now = now - self.settings.processing_buffer

        to_start = self._query(
            "events to start", lambda: self.store.find_events_to_start(effective_now), result
        )
        to_complete = self._query(
            "events to complete",
            lambda: self.store.find_events_to_complete(effective_now),
            result,
        )

        self._transition_all(to_start, "live", "transitionedToLive", "start", result)
        self._transition_all(
            to_complete, "completed", "transitionedToCompleted", "complete", result
        )
        self._send_reminders(now, result)

        result["processed"] = (
            details["transitionedToLive"] + details["transitionedToCompleted"] + details["failed"]
        )
        result["success"] = not result["errors"]
        logger.info(f"[Event Scheduler] Completed processing. Results: {details}")
        return result

    def health_check(self) -> HealthStatus:
        try:
            self.store.ping()
        except Exception as exc:
            return {"healthy": False, "message": f"Store connection failed: {_error_message(exc)}"}
        return {"healthy": True, "message": "Scheduler is healthy and the store is accessible"}
