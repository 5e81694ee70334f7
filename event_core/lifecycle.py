"""Event status state machine.

This module owns the legal event states, the transition table and the
time-based preconditions. Both the scheduler and organizer-facing request
handlers delegate here; neither re-implements the windows locally.

Architecture:
- TRANSITIONS maps (current, target) -> actor kinds allowed to take that edge
- check_transition() is pure: it validates edge + precondition for a loaded event
- EventLifecycle.apply_transition() loads, checks, performs a guarded write,
  runs participant side effects and dispatches the status-change notification
- Parent (HTTP handler, cron) receives TransitionOutcome / Event and reports

Key concepts:
- Guarded write: the store only updates while status still equals the value
  read in step 1. Zero rows affected means another actor already moved the
  event; reported as applied=False, never as an error.
- Side effects are best-effort: a failed auto-confirm / no-show update is
  logged and recorded in outcome.side_effect_errors, the status write stands.
- Notifications are fire-and-forget after the write is durable.

Time rules for upcoming -> live:
- organizer: now >= start_time - organizer_early_start (30 min)
- system:    now - processing_buffer (2 min) >= start_time
The two windows intentionally differ; see DESIGN.md.
"""
from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Mapping, Tuple

from .clock import Clock, SystemClock
from .config import CoreSettings, get_settings
from .errors import EventNotFound, InvalidTransition, SideEffectFailure
from .notifications import Notifier, StatusChangeDispatcher
from .participants import auto_confirm_participants, mark_no_shows
from .store import EventStore
from .types import (
    ACTOR_KINDS,
    EVENT_STATUSES,
    ActorKind,
    Event,
    EventStatus,
)
from .validation import InputSanitizer

logger = logging.getLogger(__name__)


TRANSITIONS: Dict[Tuple[EventStatus, EventStatus], FrozenSet[ActorKind]] = {
    ("draft", "upcoming"): frozenset({"organizer"}),
    ("draft", "cancelled"): frozenset({"organizer"}),
    ("upcoming", "live"): frozenset({"organizer", "system"}),
    ("upcoming", "cancelled"): frozenset({"organizer"}),
    ("live", "completed"): frozenset({"organizer", "system"}),
    ("live", "cancelled"): frozenset({"organizer"}),
    ("completed", "archived"): frozenset({"organizer"}),
}


@dataclass
class TransitionOutcome:
    """Result of a transition request."""

    event: Event
    previous_status: EventStatus
    applied: bool
    side_effect_errors: List[str] = field(default_factory=list)
    # Organizer completion options (see CompletionPayload), passed through untouched.
    completion: Dict[str, Any] | None = None

    @property
    def noop(self) -> bool:
        return not self.applied


def allowed_targets(current: EventStatus, actor: ActorKind) -> List[EventStatus]:
    return [
        target
        for (source, target), actors in TRANSITIONS.items()
        if source == current and actor in actors
    ]


def check_transition(
    event: Event,
    target: EventStatus,
    actor: ActorKind,
    *,
    now: datetime,
    settings: CoreSettings,
    active_participants: int | None = None,
) -> None:
    """Validate a transition for an already-loaded event.

    Pure check; raises instead of returning so callers cannot ignore it.

    Args:
        event: Event as read from the store
        target: Requested status
        actor: 'organizer' or 'system'
        now: Current time (aware)
        settings: Buffer / early-start / min-participant configuration
        active_participants: registered + confirmed count, only consulted when
            settings.enforce_min_participants is on

    Raises:
        InvalidTransition: edge not in TRANSITIONS for this actor, or its
            time/participant precondition is not met

    Precondition rules:
        1. upcoming -> live (organizer): now >= start_time - 30 min
        2. upcoming -> live (system): now - buffer >= start_time
        3. live -> completed (system): end_time set and now - buffer >= end_time
        4. everything else in the table: no precondition
    """
    current = event.status
    if target not in EVENT_STATUSES or actor not in ACTOR_KINDS:
        raise InvalidTransition(current, str(target), str(actor), "unknown status or actor")

    actors = TRANSITIONS.get((current, target))
    if actors is None:
        allowed = ", ".join(allowed_targets(current, actor)) or "none"
        raise InvalidTransition(current, target, actor, f"allowed transitions: {allowed}")
    if actor not in actors:
        raise InvalidTransition(current, target, actor, f"only {', '.join(sorted(actors))} may do this")

    effective_now = now - settings.processing_buffer

    if (current, target) == ("upcoming", "live"):
        if actor == "organizer":
            allowed_start = event.start_time - settings.organizer_early_start
            if now < allowed_start:
                raise InvalidTransition(
                    current,
                    target,
                    actor,
                    f"cannot start event before its window; it starts at "
                    f"{event.start_time.isoformat()} and may be started "
                    f"{settings.organizer_early_start_minutes} minutes before",
                )
            if settings.enforce_min_participants and event.min_participants > 0:
                count = active_participants or 0
                if count < event.min_participants:
                    raise InvalidTransition(
                        current,
                        target,
                        actor,
                        f"minimum {event.min_participants} participants required, "
                        f"but only {count} registered",
                    )
        elif event.start_time > effective_now:
            raise InvalidTransition(current, target, actor, "start time not reached")

    elif (current, target) == ("live", "completed") and actor == "system":
        if event.end_time is None:
            raise InvalidTransition(
                current, target, actor, "event has no end time; completion is manual"
            )
        if event.end_time > effective_now:
            raise InvalidTransition(current, target, actor, "end time not reached")


class EventLifecycle:
    """Applies transitions against a store and runs their side effects."""

    def __init__(
        self,
        store: EventStore,
        *,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
        settings: CoreSettings | None = None,
        executor: Executor | None = None,
    ) -> None:
        self.store = store
        self.clock: Clock = clock or SystemClock()
        self.settings = settings or get_settings()
        self.dispatcher = StatusChangeDispatcher(notifier, executor)

    def _active_participants(self, event: Event) -> int | None:
        if not self.settings.enforce_min_participants or event.min_participants <= 0:
            return None
        return sum(
            1
            for p in self.store.list_participants(event.id)
            if p.status in ("registered", "confirmed")
        )

    def _run_side_effects(self, event_id: str, target: EventStatus, now: datetime) -> List[str]:
        errors: List[str] = []
        try:
            if target == "live":
                auto_confirm_participants(self.store, event_id, now=now)
            elif target == "completed":
                mark_no_shows(
                    self.store,
                    event_id,
                    now=now,
                    grace_period_minutes=self.settings.no_show_grace_minutes,
                )
        except SideEffectFailure as exc:
            errors.append(str(exc))
        return errors

    def apply_transition(
        self,
        event_id: str,
        target: EventStatus,
        actor: ActorKind,
        *,
        completion: Mapping[str, Any] | None = None,
    ) -> TransitionOutcome:
        """Load, check, write (guarded), then side effects and notification.

        Raises:
            EventNotFound: no such event
            InvalidTransition: illegal edge or unmet precondition
            StoreFailure: the status write itself failed (nothing applied)
        """
        event = self.store.get_event(event_id)
        if event is None:
            raise EventNotFound(event_id)

        now = self.clock.now()
        check_transition(
            event,
            target,
            actor,
            now=now,
            settings=self.settings,
            active_participants=self._active_participants(event)
            if (event.status, target, actor) == ("upcoming", "live", "organizer")
            else None,
        )

        previous = event.status
        if not self.store.update_event_status(event_id, previous, target, now=now):
            current = self.store.get_event(event_id) or event
            logger.warning(
                f"Event {event_id} no longer {previous} (now {current.status}); "
                f"{previous} -> {target} by {actor} skipped"
            )
            return TransitionOutcome(event=current, previous_status=previous, applied=False)

        logger.info(f"Event {event_id} transitioned {previous} -> {target} by {actor}")
        side_effect_errors = self._run_side_effects(event_id, target, now)
        self.dispatcher.dispatch(event_id, target, previous)

        payload: Dict[str, Any] | None = None
        if completion is not None and target == "completed" and actor == "organizer":
            payload = dict(completion)

        # The write is durable from here on; a failed reload must not report it as failed.
        try:
            updated = self.store.get_event(event_id)
        except Exception as exc:
            logger.warning(f"Could not reload event {event_id} after {previous} -> {target}: {exc}")
            updated = None
        if updated is None:
            updated = replace(event, status=target, updated_at=now)

        return TransitionOutcome(
            event=updated,
            previous_status=previous,
            applied=True,
            side_effect_errors=side_effect_errors,
            completion=payload,
        )

    def close(self, wait: bool = True) -> None:
        """Flush pending status-change notifications."""
        self.dispatcher.shutdown(wait=wait)

    def request_transition(
        self,
        event_id: str,
        target_status: str,
        actor: str,
        *,
        completion: Mapping[str, Any] | None = None,
    ) -> Event:
        """Validated entry point for organizer and system callers.

        Returns the updated event, or the current one when another actor
        already applied the change. ``completion`` is not validated; it is
        handed through to the outcome for organizer completions.
        """
        try:
            request = InputSanitizer.validate_transition_request(
                {
                    "event_id": event_id,
                    "target_status": target_status,
                    "actor": actor,
                }
            )
        except ValueError:
            # An unknown status or actor is still an illegal edge.
            if isinstance(target_status, str) and isinstance(actor, str) and (
                target_status.strip().lower() not in EVENT_STATUSES
                or actor.strip().lower() not in ACTOR_KINDS
            ):
                event = self.store.get_event(event_id)
                current = event.status if event is not None else "unknown"
                raise InvalidTransition(current, target_status, actor, "unknown status or actor")
            raise

        outcome = self.apply_transition(
            request.event_id,
            request.target_status,
            request.actor,
            completion=completion,
        )
        return outcome.event
