"""Exceptions raised by the lifecycle engine.

A guarded status write that affects zero rows is *not* an exception; it is
reported as ``TransitionOutcome(applied=False)`` by ``event_core.lifecycle``.
"""
from __future__ import annotations


class LifecycleError(Exception):
    """Base class for lifecycle engine errors."""


class InvalidTransition(LifecycleError):
    """Attempted edge is not in the legal graph for the actor kind, or its
    time/participant precondition is not met. Never retried automatically."""

    def __init__(
        self,
        current: str,
        target: str,
        actor: str,
        reason: str | None = None,
    ) -> None:
        self.current = current
        self.target = target
        self.actor = actor
        self.reason = reason
        message = f"Invalid status transition from '{current}' to '{target}' for {actor}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class EventNotFound(LifecycleError):
    def __init__(self, event_id: str) -> None:
        self.event_id = event_id
        super().__init__(f"Event {event_id} not found")


class ParticipantNotFound(LifecycleError):
    def __init__(self, participant_id: str, event_id: str | None = None) -> None:
        self.participant_id = participant_id
        self.event_id = event_id
        where = f" in event {event_id}" if event_id else ""
        super().__init__(f"Participant {participant_id} not found{where}")


class InvalidParticipantUpdate(LifecycleError):
    """Organizer scoring/status edit rejected by participant rules."""


class StoreFailure(LifecycleError):
    """The store could not complete a read or write."""


class SideEffectFailure(LifecycleError):
    """Auto-confirm or no-show bookkeeping failed after a status write.

    Does not revert the event status change that triggered it.
    """

    def __init__(self, operation: str, event_id: str, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.event_id = event_id
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to {operation} for event {event_id}{detail}")


class NotificationFailure(LifecycleError):
    """Notification dispatch failed. Logged, never surfaced as a transition failure."""
