"""Type definitions for events, participants and engine results."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Literal, Optional, TypedDict


EventStatus = Literal["draft", "upcoming", "live", "completed", "cancelled", "archived"]
ParticipantStatus = Literal["registered", "confirmed", "attended", "no_show"]
ParticipantRole = Literal["organizer", "moderator", "participant", "spectator"]
ActorKind = Literal["organizer", "system"]
ReminderKind = Literal["24h", "1h", "starting"]
RankingScope = Literal["leaderboard", "roster", "all"]

EVENT_STATUSES: tuple[EventStatus, ...] = (
    "draft",
    "upcoming",
    "live",
    "completed",
    "cancelled",
    "archived",
)
PARTICIPANT_STATUSES: tuple[ParticipantStatus, ...] = (
    "registered",
    "confirmed",
    "attended",
    "no_show",
)
ACTOR_KINDS: tuple[ActorKind, ...] = ("organizer", "system")


@dataclass(frozen=True)
class Event:
    """An organized gaming session with a lifecycle status."""

    id: str
    status: EventStatus
    start_time: datetime
    end_time: datetime | None = None
    title: str = ""
    created_by: str | None = None
    max_participants: int | None = None
    min_participants: int = 0
    updated_at: datetime | None = None


@dataclass(frozen=True)
class EventParticipant:
    """A user registered for an event.

    ``updated_at`` tracks the last *status* write only; it drives the
    no-show grace period.
    """

    id: str
    event_id: str
    user_id: str
    role: ParticipantRole = "participant"
    status: ParticipantStatus = "registered"
    score: float | None = None
    placement: int | None = None
    display_name: str | None = None
    username: str | None = None
    updated_at: datetime | None = None

    @property
    def name(self) -> str:
        return self.display_name or self.username or ""


class CompletionPayload(TypedDict, total=False):
    """Known organizer options for a manual live -> completed transition.

    The payload is forwarded as given; other keys and values pass through.
    """
    archive_event: bool
    notify_participants: bool
    results_public: bool


class SchedulerDetails(TypedDict):
    transitionedToLive: int
    transitionedToCompleted: int
    remindersSent: int
    failed: int
    # Guarded writes that found the event already moved by another actor.
    skipped: int


class SchedulerResult(TypedDict):
    """
    Summary of one scheduler sweep.

    Shaped for direct JSON serialization by an HTTP handler or the cron
    entry point.
    """
    success: bool
    processed: int
    errors: List[str]
    details: SchedulerDetails
    timestamp: str


class AttendanceSummary(TypedDict):
    total: int
    registered: int
    confirmed: int
    attended: int
    no_show: int
    attendanceRate: int  # Whole percent of attended over total


class HealthStatus(TypedDict):
    healthy: bool
    message: str


class ReconcileResult(TypedDict):
    eventId: str
    status: EventStatus
    confirmed: int
    noShows: int
    message: Optional[str]
