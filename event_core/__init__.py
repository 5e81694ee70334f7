from .clock import Clock, FixedClock, SystemClock
from .config import CoreSettings, get_settings
from .errors import (
    EventNotFound,
    InvalidParticipantUpdate,
    InvalidTransition,
    LifecycleError,
    NotificationFailure,
    ParticipantNotFound,
    SideEffectFailure,
    StoreFailure,
)
from .lifecycle import (
    TRANSITIONS,
    EventLifecycle,
    TransitionOutcome,
    allowed_targets,
    check_transition,
)
from .notifications import LoggingNotifier, Notifier, NullNotifier, StatusChangeDispatcher
from .participants import (
    attendance_summary,
    auto_confirm_participants,
    mark_no_shows,
    reconcile_event,
    record_result,
    set_participant_status,
)
from .ranking import LeaderboardRow, build_leaderboard, placement_label, podium, rank
from .scheduler import EventScheduler, ReminderWindow, reminder_windows
from .store import EventStore, InMemoryEventStore
from .types import (
    CompletionPayload,
    Event,
    EventParticipant,
    SchedulerResult,
)
from .validation import InputSanitizer

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "CoreSettings",
    "get_settings",
    "LifecycleError",
    "InvalidTransition",
    "EventNotFound",
    "ParticipantNotFound",
    "InvalidParticipantUpdate",
    "StoreFailure",
    "SideEffectFailure",
    "NotificationFailure",
    "TRANSITIONS",
    "EventLifecycle",
    "TransitionOutcome",
    "allowed_targets",
    "check_transition",
    "Notifier",
    "NullNotifier",
    "LoggingNotifier",
    "StatusChangeDispatcher",
    "auto_confirm_participants",
    "mark_no_shows",
    "set_participant_status",
    "record_result",
    "reconcile_event",
    "attendance_summary",
    "LeaderboardRow",
    "rank",
    "build_leaderboard",
    "placement_label",
    "podium",
    "EventScheduler",
    "ReminderWindow",
    "reminder_windows",
    "EventStore",
    "InMemoryEventStore",
    "Event",
    "EventParticipant",
    "CompletionPayload",
    "SchedulerResult",
    "InputSanitizer",
]
