"""Notification collaborator and fire-and-forget status-change dispatch.

Delivery transport (push, email) lives outside this package. Dispatch after
a status change runs once the write is durable; its failures are logged and
never reach the caller of the transition.
"""
from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Protocol

from .errors import NotificationFailure
from .types import EventStatus, ReminderKind

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify_status_change(
        self, event_id: str, new_status: EventStatus, previous_status: EventStatus
    ) -> None:
        ...

    def notify_reminder(self, event_id: str, reminder_kind: ReminderKind) -> None:
        ...


class NullNotifier:
    def notify_status_change(
        self, event_id: str, new_status: EventStatus, previous_status: EventStatus
    ) -> None:
        return None

    def notify_reminder(self, event_id: str, reminder_kind: ReminderKind) -> None:
        return None


class LoggingNotifier:
    """Writes notifications to the log instead of delivering them."""

    def notify_status_change(
        self, event_id: str, new_status: EventStatus, previous_status: EventStatus
    ) -> None:
        logger.info(f"Event {event_id} status changed: {previous_status} -> {new_status}")

    def notify_reminder(self, event_id: str, reminder_kind: ReminderKind) -> None:
        logger.info(f"Event {event_id} reminder: {reminder_kind}")


def _log_status_change_failure(event_id: str, new_status: str, exc: BaseException) -> None:
    failure = NotificationFailure(
        f"Failed to send status change notification for event {event_id} ({new_status}): {exc}"
    )
    logger.error(str(failure), exc_info=(type(exc), exc, exc.__traceback__))


class StatusChangeDispatcher:
    """Sends status-change notifications without blocking or failing the caller.

    Calls are submitted to ``executor``; without one the dispatcher owns a small
    thread pool, released by ``shutdown()``.
    """

    def __init__(
        self,
        notifier: Notifier | None = None,
        executor: Executor | None = None,
        *,
        max_workers: int = 4,
    ) -> None:
        self.notifier: Notifier = notifier or NullNotifier()
        self._owns_executor = executor is None
        self.executor: Executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="status-change-notify"
        )

    def dispatch(
        self, event_id: str, new_status: EventStatus, previous_status: EventStatus
    ) -> None:
        try:
            future = self.executor.submit(
                self.notifier.notify_status_change, event_id, new_status, previous_status
            )
        except Exception as exc:
            # Executor already shut down.
            _log_status_change_failure(event_id, new_status, exc)
            return

        def _done(fut: Future) -> None:
            if fut.cancelled():
                logger.warning(f"Status change notification for event {event_id} was cancelled")
                return
            exc = fut.exception()
            if exc is not None:
                _log_status_change_failure(event_id, new_status, exc)

        future.add_done_callback(_done)

    def shutdown(self, wait: bool = True) -> None:
        """Wait for queued notifications; an injected executor is left running."""
        if self._owns_executor:
            self.executor.shutdown(wait=wait)
