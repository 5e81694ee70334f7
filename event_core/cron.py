"""
Scheduled entry point for the event lifecycle sweep.

Run once per minute from cron (`event-core-sweep`), or keep a process alive
with `event-core-sweep --watch` to let APScheduler drive the interval.
"""
import argparse
import json
import logging
import sys
from typing import List, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config import CoreSettings, get_settings
from .lifecycle import EventLifecycle
from .notifications import LoggingNotifier
from .scheduler import EventScheduler
from .sql_store import SqlEventStore

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "run_scheduled_transitions"


def build_event_scheduler(settings: CoreSettings) -> EventScheduler:
    store = SqlEventStore.from_url(settings.database_url)
    notifier = LoggingNotifier()
    lifecycle = EventLifecycle(store, notifier=notifier, settings=settings)
    return EventScheduler(lifecycle, notifier=notifier)


def _on_job_error(event):
    logger.error(f"Scheduled job FAILED: job_id={event.job_id} error={event.exception}")


def _on_job_missed(event):
    logger.warning(
        f"Scheduled job MISSED: job_id={event.job_id} "
        f"scheduled_run_time={event.scheduled_run_time}"
    )


def build_periodic_runner(sweep: EventScheduler, settings: CoreSettings) -> BlockingScheduler:
    runner = BlockingScheduler(
        timezone="UTC",
        job_defaults={
            "coalesce": True,  # Combine missed executions
            "max_instances": 1,  # Only one sweep at a time in this process
            "misfire_grace_time": 60,
        },
    )
    runner.add_job(
        func=sweep.run_scheduled_transitions,
        trigger=IntervalTrigger(minutes=settings.sweep_interval_minutes),
        id=SWEEP_JOB_ID,
        name="Event Status Transitions And Reminders",
        replace_existing=True,
    )
    runner.add_listener(_on_job_error, EVENT_JOB_ERROR)
    runner.add_listener(_on_job_missed, EVENT_JOB_MISSED)
    logger.info(
        f"Scheduled job: {SWEEP_JOB_ID} (every {settings.sweep_interval_minutes} minute(s))"
    )
    return runner


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="event-core-sweep",
        description="Run event status transitions and reminders.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="run a single sweep (default)")
    mode.add_argument("--watch", action="store_true", help="run sweeps on an interval")
    mode.add_argument("--health", action="store_true", help="check store connectivity")
    parser.add_argument("--init-db", action="store_true", help="create tables before running")
    return parser.parse_args(argv)


def main(
    argv: Optional[List[str]] = None,
    *,
    settings: Optional[CoreSettings] = None,
    sweep: Optional[EventScheduler] = None,
) -> int:
    args = _parse_args(argv)
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s | %(message)s",
    )
    sweep = sweep or build_event_scheduler(settings)

    try:
        return _run(args, sweep, settings)
    finally:
        sweep.lifecycle.close()


def _run(args: argparse.Namespace, sweep: EventScheduler, settings: CoreSettings) -> int:
    if args.init_db:
        store = sweep.store
        if isinstance(store, SqlEventStore):
            store.create_schema()
        else:
            logger.warning("--init-db ignored: store has no schema to create")

    if args.health:
        health = sweep.health_check()
        print(json.dumps(health))
        return 0 if health["healthy"] else 1

    if args.watch:
        runner = build_periodic_runner(sweep, settings)
        try:
            runner.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("Sweep runner stopped")
        return 0

    result = sweep.run_scheduled_transitions()
    print(json.dumps(result))
    return 0 if result["success"] else 1


if __name__ == "__main__":
    sys.exit(main())
