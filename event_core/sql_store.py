"""Relational store built on SQLAlchemy Core.

Status writes are single ``UPDATE ... WHERE id = :id AND status = :expected``
statements; ``rowcount == 0`` means another writer got there first.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Collection, List

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine, RowMapping
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from .errors import EventNotFound, StoreFailure
from .types import Event, EventParticipant, EventStatus, ParticipantStatus, ReminderKind

logger = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator):
    """Stores aware datetimes as naive UTC and hands them back as aware UTC."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"naive datetime {value.isoformat()} cannot be stored")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


metadata = MetaData()

events = Table(
    "events",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("title", String(255), nullable=False, default=""),
    Column("status", String(16), nullable=False, index=True),
    Column("start_time", UTCDateTime, nullable=False, index=True),
    Column("end_time", UTCDateTime, nullable=True),
    Column("created_by", String(64), nullable=True),
    Column("max_participants", Integer, nullable=True),
    Column("min_participants", Integer, nullable=False, default=0),
    Column("updated_at", UTCDateTime, nullable=True),
)

event_participants = Table(
    "event_participants",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("event_id", String(64), ForeignKey("events.id"), nullable=False, index=True),
    Column("user_id", String(64), nullable=False),
    Column("role", String(16), nullable=False, default="participant"),
    Column("status", String(16), nullable=False, default="registered"),
    Column("score", Float, nullable=True),
    Column("placement", Integer, nullable=True),
    Column("display_name", String(255), nullable=True),
    Column("username", String(255), nullable=True),
    Column("updated_at", UTCDateTime, nullable=True),
)

event_reminders = Table(
    "event_reminders",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("event_id", String(64), ForeignKey("events.id"), nullable=False),
    Column("kind", String(16), nullable=False),
    Column("sent_at", UTCDateTime, nullable=False),
    UniqueConstraint("event_id", "kind", name="uq_event_reminders_event_kind"),
)


def _to_event(row: RowMapping) -> Event:
    return Event(
        id=row["id"],
        status=row["status"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        title=row["title"] or "",
        created_by=row["created_by"],
        max_participants=row["max_participants"],
        min_participants=row["min_participants"] or 0,
        updated_at=row["updated_at"],
    )


def _to_participant(row: RowMapping) -> EventParticipant:
    return EventParticipant(
        id=row["id"],
        event_id=row["event_id"],
        user_id=row["user_id"],
        role=row["role"],
        status=row["status"],
        score=row["score"],
        placement=row["placement"],
        display_name=row["display_name"],
        username=row["username"],
        updated_at=row["updated_at"],
    )


class SqlEventStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    @classmethod
    def from_url(cls, url: str, **engine_kwargs) -> "SqlEventStore":
        if url.startswith("sqlite") and ":memory:" in url:
            # One shared connection, otherwise every checkout sees an empty database.
            engine_kwargs.setdefault("poolclass", StaticPool)
            engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
        return cls(create_engine(url, **engine_kwargs))

    def create_schema(self) -> None:
        metadata.create_all(self.engine)

    def _read(self, stmt):
        try:
            with self.engine.connect() as conn:
                return conn.execute(stmt).mappings().all()
        except SQLAlchemyError as exc:
            logger.error(f"Store read failed: {exc}")
            raise StoreFailure(str(exc)) from exc

    def _write(self, stmt) -> int:
        try:
            with self.engine.begin() as conn:
                return conn.execute(stmt).rowcount
        except SQLAlchemyError as exc:
            logger.error(f"Store write failed: {exc}")
            raise StoreFailure(str(exc)) from exc

    # Seeding

    def add_event(self, event: Event) -> Event:
        self._write(
            insert(events).values(
                id=event.id,
                title=event.title,
                status=event.status,
                start_time=event.start_time,
                end_time=event.end_time,
                created_by=event.created_by,
                max_participants=event.max_participants,
                min_participants=event.min_participants,
                updated_at=event.updated_at,
            )
        )
        return event

    def add_participant(self, participant: EventParticipant) -> EventParticipant:
        self._write(
            insert(event_participants).values(
                id=participant.id,
                event_id=participant.event_id,
                user_id=participant.user_id,
                role=participant.role,
                status=participant.status,
                score=participant.score,
                placement=participant.placement,
                display_name=participant.display_name,
                username=participant.username,
                updated_at=participant.updated_at,
            )
        )
        return participant

    # Events

    def get_event(self, event_id: str) -> Event | None:
        rows = self._read(select(events).where(events.c.id == event_id))
        return _to_event(rows[0]) if rows else None

    def update_event_status(
        self,
        event_id: str,
        expected_status: EventStatus,
        new_status: EventStatus,
        *,
        now: datetime,
    ) -> bool:
        stmt = (
            update(events)
            .where(events.c.id == event_id, events.c.status == expected_status)
            .values(status=new_status, updated_at=now)
        )
        return self._write(stmt) == 1

    def find_events_to_start(self, before: datetime) -> List[Event]:
        stmt = (
            select(events)
            .where(events.c.status == "upcoming", events.c.start_time <= before)
            .order_by(events.c.start_time.asc(), events.c.id.asc())
        )
        return [_to_event(r) for r in self._read(stmt)]

    def find_events_to_complete(self, before: datetime) -> List[Event]:
        stmt = (
            select(events)
            .where(
                events.c.status == "live",
                events.c.end_time.is_not(None),
                events.c.end_time <= before,
            )
            .order_by(events.c.end_time.asc(), events.c.id.asc())
        )
        return [_to_event(r) for r in self._read(stmt)]

    def find_events_starting_between(
        self, start: datetime, end: datetime, status: EventStatus = "upcoming"
    ) -> List[Event]:
        stmt = (
            select(events)
            .where(
                events.c.status == status,
                events.c.start_time >= start,
                events.c.start_time <= end,
            )
            .order_by(events.c.start_time.asc(), events.c.id.asc())
        )
        return [_to_event(r) for r in self._read(stmt)]

    # Participants

    def list_participants(self, event_id: str) -> List[EventParticipant]:
        stmt = (
            select(event_participants)
            .where(event_participants.c.event_id == event_id)
            .order_by(event_participants.c.id.asc())
        )
        return [_to_participant(r) for r in self._read(stmt)]

    def get_participant(self, participant_id: str) -> EventParticipant | None:
        rows = self._read(
            select(event_participants).where(event_participants.c.id == participant_id)
        )
        return _to_participant(rows[0]) if rows else None

    def update_participant_statuses(
        self,
        event_id: str,
        from_statuses: Collection[ParticipantStatus],
        to_status: ParticipantStatus,
        *,
        now: datetime,
        updated_before: datetime | None = None,
    ) -> int:
        stmt = update(event_participants).where(
            event_participants.c.event_id == event_id,
            event_participants.c.status.in_(list(from_statuses)),
        )
        if updated_before is not None:
            stmt = stmt.where(event_participants.c.updated_at < updated_before)
        return self._write(stmt.values(status=to_status, updated_at=now))

    def set_participant_status(
        self, participant_id: str, status: ParticipantStatus, *, now: datetime
    ) -> EventParticipant | None:
        changed = self._write(
            update(event_participants)
            .where(event_participants.c.id == participant_id)
            .values(status=status, updated_at=now)
        )
        if not changed:
            return None
        return self.get_participant(participant_id)

    def set_participant_result(
        self,
        participant_id: str,
        *,
        score: float | None = None,
        placement: int | None = None,
    ) -> EventParticipant | None:
        values = {}
        if score is not None:
            values["score"] = score
        if placement is not None:
            values["placement"] = placement
        if values:
            changed = self._write(
                update(event_participants)
                .where(event_participants.c.id == participant_id)
                .values(**values)
            )
            if not changed:
                return None
        return self.get_participant(participant_id)

    # Reminders

    def claim_reminder(self, event_id: str, kind: ReminderKind, *, now: datetime) -> bool:
        try:
            with self.engine.begin() as conn:
                known = conn.execute(select(events.c.id).where(events.c.id == event_id)).first()
                if known is None:
                    raise EventNotFound(event_id)
                conn.execute(
                    insert(event_reminders).values(event_id=event_id, kind=kind, sent_at=now)
                )
            return True
        except IntegrityError:
            # uq_event_reminders_event_kind: already claimed.
            return False
        except SQLAlchemyError as exc:
            logger.error(f"Reminder claim failed for event {event_id} ({kind}): {exc}")
            raise StoreFailure(str(exc)) from exc

    def ping(self) -> None:
        self._read(text("SELECT 1"))
