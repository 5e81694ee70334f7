"""Leaderboard ranking engine (placement > score > name comparator).

Single source of truth for participant ordering across leaderboard, results
sharing and export:
- Comparator: assigned placement ascending, then score descending, then
  display name case-insensitive, then participant id.
- Missing placement/score always sort after present ones.
- Labels use the assigned placement when set, otherwise the rank position.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from .types import EventParticipant, ParticipantRole, ParticipantStatus, RankingScope


MEDALS = {1: "🥇", 2: "🥈", 3: "🥉"}


@dataclass(frozen=True)
class LeaderboardRow:
    participant_id: str
    user_id: str
    name: str
    role: ParticipantRole
    status: ParticipantStatus
    position: int
    label: str
    placement: int | None
    score: float | None


def _has_score(p: EventParticipant) -> bool:
    return p.score is not None and math.isfinite(float(p.score))


def _has_placement(p: EventParticipant) -> bool:
    # Placements are positive; 0 is treated as unset.
    return p.placement is not None and int(p.placement) > 0


def _rank_sort_key(p: EventParticipant) -> tuple[int, int, int, float, str, str]:
    has_placement = _has_placement(p)
    has_score = _has_score(p)
    return (
        0 if has_placement else 1,
        int(p.placement) if has_placement else 0,
        0 if has_score else 1,
        -float(p.score) if has_score else 0.0,
        p.name.lower(),
        p.id,
    )


def _in_scope(p: EventParticipant, scope: RankingScope) -> bool:
    if scope == "all":
        return True
    if p.status != "attended":
        return False
    if scope == "roster":
        return True
    return _has_score(p) or _has_placement(p)


def rank(
    participants: Iterable[EventParticipant],
    *,
    scope: RankingScope = "leaderboard",
) -> list[EventParticipant]:
    """
    Order participants for leaderboard/results display.

    Args:
      participants: any iterable of participants; not mutated.
      scope: "leaderboard" keeps attended participants with a score or
        placement, "roster" keeps every attended participant, "all" keeps
        everyone.

    Identical name and id keep their input order (stable sort).
    """
    if scope not in ("leaderboard", "roster", "all"):
        raise ValueError(f"Unknown ranking scope: {scope}")
    eligible = [p for p in participants if _in_scope(p, scope)]
    return sorted(eligible, key=_rank_sort_key)


def placement_label(placement: int | None, position: int) -> str:
    value = placement if placement is not None and placement > 0 else position
    return MEDALS.get(value, f"#{value}")


def build_leaderboard(
    participants: Iterable[EventParticipant],
    *,
    scope: RankingScope = "leaderboard",
) -> tuple[LeaderboardRow, ...]:
    rows: list[LeaderboardRow] = []
    for index, p in enumerate(rank(participants, scope=scope)):
        position = index + 1
        rows.append(
            LeaderboardRow(
                participant_id=p.id,
                user_id=p.user_id,
                name=p.name,
                role=p.role,
                status=p.status,
                position=position,
                label=placement_label(p.placement, position),
                placement=p.placement if _has_placement(p) else None,
                score=p.score if _has_score(p) else None,
            )
        )
    return tuple(rows)


def podium(participants: Sequence[EventParticipant], places: int = 3) -> list[EventParticipant]:
    """Attended participants with an assigned placement within ``places``."""
    places = max(1, int(places or 3))
    top = [
        p
        for p in participants
        if p.status == "attended" and _has_placement(p) and int(p.placement) <= places
    ]
    return sorted(top, key=_rank_sort_key)
