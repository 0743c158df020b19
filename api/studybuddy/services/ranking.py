from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..config import MATCH_LIMIT_DEFAULT, MATCH_LIMIT_MAX
from ..errors import InvalidLimit
from ..records import CandidateProfile, MatchContext
from ..schemas import MatchResult
from .connection_state import STATE_NONE


def clamp_limit(limit: int | None) -> int:
    if limit is None:
        return MATCH_LIMIT_DEFAULT
    limit = int(limit)
    if limit < 1:
        raise InvalidLimit()
    return min(limit, MATCH_LIMIT_MAX)


def _sort_instant(value: datetime) -> float:
    # Mixed naive/aware timestamps cannot be compared; naive values are stored UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def rank(
    candidates: list[CandidateProfile],
    scores: dict[str, int],
    states: dict[str, str],
    limit: int | None,
    *,
    context: MatchContext,
    windows: dict[str, list[dict[str, Any]]] | None = None,
) -> list[MatchResult]:
    limit = clamp_limit(limit)
    windows = windows or {}
    ordered = sorted(
        candidates,
        key=lambda c: (-scores.get(c.id, 0), _sort_instant(c.joined_at), c.id),
    )
    return [
        MatchResult(
            candidate_id=c.id,
            display_name=c.display_name,
            avatar_ref=c.avatar_ref,
            study_style=c.study_style,
            study_pace=c.study_pace,
            location=c.location,
            bio=c.bio,
            overlap_score=scores.get(c.id, 0),
            connection_state=states.get(c.id, STATE_NONE),
            common_availability=windows.get(c.id, []),
            match_type=context.type,
            match_context_id=context.id,
        )
        for c in ordered[:limit]
    ]
