from __future__ import annotations

import re
from datetime import datetime, time
from typing import Any, Iterable

from ..errors import InvalidAvailabilitySlot
from ..records import AvailabilitySlot

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_time(value: str) -> time:
    match = _HHMM.match(str(value or "").strip())
    if not match:
        raise InvalidAvailabilitySlot(f"Time must be in HH:MM format (24-hour): {value!r}")
    return time(hour=int(match.group(1)), minute=int(match.group(2)))


def format_time(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def to_time(value: Any) -> time:
    """Coerce a stored time column (time object or ISO string) to ``time``."""
    if isinstance(value, time):
        return value
    if isinstance(value, datetime):
        return value.time()
    text_value = str(value or "").strip()
    if _HHMM.match(text_value):
        return parse_time(text_value)
    try:
        return time.fromisoformat(text_value)
    except ValueError as exc:
        raise InvalidAvailabilitySlot(f"Unreadable time value: {value!r}") from exc


def make_slot(day_of_week: int, start: str, end: str) -> AvailabilitySlot:
    return AvailabilitySlot(day_of_week=int(day_of_week), start_time=parse_time(start), end_time=parse_time(end))


def slots_overlap(a: AvailabilitySlot, b: AvailabilitySlot) -> bool:
    if a.day_of_week != b.day_of_week:
        return False
    return a.start_time < b.end_time and b.start_time < a.end_time


def _by_day(slots: Iterable[AvailabilitySlot]) -> dict[int, list[AvailabilitySlot]]:
    out: dict[int, list[AvailabilitySlot]] = {}
    for slot in slots:
        out.setdefault(slot.day_of_week, []).append(slot)
    return out


def overlapping_pairs(
    requester_slots: Iterable[AvailabilitySlot],
    candidate_slots: Iterable[AvailabilitySlot],
) -> list[tuple[AvailabilitySlot, AvailabilitySlot]]:
    candidate_by_day = _by_day(candidate_slots)
    pairs: list[tuple[AvailabilitySlot, AvailabilitySlot]] = []
    for r in requester_slots:
        for c in candidate_by_day.get(r.day_of_week, []):
            if slots_overlap(r, c):
                pairs.append((r, c))
    return pairs


def score(requester_slots: Iterable[AvailabilitySlot], candidate_slots: Iterable[AvailabilitySlot]) -> int:
    # Counts pairs, not minutes: three short shared windows outrank one long one.
    return len(overlapping_pairs(requester_slots, candidate_slots))


def common_windows(
    requester_slots: Iterable[AvailabilitySlot],
    candidate_slots: Iterable[AvailabilitySlot],
) -> list[dict[str, Any]]:
    windows = []
    for r, c in overlapping_pairs(requester_slots, candidate_slots):
        windows.append(
            {
                "day": r.day_of_week,
                "start": format_time(max(r.start_time, c.start_time)),
                "end": format_time(min(r.end_time, c.end_time)),
            }
        )
    windows.sort(key=lambda w: (w["day"], w["start"], w["end"]))
    return windows


def score_candidates(
    requester_slots: list[AvailabilitySlot],
    slots_by_user: dict[str, list[AvailabilitySlot]],
    candidate_ids: Iterable[str],
) -> tuple[dict[str, int], dict[str, list[dict[str, Any]]]]:
    scores: dict[str, int] = {}
    windows: dict[str, list[dict[str, Any]]] = {}
    for candidate_id in candidate_ids:
        candidate_slots = slots_by_user.get(candidate_id, [])
        scores[candidate_id] = score(requester_slots, candidate_slots)
        windows[candidate_id] = common_windows(requester_slots, candidate_slots)
    return scores, windows
