from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time
from typing import Any

from .errors import InvalidAvailabilitySlot, InvalidContext

CONTEXT_TYPES = ("course", "topic")
NO_CONTEXT = "none"


@dataclass(frozen=True)
class MatchContext:
    type: str
    id: str

    def __post_init__(self) -> None:
        if self.type not in CONTEXT_TYPES:
            raise InvalidContext(f"Unknown context type: {self.type}")
        if not str(self.id or "").strip():
            raise InvalidContext("Context id is required")

    @classmethod
    def from_ids(cls, course_id: str | None = None, topic_id: str | None = None) -> MatchContext:
        course_id = (course_id or "").strip() or None
        topic_id = (topic_id or "").strip() or None
        if bool(course_id) == bool(topic_id):
            raise InvalidContext()
        if course_id:
            return cls(type="course", id=course_id)
        return cls(type="topic", id=topic_id)

    @property
    def key(self) -> str:
        return f"{self.type}:{self.id}"


@dataclass(frozen=True)
class ContextAssociation:
    user_id: str
    context: MatchContext
    is_active: bool


@dataclass(frozen=True)
class AvailabilitySlot:
    """One recurring weekly window. day_of_week: 0 = Sunday ... 6 = Saturday."""

    day_of_week: int
    start_time: time
    end_time: time

    def __post_init__(self) -> None:
        if not isinstance(self.day_of_week, int) or not 0 <= self.day_of_week <= 6:
            raise InvalidAvailabilitySlot("Day of week must be between 0 (Sunday) and 6 (Saturday)")
        if self.start_time >= self.end_time:
            raise InvalidAvailabilitySlot("End time must be after start time")


@dataclass(frozen=True)
class CandidateProfile:
    id: str
    display_name: str
    avatar_ref: str | None
    study_style: str | None
    study_pace: str | None
    location: str | None
    bio: str | None
    joined_at: datetime


@dataclass(frozen=True)
class ConnectionRecord:
    id: str
    requester_id: str
    target_id: str
    context: MatchContext | None
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def other_party(self, user_id: str) -> str:
        return self.target_id if self.requester_id == user_id else self.requester_id

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "requester_id": self.requester_id,
            "target_id": self.target_id,
            "context_type": self.context.type if self.context else None,
            "context_id": self.context.id if self.context else None,
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def canonical_pair(user_a: str, user_b: str) -> tuple[str, str]:
    return tuple(sorted((user_a, user_b)))


def context_columns(context: MatchContext | None) -> tuple[str, str]:
    if context is None:
        return NO_CONTEXT, ""
    return context.type, context.id


def context_from_columns(context_type: str | None, context_id: str | None) -> MatchContext | None:
    if not context_type or context_type == NO_CONTEXT:
        return None
    return MatchContext(type=context_type, id=str(context_id))
