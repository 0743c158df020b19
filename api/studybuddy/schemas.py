from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class CommonWindow(BaseModel):
    day: int = Field(ge=0, le=6)
    start: str
    end: str


class MatchResult(BaseModel):
    candidate_id: str
    display_name: str
    avatar_ref: str | None = None
    study_style: str | None = None
    study_pace: str | None = None
    location: str | None = None
    bio: str | None = None
    overlap_score: int = Field(ge=0)
    connection_state: Literal["none", "pending", "connected"]
    common_availability: list[CommonWindow] = Field(default_factory=list)
    match_type: Literal["course", "topic"]
    match_context_id: str


class MatchesResponse(BaseModel):
    matches: list[MatchResult]
    match_type: str
    match_context_id: str
    limit: int


class ConnectionRequestIn(BaseModel):
    target_id: str
    course_id: str | None = None
    topic_id: str | None = None


class ConnectionOut(BaseModel):
    id: str
    requester_id: str
    target_id: str
    context_type: str | None = None
    context_id: str | None = None
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ConnectionSummary(BaseModel):
    id: str
    user_id: str
    name: str
    email: str | None = None
    profile_image_url: str | None = None
    match_context: str
    match_type: str | None = None
    updated_at: datetime | None = None


class PendingRequestSummary(BaseModel):
    id: str
    requester: dict
    match_context: str
    match_type: str | None = None
    created_at: datetime | None = None


class ConnectionsResponse(BaseModel):
    connections: list[ConnectionSummary]


class PendingRequestsResponse(BaseModel):
    requests: list[PendingRequestSummary]
