from fastapi import Request

from .records import MatchContext
from .services.match_cache import MatchCache
from .services.matching import MatchEngine


def get_store(request: Request):
    return request.app.state.store


def get_match_cache(request: Request) -> MatchCache:
    return request.app.state.match_cache


def get_match_engine(request: Request) -> MatchEngine:
    return request.app.state.match_engine


def optional_context(course_id: str | None, topic_id: str | None) -> MatchContext | None:
    if not (course_id or "").strip() and not (topic_id or "").strip():
        return None
    return MatchContext.from_ids(course_id=course_id, topic_id=topic_id)
