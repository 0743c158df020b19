from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user
from ..config import MATCH_LIMIT_DEFAULT, RL_FIND_MATCHES_LIMIT, RL_WINDOW_SECONDS
from ..deps import get_match_engine
from ..records import MatchContext
from ..schemas import MatchesResponse
from ..services.matching import MatchEngine
from ..services.rate_limit import rate_limit_dependency
from ..services.ranking import clamp_limit

router = APIRouter()

RL_FIND_MATCHES = rate_limit_dependency("find_matches", RL_FIND_MATCHES_LIMIT, RL_WINDOW_SECONDS)


@router.get("/matches", response_model=MatchesResponse, dependencies=[RL_FIND_MATCHES])
def find_matches(
    course_id: str | None = None,
    topic_id: str | None = None,
    limit: int = MATCH_LIMIT_DEFAULT,
    current_user: dict[str, Any] = Depends(get_current_user),
    engine: MatchEngine = Depends(get_match_engine),
) -> dict[str, Any]:
    context = MatchContext.from_ids(course_id=course_id, topic_id=topic_id)
    limit = clamp_limit(limit)
    matches = engine.find_matches(str(current_user["id"]), context, limit=limit)
    return {
        "matches": matches,
        "match_type": context.type,
        "match_context_id": context.id,
        "limit": limit,
    }
