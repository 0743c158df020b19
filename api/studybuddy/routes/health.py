from typing import Any

from fastapi import APIRouter, Depends

from ..deps import get_match_cache
from ..services.match_cache import MatchCache

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/health/cache")
def cache_health(cache: MatchCache = Depends(get_match_cache)) -> dict[str, Any]:
    healthy = cache.is_healthy()
    return {"status": "ok" if healthy else "degraded", "healthy": healthy, "stats": cache.stats() if healthy else None}
