"""
Match result cache over a key-value backend.

Keys:
    matches:{user_id}:{context_type}:{context_id}   ranked match results
    profile:{user_id}                               profile snapshot (written by profile flows)
    user:{user_id}:*                                other per-user entries

The cache is never authoritative. Every backend failure is logged and turned
into a miss (reads) or a no-op (writes and invalidation).
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from ..config import MATCH_CACHE_TTL_SECONDS
from ..errors import CacheUnavailable
from ..records import MatchContext
from ..schemas import MatchResult

logger = logging.getLogger(__name__)


def matches_key(user_id: str, context: MatchContext) -> str:
    return f"matches:{user_id}:{context.type}:{context.id}"


def profile_key(user_id: str) -> str:
    return f"profile:{user_id}"


class MatchCache:
    def __init__(self, kv, *, match_ttl_seconds: int = MATCH_CACHE_TTL_SECONDS) -> None:
        self._kv = kv
        self.match_ttl_seconds = match_ttl_seconds

    def _log_unavailable(self, op: str, key: str, exc: Exception) -> None:
        logger.warning(f"[CACHE_UNAVAILABLE] op={op} key={key} error={exc}")

    def get(self, user_id: str, context: MatchContext) -> list[MatchResult] | None:
        key = matches_key(user_id, context)
        try:
            raw = self._kv.get(key)
        except CacheUnavailable as exc:
            self._log_unavailable("get", key, exc)
            return None
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
            if not isinstance(payload, list):
                raise ValueError("cached match payload is not a list")
            return [MatchResult.model_validate(item) for item in payload]
        except (ValueError, ValidationError) as exc:
            logger.warning(f"[cache] discarding malformed entry key={key} error={exc}")
            self._delete(key)
            return None

    def put(self, user_id: str, context: MatchContext, results: list[MatchResult], ttl: int | None = None) -> bool:
        key = matches_key(user_id, context)
        payload = json.dumps([r.model_dump(mode="json") for r in results])
        try:
            self._kv.setex(key, int(ttl or self.match_ttl_seconds), payload)
        except CacheUnavailable as exc:
            self._log_unavailable("put", key, exc)
            return False
        return True

    def _delete(self, key: str) -> None:
        try:
            self._kv.delete(key)
        except CacheUnavailable as exc:
            self._log_unavailable("delete", key, exc)

    def invalidate(self, user_id: str) -> bool:
        """Drop the user's own match results and per-user entries.

        The same user cached as a candidate under other requesters is left to
        expire with the match TTL.
        """
        try:
            self._kv.delete_prefix(f"matches:{user_id}:")
            self._kv.delete(profile_key(user_id))
            self._kv.delete_prefix(f"user:{user_id}:")
        except CacheUnavailable as exc:
            self._log_unavailable("invalidate", f"user:{user_id}", exc)
            return False
        return True

    def is_healthy(self) -> bool:
        try:
            return bool(self._kv.ping())
        except CacheUnavailable as exc:
            self._log_unavailable("ping", "-", exc)
            return False

    def stats(self) -> dict[str, Any] | None:
        try:
            key_count = self._kv.dbsize()
        except CacheUnavailable as exc:
            self._log_unavailable("dbsize", "-", exc)
            return None
        return {"key_count": int(key_count), "timestamp": datetime.now(timezone.utc).isoformat()}
