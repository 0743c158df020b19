"""
Match discovery for one requester within one course or topic.

Pipeline on a cache miss:
    candidates.resolve -> availability.score_candidates
    -> connection_state.resolve_states -> ranking.rank

The ranked list is cached truncated to MATCH_LIMIT_MAX so one entry serves any
requested limit. Cache failures only cost a recomputation.
"""

from __future__ import annotations

import logging
import time

from ..config import MATCH_LIMIT_MAX
from ..records import MatchContext
from ..schemas import MatchResult
from . import availability, candidates, connection_state, ranking

logger = logging.getLogger(__name__)


class MatchEngine:
    def __init__(self, store, cache=None) -> None:
        self.store = store
        self.cache = cache

    def compute(self, requester_id: str, context: MatchContext) -> list[MatchResult]:
        profiles = candidates.resolve(self.store, requester_id, context)
        candidate_ids = [p.id for p in profiles]
        slots_by_user = self.store.list_availability([requester_id, *candidate_ids])
        scores, windows = availability.score_candidates(slots_by_user.get(requester_id, []), slots_by_user, candidate_ids)
        states = connection_state.resolve_states(self.store, requester_id, candidate_ids, context)
        return ranking.rank(profiles, scores, states, MATCH_LIMIT_MAX, context=context, windows=windows)

    def find_matches(self, requester_id: str, context: MatchContext, limit: int | None = None) -> list[MatchResult]:
        requester_id = str(requester_id)
        limit = ranking.clamp_limit(limit)

        if self.cache is not None:
            cached = self.cache.get(requester_id, context)
            if cached is not None:
                logger.debug(f"[matches] cache hit user={requester_id} context={context.key}")
                return cached[:limit]

        started = time.perf_counter()
        results = self.compute(requester_id, context)
        logger.info(
            f"[matches] computed user={requester_id} context={context.key} "
            f"results={len(results)} elapsed_ms={int((time.perf_counter() - started) * 1000)}"
        )
        if self.cache is not None:
            self.cache.put(requester_id, context, results)
        return results[:limit]
