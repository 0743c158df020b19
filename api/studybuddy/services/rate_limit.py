import hashlib
import logging
import time
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request

from ..auth.deps import SESSION_COOKIE_NAME
from ..errors import CacheUnavailable

logger = logging.getLogger(__name__)


@dataclass
class RateDecision:
    allowed: bool
    remaining: int
    reset_at: float
    retry_after_seconds: int


class RateLimiter:
    """Fixed-window counter on the shared key-value backend.

    Fails open: when the backend is unreachable every request is allowed.
    """

    def __init__(self, kv) -> None:
        self._kv = kv

    def check_and_increment(self, identifier: str, max_requests: int, window_seconds: int) -> RateDecision:
        key = f"rate_limit:{identifier}"
        now = time.time()
        try:
            count = self._kv.incr(key)
            if count == 1:
                self._kv.expire(key, window_seconds)
                ttl = window_seconds
            else:
                ttl = self._kv.ttl(key)
                if ttl < 0:
                    # A lost EXPIRE would otherwise pin the counter forever.
                    self._kv.expire(key, window_seconds)
                    ttl = window_seconds
        except CacheUnavailable as exc:
            logger.warning(f"[RATE_LIMIT] backend unavailable, allowing identifier={identifier} error={exc}")
            return RateDecision(allowed=True, remaining=max_requests, reset_at=now + window_seconds, retry_after_seconds=0)

        allowed = count <= max_requests
        decision = RateDecision(
            allowed=allowed,
            remaining=max(0, max_requests - count),
            reset_at=now + ttl,
            retry_after_seconds=0 if allowed else max(1, int(ttl)),
        )
        if not allowed:
            logger.info(f"[RATE_LIMIT] refused identifier={identifier} count={count} limit={max_requests}")
        return decision


def _token_fingerprint(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]


def _client_identifier(request: Request) -> str:
    xff = request.headers.get("x-forwarded-for", "").strip()
    if xff:
        return xff.split(",")[0].strip()
    auth = request.headers.get("authorization", "").strip()
    if auth.lower().startswith("bearer ") and auth[7:].strip():
        return f"token:{_token_fingerprint(auth[7:].strip())}"
    session_token = request.cookies.get(SESSION_COOKIE_NAME)
    if session_token:
        return f"token:{_token_fingerprint(session_token)}"
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit_dependency(route_key: str, limit: int, window_seconds: int):
    def _dep(request: Request) -> None:
        limiter: RateLimiter = request.app.state.rate_limiter
        ident = _client_identifier(request)
        decision = limiter.check_and_increment(f"{route_key}:{ident}", max_requests=limit, window_seconds=window_seconds)
        if not decision.allowed:
            raise HTTPException(
                status_code=429,
                detail=f"Too many requests. Retry in {decision.retry_after_seconds}s",
                headers={"Retry-After": str(decision.retry_after_seconds)},
            )

    return Depends(_dep)
