"""
Key-value backends shared by the match cache and the rate limiter.

Both backends expose the same small surface: get, setex, incr, expire, ttl,
delete, delete_prefix, ping and dbsize. Any failure to reach the store is
raised as CacheUnavailable so callers can apply their fail-open policy without
knowing which backend is configured.
"""

import logging
import threading
import time
from typing import Any

import redis

from ..errors import CacheUnavailable

logger = logging.getLogger(__name__)


class InMemoryKeyValueStore:
    def __init__(self) -> None:
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str, now: float) -> tuple[str, float | None] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and expires_at <= now:
            del self._data[key]
            return None
        return entry

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live(key, time.time())
            return entry[0] if entry else None

    def setex(self, key: str, ttl_seconds: int, value: str) -> None:
        with self._lock:
            self._data[key] = (value, time.time() + int(ttl_seconds))

    def incr(self, key: str) -> int:
        with self._lock:
            entry = self._live(key, time.time())
            current = int(entry[0]) + 1 if entry else 1
            self._data[key] = (str(current), entry[1] if entry else None)
            return current

    def expire(self, key: str, ttl_seconds: int) -> bool:
        with self._lock:
            entry = self._live(key, time.time())
            if entry is None:
                return False
            self._data[key] = (entry[0], time.time() + int(ttl_seconds))
            return True

    def ttl(self, key: str) -> int:
        with self._lock:
            now = time.time()
            entry = self._live(key, now)
            if entry is None:
                return -2
            if entry[1] is None:
                return -1
            return max(0, int(entry[1] - now))

    def delete(self, *keys: str) -> int:
        with self._lock:
            removed = 0
            for key in keys:
                if self._data.pop(key, None) is not None:
                    removed += 1
            return removed

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in self._data if k.startswith(prefix)]
            for key in keys:
                del self._data[key]
            return len(keys)

    def ping(self) -> bool:
        return True

    def dbsize(self) -> int:
        with self._lock:
            now = time.time()
            return sum(1 for k in list(self._data) if self._live(k, now))


def escape_glob(value: str) -> str:
    return "".join(f"\\{ch}" if ch in "*?[]\\" else ch for ch in value)


class RedisKeyValueStore:
    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, timeout_seconds: float) -> "RedisKeyValueStore":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        return cls(client)

    def _call(self, op: str, fn, *args: Any) -> Any:
        try:
            return fn(*args)
        except redis.RedisError as exc:
            raise CacheUnavailable(f"redis {op} failed: {exc}") from exc

    def get(self, key: str) -> str | None:
        return self._call("get", self._client.get, key)

    def setex(self, key: str, ttl_seconds: int, value: str) -> None:
        self._call("setex", self._client.setex, key, int(ttl_seconds), value)

    def incr(self, key: str) -> int:
        return int(self._call("incr", self._client.incr, key))

    def expire(self, key: str, ttl_seconds: int) -> bool:
        return bool(self._call("expire", self._client.expire, key, int(ttl_seconds)))

    def ttl(self, key: str) -> int:
        return int(self._call("ttl", self._client.ttl, key))

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(self._call("delete", self._client.delete, *keys))

    def _delete_matching(self, pattern: str) -> int:
        def _scan_and_delete() -> int:
            removed = 0
            batch: list[str] = []
            for key in self._client.scan_iter(match=pattern, count=500):
                batch.append(key)
                if len(batch) >= 500:
                    removed += self._client.delete(*batch)
                    batch = []
            if batch:
                removed += self._client.delete(*batch)
            return removed

        return int(self._call("delete_prefix", _scan_and_delete))

    def delete_prefix(self, prefix: str) -> int:
        return self._delete_matching(f"{escape_glob(prefix)}*")

    def ping(self) -> bool:
        return bool(self._call("ping", self._client.ping))

    def dbsize(self) -> int:
        return int(self._call("dbsize", self._client.dbsize))


def build_kv_store(redis_url: str, timeout_seconds: float):
    if not redis_url:
        logger.info("[cache] REDIS_URL not set, using in-process key-value store")
        return InMemoryKeyValueStore()
    logger.info("[cache] using redis key-value store")
    return RedisKeyValueStore.from_url(redis_url, timeout_seconds)
