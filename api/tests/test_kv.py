from types import SimpleNamespace

import pytest
import redis

import studybuddy.services.kv as kv_module
from studybuddy.errors import CacheUnavailable
from studybuddy.services.kv import InMemoryKeyValueStore, RedisKeyValueStore, build_kv_store


@pytest.fixture
def clock(monkeypatch):
    now = {"t": 1_000.0}
    monkeypatch.setattr(kv_module, "time", SimpleNamespace(time=lambda: now["t"]))
    return now


def test_setex_expires(clock):
    store = InMemoryKeyValueStore()
    store.setex("k", 10, "v")
    assert store.get("k") == "v"
    clock["t"] += 10
    assert store.get("k") is None


def test_incr_and_expire(clock):
    store = InMemoryKeyValueStore()
    assert store.incr("n") == 1
    assert store.ttl("n") == -1
    assert store.expire("n", 5) is True
    assert store.incr("n") == 2
    assert store.ttl("n") == 5
    clock["t"] += 5
    assert store.ttl("n") == -2
    assert store.incr("n") == 1


def test_delete_prefix_is_scoped():
    store = InMemoryKeyValueStore()
    for key in ("matches:u1:course:c1", "matches:u1:topic:t1", "matches:u10:course:c1", "profile:u1"):
        store.setex(key, 60, "x")

    assert store.delete_prefix("matches:u1:") == 2
    assert store.get("matches:u10:course:c1") == "x"
    assert store.dbsize() == 2


class _BrokenRedis:
    def __getattr__(self, name):
        def _fail(*args, **kwargs):
            raise redis.ConnectionError("connection refused")

        return _fail


def test_redis_errors_surface_as_cache_unavailable():
    store = RedisKeyValueStore(_BrokenRedis())
    with pytest.raises(CacheUnavailable):
        store.get("k")
    with pytest.raises(CacheUnavailable):
        store.incr("k")
    with pytest.raises(CacheUnavailable):
        store.delete_prefix("matches:u1:")


class _RecordingRedis:
    def __init__(self):
        self.deleted = []

    def scan_iter(self, match=None, count=None):
        self.match = match
        return iter(["matches:u1:course:c1", "matches:u1:topic:t1"])

    def delete(self, *keys):
        self.deleted.extend(keys)
        return len(keys)


def test_redis_delete_prefix_scans_with_escaped_glob():
    client = _RecordingRedis()
    store = RedisKeyValueStore(client)
    assert store.delete_prefix("matches:u[1]:") == 2
    assert client.match == "matches:u\\[1\\]:*"
    assert client.deleted == ["matches:u1:course:c1", "matches:u1:topic:t1"]


def test_build_kv_store_defaults_to_memory():
    assert isinstance(build_kv_store("", 0.5), InMemoryKeyValueStore)
    assert isinstance(build_kv_store("redis://localhost:6379/0", 0.5), RedisKeyValueStore)
