import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

import studybuddy.auth.security as security
import studybuddy.main as m
from studybuddy.config import RL_FIND_MATCHES_LIMIT
from studybuddy.errors import CacheUnavailable
from studybuddy.services.kv import InMemoryKeyValueStore
from studybuddy.services.rate_limit import _token_fingerprint

MON = 1


@pytest.fixture
def client(monkeypatch, store, kv):
    monkeypatch.setattr(security, "JWT_SECRET", "test-secret")
    m.wire_services(m.app, store, kv)
    return TestClient(m.app)


def _auth(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {security.create_access_token(user_id)}"}


@pytest.fixture
def world(seed):
    course = seed.course("Operating Systems")
    me = seed.user("Req", "Uester")
    a = seed.user("Alice", "A", study_style="group", location="Library")
    b = seed.user("Bob", "B")
    for uid in (me, a, b):
        seed.enroll(uid, course)
    seed.slot(me, MON, "09:00", "12:00")
    seed.slot(a, MON, "10:00", "11:00")
    seed.slot(b, MON, "13:00", "14:00")
    return {"course": course, "me": me, "a": a, "b": b}


def test_requires_authentication(client):
    assert client.get("/matches", params={"course_id": "x"}).status_code == 401
    resp = client.get("/matches", params={"course_id": "x"}, headers={"Authorization": "Token abc"})
    assert resp.status_code == 401


def test_find_matches_flow(client, world):
    resp = client.get("/matches", params={"course_id": world["course"]}, headers=_auth(world["me"]))
    assert resp.status_code == 200
    body = resp.json()
    assert body["match_type"] == "course"
    assert body["limit"] == 10
    assert [x["candidate_id"] for x in body["matches"]] == [world["a"], world["b"]]
    first = body["matches"][0]
    assert first["overlap_score"] == 1
    assert first["display_name"] == "Alice A"
    assert first["study_style"] == "group"
    assert first["location"] == "Library"
    assert first["connection_state"] == "none"
    assert first["common_availability"] == [{"day": MON, "start": "10:00", "end": "11:00"}]


def test_find_matches_validation_errors(client, world):
    headers = _auth(world["me"])
    resp = client.get("/matches", headers=headers)
    assert resp.status_code == 400
    assert resp.json()["reason"] == "invalid_context"

    resp = client.get("/matches", params={"course_id": world["course"], "topic_id": "t"}, headers=headers)
    assert resp.status_code == 400

    resp = client.get("/matches", params={"course_id": world["course"], "limit": 0}, headers=headers)
    assert resp.json()["reason"] == "invalid_limit"

    resp = client.get("/matches", params={"course_id": "not-mine"}, headers=headers)
    assert resp.status_code == 403
    assert resp.json()["reason"] == "context_not_associated"


def test_connection_lifecycle_updates_match_state(client, world):
    me, a = _auth(world["me"]), _auth(world["a"])
    client.get("/matches", params={"course_id": world["course"]}, headers=me)

    resp = client.post("/connections", json={"target_id": world["a"], "course_id": world["course"]}, headers=me)
    assert resp.status_code == 201
    connection_id = resp.json()["id"]
    assert resp.json()["status"] == "pending"

    states = {
        x["candidate_id"]: x["connection_state"]
        for x in client.get("/matches", params={"course_id": world["course"]}, headers=me).json()["matches"]
    }
    assert states[world["a"]] == "pending"

    dup = client.post("/connections", json={"target_id": world["me"], "course_id": world["course"]}, headers=a)
    assert dup.status_code == 409
    assert dup.json()["reason"] == "request_pending"

    pending = client.get("/connections/requests", headers=a).json()["requests"]
    assert [p["id"] for p in pending] == [connection_id]

    assert client.post(f"/connections/{connection_id}/accept", headers=me).status_code == 403
    assert client.post(f"/connections/{connection_id}/accept", headers=a).json()["success"] is True
    assert client.post(f"/connections/{connection_id}/accept", headers=a).status_code == 409

    listed = client.get("/connections", headers=me).json()["connections"]
    assert [(c["user_id"], c["match_context"]) for c in listed] == [(world["a"], "Operating Systems")]

    states = {
        x["candidate_id"]: x["connection_state"]
        for x in client.get("/matches", params={"course_id": world["course"]}, headers=me).json()["matches"]
    }
    assert states[world["a"]] == "connected"


def test_connection_request_errors(client, world):
    me = _auth(world["me"])
    assert client.post("/connections", json={"target_id": world["me"]}, headers=me).json()["reason"] == "self_target"
    assert client.post("/connections", json={"target_id": "ghost"}, headers=me).status_code == 404
    assert client.post("/connections/missing/decline", headers=me).status_code == 404
    resp = client.post("/connections", json={"target_id": world["a"], "course_id": "c", "topic_id": "t"}, headers=me)
    assert resp.status_code == 400


def test_decline_removes_connection(client, world):
    me, b = _auth(world["me"]), _auth(world["b"])
    connection_id = client.post("/connections", json={"target_id": world["b"]}, headers=me).json()["id"]
    assert client.post(f"/connections/{connection_id}/decline", headers=b).status_code == 200
    assert client.get("/connections/requests", headers=b).json()["requests"] == []


def test_rate_limit_returns_429(client, kv, world):
    headers = _auth(world["me"])
    ident = f"token:{_token_fingerprint(headers['Authorization'][7:])}"
    for _ in range(RL_FIND_MATCHES_LIMIT):
        kv.incr(f"rate_limit:find_matches:{ident}")
    kv.expire(f"rate_limit:find_matches:{ident}", 60)

    resp = client.get("/matches", params={"course_id": world["course"]}, headers=headers)
    assert resp.status_code == 429
    assert int(resp.headers["Retry-After"]) >= 1


def test_each_bearer_user_gets_its_own_rate_budget(client, world):
    me, a = _auth(world["me"]), _auth(world["a"])
    params = {"course_id": world["course"]}
    for _ in range(RL_FIND_MATCHES_LIMIT):
        assert client.get("/matches", params=params, headers=me).status_code == 200
    assert client.get("/matches", params=params, headers=me).status_code == 429

    assert client.get("/matches", params=params, headers=a).status_code == 200


class _DownKV(InMemoryKeyValueStore):
    def _fail(self, *args, **kwargs):
        raise CacheUnavailable("redis down")

    get = setex = incr = expire = ttl = delete = delete_prefix = ping = dbsize = _fail


def test_cache_outage_degrades_without_failing(monkeypatch, store, world):
    monkeypatch.setattr(security, "JWT_SECRET", "test-secret")
    m.wire_services(m.app, store, _DownKV())
    client = TestClient(m.app)

    resp = client.get("/matches", params={"course_id": world["course"]}, headers=_auth(world["me"]))
    assert resp.status_code == 200
    assert [x["candidate_id"] for x in resp.json()["matches"]] == [world["a"], world["b"]]

    health = client.get("/health/cache").json()
    assert health == {"status": "degraded", "healthy": False, "stats": None}


class _DownStore:
    def get_user(self, user_id):
        raise OperationalError("SELECT", {}, Exception("could not connect"))


def test_store_outage_is_503(monkeypatch, kv):
    monkeypatch.setattr(security, "JWT_SECRET", "test-secret")
    m.wire_services(m.app, _DownStore(), kv)
    client = TestClient(m.app)
    resp = client.get("/matches", params={"course_id": "c"}, headers=_auth("u1"))
    assert resp.status_code == 503
    assert resp.json()["reason"] == "store_unavailable"


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    body = client.get("/health/cache").json()
    assert body["healthy"] is True
    assert "key_count" in body["stats"]


def test_token_and_account_checks(client, seed):
    active = seed.user()
    disabled = seed.user(is_active=False)

    expired = security.create_access_token(active, ttl_minutes=-1)
    assert client.get("/connections", headers={"Authorization": f"Bearer {expired}"}).status_code == 401
    assert client.get("/connections", headers=_auth("no-such-user")).status_code == 401
    assert client.get("/connections", headers=_auth(disabled)).status_code == 403

    client.cookies.set("studybuddy_session", security.create_access_token(active))
    assert client.get("/connections").json() == {"connections": []}
