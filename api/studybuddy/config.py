import json
import os

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/studybuddy")
REDIS_URL = os.getenv("REDIS_URL", "").strip()

STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "5"))
CACHE_TIMEOUT_SECONDS = float(os.getenv("CACHE_TIMEOUT_SECONDS", "0.5"))

MATCH_LIMIT_MAX = 10
MATCH_LIMIT_DEFAULT = min(int(os.getenv("MATCH_LIMIT_DEFAULT", "10")), MATCH_LIMIT_MAX)

CACHE_TTL_SECONDS: dict[str, int] = {
    "match_results": int(os.getenv("MATCH_CACHE_TTL_SECONDS", "300")),
}

if os.getenv("CACHE_TTL_CONFIG_JSON"):
    try:
        CACHE_TTL_SECONDS.update(json.loads(os.getenv("CACHE_TTL_CONFIG_JSON", "{}")))
    except json.JSONDecodeError:
        pass

MATCH_CACHE_TTL_SECONDS = int(CACHE_TTL_SECONDS["match_results"])

JWT_SECRET = os.getenv("JWT_SECRET", "")
ACCESS_TOKEN_TTL_MINUTES = int(os.getenv("ACCESS_TOKEN_TTL_MINUTES", "15"))
DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"

RL_FIND_MATCHES_LIMIT = int(os.getenv("RL_FIND_MATCHES_LIMIT", "60"))
RL_CONNECTION_REQUEST_LIMIT = int(os.getenv("RL_CONNECTION_REQUEST_LIMIT", "30"))
RL_CONNECTION_RESPOND_LIMIT = int(os.getenv("RL_CONNECTION_RESPOND_LIMIT", "100"))
RL_WINDOW_SECONDS = int(os.getenv("RL_WINDOW_SECONDS", "60"))
