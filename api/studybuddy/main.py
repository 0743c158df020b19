import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from . import models  # noqa: F401  registers tables on Base.metadata
from .config import CACHE_TIMEOUT_SECONDS, REDIS_URL
from .database import Base, SessionLocal, engine
from .errors import MatchError
from .routes import include_modular_routers
from .services.kv import build_kv_store
from .services.match_cache import MatchCache
from .services.matching import MatchEngine
from .services.rate_limit import RateLimiter
from .store import SqlStore

logger = logging.getLogger(__name__)

app = FastAPI(title="StudyBuddy Match API")
include_modular_routers(app)

ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def wire_services(target: FastAPI, store, kv) -> None:
    """Attach store, cache, limiter and engine to ``target.state``."""
    cache = MatchCache(kv)
    target.state.store = store
    target.state.match_cache = cache
    target.state.rate_limiter = RateLimiter(kv)
    target.state.match_engine = MatchEngine(store, cache)


def init_schema() -> None:
    Base.metadata.create_all(bind=engine)


def wait_for_db(max_attempts: int = 20, delay_seconds: float = 1.5) -> None:
    last_err: Exception | None = None
    for _ in range(max_attempts):
        try:
            with SessionLocal() as db:
                db.execute(text("SELECT 1"))
                db.commit()
            return
        except OperationalError as exc:
            last_err = exc
            time.sleep(delay_seconds)
    if last_err:
        raise last_err


@app.on_event("startup")
def on_startup() -> None:
    wait_for_db()
    init_schema()
    wire_services(app, SqlStore(SessionLocal), build_kv_store(REDIS_URL, CACHE_TIMEOUT_SECONDS))


@app.exception_handler(MatchError)
def handle_match_error(request: Request, exc: MatchError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "reason": exc.reason})


@app.exception_handler(OperationalError)
@app.exception_handler(PoolTimeoutError)
def handle_store_unavailable(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"[STORE_UNAVAILABLE] path={request.url.path} error={exc}")
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable", "reason": "store_unavailable"})
