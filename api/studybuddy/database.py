from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DATABASE_URL, STORE_TIMEOUT_SECONDS


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    timeout_ms = int(STORE_TIMEOUT_SECONDS * 1000)
    return {
        "pool_pre_ping": True,
        "pool_timeout": STORE_TIMEOUT_SECONDS,
        "connect_args": {
            "connect_timeout": max(1, int(STORE_TIMEOUT_SECONDS)),
            "options": f"-c statement_timeout={timeout_ms}",
        },
    }


engine = create_engine(DATABASE_URL, future=True, **_engine_options(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
Base = declarative_base()
