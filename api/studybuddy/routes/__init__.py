from fastapi import APIRouter, FastAPI

from .connections import router as connections_router
from .health import router as health_router
from .match import router as match_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(health_router, tags=["health"])
    app.include_router(match_router, tags=["matches"])
    app.include_router(connections_router, tags=["connections"])


__all__ = ["include_modular_routers", "APIRouter"]
