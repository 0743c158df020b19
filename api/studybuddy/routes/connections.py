from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user
from ..config import RL_CONNECTION_REQUEST_LIMIT, RL_CONNECTION_RESPOND_LIMIT, RL_WINDOW_SECONDS
from ..deps import get_match_cache, get_store, optional_context
from ..schemas import ConnectionOut, ConnectionRequestIn, ConnectionsResponse, PendingRequestsResponse
from ..services import connections as connection_service
from ..services.match_cache import MatchCache
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()

RL_CONNECTION_REQUEST = rate_limit_dependency("connection_request", RL_CONNECTION_REQUEST_LIMIT, RL_WINDOW_SECONDS)
RL_CONNECTION_RESPOND = rate_limit_dependency("connection_respond", RL_CONNECTION_RESPOND_LIMIT, RL_WINDOW_SECONDS)


@router.post("/connections", response_model=ConnectionOut, status_code=201, dependencies=[RL_CONNECTION_REQUEST])
def send_connection_request(
    payload: ConnectionRequestIn,
    current_user: dict[str, Any] = Depends(get_current_user),
    store=Depends(get_store),
    cache: MatchCache = Depends(get_match_cache),
) -> dict[str, Any]:
    context = optional_context(payload.course_id, payload.topic_id)
    connection = connection_service.send_connection_request(
        store,
        cache,
        requester_id=str(current_user["id"]),
        target_id=payload.target_id,
        context=context,
    )
    return connection.as_dict()


@router.post("/connections/{connection_id}/accept", dependencies=[RL_CONNECTION_RESPOND])
def accept_connection_request(
    connection_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    store=Depends(get_store),
    cache: MatchCache = Depends(get_match_cache),
) -> dict[str, Any]:
    connection_service.accept_connection_request(store, cache, connection_id, str(current_user["id"]))
    return {"success": True, "message": "Connection request accepted"}


@router.post("/connections/{connection_id}/decline", dependencies=[RL_CONNECTION_RESPOND])
def decline_connection_request(
    connection_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    store=Depends(get_store),
    cache: MatchCache = Depends(get_match_cache),
) -> dict[str, Any]:
    connection_service.decline_connection_request(store, cache, connection_id, str(current_user["id"]))
    return {"success": True, "message": "Connection request declined"}


@router.get("/connections", response_model=ConnectionsResponse)
def get_connections(current_user: dict[str, Any] = Depends(get_current_user), store=Depends(get_store)) -> dict[str, Any]:
    return {"connections": connection_service.list_connections(store, str(current_user["id"]))}


@router.get("/connections/requests", response_model=PendingRequestsResponse)
def get_pending_requests(current_user: dict[str, Any] = Depends(get_current_user), store=Depends(get_store)) -> dict[str, Any]:
    return {"requests": connection_service.list_pending_requests(store, str(current_user["id"]))}
