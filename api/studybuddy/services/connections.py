from __future__ import annotations

import logging
from typing import Any

from ..errors import (
    AlreadyConnected,
    ConnectionNotFound,
    ConnectionNotPending,
    NotConnectionTarget,
    RequestPending,
    SelfTargetError,
    TargetNotFound,
)
from ..records import ConnectionRecord, MatchContext

logger = logging.getLogger(__name__)


def _raise_for_existing(existing: ConnectionRecord) -> None:
    if existing.status == "accepted":
        raise AlreadyConnected()
    raise RequestPending()


def _invalidate_pair(cache, user_a: str, user_b: str) -> None:
    if cache is None:
        return
    cache.invalidate(user_a)
    cache.invalidate(user_b)


def send_connection_request(
    store,
    cache,
    requester_id: str,
    target_id: str,
    context: MatchContext | None = None,
) -> ConnectionRecord:
    requester_id = str(requester_id)
    target_id = str(target_id or "").strip()
    if target_id == requester_id:
        raise SelfTargetError()
    if not target_id:
        raise TargetNotFound("Target user ID is required")
    target = store.get_user(target_id)
    if not target or not target.get("is_active"):
        raise TargetNotFound()

    existing = store.find_connection(requester_id, target_id, context)
    if existing:
        _raise_for_existing(existing)

    created = store.create_connection(requester_id, target_id, context)
    if created is None:
        # Lost the race against a concurrent request for the same pair and context.
        winner = store.find_connection(requester_id, target_id, context)
        if winner:
            _raise_for_existing(winner)
        raise RequestPending()

    logger.info(f"[connection] sent id={created.id} requester={requester_id} target={target_id}")
    _invalidate_pair(cache, requester_id, target_id)
    return created


def _load_for_target(store, connection_id: str, actor_id: str) -> ConnectionRecord:
    connection = store.get_connection(connection_id)
    if not connection:
        raise ConnectionNotFound()
    if connection.target_id != str(actor_id):
        raise NotConnectionTarget()
    return connection


def accept_connection_request(store, cache, connection_id: str, actor_id: str) -> None:
    connection = _load_for_target(store, connection_id, actor_id)
    if connection.status != "pending":
        raise ConnectionNotPending()
    if not store.accept_connection(connection.id):
        # Deleted or accepted by a concurrent call after the read above.
        current = store.get_connection(connection.id)
        if not current:
            raise ConnectionNotFound()
        raise ConnectionNotPending()
    logger.info(f"[connection] accepted id={connection.id} actor={actor_id}")
    _invalidate_pair(cache, connection.requester_id, connection.target_id)


def decline_connection_request(store, cache, connection_id: str, actor_id: str) -> None:
    connection = _load_for_target(store, connection_id, actor_id)
    if not store.delete_connection(connection.id):
        raise ConnectionNotFound()
    logger.info(f"[connection] declined id={connection.id} actor={actor_id}")
    _invalidate_pair(cache, connection.requester_id, connection.target_id)


def _context_label(item: dict[str, Any]) -> str:
    return item.get("context_name") or "Study Partner"


def list_connections(store, user_id: str) -> list[dict[str, Any]]:
    items = store.list_connections_for_user(str(user_id), "accepted")
    items.sort(key=lambda i: (i["connection"].updated_at is not None, i["connection"].updated_at), reverse=True)
    return [
        {
            "id": i["connection"].id,
            "user_id": i["other_user"]["id"],
            "name": i["other_user"]["name"],
            "email": i["other_user"]["email"],
            "profile_image_url": i["other_user"]["profile_image_url"],
            "match_context": _context_label(i),
            "match_type": i["connection"].context.type if i["connection"].context else None,
            "updated_at": i["connection"].updated_at,
        }
        for i in items
    ]


def list_pending_requests(store, user_id: str) -> list[dict[str, Any]]:
    items = store.list_connections_for_user(str(user_id), "pending", received_only=True)
    items.sort(key=lambda i: (i["connection"].created_at is not None, i["connection"].created_at), reverse=True)
    return [
        {
            "id": i["connection"].id,
            "requester": i["other_user"],
            "match_context": _context_label(i),
            "match_type": i["connection"].context.type if i["connection"].context else None,
            "created_at": i["connection"].created_at,
        }
        for i in items
    ]
