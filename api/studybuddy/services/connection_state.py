from __future__ import annotations

from typing import Iterable

from ..records import ConnectionRecord, MatchContext

STATE_NONE = "none"
STATE_PENDING = "pending"
STATE_CONNECTED = "connected"


def state_from_connections(
    requester_id: str,
    candidate_id: str,
    context: MatchContext | None,
    connections: Iterable[ConnectionRecord],
) -> str:
    has_pending = False
    for conn in connections:
        if conn.context != context:
            continue
        if {conn.requester_id, conn.target_id} != {requester_id, candidate_id}:
            continue
        if conn.status == "accepted":
            return STATE_CONNECTED
        if conn.status == "pending":
            has_pending = True
    return STATE_PENDING if has_pending else STATE_NONE


def resolve_state(store, requester_id: str, candidate_id: str, context: MatchContext | None) -> str:
    connections = store.list_connections_between(requester_id, [candidate_id], context)
    return state_from_connections(requester_id, candidate_id, context, connections)


def resolve_states(store, requester_id: str, candidate_ids: list[str], context: MatchContext | None) -> dict[str, str]:
    states = {candidate_id: STATE_NONE for candidate_id in candidate_ids}
    if not candidate_ids:
        return states
    by_candidate: dict[str, list[ConnectionRecord]] = {}
    for conn in store.list_connections_between(requester_id, candidate_ids, context):
        by_candidate.setdefault(conn.other_party(requester_id), []).append(conn)
    for candidate_id, conns in by_candidate.items():
        if candidate_id in states:
            states[candidate_id] = state_from_connections(requester_id, candidate_id, context, conns)
    return states
