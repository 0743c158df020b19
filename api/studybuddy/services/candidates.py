from __future__ import annotations

from typing import Iterable

from ..errors import ContextNotAssociated
from ..records import CandidateProfile, ContextAssociation, MatchContext


def context_members(associations: Iterable[ContextAssociation], context: MatchContext) -> set[str]:
    return {a.user_id for a in associations if a.is_active and a.context == context}


def candidate_ids_for(requester_id: str, associations: Iterable[ContextAssociation], context: MatchContext) -> set[str]:
    members = context_members(associations, context)
    if requester_id not in members:
        raise ContextNotAssociated(
            "You are not enrolled in this course" if context.type == "course" else "You do not have this topic selected"
        )
    return members - {requester_id}


def resolve(store, requester_id: str, context: MatchContext) -> list[CandidateProfile]:
    """Active, verified users sharing ``context`` with the requester, requester excluded.

    Raises ContextNotAssociated when the requester holds no active association
    for the context.
    """
    associations = store.list_context_associations(context)
    ids = candidate_ids_for(requester_id, associations, context)
    if not ids:
        return []
    profiles = store.get_candidate_profiles(sorted(ids))
    return [p for p in profiles if p.id in ids and p.id != requester_id]
