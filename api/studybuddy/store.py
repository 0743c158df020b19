"""
Relational store used by the match engine and the connection services.

Queries are plain parameterized SQL run through SQLAlchemy sessions; rows are
converted to the typed records in ``records.py`` before they leave this module.
Database errors are not caught here except the uniqueness conflict on
connection creation, which is an expected outcome of concurrent requests.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy import bindparam, text
from sqlalchemy.exc import IntegrityError

from .records import (
    AvailabilitySlot,
    CandidateProfile,
    ConnectionRecord,
    ContextAssociation,
    MatchContext,
    canonical_pair,
    context_columns,
    context_from_columns,
)
from .services.availability import to_time

logger = logging.getLogger(__name__)

_ASSOCIATION_TABLES = {
    "course": ("user_course", "course_id"),
    "topic": ("user_topic", "topic_id"),
}


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "t", "yes"}
    return bool(value)


def _to_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))


def _display_name(first_name: Any, last_name: Any) -> str:
    return " ".join(part for part in (str(first_name or "").strip(), str(last_name or "").strip()) if part)


def _connection_from_row(row: Any) -> ConnectionRecord:
    return ConnectionRecord(
        id=str(row["id"]),
        requester_id=str(row["requester_id"]),
        target_id=str(row["target_id"]),
        context=context_from_columns(row["context_type"], row["context_id"]),
        status=str(row["status"]),
        created_at=_to_datetime(row["created_at"]),
        updated_at=_to_datetime(row["updated_at"]),
    )


class SqlStore:
    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    def ping(self) -> bool:
        with self._session_factory() as db:
            db.execute(text("SELECT 1"))
        return True

    def get_user(self, user_id: str) -> dict[str, Any] | None:
        with self._session_factory() as db:
            row = db.execute(
                text(
                    """
                    SELECT id, email, first_name, last_name, is_active, is_verified, created_at
                    FROM user_account
                    WHERE id = :id
                    """
                ),
                {"id": user_id},
            ).mappings().first()
        if not row:
            return None
        user = dict(row)
        user["is_active"] = _to_bool(user["is_active"])
        user["is_verified"] = _to_bool(user["is_verified"])
        return user

    def list_context_associations(self, context: MatchContext) -> list[ContextAssociation]:
        table, column = _ASSOCIATION_TABLES[context.type]
        with self._session_factory() as db:
            rows = db.execute(
                text(f"SELECT user_id, is_active FROM {table} WHERE {column} = :context_id AND is_active = :active"),
                {"context_id": context.id, "active": True},
            ).mappings().all()
        return [ContextAssociation(user_id=str(r["user_id"]), context=context, is_active=_to_bool(r["is_active"])) for r in rows]

    def get_candidate_profiles(self, user_ids: Iterable[str]) -> list[CandidateProfile]:
        ids = [str(u) for u in user_ids]
        if not ids:
            return []
        stmt = text(
            """
            SELECT u.id, u.first_name, u.last_name, u.created_at,
                   p.profile_image_url, p.study_style, p.study_pace, p.preferred_location, p.bio
            FROM user_account u
            LEFT JOIN user_profile p ON p.user_id = u.id
            WHERE u.id IN :ids
              AND u.is_active = :active
              AND u.is_verified = :verified
            """
        ).bindparams(bindparam("ids", expanding=True))
        with self._session_factory() as db:
            rows = db.execute(stmt, {"ids": ids, "active": True, "verified": True}).mappings().all()
        return [
            CandidateProfile(
                id=str(r["id"]),
                display_name=_display_name(r["first_name"], r["last_name"]),
                avatar_ref=r["profile_image_url"],
                study_style=r["study_style"],
                study_pace=r["study_pace"],
                location=r["preferred_location"],
                bio=r["bio"],
                joined_at=_to_datetime(r["created_at"]),
            )
            for r in rows
        ]

    def list_availability(self, user_ids: Iterable[str]) -> dict[str, list[AvailabilitySlot]]:
        ids = [str(u) for u in user_ids]
        out: dict[str, list[AvailabilitySlot]] = {u: [] for u in ids}
        if not ids:
            return out
        stmt = text(
            """
            SELECT user_id, day_of_week, start_time, end_time
            FROM availability_slot
            WHERE user_id IN :ids
            ORDER BY user_id, day_of_week, start_time
            """
        ).bindparams(bindparam("ids", expanding=True))
        with self._session_factory() as db:
            rows = db.execute(stmt, {"ids": ids}).mappings().all()
        for r in rows:
            out.setdefault(str(r["user_id"]), []).append(
                AvailabilitySlot(
                    day_of_week=int(r["day_of_week"]),
                    start_time=to_time(r["start_time"]),
                    end_time=to_time(r["end_time"]),
                )
            )
        return out

    def list_connections_between(
        self,
        user_id: str,
        other_ids: Iterable[str],
        context: MatchContext | None,
    ) -> list[ConnectionRecord]:
        others = [str(o) for o in other_ids]
        if not others:
            return []
        context_type, context_id = context_columns(context)
        stmt = text(
            """
            SELECT id, requester_id, target_id, context_type, context_id, status, created_at, updated_at
            FROM connection
            WHERE context_type = :context_type
              AND context_id = :context_id
              AND (
                (requester_id = :user_id AND target_id IN :others)
                OR (target_id = :user_id AND requester_id IN :others)
              )
            """
        ).bindparams(bindparam("others", expanding=True))
        with self._session_factory() as db:
            rows = db.execute(
                stmt,
                {"user_id": user_id, "others": others, "context_type": context_type, "context_id": context_id},
            ).mappings().all()
        return [_connection_from_row(r) for r in rows]

    def find_connection(self, user_a: str, user_b: str, context: MatchContext | None) -> ConnectionRecord | None:
        low, high = canonical_pair(user_a, user_b)
        context_type, context_id = context_columns(context)
        with self._session_factory() as db:
            row = db.execute(
                text(
                    """
                    SELECT id, requester_id, target_id, context_type, context_id, status, created_at, updated_at
                    FROM connection
                    WHERE user_low = :low AND user_high = :high
                      AND context_type = :context_type AND context_id = :context_id
                    """
                ),
                {"low": low, "high": high, "context_type": context_type, "context_id": context_id},
            ).mappings().first()
        return _connection_from_row(row) if row else None

    def get_connection(self, connection_id: str) -> ConnectionRecord | None:
        with self._session_factory() as db:
            row = db.execute(
                text(
                    """
                    SELECT id, requester_id, target_id, context_type, context_id, status, created_at, updated_at
                    FROM connection
                    WHERE id = :id
                    """
                ),
                {"id": connection_id},
            ).mappings().first()
        return _connection_from_row(row) if row else None

    def create_connection(self, requester_id: str, target_id: str, context: MatchContext | None) -> ConnectionRecord | None:
        """Insert a pending connection; None when the pair already has one for this context."""
        connection_id = str(uuid.uuid4())
        low, high = canonical_pair(requester_id, target_id)
        context_type, context_id = context_columns(context)
        now = _now_utc()
        try:
            with self._session_factory() as db:
                db.execute(
                    text(
                        """
                        INSERT INTO connection (
                            id, requester_id, target_id, user_low, user_high,
                            context_type, context_id, status, created_at, updated_at
                        )
                        VALUES (
                            :id, :requester_id, :target_id, :low, :high,
                            :context_type, :context_id, 'pending', :now, :now
                        )
                        """
                    ),
                    {
                        "id": connection_id,
                        "requester_id": requester_id,
                        "target_id": target_id,
                        "low": low,
                        "high": high,
                        "context_type": context_type,
                        "context_id": context_id,
                        "now": now.isoformat(),
                    },
                )
                db.commit()
        except IntegrityError:
            logger.info(f"[CONNECTION_CONFLICT] pair={low},{high} context={context_type}:{context_id}")
            return None
        return ConnectionRecord(
            id=connection_id,
            requester_id=requester_id,
            target_id=target_id,
            context=context,
            status="pending",
            created_at=now,
            updated_at=now,
        )

    def accept_connection(self, connection_id: str) -> bool:
        with self._session_factory() as db:
            result = db.execute(
                text(
                    """
                    UPDATE connection
                    SET status = 'accepted', updated_at = :now
                    WHERE id = :id AND status = 'pending'
                    """
                ),
                {"id": connection_id, "now": _now_utc().isoformat()},
            )
            db.commit()
        return (result.rowcount or 0) > 0

    def delete_connection(self, connection_id: str) -> bool:
        with self._session_factory() as db:
            result = db.execute(text("DELETE FROM connection WHERE id = :id"), {"id": connection_id})
            db.commit()
        return (result.rowcount or 0) > 0

    def _context_names(self, db, connections: list[ConnectionRecord]) -> dict[tuple[str, str], str]:
        names: dict[tuple[str, str], str] = {}
        for context_type, table in (("course", "course"), ("topic", "topic")):
            ids = sorted({c.context.id for c in connections if c.context and c.context.type == context_type})
            if not ids:
                continue
            stmt = text(f"SELECT id, name FROM {table} WHERE id IN :ids").bindparams(bindparam("ids", expanding=True))
            for r in db.execute(stmt, {"ids": ids}).mappings().all():
                names[(context_type, str(r["id"]))] = str(r["name"])
        return names

    def _users_by_id(self, db, user_ids: Iterable[str]) -> dict[str, dict[str, Any]]:
        ids = sorted({str(u) for u in user_ids})
        if not ids:
            return {}
        stmt = text(
            """
            SELECT u.id, u.first_name, u.last_name, u.email, p.profile_image_url
            FROM user_account u
            LEFT JOIN user_profile p ON p.user_id = u.id
            WHERE u.id IN :ids
            """
        ).bindparams(bindparam("ids", expanding=True))
        return {str(r["id"]): dict(r) for r in db.execute(stmt, {"ids": ids}).mappings().all()}

    def list_connections_for_user(self, user_id: str, status: str, *, received_only: bool = False) -> list[dict[str, Any]]:
        """Connections of ``user_id`` with the other party and the context name attached."""
        where = "target_id = :user_id" if received_only else "(requester_id = :user_id OR target_id = :user_id)"
        with self._session_factory() as db:
            rows = db.execute(
                text(
                    f"""
                    SELECT id, requester_id, target_id, context_type, context_id, status, created_at, updated_at
                    FROM connection
                    WHERE {where} AND status = :status
                    """
                ),
                {"user_id": user_id, "status": status},
            ).mappings().all()
            connections = [_connection_from_row(r) for r in rows]
            names = self._context_names(db, connections)
            users = self._users_by_id(db, [c.other_party(user_id) for c in connections])
        out: list[dict[str, Any]] = []
        for conn in connections:
            other = users.get(conn.other_party(user_id), {})
            out.append(
                {
                    "connection": conn,
                    "other_user": {
                        "id": conn.other_party(user_id),
                        "name": _display_name(other.get("first_name"), other.get("last_name")),
                        "email": other.get("email"),
                        "profile_image_url": other.get("profile_image_url"),
                    },
                    "context_name": names.get((conn.context.type, conn.context.id)) if conn.context else None,
                }
            )
        return out
