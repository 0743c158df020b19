"""
Authentication dependencies for FastAPI.

Tokens are issued by the account service; this API only verifies them.
Supports two auth modes:
1. Cookie-based session (primary for web): httpOnly cookie contains access token
2. Bearer token (API clients): Authorization header with Bearer token
"""

import logging
import uuid
from typing import Any

from fastapi import Cookie, Header, HTTPException, Request
from pydantic import BaseModel

from studybuddy.auth.security import decode_access_token
from studybuddy.config import DEV_MODE

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "studybuddy_session"


class AuthErrorDetail(BaseModel):
    message: str = "unauthorized"
    reason: str
    trace_id: str


def _log_auth_failure(
    reason: str,
    trace_id: str,
    auth_source: str | None = None,
    token_prefix: str | None = None,
    user_id: str | None = None,
) -> None:
    log_data = {
        "trace_id": trace_id,
        "reason": reason,
        "auth_source": auth_source,
        "token_prefix": token_prefix,
        "resolved_user_id": user_id,
    }
    logger.warning(f"[AUTH_FAILURE] {log_data}")


def _unauthorized(reason: str, trace_id: str, message: str = "unauthorized", status_code: int = 401) -> HTTPException:
    if DEV_MODE:
        detail: Any = AuthErrorDetail(message=message, reason=reason, trace_id=trace_id).model_dump()
    else:
        detail = {"message": message, "trace_id": trace_id}
    return HTTPException(status_code=status_code, detail=detail)


def _extract_bearer(authorization: str) -> str | None:
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        return None
    return parts[1].strip()


def _validate_token_and_get_user(request: Request, token: str, trace_id: str, auth_source: str) -> dict[str, Any]:
    token_prefix = token[:8] + "..." if len(token) > 8 else token
    try:
        payload = decode_access_token(token)
    except HTTPException as e:
        reason = "token_expired" if "expired" in str(e.detail).lower() else "signature_invalid"
        _log_auth_failure(reason, trace_id, auth_source, token_prefix)
        raise _unauthorized(reason, trace_id)

    user_id = str(payload.get("sub", "") or "")
    if not user_id:
        _log_auth_failure("token_missing_subject", trace_id, auth_source, token_prefix)
        raise _unauthorized("token_missing_subject", trace_id)

    user = request.app.state.store.get_user(user_id)
    if not user:
        _log_auth_failure("token_user_not_found", trace_id, auth_source, token_prefix, user_id)
        raise _unauthorized("token_user_not_found", trace_id)
    if not user.get("is_active"):
        _log_auth_failure("account_inactive", trace_id, auth_source, token_prefix, user_id)
        raise _unauthorized("account_inactive", trace_id, message="Account disabled", status_code=403)

    logger.debug(f"[auth] SUCCESS user_id={user_id} source={auth_source}")
    return {
        "id": str(user["id"]),
        "email": user.get("email"),
        "is_verified": bool(user.get("is_verified")),
    }


def get_current_user(
    request: Request,
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE_NAME),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """
    Get current user from cookie session or bearer token.

    Priority:
    1. Cookie session token
    2. Bearer token in Authorization header
    """
    trace_id = str(uuid.uuid4())

    if session_token:
        return _validate_token_and_get_user(request, session_token, trace_id, "cookie")

    if authorization:
        token = _extract_bearer(authorization)
        if not token:
            _log_auth_failure("malformed_token", trace_id, auth_source="bearer")
            raise _unauthorized("malformed_token", trace_id, message="Invalid Authorization header")
        return _validate_token_and_get_user(request, token, trace_id, "bearer")

    _log_auth_failure("missing_token", trace_id, auth_source="none")
    raise _unauthorized("missing_token", trace_id, message="Authentication required")
