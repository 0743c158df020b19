"""
Domain errors for match discovery and connection requests.

Validation and conflict errors are user-actionable and carry the HTTP status
the route layer answers with. ``CacheUnavailable`` never leaves the cache and
rate-limit services. Relational store failures are not wrapped here: SQLAlchemy
errors propagate as-is and the app answers them with 503.
"""


class MatchError(Exception):
    status_code = 400
    reason = "match_error"
    default_detail = "Request could not be completed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidContext(MatchError):
    reason = "invalid_context"
    default_detail = "Exactly one of course_id or topic_id must be provided"


class InvalidLimit(MatchError):
    reason = "invalid_limit"
    default_detail = "limit must be at least 1"


class InvalidAvailabilitySlot(MatchError):
    reason = "invalid_availability_slot"
    default_detail = "Availability slot is invalid"


class ContextNotAssociated(MatchError):
    status_code = 403
    reason = "context_not_associated"
    default_detail = "You are not enrolled in this course or topic"


class SelfTargetError(MatchError):
    reason = "self_target"
    default_detail = "Cannot send connection request to yourself"


class TargetNotFound(MatchError):
    status_code = 404
    reason = "target_not_found"
    default_detail = "Target user not found"


class AlreadyConnected(MatchError):
    status_code = 409
    reason = "already_connected"
    default_detail = "Already connected with this user"


class RequestPending(MatchError):
    status_code = 409
    reason = "request_pending"
    default_detail = "Connection request already pending"


class ConnectionNotFound(MatchError):
    status_code = 404
    reason = "connection_not_found"
    default_detail = "Connection not found"


class NotConnectionTarget(MatchError):
    status_code = 403
    reason = "not_connection_target"
    default_detail = "Only the recipient can respond to this connection request"


class ConnectionNotPending(MatchError):
    status_code = 409
    reason = "connection_not_pending"
    default_detail = "Connection request is not pending"


class CacheUnavailable(Exception):
    """Raised by key-value backends when the cache store cannot be reached."""
