"""
Booking sync error taxonomy.

Every error carries a short machine code, the HTTP status the API layer should
answer with, and the raw upstream text when there is one.
"""

from typing import Optional


class SyncError(Exception):
    code = "sync_error"
    status_code = 500

    def __init__(self, message: str = "", raw_error: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.raw_error = raw_error
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "raw_error": self.raw_error}


class ValidationError(SyncError):
    """Malformed or incomplete payload. Never retried."""
    code = "validation_error"
    status_code = 400


class AuthFailed(SyncError):
    code = "auth_failed"
    status_code = 401


class AuthExpired(AuthFailed):
    """Refresh token rejected. Terminal until an operator re-authorizes."""
    code = "auth_expired"


class AuthTransientFailure(AuthFailed):
    """Auth failed after the single refresh-and-retry, or the auth endpoint was unreachable."""
    code = "auth_transient"
    status_code = 503


class UpstreamError(SyncError):
    code = "upstream_error"
    status_code = 502


class UpstreamRejected(UpstreamError):
    code = "upstream_rejected"


class RateLimited(UpstreamError):
    code = "rate_limited"
    status_code = 429


class NotFound(UpstreamError):
    code = "not_found"
    status_code = 404


class ServerError(UpstreamError):
    code = "server_error"


class WebhookProcessingError(SyncError):
    """Dispatch failed after the event was logged; it can be replayed."""
    code = "processing_failed"
    status_code = 500

    def __init__(self, message: str, event_id: str, cause: Optional[Exception] = None):
        super().__init__(message, raw_error=str(cause) if cause else None)
        self.event_id = event_id
        self.cause = cause
