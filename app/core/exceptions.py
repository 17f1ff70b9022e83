"""Custom exceptions for the messaging core.

Service functions raise these; ``app.main`` maps them to JSON responses and
the client state machines turn them into inline UI state.
"""

from typing import Optional

from fastapi import status


class MessagingError(Exception):
    """Base exception for every messaging failure surfaced to a caller."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "messaging_error"
    default_detail: str = "Messaging request failed"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {"detail": self.detail, "code": self.code}


class ValidationError(MessagingError):
    """Empty content, missing media URL, or an attempt to message yourself.

    Rejected before any store call and never retried automatically.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"
    default_detail = "Invalid message"


class RateLimitedError(MessagingError):
    """
    Raised when a sender exceeds the send budget toward one recipient.

    Carries the limiter's human-readable reason. ``retry_after`` is only a
    hint for the UI; the core never schedules a retry.

    Status Code: 429 Too Many Requests
    """

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "rate_limited"
    default_detail = "You are sending messages too quickly"

    def __init__(self, detail: Optional[str] = None, retry_after: Optional[int] = None):
        super().__init__(detail)
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.retry_after is not None:
            data["retry_after"] = self.retry_after
        return data


class TransportError(MessagingError):
    """Network or backend failure (including timeouts) on any async operation."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "transport_error"
    default_detail = "Messaging backend unavailable, please try again"


class UploadError(MessagingError):
    """Media upload failed; no message or sticker was created."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "upload_error"
    default_detail = "Upload failed"


class NotFoundError(MessagingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_detail = "Not found"


class PermissionDeniedError(MessagingError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "permission_denied"
    default_detail = "You do not have access to this resource"


__all__ = [
    "MessagingError",
    "ValidationError",
    "RateLimitedError",
    "TransportError",
    "UploadError",
    "NotFoundError",
    "PermissionDeniedError",
]
