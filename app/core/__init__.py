"""Core module exports."""

from .exceptions import (
    MessagingError,
    ValidationError,
    RateLimitedError,
    TransportError,
    UploadError,
    NotFoundError,
    PermissionDeniedError,
)
from .rate_limiter import PairRateLimiter, RateLimitDecision, get_rate_limiter
from .security import (
    create_access_token,
    decode_token,
    get_token_subject,
    ALGORITHM,
)

__all__ = [
    "MessagingError",
    "ValidationError",
    "RateLimitedError",
    "TransportError",
    "UploadError",
    "NotFoundError",
    "PermissionDeniedError",
    "PairRateLimiter",
    "RateLimitDecision",
    "get_rate_limiter",
    "create_access_token",
    "decode_token",
    "get_token_subject",
    "ALGORITHM",
]
