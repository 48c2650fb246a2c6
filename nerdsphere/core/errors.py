"""
Error taxonomy for the submission pipeline.

Validation and rate-limit errors are expected, user-recoverable conditions and
carry a message that is safe to show verbatim. Store errors keep their detail
in the logs and show a generic message.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    MISSING_FIELD = "MissingField"
    EMPTY_CONTENT = "EmptyContent"
    TOO_LONG = "TooLong"
    SPAM_PATTERN = "SpamPattern"
    RATE_LIMITED = "RateLimited"
    STORE_UNAVAILABLE = "StoreUnavailable"
    UNAUTHORIZED = "Unauthorized"
    UNKNOWN = "Unknown"


class ChatError(Exception):
    """Base class for errors rendered as ``{"success": false, "error": ...}``."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message, "kind": self.kind.value}


class MissingFieldError(ChatError):
    kind = ErrorKind.MISSING_FIELD
    status_code = 400
    default_message = "Content and fingerprint are required"


class EmptyContentError(ChatError):
    kind = ErrorKind.EMPTY_CONTENT
    status_code = 400
    default_message = "Message cannot be empty"


class TooLongError(ChatError):
    kind = ErrorKind.TOO_LONG
    status_code = 400
    default_message = "Message too long (max 500 characters)"


class SpamPatternError(ChatError):
    kind = ErrorKind.SPAM_PATTERN
    status_code = 400
    default_message = "Message appears to be spam"


class RateLimitedError(ChatError):
    kind = ErrorKind.RATE_LIMITED
    status_code = 429

    def __init__(self, remaining_seconds: int):
        self.remaining_seconds = remaining_seconds
        super().__init__(f"Rate limit exceeded. Please wait {remaining_seconds} seconds.")

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["remainingSeconds"] = self.remaining_seconds
        return payload


class StoreUnavailableError(ChatError):
    kind = ErrorKind.STORE_UNAVAILABLE
    status_code = 500
    default_message = "Database error"


class UnauthorizedError(ChatError):
    kind = ErrorKind.UNAUTHORIZED
    status_code = 401
    default_message = "Unauthorized"


def error_from_payload(status_code: int, payload: Dict[str, Any]) -> ChatError:
    """Rebuild the error described by an ``{"success": false, ...}`` response body."""
    message = payload.get("error") or None
    try:
        kind = ErrorKind(payload.get("kind"))
    except ValueError:
        kind = ErrorKind.RATE_LIMITED if status_code == 429 else ErrorKind.UNKNOWN

    if kind is ErrorKind.RATE_LIMITED:
        return RateLimitedError(int(payload.get("remainingSeconds") or 0))

    error_classes = {
        ErrorKind.MISSING_FIELD: MissingFieldError,
        ErrorKind.EMPTY_CONTENT: EmptyContentError,
        ErrorKind.TOO_LONG: TooLongError,
        ErrorKind.SPAM_PATTERN: SpamPatternError,
        ErrorKind.STORE_UNAVAILABLE: StoreUnavailableError,
        ErrorKind.UNAUTHORIZED: UnauthorizedError,
    }
    error = error_classes.get(kind, ChatError)(message)
    error.status_code = status_code
    return error
