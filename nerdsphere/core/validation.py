"""
Business rules for message content.
"""
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from nerdsphere.core.errors import (
    ChatError,
    EmptyContentError,
    ErrorKind,
    SpamPatternError,
    TooLongError,
)

MAX_CONTENT_LENGTH = 500
SPAM_RUN_LENGTH = 50


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None

    def to_error(self) -> Optional[ChatError]:
        """The exception matching this result, or None when valid."""
        if self.valid:
            return None
        if self.error_kind is ErrorKind.EMPTY_CONTENT:
            return EmptyContentError(self.error)
        if self.error_kind is ErrorKind.TOO_LONG:
            return TooLongError(self.error)
        return SpamPatternError(self.error)


@lru_cache(maxsize=8)
def _spam_pattern(run_length: int) -> re.Pattern:
    # One character followed by run_length - 1 copies of itself
    return re.compile(r"(.)\1{%d,}" % (run_length - 1), re.DOTALL)


def validate_content(
    content: Optional[str],
    max_length: int = MAX_CONTENT_LENGTH,
    spam_run_length: int = SPAM_RUN_LENGTH,
) -> ValidationResult:
    """
    Validate sanitized message content.

    Checks run in a fixed order and the first failure wins:
    empty or whitespace only, longer than ``max_length`` characters,
    then any character repeated ``spam_run_length`` or more times in a row.
    """
    if not content or not content.strip():
        return ValidationResult(False, ErrorKind.EMPTY_CONTENT, "Message cannot be empty")

    if len(content) > max_length:
        return ValidationResult(
            False, ErrorKind.TOO_LONG, f"Message too long (max {max_length} characters)"
        )

    if _spam_pattern(spam_run_length).search(content):
        return ValidationResult(False, ErrorKind.SPAM_PATTERN, "Message appears to be spam")

    return ValidationResult(True)
