"""
Content sanitization applied to every message before it is stored.
"""
import re

# Any '<' up to the next '>', or to the end of the text when unterminated
MARKUP_PATTERN = re.compile(r"<[^>]*>?")

JAVASCRIPT_SCHEME_PATTERN = re.compile(r"javascript:", re.IGNORECASE)

# Inline event handlers such as onclick= or onerror =
EVENT_HANDLER_PATTERN = re.compile(r"on\w+\s*=", re.IGNORECASE)

# C0 controls except tab and newline, DEL, and C1 controls
CONTROL_CHARS_PATTERN = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")

LINE_ENDING_PATTERN = re.compile(r"\r\n?")


def _strip_unsafe_patterns(text: str) -> str:
    # Removing one match can splice a new one together ("javajavascript:script:"),
    # so repeat until nothing changes.
    while True:
        stripped = JAVASCRIPT_SCHEME_PATTERN.sub("", text)
        stripped = EVENT_HANDLER_PATTERN.sub("", stripped)
        if stripped == text:
            return stripped
        text = stripped


def sanitize_content(content: str) -> str:
    """
    Remove markup and unsafe patterns from user supplied text.

    Args:
        content: Raw message text

    Returns:
        Text without tags, control characters or script vectors, with
        ``\\n`` line endings and no surrounding whitespace. The function is
        idempotent: sanitizing its own output returns it unchanged.
    """
    sanitized = LINE_ENDING_PATTERN.sub("\n", content)
    sanitized = CONTROL_CHARS_PATTERN.sub("", sanitized)

    sanitized = MARKUP_PATTERN.sub("", sanitized)
    sanitized = sanitized.replace("<", "&lt;").replace(">", "&gt;")

    sanitized = _strip_unsafe_patterns(sanitized)

    return sanitized.strip()
