"""Comment content sanitization and validation.

Sanitization removes markup and script vectors so the text can be shown
as-is; validation then checks length limits, known unsafe references and
a repetition-based spam heuristic.
"""

import re
from typing import NamedTuple


# ==============================================================================
# Constants for validation rules
# ==============================================================================

MIN_CONTENT_LENGTH = 1
MAX_CONTENT_LENGTH = 500

_TAG_PATTERN = re.compile(r"<[^>]*>")
_SCRIPT_PROTOCOL_PATTERN = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER_PATTERN = re.compile(r"on\w+\s*=", re.IGNORECASE)
_EXCESS_LINE_BREAKS = re.compile(r"\n{3,}")

# Single pass, so "&" in an entity produced here is never escaped again
_ESCAPES = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&#x27;",
        "/": "&#x2F;",
    }
)

# Checked against the raw input, before sanitization hides them
UNSAFE_PATTERNS = (
    re.compile(r"data:\s*text/html", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
    re.compile(r"livescript:", re.IGNORECASE),
    re.compile(r"mocha:", re.IGNORECASE),
    re.compile(r"charset\s*=", re.IGNORECASE),
    re.compile(r"document\.(cookie|write|domain)", re.IGNORECASE),
    re.compile(r"window\.(location|open)", re.IGNORECASE),
)

# A chunk of 3+ characters followed by 4+ copies of itself (5+ in a row)
REPETITION_PATTERN = re.compile(r"(.{3,}?)\1{4,}")

EMPTY_CONTENT_MESSAGE = "Comment content cannot be empty"
UNSAFE_CONTENT_MESSAGE = "Content contains potentially unsafe elements"
SPAM_CONTENT_MESSAGE = "Content appears to be spam (excessive repetition detected)"


class ContentValidationResult(NamedTuple):
    """Result of validating a comment body."""

    is_valid: bool
    errors: list[str]
    sanitized: str


def sanitize_input(value: str) -> str:
    """Strip tags, escape special characters and remove script vectors.

    Examples:
        >>> sanitize_input("<b>hi</b> there")
        'hi there'
        >>> sanitize_input("a & b")
        'a &amp; b'
    """
    if not value or not isinstance(value, str):
        return ""

    text = _TAG_PATTERN.sub("", value)
    text = text.translate(_ESCAPES)
    text = _SCRIPT_PROTOCOL_PATTERN.sub("", text)
    text = _EVENT_HANDLER_PATTERN.sub("", text)
    return text.strip()


def sanitize_comment_content(content: str) -> str:
    """Sanitize comment content, keeping at most one blank line in a row."""
    if not content or not isinstance(content, str):
        return ""

    sanitized = sanitize_input(content)
    sanitized = sanitized.replace("\r\n", "\n").replace("\r", "\n")
    return _EXCESS_LINE_BREAKS.sub("\n\n", sanitized)


def has_unsafe_pattern(content: str) -> bool:
    """Check raw content for script or navigation references."""
    return any(pattern.search(content) for pattern in UNSAFE_PATTERNS)


def is_repetitive_spam(content: str) -> bool:
    """Check for a substring of 3+ characters repeated 5+ times in a row."""
    return REPETITION_PATTERN.search(content) is not None


def validate_comment_content(
    content: str,
    min_length: int = MIN_CONTENT_LENGTH,
    max_length: int = MAX_CONTENT_LENGTH,
) -> ContentValidationResult:
    """Sanitize and validate a comment body.

    Lengths are measured on the sanitized text, which is what gets sent
    to the remote service and shown to other users.

    Args:
        content: Raw text as typed by the user
        min_length: Minimum sanitized length
        max_length: Maximum sanitized length

    Returns:
        ContentValidationResult with every failed rule listed in errors

    Examples:
        >>> validate_comment_content("Hello").is_valid
        True
        >>> validate_comment_content("   ").errors[0]
        'Comment content cannot be empty'
    """
    errors: list[str] = []
    raw = content if isinstance(content, str) else ""
    sanitized = sanitize_comment_content(raw)

    if not sanitized.strip():
        errors.append(EMPTY_CONTENT_MESSAGE)

    if len(sanitized) > max_length:
        errors.append(f"Comment cannot exceed {max_length} characters")

    if len(sanitized) < min_length:
        errors.append(f"Comment must be at least {min_length} character long")

    if has_unsafe_pattern(raw):
        errors.append(UNSAFE_CONTENT_MESSAGE)

    if is_repetitive_spam(sanitized):
        errors.append(SPAM_CONTENT_MESSAGE)

    return ContentValidationResult(
        is_valid=not errors, errors=errors, sanitized=sanitized
    )
