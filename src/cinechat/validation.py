"""Input validation and sanitisation for questions, titles and uploads.

Every rejection raises ``cinechat.errors.ValidationError``. Accepted text is
returned HTML-escaped, stripped of control characters and with whitespace
runs collapsed.
"""

from __future__ import annotations

import html
import re
from pathlib import PurePath

from cinechat.errors import ValidationError

MIN_QUESTION_LENGTH = 3
MAX_QUESTION_LENGTH = 1000
MAX_TITLE_LENGTH = 200
MAX_FILENAME_LENGTH = 255

_FLAGS = re.IGNORECASE | re.DOTALL

_XSS_PATTERNS = [
    re.compile(p, _FLAGS)
    for p in (
        r"<script[^>]*>.*?</script>",
        r"javascript:",
        r"data:text/html",
        r"vbscript:",
        r"onload\s*=",
        r"onerror\s*=",
        r"onclick\s*=",
        r"<iframe[^>]*>",
        r"<object[^>]*>",
        r"<embed[^>]*>",
        r"<link[^>]*>",
        r"<meta[^>]*>",
        r"eval\s*\(",
        r"document\.",
        r"window\.",
    )
]

_SQL_INJECTION_PATTERNS = [
    re.compile(p, _FLAGS)
    for p in (
        r"union\s+select|select\s+.*\s+from|insert\s+into|delete\s+from|update\s+.*\s+set",
        r"drop\s+table|drop\s+database|truncate\s+table",
        r"exec\s*\(|execute\s*\(|sp_executesql",
        r";|\s+or\s+1\s*=\s*1|'\s*or\s*'1'\s*=\s*'1",
    )
]

_COMMAND_INJECTION_PATTERNS = [
    re.compile(p, _FLAGS)
    for p in (
        r"&&|\|\||;|\||`",
        r"rm\s+-rf|del\s+/|format\s+c:",
        r"wget\s+|curl\s+|nc\s+|netcat\s+",
        r"\$\(|\$\{",
    )
]

_PROMPT_INJECTION_PATTERNS = [
    re.compile(p, _FLAGS)
    for p in (
        r"(bỏ\s+qua|ignore).*?(hướng\s+dẫn|instructions?|previous|above)",
        r"(disregard|forget).*?(instructions?|above|previous|system)",
        r"(trả\s+về|return).*?(toàn\s+bộ|all).*?(hướng\s+dẫn|prompt|instructions?)",
        r"(đặc\s+biệt|special|important).*?(bỏ\s+qua|ignore|skip)",
        r"system\s+(prompt|instructions?|role)",
        r"reveal.*?(prompt|instructions?|system)",
        r"show.*?(prompt|instructions?|system)",
        r"tell\s+me.*?(prompt|instructions?|system)",
        r"(override|bypass|circumvent).*?(security|safety|instructions?)",
        r"act\s+as.*?(different|another|new)\s+(role|character|assistant)",
        r"pretend.*?(you\s+are|to\s+be).*?(different|another|new)",
        r"you\s+are\s+now.*?(jailbreak|unrestricted|without\s+limits)",
        r"(simulation|roleplay|game)\s+mode",
        r"developer\s+(mode|override|access)",
        r"---+\s*(end|stop|break|terminate)",
        r"end\s+of\s+prompt|prompt\s+ends?\s+here",
        r"skip.*?(hướng\s+dẫn|instructions?|above|previous)",
        r"(tối\s+cao|supreme|highest).*?(yêu\s+cầu|request|command)",
    )
]

_TITLE_PATTERNS = [
    re.compile(p, _FLAGS)
    for p in (
        r"<script[^>]*>.*?</script>",
        r"javascript:",
        r"onload\s*=",
        r"onerror\s*=",
    )
]

_QUESTION_PATTERNS = (
    _XSS_PATTERNS
    + _SQL_INJECTION_PATTERNS
    + _COMMAND_INJECTION_PATTERNS
    + _PROMPT_INJECTION_PATTERNS
)

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE_RE = re.compile(r"\s+")
_FILENAME_DANGEROUS = ("/", "\\", "..", ":", "*", "?", '"', "<", ">", "|", "\x00")


def validate_question(question: str | None) -> str:
    """Check *question* and return its sanitised form.

    Raises:
        ValidationError: If empty, shorter than 3 or longer than 1000
            characters, or if it matches an injection pattern.
    """
    text = (question or "").strip()
    if not text:
        raise ValidationError("Question is empty", action="validate question")
    if len(text) < MIN_QUESTION_LENGTH:
        raise ValidationError("Question is too short", action="validate question")
    if len(text) > MAX_QUESTION_LENGTH:
        raise ValidationError(
            f"Question exceeds {MAX_QUESTION_LENGTH} characters", action="validate question"
        )
    _reject_matches(text, _QUESTION_PATTERNS, "validate question")
    return sanitize_text(text)


def validate_title(title: str | None) -> str:
    """Check a document title (≤ 200 characters, no script injection)."""
    text = (title or "").strip()
    if not text:
        raise ValidationError("Title is empty", action="validate title")
    if len(text) > MAX_TITLE_LENGTH:
        raise ValidationError(
            f"Title exceeds {MAX_TITLE_LENGTH} characters", action="validate title"
        )
    _reject_matches(text, _TITLE_PATTERNS, "validate title")
    return sanitize_text(text)


def sanitize_text(text: str) -> str:
    """HTML-escape, drop control characters, and collapse whitespace."""
    text = html.escape(text)
    text = strip_control_characters(text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def strip_control_characters(text: str) -> str:
    """Remove control characters except tab, newline and carriage return."""
    return _CONTROL_CHARS_RE.sub("", text)


def is_allowed_extension(filename: str, allowed_extensions: tuple[str, ...] | list[str]) -> bool:
    """True if *filename* ends in one of *allowed_extensions* (case-insensitive)."""
    if not filename:
        return False
    ext = PurePath(filename).suffix.lower()
    if not ext:
        return False
    return ext in {e.lower() for e in allowed_extensions}


def sanitize_filename(filename: str) -> str:
    """Replace path separators and shell metacharacters so *filename* is a safe leaf name."""
    sanitized = filename
    for token in _FILENAME_DANGEROUS:
        sanitized = sanitized.replace(token, "_")
    sanitized = sanitized[:MAX_FILENAME_LENGTH]
    sanitized = sanitized.removeprefix(".").removeprefix("-")
    return sanitized or "unnamed_file"


def clamp_pagination(
    limit: int | None,
    offset: int | None,
    *,
    default_limit: int = 10,
    max_limit: int = 100,
    default_offset: int = 0,
) -> tuple[int, int]:
    """Return a usable ``(limit, offset)`` pair.

    Missing or non-positive limits fall back to *default_limit*; limits above
    *max_limit* are capped. A negative offset is a ValidationError.
    """
    if limit is None or limit <= 0:
        limit = default_limit
    limit = min(limit, max_limit)
    if offset is None:
        offset = default_offset
    if offset < 0:
        raise ValidationError(f"offset must be >= 0, got {offset}", action="paginate")
    return limit, offset


def _reject_matches(text: str, patterns: list[re.Pattern[str]], action: str) -> None:
    for pattern in patterns:
        if pattern.search(text):
            raise ValidationError("Input contains suspicious content", action=action)
