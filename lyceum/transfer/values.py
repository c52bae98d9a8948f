"""Scalar parsing and formatting for the sectioned text format."""

from __future__ import annotations

from datetime import datetime, timezone

DELIMITER = ","
QUOTE = '"'

# Unquoted tokens that mean "no value" in any field
BLANK_TOKENS = frozenset({"", "null"})
# Reference tokens naming a deleted account in older exports
DELETED_ACCOUNT_TOKENS = frozenset({"none", "已注销", "deleted"})
NULL_TIMESTAMP = "unknown"
NULL_TIMESTAMP_TOKENS = frozenset({"unknown", "未知时间"})

_TRUE_TOKENS = frozenset({"1", "true", "yes", "y", "on"})
_FALSE_TOKENS = frozenset({"0", "false", "no", "n", "off"})
_RESERVED_TOKENS = BLANK_TOKENS | DELETED_ACCOUNT_TOKENS | NULL_TIMESTAMP_TOKENS


class QuotedText(str):
    """A field that was quoted in the source; taken literally, never as a blank token."""


def clean(raw: object | None, *, reference: bool = False) -> str | None:
    """
    Return the trimmed token, or None when it is a blank token.

    Deleted-account tokens only blank ``reference`` tokens. Quoted fields keep
    their text as written; only an empty quoted field is blank.
    """
    if raw is None:
        return None
    if isinstance(raw, QuotedText):
        return raw if raw else None
    text = str(raw).strip()
    lowered = text.lower()
    if lowered in BLANK_TOKENS or (reference and lowered in DELETED_ACCOUNT_TOKENS):
        return None
    return text


def parse_int(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        number = float(text)
        if not number.is_integer():
            raise
        return int(number)


def parse_bool(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered in _TRUE_TOKENS:
        return True
    if lowered in _FALSE_TOKENS:
        return False
    raise ValueError(f"not a boolean: {text!r}")


def parse_datetime(text: str) -> datetime | None:
    """Parse an ISO-8601 timestamp; the null sentinels map to None."""
    if text.strip().lower() in NULL_TIMESTAMP_TOKENS:
        return None
    value = datetime.fromisoformat(text.strip())
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def format_datetime(value: datetime | None) -> str:
    if value is None:
        return NULL_TIMESTAMP
    if isinstance(value, str):
        return value
    return value.isoformat()


def format_bool(value: object | None) -> str:
    if value is None:
        return ""
    return "1" if bool(value) else "0"


def _needs_quotes(text: str) -> bool:
    if any(ch in text for ch in (DELIMITER, QUOTE, "\r", "\n")):
        return True
    # Surrounding whitespace is trimmed from unquoted fields
    if text != text.strip():
        return True
    return text.lower() in _RESERVED_TOKENS


def quote_field(value: object | None) -> str:
    """
    Quote a field when it holds the delimiter, a quote or a line break, has
    surrounding whitespace, or would otherwise read back as a blank token.
    """
    if value is None:
        return ""
    text = str(value)
    if text and _needs_quotes(text):
        return QUOTE + text.replace(QUOTE, QUOTE * 2) + QUOTE
    return text
