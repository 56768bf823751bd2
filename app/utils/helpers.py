"""Shared parsing helpers for request payloads.

parse_date:      date-only fields (project start/target)
parse_datetime:  task due dates, always returned as aware UTC
parse_enum:      status/priority/role values, case-insensitive
parse_number:    hours and budget
parse_bool:      flags (is_completed, is_milestone)
"""
import logging
import re
from datetime import date, datetime, time, timezone

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY (European format)
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_datetime(value):
    """Parse an ISO timestamp (or bare date) into an aware UTC datetime.

    Naive input is taken to be UTC; a bare date becomes midnight UTC.
    Raises ValueError on anything unparseable so callers can reject it.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_enum(value) -> str:
    """Map ``InProgress`` / ``in-progress`` / ``IN_PROGRESS`` → ``in_progress``."""
    text = str(value).strip().replace("-", "_").replace(" ", "_")
    if not text.isupper() and not text.islower():
        text = _CAMEL_BOUNDARY.sub("_", text)
    return re.sub(r"_+", "_", text.lower())


def parse_enum(value, allowed):
    """Return the canonical member of *allowed* matching *value*, or None."""
    if value is None or value == "":
        return None
    candidate = normalize_enum(value)
    return candidate if candidate in allowed else None


def parse_number(value):
    """Parse an optional float. Raises ValueError for non-numeric input."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    return float(value)


_TRUE_WORDS = frozenset({"true", "1", "yes", "on"})
_FALSE_WORDS = frozenset({"false", "0", "no", "off"})


def parse_bool(value):
    """Parse a JSON boolean, 0/1 or a true/false word. Raises ValueError otherwise."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise ValueError(f"not a boolean: {value!r}")
