"""Deterministic parsing of digest delivery times typed by users.

NO timezone handling here: the result is a wall-clock time; the user's
timezone is stored separately and applied by the digest scheduler.
"""

import re

# "8am", "8:30 pm", "12:00AM"
_TWELVE_HOUR = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*(am|pm)$", re.IGNORECASE)

# "18:00", "8:05"
_TWENTY_FOUR_HOUR = re.compile(r"^(\d{1,2}):(\d{2})$")

_WHITESPACE = re.compile(r"\s+")


def _canonical(hours: int, minutes: int) -> str:
    return f"{hours:02d}:{minutes:02d}:00"


def parse_digest_time(text: str) -> str | None:
    """Parse a free-text time into canonical ``HH:MM:00``.

    Accepts 12-hour ("8am", "8:30 PM", "12 am") and 24-hour ("18:00", "0:05")
    forms. Returns None for anything else or out-of-range values, in which
    case the caller re-prompts.

    >>> parse_digest_time("8am")
    '08:00:00'
    >>> parse_digest_time("25:00") is None
    True
    """
    cleaned = _WHITESPACE.sub(" ", (text or "").strip().lower())

    match = _TWELVE_HOUR.match(cleaned)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2) or "0")
        period = match.group(3).lower()

        if hours < 1 or hours > 12 or minutes > 59:
            return None

        if period == "pm" and hours != 12:
            hours += 12
        if period == "am" and hours == 12:
            hours = 0
        return _canonical(hours, minutes)

    match = _TWENTY_FOUR_HOUR.match(cleaned)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2))
        if hours > 23 or minutes > 59:
            return None
        return _canonical(hours, minutes)

    return None


def _split(canonical: str) -> tuple[int, int]:
    parts = canonical.split(":")
    if len(parts) < 2:
        raise ValueError(f"not a canonical time: {canonical!r}")
    return int(parts[0]), int(parts[1])


def format_12h(canonical: str) -> str:
    """``HH:MM[:SS]`` -> ``H:MM AM/PM`` (e.g. ``19:05:00`` -> ``7:05 PM``)."""
    hours, minutes = _split(canonical)
    period = "AM" if hours < 12 else "PM"
    display = hours % 12 or 12
    return f"{display}:{minutes:02d} {period}"


def format_24h(canonical: str) -> str:
    """``HH:MM[:SS]`` -> ``HH:MM``."""
    hours, minutes = _split(canonical)
    return f"{hours:02d}:{minutes:02d}"
