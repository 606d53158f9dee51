"""
Shared number and date extraction helpers for the regimen interpreter.

Design principles:
- Every helper is total: malformed input degrades to a documented default
- No helper reads the system clock (reference time is always an argument)
- Patterns are compiled once at import time and never mutated

Documented defaults:
- Frequency: 1 dose per day
- Duration: 7 days
- Dosage: 1 unit per dose

Counts outside the plausible range (zero, negative, more than
MAX_TIMES_PER_DAY doses a day, courses longer than MAX_DURATION_DAYS) are
malformed and take the default as well.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional, Union
import logging
import re

logger = logging.getLogger(__name__)


DEFAULT_FREQUENCY = 1
DEFAULT_DURATION_DAYS = 7
DEFAULT_DOSAGE = 1

DAYS_PER_WEEK = 7
DAYS_PER_MONTH = 30

MAX_TIMES_PER_DAY = 24
MAX_DURATION_DAYS = 3650

WORD_NUMBERS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12,
}

# Alternation of spelled-out counts, shared with the classifier rule table
WORD_NUMBER_PATTERN = "|".join(WORD_NUMBERS)

DateLike = Union[date, datetime]

# (?<!\d) anchors numbers at the start of a digit run so long runs are scanned once
_FREQUENCY_RE = re.compile(r"(?<!\d)(\d+)\s*(?:times?|x)", re.IGNORECASE)
_WEEKS_RE = re.compile(r"(?<!\d)(\d+)\s*(?:week|wk)s?", re.IGNORECASE)
_DAYS_RE = re.compile(r"(?<!\d)(\d+)\s*days?", re.IGNORECASE)
_MONTHS_RE = re.compile(r"(?<!\d)(\d+)\s*months?", re.IGNORECASE)
_WORD_DURATION_RE = re.compile(
    rf"\b({WORD_NUMBER_PATTERN})\s+(?:more\s+)?(days?|weeks?|months?)\b",
    re.IGNORECASE
)
_WORD_FREQUENCY = (
    (re.compile(r"\bonce\b", re.IGNORECASE), 1),
    (re.compile(r"\btwice\b", re.IGNORECASE), 2),
    (re.compile(r"\bthrice\b", re.IGNORECASE), 3),
)

_TOMORROW_RE = re.compile(
    r"(?:start(?:ing)?\s+)?tomorrow|next\s+day|beginning\s+tomorrow",
    re.IGNORECASE
)
_TODAY_RE = re.compile(
    r"(?:start(?:ing)?\s+)?\btoday\b|\bnow\b|\bimmediately\b",
    re.IGNORECASE
)


def safe_int(value: Any, default: int, maximum: Optional[int] = None) -> int:
    """
    Parse a positive integer, falling back to default.

    Zero and negative counts are treated as malformed: a phase always has
    at least one dose per day and at least one unit per dose. So are
    counts above maximum, when one is given.
    """
    if value is None:
        return default
    try:
        parsed = int(str(value).strip())
    except (ValueError, TypeError):
        return default
    if parsed <= 0:
        return default
    if maximum is not None and parsed > maximum:
        logger.debug(f"Count {parsed} exceeds {maximum}, using {default}")
        return default
    return parsed


def safe_frequency(value: Any) -> int:
    """Doses per day in [1, MAX_TIMES_PER_DAY], else DEFAULT_FREQUENCY."""
    return safe_int(value, DEFAULT_FREQUENCY, MAX_TIMES_PER_DAY)


def count_to_days(count: Any, unit_days: int) -> int:
    """
    count units of unit_days each, in days.

    Malformed counts and courses longer than MAX_DURATION_DAYS give
    DEFAULT_DURATION_DAYS.
    """
    parsed = safe_int(count, 0, MAX_DURATION_DAYS // unit_days)
    if parsed == 0:
        return DEFAULT_DURATION_DAYS
    return parsed * unit_days


def as_datetime(value: DateLike) -> datetime:
    """Promote a calendar date to midnight; datetimes pass through."""
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, datetime.min.time())


def as_date(value: DateLike) -> date:
    """Calendar day of a date or datetime."""
    if isinstance(value, datetime):
        return value.date()
    return value


def align_tz(value: datetime, like: datetime) -> datetime:
    """
    Make value comparable with like.

    Aware values are converted to UTC and stripped when like is naive;
    naive values borrow like's tzinfo when like is aware.
    """
    if like.tzinfo is None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    if like.tzinfo is not None and value.tzinfo is None:
        return value.replace(tzinfo=like.tzinfo)
    return value


def add_days(start: datetime, days: int) -> datetime:
    """
    start + days, never past the datetime range.

    An end beyond year 9999 falls back to DEFAULT_DURATION_DAYS, and to
    start itself when even that does not fit.
    """
    for candidate in (days, DEFAULT_DURATION_DAYS, 0):
        try:
            return start + timedelta(days=candidate)
        except OverflowError:
            logger.debug(f"{candidate} days after {start.isoformat()} is out of range")
    return start


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a storage timestamp.

    Accepts datetime/date objects, ISO-8601 strings (a trailing "Z" is
    read as UTC) and epoch seconds. Anything else yields None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return as_datetime(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            logger.debug(f"Unparseable timestamp {value!r}, ignoring")
            return None
    return None


def extract_frequency(text: str) -> int:
    """
    Doses per day from the first "N times" / "Nx" mention.

    Falls back to once/twice/thrice wording, then to DEFAULT_FREQUENCY.
    """
    text = text or ""
    match = _FREQUENCY_RE.search(text)
    if match:
        return safe_frequency(match.group(1))

    for pattern, count in _WORD_FREQUENCY:
        if pattern.search(text):
            return count

    return DEFAULT_FREQUENCY


def extract_duration_days(text: str) -> Optional[int]:
    """
    Duration in days from the first week count, else the first day count.

    Month counts and spelled-out counts ("two weeks") are consulted only
    when no numeric week/day count is present. Returns None when the text
    carries no duration at all so callers can apply their own default.
    """
    text = text or ""

    match = _WEEKS_RE.search(text)
    if match:
        return count_to_days(match.group(1), DAYS_PER_WEEK)

    match = _DAYS_RE.search(text)
    if match:
        return count_to_days(match.group(1), 1)

    match = _MONTHS_RE.search(text)
    if match:
        return count_to_days(match.group(1), DAYS_PER_MONTH)

    match = _WORD_DURATION_RE.search(text)
    if match:
        count = WORD_NUMBERS[match.group(1).lower()]
        unit = match.group(2).lower()
        if unit.startswith("week"):
            return count * DAYS_PER_WEEK
        if unit.startswith("month"):
            return count * DAYS_PER_MONTH
        return count

    return None


def resolve_start_date(
    instructions: str,
    reference_date: DateLike,
    start_date: Optional[DateLike] = None,
    created_at: Optional[DateLike] = None
) -> datetime:
    """
    Decide when a regimen begins.

    Priority:
    1. "tomorrow" / "next day" in the text: reference date + 1 day
    2. "today" / "now" / "immediately" in the text: reference date
    3. Explicit start date field
    4. Record creation time
    5. Reference date
    """
    instructions = instructions or ""
    reference = as_datetime(reference_date)

    if _TOMORROW_RE.search(instructions):
        return add_days(reference, 1)
    if _TODAY_RE.search(instructions):
        return reference
    if start_date is not None:
        return align_tz(as_datetime(start_date), reference)
    if created_at is not None:
        return align_tz(as_datetime(created_at), reference)
    return reference
