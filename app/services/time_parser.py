# app/services/time_parser.py
"""
Date and time normalisation for pass log cells.

The log holds times written by different writers over the years:
"2:30 PM" (the normal format), "14:30" (24-hour), full ISO timestamps,
and structured datetime/time values from direct DB access.
parse_time() is the only place that branches on representation; everything
downstream works with ParsedTime.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional, Union

from app.exceptions import DataAnomaly

AMPM_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*(AM|PM)$", re.IGNORECASE)
H24_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}")
SLASH_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")

MORNING = "morning"
AFTERNOON = "afternoon"

TimeValue = Union[str, datetime, time, "ParsedTime"]


@dataclass(frozen=True, order=True)
class ParsedTime:
    """Wall-clock time of day, minute precision."""
    hour: int      # 0-23
    minute: int

    @property
    def label(self) -> str:
        """12-hour label as written to the log, e.g. "9:05 AM"."""
        ampm = "PM" if self.hour >= 12 else "AM"
        hour12 = self.hour % 12 or 12
        return f"{hour12}:{self.minute:02d} {ampm}"

    def period(self, cutoff_hour: int = 12) -> str:
        return period_for_hour(self.hour, cutoff_hour)

    def __str__(self):
        return self.label


def period_for_hour(hour: int, cutoff_hour: int = 12) -> str:
    return MORNING if hour < cutoff_hour else AFTERNOON


def _local(dt: datetime) -> datetime:
    """Aware timestamps are read on the local wall clock; naive ones already are."""
    return dt.astimezone() if dt.tzinfo is not None else dt


def parse_time(value: TimeValue) -> ParsedTime:
    """
    Normalise a log time cell into a ParsedTime.
    Raises DataAnomaly if the value is empty or in no known format.
    """
    if isinstance(value, ParsedTime):
        return value
    if isinstance(value, datetime):
        value = _local(value)
    if isinstance(value, (datetime, time)):
        return ParsedTime(value.hour, value.minute)
    if value is None:
        raise DataAnomaly("Time value is empty")

    text = str(value).strip()
    if not text:
        raise DataAnomaly("Time value is empty")

    if ISO_RE.match(text):
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise DataAnomaly(f"Invalid ISO timestamp: {text!r}")
        dt = _local(dt)
        return ParsedTime(dt.hour, dt.minute)

    m = AMPM_RE.match(text)
    if m:
        hours, minutes, ampm = int(m.group(1)), int(m.group(2)), m.group(3).upper()
        if not 1 <= hours <= 12 or not 0 <= minutes <= 59:
            raise DataAnomaly(f"Invalid time components in {text!r}")
        if ampm == "AM" and hours == 12:
            hours = 0
        elif ampm == "PM" and hours != 12:
            hours += 12
        return ParsedTime(hours, minutes)

    m = H24_RE.match(text)
    if m:
        hours, minutes = int(m.group(1)), int(m.group(2))
        if not 0 <= hours <= 23 or not 0 <= minutes <= 59:
            raise DataAnomaly(f"Invalid time components in {text!r}")
        return ParsedTime(hours, minutes)

    raise DataAnomaly(f"Time {text!r} doesn't match 'H:MM AM/PM', 'HH:MM' or ISO format")


def parse_optional_time(value) -> Optional[ParsedTime]:
    """Blank cells are None; anything else must parse."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_time(value)


def format_time_hhmm(moment: Union[datetime, time]) -> str:
    """Format to the log's "H:MM AM/PM" convention."""
    return parse_time(moment).label


def format_log_date(day: date) -> str:
    """Log dates are written as M/D/YYYY (no zero padding)."""
    return f"{day.month}/{day.day}/{day.year}"


def parse_log_date(value) -> date:
    """Accepts M/D/YYYY, ISO dates/timestamps and date objects. Raises DataAnomaly otherwise."""
    if isinstance(value, datetime):
        return _local(value).date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    if not text:
        raise DataAnomaly("Date value is empty")

    m = SLASH_DATE_RE.match(text)
    try:
        if m:
            return date(int(m.group(3)), int(m.group(1)), int(m.group(2)))
        return _local(datetime.fromisoformat(text.replace("Z", "+00:00"))).date()
    except ValueError:
        raise DataAnomaly(f"Unparseable date {text!r}")
