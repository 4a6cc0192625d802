"""
Time-slot parsing and comparison.

Offerings carry two free-text fields: a day-slot token such as "MW" or "ST"
and a time-slot string such as "09:00 - 10:30" or "9:30 AM - 11:00 AM".
This module turns them into weekday lists and minute-of-day intervals so
that two offerings can be compared.
"""
import re
from dataclasses import dataclass
from typing import List, Optional

WEEK_ORDER = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

BASE_DAY_NAMES = {"S": "Sun", "M": "Mon", "T": "Tue", "W": "Wed", "R": "Thu", "F": "Fri"}

COMBO_DAY_NAMES = {
    "ST": ["Sun", "Tue"], "SR": ["Sun", "Thu"], "SM": ["Sun", "Mon"],
    "MT": ["Mon", "Tue"], "MW": ["Mon", "Wed"], "MR": ["Mon", "Thu"],
    "TW": ["Tue", "Wed"], "TR": ["Tue", "Thu"], "WR": ["Wed", "Thu"],
}

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*([AaPp][Mm])?$")
_RANGE_SEPARATOR = re.compile(r"\s*-\s*")


@dataclass(frozen=True)
class TimeSlot:
    """Half-open interval [start, end) in minutes from midnight."""
    start: int
    end: int

    def overlaps(self, other: "TimeSlot") -> bool:
        # touching windows (end == other.start) do not overlap
        return self.start < other.end and other.start < self.end

    @property
    def duration(self) -> int:
        return self.end - self.start

    def __str__(self) -> str:
        return f"{format_minutes(self.start)} - {format_minutes(self.end)}"


def parse_time(text: Optional[str]) -> Optional[int]:
    """
    Convert "9:30 AM", "12:05 pm" or "13:30" to minutes from midnight.

    Returns None for anything that cannot be read as a time of day.
    """
    if not text:
        return None

    match = _TIME_RE.match(text.strip())
    if not match:
        return None

    hours, minutes = int(match.group(1)), int(match.group(2))
    meridiem = match.group(3)
    if minutes > 59:
        return None

    if meridiem:
        if not 1 <= hours <= 12:
            return None
        meridiem = meridiem.upper()
        if meridiem == "AM" and hours == 12:
            hours = 0
        elif meridiem == "PM" and hours != 12:
            hours += 12
    elif hours > 23:
        return None

    return hours * 60 + minutes


def parse_time_slot(text: Optional[str]) -> Optional[TimeSlot]:
    """
    Parse "HH:MM - HH:MM" (either clock format on each side) into a TimeSlot.

    Returns None when either side is unparseable or the end is not after the start.
    """
    if not text:
        return None

    parts = _RANGE_SEPARATOR.split(text.strip())
    if len(parts) != 2:
        return None

    start, end = parse_time(parts[0]), parse_time(parts[1])
    if start is None or end is None or end <= start:
        return None
    return TimeSlot(start, end)


def days_for_slot(token: Optional[str]) -> List[str]:
    """Weekdays a day-slot token meets on, in Sun..Sat order."""
    if not token:
        return []

    token = token.strip().upper()
    if token in COMBO_DAY_NAMES:
        days = set(COMBO_DAY_NAMES[token])
    else:
        days = {BASE_DAY_NAMES[ch] for ch in token if ch in BASE_DAY_NAMES}

    return [day for day in WEEK_ORDER if day in days]


def format_minutes(minutes: int) -> str:
    """24-hour zero-padded "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_minutes_12h(minutes: int) -> str:
    """Display form used in routines, e.g. 570 -> "9:30AM"."""
    hours, mins = divmod(minutes, 60)
    period = "PM" if hours >= 12 else "AM"
    return f"{hours % 12 or 12}:{mins:02d}{period}"


def shared_days(day_slot_a: Optional[str], day_slot_b: Optional[str]) -> List[str]:
    days_b = set(days_for_slot(day_slot_b))
    return [day for day in days_for_slot(day_slot_a) if day in days_b]


def slots_clash(day_slot_a: Optional[str], time_slot_a: Optional[str],
                day_slot_b: Optional[str], time_slot_b: Optional[str]) -> bool:
    """
    True when two (day slot, time slot) pairs share a weekday and their
    minute intervals overlap.

    Pairs that cannot be parsed never clash; callers that need a parsed
    value must check it themselves.
    """
    if not shared_days(day_slot_a, day_slot_b):
        return False

    slot_a, slot_b = parse_time_slot(time_slot_a), parse_time_slot(time_slot_b)
    if slot_a is None or slot_b is None:
        return False
    return slot_a.overlaps(slot_b)
