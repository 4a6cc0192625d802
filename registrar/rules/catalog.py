"""
Schedule catalog used when staff create a course offering.

All functions are pure: they rebuild the same lists on every call.
"""
from typing import List, Optional

from .. import config
from .timeslots import format_minutes


def _generate_slots(duration: int, end_inclusive: bool) -> List[str]:
    """
    Walk the teaching day in windows of ``duration`` minutes separated by the
    standard gap, starting at 08:30 and stopping once a start reaches 18:00.

    With ``end_inclusive`` a window may run past 18:00 (lectures); otherwise
    a window is only kept when it ends strictly before 18:00 (labs).
    """
    slots = []
    start = config.DAY_START_MINUTES

    while start < config.DAY_END_MINUTES:
        end = start + duration
        if end_inclusive or end < config.DAY_END_MINUTES:
            slots.append(f"{format_minutes(start)} - {format_minutes(end)}")
        start += duration + config.SLOT_GAP_MINUTES

    return slots


def class_time_slots() -> List[str]:
    """90-minute lecture windows, e.g. "08:30 - 10:00"."""
    return _generate_slots(config.LECTURE_MINUTES, end_inclusive=True)


def lab_duration(credits: float) -> int:
    if credits == config.LONG_LAB_CREDITS:
        return config.LONG_LAB_MINUTES
    return config.LAB_MINUTES


def lab_time_slots(credits: float) -> List[str]:
    """Lab windows sized by credit weight: 180 minutes for 1.5 credits, else 120."""
    return _generate_slots(lab_duration(credits), end_inclusive=False)


def time_slots_for(class_type: str, credits: Optional[float] = None) -> List[str]:
    """Slots offered to staff for a class type ("Class" or "Lab")."""
    if class_type == "Lab":
        return lab_time_slots(credits if credits is not None else 1)
    if class_type == "Class":
        return class_time_slots()
    raise ValueError(f"Unknown class type: {class_type}")


def room_numbers() -> List[str]:
    """Every room label, "A-101" through "D-405"."""
    return [
        f"{building}-{floor}0{room}"
        for building in config.BUILDINGS
        for floor in config.FLOORS
        for room in range(1, config.ROOMS_PER_FLOOR + 1)
    ]


def day_slot_options() -> List[str]:
    return list(config.DAY_SLOT_OPTIONS)
