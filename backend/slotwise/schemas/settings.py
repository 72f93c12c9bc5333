from __future__ import annotations

import re

DAY_VALUES = (
    "MONDAY",
    "TUESDAY",
    "WEDNESDAY",
    "THURSDAY",
    "FRIDAY",
    "SATURDAY",
    "SUNDAY",
)

TIME_PATTERN: re.Pattern[str] = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(value: int) -> str:
    hours = value // 60
    minutes = value % 60
    return f"{hours:02d}:{minutes:02d}"


def normalize_day(value: str) -> str:
    day = value.strip().upper()
    if day not in DAY_VALUES:
        raise ValueError("Invalid day value")
    return day


def normalize_time(value: str) -> str:
    # Accept HH:MM:SS from database drivers that store TIME columns.
    candidate = value.strip()
    if len(candidate) == 8 and candidate.count(":") == 2:
        candidate = candidate[:5]
    if not TIME_PATTERN.match(candidate):
        raise ValueError("Time must be in HH:MM 24-hour format")
    return candidate
