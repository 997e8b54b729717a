"""Parse schedule expressions and release-age durations."""

from __future__ import annotations

import re
from datetime import timedelta
from typing import Any

from depgate.policy.types import WEEKDAYS, ScheduleWindow

_DAY_ALIASES: dict[str, str] = {}
for _full, _short in zip(
    ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"),
    WEEKDAYS,
):
    _DAY_ALIASES[_full] = _short
    _DAY_ALIASES[f"{_full}s"] = _short
    _DAY_ALIASES[_short] = _short

_DAY_GROUPS: dict[str, tuple[str, ...]] = {
    "day": WEEKDAYS,
    "weekday": WEEKDAYS[:5],
    "weekdays": WEEKDAYS[:5],
    "weekend": WEEKDAYS[5:],
    "weekends": WEEKDAYS[5:],
}

_HOUR = r"(\d{1,2})\s*(am|pm)?"
_RANGE_RE = re.compile(rf"^after\s+{_HOUR}\s+and\s+before\s+{_HOUR}(?:\s+(.*))?$")
_BEFORE_RE = re.compile(rf"^before\s+{_HOUR}(?:\s+(.*))?$")
_AFTER_RE = re.compile(rf"^after\s+{_HOUR}(?:\s+(.*))?$")

_DURATION_RE = re.compile(r"^(\d+)\s*([a-z]+)$")
_DURATION_UNITS: dict[str, str] = {
    "m": "minutes",
    "min": "minutes",
    "mins": "minutes",
    "minute": "minutes",
    "minutes": "minutes",
    "h": "hours",
    "hour": "hours",
    "hours": "hours",
    "d": "days",
    "day": "days",
    "days": "days",
    "w": "weeks",
    "week": "weeks",
    "weeks": "weeks",
}


def parse_schedule(entries: list[Any] | None) -> tuple[ScheduleWindow, ...]:
    """Parse a schedule list into windows.

    No windows means unrestricted. An ``at any time`` entry anywhere in the
    list makes the whole schedule unrestricted.
    """
    if not entries:
        return ()

    windows: list[ScheduleWindow] = []
    unrestricted = False
    for entry in entries:
        if isinstance(entry, dict):
            windows.append(_parse_mapping(entry))
        elif isinstance(entry, str):
            window = parse_schedule_expression(entry)
            if window is None:
                unrestricted = True
            else:
                windows.append(window)
        else:
            raise ValueError(f"schedule entry must be a string or mapping, got {type(entry).__name__}")
    return () if unrestricted else tuple(windows)


def parse_schedule_expression(text: str) -> ScheduleWindow | None:
    """Parse one text expression such as ``before 6am on monday``."""
    expression = " ".join(text.strip().lower().split())
    if expression in {"at any time", "any time", "anytime"}:
        return None

    match = _RANGE_RE.match(expression)
    if match:
        start = _to_hour(match.group(1), match.group(2))
        end = _to_hour(match.group(3), match.group(4))
        return ScheduleWindow(days=_parse_days(match.group(5)), start_hour=start, end_hour=end)

    match = _BEFORE_RE.match(expression)
    if match:
        end = _to_hour(match.group(1), match.group(2))
        return ScheduleWindow(days=_parse_days(match.group(3)), start_hour=0, end_hour=end)

    match = _AFTER_RE.match(expression)
    if match:
        start = _to_hour(match.group(1), match.group(2))
        return ScheduleWindow(days=_parse_days(match.group(3)), start_hour=start, end_hour=24)

    return ScheduleWindow(days=_parse_days(expression))


def parse_duration(value: Any) -> timedelta | None:
    """Parse ``"3 days"``-style durations. Bare integers are days."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("duration must be a string or integer")
    if isinstance(value, int):
        if value < 0:
            raise ValueError("duration must not be negative")
        return timedelta(days=value)
    if not isinstance(value, str):
        raise ValueError("duration must be a string or integer")

    match = _DURATION_RE.match(value.strip().lower())
    if not match:
        raise ValueError(f"unparsable duration `{value}`")
    unit = _DURATION_UNITS.get(match.group(2))
    if unit is None:
        raise ValueError(f"unknown duration unit `{match.group(2)}`")
    return timedelta(**{unit: int(match.group(1))})


def format_duration(value: timedelta | None) -> str | None:
    if value is None:
        return None
    seconds = int(value.total_seconds())
    for unit, size in (("weeks", 604800), ("days", 86400), ("hours", 3600), ("minutes", 60)):
        if seconds and seconds % size == 0:
            return f"{seconds // size} {unit}"
    return f"{seconds // 60} minutes"


def _parse_mapping(entry: dict[str, Any]) -> ScheduleWindow:
    raw_days = entry.get("days")
    if isinstance(raw_days, str):
        raw_days = [raw_days]
    if not isinstance(raw_days, list) or not raw_days:
        raise ValueError("schedule mapping needs a non-empty `days` list")
    days: list[str] = []
    for raw in raw_days:
        days.extend(_expand_day(str(raw).strip().lower()))
    return ScheduleWindow(
        days=_ordered_days(days),
        start_hour=int(entry.get("startHour", 0)),
        end_hour=int(entry.get("endHour", 24)),
    )


def _to_hour(raw: str, meridiem: str | None) -> int:
    hour = int(raw)
    if meridiem is None:
        if not 0 <= hour <= 24:
            raise ValueError(f"hour out of range: {hour}")
        return hour
    if not 1 <= hour <= 12:
        raise ValueError(f"hour out of range: {raw}{meridiem}")
    if meridiem == "am":
        return 0 if hour == 12 else hour
    return 12 if hour == 12 else hour + 12


def _parse_days(text: str | None) -> tuple[str, ...]:
    if not text:
        return WEEKDAYS

    words = text.replace(",", " ").split()
    if words and words[0] in {"on", "every"}:
        words = words[1:]
    days: list[str] = []
    for word in words:
        if word in {"and", "on", "every"}:
            continue
        days.extend(_expand_day(word))
    if not days:
        raise ValueError(f"no weekday in `{text}`")
    return _ordered_days(days)


def _expand_day(word: str) -> tuple[str, ...]:
    if word in _DAY_GROUPS:
        return _DAY_GROUPS[word]
    if word in _DAY_ALIASES:
        return (_DAY_ALIASES[word],)
    raise ValueError(f"unknown weekday `{word}`")


def _ordered_days(days: list[str]) -> tuple[str, ...]:
    unique = set(days)
    return tuple(day for day in WEEKDAYS if day in unique)
