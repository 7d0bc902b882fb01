"""
Time-slot parsing (raw encodings -> CanonicalTimeSlot).

Courses store their meeting pattern in one of several encodings:
- an object:          {"days": "MWF", "time": "10:00-11:15"}
- a JSON string:      '{"days": "MWF", "time": "10:00-11:15"}'
- a compact string:   "MWF 10:00-11:15"

Day letters: M=Mon, T=Tue, W=Wed, R=Thu, F=Fri, S=Sat, U=Sun.

Important rules (DO NOT CHANGE):
- parse_time_slot() never raises; anything it cannot read becomes None
- None means "no declared conflict potential", not "invalid course"
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from coursematch.model import WEEKDAYS, CanonicalTimeSlot, CourseRecord


LETTER_TO_DAY: Dict[str, str] = {
    "M": "Mon",
    "T": "Tue",
    "W": "Wed",
    "R": "Thu",
    "F": "Fri",
    "S": "Sat",
    "U": "Sun",
}
DAY_TO_LETTER: Dict[str, str] = {v: k for k, v in LETTER_TO_DAY.items()}

DAY_LONG_NAMES: Dict[str, str] = {
    "Mon": "Monday",
    "Tue": "Tuesday",
    "Wed": "Wednesday",
    "Thu": "Thursday",
    "Fri": "Friday",
    "Sat": "Saturday",
    "Sun": "Sunday",
}

COMPACT_RE = re.compile(r"^([MTWRFSU]+)\s+(\d{1,2}:\d{2}\s*[-–]\s*\d{1,2}:\d{2})$")
TIME_RANGE_RE = re.compile(r"^(\d{1,2}:\d{2})\s*[-–]\s*(\d{1,2}:\d{2})$")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _time_to_minutes(hhmm: str) -> int:
    """
    Convert 'HH:MM' to minutes since midnight.
    Raises ValueError for invalid formats.
    """
    parts = hhmm.strip().split(":")
    if len(parts) != 2:
        raise ValueError(f"Invalid time format: {hhmm!r}")
    h = int(parts[0])
    m = int(parts[1])
    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise ValueError(f"Invalid time value: {hhmm!r}")
    return h * 60 + m


def minutes_to_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _parse_days(raw: Any) -> Optional[FrozenSet[str]]:
    """
    Read a day specification into a set of canonical day names.

    Accepts letter strings ("MWF"), name strings ("Mon/Wed", "Monday, Friday")
    and lists of either. Returns None if any part is unknown.
    """
    if isinstance(raw, (list, tuple, set, frozenset)):
        out: set[str] = set()
        for item in raw:
            days = _parse_days(item)
            if days is None:
                return None
            out |= days
        return frozenset(out) if out else None

    if not isinstance(raw, str):
        return None

    text = raw.strip()
    if not text:
        return None

    # Letter codes are uppercase only, so "Mon" never reads as M + o + n
    if all(ch in LETTER_TO_DAY for ch in text):
        return frozenset(LETTER_TO_DAY[ch] for ch in text)

    tokens = [t for t in re.split(r"[^A-Za-z]+", text) if t]
    days: set[str] = set()
    for tok in tokens:
        prefix = tok[:3].capitalize()
        if prefix not in DAY_LONG_NAMES:
            return None
        days.add(prefix)
    return frozenset(days) if days else None


def _parse_time_range(raw: Any) -> Optional[tuple[int, int]]:
    if not isinstance(raw, str):
        return None
    m = TIME_RANGE_RE.match(raw.strip())
    if not m:
        return None
    try:
        start = _time_to_minutes(m.group(1))
        end = _time_to_minutes(m.group(2))
    except ValueError:
        return None
    if end <= start:
        return None
    return start, end


def _from_parts(days_raw: Any, time_raw: Any) -> Optional[CanonicalTimeSlot]:
    days = _parse_days(days_raw)
    times = _parse_time_range(time_raw)
    if days is None or times is None:
        return None
    return CanonicalTimeSlot(days=days, start=times[0], end=times[1])


def _from_mapping(data: Mapping[str, Any]) -> Optional[CanonicalTimeSlot]:
    if "days" not in data or "time" not in data:
        return None
    return _from_parts(data.get("days"), data.get("time"))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_time_slot(raw: Any) -> Optional[CanonicalTimeSlot]:
    """
    Normalize one raw time-slot encoding into a CanonicalTimeSlot.

    Returns None for anything that cannot be read.
    """
    if raw is None:
        return None

    if isinstance(raw, CanonicalTimeSlot):
        return raw

    if isinstance(raw, Mapping):
        return _from_mapping(raw)

    if not isinstance(raw, str):
        return None

    text = raw.strip()
    if not text:
        return None

    # JSON-encoded object
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        return _from_mapping(data)

    # Compact "MWF 10:00-11:15"
    m = COMPACT_RE.match(text)
    if m:
        return _from_parts(m.group(1), m.group(2))

    return None


def _flatten(raw_slots: Iterable[Any]) -> List[Any]:
    out: List[Any] = []
    for raw in raw_slots:
        if isinstance(raw, (list, tuple)):
            out.extend(_flatten(raw))
        else:
            out.append(raw)
    return out


def parse_time_slots(raw_slots: Iterable[Any]) -> List[CanonicalTimeSlot]:
    """
    Parse several raw encodings, silently dropping the unparseable ones.
    """
    slots: List[CanonicalTimeSlot] = []
    for raw in _flatten(raw_slots):
        slot = parse_time_slot(raw)
        if slot is not None:
            slots.append(slot)
    return slots


def course_slots(course: CourseRecord) -> List[CanonicalTimeSlot]:
    """
    Return all canonical meeting slots of a course.
    """
    return parse_time_slots(course.time_slots)


def slot_period(slot: CanonicalTimeSlot) -> str:
    """
    Map a slot to the student-facing period: Morning / Afternoon / Evening.
    """
    if slot.start < 12 * 60:
        return "Morning"
    if slot.start < 17 * 60:
        return "Afternoon"
    return "Evening"


def course_slot_preference(course: CourseRecord) -> Optional[str]:
    """
    Declared slot preference of a course, derived from its first slot if absent.
    """
    if course.slot_preference:
        return str(course.slot_preference).strip()
    slots = course_slots(course)
    if not slots:
        return None
    return slot_period(slots[0])


def format_time_slot(raw: Any) -> str:
    """
    Render a raw encoding for display, e.g. "Monday, Wednesday 10:00-11:15".
    """
    if raw is None or raw == "" or raw == []:
        return "Flexible"

    if isinstance(raw, (list, tuple)):
        return "; ".join(format_time_slot(r) for r in raw)

    slot = parse_time_slot(raw)
    if slot is None:
        if isinstance(raw, Mapping):
            return json.dumps(dict(raw), ensure_ascii=False)
        return str(raw)

    days = ", ".join(DAY_LONG_NAMES[d] for d in WEEKDAYS if d in slot.days)
    return f"{days} {minutes_to_hhmm(slot.start)}-{minutes_to_hhmm(slot.end)}"
