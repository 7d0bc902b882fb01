"""
Conflict detection.

Two canonical slots conflict if they share at least one weekday AND their
time intervals overlap. Intervals are half-open:
    not (end1 <= start2 or end2 <= start1)
so touching endpoints (end == start) are NOT a conflict.
"""

from __future__ import annotations

from typing import Optional, Sequence

from coursematch.model import CanonicalTimeSlot, ScoredCourse
from coursematch.timeslots import course_slots


def _overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return not (a_end <= b_start or b_end <= a_start)


def conflicts(a: Optional[CanonicalTimeSlot], b: Optional[CanonicalTimeSlot]) -> bool:
    """
    Return True if the two slots conflict.

    If either slot is None we cannot prove a conflict, so none is assumed.
    """
    if a is None or b is None:
        return False
    if not (a.days & b.days):
        return False
    return _overlaps(a.start, a.end, b.start, b.end)


def courses_conflict(
    slots_a: Sequence[CanonicalTimeSlot],
    slots_b: Sequence[CanonicalTimeSlot],
) -> bool:
    """
    Return True if any slot of the first course conflicts with any slot of the second.
    """
    return any(conflicts(a, b) for a in slots_a for b in slots_b)


def find_conflicts(entries: Sequence[ScoredCourse]) -> list[tuple[ScoredCourse, ScoredCourse]]:
    """
    Find conflicting entry pairs (A,B), each pair appears once (i<j).
    """
    found: list[tuple[ScoredCourse, ScoredCourse]] = []

    # Pre-parse slots once per entry
    parsed = [(e, course_slots(e.course)) for e in entries]

    # O(n^2) is fine for a handful of recommendations
    for i in range(len(parsed)):
        e1, s1 = parsed[i]
        for j in range(i + 1, len(parsed)):
            e2, s2 = parsed[j]
            if courses_conflict(s1, s2):
                found.append((e1, e2))

    return found
