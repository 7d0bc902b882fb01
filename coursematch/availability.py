"""
Availability estimation and derived course labels.

Availability is estimated from historical enrollment (filled slots vs.
capacity). Recent semesters weigh more: the record at rank r (0 = most
recent) gets weight 1/(r+1).

    availability = 1 - weighted_fill_rate   (+ small jitter, clamped to [0.1, 0.95])

Courses without any history are assumed to be available (0.8).
"""

from __future__ import annotations

import random
import re
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional

from coursematch.logging_utils import get_logger
from coursematch.model import CourseRecord, EnrollmentRecord

log = get_logger(__name__)

DEFAULT_AVAILABILITY = 0.8
MIN_AVAILABILITY = 0.1
MAX_AVAILABILITY = 0.95
JITTER = 0.05

SEMESTER_ORDER: Dict[str, int] = {"Spring": 0, "Summer": 1, "Fall": 2, "Winter": 3}

YEAR_RE = re.compile(r"(\d{4})\s*$")

HistoryFetcher = Callable[[List[str]], Iterable[EnrollmentRecord]]


def _semester_key(semester: str) -> tuple[int, int]:
    """
    Sort key for "Fall 2023" style labels: (year, season ordinal).
    Unknown parts count as 0.
    """
    text = (semester or "").strip()
    m = YEAR_RE.search(text)
    year = int(m.group(1)) if m else 0
    season = text.split(" ")[0].capitalize() if text else ""
    return year, SEMESTER_ORDER.get(season, 0)


def weighted_fill_rate(history: Iterable[EnrollmentRecord]) -> Optional[float]:
    """
    Recency-weighted average fill rate, or None if no record is usable.
    """
    ordered = sorted(history, key=lambda r: _semester_key(r.semester), reverse=True)

    total_weight = 0.0
    weighted = 0.0
    for rank, rec in enumerate(ordered):
        if rec.filled_slots <= 0 or rec.max_capacity <= 0:
            continue
        weight = 1.0 / (rank + 1)
        weighted += (rec.filled_slots / rec.max_capacity) * weight
        total_weight += weight

    if total_weight <= 0:
        return None
    return weighted / total_weight


def _clamp(value: float) -> float:
    return max(MIN_AVAILABILITY, min(MAX_AVAILABILITY, value))


def estimate_availability(
    course_ids: Iterable[str],
    fetch_history: HistoryFetcher,
    rng: Optional[random.Random] = None,
    jitter: float = JITTER,
) -> Dict[str, float]:
    """
    Return {course_id: availability in [0.1, 0.95]} for the given courses.

    fetch_history is called exactly once with all ids (batched lookup).
    If it fails, every course falls back to DEFAULT_AVAILABILITY.
    """
    ids = [str(cid) for cid in dict.fromkeys(course_ids)]
    if not ids:
        return {}

    rng = rng or random.Random()

    try:
        records = list(fetch_history(ids))
    except (OSError, ValueError) as e:
        log.warning("Enrollment history unavailable, assuming default availability: %s", e)
        return {cid: DEFAULT_AVAILABILITY for cid in ids}

    by_course: Dict[str, List[EnrollmentRecord]] = defaultdict(list)
    for rec in records:
        by_course[str(rec.course_id)].append(rec)

    scores: Dict[str, float] = {}
    for cid in ids:
        history = by_course.get(cid)
        if not history:
            scores[cid] = DEFAULT_AVAILABILITY
            continue

        fill = weighted_fill_rate(history)
        base = 1.0 - (0.5 if fill is None else fill)
        # Jitter only breaks ties between similar courses
        scores[cid] = _clamp(base + rng.uniform(-jitter, jitter))

    return scores


def occupancy_label(availability: float) -> str:
    """
    Three-tier occupancy label for display: low / medium / high.
    """
    occupancy = 1.0 - availability
    if occupancy <= 0.5:
        return "low"
    if occupancy <= 0.7:
        return "medium"
    return "high"


def difficulty_label(hours_required: Optional[float]) -> str:
    """
    Difficulty derived from weekly hours required.
    """
    if hours_required is None:
        return "Intermediate"
    if hours_required < 4:
        return "Beginner"
    if hours_required < 8:
        return "Intermediate"
    if hours_required < 12:
        return "Advanced"
    return "Expert"


def course_difficulty(course: CourseRecord) -> str:
    if course.difficulty_level:
        return str(course.difficulty_level)
    return difficulty_label(course.hours_required)
