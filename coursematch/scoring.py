"""
Match scoring (course x student -> score in [0, 1] + reasons).

Weighted criteria, summed out of 100:

    career path alignment      30
    technical level fit        25 (same level) / 15 (one level above)
    preferred subject          20
    preferred time slot        15
    all prerequisites met      10

Each satisfied criterion adds one reason, in the order above.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from coursematch.model import CourseRecord, StudentProfile, level_rank
from coursematch.timeslots import course_slot_preference


CAREER_WEIGHT = 30
LEVEL_MATCH_WEIGHT = 25
LEVEL_STRETCH_WEIGHT = 15
SUBJECT_WEIGHT = 20
SLOT_WEIGHT = 15
PREREQ_WEIGHT = 10

MAX_POINTS = CAREER_WEIGHT + LEVEL_MATCH_WEIGHT + SUBJECT_WEIGHT + SLOT_WEIGHT + PREREQ_WEIGHT


@dataclass
class MatchResult:
    score: float
    reasons: List[str] = field(default_factory=list)
    points: int = 0


def _norm(text: str | None) -> str:
    return (text or "").strip().lower()


def score_course(course: CourseRecord, student: StudentProfile) -> MatchResult:
    points = 0
    reasons: List[str] = []

    career = _norm(student.career)
    if career and any(_norm(p) == career for p in course.career_paths):
        points += CAREER_WEIGHT
        reasons.append(f"Aligned with your career goal: {student.career}")

    course_rank = level_rank(course.technical_level)
    student_rank = level_rank(student.technical_proficiency)
    if course_rank is not None and student_rank is not None:
        if course_rank == student_rank:
            points += LEVEL_MATCH_WEIGHT
            reasons.append(f"Matches your {student.technical_proficiency} technical level")
        elif course_rank == student_rank + 1:
            points += LEVEL_STRETCH_WEIGHT
            reasons.append(f"A stretch to {course.technical_level} level that builds on your current skills")

    preferred = {_norm(s) for s in student.preferred_subjects}
    if _norm(course.subject) in preferred:
        points += SUBJECT_WEIGHT
        reasons.append(f"In your preferred subject: {course.subject}")

    course_slot = course_slot_preference(course)
    if course_slot and _norm(course_slot) == _norm(student.slot_preference):
        points += SLOT_WEIGHT
        reasons.append(f"Scheduled in your preferred time slot ({student.slot_preference})")

    completed = {str(c).strip() for c in student.completed_courses}
    if all(str(p).strip() in completed for p in course.prerequisites):
        points += PREREQ_WEIGHT
        reasons.append("You meet all prerequisites")

    return MatchResult(score=points / MAX_POINTS, reasons=reasons, points=points)
