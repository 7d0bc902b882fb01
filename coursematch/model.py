"""
Central data model definitions used across the project.

This module defines the canonical structure of students, courses and
recommendations so that:
- all modules share the same field names
- the persisted JSON format of a recommendation set is defined in one place
- downstream logic only ever consumes CanonicalTimeSlot, never raw slot encodings
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Optional, Set


# Ordinal scale shared by student proficiency and course technical level
LEVELS: tuple[str, ...] = ("Beginner", "Intermediate", "Advanced", "Expert")

# Canonical day names in week order
WEEKDAYS: tuple[str, ...] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def level_rank(level: Optional[str]) -> Optional[int]:
    """
    Return the ordinal position of a level name, or None if unknown.
    Comparison is case-insensitive.
    """
    if not level:
        return None
    wanted = str(level).strip().lower()
    for i, name in enumerate(LEVELS):
        if name.lower() == wanted:
            return i
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return [str(x).strip() for x in value if str(x).strip()]
    text = str(value).strip()
    return [text] if text else []


@dataclass
class StudentProfile:
    """
    Represents one student as read from the data store.

    career_goal is a lookup key; career_title is its resolved display title
    (filled in by the engine before scoring).
    """

    student_id: str
    career_goal: str
    technical_proficiency: str
    preferred_subjects: Set[str] = field(default_factory=set)
    slot_preference: str = "NoPreference"
    completed_courses: Set[str] = field(default_factory=set)
    credits_completed: int = 0
    career_title: Optional[str] = None
    full_name: Optional[str] = None

    @property
    def career(self) -> str:
        return self.career_title or self.career_goal

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StudentProfile":
        credits = data.get("credits_completed") or 0
        try:
            credits = max(0, int(credits))
        except (TypeError, ValueError):
            credits = 0
        return cls(
            student_id=str(data.get("student_id") or data.get("user_id") or data.get("id") or "").strip(),
            career_goal=str(data.get("career_goal") or data.get("career_goal_id") or "").strip(),
            technical_proficiency=str(data.get("technical_proficiency") or "").strip(),
            preferred_subjects=set(_as_str_list(data.get("preferred_subjects"))),
            slot_preference=str(
                data.get("slot_preference") or data.get("course_slot_preference") or "NoPreference"
            ).strip(),
            completed_courses=set(_as_str_list(data.get("completed_courses") or data.get("current_courses_taken"))),
            credits_completed=credits,
            career_title=data.get("career_title"),
            full_name=data.get("full_name"),
        )


@dataclass
class CourseRecord:
    """
    Represents one course of the catalog.

    time_slots keeps the raw encodings exactly as stored; use
    coursematch.timeslots.course_slots() to obtain canonical slots.
    """

    course_id: str
    title: str
    subject: str
    credits: int
    time_slots: List[Any] = field(default_factory=list)
    prerequisites: List[str] = field(default_factory=list)
    career_paths: List[str] = field(default_factory=list)
    technical_level: Optional[str] = None
    hours_required: Optional[float] = None
    difficulty_level: Optional[str] = None
    slot_preference: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "course_id": self.course_id,
            "title": self.title,
            "subject": self.subject,
            "credits": self.credits,
            "time_slots": list(self.time_slots),
            "prerequisites": list(self.prerequisites),
            "career_paths": list(self.career_paths),
            "technical_level": self.technical_level,
            "hours_required": self.hours_required,
            "difficulty_level": self.difficulty_level,
            "slot_preference": self.slot_preference,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CourseRecord":
        # A single raw encoding (string or object) is wrapped into a list
        raw_slots = data.get("time_slots")
        if raw_slots is None:
            raw_slots = data.get("time_slot")
        if raw_slots is None:
            slots: List[Any] = []
        elif isinstance(raw_slots, list):
            slots = list(raw_slots)
        else:
            slots = [raw_slots]

        hours = data.get("hours_required")
        try:
            hours = float(hours) if hours is not None else None
        except (TypeError, ValueError):
            hours = None

        try:
            credits = int(data.get("credits") or 0)
        except (TypeError, ValueError):
            credits = 0

        return cls(
            course_id=str(data.get("course_id", data.get("id", ""))).strip(),
            title=str(data.get("title") or "").strip(),
            subject=str(data.get("subject") or "General").strip(),
            credits=credits,
            time_slots=slots,
            prerequisites=_as_str_list(data.get("prerequisites")),
            career_paths=_as_str_list(data.get("career_paths")),
            technical_level=data.get("technical_level"),
            hours_required=hours,
            difficulty_level=data.get("difficulty_level"),
            slot_preference=data.get("slot_preference"),
            description=data.get("description"),
        )


@dataclass(frozen=True)
class CanonicalTimeSlot:
    """
    Normalized meeting pattern: a set of weekdays plus a start/end time
    in minutes since midnight. Always start < end.
    """

    days: FrozenSet[str]
    start: int
    end: int

    def __post_init__(self) -> None:
        if not self.start < self.end:
            raise ValueError(f"start must be before end: {self.start} >= {self.end}")

    def to_dict(self) -> Dict[str, str]:
        """
        Return the canonical object encoding {days, time}, e.g.
        {"days": "MWF", "time": "10:00-11:15"}.
        """
        from coursematch.timeslots import DAY_TO_LETTER, minutes_to_hhmm

        letters = "".join(DAY_TO_LETTER[d] for d in WEEKDAYS if d in self.days)
        return {"days": letters, "time": f"{minutes_to_hhmm(self.start)}-{minutes_to_hhmm(self.end)}"}


@dataclass
class EnrollmentRecord:
    """
    One historical semester of enrollment for a course.
    """

    course_id: str
    semester: str
    filled_slots: int
    max_capacity: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnrollmentRecord":
        def _int(x: Any) -> int:
            try:
                return int(x or 0)
            except (TypeError, ValueError):
                return 0

        return cls(
            course_id=str(data.get("course_id", "")).strip(),
            semester=str(data.get("semester") or "").strip(),
            filled_slots=_int(data.get("filled_slots")),
            max_capacity=_int(data.get("max_capacity")),
        )


@dataclass
class ScoredCourse:
    """
    A course together with everything needed to display it as a recommendation.
    """

    course: CourseRecord
    match_score: float
    reasons: List[str]
    difficulty_level: str
    availability_score: float

    @property
    def course_id(self) -> str:
        return self.course.course_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "course": self.course.to_dict(),
            "match_score": self.match_score,
            "reasons": list(self.reasons),
            "difficulty_level": self.difficulty_level,
            "availability_score": self.availability_score,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoredCourse":
        return cls(
            course=CourseRecord.from_dict(data.get("course") or {}),
            match_score=float(data.get("match_score") or 0.0),
            reasons=[str(r) for r in data.get("reasons") or []],
            difficulty_level=str(data.get("difficulty_level") or "Intermediate"),
            availability_score=float(data.get("availability_score") or 0.0),
        )


@dataclass
class RecommendationSet:
    """
    Ordered list of at most `size` recommended courses.

    degraded is True when the set could not satisfy the full contract:
    it holds fewer entries than requested, or the no-overlap rule had to
    be relaxed because the catalog had too few compatible courses.
    """

    entries: List[ScoredCourse] = field(default_factory=list)
    source: str = "fallback"
    degraded: bool = False
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="seconds"))

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def course_ids(self) -> List[str]:
        return [e.course_id for e in self.entries]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "source": self.source,
            "degraded": self.degraded,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecommendationSet":
        entries = data.get("entries") or []
        if not isinstance(entries, list):
            raise ValueError("entries must be a list")
        return cls(
            entries=[ScoredCourse.from_dict(e) for e in entries],
            source=str(data.get("source") or "fallback"),
            degraded=bool(data.get("degraded", False)),
            created_at=str(data.get("created_at") or ""),
        )
