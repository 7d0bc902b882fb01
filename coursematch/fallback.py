"""
Deterministic fallback selection (no external calls).

Used whenever the oracle is disabled, unreachable or returns something
we cannot trust. Courses are ranked by a fixed priority tuple:

    1. on the student's career path (required before elective)
    2. in a preferred subject
    3. availability, descending

then walked greedily, accepting a course only if it does not conflict
with any course accepted so far.

If the catalog does not hold enough compatible courses the set is marked
degraded: it either stays short, or (relax_conflicts=True) the remaining
places are filled ignoring conflicts.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Sequence

from coursematch.availability import DEFAULT_AVAILABILITY, course_difficulty
from coursematch.conflicts import courses_conflict
from coursematch.logging_utils import get_logger
from coursematch.model import CanonicalTimeSlot, CourseRecord, RecommendationSet, ScoredCourse, StudentProfile
from coursematch.scoring import score_course
from coursematch.timeslots import course_slots

log = get_logger(__name__)

SUBJECT_SKILLS: Dict[str, List[str]] = {
    "Computer Science": ["Data structures", "Algorithms", "Problem-solving methodologies"],
    "Programming": ["Software architecture", "Design patterns", "Version control systems"],
    "Web Development": ["HTML5/CSS3", "JavaScript frameworks", "Responsive design"],
    "Data Science": ["Python libraries (Pandas, NumPy)", "Statistical analysis", "Data visualization"],
    "Artificial Intelligence": ["Machine learning algorithms", "Neural networks", "TensorFlow/PyTorch"],
    "Cybersecurity": ["Encryption techniques", "Network security", "Vulnerability assessment"],
    "Mobile Development": ["Native app development", "Cross-platform frameworks", "Mobile UI design"],
    "Database": ["SQL query optimization", "Database design", "NoSQL technologies"],
}

SUBJECT_PROJECTS: Dict[str, str] = {
    "Computer Science": "algorithm visualization tools",
    "Programming": "scalable software applications",
    "Web Development": "dynamic web applications with APIs",
    "Data Science": "predictive analytics dashboards",
    "Artificial Intelligence": "machine learning models for real-world problems",
    "Cybersecurity": "secure systems and penetration testing tools",
    "Mobile Development": "feature-rich mobile applications",
    "Database": "optimized database systems",
}

EARLY_REGISTRATION_THRESHOLD = 0.5


def _on_career_path(course: CourseRecord, student: StudentProfile) -> bool:
    career = student.career.strip().lower()
    return bool(career) and any(p.strip().lower() == career for p in course.career_paths)


def _in_preferred_subject(course: CourseRecord, student: StudentProfile) -> bool:
    preferred = {s.strip().lower() for s in student.preferred_subjects}
    return course.subject.strip().lower() in preferred


def rank_courses(
    student: StudentProfile,
    courses: Sequence[CourseRecord],
    availability: Mapping[str, float],
) -> List[CourseRecord]:
    """
    Sort courses by the fallback priority tuple. Stable: ties keep catalog order.
    """

    def key(course: CourseRecord) -> tuple[int, int, float]:
        return (
            0 if _on_career_path(course, student) else 1,
            0 if _in_preferred_subject(course, student) else 1,
            -availability.get(course.course_id, DEFAULT_AVAILABILITY),
        )

    return sorted(courses, key=key)


def _difficulty_reason(course: CourseRecord, difficulty: str) -> str:
    if course.hours_required is None:
        return f"{difficulty} workload that fits a typical semester schedule"
    hours = course.hours_required
    hours_text = f"{hours:g}"
    return f"{difficulty} difficulty with about {hours_text} hours of work per week"


def build_reasons(course: CourseRecord, student: StudentProfile, availability: float) -> List[str]:
    """
    Synthesize human-readable reasons from static lookup tables.
    """
    reasons: List[str] = []
    subject = course.subject or "key technology"

    skills = SUBJECT_SKILLS.get(course.subject)
    if skills:
        reasons.append(f"Master {skills[0]} and {skills[1]} for professional {course.subject} applications")
    else:
        reasons.append(f"Develop technical expertise in {subject} fundamentals")

    project = SUBJECT_PROJECTS.get(course.subject)
    if project:
        reasons.append(f"Build portfolio-quality {project} using industry standards")
    else:
        reasons.append(f"Apply concepts through hands-on projects relevant to {student.career}")

    if _on_career_path(course, student):
        reasons.append(f"Gain essential skills required for {student.career} positions in top companies")
    else:
        reasons.append("Develop versatile technical abilities valued across multiple tech industries")

    reasons.append(_difficulty_reason(course, course_difficulty(course)))

    if availability < EARLY_REGISTRATION_THRESHOLD:
        reasons.append("High demand course: register early to secure a seat")

    return reasons


def select_fallback(
    student: StudentProfile,
    courses: Sequence[CourseRecord],
    availability: Mapping[str, float],
    size: int = 3,
    relax_conflicts: bool = False,
) -> RecommendationSet:
    """
    Produce a recommendation set without any external call.

    With relax_conflicts=False a short catalog yields fewer than `size`
    entries. With relax_conflicts=True the missing places are filled with
    conflicting courses. Either way such a set is marked degraded; a set
    that is not degraded is always conflict-free.
    """
    ranked = rank_courses(student, courses, availability)

    accepted: List[CourseRecord] = []
    accepted_slots: List[List[CanonicalTimeSlot]] = []

    # Greedy walk: accept only courses that fit around the ones already taken
    for course in ranked:
        if len(accepted) >= size:
            break
        slots = course_slots(course)
        if any(courses_conflict(slots, other) for other in accepted_slots):
            continue
        accepted.append(course)
        accepted_slots.append(slots)

    degraded = False
    if len(accepted) < size:
        chosen = {c.course_id for c in accepted}
        filler = [c for c in ranked if c.course_id not in chosen][: size - len(accepted)]
        if filler and not relax_conflicts:
            log.warning(
                "Only %d conflict-free courses for student %s; skipping conflicting %s",
                len(accepted),
                student.student_id,
                ", ".join(c.course_id for c in filler),
            )
        elif filler:
            log.warning(
                "Only %d conflict-free courses for student %s; relaxing time conflicts to add %s",
                len(accepted),
                student.student_id,
                ", ".join(c.course_id for c in filler),
            )
            accepted.extend(filler)
        degraded = True

    if len(accepted) < size:
        log.warning("Returning a partial set of %d courses for student %s", len(accepted), student.student_id)

    entries: List[ScoredCourse] = []
    for course in accepted:
        avail = availability.get(course.course_id, DEFAULT_AVAILABILITY)
        match = score_course(course, student)
        entries.append(
            ScoredCourse(
                course=course,
                match_score=match.score,
                reasons=build_reasons(course, student, avail),
                difficulty_level=course_difficulty(course),
                availability_score=avail,
            )
        )

    return RecommendationSet(entries=entries, source="fallback", degraded=degraded)
