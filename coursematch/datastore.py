"""
Data store access (system of record for students, courses and enrollment history).

The engine only depends on the DataStore protocol. JsonDataStore is a
file-backed implementation that reads a catalog directory:

    students.json        list of student profiles
    courses.json         list of course records
    careers.json         list of {"id", "title"} (career goal lookup)
    course_history.json  list of {"course_id", "semester", "filled_slots", "max_capacity"}

Missing or broken files read as empty, lookups return None on not-found.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

from coursematch.logging_utils import get_logger
from coursematch.model import CourseRecord, EnrollmentRecord, StudentProfile

log = get_logger(__name__)


class DataStore(Protocol):
    def get_student(self, student_id: str) -> Optional[StudentProfile]:
        ...

    def get_career_title(self, career_key: str) -> Optional[str]:
        ...

    def list_courses(self) -> List[CourseRecord]:
        ...

    def get_enrollment_history(self, course_ids: List[str]) -> List[EnrollmentRecord]:
        ...


def _load_json(path: Path) -> Any:
    """
    Load JSON from a file; return [] if it is missing or broken.
    """
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return []
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        log.warning("Could not read %s: %s", path, e)
        return []


def _as_list(data: Any) -> List[Dict[str, Any]]:
    if not isinstance(data, list):
        return []
    return [x for x in data if isinstance(x, dict)]


class JsonDataStore:
    """
    Read-only data store backed by JSON files. Files are read on every call,
    so edits made by other tools are picked up on the next refresh.
    """

    def __init__(self, data_dir: str | Path | None = None):
        if data_dir is None:
            from coursematch.config import settings

            data_dir = settings.data_dir
        self.data_dir = Path(data_dir)

    def _records(self, filename: str) -> List[Dict[str, Any]]:
        return _as_list(_load_json(self.data_dir / filename))

    def get_student(self, student_id: str) -> Optional[StudentProfile]:
        wanted = str(student_id).strip()
        if not wanted:
            return None
        for raw in self._records("students.json"):
            profile = StudentProfile.from_dict(raw)
            if profile.student_id == wanted:
                return profile
        return None

    def get_career_title(self, career_key: str) -> Optional[str]:
        wanted = str(career_key).strip()
        for raw in self._records("careers.json"):
            if str(raw.get("id", "")).strip() == wanted:
                title = str(raw.get("title") or "").strip()
                return title or None
        return None

    def list_courses(self) -> List[CourseRecord]:
        courses: List[CourseRecord] = []
        seen: set[str] = set()
        for raw in self._records("courses.json"):
            course = CourseRecord.from_dict(raw)
            if not course.course_id or course.course_id in seen:
                continue
            seen.add(course.course_id)
            courses.append(course)
        return courses

    def get_enrollment_history(self, course_ids: Iterable[str]) -> List[EnrollmentRecord]:
        wanted = {str(c) for c in course_ids}
        out: List[EnrollmentRecord] = []
        for raw in self._records("course_history.json"):
            rec = EnrollmentRecord.from_dict(raw)
            if rec.course_id in wanted:
                out.append(rec)
        return out
