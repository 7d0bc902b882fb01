"""
Recommendation engine (orchestration).

Control flow of one refresh:

    data store -> student + catalog
               -> availability (one batched history lookup)
               -> oracle selector (if configured)
               -> on any OracleError: deterministic fallback
               -> RecommendationStore.set()

Writes to a student's authoritative set (refresh and apply_pending) are
single-flight: a refresh or apply requested while another one for the
same student is in flight is ignored. Proposals only write the pending
set, which a refresh never touches.
"""

from __future__ import annotations

import random
import threading
from dataclasses import replace
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from coursematch.availability import DEFAULT_AVAILABILITY, course_difficulty, estimate_availability
from coursematch.chat import ChatReply, parse_chat_reply
from coursematch.config import settings
from coursematch.conflicts import find_conflicts
from coursematch.datastore import DataStore, JsonDataStore
from coursematch.fallback import build_reasons, select_fallback
from coursematch.logging_utils import get_logger
from coursematch.model import CourseRecord, RecommendationSet, ScoredCourse, StudentProfile
from coursematch.oracle import OracleClient, OracleError, OracleSelector
from coursematch.scoring import score_course
from coursematch.storage import RecommendationStore

log = get_logger(__name__)


class InsufficientDataError(Exception):
    """Student profile or course catalog is missing; no recommendation can be made."""


class RecommendationEngine:
    def __init__(
        self,
        data_store: DataStore,
        store: RecommendationStore,
        oracle: Optional[OracleSelector] = None,
        size: Optional[int] = None,
        relax_conflicts: Optional[bool] = None,
        rng: Optional[random.Random] = None,
    ):
        self.data_store = data_store
        self.store = store
        self.oracle = oracle
        self.size = settings.recommendation_size if size is None else size
        self.relax_conflicts = settings.relax_conflicts if relax_conflicts is None else relax_conflicts
        self.rng = rng

        self._in_flight: set[str] = set()
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        use_oracle: bool = True,
        data_dir: Optional[Path] = None,
        state_dir: Optional[Path] = None,
        size: Optional[int] = None,
    ) -> "RecommendationEngine":
        """
        Wire the JSON data store, file state store and (if an API key is set) the oracle.
        """
        size = settings.recommendation_size if size is None else size
        oracle = None
        if use_oracle and settings.oracle_enabled:
            oracle = OracleSelector(OracleClient.from_settings(), size=size)
        return cls(
            data_store=JsonDataStore(data_dir or settings.data_dir),
            store=RecommendationStore(state_dir or settings.state_dir),
            oracle=oracle,
            size=size,
        )

    # -----------------------------------------------------------------------
    # Inputs
    # -----------------------------------------------------------------------

    def load_inputs(self, student_id: str) -> Tuple[StudentProfile, List[CourseRecord]]:
        """
        Read the student profile (with resolved career title) and the catalog.
        Raises InsufficientDataError if either is missing.
        """
        student = self.data_store.get_student(student_id)
        if student is None:
            raise InsufficientDataError(f"No profile found for student {student_id!r}")

        if student.career_goal and not student.career_title:
            title = self.data_store.get_career_title(student.career_goal)
            if title:
                student = replace(student, career_title=title)

        courses = self.data_store.list_courses()
        if not courses:
            raise InsufficientDataError("Course catalog is empty")

        return student, courses

    def _availability(self, courses: Sequence[CourseRecord]) -> dict[str, float]:
        return estimate_availability(
            [c.course_id for c in courses],
            self.data_store.get_enrollment_history,
            rng=self.rng,
        )

    # -----------------------------------------------------------------------
    # Selection
    # -----------------------------------------------------------------------

    def compute(
        self,
        student: StudentProfile,
        courses: Sequence[CourseRecord],
        availability: dict[str, float],
    ) -> RecommendationSet:
        """
        Try the oracle first, fall back to the deterministic selector on any failure.
        """
        if self.oracle is not None:
            try:
                return self.oracle.select(student, courses, availability, size=self.size)
            except OracleError as e:
                log.warning("Oracle result unusable for student %s, using fallback: %s", student.student_id, e)

        return select_fallback(
            student,
            courses,
            availability,
            size=self.size,
            relax_conflicts=self.relax_conflicts,
        )

    def _begin(self, student_id: str) -> bool:
        with self._lock:
            if student_id in self._in_flight:
                return False
            self._in_flight.add(student_id)
            return True

    def _end(self, student_id: str) -> None:
        with self._lock:
            self._in_flight.discard(student_id)

    def refresh(self, student_id: str) -> Optional[RecommendationSet]:
        """
        Recompute and store recommendations for a student.

        Returns the new set, or None if a refresh for this student is already running.
        """
        key = str(student_id).strip()
        if not self._begin(key):
            log.info("Refresh for %s already in progress; ignoring trigger", key)
            return None
        try:
            student, courses = self.load_inputs(key)
            availability = self._availability(courses)
            rec_set = self.compute(student, courses, availability)
            self.store.set(key, rec_set)
            return rec_set
        finally:
            self._end(key)

    def ensure_recommendations(self, student_id: str) -> Optional[RecommendationSet]:
        """
        Return stored recommendations, computing them only if none were ever stored.
        """
        key = str(student_id).strip()
        if self.store.is_loaded(key):
            return self.store.get(key)
        return self.refresh(key)

    # -----------------------------------------------------------------------
    # Pending updates
    # -----------------------------------------------------------------------

    def build_set_from_ids(self, student_id: str, course_ids: Iterable[str]) -> Optional[RecommendationSet]:
        """
        Build a recommendation set from proposed course ids, scored locally.
        Unknown ids are dropped; returns None if nothing is left.
        """
        student, courses = self.load_inputs(student_id)
        by_id = {c.course_id: c for c in courses}

        picked: List[CourseRecord] = []
        for cid in course_ids:
            course = by_id.get(str(cid).strip())
            if course is None:
                log.info("Ignoring unknown proposed course %r", cid)
                continue
            if course in picked:
                continue
            picked.append(course)
            if len(picked) >= self.size:
                break

        if not picked:
            return None

        availability = self._availability(picked)
        entries: List[ScoredCourse] = []
        for course in picked:
            avail = availability.get(course.course_id, DEFAULT_AVAILABILITY)
            match = score_course(course, student)
            entries.append(
                ScoredCourse(
                    course=course,
                    match_score=match.score,
                    reasons=match.reasons or build_reasons(course, student, avail),
                    difficulty_level=course_difficulty(course),
                    availability_score=avail,
                )
            )

        clashes = find_conflicts(entries)
        if clashes:
            log.warning(
                "Proposed courses for %s overlap: %s",
                student_id,
                ", ".join(f"{a.course_id}/{b.course_id}" for a, b in clashes),
            )

        return RecommendationSet(
            entries=entries,
            source="chat",
            degraded=bool(clashes) or len(entries) < self.size,
        )

    def propose_from_course_ids(self, student_id: str, course_ids: Iterable[str]) -> Optional[RecommendationSet]:
        key = str(student_id).strip()
        rec_set = self.build_set_from_ids(key, course_ids)
        if rec_set is not None:
            self.store.propose_update(key, rec_set)
        return rec_set

    def propose_from_chat(self, student_id: str, reply_text: str) -> Tuple[ChatReply, Optional[RecommendationSet]]:
        """
        Parse an assistant reply; if it names courses, store them as a pending update.
        """
        reply = parse_chat_reply(reply_text)
        if not reply.recommended_courses:
            return reply, None
        return reply, self.propose_from_course_ids(student_id, reply.recommended_courses)

    def apply_pending(self, student_id: str) -> Optional[RecommendationSet]:
        """
        Promote the pending set. Returns None if nothing is pending, or if a
        refresh for this student is running (the pending set is kept).
        """
        key = str(student_id).strip()
        if not self._begin(key):
            log.info("Refresh for %s in progress; pending update not applied", key)
            return None
        try:
            return self.store.apply_pending_update(key)
        finally:
            self._end(key)
