"""
Unit tests for the recommendation engine (orchestration).

Uses an in-memory data store and a temporary state directory.
"""

import json
import random
import tempfile
import unittest
from unittest import mock

from coursematch.config import settings
from coursematch.conflicts import find_conflicts
from coursematch.engine import InsufficientDataError, RecommendationEngine
from coursematch.model import CourseRecord, EnrollmentRecord, RecommendationSet, StudentProfile
from coursematch.oracle import OracleResponseError, OracleSelector, OracleUnavailable
from coursematch.storage import RecommendationStore


def _course(course_id: str, slot: str) -> CourseRecord:
    return CourseRecord(
        course_id=course_id,
        title=f"Course {course_id}",
        subject="Computer Science",
        credits=3,
        time_slots=[slot],
        career_paths=["Software Engineer"],
        technical_level="Intermediate",
    )


CATALOG = [
    _course("A", "MWF 10:00-11:15"),
    _course("B", "MR 10:30-11:30"),
    _course("C", "TR 13:00-14:00"),
    _course("D", "F 14:00-15:00"),
]


class FakeDataStore:
    def __init__(self, students=None, courses=None, history=None, careers=None):
        self.students = {s.student_id: s for s in (students or [])}
        self.courses = list(courses or [])
        self.history = list(history or [])
        self.careers = dict(careers or {})
        self.history_calls = []

    def get_student(self, student_id):
        return self.students.get(student_id)

    def get_career_title(self, career_key):
        return self.careers.get(career_key)

    def list_courses(self):
        return list(self.courses)

    def get_enrollment_history(self, course_ids):
        self.history_calls.append(list(course_ids))
        return [r for r in self.history if r.course_id in course_ids]


class FakeClient:
    """Oracle HTTP client stand-in returning fixed text."""

    def __init__(self, text):
        self.text = text
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        return self.text


def _oracle_reply(*course_ids) -> str:
    items = [{"course_id": cid, "match_score": 0.9, "reasons": ["Good fit"]} for cid in course_ids]
    return "Here you go:\n" + json.dumps({"recommendations": items})


class FakeOracle:
    """Returns a fixed set, or raises a fixed error."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = 0

    def select(self, student, courses, availability, size=None):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


def _student(**overrides) -> StudentProfile:
    data = dict(
        student_id="s1",
        career_goal="c-swe",
        technical_proficiency="Intermediate",
        preferred_subjects={"Computer Science"},
        slot_preference="Morning",
    )
    data.update(overrides)
    return StudentProfile(**data)


class TestEngine(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.store = RecommendationStore(self._tmp.name)
        self.data = FakeDataStore(
            students=[_student()],
            courses=CATALOG,
            careers={"c-swe": "Software Engineer"},
        )

    def _engine(self, oracle=None, **kw) -> RecommendationEngine:
        return RecommendationEngine(
            self.data, self.store, oracle=oracle, size=3, relax_conflicts=False, rng=random.Random(0), **kw
        )

    def test_oracle_conflict_falls_back(self) -> None:
        oracle = FakeOracle(error=OracleResponseError("A/B overlap"))
        result = self._engine(oracle).refresh("s1")

        self.assertEqual(result.source, "fallback")
        self.assertEqual(len(result), 3)
        self.assertEqual(find_conflicts(result.entries), [])
        self.assertFalse("A" in result.course_ids and "B" in result.course_ids)
        # No history: every course gets the default availability
        self.assertTrue(all(e.availability_score == 0.8 for e in result.entries))
        self.assertEqual(self.store.get("s1").course_ids, result.course_ids)

    def test_oracle_unavailable_falls_back(self) -> None:
        oracle = FakeOracle(error=OracleUnavailable("timeout"))
        result = self._engine(oracle).refresh("s1")
        self.assertEqual(result.source, "fallback")
        self.assertEqual(oracle.calls, 1)

    def test_oracle_result_is_stored(self) -> None:
        expected = RecommendationSet(entries=[], source="oracle")
        result = self._engine(FakeOracle(result=expected)).refresh("s1")
        self.assertIs(result, expected)
        self.assertEqual(self.store.get("s1").source, "oracle")

    def test_fallback_is_deterministic(self) -> None:
        first = self._engine().refresh("s1")
        second = self._engine().refresh("s1")
        self.assertEqual(first.course_ids, second.course_ids)

    def test_single_history_fetch(self) -> None:
        self.data.history = [EnrollmentRecord("A", "Fall 2024", 90, 100)]
        self._engine().refresh("s1")
        self.assertEqual(self.data.history_calls, [["A", "B", "C", "D"]])

    def test_missing_student(self) -> None:
        with self.assertRaises(InsufficientDataError):
            self._engine().refresh("nobody")
        self.assertFalse(self.store.is_loaded("nobody"))

    def test_empty_catalog(self) -> None:
        self.data.courses = []
        with self.assertRaises(InsufficientDataError):
            self._engine().refresh("s1")

    def test_career_title_is_resolved(self) -> None:
        student, _ = self._engine().load_inputs("s1")
        self.assertEqual(student.career, "Software Engineer")
        # The stored profile itself is not modified
        self.assertIsNone(self.data.students["s1"].career_title)

    def test_ensure_does_not_recompute(self) -> None:
        oracle = FakeOracle(error=OracleUnavailable("down"))
        engine = self._engine(oracle)
        first = engine.ensure_recommendations("s1")
        second = engine.ensure_recommendations("s1")

        self.assertEqual(oracle.calls, 1)
        self.assertEqual(first.course_ids, second.course_ids)

    def test_concurrent_refresh_is_ignored(self) -> None:
        engine = self._engine()
        outcomes = []

        class ReentrantOracle:
            def select(self, student, courses, availability, size=None):
                # A second trigger while the first one is still running
                outcomes.append(engine.refresh("s1"))
                raise OracleUnavailable("stop")

        engine.oracle = ReentrantOracle()
        result = engine.refresh("s1")

        self.assertEqual(outcomes, [None])
        self.assertIsNotNone(result)
        # The key is released afterwards
        self.assertIsNotNone(engine.refresh("s1"))

    def test_conflicting_oracle_answer_is_dropped(self) -> None:
        # A and B overlap on Monday morning
        client = FakeClient(_oracle_reply("A", "B", "C"))
        result = self._engine(OracleSelector(client, size=3)).refresh("s1")

        self.assertEqual(len(client.prompts), 1)
        self.assertEqual(result.source, "fallback")
        self.assertEqual(len(result), 3)
        self.assertEqual(find_conflicts(result.entries), [])
        self.assertFalse("A" in result.course_ids and "B" in result.course_ids)
        self.assertEqual(self.store.get("s1").source, "fallback")

    def test_valid_oracle_answer_is_kept(self) -> None:
        client = FakeClient(_oracle_reply("A", "C", "D"))
        result = self._engine(OracleSelector(client, size=3)).refresh("s1")

        self.assertEqual(result.source, "oracle")
        self.assertEqual(result.course_ids, ["A", "C", "D"])

    def test_engine_size_applies_to_oracle(self) -> None:
        client = FakeClient(_oracle_reply("A", "C"))
        engine = RecommendationEngine(
            self.data, self.store, oracle=OracleSelector(client, size=3), size=2, rng=random.Random(0)
        )
        result = engine.refresh("s1")

        self.assertEqual(result.source, "oracle")
        self.assertEqual(result.course_ids, ["A", "C"])
        self.assertIn("Recommend exactly 2 courses", client.prompts[0])

    def test_from_settings_size(self) -> None:
        with mock.patch.object(settings, "oracle_api_key", "test-key"):
            engine = RecommendationEngine.from_settings(
                data_dir=self._tmp.name, state_dir=self._tmp.name, size=2
            )
        self.assertEqual(engine.size, 2)
        self.assertEqual(engine.oracle.size, 2)


class TestPendingUpdates(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.store = RecommendationStore(self._tmp.name)
        self.engine = RecommendationEngine(
            FakeDataStore(students=[_student()], courses=CATALOG),
            self.store,
            size=3,
            relax_conflicts=False,
            rng=random.Random(0),
        )

    def test_propose_and_apply(self) -> None:
        self.engine.refresh("s1")
        before = self.store.get("s1").course_ids

        proposed = self.engine.propose_from_course_ids("s1", ["D", "C", "A"])
        self.assertEqual(proposed.source, "chat")
        self.assertFalse(proposed.degraded)
        self.assertEqual(self.store.get("s1").course_ids, before)

        applied = self.engine.apply_pending("s1")
        self.assertEqual(applied.course_ids, ["D", "C", "A"])
        self.assertEqual(self.store.get("s1").course_ids, ["D", "C", "A"])

    def test_unknown_and_conflicting_proposals(self) -> None:
        proposed = self.engine.propose_from_course_ids("s1", ["A", "X", "B"])
        self.assertEqual(proposed.course_ids, ["A", "B"])
        self.assertTrue(proposed.degraded)

        self.assertIsNone(self.engine.propose_from_course_ids("s1", ["X", "Y"]))

    def test_propose_from_chat(self) -> None:
        reply, proposed = self.engine.propose_from_chat(
            "s1", 'Try these! {"recommendedCourses": ["C", "D", "A"]}'
        )
        self.assertEqual(reply.content, "Try these!")
        self.assertEqual(proposed.course_ids, ["C", "D", "A"])
        self.assertEqual(self.store.pending("s1").course_ids, ["C", "D", "A"])

    def test_chat_without_courses(self) -> None:
        reply, proposed = self.engine.propose_from_chat("s1", "Happy to help with anything else.")
        self.assertIsNone(proposed)
        self.assertIsNone(self.store.pending("s1"))

    def test_apply_without_pending(self) -> None:
        self.assertIsNone(self.engine.apply_pending("s1"))

    def test_apply_during_refresh_is_not_overwritten(self) -> None:
        engine = self.engine
        engine.propose_from_course_ids("s1", ["D", "C", "A"])
        outcomes = []

        class ApplyingOracle:
            def select(self, student, courses, availability, size=None):
                # A chat apply lands while the refresh is still running
                outcomes.append(engine.apply_pending("s1"))
                raise OracleUnavailable("stop")

        engine.oracle = ApplyingOracle()
        refreshed = engine.refresh("s1")

        self.assertEqual(outcomes, [None])
        self.assertEqual(self.store.get("s1").course_ids, refreshed.course_ids)
        # The pending set survives and can be applied afterwards
        self.assertEqual(self.store.pending("s1").course_ids, ["D", "C", "A"])
        engine.oracle = None
        self.assertEqual(engine.apply_pending("s1").course_ids, ["D", "C", "A"])
        self.assertEqual(self.store.get("s1").course_ids, ["D", "C", "A"])


if __name__ == "__main__":
    unittest.main()
