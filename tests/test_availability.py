"""
Unit tests for availability estimation and derived labels.
"""

import random
import unittest

from coursematch.availability import (
    DEFAULT_AVAILABILITY,
    course_difficulty,
    difficulty_label,
    estimate_availability,
    occupancy_label,
    weighted_fill_rate,
)
from coursematch.model import CourseRecord, EnrollmentRecord


def _rec(course_id: str, semester: str, filled: int, capacity: int) -> EnrollmentRecord:
    return EnrollmentRecord(course_id=course_id, semester=semester, filled_slots=filled, max_capacity=capacity)


class RecordingFetcher:
    def __init__(self, records):
        self.records = records
        self.calls = []

    def __call__(self, course_ids):
        self.calls.append(list(course_ids))
        return [r for r in self.records if r.course_id in course_ids]


class TestWeightedFillRate(unittest.TestCase):
    def test_most_recent_semester_weighs_most(self) -> None:
        history = [_rec("X", "Spring 2024", 50, 100), _rec("X", "Fall 2024", 90, 100)]
        # Fall 2024 is rank 0 (weight 1), Spring 2024 rank 1 (weight 1/2)
        self.assertAlmostEqual(weighted_fill_rate(history), (0.9 + 0.25) / 1.5)

    def test_year_beats_season(self) -> None:
        history = [_rec("X", "Winter 2023", 100, 100), _rec("X", "Spring 2024", 20, 100)]
        # Spring 2024 is more recent than Winter 2023
        self.assertAlmostEqual(weighted_fill_rate(history), (0.2 + 0.5) / 1.5)

    def test_unusable_records_are_skipped(self) -> None:
        self.assertIsNone(weighted_fill_rate([_rec("X", "Fall 2024", 0, 100), _rec("X", "Fall 2023", 10, 0)]))
        self.assertIsNone(weighted_fill_rate([]))


class TestEstimateAvailability(unittest.TestCase):
    def test_single_batched_fetch(self) -> None:
        fetch = RecordingFetcher([_rec("A", "Fall 2024", 10, 100)])
        estimate_availability(["A", "B", "C", "A"], fetch, jitter=0.0)
        self.assertEqual(fetch.calls, [["A", "B", "C"]])

    def test_missing_history_defaults_to_available(self) -> None:
        fetch = RecordingFetcher([])
        scores = estimate_availability(["A", "B"], fetch)
        self.assertEqual(scores, {"A": DEFAULT_AVAILABILITY, "B": DEFAULT_AVAILABILITY})

    def test_availability_is_one_minus_fill_rate(self) -> None:
        fetch = RecordingFetcher([_rec("A", "Fall 2024", 90, 100), _rec("A", "Spring 2024", 50, 100)])
        scores = estimate_availability(["A"], fetch, jitter=0.0)
        self.assertAlmostEqual(scores["A"], 1 - (0.9 + 0.25) / 1.5)

    def test_scores_are_clamped(self) -> None:
        fetch = RecordingFetcher([_rec("FULL", "Fall 2024", 120, 100), _rec("EMPTY", "Fall 2024", 1, 1000)])
        scores = estimate_availability(["FULL", "EMPTY"], fetch, jitter=0.0)
        self.assertEqual(scores["FULL"], 0.1)
        self.assertEqual(scores["EMPTY"], 0.95)

    def test_jitter_is_bounded(self) -> None:
        fetch = RecordingFetcher([_rec("A", "Fall 2024", 50, 100)])
        rng = random.Random(7)
        for _ in range(50):
            score = estimate_availability(["A"], fetch, rng=rng)["A"]
            self.assertGreaterEqual(score, 0.45)
            self.assertLessEqual(score, 0.55)

    def test_failed_fetch_defaults_everything(self) -> None:
        def broken(course_ids):
            raise OSError("history service down")

        self.assertEqual(estimate_availability(["A"], broken), {"A": DEFAULT_AVAILABILITY})

    def test_empty_input(self) -> None:
        fetch = RecordingFetcher([])
        self.assertEqual(estimate_availability([], fetch), {})
        self.assertEqual(fetch.calls, [])


class TestLabels(unittest.TestCase):
    def test_occupancy_label(self) -> None:
        self.assertEqual(occupancy_label(0.9), "low")
        self.assertEqual(occupancy_label(0.5), "low")
        self.assertEqual(occupancy_label(0.35), "medium")
        self.assertEqual(occupancy_label(0.2), "high")

    def test_difficulty_label(self) -> None:
        self.assertEqual(difficulty_label(None), "Intermediate")
        self.assertEqual(difficulty_label(0), "Beginner")
        self.assertEqual(difficulty_label(3.9), "Beginner")
        self.assertEqual(difficulty_label(4), "Intermediate")
        self.assertEqual(difficulty_label(7.5), "Intermediate")
        self.assertEqual(difficulty_label(8), "Advanced")
        self.assertEqual(difficulty_label(11.9), "Advanced")
        self.assertEqual(difficulty_label(12), "Expert")
        self.assertEqual(difficulty_label(40), "Expert")

    def test_explicit_difficulty_wins(self) -> None:
        explicit = CourseRecord("A", "A", "X", 3, hours_required=2, difficulty_level="Advanced")
        derived = CourseRecord("B", "B", "X", 3, hours_required=2)
        self.assertEqual(course_difficulty(explicit), "Advanced")
        self.assertEqual(course_difficulty(derived), "Beginner")


if __name__ == "__main__":
    unittest.main()
