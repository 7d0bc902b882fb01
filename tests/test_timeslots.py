"""
Unit tests for time-slot parsing.

Parser contract:
- object, JSON string and compact "MWF 10:00-11:15" encodings are accepted
- anything unreadable returns None (never raises)
- parsing canonical output again yields the same slot
"""

import json
import unittest

from coursematch.model import CanonicalTimeSlot, CourseRecord
from coursematch.timeslots import (
    course_slot_preference,
    course_slots,
    format_time_slot,
    parse_time_slot,
)


class TestParseTimeSlot(unittest.TestCase):
    def test_compact_string(self) -> None:
        slot = parse_time_slot("MWF 10:00-11:15")

        self.assertIsNotNone(slot)
        assert slot is not None

        self.assertEqual(slot.days, frozenset({"Mon", "Wed", "Fri"}))
        self.assertEqual(slot.start, 600)
        self.assertEqual(slot.end, 675)

    def test_object_and_json_string_agree(self) -> None:
        obj = {"days": "TR", "time": "13:00-14:00"}
        from_obj = parse_time_slot(obj)
        from_json = parse_time_slot(json.dumps(obj))
        from_compact = parse_time_slot("TR 13:00-14:00")

        self.assertIsNotNone(from_obj)
        self.assertEqual(from_obj, from_json)
        self.assertEqual(from_obj, from_compact)

    def test_day_names_are_accepted(self) -> None:
        slot = parse_time_slot({"days": "Mon/Thu", "time": "10:30-11:30"})
        self.assertIsNotNone(slot)
        assert slot is not None
        self.assertEqual(slot.days, frozenset({"Mon", "Thu"}))

        slot2 = parse_time_slot({"days": ["Monday", "Thursday"], "time": "10:30-11:30"})
        self.assertEqual(slot, slot2)

    def test_weekend_letters(self) -> None:
        slot = parse_time_slot("SU 09:00-12:00")
        self.assertIsNotNone(slot)
        assert slot is not None
        self.assertEqual(slot.days, frozenset({"Sat", "Sun"}))

    def test_unparseable_returns_none(self) -> None:
        bad_inputs = [
            None,
            "",
            "whenever",
            42,
            ["MWF 10:00-11:15"],
            "{not json",
            '"MWF 10:00-11:15"',
            {"days": "MWF"},
            {"days": "XYZ", "time": "10:00-11:00"},
            "MWF 11:00-10:00",
            "MWF 10:00-10:00",
            "MWF 25:00-26:00",
            "mwf 10:00-11:15",
        ]
        for raw in bad_inputs:
            with self.subTest(raw=raw):
                self.assertIsNone(parse_time_slot(raw))

    def test_parse_is_idempotent_on_canonical_output(self) -> None:
        for raw in ["MWF 10:00-11:15", {"days": "TR", "time": "08:05-09:50"}, "U 18:00-20:00"]:
            with self.subTest(raw=raw):
                slot = parse_time_slot(raw)
                assert slot is not None
                self.assertEqual(parse_time_slot(slot), slot)
                self.assertEqual(parse_time_slot(slot.to_dict()), slot)
                self.assertEqual(parse_time_slot(parse_time_slot(slot.to_dict())), slot)

    def test_canonical_slot_rejects_inverted_interval(self) -> None:
        with self.assertRaises(ValueError):
            CanonicalTimeSlot(days=frozenset({"Mon"}), start=600, end=600)


class TestCourseSlots(unittest.TestCase):
    def test_unparseable_encodings_are_dropped(self) -> None:
        course = CourseRecord(
            course_id="CS1",
            title="Intro",
            subject="Computer Science",
            credits=3,
            time_slots=["MW 09:00-10:00", "TBA", [{"days": "F", "time": "14:00-16:00"}]],
        )
        slots = course_slots(course)
        self.assertEqual(len(slots), 2)
        self.assertEqual(slots[1].days, frozenset({"Fri"}))

    def test_slot_preference_is_derived_from_first_slot(self) -> None:
        morning = CourseRecord("A", "A", "X", 3, time_slots=["MWF 10:00-11:15"])
        afternoon = CourseRecord("B", "B", "X", 3, time_slots=["TR 13:00-14:00"])
        evening = CourseRecord("C", "C", "X", 3, time_slots=["W 18:00-20:30"])
        declared = CourseRecord("D", "D", "X", 3, time_slots=["W 18:00-20:30"], slot_preference="Morning")
        unknown = CourseRecord("E", "E", "X", 3, time_slots=["TBA"])

        self.assertEqual(course_slot_preference(morning), "Morning")
        self.assertEqual(course_slot_preference(afternoon), "Afternoon")
        self.assertEqual(course_slot_preference(evening), "Evening")
        self.assertEqual(course_slot_preference(declared), "Morning")
        self.assertIsNone(course_slot_preference(unknown))


class TestFormatTimeSlot(unittest.TestCase):
    def test_format_known_slot(self) -> None:
        self.assertEqual(format_time_slot("MWF 10:00-11:15"), "Monday, Wednesday, Friday 10:00-11:15")
        self.assertEqual(
            format_time_slot('{"days": "TR", "time": "13:00-14:00"}'),
            "Tuesday, Thursday 13:00-14:00",
        )

    def test_format_missing_and_unparseable(self) -> None:
        self.assertEqual(format_time_slot(None), "Flexible")
        self.assertEqual(format_time_slot([]), "Flexible")
        self.assertEqual(format_time_slot("TBA"), "TBA")

    def test_format_several_slots(self) -> None:
        self.assertEqual(
            format_time_slot(["M 09:00-10:00", "F 14:00-15:00"]),
            "Monday 09:00-10:00; Friday 14:00-15:00",
        )


if __name__ == "__main__":
    unittest.main()
