"""
Oracle-backed selection (primary path).

The oracle is an external generative text model. It is asked for exactly
three course ids with no overlapping time slots, but nothing it returns is
trusted:
- difficulty and availability are always recomputed locally
- the returned set is checked for time conflicts; one conflict discards it all

Every failure (transport, HTTP status, missing/malformed JSON, unknown
courses, conflicts) raises an OracleError so the caller can fall back.
No retries happen here.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

import requests

from coursematch.availability import DEFAULT_AVAILABILITY, course_difficulty
from coursematch.config import settings
from coursematch.conflicts import find_conflicts
from coursematch.logging_utils import get_logger
from coursematch.model import CourseRecord, RecommendationSet, ScoredCourse, StudentProfile
from coursematch.scoring import score_course

log = get_logger(__name__)

JSON_BLOCK_RE = re.compile(r"\{[\s\S]*\}")


class OracleError(Exception):
    """Base class: the oracle result cannot be used."""


class OracleUnavailable(OracleError):
    """Transport failure, timeout or non-2xx response."""


class OracleResponseError(OracleError):
    """The oracle answered, but the answer is malformed or violates constraints."""


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


class OracleClient:
    """
    Minimal client for a Gemini-style generateContent endpoint.
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: str,
        timeout: float = 30.0,
        temperature: float = 0.3,
        max_tokens: int = 1024,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls) -> "OracleClient":
        return cls(
            base_url=settings.oracle_url,
            model=settings.oracle_model,
            api_key=settings.oracle_api_key or "",
            timeout=settings.oracle_timeout_s,
            temperature=settings.oracle_temperature,
            max_tokens=settings.oracle_max_tokens,
        )

    def generate(self, prompt: str) -> str:
        """
        Send one prompt and return the generated text.
        Raises OracleUnavailable for any transport-level problem.
        """
        url = f"{self.base_url}/{self.model}:generateContent"
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": float(self.temperature),
                "topP": 0.8,
                "topK": 40,
                "maxOutputTokens": int(self.max_tokens),
            },
        }
        try:
            resp = self.session.post(url, params={"key": self.api_key}, json=body, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise OracleUnavailable(f"Oracle request timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise OracleUnavailable(f"Oracle request failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise OracleUnavailable(f"Oracle error {resp.status_code}: {resp.text[:200]}")

        try:
            data = resp.json()
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise OracleResponseError("Unexpected oracle response envelope") from e


# ---------------------------------------------------------------------------
# Prompt + response handling
# ---------------------------------------------------------------------------


def order_candidates(student: StudentProfile, courses: Sequence[CourseRecord]) -> List[CourseRecord]:
    """
    Put courses of preferred subjects first, keeping catalog order otherwise.
    """
    preferred = {s.strip().lower() for s in student.preferred_subjects}
    return sorted(courses, key=lambda c: 0 if c.subject.strip().lower() in preferred else 1)


def build_prompt(
    student: StudentProfile,
    courses: Sequence[CourseRecord],
    availability: Mapping[str, float],
    size: int = 3,
) -> str:
    profile = {
        "career_goal": student.career,
        "technical_level": student.technical_proficiency,
        "preferred_subjects": sorted(student.preferred_subjects),
        "time_slot_preference": student.slot_preference,
        "completed_courses": sorted(student.completed_courses),
        "credits_completed": student.credits_completed,
    }
    catalog = [
        {
            "id": c.course_id,
            "title": c.title,
            "subject": c.subject,
            "credits": c.credits,
            "difficulty_level": course_difficulty(c),
            "time_slots": c.time_slots,
            "prerequisites": c.prerequisites,
            "career_paths": c.career_paths,
            "technical_level": c.technical_level,
            "availability": round(availability.get(c.course_id, DEFAULT_AVAILABILITY), 2),
            "description": c.description or f"Course on {c.subject}",
        }
        for c in courses
    ]

    return f"""You are a course recommendation expert. Recommend exactly {size} courses for a student with NO TIME CONFLICTS between them.

Student Profile:
{json.dumps(profile, indent=2, ensure_ascii=False)}

Available Courses:
{json.dumps(catalog, indent=2, ensure_ascii=False)}

Hard requirement:
- No two of the {size} courses may share a day with overlapping times.

Also:
1. Prioritize courses that align with the student's career goal
2. Consider the student's technical level and preferred subjects
3. Check prerequisites (the student should have completed them already)
4. Prefer courses with higher availability

For each course give specific reasons: the technical skills learned, how they help the career goal,
and projects the student could build.

Respond ONLY with a JSON object in this exact format:
{{
  "recommendations": [
    {{"course_id": "<id>", "match_score": 0.95, "reasons": ["...", "..."]}}
  ]
}}"""


def extract_json_block(text: str) -> Dict[str, Any]:
    """
    Pull the outermost {...} block out of free text and decode it.
    """
    m = JSON_BLOCK_RE.search(text or "")
    if not m:
        raise OracleResponseError("No JSON found in oracle response")
    try:
        data = json.loads(m.group(0))
    except ValueError as e:
        raise OracleResponseError(f"Malformed JSON in oracle response: {e}") from e
    if not isinstance(data, dict):
        raise OracleResponseError("Oracle JSON is not an object")
    return data


def _clamp_score(value: Any, default: float) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return default
    if score != score:  # NaN
        return default
    return max(0.0, min(1.0, score))


def _clean_reasons(value: Any) -> List[str]:
    """
    Keep only non-empty strings from a JSON list; anything else yields [].
    """
    if not isinstance(value, list):
        return []
    return [r.strip() for r in value if isinstance(r, str) and r.strip()]


def parse_recommendations(
    text: str,
    student: StudentProfile,
    courses: Sequence[CourseRecord],
    availability: Mapping[str, float],
    size: int = 3,
) -> RecommendationSet:
    """
    Turn raw oracle text into a validated RecommendationSet.
    """
    data = extract_json_block(text)
    items = data.get("recommendations")
    if not isinstance(items, list):
        raise OracleResponseError("'recommendations' missing or not a list")

    by_id = {c.course_id: c for c in courses}
    entries: List[ScoredCourse] = []
    seen: set[str] = set()

    for item in items:
        if not isinstance(item, dict):
            raise OracleResponseError("Recommendation entry is not an object")
        cid = str(item.get("course_id", "")).strip()
        course = by_id.get(cid)
        if course is None:
            raise OracleResponseError(f"Unknown course id from oracle: {cid!r}")
        if cid in seen:
            raise OracleResponseError(f"Duplicate course id from oracle: {cid!r}")
        seen.add(cid)

        local = score_course(course, student)
        reasons = _clean_reasons(item.get("reasons"))
        entries.append(
            ScoredCourse(
                course=course,
                match_score=_clamp_score(item.get("match_score"), local.score),
                reasons=reasons or local.reasons or ["Recommended based on your profile"],
                difficulty_level=course_difficulty(course),
                availability_score=availability.get(cid, DEFAULT_AVAILABILITY),
            )
        )

    if len(entries) != size:
        raise OracleResponseError(f"Expected {size} recommendations, got {len(entries)}")

    clashes = find_conflicts(entries)
    if clashes:
        pairs = ", ".join(f"{a.course_id}/{b.course_id}" for a, b in clashes)
        raise OracleResponseError(f"Oracle recommendations have time conflicts: {pairs}")

    return RecommendationSet(entries=entries, source="oracle", degraded=False)


class OracleSelector:
    """
    Asks the oracle for a recommendation set and validates the answer.
    """

    def __init__(self, client: OracleClient, size: int = 3):
        self.client = client
        self.size = size

    def select(
        self,
        student: StudentProfile,
        courses: Sequence[CourseRecord],
        availability: Mapping[str, float],
        size: Optional[int] = None,
    ) -> RecommendationSet:
        size = self.size if size is None else size
        candidates = order_candidates(student, courses)
        prompt = build_prompt(student, candidates, availability, size=size)
        text = self.client.generate(prompt)
        result = parse_recommendations(text, student, candidates, availability, size=size)
        log.info("Oracle recommended %s for student %s", ", ".join(result.course_ids), student.student_id)
        return result
