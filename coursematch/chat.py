"""
Parsing of chat assistant replies.

The assistant may embed a small JSON object in its prose, e.g.

    Here are my picks. {"recommendedCourses": [101, 204, 317]}

The object is cut out of the text; the recommended course ids become a
pending update for the student (see RecommendationEngine.propose_from_chat).
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import List

FLAT_JSON_RE = re.compile(r"\{[^{}]*\}")
FENCE_RE = re.compile(r"```(?:json)?\n?")


@dataclass
class ChatReply:
    content: str
    recommended_courses: List[str] = field(default_factory=list)


def parse_chat_reply(text: str) -> ChatReply:
    """
    Split a reply into display text and recommended course ids.
    Invalid JSON fragments are left in the text untouched.
    If several objects carry ids, the last one wins.
    """
    raw = text or ""
    content = raw
    course_ids: List[str] = []

    for fragment in FLAT_JSON_RE.findall(raw):
        try:
            data = json.loads(fragment)
        except ValueError:
            continue
        if not isinstance(data, dict):
            continue

        ids = data.get("recommendedCourses")
        if isinstance(ids, list):
            course_ids = [str(x).strip() for x in ids if str(x).strip()]
            content = content.replace(fragment, "")

    content = FENCE_RE.sub("", content).strip()
    return ChatReply(content=content, recommended_courses=course_ids)
