"""
Persistent storage for per-student recommendation state.

Each student key maps to up to two files:

    <state_dir>/recommendations_<key>.json   authoritative RecommendationSet
    <state_dir>/pending_<key>.json           pending update, if any

A pending update is a set proposed by a secondary producer (such as the
chat assistant). It is removed when applied and overwritten by the next
proposal; it is never merged entry by entry.

State per key:

    Empty --set--> Loaded --propose_update--> Stale(pending) --apply_pending_update--> Loaded
                   Loaded --set--> Loaded

Every transition replaces the whole set. Files are written to a temporary
sibling and moved into place, so a reader never sees a half-written set.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Dict, Optional

from coursematch.logging_utils import get_logger
from coursematch.model import RecommendationSet

log = get_logger(__name__)

SAFE_KEY_RE = re.compile(r"[^A-Za-z0-9_.-]")


def _default_state_dir() -> Path:
    """
    Return the configured state directory.

    Using a function instead of a constant makes testing easier,
    because tests can pass their own directory.
    """
    from coursematch.config import settings

    return Path(settings.state_dir)


def _normalize_key(key: str) -> str:
    k = str(key).strip()
    if not k:
        raise ValueError("student key cannot be empty")
    return k


def load_recommendation_set(path: str | Path) -> Optional[RecommendationSet]:
    """
    Load one persisted RecommendationSet.

    Returns None if the file does not exist or is invalid, never raises.
    """
    p = Path(path)
    if not p.exists():
        return None
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            return None
        return RecommendationSet.from_dict(data)
    except (OSError, json.JSONDecodeError, UnicodeDecodeError, AttributeError, TypeError, ValueError) as e:
        log.warning("Ignoring unreadable recommendation file %s: %s", p, e)
        return None


def save_recommendation_set(rec_set: RecommendationSet, path: str | Path) -> None:
    """
    Atomically write a RecommendationSet as JSON. Creates parent directories if needed.
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(rec_set.to_dict(), indent=2, ensure_ascii=False)

    fd, tmp_name = tempfile.mkstemp(prefix=p.name, suffix=".tmp", dir=str(p.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_name, p)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class RecommendationStore:
    """
    Keyed store of authoritative and pending recommendation sets.

    Callers must serialize operations per key (the engine does).
    """

    def __init__(self, state_dir: str | Path | None = None):
        self.state_dir = Path(state_dir) if state_dir is not None else _default_state_dir()
        self._current: Dict[str, RecommendationSet] = {}

    def path_for(self, key: str) -> Path:
        safe = SAFE_KEY_RE.sub("_", _normalize_key(key))
        return self.state_dir / f"recommendations_{safe}.json"

    def pending_path_for(self, key: str) -> Path:
        safe = SAFE_KEY_RE.sub("_", _normalize_key(key))
        return self.state_dir / f"pending_{safe}.json"

    def _load(self, key: str) -> Optional[RecommendationSet]:
        if key in self._current:
            return self._current[key]
        rec_set = load_recommendation_set(self.path_for(key))
        if rec_set is not None:
            self._current[key] = rec_set
        return rec_set

    def get(self, key: str) -> Optional[RecommendationSet]:
        """
        Return the authoritative set, or None if nothing was ever computed.
        """
        return self._load(_normalize_key(key))

    def is_loaded(self, key: str) -> bool:
        """
        True once a set (possibly empty) exists for this key, in memory or on disk.
        """
        return self._load(_normalize_key(key)) is not None

    def set(self, key: str, rec_set: RecommendationSet) -> None:
        """
        Overwrite the authoritative set and persist it.
        """
        k = _normalize_key(key)
        save_recommendation_set(rec_set, self.path_for(k))
        self._current[k] = rec_set
        log.info("Stored %d recommendations for %s (source=%s)", len(rec_set), k, rec_set.source)

    def propose_update(self, key: str, rec_set: RecommendationSet) -> None:
        """
        Store a pending set. The authoritative set is not touched.
        A newer proposal replaces an older one.
        """
        k = _normalize_key(key)
        save_recommendation_set(rec_set, self.pending_path_for(k))
        log.info("Pending update for %s: %s", k, ", ".join(rec_set.course_ids))

    def pending(self, key: str) -> Optional[RecommendationSet]:
        return load_recommendation_set(self.pending_path_for(key))

    def clear_pending(self, key: str) -> None:
        self.pending_path_for(key).unlink(missing_ok=True)

    def apply_pending_update(self, key: str) -> Optional[RecommendationSet]:
        """
        Promote the pending set to authoritative and clear it.

        Returns the applied set, or None (no-op) if nothing is pending.
        """
        k = _normalize_key(key)
        rec_set = self.pending(k)
        if rec_set is None:
            return None
        self.set(k, rec_set)
        self.clear_pending(k)
        return rec_set
