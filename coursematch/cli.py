"""
CLI (Command Line Interface).

This module provides quick terminal commands, e.g.:

    coursematch recommend <student_id> [--refresh] [--no-oracle]
    coursematch show <student_id>
    coursematch propose <student_id> <course_id> [<course_id> ...]
    coursematch propose <student_id> --chat-file reply.txt
    coursematch apply <student_id>
    coursematch conflicts <student_id>

Note:
- Catalog data is read from --data-dir (default: COURSEMATCH_DATA_DIR)
- Recommendation state is kept in --state-dir (default: COURSEMATCH_STATE_DIR)
- Output is plain text (no rich formatting)
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional

from coursematch.availability import occupancy_label
from coursematch.config import settings
from coursematch.conflicts import find_conflicts
from coursematch.engine import InsufficientDataError, RecommendationEngine
from coursematch.logging_utils import setup_logging
from coursematch.model import RecommendationSet
from coursematch.storage import RecommendationStore
from coursematch.timeslots import format_time_slot


def _build_engine(args: argparse.Namespace, use_oracle: bool = True) -> RecommendationEngine:
    return RecommendationEngine.from_settings(
        use_oracle=use_oracle,
        data_dir=args.data_dir,
        state_dir=args.state_dir,
    )


def _print_set(rec_set: Optional[RecommendationSet], title: str = "Recommended courses") -> None:
    if rec_set is None or not rec_set.entries:
        print("No recommendations.")
        return

    flags = f"source: {rec_set.source}"
    if rec_set.degraded:
        flags += ", DEGRADED"
    print(f"{title} ({flags})")

    for i, e in enumerate(rec_set.entries, start=1):
        c = e.course
        print(f"{i}. {c.course_id} | {c.title} | {c.subject} | {c.credits} cr")
        print(f"   match {round(e.match_score * 100)}% | {e.difficulty_level} | occupancy {occupancy_label(e.availability_score)}")
        print(f"   {format_time_slot(c.time_slots)}")
        for r in e.reasons:
            print(f"   - {r}")

    for a, b in find_conflicts(rec_set.entries):
        print(f"Warning: {a.course_id} and {b.course_id} overlap in time.")


def _cmd_recommend(args: argparse.Namespace) -> int:
    """
    Show stored recommendations, computing them if needed (or if --refresh).
    """
    engine = _build_engine(args, use_oracle=not args.no_oracle)
    try:
        if args.refresh:
            rec_set = engine.refresh(args.student_id)
        else:
            rec_set = engine.ensure_recommendations(args.student_id)
    except InsufficientDataError as e:
        print(f"Insufficient data: {e}")
        return 1

    _print_set(rec_set)
    return 0


def _cmd_show(args: argparse.Namespace) -> int:
    store = RecommendationStore(args.state_dir)
    if not store.is_loaded(args.student_id):
        print(f"No recommendations stored for {args.student_id}.")
        return 0
    _print_set(store.get(args.student_id))
    return 0


def _cmd_propose(args: argparse.Namespace) -> int:
    """
    Store proposed courses as a pending update (see `apply`).
    """
    engine = _build_engine(args, use_oracle=False)
    try:
        if args.chat_file:
            text = Path(args.chat_file).read_text(encoding="utf-8")
            reply, rec_set = engine.propose_from_chat(args.student_id, text)
            if reply.content:
                print(reply.content)
                print()
        else:
            rec_set = engine.propose_from_course_ids(args.student_id, args.course_ids)
    except InsufficientDataError as e:
        print(f"Insufficient data: {e}")
        return 1
    except OSError as e:
        print(f"Could not read chat file: {e}")
        return 1

    if rec_set is None:
        print("No known courses proposed.")
        return 1

    _print_set(rec_set, title="Proposed courses")
    print(f"Run 'coursematch apply {args.student_id}' to make this your recommendation set.")
    return 0


def _cmd_apply(args: argparse.Namespace) -> int:
    engine = _build_engine(args, use_oracle=False)
    applied = engine.apply_pending(args.student_id)
    if applied is None:
        print("Nothing to apply.")
        return 0
    _print_set(applied)
    return 0


def _cmd_conflicts(args: argparse.Namespace) -> int:
    """
    Print all time conflicts among the stored recommendations.
    """
    store = RecommendationStore(args.state_dir)
    rec_set = store.get(args.student_id)
    if rec_set is None:
        print(f"No recommendations stored for {args.student_id}.")
        return 0

    confs = find_conflicts(rec_set.entries)
    if not confs:
        print("No conflicts found.")
        return 0

    print(f"Conflicts found: {len(confs)}")
    for a, b in confs:
        print(
            f"- {a.course_id} {format_time_slot(a.course.time_slots)}"
            f"  <->  {b.course_id} {format_time_slot(b.course.time_slots)}"
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="coursematch", description="Conflict-free course recommendations")
    parser.add_argument("--data-dir", type=Path, default=settings.data_dir, help="Catalog directory")
    parser.add_argument("--state-dir", type=Path, default=settings.state_dir, help="Recommendation state directory")
    parser.add_argument("--log-level", type=str, default=None, help="Logging level (default: COURSEMATCH_LOG_LEVEL)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_rec = sub.add_parser("recommend", help="Show or compute recommendations")
    p_rec.add_argument("student_id", type=str)
    p_rec.add_argument("--refresh", action="store_true", help="Recompute even if stored")
    p_rec.add_argument("--no-oracle", action="store_true", help="Use the deterministic selector only")

    p_show = sub.add_parser("show", help="Show stored recommendations")
    p_show.add_argument("student_id", type=str)

    p_prop = sub.add_parser("propose", help="Propose courses as a pending update")
    p_prop.add_argument("student_id", type=str)
    p_prop.add_argument("course_ids", nargs="*", help="Course IDs in preference order")
    p_prop.add_argument("--chat-file", type=str, default=None, help="Assistant reply containing recommendedCourses")

    p_apply = sub.add_parser("apply", help="Apply the pending update")
    p_apply.add_argument("student_id", type=str)

    p_conf = sub.add_parser("conflicts", help="Show time conflicts among stored recommendations")
    p_conf.add_argument("student_id", type=str)

    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    if not str(getattr(args, "student_id", "")).strip():
        print("Please provide a student_id.")
        raise SystemExit(1)

    if args.command == "recommend":
        raise SystemExit(_cmd_recommend(args))
    if args.command == "show":
        raise SystemExit(_cmd_show(args))
    if args.command == "propose":
        if not args.course_ids and not args.chat_file:
            print("Please provide course IDs or --chat-file.")
            raise SystemExit(1)
        raise SystemExit(_cmd_propose(args))
    if args.command == "apply":
        raise SystemExit(_cmd_apply(args))
    if args.command == "conflicts":
        raise SystemExit(_cmd_conflicts(args))

    raise SystemExit(2)
