"""
System log viewer.

Without arguments lists the sessions with recent activity in
``system_logs``; with a session id prints that session's rows in order.
"""

import argparse
import json
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from dialogue_stt.config import load_config
from dialogue_stt.dependencies import build_engine, session_factory_for
from dialogue_stt.db_models import SystemLog
from dialogue_stt.exceptions import ConfigurationError
from dialogue_stt.logging import setup_logging
from dialogue_stt.repositories import SessionLogSummary, SystemLogRepository

logger = logging.getLogger(__name__)

RECENT_ROWS = 200
LISTED_SESSIONS = 10


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="dialogue-stt-logs",
        description="Show pipeline logs stored in the system_logs table.",
    )
    parser.add_argument("session_id", nargs="?", help="Session or correlation id to show")
    parser.add_argument("--list", action="store_true", help="List recent sessions (default)")
    parser.add_argument(
        "--limit", type=int, default=LISTED_SESSIONS, help="Number of sessions to list"
    )
    return parser.parse_args(argv)


def format_summary(summary: SessionLogSummary) -> str:
    return (
        f"{summary.session_id}  latest={summary.latest.isoformat()}  "
        f"sources={','.join(summary.sources)}  entries={summary.count}"
    )


def format_row(row: SystemLog) -> list[str]:
    lines = [f"[{row.created_at.isoformat()}] [{row.source}] [{row.level.upper()}] {row.message}"]
    if row.details:
        lines.extend("    " + line for line in json.dumps(row.details, indent=2, default=str).splitlines())
    return lines


def show_recent(repository: SystemLogRepository, limit: int) -> list[str]:
    summaries = repository.recent_sessions(RECENT_ROWS)[:limit]
    if not summaries:
        return ["No log entries found."]
    return [format_summary(summary) for summary in summaries]


def show_session(repository: SystemLogRepository, session_id: str) -> list[str]:
    rows = repository.list_for_session(session_id)
    if not rows:
        return [f"No log entries for session {session_id}."]
    lines = [f"{len(rows)} entries for session {session_id}"]
    for row in rows:
        lines.extend(format_row(row))
    return lines


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(stream=sys.stderr)

    try:
        config = load_config()
    except ConfigurationError as e:
        logger.error("Invalid configuration", extra={"missing": e.missing, "error": str(e)})
        return 2
    if not config.database.user:
        logger.error("Invalid configuration", extra={"missing": ["POSTGRES_USER"]})
        return 2

    try:
        repository = SystemLogRepository(session_factory_for(build_engine(config)))
        if args.session_id and not args.list:
            lines = show_session(repository, args.session_id)
        else:
            lines = show_recent(repository, args.limit)
    except SQLAlchemyError as e:
        logger.exception("Log query failed", extra={"error": str(e)})
        print(f"Log query failed: {e}", file=sys.stderr)
        return 1

    print("\n".join(lines))
    return 0


if __name__ == "__main__":
    sys.exit(main())
