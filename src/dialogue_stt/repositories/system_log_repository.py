"""Repository for the auxiliary structured-log table."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlmodel import select

from dialogue_stt.db_models import SystemLog


@dataclass
class SessionLogSummary:
    session_id: str
    latest: datetime
    sources: list[str] = field(default_factory=list)
    count: int = 0


class SystemLogRepository:
    """
    Reads and writes ``system_logs`` rows.

    Also serves as the store for third-party webhook results, keyed by a
    synthetic ``session_id``.
    """

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def record(
        self,
        session_id: str,
        source: str,
        level: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        with self._session_factory() as db_session:
            db_session.add(
                SystemLog(
                    session_id=session_id,
                    source=source,
                    level=level,
                    message=message,
                    details=details,
                )
            )
            db_session.commit()

    def find_latest(self, session_id: str) -> SystemLog | None:
        """Most recent row for ``session_id``, or None."""
        with self._session_factory() as db_session:
            statement = (
                select(SystemLog)
                .where(SystemLog.session_id == session_id)
                .order_by(SystemLog.created_at.desc(), SystemLog.id.desc())
            )
            return db_session.exec(statement).first()

    def list_for_session(self, session_id: str) -> list[SystemLog]:
        """All rows for ``session_id``, oldest first."""
        with self._session_factory() as db_session:
            statement = (
                select(SystemLog)
                .where(SystemLog.session_id == session_id)
                .order_by(SystemLog.created_at.asc(), SystemLog.id.asc())
            )
            return list(db_session.exec(statement).all())

    def recent_sessions(self, limit: int = 200) -> list[SessionLogSummary]:
        """
        Groups the latest ``limit`` rows by session id.

        Summaries are ordered by latest activity, newest first. Rows without
        a session id are skipped.
        """
        with self._session_factory() as db_session:
            statement = (
                select(SystemLog)
                .order_by(SystemLog.created_at.desc(), SystemLog.id.desc())
                .limit(limit)
            )
            rows = db_session.exec(statement).all()

        summaries: dict[str, SessionLogSummary] = {}
        for row in rows:
            if not row.session_id:
                continue
            summary = summaries.get(row.session_id)
            if summary is None:
                summary = summaries[row.session_id] = SessionLogSummary(
                    session_id=row.session_id, latest=row.created_at
                )
            summary.count += 1
            if row.source not in summary.sources:
                summary.sources.append(row.source)
        return list(summaries.values())
