"""Repository for dialogue session and transcript persistence."""

import logging
from uuid import UUID

from sqlmodel import select

from dialogue_stt.db_models import DialogueSession, TranscriptEntry
from dialogue_stt.domain.models import Utterance
from dialogue_stt.exceptions import SessionPersistenceError, TranscriptPersistenceError

logger = logging.getLogger(__name__)


class SessionRepository:
    """
    Handles database operations for sessions and their transcript rows.

    Each call runs in its own database session and commits on its own, so a
    session row survives a later transcript failure.
    """

    def __init__(self, session_factory):
        """
        Initializes the repository.

        Args:
            session_factory: Callable that returns a SQLModel Session context manager.
        """
        self._session_factory = session_factory

    def create_session(self, title: str, mode: str = "free") -> UUID:
        """
        Creates a session record.

        Returns:
            The new session id.

        Raises:
            SessionPersistenceError: If the insert fails.
        """
        try:
            with self._session_factory() as db_session:
                entity = DialogueSession(title=title, mode=mode)
                db_session.add(entity)
                db_session.commit()
                db_session.refresh(entity)
                logger.info(
                    "Session created",
                    extra={"session_id": str(entity.id), "title": title},
                )
                return entity.id
        except Exception as e:
            logger.exception("Failed to create session", extra={"title": title})
            raise SessionPersistenceError(title, cause=e) from e

    def insert_transcripts(self, session_id: UUID, utterances: list[Utterance]) -> int:
        """
        Bulk-inserts transcript rows for a session.

        Returns:
            Number of rows written.

        Raises:
            TranscriptPersistenceError: If the insert fails.
        """
        try:
            with self._session_factory() as db_session:
                db_session.add_all(
                    [
                        TranscriptEntry(
                            session_id=session_id,
                            speaker=utterance.speaker,
                            content=utterance.text,
                            timestamp=utterance.start,
                            transcript_index=utterance.index,
                        )
                        for utterance in utterances
                    ]
                )
                db_session.commit()
        except Exception as e:
            raise TranscriptPersistenceError(str(session_id), cause=e) from e

        logger.info(
            "Transcripts inserted",
            extra={"session_id": str(session_id), "row_count": len(utterances)},
        )
        return len(utterances)

    def list_transcripts(self, session_id: UUID) -> list[TranscriptEntry]:
        """Returns a session's transcript rows ordered by index."""
        with self._session_factory() as db_session:
            statement = (
                select(TranscriptEntry)
                .where(TranscriptEntry.session_id == session_id)
                .order_by(TranscriptEntry.transcript_index)
            )
            return list(db_session.exec(statement).all())

    def count_sessions(self) -> int:
        with self._session_factory() as db_session:
            return len(db_session.exec(select(DialogueSession.id)).all())
