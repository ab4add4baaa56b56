from datetime import datetime, timezone
from typing import Any, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field, Relationship, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DialogueSession(SQLModel, table=True):
    __tablename__ = "sessions"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    title: str = Field(max_length=255)
    mode: str = Field(default="free", max_length=32)
    created_at: datetime = Field(default_factory=_utcnow)

    transcripts: List["TranscriptEntry"] = Relationship(back_populates="session")


class TranscriptEntry(SQLModel, table=True):
    __tablename__ = "transcripts"

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: UUID = Field(foreign_key="sessions.id", index=True)
    speaker: str = Field(max_length=255)
    content: str
    timestamp: float = 0.0
    transcript_index: int

    session: DialogueSession = Relationship(back_populates="transcripts")


class SystemLog(SQLModel, table=True):
    __tablename__ = "system_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: str = Field(index=True, max_length=255)
    source: str = Field(max_length=255)
    level: str = Field(max_length=16)
    message: str
    details: Optional[dict[str, Any]] = Field(
        default=None, sa_column=Column("metadata", JSON, nullable=True)
    )
    created_at: datetime = Field(default_factory=_utcnow, index=True)
