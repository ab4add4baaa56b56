"""Handler that bridges provider job handles to persisted transcripts."""

import logging
from datetime import date
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from dialogue_stt.domain import JobHandle, PollResult, ProviderKind, TranscriptBuilder
from dialogue_stt.exceptions import (
    ProviderNotConfiguredError,
    TranscriptionFailedError,
    TranscriptPersistenceError,
)
from dialogue_stt.infrastructure.interfaces import TranscriptionProvider
from dialogue_stt.repositories import SessionRepository, SystemLogRepository

logger = logging.getLogger(__name__)

CALLBACK_SOURCE = "api/stt/callback"
DEFAULT_MODE = "free"


def callback_key(token: str) -> str:
    """``system_logs.session_id`` under which a webhook result is stored."""
    return f"clova-result-{token}"


def default_title(today: date | None = None) -> str:
    return f"Voice conversation ({(today or date.today()).isoformat()})"


def _raise_if_failed(handle: JobHandle, result: dict[str, Any]) -> None:
    """Delivered results carry the third-party job status; FAILED is terminal."""
    if result.get("result") == "FAILED":
        logger.error(
            "Delivered result reports failure",
            extra={"handle": handle.reference, "provider_message": result.get("message")},
        )
        raise TranscriptionFailedError(handle.kind.value, handle.reference, result.get("message"))


class StatusView(BaseModel):
    """Read-only snapshot of a job."""

    done: bool
    text: str | None = None
    details: list[dict[str, Any]] | None = None
    words: list[dict[str, Any]] = []
    metadata: dict[str, Any] | None = None


class CompletionOutcome(BaseModel):
    done: bool
    session_id: UUID | None = None
    text: str | None = None
    metadata: dict[str, Any] | None = None


class CompletionHandler:
    """
    Polls a job once and, on terminal success, persists its transcript.

    ``status`` never writes. ``complete`` writes exactly once per terminal
    result: the session row first, then the transcript rows.
    """

    def __init__(
        self,
        providers: dict[ProviderKind, TranscriptionProvider],
        builder: TranscriptBuilder,
        sessions: SessionRepository,
        callback_store: SystemLogRepository,
    ):
        self._providers = providers
        self._builder = builder
        self._sessions = sessions
        self._callback_store = callback_store

    def handle_for(self, reference: str, provider: str | None = None) -> JobHandle:
        """
        Builds a handle from a status query; no provider means cloud.

        Raises:
            ValueError: If ``provider`` names no known backend.
        """
        kind = ProviderKind.parse(provider) if provider else ProviderKind.CLOUD
        if kind is ProviderKind.CLOUD:
            return JobHandle(kind=kind, operation_name=reference)
        return JobHandle(kind=kind, token=reference)

    def poll(self, handle: JobHandle) -> PollResult:
        """
        Looks at a job once, preferring a stored webhook result for tokens.

        Raises:
            ProviderNotConfiguredError: If no provider serves ``handle.kind``.
            TranscriptionFailedError: If the job failed.
            ProviderError: If the status request fails.
        """
        if handle.inline_result is not None:
            _raise_if_failed(handle, handle.inline_result)
            return PollResult(done=True, result=handle.inline_result)

        if handle.token is not None:
            stored = self._callback_store.find_latest(callback_key(handle.token))
            if stored is not None and stored.details:
                logger.info("Using stored callback result", extra={"token": handle.token})
                _raise_if_failed(handle, stored.details)
                return PollResult(done=True, result=stored.details)

        return self._provider(handle.kind).poll(handle)

    def status(self, reference: str, provider: str | None = None) -> StatusView:
        handle = self.handle_for(reference, provider)
        polled = self.poll(handle)
        if not polled.done:
            return StatusView(done=False, metadata=polled.metadata)

        return self.describe(handle.kind, polled.result or {}, polled.metadata)

    def describe(
        self,
        kind: ProviderKind,
        result: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> StatusView:
        """Finished-job view of a raw provider result; nothing is persisted."""
        transcript = self._builder.build(kind, result)
        return StatusView(
            done=True,
            text=transcript.text,
            details=result.get("results") or result.get("segments"),
            words=self._builder.words(kind, result),
            metadata=metadata,
        )

    def complete(
        self,
        operation_name: str | None = None,
        token: str | None = None,
        inline_result: dict[str, Any] | None = None,
        title: str | None = None,
        provider: str | None = None,
    ) -> CompletionOutcome:
        """
        Finishes a job: poll once, then create the session and its rows.

        Exactly one of ``operation_name``, ``token`` or ``inline_result`` is
        expected. A transcript insert failure is logged with the session id
        and the session is still reported.

        Raises:
            ValueError: If no job reference is given or ``provider`` is unknown.
            SessionPersistenceError: If the session row cannot be created.
        """
        if inline_result is not None:
            handle = JobHandle(kind=ProviderKind.THIRD_PARTY, inline_result=inline_result)
        elif token:
            kind = ProviderKind.parse(provider) if provider else ProviderKind.THIRD_PARTY
            handle = JobHandle(kind=kind, token=token)
        elif operation_name:
            handle = JobHandle(kind=ProviderKind.CLOUD, operation_name=operation_name)
        else:
            raise ValueError("operationName, token or clovaResult is required")

        polled = self.poll(handle)
        if not polled.done:
            logger.info(
                "Job not finished",
                extra={"handle": handle.reference, "provider": handle.kind.value},
            )
            return CompletionOutcome(done=False, metadata=polled.metadata)

        transcript = self._builder.build(handle.kind, polled.result or {})
        session_id = self._sessions.create_session(title or default_title(), DEFAULT_MODE)

        try:
            self._sessions.insert_transcripts(session_id, transcript.utterances)
        except TranscriptPersistenceError:
            logger.exception(
                "Transcript insert failed, session left without rows",
                extra={"session_id": str(session_id), "handle": handle.reference},
            )

        return CompletionOutcome(done=True, session_id=session_id, text=transcript.text)

    def store_callback(self, token: str, body: dict[str, Any]) -> None:
        """Persists a webhook delivery so later polls can find it."""
        self._callback_store.record(
            session_id=callback_key(token),
            source=CALLBACK_SOURCE,
            level="info",
            message="Third-party async result",
            details=body,
        )
        logger.info("Callback result stored", extra={"token": token})

    def _provider(self, kind: ProviderKind) -> TranscriptionProvider:
        try:
            return self._providers[kind]
        except KeyError:
            raise ProviderNotConfiguredError(kind.value) from None

