"""Gemini file-upload implementation of the TranscriptionProvider interface."""

import logging

from google import genai

from dialogue_stt.config import GeminiConfig
from dialogue_stt.domain.models import (
    FLAC,
    AudioFormat,
    AudioSource,
    CompletionMode,
    JobHandle,
    PollResult,
    ProviderKind,
)
from dialogue_stt.exceptions import ProviderError, TranscriptionFailedError

from .interfaces import TranscriptionProvider

logger = logging.getLogger(__name__)

PROVIDER_NAME = "gemini"

DIARIZATION_PROMPT = (
    "Listen to this audio specifically for speaker diarization. Transcribe the "
    "conversation, strictly identifying speakers as 'Speaker 1', 'Speaker 2', etc. "
    "Format every line as: '[Speaker X]: Text'."
)


def _state_name(file) -> str:
    state = getattr(file, "state", None)
    return getattr(state, "name", None) or str(state or "")


class GeminiFileProvider(TranscriptionProvider):
    """
    Multimodal transcription: upload the file, wait for ACTIVE, then prompt.

    Output is free text with speaker markup, the least structured of the
    backends.
    """

    kind = ProviderKind.MULTIMODAL

    def __init__(self, client: genai.Client, config: GeminiConfig):
        self._client = client
        self._config = config

    @property
    def preferred_format(self) -> AudioFormat:
        return FLAC

    def submit(
        self, source: AudioSource, completion: CompletionMode = CompletionMode.SYNC
    ) -> JobHandle:
        if source.path is None:
            raise ValueError("Gemini needs a local audio file")
        try:
            uploaded = self._client.files.upload(
                file=str(source.path),
                config={"mime_type": source.mime_type, "display_name": source.path.name},
            )
        except Exception as e:
            logger.exception("Gemini file upload failed", extra={"file": source.path.name})
            raise ProviderError(PROVIDER_NAME, "files.upload", cause=e) from e

        logger.info("Audio uploaded to Gemini", extra={"file_name": uploaded.name})
        return JobHandle(kind=self.kind, token=uploaded.name)

    def poll(self, handle: JobHandle) -> PollResult:
        if handle.inline_result is not None:
            return PollResult(done=True, result=handle.inline_result)

        try:
            file = self._client.files.get(name=handle.token)
        except Exception as e:
            logger.exception("Gemini file lookup failed", extra={"file_name": handle.token})
            raise ProviderError(PROVIDER_NAME, f"files/{handle.token}", cause=e) from e

        state = _state_name(file)
        if state == "FAILED":
            raise TranscriptionFailedError(PROVIDER_NAME, handle.token, "file processing failed")
        if state != "ACTIVE":
            return PollResult(done=False, metadata={"state": state})

        return PollResult(done=True, result={"text": self._generate(file)})

    def _generate(self, file) -> str:
        try:
            response = self._client.models.generate_content(
                model=self._config.model_name,
                contents=[DIARIZATION_PROMPT, file],
            )
        except Exception as e:
            logger.exception("Gemini generation failed")
            raise ProviderError(PROVIDER_NAME, "models.generate_content", cause=e) from e

        if not response.text:
            raise ProviderError(PROVIDER_NAME, "models.generate_content", body="empty response")
        logger.info("Gemini transcription completed", extra={"chars": len(response.text)})
        return response.text
