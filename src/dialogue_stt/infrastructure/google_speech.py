"""Google Cloud Speech-to-Text implementation of the TranscriptionProvider interface."""

import logging

from google.cloud import speech

from dialogue_stt.config import RecognitionConfig
from dialogue_stt.domain.models import (
    FLAC,
    AudioFormat,
    AudioSource,
    CompletionMode,
    JobHandle,
    PollResult,
    ProviderKind,
)
from dialogue_stt.domain.audio_merger import REENCODE_SAMPLE_RATE
from dialogue_stt.exceptions import ProviderError, TranscriptionFailedError

from .interfaces import TranscriptionProvider

logger = logging.getLogger(__name__)

PROVIDER_NAME = "google-speech"


class GoogleSpeechProvider(TranscriptionProvider):
    """Long-running recognition of audio already stored in Cloud Storage."""

    kind = ProviderKind.CLOUD

    def __init__(self, client: speech.SpeechClient, recognition: RecognitionConfig):
        self._client = client
        self._recognition = recognition

    @property
    def preferred_format(self) -> AudioFormat:
        return FLAC

    def build_config(self, uri: str) -> speech.RecognitionConfig:
        """Recognition config; encoding follows the extension of a URI or file name."""
        lowered = uri.lower()
        if lowered.endswith(".webm"):
            encoding = speech.RecognitionConfig.AudioEncoding.WEBM_OPUS
            sample_rate = self._recognition.sample_rate_hertz
        elif lowered.endswith(".flac"):
            encoding = speech.RecognitionConfig.AudioEncoding.FLAC
            sample_rate = REENCODE_SAMPLE_RATE
        else:
            encoding = speech.RecognitionConfig.AudioEncoding.ENCODING_UNSPECIFIED
            sample_rate = None

        config = speech.RecognitionConfig(
            encoding=encoding,
            language_code=self._recognition.language_code,
            enable_word_time_offsets=self._recognition.diarization_enabled,
            model=self._recognition.model,
        )
        if sample_rate:
            config.sample_rate_hertz = sample_rate
        if self._recognition.diarization_enabled:
            config.diarization_config = speech.SpeakerDiarizationConfig(
                enable_speaker_diarization=True,
                min_speaker_count=self._recognition.min_speaker_count,
                max_speaker_count=self._recognition.max_speaker_count,
            )
        return config

    def submit(
        self, source: AudioSource, completion: CompletionMode = CompletionMode.SYNC
    ) -> JobHandle:
        if not source.uri:
            raise ValueError("Long-running recognition needs a gs:// URI")
        try:
            operation = self._client.long_running_recognize(
                config=self.build_config(source.uri),
                audio=speech.RecognitionAudio(uri=source.uri),
            )
        except Exception as e:
            logger.exception("Long-running recognize failed", extra={"uri": source.uri})
            raise ProviderError(PROVIDER_NAME, "longRunningRecognize", cause=e) from e

        name = operation.operation.name
        logger.info("Recognition operation started", extra={"uri": source.uri, "operation_name": name})
        return JobHandle(kind=self.kind, operation_name=name)

    def recognize(self, content: bytes, file_name: str = "audio.webm") -> dict:
        """
        Synchronous recognition of short inline audio (about a minute, 10 MB).

        Returns:
            The recognize response as a dict, in the same shape as a
            finished long-running operation.

        Raises:
            ProviderError: If the request fails.
        """
        try:
            response = self._client.recognize(
                config=self.build_config(file_name),
                audio=speech.RecognitionAudio(content=content),
            )
        except Exception as e:
            logger.exception("Recognize failed", extra={"file": file_name, "size": len(content)})
            raise ProviderError(PROVIDER_NAME, "recognize", cause=e) from e

        result = speech.RecognizeResponse.to_dict(response)
        logger.info(
            "Short audio recognized",
            extra={"file": file_name, "result_count": len(result.get("results") or [])},
        )
        return result

    def poll(self, handle: JobHandle) -> PollResult:
        if handle.inline_result is not None:
            return PollResult(done=True, result=handle.inline_result)

        name = handle.operation_name
        try:
            operation = self._client.transport.operations_client.get_operation(name)
        except Exception as e:
            logger.exception("Operation lookup failed", extra={"operation_name": name})
            raise ProviderError(PROVIDER_NAME, f"operations/{name}", cause=e) from e

        metadata = None
        if operation.metadata.value:
            decoded = speech.LongRunningRecognizeMetadata.deserialize(operation.metadata.value)
            metadata = speech.LongRunningRecognizeMetadata.to_dict(decoded)

        if not operation.done:
            return PollResult(done=False, metadata=metadata)

        if operation.HasField("error") and operation.error.code:
            logger.error(
                "Recognition operation failed",
                extra={"operation_name": name, "error": operation.error.message},
            )
            raise TranscriptionFailedError(PROVIDER_NAME, name, operation.error.message)

        decoded = speech.LongRunningRecognizeResponse.deserialize(operation.response.value)
        result = speech.LongRunningRecognizeResponse.to_dict(decoded)
        return PollResult(done=True, result=result, metadata=metadata)
