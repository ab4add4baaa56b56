"""CLOVA Speech implementation of the TranscriptionProvider interface."""

import json
import logging

import httpx

from dialogue_stt.config import ClovaConfig, RecognitionConfig
from dialogue_stt.domain.models import (
    AAC_M4A,
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

PROVIDER_NAME = "clova"
API_KEY_HEADER = "X-CLOVASPEECH-API-KEY"


class ClovaSpeechProvider(TranscriptionProvider):
    """Diarizing speech API reached by multipart upload; sync body or async token."""

    kind = ProviderKind.THIRD_PARTY

    def __init__(
        self,
        client: httpx.Client,
        config: ClovaConfig,
        recognition: RecognitionConfig,
        callback_url: str | None = None,
    ):
        self._client = client
        self._config = config
        self._recognition = recognition
        self._callback_url = callback_url

    @property
    def preferred_format(self) -> AudioFormat:
        return AAC_M4A

    def build_params(self, completion: CompletionMode) -> dict:
        """Request parameters sent alongside the media part."""
        params = {
            "language": self._recognition.language_code,
            "completion": completion.value,
            "callback": self._callback_url if completion is CompletionMode.ASYNC else None,
            "forbidden": None,
            "boostings": None,
            "wordAlignment": True,
            "fullText": True,
            "diarization": {
                "enable": self._recognition.diarization_enabled,
                "speakerCountMin": self._recognition.min_speaker_count,
                "speakerCountMax": self._recognition.max_speaker_count,
            },
        }
        if self._config.domain_code:
            params["userdata"] = {"_ncp_DomainCode": self._config.domain_code}
        return params

    def submit(
        self, source: AudioSource, completion: CompletionMode = CompletionMode.SYNC
    ) -> JobHandle:
        if source.path is None:
            raise ValueError("CLOVA Speech needs a local audio file")

        endpoint = f"{self._config.base_url}/recognizer/upload"
        params = self.build_params(completion)
        logger.info(
            "Uploading audio to CLOVA Speech",
            extra={"endpoint": endpoint, "file": source.path.name, "params": params},
        )

        with source.path.open("rb") as media:
            body = self._request(
                "POST",
                endpoint,
                files={"media": (source.path.name, media, source.mime_type)},
                data={"params": json.dumps(params)},
            )

        if completion is CompletionMode.ASYNC:
            token = body.get("token")
            if not token:
                raise ProviderError(PROVIDER_NAME, endpoint, body=json.dumps(body))
            logger.info("CLOVA Speech job accepted", extra={"token": token})
            return JobHandle(kind=self.kind, token=token)

        self._raise_if_failed(body, "sync")
        logger.info(
            "CLOVA Speech processing complete",
            extra={"segment_count": len(body.get("segments") or []), "has_text": bool(body.get("text"))},
        )
        return JobHandle(kind=self.kind, inline_result=body)

    def poll(self, handle: JobHandle) -> PollResult:
        if handle.inline_result is not None:
            return PollResult(done=True, result=handle.inline_result)

        endpoint = f"{self._config.base_url}/recognizer/{handle.token}"
        body = self._request("GET", endpoint)
        status = body.get("result")
        self._raise_if_failed(body, handle.token)

        if status == "COMPLETED":
            return PollResult(done=True, result=body)
        return PollResult(done=False, metadata={"result": status, "progress": body.get("progress")})

    def _request(self, method: str, endpoint: str, **kwargs) -> dict:
        try:
            response = self._client.request(
                method,
                endpoint,
                headers={API_KEY_HEADER: self._config.secret_key},
                timeout=self._config.timeout_seconds,
                **kwargs,
            )
        except httpx.HTTPError as e:
            logger.exception("CLOVA Speech request failed", extra={"endpoint": endpoint})
            raise ProviderError(PROVIDER_NAME, endpoint, cause=e) from e

        if not response.is_success:
            logger.error(
                "CLOVA Speech returned an error",
                extra={"endpoint": endpoint, "status_code": response.status_code, "body": response.text},
            )
            raise ProviderError(PROVIDER_NAME, endpoint, response.status_code, response.text)

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                PROVIDER_NAME, endpoint, response.status_code, response.text, cause=e
            ) from e

    def _raise_if_failed(self, body: dict, reference: str) -> None:
        if body.get("result") == "FAILED":
            logger.error(
                "CLOVA Speech job failed",
                extra={"reference": reference, "provider_message": body.get("message")},
            )
            raise TranscriptionFailedError(PROVIDER_NAME, reference, body.get("message"))
