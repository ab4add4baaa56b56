"""Worker-side path to cloud recognition: upload to GCS, then call the start URL."""

import logging

import httpx
from google.cloud import storage

from dialogue_stt.domain.models import (
    FLAC,
    AudioFormat,
    AudioSource,
    CompletionMode,
    JobHandle,
    ProviderKind,
)
from dialogue_stt.exceptions import ProviderError, StorageUploadError

from .interfaces import AudioSubmitter

logger = logging.getLogger(__name__)

WORKER_TOKEN_HEADER = "x-stt-worker-token"


class GcsUploader:
    """Uploads merged audio to a Cloud Storage bucket."""

    def __init__(self, client: storage.Client, bucket_name: str):
        self._client = client
        self._bucket_name = bucket_name

    def upload(self, source: AudioSource, object_name: str) -> str:
        """Uploads a local file and returns its ``gs://`` URI."""
        try:
            blob = self._client.bucket(self._bucket_name).blob(object_name)
            blob.upload_from_filename(str(source.path), content_type=source.mime_type)
        except Exception as e:
            logger.exception(
                "GCS upload failed",
                extra={"bucket_name": self._bucket_name, "object_name": object_name},
            )
            raise StorageUploadError(object_name, e) from e

        uri = f"gs://{self._bucket_name}/{object_name}"
        logger.info("Merged audio uploaded to GCS", extra={"uri": uri})
        return uri


class StartTranscriptionClient:
    """Calls the web backend's start endpoint with a shared secret."""

    def __init__(self, client: httpx.Client, start_url: str, worker_token: str):
        self._client = client
        self._start_url = start_url
        self._worker_token = worker_token

    def start(self, gcs_uri: str) -> str:
        """
        Requests recognition of a stored file.

        Returns:
            The operation name.

        Raises:
            ProviderError: On transport errors, non-2xx, or a body without an operation name.
        """
        headers = {WORKER_TOKEN_HEADER: self._worker_token} if self._worker_token else {}
        try:
            response = self._client.post(self._start_url, json={"gcsUri": gcs_uri}, headers=headers)
        except httpx.HTTPError as e:
            logger.exception("Start request failed", extra={"start_url": self._start_url})
            raise ProviderError("start-url", self._start_url, cause=e) from e

        if not response.is_success:
            logger.error(
                "Start endpoint returned an error",
                extra={"start_url": self._start_url, "status_code": response.status_code, "body": response.text},
            )
            raise ProviderError("start-url", self._start_url, response.status_code, response.text)

        operation_name = response.json().get("operationName")
        if not operation_name:
            raise ProviderError("start-url", self._start_url, response.status_code, response.text)
        return operation_name


class CloudStartSubmitter(AudioSubmitter):
    """Hands merged audio to cloud recognition through the web backend."""

    kind = ProviderKind.CLOUD

    def __init__(self, uploader: GcsUploader, start_client: StartTranscriptionClient):
        self._uploader = uploader
        self._start_client = start_client

    @property
    def preferred_format(self) -> AudioFormat:
        return FLAC

    def submit(
        self, source: AudioSource, completion: CompletionMode = CompletionMode.SYNC
    ) -> JobHandle:
        if source.path is None:
            raise ValueError("Cloud submission needs a local merged file")
        object_name = source.key or source.path.name
        uri = self._uploader.upload(source, object_name)
        operation_name = self._start_client.start(uri)
        logger.info("Cloud recognition started", extra={"uri": uri, "operation_name": operation_name})
        return JobHandle(kind=self.kind, operation_name=operation_name)
