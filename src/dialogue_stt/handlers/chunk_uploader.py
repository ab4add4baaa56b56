"""Handler for splitting a recording into chunk objects."""

import io
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from dialogue_stt.domain.chunking import (
    DEFAULT_CHUNK_SIZE,
    chunk_count,
    chunk_object_name,
    iter_chunks,
    manifest_object_name,
)
from dialogue_stt.domain.models import UploadManifest, UploadProgress, UploadResult
from dialogue_stt.infrastructure.interfaces import StorageClient

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[UploadProgress], None]


def new_prefix() -> str:
    """A random ``recordings/<uuid>`` prefix."""
    return f"recordings/{uuid.uuid4()}"


class ChunkUploader:
    """Publishes a recording as ordered chunk objects followed by a manifest."""

    def __init__(self, storage: StorageClient, bucket_name: str):
        self._storage = storage
        self._bucket_name = bucket_name

    def upload_in_chunks(
        self,
        data: bytes,
        prefix: str | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        mime_type: str = "audio/webm",
        on_progress: ProgressCallback | None = None,
    ) -> UploadResult:
        """
        Uploads ``data`` sequentially in index order, then writes the manifest.

        Args:
            data: The whole recording.
            prefix: Storage prefix; a random one is generated when omitted.
            chunk_size: Maximum bytes per chunk object.
            mime_type: Recorded in the manifest.
            on_progress: Called after each chunk succeeds.

        Returns:
            UploadResult with the manifest location and contents.

        Raises:
            ValueError: If ``chunk_size`` is not positive.
            StorageUploadError: On the first failed chunk or manifest upload.
        """
        total_chunks = chunk_count(len(data), chunk_size)
        prefix = (prefix or new_prefix()).rstrip("/")

        logger.info(
            "Starting chunked upload",
            extra={
                "prefix": prefix,
                "bucket_name": self._bucket_name,
                "size": len(data),
                "total_chunks": total_chunks,
            },
        )

        for index, payload in iter_chunks(data, chunk_size):
            self._storage.upload(
                bucket_name=self._bucket_name,
                object_name=chunk_object_name(prefix, index),
                data=io.BytesIO(payload),
                size=len(payload),
                content_type=mime_type,
            )
            if on_progress is not None:
                on_progress(UploadProgress(completed_chunks=index + 1, total_chunks=total_chunks))

        manifest = UploadManifest(
            bucket=self._bucket_name,
            prefix=prefix,
            mime_type=mime_type,
            size=len(data),
            chunk_size=chunk_size,
            chunk_count=total_chunks,
            created_at=datetime.now(timezone.utc),
        )
        manifest_bytes = manifest.model_dump_json(by_alias=True).encode("utf-8")
        manifest_path = manifest_object_name(prefix)
        self._storage.upload(
            bucket_name=self._bucket_name,
            object_name=manifest_path,
            data=io.BytesIO(manifest_bytes),
            size=len(manifest_bytes),
            content_type="application/json",
        )

        logger.info(
            "Chunked upload complete",
            extra={"prefix": prefix, "manifest_path": manifest_path},
        )
        return UploadResult(
            upload_id=prefix,
            bucket=self._bucket_name,
            manifest_path=manifest_path,
            manifest=manifest,
        )
