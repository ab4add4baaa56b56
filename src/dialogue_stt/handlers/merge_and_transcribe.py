"""Handler for the merge-and-transcribe job."""

import logging
import posixpath
import tempfile
import time
from collections.abc import Callable
from pathlib import Path

from dialogue_stt.domain import AudioMerger, with_retry
from dialogue_stt.domain.chunking import correlation_id, select_chunks
from dialogue_stt.domain.models import AudioSource, CompletionMode, JobHandle, WorkerResult
from dialogue_stt.exceptions import NoChunksFoundError
from dialogue_stt.infrastructure.interfaces import AudioSubmitter, StorageClient, TranscriptionProvider

logger = logging.getLogger(__name__)

LIST_LIMIT = 1000


class MergeAndTranscribeHandler:
    """
    Turns the chunk objects under a prefix into one submitted transcription job.

    Runs ``listing -> downloading -> merging -> submitting -> done``. Nothing is
    resumable: any failure aborts the job and a re-dispatch starts over from
    listing, which is safe because chunks are immutable.
    """

    def __init__(
        self,
        storage: StorageClient,
        merger: AudioMerger,
        submitter: AudioSubmitter,
        bucket_name: str,
        retries: int = 3,
        min_delay: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._storage = storage
        self._merger = merger
        self._submitter = submitter
        self._bucket_name = bucket_name
        self._retries = retries
        self._min_delay = min_delay
        self._sleep = sleep

    def process(
        self, prefix: str, completion: CompletionMode = CompletionMode.SYNC
    ) -> WorkerResult:
        """
        Runs the whole job for one prefix.

        Args:
            prefix: Storage prefix holding ``chunk-NNNNN.webm`` objects.
            completion: Delivery mode requested from the provider.

        Returns:
            WorkerResult carrying an inline result or a pollable handle.

        Raises:
            NoChunksFoundError: If no chunk objects exist under the prefix.
            StorageListError: If listing keeps failing after retries.
            StorageDownloadError: If a download keeps failing after retries.
            AudioMergeError: If both merge strategies fail.
            ProviderError: If the provider rejects the submission.
        """
        prefix = prefix.rstrip("/")
        context = {"prefix": prefix, "session_id": correlation_id(prefix)}
        logger.info("Worker started", extra={**context, "stage": "listing"})

        chunk_names = self._list_chunks(prefix)

        with tempfile.TemporaryDirectory(prefix="stt-worker-") as scratch:
            work_dir = Path(scratch)

            logger.info(
                "Downloading chunks",
                extra={**context, "stage": "downloading", "bucket_name": self._bucket_name},
            )
            local_paths = [self._download(name, work_dir) for name in chunk_names]
            logger.info(
                "Chunks downloaded",
                extra={**context, "stage": "downloading", "count": len(local_paths)},
            )

            logger.info("Merging chunks", extra={**context, "stage": "merging"})
            try:
                merged = self._merger.merge(
                    local_paths, work_dir, self._submitter.preferred_format
                )
            except Exception:
                logger.exception("Merge failed", extra={**context, "stage": "merge_failed"})
                raise

            probe = self._merger.probe(merged.path)
            logger.info(
                "Merged audio inspected",
                extra={
                    **context,
                    "stage": "merged",
                    "strategy": merged.strategy.value,
                    "probe": probe.model_dump(exclude_none=True),
                },
            )

            source = AudioSource(
                path=merged.path,
                mime_type=merged.format.mime_type,
                key=f"{prefix}/{merged.path.name}",
            )
            logger.info(
                "Submitting to provider",
                extra={**context, "stage": "submitting", "provider": self._submitter.kind.value},
            )
            try:
                handle = self._submitter.submit(source, completion)
            except Exception:
                logger.exception("Submission failed", extra={**context, "stage": "submit_failed"})
                raise

        logger.info(
            "Worker finished",
            extra={**context, "stage": "done", "handle": handle.reference},
        )
        return WorkerResult.from_handle(
            prefix=prefix,
            chunk_count=len(chunk_names),
            merged=merged,
            handle=handle,
            probe=probe,
        )

    def await_result(self, result: WorkerResult, interval: float) -> WorkerResult:
        """
        Blocks until a pending job finishes and folds its result in.

        Results that are already inline, and handles the submitter cannot
        poll (the cloud start hand-off), are returned unchanged.

        Raises:
            TranscriptionFailedError: If the job fails.
            ProviderError: If a status request fails.
        """
        if result.result is not None or not isinstance(self._submitter, TranscriptionProvider):
            return result

        handle = JobHandle(
            kind=self._submitter.kind, operation_name=result.operation_name, token=result.token
        )
        context = {"prefix": result.prefix, "session_id": correlation_id(result.prefix)}
        logger.info(
            "Waiting for provider result",
            extra={**context, "stage": "waiting", "handle": handle.reference, "interval": interval},
        )
        polls = 1
        polled = self._submitter.poll(handle)
        while not polled.done:
            self._sleep(interval)
            polls += 1
            polled = self._submitter.poll(handle)

        logger.info("Provider result received", extra={**context, "stage": "done", "polls": polls})
        return result.model_copy(update={"result": polled.result, "operation_name": None, "token": None})

    def _list_chunks(self, prefix: str) -> list[str]:
        names = with_retry(
            lambda: self._storage.list_objects(self._bucket_name, prefix, limit=LIST_LIMIT),
            retries=self._retries,
            min_delay=self._min_delay,
            label="storage list",
            sleep=self._sleep,
        )
        chunks = select_chunks(names)
        if not chunks:
            logger.error(
                "No chunks found",
                extra={"prefix": prefix, "session_id": correlation_id(prefix), "stage": "listing"},
            )
            raise NoChunksFoundError(prefix)
        return chunks

    def _download(self, object_name: str, work_dir: Path) -> Path:
        data = with_retry(
            lambda: self._storage.download(self._bucket_name, object_name),
            retries=self._retries,
            min_delay=self._min_delay,
            label=f"storage download {object_name}",
            sleep=self._sleep,
        )
        local_path = work_dir / posixpath.basename(object_name)
        local_path.write_bytes(data)
        return local_path
