"""Custom exceptions for the transcription pipeline."""


class ConfigurationError(Exception):
    """Raised when required settings are missing or invalid."""

    def __init__(self, missing: list[str], detail: str | None = None):
        self.missing = missing
        message = f"Missing or invalid configuration: {', '.join(missing)}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class StorageListError(Exception):
    """Raised when listing objects under a prefix fails."""

    def __init__(self, prefix: str, cause: Exception | None = None):
        self.prefix = prefix
        self.cause = cause
        super().__init__(f"Failed to list objects under '{prefix}'")


class StorageDownloadError(Exception):
    """Raised when downloading a file from storage fails."""

    def __init__(self, object_name: str, cause: Exception | None = None):
        self.object_name = object_name
        self.cause = cause
        super().__init__(f"Failed to download '{object_name}' from storage")


class StorageUploadError(Exception):
    """Raised when uploading a file to storage fails."""

    def __init__(self, object_name: str, cause: Exception | None = None):
        self.object_name = object_name
        self.cause = cause
        super().__init__(f"Failed to upload '{object_name}' to storage")


class NoChunksFoundError(Exception):
    """Raised when a prefix holds no chunk objects, i.e. the upload never finished."""

    def __init__(self, prefix: str):
        self.prefix = prefix
        super().__init__(f"No chunks found for prefix: {prefix}")


class AudioMergeError(Exception):
    """Raised when both the stream-copy and the re-encode merge fail."""

    def __init__(self, stream_copy_error: str, reencode_error: str):
        self.stream_copy_error = stream_copy_error
        self.reencode_error = reencode_error
        super().__init__(
            "ffmpeg merge failed\n"
            f"[stream copy] {stream_copy_error}\n"
            f"[re-encode] {reencode_error}"
        )


class ProviderError(Exception):
    """Raised when a transcription provider answers with a non-2xx or unusable response."""

    def __init__(
        self,
        provider: str,
        endpoint: str,
        status_code: int | None = None,
        body: str | None = None,
        cause: Exception | None = None,
    ):
        self.provider = provider
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body
        self.cause = cause
        status = f" {status_code}" if status_code is not None else ""
        super().__init__(f"{provider} request to {endpoint} failed{status}")


class TranscriptionFailedError(Exception):
    """Raised when a provider reports a terminal failure for a job."""

    def __init__(self, provider: str, handle: str, reason: str | None = None):
        self.provider = provider
        self.handle = handle
        self.reason = reason
        super().__init__(
            f"{provider} transcription '{handle}' failed: {reason or 'no reason given'}"
        )


class SessionPersistenceError(Exception):
    """Raised when creating a session record fails."""

    def __init__(self, title: str, cause: Exception | None = None):
        self.title = title
        self.cause = cause
        super().__init__(f"Failed to create session '{title}'")


class TranscriptPersistenceError(Exception):
    """Raised when inserting transcript rows fails."""

    def __init__(self, session_id: str, cause: Exception | None = None):
        self.session_id = session_id
        self.cause = cause
        super().__init__(f"Failed to insert transcript rows for session '{session_id}'")


class WorkerExecutionError(Exception):
    """Raised when a worker process exits unsuccessfully."""

    def __init__(self, prefix: str, returncode: int | None, stderr: str):
        self.prefix = prefix
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(stderr or f"Worker failed for prefix '{prefix}'")


class WorkerOutputError(Exception):
    """Raised when a worker process prints something that is not a JSON document."""

    def __init__(self, prefix: str, cause: Exception):
        self.prefix = prefix
        self.cause = cause
        super().__init__(f"Worker output for '{prefix}' is not valid JSON: {cause}")


class DispatcherBusyError(Exception):
    """Raised when the worker pool and its queue are both full."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Worker capacity exhausted ({limit} jobs in flight)")


class ProviderNotConfiguredError(Exception):
    """Raised when a job refers to a backend this process has no client for."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Transcription provider '{provider}' is not configured")
