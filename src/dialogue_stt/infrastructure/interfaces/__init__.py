"""Infrastructure interface exports."""

from .storage import StorageClient
from .transcription_provider import AudioSubmitter, TranscriptionProvider

__all__ = ["AudioSubmitter", "StorageClient", "TranscriptionProvider"]
