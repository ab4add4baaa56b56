"""Handler layer exports."""

from .chunk_uploader import ChunkUploader
from .completion_handler import CompletionHandler, CompletionOutcome, StatusView
from .merge_and_transcribe import MergeAndTranscribeHandler

__all__ = [
    "ChunkUploader",
    "CompletionHandler",
    "CompletionOutcome",
    "MergeAndTranscribeHandler",
    "StatusView",
]
