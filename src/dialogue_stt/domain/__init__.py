"""Domain layer exports."""

from .audio_merger import AudioMerger
from .models import (
    AudioFormat,
    AudioSource,
    CompletionMode,
    JobHandle,
    MergedAudio,
    PollResult,
    ProbeResult,
    ProviderKind,
    Transcript,
    UploadManifest,
    UploadProgress,
    UploadResult,
    Utterance,
    WorkerResult,
)
from .retry import with_retry
from .transcript_builder import TranscriptBuilder

__all__ = [
    "AudioFormat",
    "AudioMerger",
    "AudioSource",
    "CompletionMode",
    "JobHandle",
    "MergedAudio",
    "PollResult",
    "ProbeResult",
    "ProviderKind",
    "Transcript",
    "TranscriptBuilder",
    "UploadManifest",
    "UploadProgress",
    "UploadResult",
    "Utterance",
    "WorkerResult",
    "with_retry",
]
