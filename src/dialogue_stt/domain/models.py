"""Domain models for the capture-to-transcript pipeline."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

MANIFEST_VERSION = 1


class CamelModel(BaseModel):
    """Base for documents exchanged as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProviderKind(str, Enum):
    """Transcription backends, selected by configuration."""

    CLOUD = "cloud"
    THIRD_PARTY = "third_party"
    MULTIMODAL = "multimodal"

    @classmethod
    def parse(cls, value: str) -> "ProviderKind":
        """Accepts a kind or one of the vendor aliases (google, clova, gemini)."""
        normalized = value.strip().lower()
        aliases = {"google": cls.CLOUD, "clova": cls.THIRD_PARTY, "gemini": cls.MULTIMODAL}
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown transcription provider '{value}'") from None


class CompletionMode(str, Enum):
    """How the third-party API delivers its result."""

    SYNC = "sync"
    ASYNC = "async"


class UploadManifest(CamelModel, frozen=True):
    """Describes one chunked-upload session (``{prefix}/manifest.json``)."""

    version: Literal[1] = MANIFEST_VERSION
    bucket: str
    prefix: str
    mime_type: str
    size: int
    chunk_size: int
    chunk_count: int
    created_at: datetime


class UploadProgress(CamelModel, frozen=True):
    completed_chunks: int
    total_chunks: int


class UploadResult(CamelModel, frozen=True):
    """Outcome of a chunked upload."""

    upload_id: str
    bucket: str
    manifest_path: str
    manifest: UploadManifest


class MergeStrategy(str, Enum):
    STREAM_COPY = "stream_copy"
    REENCODE = "reencode"


class AudioFormat(BaseModel, frozen=True):
    """Target container and codec for a re-encoded merge."""

    extension: str
    mime_type: str
    codec_args: dict[str, Any]


AAC_M4A = AudioFormat(
    extension="m4a",
    mime_type="audio/mp4",
    codec_args={"acodec": "aac", "audio_bitrate": "128k"},
)
FLAC = AudioFormat(extension="flac", mime_type="audio/flac", codec_args={"acodec": "flac"})
WEBM = AudioFormat(extension="webm", mime_type="audio/webm", codec_args={"c": "copy"})


class MergedAudio(BaseModel, frozen=True):
    """A single reassembled audio file living in the worker's scratch directory."""

    path: Path
    strategy: MergeStrategy
    format: AudioFormat


class ProbeResult(CamelModel, frozen=True):
    """
    Diagnostic inspection of a merged file.

    ``ok`` is False when the probe itself failed; that never fails the job.
    """

    ok: bool
    format_name: str | None = None
    duration: float | None = None
    streams: list[dict[str, Any]] = Field(default_factory=list)
    error: str | None = None


class AudioSource(BaseModel, frozen=True):
    """
    Audio handed to a provider: a local file, a cloud URI, or both.

    ``key`` names the object for backends that stage the file in storage first.
    """

    path: Path | None = None
    uri: str | None = None
    mime_type: str = "audio/webm"
    key: str | None = None


class JobHandle(BaseModel, frozen=True):
    """
    Reference to a provider job.

    Exactly one of ``operation_name``, ``token`` or ``inline_result`` is set.
    """

    kind: ProviderKind
    operation_name: str | None = None
    token: str | None = None
    inline_result: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _exactly_one_variant(self) -> "JobHandle":
        populated = [
            value
            for value in (self.operation_name, self.token, self.inline_result)
            if value is not None
        ]
        if len(populated) != 1:
            raise ValueError("JobHandle needs exactly one of operation_name, token, inline_result")
        return self

    @property
    def reference(self) -> str:
        return self.operation_name or self.token or "inline"


class PollResult(BaseModel, frozen=True):
    """A single non-blocking look at a job."""

    done: bool
    result: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None


class WorkerResult(CamelModel, frozen=True):
    """JSON document the worker prints on stdout."""

    prefix: str
    chunk_count: int
    merged_path: str
    probe: ProbeResult | None = None
    result: dict[str, Any] | None = None
    operation_name: str | None = None
    token: str | None = None

    @classmethod
    def from_handle(
        cls,
        prefix: str,
        chunk_count: int,
        merged: MergedAudio,
        handle: JobHandle,
        probe: ProbeResult | None = None,
    ) -> "WorkerResult":
        return cls(
            prefix=prefix,
            chunk_count=chunk_count,
            merged_path=str(merged.path),
            probe=probe,
            result=handle.inline_result,
            operation_name=handle.operation_name,
            token=handle.token,
        )


class Utterance(BaseModel, frozen=True):
    """A single speaker utterance produced by normalization."""

    speaker: str
    text: str
    start: float = 0.0
    index: int


class Transcript(BaseModel, frozen=True):
    """Normalized provider output: full text plus ordered utterances."""

    text: str
    utterances: list[Utterance]
