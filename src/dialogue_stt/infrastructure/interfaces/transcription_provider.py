"""Abstract interfaces for transcription backends."""

from abc import ABC, abstractmethod

from dialogue_stt.domain.models import (
    AudioFormat,
    AudioSource,
    CompletionMode,
    JobHandle,
    PollResult,
    ProviderKind,
)


class AudioSubmitter(ABC):
    """Anything the worker can hand a merged file to."""

    kind: ProviderKind

    @property
    @abstractmethod
    def preferred_format(self) -> AudioFormat:
        """Container/codec to re-encode to when stream copy is not possible."""

    @abstractmethod
    def submit(
        self, source: AudioSource, completion: CompletionMode = CompletionMode.SYNC
    ) -> JobHandle:
        """
        Submits audio for transcription.

        Args:
            source: Local file and/or cloud URI of the audio.
            completion: Delivery mode, honored by backends that offer a choice.

        Returns:
            A handle carrying either an inline result or a pollable reference.

        Raises:
            ProviderError: If the backend rejects the request.
        """


class TranscriptionProvider(AudioSubmitter):
    """A backend whose jobs can also be polled by handle."""

    @abstractmethod
    def poll(self, handle: JobHandle) -> PollResult:
        """
        Looks at a job once without blocking.

        Args:
            handle: Handle returned by ``submit``.

        Returns:
            PollResult with ``done`` and, when done, the raw result.

        Raises:
            TranscriptionFailedError: If the job reached a FAILED state.
            ProviderError: If the status request itself fails.
        """
