"""Core business logic for turning provider output into speaker-segmented transcripts."""

import re
from typing import Any

from .models import ProviderKind, Transcript, Utterance

PARTICIPANT_LABEL = "Participant"

_SPEAKER_LINE = re.compile(
    r"^\s*\**\[?\s*(?:speaker|participant)\s*(?P<tag>[\w-]+)\s*\]?\**\s*(?:\([^)]*\))?\s*:\s*(?P<text>.*)$",
    re.IGNORECASE,
)


def speaker_label(raw: Any) -> str:
    """Canonical display label: numeric tags become ``Participant N``."""
    if raw is None:
        return PARTICIPANT_LABEL
    text = str(raw).strip()
    if not text:
        return PARTICIPANT_LABEL
    if text.isdigit():
        return f"{PARTICIPANT_LABEL} {int(text)}"
    return text


def parse_offset(value: Any) -> float:
    """Reads an offset given as seconds, ``"1.5s"`` or ``{"seconds":..,"nanos":..}``."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.rstrip("s") or 0)
        except ValueError:
            return 0.0
    if isinstance(value, dict):
        seconds = float(value.get("seconds", 0) or 0)
        nanos = float(value.get("nanos", 0) or 0)
        return seconds + nanos / 1e9
    return 0.0


def _get(record: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in record and record[key] is not None:
            return record[key]
    return default


class TranscriptBuilder:
    """Builds normalized transcripts from provider-specific result shapes."""

    def build(self, kind: ProviderKind, result: dict[str, Any]) -> Transcript:
        """
        Normalizes a terminal provider result.

        Args:
            kind: Which backend produced the result.
            result: The provider's result document.

        Returns:
            Transcript with full text and ordered utterances (ordinals 0..n-1).
        """
        if kind is ProviderKind.CLOUD:
            return self._from_recognition_results(result)
        if kind is ProviderKind.THIRD_PARTY:
            return self._from_segments(result)
        return self._from_marked_text(_get(result, "text", default=""))

    def words(self, kind: ProviderKind, result: dict[str, Any]) -> list[dict[str, Any]]:
        """Raw word-level entries of a result, for display; empty when there are none."""
        if kind is ProviderKind.CLOUD:
            results = _get(result, "results", default=[]) or []
            if not results:
                return []
            alternatives = _get(results[-1], "alternatives", default=[]) or []
            return list(_get(alternatives[0], "words", default=[]) or []) if alternatives else []
        if kind is ProviderKind.THIRD_PARTY:
            entries = []
            for segment in _get(result, "segments", default=[]) or []:
                speaker = _get(segment, "speaker", default={}) or {}
                label = _get(speaker, "label", "name") if isinstance(speaker, dict) else speaker
                for word in _get(segment, "words", default=[]) or []:
                    # [startMs, endMs, text]
                    if isinstance(word, (list, tuple)) and len(word) >= 3:
                        entries.append(
                            {"word": word[2], "start": word[0] / 1000.0, "end": word[1] / 1000.0, "speaker": label}
                        )
            return entries
        return []

    def group_words(self, words: list[tuple[str, Any]], offsets: list[float] | None = None) -> list[Utterance]:
        """
        Groups consecutive same-speaker words into utterances.

        Args:
            words: ``(word, speaker_tag)`` pairs in spoken order.
            offsets: Optional start offsets aligned with ``words``.

        Returns:
            One utterance per run of identical speaker tags.
        """
        utterances: list[Utterance] = []
        current_tag: Any = None
        current_words: list[str] = []
        current_start = 0.0

        for position, (word, tag) in enumerate(words):
            start = offsets[position] if offsets else 0.0
            if current_words and tag != current_tag:
                utterances.append(
                    Utterance(
                        speaker=speaker_label(current_tag),
                        text=" ".join(current_words),
                        start=current_start,
                        index=len(utterances),
                    )
                )
                current_words = []
            if not current_words:
                current_tag = tag
                current_start = start
            current_words.append(word)

        if current_words:
            utterances.append(
                Utterance(
                    speaker=speaker_label(current_tag),
                    text=" ".join(current_words),
                    start=current_start,
                    index=len(utterances),
                )
            )
        return utterances

    def _from_recognition_results(self, result: dict[str, Any]) -> Transcript:
        results = _get(result, "results", default=[]) or []
        lines = []
        for item in results:
            alternatives = _get(item, "alternatives", default=[]) or []
            if alternatives:
                transcript = _get(alternatives[0], "transcript", default="")
                if transcript:
                    lines.append(transcript)
        full_text = "\n".join(lines)

        # With diarization the final result repeats every word with its speaker tag.
        words: list[tuple[str, Any]] = []
        offsets: list[float] = []
        if results:
            alternatives = _get(results[-1], "alternatives", default=[]) or []
            word_infos = _get(alternatives[0], "words", default=[]) if alternatives else []
            for info in word_infos or []:
                word = _get(info, "word", default="")
                if not word:
                    continue
                tag = _get(info, "speakerTag", "speaker_tag", default=0) or 1
                words.append((word, str(tag)))
                offsets.append(parse_offset(_get(info, "startTime", "start_time", "startOffset", "start_offset")))

        if not words:
            return self._unlabeled(full_text)
        return Transcript(text=full_text, utterances=self.group_words(words, offsets))

    def _from_segments(self, result: dict[str, Any]) -> Transcript:
        segments = _get(result, "segments", default=[]) or []
        utterances = []
        for segment in segments:
            text = (_get(segment, "text", default="") or "").strip()
            if not text:
                continue
            speaker = _get(segment, "speaker", default={}) or {}
            if isinstance(speaker, dict):
                raw_label = _get(speaker, "label", "name")
            else:
                raw_label = speaker
            utterances.append(
                Utterance(
                    speaker=speaker_label(raw_label),
                    text=text,
                    start=parse_offset(_get(segment, "start", default=0)) / 1000.0,
                    index=len(utterances),
                )
            )

        full_text = _get(result, "text", default="") or "\n".join(u.text for u in utterances)
        if not utterances:
            return self._unlabeled(full_text)
        return Transcript(text=full_text, utterances=utterances)

    def _from_marked_text(self, text: str) -> Transcript:
        utterances: list[Utterance] = []
        for line in text.splitlines():
            if not line.strip():
                continue
            match = _SPEAKER_LINE.match(line)
            if match:
                utterances.append(
                    Utterance(
                        speaker=speaker_label(match.group("tag")),
                        text=match.group("text").strip(),
                        index=len(utterances),
                    )
                )
            elif utterances:
                previous = utterances[-1]
                utterances[-1] = previous.model_copy(
                    update={"text": f"{previous.text} {line.strip()}"}
                )
            else:
                utterances.append(
                    Utterance(speaker=PARTICIPANT_LABEL, text=line.strip(), index=0)
                )

        if not utterances:
            return self._unlabeled(text)
        return Transcript(text=text.strip(), utterances=utterances)

    def _unlabeled(self, text: str) -> Transcript:
        return Transcript(
            text=text,
            utterances=[Utterance(speaker=PARTICIPANT_LABEL, text=text, index=0)],
        )
