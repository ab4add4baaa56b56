"""Core business logic for merging chunk files into one audio asset."""

import logging
from pathlib import Path

import ffmpeg

from dialogue_stt.domain.models import (
    WEBM,
    AudioFormat,
    MergedAudio,
    MergeStrategy,
    ProbeResult,
)
from dialogue_stt.exceptions import AudioMergeError

logger = logging.getLogger(__name__)

REENCODE_SAMPLE_RATE = 16000
REENCODE_CHANNELS = 1


class AudioMerger:
    """Concatenates ordered chunk files with ffmpeg, re-encoding when stream copy fails."""

    def merge(
        self, chunk_paths: list[Path], work_dir: Path, reencode_format: AudioFormat
    ) -> MergedAudio:
        """
        Merges chunks in the given order.

        Args:
            chunk_paths: Local chunk files, already in index order.
            work_dir: Scratch directory owned by this job.
            reencode_format: Container/codec used if stream copy fails.

        Returns:
            MergedAudio describing the produced file.

        Raises:
            AudioMergeError: If both the stream copy and the re-encode fail.
        """
        list_path = self._write_concat_list(chunk_paths, work_dir)

        copy_path = work_dir / f"merged.{WEBM.extension}"
        copy_error = self._attempt(list_path, copy_path, WEBM.codec_args)
        if copy_error is None:
            logger.info(
                "Chunks merged by stream copy",
                extra={"chunk_count": len(chunk_paths), "merged_path": str(copy_path)},
            )
            return MergedAudio(path=copy_path, strategy=MergeStrategy.STREAM_COPY, format=WEBM)

        logger.warning(
            "Stream copy merge failed, re-encoding",
            extra={"stderr": copy_error, "target": reencode_format.extension},
        )

        reencode_path = work_dir / f"merged.{reencode_format.extension}"
        reencode_error = self._attempt(
            list_path,
            reencode_path,
            {
                "ar": REENCODE_SAMPLE_RATE,
                "ac": REENCODE_CHANNELS,
                **reencode_format.codec_args,
            },
        )
        if reencode_error is not None:
            logger.error(
                "Re-encode merge failed",
                extra={"stream_copy_stderr": copy_error, "reencode_stderr": reencode_error},
            )
            raise AudioMergeError(copy_error, reencode_error)

        logger.info(
            "Chunks merged by re-encode",
            extra={"chunk_count": len(chunk_paths), "merged_path": str(reencode_path)},
        )
        return MergedAudio(
            path=reencode_path, strategy=MergeStrategy.REENCODE, format=reencode_format
        )

    def probe(self, path: Path) -> ProbeResult:
        """Inspects the merged file for diagnostics. Never raises."""
        try:
            info = ffmpeg.probe(str(path))
        except ffmpeg.Error as e:
            error = _decode(e.stderr) or str(e)
            logger.warning("ffprobe failed", extra={"path": str(path), "stderr": error})
            return ProbeResult(ok=False, error=error)
        except OSError as e:
            logger.warning("ffprobe not available", extra={"error": str(e)})
            return ProbeResult(ok=False, error=str(e))

        fmt = info.get("format", {})
        streams = [
            {
                key: stream[key]
                for key in ("index", "codec_name", "codec_type", "channels", "sample_rate", "bit_rate")
                if key in stream
            }
            for stream in info.get("streams", [])
        ]
        duration = fmt.get("duration")
        result = ProbeResult(
            ok=True,
            format_name=fmt.get("format_name"),
            duration=float(duration) if duration not in (None, "N/A") else None,
            streams=streams,
        )
        logger.info("ffprobe", extra={"path": str(path), "probe": result.model_dump()})
        return result

    def _attempt(self, list_path: Path, output_path: Path, output_args: dict) -> str | None:
        """Runs one ffmpeg concat; returns its stderr on failure, None on success."""
        stream = ffmpeg.input(str(list_path), f="concat", safe=0).output(
            str(output_path), **output_args
        )
        try:
            ffmpeg.run(
                stream.global_args("-hide_banner", "-loglevel", "error"),
                capture_stdout=True,
                capture_stderr=True,
                overwrite_output=True,
            )
        except ffmpeg.Error as e:
            return _decode(e.stderr) or f"ffmpeg exited with an error writing {output_path.name}"
        except OSError as e:
            return f"ffmpeg exec failed: {e}"
        return None

    def _write_concat_list(self, chunk_paths: list[Path], work_dir: Path) -> Path:
        list_path = work_dir / "concat.txt"
        lines = [f"file '{_quote(path)}'" for path in chunk_paths]
        list_path.write_text("\n".join(lines), encoding="utf-8")
        return list_path


def _quote(path: Path) -> str:
    return str(path).replace("'", "'\\''")


def _decode(stderr: bytes | None) -> str:
    if not stderr:
        return ""
    return stderr.decode("utf-8", errors="replace").strip()
