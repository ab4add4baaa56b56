"""
Chunk upload CLI.

Uploads a local recording as chunk objects and, optionally, asks the
dispatcher to transcribe it.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import httpx

from dialogue_stt.config import load_config
from dialogue_stt.dependencies import build_chunk_uploader
from dialogue_stt.domain.chunking import DEFAULT_CHUNK_SIZE
from dialogue_stt.domain.models import UploadProgress
from dialogue_stt.exceptions import ConfigurationError, StorageUploadError
from dialogue_stt.logging import setup_logging

logger = logging.getLogger(__name__)

DISPATCH_TIMEOUT_SECONDS = 1800.0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="dialogue-stt-upload",
        description="Upload a recording in chunks for transcription.",
    )
    parser.add_argument("file", type=Path, help="Audio file to upload")
    parser.add_argument("--prefix", help="Storage prefix (default: recordings/<uuid>)")
    parser.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE)
    parser.add_argument("--mime-type", default="audio/webm")
    parser.add_argument(
        "--dispatch-url",
        help="Dispatcher start endpoint, e.g. http://localhost:8787/stt/start",
    )
    return parser.parse_args(argv)


def dispatch(client: httpx.Client, url: str, prefix: str) -> dict:
    """Posts ``{prefix}`` to the dispatcher and returns the worker result."""
    response = client.post(url, json={"prefix": prefix}, timeout=DISPATCH_TIMEOUT_SECONDS)
    response.raise_for_status()
    return response.json()


def _log_progress(progress: UploadProgress) -> None:
    logger.info(
        "Chunk uploaded",
        extra={"completed_chunks": progress.completed_chunks, "total_chunks": progress.total_chunks},
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(stream=sys.stderr)

    try:
        config = load_config()
    except ConfigurationError as e:
        logger.error("Invalid configuration", extra={"error": str(e)})
        return 2

    try:
        data = args.file.read_bytes()
    except OSError as e:
        logger.error("Cannot read recording", extra={"file": str(args.file), "error": str(e)})
        return 1

    uploader = build_chunk_uploader(config)
    try:
        result = uploader.upload_in_chunks(
            data,
            prefix=args.prefix,
            chunk_size=args.chunk_size,
            mime_type=args.mime_type,
            on_progress=_log_progress,
        )
    except (StorageUploadError, ValueError) as e:
        logger.error("Upload failed", extra={"file": str(args.file), "error": str(e)})
        return 1

    output = {"upload": result.model_dump(by_alias=True, mode="json")}

    if args.dispatch_url:
        with httpx.Client() as client:
            try:
                output["transcription"] = dispatch(client, args.dispatch_url, result.upload_id)
            except httpx.HTTPError as e:
                logger.error(
                    "Dispatch failed",
                    extra={"prefix": result.upload_id, "dispatch_url": args.dispatch_url, "error": str(e)},
                )
                return 1

    print(json.dumps(output, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
