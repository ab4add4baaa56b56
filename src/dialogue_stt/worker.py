"""
Merge-and-Transcribe Worker.

Runs one job for a storage prefix and prints a single JSON document on
stdout. Logs go to stderr.
"""

import argparse
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from dialogue_stt.config import AppConfig, load_config
from dialogue_stt.dependencies import build_engine, build_worker_handler, session_factory_for
from dialogue_stt.domain import CompletionMode, ProviderKind
from dialogue_stt.domain.chunking import correlation_id
from dialogue_stt.exceptions import ConfigurationError
from dialogue_stt.logging import SystemLogHandler, setup_logging
from dialogue_stt.repositories import SystemLogRepository

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_CONFIGURATION = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="dialogue-stt-worker",
        description="Merge uploaded chunks and submit them for transcription.",
    )
    parser.add_argument("--prefix", required=True, help="Storage prefix holding the chunks")
    parser.add_argument("--start-url", help="Web backend start endpoint (cloud provider)")
    parser.add_argument(
        "--completion",
        choices=[mode.value for mode in CompletionMode],
        default=CompletionMode.SYNC.value,
        help="Delivery mode requested from the third-party API",
    )
    parser.add_argument(
        "--provider",
        help="cloud, third_party or multimodal (or google, clova, gemini)",
    )
    parser.add_argument(
        "--wait",
        action="store_true",
        help="Poll a pending job until it finishes and print its result",
    )
    return parser.parse_args(argv)


def _attach_system_log_sink(config: AppConfig) -> None:
    if not config.database.user:
        return
    try:
        engine = build_engine(config)
    except SQLAlchemyError:
        logger.warning("System log sink unavailable", exc_info=True)
        return
    repository = SystemLogRepository(session_factory_for(engine))
    logging.getLogger().addHandler(SystemLogHandler(repository, source="stt-worker"))


def main(argv: list[str] | None = None) -> int:
    """Runs the worker; returns the process exit code."""
    args = parse_args(argv)

    try:
        config = load_config()
    except ConfigurationError as e:
        setup_logging(stream=sys.stderr)
        logger.error("Invalid configuration", extra={"missing": e.missing, "error": str(e)})
        return EXIT_CONFIGURATION

    setup_logging(stream=sys.stderr, debug=config.debug)

    if args.start_url:
        config = config.model_copy(
            update={"dispatcher": config.dispatcher.model_copy(update={"start_url": args.start_url})}
        )

    try:
        kind = ProviderKind.parse(args.provider) if args.provider else config.recognition.provider
        handler = build_worker_handler(config, kind)
    except (ConfigurationError, ValueError) as e:
        logger.error("Invalid configuration", extra={"prefix": args.prefix, "error": str(e)})
        return EXIT_CONFIGURATION

    _attach_system_log_sink(config)

    try:
        result = handler.process(args.prefix, CompletionMode(args.completion))
        if args.wait:
            result = handler.await_result(result, config.recognition.poll_interval_seconds)
    except Exception as e:
        logger.exception(
            "Worker failed",
            extra={"prefix": args.prefix, "session_id": correlation_id(args.prefix), "error": str(e)},
        )
        print(f"Worker failed: {e}", file=sys.stderr)
        return EXIT_FAILURE

    sys.stdout.write(result.model_dump_json(by_alias=True, exclude_none=True, indent=2))
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
