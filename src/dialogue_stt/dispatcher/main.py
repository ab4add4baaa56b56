"""
Worker Dispatcher.

Entry point for the process that spawns merge-and-transcribe workers.
"""

import logging

import uvicorn
from ddtrace import patch

from dialogue_stt.config import load_config
from dialogue_stt.logging import setup_logging

from .app import create_app
from .pool import WorkerPool

logger = logging.getLogger(__name__)


def run() -> None:
    """Starts the dispatcher."""
    config = load_config()
    setup_logging(debug=config.debug)
    patch(fastapi=True)

    dispatcher = config.dispatcher
    pool = WorkerPool(
        start_url=dispatcher.start_url,
        max_concurrency=dispatcher.max_concurrency,
        queue_size=dispatcher.queue_size,
        timeout_seconds=dispatcher.timeout_seconds,
    )
    logger.info(
        "Dispatcher listening",
        extra={
            "port": dispatcher.port,
            "max_concurrency": dispatcher.max_concurrency,
            "queue_size": dispatcher.queue_size,
        },
    )
    uvicorn.run(create_app(pool), host="0.0.0.0", port=dispatcher.port)


if __name__ == "__main__":
    run()
