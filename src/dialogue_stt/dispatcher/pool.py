"""Bounded pool of worker processes."""

import asyncio
import json
import logging
import sys
from typing import Any

from dialogue_stt.exceptions import DispatcherBusyError, WorkerExecutionError, WorkerOutputError

logger = logging.getLogger(__name__)

WORKER_MODULE = "dialogue_stt.worker"


def summarize_stderr(stderr: str) -> str:
    """Last non-empty line of a worker's stderr, which carries its failure summary."""
    lines = [line for line in stderr.splitlines() if line.strip()]
    return lines[-1] if lines else ""


class WorkerPool:
    """
    Runs worker processes with bounded concurrency and a bounded wait queue.

    At most ``max_concurrency`` workers run at once and at most ``queue_size``
    more wait for a slot. Anything beyond that is rejected immediately.
    """

    def __init__(
        self,
        start_url: str,
        max_concurrency: int = 2,
        queue_size: int = 4,
        timeout_seconds: float = 1800.0,
        command: list[str] | None = None,
    ):
        self._start_url = start_url
        self._max_concurrency = max_concurrency
        self._limit = max_concurrency + queue_size
        self._timeout_seconds = timeout_seconds
        self._command = command or [sys.executable, "-m", WORKER_MODULE]
        self._slots = asyncio.Semaphore(max_concurrency)
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def run(self, prefix: str) -> Any:
        """
        Runs one worker for ``prefix`` and returns its parsed stdout.

        Raises:
            DispatcherBusyError: If the pool and queue are full.
            WorkerExecutionError: If the worker exits non-zero or times out.
            WorkerOutputError: If stdout is not a JSON document.
        """
        if self._in_flight >= self._limit:
            logger.warning(
                "Worker pool full, rejecting job",
                extra={"prefix": prefix, "in_flight": self._in_flight, "limit": self._limit},
            )
            raise DispatcherBusyError(self._limit)

        self._in_flight += 1
        try:
            async with self._slots:
                return await self._spawn(prefix)
        finally:
            self._in_flight -= 1

    async def _spawn(self, prefix: str) -> Any:
        args = [*self._command, "--prefix", prefix, "--start-url", self._start_url]
        logger.info("Spawning worker", extra={"prefix": prefix})

        process = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self._timeout_seconds
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.error(
                "Worker timed out",
                extra={"prefix": prefix, "timeout_seconds": self._timeout_seconds},
            )
            raise WorkerExecutionError(
                prefix, None, f"Worker timed out after {self._timeout_seconds:g} seconds"
            )

        stderr_text = stderr.decode("utf-8", errors="replace")
        if process.returncode != 0:
            logger.error(
                "Worker failed",
                extra={"prefix": prefix, "returncode": process.returncode, "stderr": stderr_text},
            )
            raise WorkerExecutionError(
                prefix, process.returncode, summarize_stderr(stderr_text) or "Worker failed"
            )

        try:
            result = json.loads(stdout)
        except ValueError as e:
            logger.error(
                "Worker output is not JSON",
                extra={"prefix": prefix, "stdout": stdout.decode("utf-8", errors="replace")},
            )
            raise WorkerOutputError(prefix, e) from e

        logger.info("Worker finished", extra={"prefix": prefix})
        return result
