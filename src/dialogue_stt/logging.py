import logging
import sys
from typing import TextIO

from pythonjsonlogger import jsonlogger


def setup_logging(stream: TextIO | None = None, debug: bool = False) -> logging.Logger:
    """
    Configures and sets up structured JSON logging for the application.

    This function initializes a JSON formatter that includes timestamp, level,
    logger name, message, trace_id, and span_id. It replaces default handlers
    for the root logger and Uvicorn loggers with a custom stream handler
    to ensure consistent log formatting across the application.

    Args:
        stream: Destination stream. The worker passes stderr because its
            stdout carries the result document.
        debug: Lowers the level to DEBUG (``STT_DEBUG``).

    Returns:
        logging.Logger: The configured root logger instance.
    """
    level = logging.DEBUG if debug else logging.INFO
    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s %(trace_id)s %(span_id)s"
    )
    stream_handler = logging.StreamHandler(stream or sys.stdout)
    stream_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []
    root_logger.addHandler(stream_handler)

    for logger_name in ["uvicorn", "uvicorn.access", "uvicorn.error"]:
        u_logger = logging.getLogger(logger_name)
        u_logger.setLevel(level)

        u_logger.handlers = []

        u_logger.addHandler(stream_handler)

        u_logger.propagate = False

    return root_logger


class SystemLogHandler(logging.Handler):
    """
    Mirrors records tagged with a ``session_id`` into the system log table.

    Records without a ``session_id`` in their ``extra`` are ignored, so only
    job-correlated diagnostics reach the database.
    """

    def __init__(self, repository, source: str, level: int = logging.INFO):
        super().__init__(level)
        self._repository = repository
        self._source = source

    def emit(self, record: logging.LogRecord) -> None:
        session_id = getattr(record, "session_id", None)
        if not session_id:
            return
        try:
            self._repository.record(
                session_id=session_id,
                source=self._source,
                level=record.levelname.lower(),
                message=record.getMessage(),
                details=_record_details(record),
            )
        except Exception:
            self.handleError(record)


_STANDARD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _record_details(record: logging.LogRecord) -> dict:
    details = {
        key: value
        for key, value in vars(record).items()
        if key not in _STANDARD_ATTRS and key != "session_id"
    }
    if record.exc_info and record.exc_info[1] is not None:
        details["error"] = str(record.exc_info[1])
    return {key: _jsonable(value) for key, value in details.items()}


def _jsonable(value):
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return str(value)
