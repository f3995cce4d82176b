"""Capture of stdlib log records into a LogStoragePort.

Records of the insightops logger tree are copied into a bounded buffer so
the most recent ones can be served at /logs.
"""

import logging
import sys
import traceback

from insightops.core.models import LogEntry
from insightops.core.ports import LogStoragePort

# Attributes every LogRecord carries; anything else came in via extra=
_RECORD_BUILTINS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


_DEFAULT_INCLUDE_ATTRS = ["module", "funcName", "lineno"]

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_Scalar = str | int | float | bool


def _record_fields(record: logging.LogRecord) -> dict[str, _Scalar]:
    return {
        "module": record.name,
        "funcName": record.funcName or "",
        "lineno": record.lineno,
        "pathname": record.pathname,
    }


def _extra_fields(record: logging.LogRecord) -> dict[str, _Scalar]:
    # Only scalar extras survive NDJSON encoding unchanged
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_BUILTINS and isinstance(value, (str, int, float, bool))
    }


def _exception_fields(record: logging.LogRecord) -> dict[str, _Scalar]:
    if not record.exc_info:
        return {}
    kind, error, tb = record.exc_info
    fields: dict[str, _Scalar] = {}
    if kind is not None:
        fields["exc_type"] = kind.__name__
    if error is not None:
        fields["exc_message"] = str(error)
    if tb is not None:
        fields["exc_traceback"] = "".join(traceback.format_exception(kind, error, tb))
    return fields


class BufferingLogHandler(logging.Handler):
    """Copies every handled record into a LogStoragePort as a LogEntry.

    Example:
        ```python
        buffer = LogBuffer(max_size=1000)
        logging.getLogger("insightops").addHandler(BufferingLogHandler(buffer))
        ```

    Args:
        storage: Destination for captured entries.
        include_attrs: Record fields copied into the entry's attributes
            (default: module, funcName, lineno). Extra fields and exception
            details are always copied.
    """

    def __init__(
        self,
        storage: LogStoragePort,
        include_attrs: list[str] | None = None,
    ) -> None:
        super().__init__()
        self._storage = storage
        self._include_attrs = include_attrs or _DEFAULT_INCLUDE_ATTRS

    def emit(self, record: logging.LogRecord) -> None:
        try:
            available = _record_fields(record)
            attributes = {k: available[k] for k in self._include_attrs if k in available}
            attributes.update(_extra_fields(record))
            attributes.update(_exception_fields(record))
            entry = LogEntry(
                timestamp=record.created,
                level=record.levelname,
                message=record.getMessage(),
                attributes=attributes,
            )
            self._storage.write(entry)
        except Exception:
            self.handleError(record)


def configure_logging(
    level: str = "INFO",
    storage: LogStoragePort | None = None,
    logger_name: str = "insightops",
) -> logging.Logger:
    """Attach a stream handler and, optionally, a buffering handler.

    Calling it again replaces the handlers installed by a previous call.

    Args:
        level: Level name for the package logger.
        storage: Log storage receiving every record (served at /logs).
        logger_name: Logger to configure.

    Returns:
        The configured logger.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(level.upper())
    for handler in list(logger.handlers):
        if getattr(handler, "_insightops_installed", False):
            logger.removeHandler(handler)

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(logging.Formatter(_LOG_FORMAT))
    handlers: list[logging.Handler] = [stream]
    if storage is not None:
        handlers.append(BufferingLogHandler(storage))
    for handler in handlers:
        handler._insightops_installed = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
