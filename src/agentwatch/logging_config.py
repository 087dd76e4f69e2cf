"""Logging setup for agentwatch.

Every component logs under ``agentwatch.<namespace>`` so that records can be
filtered by subsystem. Besides the console, records are kept in a bounded
in-memory buffer which the ``/api/logs`` route serves.
"""

import logging
import os
import sys
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .config import LOG_BUFFER_SIZE, LOG_FORMAT


# Log namespaces for filtering
NAMESPACES = {
    'census': 'Process Census',
    'sampler': 'Resource Sampler',
    'parser': 'Session Parser',
    'cache': 'Session Cache',
    'monitor': 'Background Refresh',
    'api': 'API Routes',
}

LOGGER_PREFIX = 'agentwatch'
GENERAL_NAMESPACE = 'general'

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ('uvicorn.access', 'httpx')


def namespace_for(logger_name: str) -> str:
    """'agentwatch.census' -> 'census'; anything else is 'general'."""
    prefix, _, rest = logger_name.partition('.')
    namespace = rest.split('.', 1)[0]
    if prefix == LOGGER_PREFIX and namespace in NAMESPACES:
        return namespace
    return GENERAL_NAMESPACE


@dataclass(frozen=True)
class LogEntry:
    timestamp: str
    level: str
    namespace: str
    message: str

    def to_dict(self) -> dict:
        return {
            'timestamp': self.timestamp,
            'level': self.level,
            'namespace': self.namespace,
            'message': self.message,
        }


class LogBufferHandler(logging.Handler):
    """Keeps the most recent records in a ring buffer."""

    def __init__(self, buffer_size: int = LOG_BUFFER_SIZE):
        super().__init__()
        self.buffer: deque[LogEntry] = deque(maxlen=buffer_size)

    def emit(self, record: logging.LogRecord):
        try:
            entry = LogEntry(
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                level=record.levelname,
                namespace=namespace_for(record.name),
                message=self.format(record),
            )
        except Exception:
            self.handleError(record)
            return
        self.buffer.append(entry)

    def get_history(self, count: int = 100, namespace: Optional[str] = None) -> list[dict]:
        """The last ``count`` entries, oldest first.

        With ``namespace`` set, only that namespace's entries are counted.
        """
        if count <= 0:
            return []
        with self.lock:
            entries = list(self.buffer)
        if namespace is not None:
            entries = [e for e in entries if e.namespace == namespace]
        return [e.to_dict() for e in entries[-count:]]

    def clear_buffer(self):
        with self.lock:
            self.buffer.clear()


_log_buffer_handler: Optional[LogBufferHandler] = None


def get_log_buffer_handler() -> LogBufferHandler:
    """Get or create the global log buffer handler."""
    global _log_buffer_handler
    if _log_buffer_handler is None:
        _log_buffer_handler = LogBufferHandler()
        _log_buffer_handler.setFormatter(logging.Formatter('%(message)s'))
    return _log_buffer_handler


def _resolve_level(level: str | int | None) -> int:
    if level is None:
        level = os.environ.get('AGENTWATCH_LOG_LEVEL', 'INFO')
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


def setup_logging(level: str | int | None = None, log_format: str = LOG_FORMAT) -> None:
    """
    Install the console and buffer handlers on the root logger.

    Args:
        level: Level name or constant (default: AGENTWATCH_LOG_LEVEL or INFO)
        log_format: Format string for console output
    """
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(log_format))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.addHandler(get_log_buffer_handler())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    set_log_level(_resolve_level(level))


def set_log_level(level: str | int):
    """Change the level of the root logger, its handlers and every namespace."""
    level = _resolve_level(level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setLevel(level)
    for namespace in NAMESPACES:
        logging.getLogger(f'{LOGGER_PREFIX}.{namespace}').setLevel(level)


def get_logger(name: str, namespace: Optional[str] = None) -> logging.Logger:
    """
    Get a logger, preferring the shared namespace logger when one is given.

    Args:
        name: Logger name (typically __name__)
        namespace: One of NAMESPACES (census, parser, cache, ...)
    """
    if namespace in NAMESPACES:
        return logging.getLogger(f'{LOGGER_PREFIX}.{namespace}')
    return logging.getLogger(name)
