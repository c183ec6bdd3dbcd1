"""
GigVault Logging Subsystem

Purpose
-------
Structured, non-blocking logging for the reward engine.

- Records are handed to a bounded in-memory queue and written by a
  background `QueueListener`, so resolvers never block the event loop on I/O.
- Every record is stamped with the active operation context (caller
  identity, resolver, operation name, correlation id) taken from a
  `ContextVar`, so concurrent units never mix their fields.
- Console output is JSON in production (or when `LOG_JSON` is set) and
  readable text otherwise; a size-rotated JSON file under `Config.LOGS_DIR`
  keeps a local copy.

Public API
----------
- setup_logging() / shutdown_logging(): process lifecycle, both idempotent
- get_logger(name)
- LogContext: sync + async context manager scoping the operation context;
  nested scopes inherit the outer correlation id
- get_log_context(): snapshot of the active context
- dropped_records(): records lost because the queue was full
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from gigvault.core.config.config import Config

_operation_context: ContextVar[Dict[str, Any]] = ContextVar("gigvault_log_context", default={})

CONTEXT_FIELDS = ("account_id", "component", "operation", "correlation_id")
UNSET = "N/A"


# ============================================================================
# Settings
# ============================================================================


@dataclass(frozen=True)
class LoggerConfig:
    """Logging settings resolved from `Config` when logging starts."""

    level: int
    json_console: bool
    colors: bool
    logs_dir: Path

    TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(operation)s | %(message)s"
    DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
    FILE_NAME = "gigvault.json.log"
    FILE_MAX_BYTES = 5 * 1024 * 1024
    FILE_BACKUPS = 2
    QUEUE_MAX_SIZE = 10_000

    @classmethod
    def from_config(cls) -> "LoggerConfig":
        production = Config.is_production()
        json_console = production if Config.LOG_JSON is None else bool(Config.LOG_JSON)
        return cls(
            level=getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO),
            json_console=json_console,
            colors=not json_console and sys.stdout.isatty(),
            logs_dir=Path(Config.LOGS_DIR).resolve(),
        )


# ============================================================================
# Context
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the active operation context onto records that lack the field."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _operation_context.get()
        for field in CONTEXT_FIELDS:
            if getattr(record, field, None) is None:
                setattr(record, field, context.get(field) or UNSET)
        if record.component == UNSET:
            record.component = record.name.split(".", 1)[0]
        return True


class LogContext:
    """
    Scope the operation context to a block of sync or async code.

    Fields left as None are inherited from the enclosing scope, so a
    resolver's unit keeps the correlation id of the request around it.

    >>> async with LogContext(account_id=42, operation="tasks.claim"):
    ...     await service.claim_task(42, task_id)
    """

    def __init__(
        self,
        account_id: Optional[Any] = None,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        outer = _operation_context.get()
        given = {
            "account_id": str(account_id) if account_id is not None else None,
            "component": component,
            "operation": operation,
            "correlation_id": correlation_id,
        }
        self.context: Dict[str, Any] = {
            **outer,
            **{key: value for key, value in given.items() if value is not None},
        }
        self.context.setdefault("correlation_id", uuid.uuid4().hex[:8])
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _operation_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _operation_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def get_log_context() -> Dict[str, Any]:
    return dict(_operation_context.get())


# ============================================================================
# Formatters
# ============================================================================

# Attributes every LogRecord has; anything else arrived through `extra=`.
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """One JSON object per record; `extra=` fields are nested under "extra"."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value not in (None, UNSET):
                payload[field] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and key not in CONTEXT_FIELDS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Single-line text for development, with ANSI level colors on a TTY."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[90m",
        logging.INFO: "\033[94m",
        logging.WARNING: "\033[93m",
        logging.ERROR: "\033[91m",
        logging.CRITICAL: "\033[1;91m",
    }
    RESET = "\033[0m"

    def __init__(self, colors: bool = False) -> None:
        super().__init__(fmt=LoggerConfig.TEXT_FORMAT, datefmt=LoggerConfig.DATE_FORMAT)
        self.colors = colors

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        if not hasattr(record, "operation"):
            record.operation = UNSET
        line = super().format(record)
        if not self.colors:
            return line
        color = self.LEVEL_COLORS.get(record.levelno, "")
        return f"{color}{line}{self.RESET}" if color else line


# ============================================================================
# Queue plumbing
# ============================================================================


class BoundedQueueHandler(QueueHandler):
    """Enqueue without blocking; count what a full queue forces us to drop."""

    def __init__(self, log_queue: "queue.Queue[logging.LogRecord]") -> None:
        super().__init__(log_queue)
        self.dropped = 0

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            self.dropped += 1


_listener: Optional[QueueListener] = None
_queue_handler: Optional[BoundedQueueHandler] = None


def _build_handlers(settings: LoggerConfig) -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(
        JSONFormatter() if settings.json_console else ConsoleFormatter(colors=settings.colors)
    )

    settings.logs_dir.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        settings.logs_dir / LoggerConfig.FILE_NAME,
        maxBytes=LoggerConfig.FILE_MAX_BYTES,
        backupCount=LoggerConfig.FILE_BACKUPS,
        encoding="utf-8",
    )
    file_handler.setFormatter(JSONFormatter())

    for handler in (console, file_handler):
        handler.setLevel(settings.level)
    return [console, file_handler]


def setup_logging() -> None:
    """Route the root logger through the bounded queue. Safe to call twice."""
    global _listener, _queue_handler

    if _listener is not None:
        return

    settings = LoggerConfig.from_config()
    root = logging.getLogger()
    root.setLevel(settings.level)
    root.handlers.clear()

    _queue_handler = BoundedQueueHandler(queue.Queue(LoggerConfig.QUEUE_MAX_SIZE))
    # Context is read on the emitting task, before the record changes threads.
    _queue_handler.addFilter(ContextFilter())
    root.addHandler(_queue_handler)

    _listener = QueueListener(
        _queue_handler.queue, *_build_handlers(settings), respect_handler_level=True
    )
    _listener.start()

    for noisy in ("asyncio", "sqlalchemy.engine", "testcontainers"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "log_level": logging.getLevelName(settings.level),
            "json_console": settings.json_console,
            "logs_dir": str(settings.logs_dir),
        },
    )


def shutdown_logging() -> None:
    """Flush the queue, stop the listener and detach from the root logger."""
    global _listener, _queue_handler

    if _listener is None or _queue_handler is None:
        return

    if _queue_handler.dropped:
        logging.getLogger(__name__).warning(
            "Log records dropped while the queue was full",
            extra={"dropped_records": _queue_handler.dropped},
        )

    _listener.stop()
    for handler in _listener.handlers:
        handler.close()
    logging.getLogger().removeHandler(_queue_handler)

    _listener = None
    _queue_handler = None


def dropped_records() -> int:
    return _queue_handler.dropped if _queue_handler is not None else 0


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


setup_logging()
