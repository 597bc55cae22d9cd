"""
Valor Logging Subsystem

Purpose
-------
Structured, non-blocking logging for the engine. Every record can carry the
actor, guild and operation it belongs to, so one PvP round or one auction
finalize can be followed across services.

Responsibilities
----------------
- ``setup_logging()`` / ``shutdown_logging()``: install and remove a
  QueueHandler on the root logger. Handlers run on a QueueListener thread so
  console and file I/O never block the event loop.
- ``JSONFormatter`` (production, files) and ``ColoredFormatter`` (dev TTY)
- ``LogContext`` and ``set_log_context`` / ``clear_log_context``: bind
  ``actor_id``, ``guild_id``, ``operation``, ``component`` and
  ``correlation_id`` in a ContextVar; ``ContextFilter`` stamps them on records
- ``get_logging_health()``: queue depth and drop counters

Configuration
-------------
``Config.ENVIRONMENT``, ``LOG_LEVEL``, ``LOG_JSON`` (``None`` means JSON only
in production), ``LOG_TO_FILE`` and ``LOGS_DIR``.

Services pass structured fields through ``extra={...}``; the JSON formatter
nests them under ``"extra"``.
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
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from valor.core.config.config import Config

CONTEXT_FIELDS = ("actor_id", "guild_id", "operation", "component", "correlation_id")
UNSET = "N/A"

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "valor.json.log"
QUEUE_MAX_SIZE = 10_000

_log_context: ContextVar[Dict[str, Any]] = ContextVar("valor_log_context", default={})


# ============================================================================
# SETTINGS
# ============================================================================


def _level() -> int:
    return getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO)


def _is_production() -> bool:
    return str(Config.ENVIRONMENT).lower() == "production"


def _use_json() -> bool:
    if Config.LOG_JSON is None:
        return _is_production()
    return bool(Config.LOG_JSON)


# ============================================================================
# FILTERS & FORMATTERS
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the bound LogContext onto a record; explicit ``extra`` wins."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _log_context.get()
        for name in ("actor_id", "guild_id", "operation"):
            if not hasattr(record, name):
                setattr(record, name, context.get(name, UNSET))
        record.correlation_id = context.get("correlation_id") or UNSET
        record.component = context.get("component") or record.name.split(".", 1)[0]
        return True


class ColoredFormatter(logging.Formatter):
    LEVEL_COLORS: Dict[str, str] = {
        "DEBUG": "\033[90m",
        "INFO": "\033[94m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[1;91m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        plain = record.levelname
        color = self.LEVEL_COLORS.get(plain)
        if color:
            record.levelname = f"{color}{plain}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


# Attributes every LogRecord has; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """One JSON object per line: fixed fields, bound context, then ``extra``."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value not in (None, UNSET):
                data[name] = value

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in CONTEXT_FIELDS and not key.startswith("_")
        }
        if extra:
            data["extra"] = extra

        return json.dumps(data, ensure_ascii=False, default=str)


# ============================================================================
# QUEUE PLUMBING
# ============================================================================


@dataclass
class _LoggingState:
    queue: Optional["queue.Queue[logging.LogRecord]"] = None
    listener: Optional[QueueListener] = None
    handler: Optional[QueueHandler] = None
    context_filter: Optional[ContextFilter] = None
    enqueued: int = 0
    dropped: int = 0
    handler_errors: int = 0

    @property
    def initialized(self) -> bool:
        return self.handler is not None


_state = _LoggingState()


class _BoundedQueueHandler(QueueHandler):
    """Drops records (and counts them) instead of blocking when the queue is full."""

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _state.enqueued += 1
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _state.dropped += 1
            sys.stderr.write("valor: log queue full, record dropped\n")


class _CountingQueueListener(QueueListener):
    def handleError(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _state.handler_errors += 1
        sys.stderr.write("valor: log handler failed while writing a record\n")


def _handlers() -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    if _use_json():
        console.setFormatter(JSONFormatter())
    elif sys.stdout.isatty():
        console.setFormatter(ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT))
    else:
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT, DATE_FORMAT))
    handlers: List[logging.Handler] = [console]

    if Config.LOG_TO_FILE:
        logs_dir = Path(Config.LOGS_DIR).resolve()
        logs_dir.mkdir(parents=True, exist_ok=True)
        daily = TimedRotatingFileHandler(
            filename=str(logs_dir / LOG_FILE_NAME),
            when="midnight",
            backupCount=7,
            encoding="utf-8",
            utc=True,
        )
        daily.setFormatter(JSONFormatter())
        handlers.append(daily)

    for handler in handlers:
        handler.setLevel(_level())
    return handlers


def setup_logging() -> None:
    """Install the queue-backed root handler. Safe to call more than once."""
    if _state.initialized:
        return

    root = logging.getLogger()
    root.setLevel(_level())

    _state.queue = queue.Queue(QUEUE_MAX_SIZE)
    _state.listener = _CountingQueueListener(_state.queue, *_handlers(), respect_handler_level=True)
    _state.listener.start()

    _state.context_filter = ContextFilter()
    _state.handler = _BoundedQueueHandler(_state.queue)
    _state.handler.addFilter(_state.context_filter)
    root.addHandler(_state.handler)

    for noisy in ("asyncio", "sqlalchemy.engine", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": str(Config.ENVIRONMENT),
            "log_level": logging.getLevelName(_level()),
            "json": _use_json(),
            "file": bool(Config.LOG_TO_FILE),
        },
    )


def shutdown_logging() -> None:
    """Flush the listener and remove the root handler."""
    if not _state.initialized:
        return

    logging.getLogger(__name__).info("Logging shutting down")

    if _state.listener is not None:
        _state.listener.stop()
        for handler in _state.listener.handlers:
            handler.flush()
            handler.close()

    root = logging.getLogger()
    if _state.handler is not None:
        root.removeHandler(_state.handler)
        _state.handler.close()

    _state.queue = None
    _state.listener = None
    _state.handler = None
    _state.context_filter = None


@dataclass(frozen=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int
    handler_errors: int


def get_logging_health() -> LoggingHealth:
    return LoggingHealth(
        initialized=_state.initialized,
        queue_size=_state.queue.qsize() if _state.queue is not None else 0,
        queue_max_size=_state.queue.maxsize if _state.queue is not None else 0,
        records_enqueued=_state.enqueued,
        records_dropped=_state.dropped,
        handler_errors=_state.handler_errors,
    )


# ============================================================================
# PUBLIC API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Bind engine context to every record logged inside the block.

        async with LogContext(actor_id=actor_id, operation="battle_npc"):
            ...

    A correlation id is generated when none is given.
    """

    def __init__(
        self,
        actor_id: Optional[str] = None,
        guild_id: Optional[str] = None,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        self.context: Dict[str, Any] = {
            "actor_id": str(actor_id) if actor_id is not None else UNSET,
            "guild_id": str(guild_id) if guild_id is not None else UNSET,
            "component": component,
            "operation": operation,
            "correlation_id": correlation_id or uuid.uuid4().hex[:8],
            **extra,
        }
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(**fields: Any) -> None:
    """Merge ``fields`` into the current context; ``None`` values are skipped."""
    current = dict(_log_context.get())
    for key, value in fields.items():
        if value is None:
            continue
        current[key] = str(value) if key in ("actor_id", "guild_id") else value
    _log_context.set(current)


def get_log_context() -> Dict[str, Any]:
    return dict(_log_context.get())


def clear_log_context() -> None:
    _log_context.set({})
