"""
sonar-analyze — run logging.

File: src/sonar_analyze/observability/logging.py

Purpose
- Record each analysis run as JSON lines under ``<log_dir>/<run_id>/``.
- Keep JDBC passwords, URL credentials, and scanner tokens out of every sink.

Behavior
- Records pass through a queue; a listener thread writes them to the run file (and
  stderr when enabled). Shutdown drains the queue before sinks are closed.
- ``correlation_scope`` binds fields such as the project name to every record
  emitted inside it.
"""

from __future__ import annotations

import contextvars
import json
import logging
import logging.handlers
import math
import queue
import re
import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Final

from sonar_analyze.constants import REDACTED_VALUE

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
LogRedactor = Callable[[JSONValue], JSONValue]

_DEFAULT_LOG_FILENAME: Final[str] = "sonar-analyze.jsonl"
_DEFAULT_LOGGER_NAME: Final[str] = "sonar_analyze"

# Record attributes promoted to top-level event fields instead of ``fields``.
_CORRELATION_ATTRS: Final[tuple[str, ...]] = ("run_id", "project", "module")
_RESERVED_RECORD_ATTRS: Final[frozenset[str]] = frozenset(
    {*vars(logging.makeLogRecord({})), "message", "asctime", "correlation"}
)

_SECRET_KEY_MARKERS: Final[tuple[str, ...]] = (
    "password",
    "passwd",
    "secret",
    "token",
    "authorization",
    "credential",
    "private_key",
)
_SECRET_ASSIGNMENT: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(password|passwd|token|secret|authorization)\b[ \t]*([:=])[ \t]*(?:bearer[ \t]+)?([^\s,;&]+)"
)
_BEARER_TOKEN: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")
_SONAR_TOKEN: Final[re.Pattern[str]] = re.compile(r"\bsq[apu]_[A-Za-z0-9]{20,}\b")
_URL_CREDENTIALS: Final[re.Pattern[str]] = re.compile(r"(://[^/\s:@]+:)[^/\s@]+@")

_CORRELATION: contextvars.ContextVar[Mapping[str, str]] = contextvars.ContextVar(
    "sonar_analyze_correlation", default={}
)

_active_lock = threading.Lock()
_active_handle: StructuredLoggingHandle | None = None


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Where and how one analysis run is logged."""

    run_id: str
    base_log_dir: Path | str = Path("logs")
    logger_name: str = _DEFAULT_LOGGER_NAME
    level: int | str = "INFO"
    log_filename: str = _DEFAULT_LOG_FILENAME
    log_to_stderr: bool = True
    redactor: LogRedactor | None = None


@dataclass(slots=True)
class StructuredLoggingHandle:
    """Live logging setup for one run; ``shutdown`` is idempotent."""

    logger: logging.Logger
    run_id: str
    log_path: Path
    _queue_handler: logging.handlers.QueueHandler = field(repr=False)
    _listener: logging.handlers.QueueListener = field(repr=False)
    _sinks: tuple[logging.Handler, ...] = field(repr=False)
    _closed: bool = field(default=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def is_shutdown(self) -> bool:
        return self._closed

    def shutdown(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._listener.stop()
            self.logger.removeHandler(self._queue_handler)
            self._queue_handler.close()
            for sink in self._sinks:
                sink.flush()
                sink.close()
            self._closed = True


def setup_logging(
    observability_config: Mapping[str, object] | None = None,
    *,
    run_id: str,
    log_dir: Path | str | None = None,
    logger_name: str = _DEFAULT_LOGGER_NAME,
) -> StructuredLoggingHandle:
    """Configure run logging from an ``[observability]`` config section.

    ``log_dir`` overrides ``observability_config["log_dir"]``. When
    ``redact_secrets`` is false, messages and fields are written unchanged.
    """

    section = dict(observability_config or {})
    base_log_dir = log_dir if log_dir is not None else section.get("log_dir", "logs")
    if not isinstance(base_log_dir, (str, Path)):
        base_log_dir = "logs"
    level = section.get("log_level", "INFO")
    if not isinstance(level, (int, str)):
        level = "INFO"
    redact = bool(section.get("redact_secrets", True))

    return setup_structured_logging(
        LoggingConfig(
            run_id=run_id,
            base_log_dir=base_log_dir,
            logger_name=logger_name,
            level=level,
            log_to_stderr=bool(section.get("log_to_stderr", False)),
            redactor=None if redact else _no_redaction,
        )
    )


def setup_structured_logging(config: LoggingConfig) -> StructuredLoggingHandle:
    """Attach a queue-backed JSON-lines sink to ``config.logger_name``.

    Any previously active handle is shut down first; the logger stops propagating
    so records are written exactly once.
    """

    shutdown_logging()

    run_id = _required_text(config.run_id, "run_id")
    logger_name = _required_text(config.logger_name, "logger_name")
    filename = _required_text(config.log_filename, "log_filename")
    if Path(filename).name != filename:
        raise ValueError("log_filename must not include path separators")
    level = _resolve_level(config.level)

    run_dir = Path(config.base_log_dir) / run_id
    run_dir.mkdir(parents=True, exist_ok=True)
    log_path = run_dir / filename

    formatter = _JsonLinesFormatter(
        run_id=run_id,
        redactor=config.redactor if config.redactor is not None else default_log_redactor,
    )
    sinks: list[logging.Handler] = [logging.FileHandler(log_path, encoding="utf-8")]
    if config.log_to_stderr:
        sinks.append(logging.StreamHandler())
    for sink in sinks:
        sink.setLevel(level)
        sink.setFormatter(formatter)

    logger = logging.getLogger(logger_name)
    for stale in list(logger.handlers):
        logger.removeHandler(stale)
        stale.close()
    logger.setLevel(level)
    logger.propagate = False

    records: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
    queue_handler = _CorrelatingQueueHandler(records)
    queue_handler.setLevel(level)
    listener = logging.handlers.QueueListener(records, *sinks, respect_handler_level=True)
    listener.start()
    logger.addHandler(queue_handler)

    handle = StructuredLoggingHandle(
        logger=logger,
        run_id=run_id,
        log_path=log_path,
        _queue_handler=queue_handler,
        _listener=listener,
        _sinks=tuple(sinks),
    )
    global _active_handle
    with _active_lock:
        _active_handle = handle
    return handle


def shutdown_logging(handle: StructuredLoggingHandle | None = None) -> None:
    """Drain and close ``handle``, or the active handle when none is given."""

    global _active_handle
    with _active_lock:
        target = handle if handle is not None else _active_handle
        if target is None:
            return
        if target is _active_handle:
            _active_handle = None
    target.shutdown()


def get_active_logging_handle() -> StructuredLoggingHandle | None:
    with _active_lock:
        return _active_handle


def get_correlation_context() -> dict[str, str]:
    return dict(_CORRELATION.get())


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Bind correlation fields to records logged inside the block; ``None`` unbinds."""

    context = get_correlation_context()
    for key, value in fields.items():
        if value is None:
            context.pop(key, None)
        else:
            context[_required_text(key, "correlation key")] = _required_text(
                value, "correlation value"
            )
    token = _CORRELATION.set(context)
    try:
        yield
    finally:
        _CORRELATION.reset(token)


def default_log_redactor(value: JSONValue) -> JSONValue:
    """Mask secrets in strings and under sensitive keys, recursively."""

    return _redact(value, sensitive=False)


class _CorrelatingQueueHandler(logging.handlers.QueueHandler):
    """Snapshots the caller's correlation context before the record crosses threads."""

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        context = get_correlation_context()
        if context:
            record.correlation = context
        return super().prepare(record)


class _JsonLinesFormatter(logging.Formatter):
    def __init__(self, *, run_id: str, redactor: LogRedactor) -> None:
        super().__init__()
        self._run_id = run_id
        self._redactor = redactor

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, JSONValue] = {
            "timestamp": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": _to_text(self._redactor(record.getMessage())),
        }
        event.update(self._correlation(record))

        extras = {
            key: _to_json(value)
            for key, value in vars(record).items()
            if key not in _RESERVED_RECORD_ATTRS
            and key not in _CORRELATION_ATTRS
            and not key.startswith("_")
        }
        if extras:
            event["fields"] = self._redactor(extras)
        if record.exc_info:
            event["exception"] = _to_text(self._redactor(self.formatException(record.exc_info)))
        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    def _correlation(self, record: logging.LogRecord) -> dict[str, str]:
        merged = {"run_id": self._run_id}
        for attr in _CORRELATION_ATTRS:
            value = getattr(record, attr, None)
            if isinstance(value, str) and value.strip():
                merged[attr] = value.strip()
        bound = getattr(record, "correlation", None)
        if isinstance(bound, Mapping):
            merged.update(
                (key, value)
                for key, value in bound.items()
                if isinstance(key, str) and isinstance(value, str)
            )
        return merged


def _redact(value: JSONValue, *, sensitive: bool) -> JSONValue:
    if sensitive:
        return REDACTED_VALUE
    if isinstance(value, str):
        return _mask_secrets(value)
    if isinstance(value, list):
        return [_redact(item, sensitive=False) for item in value]
    if isinstance(value, dict):
        return {key: _redact(item, sensitive=_is_secret_key(key)) for key, item in value.items()}
    return value


def _is_secret_key(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SECRET_KEY_MARKERS)


def _mask_secrets(text: str) -> str:
    text = _SECRET_ASSIGNMENT.sub(lambda m: f"{m.group(1)}{m.group(2)} {REDACTED_VALUE}", text)
    text = _BEARER_TOKEN.sub(f"Bearer {REDACTED_VALUE}", text)
    text = _URL_CREDENTIALS.sub(rf"\g<1>{REDACTED_VALUE}@", text)
    return _SONAR_TOKEN.sub(REDACTED_VALUE, text)


def _no_redaction(value: JSONValue) -> JSONValue:
    return value


def _required_text(value: object, name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string, got {type(value).__name__}")
    text = value.strip()
    if not text:
        raise ValueError(f"{name} must not be empty")
    return text


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    if not isinstance(level, str):
        raise ValueError(f"level must be int or str, got {type(level).__name__}")
    try:
        return logging.getLevelNamesMapping()[level.strip().upper()]
    except KeyError:
        raise ValueError(f"unsupported logging level {level!r}") from None


def _utc_timestamp(created: float) -> str:
    moment = datetime.fromtimestamp(created, tz=UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _to_text(value: JSONValue) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _to_json(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, Mapping):
        return {str(key): _to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json(item) for item in value]
    return repr(value)


__all__ = [
    "JSONScalar",
    "JSONValue",
    "LogRedactor",
    "LoggingConfig",
    "StructuredLoggingHandle",
    "correlation_scope",
    "default_log_redactor",
    "get_active_logging_handle",
    "get_correlation_context",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
