"""
Structured Logging for Document Chain Runs

Every record emitted while a chain runs carries the fields of the active
CorrelationContext:
- run_id: one execution of the order -> invoice -> payment chain
- stage: SALES_ORDER, DOWN_PAYMENT_INVOICE or INCOMING_PAYMENT
- doc_entry / card_code / company_db: the document and company concerned
- workflow_id / workflow_run_id / activity_id: set when running under Temporal

Usage:
    from core.observability.logging import get_logger, with_correlation

    logger = get_logger(__name__)

    with with_correlation(run_id="run-1a2b", stage="SALES_ORDER"):
        logger.info("Submitting order", extra_fields={"line_count": 2})
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional


# =============================================================================
# Correlation Context
# =============================================================================

@dataclass(frozen=True)
class CorrelationContext:
    """Identifiers attached to every log record of a chain run."""
    run_id: Optional[str] = None
    workflow_id: Optional[str] = None
    workflow_run_id: Optional[str] = None
    activity_id: Optional[str] = None
    company_db: Optional[str] = None
    card_code: Optional[str] = None
    stage: Optional[str] = None
    doc_entry: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        values = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                values[f.name] = value
        return values

    def merge(self, **kwargs) -> "CorrelationContext":
        """Return a copy with the given fields set; None leaves a field as is."""
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})

    def tag(self) -> str:
        """Short run/stage/#doc tag for console output."""
        parts = [p for p in (self.run_id, self.stage) if p]
        if self.doc_entry is not None:
            parts.append(f"#{self.doc_entry}")
        return "/".join(parts) or "-"


_current: ContextVar[CorrelationContext] = ContextVar("chain_correlation", default=CorrelationContext())


def get_correlation_context() -> CorrelationContext:
    return _current.get()


@contextmanager
def with_correlation(**kwargs) -> Iterator[CorrelationContext]:
    """
    Add correlation fields for the duration of a block.

    Blocks nest: inner fields are merged over the outer ones and the outer
    context is restored on exit, including when the block raises.
    """
    ctx = _current.get().merge(**kwargs)
    token = _current.set(ctx)
    try:
        yield ctx
    finally:
        _current.reset(token)


# =============================================================================
# Formatters
# =============================================================================

class _ChainFormatter(logging.Formatter):
    """Shared access to record time and per-call fields."""

    @staticmethod
    def _timestamp(record: logging.LogRecord) -> datetime:
        return datetime.fromtimestamp(record.created, tz=timezone.utc)

    @staticmethod
    def _extra(record: logging.LogRecord) -> Dict[str, Any]:
        return getattr(record, "extra_fields", None) or {}


class StructuredFormatter(_ChainFormatter):
    """
    One JSON object per line, for log shippers.

    {"timestamp": "2026-10-19T12:00:00.000Z", "level": "INFO",
     "logger": "core.pipeline.stages", "message": "Stage committed: SALES_ORDER",
     "run_id": "run-1a2b", "stage": "SALES_ORDER", "doc_entry": 125}
    """

    def format(self, record: logging.LogRecord) -> str:
        stamp = self._timestamp(record)
        payload: Dict[str, Any] = {
            "timestamp": stamp.strftime("%Y-%m-%dT%H:%M:%S.") + f"{stamp.microsecond // 1000:03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(get_correlation_context().to_dict())
        payload.update(self._extra(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class HumanReadableFormatter(_ChainFormatter):
    """
    Console output.

    2026-10-19 12:00:00 [INFO ] core.pipeline.stages [run-1a2b/SALES_ORDER/#125]: Stage committed: SALES_ORDER doc_entry=125
    """

    def format(self, record: logging.LogRecord) -> str:
        line = "{} [{:5}] {} [{}]: {}".format(
            self._timestamp(record).strftime("%Y-%m-%d %H:%M:%S"),
            record.levelname,
            record.name,
            get_correlation_context().tag(),
            record.getMessage(),
        )
        pairs = [f"{k}={v}" for k, v in self._extra(record).items()]
        if pairs:
            line = " ".join([line] + pairs)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


# =============================================================================
# Correlated Logger
# =============================================================================

class CorrelatedLogger:
    """
    Thin wrapper over logging.Logger.

    Each call may pass extra_fields={...}; the mapping is stored on the
    record and rendered by both formatters next to the correlation fields.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def log(self, level: int, msg: str, *args, extra_fields: Optional[Dict[str, Any]] = None, exc_info=None):
        if not self._logger.isEnabledFor(level):
            return
        if exc_info is True:
            exc_info = sys.exc_info()
        try:
            # stacklevel 3: the caller of debug()/info()/... above log()
            pathname, lineno, func, _ = self._logger.findCaller(stacklevel=3)
        except ValueError:
            pathname, lineno, func = "(unknown file)", 0, None
        record = self._logger.makeRecord(
            self._logger.name, level, pathname, lineno, msg, args, exc_info or None, func,
        )
        record.extra_fields = dict(extra_fields or {})
        self._logger.handle(record)

    def debug(self, msg: str, *args, **kwargs):
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self.log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs["exc_info"] = True
        self.log(logging.ERROR, msg, *args, **kwargs)

    def setLevel(self, level):
        self._logger.setLevel(level)

    def isEnabledFor(self, level) -> bool:
        return self._logger.isEnabledFor(level)


# =============================================================================
# Setup
# =============================================================================

APP_LOGGERS: List[str] = ["connectors", "core", "activities", "workflows", "scripts"]

_loggers: Dict[str, CorrelatedLogger] = {}
_handler: Optional[logging.Handler] = None


def configure_logging(
    level: int = logging.INFO,
    json_format: bool = False,
    include_temporal: bool = True,
):
    """
    Install the console handler on the root logger.

    Calling it again swaps the handler (e.g. a CLI switching to JSON output)
    instead of stacking a second one.

    Args:
        level: Level for the handler and the application loggers
        json_format: StructuredFormatter instead of HumanReadableFormatter
        include_temporal: Let temporalio INFO records through (workers);
            scripts that never talk to Temporal pass False
    """
    global _handler

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)

    _handler = logging.StreamHandler(sys.stdout)
    _handler.setLevel(level)
    _handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())
    root.addHandler(_handler)
    root.setLevel(level)

    for name in APP_LOGGERS:
        logging.getLogger(name).setLevel(level)

    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("temporalio").setLevel(logging.INFO if include_temporal else logging.WARNING)


def get_logger(name: str) -> CorrelatedLogger:
    """Correlated logger for a module; one instance per name."""
    logger = _loggers.get(name)
    if logger is None:
        logger = _loggers[name] = CorrelatedLogger(logging.getLogger(name))
    return logger


# =============================================================================
# Stage Events
# =============================================================================

def _stage_logger(stage: str) -> CorrelatedLogger:
    return get_logger("core.pipeline." + stage.lower())


def log_stage_start(stage: str, **fields_):
    _stage_logger(stage).info(f"Stage started: {stage}", extra_fields=fields_)


def log_stage_committed(stage: str, doc_entry: int, duration_ms: Optional[float] = None, **fields_):
    """Log a document the store accepted; duration is rounded to 0.1 ms."""
    extra: Dict[str, Any] = {"doc_entry": doc_entry}
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 1)
    extra.update(fields_)
    _stage_logger(stage).info(f"Stage committed: {stage}", extra_fields=extra)


def log_stage_failed(stage: str, error: str, **fields_):
    """Log a rejected or faulted stage with the store's message."""
    _stage_logger(stage).error(f"Stage failed: {stage} - {error}", extra_fields=fields_)
