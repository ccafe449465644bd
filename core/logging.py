# ============================================================================
# STRUCTURED LOGGING
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Core - Structured logging with context
# PURPOSE: Consistent, queryable logging across all engine components
# CREATED: 12 OCT 2026
# ============================================================================
"""
Structured Logging

Provides structured logging for the workflow planning engine.

Features:
- Component-based loggers
- Contextual fields (run_id, job_id, instance_id)
- JSON output for log aggregation
- Named checkpoints (batch_produced, run_completed, ...)

Usage:
    from core.logging import get_logger, log_context

    logger = get_logger("engine.scheduler")

    with log_context(run_id="run-123", instance_id="build (ubuntu)"):
        logger.info("Instance skipped", extra={"reason": "condition false"})
"""

import json
import logging
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Union
from enum import Enum

from core.config import get_defaults


class ComponentType(str, Enum):
    """Component types for logging categorization."""
    EVALUATOR = "evaluator"
    MATRIX = "matrix"
    GRAPH = "graph"
    SCHEDULER = "scheduler"
    TRIGGER = "trigger"
    PLANNER = "planner"
    LOADER = "loader"


@dataclass(frozen=True)
class LogContext:
    """
    Fields attached to every record emitted inside a log_context block.

    Unknown keyword fields passed to log_context land in `extra`.
    """
    run_id: Optional[str] = None
    workflow_id: Optional[str] = None
    job_id: Optional[str] = None
    instance_id: Optional[str] = None
    component: Optional[str] = None
    operation: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Non-empty fields, with extra flattened in last."""
        result = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "extra" and getattr(self, f.name) is not None
        }
        result.update(self.extra)
        return result


_NAMED_FIELDS = frozenset(f.name for f in fields(LogContext)) - {"extra"}

_local = threading.local()


def _stack() -> list:
    if not hasattr(_local, "stack"):
        _local.stack = []
    return _local.stack


def get_current_context() -> LogContext:
    """Innermost active context, or an empty one."""
    stack = _stack()
    return stack[-1] if stack else LogContext()


@contextmanager
def log_context(**kwargs) -> Iterator[LogContext]:
    """
    Push a logging context that inherits every field of the enclosing one.

    Example:
        with log_context(run_id="run-123", instance_id="test (3.12)"):
            logger.info("Gating instance")
    """
    parent = get_current_context()
    named = {k: v for k, v in kwargs.items() if k in _NAMED_FIELDS}
    extra = {**parent.extra, **kwargs.get("extra", {})}
    extra.update({k: v for k, v in kwargs.items() if k not in _NAMED_FIELDS and k != "extra"})

    context = replace(parent, extra=extra, **named)
    stack = _stack()
    stack.append(context)
    try:
        yield context
    finally:
        stack.pop()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": _utc_now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = get_current_context().to_dict()
        if context:
            payload["context"] = context

        data = getattr(record, "extra", None)
        if data:
            payload["data"] = data

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        payload["source"] = f"{record.filename}:{record.lineno}"
        return json.dumps(payload, default=str)


class HumanFormatter(logging.Formatter):
    """
    Single-line formatter for terminals.

    Renders as: `<time> <LEVEL> <logger> [workflow/run instance]: message`
    """

    def format(self, record: logging.LogRecord) -> str:
        context = get_current_context()
        where = "/".join(p for p in (context.workflow_id, context.run_id) if p)
        if context.instance_id:
            where = f"{where} {context.instance_id}".strip()

        line = (
            f"{_utc_now():%Y-%m-%d %H:%M:%S} {record.levelname:<8} {record.name}"
            f"{f' [{where}]' if where else ''}: {record.getMessage()}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that stamps the active log_context onto each record.

    The merged fields are stored on the record as `record.extra`.
    """

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra", {}))
        extra.update(get_current_context().to_dict())
        component = (self.extra or {}).get("component")
        if component:
            extra.setdefault("component", component)
        kwargs["extra"] = {"extra": extra}
        return msg, kwargs


def get_logger(
    name: str,
    component: Optional[ComponentType] = None,
) -> ContextLogger:
    """
    Get a context-aware logger.

    Args:
        name: Logger name (e.g., "engine.scheduler")
        component: Optional component type for categorization
    """
    return ContextLogger(
        logging.getLogger(name),
        {"component": component.value if component is not None else None},
    )


def configure_logging(
    level: Optional[Union[str, int]] = None,
    json_output: Optional[bool] = None,
) -> logging.Handler:
    """
    Install a single stdout handler on the root logger.

    Args:
        level: Log level name or number. Defaults to LOG_LEVEL
        json_output: JSON records instead of human lines. Defaults to LOG_FORMAT=json

    Returns:
        The installed handler
    """
    defaults = get_defaults().logging
    level = defaults.level if level is None else level
    json_output = defaults.json_output if json_output is None else json_output
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if json_output else HumanFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    return handler


# ============================================================================
# CHECKPOINT LOGGING
# ============================================================================

def log_checkpoint(
    name: str,
    data: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Log a named checkpoint.

    Checkpoints mark the points a run passes through (batch_produced,
    run_cancelled, run_completed) so the planning of a run can be
    reconstructed from logs alone.

    Args:
        name: Checkpoint name
        data: Optional checkpoint payload
        logger: Logger to use, default "checkpoint"
    """
    record = {"checkpoint": name, "timestamp": _utc_now().isoformat()}
    record.update(get_current_context().to_dict())
    if data:
        record["data"] = data

    (logger or logging.getLogger("checkpoint")).info(
        f"CHECKPOINT: {name}", extra={"extra": record}
    )


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ComponentType",
    "LogContext",
    "StructuredFormatter",
    "HumanFormatter",
    "ContextLogger",
    "get_logger",
    "configure_logging",
    "log_context",
    "get_current_context",
    "log_checkpoint",
]
