"""
SynthStake Observability

Structured logging for the staking components. Every component obtains a
StakeLogger bound to its layer; records carry the correlation ID of the
current call, the operation name and arbitrary structured context.

Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                    Component Code                        │
    │  logger.info("Minted synthetic tokens", amount=x)        │
    └───────────────────────┬─────────────────────────────────┘
                            │
    ┌───────────────────────▼─────────────────────────────────┐
    │                      StakeLogger                         │
    │  Correlation IDs, layer, operation, structured context  │
    └───────────────────────┬─────────────────────────────────┘
                            │
    ┌───────────────────────▼─────────────────────────────────┐
    │                  StructuredHandler                       │
    │        JSON lines (default) or plain text on stderr      │
    └─────────────────────────────────────────────────────────┘

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
import time
import traceback
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from functools import wraps
from typing import Any, Callable, Dict, Optional, TypeVar

# Context variable for call-scoped correlation
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)


class LogLevel(Enum):
    """Log severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class StakeLayer(Enum):
    """SynthStake components, for categorizing log records."""
    LEDGER = "ledger"
    ISSUER = "issuer"
    REGISTRY = "registry"
    STATUS = "status"
    CORE = "core"
    DIRECT = "direct"
    CONFIG = "config"
    AUDIT = "audit"
    SCENARIO = "scenario"
    CLI = "cli"


@dataclass
class LogEvent:
    """Structured log event."""
    timestamp: str
    level: str
    logger: str
    message: str
    correlation_id: str = ""
    layer: str = ""
    operation: str = ""
    duration_ms: Optional[float] = None
    error_code: str = ""
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, excluding empty values."""
        d = asdict(self)
        return {k: v for k, v in d.items() if v is not None and v != "" and v != {}}

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def to_text(self) -> str:
        ctx = " ".join(f"{k}={v}" for k, v in self.context.items())
        parts = [self.timestamp, self.level.upper(), self.logger, self.message]
        if ctx:
            parts.append(ctx)
        return " ".join(parts)


class StructuredHandler(logging.Handler):
    """Logging handler that outputs structured JSON or plain text."""

    def __init__(self, stream: Any = None, fmt: str = "json"):
        super().__init__()
        self._stream = stream
        self.fmt = fmt

    @property
    def stream(self) -> Any:
        # Resolved per record so a replaced sys.stderr is honoured
        return self._stream or sys.stderr

    def emit(self, record: logging.LogRecord) -> None:
        try:
            event = LogEvent(
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                level=record.levelname.lower(),
                logger=record.name,
                message=record.getMessage(),
                correlation_id=correlation_id_var.get(),
                layer=getattr(record, "layer", ""),
                operation=getattr(record, "operation", ""),
                duration_ms=getattr(record, "duration_ms", None),
                error_code=getattr(record, "error_code", ""),
                context=getattr(record, "context", {}),
            )

            if record.exc_info:
                event.exception = "".join(traceback.format_exception(*record.exc_info))

            line = event.to_text() if self.fmt == "text" else event.to_json()
            self.stream.write(line + "\n")
            self.stream.flush()
        except Exception:
            self.handleError(record)


class StakeLogger:
    """
    Structured logger for SynthStake components.

    Automatically includes the correlation ID and layer in all log events.
    Level and format default to the observability section of the
    configuration.
    """

    def __init__(
        self,
        name: str,
        layer: StakeLayer,
        level: Optional[LogLevel] = None,
    ):
        self.name = name
        self.layer = layer
        self._logger = logging.getLogger(f"synthstake.{layer.value}.{name}")

        from synthstake.config import get_config
        obs = get_config().observability
        if level is None:
            level = LogLevel(obs.log_level.get())
        self._logger.setLevel(getattr(logging, level.value.upper()))

        fmt = obs.log_format.get()
        handler = next((h for h in self._logger.handlers if isinstance(h, StructuredHandler)), None)
        if handler is None:
            self._logger.addHandler(StructuredHandler(fmt=fmt))
        else:
            handler.fmt = fmt

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def _log(
        self,
        level: int,
        message: str,
        operation: str = "",
        error_code: str = "",
        duration_ms: Optional[float] = None,
        exc_info: bool = False,
        **context: Any,
    ) -> None:
        extra = {
            "layer": self.layer.value,
            "operation": operation,
            "error_code": error_code,
            "duration_ms": duration_ms,
            "context": context,
        }
        self._logger.log(level, message, extra=extra, exc_info=exc_info)

    def debug(self, message: str, **context: Any) -> None:
        self._log(logging.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._log(logging.INFO, message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(logging.WARNING, message, **context)

    def error(
        self,
        message: str,
        error_code: str = "",
        exc_info: bool = False,
        **context: Any,
    ) -> None:
        self._log(logging.ERROR, message, error_code=error_code, exc_info=exc_info, **context)

    def operation(
        self,
        name: str,
        duration_ms: float,
        success: bool = True,
        **context: Any,
    ) -> None:
        """Log an operation completion."""
        level = logging.INFO if success else logging.WARNING
        status = "completed" if success else "failed"
        self._log(
            level,
            f"Operation {name} {status}",
            operation=name,
            duration_ms=duration_ms,
            **context,
        )


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return f"corr-{uuid.uuid4().hex[:12]}"


def set_correlation_id(correlation_id: str) -> contextvars.Token:
    """Set the correlation ID for the current context."""
    return correlation_id_var.set(correlation_id)


def get_correlation_id() -> str:
    """Get the current correlation ID, creating one if needed."""
    cid = correlation_id_var.get()
    if not cid:
        cid = generate_correlation_id()
        correlation_id_var.set(cid)
    return cid


def get_logger(name: str, layer: StakeLayer) -> StakeLogger:
    """Get a logger for a SynthStake component."""
    return StakeLogger(name, layer)


T = TypeVar("T")


def timed_operation(
    logger: StakeLogger,
    operation_name: str,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator for timing and logging operations."""
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            start = time.monotonic()
            success = True
            try:
                return func(*args, **kwargs)
            except Exception:
                success = False
                raise
            finally:
                duration_ms = (time.monotonic() - start) * 1000
                logger.operation(operation_name, duration_ms, success)
        return wrapper
    return decorator
