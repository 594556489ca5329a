"""
Structured event logging for the generation services.

Every record is one JSON document passed through loguru:

    {"@timestamp", "level", "event", "message",
     "service": {...}, "logger": {"name"},
     "correlation": {"correlation_id", "operation", "chunk"},
     "data": {...}, "error": {...}}

Event names use dot notation <domain>.<action>.<result>, for example
``pipeline.chunk.failed``, ``merge.collision.detected`` or
``structure.critical.synthesized``.
"""
import json
import os
import socket
import time
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import lru_cache, wraps
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger as loguru_logger

from builder.config import settings

# Correlation for the run, stage and chunk currently being processed
correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)
operation_var: ContextVar[Optional[str]] = ContextVar('operation', default=None)
chunk_var: ContextVar[Optional[str]] = ContextVar('chunk', default=None)

_CORRELATION_VARS: Dict[str, ContextVar] = {
    "correlation_id": correlation_id_var,
    "operation": operation_var,
    "chunk": chunk_var,
}


@lru_cache(maxsize=1)
def service_metadata() -> Dict[str, str]:
    """Static part of every record, resolved once per process"""
    hostname = socket.gethostname()
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "instance_id": os.getenv("INSTANCE_ID", hostname),
    }


def _error_details(error: BaseException) -> Dict[str, str]:
    return {
        "type": type(error).__name__,
        "message": str(error),
        "stacktrace": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
    }


class StructuredLogger:
    """
    JSON event logger bound to a module name.

    The level methods take an event name, an optional human message and an
    ``extra`` mapping that lands under ``data``. ``error`` and ``critical``
    also accept the exception being reported.
    """

    def __init__(self, name: str):
        self.name = name

    def record(
        self,
        level: str,
        event: str,
        message: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None,
    ) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "@timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "event": event,
            "message": message or event,
            "service": service_metadata(),
            "logger": {"name": self.name},
            "correlation": {key: var.get() for key, var in _CORRELATION_VARS.items()},
        }
        if extra:
            entry["data"] = extra
        if exc_info is not None:
            entry["error"] = _error_details(exc_info)
        return entry

    def _log(self, level: str, event: str, message=None, extra=None, exc_info=None) -> None:
        entry = self.record(level, event, message, extra, exc_info)
        loguru_logger.opt(depth=2).log(level, json.dumps(entry, default=str))

    def debug(self, event: str, message: str = None, extra: Dict = None):
        self._log("DEBUG", event, message, extra)

    def info(self, event: str, message: str = None, extra: Dict = None):
        self._log("INFO", event, message, extra)

    def warning(self, event: str, message: str = None, extra: Dict = None):
        self._log("WARNING", event, message, extra)

    def error(self, event: str, message: str = None, extra: Dict = None, exc_info: BaseException = None):
        self._log("ERROR", event, message, extra, exc_info)

    def critical(self, event: str, message: str = None, extra: Dict = None, exc_info: BaseException = None):
        self._log("CRITICAL", event, message, extra, exc_info)


def get_logger(name: str) -> StructuredLogger:
    """
    Usage:
        logger = get_logger(__name__)
        logger.info("pipeline.chunk.completed", extra={"chunk": "screens-navigation"})
    """
    return StructuredLogger(name)


class log_context:
    """
    Scope correlation fields for every record logged inside the block.

    Only the fields given are set; the others keep their outer values, so
    a chunk scope can nest inside a run scope:

        with log_context(correlation_id=run_id, operation="pipeline.run"):
            with log_context(chunk="screens-navigation"):
                ...
    """

    def __init__(self, correlation_id: str = None, operation: str = None, chunk: str = None):
        self.values = {"correlation_id": correlation_id, "operation": operation, "chunk": chunk}
        self._tokens: List[Tuple[ContextVar, Any]] = []

    def __enter__(self):
        for key, value in self.values.items():
            if value:
                var = _CORRELATION_VARS[key]
                self._tokens.append((var, var.set(value)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


def trace_async(event_prefix: str):
    """
    Wrap a coroutine in ``<prefix>.started`` / ``.completed`` / ``.failed``
    events. Failures are logged with their duration and re-raised.
    """
    def decorator(func):
        logger = get_logger(func.__module__)

        @wraps(func)
        async def wrapper(*args, **kwargs):
            logger.info(f"{event_prefix}.started", extra={"function": func.__name__})
            started = time.perf_counter()

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"{event_prefix}.failed",
                    extra={
                        "function": func.__name__,
                        "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                        "error_type": type(e).__name__,
                    },
                    exc_info=e,
                )
                raise

            duration_ms = (time.perf_counter() - started) * 1000
            logger.info(
                f"{event_prefix}.completed",
                f"{func.__name__} finished in {duration_ms:.1f}ms",
                extra={"function": func.__name__, "duration_ms": round(duration_ms, 1)},
            )
            return result

        return wrapper
    return decorator
