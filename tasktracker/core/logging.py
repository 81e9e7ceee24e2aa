from __future__ import annotations

import logging
import logging.config
import time
from collections.abc import MutableMapping
from typing import Any
from uuid import uuid4

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from tasktracker.core.config import Settings
from tasktracker.security import redact_sensitive_text

TRACE_HEADER = "X-Trace-ID"

# Third-party loggers routed through the structured handlers instead of their own.
_ROUTED_LOGGERS: tuple[str, ...] = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "sqlalchemy",
    "alembic",
)
_ROTATING_FILE_MAX_BYTES = 5 * 1024 * 1024
_ROTATING_FILE_BACKUPS = 3


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def bind_log_context(
    *,
    trace_id: str | None = None,
    task_id: str | None = None,
    actor: str | None = None,
) -> None:
    values = {"trace_id": _clean(trace_id), "task_id": _clean(task_id), "actor": _clean(actor)}
    payload = {key: value for key, value in values.items() if value is not None}
    if payload:
        structlog.contextvars.bind_contextvars(**payload)


def clear_log_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.stdlib.get_logger(name)


def redact_event_strings(
    _: Any,
    __: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Scrub credentials out of every string value before rendering."""
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = redact_sensitive_text(value)
    return event_dict


def _shared_processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _build_handlers(settings: Settings, level: str) -> dict[str, dict[str, Any]]:
    handlers: dict[str, dict[str, Any]] = {
        "stdout": {
            "class": "logging.StreamHandler",
            "formatter": "structured",
            "level": level,
        }
    }
    if settings.log_file is not None:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "structured",
            "level": level,
            "filename": settings.log_file,
            "maxBytes": _ROTATING_FILE_MAX_BYTES,
            "backupCount": _ROTATING_FILE_BACKUPS,
            "encoding": "utf-8",
        }
    return handlers


def configure_logging(settings: Settings) -> None:
    level = settings.log_level.upper()
    renderer: Any = (
        structlog.dev.ConsoleRenderer()
        if settings.log_format == "console"
        else structlog.processors.JSONRenderer()
    )
    handlers = _build_handlers(settings, level)
    handler_names = list(handlers)
    loggers: dict[str, dict[str, Any]] = {"": {"handlers": handler_names, "level": level}}
    for name in _ROUTED_LOGGERS:
        loggers[name] = {"handlers": handler_names, "level": level, "propagate": False}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": _shared_processors(),
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        structlog.processors.format_exc_info,
                        redact_event_strings,
                        structlog.processors.EventRenamer("message"),
                        renderer,
                    ],
                }
            },
            "handlers": handlers,
            "loggers": loggers,
        }
    )

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


class TraceContextMiddleware(BaseHTTPMiddleware):
    """Binds a trace id for the request, echoes it back and logs request timing."""

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)
        self._logger = get_logger("tasktracker.api.request")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        trace_id = _clean(request.headers.get(TRACE_HEADER)) or f"trace-http-{uuid4().hex}"
        request.state.trace_id = trace_id
        clear_log_context()
        bind_log_context(trace_id=trace_id)
        request_fields = {"method": request.method, "path": request.url.path}
        self._logger.info("request.received", **request_fields)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self._logger.exception("request.failed", **request_fields)
            raise
        finally:
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers[TRACE_HEADER] = trace_id
        self._logger.info(
            "request.completed",
            status_code=response.status_code,
            duration_ms=duration_ms,
            **request_fields,
        )
        clear_log_context()
        return response
