"""
Access logging for the Librarium API.

One log line per request, tagged with a correlation id (X-Request-ID)
that is echoed back to the client. Credentials never reach the log:
headers are not logged and password/token fields in JSON
bodies are redacted. Outside development the lines are emitted as JSON.
"""

import json
import logging
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Set

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

logger = logging.getLogger("librarium.api")

REDACTED = "[REDACTED]"


@dataclass
class LoggingConfig:
    """Configuration for request logging."""

    enabled: bool = True

    # Bodies are only logged in debug mode
    log_request_body: bool = False
    max_body_log_size: int = 4096

    # Probes and browser noise
    quiet_paths: Set[str] = field(default_factory=lambda: {"/health", "/favicon.ico"})

    redacted_fields: Set[str] = field(default_factory=lambda: {
        "password",
        "hashed_password",
        "access_token",
        "token",
    })

    # Seconds
    slow_request_threshold: float = 1.0

    request_id_header: str = "X-Request-ID"


class StructuredLogFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": request_id_var.get() or None,
        }
        access = getattr(record, "access", None)
        if access:
            entry.update(access)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def redact_sensitive_data(data: Any, redacted_fields: Set[str], replacement: str = REDACTED) -> Any:
    """Recursively replace values of sensitive keys (case-insensitive)."""
    if isinstance(data, dict):
        return {
            key: replacement if key.lower() in redacted_fields
            else redact_sensitive_data(value, redacted_fields, replacement)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [redact_sensitive_data(item, redacted_fields, replacement) for item in data]
    return data


def get_request_id() -> str:
    """Correlation id of the request being handled, or empty outside a request."""
    return request_id_var.get()


def _route_template(request: Request) -> str:
    # /api/v1/loans/{loan_id} groups better than /api/v1/loans/17
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log middleware."""

    def __init__(self, app: FastAPI, config: Optional[LoggingConfig] = None):
        super().__init__(app)
        self.config = config or LoggingConfig()

    async def _body_for_log(self, request: Request) -> Optional[str]:
        body = await request.body()
        if not body:
            return None
        if len(body) > self.config.max_body_log_size:
            return f"<{len(body)} bytes>"
        try:
            parsed = json.loads(body)
        except json.JSONDecodeError:
            return "<non-JSON body>"
        return json.dumps(redact_sensitive_data(parsed, self.config.redacted_fields))

    def _level_for(self, status_code: int, duration: float) -> int:
        if status_code >= 500:
            return logging.ERROR
        if status_code in (401, 403, 429) or duration > self.config.slow_request_threshold:
            return logging.WARNING
        return logging.INFO

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.config.request_id_header) or uuid.uuid4().hex[:12]
        request_id_var.set(request_id)

        if not self.config.enabled or request.url.path in self.config.quiet_paths:
            response = await call_next(request)
            response.headers[self.config.request_id_header] = request_id
            return response

        body = await self._body_for_log(request) if self.config.log_request_body else None

        started = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - started
        response.headers[self.config.request_id_header] = request_id

        access = {
            "method": request.method,
            "path": request.url.path,
            "route": _route_template(request),
            "status_code": response.status_code,
            "duration_ms": round(duration * 1000, 2),
            "client_ip": request.client.host if request.client else None,
            "authenticated": "authorization" in request.headers,
        }
        if body:
            access["body"] = body

        logger.log(
            self._level_for(response.status_code, duration),
            f"{request.method} {access['route']} -> {response.status_code} ({access['duration_ms']}ms)",
            extra={"access": access},
        )
        return response


def setup_logging(
    app: FastAPI,
    config: Optional[LoggingConfig] = None,
    structured: bool = True,
) -> None:
    """
    Install the access log middleware.

    Args:
        app: FastAPI application instance.
        config: Logging configuration.
        structured: Emit ``librarium.*`` records as JSON.
    """
    librarium_logger = logging.getLogger("librarium")
    has_json_handler = any(
        isinstance(h.formatter, StructuredLogFormatter) for h in librarium_logger.handlers
    )

    if structured and not has_json_handler:
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredLogFormatter())
        librarium_logger.addHandler(handler)
        librarium_logger.setLevel(logging.INFO)

    app.add_middleware(RequestLoggingMiddleware, config=config or LoggingConfig())
