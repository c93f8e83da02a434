"""
Structured logging for the storefront API.

Every record is emitted as one JSON document on stdout, carrying the service
identity, the request trace context and any ``extra_fields`` passed by the
caller. Request ids are propagated through context variables so that log
lines written deep inside a service can be correlated with the HTTP request
that caused them.
"""

import json
import logging
import logging.handlers
import re
import sys
import time
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .metrics import RequestMetrics

# Context variables for request tracking
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)

_service_identity: Dict[str, str] = {
    "service": "storefront-api",
    "environment": "development",
    "version": "1.0.0",
}

class StructuredFormatter(logging.Formatter):
    """JSON formatter compatible with ELK, CloudWatch Insights and Datadog."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "@timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_service_identity,
        }

        trace_context = _trace_context()
        if trace_context:
            log_obj["trace"] = trace_context

        log_obj["location"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
            "module": record.module
        }

        if record.exc_info and record.exc_info[0] is not None:
            log_obj["error"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "stacktrace": traceback.format_exception(*record.exc_info)
            }

        if hasattr(record, 'extra_fields'):
            log_obj["custom"] = record.extra_fields

        if hasattr(record, 'duration_ms'):
            log_obj["performance"] = {"duration_ms": record.duration_ms}

        return json.dumps(log_obj, default=str)

def _trace_context() -> Optional[Dict[str, Any]]:
    context = {
        "request_id": request_id_var.get(),
        "correlation_id": correlation_id_var.get(),
        "user_id": user_id_var.get(),
    }
    context = {k: v for k, v in context.items() if v}
    return context or None

class SecurityFilter(logging.Filter):
    """Redact credentials that end up in log messages."""

    SENSITIVE_FIELDS = ['password', 'token', 'api_key', 'secret', 'authorization', 'cookie']
    _pattern = re.compile(
        r"(?i)\b(" + "|".join(SENSITIVE_FIELDS) + r")\b(\s*[=:]\s*)(\S+)"
    )

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = self._pattern.sub(r"\1\2***REDACTED***", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True

def setup_logging(
    service_name: str,
    level: str = "INFO",
    environment: str = "development",
    version: str = "1.0.0",
    log_file: Optional[str] = None
) -> None:
    """
    Configure the root logger for structured output.

    Args:
        service_name: Name reported in every record
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: Deployment environment reported in every record
        version: Service version reported in every record
        log_file: Optional path of a rotating log file
    """
    _service_identity.update(service=service_name, environment=environment, version=version)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers = []

    formatter = StructuredFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(SecurityFilter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10485760,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(SecurityFilter())
        root_logger.addHandler(file_handler)

    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

    root_logger.info(
        "Logging initialized",
        extra={'extra_fields': {'service': service_name, 'level': level, 'file': log_file}}
    )

class LoggerAdapter(logging.LoggerAdapter):
    """Inject the current request context into every record."""

    def process(self, msg, kwargs):
        extra = kwargs.get('extra', {})
        for key, var in (
            ('request_id', request_id_var),
            ('correlation_id', correlation_id_var),
            ('user_id', user_id_var),
        ):
            value = var.get()
            if value:
                extra[key] = value
        kwargs['extra'] = extra
        return msg, kwargs

def get_logger(name: str) -> LoggerAdapter:
    return LoggerAdapter(logging.getLogger(name), {})

def set_request_context(
    request_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
    user_id: Optional[str] = None
) -> None:
    if request_id:
        request_id_var.set(request_id)
    if correlation_id:
        correlation_id_var.set(correlation_id)
    if user_id:
        user_id_var.set(user_id)

def generate_request_id() -> str:
    return str(uuid.uuid4())

def _endpoint(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with its duration, count it and echo ``X-Request-ID``."""

    def __init__(self, app, metrics: Optional[RequestMetrics] = None):
        super().__init__(app)
        self.metrics = metrics

    def _record(self, request: Request, status_code: int, start_time: float):
        if self.metrics is not None:
            self.metrics.record(request.method, _endpoint(request), status_code, time.time() - start_time)

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get('X-Request-ID') or generate_request_id()
        set_request_context(
            request_id=request_id,
            correlation_id=request.headers.get('X-Correlation-ID')
        )

        logger = get_logger(__name__)
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                exc_info=True,
                extra={'extra_fields': {
                    'method': request.method,
                    'path': request.url.path,
                    'duration_ms': (time.time() - start_time) * 1000
                }}
            )
            self._record(request, 500, start_time)
            raise

        logger.info(
            f"Request completed: {request.method} {request.url.path}",
            extra={'extra_fields': {
                'method': request.method,
                'path': request.url.path,
                'status_code': response.status_code,
                'duration_ms': (time.time() - start_time) * 1000,
                'client_host': request.client.host if request.client else None
            }}
        )
        self._record(request, response.status_code, start_time)
        response.headers['X-Request-ID'] = request_id
        return response
