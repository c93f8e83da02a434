"""Cross-cutting utilities: structured logging and health checks."""

from .logging_config import (
    setup_logging,
    get_logger,
    RequestLoggingMiddleware,
    set_request_context,
    generate_request_id,
    LoggerAdapter,
)
from .health import ServiceHealth, HealthStatus
from .metrics import RequestMetrics, request_metrics

__all__ = [
    # Health checks
    "ServiceHealth",
    "HealthStatus",
    # Request metrics
    "RequestMetrics",
    "request_metrics",
    # Logging
    "setup_logging",
    "get_logger",
    "RequestLoggingMiddleware",
    "set_request_context",
    "generate_request_id",
    "LoggerAdapter",
]
