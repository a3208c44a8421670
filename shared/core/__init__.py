"""Shared core utilities for the order and shipment services.

Provides health checks, structured logging and HTTP error mapping.
"""

from .health import ServiceHealth, HealthStatus
from .logging_config import (
    setup_logging,
    get_logger,
    RequestLoggingMiddleware,
    generate_request_id,
    trace_headers,
    LoggerAdapter,
)
from .error_handlers import register_error_handlers, problem

__all__ = [
    # Health checks
    "ServiceHealth",
    "HealthStatus",
    # Logging
    "setup_logging",
    "get_logger",
    "RequestLoggingMiddleware",
    "generate_request_id",
    "trace_headers",
    "LoggerAdapter",
    # Errors
    "register_error_handlers",
    "problem",
]
