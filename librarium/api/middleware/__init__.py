"""
Cross-cutting HTTP concerns for the Librarium API: error rendering,
CORS, login rate limiting and access logging.
"""

from .error_handler import create_error_response, setup_exception_handlers
from .cors import CORSConfig, get_cors_config, setup_cors
from .rate_limit import (
    InMemoryRateLimiter,
    RateLimitConfig,
    RateLimitMiddleware,
    setup_rate_limiting,
)
from .logging import (
    LoggingConfig,
    RequestLoggingMiddleware,
    StructuredLogFormatter,
    get_request_id,
    redact_sensitive_data,
    setup_logging,
)

__all__ = [
    "create_error_response",
    "setup_exception_handlers",
    "CORSConfig",
    "get_cors_config",
    "setup_cors",
    "InMemoryRateLimiter",
    "RateLimitConfig",
    "RateLimitMiddleware",
    "setup_rate_limiting",
    "LoggingConfig",
    "RequestLoggingMiddleware",
    "StructuredLogFormatter",
    "get_request_id",
    "redact_sensitive_data",
    "setup_logging",
]
