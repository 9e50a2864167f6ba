"""Structured logging for vconv.

Text or JSON output, optional rotating log file, and per-request context.
"""

from vconv.logging.config import configure_logging
from vconv.logging.context import (
    JSONFormatter,
    RequestContextFilter,
    get_request_context,
    request_context,
    set_upload_name,
)

__all__ = [
    "JSONFormatter",
    "RequestContextFilter",
    "configure_logging",
    "get_request_context",
    "request_context",
    "set_upload_name",
]
