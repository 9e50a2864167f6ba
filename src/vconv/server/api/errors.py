"""Standardized API error responses.

Every error body has the shape
    {"success": false, "error": <message>, "code": <CODE>, "details": ...}
where details is present only when there is something to add (usually the
tail of ffmpeg's stderr).

Codes come from the ConversionError subclasses, so each code is defined
once, next to the condition that produces it.

Usage:
    from vconv.server.api.errors import api_error

    return api_error(message, code=ToolUnavailableError.code, status=500)
"""

from __future__ import annotations

from typing import Any

from aiohttp import web

from vconv.conversion.exceptions import ConversionError, ServiceBusyError

# Code for failures that have no ConversionError of their own
INTERNAL_ERROR = ConversionError.code


def api_error(
    message: str,
    *,
    code: str,
    status: int = 400,
    details: Any = None,
    headers: dict[str, str] | None = None,
) -> web.Response:
    """Create a JSON error response.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code.
        status: HTTP status code (default 400).
        details: Optional additional context.
        headers: Optional extra response headers.

    Returns:
        aiohttp JSON response.
    """
    body: dict[str, Any] = {"success": False, "error": message, "code": code}
    if details is not None:
        body["details"] = details
    return web.json_response(body, status=status, headers=headers)


def conversion_error_response(exc: ConversionError) -> web.Response:
    """Render a ConversionError with its own code and status."""
    headers = None
    if isinstance(exc, ServiceBusyError):
        headers = {"Retry-After": str(exc.retry_after)}
    return api_error(
        exc.message,
        code=exc.code,
        status=exc.status,
        details=exc.details,
        headers=headers,
    )
