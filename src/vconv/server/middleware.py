"""Request middleware and handler decorators.

request_middleware tags every request with an id (echoed as X-Request-ID
and attached to all log lines emitted while handling it), converts
ConversionError into JSON error bodies and logs one summary line per
request.

Usage:
    @shutdown_check
    async def convert_handler(request: web.Request) -> web.Response:
        ...
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from collections.abc import Awaitable, Callable
from functools import wraps

from aiohttp import web

from vconv.conversion.exceptions import ConversionError, ShuttingDownError
from vconv.logging.context import request_context
from vconv.server.api.errors import (
    INTERNAL_ERROR,
    api_error,
    conversion_error_response,
)

logger = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

REQUEST_ID_HEADER = "X-Request-ID"

# Incoming ids are reused only when they are short and printable
_CLIENT_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _request_id(request: web.Request) -> str:
    supplied = request.headers.get(REQUEST_ID_HEADER, "")
    if _CLIENT_ID_RE.match(supplied):
        return supplied
    return uuid.uuid4().hex[:8]


@web.middleware
async def request_middleware(
    request: web.Request, handler: Handler
) -> web.StreamResponse:
    """Bind request context, map domain errors and log the outcome."""
    request_id = _request_id(request)
    start = time.monotonic()

    with request_context(request_id):
        try:
            response = await handler(request)
        except ConversionError as e:
            response = conversion_error_response(e)
        except web.HTTPException as e:
            e.headers[REQUEST_ID_HEADER] = request_id
            logger.info(
                "%s %s -> %d (%.0fms)",
                request.method,
                request.path,
                e.status,
                (time.monotonic() - start) * 1000,
            )
            raise
        except Exception:
            logger.exception("Unhandled error in %s %s", request.method, request.path)
            response = api_error(
                "Internal server error", code=INTERNAL_ERROR, status=500
            )

        if not response.prepared:
            response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "%s %s -> %d (%.0fms)",
            request.method,
            request.path,
            response.status,
            (time.monotonic() - start) * 1000,
        )
        return response


def shutdown_check(handler: Handler) -> Handler:
    """Decorator that refuses requests once the server is shutting down."""

    @wraps(handler)
    async def wrapper(request: web.Request) -> web.StreamResponse:
        lifecycle = request.app.get("lifecycle")
        if lifecycle is not None and lifecycle.is_shutting_down:
            raise ShuttingDownError()
        return await handler(request)

    return wrapper
