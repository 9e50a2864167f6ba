"""Per-request logging context and the formatters that show it.

A request id (and, once known, the upload being processed) is stored in
contextvars by the request middleware. RequestContextFilter copies it onto
every LogRecord so both text and JSON output can show which request a line
belongs to, including lines logged from worker threads started with
asyncio.to_thread (which copies the current context).
"""

from __future__ import annotations

import contextvars
import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_request_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_upload_name: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "upload_name", default=None
)


def set_upload_name(name: str | None) -> None:
    """Attach the original filename of the current upload to the context."""
    _upload_name.set(name)


def get_request_context() -> tuple[str | None, str | None]:
    """Return (request_id, upload_name) for the current context."""
    return _request_id.get(), _upload_name.get()


@contextmanager
def request_context(request_id: str) -> Generator[None, None, None]:
    """Bind request_id for the duration of the block.

    Example:
        with request_context("a1b2c3d4"):
            logger.info("Handling upload")  # tagged [a1b2c3d4]
    """
    id_token = _request_id.set(request_id)
    name_token = _upload_name.set(None)
    try:
        yield
    finally:
        _upload_name.reset(name_token)
        _request_id.reset(id_token)


class RequestContextFilter(logging.Filter):
    """Inject request context into log records.

    Sets request_id and upload_name for JSON output and a compact
    request_tag such as "[a1b2c3d4] " for the text format.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        request_id, upload_name = get_request_context()

        record.request_id = request_id
        record.upload_name = upload_name
        record.request_tag = f"[{request_id}] " if request_id else ""

        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, keyed by the request being served.

    request_id and upload_name are top-level keys, present only while a
    request is bound, so every line about one upload can be selected with
    a single field match. Records must pass through RequestContextFilter
    first; configure_logging attaches it to every handler.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, object] = {
            "timestamp": created.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("request_id", "upload_name"):
            value = getattr(record, key, None)
            if value:
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)
