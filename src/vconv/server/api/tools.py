"""GET /ffmpeg-info handler."""

from __future__ import annotations

from typing import TYPE_CHECKING

from aiohttp import web

from vconv.conversion.exceptions import ToolUnavailableError
from vconv.server.api.errors import api_error
from vconv.tools.models import ToolStatus

if TYPE_CHECKING:
    from vconv.conversion.service import ConversionService


async def ffmpeg_info_handler(request: web.Request) -> web.Response:
    """Report the ffmpeg banner, build configuration and library lines.

    A spawn failure is reported with the operating system's message; any
    other probe failure with a generic message.
    """
    service: ConversionService = request.app["conversion_service"]
    info = await service.probe()

    if info.status == ToolStatus.MISSING:
        return api_error(
            info.status_message or "FFmpeg not found",
            code=ToolUnavailableError.code,
            status=500,
        )
    if not info.is_available():
        return api_error(
            "Could not get FFmpeg info",
            code=ToolUnavailableError.code,
            status=500,
            details=info.status_message,
        )

    return web.json_response(
        {
            "success": True,
            "version": info.banner,
            "configuration": info.configuration or "Not found",
            "libraries": info.libraries,
        }
    )
