"""HTTP application for the conversion server.

create_app wires the routes, shared services and startup/cleanup hooks.
The serve command attaches its DaemonLifecycle before the app starts;
otherwise a fresh one is created.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

from aiohttp import web

from vconv import __version__
from vconv.config.models import VconvConfig
from vconv.conversion.service import ConversionService
from vconv.conversion.storage import ScratchStorage
from vconv.server.api.convert import convert_handler, download_handler
from vconv.server.api.tools import ffmpeg_info_handler
from vconv.server.lifecycle import DaemonLifecycle
from vconv.server.middleware import request_middleware

logger = logging.getLogger(__name__)

# Headroom for multipart boundaries and headers on top of the file itself
_MULTIPART_OVERHEAD = 64 * 1024


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class HealthStatus:
    """Health check response payload."""

    status: str
    """'healthy' or 'unhealthy'."""

    ffmpeg: str
    """'available' or 'unavailable'."""

    timestamp: str
    uptime_seconds: float
    version: str
    shutting_down: bool = False
    conversions_running: int = 0
    conversions_waiting: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if data["error"] is None:
            del data["error"]
        return data


def create_app(
    config: VconvConfig | None = None,
    lifecycle: DaemonLifecycle | None = None,
) -> web.Application:
    """Create and configure the aiohttp Application.

    Args:
        config: Application configuration. Defaults are used when None.
        lifecycle: Shared lifecycle; a new one is created when None.

    Returns:
        Configured aiohttp Application.
    """
    config = config or VconvConfig()

    storage = ScratchStorage(
        config.storage, output_extension=config.conversion.output_extension
    )
    service = ConversionService(config, storage)

    # Upload size is enforced while streaming; this only bounds other bodies
    app = web.Application(
        client_max_size=config.conversion.max_upload_bytes + _MULTIPART_OVERHEAD,
        middlewares=[request_middleware],
    )
    app["config"] = config
    app["storage"] = storage
    app["conversion_service"] = service
    app["lifecycle"] = lifecycle or DaemonLifecycle(
        shutdown_timeout=config.server.shutdown_timeout
    )
    app["ffmpeg_info"] = None

    app.router.add_get("/", index_handler)
    app.router.add_get("/health", health_handler)
    app.router.add_get("/ffmpeg-info", ffmpeg_info_handler)
    app.router.add_post("/convert", convert_handler)
    # HEAD would claim the file without transferring it
    app.router.add_get("/download/{filename}", download_handler, allow_head=False)

    app.on_startup.append(_prepare_storage)
    app.on_startup.append(_startup_probe)
    app.on_cleanup.append(_flush_deletions)

    return app


async def _prepare_storage(app: web.Application) -> None:
    """Create scratch directories and clear leftovers from earlier runs."""
    storage: ScratchStorage = app["storage"]
    await asyncio.to_thread(storage.ensure_dirs)
    cleaned = await asyncio.to_thread(storage.cleanup_orphaned_files)
    if cleaned:
        logger.info("Removed %d orphaned scratch file(s)", cleaned)
    logger.debug("Scratch storage ready at %s", storage.config.scratch_dir)


async def _startup_probe(app: web.Application) -> None:
    """Log whether ffmpeg works. Requests are accepted either way."""
    service: ConversionService = app["conversion_service"]
    info = await service.probe()
    app["ffmpeg_info"] = info
    if info.is_available():
        logger.info("FFmpeg available: %s", info.banner)
    else:
        logger.warning(
            "FFmpeg not available (%s): %s", service.ffmpeg_path, info.status_message
        )


async def _flush_deletions(app: web.Application) -> None:
    """Delete delivered outputs that are still waiting for their delay."""
    storage: ScratchStorage = app["storage"]
    pending = storage.pending_deletions
    if pending:
        logger.debug("Flushing %d pending deletion(s)", pending)
    await storage.flush_pending_deletions()


async def index_handler(request: web.Request) -> web.Response:
    """Handle GET /: service banner and endpoint listing."""
    return web.json_response(
        {
            "message": "FFmpeg video conversion API is running",
            "status": "healthy",
            "version": __version__,
            "timestamp": _utc_timestamp(),
            "endpoints": {
                "health": "GET /health",
                "ffmpeg_info": "GET /ffmpeg-info",
                "convert": "POST /convert (multipart field 'video')",
                "download": "GET /download/{filename}",
            },
        }
    )


async def health_handler(request: web.Request) -> web.Response:
    """Handle GET /health.

    Returns:
        200 when ffmpeg responds to -version, 500 when it does not, and
        503 while the server is shutting down.
    """
    service: ConversionService = request.app["conversion_service"]
    lifecycle: DaemonLifecycle = request.app["lifecycle"]

    info = await service.probe()
    available = info.is_available()
    shutting_down = lifecycle.is_shutting_down

    health = HealthStatus(
        status="healthy" if available and not shutting_down else "unhealthy",
        ffmpeg="available" if available else "unavailable",
        timestamp=_utc_timestamp(),
        uptime_seconds=round(lifecycle.uptime_seconds, 1),
        version=__version__,
        shutting_down=shutting_down,
        conversions_running=service.gate.running,
        conversions_waiting=service.gate.waiting,
        error=None if available else "FFmpeg not working",
    )

    if shutting_down:
        http_status = 503
    elif not available:
        http_status = 500
    else:
        http_status = 200

    return web.json_response(health.to_dict(), status=http_status)
