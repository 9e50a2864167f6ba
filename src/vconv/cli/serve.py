"""`vconv serve`: run the conversion HTTP server until signalled."""

import asyncio
import logging
import os
import sys
from pathlib import Path

import click

from vconv.cli.exit_codes import ExitCode
from vconv.config import TomlParseError, VconvConfig, get_config
from vconv.config.models import LoggingConfig
from vconv.logging import configure_logging

logger = logging.getLogger(__name__)

# Time for handlers to answer once their ffmpeg process has been killed
KILL_GRACE_SECONDS = 5.0


def _configure_daemon_logging(
    base: LoggingConfig, log_level: str | None, log_format: str | None
) -> None:
    """Configure logging for server mode.

    stderr is always included so process supervisors capture the output.
    """
    configure_logging(
        LoggingConfig(
            level=log_level or base.level,
            file=base.file,
            format=log_format or base.format,
            include_stderr=True,
            max_bytes=base.max_bytes,
            backup_count=base.backup_count,
        )
    )


async def run_server(config: VconvConfig) -> int:
    """Run the server until SIGTERM or SIGINT.

    On a signal, new conversions are refused and in-flight requests are
    given up to server.shutdown_timeout seconds to finish. Conversions
    still running after that have their ffmpeg process killed, then the
    application is cleaned up.

    Args:
        config: Resolved configuration.

    Returns:
        Exit code (0 for clean shutdown, non-zero for errors).
    """
    from aiohttp import web

    from vconv.server.app import create_app
    from vconv.server.lifecycle import DaemonLifecycle
    from vconv.server.signals import remove_signal_handlers, setup_signal_handlers

    bind = config.server.bind
    port = config.server.port

    lifecycle = DaemonLifecycle(shutdown_timeout=config.server.shutdown_timeout)
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    setup_signal_handlers(loop, lifecycle, shutdown_event)

    app = create_app(config, lifecycle=lifecycle)
    runner = web.AppRunner(app)
    await runner.setup()

    try:
        site = web.TCPSite(runner, bind, port)
        await site.start()

        logger.info(
            "vconv server listening on http://%s:%d (PID %d)", bind, port, os.getpid()
        )
        logger.info("Scratch directory: %s", config.storage.scratch_dir)
        logger.info("Press Ctrl+C or send SIGTERM to stop")

        await shutdown_event.wait()

        logger.info(
            "Shutdown initiated, waiting up to %.1fs for in-flight requests",
            config.server.shutdown_timeout,
        )
        if not await lifecycle.wait_for_drain():
            killed = app["conversion_service"].cancel_all()
            if killed:
                logger.warning("Killing %d running conversion(s)", killed)
                await lifecycle.wait_for_drain(timeout=KILL_GRACE_SECONDS)

    except OSError as e:
        if e.errno == 98 or "Address already in use" in str(e):
            logger.error("Port %d is already in use", port)
            return ExitCode.GENERAL_ERROR
        if e.errno == 99 or "Cannot assign requested address" in str(e):
            logger.error("Cannot bind to address %s", bind)
            return ExitCode.GENERAL_ERROR
        logger.error("Server error: %s", e)
        return ExitCode.GENERAL_ERROR
    finally:
        remove_signal_handlers(loop)
        await runner.cleanup()
        logger.info("vconv server stopped")

    return ExitCode.SUCCESS


@click.command("serve")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file (default: ~/.vconv/config.toml).",
)
@click.option(
    "--bind",
    type=str,
    default=None,
    help="Address to bind to (default: 0.0.0.0).",
)
@click.option(
    "--port",
    "-p",
    type=click.IntRange(1, 65535),
    default=None,
    help="Port to bind to (default: 3000, or $PORT).",
)
@click.option(
    "--scratch-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for uploads and converted files.",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Override log level for server mode (default: info).",
)
@click.option(
    "--log-format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default=None,
    help="Log format: text or json (default: text).",
)
def serve_command(
    config_path: Path | None,
    bind: str | None,
    port: int | None,
    scratch_dir: Path | None,
    log_level: str | None,
    log_format: str | None,
) -> None:
    """Run the video conversion HTTP server.

    Endpoints: GET /, GET /health, GET /ffmpeg-info, POST /convert and
    GET /download/{filename}. Handles graceful shutdown on SIGTERM or
    SIGINT, letting running conversions finish within the shutdown timeout.

    Configuration precedence (highest to lowest):
      1. CLI flags (--bind, --port, --scratch-dir, ...)
      2. Environment variables (VCONV_*, PORT)
      3. Config file (--config or ~/.vconv/config.toml)
      4. Default values

    \b
    Examples:
        vconv serve                         # Listen on 0.0.0.0:3000
        vconv serve --port 9000             # Custom port
        vconv serve --log-format json       # JSON logging
    """
    try:
        config = get_config(
            config_path=config_path,
            scratch_dir=scratch_dir,
            server_bind=bind,
            server_port=port,
            strict=True,
        )
    except (TomlParseError, ValueError) as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(ExitCode.CONFIG_ERROR)

    _configure_daemon_logging(config.logging, log_level, log_format)

    if config.server.port < 1024:
        logger.warning("Port %d is privileged and may require root", config.server.port)

    logger.info(
        "Starting vconv (bind=%s, port=%d, max_concurrent=%d, timeout=%s)",
        config.server.bind,
        config.server.port,
        config.conversion.max_concurrent,
        config.conversion.timeout_seconds or "none",
    )

    try:
        exit_code = asyncio.run(run_server(config))
    except KeyboardInterrupt:
        logger.info("Interrupted before server started")
        sys.exit(ExitCode.INTERRUPTED)
    sys.exit(exit_code)
