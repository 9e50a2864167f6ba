"""Command line interface for vconv."""

import logging
from pathlib import Path

import click

from vconv.config import TomlParseError, build_logging_config, get_config
from vconv.config.models import LoggingConfig
from vconv.logging import configure_logging

_logging_configured: bool = False

logger = logging.getLogger(__name__)


def _configure_logging(
    log_level: str | None,
    log_file: Path | None,
    log_json: bool,
) -> None:
    """Configure logging from the group-level CLI options.

    Falls back to defaults when the config file cannot be read; the
    command that needs the config reports that error itself.
    """
    global _logging_configured
    if _logging_configured:
        return

    try:
        base = get_config().logging
    except (TomlParseError, ValueError):
        base = LoggingConfig()

    configure_logging(
        build_logging_config(
            base,
            level=log_level,
            file=log_file,
            format="json" if log_json else None,
        )
    )
    _logging_configured = True


@click.group()
@click.version_option(package_name="vconv")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Override log level (default: info).",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Override log file path.",
)
@click.option(
    "--log-json",
    is_flag=True,
    default=False,
    help="Use JSON log format.",
)
@click.pass_context
def main(
    ctx: click.Context,
    log_level: str | None,
    log_file: Path | None,
    log_json: bool,
) -> None:
    """vconv - convert uploaded videos to H.264/AAC MP4 with ffmpeg."""
    ctx.ensure_object(dict)
    _configure_logging(log_level, log_file, log_json)


# Deferred so the command modules can import from this package
def _register_commands() -> None:
    from vconv.cli.convert import convert_command
    from vconv.cli.doctor import doctor_command
    from vconv.cli.serve import serve_command

    main.add_command(convert_command)
    main.add_command(doctor_command)
    main.add_command(serve_command)


_register_commands()
