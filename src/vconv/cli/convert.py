"""`vconv convert`: convert a local file without running the server."""

import asyncio
import sys
from pathlib import Path

import click

from vconv.cli.exit_codes import ExitCode
from vconv.config import TomlParseError, get_config
from vconv.conversion import (
    ConversionError,
    ConversionService,
    ConversionTimeoutError,
    ScratchStorage,
    ToolUnavailableError,
)


@click.command("convert")
@click.argument(
    "input_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--output",
    "-o",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Destination file (default: INPUT with the output extension).",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file.",
)
def convert_command(
    input_path: Path, output_path: Path | None, config_path: Path | None
) -> None:
    """Convert INPUT to H.264/AAC MP4 using the server's settings.

    \b
    Examples:
        vconv convert clip.mov              # writes clip.mp4
        vconv convert clip.mov -o out.mp4
    """
    try:
        config = get_config(config_path=config_path, strict=True)
    except (TomlParseError, ValueError) as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(ExitCode.CONFIG_ERROR)

    destination = output_path
    if destination is None:
        destination = input_path.with_suffix(f".{config.conversion.output_extension}")
    if destination.resolve() == input_path.resolve():
        click.echo("Error: output would overwrite the input file", err=True)
        sys.exit(ExitCode.GENERAL_ERROR)

    storage = ScratchStorage(
        config.storage, output_extension=config.conversion.output_extension
    )
    service = ConversionService(config, storage)

    try:
        result = asyncio.run(service.convert_local(input_path, destination))
    except ConversionError as e:
        click.echo(f"Error: {e.message}", err=True)
        if e.details:
            click.echo(e.details, err=True)
        if isinstance(e, ToolUnavailableError):
            sys.exit(ExitCode.TOOL_NOT_AVAILABLE)
        if isinstance(e, ConversionTimeoutError):
            sys.exit(ExitCode.TIMED_OUT)
        sys.exit(ExitCode.OPERATION_FAILED)

    click.echo(f"Converted {input_path} -> {result}")
