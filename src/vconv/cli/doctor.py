"""`vconv doctor`: check that ffmpeg and the scratch directory are usable."""

import json
import os
import sys
from pathlib import Path

import click

from vconv.cli.exit_codes import ExitCode
from vconv.config import TomlParseError, get_config
from vconv.tools import detect_ffmpeg
from vconv.tools.models import FFmpegInfo


def _format_status(ok: bool) -> str:
    return "✓" if ok else "✗"


def _scratch_writable(scratch_dir: Path) -> tuple[bool, str | None]:
    try:
        scratch_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return False, str(e)
    if not os.access(scratch_dir, os.W_OK):
        return False, "not writable"
    return True, None


def _info_to_dict(info: FFmpegInfo) -> dict:
    return {
        "status": info.status.value,
        "path": info.path,
        "version": info.version,
        "banner": info.banner,
        "configuration": info.configuration,
        "libraries": info.libraries,
        "message": info.status_message,
    }


@click.command("doctor")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Show library details.")
@click.option("--json", "json_output", is_flag=True, help="Output results as JSON.")
def doctor_command(config_path: Path | None, verbose: bool, json_output: bool) -> None:
    """Check ffmpeg availability and scratch storage.

    Exit codes:
      0  - Everything usable
      11 - Scratch directory cannot be created or written
      30 - ffmpeg cannot be run
    """
    try:
        config = get_config(config_path=config_path, strict=True)
    except (TomlParseError, ValueError) as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(ExitCode.CONFIG_ERROR)

    info = detect_ffmpeg(config.tools.ffmpeg)
    scratch_ok, scratch_error = _scratch_writable(config.storage.scratch_dir)

    if json_output:
        click.echo(
            json.dumps(
                {
                    "ffmpeg": _info_to_dict(info),
                    "scratch_dir": {
                        "path": str(config.storage.scratch_dir),
                        "writable": scratch_ok,
                        "message": scratch_error,
                    },
                },
                indent=2,
            )
        )
    else:
        click.echo("vconv Health Check")
        click.echo("=" * 40)
        click.echo()

        status = _format_status(info.is_available())
        version = info.version or "not found"
        click.echo(f"  {status} ffmpeg: {version} ({info.path})")
        if info.is_available():
            click.echo(f"    ├─ {info.configuration or 'configuration: Not found'}")
            if verbose:
                for line in info.libraries:
                    click.echo(f"    ├─ {line}")
            click.echo(
                f"    └─ Encoding with -c:v {config.conversion.video_codec} "
                f"-c:a {config.conversion.audio_codec}"
            )
        else:
            click.echo(f"    ├─ {info.status_message}")
            click.echo("    └─ Install ffmpeg: https://ffmpeg.org/download.html")

        status = _format_status(scratch_ok)
        click.echo(f"  {status} scratch: {config.storage.scratch_dir}")
        if not scratch_ok:
            click.echo(f"    └─ {scratch_error}")
        click.echo()

    if not info.is_available():
        sys.exit(ExitCode.TOOL_NOT_AVAILABLE)
    if not scratch_ok:
        sys.exit(ExitCode.CONFIG_ERROR)
