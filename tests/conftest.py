"""Shared test fixtures for vconv.

The external tool is replaced by small POSIX shell scripts that honour the
ffmpeg command-line contract used by the service:

    <tool> -version
    <tool> -i <input> -c:v ... -y <output>

A conversion run records its arguments (one per line) in a sibling
".args" file so tests can assert on the exact command and on whether a
conversion was attempted at all. `-version` probes record nothing.
"""

import stat
from collections.abc import Callable
from pathlib import Path

import pytest

from vconv.config.models import (
    ConversionConfig,
    LoggingConfig,
    ServerConfig,
    StorageConfig,
    ToolPathsConfig,
    VconvConfig,
)

VERSION_BANNER = """\
  echo "ffmpeg version 6.1.1 Copyright (c) 2000-2023 the FFmpeg developers"
  echo "built with gcc 13.2.0 (GCC)"
  echo "configuration: --prefix=/usr --enable-gpl --enable-libx264"
  echo "libavutil      58. 29.100 / 58. 29.100"
  echo "libavcodec     60. 31.102 / 60. 31.102"
  echo "libavformat    60. 16.100 / 60. 16.100"
  echo "libavdevice    60.  3.100 / 60.  3.100"
  echo "libavfilter     9. 12.100 /  9. 12.100"
  echo "libswscale      7.  5.100 /  7.  5.100"
  echo "libswresample   4. 12.100 /  4. 12.100"
"""

_VERSION_BRANCH = """\
#!/bin/sh
if [ "$1" = "-version" ]; then
{banner}  exit 0
fi
printf '%s\\n' "$@" > "$0.args"
eval last=\\${$#}
"""

SCRIPTS = {
    # Copies the input to the output and exits 0
    "success": _VERSION_BRANCH
    + """\
echo "Input #0, mov,mp4,m4a,3gp,3g2,mj2, from '$2':" >&2
echo "frame=   12 fps=0.0 q=28.0 size=0kB time=00:00:00.48 bitrate=N/A speed=0.9x" >&2
cp "$2" "$last"
exit 0
""",
    # Writes a partial output and eight stderr lines, then exits 1
    "failure": _VERSION_BRANCH
    + """\
echo "partial" > "$last"
for n in 1 2 3 4 5 6 7 8; do
  echo "diagnostic line $n" >&2
done
exit 1
""",
    # Never finishes on its own
    "slow": _VERSION_BRANCH
    + """\
exec sleep 30
""",
    # Writes a partial output, then hangs like a long encode
    "stalled": _VERSION_BRANCH
    + """\
echo "partial" > "$last"
exec sleep 30
""",
    # Even -version fails
    "broken": """\
#!/bin/sh
echo "ffmpeg: error while loading shared libraries" >&2
exit 127
""",
}


@pytest.fixture
def make_fake_ffmpeg(tmp_path: Path) -> Callable[[str], Path]:
    """Return a factory writing an executable fake ffmpeg for a mode."""

    def _make(mode: str = "success") -> Path:
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir(exist_ok=True)
        script = bin_dir / f"ffmpeg-{mode}"
        script.write_text(SCRIPTS[mode].replace("{banner}", VERSION_BANNER))
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP)
        return script

    return _make


@pytest.fixture
def fake_ffmpeg(make_fake_ffmpeg: Callable[[str], Path]) -> Path:
    """A fake ffmpeg that converts successfully."""
    return make_fake_ffmpeg("success")


@pytest.fixture
def missing_ffmpeg(tmp_path: Path) -> Path:
    """A path where no ffmpeg exists."""
    return tmp_path / "no-such-dir" / "ffmpeg"


@pytest.fixture
def recorded_args() -> Callable[[Path], list[str] | None]:
    """Return a reader for the arguments of a fake ffmpeg's last conversion.

    The reader returns None when no conversion was run.
    """

    def _read(script: Path) -> list[str] | None:
        args_path = script.with_name(script.name + ".args")
        if not args_path.exists():
            return None
        return args_path.read_text().splitlines()

    return _read


@pytest.fixture
def scratch_dir(tmp_path: Path) -> Path:
    return tmp_path / "scratch"


@pytest.fixture
def make_config(scratch_dir: Path) -> Callable[..., VconvConfig]:
    """Return a factory building a VconvConfig for tests.

    Keyword arguments override ConversionConfig fields. Storage uses the
    per-test scratch directory and deletes downloads without delay.
    """

    def _make(ffmpeg: Path | None, **conversion: object) -> VconvConfig:
        return VconvConfig(
            tools=ToolPathsConfig(ffmpeg=ffmpeg),
            conversion=ConversionConfig(**conversion),  # type: ignore[arg-type]
            storage=StorageConfig(scratch_dir=scratch_dir, delete_delay_seconds=0.0),
            server=ServerConfig(bind="127.0.0.1", port=3000, shutdown_timeout=5.0),
            logging=LoggingConfig(),
        )

    return _make
