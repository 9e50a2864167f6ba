"""Parsing of ffmpeg stderr progress lines.

ffmpeg reports progress on stderr as
    frame= 1234 fps= 30 q=28.0 size= 1024kB time=00:01:23.45 bitrate=... speed=2.0x
"""

import re
from dataclasses import dataclass


@dataclass
class FFmpegProgress:
    """Parsed ffmpeg progress line."""

    frame: int | None = None
    fps: float | None = None
    bitrate: str | None = None
    out_time_us: int | None = None  # Output time in microseconds
    speed: str | None = None

    @property
    def out_time_seconds(self) -> float | None:
        if self.out_time_us is not None:
            return self.out_time_us / 1_000_000
        return None


_FRAME_RE = re.compile(r"frame=\s*(\d+)")
_FPS_RE = re.compile(r"fps=\s*([\d.]+)")
_BITRATE_RE = re.compile(r"bitrate=\s*([^\s]+)")
_SPEED_RE = re.compile(r"speed=\s*([^\s]+)")
_TIME_RE = re.compile(r"time=\s*(\d+):(\d+):(\d+)(?:\.(\d+))?")


def _na(value: str) -> str | None:
    return None if value == "N/A" else value


def parse_stderr_progress(line: str) -> FFmpegProgress | None:
    """Parse an ffmpeg stderr progress line.

    Args:
        line: A line from ffmpeg stderr.

    Returns:
        Parsed FFmpegProgress or None if the line carries no time= field.
    """
    time_match = _TIME_RE.search(line)
    if time_match is None:
        return None

    hours, minutes, seconds = (int(g) for g in time_match.group(1, 2, 3))
    fraction = time_match.group(4) or "0"
    # Scale the fractional digits (usually centiseconds) to microseconds
    micros = int(fraction.ljust(6, "0")[:6])

    result = FFmpegProgress(
        out_time_us=(hours * 3600 + minutes * 60 + seconds) * 1_000_000 + micros
    )

    if match := _FRAME_RE.search(line):
        result.frame = int(match.group(1))
    if match := _FPS_RE.search(line):
        try:
            result.fps = float(match.group(1))
        except ValueError:
            result.fps = None
    if match := _BITRATE_RE.search(line):
        result.bitrate = _na(match.group(1))
    if match := _SPEED_RE.search(line):
        result.speed = _na(match.group(1))

    return result


def is_error_line(line: str) -> bool:
    """Return True for stderr lines that mention an error."""
    return "error" in line.lower()
