"""ffmpeg discovery and version probing.

The probe runs `<tool> -version` and extracts the banner, the build
configuration line and a handful of library lines. A spawn failure is kept
verbatim in status_message so callers can report it.
"""

import logging
import re
import shutil
import subprocess  # nosec B404 - subprocess is required for tool detection
from datetime import datetime, timezone
from pathlib import Path

from vconv.tools.models import FFmpegInfo, ToolStatus, resolve_path

logger = logging.getLogger(__name__)

# Timeout for the version probe (seconds)
DETECTION_TIMEOUT = 10

# Number of "lib" lines reported by the probe
MAX_LIBRARY_LINES = 5

_VERSION_RE = re.compile(r"ffmpeg version (\S+)")


def parse_version_string(version_str: str) -> tuple[int, ...] | None:
    """Parse a version string into a comparable tuple.

    Handles "6.1.1" -> (6, 1, 1), "n6.1.1" -> (6, 1, 1) (nightlies) and
    "6.1-static" -> (6, 1). Git snapshots such as "N-113000-g..." yield None.

    Args:
        version_str: Version string to parse.

    Returns:
        Tuple of version components, or None if parsing fails.
    """
    if not version_str:
        return None

    version_str = version_str.lstrip("nv")

    match = re.match(r"(\d+(?:\.\d+)*)", version_str)
    if not match:
        return None

    return tuple(int(p) for p in match.group(1).split("."))


def find_ffmpeg(configured_path: Path | str | None = None) -> str:
    """Return the command used to invoke ffmpeg.

    A configured path is returned as-is even if it does not exist so that
    the spawn error is reported by whoever runs it. Without configuration
    PATH is searched, falling back to the bare name "ffmpeg".
    """
    resolved = resolve_path(configured_path)
    if resolved:
        return resolved

    which_result = shutil.which("ffmpeg")
    if which_result:
        return which_result
    return "ffmpeg"


def parse_version_banner(output: str) -> tuple[str, str | None, list[str]]:
    """Split `ffmpeg -version` output into its interesting parts.

    Args:
        output: Combined version output.

    Returns:
        Tuple of (first line, configuration line or None, library lines).
    """
    lines = output.splitlines()
    banner = lines[0].strip() if lines else ""

    configuration = None
    for line in lines:
        if "configuration:" in line:
            configuration = line.strip()
            break

    libraries = [line.strip() for line in lines if "lib" in line]
    return banner, configuration, libraries[:MAX_LIBRARY_LINES]


def detect_ffmpeg(
    configured_path: Path | str | None = None, timeout: float = DETECTION_TIMEOUT
) -> FFmpegInfo:
    """Probe ffmpeg by running `<tool> -version`.

    Never raises: spawn failures, timeouts and non-zero exits are reflected
    in the returned status.

    Args:
        configured_path: Explicit path to the ffmpeg binary.
        timeout: Seconds to wait for the probe.

    Returns:
        FFmpegInfo describing the outcome.
    """
    tool = find_ffmpeg(configured_path)
    info = FFmpegInfo(path=tool, detected_at=datetime.now(timezone.utc))

    try:
        result = subprocess.run(  # nosec B603 - tool path and a fixed flag
            [tool, "-version"],
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.warning("ffmpeg -version timed out after %s seconds", timeout)
        info.status = ToolStatus.ERROR
        info.status_message = f"ffmpeg -version timed out after {timeout} seconds"
        return info
    except OSError as e:
        logger.debug("Could not spawn %s: %s", tool, e)
        info.status = ToolStatus.MISSING
        info.status_message = str(e)
        return info

    info.return_code = result.returncode
    if result.returncode != 0:
        info.status = ToolStatus.ERROR
        info.status_message = f"ffmpeg -version exited with code {result.returncode}"
        return info

    banner, configuration, libraries = parse_version_banner(result.stdout)
    info.banner = banner
    info.configuration = configuration
    info.libraries = libraries

    match = _VERSION_RE.search(banner)
    if match:
        info.version = match.group(1)
        info.version_tuple = parse_version_string(info.version)

    info.status = ToolStatus.AVAILABLE
    return info
