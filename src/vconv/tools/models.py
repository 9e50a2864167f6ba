"""Data models for the external transcoding tool."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class ToolStatus(Enum):
    """Status of an external tool."""

    AVAILABLE = "available"  # Spawned and exited 0
    MISSING = "missing"  # Could not be spawned
    ERROR = "error"  # Spawned but exited non-zero or timed out


@dataclass
class ToolInfo:
    """Base information for an external tool."""

    name: str
    path: str | None = None
    version: str | None = None
    version_tuple: tuple[int, ...] | None = None
    status: ToolStatus = ToolStatus.MISSING
    status_message: str | None = None
    detected_at: datetime | None = None

    def is_available(self) -> bool:
        """Return True if the tool is available and usable."""
        return self.status == ToolStatus.AVAILABLE


@dataclass
class FFmpegInfo(ToolInfo):
    """Result of probing `ffmpeg -version`."""

    name: str = "ffmpeg"

    banner: str | None = None
    """First line of the version output, e.g. "ffmpeg version 6.1.1 ..."."""

    configuration: str | None = None
    """The "configuration:" line, stripped."""

    libraries: list[str] = field(default_factory=list)
    """Up to five lines mentioning "lib" (libavcodec etc.)."""

    return_code: int | None = None


@dataclass
class ProcessOutcome:
    """Raw outcome of one tool run."""

    return_code: int
    stderr_lines: list[str] = field(default_factory=list)
    timed_out: bool = False
    cancelled: bool = False
    elapsed_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        # Exit status 0 is the only success signal.
        return not (self.timed_out or self.cancelled) and self.return_code == 0

    def tail(self, lines: int) -> str:
        """Return the last `lines` non-empty stderr lines joined by newlines."""
        if lines <= 0:
            return ""
        cleaned = [line.rstrip("\r\n") for line in self.stderr_lines]
        cleaned = [line for line in cleaned if line.strip()]
        return "\n".join(cleaned[-lines:])


def resolve_path(path: Path | str | None) -> str | None:
    """Normalize a configured tool path to a string for subprocess."""
    if path is None:
        return None
    return str(Path(path).expanduser())
