"""Configuration data models for vconv.

Each section of the TOML config file maps onto one dataclass here. Values
are validated in __post_init__ so an invalid combination fails at load time
instead of in the middle of a request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_SCRATCH_DIR = Path.home() / ".vconv" / "scratch"

# 100 MiB
DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024


@dataclass
class ToolPathsConfig:
    """Paths to external tools.

    When unset the tool is looked up in PATH.
    """

    ffmpeg: Path | None = None


@dataclass
class ConversionConfig:
    """Transcoding parameters and admission limits for POST /convert."""

    video_codec: str = "libx264"
    audio_codec: str = "aac"
    preset: str = "fast"
    crf: int = 23

    output_extension: str = "mp4"

    timeout_seconds: float | None = 3600.0
    """Wall-clock limit per ffmpeg run. None disables the limit."""

    max_concurrent: int = 2
    """Number of ffmpeg processes allowed to run at once."""

    max_queued: int = 8
    """Requests allowed to wait for a free slot before 503 is returned."""

    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES

    upload_field: str = "video"

    details_tail_lines: int = 5
    """How many trailing stderr lines are returned with a failure."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not 0 <= self.crf <= 63:
            raise ValueError(f"crf must be 0-63, got {self.crf}")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError(
                f"timeout_seconds must be positive, got {self.timeout_seconds}"
            )
        if self.max_concurrent < 1:
            raise ValueError(
                f"max_concurrent must be at least 1, got {self.max_concurrent}"
            )
        if self.max_queued < 0:
            raise ValueError(f"max_queued must be >= 0, got {self.max_queued}")
        if self.max_upload_bytes < 1:
            raise ValueError(
                f"max_upload_bytes must be positive, got {self.max_upload_bytes}"
            )
        if self.details_tail_lines < 1:
            raise ValueError(
                f"details_tail_lines must be at least 1, "
                f"got {self.details_tail_lines}"
            )
        if not self.output_extension.isalnum():
            raise ValueError(
                f"output_extension must be alphanumeric, "
                f"got {self.output_extension!r}"
            )
        if not self.upload_field:
            raise ValueError("upload_field must not be empty")


@dataclass
class StorageConfig:
    """Scratch directory holding uploads and converted outputs."""

    scratch_dir: Path = DEFAULT_SCRATCH_DIR

    delete_delay_seconds: float = 1.0
    """Delay between a completed download and deletion of the output."""

    orphan_max_age_hours: float = 1.0
    """Files older than this are removed from scratch at startup."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.delete_delay_seconds < 0:
            raise ValueError(
                f"delete_delay_seconds must be >= 0, got {self.delete_delay_seconds}"
            )
        if self.orphan_max_age_hours <= 0:
            raise ValueError(
                f"orphan_max_age_hours must be positive, "
                f"got {self.orphan_max_age_hours}"
            )

    @property
    def uploads_dir(self) -> Path:
        return self.scratch_dir / "uploads"

    @property
    def outputs_dir(self) -> Path:
        return self.scratch_dir / "outputs"


@dataclass
class ServerConfig:
    """Bind address, port and shutdown behavior for `vconv serve`."""

    bind: str = "0.0.0.0"
    """Network address to bind to."""

    port: int = 3000
    """Port number for the HTTP server."""

    shutdown_timeout: float = 30.0
    """Seconds to wait for in-flight conversions before forcing shutdown."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not 1 <= self.port <= 65535:
            raise ValueError(f"port must be 1-65535, got {self.port}")
        if self.shutdown_timeout <= 0:
            raise ValueError(
                f"shutdown_timeout must be positive, got {self.shutdown_timeout}"
            )


@dataclass
class LoggingConfig:
    """Configuration for log output."""

    # debug, info, warning, error
    level: str = "info"

    # None = stderr only
    file: Path | None = None

    # text or json
    format: str = "text"

    # Also log to stderr when file is set
    include_stderr: bool = False

    # Rotation threshold in bytes (default 10MB)
    max_bytes: int = 10_485_760

    backup_count: int = 5

    def __post_init__(self) -> None:
        """Validate configuration."""
        valid_levels = {"debug", "info", "warning", "error"}
        if self.level.lower() not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}, got {self.level}")
        valid_formats = {"text", "json"}
        if self.format.lower() not in valid_formats:
            raise ValueError(
                f"format must be one of {valid_formats}, got {self.format}"
            )


@dataclass
class VconvConfig:
    """Top-level configuration container."""

    tools: ToolPathsConfig = field(default_factory=ToolPathsConfig)
    conversion: ConversionConfig = field(default_factory=ConversionConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
