"""Merge CLI logging flags over a base LoggingConfig."""

from __future__ import annotations

from pathlib import Path

from vconv.config.models import LoggingConfig


def build_logging_config(
    base: LoggingConfig,
    *,
    level: str | None = None,
    file: Path | None = None,
    format: str | None = None,
    include_stderr: bool | None = None,
) -> LoggingConfig:
    """Return a new LoggingConfig with non-None overrides applied.

    Validation runs again through LoggingConfig.__post_init__, so an
    invalid override raises ValueError.

    Example:
        logging_config = build_logging_config(
            config.logging,
            level=log_level,
            format="json" if json_flag else None,
        )
        configure_logging(logging_config)
    """
    return LoggingConfig(
        level=level if level is not None else base.level,
        file=file if file is not None else base.file,
        format=format if format is not None else base.format,
        include_stderr=(
            include_stderr if include_stderr is not None else base.include_stderr
        ),
        max_bytes=base.max_bytes,
        backup_count=base.backup_count,
    )
