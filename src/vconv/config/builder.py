"""Configuration builder with explicit layering.

ConfigBuilder composes VconvConfig from several ConfigSource layers. Later
layers win for every field they set; unset (None) fields fall through.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from vconv.config.env import EnvReader
from vconv.config.models import (
    DEFAULT_MAX_UPLOAD_BYTES,
    DEFAULT_SCRATCH_DIR,
    ConversionConfig,
    LoggingConfig,
    ServerConfig,
    StorageConfig,
    ToolPathsConfig,
    VconvConfig,
)


@dataclass
class ConfigSource:
    """Configuration values from a single source.

    None means "not specified here" and never overrides a lower layer.
    """

    # Tool paths
    ffmpeg_path: Path | None = None

    # Conversion
    video_codec: str | None = None
    audio_codec: str | None = None
    preset: str | None = None
    crf: int | None = None
    output_extension: str | None = None
    timeout_seconds: float | None = None
    max_concurrent: int | None = None
    max_queued: int | None = None
    max_upload_bytes: int | None = None
    upload_field: str | None = None
    details_tail_lines: int | None = None

    # Storage
    scratch_dir: Path | None = None
    delete_delay_seconds: float | None = None
    orphan_max_age_hours: float | None = None

    # Server
    server_bind: str | None = None
    server_port: int | None = None
    server_shutdown_timeout: float | None = None

    # Logging
    logging_level: str | None = None
    logging_file: Path | None = None
    logging_format: str | None = None
    logging_include_stderr: bool | None = None
    logging_max_bytes: int | None = None
    logging_backup_count: int | None = None


class ConfigBuilder:
    """Builds VconvConfig by layering ConfigSources.

    Example:
        builder = ConfigBuilder()
        builder.apply(source_from_file(file_config))
        builder.apply(source_from_env(reader))
        builder.apply(cli_source)
        config = builder.build()
    """

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def apply(self, source: ConfigSource) -> None:
        """Apply a source, overriding values it sets.

        Args:
            source: Configuration source to apply.
        """
        for field_obj in fields(source):
            value = getattr(source, field_obj.name)
            if value is not None:
                self._values[field_obj.name] = value

    def _get(self, key: str, default: Any) -> Any:
        return self._values.get(key, default)

    def build(self) -> VconvConfig:
        """Build the final VconvConfig, filling defaults for unset values.

        Returns:
            Complete VconvConfig.

        Raises:
            ValueError: If any resolved value fails validation.
        """
        tools = ToolPathsConfig(ffmpeg=self._get("ffmpeg_path", None))

        # 0 means "no limit"
        timeout = self._get("timeout_seconds", 3600.0)
        conversion = ConversionConfig(
            video_codec=self._get("video_codec", "libx264"),
            audio_codec=self._get("audio_codec", "aac"),
            preset=self._get("preset", "fast"),
            crf=self._get("crf", 23),
            output_extension=self._get("output_extension", "mp4"),
            timeout_seconds=timeout if timeout else None,
            max_concurrent=self._get("max_concurrent", 2),
            max_queued=self._get("max_queued", 8),
            max_upload_bytes=self._get("max_upload_bytes", DEFAULT_MAX_UPLOAD_BYTES),
            upload_field=self._get("upload_field", "video"),
            details_tail_lines=self._get("details_tail_lines", 5),
        )

        storage = StorageConfig(
            scratch_dir=self._get("scratch_dir", DEFAULT_SCRATCH_DIR),
            delete_delay_seconds=self._get("delete_delay_seconds", 1.0),
            orphan_max_age_hours=self._get("orphan_max_age_hours", 1.0),
        )

        server = ServerConfig(
            bind=self._get("server_bind", "0.0.0.0"),
            port=self._get("server_port", 3000),
            shutdown_timeout=self._get("server_shutdown_timeout", 30.0),
        )

        logging_config = LoggingConfig(
            level=self._get("logging_level", "info"),
            file=self._get("logging_file", None),
            format=self._get("logging_format", "text"),
            include_stderr=self._get("logging_include_stderr", False),
            max_bytes=self._get("logging_max_bytes", 10_485_760),
            backup_count=self._get("logging_backup_count", 5),
        )

        return VconvConfig(
            tools=tools,
            conversion=conversion,
            storage=storage,
            server=server,
            logging=logging_config,
        )


def _optional_path(value: str | None) -> Path | None:
    return Path(value).expanduser() if value else None


def source_from_file(file_config: dict[str, Any]) -> ConfigSource:
    """Create a ConfigSource from a parsed TOML config file.

    Args:
        file_config: Parsed configuration dictionary.

    Returns:
        ConfigSource with values from the file.
    """
    tools = file_config.get("tools", {})
    conversion = file_config.get("conversion", {})
    storage = file_config.get("storage", {})
    server = file_config.get("server", {})
    logging_conf = file_config.get("logging", {})

    return ConfigSource(
        ffmpeg_path=_optional_path(tools.get("ffmpeg")),
        # Conversion
        video_codec=conversion.get("video_codec"),
        audio_codec=conversion.get("audio_codec"),
        preset=conversion.get("preset"),
        crf=conversion.get("crf"),
        output_extension=conversion.get("output_extension"),
        timeout_seconds=conversion.get("timeout_seconds"),
        max_concurrent=conversion.get("max_concurrent"),
        max_queued=conversion.get("max_queued"),
        max_upload_bytes=conversion.get("max_upload_bytes"),
        upload_field=conversion.get("upload_field"),
        details_tail_lines=conversion.get("details_tail_lines"),
        # Storage
        scratch_dir=_optional_path(storage.get("scratch_dir")),
        delete_delay_seconds=storage.get("delete_delay_seconds"),
        orphan_max_age_hours=storage.get("orphan_max_age_hours"),
        # Server
        server_bind=server.get("bind"),
        server_port=server.get("port"),
        server_shutdown_timeout=server.get("shutdown_timeout"),
        # Logging
        logging_level=logging_conf.get("level"),
        logging_file=_optional_path(logging_conf.get("file")),
        logging_format=logging_conf.get("format"),
        logging_include_stderr=logging_conf.get("include_stderr"),
        logging_max_bytes=logging_conf.get("max_bytes"),
        logging_backup_count=logging_conf.get("backup_count"),
    )


def source_from_env(reader: EnvReader) -> ConfigSource:
    """Create a ConfigSource from VCONV_* environment variables.

    PORT is honoured as a fallback for VCONV_SERVER_PORT since hosting
    platforms commonly inject it.

    Args:
        reader: EnvReader to read from.

    Returns:
        ConfigSource with values from the environment.
    """
    port = reader.get_int("VCONV_SERVER_PORT")
    if port is None:
        port = reader.get_int("PORT")

    return ConfigSource(
        ffmpeg_path=reader.get_path("VCONV_FFMPEG_PATH"),
        # Conversion
        video_codec=reader.get_str("VCONV_VIDEO_CODEC"),
        audio_codec=reader.get_str("VCONV_AUDIO_CODEC"),
        preset=reader.get_str("VCONV_PRESET"),
        crf=reader.get_int("VCONV_CRF"),
        timeout_seconds=reader.get_float("VCONV_CONVERSION_TIMEOUT"),
        max_concurrent=reader.get_int("VCONV_MAX_CONCURRENT"),
        max_queued=reader.get_int("VCONV_MAX_QUEUED"),
        max_upload_bytes=reader.get_int("VCONV_MAX_UPLOAD_BYTES"),
        # Storage
        scratch_dir=reader.get_path("VCONV_SCRATCH_DIR"),
        delete_delay_seconds=reader.get_float("VCONV_DELETE_DELAY"),
        # Server
        server_bind=reader.get_str("VCONV_SERVER_BIND"),
        server_port=port,
        server_shutdown_timeout=reader.get_float("VCONV_SERVER_SHUTDOWN_TIMEOUT"),
        # Logging
        logging_level=reader.get_str("VCONV_LOG_LEVEL"),
        logging_file=reader.get_path("VCONV_LOG_FILE"),
        logging_format=reader.get_str("VCONV_LOG_FORMAT"),
        logging_include_stderr=reader.get_bool("VCONV_LOG_INCLUDE_STDERR"),
    )
