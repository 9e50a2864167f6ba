"""Configuration loader with precedence handling.

Configuration is resolved with the following precedence (highest first):
1. CLI arguments (passed to get_config)
2. Environment variables (VCONV_*)
3. Config file (~/.vconv/config.toml)
4. Default values

Environment variables:
- VCONV_CONFIG_PATH: Path to config file (overrides default location)
- VCONV_FFMPEG_PATH: Path to ffmpeg executable
- VCONV_SCRATCH_DIR: Directory for uploads and converted outputs
- VCONV_SERVER_BIND / VCONV_SERVER_PORT (or PORT): Listen address
- VCONV_CONVERSION_TIMEOUT: Seconds before a conversion is killed (0 = never)
- VCONV_MAX_CONCURRENT / VCONV_MAX_QUEUED: Admission limits
"""

from __future__ import annotations

import logging
from pathlib import Path

from vconv.config.builder import (
    ConfigBuilder,
    ConfigSource,
    source_from_env,
    source_from_file,
)
from vconv.config.env import EnvReader
from vconv.config.models import VconvConfig
from vconv.config.toml_parser import load_toml_file

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".vconv"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.toml"


def get_default_config_path(env_reader: EnvReader | None = None) -> Path:
    """Get the config file path, honouring VCONV_CONFIG_PATH.

    Returns:
        Path to config file (may not exist).
    """
    reader = env_reader or EnvReader()
    env_path = reader.get_path("VCONV_CONFIG_PATH")
    if env_path is not None:
        return env_path
    return DEFAULT_CONFIG_FILE


def get_config(
    config_path: Path | None = None,
    # CLI overrides (highest precedence)
    ffmpeg_path: Path | None = None,
    scratch_dir: Path | None = None,
    server_bind: str | None = None,
    server_port: int | None = None,
    # Optional dependency injection for testing
    env_reader: EnvReader | None = None,
    *,
    strict: bool = False,
) -> VconvConfig:
    """Get configuration with full precedence handling.

    Args:
        config_path: Path to config file (overrides VCONV_CONFIG_PATH).
        ffmpeg_path: CLI override for the ffmpeg path.
        scratch_dir: CLI override for the scratch directory.
        server_bind: CLI override for the bind address.
        server_port: CLI override for the port.
        env_reader: Optional EnvReader (uses os.environ if None).
        strict: If True, raise TomlParseError on config file parse failures.

    Returns:
        Merged VconvConfig.

    Raises:
        TomlParseError: When strict=True and the config file is invalid.
        ValueError: When a resolved value fails validation.
    """
    reader = env_reader or EnvReader()
    path = config_path or get_default_config_path(reader)
    file_config = load_toml_file(path, strict=strict)

    cli_source = ConfigSource(
        ffmpeg_path=ffmpeg_path,
        scratch_dir=scratch_dir,
        server_bind=server_bind,
        server_port=server_port,
    )

    builder = ConfigBuilder()
    builder.apply(source_from_file(file_config))
    builder.apply(source_from_env(reader))
    builder.apply(cli_source)
    config = builder.build()

    logger.debug(
        "Resolved config from %s (scratch=%s, port=%d)",
        path if path.exists() else "defaults",
        config.storage.scratch_dir,
        config.server.port,
    )
    return config
