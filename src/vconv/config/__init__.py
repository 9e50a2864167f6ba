"""Configuration management for vconv.

Precedence: CLI flags > VCONV_* environment > config file > defaults.
"""

from vconv.config.builder import (
    ConfigBuilder,
    ConfigSource,
    source_from_env,
    source_from_file,
)
from vconv.config.env import EnvReader
from vconv.config.loader import get_config, get_default_config_path
from vconv.config.logging_factory import build_logging_config
from vconv.config.models import (
    ConversionConfig,
    LoggingConfig,
    ServerConfig,
    StorageConfig,
    ToolPathsConfig,
    VconvConfig,
)
from vconv.config.toml_parser import TomlParseError, load_toml_file

__all__ = [
    "ConfigBuilder",
    "ConfigSource",
    "ConversionConfig",
    "EnvReader",
    "LoggingConfig",
    "ServerConfig",
    "StorageConfig",
    "TomlParseError",
    "ToolPathsConfig",
    "VconvConfig",
    "build_logging_config",
    "get_config",
    "get_default_config_path",
    "load_toml_file",
    "source_from_env",
    "source_from_file",
]
