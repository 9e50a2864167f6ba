"""Unit tests for ConfigBuilder layering."""

from pathlib import Path

import pytest

from vconv.config.builder import (
    ConfigBuilder,
    ConfigSource,
    source_from_env,
    source_from_file,
)
from vconv.config.env import EnvReader


class TestConfigBuilder:
    """Tests for precedence between layers."""

    def test_defaults_when_nothing_applied(self) -> None:
        config = ConfigBuilder().build()
        assert config.server.port == 3000
        assert config.conversion.timeout_seconds == 3600.0

    def test_later_source_wins(self) -> None:
        builder = ConfigBuilder()
        builder.apply(ConfigSource(server_port=4000, preset="slow"))
        builder.apply(ConfigSource(server_port=5000))
        config = builder.build()
        assert config.server.port == 5000
        assert config.conversion.preset == "slow"

    def test_none_does_not_override(self) -> None:
        builder = ConfigBuilder()
        builder.apply(ConfigSource(crf=18))
        builder.apply(ConfigSource(crf=None))
        assert builder.build().conversion.crf == 18

    def test_zero_timeout_disables_limit(self) -> None:
        builder = ConfigBuilder()
        builder.apply(ConfigSource(timeout_seconds=0))
        assert builder.build().conversion.timeout_seconds is None

    def test_invalid_value_raises(self) -> None:
        builder = ConfigBuilder()
        builder.apply(ConfigSource(max_concurrent=0))
        with pytest.raises(ValueError):
            builder.build()


class TestSourceFromFile:
    """Tests for mapping TOML sections onto ConfigSource."""

    def test_sections_mapped(self) -> None:
        source = source_from_file(
            {
                "tools": {"ffmpeg": "/opt/ffmpeg/bin/ffmpeg"},
                "conversion": {"crf": 20, "max_concurrent": 4},
                "storage": {"scratch_dir": "/var/tmp/vconv"},
                "server": {"port": 8080},
                "logging": {"format": "json"},
            }
        )
        assert source.ffmpeg_path == Path("/opt/ffmpeg/bin/ffmpeg")
        assert source.crf == 20
        assert source.max_concurrent == 4
        assert source.scratch_dir == Path("/var/tmp/vconv")
        assert source.server_port == 8080
        assert source.logging_format == "json"

    def test_empty_file(self) -> None:
        source = source_from_file({})
        assert source == ConfigSource()


class TestSourceFromEnv:
    """Tests for VCONV_* environment mapping."""

    def test_vconv_variables(self) -> None:
        reader = EnvReader(
            env={
                "VCONV_SERVER_PORT": "9000",
                "VCONV_MAX_CONCURRENT": "3",
                "VCONV_CONVERSION_TIMEOUT": "60",
                "VCONV_LOG_LEVEL": "debug",
            }
        )
        source = source_from_env(reader)
        assert source.server_port == 9000
        assert source.max_concurrent == 3
        assert source.timeout_seconds == 60.0
        assert source.logging_level == "debug"

    def test_port_fallback(self) -> None:
        source = source_from_env(EnvReader(env={"PORT": "8088"}))
        assert source.server_port == 8088

    def test_vconv_port_beats_port(self) -> None:
        reader = EnvReader(env={"PORT": "8088", "VCONV_SERVER_PORT": "9000"})
        assert source_from_env(reader).server_port == 9000

    def test_log_file_variables(self) -> None:
        reader = EnvReader(
            env={
                "VCONV_LOG_FILE": "~/logs/vconv.log",
                "VCONV_LOG_INCLUDE_STDERR": "yes",
            }
        )
        source = source_from_env(reader)
        assert source.logging_file == Path.home() / "logs" / "vconv.log"
        assert source.logging_include_stderr is True

        builder = ConfigBuilder()
        builder.apply(source)
        config = builder.build()
        assert config.logging.file == Path.home() / "logs" / "vconv.log"
        assert config.logging.include_stderr is True
