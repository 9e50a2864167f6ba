"""Fixtures for CLI tests."""

from collections.abc import Callable
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def skip_cli_logging_setup(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the group callback from replacing the root logger's handlers."""
    monkeypatch.setattr("vconv.cli._logging_configured", True)


@pytest.fixture
def cli_env(tmp_path: Path, scratch_dir: Path) -> Callable[[Path], dict[str, str]]:
    """Return a factory for an isolated environment pointing at an ffmpeg."""

    def _env(ffmpeg: Path) -> dict[str, str]:
        return {
            "VCONV_CONFIG_PATH": str(tmp_path / "absent-config.toml"),
            "VCONV_FFMPEG_PATH": str(ffmpeg),
            "VCONV_SCRATCH_DIR": str(scratch_dir),
        }

    return _env
