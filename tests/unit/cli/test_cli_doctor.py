"""Tests for `vconv doctor`."""

import json
from pathlib import Path

from click.testing import CliRunner

from vconv.cli import main
from vconv.cli.exit_codes import ExitCode


class TestDoctorCommand:
    """Tests for the doctor command."""

    def test_healthy(self, cli_env, fake_ffmpeg: Path, scratch_dir: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["doctor"], env=cli_env(fake_ffmpeg))

        assert result.exit_code == 0, result.output
        assert "✓ ffmpeg: 6.1.1" in result.output
        assert "configuration: --prefix=/usr" in result.output
        assert scratch_dir.is_dir()

    def test_verbose_lists_libraries(self, cli_env, fake_ffmpeg: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            main, ["doctor", "--verbose"], env=cli_env(fake_ffmpeg)
        )
        assert "libavcodec" in result.output

    def test_missing_ffmpeg(self, cli_env, missing_ffmpeg: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["doctor"], env=cli_env(missing_ffmpeg))

        assert result.exit_code == ExitCode.TOOL_NOT_AVAILABLE
        assert "✗ ffmpeg: not found" in result.output
        assert "No such file or directory" in result.output

    def test_json_output(self, cli_env, fake_ffmpeg: Path, scratch_dir: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["doctor", "--json"], env=cli_env(fake_ffmpeg))

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["ffmpeg"]["status"] == "available"
        assert data["ffmpeg"]["version"] == "6.1.1"
        assert data["scratch_dir"] == {
            "path": str(scratch_dir),
            "writable": True,
            "message": None,
        }

    def test_invalid_config_file(
        self, cli_env, fake_ffmpeg: Path, tmp_path: Path
    ) -> None:
        bad = tmp_path / "bad.toml"
        bad.write_text("[conversion\ncrf = ")
        runner = CliRunner()
        result = runner.invoke(
            main, ["doctor", "--config", str(bad)], env=cli_env(fake_ffmpeg)
        )
        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert "invalid configuration" in result.output
