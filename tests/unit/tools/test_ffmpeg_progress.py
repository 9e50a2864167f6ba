"""Tests for ffmpeg stderr progress parsing."""

from vconv.tools.ffmpeg_progress import is_error_line, parse_stderr_progress


class TestParseStderrProgress:
    """Tests for parse_stderr_progress()."""

    def test_full_line(self) -> None:
        line = (
            "frame= 1234 fps= 30 q=28.0 size=    1024kB "
            "time=00:01:23.45 bitrate= 101.2kbits/s speed=2.01x"
        )
        progress = parse_stderr_progress(line)

        assert progress is not None
        assert progress.frame == 1234
        assert progress.fps == 30.0
        assert progress.bitrate == "101.2kbits/s"
        assert progress.speed == "2.01x"
        assert progress.out_time_us == 83_450_000
        assert progress.out_time_seconds == 83.45

    def test_not_available_values(self) -> None:
        progress = parse_stderr_progress("frame=1 time=00:00:00.00 bitrate=N/A")
        assert progress is not None
        assert progress.bitrate is None
        assert progress.speed is None

    def test_line_without_time(self) -> None:
        assert parse_stderr_progress("Input #0, mov, from 'clip.mov':") is None


class TestIsErrorLine:
    """Tests for is_error_line()."""

    def test_error_detected_case_insensitively(self) -> None:
        assert is_error_line("Error while decoding stream #0:0")
        assert is_error_line("[h264] decode_slice_header ERROR")

    def test_regular_line(self) -> None:
        assert not is_error_line("Stream mapping:")
