"""External tool integration: probing, command building and execution."""

from vconv.tools.detection import detect_ffmpeg, find_ffmpeg, parse_version_banner
from vconv.tools.ffmpeg_builder import FFmpegCommandBuilder
from vconv.tools.models import FFmpegInfo, ProcessOutcome, ToolInfo, ToolStatus
from vconv.tools.process import run_ffmpeg

__all__ = [
    "FFmpegCommandBuilder",
    "FFmpegInfo",
    "ProcessOutcome",
    "ToolInfo",
    "ToolStatus",
    "detect_ffmpeg",
    "find_ffmpeg",
    "parse_version_banner",
    "run_ffmpeg",
]
