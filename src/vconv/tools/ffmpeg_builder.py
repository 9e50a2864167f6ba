"""Build ffmpeg command lines.

Commands are argument lists passed straight to subprocess, never through a
shell, so paths containing spaces or quotes need no escaping.
"""

from dataclasses import dataclass
from pathlib import Path

from vconv.config.models import ConversionConfig


@dataclass
class FFmpegCommandBuilder:
    """Builder for the conversion and probe commands."""

    ffmpeg_path: str = "ffmpeg"
    video_codec: str = "libx264"
    audio_codec: str = "aac"
    preset: str = "fast"
    crf: int = 23

    @classmethod
    def from_config(
        cls, config: ConversionConfig, ffmpeg_path: str
    ) -> "FFmpegCommandBuilder":
        return cls(
            ffmpeg_path=ffmpeg_path,
            video_codec=config.video_codec,
            audio_codec=config.audio_codec,
            preset=config.preset,
            crf=config.crf,
        )

    def conversion_command(self, input_path: Path, output_path: Path) -> list[str]:
        """Return the command converting input_path to H.264/AAC.

        Shape: <tool> -i <in> -c:v <v> -c:a <a> -preset <p> -crf <q> -y <out>
        """
        return [
            self.ffmpeg_path,
            "-i",
            str(input_path),
            "-c:v",
            self.video_codec,
            "-c:a",
            self.audio_codec,
            "-preset",
            self.preset,
            "-crf",
            str(self.crf),
            "-y",
            str(output_path),
        ]
