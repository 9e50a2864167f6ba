"""Data models for a single conversion."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass
class UploadedFile:
    """An upload that has been streamed to scratch storage.

    Owned by ConversionService.convert for exactly one conversion, which
    deletes path once ffmpeg has finished.
    """

    path: Path
    original_filename: str | None = None
    size: int = 0
    content_type: str | None = None


@dataclass
class ConversionResult:
    """Outcome of a successful conversion."""

    output_path: Path
    exit_code: int
    diagnostics: str = ""
    elapsed_seconds: float = 0.0
    success: bool = True

    @property
    def output_name(self) -> str:
        return self.output_path.name

    @property
    def download_url(self) -> str:
        return f"/download/{self.output_name}"

    def to_dict(self) -> dict[str, object]:
        """Body of the 200 response to POST /convert."""
        return {
            "success": self.success,
            "message": "Video converted successfully",
            "outputFile": self.output_name,
            "downloadUrl": self.download_url,
        }
