"""vconv: HTTP video conversion service backed by ffmpeg."""

__version__ = "0.1.0"
