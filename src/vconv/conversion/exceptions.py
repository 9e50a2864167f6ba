"""Errors raised while handling a conversion or download request.

Every exception carries the machine-readable code and HTTP status used for
its JSON error body, plus optional details (usually the tail of ffmpeg's
stderr). None of them is fatal to the server.
"""

from __future__ import annotations


class ConversionError(Exception):
    """Base class for request-level conversion errors.

    Attributes:
        code: Machine-readable error code.
        status: HTTP status returned to the client.
        details: Optional diagnostic text.
    """

    code = "INTERNAL_ERROR"
    status = 500

    def __init__(self, message: str, details: str | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class MissingInputError(ConversionError):
    """The request carried no file in the expected upload field."""

    code = "MISSING_INPUT"
    status = 400

    def __init__(self, message: str = "No file uploaded") -> None:
        super().__init__(message)


class UploadTooLargeError(ConversionError):
    """The upload exceeded the configured size limit."""

    code = "UPLOAD_TOO_LARGE"
    status = 413

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Upload exceeds maximum size of {limit} bytes")


class ToolUnavailableError(ConversionError):
    """ffmpeg could not be spawned.

    details holds the operating system's error message.
    """

    code = "TOOL_UNAVAILABLE"
    status = 500

    def __init__(self, details: str) -> None:
        super().__init__("FFmpeg process error", details=details)


class ConversionFailedError(ConversionError):
    """ffmpeg ran but exited with a non-zero status.

    Attributes:
        exit_code: The process exit status.
    """

    code = "CONVERSION_FAILED"
    status = 500

    def __init__(self, exit_code: int, details: str | None = None) -> None:
        self.exit_code = exit_code
        super().__init__(
            f"Conversion failed with exit code {exit_code}", details=details
        )


class ConversionTimeoutError(ConversionError):
    """ffmpeg exceeded the wall-clock limit and was killed."""

    code = "TIMEOUT"
    status = 504

    def __init__(self, timeout: float, details: str | None = None) -> None:
        self.timeout = timeout
        super().__init__(
            f"Conversion timed out after {timeout:g} seconds", details=details
        )


class ServiceBusyError(ConversionError):
    """The admission gate is full."""

    code = "SERVICE_BUSY"
    status = 503

    def __init__(self, retry_after: int = 5) -> None:
        self.retry_after = retry_after
        super().__init__("Server is busy, retry later")


class InvalidFilenameError(ConversionError):
    """A download token is not a plain output file name."""

    code = "INVALID_FILENAME"
    status = 400

    def __init__(self, filename: str) -> None:
        self.filename = filename
        super().__init__("Invalid filename")


class OutputNotFoundError(ConversionError):
    """The requested output does not exist or was already fetched."""

    code = "NOT_FOUND"
    status = 404

    def __init__(self, filename: str) -> None:
        self.filename = filename
        super().__init__("File not found")


class ShuttingDownError(ConversionError):
    """The server is shutting down.

    Raised for requests that arrive after shutdown began, and for
    conversions whose ffmpeg process was killed because the shutdown
    timeout ran out.
    """

    code = "SHUTTING_DOWN"
    status = 503

    def __init__(
        self, message: str = "Service is shutting down", details: str | None = None
    ) -> None:
        super().__init__(message, details=details)
