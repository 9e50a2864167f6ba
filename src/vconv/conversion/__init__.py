"""Single-file conversion: upload handling, admission and ffmpeg runs."""

from vconv.conversion.exceptions import (
    ConversionError,
    ConversionFailedError,
    ConversionTimeoutError,
    InvalidFilenameError,
    MissingInputError,
    OutputNotFoundError,
    ServiceBusyError,
    ToolUnavailableError,
    UploadTooLargeError,
)
from vconv.conversion.gate import AdmissionGate
from vconv.conversion.models import ConversionResult, UploadedFile
from vconv.conversion.service import ConversionService
from vconv.conversion.storage import ScratchStorage

__all__ = [
    "AdmissionGate",
    "ConversionError",
    "ConversionFailedError",
    "ConversionResult",
    "ConversionService",
    "ConversionTimeoutError",
    "InvalidFilenameError",
    "MissingInputError",
    "OutputNotFoundError",
    "ScratchStorage",
    "ServiceBusyError",
    "ToolUnavailableError",
    "UploadTooLargeError",
    "UploadedFile",
]
