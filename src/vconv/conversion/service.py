"""Conversion service: one uploaded file in, one MP4 out.

ConversionService ties together the admission gate, scratch storage and
the ffmpeg runner. The blocking process wait happens on a worker thread so
the event loop keeps serving other requests.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import threading
from collections.abc import Callable
from pathlib import Path

from vconv.config.models import VconvConfig
from vconv.conversion.exceptions import (
    ConversionFailedError,
    ConversionTimeoutError,
    ShuttingDownError,
    ToolUnavailableError,
)
from vconv.conversion.gate import AdmissionGate
from vconv.conversion.models import ConversionResult, UploadedFile
from vconv.conversion.storage import ScratchStorage
from vconv.tools.detection import detect_ffmpeg, find_ffmpeg
from vconv.tools.ffmpeg_builder import FFmpegCommandBuilder
from vconv.tools.ffmpeg_progress import is_error_line, parse_stderr_progress
from vconv.tools.models import FFmpegInfo, ProcessOutcome
from vconv.tools.process import run_ffmpeg

logger = logging.getLogger(__name__)

Runner = Callable[
    [list[str], float | None, Callable[[str], None] | None, threading.Event],
    ProcessOutcome,
]

# How long a cancelled request waits for its ffmpeg process to be killed
KILL_WAIT_SECONDS = 5.0


def _log_stderr_line(line: str) -> None:
    """Surface progress and error lines from ffmpeg."""
    progress = parse_stderr_progress(line)
    if progress is not None:
        logger.debug(
            "ffmpeg progress: time=%.2fs frame=%s speed=%s",
            progress.out_time_seconds or 0.0,
            progress.frame,
            progress.speed,
        )
    elif is_error_line(line):
        logger.warning("ffmpeg: %s", line.rstrip())


class ConversionService:
    """Runs conversions under the admission gate.

    Args:
        config: Full application config.
        storage: Scratch storage for inputs and outputs.
        gate: Admission gate. Built from config.conversion when omitted.
        runner: Blocking process runner, replaceable in tests.
    """

    def __init__(
        self,
        config: VconvConfig,
        storage: ScratchStorage,
        gate: AdmissionGate | None = None,
        runner: Runner = run_ffmpeg,
    ) -> None:
        self.config = config
        self.storage = storage
        self.gate = gate or AdmissionGate(
            config.conversion.max_concurrent, config.conversion.max_queued
        )
        self.ffmpeg_path = find_ffmpeg(config.tools.ffmpeg)
        self.builder = FFmpegCommandBuilder.from_config(
            config.conversion, self.ffmpeg_path
        )
        self._runner = runner
        self._cancel_events: set[threading.Event] = set()

    @property
    def timeout(self) -> float | None:
        return self.config.conversion.timeout_seconds

    @property
    def active_runs(self) -> int:
        """Number of ffmpeg processes currently running."""
        return len(self._cancel_events)

    def cancel_all(self) -> int:
        """Kill every running ffmpeg process.

        Each affected convert() call removes its partial output and raises
        ShuttingDownError.

        Returns:
            Number of conversions signalled.
        """
        for event in self._cancel_events:
            event.set()
        return len(self._cancel_events)

    async def probe(self) -> FFmpegInfo:
        """Run `ffmpeg -version` without blocking the loop."""
        return await asyncio.to_thread(detect_ffmpeg, self.ffmpeg_path)

    async def convert(self, upload: UploadedFile) -> ConversionResult:
        """Convert an uploaded file to H.264/AAC MP4.

        The upload is deleted when this returns or raises, whatever the
        outcome. A partial output is deleted on every failure path, so a
        returned result always refers to a file produced by an ffmpeg run
        that exited 0.

        Args:
            upload: File previously written to scratch storage.

        Returns:
            ConversionResult for the new output file.

        Raises:
            ServiceBusyError: Too many conversions running and queued.
            ToolUnavailableError: ffmpeg could not be spawned.
            ConversionFailedError: ffmpeg exited non-zero.
            ConversionTimeoutError: ffmpeg exceeded the time limit.
            ShuttingDownError: ffmpeg was killed by cancel_all().
        """
        try:
            async with self.gate.slot():
                return await self._run(upload)
        finally:
            self.storage.discard(upload.path)

    async def _run(self, upload: UploadedFile) -> ConversionResult:
        output_path = self.storage.new_output_path()
        cmd = self.builder.conversion_command(upload.path, output_path)
        tail_lines = self.config.conversion.details_tail_lines

        logger.info(
            "Converting %s (%d bytes) to %s",
            upload.original_filename or upload.path.name,
            upload.size,
            output_path.name,
        )
        logger.debug("Running: %s", " ".join(cmd))

        timeout = self.timeout
        cancel = threading.Event()
        self._cancel_events.add(cancel)
        worker = asyncio.ensure_future(
            asyncio.to_thread(self._runner, cmd, timeout, _log_stderr_line, cancel)
        )
        try:
            outcome = await asyncio.shield(worker)
        except OSError as e:
            logger.error("Could not start ffmpeg: %s", e)
            self.storage.discard(output_path)
            raise ToolUnavailableError(str(e)) from e
        except asyncio.CancelledError:
            # The request went away; kill ffmpeg before touching its files
            cancel.set()
            try:
                await asyncio.wait({worker}, timeout=KILL_WAIT_SECONDS)
            finally:
                self.storage.discard(output_path)
            raise
        finally:
            self._cancel_events.discard(cancel)

        if outcome.cancelled:
            self.storage.discard(output_path)
            raise ShuttingDownError(
                "Conversion cancelled: server shutting down",
                outcome.tail(tail_lines) or None,
            )

        if outcome.timed_out:
            self.storage.discard(output_path)
            limit = timeout if timeout is not None else outcome.elapsed_seconds
            raise ConversionTimeoutError(limit, outcome.tail(tail_lines))

        if not outcome.succeeded:
            logger.error(
                "ffmpeg exited with code %d after %.1fs",
                outcome.return_code,
                outcome.elapsed_seconds,
            )
            self.storage.discard(output_path)
            raise ConversionFailedError(outcome.return_code, outcome.tail(tail_lines))

        if not output_path.exists():
            logger.warning("ffmpeg exited 0 but %s was not written", output_path)

        logger.info(
            "Conversion finished in %.1fs: %s",
            outcome.elapsed_seconds,
            output_path.name,
        )
        return ConversionResult(
            output_path=output_path,
            exit_code=outcome.return_code,
            diagnostics="".join(outcome.stderr_lines),
            elapsed_seconds=outcome.elapsed_seconds,
        )

    async def convert_local(
        self, source: Path, destination: Path | None = None
    ) -> Path:
        """Convert a file on local disk, outside of any HTTP request.

        source is copied into scratch storage so the original is never
        touched; the result is moved to destination (default: next to the
        source with the output extension).

        Returns:
            Path of the converted file.
        """
        if destination is None:
            destination = source.with_suffix(f".{self.storage.output_extension}")

        self.storage.ensure_dirs()
        upload_path = self.storage.new_upload_path(source.name)
        await asyncio.to_thread(shutil.copyfile, source, upload_path)
        upload = UploadedFile(
            path=upload_path,
            original_filename=source.name,
            size=upload_path.stat().st_size,
        )

        result = await self.convert(upload)
        await asyncio.to_thread(shutil.move, result.output_path, destination)
        return destination
