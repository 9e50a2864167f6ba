"""Tests for ConversionService against fake ffmpeg binaries."""

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

from vconv.config.models import VconvConfig
from vconv.conversion.exceptions import (
    ConversionFailedError,
    ConversionTimeoutError,
    ServiceBusyError,
    ShuttingDownError,
    ToolUnavailableError,
)
from vconv.conversion.gate import AdmissionGate
from vconv.conversion.models import UploadedFile
from vconv.conversion.service import ConversionService
from vconv.conversion.storage import ScratchStorage
from vconv.tools.models import ProcessOutcome


def _service(config: VconvConfig, **kwargs) -> ConversionService:
    storage = ScratchStorage(config.storage, config.conversion.output_extension)
    storage.ensure_dirs()
    return ConversionService(config, storage, **kwargs)


def _upload(service: ConversionService, data: bytes = b"0123456789") -> UploadedFile:
    path = service.storage.new_upload_path("clip.mov")
    path.write_bytes(data)
    return UploadedFile(path=path, original_filename="clip.mov", size=len(data))


class _DiscardSpy:
    """Records every path passed to ScratchStorage.discard."""

    def __init__(self, storage: ScratchStorage) -> None:
        self.calls: list[Path] = []
        self._original = storage.discard
        storage.discard = self  # type: ignore[method-assign]

    def __call__(self, path: Path) -> bool:
        self.calls.append(path)
        return self._original(path)


class TestConvert:
    """Tests for ConversionService.convert()."""

    async def test_success(
        self, make_config: Callable[..., VconvConfig], fake_ffmpeg: Path, recorded_args
    ) -> None:
        service = _service(make_config(fake_ffmpeg))
        upload = _upload(service)

        result = await service.convert(upload)

        assert result.success
        assert result.exit_code == 0
        assert result.output_path.parent == service.storage.outputs_dir
        assert result.output_path.read_bytes() == b"0123456789"
        assert result.download_url == f"/download/{result.output_name}"
        assert not upload.path.exists()
        assert recorded_args(fake_ffmpeg) == [
            "-i",
            str(upload.path),
            "-c:v",
            "libx264",
            "-c:a",
            "aac",
            "-preset",
            "fast",
            "-crf",
            "23",
            "-y",
            str(result.output_path),
        ]

    async def test_result_body(
        self, make_config: Callable[..., VconvConfig], fake_ffmpeg: Path
    ) -> None:
        service = _service(make_config(fake_ffmpeg))
        result = await service.convert(_upload(service))
        assert result.to_dict() == {
            "success": True,
            "message": "Video converted successfully",
            "outputFile": result.output_name,
            "downloadUrl": f"/download/{result.output_name}",
        }

    async def test_input_discarded_exactly_once(
        self, make_config: Callable[..., VconvConfig], fake_ffmpeg: Path
    ) -> None:
        service = _service(make_config(fake_ffmpeg))
        spy = _DiscardSpy(service.storage)
        upload = _upload(service)

        await service.convert(upload)

        assert spy.calls.count(upload.path) == 1

    async def test_failure_returns_tail_and_removes_output(
        self, make_config: Callable[..., VconvConfig], make_fake_ffmpeg
    ) -> None:
        service = _service(make_config(make_fake_ffmpeg("failure")))
        spy = _DiscardSpy(service.storage)
        upload = _upload(service)

        with pytest.raises(ConversionFailedError) as exc_info:
            await service.convert(upload)

        error = exc_info.value
        assert error.exit_code == 1
        assert error.message == "Conversion failed with exit code 1"
        assert error.details == "\n".join(
            f"diagnostic line {n}" for n in range(4, 9)
        )
        assert spy.calls.count(upload.path) == 1
        assert list(service.storage.outputs_dir.iterdir()) == []
        assert list(service.storage.uploads_dir.iterdir()) == []

    async def test_details_tail_configurable(
        self, make_config: Callable[..., VconvConfig], make_fake_ffmpeg
    ) -> None:
        config = make_config(make_fake_ffmpeg("failure"), details_tail_lines=2)
        service = _service(config)

        with pytest.raises(ConversionFailedError) as exc_info:
            await service.convert(_upload(service))
        assert exc_info.value.details == "diagnostic line 7\ndiagnostic line 8"

    async def test_timeout(
        self, make_config: Callable[..., VconvConfig], make_fake_ffmpeg
    ) -> None:
        config = make_config(make_fake_ffmpeg("slow"), timeout_seconds=0.5)
        service = _service(config)
        upload = _upload(service)

        with pytest.raises(ConversionTimeoutError) as exc_info:
            await service.convert(upload)

        assert exc_info.value.status == 504
        assert "0.5 seconds" in exc_info.value.message
        assert not upload.path.exists()
        assert list(service.storage.outputs_dir.iterdir()) == []

    async def test_timeout_without_limit_reports_elapsed(
        self, make_config: Callable[..., VconvConfig], fake_ffmpeg: Path
    ) -> None:
        def runner(cmd, timeout, on_line, cancel):
            return ProcessOutcome(
                return_code=-9, timed_out=True, elapsed_seconds=12.0
            )

        config = make_config(fake_ffmpeg, timeout_seconds=None)
        service = _service(config, runner=runner)

        with pytest.raises(ConversionTimeoutError) as exc_info:
            await service.convert(_upload(service))

        assert exc_info.value.timeout == 12.0
        assert "12 seconds" in exc_info.value.message

    async def test_missing_tool(
        self, make_config: Callable[..., VconvConfig], missing_ffmpeg: Path
    ) -> None:
        service = _service(make_config(missing_ffmpeg))
        upload = _upload(service)

        with pytest.raises(ToolUnavailableError) as exc_info:
            await service.convert(upload)

        assert exc_info.value.message == "FFmpeg process error"
        assert exc_info.value.details
        assert not upload.path.exists()

    async def test_zero_exit_without_output_still_succeeds(
        self,
        make_config: Callable[..., VconvConfig],
        fake_ffmpeg: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        def runner(cmd, timeout, on_line, cancel):
            return ProcessOutcome(return_code=0)

        service = _service(make_config(fake_ffmpeg), runner=runner)

        with caplog.at_level("WARNING"):
            result = await service.convert(_upload(service))

        assert result.success
        assert not result.output_path.exists()
        assert "was not written" in caplog.text


class TestAdmission:
    """Tests for concurrency limits in the service."""

    async def test_busy_gate_rejects_and_discards_upload(
        self, make_config: Callable[..., VconvConfig], fake_ffmpeg: Path, recorded_args
    ) -> None:
        config = make_config(fake_ffmpeg)
        gate = AdmissionGate(1, max_queued=0)
        service = _service(config, gate=gate)
        upload = _upload(service)

        async with gate.slot():
            with pytest.raises(ServiceBusyError):
                await service.convert(upload)

        assert not upload.path.exists()
        assert recorded_args(fake_ffmpeg) is None

    async def test_concurrent_conversions_get_distinct_outputs(
        self, make_config: Callable[..., VconvConfig], fake_ffmpeg: Path
    ) -> None:
        service = _service(make_config(fake_ffmpeg, max_concurrent=4))
        uploads = [_upload(service, f"clip {n}".encode()) for n in range(4)]

        results = await asyncio.gather(*(service.convert(u) for u in uploads))

        names = {result.output_name for result in results}
        assert len(names) == 4
        contents = sorted(result.output_path.read_bytes() for result in results)
        assert contents == sorted(f"clip {n}".encode() for n in range(4))


class TestConvertLocal:
    """Tests for convert_local()."""

    async def test_moves_result_next_to_source(
        self, make_config: Callable[..., VconvConfig], fake_ffmpeg: Path, tmp_path: Path
    ) -> None:
        service = _service(make_config(fake_ffmpeg))
        source = tmp_path / "holiday.mov"
        source.write_bytes(b"frames")

        destination = await service.convert_local(source)

        assert destination == tmp_path / "holiday.mp4"
        assert destination.read_bytes() == b"frames"
        assert source.exists()
        assert list(service.storage.outputs_dir.iterdir()) == []
        assert list(service.storage.uploads_dir.iterdir()) == []


async def test_probe(
    make_config: Callable[..., VconvConfig], fake_ffmpeg: Path
) -> None:
    info = await _service(make_config(fake_ffmpeg)).probe()
    assert info.is_available()
    assert info.version == "6.1.1"


async def _wait_until_running(service: ConversionService) -> None:
    for _ in range(200):
        if service.active_runs:
            return
        await asyncio.sleep(0.05)
    raise AssertionError("conversion never started")


class TestCancellation:
    """Tests for killing running conversions."""

    async def test_cancel_all_kills_ffmpeg_and_cleans_up(
        self, make_config: Callable[..., VconvConfig], make_fake_ffmpeg, recorded_args
    ) -> None:
        stalled = make_fake_ffmpeg("stalled")
        service = _service(make_config(stalled))
        upload = _upload(service)

        task = asyncio.create_task(service.convert(upload))
        await _wait_until_running(service)
        # The fake writes its partial output before it hangs
        for _ in range(200):
            if list(service.storage.outputs_dir.iterdir()):
                break
            await asyncio.sleep(0.05)

        assert service.cancel_all() == 1
        with pytest.raises(ShuttingDownError) as exc_info:
            await asyncio.wait_for(task, timeout=10)

        assert exc_info.value.status == 503
        assert exc_info.value.code == "SHUTTING_DOWN"
        assert service.active_runs == 0
        assert recorded_args(stalled) is not None
        assert list(service.storage.outputs_dir.iterdir()) == []
        assert not upload.path.exists()

    async def test_task_cancel_kills_ffmpeg_and_cleans_up(
        self, make_config: Callable[..., VconvConfig], make_fake_ffmpeg
    ) -> None:
        service = _service(make_config(make_fake_ffmpeg("stalled")))
        spy = _DiscardSpy(service.storage)
        upload = _upload(service)

        task = asyncio.create_task(service.convert(upload))
        await _wait_until_running(service)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert service.active_runs == 0
        assert spy.calls.count(upload.path) == 1
        assert list(service.storage.outputs_dir.iterdir()) == []
        assert list(service.storage.uploads_dir.iterdir()) == []

    def test_cancel_all_when_idle(
        self, make_config: Callable[..., VconvConfig], fake_ffmpeg: Path
    ) -> None:
        assert _service(make_config(fake_ffmpeg)).cancel_all() == 0
