"""Run ffmpeg with a wall-clock timeout and threaded stderr capture.

run_ffmpeg blocks; callers on the event loop wrap it in asyncio.to_thread
and pass a cancel event so the process can be killed from the loop side.
"""

import logging
import queue
import subprocess  # nosec B404 - subprocess is required to run ffmpeg
import threading
import time
from collections.abc import Callable

from vconv.tools.models import ProcessOutcome

logger = logging.getLogger(__name__)

# How often the wait loop re-checks the process, the deadline and the
# cancel event (seconds)
POLL_INTERVAL = 0.25


def run_ffmpeg(
    cmd: list[str],
    timeout: float | None = None,
    on_line: Callable[[str], None] | None = None,
    cancel: threading.Event | None = None,
) -> ProcessOutcome:
    """Run an ffmpeg command to completion.

    stderr is read on a helper thread so the deadline and the cancel event
    are honoured while the process is silent. In both cases the process is
    killed and reaped before this returns.

    Args:
        cmd: Command and arguments.
        timeout: Seconds before the process is killed. None waits forever.
        on_line: Called with every stderr line as it arrives.
        cancel: When set from another thread, the process is killed and
            the outcome is marked cancelled.

    Returns:
        ProcessOutcome with the exit status and all stderr lines.

    Raises:
        OSError: If the process cannot be spawned (missing binary,
            permission denied).
    """
    start_time = time.monotonic()
    stderr_output: list[str] = []
    stderr_queue: queue.Queue[str | None] = queue.Queue()
    reader_stop = threading.Event()

    def consume(line: str) -> None:
        stderr_output.append(line)
        if on_line is not None:
            on_line(line)

    # Leaving the with block closes the stderr pipe and reaps the process
    with subprocess.Popen(  # nosec B603 - argument list, no shell
        cmd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.PIPE,
        text=True,
        errors="replace",
    ) as process:

        def read_stderr() -> None:
            try:
                assert process.stderr is not None
                for line in process.stderr:
                    if reader_stop.is_set():
                        break
                    stderr_queue.put(line)
            except (ValueError, OSError):
                # Pipe closed after kill
                pass
            finally:
                stderr_queue.put(None)

        reader_thread = threading.Thread(target=read_stderr, daemon=True)
        reader_thread.start()

        timed_out = False
        cancelled = False
        stream_closed = False
        while True:
            if timeout is not None and time.monotonic() - start_time >= timeout:
                timed_out = True
                break
            if cancel is not None and cancel.is_set():
                cancelled = True
                break
            if process.poll() is not None:
                break

            if stream_closed:
                # stderr is done but the process has not exited yet
                time.sleep(POLL_INTERVAL)
                continue
            try:
                line = stderr_queue.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                continue
            if line is None:
                stream_closed = True
                continue
            consume(line)

        if timed_out or cancelled:
            if timed_out:
                logger.warning(
                    "ffmpeg timed out after %s seconds, killing pid %d",
                    timeout,
                    process.pid,
                )
            else:
                logger.warning("ffmpeg cancelled, killing pid %d", process.pid)
            reader_stop.set()
            process.kill()
            process.wait()
            reader_thread.join(timeout=2.0)
            if reader_thread.is_alive():
                logger.warning("Stderr reader thread did not terminate cleanly")
        else:
            # Process exited; drain whatever the reader still holds
            reader_thread.join(timeout=5.0)
            while not stream_closed:
                try:
                    line = stderr_queue.get_nowait()
                except queue.Empty:
                    break
                if line is None:
                    break
                consume(line)
            process.wait()

    return ProcessOutcome(
        return_code=process.returncode,
        stderr_lines=stderr_output,
        timed_out=timed_out,
        cancelled=cancelled,
        elapsed_seconds=time.monotonic() - start_time,
    )
