"""Scratch storage for uploads and converted outputs.

Layout under the scratch directory:
    uploads/  raw uploads, removed as soon as ffmpeg finishes
    outputs/  converted files, removed shortly after they are downloaded

Output names are generated here and are the only names the download
endpoint will serve: a requested name must be a plain basename that
resolves inside outputs/.
"""

from __future__ import annotations

import asyncio
import logging
import re
import secrets
import time
from pathlib import Path

from vconv.config.models import StorageConfig
from vconv.conversion.exceptions import InvalidFilenameError, OutputNotFoundError

logger = logging.getLogger(__name__)

# Names the download endpoint accepts; generated names always match
_SAFE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,254}$")
_SAFE_SUFFIX_RE = re.compile(r"^\.[A-Za-z0-9]{1,8}$")


def _unique_token() -> str:
    """Millisecond timestamp plus 48 random bits."""
    return f"{int(time.time() * 1000)}_{secrets.token_hex(6)}"


class ScratchStorage:
    """Owns the scratch directory and every file created in it."""

    def __init__(self, config: StorageConfig, output_extension: str = "mp4") -> None:
        self.config = config
        self.output_extension = output_extension
        self.uploads_dir = config.uploads_dir
        self.outputs_dir = config.outputs_dir
        self._claimed: set[str] = set()
        self._pending: dict[asyncio.Task[None], Path] = {}

    def ensure_dirs(self) -> None:
        """Create the uploads and outputs directories if missing."""
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        self.outputs_dir.mkdir(parents=True, exist_ok=True)

    def new_upload_path(self, original_filename: str | None = None) -> Path:
        """Return a fresh path for an incoming upload.

        The original extension is kept when it is short and alphanumeric so
        ffmpeg can use it as a demuxer hint; the rest of the client's
        filename is never used on disk.
        """
        suffix = ""
        if original_filename:
            candidate = Path(original_filename).suffix
            if _SAFE_SUFFIX_RE.match(candidate):
                suffix = candidate.lower()
        return self.uploads_dir / f"upload_{_unique_token()}{suffix}"

    def new_output_path(self) -> Path:
        """Return a collision-free path for a converted output."""
        name = f"converted_{_unique_token()}.{self.output_extension}"
        return self.outputs_dir / name

    def resolve_output(self, filename: str) -> Path:
        """Map an untrusted download token onto a file in outputs/.

        Args:
            filename: Name taken from the request path.

        Returns:
            Absolute path of an existing, unclaimed output.

        Raises:
            InvalidFilenameError: The token is not a plain safe basename.
            OutputNotFoundError: No such output, or it is already claimed.
        """
        if not _SAFE_NAME_RE.match(filename) or ".." in filename:
            raise InvalidFilenameError(filename)

        outputs_root = self.outputs_dir.resolve()
        path = (outputs_root / filename).resolve()
        if path.parent != outputs_root:
            raise InvalidFilenameError(filename)

        if filename in self._claimed or not path.is_file():
            raise OutputNotFoundError(filename)
        return path

    def claim_output(self, filename: str) -> Path:
        """Resolve filename and reserve it for a single download.

        A claimed output is invisible to later resolve_output calls until
        it is released or deleted.
        """
        path = self.resolve_output(filename)
        self._claimed.add(filename)
        return path

    def release_claim(self, filename: str) -> None:
        """Make an output downloadable again (e.g. after an aborted transfer)."""
        self._claimed.discard(filename)

    def discard(self, path: Path) -> bool:
        """Delete path, logging instead of raising on failure.

        Returns:
            True if a file was removed.
        """
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Could not delete %s: %s", path, e)
            return False
        logger.debug("Deleted %s", path)
        return True

    def schedule_delete(
        self, path: Path, delay: float | None = None
    ) -> asyncio.Task[None]:
        """Delete path after delay seconds on the running loop.

        Defaults to storage.delete_delay_seconds. The claim on the file is
        dropped once it is gone. flush_pending_deletions() deletes at once.
        """
        if delay is None:
            delay = self.config.delete_delay_seconds
        task = asyncio.create_task(self._delayed_delete(path, delay))
        self._pending[task] = path
        task.add_done_callback(self._forget_pending)
        return task

    def _forget_pending(self, task: asyncio.Task[None]) -> None:
        self._pending.pop(task, None)

    def _delete_claimed(self, path: Path) -> None:
        self.discard(path)
        self._claimed.discard(path.name)

    async def _delayed_delete(self, path: Path, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        self._delete_claimed(path)

    @property
    def pending_deletions(self) -> int:
        return len(self._pending)

    async def flush_pending_deletions(self) -> None:
        """Run every scheduled deletion now and wait for them."""
        pending = list(self._pending.items())
        for task, path in pending:
            # A task cancelled before its first step never runs its body
            task.cancel()
            self._delete_claimed(path)
        if pending:
            tasks = [task for task, _ in pending]
            await asyncio.gather(*tasks, return_exceptions=True)

    def cleanup_orphaned_files(self, max_age_hours: float | None = None) -> int:
        """Remove uploads and outputs left behind by a previous run.

        Only files older than max_age_hours are touched so a concurrently
        starting instance sharing the directory is not disturbed.

        Returns:
            Number of files removed.
        """
        if max_age_hours is None:
            max_age_hours = self.config.orphan_max_age_hours

        cleaned = 0
        cutoff_time = time.time() - (max_age_hours * 3600)

        for search_dir in (self.uploads_dir, self.outputs_dir):
            if not search_dir.exists():
                continue

            for stale in search_dir.iterdir():
                if not stale.is_file():
                    continue
                try:
                    if stale.stat().st_mtime < cutoff_time:
                        stale.unlink()
                        logger.info("Cleaned orphaned scratch file: %s", stale)
                        cleaned += 1
                except OSError as e:
                    logger.warning("Could not clean scratch file %s: %s", stale, e)

        return cleaned
