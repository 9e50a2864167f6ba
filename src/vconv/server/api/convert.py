"""POST /convert and GET /download/{filename} handlers."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from aiohttp import BodyPartReader, web

from vconv.conversion.exceptions import (
    MissingInputError,
    OutputNotFoundError,
    ServiceBusyError,
    UploadTooLargeError,
)
from vconv.conversion.models import UploadedFile
from vconv.logging.context import set_upload_name
from vconv.server.middleware import shutdown_check

if TYPE_CHECKING:
    from vconv.conversion.service import ConversionService
    from vconv.conversion.storage import ScratchStorage
    from vconv.server.lifecycle import DaemonLifecycle

logger = logging.getLogger(__name__)

CHUNK_SIZE = 256 * 1024


async def receive_upload(
    request: web.Request,
    storage: ScratchStorage,
    field_name: str,
    max_bytes: int,
) -> UploadedFile:
    """Stream the named multipart field to scratch storage.

    Other fields are skipped. Only the first part named field_name is
    used.

    Raises:
        MissingInputError: Not a multipart body, or no such field.
        UploadTooLargeError: The field exceeds max_bytes.
    """
    if not request.content_type.startswith("multipart/"):
        raise MissingInputError()

    try:
        reader = await request.multipart()
        while True:
            part = await reader.next()
            if part is None:
                break
            if isinstance(part, BodyPartReader) and part.name == field_name:
                return await _write_part(part, storage, max_bytes)
            await part.release()
    except (ValueError, AssertionError) as e:
        logger.warning("Malformed multipart body: %s", e)
        raise MissingInputError("Malformed multipart body") from e

    raise MissingInputError()


async def _write_part(
    part: BodyPartReader, storage: ScratchStorage, max_bytes: int
) -> UploadedFile:
    path = storage.new_upload_path(part.filename)
    size = 0
    try:
        with path.open("wb") as f:
            while True:
                chunk = await part.read_chunk(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise UploadTooLargeError(max_bytes)
                await asyncio.to_thread(f.write, chunk)
    except BaseException:
        storage.discard(path)
        raise

    logger.debug("Received upload %s (%d bytes) as %s", part.filename, size, path)
    return UploadedFile(
        path=path,
        original_filename=part.filename,
        size=size,
        content_type=part.headers.get("Content-Type"),
    )


@shutdown_check
async def convert_handler(request: web.Request) -> web.Response:
    """Handle POST /convert.

    Accepts a multipart upload in the configured field (default "video"),
    converts it to H.264/AAC MP4 and returns a download URL.
    """
    service: ConversionService = request.app["conversion_service"]
    lifecycle: DaemonLifecycle = request.app["lifecycle"]
    conversion = service.config.conversion

    # Shed load before reading a potentially large body
    if service.gate.is_full:
        raise ServiceBusyError()

    with lifecycle.track_request():
        upload = await receive_upload(
            request,
            service.storage,
            conversion.upload_field,
            conversion.max_upload_bytes,
        )
        set_upload_name(upload.original_filename)
        result = await service.convert(upload)

    return web.json_response(result.to_dict())


async def download_handler(request: web.Request) -> web.StreamResponse:
    """Handle GET /download/{filename}.

    Streams a converted file once. The file is deleted shortly after the
    transfer completes; an interrupted transfer leaves it downloadable.
    """
    storage: ScratchStorage = request.app["storage"]
    lifecycle: DaemonLifecycle = request.app["lifecycle"]
    filename = request.match_info["filename"]

    path = storage.claim_output(filename)
    try:
        size = path.stat().st_size
    except FileNotFoundError:
        storage.release_claim(filename)
        raise OutputNotFoundError(filename) from None

    response = web.StreamResponse(
        headers={
            "Content-Type": "application/octet-stream",
            "Content-Disposition": f'attachment; filename="{filename}"',
        }
    )
    response.content_length = size

    with lifecycle.track_request():
        try:
            await response.prepare(request)
            with path.open("rb") as f:
                while True:
                    chunk = await asyncio.to_thread(f.read, CHUNK_SIZE)
                    if not chunk:
                        break
                    await response.write(chunk)
            await response.write_eof()
        except OSError as e:
            storage.release_claim(filename)
            if not response.prepared:
                raise
            # Headers are out; the client has gone and nothing more can be sent
            logger.warning("Download of %s interrupted (%s), keeping file", filename, e)
            return response
        except asyncio.CancelledError:
            logger.warning("Download of %s cancelled, keeping file", filename)
            storage.release_claim(filename)
            raise

    logger.info("Delivered %s", filename)
    storage.schedule_delete(path)
    return response
