"""
Upload handling: pull the document and scale out of a multipart request.

Uploads are either read straight from the parsed form ("memory") or staged
through a named temporary file ("disk"). A staged file never outlives the
read that consumes it.
"""

import asyncio
import logging
import math
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from fastapi import Request
from starlette.datastructures import UploadFile

from .config import RasterSettings
from .errors import MissingFileError, MultipleFilesError, UploadStagingError
from .models import ConversionRequest

logger = logging.getLogger(__name__)

SCALE_FIELD = "scale"


def parse_scale(raw: Optional[str], default: float = 1.5) -> float:
    """
    Parse the optional scale form field.

    Anything that is not a finite number above zero falls back to *default*.

    Example:
        >>> parse_scale("2")
        2.0
        >>> parse_scale("abc")
        1.5
    """
    if raw is None:
        return default
    try:
        value = float(str(raw).strip())
    except ValueError:
        logger.debug(f"Ignoring non-numeric scale {raw!r}, using {default}")
        return default
    if not math.isfinite(value) or value <= 0:
        logger.debug(f"Ignoring out-of-range scale {raw!r}, using {default}")
        return default
    return value


@contextmanager
def staged_upload(source: BinaryIO, directory: Optional[str] = None) -> Iterator[Path]:
    """
    Copy *source* into a temporary file and yield its path.

    The file is deleted when the block exits, whether or not it raised.
    """
    fd, name = tempfile.mkstemp(prefix="upload_", suffix=".pdf", dir=directory)
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as fh:
            source.seek(0)
            shutil.copyfileobj(source, fh)
        logger.debug(f"Staged upload at {path}")
        yield path
    finally:
        path.unlink(missing_ok=True)
        logger.debug(f"Removed staged upload {path}")


def read_staged(source: BinaryIO, directory: Optional[str] = None) -> bytes:
    """Stage *source* on disk, read it back and delete it."""
    with staged_upload(source, directory) as path:
        return path.read_bytes()


async def receive_upload(request: Request, settings: RasterSettings) -> ConversionRequest:
    """
    Parse the multipart body of *request* into a ConversionRequest.

    Raises:
        MissingFileError: no file under ``settings.upload_field_name``
        MultipleFilesError: more than one file under that field
        UploadStagingError: disk staging failed
    """
    form = await request.form()
    try:
        uploads = [
            item
            for item in form.getlist(settings.upload_field_name)
            if isinstance(item, UploadFile) and item.filename
        ]
        if not uploads:
            raise MissingFileError("No PDF file provided.")
        if len(uploads) > 1:
            raise MultipleFilesError(
                f"Expected exactly one file in '{settings.upload_field_name}', got {len(uploads)}."
            )
        upload = uploads[0]

        scale = parse_scale(form.get(SCALE_FIELD), settings.default_scale)

        if settings.upload_storage == "disk":
            try:
                data = await asyncio.to_thread(read_staged, upload.file, settings.temp_dir)
            except OSError as exc:
                raise UploadStagingError(f"Failed to stage upload: {exc}") from exc
        else:
            data = await upload.read()

        logger.info(
            f"Received '{upload.filename}' ({len(data)} bytes, scale={scale}, "
            f"storage={settings.upload_storage})"
        )
        return ConversionRequest(data=data, scale=scale, filename=upload.filename)
    finally:
        await form.close()
