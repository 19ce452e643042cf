"""
Output packagers for rendered pages.

A packager collects RenderedImage values in page order and produces the
response payload once every page has been added:

- ArchivePackager: zip archive bytes, one ``page_NNN.png`` entry per page
- InlinePackager: list of base64 PNG data URLs
"""

import logging
import zipfile
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Any, List, Optional

from .errors import PackagingError
from .models import RenderedImage

logger = logging.getLogger(__name__)


class OutputPackager(ABC):
    """Collects rendered pages and finalizes them into one payload."""

    mode: str = ""

    def __init__(self) -> None:
        self._finalized = False
        self.count = 0

    def add(self, image: RenderedImage) -> None:
        if self._finalized:
            raise PackagingError("Cannot add pages after the output was finalized")
        self._add(image)
        self.count += 1

    def finalize(self) -> Any:
        """Produce the payload. May only be called once."""
        if self._finalized:
            raise PackagingError("Output was already finalized")
        self._finalized = True
        return self._finalize()

    def discard(self) -> None:
        """Drop whatever was collected without producing a payload."""
        self._finalized = True

    @abstractmethod
    def _add(self, image: RenderedImage) -> None: ...

    @abstractmethod
    def _finalize(self) -> Any: ...


class ArchivePackager(OutputPackager):
    """Builds a DEFLATE-compressed zip archive in memory."""

    mode = "archive"
    media_type = "application/zip"

    def __init__(self, compresslevel: Optional[int] = None) -> None:
        super().__init__()
        self._buffer = BytesIO()
        self._zip = zipfile.ZipFile(
            self._buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=compresslevel
        )

    def _add(self, image: RenderedImage) -> None:
        try:
            self._zip.writestr(image.archive_name, image.png)
        except Exception as exc:
            raise PackagingError(f"Failed to add {image.archive_name} to archive: {exc}") from exc

    def _finalize(self) -> bytes:
        try:
            self._zip.close()
        except Exception as exc:
            raise PackagingError(f"Failed to finalize archive: {exc}") from exc
        data = self._buffer.getvalue()
        logger.debug(f"Archive finalized: {self.count} entries, {len(data)} bytes")
        return data

    def discard(self) -> None:
        super().discard()
        self._zip.close()
        self._buffer.close()


class InlinePackager(OutputPackager):
    """Collects base64 PNG data URLs in page order."""

    mode = "inline"
    media_type = "application/json"

    def __init__(self) -> None:
        super().__init__()
        self._images: List[str] = []

    def _add(self, image: RenderedImage) -> None:
        self._images.append(image.data_url)

    def _finalize(self) -> List[str]:
        return self._images

    def discard(self) -> None:
        super().discard()
        self._images = []


PACKAGERS = {
    ArchivePackager.mode: ArchivePackager,
    InlinePackager.mode: InlinePackager,
}


def get_packager(mode: str) -> OutputPackager:
    """Create a fresh packager for *mode* ('archive' or 'inline')."""
    try:
        return PACKAGERS[mode]()
    except KeyError:
        raise ValueError(f"Unknown output mode: {mode}") from None
