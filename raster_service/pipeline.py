"""
Conversion pipeline: document bytes in, packaged page images out.

Pages are rendered strictly in order, one at a time. Any failure aborts
the whole conversion and the packager is discarded, so a caller never
sees partial output.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any

from .errors import PackagingError
from .models import ConversionRequest
from .packaging import OutputPackager
from .rendering import iter_pages, open_document, render_page

logger = logging.getLogger(__name__)


@dataclass
class ConversionResult:
    """Finalized payload plus the number of pages it holds."""

    page_count: int
    payload: Any
    elapsed_seconds: float = 0.0


def convert_document(request: ConversionRequest, packager: OutputPackager) -> ConversionResult:
    """
    Render every page of ``request.data`` at ``request.scale`` into *packager*.

    Args:
        request: Document bytes and scale
        packager: Fresh packager that receives one image per page

    Returns:
        ConversionResult with the finalized payload

    Raises:
        DocumentParseError: bytes are not a readable PDF
        PageRenderError: a page failed to rasterize
        PackagingError: the payload could not be built
    """
    start = time.perf_counter()

    doc = open_document(request.data)
    try:
        page_count = doc.page_count
        logger.info(
            f"Converting '{request.filename}': {page_count} page(s) "
            f"at scale {request.scale} ({packager.mode})"
        )

        for page_number, page in iter_pages(doc):
            packager.add(render_page(page, page_number, request.scale))

        payload = packager.finalize()
    except Exception:
        packager.discard()
        raise
    finally:
        doc.close()

    if packager.count != page_count:
        raise PackagingError(
            f"Packaged {packager.count} image(s) for a {page_count}-page document"
        )

    elapsed = round(time.perf_counter() - start, 3)
    logger.info(f"Converted '{request.filename}': {page_count} page(s) in {elapsed}s")
    return ConversionResult(page_count=page_count, payload=payload, elapsed_seconds=elapsed)
