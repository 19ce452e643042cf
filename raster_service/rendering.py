"""
PDF loading and page rasterization backed by PyMuPDF.

Responsible for three things: open raw bytes as a document, compute the
pixel viewport of a page at a scale, and render that page into a PNG.
"""

import logging
from typing import Iterator, Optional, Tuple

import fitz  # PyMuPDF

from .errors import DocumentParseError, PageRenderError
from .models import RenderedImage, Viewport

logger = logging.getLogger(__name__)

RENDERER_VERSION = f"PyMuPDF {fitz.VersionBind}"


def open_document(data: bytes) -> fitz.Document:
    """
    Open *data* as a PDF document.

    Returns
    -------
    fitz.Document
        The opened document. Callers own it and must close it.

    Raises
    ------
    DocumentParseError
        If the bytes are empty, not a PDF, damaged beyond repair, or
        password protected.
    """
    if not data:
        raise DocumentParseError("Uploaded document is empty")

    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as exc:
        raise DocumentParseError(f"Invalid PDF structure: {exc}") from exc

    if doc.needs_pass:
        doc.close()
        raise DocumentParseError("Document is password protected")

    logger.debug(f"Opened document with {doc.page_count} page(s)")
    return doc


def iter_pages(doc: fitz.Document) -> Iterator[Tuple[int, fitz.Page]]:
    """Yield ``(page_number, page)`` pairs in ascending order, 1-based."""
    for index in range(doc.page_count):
        try:
            page = doc.load_page(index)
        except Exception as exc:
            raise PageRenderError(index + 1, f"cannot load page: {exc}") from exc
        yield index + 1, page


def page_viewport(page: fitz.Page, scale: float) -> Viewport:
    """Pixel dimensions of *page* at *scale*: intrinsic size times scale."""
    rect = page.rect
    return Viewport(
        width=max(1, round(rect.width * scale)),
        height=max(1, round(rect.height * scale)),
        scale=scale,
    )


def encode_png(pix: fitz.Pixmap) -> bytes:
    """Serialize a rendered pixmap to PNG bytes."""
    return pix.tobytes("png")


def render_page(page: fitz.Page, page_number: int, scale: float) -> RenderedImage:
    """
    Rasterize one page at *scale* and encode it as PNG.

    The pixmap only lives for the duration of this call.

    Raises
    ------
    PageRenderError
        If MuPDF fails to render or encode the page.
    """
    viewport = page_viewport(page, scale)
    logger.debug(
        f"Rendering page {page_number} at scale {scale} "
        f"({viewport.width}x{viewport.height})"
    )

    pix = None
    try:
        rect = page.rect
        # Matrix maps the page onto the viewport exactly, never below one pixel
        matrix = fitz.Matrix(viewport.width / rect.width, viewport.height / rect.height)
        pix = page.get_pixmap(matrix=matrix, alpha=False)
        return RenderedImage(
            page_number=page_number,
            width=pix.width,
            height=pix.height,
            png=encode_png(pix),
        )
    except Exception as exc:
        raise PageRenderError(page_number, str(exc)) from exc
    finally:
        # Release the pixel surface before the next page is rendered
        pix = None


def validate_renderer() -> Tuple[bool, Optional[str]]:
    """
    Render a blank one-page PDF to confirm MuPDF works in this environment.

    Returns ``(ready, error)``.
    """
    try:
        with fitz.open() as doc:
            doc.new_page(width=72, height=72)
            image = render_page(doc.load_page(0), 1, 1.0)
    except Exception as e:
        return False, str(e)

    if not image.png:
        return False, "Test render returned empty result"
    return True, None
