"""
Unit tests for the conversion pipeline.
"""

import io
import zipfile
from unittest.mock import MagicMock, patch

import pytest

from conftest import build_pdf, png_size
from raster_service.errors import DocumentParseError, PageRenderError, PackagingError
from raster_service.models import ConversionRequest, RenderedImage
from raster_service.packaging import ArchivePackager, InlinePackager
from raster_service.pipeline import convert_document


def _request(data, scale=1.5):
    return ConversionRequest(data=data, scale=scale, filename="test.pdf")


class TestConvertDocument:
    """Tests for convert_document."""

    def test_archive_holds_every_page(self):
        """Test that an N-page document produces N ordered entries."""
        data = build_pdf(*[(100, 50)] * 5)
        result = convert_document(_request(data), ArchivePackager())

        assert result.page_count == 5
        with zipfile.ZipFile(io.BytesIO(result.payload)) as archive:
            assert archive.namelist() == [f"page_{n:03d}.png" for n in range(1, 6)]

    def test_inline_images_follow_page_order(self):
        """Test that array index i holds page i+1."""
        data = build_pdf((100, 100), (200, 100))
        result = convert_document(_request(data, scale=1.0), InlinePackager())

        assert result.page_count == 2
        assert len(result.payload) == 2

    def test_scale_is_applied(self):
        """Test that images are rendered at the requested scale."""
        data = build_pdf((120, 80))
        result = convert_document(_request(data, scale=2.5), ArchivePackager())

        with zipfile.ZipFile(io.BytesIO(result.payload)) as archive:
            assert png_size(archive.read("page_001.png")) == (300, 200)

    def test_parse_error_produces_no_images(self):
        """Test that unreadable bytes fail before any page is rendered."""
        packager = InlinePackager()
        with pytest.raises(DocumentParseError):
            convert_document(_request(b"not a pdf"), packager)
        assert packager.count == 0

    def test_render_error_discards_output(self):
        """Test that a failing page aborts the conversion and drops the archive."""
        packager = ArchivePackager()
        first = RenderedImage(page_number=1, width=1, height=1, png=b"png")
        with patch(
            "raster_service.pipeline.render_page",
            side_effect=[first, PageRenderError(2, "boom")],
        ) as mock_render:
            with pytest.raises(PageRenderError):
                convert_document(_request(build_pdf(*[(50, 50)] * 3)), packager)

        assert mock_render.call_count == 2
        with pytest.raises(PackagingError):
            packager.finalize()

    def test_pages_render_sequentially_in_order(self):
        """Test that pages are rendered one at a time, ascending."""
        calls = []

        def fake_render(page, page_number, scale):
            calls.append(page_number)
            return RenderedImage(page_number=page_number, width=1, height=1, png=b"png")

        with patch("raster_service.pipeline.render_page", side_effect=fake_render):
            convert_document(_request(build_pdf(*[(50, 50)] * 4)), InlinePackager())

        assert calls == [1, 2, 3, 4]

    def test_document_closed_on_success_and_failure(self):
        """Test that the document is closed on every path."""
        doc = MagicMock(page_count=1)
        with patch("raster_service.pipeline.open_document", return_value=doc), \
                patch("raster_service.pipeline.render_page", side_effect=PageRenderError(1, "x")):
            with pytest.raises(PageRenderError):
                convert_document(_request(b"%PDF"), InlinePackager())
        doc.close.assert_called_once()

        doc = MagicMock(page_count=0)
        with patch("raster_service.pipeline.open_document", return_value=doc):
            result = convert_document(_request(b"%PDF"), InlinePackager())
        assert result.page_count == 0
        assert result.payload == []
        doc.close.assert_called_once()

    def test_zero_page_document_yields_empty_archive(self):
        """Test the zero-page boundary in archive mode."""
        with patch("raster_service.pipeline.open_document", return_value=MagicMock(page_count=0)):
            result = convert_document(_request(b"%PDF"), ArchivePackager())

        with zipfile.ZipFile(io.BytesIO(result.payload)) as archive:
            assert archive.namelist() == []
