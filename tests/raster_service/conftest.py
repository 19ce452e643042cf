"""
Pytest fixtures for raster service tests.
"""

import os
import struct

# IMPORTANT: Set environment variables BEFORE any imports from raster_service
# so the module-level app is built from known settings.
os.environ["OUTPUT_MODE"] = "archive"
os.environ["UPLOAD_STORAGE"] = "memory"
os.environ["CORS_ORIGINS"] = "*"
os.environ["LOG_LEVEL"] = "INFO"

import fitz
import pytest
from fastapi.testclient import TestClient

from raster_service.app import create_app
from raster_service.config import RasterSettings


def build_pdf(*sizes):
    """Build an in-memory PDF with one page per (width, height) in points."""
    doc = fitz.open()
    for width, height in sizes:
        page = doc.new_page(width=width, height=height)
        page.insert_text((10, 20), f"Page {doc.page_count}")
    data = doc.tobytes()
    doc.close()
    return data


def png_size(png):
    """Read (width, height) from a PNG IHDR chunk."""
    assert png[:8] == b"\x89PNG\r\n\x1a\n"
    return struct.unpack(">II", png[16:24])


def make_client(**overrides):
    """Create a test client with the renderer marked as ready."""
    app = create_app(RasterSettings(**overrides))
    app.state.renderer_ready = True
    app.state.renderer_error = None
    return TestClient(app)


@pytest.fixture
def three_page_pdf():
    return build_pdf((200, 100), (300, 150), (100, 100))


@pytest.fixture
def one_page_pdf():
    return build_pdf((200, 100))


@pytest.fixture
def archive_client():
    """Client for a service that answers with zip archives."""
    return make_client(output_mode="archive")


@pytest.fixture
def inline_client():
    """Client for a service that answers with inline data URLs."""
    return make_client(output_mode="inline")


@pytest.fixture
def disk_client(tmp_path):
    """Client that stages uploads on disk under tmp_path."""
    return make_client(output_mode="inline", upload_storage="disk", upload_temp_dir=str(tmp_path))
