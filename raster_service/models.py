"""
Data models for the raster service.

Dataclasses carry values through the conversion pipeline; Pydantic
models define the JSON bodies the API returns.
"""

import base64
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# ============================================================================
# Pipeline Values
# ============================================================================

@dataclass(frozen=True)
class ConversionRequest:
    """Document bytes and the scale to render them at."""

    data: bytes
    scale: float
    filename: str = "document.pdf"


@dataclass(frozen=True)
class Viewport:
    """Pixel dimensions of one page at one scale."""

    width: int
    height: int
    scale: float


@dataclass(frozen=True)
class RenderedImage:
    """A rendered page encoded as PNG, tagged by its 1-based page number."""

    page_number: int
    width: int
    height: int
    png: bytes

    @property
    def archive_name(self) -> str:
        return f"page_{self.page_number:03d}.png"

    @property
    def data_url(self) -> str:
        payload = base64.b64encode(self.png).decode("ascii")
        return f"data:image/png;base64,{payload}"


# ============================================================================
# Request/Response Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    timestamp: datetime
    active_conversions: int
    max_concurrent: int
    output_mode: str
    renderer_ready: bool = True
    renderer_version: Optional[str] = None
    renderer_error: Optional[str] = None


class ConvertResponse(BaseModel):
    """Inline conversion result: one data URL per page, in page order."""
    success: bool = True
    images: List[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Structured error body returned for every failure."""
    success: bool = False
    error: str
    message: str
