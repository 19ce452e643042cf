"""
Raster Service - Dedicated service for PDF page rasterization.

This service accepts a PDF upload and renders every page to PNG using
PyMuPDF, returning a zip archive or inline base64 data URLs.
"""

__version__ = "0.1.0"
