"""
Error taxonomy for the conversion pipeline.

Each error carries the machine-readable kind and HTTP status the
transport layer reports; the message is what the caller sees.
"""


class ConversionError(Exception):
    """Base exception for conversion failures."""

    error = "conversion_error"
    status_code = 500
    stage = "convert"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingFileError(ConversionError):
    """Raised when the request carries no document upload."""

    error = "missing_file"
    status_code = 400
    stage = "upload"


class ServiceOverloadedError(ConversionError):
    """Raised when too many conversions are already in flight."""

    error = "service_overloaded"
    status_code = 503
    stage = "admission"


class DocumentParseError(ConversionError):
    """Raised when the uploaded bytes cannot be opened as a PDF."""

    error = "document_parse_error"
    stage = "load"


class PageRenderError(ConversionError):
    """Raised when a single page fails to rasterize."""

    error = "page_render_error"
    stage = "render"

    def __init__(self, page_number: int, message: str):
        super().__init__(f"Failed to render page {page_number}: {message}")
        self.page_number = page_number


class PackagingError(ConversionError):
    """Raised when the output archive cannot be built."""

    error = "packaging_error"
    stage = "package"


class MultipleFilesError(ConversionError):
    """Raised when more than one document arrives under the upload field."""

    error = "multiple_files"
    status_code = 400
    stage = "upload"


class UploadStagingError(ConversionError):
    """Raised when an upload cannot be staged on disk."""

    error = "upload_staging_error"
    stage = "upload"
