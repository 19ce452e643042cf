"""
Raster Service - FastAPI application for PDF page rasterization.

Accepts a PDF upload and returns every page as a PNG, either bundled in a
zip download or inline as base64 data URLs, depending on OUTPUT_MODE.
"""

import asyncio
import logging
from datetime import datetime
from io import BytesIO
from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse
from starlette.datastructures import Headers
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import RasterSettings, get_settings, validate_config_on_startup
from .errors import ConversionError, ServiceOverloadedError
from .models import ConvertResponse, ErrorResponse, HealthResponse
from .packaging import get_packager
from .pipeline import convert_document
from .rendering import RENDERER_VERSION, validate_renderer
from .uploads import receive_upload

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

CONVERT_PATH = "/api/convert"
HEALTH_MESSAGE = "PDF to Image Backend is running!"

HTTP_ERROR_KINDS = {
    404: "not_found",
    405: "method_not_allowed",
}


class PreflightCORSMiddleware(CORSMiddleware):
    """CORSMiddleware whose pre-flight replies carry no body."""

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers)
        headers = {
            key: value
            for key, value in response.headers.items()
            if key not in ("content-length", "content-type")
        }
        return Response(status_code=response.status_code, headers=headers)


def _error_response(
    status_code: int,
    error: str,
    message: str,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body = ErrorResponse(error=error, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def create_app(settings: Optional[RasterSettings] = None) -> FastAPI:
    """
    Build the FastAPI application for *settings* (environment settings by default).
    """
    settings = validate_config_on_startup(settings)
    logging.getLogger().setLevel(settings.log_level)

    app = FastAPI(
        title="Raster Service",
        version=__version__,
        description="Rasterizes uploaded PDF pages to PNG images using PyMuPDF"
    )
    app.state.settings = settings
    # Semaphore for rate limiting
    app.state.conversion_semaphore = asyncio.Semaphore(settings.max_concurrent_conversions)
    # Renderer readiness state
    app.state.renderer_ready = False
    app.state.renderer_error = "Renderer has not been validated yet"

    origins = settings.cors_origins_list
    if origins:
        app.add_middleware(
            PreflightCORSMiddleware,
            allow_origins=origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    if "*" in origins:
        # Registered after CORS so it wraps every response, with or without Origin
        @app.middleware("http")
        async def allow_any_origin(request: Request, call_next):
            response = await call_next(request)
            response.headers.setdefault("Access-Control-Allow-Origin", "*")
            return response

    # ========================================================================
    # Startup Event - Validate PyMuPDF
    # ========================================================================

    @app.on_event("startup")
    async def validate_renderer_on_startup():
        """
        Validate PyMuPDF can rasterize a page on startup.

        This ensures the service won't report as healthy if it can't
        actually render documents.
        """
        logger.info(f"Raster service starting - validating {RENDERER_VERSION}...")
        ready, error = await asyncio.to_thread(validate_renderer)
        app.state.renderer_ready = ready
        app.state.renderer_error = error
        if ready:
            logger.info("✅ Renderer validation successful")
        else:
            logger.error(f"❌ Renderer validation failed: {error}")
            logger.error("Conversions will not work until this is resolved.")

    # ========================================================================
    # Error Handlers
    # ========================================================================

    @app.exception_handler(ConversionError)
    async def conversion_error_handler(request: Request, exc: ConversionError):
        if exc.status_code >= 500:
            logger.error(f"Conversion failed at stage '{exc.stage}' ({exc.error}): {exc.message}")
        else:
            logger.warning(f"Rejected request at stage '{exc.stage}' ({exc.error}): {exc.message}")
        return _error_response(exc.status_code, exc.error, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        kind = HTTP_ERROR_KINDS.get(exc.status_code, "http_error")
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code} ({kind})")
        return _error_response(exc.status_code, kind, str(exc.detail), headers=exc.headers)

    # ========================================================================
    # Health Check Endpoints
    # ========================================================================

    if settings.output_mode == "archive":
        @app.get("/", response_class=PlainTextResponse)
        async def root() -> str:
            """Plain liveness probe."""
            return HEALTH_MESSAGE

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """
        Health check endpoint for container orchestration.

        Returns HTTP 503 if renderer validation failed on startup.
        """
        semaphore = app.state.conversion_semaphore
        health = HealthResponse(
            status="healthy" if app.state.renderer_ready else "unhealthy",
            timestamp=datetime.utcnow(),
            active_conversions=settings.max_concurrent_conversions - semaphore._value,
            max_concurrent=settings.max_concurrent_conversions,
            output_mode=settings.output_mode,
            renderer_ready=app.state.renderer_ready,
            renderer_version=RENDERER_VERSION,
            renderer_error=app.state.renderer_error,
        )
        if not app.state.renderer_ready:
            return JSONResponse(status_code=503, content=jsonable_encoder(health))
        return health

    # ========================================================================
    # Conversion Endpoint
    # ========================================================================

    @app.post(CONVERT_PATH, response_model=None)
    async def convert(request: Request):
        """
        Rasterize every page of the uploaded PDF.

        Multipart fields: the document under ``settings.upload_field_name``
        and an optional numeric ``scale``.

        Returns:
            Zip download (archive mode) or ConvertResponse (inline mode)

        Raises:
            ConversionError: 400 missing file, 503 overload, 500 conversion failures
        """
        semaphore = app.state.conversion_semaphore
        if semaphore.locked():
            logger.warning("Raster service overloaded, rejecting request")
            raise ServiceOverloadedError("Service overloaded. Too many concurrent conversions.")

        async with semaphore:
            try:
                conversion = await receive_upload(request, settings)
                packager = get_packager(settings.output_mode)
                result = await asyncio.to_thread(convert_document, conversion, packager)
            except (ConversionError, StarletteHTTPException):
                raise
            except Exception as e:
                logger.exception("Unexpected failure during conversion")
                raise ConversionError(f"Failed to convert PDF: {e}") from e

        if settings.output_mode == "archive":
            return StreamingResponse(
                BytesIO(result.payload),
                media_type="application/zip",
                headers={
                    "Content-Disposition": f'attachment; filename="{settings.archive_filename}"'
                }
            )
        return ConvertResponse(success=True, images=result.payload)

    @app.options(CONVERT_PATH)
    async def convert_preflight() -> Response:
        """Answer a plain OPTIONS probe with an empty 200."""
        headers = {
            "Access-Control-Allow-Methods": "POST, OPTIONS",
            "Access-Control-Allow-Headers": "*",
        }
        if "*" in origins:
            headers["Access-Control-Allow-Origin"] = "*"
        return Response(status_code=200, headers=headers)

    return app


app = create_app(get_settings())
