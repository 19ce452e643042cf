"""
Raster Service Configuration Module

Centralized configuration management with Pydantic validation.
All environment variables are validated at startup to catch misconfigurations early.
"""

import logging
import tempfile
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

OUTPUT_MODES = ("archive", "inline")
UPLOAD_STORAGES = ("memory", "disk")


class RasterSettings(BaseSettings):
    """
    Raster service configuration with validation.

    All settings can be overridden via environment variables.
    Validation happens at startup to fail fast on misconfiguration.
    """

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    # === Output ===
    output_mode: str = Field(
        default="archive",
        description="Response packaging: 'archive' (zip download) or 'inline' (JSON data URLs)"
    )
    archive_filename: str = Field(
        default="converted_images.zip",
        min_length=1,
        description="Filename offered in the Content-Disposition header"
    )

    # === Upload ===
    upload_storage: str = Field(
        default="memory",
        description="Where uploads are staged: 'memory' or 'disk'"
    )
    upload_field_name: str = Field(
        default="pdfFile",
        min_length=1,
        description="Multipart field carrying the document"
    )
    upload_temp_dir: Optional[str] = Field(
        default=None,
        description="Directory for disk-staged uploads (system temp dir if unset)"
    )

    # === Rendering ===
    default_scale: float = Field(
        default=1.5,
        gt=0,
        le=10,
        description="Scale used when the request omits a valid one"
    )
    max_concurrent_conversions: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum conversions in flight before new ones are rejected (1-50)"
    )

    # === HTTP ===
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins ('*' for any)"
    )
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3001, ge=1, le=65535, description="Bind port")
    log_level: str = Field(default="INFO", description="Root log level")

    @field_validator("output_mode")
    @classmethod
    def validate_output_mode(cls, v: str) -> str:
        """Validate output mode is a known packager."""
        v_lower = v.lower()
        if v_lower not in OUTPUT_MODES:
            raise ValueError(f"output_mode must be one of: {', '.join(OUTPUT_MODES)}")
        return v_lower

    @field_validator("upload_storage")
    @classmethod
    def validate_upload_storage(cls, v: str) -> str:
        """Validate upload storage is a known strategy."""
        v_lower = v.lower()
        if v_lower not in UPLOAD_STORAGES:
            raise ValueError(f"upload_storage must be one of: {', '.join(UPLOAD_STORAGES)}")
        return v_lower

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v_upper = v.upper()
        if v_upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return v_upper

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if not self.cors_origins:
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def temp_dir(self) -> str:
        """Directory used for disk-staged uploads."""
        return self.upload_temp_dir or tempfile.gettempdir()


@lru_cache()
def get_settings() -> RasterSettings:
    """
    Get cached settings instance.

    Settings are loaded once and cached for performance.
    Use this function to access configuration throughout the app.
    """
    return RasterSettings()


def validate_config_on_startup(settings: Optional[RasterSettings] = None) -> RasterSettings:
    """
    Validate configuration at application startup.

    Raises ValueError with details if config is invalid.
    """
    try:
        settings = settings or get_settings()
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")

    logger.info(f"Configuration loaded: output_mode={settings.output_mode}")
    logger.info(f"  upload_storage={settings.upload_storage} (field={settings.upload_field_name})")
    logger.info(f"  default_scale={settings.default_scale}")
    logger.info(f"  max_concurrent_conversions={settings.max_concurrent_conversions}")
    logger.info(f"  cors_origins={settings.cors_origins_list or 'disabled'}")
    return settings
