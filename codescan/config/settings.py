"""
==============================================================================
Application Settings Module
==============================================================================

Production-grade configuration management using Pydantic Settings.

This module implements the Singleton pattern to ensure a single global
configuration instance throughout the application lifecycle.

Features:
---------
- Environment variable loading with type validation
- .env file support for local development
- Camera device mapping per facing mode
- Stream decoder engine options

Configuration Priority (highest to lowest):
------------------------------------------
1. Environment variables
2. .env file
3. Default values

==============================================================================
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import List, Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from codescan.schemas.scan import (
    FacingMode,
    LinearSymbology,
    LocatorPrecision,
    StreamEngineConfig,
)


# Module logger
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_name: Display name for the application
        app_env: Environment mode (development/staging/production)
        debug: Enable debug mode for verbose logging
        host: Server bind address
        port: Server port number
        cors_origins: Allowed CORS origins (JSON array string)
        front_camera: Device index, file path or URL of the front camera
        back_camera: Device index, file path or URL of the back camera
        default_facing: Facing mode selected at startup
        frame_width: Pixel buffer width used by the frame sampler
        frame_height: Pixel buffer height used by the frame sampler
        refresh_rate_hz: Sampler tick rate (one decode attempt per frame)
        stream_readers: Comma-separated linear barcode readers
        worker_count: Stream decoder worker threads
        sample_frequency: Max frames per second analyzed by the stream engine
        locator_precision: Locate stage granularity
        half_sampling: Locate on a half-resolution image
        locate: Run the locate stage (False decodes the whole frame)
        frame_wait_seconds: Max wait for a new frame before re-checking stop
        join_timeout_seconds: Max wait when joining threads on teardown
        capture_format: Still capture image format (png/jpeg)
        capture_quality: JPEG quality for still captures
        mirror_front: Mirror front-camera still captures

    Example:
        >>> settings = Settings()
        >>> settings.engine_config(FacingMode.BACK).worker_count
        4
    """

    # =========================================================================
    # PYDANTIC SETTINGS CONFIGURATION
    # =========================================================================
    model_config = SettingsConfigDict(
        # Load from .env file if present
        env_file=".env",
        env_file_encoding="utf-8",
        # Environment variables are case-insensitive
        case_sensitive=False,
        # Ignore extra environment variables
        extra="ignore",
        # Validate default values
        validate_default=True,
    )

    # =========================================================================
    # APPLICATION SETTINGS
    # =========================================================================
    app_name: str = Field(
        default="Code Scanner",
        description="Display name for the application"
    )

    app_env: str = Field(
        default="development",
        description="Environment mode: development, staging, production"
    )

    debug: bool = Field(
        default=True,
        description="Enable debug mode for verbose logging"
    )

    # =========================================================================
    # SERVER SETTINGS
    # =========================================================================
    host: str = Field(
        default="0.0.0.0",
        description="Server bind address"
    )

    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Server port number"
    )

    cors_origins: str = Field(
        default='["*"]',
        description="Allowed CORS origins as JSON array string"
    )

    # =========================================================================
    # CAMERA SETTINGS
    # =========================================================================
    front_camera: str = Field(
        default="0",
        description="Front camera device index, file path or stream URL"
    )

    back_camera: str = Field(
        default="1",
        description="Back camera device index, file path or stream URL"
    )

    default_facing: FacingMode = Field(
        default=FacingMode.FRONT,
        description="Facing mode selected at startup"
    )

    # =========================================================================
    # FRAME SAMPLER SETTINGS
    # =========================================================================
    frame_width: int = Field(
        default=640,
        ge=16,
        le=4096,
        description="Sampler pixel buffer width"
    )

    frame_height: int = Field(
        default=480,
        ge=16,
        le=4096,
        description="Sampler pixel buffer height"
    )

    refresh_rate_hz: float = Field(
        default=60.0,
        gt=0,
        le=240,
        description="Sampler ticks per second"
    )

    # =========================================================================
    # STREAM DECODER ENGINE SETTINGS
    # =========================================================================
    stream_readers: str = Field(
        default="code_128,ean_13,ean_8,code_39,upc_a,code_93,i2of5",
        description="Comma-separated linear barcode readers"
    )

    worker_count: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Stream decoder worker threads"
    )

    sample_frequency: int = Field(
        default=10,
        ge=1,
        le=120,
        description="Max frames per second analyzed by the stream engine"
    )

    locator_precision: LocatorPrecision = Field(
        default=LocatorPrecision.MEDIUM,
        description="Locate stage granularity"
    )

    half_sampling: bool = Field(
        default=True,
        description="Locate on a half-resolution image"
    )

    locate: bool = Field(
        default=True,
        description="Run the locate stage before decoding"
    )

    frame_wait_seconds: float = Field(
        default=0.5,
        gt=0,
        le=10,
        description="Max wait for a new frame before re-checking stop"
    )

    join_timeout_seconds: float = Field(
        default=2.0,
        gt=0,
        le=30,
        description="Max wait when joining threads on teardown"
    )

    # =========================================================================
    # STILL CAPTURE SETTINGS
    # =========================================================================
    capture_format: str = Field(
        default="png",
        description="Still capture image format: png or jpeg"
    )

    capture_quality: int = Field(
        default=100,
        ge=1,
        le=100,
        description="JPEG quality for still captures"
    )

    mirror_front: bool = Field(
        default=True,
        description="Mirror front-camera still captures"
    )

    # =========================================================================
    # VALIDATORS
    # =========================================================================
    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, value: str) -> str:
        """
        Validate and normalize application environment.

        Args:
            value: Raw environment value

        Returns:
            Lowercase normalized environment name
        """
        valid_envs = {"development", "staging", "production"}
        normalized = value.lower().strip()

        if normalized not in valid_envs:
            logger.warning(
                f"Unknown environment '{value}', defaulting to 'development'"
            )
            return "development"

        return normalized

    @field_validator("stream_readers")
    @classmethod
    def validate_stream_readers(cls, value: str) -> str:
        """
        Validate reader names against the supported symbologies.

        Raises:
            ValueError: If a reader is unknown or the list is empty
        """
        supported = {reader.value for reader in LinearSymbology}
        names = [
            name.strip().lower().removesuffix("_reader")
            for name in value.split(",")
            if name.strip()
        ]

        if not names:
            raise ValueError("At least one stream reader is required")

        unknown = [name for name in names if name not in supported]
        if unknown:
            raise ValueError(
                f"Unsupported stream readers: {', '.join(unknown)}. "
                f"Supported: {', '.join(sorted(supported))}"
            )

        return ",".join(names)

    @field_validator("capture_format")
    @classmethod
    def validate_capture_format(cls, value: str) -> str:
        """Normalize the capture format ("jpg" is accepted for "jpeg")."""
        normalized = value.lower().strip().lstrip(".")
        if normalized == "jpg":
            normalized = "jpeg"
        if normalized not in {"png", "jpeg"}:
            raise ValueError(f"Unsupported capture format: {value}")
        return normalized

    # =========================================================================
    # COMPUTED PROPERTIES
    # =========================================================================
    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Parse CORS origins from JSON string to list.

        Returns:
            List of allowed origin strings
        """
        try:
            origins = json.loads(self.cors_origins)
            if isinstance(origins, list):
                return origins
            return ["*"]
        except json.JSONDecodeError:
            logger.warning(
                f"Invalid CORS origins JSON: {self.cors_origins}, "
                "defaulting to ['*']"
            )
            return ["*"]

    @property
    def stream_reader_list(self) -> List[LinearSymbology]:
        """Configured stream readers as enum members."""
        return [LinearSymbology(name) for name in self.stream_readers.split(",")]

    # =========================================================================
    # UTILITY METHODS
    # =========================================================================
    def device_for(self, facing: FacingMode) -> Union[int, str]:
        """
        Resolve the capture device for a facing mode.

        Numeric values are returned as ints (camera index); anything else is
        passed through as a file path or URL.

        Args:
            facing: Requested facing mode

        Returns:
            Value accepted by ``cv2.VideoCapture``
        """
        raw = self.front_camera if facing == FacingMode.FRONT else self.back_camera
        raw = raw.strip()
        return int(raw) if raw.isdigit() else raw

    def engine_config(self, facing: Optional[FacingMode] = None) -> StreamEngineConfig:
        """
        Build the stream decoder engine configuration.

        Args:
            facing: Facing mode of the stream (defaults to ``default_facing``)

        Returns:
            Frozen StreamEngineConfig
        """
        return StreamEngineConfig(
            readers=frozenset(self.stream_reader_list),
            worker_count=self.worker_count,
            sample_frequency=self.sample_frequency,
            facing_mode=facing or self.default_facing,
            locator_precision=self.locator_precision,
            half_sampling=self.half_sampling,
            locate=self.locate,
        )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"Settings(app_name={self.app_name!r}, "
            f"app_env={self.app_env!r}, "
            f"debug={self.debug}, "
            f"workers={self.worker_count})"
        )


# =============================================================================
# SINGLETON INSTANCE MANAGEMENT
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the global Settings instance (singleton pattern).

    Uses lru_cache to ensure only one Settings instance is created
    throughout the application lifecycle.

    Returns:
        Global Settings instance
    """
    settings = Settings()

    if settings.debug:
        logger.info(f"Configuration loaded: {settings}")

    return settings
