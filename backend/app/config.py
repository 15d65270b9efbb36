"""
Application configuration using Pydantic Settings.

All environment variables are accessed through this config object.
Never use os.getenv() directly in business logic.
"""

import tempfile
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application Configuration
    ENV: str = Field(
        default="production",
        description="Deployment environment (development or production)",
    )
    PORT: int = Field(
        default=3000,
        description="Port the API listens on, used for development links",
    )
    PUBLIC_BASE_URL: str = Field(
        default="http://localhost:3000",
        description="Public base URL used when issuing download links",
    )
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:3000"],
        description="CORS allowed origins",
    )
    DEBUG_LOGGING: bool = Field(
        default=False,
        description="Enable verbose debug logging",
    )

    # Storage Configuration
    UPLOAD_DIR: str = Field(
        default="uploads",
        description="Directory holding assembled models and generated artifacts",
    )
    DATA_PATH: str = Field(
        default="data",
        description="Directory holding uploaded printer/preset/filament profiles",
    )
    PROCESS_PROFILES_FOLDER: Optional[str] = Field(
        default=None,
        description="Shared default process (preset) profile directory",
    )
    MACHINE_PROFILES_FOLDER: Optional[str] = Field(
        default=None,
        description="Shared default printer profile directory",
    )
    FILAMENT_PROFILES_FOLDER: Optional[str] = Field(
        default=None,
        description="Shared default filament profile directory",
    )

    # Download links
    DOWNLOAD_SECRET: Optional[str] = Field(
        default=None,
        description="HMAC secret for signed download links",
    )

    # Slicer Configuration
    ORCASLICER_PATH: Optional[str] = Field(
        default=None,
        description="Path to the slicer executable",
    )
    SLICE_TIMEOUT: int = Field(
        default=300,
        description="Maximum slicing time in seconds",
    )
    SLICE_WORKDIR: str = Field(
        default=str(Path(tempfile.gettempdir()) / "slicer-workdirs"),
        description="Dedicated parent of per-job slice-* working directories, swept by housekeeping",
    )
    DELETE_ARTIFACTS_ON_FAILURE: bool = Field(
        default=False,
        description="Delete the persisted model and generated profiles when a slice job fails",
    )

    # Pricing collaborator
    PRICING_API_URL: Optional[str] = Field(
        default=None,
        description="Endpoint that prices sliced jobs (disabled when unset)",
    )
    PRICING_API_KEY: Optional[str] = Field(
        default=None,
        description="Bearer token for the pricing endpoint",
    )
    PRICING_TIMEOUT: float = Field(
        default=10.0,
        description="Pricing request timeout in seconds",
    )

    # Housekeeping
    SESSION_TTL_HOURS: int = Field(
        default=24,
        description="Idle upload sessions and orphaned working directories older than this are swept",
    )
    CLEANUP_INTERVAL_HOURS: int = Field(
        default=1,
        description="Interval between housekeeping sweeps",
    )


# Global settings instance
settings = Settings()
