"""Pydantic models for metadata scraped from slicer output."""

from typing import Optional

from pydantic import BaseModel, Field


class SliceTimes(BaseModel):
    """Print-time estimates as emitted by the engine (e.g. '1h 23m 45s')."""

    model: str = Field(..., description="Model printing time")
    total: str = Field(..., description="Total estimated time")


class FilamentInfo(BaseModel):
    """Filament usage as emitted by the engine. Values are unparsed strings."""

    used_mm: Optional[str] = None
    used_cm3: Optional[str] = None
    used_g: Optional[str] = None
    cost: Optional[str] = None


class GcodeMetadata(BaseModel):
    """Times and filament usage extracted from a single output file."""

    times: SliceTimes
    filament: FilamentInfo = Field(default_factory=FilamentInfo)
