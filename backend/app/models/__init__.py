"""Pydantic models for API request/response schemas."""

from .upload_chunk import SlicingSettings, UploadChunk
from .gcode_metadata import FilamentInfo, GcodeMetadata, SliceTimes
from .slice_response import ChunkProgress, ErrorResponse, SliceCompletion, UploadCompletion

__all__ = [
    "SlicingSettings",
    "UploadChunk",
    "FilamentInfo",
    "GcodeMetadata",
    "SliceTimes",
    "ChunkProgress",
    "ErrorResponse",
    "SliceCompletion",
    "UploadCompletion",
]
