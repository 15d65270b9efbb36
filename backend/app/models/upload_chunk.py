"""Pydantic models for chunked upload requests."""

from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, Field


class SlicingSettings(BaseModel):
    """
    Slicer options supplied with the first chunk of a slice upload.

    Absent options fall back to the engine defaults.
    """

    printer: Optional[str] = Field(None, description="Printer profile name")
    preset: Optional[str] = Field(None, description="Process profile name")
    filament: Optional[str] = Field(None, description="Filament profile name")
    bed_type: Optional[str] = Field(None, alias="bedType", description="Bed type passed to the engine")
    plate: str = Field("1", description="Plate index to slice")
    multicolor_one_plate: Optional[bool] = Field(
        None,
        alias="multicolorOnePlate",
        description="Allow multiple colours on a single plate",
    )
    arrange: Optional[bool] = Field(None, description="Auto-arrange objects (omitted when unset)")
    orient: Optional[bool] = Field(None, description="Auto-orient objects (omitted when unset)")
    export_type: Literal["gcode", "3mf"] = Field(
        "gcode",
        alias="exportType",
        description="Output format produced by the engine",
    )

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
        "json_schema_extra": {
            "examples": [
                {
                    "printer": "X1C",
                    "preset": "standard020",
                    "filament": "plaBasic",
                    "bedType": "Textured PEI Plate",
                    "plate": "1",
                    "arrange": True,
                    "orient": False,
                    "exportType": "gcode",
                }
            ]
        },
    }


class UploadChunk(BaseModel):
    """
    Request body for POST /upload and POST /slice.

    Attributes:
        id: Caller-supplied upload identifier, unique per logical upload
        chunk_index: Zero-based chunk index (accepts legacy ``currentChunk``)
        total_chunks: Declared number of chunks for the upload
        filetype: Model file type tag (stl, 3mf, ...)
        data: Base64-encoded chunk bytes
        settings: Slicing options, honoured on the first chunk only
    """

    id: str = Field(..., description="Upload session identifier")
    chunk_index: int = Field(
        ...,
        validation_alias=AliasChoices("chunkIndex", "currentChunk"),
        description="Zero-based chunk index",
    )
    total_chunks: int = Field(
        ...,
        validation_alias=AliasChoices("totalChunks", "total_chunks"),
        description="Total number of chunks",
    )
    filetype: str = Field(..., description="File type tag")
    data: str = Field(..., description="Base64-encoded chunk data")
    settings: Optional[SlicingSettings] = Field(None, description="Slicing settings")

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "examples": [
                {
                    "id": "550e8400-e29b-41d4-a716-446655440000",
                    "chunkIndex": 0,
                    "totalChunks": 2,
                    "filetype": "stl",
                    "data": "c29saWQgY3ViZQ==",
                }
            ]
        },
    }
