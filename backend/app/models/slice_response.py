"""
Chunk upload and slicing response models.

Progress responses never carry error information; terminal responses are
either a completion payload or an error body.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from .gcode_metadata import FilamentInfo, SliceTimes


class ChunkProgress(BaseModel):
    """Returned for every chunk that does not complete its session."""

    received: int = Field(..., description="Distinct chunks received so far")
    total: int = Field(..., description="Declared total chunk count")
    complete: Literal[False] = False


class UploadCompletion(BaseModel):
    """Returned by POST /upload once every chunk has arrived."""

    id: str
    filename: str = Field(..., description="Stored artifact filename")
    size: int = Field(..., description="Assembled file size in bytes")
    filetype: str
    url: str = Field(..., description="Signed download link")
    complete: Literal[True] = True


class SliceCompletion(BaseModel):
    """
    Returned by POST /slice once the model is assembled, sliced and priced.

    Both artifacts are served through permanent signed links.
    """

    id: str
    modelFilename: str
    gcodeFilename: str
    modelSize: int
    gcodeSize: int
    modelUrl: str
    gcodeUrl: str
    complete: Literal[True] = True
    times: SliceTimes
    filament: FilamentInfo
    price: Optional[float] = Field(None, description="Price from the pricing collaborator")

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "abc",
                "modelFilename": "abc-model.stl",
                "gcodeFilename": "abc-gcode-plate_1.gcode",
                "modelSize": 684,
                "gcodeSize": 120544,
                "modelUrl": "https://api.example.com/file/abc-model.stl?s=9f2c...",
                "gcodeUrl": "https://api.example.com/file/abc-gcode-plate_1.gcode?s=41ab...",
                "complete": True,
                "times": {"model": "1h 2m 3s", "total": "1h 5m 10s"},
                "filament": {"used_mm": "1234.56", "used_g": "3.71"},
            }
        }
    }


class ErrorResponse(BaseModel):
    """Error body shared by every endpoint."""

    error: str = Field(..., description="Stable error kind")
    message: Optional[str] = Field(None, description="Human-readable error message")
    details: Optional[dict] = Field(None, description="Diagnostic detail")
