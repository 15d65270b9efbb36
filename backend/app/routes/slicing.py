"""
Slice endpoints for chunked upload-and-slice and session deletion.

Provides POST /slice for chunk submission (slicing runs on the chunk that
completes the upload) and DELETE /slice/{upload_id} for cancelling a session.
"""

import logging
from typing import Union

from fastapi import APIRouter, Depends, Response

from app.middleware.error_handler import NotFoundError
from app.models import ChunkProgress, ErrorResponse, SliceCompletion, UploadChunk
from app.services.service_factory import get_orchestrator
from app.services.slicing_orchestrator import SlicingOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/slice",
    response_model=Union[ChunkProgress, SliceCompletion],
    response_model_exclude_none=True,
    summary="Upload and Slice Chunk",
    description="""
Submit one base64-encoded chunk of a model to be sliced.

**Workflow:** chunk 0..n-1 → the final chunk assembles, slices and returns links

**Constraints:**
- **Supported Formats:** stl, 3mf
- Slicing settings are taken from the first chunk of a session only
- Chunks may arrive in any order; the file is assembled by index

**Response:** `{received, total, complete:false}` for every non-final chunk,
the completion payload with signed `modelUrl`/`gcodeUrl`, times and filament
usage for the final one.
""",
    responses={
        200: {"description": "Chunk accepted or slicing complete"},
        400: {"description": "Invalid chunk data or file type", "model": ErrorResponse},
        404: {"description": "Profile not found", "model": ErrorResponse},
        500: {"description": "Slicing failed", "model": ErrorResponse},
        502: {"description": "Pricing service failed", "model": ErrorResponse},
    },
)
async def slice_chunk(
    chunk: UploadChunk,
    orchestrator: SlicingOrchestrator = Depends(get_orchestrator),
) -> Union[ChunkProgress, SliceCompletion]:
    logger.info(f"Received slice chunk {chunk.chunk_index}/{chunk.total_chunks} for ID {chunk.id}")
    return await orchestrator.submit_chunk(chunk)


@router.delete(
    "/slice/{upload_id}",
    status_code=204,
    summary="Delete Slice Session",
    description="Drop an in-flight upload session and its persisted artifacts.",
    responses={
        204: {"description": "Session deleted"},
        404: {"description": "Upload session not found", "model": ErrorResponse},
    },
)
async def delete_slice_session(
    upload_id: str,
    orchestrator: SlicingOrchestrator = Depends(get_orchestrator),
) -> Response:
    if not orchestrator.delete_session(upload_id):
        logger.warning(f"Delete requested for unknown session: {upload_id}")
        raise NotFoundError("Upload session not found", details={"id": upload_id})

    return Response(status_code=204)
