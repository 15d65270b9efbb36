"""
Upload API Route

Handles plain chunked uploads that are stored without slicing.
"""

import asyncio
import logging
from typing import Union

from fastapi import APIRouter, Depends

from app.models import ChunkProgress, ErrorResponse, UploadChunk, UploadCompletion
from app.services.file_storage import FileStorageManager
from app.services.service_factory import get_link_signer, get_storage, get_upload_sessions
from app.services.upload_sessions import UploadSessionManager
from link_signing import LinkSigner

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/upload",
    response_model=Union[ChunkProgress, UploadCompletion],
    summary="Upload Model Chunk",
    description="""
Upload one base64-encoded chunk of a 3D model.

**Supported Formats:** stl, step, stp, 3mf

**Response:** Progress for every non-final chunk; the stored filename, size and
a signed download `url` once all chunks have arrived.
""",
    responses={
        200: {"description": "Chunk accepted or upload complete"},
        400: {"description": "Invalid chunk data or file type", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
)
async def upload_chunk(
    chunk: UploadChunk,
    sessions: UploadSessionManager = Depends(get_upload_sessions),
    storage: FileStorageManager = Depends(get_storage),
    signer: LinkSigner = Depends(get_link_signer),
) -> Union[ChunkProgress, UploadCompletion]:
    """
    Accumulate a chunk and store the file once complete.

    Raises:
        ServiceError: For invalid chunks or a missing download secret
        OSError: If the assembled file cannot be written
    """
    logger.info(f"Received chunk {chunk.chunk_index}/{chunk.total_chunks} for ID {chunk.id}")

    result = sessions.submit_chunk(
        chunk.id,
        chunk.chunk_index,
        chunk.total_chunks,
        chunk.filetype,
        chunk.data,
    )
    if isinstance(result, ChunkProgress):
        return result

    session = result.session
    file_path = None
    try:
        file_path = await asyncio.get_event_loop().run_in_executor(
            None, storage.save_upload, session.id, session.filetype, result.data
        )
        url = signer.sign(file_path.name)
    except Exception:
        logger.exception(f"Error assembling file for {session.id}")
        if file_path is not None:
            storage.delete_files([file_path])
        raise
    finally:
        sessions.discard(session.id, session)

    logger.info(f"File assembled and saved as {file_path.name}")
    return UploadCompletion(
        id=session.id,
        filename=file_path.name,
        size=len(result.data),
        filetype=session.filetype,
        url=url,
    )
