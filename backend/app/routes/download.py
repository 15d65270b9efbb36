"""
Download endpoint for retrieving signed artifacts.

Provides GET /file/{filename}?s=<signature> for models and slicer output.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse

from app.models import ErrorResponse
from app.services.service_factory import get_link_signer
from link_signing import LinkSigner

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/file/{filename:path}",
    summary="Download Signed Artifact",
    description="""
Download a stored model or slicer output through a signed link.

**Security:** The signature is an HMAC over the filename, compared in
constant time. Paths resolving outside the upload directory are rejected
even with a valid signature. Links do not expire.
""",
    responses={
        200: {"description": "File download successful"},
        400: {"description": "Incomplete link or path outside the upload directory", "model": ErrorResponse},
        403: {"description": "Invalid signature", "model": ErrorResponse},
        404: {"description": "File not found", "model": ErrorResponse},
    },
)
async def download_file(
    filename: str,
    s: Optional[str] = Query(default=None, description="Link signature"),
    signer: LinkSigner = Depends(get_link_signer),
) -> FileResponse:
    """
    Serve a file after verifying its link signature.

    Raises:
        InvalidLinkError: Missing signature or path traversal
        InvalidSignatureError: Signature mismatch
        NotFoundError: File does not exist
    """
    file_path = signer.resolve(filename, s)
    logger.info(f"Serving download: {file_path}")

    return FileResponse(path=str(file_path), filename=file_path.name)
