"""
Slicing orchestrator.

Wires a completed chunked upload through assembly, slicing, metadata
extraction, optional pricing and artifact publication, and guarantees
cleanup on every exit path:

    accumulating → assembling → slicing → extracting_metadata → finalizing → done | failed
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import List, Optional, Union

from app.middleware.error_handler import (
    NotFoundError,
    ServiceError,
    UnexpectedOutputCountError,
)
from app.models import ChunkProgress, SliceCompletion, SlicingSettings, UploadChunk
from link_signing import LinkSigner
from slice_engine import SliceFailure, SlicingJobInvoker, extract_gcode_metadata
from .file_storage import FileStorageManager
from .pricing_client import PricingClient
from .upload_sessions import AssembledUpload, SessionState, UploadSession, UploadSessionManager

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def _strip_separators(value: str) -> str:
    return _NON_ALNUM.sub("", value).lower()


class SlicingOrchestrator:
    """
    Top-level chunk-upload-and-slice flow.

    Failure cleanup always removes the session record and the working
    directory. Deleting the persisted model and session-generated profiles
    is opt-in via ``delete_artifacts_on_failure``.
    """

    def __init__(
        self,
        sessions: UploadSessionManager,
        storage: FileStorageManager,
        invoker: SlicingJobInvoker,
        signer: LinkSigner,
        pricing: Optional[PricingClient] = None,
        delete_artifacts_on_failure: bool = False,
    ):
        self.sessions = sessions
        self.storage = storage
        self.invoker = invoker
        self.signer = signer
        self.pricing = pricing
        self.delete_artifacts_on_failure = delete_artifacts_on_failure

    async def submit_chunk(self, chunk: UploadChunk) -> Union[ChunkProgress, SliceCompletion]:
        """
        Accept one chunk; slice the model when it completes the session.

        Raises:
            ServiceError: Validation errors (no state change) or the classified
                pipeline failure (after failure cleanup)
        """
        result = self.sessions.submit_chunk(
            chunk.id,
            chunk.chunk_index,
            chunk.total_chunks,
            chunk.filetype,
            chunk.data,
            chunk.settings,
        )
        if isinstance(result, ChunkProgress):
            return result
        return await self.process(result)

    def delete_session(self, session_id: str) -> bool:
        return self.sessions.delete_session(session_id)

    async def process(self, upload: AssembledUpload) -> SliceCompletion:
        """Run an assembled upload through slicing and publish its artifacts."""
        session = upload.session
        settings = session.settings or SlicingSettings()
        loop = asyncio.get_event_loop()
        model_path: Optional[Path] = None
        gcode_path: Optional[Path] = None
        workdir: Optional[Path] = None

        try:
            # assembling
            model_path = await loop.run_in_executor(
                None, self.storage.save_model, session.id, session.filetype, upload.data
            )
            self._ensure_not_cancelled(session, model_path)
            model_url = self.signer.sign(model_path.name)

            session.state = SessionState.SLICING
            logger.info(f"[SLICE] Slicing {model_path.name} for session {session.id}")
            result = await self.invoker.invoke(model_path, settings, job_id=session.id)
            workdir = result.workdir
            if isinstance(result, SliceFailure):
                raise result.error

            session.state = SessionState.EXTRACTING_METADATA
            if len(result.outputs) != 1:
                raise UnexpectedOutputCountError(len(result.outputs))
            output = result.outputs[0]
            metadata = await loop.run_in_executor(None, extract_gcode_metadata, output)

            price = None
            if self.pricing is not None:
                price = await self.pricing.quote(session.id, metadata)

            session.state = SessionState.FINALIZING
            self._ensure_not_cancelled(session, model_path)
            gcode_path = await loop.run_in_executor(None, self.storage.store_output, session.id, output)
            self._ensure_not_cancelled(session, model_path, gcode_path)
            gcode_url = self.signer.sign(gcode_path.name)

            completion = SliceCompletion(
                id=session.id,
                modelFilename=model_path.name,
                gcodeFilename=gcode_path.name,
                modelSize=model_path.stat().st_size,
                gcodeSize=gcode_path.stat().st_size,
                modelUrl=model_url,
                gcodeUrl=gcode_url,
                times=metadata.times,
                filament=metadata.filament,
                price=price,
            )
        except Exception as e:
            self._fail(session, settings, workdir, model_path, e)
            raise

        self.storage.remove_workdir(workdir)
        self.sessions.discard(session.id, session)
        logger.info(f"[SLICE] Session {session.id} complete: total time {completion.times.total}")
        return completion

    def _ensure_not_cancelled(self, session: UploadSession, *written: Path) -> None:
        """Stop a job whose session was deleted while it was running, removing what it wrote."""
        if self.sessions.owns(session):
            return
        self.storage.delete_files(list(written))
        logger.warning(f"[SLICE] Session {session.id} was deleted during {session.state.value}")
        raise NotFoundError("Upload session was deleted during processing", details={"id": session.id})

    def _fail(
        self,
        session: UploadSession,
        settings: SlicingSettings,
        workdir: Optional[Path],
        model_path: Optional[Path],
        error: Exception,
    ) -> None:
        if isinstance(error, ServiceError):
            logger.error(
                f"[SLICE] Session {session.id} failed in {session.state.value}: "
                f"{error.kind}: {error.message}"
            )
        else:
            logger.exception(f"[SLICE] Session {session.id} failed in {session.state.value}")

        self.sessions.discard(session.id, session)
        self.storage.remove_workdir(workdir)

        if not self.delete_artifacts_on_failure:
            return

        targets: List[Path] = [model_path] if model_path is not None else []
        targets += self.generated_profiles(session.id, settings)
        deleted = self.storage.delete_files(targets)
        logger.info(f"[SLICE] Removed {deleted} artifacts of failed session {session.id}")

    def generated_profiles(self, session_id: str, settings: SlicingSettings) -> List[Path]:
        """
        Uploaded profile files that were generated for this session.

        Only profiles named by the job's own settings are considered, only in
        the job-specific upload directory, and only when the profile name
        embeds the session id (separators stripped). Shared default profiles
        are never returned.
        """
        marker = _strip_separators(session_id)
        if not marker:
            return []

        paths = []
        for category, name in (
            ("printers", settings.printer),
            ("presets", settings.preset),
            ("filaments", settings.filament),
        ):
            if not name or marker not in _strip_separators(name):
                continue
            try:
                path = self.invoker.profiles.uploaded_path(category, name)
            except ServiceError:
                continue
            if path.is_file():
                paths.append(path)
        return paths
