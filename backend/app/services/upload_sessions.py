"""
Upload Session Manager

Tracks in-flight chunked uploads keyed by a caller-supplied id, accumulates
decoded chunk bytes, and hands back the assembled file exactly once when the
last distinct chunk arrives.

Sessions live in process memory only; a restart loses every in-flight upload.
"""

import base64
import binascii
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, MutableMapping, Optional, Union

from app.middleware.error_handler import InvalidRequestError
from app.models import ChunkProgress, SlicingSettings
from .file_storage import FileStorageManager

logger = logging.getLogger(__name__)

UPLOAD_FILETYPES: FrozenSet[str] = frozenset({"stl", "step", "stp", "3mf"})
SLICE_FILETYPES: FrozenSet[str] = frozenset({"stl", "3mf"})


class SessionState(str, Enum):
    ACCUMULATING = "accumulating"
    ASSEMBLING = "assembling"
    SLICING = "slicing"
    EXTRACTING_METADATA = "extracting_metadata"
    FINALIZING = "finalizing"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UploadSession:
    """Accumulator state for one logical chunked upload."""

    id: str
    total_chunks: int
    filetype: str
    settings: Optional[SlicingSettings] = None
    chunks: Dict[int, bytes] = field(default_factory=dict)
    state: SessionState = SessionState.ACCUMULATING
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @property
    def received(self) -> int:
        return len(self.chunks)

    @property
    def is_complete(self) -> bool:
        return len(self.chunks) == self.total_chunks

    def assemble(self) -> bytes:
        """Concatenate chunks in ascending index order, regardless of arrival order."""
        return b"".join(self.chunks[index] for index in sorted(self.chunks))


@dataclass(frozen=True)
class AssembledUpload:
    """Returned by the chunk that completes a session."""

    session: UploadSession
    data: bytes

    @property
    def session_id(self) -> str:
        return self.session.id


def _validate_session_id(session_id: str) -> None:
    if not session_id or not session_id.strip():
        raise InvalidRequestError("Upload ID is required")
    if "/" in session_id or "\\" in session_id or "\x00" in session_id or session_id.startswith("."):
        raise InvalidRequestError("Invalid upload ID", details={"id": session_id})


_URLSAFE_ALPHABET = str.maketrans("-_", "+/")


def decode_chunk_data(data: str) -> bytes:
    """
    Decode base64 chunk data.

    Accepts the standard and URL-safe alphabets, embedded whitespace such as
    line wrapping, and missing padding. Any other character is rejected.

    Raises:
        binascii.Error: If the data is not base64
    """
    compact = "".join(data.split()).translate(_URLSAFE_ALPHABET)
    compact += "=" * (-len(compact) % 4)
    return base64.b64decode(compact, validate=True)


class UploadSessionManager:
    """
    In-memory upload session table.

    Every method runs without suspension points, so under asyncio each call
    is atomic with respect to other sessions and needs no lock. The table
    itself is injectable so another key-value store can back it.
    """

    def __init__(
        self,
        accepted_types: Iterable[str],
        storage: FileStorageManager,
        store: Optional[MutableMapping[str, UploadSession]] = None,
        name: str = "upload",
    ):
        """
        Args:
            accepted_types: Lowercase file type tags allowed for this endpoint
            storage: Artifact storage used for session deletion cleanup
            store: Session table (a plain dict when not supplied)
            name: Log tag for this manager
        """
        self.accepted_types = frozenset(t.lower() for t in accepted_types)
        self.storage = storage
        self._sessions: MutableMapping[str, UploadSession] = store if store is not None else {}
        self._tag = f"[{name.upper()}]"

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str) -> Optional[UploadSession]:
        return self._sessions.get(session_id)

    def owns(self, session: UploadSession) -> bool:
        """True while ``session`` is still the live entry for its id."""
        return self._sessions.get(session.id) is session

    def submit_chunk(
        self,
        session_id: str,
        chunk_index: int,
        total_chunks: int,
        filetype: str,
        data: str,
        settings: Optional[SlicingSettings] = None,
    ) -> Union[ChunkProgress, AssembledUpload]:
        """
        Store one chunk and report progress or the assembled file.

        Invalid input is rejected before any session is created or mutated.
        Re-sending an index overwrites the earlier bytes for that index.

        Args:
            session_id: Caller-supplied upload id
            chunk_index: Zero-based chunk index
            total_chunks: Declared chunk count
            filetype: Declared file type tag
            data: Base64-encoded chunk bytes
            settings: Slicing settings, kept only from the first chunk

        Returns:
            ChunkProgress while chunks are missing, AssembledUpload on the chunk
            that completes the session.

        Raises:
            InvalidRequestError: For malformed input or a session already being processed
        """
        _validate_session_id(session_id)
        if chunk_index < 0 or total_chunks <= 0:
            raise InvalidRequestError(
                "Invalid chunk data",
                details={"chunkIndex": chunk_index, "totalChunks": total_chunks},
            )

        if not filetype or filetype.lower() not in self.accepted_types:
            raise InvalidRequestError(
                f"Invalid file type. Allowed types: {', '.join(sorted(self.accepted_types))}",
                details={"filetype": filetype},
            )

        session = self._sessions.get(session_id)
        declared_total = session.total_chunks if session else total_chunks

        if session and session.total_chunks != total_chunks:
            raise InvalidRequestError(
                "totalChunks does not match the upload session",
                details={"expected": session.total_chunks, "got": total_chunks},
            )

        if chunk_index >= declared_total:
            raise InvalidRequestError(
                "Chunk index out of range",
                details={"chunkIndex": chunk_index, "totalChunks": declared_total},
            )

        if session and session.state is not SessionState.ACCUMULATING:
            raise InvalidRequestError(
                "Upload session is already being processed",
                details={"id": session_id, "state": session.state.value},
            )

        try:
            chunk_bytes = decode_chunk_data(data)
        except (binascii.Error, ValueError):
            raise InvalidRequestError("Chunk data is not valid base64")

        if session is None:
            session = UploadSession(
                id=session_id,
                total_chunks=total_chunks,
                filetype=filetype.lower(),
                settings=settings,
            )
            self._sessions[session_id] = session
            logger.info(f"{self._tag} New session {session_id}: {total_chunks} chunks, type={session.filetype}")

        if chunk_index in session.chunks:
            logger.warning(f"{self._tag} Chunk {chunk_index} for {session_id} re-sent, overwriting")

        session.chunks[chunk_index] = chunk_bytes
        session.updated_at = _now()
        logger.debug(
            f"{self._tag} Received chunk {chunk_index + 1}/{session.total_chunks} for {session_id}"
        )

        if not session.is_complete:
            return ChunkProgress(received=session.received, total=session.total_chunks)

        session.state = SessionState.ASSEMBLING
        logger.info(f"{self._tag} All chunks received for {session_id}, assembling")
        return AssembledUpload(session=session, data=session.assemble())

    def discard(self, session_id: str, session: Optional[UploadSession] = None) -> bool:
        """
        Drop a session record.

        When ``session`` is given, the entry is removed only if it is still
        that exact session, so a newer upload reusing the id is left alone.
        """
        current = self._sessions.get(session_id)
        if current is None or (session is not None and current is not session):
            return False
        del self._sessions[session_id]
        return True

    def delete_session(self, session_id: str) -> bool:
        """
        Delete a session and its persisted ``<id>-*`` artifacts.

        Returns:
            bool: False if no such session exists (nothing is touched)
        """
        if session_id not in self._sessions:
            return False

        self._sessions.pop(session_id, None)
        deleted = self.storage.delete_session_files(session_id)
        logger.info(f"{self._tag} Deleted session {session_id} ({deleted} files removed)")
        return True

    def evict_idle(self, max_idle: timedelta) -> List[str]:
        """
        Drop accumulating sessions that have not received a chunk within ``max_idle``.

        Sessions past accumulation belong to a running job and are kept.
        """
        cutoff = _now() - max_idle
        stale = [
            session_id
            for session_id, session in list(self._sessions.items())
            if session.state is SessionState.ACCUMULATING and session.updated_at < cutoff
        ]
        for session_id in stale:
            self._sessions.pop(session_id, None)
            logger.info(f"{self._tag} Evicted idle session {session_id}")
        return stale
