"""
File Storage Manager Service

Manages the shared upload directory where assembled models and generated
artifacts are persisted under session-id-prefixed filenames.
"""

import logging
import shutil
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)


def safe_extension(filetype: str) -> str:
    """Reduce a client-declared file type to a lowercase alphanumeric extension."""
    ext = "".join(c for c in filetype.lower() if c.isalnum())
    return ext or "bin"


class FileStorageManager:
    """
    Manages artifact storage in the upload directory.

    Handles:
    - Persisting assembled model files as ``<id>-model.<ext>``
    - Copying engine output as ``<id>-gcode-<name>``
    - Best-effort removal of a session's artifacts and working directories
    """

    def __init__(self, upload_dir: str = "uploads"):
        """
        Initialize FileStorageManager with the upload directory.

        Args:
            upload_dir: Directory shared by all sessions for persisted artifacts
        """
        self.upload_dir = Path(upload_dir).resolve()

    def ensure_upload_dir(self) -> Path:
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        return self.upload_dir

    def _write(self, filename: str, content: bytes) -> Path:
        file_path = self.ensure_upload_dir() / filename
        try:
            file_path.write_bytes(content)
            # Set file permissions: 644 (rw-r--r--)
            file_path.chmod(0o644)
        except OSError as e:
            logger.error(f"Failed to write {file_path}: {str(e)}")
            raise

        logger.info(f"Saved {len(content)} bytes to {file_path}")
        return file_path

    def save_model(self, session_id: str, filetype: str, content: bytes) -> Path:
        """
        Persist the assembled model for a slice session.

        Args:
            session_id: Upload session identifier
            filetype: Declared file type, used as extension
            content: Assembled file bytes

        Returns:
            Path: Full path of the stored model

        Raises:
            OSError: If the write fails
        """
        return self._write(f"{session_id}-model.{safe_extension(filetype)}", content)

    def save_upload(self, session_id: str, filetype: str, content: bytes) -> Path:
        """Persist a plain (non-sliced) chunked upload."""
        return self._write(f"{session_id}-upload.{safe_extension(filetype)}", content)

    def store_output(self, session_id: str, source: Path) -> Path:
        """
        Copy an engine output file into the upload directory.

        Raises:
            OSError: If the copy fails
        """
        target = self.ensure_upload_dir() / f"{session_id}-gcode-{source.name}"
        shutil.copyfile(source, target)
        target.chmod(0o644)
        logger.info(f"Stored output {source.name} as {target.name}")
        return target

    def delete_session_files(self, session_id: str) -> int:
        """
        Delete every artifact named ``<session_id>-*``.

        Individual failures are logged and do not stop the batch.

        Returns:
            int: Number of files deleted
        """
        if not self.upload_dir.is_dir():
            return 0

        prefix = f"{session_id}-"
        try:
            targets = [p for p in self.upload_dir.iterdir() if p.name.startswith(prefix)]
        except OSError as e:
            logger.warning(f"Failed to list {self.upload_dir} for cleanup: {e}")
            return 0

        return self.delete_files(targets)

    def delete_files(self, paths: Iterable[Path]) -> int:
        deleted = 0
        for path in paths:
            try:
                path.unlink()
                deleted += 1
                logger.info(f"Deleted {path}")
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Failed to delete file {path}: {e}")
        return deleted

    def remove_workdir(self, workdir: Path | None) -> None:
        """Remove a slicing working directory; failures are logged only."""
        if workdir is None:
            return
        try:
            shutil.rmtree(workdir)
            logger.debug(f"Removed working directory {workdir}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove working directory {workdir}: {e}")
