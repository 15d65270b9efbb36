"""HMAC-signed download links for artifacts in the upload directory."""

import hashlib
import hmac
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from app.middleware.error_handler import (
    InvalidLinkError,
    InvalidSignatureError,
    MisconfiguredError,
    NotFoundError,
)

logger = logging.getLogger(__name__)


class LinkSigner:
    """Issues and verifies permanent signed links for files under a serving root.

    Links do not expire; rotating the secret invalidates every issued link.
    """

    def __init__(self, secret: Optional[str], base_url: str, serving_root: str | Path) -> None:
        """Initialize the signer.

        Args:
            secret: HMAC key. ``None`` or empty leaves the signer unusable.
            base_url: Public base URL prepended to ``/file/<name>``.
            serving_root: Directory that signed filenames must resolve into.
        """
        self._secret = secret or None
        self.base_url = base_url.rstrip("/")
        self.serving_root = Path(serving_root).resolve()

    def _require_secret(self) -> bytes:
        if not self._secret:
            raise MisconfiguredError(
                "DOWNLOAD_SECRET",
                message="Download links are not configured on the server",
            )
        return self._secret.encode("utf-8")

    def signature(self, filename: str) -> str:
        """Compute the hex HMAC-SHA256 of the raw filename.

        Raises:
            MisconfiguredError: If no secret is configured.
        """
        key = self._require_secret()
        return hmac.new(key, filename.encode("utf-8"), hashlib.sha256).hexdigest()

    def sign(self, filename: str) -> str:
        """Return the signed download URL for ``filename``."""
        sig = self.signature(filename)
        return f"{self.base_url}/file/{quote(filename, safe='')}?s={sig}"

    def verify(self, filename: str, signature: str) -> bool:
        """Check ``signature`` against ``filename`` without leaking timing.

        Unequal lengths are rejected before any comparison takes place.
        """
        expected = self.signature(filename)
        if len(signature) != len(expected):
            return False
        return hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8"))

    def resolve(self, filename: Optional[str], signature: Optional[str]) -> Path:
        """Verify a link and map it to a file inside the serving root.

        Args:
            filename: Filename from the link path.
            signature: Value of the ``s`` query parameter.

        Returns:
            Path: Absolute path of an existing file under the serving root.

        Raises:
            MisconfiguredError: If no secret is configured.
            InvalidLinkError: If a link component is missing or the path escapes the root.
            InvalidSignatureError: If the signature does not verify.
            NotFoundError: If the file does not exist.
        """
        self._require_secret()
        if not filename or not signature:
            raise InvalidLinkError("Invalid link")

        if not self.verify(filename, signature):
            logger.warning(f"[LINK] Rejected signature for {filename!r}")
            raise InvalidSignatureError("Invalid signature")

        file_path = (self.serving_root / filename).resolve()
        if not file_path.is_relative_to(self.serving_root):
            logger.warning(f"[LINK] Path escapes serving root: {filename!r}")
            raise InvalidLinkError("Invalid path")

        if not file_path.is_file():
            raise NotFoundError("Not found", details={"filename": filename})

        return file_path
