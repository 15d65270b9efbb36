"""
Profile resolution for printer, preset and filament JSON files.

Profiles are looked up by name in the job-specific upload directory first,
then in the shared default directory for the category. Only existence is
checked; the files are handed to the engine unparsed.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from app.middleware.error_handler import InvalidRequestError, NotFoundError

logger = logging.getLogger(__name__)

CATEGORIES = ("printers", "presets", "filaments")

_LABELS = {"printers": "Printer", "presets": "Preset", "filaments": "Filament"}


def _validate_profile_name(name: str) -> None:
    if not name or not name.strip():
        raise InvalidRequestError("Profile name cannot be empty")
    if "/" in name or "\\" in name or "\x00" in name or name.startswith(".."):
        raise InvalidRequestError(f"Invalid profile name: {name!r}")


class ProfileResolver:
    """Resolves named profiles to JSON files on disk."""

    def __init__(self, data_path: str | Path, default_dirs: Optional[Dict[str, Optional[str]]] = None):
        """
        Args:
            data_path: Root holding printers/, presets/ and filaments/ uploads
            default_dirs: Shared default directory per category (may be None)
        """
        self.data_path = Path(data_path)
        self.default_dirs = {
            category: Path(folder)
            for category, folder in (default_dirs or {}).items()
            if folder
        }

    def candidates(self, category: str, name: str) -> List[Path]:
        """Return lookup locations for a profile in preference order."""
        if category not in CATEGORIES:
            raise ValueError(f"Unknown profile category: {category}")
        _validate_profile_name(name)

        paths = [self.data_path / category / f"{name}.json"]
        if category in self.default_dirs:
            paths.append(self.default_dirs[category] / f"{name}.json")
        return paths

    def resolve(self, category: str, name: str) -> Path:
        """
        Resolve a profile name to an existing file.

        Raises:
            NotFoundError: If no candidate location holds the profile
            InvalidRequestError: If the name is empty or contains path components
        """
        for path in self.candidates(category, name):
            if path.is_file():
                logger.debug(f"[PROFILES] Using {category} profile: {path}")
                return path

        label = _LABELS[category]
        raise NotFoundError(
            f"{label} not found",
            details={"category": category, "name": name},
        )

    def uploaded_path(self, category: str, name: str) -> Path:
        """Location of a job-specific (uploaded) profile, whether or not it exists."""
        return self.candidates(category, name)[0]
