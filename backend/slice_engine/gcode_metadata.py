"""
G-code metadata extraction.

Scrapes print times and filament usage from the comment blocks the engine
writes into its output. The marker lines and patterns below mirror the
engine's current output format and must match it exactly.
"""

import logging
import re
import zipfile
from pathlib import Path
from typing import Dict, List

from app.middleware.error_handler import ParseFailureError
from app.models import FilamentInfo, GcodeMetadata, SliceTimes

logger = logging.getLogger(__name__)

HEADER_START = "; HEADER_BLOCK_START"
HEADER_END = "; HEADER_BLOCK_END"
FILAMENT_BLOCK_START = "; EXECUTABLE_BLOCK_END"

TIME_LINE_RE = re.compile(r"^; model printing time: (.+); total estimated time: (.+)$")
FILAMENT_LINE_RE = re.compile(r"^; filament (used \[mm\]|used \[cm3\]|used \[g\]|cost) = (.+)$")

FILAMENT_KEYS: Dict[str, str] = {
    "used [mm]": "used_mm",
    "used [cm3]": "used_cm3",
    "used [g]": "used_g",
    "cost": "cost",
}

# Plate G-code embedded in exported 3MF projects
EMBEDDED_GCODE_RE = re.compile(r"^Metadata/plate_\d+\.gcode$")


def _header_block(lines: List[str]) -> List[str]:
    try:
        start = lines.index(HEADER_START)
        end = lines.index(HEADER_END, start)
    except ValueError:
        raise ParseFailureError("G-code header block not found")
    return lines[start:end + 1]


def _filament_block(lines: List[str]) -> List[str]:
    try:
        start = lines.index(FILAMENT_BLOCK_START)
    except ValueError:
        return []
    return lines[start:]


def _parse_times(header: List[str]) -> SliceTimes:
    for line in header:
        match = TIME_LINE_RE.match(line)
        if not match:
            continue
        model, total = match.group(1), match.group(2)
        if not model.strip() or not total.strip():
            break
        return SliceTimes(model=model, total=total)

    raise ParseFailureError("Failed to parse slicing times from G-code")


def _parse_filament(block: List[str]) -> FilamentInfo:
    values: Dict[str, str] = {}
    for line in block:
        match = FILAMENT_LINE_RE.match(line)
        if match and match.group(2):
            # later lines overwrite earlier ones
            values[FILAMENT_KEYS[match.group(1)]] = match.group(2)
    return FilamentInfo(**values)


def parse_gcode_text(text: str) -> GcodeMetadata:
    """
    Extract times and filament usage from G-code text.

    Args:
        text: Full G-code file content

    Returns:
        GcodeMetadata: Model/total times and the filament fields present

    Raises:
        ParseFailureError: If the header block or a complete time line is missing
    """
    lines = text.splitlines()
    times = _parse_times(_header_block(lines))
    filament = _parse_filament(_filament_block(lines))
    return GcodeMetadata(times=times, filament=filament)


def _read_embedded_gcode(project_path: Path) -> str:
    try:
        with zipfile.ZipFile(project_path) as archive:
            members = sorted(n for n in archive.namelist() if EMBEDDED_GCODE_RE.match(n))
            if not members:
                raise ParseFailureError("No G-code found in exported 3MF project")
            return archive.read(members[0]).decode("utf-8", errors="replace")
    except zipfile.BadZipFile as e:
        raise ParseFailureError(f"Exported 3MF project is not a valid archive: {e}")


def extract_gcode_metadata(file_path: str | Path) -> GcodeMetadata:
    """
    Extract metadata from an engine output file.

    ``.3mf`` projects are read through their embedded plate G-code; every
    other file is read as G-code text.

    Raises:
        ParseFailureError: If the metadata cannot be extracted
        OSError: If the file cannot be read
    """
    path = Path(file_path)
    if path.suffix.lower() == ".3mf":
        text = _read_embedded_gcode(path)
    else:
        text = path.read_text(encoding="utf-8", errors="replace")

    metadata = parse_gcode_text(text)
    logger.info(
        f"[METADATA] {path.name}: total={metadata.times.total}, "
        f"filament fields={sorted(metadata.filament.model_dump(exclude_none=True))}"
    )
    return metadata
