"""
Slicing job invocation.

Builds the engine argument list from slicing settings, runs the engine with
a bounded timeout, and classifies the outcome as a tagged result. The
working directory is never removed here; callers own its cleanup.
"""

import logging
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from app.middleware.error_handler import (
    EngineExecutionError,
    MisconfiguredError,
    NoOutputProducedError,
    ServiceError,
)
from app.models import SlicingSettings
from .engine_runner import EngineRunner, EngineRunResult
from .profiles import ProfileResolver

logger = logging.getLogger(__name__)

# Truncate engine output carried in error details
MAX_DIAGNOSTIC_CHARS = 4000


@dataclass(frozen=True)
class ResolvedProfiles:
    """Profile files backing one invocation."""

    printer: Optional[Path] = None
    preset: Optional[Path] = None
    filament: Optional[Path] = None


@dataclass(frozen=True)
class SliceSuccess:
    """Engine exited cleanly and produced files of the requested type."""

    outputs: List[Path]
    workdir: Path
    success: bool = field(default=True, init=False)


@dataclass(frozen=True)
class SliceFailure:
    """Invocation failed. ``workdir`` is set when one was created."""

    error: ServiceError
    workdir: Optional[Path] = None
    success: bool = field(default=False, init=False)


SliceResult = Union[SliceSuccess, SliceFailure]


def output_extension(settings: SlicingSettings) -> str:
    return ".3mf" if settings.export_type == "3mf" else ".gcode"


def build_slice_args(
    settings: SlicingSettings,
    profiles: ResolvedProfiles,
    output_dir: Path,
    input_path: Path,
) -> List[str]:
    """
    Build the engine argument list in its fixed order.

    Order: export format, plate, arrange, orient, printer+preset settings,
    filament, bed type, multicolor, newer-file compatibility, output
    directory, input file.
    """
    args: List[str] = []

    if settings.export_type == "3mf":
        args += ["--export-3mf", "result.3mf"]

    args += ["--slice", settings.plate or "1"]

    if settings.arrange is not None:
        args += ["--arrange", "1" if settings.arrange else "0"]

    if settings.orient is not None:
        args += ["--orient", "1" if settings.orient else "0"]

    if profiles.printer and profiles.preset:
        args += ["--load-settings", f"{profiles.printer};{profiles.preset}"]

    if profiles.filament:
        args += ["--load-filaments", str(profiles.filament)]

    if settings.bed_type:
        args += ["--curr-bed-type", settings.bed_type]

    if settings.multicolor_one_plate:
        args.append("--allow-multicolor-oneplate")

    args.append("--allow-newer-file")
    args += ["--outputdir", str(output_dir)]
    args.append(str(input_path))
    return args


def find_outputs(output_dir: Path, extension: str) -> List[Path]:
    """List files in ``output_dir`` with ``extension``, case-insensitively."""
    if not output_dir.is_dir():
        return []
    return sorted(
        path
        for path in output_dir.iterdir()
        if path.is_file() and path.suffix.lower() == extension
    )


def _diagnostic(result: EngineRunResult) -> str:
    text = result.stderr.strip() or result.stdout.strip()
    return text[-MAX_DIAGNOSTIC_CHARS:]


class SlicingJobInvoker:
    """Runs one slicing job against the external engine."""

    def __init__(
        self,
        engine_path: Optional[str],
        runner: EngineRunner,
        profiles: ProfileResolver,
        timeout: float = 300,
        workdir_root: Optional[str] = None,
    ):
        """
        Args:
            engine_path: Slicer executable; ``None`` fails every invocation as misconfigured
            runner: Process boundary used to execute the engine
            profiles: Resolver for printer/preset/filament files
            timeout: Wall-clock limit per invocation in seconds
            workdir_root: Parent for ``slice-*`` working directories (system temp when unset)
        """
        self.engine_path = engine_path
        self.runner = runner
        self.profiles = profiles
        self.timeout = timeout
        self.workdir_root = workdir_root

    def resolve_profiles(self, settings: SlicingSettings) -> ResolvedProfiles:
        printer = preset = filament = None
        if settings.printer and settings.preset:
            preset = self.profiles.resolve("presets", settings.preset)
            printer = self.profiles.resolve("printers", settings.printer)
        if settings.filament:
            filament = self.profiles.resolve("filaments", settings.filament)
        return ResolvedProfiles(printer=printer, preset=preset, filament=filament)

    def create_workdir(self, job_id: Optional[str] = None) -> Path:
        safe_id = re.sub(r"[^A-Za-z0-9_-]", "", job_id or "")[:64]
        prefix = f"slice-{safe_id}-" if safe_id else "slice-"
        if self.workdir_root:
            Path(self.workdir_root).mkdir(parents=True, exist_ok=True)
        workdir = Path(tempfile.mkdtemp(prefix=prefix, dir=self.workdir_root))
        (workdir / "output").mkdir()
        return workdir

    async def invoke(
        self,
        input_path: Path,
        settings: SlicingSettings,
        job_id: Optional[str] = None,
    ) -> SliceResult:
        """
        Slice ``input_path`` with ``settings``.

        Configuration and profile problems fail before a working directory is
        created or the engine is started.

        Returns:
            SliceSuccess with the produced files and the working directory, or
            SliceFailure carrying the classified error and (if created) the
            working directory.
        """
        if not self.engine_path:
            logger.error("[SLICE] ORCASLICER_PATH is not configured")
            return SliceFailure(error=MisconfiguredError("ORCASLICER_PATH"))

        try:
            profiles = self.resolve_profiles(settings)
        except ServiceError as e:
            logger.warning(f"[SLICE] Profile resolution failed: {e.message} {e.details}")
            return SliceFailure(error=e)

        try:
            workdir = self.create_workdir(job_id)
        except OSError as e:
            logger.error(f"[SLICE] Failed to prepare working directory: {e}")
            return SliceFailure(
                error=EngineExecutionError("Failed to prepare slicing", output=str(e))
            )

        output_dir = workdir / "output"
        command = [self.engine_path] + build_slice_args(settings, profiles, output_dir, input_path)
        logger.debug(f"[SLICE] Executing engine: {command}")

        try:
            result = await self.runner.run(command, self.timeout)
        except OSError as e:
            logger.error(f"[SLICE] Engine could not be started: {e}")
            return SliceFailure(
                error=EngineExecutionError("Failed to start the slicer", output=str(e)),
                workdir=workdir,
            )

        if result.timed_out:
            logger.error(f"[SLICE] Engine timed out after {self.timeout}s")
            return SliceFailure(
                error=EngineExecutionError(
                    f"Slicing timed out after {self.timeout} seconds",
                    exit_code=result.exit_code,
                    output=_diagnostic(result),
                    timed_out=True,
                ),
                workdir=workdir,
            )

        if result.exit_code != 0:
            logger.error(f"[SLICE] Engine failed with exit code {result.exit_code}")
            logger.error(f"[SLICE] Engine stderr: {result.stderr}")
            logger.error(f"[SLICE] Engine stdout: {result.stdout}")
            return SliceFailure(
                error=EngineExecutionError(
                    "Failed to slice the model",
                    exit_code=result.exit_code,
                    output=_diagnostic(result),
                ),
                workdir=workdir,
            )

        if result.stdout:
            logger.debug(f"[SLICE] Engine stdout: {result.stdout}")

        extension = output_extension(settings)
        outputs = find_outputs(output_dir, extension)
        logger.debug(f"[SLICE] Output files generated: {[p.name for p in outputs]}")

        if not outputs:
            return SliceFailure(error=NoOutputProducedError(extension), workdir=workdir)

        return SliceSuccess(outputs=outputs, workdir=workdir)
