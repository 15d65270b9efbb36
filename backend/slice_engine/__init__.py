"""External slicer invocation and output parsing."""

from .engine_runner import EngineRunner, EngineRunResult, SubprocessEngineRunner
from .gcode_metadata import extract_gcode_metadata, parse_gcode_text
from .invoker import (
    ResolvedProfiles,
    SliceFailure,
    SliceResult,
    SliceSuccess,
    SlicingJobInvoker,
    build_slice_args,
)
from .profiles import ProfileResolver

__all__ = [
    "EngineRunner",
    "EngineRunResult",
    "SubprocessEngineRunner",
    "extract_gcode_metadata",
    "parse_gcode_text",
    "ResolvedProfiles",
    "SliceFailure",
    "SliceResult",
    "SliceSuccess",
    "SlicingJobInvoker",
    "build_slice_args",
    "ProfileResolver",
]
