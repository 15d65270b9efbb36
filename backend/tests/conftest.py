"""
Pytest configuration and fixtures
"""

import base64
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.services.file_storage import FileStorageManager
from app.services.slicing_orchestrator import SlicingOrchestrator
from app.services.upload_sessions import SLICE_FILETYPES, UploadSessionManager
from link_signing import LinkSigner
from slice_engine import EngineRunner, EngineRunResult, ProfileResolver, SlicingJobInvoker

TEST_SECRET = "test-download-secret"

SAMPLE_GCODE = """; HEADER_BLOCK_START
; generated by OrcaSlicer 2.1.1
; total layer number: 42
; model printing time: 1h 2m 3s; total estimated time: 1h 5m 10s
; HEADER_BLOCK_END

; CONFIG_BLOCK_START
; layer_height = 0.2
; CONFIG_BLOCK_END

G28
G1 X10 Y10 E1.5
; EXECUTABLE_BLOCK_END

; filament used [mm] = 1234.56
; filament used [cm3] = 2.97
; filament used [g] = 3.71
; filament cost = 0.09
"""


class FakeEngineRunner(EngineRunner):
    """Engine stand-in that writes canned outputs into the requested output directory."""

    def __init__(
        self,
        outputs: Optional[Dict[str, str]] = None,
        exit_code: int = 0,
        stdout: str = "",
        stderr: str = "",
        timed_out: bool = False,
        on_run=None,
    ):
        self.outputs = {"plate_1.gcode": SAMPLE_GCODE} if outputs is None else outputs
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        self.timed_out = timed_out
        self.on_run = on_run
        self.calls: List[List[str]] = []

    async def run(self, command: List[str], timeout: float) -> EngineRunResult:
        self.calls.append(command)
        output_dir = Path(command[command.index("--outputdir") + 1])
        for name, content in self.outputs.items():
            (output_dir / name).write_text(content)
        if self.on_run is not None:
            self.on_run(command)
        return EngineRunResult(
            exit_code=None if self.timed_out else self.exit_code,
            stdout=self.stdout,
            stderr=self.stderr,
            timed_out=self.timed_out,
        )


def encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@pytest.fixture
def client():
    """FastAPI test client fixture"""
    return TestClient(app)


@pytest.fixture
def upload_dir(tmp_path) -> Path:
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def data_path(tmp_path) -> Path:
    path = tmp_path / "data"
    for category in ("printers", "presets", "filaments"):
        (path / category).mkdir(parents=True)
    return path


@pytest.fixture
def workdir_root(tmp_path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def storage(upload_dir) -> FileStorageManager:
    return FileStorageManager(str(upload_dir))


@pytest.fixture
def signer(upload_dir) -> LinkSigner:
    return LinkSigner(TEST_SECRET, "http://testserver", upload_dir)


@pytest.fixture
def fake_runner() -> FakeEngineRunner:
    return FakeEngineRunner()


@pytest.fixture
def build_orchestrator(storage, signer, data_path, workdir_root, tmp_path):
    """Factory building an orchestrator around a fake engine runner."""

    def _build(
        runner: EngineRunner,
        engine_path: Optional[str] = "/opt/orcaslicer/bin/orca-slicer",
        pricing=None,
        delete_artifacts_on_failure: bool = False,
    ) -> SlicingOrchestrator:
        profiles = ProfileResolver(data_path, {"presets": str(tmp_path / "default_presets")})
        invoker = SlicingJobInvoker(
            engine_path=engine_path,
            runner=runner,
            profiles=profiles,
            timeout=5,
            workdir_root=str(workdir_root),
        )
        return SlicingOrchestrator(
            sessions=UploadSessionManager(SLICE_FILETYPES, storage, name="slice"),
            storage=storage,
            invoker=invoker,
            signer=signer,
            pricing=pricing,
            delete_artifacts_on_failure=delete_artifacts_on_failure,
        )

    return _build
