"""
Engine runner abstraction for the external slicer process.

Keeps the process boundary behind a narrow interface so slicing
orchestration can be tested without spawning the real engine.
"""

import asyncio
import logging
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

import psutil

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineRunResult:
    """Outcome of one engine process run."""

    exit_code: int | None
    stdout: str
    stderr: str
    timed_out: bool = False
    duration: float = 0.0

    @property
    def succeeded(self) -> bool:
        return not self.timed_out and self.exit_code == 0


class EngineRunner(ABC):
    """
    Abstract base class for engine process execution.

    Implementations:
    - SubprocessEngineRunner: Runs the engine as a local child process
    """

    @abstractmethod
    async def run(self, command: List[str], timeout: float) -> EngineRunResult:
        """
        Run the engine to completion.

        Args:
            command: Executable followed by its arguments
            timeout: Wall-clock limit in seconds

        Returns:
            EngineRunResult: Exit code and captured output. A run that hit the
            timeout is reported with ``timed_out=True`` rather than raised.

        Raises:
            OSError: If the executable cannot be started
        """
        pass


def _kill_process_tree(pid: int) -> None:
    """Kill a process and every descendant it spawned."""
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return

    children = parent.children(recursive=True)
    for proc in children + [parent]:
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            pass

    _, alive = psutil.wait_procs(children + [parent], timeout=5)
    for proc in alive:
        logger.warning(f"[ENGINE] Process {proc.pid} survived kill")


def run_engine_process(command: List[str], timeout: float) -> EngineRunResult:
    """
    Execute the engine synchronously with captured output and a hard timeout.

    On timeout the whole process tree is killed before returning so no engine
    child outlives the job.
    """
    start_time = time.time()
    process = subprocess.Popen(
        command,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        errors="replace",
    )

    try:
        stdout, stderr = process.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.error(f"[ENGINE] Timeout after {timeout}s, killing pid {process.pid}")
        _kill_process_tree(process.pid)
        stdout, stderr = process.communicate()
        return EngineRunResult(
            exit_code=process.returncode,
            stdout=stdout or "",
            stderr=stderr or "",
            timed_out=True,
            duration=time.time() - start_time,
        )

    return EngineRunResult(
        exit_code=process.returncode,
        stdout=stdout or "",
        stderr=stderr or "",
        duration=time.time() - start_time,
    )


class SubprocessEngineRunner(EngineRunner):
    """Runs the engine in a worker thread so the event loop stays free."""

    async def run(self, command: List[str], timeout: float) -> EngineRunResult:
        logger.info(f"[ENGINE] Starting {command[0]} with {len(command) - 1} args")
        result = await asyncio.get_event_loop().run_in_executor(
            None,
            run_engine_process,
            command,
            timeout,
        )
        logger.info(
            f"[ENGINE] Finished in {result.duration:.2f}s "
            f"(exit={result.exit_code}, timed_out={result.timed_out})"
        )
        return result
