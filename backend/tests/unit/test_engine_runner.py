"""
Unit tests for the subprocess engine runner.

Uses the running Python interpreter as a stand-in engine executable.
"""

import sys
from unittest.mock import patch

import psutil
import pytest

from slice_engine import EngineRunResult, SubprocessEngineRunner, engine_runner
from slice_engine.engine_runner import run_engine_process


class TestRunEngineProcess:
    """Tests for run_engine_process."""

    def test_captures_output_and_exit_code(self):
        result = run_engine_process(
            [sys.executable, "-c", "import sys; print('sliced'); print('warn', file=sys.stderr); sys.exit(0)"],
            timeout=30,
        )

        assert result.exit_code == 0
        assert result.stdout.strip() == "sliced"
        assert result.stderr.strip() == "warn"
        assert result.timed_out is False
        assert result.succeeded is True

    def test_reports_nonzero_exit(self):
        result = run_engine_process([sys.executable, "-c", "raise SystemExit(7)"], timeout=30)

        assert result.exit_code == 7
        assert result.succeeded is False

    def test_timeout_kills_process_tree(self):
        with patch(
            "slice_engine.engine_runner._kill_process_tree",
            wraps=engine_runner._kill_process_tree,
        ) as mock_kill:
            result = run_engine_process(
                [sys.executable, "-c", "import time; time.sleep(30)"],
                timeout=0.5,
            )

        mock_kill.assert_called_once()
        assert result.timed_out is True
        assert result.succeeded is False
        assert result.duration < 15

    def test_timeout_kills_grandchildren(self, tmp_path):
        marker = tmp_path / "child.pid"
        script = (
            "import subprocess, sys, time\n"
            "child = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)'])\n"
            f"open({str(marker)!r}, 'w').write(str(child.pid))\n"
            "time.sleep(30)\n"
        )

        result = run_engine_process([sys.executable, "-c", script], timeout=2)

        assert result.timed_out is True
        child_pid = int(marker.read_text())
        try:
            status = psutil.Process(child_pid).status()
        except psutil.NoSuchProcess:
            status = None
        assert status in (None, psutil.STATUS_ZOMBIE)

    def test_missing_executable_raises(self, tmp_path):
        with pytest.raises(OSError):
            run_engine_process([str(tmp_path / "no-such-slicer")], timeout=5)


class TestSubprocessEngineRunner:
    """Tests for the async runner wrapper."""

    @pytest.mark.asyncio
    async def test_run_returns_result(self):
        runner = SubprocessEngineRunner()

        result = await runner.run([sys.executable, "-c", "print('ok')"], timeout=30)

        assert isinstance(result, EngineRunResult)
        assert result.exit_code == 0
        assert result.stdout.strip() == "ok"

    @pytest.mark.asyncio
    async def test_run_reports_timeout(self):
        runner = SubprocessEngineRunner()

        result = await runner.run([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.5)

        assert result.timed_out is True
