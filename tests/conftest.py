"""Shared pytest fixtures for the rrt test suite.

Provides reusable fixtures for:
- Resetting the memoised runtime detection between tests
- Temporary project directories
- Mock subprocess helpers
- Process runners with stubbed compiler/bundler invocations
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from rrt.runtime.detector import RuntimeKind, detect
from rrt.runtime.process import ProcessOutput, ProcessRunner


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def reset_detection():
    """Forget the memoised runtime so each test detects afresh."""
    detect.cache_clear()
    yield
    detect.cache_clear()


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Environment with every runtime marker removed."""
    for var in ("RRT_RUNTIME", "DENO_INSTALL", "DENO_DIR", "BUN_INSTALL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr("rrt.runtime.detector.shutil.which", lambda name: None)
    monkeypatch.setattr("rrt.runtime.detector.sys.platform", "linux")
    return monkeypatch


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Temporary project with a compiled entry file."""
    project_dir = tmp_path / "test-project"
    (project_dir / "src").mkdir(parents=True)
    (project_dir / "src" / "Main.res.js").write_text("console.log('hi');\n", encoding="utf-8")
    yield project_dir


# ---------------------------------------------------------------------------
# Mock Subprocess (generic)
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.terminate = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory


# ---------------------------------------------------------------------------
# Stubbed process runners
# ---------------------------------------------------------------------------

@pytest.fixture
def stub_runner():
    """Factory for a ``ProcessRunner`` whose tool calls are ``AsyncMock``s.

    Usage:
        def test_build(stub_runner):
            runner = stub_runner(RuntimeKind.BUN, compile_ok=False)
            ...
            runner.run_compiler_tool.assert_awaited_with(["build"])
    """
    def factory(
        runtime: RuntimeKind = RuntimeKind.DENO,
        *,
        compile_ok: bool = True,
        bundle_output: ProcessOutput | None = None,
        cwd: Path | None = None,
        **kwargs: Any,
    ) -> ProcessRunner:
        runner = ProcessRunner(runtime=runtime, cwd=cwd, **kwargs)
        runner.run_compiler_tool = AsyncMock(return_value=compile_ok)  # type: ignore[method-assign]
        runner.run_captured = AsyncMock(  # type: ignore[method-assign]
            return_value=bundle_output or ProcessOutput(returncode=0)
        )
        return runner

    return factory
