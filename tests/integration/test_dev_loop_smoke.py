"""Integration smoke tests for the dev loop.

Runs the real DevOrchestrator, BuildOrchestrator and FileWatcher (polling
observer) against a temporary project. Only the external compiler and
bundler invocations are stubbed.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from rrt.builder.models import BuildConfig
from rrt.builder.orchestrator import BuildOrchestrator
from rrt.dev import DevConfig, DevOrchestrator
from rrt.runtime.detector import RuntimeKind
from rrt.runtime.watcher import FileWatcher


@pytest.mark.integration
@pytest.mark.asyncio
async def test_source_change_triggers_rebuild(stub_runner, tmp_project_dir: Path):
    runner = stub_runner(RuntimeKind.DENO, cwd=tmp_project_dir)
    watcher = FileWatcher(RuntimeKind.DENO, debounce_ms=100, force_polling=True)
    dev = DevOrchestrator(builder=BuildOrchestrator(runner), watcher=watcher, runner=runner)

    dev_config = DevConfig(
        build=BuildConfig(target=RuntimeKind.DENO),
        watch_paths=[tmp_project_dir / "src"],
    )
    state = await dev.start(dev_config)
    try:
        assert state.running is True
        assert runner.run_compiler_tool.await_count == 1
        assert watcher.active is True

        await asyncio.sleep(0.5)
        (tmp_project_dir / "src" / "Main.res").write_text("let x = 2\n", encoding="utf-8")

        for _ in range(50):
            if runner.run_compiler_tool.await_count >= 2:
                break
            await asyncio.sleep(0.1)
    finally:
        await dev.stop()

    assert runner.run_compiler_tool.await_count >= 2
    assert watcher.active is False
    assert dev.state.running is False


@pytest.mark.integration
@pytest.mark.asyncio
async def test_degraded_target_ships_entry(stub_runner, tmp_project_dir: Path):
    runner = stub_runner(RuntimeKind.BROWSER, cwd=tmp_project_dir)
    dev = DevOrchestrator(builder=BuildOrchestrator(runner), runner=runner)

    state = await dev.start(
        DevConfig(build=BuildConfig(target=RuntimeKind.BROWSER), watch=True)
    )
    await dev.stop()

    assert state.errors == []
    assert dev.last_result is not None
    assert dev.last_result.output_files == (Path("src/Main.res.js"),)
    assert len(dev.last_result.warnings) == 1
    assert dev.watcher.active is False
