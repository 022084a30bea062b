"""Unit tests for the file watcher (rrt.runtime.watcher).

Tests cover:
- Graceful degradation (unsupported runtime, no running loop, bad path)
- Coalescing of rapid events into one batch
- Ordering and single-flight delivery
- Ignored event types and moved events
- close() tearing down the observer
- Real filesystem round trip (integration)
"""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileClosedNoWriteEvent,
    FileCreatedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from rrt.runtime.detector import RuntimeKind
from rrt.runtime.watcher import FileWatcher


def _start(watcher: FileWatcher, paths, callback) -> tuple[MagicMock, object]:
    """Watch with a mocked native observer; return (observer, handler)."""
    observer = MagicMock()
    with patch("rrt.runtime.watcher.Observer", return_value=observer):
        watcher.watch(paths, callback)
    handler = observer.schedule.call_args[0][0]
    return observer, handler


# ---------------------------------------------------------------------------
# Degradation
# ---------------------------------------------------------------------------


class TestWatcherDegradation:
    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", [RuntimeKind.BROWSER, RuntimeKind.UNKNOWN])
    async def test_unsupported_runtime_is_noop(self, kind: RuntimeKind, capsys):
        watcher = FileWatcher(kind)
        with patch("rrt.runtime.watcher.Observer") as mock_observer:
            watcher.watch(["src"], lambda paths: None)
        mock_observer.assert_not_called()
        assert watcher.active is False
        assert "not available" in capsys.readouterr().out

    @pytest.mark.unit
    def test_no_running_loop_is_noop(self):
        watcher = FileWatcher(RuntimeKind.DENO)
        with patch("rrt.runtime.watcher.Observer") as mock_observer:
            watcher.watch(["src"], lambda paths: None)
        mock_observer.assert_not_called()
        assert watcher.active is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unwatchable_path_is_reported(self, capsys):
        observer = MagicMock()
        observer.start.side_effect = FileNotFoundError(2, "No such file", "missing")
        watcher = FileWatcher(RuntimeKind.BUN)
        with patch("rrt.runtime.watcher.Observer", return_value=observer):
            watcher.watch(["missing"], lambda paths: None)
        assert watcher.active is False
        assert "Could not watch" in capsys.readouterr().out
        observer.unschedule_all.assert_called_once()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_failed_start_leaves_no_watch_threads(self, tmp_path: Path):
        existing = tmp_path / "src"
        existing.mkdir()
        before = set(threading.enumerate())

        watcher = FileWatcher(RuntimeKind.DENO)
        watcher.watch([existing, tmp_path / "missing"], lambda paths: None)

        leftover = [t.name for t in threading.enumerate() if t not in before and t.is_alive()]
        assert watcher.active is False
        assert leftover == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_force_polling_uses_polling_observer(self):
        watcher = FileWatcher(RuntimeKind.DENO, force_polling=True)
        with patch("rrt.runtime.watcher.PollingObserver") as mock_polling, patch(
            "rrt.runtime.watcher.Observer"
        ) as mock_native:
            watcher.watch(["src"], lambda paths: None)
        mock_polling.assert_called_once()
        mock_native.assert_not_called()
        watcher.close()


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------


class TestWatcherDelivery:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rapid_events_coalesce_into_one_batch(self):
        batches: list[list[str]] = []
        watcher = FileWatcher(RuntimeKind.DENO, debounce_ms=30)
        _, handler = _start(watcher, ["src"], batches.append)

        handler.dispatch(FileModifiedEvent("a"))
        handler.dispatch(FileModifiedEvent("b"))
        await asyncio.sleep(0.15)
        watcher.close()

        assert batches == [["a", "b"]]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_duplicates_collapse_in_order(self):
        batches: list[list[str]] = []
        watcher = FileWatcher(RuntimeKind.BUN, debounce_ms=30)
        _, handler = _start(watcher, ["src"], batches.append)

        for path in ("b", "a", "b", "c"):
            handler.dispatch(FileModifiedEvent(path))
        await asyncio.sleep(0.15)
        watcher.close()

        assert batches == [["b", "a", "c"]]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_separate_bursts_are_separate_batches(self):
        batches: list[list[str]] = []
        watcher = FileWatcher(RuntimeKind.DENO, debounce_ms=20)
        _, handler = _start(watcher, ["src"], batches.append)

        handler.dispatch(FileCreatedEvent("first"))
        await asyncio.sleep(0.1)
        handler.dispatch(FileCreatedEvent("second"))
        await asyncio.sleep(0.1)
        watcher.close()

        assert batches == [["first"], ["second"]]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_async_callbacks_never_overlap(self):
        active = 0
        max_active = 0
        calls: list[list[str]] = []

        async def on_change(paths: list[str]) -> None:
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.05)
            calls.append(paths)
            active -= 1

        watcher = FileWatcher(RuntimeKind.DENO, debounce_ms=0)
        _, handler = _start(watcher, ["src"], on_change)

        handler.dispatch(FileModifiedEvent("a"))
        await asyncio.sleep(0.01)
        handler.dispatch(FileModifiedEvent("b"))
        await asyncio.sleep(0.2)
        watcher.close()

        assert max_active == 1
        assert calls == [["a"], ["b"]]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_callback_error_does_not_stop_delivery(self):
        calls: list[list[str]] = []

        def on_change(paths: list[str]) -> None:
            calls.append(paths)
            if len(calls) == 1:
                raise RuntimeError("handler blew up")

        watcher = FileWatcher(RuntimeKind.DENO, debounce_ms=10)
        _, handler = _start(watcher, ["src"], on_change)

        handler.dispatch(FileModifiedEvent("a"))
        await asyncio.sleep(0.08)
        handler.dispatch(FileModifiedEvent("b"))
        await asyncio.sleep(0.08)
        watcher.close()

        assert calls == [["a"], ["b"]]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_noise_events_ignored(self):
        batches: list[list[str]] = []
        watcher = FileWatcher(RuntimeKind.DENO, debounce_ms=10)
        _, handler = _start(watcher, ["src"], batches.append)

        handler.dispatch(DirModifiedEvent("src"))
        handler.dispatch(FileClosedNoWriteEvent("src/a.res"))
        await asyncio.sleep(0.08)
        watcher.close()

        assert batches == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_moved_event_reports_both_paths(self):
        batches: list[list[str]] = []
        watcher = FileWatcher(RuntimeKind.DENO, debounce_ms=10)
        _, handler = _start(watcher, ["src"], batches.append)

        handler.dispatch(FileMovedEvent("src/old.res", "src/new.res"))
        await asyncio.sleep(0.08)
        watcher.close()

        assert batches == [["src/old.res", "src/new.res"]]


# ---------------------------------------------------------------------------
# Teardown
# ---------------------------------------------------------------------------


class TestWatcherClose:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_close_stops_observer(self):
        watcher = FileWatcher(RuntimeKind.DENO)
        observer, _ = _start(watcher, ["src", "tests"], lambda paths: None)

        assert watcher.active is True
        assert observer.schedule.call_count == 2
        observer.start.assert_called_once()

        watcher.close()
        observer.stop.assert_called_once()
        observer.join.assert_called_once()
        assert watcher.active is False

    @pytest.mark.unit
    def test_close_without_watch_is_safe(self):
        FileWatcher(RuntimeKind.DENO).close()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rewatch_closes_previous_observer(self):
        watcher = FileWatcher(RuntimeKind.DENO)
        first, _ = _start(watcher, ["src"], lambda paths: None)
        second, _ = _start(watcher, ["lib"], lambda paths: None)

        first.stop.assert_called_once()
        second.stop.assert_not_called()
        watcher.close()


# ---------------------------------------------------------------------------
# Real observer
# ---------------------------------------------------------------------------


class TestWatcherIntegration:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_real_file_change_delivered(self, tmp_path: Path):
        batches: list[list[str]] = []
        watcher = FileWatcher(RuntimeKind.DENO, debounce_ms=100, force_polling=True)
        watcher.watch([tmp_path], batches.append)
        try:
            await asyncio.sleep(0.5)
            (tmp_path / "Main.res").write_text("let x = 1\n", encoding="utf-8")
            for _ in range(50):
                if batches:
                    break
                await asyncio.sleep(0.1)
        finally:
            watcher.close()

        assert batches
        assert any(path.endswith("Main.res") for path in batches[0])
