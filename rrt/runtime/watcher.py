"""Filesystem change notification across runtimes.

Both supported runtimes watch through an OS-level observer (``watchdog``),
which pushes events from its own thread. Events are handed to the event loop
and coalesced: everything that arrives within ``debounce_ms`` of the first
event in a batch is delivered as one ordered, de-duplicated list of paths.
Deliveries for one watcher never overlap.

Runtimes with no watcher support degrade to a no-op plus a diagnostic.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path
from typing import Optional, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from ..utils import console
from .detector import RuntimeKind, detect

ChangeCallback = Callable[[list[str]], Union[None, Awaitable[None]]]

_WATCH_SUPPORT: frozenset[RuntimeKind] = frozenset({RuntimeKind.DENO, RuntimeKind.BUN})

# Events that do not represent a content change.
_IGNORED_EVENT_TYPES = frozenset({"opened", "closed_no_write"})


def _observer_factory(runtime: RuntimeKind, force_polling: bool):
    if runtime not in _WATCH_SUPPORT:
        return None
    return PollingObserver if force_polling else Observer


def _decode(path: Union[str, bytes]) -> str:
    if isinstance(path, bytes):
        return path.decode("utf-8", errors="replace")
    return path


class _ForwardingHandler(FileSystemEventHandler):
    """Forwards event paths from the observer thread into the event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue[str]) -> None:
        super().__init__()
        self._loop = loop
        self._queue = queue

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in _IGNORED_EVENT_TYPES:
            return
        if event.is_directory and event.event_type == "modified":
            return
        paths = [_decode(event.src_path)]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(_decode(dest))
        for path in paths:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, path)


class FileWatcher:
    """Watches paths and delivers coalesced change batches.

    Args:
        runtime: Runtime to dispatch on. Defaults to :func:`detect`.
        debounce_ms: Coalescing window for one batch.
        force_polling: Use a polling observer instead of the native one.
    """

    def __init__(
        self,
        runtime: RuntimeKind | None = None,
        *,
        debounce_ms: int = 50,
        force_polling: bool = False,
    ) -> None:
        self.runtime = runtime if runtime is not None else detect()
        self.debounce_ms = debounce_ms
        self.force_polling = force_polling
        self._observer = None
        self._task: Optional[asyncio.Task[None]] = None
        self._queue: Optional[asyncio.Queue[str]] = None

    @property
    def active(self) -> bool:
        return self._observer is not None

    def watch(self, paths: Iterable[str | Path], on_change: ChangeCallback) -> None:
        """Start watching *paths*, calling *on_change* once per batch.

        Must be called from inside a running event loop. Never raises: an
        unsupported runtime, a missing loop or an unwatchable path is reported
        and leaves the watcher inactive.
        """
        factory = _observer_factory(self.runtime, self.force_polling)
        if factory is None:
            console.print(
                f"[yellow]File watching is not available on runtime "
                f"'{self.runtime.value}'; changes will not trigger rebuilds.[/yellow]"
            )
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            console.print("[yellow]File watching needs a running event loop; skipped.[/yellow]")
            return

        if self.active:
            self.close()

        queue: asyncio.Queue[str] = asyncio.Queue()
        handler = _ForwardingHandler(loop, queue)
        observer = factory()
        try:
            for path in paths:
                observer.schedule(handler, str(path), recursive=True)
            observer.start()
        except OSError as exc:
            # Emitters started for earlier paths are still running; stop and join them.
            observer.unschedule_all()
            console.print(f"[red]Could not watch {exc.filename or 'paths'}: {exc}[/red]")
            return

        self._observer = observer
        self._queue = queue
        self._task = loop.create_task(self._deliver(queue, on_change))

    async def _deliver(self, queue: asyncio.Queue[str], on_change: ChangeCallback) -> None:
        while True:
            batch = [await queue.get()]
            if self.debounce_ms:
                await asyncio.sleep(self.debounce_ms / 1000.0)
            while not queue.empty():
                batch.append(queue.get_nowait())

            changed = list(dict.fromkeys(batch))
            try:
                result = on_change(changed)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                console.print(f"[red]Change handler failed: {exc}[/red]")

    def close(self) -> None:
        """Stop the native observer and the delivery task."""
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join(timeout=5)
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        self._queue = None
