"""Live development loop.

Composes the build orchestrator, file watcher and process runner:

1. Run an initial build. A failure is reported but startup continues, so a
   broken tree can be fixed and picked up by the next rebuild.
2. Mark the loop running and record the build time.
3. If watching, rebuild on every change batch the watcher delivers.
4. If serving, start the compiled entry under the runtime's own watch mode
   and poll the dev server until it answers.

Rebuilds are single-flight: a change batch arriving while a rebuild is in
flight queues exactly one follow-up rebuild instead of starting a second
build concurrently.

State is owned by the orchestrator instance; several loops can coexist in one
process.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .builder.models import BuildConfig, BuildMode, BuildResult
from .builder.orchestrator import BuildOrchestrator
from .config import Config
from .runtime.detector import RuntimeKind, detect
from .runtime.process import ProcessRunner
from .runtime.watcher import FileWatcher
from .utils import (
    console,
    format_duration_ms,
    print_error,
    print_header,
    print_success,
    print_warning,
    wait_for_health,
)


class DevConfig(BaseModel):
    """Options for one dev loop."""

    model_config = ConfigDict(frozen=True)

    build: BuildConfig = Field(
        default_factory=lambda: BuildConfig.preset(BuildMode.DEVELOPMENT, target=detect())
    )
    watch: bool = True
    watch_paths: list[Path] = Field(default=[Path("src")])
    serve: bool = False
    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)
    ready_timeout: int = Field(default=30, ge=0)

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        build: BuildConfig | None = None,
        watch: bool = True,
        serve: bool = False,
        target: RuntimeKind | None = None,
    ) -> "DevConfig":
        return cls(
            build=build
            or BuildConfig.preset(
                BuildMode.DEVELOPMENT,
                entry_path=config.entry_path,
                output_dir=config.output_dir,
                target=target if target is not None else detect(),
            ),
            watch=watch,
            watch_paths=config.watch_paths,
            serve=serve,
            host=config.dev.host,
            port=config.dev.port,
            ready_timeout=config.dev.ready_timeout,
        )


@dataclass
class DevState:
    """Mutable status of a dev loop, written only by its orchestrator."""

    running: bool = False
    last_build_timestamp: float = 0.0
    errors: list[str] = field(default_factory=list)


class DevOrchestrator:
    """Build-watch-rebuild loop for one project."""

    def __init__(
        self,
        builder: BuildOrchestrator | None = None,
        watcher: FileWatcher | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        self.runner = runner or (builder.runner if builder else ProcessRunner())
        self.builder = builder or BuildOrchestrator(self.runner)
        self.watcher = watcher or FileWatcher(self.runner.runtime)
        self.state = DevState()
        self.config: Optional[DevConfig] = None
        self.last_result: Optional[BuildResult] = None
        self._rebuilding = False
        self._rebuild_pending = False
        self._tasks: set[asyncio.Task[Optional[BuildResult]]] = set()
        self._serve_process: Optional[asyncio.subprocess.Process] = None

    @classmethod
    def from_config(cls, config: Config) -> "DevOrchestrator":
        """Wire a runner, builder and watcher from global configuration."""
        runner = ProcessRunner(tools=config.tools, cwd=config.project_dir)
        watcher = FileWatcher(
            runner.runtime,
            debounce_ms=config.watch.debounce_ms,
            force_polling=config.watch.force_polling,
        )
        return cls(builder=BuildOrchestrator(runner), watcher=watcher, runner=runner)

    # -- Lifecycle -----------------------------------------------------------

    async def start(self, dev_config: DevConfig) -> DevState:
        """Run the initial build and start watching (and serving) if asked."""
        print_header(f"Dev loop on {self.runner.runtime.value}")
        self.config = dev_config

        result = await self._build()
        if result is None or not result.success:
            print_warning("Initial build failed; waiting for changes to rebuild.")

        self.state.running = True
        self.state.last_build_timestamp = time.time()

        if dev_config.watch:
            paths = [str(p) for p in dev_config.watch_paths]
            console.print(f"[green]Watching {', '.join(paths)} for changes...[/green]")
            self.watcher.watch(paths, self._on_change)

        if dev_config.serve:
            await self._serve(dev_config)

        return self.state

    async def stop(self) -> DevState:
        """Stop watching and serving.

        Builds already in flight are left to finish on their own.
        """
        self.state.running = False
        self.watcher.close()

        process, self._serve_process = self._serve_process, None
        if process is not None and process.returncode is None:
            process.terminate()
            await process.wait()

        console.print("[dim]Dev loop stopped.[/dim]")
        return self.state

    # -- Rebuilds ------------------------------------------------------------

    async def rebuild(self) -> Optional[BuildResult]:
        """Rebuild unless one is already in flight, in which case queue one."""
        if not self.state.running or self.config is None:
            return None
        if self._rebuilding:
            self._rebuild_pending = True
            return None

        self._rebuilding = True
        try:
            result = await self._build()
            while self._rebuild_pending and self.state.running:
                self._rebuild_pending = False
                result = await self._build()
            return result
        finally:
            self._rebuilding = False
            self._rebuild_pending = False

    def _on_change(self, paths: list[str]) -> None:
        console.print(f"[dim]{len(paths)} file(s) changed, rebuilding...[/dim]")
        task = asyncio.get_running_loop().create_task(self.rebuild())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _build(self) -> Optional[BuildResult]:
        assert self.config is not None
        try:
            result = await self.builder.build(self.config.build)
        except Exception as exc:
            message = str(exc).strip() or "Unknown error"
            print_error(f"Build crashed: {message}")
            self.state.errors = [message]
            return None

        self.last_result = result
        self.state.last_build_timestamp = time.time()
        self.state.errors = list(result.errors)
        if result.success:
            print_success(f"Build complete ({format_duration_ms(result.duration_ms)})")
        return result

    # -- Serving -------------------------------------------------------------

    async def _serve(self, dev_config: DevConfig) -> None:
        console.print(f"[cyan]Starting dev server at {dev_config.url}...[/cyan]")
        self._serve_process = await self.runner.serve(dev_config.build.entry_path)
        if self._serve_process is None:
            print_warning("Dev server could not be started.")
            return

        if await wait_for_health(dev_config.url, timeout=dev_config.ready_timeout):
            print_success(f"Dev server ready at {dev_config.url}")
        else:
            print_warning(
                f"Dev server did not answer at {dev_config.url} "
                f"within {dev_config.ready_timeout}s"
            )
