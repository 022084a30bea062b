"""Uniform external process execution across runtimes.

Each supported :class:`RuntimeKind` gets one :class:`RuntimeCommands` entry
describing how that runtime launches registry-distributed tools, its native
test runner, benchmarks and a watched entry point. Kinds without an entry
(browser host, unknown) cannot spawn processes: every call degrades to
``False`` plus a diagnostic instead of raising.

Failures are reported verbatim and never retried here; retry policy belongs
to the caller.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..config import ToolConfig
from ..utils import console, run_command
from .detector import RuntimeKind, detect


@dataclass(frozen=True)
class ProcessOutput:
    """Exit status and captured output of a finished process."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def lines(self) -> list[str]:
        """Non-empty stdout and stderr lines, stdout first."""
        out: list[str] = []
        for stream in (self.stdout, self.stderr):
            out.extend(line.strip() for line in stream.splitlines() if line.strip())
        return out


Invocation = tuple[str, list[str]]


@dataclass(frozen=True)
class RuntimeCommands:
    """How one runtime expresses each kind of invocation."""

    tool: Callable[[str, list[str]], Invocation]
    tests: Callable[[ToolConfig, bool], Invocation]
    bench: Callable[[ToolConfig], Invocation]
    serve: Callable[[str], Invocation]


COMMANDS: dict[RuntimeKind, RuntimeCommands] = {
    RuntimeKind.DENO: RuntimeCommands(
        tool=lambda package, args: ("deno", ["run", "-A", f"npm:{package}", *args]),
        tests=lambda tools, watch: (
            "deno",
            ["test", "--allow-all", *(["--watch"] if watch else []), tools.test_dir],
        ),
        bench=lambda tools: ("deno", ["bench", "--allow-all", tools.bench_dir]),
        serve=lambda entry: ("deno", ["run", "--watch", "--allow-all", entry]),
    ),
    RuntimeKind.BUN: RuntimeCommands(
        tool=lambda package, args: ("bunx", [package, *args]),
        tests=lambda tools, watch: ("bun", ["test", *(["--watch"] if watch else [])]),
        # Bun has no built-in bench command; the project ships a script.
        bench=lambda tools: ("bun", ["run", tools.bench_entry]),
        serve=lambda entry: ("bun", ["--watch", entry]),
    ),
}


class ProcessRunner:
    """Runs external commands under the detected runtime.

    Args:
        runtime: Runtime to dispatch on. Defaults to :func:`detect`.
        tools: Names of registry tools and test/bench locations.
        cwd: Working directory for every spawned process.
    """

    def __init__(
        self,
        runtime: RuntimeKind | None = None,
        tools: ToolConfig | None = None,
        cwd: str | Path | None = None,
    ) -> None:
        self.runtime = runtime if runtime is not None else detect()
        self.tools = tools or ToolConfig()
        self.cwd = Path(cwd) if cwd else None

    @property
    def commands(self) -> Optional[RuntimeCommands]:
        """Command table entry for this runtime, ``None`` when unsupported."""
        return COMMANDS.get(self.runtime)

    @property
    def supported(self) -> bool:
        return self.commands is not None

    def _unsupported(self, what: str) -> None:
        console.print(
            f"[yellow]Cannot {what}: no process support on runtime "
            f"'{self.runtime.value}'.[/yellow]"
        )

    # -- Core operations -----------------------------------------------------

    async def run_captured(
        self,
        command: str,
        args: list[str],
        cwd: str | Path | None = None,
    ) -> ProcessOutput:
        """Run *command* to completion, capturing its output.

        A process that could not be started, or an unsupported runtime, is
        reported as exit code ``-1`` with the reason in ``stderr``.
        """
        if not self.supported:
            self._unsupported(f"run '{command}'")
            return ProcessOutput(returncode=-1, stderr="unsupported runtime")

        try:
            returncode, stdout, stderr = await run_command(
                [command, *args], cwd=cwd or self.cwd
            )
        except FileNotFoundError:
            console.print(
                f"[red]Command not found: '{command}'. "
                "Ensure it is installed and in PATH.[/red]"
            )
            return ProcessOutput(returncode=-1, stderr=f"command not found: {command}")
        except PermissionError:
            console.print(f"[red]Permission denied executing: '{command}'.[/red]")
            return ProcessOutput(returncode=-1, stderr=f"permission denied: {command}")
        except OSError as exc:
            console.print(f"[red]Could not start '{command}': {exc}[/red]")
            return ProcessOutput(returncode=-1, stderr=str(exc))

        return ProcessOutput(returncode=returncode, stdout=stdout, stderr=stderr)

    async def run(
        self,
        command: str,
        args: list[str],
        cwd: str | Path | None = None,
    ) -> bool:
        """Run *command* with inherited stdio and report whether it exited 0."""
        if not self.supported:
            self._unsupported(f"run '{command}'")
            return False

        try:
            returncode, _, _ = await run_command(
                [command, *args], cwd=cwd or self.cwd, capture=False
            )
        except FileNotFoundError:
            console.print(
                f"[red]Command not found: '{command}'. "
                "Ensure it is installed and in PATH.[/red]"
            )
            return False
        except OSError as exc:
            console.print(f"[red]Could not start '{command}': {exc}[/red]")
            return False

        if returncode != 0:
            console.print(f"[dim]{command} exited with code {returncode}[/dim]")
        return returncode == 0

    async def spawn(
        self,
        command: str,
        args: list[str],
        cwd: str | Path | None = None,
    ) -> Optional[asyncio.subprocess.Process]:
        """Start *command* without waiting for it; ``None`` if it cannot start."""
        if not self.supported:
            self._unsupported(f"spawn '{command}'")
            return None
        try:
            return await asyncio.create_subprocess_exec(
                command,
                *args,
                cwd=str(cwd or self.cwd) if (cwd or self.cwd) else None,
            )
        except OSError as exc:
            console.print(f"[red]Could not start '{command}': {exc}[/red]")
            return None

    # -- Derived operations --------------------------------------------------

    def tool_invocation(self, package: str, args: list[str]) -> Optional[Invocation]:
        """The ``(command, args)`` that runs registry *package* on this runtime."""
        commands = self.commands
        if commands is None:
            return None
        return commands.tool(package, list(args))

    async def run_tool(self, package: str, args: list[str]) -> bool:
        """Run a registry-distributed tool without a local install step."""
        invocation = self.tool_invocation(package, args)
        if invocation is None:
            self._unsupported(f"run tool '{package}'")
            return False
        command, full_args = invocation
        return await self.run(command, full_args)

    async def run_compiler_tool(self, args: list[str]) -> bool:
        """Invoke the compiler with *args* (``build``, ``clean``, ...)."""
        return await self.run_tool(self.tools.compiler_package, args)

    async def run_tests(self, watch: bool = False) -> bool:
        """Run the runtime's own test command over the project."""
        commands = self.commands
        if commands is None:
            self._unsupported("run tests")
            return False
        command, args = commands.tests(self.tools, watch)
        return await self.run(command, args)

    async def run_benchmarks(self) -> bool:
        commands = self.commands
        if commands is None:
            self._unsupported("run benchmarks")
            return False
        command, args = commands.bench(self.tools)
        return await self.run(command, args)

    async def serve(self, entry: str | Path) -> Optional[asyncio.subprocess.Process]:
        """Start *entry* under the runtime's watch mode in the background."""
        commands = self.commands
        if commands is None:
            self._unsupported("serve")
            return None
        command, args = commands.serve(str(entry))
        return await self.spawn(command, args)
