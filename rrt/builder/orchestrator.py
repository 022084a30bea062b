"""Build orchestration: compile -> bundle -> report.

The compiler is an opaque external tool reached through the process runner.
Stages run strictly in sequence; a failed compile never reaches bundling, and
nothing here retries.
"""

from __future__ import annotations

import time

from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..runtime.process import ProcessRunner
from ..utils import console
from .bundlers import bundler_for, extract_errors, extract_warnings
from .models import BuildConfig, BuildResult, BuildStage


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


class BuildOrchestrator:
    """Runs builds through the compiler and the target's bundler.

    ``stage`` tracks the most recent build's position in the state machine.
    """

    def __init__(self, runner: ProcessRunner | None = None) -> None:
        self.runner = runner or ProcessRunner()
        self.stage = BuildStage.IDLE

    async def build(self, config: BuildConfig) -> BuildResult:
        """Compile and bundle according to *config*.

        Never raises for tool failures; they come back as
        ``BuildResult(success=False)``.
        """
        label = "production" if config.is_production else "development"
        console.print(f"[cyan]Building for {label} (target: {config.target.value})...[/cyan]")
        start = time.perf_counter()

        # -- Compiling -------------------------------------------------------
        self.stage = BuildStage.COMPILING
        if config.is_production:
            # Clean result is not checked; a stale tree is rebuilt anyway.
            await self.runner.run_compiler_tool(["clean"])

        if not await self.runner.run_compiler_tool(["build"]):
            return self._report(
                BuildResult(
                    success=False,
                    duration_ms=_elapsed_ms(start),
                    errors=["compilation failed"],
                )
            )

        # -- Bundling --------------------------------------------------------
        self.stage = BuildStage.BUNDLING
        bundler = bundler_for(config.target)
        if bundler is None:
            return self._report(
                BuildResult(
                    success=True,
                    duration_ms=_elapsed_ms(start),
                    output_files=[config.entry_path],
                    warnings=[
                        f"No bundler available for target '{config.target.value}'; "
                        f"shipping compiled entry {config.entry_path} as-is"
                    ],
                )
            )

        bundled = await bundler(self.runner, config)
        errors: list[str] = []
        if not bundled.success:
            errors = ["bundling failed", *extract_errors(bundled.logs)]

        return self._report(
            BuildResult(
                success=bundled.success and not errors,
                duration_ms=_elapsed_ms(start),
                output_files=bundled.outputs if bundled.success else [],
                errors=errors,
                warnings=extract_warnings(bundled.logs),
            )
        )

    async def watch(self) -> bool:
        """Continuous compilation, driven by the compiler's own watch flag."""
        console.print("[yellow]Starting compiler in watch mode...[/yellow]")
        return await self.runner.run_compiler_tool(["build", "-w"])

    async def clean(self) -> bool:
        console.print("[cyan]Cleaning...[/cyan]")
        return await self.runner.run_compiler_tool(["clean"])

    async def format(self) -> bool:
        console.print("[cyan]Formatting...[/cyan]")
        return await self.runner.run_compiler_tool(["format", "-all"])

    # -- Reporting -----------------------------------------------------------

    def _report(self, result: BuildResult) -> BuildResult:
        self.stage = BuildStage.REPORTED
        self._display_result(result)
        return result

    def _display_result(self, result: BuildResult) -> None:
        """Display a formatted result summary to the console."""
        if result.success:
            style = "green"
            title = "Build Succeeded"
        else:
            style = "red"
            title = "Build Failed"

        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Key", style="bold")
        table.add_column("Value")

        table.add_row("Duration", f"{result.duration_ms:.1f}ms")
        table.add_row("Output Files", str(len(result.output_files)))
        for path in result.output_files:
            table.add_row("", escape(str(path)))
        if result.warnings:
            table.add_row("Warnings", str(len(result.warnings)))
        if result.errors:
            table.add_row("Errors", str(len(result.errors)))

        console.print(Panel(table, title=title, border_style=style))

        for warning in result.warnings[:5]:
            console.print(f"  [yellow]! {escape(warning[:300])}[/yellow]")
        for i, err in enumerate(result.errors[:5], 1):
            console.print(f"  [red]{i}. {escape(err[:300])}[/red]")
        if len(result.errors) > 5:
            console.print(f"  [dim]... and {len(result.errors) - 5} more errors[/dim]")
