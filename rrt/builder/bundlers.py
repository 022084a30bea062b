"""Per-target bundling strategies.

One strategy per runtime kind that ships a bundler. Each takes the compiled
entry point and emits bundled output into ``config.output_dir``:

- Deno: ``esbuild`` fetched through Deno's ``npm:`` specifier
- Bun: the built-in ``bun build``

Targets without a strategy are handled by the build orchestrator, which
degrades to shipping the compiled entry as-is.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Optional

from ..runtime.detector import RuntimeKind
from ..runtime.process import COMMANDS, ProcessOutput, ProcessRunner
from .models import BuildConfig, BundleOutput

Bundler = Callable[[ProcessRunner, BuildConfig], Awaitable[BundleOutput]]

_ERROR_KEYWORDS = ("error", "failed", "exception", "fatal")


def expected_outputs(config: BuildConfig) -> list[Path]:
    """Files a bundler is expected to write for *config*."""
    bundle = config.output_dir / f"{config.entry_path.stem}.js"
    outputs = [bundle]
    if config.source_maps:
        outputs.append(bundle.with_name(bundle.name + ".map"))
    return outputs


def extract_errors(lines: list[str]) -> list[str]:
    """Log lines that look like errors."""
    return [
        line for line in lines if any(keyword in line.lower() for keyword in _ERROR_KEYWORDS)
    ]


def extract_warnings(lines: list[str]) -> list[str]:
    """Log lines that look like warnings."""
    return [line for line in lines if "warn" in line.lower()]


def _collect(config: BuildConfig, output: ProcessOutput, cwd: Optional[Path]) -> BundleOutput:
    if not output.success:
        return BundleOutput(success=False, logs=output.lines)
    base = cwd or Path(".")
    produced = [path for path in expected_outputs(config) if (base / path).exists()]
    return BundleOutput(success=True, outputs=produced, logs=output.lines)


async def bundle_deno(runner: ProcessRunner, config: BuildConfig) -> BundleOutput:
    """Bundle with esbuild, run through ``deno run -A npm:esbuild``."""
    args = [
        str(config.entry_path),
        "--bundle",
        "--format=esm",
        "--platform=neutral",
        f"--outdir={config.output_dir}",
    ]
    if config.minify:
        args.append("--minify")
    if config.source_maps:
        args.append("--sourcemap")
    command, full_args = COMMANDS[RuntimeKind.DENO].tool(runner.tools.bundler_package, args)
    output = await runner.run_captured(command, full_args)
    return _collect(config, output, runner.cwd)


async def bundle_bun(runner: ProcessRunner, config: BuildConfig) -> BundleOutput:
    """Bundle with ``bun build``."""
    args = [
        "build",
        str(config.entry_path),
        "--outdir",
        str(config.output_dir),
        "--target",
        "bun",
    ]
    if config.minify:
        args.append("--minify")
    if config.source_maps:
        args.append("--sourcemap=external")
    output = await runner.run_captured("bun", args)
    return _collect(config, output, runner.cwd)


BUNDLERS: dict[RuntimeKind, Bundler] = {
    RuntimeKind.DENO: bundle_deno,
    RuntimeKind.BUN: bundle_bun,
}


def bundler_for(target: RuntimeKind) -> Optional[Bundler]:
    """Strategy for *target*, or ``None`` when the target has no bundler."""
    return BUNDLERS.get(target)
