"""Host runtime detection and capability lookup.

The toolchain drives one of several JavaScript runtimes. Which one is decided
once per process by probing well-known markers in priority order:

1. ``RRT_RUNTIME`` override (``deno``, ``bun``, ``browser``, ``unknown``)
2. Deno: ``DENO_INSTALL`` / ``DENO_DIR`` set, or ``deno`` on ``PATH``
3. Bun: ``BUN_INSTALL`` set, or ``bun`` on ``PATH``
4. Browser host: running under Pyodide (``sys.platform == "emscripten"``)

The first marker that matches wins; nothing matching yields
:attr:`RuntimeKind.UNKNOWN`.
"""

from __future__ import annotations

import os
import platform
import shutil
import subprocess
import sys
from collections.abc import Callable
from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config import VERSION
from ..utils import console, print_summary_table


class RuntimeKind(str, Enum):
    """Hosting environment the toolchain runs against."""

    DENO = "deno"
    BUN = "bun"
    BROWSER = "browser"
    UNKNOWN = "unknown"


class Capabilities(BaseModel):
    """Feature flags available under a runtime kind."""

    model_config = ConfigDict(frozen=True)

    filesystem: bool = False
    network: bool = False
    native_modules: bool = False
    web_assembly: bool = False


class RuntimeInfo(BaseModel):
    """Snapshot of the detected runtime."""

    model_config = ConfigDict(frozen=True)

    kind: RuntimeKind
    version: Optional[str] = Field(default=None, description="None when it could not be read")
    uses_permission_model: bool = False
    platform: str = Field(default="unknown")
    arch: str = Field(default="unknown")


_CAPABILITIES: dict[RuntimeKind, Capabilities] = {
    RuntimeKind.DENO: Capabilities(
        filesystem=True, network=True, native_modules=False, web_assembly=True
    ),
    RuntimeKind.BUN: Capabilities(
        filesystem=True, network=True, native_modules=True, web_assembly=True
    ),
    RuntimeKind.BROWSER: Capabilities(
        filesystem=False, network=True, native_modules=False, web_assembly=True
    ),
    RuntimeKind.UNKNOWN: Capabilities(),
}

_PERMISSION_MODEL: frozenset[RuntimeKind] = frozenset({RuntimeKind.DENO})

# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------


def _deno_marker() -> bool:
    if os.environ.get("DENO_INSTALL") or os.environ.get("DENO_DIR"):
        return True
    return shutil.which("deno") is not None


def _bun_marker() -> bool:
    if os.environ.get("BUN_INSTALL"):
        return True
    return shutil.which("bun") is not None


def _browser_marker() -> bool:
    return sys.platform == "emscripten"


_MARKERS: tuple[tuple[RuntimeKind, Callable[[], bool]], ...] = (
    (RuntimeKind.DENO, _deno_marker),
    (RuntimeKind.BUN, _bun_marker),
    (RuntimeKind.BROWSER, _browser_marker),
)


def _override() -> Optional[RuntimeKind]:
    raw = os.environ.get("RRT_RUNTIME", "").strip().lower()
    if not raw:
        return None
    try:
        return RuntimeKind(raw)
    except ValueError:
        console.print(f"[yellow]Ignoring unrecognised RRT_RUNTIME={raw!r}[/yellow]")
        return None


@lru_cache(maxsize=1)
def detect() -> RuntimeKind:
    """Return the host runtime kind.

    Computed on first call and memoised for the rest of the process, so
    repeated calls always agree even if ``PATH`` or the environment change
    later.
    """
    override = _override()
    if override is not None:
        return override
    for kind, marker in _MARKERS:
        if marker():
            return kind
    return RuntimeKind.UNKNOWN


def capabilities(kind: RuntimeKind) -> Capabilities:
    """Pure lookup of the capability flags for *kind*."""
    return _CAPABILITIES.get(kind, _CAPABILITIES[RuntimeKind.UNKNOWN])


# ---------------------------------------------------------------------------
# Version probing
# ---------------------------------------------------------------------------


def _parse_version(output: str) -> Optional[str]:
    """Pull the version number out of ``deno --version`` / ``bun --version``.

    Deno prints ``deno 2.1.4 (stable, release, x86_64-unknown-linux-gnu)`` on
    its first line; Bun prints just ``1.1.38``.
    """
    lines = output.strip().splitlines()
    if not lines:
        return None
    tokens = lines[0].split()
    if not tokens:
        return None
    if tokens[0].lower() in ("deno", "bun") and len(tokens) > 1:
        return tokens[1]
    return tokens[0]


def _probe_version(executable: str, timeout: float) -> Optional[str]:
    try:
        completed = subprocess.run(
            [executable, "--version"],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    if completed.returncode != 0:
        return None
    return _parse_version(completed.stdout)


def _browser_version() -> Optional[str]:
    pyodide = sys.modules.get("pyodide")
    return getattr(pyodide, "__version__", None)


def runtime_version(kind: RuntimeKind, timeout: float = 5.0) -> Optional[str]:
    """Best-effort version lookup; ``None`` when the host exposes none."""
    if kind is RuntimeKind.DENO:
        return _probe_version("deno", timeout)
    if kind is RuntimeKind.BUN:
        return _probe_version("bun", timeout)
    if kind is RuntimeKind.BROWSER:
        return _browser_version()
    return None


def info(timeout: float = 5.0) -> RuntimeInfo:
    """Compose :func:`detect` with the version, platform and arch lookups."""
    kind = detect()
    return RuntimeInfo(
        kind=kind,
        version=runtime_version(kind, timeout=timeout),
        uses_permission_model=kind in _PERMISSION_MODEL,
        platform=platform.system().lower() or "unknown",
        arch=platform.machine().lower() or "unknown",
    )


def print_info(runtime_info: RuntimeInfo | None = None) -> None:
    """Render runtime details as a summary table."""
    runtime_info = runtime_info or info()
    caps = capabilities(runtime_info.kind)
    print_summary_table(
        {
            "Runtime": f"{runtime_info.kind.value} v{runtime_info.version or 'unknown'}",
            "Platform": runtime_info.platform,
            "Arch": runtime_info.arch,
            "Permissions": "enforced" if runtime_info.uses_permission_model else "none",
            "Capabilities": ", ".join(
                name for name, enabled in caps.model_dump().items() if enabled
            )
            or "none",
            "rrt": f"v{VERSION}",
        },
        title="Runtime Info",
    )
