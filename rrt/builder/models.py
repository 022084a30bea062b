"""Build configuration and result models."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..runtime.detector import RuntimeKind


class BuildMode(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class BuildStage(str, Enum):
    """Linear build state machine: idle -> compiling -> bundling -> reported."""

    IDLE = "idle"
    COMPILING = "compiling"
    BUNDLING = "bundling"
    REPORTED = "reported"


_PRODUCTION_OVERRIDES: dict[str, Any] = {"minify": True, "source_maps": False}


class BuildConfig(BaseModel):
    """Immutable description of one build."""

    model_config = ConfigDict(frozen=True)

    mode: BuildMode = BuildMode.DEVELOPMENT
    entry_path: Path = Field(default=Path("src/Main.res.js"))
    output_dir: Path = Field(default=Path("dist"))
    minify: bool = False
    source_maps: bool = True
    target: RuntimeKind = RuntimeKind.UNKNOWN

    @classmethod
    def preset(cls, mode: BuildMode, **overrides: Any) -> "BuildConfig":
        """Development defaults, with the production switches forced on top.

        Production always builds with ``minify=True`` and ``source_maps=False``,
        whatever *overrides* say about them.
        """
        values = {**overrides, "mode": mode}
        if mode is BuildMode.PRODUCTION:
            values.update(_PRODUCTION_OVERRIDES)
        return cls(**values)

    @property
    def is_production(self) -> bool:
        return self.mode is BuildMode.PRODUCTION


class BuildResult(BaseModel):
    """Outcome of one build invocation."""

    model_config = ConfigDict(frozen=True)

    success: bool
    duration_ms: float = Field(default=0.0, ge=0.0)
    output_files: tuple[Path, ...] = Field(default_factory=tuple)
    errors: tuple[str, ...] = Field(default_factory=tuple)
    warnings: tuple[str, ...] = Field(default_factory=tuple)

    @computed_field  # type: ignore[misc]
    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def summary(self) -> str:
        """Return a human-readable summary of the result."""
        status = "SUCCESS" if self.success else "FAILED"
        lines = [
            f"Status: {status}",
            f"Duration: {self.duration_ms:.1f}ms",
            f"Output files: {len(self.output_files)}",
        ]
        for path in self.output_files:
            lines.append(f"  - {path}")
        if self.errors:
            lines.append(f"Errors: {len(self.errors)}")
            for err in self.errors[:5]:
                lines.append(f"  - {err[:200]}")
        if self.warnings:
            lines.append(f"Warnings: {len(self.warnings)}")
            for warning in self.warnings[:5]:
                lines.append(f"  - {warning[:200]}")
        return "\n".join(lines)


class BundleOutput(BaseModel):
    """What a bundling strategy reports back."""

    success: bool
    outputs: list[Path] = Field(default_factory=list)
    logs: list[str] = Field(default_factory=list)
