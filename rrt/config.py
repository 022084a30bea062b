"""rrt configuration.

Centralised, typed configuration for the runtime tools. All settings use
Pydantic v2 models so they can be validated at construction time and serialised
to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

VERSION = "0.1.0"


class DevServerConfig(BaseModel):
    """Where the dev loop serves the compiled entry."""

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, ge=1, le=65535)
    ready_timeout: int = Field(
        default=30, ge=0, description="Seconds to wait for the dev server to answer"
    )

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"


class WatchConfig(BaseModel):
    """File watcher tuning."""

    paths: list[str] = Field(default=["src"])
    debounce_ms: int = Field(
        default=50, ge=0, description="Window in which change events are coalesced"
    )
    force_polling: bool = Field(default=False)


class ToolConfig(BaseModel):
    """External tools invoked through the runtime's package registry."""

    compiler_package: str = Field(default="rescript")
    bundler_package: str = Field(default="esbuild")
    test_dir: str = Field(default="tests/")
    bench_dir: str = Field(default="bench/")
    bench_entry: str = Field(default="bench/index.ts")
    version_timeout: float = Field(
        default=5.0, gt=0, description="Timeout for `<runtime> --version` probes"
    )


class Config(BaseModel):
    """Global rrt configuration.

    Instances are typically created once by the embedding CLI and then passed
    to the process runner, build orchestrator and dev orchestrator.
    """

    project_dir: Path = Field(default=Path("."))
    entry_path: Path = Field(default=Path("src/Main.res.js"))
    output_dir: Path = Field(default=Path("dist"))
    dev: DevServerConfig = Field(default_factory=DevServerConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    tools: ToolConfig = Field(default_factory=ToolConfig)

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    @property
    def entry_file(self) -> Path:
        """Entry path resolved against the project directory."""
        return self.project_dir / self.entry_path

    @property
    def output_path(self) -> Path:
        """Output directory resolved against the project directory."""
        return self.project_dir / self.output_dir

    @property
    def watch_paths(self) -> list[Path]:
        return [self.project_dir / p for p in self.watch.paths]

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            RRT_PROJECT_DIR, RRT_ENTRY, RRT_OUTPUT_DIR,
            RRT_HOST, RRT_PORT,
            RRT_WATCH_PATHS, RRT_DEBOUNCE_MS, RRT_FORCE_POLLING,
            RRT_COMPILER_PACKAGE, RRT_BUNDLER_PACKAGE.
        """
        dev_kwargs: dict[str, Any] = {}
        if os.environ.get("RRT_HOST"):
            dev_kwargs["host"] = os.environ["RRT_HOST"]
        if os.environ.get("RRT_PORT"):
            dev_kwargs["port"] = int(os.environ["RRT_PORT"])

        watch_kwargs: dict[str, Any] = {}
        if os.environ.get("RRT_WATCH_PATHS"):
            watch_kwargs["paths"] = [
                p.strip() for p in os.environ["RRT_WATCH_PATHS"].split(",") if p.strip()
            ]
        if os.environ.get("RRT_DEBOUNCE_MS"):
            watch_kwargs["debounce_ms"] = int(os.environ["RRT_DEBOUNCE_MS"])
        if os.environ.get("RRT_FORCE_POLLING"):
            watch_kwargs["force_polling"] = os.environ["RRT_FORCE_POLLING"].lower() in (
                "1",
                "true",
                "yes",
            )

        tool_kwargs: dict[str, Any] = {}
        if os.environ.get("RRT_COMPILER_PACKAGE"):
            tool_kwargs["compiler_package"] = os.environ["RRT_COMPILER_PACKAGE"]
        if os.environ.get("RRT_BUNDLER_PACKAGE"):
            tool_kwargs["bundler_package"] = os.environ["RRT_BUNDLER_PACKAGE"]

        return cls(
            project_dir=Path(os.environ.get("RRT_PROJECT_DIR", ".")),
            entry_path=Path(os.environ.get("RRT_ENTRY", "src/Main.res.js")),
            output_dir=Path(os.environ.get("RRT_OUTPUT_DIR", "dist")),
            dev=DevServerConfig(**dev_kwargs),
            watch=WatchConfig(**watch_kwargs),
            tools=ToolConfig(**tool_kwargs),
        )
