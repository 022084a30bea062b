"""rrt builder module.

Sequences the external compiler and the per-target bundler into a single
build, and reports the outcome.

Key classes:
    BuildConfig        - Immutable build description (development/production)
    BuildResult        - Outcome of one build
    BuildOrchestrator  - compile -> bundle -> report
"""

from .bundlers import BUNDLERS, bundle_bun, bundle_deno, bundler_for
from .models import BuildConfig, BuildMode, BuildResult, BuildStage, BundleOutput
from .orchestrator import BuildOrchestrator

__all__ = [
    # Models
    "BuildConfig",
    "BuildMode",
    "BuildResult",
    "BuildStage",
    "BundleOutput",
    # Bundling
    "BUNDLERS",
    "bundler_for",
    "bundle_deno",
    "bundle_bun",
    # Orchestration
    "BuildOrchestrator",
]
