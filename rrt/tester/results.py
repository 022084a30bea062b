"""Test result models.

Pass and fail counts are derived from the recorded results, so they always
add up to the number of executed tests.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

UNKNOWN_ERROR = "Unknown error"


class TestResult(BaseModel):
    """Outcome of one executed test case."""

    __test__ = False
    model_config = ConfigDict(frozen=True)

    name: str
    passed: bool
    duration_ms: float = Field(default=0.0, ge=0.0)
    error: Optional[str] = None


class TestSuite(BaseModel):
    """Aggregated results of one suite run, in registration order."""

    __test__ = False
    model_config = ConfigDict(frozen=True)

    name: str
    tests: tuple[TestResult, ...] = Field(default_factory=tuple)
    skipped: tuple[str, ...] = Field(default_factory=tuple, description="Registered but not executed")
    total_duration_ms: float = Field(default=0.0, ge=0.0)
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        description="ISO-8601 timestamp of when the run finished",
    )

    @computed_field  # type: ignore[misc]
    @property
    def passed_count(self) -> int:
        return sum(1 for t in self.tests if t.passed)

    @computed_field  # type: ignore[misc]
    @property
    def failed_count(self) -> int:
        return sum(1 for t in self.tests if not t.passed)

    @computed_field  # type: ignore[misc]
    @property
    def all_passed(self) -> bool:
        """True when no failures were recorded."""
        return self.failed_count == 0

    @property
    def pass_rate(self) -> float:
        """Percentage of executed tests that passed (100.0 for an empty run)."""
        if not self.tests:
            return 100.0
        return self.passed_count / len(self.tests) * 100.0

    @property
    def failures(self) -> list[TestResult]:
        return [t for t in self.tests if not t.passed]

    # -- Serialisation helpers -----------------------------------------------

    def to_json(self, indent: int = 2) -> str:
        return self.model_dump_json(indent=indent)

    def save(self, path: Path) -> None:
        """Persist results to a JSON file, creating parent directories as needed."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> "TestSuite":
        """Load previously-saved results from a JSON file."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    # -- Summary helpers -----------------------------------------------------

    def summary_text(self) -> str:
        """One-line summary: passed/total, percentage and time."""
        return (
            f"{self.passed_count}/{len(self.tests)} passed "
            f"({self.pass_rate:.1f}%) in {self.total_duration_ms:.2f}ms"
            + (f", {len(self.skipped)} skipped" if self.skipped else "")
        )
