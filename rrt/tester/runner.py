"""Test registration and execution.

Test cases are registered on a :class:`TestRegistry` and executed by
:class:`TestRunner` one at a time, in registration order. Each outcome is
recorded as a :class:`TestResult`:

- **passed** -- the action completed without raising
- **assertion failure** -- the assertion's message is recorded
- **any other error** -- the error's message, or ``"Unknown error"`` when
  it has none

``before_all`` / ``after_all`` hooks are best-effort: a failing hook is
reported and the run carries on.

Skipped cases never execute. Runtimes whose native test framework supports
ignoring a case (Deno, Bun) record it as ignored; elsewhere the skip is
logged at registration. Either way it is listed in ``TestSuite.skipped`` and
excluded from the pass/fail counts.
"""

from __future__ import annotations

import inspect
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Optional, Union

from rich.markup import escape
from rich.panel import Panel

from ..runtime.detector import RuntimeKind, detect
from ..runtime.process import ProcessRunner
from ..utils import console
from .results import UNKNOWN_ERROR, TestResult, TestSuite

Action = Callable[[], Union[Awaitable[Any], Any]]

ASSERTION_FAILED = "Assertion failed"

_NATIVE_SKIP_SUPPORT: frozenset[RuntimeKind] = frozenset({RuntimeKind.DENO, RuntimeKind.BUN})


@dataclass(frozen=True)
class TestCase:
    """A named unit of work registered on a suite."""

    __test__ = False

    name: str
    action: Action
    ignore: bool = False


async def _invoke(action: Action) -> None:
    result = action()
    if inspect.isawaitable(result):
        await result


def _error_message(exc: BaseException) -> str:
    message = str(exc).strip()
    return message or UNKNOWN_ERROR


class TestRegistry:
    """Ordered collection of test cases plus optional setup/teardown hooks.

    Duplicate names are kept and run independently unless the caller uses
    :meth:`replace`.
    """

    __test__ = False

    def __init__(self, name: str, runtime: RuntimeKind | None = None) -> None:
        self.name = name
        self.runtime = runtime if runtime is not None else detect()
        self.cases: list[TestCase] = []
        self.skipped: list[str] = []
        self.before_all_hook: Optional[Action] = None
        self.after_all_hook: Optional[Action] = None

    @property
    def native_skip(self) -> bool:
        return self.runtime in _NATIVE_SKIP_SUPPORT

    def register(self, name: str, action: Action) -> TestCase:
        case = TestCase(name=name, action=action)
        self.cases.append(case)
        return case

    def register_skipped(self, name: str, action: Action) -> TestCase:
        """Register *name* without ever executing it."""
        case = TestCase(name=name, action=action, ignore=True)
        if self.native_skip:
            self.cases.append(case)
        else:
            console.print(f"[yellow]- {escape(name)} (skipped)[/yellow]")
        self.skipped.append(name)
        return case

    def replace(self, name: str, action: Action) -> TestCase:
        """Shadow the most recent case called *name*, or register it if absent."""
        case = TestCase(name=name, action=action)
        for index in range(len(self.cases) - 1, -1, -1):
            if self.cases[index].name == name and not self.cases[index].ignore:
                self.cases[index] = case
                return case
        self.cases.append(case)
        return case

    def before_all(self, hook: Action) -> Action:
        self.before_all_hook = hook
        return hook

    def after_all(self, hook: Action) -> Action:
        self.after_all_hook = hook
        return hook

    def test(self, name: Optional[str] = None) -> Callable[[Action], Action]:
        """Decorator form of :meth:`register`, defaulting to the function name."""

        def decorator(action: Action) -> Action:
            self.register(name or action.__name__, action)
            return action

        return decorator

    def __len__(self) -> int:
        return len(self.cases)


class TestRunner:
    """Executes registries and renders their results.

    Parameters
    ----------
    process_runner:
        Used only by :meth:`run_native` and :meth:`run_benchmarks`, which hand
        the whole project to the runtime's own test tooling.
    """

    __test__ = False

    def __init__(self, process_runner: ProcessRunner | None = None) -> None:
        self._process_runner = process_runner

    @property
    def process_runner(self) -> ProcessRunner:
        if self._process_runner is None:
            self._process_runner = ProcessRunner()
        return self._process_runner

    # -- Suite execution -----------------------------------------------------

    async def run_suite(self, registry: TestRegistry) -> TestSuite:
        """Run every case in *registry* sequentially and aggregate the outcome."""
        start = time.perf_counter()

        if registry.before_all_hook is not None:
            await self._run_hook("beforeAll", registry.before_all_hook)

        results: list[TestResult] = []
        for case in registry.cases:
            if case.ignore:
                continue
            results.append(await self._run_case(case))

        if registry.after_all_hook is not None:
            await self._run_hook("afterAll", registry.after_all_hook)

        return TestSuite(
            name=registry.name,
            tests=tuple(results),
            skipped=tuple(registry.skipped),
            total_duration_ms=(time.perf_counter() - start) * 1000.0,
        )

    async def _run_case(self, case: TestCase) -> TestResult:
        case_start = time.perf_counter()
        error: Optional[str] = None
        try:
            await _invoke(case.action)
        except AssertionError as exc:
            error = str(exc).strip() or ASSERTION_FAILED
        except Exception as exc:
            error = _error_message(exc)
        duration_ms = (time.perf_counter() - case_start) * 1000.0
        return TestResult(
            name=case.name,
            passed=error is None,
            duration_ms=duration_ms,
            error=error,
        )

    @staticmethod
    async def _run_hook(label: str, hook: Action) -> None:
        try:
            await _invoke(hook)
        except Exception as exc:
            console.print(f"[yellow]{label} hook failed: {escape(_error_message(exc))}[/yellow]")

    # -- Reporting -----------------------------------------------------------

    @staticmethod
    def print_results(suite: TestSuite) -> None:
        """Print a glyph per test, failure messages, and a summary line."""
        console.print(Panel(f"[bold]{escape(suite.name)}[/bold]", style="blue"))
        for result in suite.tests:
            if result.passed:
                console.print(
                    f"  [green]✓[/green] {escape(result.name)} "
                    f"[dim]({result.duration_ms:.2f}ms)[/dim]"
                )
            else:
                console.print(
                    f"  [red]✗[/red] {escape(result.name)} "
                    f"[dim]({result.duration_ms:.2f}ms)[/dim]"
                )
                console.print(f"    [red]{escape(result.error or UNKNOWN_ERROR)}[/red]")
        for name in suite.skipped:
            console.print(f"  [yellow]-[/yellow] {escape(name)} [dim](skipped)[/dim]")

        color = "green" if suite.all_passed else "red"
        console.print()
        console.print(f"[{color}]{suite.summary_text()}[/{color}]")

    # -- Native tooling ------------------------------------------------------

    async def run_native(self, watch: bool = False) -> bool:
        """Run the project's test files with the runtime's own test command."""
        console.print(
            f"[cyan]Running tests on {self.process_runner.runtime.value}...[/cyan]"
        )
        return await self.process_runner.run_tests(watch=watch)

    async def run_benchmarks(self) -> bool:
        console.print(
            f"[cyan]Running benchmarks on {self.process_runner.runtime.value}...[/cyan]"
        )
        return await self.process_runner.run_benchmarks()
