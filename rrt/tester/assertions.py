"""Assertion helpers for registered test actions.

Every helper raises :class:`AssertionFailure` on violation, carrying either
the caller's message or a default one. Only :func:`rejects` is asynchronous.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Optional


class AssertionFailure(AssertionError):
    """Raised when a test expectation is violated."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


def equal(actual: Any, expected: Any, message: Optional[str] = None) -> None:
    if actual != expected:
        raise AssertionFailure(message or f"Expected {expected!r}, got {actual!r}")


def not_equal(actual: Any, expected: Any, message: Optional[str] = None) -> None:
    if actual == expected:
        raise AssertionFailure(message or f"Expected values to differ, both were {actual!r}")


def is_true(value: Any, message: Optional[str] = None) -> None:
    if value is not True:
        raise AssertionFailure(message or f"Expected True, got {value!r}")


def is_false(value: Any, message: Optional[str] = None) -> None:
    if value is not False:
        raise AssertionFailure(message or f"Expected False, got {value!r}")


def throws(fn: Callable[[], Any], message: Optional[str] = None) -> None:
    """Fail unless calling *fn* raises."""
    try:
        fn()
    except Exception:
        return
    raise AssertionFailure(message or "Expected function to throw")


async def rejects(fn: Callable[[], Awaitable[Any]], message: Optional[str] = None) -> None:
    """Fail unless awaiting ``fn()`` raises."""
    try:
        await fn()
    except Exception:
        return
    raise AssertionFailure(message or "Expected promise to reject")
