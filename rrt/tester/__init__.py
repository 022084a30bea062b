"""rrt -- Tester module.

Registers named test cases, runs them sequentially, and reports
pass/fail/timing uniformly on every runtime.

Public API
----------
.. autoclass:: TestRegistry
.. autoclass:: TestRunner
.. autoclass:: TestSuite
.. autoclass:: TestResult
.. autoclass:: AssertionFailure
"""

from . import assertions
from .assertions import (
    AssertionFailure,
    equal,
    is_false,
    is_true,
    not_equal,
    rejects,
    throws,
)
from .results import UNKNOWN_ERROR, TestResult, TestSuite
from .runner import TestCase, TestRegistry, TestRunner

__all__ = [
    # Registry / runner
    "TestCase",
    "TestRegistry",
    "TestRunner",
    # Results
    "TestResult",
    "TestSuite",
    "UNKNOWN_ERROR",
    # Assertions
    "assertions",
    "AssertionFailure",
    "equal",
    "not_equal",
    "is_true",
    "is_false",
    "throws",
    "rejects",
]
