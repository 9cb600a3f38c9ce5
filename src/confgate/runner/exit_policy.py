"""Exit policy: turn a run's results into the process exit code."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from confgate.runner.results import CheckResult

EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_FATAL = 2


def exit_code(results: Iterable[CheckResult]) -> int:
    """Return 1 if any result has failures or exceptions; warnings never count."""
    for result in results:
        if result.failures or result.exceptions:
            return EXIT_VIOLATIONS
    return EXIT_OK


def exit_code_fail_on_warn(results: Iterable[CheckResult]) -> int:
    """Return 1 if any result has failures, exceptions or warnings."""
    for result in results:
        if result.failures or result.exceptions or result.warnings:
            return EXIT_VIOLATIONS
    return EXIT_OK
