"""Error taxonomy shared by the loaders, the rule engine and the test runner."""

from __future__ import annotations

from dataclasses import dataclass


class ConfgateError(Exception):
    """Base class for all confgate errors."""


class ConfigError(ConfgateError):
    """Raised when the run configuration is invalid."""


class CancellationError(ConfgateError):
    """Raised when a run is cancelled before all documents were evaluated."""

    def __init__(self) -> None:
        super().__init__("run cancelled")


class DataLoadError(ConfgateError):
    """Raised when a reference-data file cannot be read, parsed or placed."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"load data {path}: {reason}")


class ParseError(ConfgateError):
    """Raised when an input file cannot be parsed into a document."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"parse {path}: {reason}")


class QueryExecutionError(ConfgateError):
    """Raised when a rule body cannot be evaluated (not a policy violation)."""

    def __init__(self, namespace: str, rule: str, reason: str) -> None:
        self.namespace = namespace
        self.rule = rule
        self.reason = reason
        super().__init__(f"{namespace}.{rule}: {reason}")


@dataclass(frozen=True)
class Diagnostic:
    """A single compiler complaint about policy source."""

    file: str
    line: int | None
    message: str

    def __str__(self) -> str:
        if self.line is None:
            return f"{self.file}: {self.message}"
        return f"{self.file}:{self.line}: {self.message}"


class PolicyCompileError(ConfgateError):
    """Raised when policy source fails to compile.

    Carries every diagnostic found across all policy files, not just the first.
    """

    def __init__(self, diagnostics: list[Diagnostic] | tuple[Diagnostic, ...]) -> None:
        self.diagnostics: tuple[Diagnostic, ...] = tuple(diagnostics)
        lines = [f"{len(self.diagnostics)} error(s) occurred during policy compilation:"]
        lines.extend(f"  {d}" for d in self.diagnostics)
        super().__init__("\n".join(lines))
