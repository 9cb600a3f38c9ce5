"""Result aggregator: fold per-namespace cell outcomes into one CheckResult per document."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence

    from confgate.engine import TriggeredRule
    from confgate.runner.evaluator import CellOutcome
    from confgate.runner.grouping import InputDocument


@dataclass(frozen=True)
class ResultMessage:
    """One reported line: a failure, warning, exception or excepted rule."""

    message: str
    namespace: str = ""
    rule: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CheckResult:
    """Aggregated outcome for one input file (or the combined document)."""

    filename: str
    namespaces: tuple[str, ...] = ()
    successes: int = 0
    failures: tuple[ResultMessage, ...] = ()
    warnings: tuple[ResultMessage, ...] = ()
    exceptions: tuple[ResultMessage, ...] = ()
    excepted: tuple[ResultMessage, ...] = ()
    traces: tuple[str, ...] = ()


RunResult = tuple[CheckResult, ...]


def _from_triggered(hit: TriggeredRule) -> ResultMessage:
    return ResultMessage(
        message=hit.message,
        namespace=hit.rule.namespace,
        rule=hit.rule.name,
        metadata=dict(hit.metadata),
    )


def aggregate(filename: str, cells: Sequence[CellOutcome]) -> CheckResult:
    """Fold *cells* (in namespace resolution order) into one CheckResult."""
    failures: list[ResultMessage] = []
    warnings: list[ResultMessage] = []
    exceptions: list[ResultMessage] = []
    excepted: list[ResultMessage] = []
    traces: list[str] = []
    successes = 0

    for cell in cells:
        failures.extend(_from_triggered(hit) for hit in cell.failures)
        warnings.extend(_from_triggered(hit) for hit in cell.warnings)
        excepted.extend(_from_triggered(hit) for hit in cell.excepted)
        exceptions.extend(
            ResultMessage(message=str(err), namespace=err.namespace, rule=err.rule)
            for err in cell.errors
        )
        traces.extend(cell.trace)
        if cell.passed:
            successes += 1

    return CheckResult(
        filename=filename,
        namespaces=tuple(cell.namespace for cell in cells),
        successes=successes,
        failures=tuple(failures),
        warnings=tuple(warnings),
        exceptions=tuple(exceptions),
        excepted=tuple(excepted),
        traces=tuple(traces),
    )


def parse_failure_result(document: InputDocument, namespaces: Sequence[str]) -> CheckResult:
    """Report a document that could not be parsed as a single exception."""
    return CheckResult(
        filename=document.path,
        namespaces=tuple(namespaces),
        exceptions=(ResultMessage(message=str(document.error)),),
    )
