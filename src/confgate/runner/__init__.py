"""Test runner: loaders, input grouping, namespace resolution, evaluation, results."""

from confgate.runner.data_loader import load_data
from confgate.runner.evaluator import CellOutcome, evaluate
from confgate.runner.exit_policy import (
    EXIT_FATAL,
    EXIT_OK,
    EXIT_VIOLATIONS,
    exit_code,
    exit_code_fail_on_warn,
)
from confgate.runner.grouping import (
    COMBINED_FILENAME,
    InputDocument,
    discover_inputs,
    group_inputs,
)
from confgate.runner.namespaces import resolve_namespaces
from confgate.runner.policy_loader import load_policies
from confgate.runner.results import (
    CheckResult,
    ResultMessage,
    RunResult,
    aggregate,
    parse_failure_result,
)
from confgate.runner.runner import LoadedPolicies, TestRunner

__all__ = [
    "COMBINED_FILENAME",
    "EXIT_FATAL",
    "EXIT_OK",
    "EXIT_VIOLATIONS",
    "CellOutcome",
    "CheckResult",
    "InputDocument",
    "LoadedPolicies",
    "ResultMessage",
    "RunResult",
    "TestRunner",
    "aggregate",
    "discover_inputs",
    "evaluate",
    "exit_code",
    "exit_code_fail_on_warn",
    "group_inputs",
    "load_data",
    "load_policies",
    "parse_failure_result",
    "resolve_namespaces",
]
