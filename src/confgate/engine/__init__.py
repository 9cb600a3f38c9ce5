"""Rule engine: policy source compiler, reference paths, and query evaluation."""

from confgate.engine.paths import UNDEFINED, RefPath, parse_path, type_name
from confgate.engine.rule_engine import (
    AllOf,
    AnyOf,
    Condition,
    MessageTemplate,
    Not,
    Rule,
    RuleClass,
    RuleOutcome,
    RuleSet,
    Tracer,
    TriggeredRule,
    compile_policies,
)

__all__ = [
    "UNDEFINED",
    "AllOf",
    "AnyOf",
    "Condition",
    "MessageTemplate",
    "Not",
    "RefPath",
    "Rule",
    "RuleClass",
    "RuleOutcome",
    "RuleSet",
    "Tracer",
    "TriggeredRule",
    "compile_policies",
    "parse_path",
    "type_name",
]
