"""Policy rule engine: compile ``*.policy.yml`` source and query it against documents."""

from __future__ import annotations

import enum
import json
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import yaml

from confgate.engine.paths import UNDEFINED, RefPath, parse_path, type_name
from confgate.errors import Diagnostic, PolicyCompileError, QueryExecutionError

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_LINE_KEY = "__line__"

ROOT_BINDINGS: frozenset[str] = frozenset({"input", "data"})
DEFAULT_ITEM_BINDING = "item"

LEAF_OPERATORS: frozenset[str] = frozenset(
    {
        "equals",
        "not_equals",
        "in",
        "not_in",
        "exists",
        "matches",
        "contains",
        "startswith",
        "endswith",
        "gt",
        "gte",
        "lt",
        "lte",
        "type",
    }
)
COMPOSITE_OPERATORS: frozenset[str] = frozenset({"any", "all", "not"})
VALID_TYPE_NAMES: frozenset[str] = frozenset(
    {"string", "number", "boolean", "array", "object", "null"}
)
_RULE_KEYS: frozenset[str] = frozenset(
    {"name", "description", "when", "each", "as", "msg", "metadata", "rules"}
)

_PACKAGE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")
_RULE_NAME_RE = re.compile(r"^(?P<prefix>deny|violation|warn)(?:_(?P<suffix>[A-Za-z0-9_]+))?$")
_PLACEHOLDER_RE = re.compile(r"\{\{|\}\}|\{([^{}]+)\}")


class RuleClass(enum.Enum):
    """Category of a rule, derived from its name."""

    DENY = "deny"
    WARN = "warn"
    EXCEPTION = "exception"


_PREFIX_CLASSES: dict[str, RuleClass] = {
    "deny": RuleClass.DENY,
    "violation": RuleClass.DENY,
    "warn": RuleClass.WARN,
}

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Condition:
    """A single ``path <operator> operand`` test."""

    path: RefPath
    operator: str
    operand: Any  # literal, RefPath, or compiled pattern for 'matches'
    line: int | None = None

    def describe(self) -> str:
        if isinstance(self.operand, re.Pattern):
            shown = json.dumps(self.operand.pattern)
        elif isinstance(self.operand, RefPath):
            shown = str(self.operand)
        else:
            shown = json.dumps(self.operand, sort_keys=True, default=str)
        return f"{self.path} {self.operator} {shown}"


@dataclass(frozen=True)
class AnyOf:
    conditions: tuple[ConditionNode, ...]
    line: int | None = None


@dataclass(frozen=True)
class AllOf:
    conditions: tuple[ConditionNode, ...]
    line: int | None = None


@dataclass(frozen=True)
class Not:
    condition: ConditionNode
    line: int | None = None


ConditionNode = Condition | AnyOf | AllOf | Not


@dataclass(frozen=True)
class MessageTemplate:
    """A rule message with ``{path}`` placeholders resolved at evaluation time."""

    text: str
    placeholders: tuple[tuple[str, RefPath], ...] = ()

    def render(self, scope: dict[str, Any]) -> str:
        lookup = dict(self.placeholders)

        def _replace(match: re.Match[str]) -> str:
            token = match.group(0)
            if token == "{{":
                return "{"
            if token == "}}":
                return "}"
            path = lookup[match.group(1)]
            value = path.resolve(scope)
            if value is UNDEFINED:
                raise _EvalFailure(f"message references undefined path '{path}'")
            if isinstance(value, str):
                return value
            return json.dumps(value, sort_keys=True, default=str)

        return _PLACEHOLDER_RE.sub(_replace, self.text)


@dataclass(frozen=True)
class Rule:
    """One compiled rule.  Several rules may share a name, like partial rule definitions."""

    namespace: str
    name: str
    rule_class: RuleClass
    conditions: tuple[ConditionNode, ...]
    file: str
    line: int | None = None
    description: str = ""
    message: MessageTemplate | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    each: RefPath | None = None
    binding: str = DEFAULT_ITEM_BINDING
    excepts: tuple[str, ...] = ()

    @property
    def suffix(self) -> str | None:
        """The part after ``deny_``/``warn_``/``violation_`` that exceptions refer to."""
        match = _RULE_NAME_RE.match(self.name)
        if match is None:
            return None
        return match.group("suffix")

    @property
    def location(self) -> str:
        return f"{self.file}:{self.line}" if self.line is not None else self.file


@dataclass(frozen=True)
class TriggeredRule:
    """A rule expression that held true for a document."""

    rule: Rule
    message: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RuleOutcome:
    """Raw result of one (namespace, rule class) query against one document."""

    namespace: str
    rule_class: RuleClass
    triggered: tuple[TriggeredRule, ...] = ()
    excepted: tuple[TriggeredRule, ...] = ()
    exception_names: frozenset[str] = frozenset()
    error: QueryExecutionError | None = None


class Tracer:
    """Collects a step-by-step record of rule evaluation."""

    def __init__(self) -> None:
        self.lines: list[str] = []
        self._depth = 0

    def note(self, op: str, text: str) -> None:
        self.lines.append(f"{'| ' * self._depth}{op} {text}")

    def enter(self, text: str) -> None:
        self.note("Enter", text)
        self._depth += 1

    def leave(self, text: str) -> None:
        self._depth = max(0, self._depth - 1)
        self.note("Exit", text)


class _EvalFailure(Exception):
    """Internal: a rule body hit a runtime type error."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class _CompileIssue(ValueError):
    """Internal: a single compile diagnostic raised while parsing one rule."""

    def __init__(self, message: str, line: int | None) -> None:
        super().__init__(message)
        self.line = line


# ---------------------------------------------------------------------------
# YAML loading with line numbers
# ---------------------------------------------------------------------------


class _LineLoader(yaml.SafeLoader):
    """SafeLoader that records the starting line of every mapping under ``__line__``."""

    def construct_mapping(self, node: yaml.MappingNode, deep: bool = False) -> dict[Any, Any]:
        mapping = super().construct_mapping(node, deep=deep)
        mapping[_LINE_KEY] = node.start_mark.line + 1
        return mapping


def _strip_lines(value: Any) -> Any:
    """Return *value* with the loader's ``__line__`` bookkeeping removed."""
    if isinstance(value, dict):
        return {k: _strip_lines(v) for k, v in value.items() if k != _LINE_KEY}
    if isinstance(value, list):
        return [_strip_lines(v) for v in value]
    return value


def _line_of(value: Any, default: int | None = None) -> int | None:
    if isinstance(value, dict):
        line = value.get(_LINE_KEY)
        if isinstance(line, int):
            return line
    return default


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _parse_ref(text: Any, bound: frozenset[str], context: str, line: int | None) -> RefPath:
    if not isinstance(text, str) or not text.strip():
        msg = f"{context}: path must be a non-empty string"
        raise _CompileIssue(msg, line)
    try:
        path = parse_path(text)
    except ValueError as exc:
        raise _CompileIssue(f"{context}: {exc}", line) from exc
    if path.root not in bound:
        msg = (
            f"{context}: unknown root '{path.root}' in path '{text}', "
            f"must be one of {sorted(bound)}"
        )
        raise _CompileIssue(msg, line)
    return path


def _parse_operand(
    operator: str, raw: Any, bound: frozenset[str], context: str, line: int | None
) -> Any:
    if isinstance(raw, dict):
        keys = set(raw) - {_LINE_KEY}
        if keys == {"ref"}:
            if operator in ("exists", "type"):
                msg = f"{context}: '{operator}' takes a literal operand, not a 'ref'"
                raise _CompileIssue(msg, line)
            return _parse_ref(raw["ref"], bound, f"{context} {operator}.ref", line)

    value = _strip_lines(raw)

    if operator == "exists":
        if not isinstance(value, bool):
            msg = f"{context}: 'exists' expects true or false"
            raise _CompileIssue(msg, line)
    elif operator in ("in", "not_in"):
        if not isinstance(value, list):
            msg = f"{context}: '{operator}' expects a list"
            raise _CompileIssue(msg, line)
    elif operator in ("startswith", "endswith"):
        if not isinstance(value, str):
            msg = f"{context}: '{operator}' expects a string"
            raise _CompileIssue(msg, line)
    elif operator == "matches":
        if not isinstance(value, str):
            msg = f"{context}: 'matches' expects a regular expression string"
            raise _CompileIssue(msg, line)
        try:
            return re.compile(value)
        except re.error as exc:
            msg = f"{context}: invalid regular expression {value!r}: {exc}"
            raise _CompileIssue(msg, line) from exc
    elif operator == "type":
        if value not in VALID_TYPE_NAMES:
            msg = f"{context}: invalid type {value!r}, must be one of {sorted(VALID_TYPE_NAMES)}"
            raise _CompileIssue(msg, line)
    elif operator in ("gt", "gte", "lt", "lte"):
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            msg = f"{context}: '{operator}' expects a number or a string"
            raise _CompileIssue(msg, line)

    return value


def _parse_condition(
    data: Any, bound: frozenset[str], context: str, parent_line: int | None
) -> ConditionNode:
    line = _line_of(data, parent_line)
    if not isinstance(data, dict):
        msg = f"{context}: condition must be a mapping"
        raise _CompileIssue(msg, line)

    keys = set(data) - {_LINE_KEY}
    composite = keys & COMPOSITE_OPERATORS
    if composite:
        if len(keys) != 1:
            msg = f"{context}: '{sorted(composite)[0]}' must be the only key of its condition"
            raise _CompileIssue(msg, line)
        op = next(iter(composite))
        body = data[op]
        if op == "not":
            return Not(_parse_condition(body, bound, f"{context} not", line), line=line)
        if not isinstance(body, list) or not body:
            msg = f"{context}: '{op}' expects a non-empty list of conditions"
            raise _CompileIssue(msg, line)
        children = tuple(
            _parse_condition(child, bound, f"{context} {op}[{idx}]", line)
            for idx, child in enumerate(body)
        )
        return AnyOf(children, line=line) if op == "any" else AllOf(children, line=line)

    if "path" not in keys:
        msg = f"{context}: condition needs a 'path' or one of {sorted(COMPOSITE_OPERATORS)}"
        raise _CompileIssue(msg, line)

    operators = keys - {"path"}
    unknown = operators - LEAF_OPERATORS
    if unknown:
        msg = (
            f"{context}: unknown operator '{sorted(unknown)[0]}', "
            f"must be one of {sorted(LEAF_OPERATORS)}"
        )
        raise _CompileIssue(msg, line)
    if len(operators) != 1:
        msg = f"{context}: condition must have exactly one operator"
        raise _CompileIssue(msg, line)

    operator = next(iter(operators))
    path = _parse_ref(data["path"], bound, context, line)
    operand = _parse_operand(operator, data[operator], bound, context, line)
    return Condition(path=path, operator=operator, operand=operand, line=line)


def _parse_message(
    raw: Any, bound: frozenset[str], context: str, line: int | None
) -> MessageTemplate:
    if not isinstance(raw, str):
        msg = f"{context}: 'msg' must be a string"
        raise _CompileIssue(msg, line)
    placeholders: dict[str, RefPath] = {}
    for match in _PLACEHOLDER_RE.finditer(raw):
        inner = match.group(1)
        if inner is None or inner in placeholders:
            continue
        placeholders[inner] = _parse_ref(inner, bound, f"{context} msg", line)
    return MessageTemplate(text=raw, placeholders=tuple(placeholders.items()))


def _rule_class_for(name: str) -> RuleClass | None:
    if name == "exception":
        return RuleClass.EXCEPTION
    match = _RULE_NAME_RE.match(name)
    if match is None:
        return None
    return _PREFIX_CLASSES[match.group("prefix")]


def _parse_rule(namespace: str, file: str, idx: int, data: Any) -> Rule:
    line = _line_of(data)
    if not isinstance(data, dict):
        msg = f"rule at index {idx} must be a mapping"
        raise _CompileIssue(msg, line)

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        msg = f"rule at index {idx} missing required 'name' field"
        raise _CompileIssue(msg, line)

    rule_class = _rule_class_for(name)
    if rule_class is None:
        msg = (
            f"rule '{name}': name must be deny, violation, warn (optionally with a "
            f"'_<suffix>'), or exception"
        )
        raise _CompileIssue(msg, line)

    context = f"rule '{name}'"
    unknown = set(data) - _RULE_KEYS - {_LINE_KEY}
    if unknown:
        msg = f"{context}: unknown field '{sorted(unknown, key=str)[0]}'"
        raise _CompileIssue(msg, line)

    bound = ROOT_BINDINGS
    each: RefPath | None = None
    binding = DEFAULT_ITEM_BINDING
    if "each" in data:
        each = _parse_ref(data["each"], ROOT_BINDINGS, f"{context} each", line)
        binding = str(data.get("as", DEFAULT_ITEM_BINDING))
        if binding in ROOT_BINDINGS or not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", binding):
            msg = f"{context}: invalid binding name '{binding}'"
            raise _CompileIssue(msg, line)
        bound = ROOT_BINDINGS | {binding}
    elif "as" in data:
        msg = f"{context}: 'as' requires 'each'"
        raise _CompileIssue(msg, line)

    when_raw = data.get("when", [])
    if isinstance(when_raw, dict):
        when_raw = [when_raw]
    if not isinstance(when_raw, list):
        msg = f"{context}: 'when' must be a list of conditions"
        raise _CompileIssue(msg, line)
    conditions = tuple(
        _parse_condition(cond, bound, f"{context} when[{i}]", line)
        for i, cond in enumerate(when_raw)
    )

    metadata_raw = data.get("metadata", {})
    if not isinstance(metadata_raw, dict):
        msg = f"{context}: 'metadata' must be a mapping"
        raise _CompileIssue(msg, line)

    excepts: tuple[str, ...] = ()
    message: MessageTemplate | None = None
    if rule_class is RuleClass.EXCEPTION:
        rules_raw = data.get("rules")
        if isinstance(rules_raw, str):
            rules_raw = [rules_raw]
        if not isinstance(rules_raw, list) or not rules_raw:
            msg = f"{context}: exception rules need a non-empty 'rules' list"
            raise _CompileIssue(msg, line)
        excepts = tuple(str(r) for r in rules_raw)
        if "msg" in data:
            msg = f"{context}: exception rules do not take a 'msg'"
            raise _CompileIssue(msg, line)
    else:
        if "rules" in data:
            msg = f"{context}: only exception rules take a 'rules' list"
            raise _CompileIssue(msg, line)
        if "msg" in data:
            message = _parse_message(data["msg"], bound, context, line)

    return Rule(
        namespace=namespace,
        name=name,
        rule_class=rule_class,
        conditions=conditions,
        file=file,
        line=line,
        description=str(data.get("description", "")),
        message=message,
        metadata=_strip_lines(metadata_raw),
        each=each,
        binding=binding,
        excepts=excepts,
    )


def _compile_source(file: str, text: str) -> tuple[str | None, list[Rule], list[Diagnostic]]:
    """Compile one policy file; return its namespace, rules and diagnostics."""
    try:
        data = yaml.load(text, Loader=_LineLoader)  # noqa: S506
    except yaml.MarkedYAMLError as exc:
        mark = exc.problem_mark or exc.context_mark
        line = mark.line + 1 if mark is not None else None
        return None, [], [Diagnostic(file, line, f"yaml: {exc.problem or exc}")]
    except yaml.YAMLError as exc:
        return None, [], [Diagnostic(file, None, f"yaml: {exc}")]

    if not isinstance(data, dict):
        return None, [], [Diagnostic(file, None, "policy file must be a YAML mapping")]

    package = data.get("package")
    if not isinstance(package, str) or not _PACKAGE_RE.match(package):
        return None, [], [
            Diagnostic(file, _line_of(data), "missing or invalid 'package' declaration")
        ]

    rules_data = data.get("rules", [])
    if rules_data is None:
        rules_data = []
    if not isinstance(rules_data, list):
        return package, [], [Diagnostic(file, _line_of(data), "'rules' must be a list")]

    rules: list[Rule] = []
    diagnostics: list[Diagnostic] = []
    for idx, rule_data in enumerate(rules_data):
        try:
            rules.append(_parse_rule(package, file, idx, rule_data))
        except _CompileIssue as exc:
            diagnostics.append(Diagnostic(file, exc.line, str(exc)))
    return package, rules, diagnostics


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _strict_equal(left: Any, right: Any) -> bool:
    # true != 1 and false != 0, unlike Python's ==.
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    return bool(left == right)


def _ordered(left: Any, right: Any, operator: str) -> bool:
    numeric = (int, float)
    both_numbers = (
        isinstance(left, numeric)
        and isinstance(right, numeric)
        and not isinstance(left, bool)
        and not isinstance(right, bool)
    )
    both_strings = isinstance(left, str) and isinstance(right, str)
    if not (both_numbers or both_strings):
        raise _EvalFailure(
            f"'{operator}' cannot compare {type_name(left)} with {type_name(right)}"
        )
    if operator == "gt":
        return bool(left > right)
    if operator == "gte":
        return bool(left >= right)
    if operator == "lt":
        return bool(left < right)
    return bool(left <= right)


def _member(value: Any, collection: Any, operator: str) -> bool:
    if isinstance(collection, dict):
        collection = list(collection)
    if not isinstance(collection, list):
        raise _EvalFailure(f"'{operator}' expects an array, got {type_name(collection)}")
    return any(_strict_equal(value, item) for item in collection)


def _require_string(value: Any, operator: str) -> str:
    if not isinstance(value, str):
        raise _EvalFailure(f"'{operator}' expects a string, got {type_name(value)}")
    return value


def _apply(operator: str, value: Any, operand: Any) -> bool:
    if operator == "equals":
        return _strict_equal(value, operand)
    if operator == "not_equals":
        return not _strict_equal(value, operand)
    if operator == "in":
        return _member(value, operand, operator)
    if operator == "not_in":
        return not _member(value, operand, operator)
    if operator == "contains":
        if isinstance(value, str):
            return _require_string(operand, operator) in value
        if isinstance(value, (list, dict)):
            return _member(operand, value, operator)
        raise _EvalFailure(f"'contains' expects a string, array or object, got {type_name(value)}")
    if operator == "startswith":
        return _require_string(value, operator).startswith(_require_string(operand, operator))
    if operator == "endswith":
        return _require_string(value, operator).endswith(_require_string(operand, operator))
    if operator == "matches":
        text = _require_string(value, operator)
        if not isinstance(operand, re.Pattern):
            try:
                operand = re.compile(_require_string(operand, operator))
            except re.error as exc:
                raise _EvalFailure(f"invalid regular expression: {exc}") from exc
        return operand.search(text) is not None
    if operator == "type":
        return type_name(value) == operand
    return _ordered(value, operand, operator)


def _check(node: ConditionNode, scope: dict[str, Any], tracer: Tracer | None) -> bool:
    if isinstance(node, Not):
        result = not _check(node.condition, scope, tracer)
        if tracer is not None:
            tracer.note("Not", "-> true" if result else "-> false")
        return result
    if isinstance(node, AnyOf):
        return any(_check(child, scope, tracer) for child in node.conditions)
    if isinstance(node, AllOf):
        return all(_check(child, scope, tracer) for child in node.conditions)

    value = node.path.resolve(scope)
    operand = node.operand
    if isinstance(operand, RefPath):
        operand = operand.resolve(scope)

    if node.operator == "exists":
        result = (value is not UNDEFINED) == operand
    elif value is UNDEFINED or operand is UNDEFINED:
        result = False
    else:
        result = _apply(node.operator, value, operand)

    if tracer is not None:
        tracer.note("Eval", f"{node.describe()} -> {'true' if result else 'false'}")
    return result


def _iterate(rule: Rule, scope: dict[str, Any]) -> list[dict[str, Any]]:
    if rule.each is None:
        return [scope]
    items = rule.each.resolve(scope)
    if items is UNDEFINED:
        return []
    if isinstance(items, dict):
        items = list(items.values())
    if not isinstance(items, list):
        msg = f"'each' expects an array or object at '{rule.each}', got {type_name(items)}"
        raise _EvalFailure(msg)
    return [{**scope, rule.binding: item} for item in items]


def _evaluate_rule(rule: Rule, scope: dict[str, Any], tracer: Tracer | None) -> list[TriggeredRule]:
    if tracer is not None:
        tracer.enter(f"rule {rule.name} ({rule.location})")

    hits: list[TriggeredRule] = []
    try:
        for local in _iterate(rule, scope):
            if not all(_check(cond, local, tracer) for cond in rule.conditions):
                continue
            if rule.rule_class is RuleClass.EXCEPTION:
                message = ""
            elif rule.message is not None:
                message = rule.message.render(local)
            else:
                message = f"{rule.name} triggered"
            hits.append(TriggeredRule(rule=rule, message=message, metadata=dict(rule.metadata)))
    except _EvalFailure as exc:
        if tracer is not None:
            tracer.note("Error", exc.reason)
            tracer.leave(f"rule {rule.name}")
        raise QueryExecutionError(rule.namespace, rule.name, exc.reason) from exc

    if tracer is not None:
        tracer.leave(f"rule {rule.name} ({len(hits)} result(s))")
    return hits


# ---------------------------------------------------------------------------
# Rule set
# ---------------------------------------------------------------------------


class RuleSet:
    """Compiled policy rules partitioned by namespace.  Immutable after construction."""

    def __init__(self, rules: Iterable[Rule], namespaces: Iterable[str] = ()) -> None:
        by_namespace: dict[str, list[Rule]] = {ns: [] for ns in namespaces}
        for rule in rules:
            by_namespace.setdefault(rule.namespace, []).append(rule)
        self._rules: dict[str, tuple[Rule, ...]] = {
            ns: tuple(items) for ns, items in by_namespace.items()
        }

    @property
    def namespaces(self) -> tuple[str, ...]:
        """Every namespace declared by the compiled source, sorted."""
        return tuple(sorted(self._rules))

    def rules(self, namespace: str, rule_class: RuleClass | None = None) -> tuple[Rule, ...]:
        """Return the rules of *namespace*, optionally filtered by class."""
        rules = self._rules.get(namespace, ())
        if rule_class is None:
            return rules
        return tuple(r for r in rules if r.rule_class is rule_class)

    def query(
        self,
        namespace: str,
        rule_class: RuleClass,
        document: Any,
        store: dict[str, Any],
        *,
        excepted: frozenset[str] = frozenset(),
        tracer: Tracer | None = None,
    ) -> RuleOutcome:
        """Evaluate every *rule_class* rule of *namespace* with *document* as ``input``.

        Rule results whose suffix appears in *excepted* are reported in
        ``RuleOutcome.excepted`` instead of ``triggered``.  A runtime error in
        any rule body fails the whole query and is returned as ``error``.
        """
        label = f"data.{namespace}.{rule_class.value}"
        scope: dict[str, Any] = {"input": document, "data": store}
        if tracer is not None:
            tracer.enter(label)

        triggered: list[TriggeredRule] = []
        suppressed: list[TriggeredRule] = []
        names: set[str] = set()
        seen: set[tuple[str, str]] = set()

        try:
            for rule in self.rules(namespace, rule_class):
                hits = _evaluate_rule(rule, scope, tracer)
                if rule_class is RuleClass.EXCEPTION:
                    if hits:
                        names.update(rule.excepts)
                    continue
                for hit in hits:
                    key = (rule.name, hit.message)
                    if key in seen:
                        continue
                    seen.add(key)
                    if rule.suffix is not None and rule.suffix in excepted:
                        suppressed.append(hit)
                    else:
                        triggered.append(hit)
        except QueryExecutionError as exc:
            logger.debug("Query %s failed: %s", label, exc)
            if tracer is not None:
                tracer.leave(f"{label} (error)")
            return RuleOutcome(namespace=namespace, rule_class=rule_class, error=exc)

        if tracer is not None:
            tracer.leave(f"{label} ({len(triggered)} triggered)")
        return RuleOutcome(
            namespace=namespace,
            rule_class=rule_class,
            triggered=tuple(triggered),
            excepted=tuple(suppressed),
            exception_names=frozenset(names),
        )


def compile_policies(sources: Iterable[tuple[str, str]]) -> RuleSet:
    """Compile ``(file, text)`` policy sources as one unit.

    Every diagnostic across all files is collected before raising
    :class:`PolicyCompileError`, so a single run reports all problems.
    """
    diagnostics: list[Diagnostic] = []
    rules: list[Rule] = []
    namespaces: list[str] = []

    for file, text in sources:
        package, file_rules, file_diagnostics = _compile_source(file, text)
        diagnostics.extend(file_diagnostics)
        if package is not None and package not in namespaces:
            namespaces.append(package)
        rules.extend(file_rules)

    if diagnostics:
        raise PolicyCompileError(diagnostics)

    return RuleSet(rules, namespaces)
