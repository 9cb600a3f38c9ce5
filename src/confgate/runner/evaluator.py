"""Evaluator: run the standard rule queries for one (document, namespace) cell."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from confgate.engine import RuleClass, Tracer

if TYPE_CHECKING:
    from confgate.engine import RuleSet, TriggeredRule
    from confgate.errors import QueryExecutionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CellOutcome:
    """Everything one namespace produced for one document."""

    namespace: str
    failures: tuple[TriggeredRule, ...] = ()
    warnings: tuple[TriggeredRule, ...] = ()
    errors: tuple[QueryExecutionError, ...] = ()
    excepted: tuple[TriggeredRule, ...] = ()
    trace: tuple[str, ...] = ()

    @property
    def passed(self) -> bool:
        """True when the cell produced no failure, warning or error."""
        return not (self.failures or self.warnings or self.errors)


def evaluate(
    document: Any,
    namespace: str,
    rule_set: RuleSet,
    store: dict[str, Any],
    *,
    trace: bool = False,
) -> CellOutcome:
    """Query *namespace*'s exception, deny and warn rules against *document*.

    Exception rules run first; the rule suffixes they name are excepted from
    the deny and warn queries.  A failing query becomes one entry in
    ``errors`` and does not stop the remaining queries.
    """
    tracer = Tracer() if trace else None
    errors: list[QueryExecutionError] = []

    exceptions = rule_set.query(namespace, RuleClass.EXCEPTION, document, store, tracer=tracer)
    if exceptions.error is not None:
        errors.append(exceptions.error)

    deny = rule_set.query(
        namespace,
        RuleClass.DENY,
        document,
        store,
        excepted=exceptions.exception_names,
        tracer=tracer,
    )
    warn = rule_set.query(
        namespace,
        RuleClass.WARN,
        document,
        store,
        excepted=exceptions.exception_names,
        tracer=tracer,
    )
    for outcome in (deny, warn):
        if outcome.error is not None:
            errors.append(outcome.error)

    for error in errors:
        logger.warning("Query error in namespace %s: %s", namespace, error)

    return CellOutcome(
        namespace=namespace,
        failures=deny.triggered,
        warnings=warn.triggered,
        errors=tuple(errors),
        excepted=deny.excepted + warn.excepted,
        trace=tuple(tracer.lines) if tracer is not None else (),
    )
