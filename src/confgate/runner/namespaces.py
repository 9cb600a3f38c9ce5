"""Namespace resolver."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from confgate.engine import RuleSet


def resolve_namespaces(
    rule_set: RuleSet, namespaces: Sequence[str], *, all_namespaces: bool = False
) -> tuple[str, ...]:
    """Return the namespaces every document is evaluated against.

    With *all_namespaces* this is every compiled namespace, sorted; otherwise
    *namespaces* verbatim, including names the rule set does not declare.
    """
    if all_namespaces:
        return rule_set.namespaces
    return tuple(namespaces)
