"""Policy loader: discover policy source files and compile them as one unit."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from confgate.engine import RuleSet, compile_policies
from confgate.errors import Diagnostic, PolicyCompileError
from confgate.runner.data_loader import is_policy_file

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


def discover_policy_files(root: Path) -> list[Path]:
    """Return the policy files under *root* in a stable order."""
    if root.is_file():
        return [root]
    return sorted(p for p in root.rglob("*") if p.is_file() and is_policy_file(p))


def load_policies(paths: Iterable[str | Path]) -> RuleSet:
    """Read and compile every policy file under *paths*.

    Raises
    ------
    PolicyCompileError
        With every diagnostic found, including missing or unreadable paths.
    """
    sources: list[tuple[str, str]] = []
    diagnostics: list[Diagnostic] = []

    for raw in paths:
        root = Path(raw)
        if not root.exists():
            diagnostics.append(Diagnostic(str(root), None, "no such file or directory"))
            continue
        for file in discover_policy_files(root):
            try:
                sources.append((str(file), file.read_text(encoding="utf-8")))
            except (OSError, UnicodeDecodeError) as exc:
                diagnostics.append(Diagnostic(str(file), None, f"read file: {exc}"))
                continue
            logger.debug("Found policy file %s", file)

    if diagnostics:
        raise PolicyCompileError(diagnostics)

    try:
        rule_set = compile_policies(sources)
    except PolicyCompileError:
        logger.debug("Compilation failed for %d policy file(s)", len(sources))
        raise

    logger.debug(
        "Compiled %d policy file(s) into namespaces: %s",
        len(sources),
        ", ".join(rule_set.namespaces) or "(none)",
    )
    return rule_set
