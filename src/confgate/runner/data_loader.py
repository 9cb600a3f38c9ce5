"""Data loader: recursively load reference data into a namespaced store.

A file at ``a/b/c.yaml`` under a data root becomes ``data.a.b.c`` inside rules.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from confgate.errors import DataLoadError, ParseError
from confgate.parsers import InputFormat, parse_file

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

DATA_EXTENSIONS: dict[str, InputFormat] = {
    ".json": InputFormat.JSON,
    ".yaml": InputFormat.YAML,
    ".yml": InputFormat.YAML,
}
POLICY_SUFFIXES: tuple[str, ...] = (".policy.yml", ".policy.yaml")


def is_policy_file(path: Path) -> bool:
    """Return True if *path* is policy source rather than reference data."""
    return path.name.lower().endswith(POLICY_SUFFIXES)


def _is_data_file(path: Path) -> bool:
    return path.suffix.lower() in DATA_EXTENSIONS and not is_policy_file(path)


def discover_data_files(root: Path) -> list[Path]:
    """Return the data files under *root* in a stable order.

    A file root is returned as-is when it carries a data extension.
    """
    if root.is_file():
        return [root] if _is_data_file(root) else []
    return sorted(p for p in root.rglob("*") if p.is_file() and _is_data_file(p))


def data_segments(root: Path, file: Path) -> tuple[str, ...]:
    """Return the store path for *file*: its directories under *root* plus its stem."""
    if root.is_file():
        return (file.stem,)
    relative = file.relative_to(root)
    return (*relative.parent.parts, relative.stem)


def _merge(existing: dict[str, Any], incoming: dict[str, Any], path: str, where: str) -> None:
    for key, value in incoming.items():
        if key not in existing:
            existing[key] = value
            continue
        current = existing[key]
        if isinstance(current, dict) and isinstance(value, dict):
            _merge(current, value, path, f"{where}.{key}")
            continue
        msg = f"conflicting value at {where}.{key}"
        raise DataLoadError(path, msg)


def _insert(store: dict[str, Any], segments: tuple[str, ...], value: Any, path: str) -> None:
    node = store
    where = "data"
    for seg in segments[:-1]:
        where = f"{where}.{seg}"
        child = node.setdefault(seg, {})
        if not isinstance(child, dict):
            msg = f"conflicting value at {where}"
            raise DataLoadError(path, msg)
        node = child

    leaf = segments[-1]
    where = f"{where}.{leaf}"
    if leaf not in node:
        node[leaf] = value
        return
    if isinstance(node[leaf], dict) and isinstance(value, dict):
        _merge(node[leaf], value, path, where)
        return
    msg = f"conflicting value at {where}"
    raise DataLoadError(path, msg)


def load_data(paths: Iterable[str | Path]) -> dict[str, Any]:
    """Load every data file under *paths* into one nested store.

    Raises
    ------
    DataLoadError
        When a root does not exist, a file root is not a data file, a file
        cannot be read or parsed, or two
        files claim the same store path with incompatible values.
    """
    store: dict[str, Any] = {}
    for raw in paths:
        root = Path(raw)
        if not root.exists():
            raise DataLoadError(str(root), "no such file or directory")
        if root.is_file() and not _is_data_file(root):
            raise DataLoadError(str(root), "not a recognized data file (.json, .yaml, .yml)")

        for file in discover_data_files(root):
            fmt = DATA_EXTENSIONS[file.suffix.lower()]
            try:
                value = parse_file(str(file), fmt)
            except ParseError as exc:
                raise DataLoadError(str(file), exc.reason) from exc

            segments = data_segments(root, file)
            logger.debug("Loaded data %s as data.%s", file, ".".join(segments))
            _insert(store, segments, value, str(file))

    return store
