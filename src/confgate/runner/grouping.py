"""Input grouper: expand, filter and parse input files into documents."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from confgate.errors import ParseError
from confgate.parsers import STDIN_PATH, detect_format, parse_file

if TYPE_CHECKING:
    import re
    from collections.abc import Iterable

    from confgate.parsers import InputFormat

logger = logging.getLogger(__name__)

COMBINED_FILENAME = "Combined"


@dataclass(frozen=True)
class InputDocument:
    """One unit of evaluation: a parsed file or the combined document."""

    path: str
    content: Any = None
    error: ParseError | None = None


def discover_inputs(paths: Iterable[str], ignore: re.Pattern[str] | None = None) -> list[str]:
    """Expand directories into input files and drop paths matching *ignore*.

    Directories are walked recursively in sorted order and only files with a
    recognized input extension are kept.  Explicit file paths are kept as
    given, in the order given.
    """
    found: list[str] = []
    for raw in paths:
        if raw != STDIN_PATH and Path(raw).is_dir():
            found.extend(
                str(p)
                for p in sorted(Path(raw).rglob("*"))
                if p.is_file() and detect_format(str(p)) is not None
            )
        else:
            found.append(raw)

    if ignore is None:
        return found

    kept = [p for p in found if ignore.search(p) is None]
    if len(kept) != len(found):
        logger.debug("Ignored %d input(s) matching %s", len(found) - len(kept), ignore.pattern)
    return kept


def group_inputs(
    paths: list[str],
    *,
    combine: bool = False,
    input_format: InputFormat | None = None,
) -> list[InputDocument]:
    """Parse *paths* into the documents that will be evaluated.

    Without *combine* every file is its own document and a parse failure is
    recorded on that document.  With *combine* exactly one document is
    returned, keyed by file path, and a parse failure raises ``ParseError``.
    """
    if combine:
        content: dict[str, Any] = {}
        for path in paths:
            content[path] = parse_file(path, input_format)
        return [InputDocument(path=COMBINED_FILENAME, content=content)]

    documents: list[InputDocument] = []
    for path in paths:
        try:
            documents.append(InputDocument(path=path, content=parse_file(path, input_format)))
        except ParseError as exc:
            logger.warning("Cannot parse %s: %s", path, exc.reason)
            documents.append(InputDocument(path=path, error=exc))
    return documents
