"""Reference paths such as ``input.spec.containers[0].name`` or ``data.lists["a.b"]``."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_-]*")
_INDEX_RE = re.compile(r"\[(-?\d+)\]")
_QUOTED_RE = re.compile(r"""\[(?:"((?:[^"\\]|\\.)*)"|'((?:[^'\\]|\\.)*)')\]""")


class _Undefined:
    """Marker for a path that does not resolve to a value."""

    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False


UNDEFINED: Any = _Undefined()

Segment = str | int


@dataclass(frozen=True)
class RefPath:
    """A parsed reference: a root binding followed by key/index segments."""

    root: str
    segments: tuple[Segment, ...] = ()

    def __str__(self) -> str:
        parts = [self.root]
        for seg in self.segments:
            if isinstance(seg, int):
                parts.append(f"[{seg}]")
            elif _IDENT_RE.fullmatch(seg):
                parts.append(f".{seg}")
            else:
                escaped = seg.replace("\\", "\\\\").replace('"', '\\"')
                parts.append(f'["{escaped}"]')
        return "".join(parts)

    def resolve(self, scope: dict[str, Any]) -> Any:
        """Walk the path through *scope*; return UNDEFINED when any step is missing."""
        if self.root not in scope:
            return UNDEFINED
        value = scope[self.root]
        for seg in self.segments:
            value = _step(value, seg)
            if value is UNDEFINED:
                return UNDEFINED
        return value


def _step(value: Any, seg: Segment) -> Any:
    if isinstance(value, dict):
        if seg in value:
            return value[seg]
        # YAML keys may be ints; quoted keys are always strings.
        alt: Segment = str(seg) if isinstance(seg, int) else seg
        return value.get(alt, UNDEFINED)
    if isinstance(value, list) and isinstance(seg, int):
        if -len(value) <= seg < len(value):
            return value[seg]
    return UNDEFINED


def parse_path(text: str) -> RefPath:
    """Parse *text* into a :class:`RefPath`.

    Raises ``ValueError`` on malformed syntax.
    """
    text = text.strip()
    match = _IDENT_RE.match(text)
    if match is None:
        msg = f"invalid path '{text}': must start with an identifier"
        raise ValueError(msg)

    root = match.group(0)
    pos = match.end()
    segments: list[Segment] = []

    while pos < len(text):
        if text[pos] == ".":
            ident = _IDENT_RE.match(text, pos + 1)
            if ident is None:
                msg = f"invalid path '{text}': expected identifier after '.' at offset {pos}"
                raise ValueError(msg)
            segments.append(ident.group(0))
            pos = ident.end()
            continue

        index = _INDEX_RE.match(text, pos)
        if index is not None:
            segments.append(int(index.group(1)))
            pos = index.end()
            continue

        quoted = _QUOTED_RE.match(text, pos)
        if quoted is not None:
            raw = quoted.group(1) if quoted.group(1) is not None else quoted.group(2)
            segments.append(re.sub(r"\\(.)", r"\1", raw))
            pos = quoted.end()
            continue

        msg = f"invalid path '{text}': unexpected character '{text[pos]}' at offset {pos}"
        raise ValueError(msg)

    return RefPath(root=root, segments=tuple(segments))


def type_name(value: Any) -> str:
    """Return the JSON type name of *value* as used in rule conditions and errors."""
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__
