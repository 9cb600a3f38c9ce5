"""Input parsing: turn raw configuration bytes into plain Python documents."""

from __future__ import annotations

import configparser
import enum
import json
import logging
import sys
import tomllib
from pathlib import Path
from typing import Any, Callable

import yaml

from confgate.errors import ParseError

logger = logging.getLogger(__name__)

STDIN_PATH = "-"


class InputFormat(enum.Enum):
    """Known input formats."""

    YAML = "yaml"
    JSON = "json"
    TOML = "toml"
    INI = "ini"

    @classmethod
    def from_name(cls, name: str) -> InputFormat:
        """Look a format up by its user-facing name (case-insensitive)."""
        try:
            return cls(name.lower())
        except ValueError:
            valid = ", ".join(valid_inputs())
            msg = f"unknown input format '{name}', valid options are: {valid}"
            raise ValueError(msg) from None


EXTENSIONS: dict[str, InputFormat] = {
    ".yaml": InputFormat.YAML,
    ".yml": InputFormat.YAML,
    ".json": InputFormat.JSON,
    ".toml": InputFormat.TOML,
    ".ini": InputFormat.INI,
    ".cfg": InputFormat.INI,
}


def valid_inputs() -> list[str]:
    """Return the user-facing names of all input formats."""
    return [fmt.value for fmt in InputFormat]


# ---------------------------------------------------------------------------
# Per-format parsers
# ---------------------------------------------------------------------------


def _parse_yaml(text: str) -> Any:
    # A file with several `---` separated documents becomes a list of them.
    documents = [doc for doc in yaml.safe_load_all(text) if doc is not None]
    if not documents:
        return None
    if len(documents) == 1:
        return documents[0]
    return documents


def _parse_json(text: str) -> Any:
    return json.loads(text)


def _parse_toml(text: str) -> Any:
    return tomllib.loads(text)


def _parse_ini(text: str) -> Any:
    parser = configparser.ConfigParser(interpolation=None)
    parser.read_string(text)
    result: dict[str, dict[str, str]] = {}
    defaults = dict(parser.defaults())
    if defaults:
        result[parser.default_section] = defaults
    for section in parser.sections():
        result[section] = {key: parser.get(section, key) for key in parser.options(section)}
    return result


_PARSERS: dict[InputFormat, Callable[[str], Any]] = {
    InputFormat.YAML: _parse_yaml,
    InputFormat.JSON: _parse_json,
    InputFormat.TOML: _parse_toml,
    InputFormat.INI: _parse_ini,
}

_PARSE_FAILURES: tuple[type[Exception], ...] = (
    yaml.YAMLError,
    json.JSONDecodeError,
    tomllib.TOMLDecodeError,
    configparser.Error,
    UnicodeDecodeError,
    ValueError,
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def detect_format(path: str) -> InputFormat | None:
    """Return the input format implied by *path*'s extension, or None."""
    return EXTENSIONS.get(Path(path).suffix.lower())


def parse_bytes(data: bytes, fmt: InputFormat, path: str) -> Any:
    """Parse *data* as *fmt*; *path* is only used for error reporting."""
    try:
        text = data.decode("utf-8")
        return _PARSERS[fmt](text)
    except _PARSE_FAILURES as exc:
        raise ParseError(path, str(exc)) from exc


def parse_file(path: str, fmt: InputFormat | None = None) -> Any:
    """Read and parse one input file.

    *fmt* overrides extension-based detection.  The special path ``-``
    reads standard input and requires an explicit *fmt*.
    """
    if fmt is None:
        fmt = detect_format(path)
    if fmt is None:
        raise ParseError(path, "unable to detect input format, use --input to set one")

    try:
        data = sys.stdin.buffer.read() if path == STDIN_PATH else Path(path).read_bytes()
    except OSError as exc:
        raise ParseError(path, f"read file: {exc.strerror or exc}") from exc

    logger.debug("Parsing %s as %s", path, fmt.value)
    return parse_bytes(data, fmt, path)
