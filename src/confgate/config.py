"""Run configuration: an immutable value built once and handed to the test runner."""

from __future__ import annotations

import re
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any

import yaml

from confgate.errors import ConfigError
from confgate.output import OutputFormat
from confgate.parsers import InputFormat

if TYPE_CHECKING:
    from pathlib import Path

DEFAULT_CONFIG_FILE = "confgate.yml"

_LIST_FIELDS: frozenset[str] = frozenset({"policy_paths", "data_paths", "namespaces"})
_BOOL_FIELDS: frozenset[str] = frozenset(
    {"all_namespaces", "combine", "trace", "fail_on_warn", "no_color"}
)
# Short names accepted in confgate.yml, matching the CLI flags.
_ALIASES: dict[str, str] = {
    "policy": "policy_paths",
    "data": "data_paths",
    "namespace": "namespaces",
    "input": "input_format",
}


@dataclass(frozen=True)
class RunnerConfig:
    """Settings for one test run.  Immutable; build it with :meth:`from_mapping`."""

    policy_paths: tuple[str, ...] = ("policy",)
    data_paths: tuple[str, ...] = ()
    namespaces: tuple[str, ...] = ("main",)
    all_namespaces: bool = False
    combine: bool = False
    ignore: str | None = None
    input_format: InputFormat | None = None
    trace: bool = False
    fail_on_warn: bool = False
    output: OutputFormat = OutputFormat.STDOUT
    no_color: bool = False
    workers: int | None = None

    @property
    def ignore_pattern(self) -> re.Pattern[str] | None:
        """The compiled ignore regex, or None when no filtering is configured."""
        if not self.ignore:
            return None
        return re.compile(self.ignore)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> RunnerConfig:
        """Validate *data* and build a config; missing keys keep their defaults.

        Raises ``ConfigError`` on unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}

        for raw_key, raw_value in data.items():
            key = canonical_key(raw_key)
            if key not in known:
                msg = f"unknown configuration key '{raw_key}'"
                raise ConfigError(msg)
            if raw_value is None:
                continue
            values[key] = _coerce(key, raw_value)

        return cls(**values)


def canonical_key(key: object) -> str:
    """Map a config-file or CLI key onto the RunnerConfig field it sets."""
    name = str(key).replace("-", "_")
    return _ALIASES.get(name, name)


def _coerce(key: str, value: Any) -> Any:
    if key in _LIST_FIELDS:
        if isinstance(value, str):
            return (value,)
        if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
            msg = f"'{key}' must be a string or a list of strings"
            raise ConfigError(msg)
        return tuple(value)

    if key in _BOOL_FIELDS:
        if not isinstance(value, bool):
            msg = f"'{key}' must be true or false"
            raise ConfigError(msg)
        return value

    if key == "ignore":
        if not isinstance(value, str):
            msg = "'ignore' must be a regular expression string"
            raise ConfigError(msg)
        try:
            re.compile(value)
        except re.error as exc:
            msg = f"invalid ignore pattern {value!r}: {exc}"
            raise ConfigError(msg) from exc
        return value

    if key == "input_format":
        if isinstance(value, InputFormat):
            return value
        try:
            return InputFormat.from_name(str(value))
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

    if key == "output":
        if isinstance(value, OutputFormat):
            return value
        try:
            return OutputFormat.from_name(str(value))
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

    # workers
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        msg = "'workers' must be a positive integer"
        raise ConfigError(msg)
    return value


def load_config_file(path: Path) -> dict[str, Any]:
    """Read a ``confgate.yml`` file, returning an empty mapping if it is absent."""
    if not path.is_file():
        return {}
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        msg = f"cannot read {path}: {exc}"
        raise ConfigError(msg) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{path} must be a YAML mapping"
        raise ConfigError(msg)
    return data
