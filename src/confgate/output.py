"""Output managers: render check results as plain text, JSON, a table or TAP."""

from __future__ import annotations

import abc
import enum
import json
from typing import IO, TYPE_CHECKING, Any

import click
from rich.console import Console
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from confgate.runner.results import CheckResult, ResultMessage


class OutputFormat(enum.Enum):
    """Known output formats."""

    STDOUT = "stdout"
    JSON = "json"
    TABLE = "table"
    TAP = "tap"

    @classmethod
    def from_name(cls, name: str) -> OutputFormat:
        try:
            return cls(name.lower())
        except ValueError:
            valid = ", ".join(valid_outputs())
            msg = f"unknown output format '{name}', valid options are: {valid}"
            raise ValueError(msg) from None


def valid_outputs() -> list[str]:
    """Return the user-facing names of all output formats."""
    return [fmt.value for fmt in OutputFormat]


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


class OutputManager(abc.ABC):
    """Collects results with :meth:`put` and writes them on :meth:`flush`."""

    def __init__(self, *, color: bool = True, stream: IO[str] | None = None) -> None:
        self.color = color
        self.tracing = False
        self.stream = stream
        self._results: list[CheckResult] = []

    def with_tracing(self) -> OutputManager:
        """Include trace lines in the rendered output."""
        self.tracing = True
        return self

    def put(self, result: CheckResult) -> None:
        self._results.append(result)

    @abc.abstractmethod
    def flush(self) -> None:
        """Write every collected result to the stream."""

    def _console(self) -> Console:
        return Console(
            file=self.stream,
            no_color=not self.color,
            highlight=False,
            soft_wrap=True,
        )

    def _echo(self, text: str) -> None:
        click.echo(text, file=self.stream)


class StandardOutputManager(OutputManager):
    """Human-readable ``FAIL - file - namespace - message`` lines plus a summary."""

    _STYLES: dict[str, str] = {
        "FAIL": "red",
        "WARN": "yellow",
        "ERROR": "red",
        "EXCP": "cyan",
        "TRAC": "dim",
    }

    def _line(self, console: Console, label: str, filename: str, item: ResultMessage) -> None:
        line = Text()
        line.append(label, style=self._STYLES[label])
        parts = [filename, item.message]
        if item.namespace:
            parts.insert(1, item.namespace)
        line.append(" - " + " - ".join(parts))
        console.print(line)

    def flush(self) -> None:
        console = self._console()
        totals = {"tests": 0, "passed": 0, "warnings": 0, "failures": 0, "exceptions": 0}

        for result in self._results:
            if self.tracing:
                for trace in result.traces:
                    line = Text()
                    line.append("TRAC", style=self._STYLES["TRAC"])
                    line.append(f" - {result.filename} - {trace}")
                    console.print(line)
            for item in result.warnings:
                self._line(console, "WARN", result.filename, item)
            for item in result.failures:
                self._line(console, "FAIL", result.filename, item)
            for item in result.exceptions:
                self._line(console, "ERROR", result.filename, item)
            for item in result.excepted:
                self._line(console, "EXCP", result.filename, item)

            totals["passed"] += result.successes
            totals["warnings"] += len(result.warnings)
            totals["failures"] += len(result.failures)
            totals["exceptions"] += len(result.exceptions)

        totals["tests"] = (
            totals["passed"] + totals["warnings"] + totals["failures"] + totals["exceptions"]
        )
        console.print()
        console.print(
            f"{_plural(totals['tests'], 'test')}, {totals['passed']} passed, "
            f"{_plural(totals['warnings'], 'warning')}, "
            f"{_plural(totals['failures'], 'failure')}, "
            f"{_plural(totals['exceptions'], 'exception')}"
        )


class JSONOutputManager(OutputManager):
    """One JSON array with an object per checked file."""

    @staticmethod
    def _messages(items: tuple[ResultMessage, ...]) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        for item in items:
            entry: dict[str, Any] = {"msg": item.message}
            if item.namespace:
                entry["namespace"] = item.namespace
            if item.rule:
                entry["rule"] = item.rule
            if item.metadata:
                entry["metadata"] = item.metadata
            out.append(entry)
        return out

    def flush(self) -> None:
        payload: list[dict[str, Any]] = []
        for result in self._results:
            entry: dict[str, Any] = {
                "filename": result.filename,
                "namespaces": list(result.namespaces),
                "successes": result.successes,
                "failures": self._messages(result.failures),
                "warnings": self._messages(result.warnings),
                "exceptions": self._messages(result.exceptions),
                "excepted": self._messages(result.excepted),
            }
            if self.tracing:
                entry["traces"] = list(result.traces)
            payload.append(entry)
        self._echo(json.dumps(payload, indent=4, default=str))


class TableOutputManager(OutputManager):
    """A Rich table with one row per reported message."""

    def flush(self) -> None:
        console = self._console()
        table = Table(show_lines=False)
        table.add_column("RESULT")
        table.add_column("FILE")
        table.add_column("NAMESPACE")
        table.add_column("MESSAGE")

        for result in self._results:
            if result.successes:
                table.add_row(Text("success", style="green"), Text(result.filename), "", "")
            for label, style, items in (
                ("warning", "yellow", result.warnings),
                ("failure", "red", result.failures),
                ("exception", "red", result.exceptions),
                ("excepted", "cyan", result.excepted),
            ):
                for item in items:
                    table.add_row(
                        Text(label, style=style),
                        Text(result.filename),
                        Text(item.namespace),
                        Text(item.message),
                    )
            if self.tracing:
                for trace in result.traces:
                    table.add_row(
                        Text("trace", style="dim"), Text(result.filename), "", Text(trace)
                    )

        console.print(table)


class TAPOutputManager(OutputManager):
    """Test Anything Protocol output."""

    def flush(self) -> None:
        lines: list[str] = []
        counter = 0
        for result in self._results:
            if self.tracing:
                lines.extend(f"# {trace}" for trace in result.traces)
            for item in result.failures:
                counter += 1
                lines.append(f"not ok {counter} - {result.filename} - {item.message}")
            for item in result.exceptions:
                counter += 1
                lines.append(f"not ok {counter} - {result.filename} - {item.message}")
            if result.warnings:
                lines.append("# warnings")
                for item in result.warnings:
                    counter += 1
                    lines.append(f"not ok {counter} - {result.filename} - {item.message}")
            for _ in range(result.successes):
                counter += 1
                lines.append(f"ok {counter} - {result.filename}")

        self._echo("\n".join([f"1..{counter}", *lines]))


_MANAGERS: dict[OutputFormat, type[OutputManager]] = {
    OutputFormat.STDOUT: StandardOutputManager,
    OutputFormat.JSON: JSONOutputManager,
    OutputFormat.TABLE: TableOutputManager,
    OutputFormat.TAP: TAPOutputManager,
}


def get_output_manager(
    fmt: OutputFormat, *, color: bool = True, stream: IO[str] | None = None
) -> OutputManager:
    """Return a fresh output manager for *fmt*."""
    return _MANAGERS[fmt](color=color, stream=stream)
