"""Confgate CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any, NoReturn

import click
from click.core import ParameterSource

from confgate import __version__
from confgate.output import valid_outputs
from confgate.parsers import valid_inputs

if TYPE_CHECKING:
    from confgate.config import RunnerConfig


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_time=False, show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(version=__version__, prog_name="confgate")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """Confgate - test configuration files against policy rules."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    _configure_logging(verbose=verbose, quiet=quiet)


def _fail(message: object) -> NoReturn:
    from confgate.runner import EXIT_FATAL

    click.echo(f"Error: {message}", err=True)
    sys.exit(EXIT_FATAL)


def _build_config(
    ctx: click.Context, params: dict[str, Any], config_path: Path | None
) -> RunnerConfig:
    """Merge confgate.yml with the CLI options; explicitly passed options win."""
    from confgate.config import (
        DEFAULT_CONFIG_FILE,
        RunnerConfig,
        canonical_key,
        load_config_file,
    )

    path = config_path or Path.cwd() / DEFAULT_CONFIG_FILE
    file_values = {canonical_key(k): v for k, v in load_config_file(path).items()}

    merged: dict[str, Any] = dict(file_values)
    for name, value in params.items():
        source = ctx.get_parameter_source(name)
        if source is ParameterSource.DEFAULT and name in file_values:
            continue
        merged[name] = value
    return RunnerConfig.from_mapping(merged)


# ---------------------------------------------------------------------------
# test
# ---------------------------------------------------------------------------


@main.command("test")
@click.argument("paths", nargs=-1, required=True)
@click.option(
    "--policy",
    "-p",
    "policy_paths",
    multiple=True,
    default=("policy",),
    show_default=True,
    help="Path to the policy files directory (repeatable).",
)
@click.option(
    "--data",
    "-d",
    "data_paths",
    multiple=True,
    help="Path from which reference data is recursively loaded (repeatable).",
)
@click.option(
    "--namespace",
    "-n",
    "namespaces",
    multiple=True,
    default=("main",),
    show_default=True,
    help="Test policies in a specific namespace (repeatable).",
)
@click.option("--all-namespaces", is_flag=True, help="Test policies found in all namespaces.")
@click.option("--combine", is_flag=True, help="Combine all input files into one document.")
@click.option("--ignore", default=None, help="A regex pattern for ignoring input paths.")
@click.option(
    "--input",
    "-i",
    "input_format",
    default=None,
    help=f"Input type for given sources: {', '.join(valid_inputs())}.",
)
@click.option(
    "--output",
    "-o",
    default="stdout",
    show_default=True,
    help=f"Output format: {', '.join(valid_outputs())}.",
)
@click.option("--trace", is_flag=True, help="Include a step-by-step evaluation trace.")
@click.option(
    "--fail-on-warn", is_flag=True, help="Exit non-zero when warnings are found."
)
@click.option("--no-color", is_flag=True, help="Disable color when printing.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Configuration file (default: ./confgate.yml when present).",
)
@click.pass_context
def test_cmd(
    ctx: click.Context, paths: tuple[str, ...], config_path: Path | None, **params: Any
) -> None:
    """Test configuration files against policies.

    Exit codes: 0 = all passed, 1 = failures or exceptions found (or
    warnings with --fail-on-warn), 2 = policies, data or inputs could not be
    loaded.
    """
    from confgate.errors import ConfgateError
    from confgate.output import get_output_manager
    from confgate.runner import TestRunner, exit_code, exit_code_fail_on_warn

    try:
        config = _build_config(ctx, params, config_path)
    except ConfgateError as exc:
        _fail(exc)

    cancel = threading.Event()
    try:
        results = TestRunner(config).run(list(paths), cancel=cancel)
    except KeyboardInterrupt:
        cancel.set()
        _fail("run cancelled")
    except ConfgateError as exc:
        _fail(exc)

    manager = get_output_manager(config.output, color=not config.no_color)
    if config.trace:
        manager = manager.with_tracing()
    for result in results:
        manager.put(result)
    manager.flush()

    if config.fail_on_warn:
        code = exit_code_fail_on_warn(results)
    else:
        code = exit_code(results)
    if code:
        sys.exit(code)


# ---------------------------------------------------------------------------
# parse
# ---------------------------------------------------------------------------


@main.command("parse")
@click.argument("paths", nargs=-1, required=True)
@click.option(
    "--input",
    "-i",
    "input_format",
    default=None,
    help=f"Input type for given sources: {', '.join(valid_inputs())}.",
)
@click.option("--combine", is_flag=True, help="Combine all input files into one document.")
def parse_cmd(paths: tuple[str, ...], input_format: str | None, *, combine: bool) -> None:
    """Print input files as the documents policies will see."""
    from confgate.errors import ParseError
    from confgate.parsers import InputFormat
    from confgate.runner import discover_inputs, group_inputs

    try:
        fmt = InputFormat.from_name(input_format) if input_format else None
    except ValueError as exc:
        _fail(exc)

    try:
        documents = group_inputs(discover_inputs(paths), combine=combine, input_format=fmt)
    except ParseError as exc:
        _fail(exc)

    failed = False
    for document in documents:
        if document.error is not None:
            click.echo(f"Error: {document.error}", err=True)
            failed = True
            continue
        if not combine:
            click.echo(f"{document.path}")
        click.echo(json.dumps(document.content, indent=4, default=str))

    if failed:
        sys.exit(1)


# ---------------------------------------------------------------------------
# verify
# ---------------------------------------------------------------------------


@main.command("verify")
@click.option(
    "--policy",
    "-p",
    "policy_paths",
    multiple=True,
    default=("policy",),
    show_default=True,
    help="Path to the policy files directory (repeatable).",
)
@click.option(
    "--data",
    "-d",
    "data_paths",
    multiple=True,
    help="Path from which reference data is recursively loaded (repeatable).",
)
def verify_cmd(policy_paths: tuple[str, ...], data_paths: tuple[str, ...]) -> None:
    """Compile policies, load data, and list namespaces with their rule counts."""
    from rich.console import Console
    from rich.table import Table

    from confgate.config import RunnerConfig
    from confgate.engine import RuleClass
    from confgate.errors import ConfgateError
    from confgate.runner import TestRunner

    config = RunnerConfig(policy_paths=policy_paths, data_paths=data_paths)
    try:
        loaded = TestRunner(config).load()
    except ConfgateError as exc:
        _fail(exc)

    table = Table(title="Namespaces")
    table.add_column("namespace", style="cyan")
    table.add_column("deny", justify="right")
    table.add_column("warn", justify="right")
    table.add_column("exception", justify="right")
    for namespace in loaded.rule_set.namespaces:
        table.add_row(
            namespace,
            *(str(len(loaded.rule_set.rules(namespace, rc))) for rc in RuleClass),
        )

    console = Console(highlight=False, soft_wrap=True)
    console.print(table)
    console.print(
        f"{len(loaded.rule_set.namespaces)} namespace(s), "
        f"{len(loaded.store)} data root key(s)"
    )
