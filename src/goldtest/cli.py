"""goldtest CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from goldtest import __version__
from goldtest.findings import RULE_CATALOG, SEVERITIES


@click.group()
@click.version_option(version=__version__, prog_name="goldtest")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """goldtest - static test-quality compliance checks."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _split_rules(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [rule.strip() for rule in value.split(",") if rule.strip()]


@main.command()
@click.argument(
    "path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: <PATH>/.goldtest.yml).",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["text", "json", "porcelain"]),
    default=None,
    help="Output format (default: text if TTY, porcelain if piped).",
)
@click.option(
    "--fail-on",
    type=click.Choice(list(SEVERITIES)),
    default="error",
    show_default=True,
    help="Lowest severity that makes the run exit 1.",
)
@click.option("--rules", "rules", default=None, help="Comma-separated rule ids to run.")
@click.option("--jobs", "-j", type=click.IntRange(min=1), default=None, help="Worker threads.")
def run(
    *,
    path: Path,
    config_path: Path | None,
    fmt: str | None,
    fail_on: str,
    rules: str | None,
    jobs: int | None,
) -> None:
    """Analyze the tests under PATH.

    Exit codes: 0 = nothing at or above --fail-on, 1 = policy violations,
    2 = configuration error or engine failure.
    """
    import dataclasses

    from goldtest.infrastructure.config import ConfigError, load_config
    from goldtest.infrastructure.report import FORMATTERS
    from goldtest.infrastructure.runner import run as run_engine

    root = path.resolve()
    if fmt is None:
        fmt = "text" if sys.stdout.isatty() else "porcelain"

    try:
        config = load_config(root, config_path)
        selected = _split_rules(rules)
        if selected is not None:
            config = config.restrict_rules(selected)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)
    if jobs is not None:
        config = dataclasses.replace(config, jobs=jobs)

    report = run_engine(root, config, fail_on=fail_on)
    output = FORMATTERS[fmt](report)
    if output:
        click.echo(output)
    sys.exit(report.exit_status)


@main.command("rules")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def list_rules(*, as_json: bool) -> None:
    """List every rule id with its default severity."""
    if as_json:
        payload = [
            {
                "rule_id": info.rule_id,
                "severity": info.default_severity,
                "component": info.component,
                "description": info.description,
            }
            for info in RULE_CATALOG.values()
        ]
        click.echo(json.dumps(payload, indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    table = Table(title="goldtest rules")
    table.add_column("Rule")
    table.add_column("Severity")
    table.add_column("Component")
    table.add_column("Description")
    for info in RULE_CATALOG.values():
        table.add_row(info.rule_id, info.default_severity, info.component, info.description)
    Console().print(table)


@main.command()
@click.option("--regression", is_flag=True, help="Print the regression template instead.")
def template(*, regression: bool) -> None:
    """Print a docstring skeleton that satisfies the validator."""
    from goldtest.analysis.docstrings import Docstring, render_docstring

    if regression:
        doc = Docstring(
            summary="Guards against a previously fixed defect.",
            fields={
                "regression": ("What broke and how it showed up.",),
                "reference": ("Issue or incident link.",),
                "code": ("path/to/module.py::function_name",),
                "asserts": ("The behavior that must not regress.",),
            },
        )
    else:
        doc = Docstring(
            summary="One sentence describing the behavior under test.",
            fields={
                "validates": ("The requirement or behavior being validated.",),
                "code": ("path/to/module.py::function_name",),
                "asserts": ("The concrete value or state the test checks.",),
                "method": ("Arrange the inputs.", "Call the code.", "Compare the result."),
            },
        )
    click.echo(render_docstring(doc), nl=False)
