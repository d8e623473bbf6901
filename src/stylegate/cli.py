"""Stylegate CLI entry point."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from stylegate import __version__

if TYPE_CHECKING:
    from collections.abc import Callable

    from stylegate.config import Configuration
    from stylegate.report.aggregator import Report
    from stylegate.syntax.nodes import SourceUnit

_FORMATS = ("rich", "json", "porcelain")
_SEVERITIES = ("error", "warning", "info")
_LOG_FORMAT = "%(name)s: %(message)s"


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    """Route the package's log records to stderr at the requested level."""
    from rich.console import Console
    from rich.logging import RichHandler

    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    pkg_logger = logging.getLogger("stylegate")
    for handler in list(pkg_logger.handlers):
        if isinstance(handler, RichHandler):
            pkg_logger.removeHandler(handler)
    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=verbose,
        rich_tracebacks=verbose,
    )
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    pkg_logger.addHandler(handler)
    pkg_logger.setLevel(level)


@click.group()
@click.version_option(version=__version__, prog_name="stylegate")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """Stylegate - rule-based style linter with safe autofix."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    _configure_logging(verbose=verbose, quiet=quiet)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _split_ids(values: tuple[str, ...]) -> list[str]:
    """Flatten repeated and comma-separated ``--select``/``--ignore`` values."""
    return [part.strip() for value in values for part in value.split(",") if part.strip()]


def _load_configuration(config_path: Path | None, project_root: Path) -> Configuration:
    """Explicit ``--config`` > discovered ``.stylegate.yml`` > defaults.

    Exits with status 2 on any configuration error.
    """
    from stylegate.config import Configuration, ConfigurationError, discover_config, load_config

    path = config_path or discover_config(project_root)
    if path is None:
        return Configuration()
    try:
        return load_config(path)
    except ConfigurationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)


def _config_options(func: Callable[..., Any]) -> Callable[..., Any]:
    func = click.option(
        "--project",
        type=click.Path(exists=True, file_okay=False, path_type=Path),
        default=None,
        help="Project root (default: current directory).",
    )(func)
    func = click.option(
        "--config",
        "config_path",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
        help="Configuration file (default: nearest .stylegate.yml).",
    )(func)
    return func


def _run_options(func: Callable[..., Any]) -> Callable[..., Any]:
    options = [
        click.option(
            "--format",
            "fmt",
            type=click.Choice(_FORMATS),
            default=None,
            help="Output format (default: rich if TTY, porcelain if piped).",
        ),
        click.option(
            "--fail-on",
            type=click.Choice(_SEVERITIES),
            default=None,
            help="Lowest severity that fails the run (overrides fail_on).",
        ),
        click.option("--jobs", "-j", type=click.IntRange(min=1), default=None, help="Workers."),
        click.option(
            "--timeout",
            type=click.FloatRange(min=0, min_open=True),
            default=None,
            help="Stop starting new units after this many seconds.",
        ),
        click.option(
            "--select",
            multiple=True,
            help="Only run these rule ids (repeatable, comma-separated).",
        ),
        click.option(
            "--ignore",
            multiple=True,
            help="Skip these rule ids (repeatable, comma-separated).",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return _config_options(func)


def _execute(
    paths: tuple[Path, ...],
    *,
    fix: bool,
    stdin_name: str | None,
    config_path: Path | None,
    project: Path | None,
    fmt: str | None,
    fail_on: str | None,
    jobs: int | None,
    timeout: float | None,
    select: tuple[str, ...],
    ignore: tuple[str, ...],
) -> None:
    from stylegate.config import ConfigurationError
    from stylegate.engine.runner import Runner
    from stylegate.report.aggregator import report_run
    from stylegate.rules.base import Severity
    from stylegate.rules.catalog import default_catalog

    project_root = project or Path.cwd()

    # Resolve output format: explicit flag > TTY detection.
    if fmt is None:
        fmt = "rich" if sys.stdout.isatty() else "porcelain"

    config = _load_configuration(config_path, project_root).with_overrides(
        select=_split_ids(select),
        ignore=_split_ids(ignore),
        fail_on=Severity.parse(fail_on) if fail_on else None,
        jobs=jobs,
        timeout=timeout,
    )

    runner = Runner(default_catalog(), config)
    try:
        if stdin_name is not None:
            run = runner.run([_stdin_unit(stdin_name)], fix=False)
        else:
            run = runner.run_paths(paths or (project_root,), fix=fix, base=project_root)
    except ConfigurationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    report = report_run(run, config.fail_on)
    _emit(report, fmt)
    if report.exit_code:
        sys.exit(report.exit_code)


def _stdin_unit(name: str) -> SourceUnit:
    from stylegate.syntax.languages import language_for_extension
    from stylegate.syntax.nodes import SourceUnit

    language = language_for_extension(Path(name).suffix)
    if language is None:
        click.echo(f"Error: no parser available for '{name}'", err=True)
        sys.exit(2)
    return SourceUnit(path=name, source=click.get_binary_stream("stdin").read(), language=language)


def _emit(report: Report, fmt: str) -> None:
    from stylegate.report.formatters import format_json, format_porcelain, format_rich

    if fmt == "rich":
        click.echo(format_rich(report, color=sys.stdout.isatty()), nl=False)
        return
    formatters = {
        "json": format_json,
        "porcelain": format_porcelain,
    }
    output = formatters[fmt](report)
    if output:
        click.echo(output)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@main.command()
@click.argument(
    "paths",
    nargs=-1,
    type=click.Path(exists=True, path_type=Path),
)
@click.option(
    "--stdin-name",
    default=None,
    metavar="NAME",
    help="Read one unit from stdin, reported as NAME (its extension picks the language).",
)
@_run_options
def check(
    paths: tuple[Path, ...],
    *,
    stdin_name: str | None,
    config_path: Path | None,
    project: Path | None,
    fmt: str | None,
    fail_on: str | None,
    jobs: int | None,
    timeout: float | None,
    select: tuple[str, ...],
    ignore: tuple[str, ...],
) -> None:
    """Check PATHS (files or directories) against the enabled rules.

    Exit codes: 0 = clean, 1 = violations at or above the fail-on severity
    (or a file failed to parse), 2 = configuration error,
    3 = a rule crashed or the run was cancelled.
    """
    _execute(
        paths,
        fix=False,
        stdin_name=stdin_name,
        config_path=config_path,
        project=project,
        fmt=fmt,
        fail_on=fail_on,
        jobs=jobs,
        timeout=timeout,
        select=select,
        ignore=ignore,
    )


@main.command()
@click.argument(
    "paths",
    nargs=-1,
    type=click.Path(exists=True, path_type=Path),
)
@_run_options
def fix(
    paths: tuple[Path, ...],
    *,
    config_path: Path | None,
    project: Path | None,
    fmt: str | None,
    fail_on: str | None,
    jobs: int | None,
    timeout: float | None,
    select: tuple[str, ...],
    ignore: tuple[str, ...],
) -> None:
    """Apply safe fixes in place, then report what remains.

    Conflicting fixes are skipped and listed.  Exit codes match ``check``
    and reflect the re-checked files.
    """
    _execute(
        paths,
        fix=True,
        stdin_name=None,
        config_path=config_path,
        project=project,
        fmt=fmt,
        fail_on=fail_on,
        jobs=jobs,
        timeout=timeout,
        select=select,
        ignore=ignore,
    )


@main.command("rules")
@_config_options
def rules_cmd(*, config_path: Path | None, project: Path | None) -> None:
    """List every known rule with its effective settings and the file types checked."""
    from stylegate.report.formatters import format_rules
    from stylegate.rules.catalog import default_catalog
    from stylegate.syntax.languages import supported_extensions

    config = _load_configuration(config_path, project or Path.cwd())
    output = format_rules(default_catalog().rules, config, extensions=supported_extensions())
    click.echo(output, nl=False)


@main.command()
@click.argument("rule_id")
@_config_options
def explain(rule_id: str, *, config_path: Path | None, project: Path | None) -> None:
    """Show what RULE_ID checks and how it is configured."""
    from stylegate.report.formatters import format_explain
    from stylegate.rules.catalog import RuleNotFoundError, default_catalog

    config = _load_configuration(config_path, project or Path.cwd())
    try:
        r = default_catalog().rule_by_id(rule_id)
    except RuleNotFoundError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)
    click.echo(format_explain(r, config))
