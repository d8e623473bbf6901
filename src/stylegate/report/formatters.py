"""Report formatters.  Each returns a string; nothing here writes to a stream."""

from __future__ import annotations

import json
from itertools import groupby
from typing import TYPE_CHECKING

from stylegate.report.aggregator import RunStatus, ViolationRecord

if TYPE_CHECKING:
    from collections.abc import Iterable

    from stylegate.config import Configuration
    from stylegate.fixer import ConflictingFixError
    from stylegate.report.aggregator import Report
    from stylegate.rules.base import Rule

_SEVERITY_STYLES: dict[str, str] = {
    "error": "bold red",
    "warning": "yellow",
    "info": "cyan",
}

_STATUS_INDICATORS: dict[RunStatus, tuple[str, str]] = {
    RunStatus.CLEAN: ("✓", "green"),
    RunStatus.VIOLATIONS: ("✗", "red"),
    RunStatus.ENGINE_DEGRADED: ("!", "magenta"),
}


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _summary_line(report: Report) -> str:
    elapsed = f"{report.elapsed_ms / 1000:.1f}s"
    scope = (
        f"{_plural(report.units_checked, 'unit')} checked, "
        f"{_plural(report.rules_evaluated, 'rule')}, {elapsed}"
    )
    if not report.violations:
        return f"No problems found ({scope})"
    counts = report.counts()
    fixable = sum(1 for v in report.violations if v.fixable)
    parts = [
        _plural(counts["error"], "error"),
        _plural(counts["warning"], "warning"),
        f"{counts['info']} info",
    ]
    text = f"{_plural(len(report.violations), 'problem')} ({', '.join(parts)}) in {scope}"
    if fixable and not report.fix_mode:
        text += f"; {fixable} fixable with `stylegate fix`"
    return text


def _conflict_dict(conflict: ConflictingFixError) -> dict[str, object]:
    return {
        "unit": conflict.unit,
        "rule_ids": list(conflict.rule_ids),
        "spans": [
            {
                "line": s.line,
                "column": s.column + 1,
                "end_line": s.end_line,
                "end_column": s.end_column + 1,
            }
            for s in conflict.spans
        ],
        "message": str(conflict),
    }


# ---------------------------------------------------------------------------
# Rich
# ---------------------------------------------------------------------------


def format_rich(report: Report, *, color: bool = True, width: int = 100) -> str:
    """Render the report for a terminal.

    Violations are grouped per unit, followed by fix results, engine
    diagnostics and a one-line summary::

        src/app.py
          3:12  warning  trailing-whitespace  trailing whitespace
          7:1   info     comment-space        missing space after comment marker

        ✗ 2 problems (0 errors, 1 warning, 1 info) in 1 unit checked, 9 rules, 0.1s
    """
    from io import StringIO

    from rich.console import Console
    from rich.text import Text

    buf = StringIO()
    console = Console(
        file=buf,
        force_terminal=color,
        no_color=not color,
        width=width,
        highlight=False,
    )

    for unit, group in groupby(report.records, key=lambda r: r.unit):
        console.print(Text(unit, style="bold underline"), soft_wrap=True)
        for rec in group:
            line = Text("  ")
            line.append(f"{rec.line}:{rec.column}".ljust(8), style="dim")
            line.append(rec.severity.ljust(9), style=_SEVERITY_STYLES.get(rec.severity, ""))
            line.append(rec.rule_id, style="bold")
            line.append("  ")
            line.append(rec.message)
            if rec.fixable and not report.fix_mode:
                line.append("  [*]", style="green")
            console.print(line, soft_wrap=True)
        console.print()

    if report.fix_mode:
        console.rule("Fixes", style="dim")
        console.print(f"  Applied {_plural(len(report.applied_fixes), 'fix')}", soft_wrap=True)
        for v in report.applied_fixes:
            description = v.fix.description if v.fix is not None else ""
            console.print(
                Text(f"  ✓ {v.unit}:{v.span.line}:{v.span.column + 1} {v.rule_id}")
                + Text(f"  {description}" if description else "", style="dim"),
                soft_wrap=True,
            )
        for conflict in report.conflicts:
            console.print(Text(f"  ✗ {conflict}", style="yellow"), soft_wrap=True)
        console.print()

    if report.crashes or report.unit_errors or report.cancelled:
        console.rule("Engine", style="dim")
        for crash in report.crashes:
            console.print(Text(f"  ! {crash.describe()}", style="magenta"), soft_wrap=True)
        for error in report.unit_errors:
            console.print(Text(f"  ✗ {error.describe()}", style="red"), soft_wrap=True)
        if report.cancelled:
            console.print(
                Text(f"  ! cancelled before checking {_plural(len(report.cancelled), 'unit')}:"),
                soft_wrap=True,
            )
            for unit in report.cancelled:
                console.print(Text(f"    {unit}", style="dim"), soft_wrap=True)
        console.print()

    indicator, style = _STATUS_INDICATORS[report.status]
    summary = Text(f"{indicator} ", style=f"bold {style}")
    summary.append(_summary_line(report))
    console.print(summary, soft_wrap=True)
    return buf.getvalue()


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def format_json(report: Report) -> str:
    """Format the report as a JSON document.

    Top-level keys: ``violations``, ``diagnostics``, ``cancelled``, ``fixes``
    (``null`` outside fix mode) and ``summary``.
    """
    diagnostics: list[dict[str, object]] = [
        {
            "kind": crash.kind,
            "unit": crash.unit,
            "rule_id": crash.rule_id,
            "line": crash.span.line,
            "column": crash.span.column + 1,
            "phase": crash.phase,
            "error_type": crash.error_type,
            "message": crash.message,
        }
        for crash in report.crashes
    ]
    diagnostics.extend(
        {
            "kind": error.kind,
            "unit": error.unit,
            "error_kind": error.error_kind,
            "line": error.line,
            "message": error.message,
        }
        for error in report.unit_errors
    )

    fixes: dict[str, object] | None = None
    if report.fix_mode:
        fixes = {
            "applied": [
                {
                    **ViolationRecord.from_violation(v).to_dict(),
                    "description": v.fix.description if v.fix is not None else "",
                }
                for v in report.applied_fixes
            ],
            "conflicts": [_conflict_dict(c) for c in report.conflicts],
        }

    output: dict[str, object] = {
        "violations": [rec.to_dict() for rec in report.records],
        "diagnostics": diagnostics,
        "cancelled": list(report.cancelled),
        "fixes": fixes,
        "summary": {
            "status": report.status.value,
            "exit_code": report.exit_code,
            "fail_on": report.fail_on.value,
            "units_checked": report.units_checked,
            "rules_evaluated": report.rules_evaluated,
            "violations_count": len(report.violations),
            "failing_count": len(report.failing),
            "by_severity": report.counts(),
            "suppressed": report.suppressed,
            "elapsed_ms": report.elapsed_ms,
        },
    }
    return json.dumps(output, indent=2)


# ---------------------------------------------------------------------------
# Porcelain
# ---------------------------------------------------------------------------


def format_porcelain(report: Report) -> str:
    """One line per finding: ``unit:line:column:severity:rule_id:message``.

    Engine diagnostics follow the violations in the same shape, with
    ``crash`` or ``unit-error`` in the severity field.  Returns an empty
    string when there is nothing to report.
    """
    lines = [
        f"{r.unit}:{r.line}:{r.column}:{r.severity}:{r.rule_id}:{r.message}"
        for r in report.records
    ]
    lines.extend(
        f"{c.unit}:{c.span.line}:{c.span.column + 1}:crash:{c.rule_id}:"
        f"{c.error_type}: {c.message}"
        for c in report.crashes
    )
    lines.extend(
        f"{e.unit}:{e.line or 0}:0:unit-error:{e.error_kind}:{e.message}"
        for e in report.unit_errors
    )
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Rule listings
# ---------------------------------------------------------------------------


def format_rules(
    rules: tuple[Rule, ...],
    config: Configuration,
    *,
    extensions: Iterable[str] = (),
) -> str:
    """Render the catalog as a table with each rule's effective settings.

    *extensions* lists the file extensions that have a grammar installed.
    """
    from io import StringIO

    from rich.console import Console
    from rich.table import Table

    buf = StringIO()
    console = Console(file=buf, force_terminal=False, width=120)
    table = Table(title="Rules", box=None, padding=(0, 1))
    table.add_column("id", style="cyan", no_wrap=True)
    table.add_column("enabled")
    table.add_column("severity")
    table.add_column("fix")
    table.add_column("applies to")
    table.add_column("description")
    for r in rules:
        applies = "unit" if r.scope == "unit" else ", ".join(sorted(k.value for k in r.kinds))
        table.add_row(
            r.id,
            "yes" if config.is_enabled(r) else "no",
            config.severity_for(r).value,
            "yes" if r.fixable else "",
            applies,
            r.description,
        )
    console.print(table)
    if extensions:
        console.print(f"Checks files: {', '.join(sorted(extensions))}", soft_wrap=True)
    return buf.getvalue()


def format_explain(r: Rule, config: Configuration) -> str:
    """Describe one rule and its effective parameters in plain text."""
    lines = [
        f"{r.id} (v{r.version})",
        f"  {r.description}",
        "",
        f"  enabled:   {'yes' if config.is_enabled(r) else 'no'}",
        f"  severity:  {config.severity_for(r).value}",
        f"  fixable:   {'yes' if r.fixable else 'no'}",
    ]
    if r.scope == "unit":
        lines.append("  applies:   whole unit")
    else:
        lines.append(f"  applies:   {', '.join(sorted(k.value for k in r.kinds))}")
    params = config.params_for(r)
    if params:
        lines.append("  params:")
        for name in sorted(params):
            value = params[name]
            default = r.params[name]
            suffix = "" if value == default else f"  (default {default!r})"
            choices = r.param_choices.get(name)
            if choices is not None:
                suffix += f"  one of {list(choices)}"
            lines.append(f"    {name} = {value!r}{suffix}")
    return "\n".join(lines)
