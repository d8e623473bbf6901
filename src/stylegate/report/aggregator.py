"""Violation aggregator: dedupe, sort, and compute the run status."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from stylegate.engine.diagnostics import RuleCrashed, UnitError
from stylegate.rules.base import Severity

if TYPE_CHECKING:
    from collections.abc import Iterable

    from stylegate.engine.diagnostics import UnitResult
    from stylegate.engine.runner import RunResult
    from stylegate.fixer import ConflictingFixError
    from stylegate.rules.base import Violation

EXIT_CLEAN = 0
EXIT_VIOLATIONS = 1
EXIT_CONFIG_ERROR = 2
EXIT_ENGINE_DEGRADED = 3


class RunStatus(str, enum.Enum):
    """Overall outcome of a run.  ``ENGINE_DEGRADED`` outranks ``VIOLATIONS``."""

    CLEAN = "clean"
    VIOLATIONS = "violations"
    ENGINE_DEGRADED = "engine-degraded"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_EXIT_CODES: dict[RunStatus, int] = {
    RunStatus.CLEAN: EXIT_CLEAN,
    RunStatus.VIOLATIONS: EXIT_VIOLATIONS,
    RunStatus.ENGINE_DEGRADED: EXIT_ENGINE_DEGRADED,
}


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ViolationRecord:
    """Flat, serialisable view of a violation with 1-based line and column."""

    unit: str
    rule_id: str
    severity: str
    line: int
    column: int
    end_line: int
    end_column: int
    message: str
    fixable: bool

    @classmethod
    def from_violation(cls, v: Violation) -> ViolationRecord:
        return cls(
            unit=v.unit,
            rule_id=v.rule_id,
            severity=v.severity.value,
            line=v.span.line,
            column=v.span.column + 1,
            end_line=v.span.end_line,
            end_column=v.span.end_column + 1,
            message=v.message,
            fixable=v.fixable,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "unit": self.unit,
            "rule_id": self.rule_id,
            "severity": self.severity,
            "line": self.line,
            "column": self.column,
            "end_line": self.end_line,
            "end_column": self.end_column,
            "message": self.message,
            "fixable": self.fixable,
        }


@dataclass
class Report:
    """Aggregated, ordered results of a run.  Formatters read only this."""

    violations: list[Violation] = field(default_factory=list)
    crashes: list[RuleCrashed] = field(default_factory=list)
    unit_errors: list[UnitError] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)
    applied_fixes: list[Violation] = field(default_factory=list)
    conflicts: list[ConflictingFixError] = field(default_factory=list)
    fail_on: Severity = Severity.WARNING
    status: RunStatus = RunStatus.CLEAN
    units_checked: int = 0
    rules_evaluated: int = 0
    suppressed: int = 0
    fix_mode: bool = False
    elapsed_ms: float = 0.0

    @property
    def records(self) -> list[ViolationRecord]:
        return [ViolationRecord.from_violation(v) for v in self.violations]

    @property
    def failing(self) -> list[Violation]:
        """Violations at or above ``fail_on``."""
        return [v for v in self.violations if v.severity.at_least(self.fail_on)]

    @property
    def exit_code(self) -> int:
        return self.status.exit_code

    def counts(self) -> dict[str, int]:
        totals = {s.value: 0 for s in Severity}
        for v in self.violations:
            totals[v.severity.value] += 1
        return totals


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def sort_key(v: Violation) -> tuple[str, int, str, int, str]:
    return (v.unit, v.span.start, v.rule_id, v.span.end, v.message)


def compute_status(
    violations: Iterable[Violation],
    fail_on: Severity,
    *,
    crashed: bool = False,
    cancelled: bool = False,
    unit_failed: bool = False,
) -> RunStatus:
    if crashed or cancelled:
        return RunStatus.ENGINE_DEGRADED
    if unit_failed or any(v.severity.at_least(fail_on) for v in violations):
        return RunStatus.VIOLATIONS
    return RunStatus.CLEAN


def aggregate(
    results: Iterable[UnitResult],
    fail_on: Severity = Severity.WARNING,
    *,
    cancelled: Iterable[str] = (),
    rules_evaluated: int = 0,
    fix_mode: bool = False,
    elapsed_ms: float = 0.0,
) -> Report:
    """Merge per-unit results into a single sorted, deduplicated report.

    Two violations are duplicates when unit, rule id, span and message all
    match; the first one seen is kept.
    """
    report = Report(
        fail_on=fail_on,
        cancelled=sorted(cancelled),
        rules_evaluated=rules_evaluated,
        fix_mode=fix_mode,
        elapsed_ms=elapsed_ms,
    )
    seen: set[tuple[str, str, object, str]] = set()
    for result in results:
        report.units_checked += 1
        report.suppressed += result.suppressed
        for v in result.violations:
            key = (v.unit, v.rule_id, v.span, v.message)
            if key in seen:
                continue
            seen.add(key)
            report.violations.append(v)
        for diag in result.diagnostics:
            if isinstance(diag, RuleCrashed):
                report.crashes.append(diag)
            else:
                report.unit_errors.append(diag)
        if result.fix_outcome is not None:
            report.applied_fixes.extend(result.fix_outcome.applied)
            report.conflicts.extend(result.fix_outcome.conflicts)

    report.violations.sort(key=sort_key)
    report.crashes.sort(key=lambda d: (d.unit, d.span.start, d.rule_id, d.phase))
    report.unit_errors.sort(key=lambda d: d.unit)
    report.applied_fixes.sort(key=sort_key)
    report.status = compute_status(
        report.violations,
        fail_on,
        crashed=bool(report.crashes),
        cancelled=bool(report.cancelled),
        unit_failed=bool(report.unit_errors),
    )
    return report


def report_run(run: RunResult, fail_on: Severity) -> Report:
    """Aggregate a :class:`~stylegate.engine.runner.RunResult`."""
    return aggregate(
        run.results,
        fail_on,
        cancelled=run.cancelled,
        rules_evaluated=len(run.rules),
        fix_mode=run.fix_mode,
        elapsed_ms=run.elapsed_ms,
    )
