"""Engine-level diagnostics and per-unit results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from stylegate.fixer import FixOutcome
    from stylegate.rules.base import Violation
    from stylegate.syntax.nodes import Span


@dataclass(frozen=True)
class RuleCrashed:
    """A rule's check or fix generator raised while handling one node."""

    rule_id: str
    unit: str
    span: Span
    error_type: str
    message: str
    phase: str = "check"

    @property
    def kind(self) -> str:
        return "rule-crashed"

    def describe(self) -> str:
        return (
            f"rule '{self.rule_id}' crashed in {self.phase} at "
            f"{self.unit}:{self.span.line}:{self.span.column + 1}: "
            f"{self.error_type}: {self.message}"
        )


@dataclass(frozen=True)
class UnitError:
    """A unit could not be loaded or parsed; no rule ran on it."""

    unit: str
    error_kind: str
    message: str
    line: int | None = None

    @property
    def kind(self) -> str:
        return "unit-error"

    def describe(self) -> str:
        where = f"{self.unit}:{self.line}" if self.line is not None else self.unit
        return f"{where}: {self.error_kind}: {self.message}"


Diagnostic = Union[RuleCrashed, UnitError]


@dataclass(frozen=True)
class UnitResult:
    """Everything one traversal produced for one unit.

    ``violations`` keep traversal order; the aggregator sorts.  In fix mode
    ``fix_outcome`` records what the applier did before the re-check whose
    findings fill ``violations``.
    """

    unit: str
    violations: tuple[Violation, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = ()
    suppressed: int = 0
    fix_outcome: FixOutcome | None = None

    @property
    def crashed(self) -> bool:
        return any(isinstance(d, RuleCrashed) for d in self.diagnostics)

    @property
    def failed(self) -> bool:
        return any(isinstance(d, UnitError) for d in self.diagnostics)
