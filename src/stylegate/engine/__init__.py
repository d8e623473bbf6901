"""Engine domain — traversal, diagnostics, and the run scheduler."""

from stylegate.engine.diagnostics import Diagnostic, RuleCrashed, UnitError, UnitResult
from stylegate.engine.runner import (
    CancelToken,
    PendingUnit,
    Runner,
    RunResult,
    RunState,
    discover_units,
)
from stylegate.engine.traversal import RuleEngine

__all__ = [
    "CancelToken",
    "Diagnostic",
    "PendingUnit",
    "RuleCrashed",
    "RuleEngine",
    "RunResult",
    "RunState",
    "Runner",
    "UnitError",
    "UnitResult",
    "discover_units",
]
