"""Report domain — aggregation, run status, and output formatters."""

from stylegate.report.aggregator import (
    EXIT_CLEAN,
    EXIT_CONFIG_ERROR,
    EXIT_ENGINE_DEGRADED,
    EXIT_VIOLATIONS,
    Report,
    RunStatus,
    ViolationRecord,
    aggregate,
    compute_status,
    report_run,
)
from stylegate.report.formatters import (
    format_explain,
    format_json,
    format_porcelain,
    format_rich,
    format_rules,
)

__all__ = [
    "EXIT_CLEAN",
    "EXIT_CONFIG_ERROR",
    "EXIT_ENGINE_DEGRADED",
    "EXIT_VIOLATIONS",
    "Report",
    "RunStatus",
    "ViolationRecord",
    "aggregate",
    "compute_status",
    "format_explain",
    "format_json",
    "format_porcelain",
    "format_rich",
    "format_rules",
    "report_run",
]
