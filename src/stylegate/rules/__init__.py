"""Rules domain — rule model, catalog, and the built-in rule set."""

from stylegate.rules.base import (
    Fix,
    FixEdit,
    Rule,
    RuleContext,
    Severity,
    Violation,
    rule,
)
from stylegate.rules.catalog import (
    RuleCatalog,
    RuleNotFoundError,
    build_default_catalog,
    default_catalog,
)

__all__ = [
    "Fix",
    "FixEdit",
    "Rule",
    "RuleCatalog",
    "RuleContext",
    "RuleNotFoundError",
    "Severity",
    "Violation",
    "build_default_catalog",
    "default_catalog",
    "rule",
]
