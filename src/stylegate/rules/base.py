"""Rule model: severities, violations, fix edits, rules, and the rule context."""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Union

from stylegate.syntax.nodes import Node, NodeKind, SourceUnit, Span

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

VALID_SCOPES: frozenset[str] = frozenset({"node", "unit"})


class Severity(str, enum.Enum):
    """Importance tier of a violation, ordered ``info < warning < error``."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def at_least(self, threshold: Severity) -> bool:
        """Return True if this severity is at or above *threshold*."""
        return self.rank >= threshold.rank

    @classmethod
    def parse(cls, value: object) -> Severity:
        """Parse a severity name, raising ``ValueError`` on unknown values."""
        if isinstance(value, Severity):
            return value
        text = str(value).strip().lower()
        if text == "warn":
            text = "warning"
        for member in cls:
            if member.value == text:
                return member
        msg = f"invalid severity '{value}', must be one of {sorted(m.value for m in cls)}"
        raise ValueError(msg)


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.INFO: 0,
    Severity.WARNING: 1,
    Severity.ERROR: 2,
}


@dataclass(frozen=True)
class FixEdit:
    """Replace the bytes covered by ``span`` with ``replacement``."""

    span: Span
    replacement: str


@dataclass(frozen=True)
class Fix:
    """An atomic set of edits: applied together or not at all."""

    edits: tuple[FixEdit, ...]
    description: str = ""

    @classmethod
    def replace(cls, span: Span, replacement: str, description: str = "") -> Fix:
        return cls(edits=(FixEdit(span=span, replacement=replacement),), description=description)


@dataclass(frozen=True)
class Violation:
    """A single rule breach found in one source unit."""

    rule_id: str
    severity: Severity
    unit: str
    span: Span
    message: str
    fix: Fix | None = None

    @property
    def fixable(self) -> bool:
        return self.fix is not None


CheckFn = Callable[[Node, "RuleContext"], "Iterable[Violation]"]
FixFn = Callable[[Violation, "RuleContext"], Union[Fix, None]]


@dataclass(frozen=True)
class Rule:
    """A named, versioned, independent checker.

    ``scope="node"`` rules subscribe to ``kinds`` and are dispatched during
    traversal; ``scope="unit"`` rules run once per unit against the root in
    a pre-pass.  ``params`` holds the parameter defaults and doubles as the
    schema used to validate configured overrides.
    """

    id: str
    description: str
    check: CheckFn
    severity: Severity = Severity.WARNING
    kinds: frozenset[NodeKind] = frozenset()
    scope: str = "node"
    fix: FixFn | None = None
    params: Mapping[str, object] = field(default_factory=dict)
    param_choices: Mapping[str, tuple[object, ...]] = field(default_factory=dict)
    enabled_by_default: bool = True
    version: int = 1

    def __post_init__(self) -> None:
        if not self.id or not self.id.strip():
            msg = "rule id must be a non-empty string"
            raise ValueError(msg)
        if self.scope not in VALID_SCOPES:
            msg = f"Rule '{self.id}': scope must be one of {sorted(VALID_SCOPES)}"
            raise ValueError(msg)
        if self.scope == "node" and not self.kinds:
            msg = f"Rule '{self.id}': node-scoped rules must subscribe to at least one kind"
            raise ValueError(msg)
        if self.scope == "unit" and self.kinds:
            msg = f"Rule '{self.id}': unit-scoped rules do not subscribe to node kinds"
            raise ValueError(msg)
        for name in self.param_choices:
            if name not in self.params:
                msg = f"Rule '{self.id}': choices given for unknown parameter '{name}'"
                raise ValueError(msg)
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))
        object.__setattr__(self, "param_choices", MappingProxyType(dict(self.param_choices)))

    @property
    def fixable(self) -> bool:
        return self.fix is not None


def rule(
    rule_id: str,
    *,
    description: str,
    severity: Severity = Severity.WARNING,
    kinds: Iterable[NodeKind] = (),
    scope: str = "node",
    fix: FixFn | None = None,
    params: Mapping[str, object] | None = None,
    param_choices: Mapping[str, tuple[object, ...]] | None = None,
    enabled_by_default: bool = True,
    version: int = 1,
) -> Callable[[CheckFn], Rule]:
    """Decorator turning a check function into a :class:`Rule`."""

    def decorator(check: CheckFn) -> Rule:
        return Rule(
            id=rule_id,
            description=description,
            check=check,
            severity=severity,
            kinds=frozenset(kinds),
            scope=scope,
            fix=fix,
            params=dict(params or {}),
            param_choices=dict(param_choices or {}),
            enabled_by_default=enabled_by_default,
            version=version,
        )

    return decorator


# ---------------------------------------------------------------------------
# Rule context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuleContext:
    """Read-only view handed to a rule for one dispatch.

    ``ancestors`` runs from the root down to the visited node's parent.
    """

    unit: SourceUnit
    root: Node
    rule_id: str
    severity: Severity
    params: Mapping[str, object] = field(default_factory=dict)
    ancestors: tuple[Node, ...] = ()

    @property
    def parent(self) -> Node | None:
        return self.ancestors[-1] if self.ancestors else None

    def siblings(self, node: Node) -> tuple[Node, ...]:
        """Return the other children of *node*'s parent, in source order."""
        parent = self.parent
        if parent is None:
            return ()
        return tuple(c for c in parent.children if c is not node)

    def inside(self, *kinds: NodeKind) -> bool:
        """Return True if any ancestor has one of *kinds*."""
        return any(a.kind in kinds for a in self.ancestors)

    def enclosing(self, *kinds: NodeKind) -> Node | None:
        """Return the nearest ancestor with one of *kinds*."""
        for ancestor in reversed(self.ancestors):
            if ancestor.kind in kinds:
                return ancestor
        return None

    def text(self, target: Node | Span) -> str:
        span = target.span if isinstance(target, Node) else target
        return self.unit.text(span)

    def param(self, name: str) -> object:
        return self.params[name]

    def violation(self, target: Node | Span, message: str, *, fix: Fix | None = None) -> Violation:
        """Build a violation for this rule at *target*."""
        span = target.span if isinstance(target, Node) else target
        return Violation(
            rule_id=self.rule_id,
            severity=self.severity,
            unit=self.unit.path,
            span=span,
            message=message,
            fix=fix,
        )
