"""Rule engine: one deterministic pre-order pass per unit.

Every ``scope="unit"`` rule first runs once against the root (the pre-pass).
The traversal then visits parent before children, children in source order,
and hands each node to every rule subscribed to its kind in catalog order.
Ancestors live on an explicit stack owned by the traversal; nodes carry no
parent references.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from stylegate.config import Configuration
from stylegate.engine.diagnostics import RuleCrashed, UnitResult
from stylegate.rules.base import RuleContext, Violation
from stylegate.syntax.adapter import parse_unit
from stylegate.syntax.nodes import NodeKind

if TYPE_CHECKING:
    from collections.abc import Mapping

    from stylegate.rules.base import Fix, Rule, Severity
    from stylegate.rules.catalog import RuleCatalog
    from stylegate.syntax.nodes import Node, SourceUnit, Span

logger = logging.getLogger(__name__)

_SUPPRESS_RE = re.compile(
    r"stylegate:\s*disable(?P<file>-file)?=(?P<ids>[\w-]+(?:\s*,\s*[\w-]+)*)"
)
SUPPRESS_ALL = "all"


@dataclass(frozen=True)
class _Binding:
    """A rule with its configuration resolved once per run."""

    rule: Rule
    severity: Severity
    params: Mapping[str, object]


# ---------------------------------------------------------------------------
# Inline suppression
# ---------------------------------------------------------------------------


@dataclass
class _Suppressions:
    file_ids: set[str] = dataclasses.field(default_factory=set)
    line_ids: dict[int, set[str]] = dataclasses.field(default_factory=dict)

    def hides(self, violation: Violation) -> bool:
        if SUPPRESS_ALL in self.file_ids or violation.rule_id in self.file_ids:
            return True
        ids = self.line_ids.get(violation.span.line)
        return ids is not None and (SUPPRESS_ALL in ids or violation.rule_id in ids)


def _collect_suppressions(unit: SourceUnit, root: Node) -> _Suppressions:
    found = _Suppressions()
    for comment in root.find_all(NodeKind.COMMENT):
        for match in _SUPPRESS_RE.finditer(unit.text(comment.span)):
            ids = {part.strip() for part in match.group("ids").split(",")}
            if match.group("file"):
                found.file_ids |= ids
            else:
                found.line_ids.setdefault(comment.span.line, set()).update(ids)
    return found


# ---------------------------------------------------------------------------
# Per-unit accumulator
# ---------------------------------------------------------------------------


class _Accumulator:
    """Collects one unit's findings; owned by a single worker."""

    def __init__(self, unit: SourceUnit) -> None:
        self.unit = unit
        self.violations: list[Violation] = []
        self.diagnostics: list[RuleCrashed] = []

    def crash(self, binding: _Binding, span: Span, exc: Exception, phase: str) -> None:
        record = RuleCrashed(
            rule_id=binding.rule.id,
            unit=self.unit.path,
            span=span,
            error_type=type(exc).__name__,
            message=str(exc),
            phase=phase,
        )
        self.diagnostics.append(record)
        logger.warning("%s", record.describe())
        logger.debug("Traceback for rule '%s'", binding.rule.id, exc_info=exc)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class RuleEngine:
    """Dispatches one unit's node graph to the enabled rules.

    The dispatch table is built once from the catalog and configuration and
    is read-only afterwards, so one engine may serve several worker threads.
    """

    def __init__(self, catalog: RuleCatalog, config: Configuration | None = None) -> None:
        self.config = config if config is not None else Configuration()
        self._rules = catalog.list_rules(self.config)
        unit_rules: list[_Binding] = []
        by_kind: dict[NodeKind, list[_Binding]] = {}
        for r in self._rules:
            binding = _Binding(
                rule=r,
                severity=self.config.severity_for(r),
                params=self.config.params_for(r),
            )
            if r.scope == "unit":
                unit_rules.append(binding)
                continue
            for kind in sorted(r.kinds, key=lambda k: k.value):
                by_kind.setdefault(kind, []).append(binding)
        self._unit_rules = tuple(unit_rules)
        self._dispatch = {kind: tuple(bindings) for kind, bindings in by_kind.items()}

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    def check(self, unit: SourceUnit, root: Node | None = None) -> UnitResult:
        """Run every enabled rule over *unit*.

        Parses the unit first unless an adapted *root* is given.
        :class:`~stylegate.syntax.adapter.MalformedInputError` propagates.
        """
        if root is None:
            root = parse_unit(unit)
        acc = _Accumulator(unit)

        for binding in self._unit_rules:
            self._dispatch_one(binding, root, root, (), acc)

        if self._dispatch:
            self._traverse(root, acc)

        suppressions = _collect_suppressions(unit, root)
        kept = [v for v in acc.violations if not suppressions.hides(v)]
        return UnitResult(
            unit=unit.path,
            violations=tuple(kept),
            diagnostics=tuple(acc.diagnostics),
            suppressed=len(acc.violations) - len(kept),
        )

    def _traverse(self, root: Node, acc: _Accumulator) -> None:
        ancestors: list[Node] = []
        stack: list[tuple[Node, int]] = [(root, 0)]
        while stack:
            node, depth = stack.pop()
            # Popping back up the tree: drop ancestors deeper than this node.
            del ancestors[depth:]
            bindings = self._dispatch.get(node.kind)
            if bindings:
                chain = tuple(ancestors)
                for binding in bindings:
                    self._dispatch_one(binding, node, root, chain, acc)
            if node.children:
                ancestors.append(node)
                stack.extend((child, depth + 1) for child in reversed(node.children))

    def _dispatch_one(
        self,
        binding: _Binding,
        node: Node,
        root: Node,
        ancestors: tuple[Node, ...],
        acc: _Accumulator,
    ) -> None:
        r = binding.rule
        ctx = RuleContext(
            unit=acc.unit,
            root=root,
            rule_id=r.id,
            severity=binding.severity,
            params=binding.params,
            ancestors=ancestors,
        )
        try:
            found = list(r.check(node, ctx))
            for item in found:
                if not isinstance(item, Violation):
                    msg = f"check returned {type(item).__name__}, expected Violation"
                    raise TypeError(msg)
        except Exception as exc:  # noqa: BLE001
            acc.crash(binding, node.span, exc, "check")
            return

        for violation in found:
            acc.violations.append(self._with_fix(binding, violation, ctx, acc))

    def _with_fix(
        self,
        binding: _Binding,
        violation: Violation,
        ctx: RuleContext,
        acc: _Accumulator,
    ) -> Violation:
        fix = violation.fix
        fix_fn = binding.rule.fix
        if fix is None and fix_fn is not None:
            try:
                fix = fix_fn(violation, ctx)
            except Exception as exc:  # noqa: BLE001
                # The violation stands; only its fix is lost.
                acc.crash(binding, violation.span, exc, "fix")
                return violation
        if fix is None:
            return violation
        try:
            _check_fix_range(fix, len(ctx.unit.source))
        except ValueError as exc:
            acc.crash(binding, violation.span, exc, "fix")
            return dataclasses.replace(violation, fix=None)
        return dataclasses.replace(violation, fix=fix)


def _check_fix_range(fix: Fix, size: int) -> None:
    for edit in fix.edits:
        start, end = edit.span.start, edit.span.end
        if not 0 <= start <= end <= size:
            msg = f"fix edits bytes [{start}, {end}) outside a {size}-byte source"
            raise ValueError(msg)
