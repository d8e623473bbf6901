"""Autofix applier: apply non-overlapping fix edits, reject conflicting ones."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from stylegate.rules.base import FixEdit, Violation
    from stylegate.syntax.nodes import Span

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConflictingFixError(Exception):
    """Two or more fixes touch overlapping ranges; none of them was applied."""

    def __init__(self, unit: str, rule_ids: tuple[str, ...], spans: tuple[Span, ...]) -> None:
        self.unit = unit
        self.rule_ids = rule_ids
        self.spans = spans
        where = ", ".join(f"{s.line}:{s.column + 1}" for s in spans)
        prefix = f"{unit}: " if unit else ""
        super().__init__(f"{prefix}conflicting fixes from {', '.join(rule_ids)} at {where}")


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FixOutcome:
    """Result of one application pass over a single source."""

    source: bytes
    applied: tuple[Violation, ...] = ()
    conflicts: tuple[ConflictingFixError, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.applied)


# ---------------------------------------------------------------------------
# Conflict detection
# ---------------------------------------------------------------------------


class _Groups:
    """Union-find over fix indices."""

    def __init__(self, size: int) -> None:
        self._parent = list(range(size))

    def find(self, i: int) -> int:
        while self._parent[i] != i:
            self._parent[i] = self._parent[self._parent[i]]
            i = self._parent[i]
        return i

    def union(self, a: int, b: int) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra != rb:
            self._parent[max(ra, rb)] = min(ra, rb)


def _conflict_groups(fixes: list[Violation]) -> _Groups:
    """Join every pair of fixes whose edits overlap, directly or transitively."""
    groups = _Groups(len(fixes))
    edits: list[tuple[Span, int]] = [
        (edit.span, i)
        for i, v in enumerate(fixes)
        for edit in v.fix.edits  # type: ignore[union-attr]
    ]
    edits.sort(key=lambda item: (item[0].start, item[0].end, item[1]))
    for pos, (span, owner) in enumerate(edits):
        for other_span, other_owner in edits[pos + 1 :]:
            # Sorted by start: nothing further along can reach back into span.
            if other_span.start > span.end:
                break
            if span.overlaps(other_span):
                # An owner overlapping itself is a malformed fix; it joins no
                # group but still gets rejected below.
                groups.union(owner, other_owner)
    return groups


def _self_overlapping(edits: tuple[FixEdit, ...]) -> bool:
    return any(a.span.overlaps(b.span) for i, a in enumerate(edits) for b in edits[i + 1 :])


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def apply_fixes(source: bytes, violations: Iterable[Violation], *, unit: str = "") -> FixOutcome:
    """Apply every fix that conflicts with no other fix, in a single pass.

    Each violation's fix is atomic.  Fixes whose edits overlap form a conflict
    group and every member is rejected, identical edits included.  Surviving
    edits are applied from the highest offset down, so earlier offsets stay
    valid throughout.
    """
    seen: set[Violation] = set()
    fixes: list[Violation] = []
    for v in violations:
        if v.fix is None or not v.fix.edits or v in seen:
            continue
        for edit in v.fix.edits:
            start, end = edit.span.start, edit.span.end
            if not 0 <= start <= end <= len(source):
                where = "beyond end of source"
                if end <= len(source):
                    where = "that is not a valid byte range"
                msg = (
                    f"{unit or '<source>'}: fix from '{v.rule_id}' has edit "
                    f"[{start}, {end}) {where}"
                )
                raise ValueError(msg)
        seen.add(v)
        fixes.append(v)

    groups = _conflict_groups(fixes)
    members: dict[int, list[int]] = {}
    for i in range(len(fixes)):
        members.setdefault(groups.find(i), []).append(i)

    applied: list[Violation] = []
    conflicts: list[ConflictingFixError] = []
    for indices in members.values():
        group = [fixes[i] for i in indices]
        if len(group) == 1 and not _self_overlapping(group[0].fix.edits):  # type: ignore[union-attr]
            applied.append(group[0])
            continue
        spans = tuple(sorted(e.span for v in group for e in v.fix.edits))  # type: ignore[union-attr]
        rule_ids = tuple(dict.fromkeys(v.rule_id for v in group))
        conflict = ConflictingFixError(unit, rule_ids, spans)
        logger.info("%s", conflict)
        conflicts.append(conflict)

    edits = sorted(
        (e for v in applied for e in v.fix.edits),  # type: ignore[union-attr]
        key=lambda e: (e.span.start, e.span.end),
        reverse=True,
    )
    buf = bytearray(source)
    for edit in edits:
        buf[edit.span.start : edit.span.end] = edit.replacement.encode("utf-8")

    applied.sort(key=lambda v: (v.span.start, v.rule_id))
    return FixOutcome(source=bytes(buf), applied=tuple(applied), conflicts=tuple(conflicts))
