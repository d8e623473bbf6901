"""Tests for stylegate.fixer — applying fixes and rejecting conflicting ones."""

from __future__ import annotations

import pytest

from stylegate.fixer import ConflictingFixError, apply_fixes
from stylegate.rules.base import Fix, FixEdit, Severity, Violation
from stylegate.syntax.nodes import Span

SOURCE = b"alpha beta gamma\n"


def _v(rule_id: str, *edits: tuple[int, int, str], source: bytes = SOURCE) -> Violation:
    fix = Fix(edits=tuple(FixEdit(Span.locate(source, s, e), r) for s, e, r in edits))
    first = fix.edits[0].span
    return Violation(rule_id, Severity.WARNING, "m.py", first, f"{rule_id} fires", fix)


class TestApplyFixes:
    def test_disjoint_fixes_all_apply(self) -> None:
        outcome = apply_fixes(SOURCE, [_v("b", (6, 10, "BETA")), _v("a", (0, 5, "ALPHA"))])
        assert outcome.source == b"ALPHA BETA gamma\n"
        assert [v.rule_id for v in outcome.applied] == ["a", "b"]
        assert outcome.conflicts == ()
        assert outcome.changed

    def test_length_changing_edits(self) -> None:
        outcome = apply_fixes(SOURCE, [_v("a", (0, 5, "a")), _v("b", (11, 16, "gamma-ray"))])
        assert outcome.source == b"a beta gamma-ray\n"

    def test_touching_fixes_do_not_conflict(self) -> None:
        outcome = apply_fixes(SOURCE, [_v("a", (0, 5, "A")), _v("b", (5, 6, "_"))])
        assert outcome.source == b"A_beta gamma\n"

    def test_multi_edit_fix_is_atomic(self) -> None:
        outcome = apply_fixes(SOURCE, [_v("wrap", (0, 0, "<"), (5, 5, ">"))])
        assert outcome.source == b"<alpha> beta gamma\n"

    def test_violations_without_fixes_ignored(self) -> None:
        plain = Violation("p", Severity.ERROR, "m.py", Span.locate(SOURCE, 0, 5), "no fix")
        outcome = apply_fixes(SOURCE, [plain])
        assert outcome.source == SOURCE
        assert not outcome.changed

    def test_duplicate_violation_applied_once(self) -> None:
        v = _v("a", (0, 0, "# "))
        outcome = apply_fixes(SOURCE, [v, v])
        assert outcome.source == b"# alpha beta gamma\n"
        assert outcome.applied == (v,)

    def test_utf8_replacement(self) -> None:
        outcome = apply_fixes(SOURCE, [_v("a", (0, 5, "αλφα"))])
        assert outcome.source == "αλφα beta gamma\n".encode()

    def test_edit_beyond_source_rejected(self) -> None:
        long_source = SOURCE + b"extra"
        bad = _v("a", (17, 22, ""), source=long_source)
        with pytest.raises(ValueError, match="beyond end of source"):
            apply_fixes(SOURCE, [bad], unit="m.py")

    @pytest.mark.parametrize(("start", "end"), [(-1, 3), (6, 2)])
    def test_malformed_edit_range_rejected(self, start: int, end: int) -> None:
        span = Span(start, end)
        bad = Violation("a", Severity.WARNING, "m.py", span, "a fires", Fix.replace(span, "x"))
        with pytest.raises(ValueError, match="not a valid byte range"):
            apply_fixes(SOURCE, [bad], unit="m.py")
        assert SOURCE == b"alpha beta gamma\n"


class TestConflicts:
    def test_overlapping_fixes_both_rejected(self) -> None:
        outcome = apply_fixes(
            SOURCE,
            [_v("a", (0, 7, "X")), _v("b", (3, 10, "Y")), _v("c", (11, 16, "GAMMA"))],
            unit="m.py",
        )
        # The unrelated fix still lands.
        assert outcome.source == b"alpha beta GAMMA\n"
        assert [v.rule_id for v in outcome.applied] == ["c"]
        (conflict,) = outcome.conflicts
        assert isinstance(conflict, ConflictingFixError)
        assert conflict.rule_ids == ("a", "b")
        assert str(conflict) == "m.py: conflicting fixes from a, b at 1:1, 1:4"

    def test_conflicts_are_transitive(self) -> None:
        # a overlaps b and b overlaps c, though a and c are disjoint.
        outcome = apply_fixes(
            SOURCE, [_v("a", (0, 4, "")), _v("b", (3, 8, "")), _v("c", (7, 12, ""))]
        )
        assert outcome.source == SOURCE
        (conflict,) = outcome.conflicts
        assert set(conflict.rule_ids) == {"a", "b", "c"}

    def test_identical_edits_conflict(self) -> None:
        outcome = apply_fixes(SOURCE, [_v("a", (0, 5, "ALPHA")), _v("b", (0, 5, "ALPHA"))])
        assert outcome.source == SOURCE
        assert outcome.conflicts[0].rule_ids == ("a", "b")

    def test_insertions_at_same_offset_conflict(self) -> None:
        outcome = apply_fixes(SOURCE, [_v("a", (5, 5, "!")), _v("b", (5, 5, "?"))])
        assert outcome.source == SOURCE
        assert len(outcome.conflicts) == 1

    def test_insertion_at_boundary_applies(self) -> None:
        outcome = apply_fixes(SOURCE, [_v("a", (0, 5, "ALPHA")), _v("b", (5, 5, "!"))])
        assert outcome.source == b"ALPHA! beta gamma\n"
        assert outcome.conflicts == ()

    def test_insertion_inside_replacement_conflicts(self) -> None:
        outcome = apply_fixes(SOURCE, [_v("a", (0, 5, "ALPHA")), _v("b", (2, 2, "!"))])
        assert outcome.source == SOURCE
        assert len(outcome.conflicts) == 1

    def test_self_overlapping_fix_rejected(self) -> None:
        outcome = apply_fixes(SOURCE, [_v("odd", (0, 5, "x"), (3, 8, "y"))])
        assert outcome.source == SOURCE
        assert outcome.conflicts[0].rule_ids == ("odd",)

    def test_separate_conflict_groups(self) -> None:
        outcome = apply_fixes(
            SOURCE,
            [
                _v("a", (0, 3, "")),
                _v("b", (1, 4, "")),
                _v("c", (11, 14, "")),
                _v("d", (12, 16, "")),
            ],
        )
        assert [c.rule_ids for c in outcome.conflicts] == [("a", "b"), ("c", "d")]
        assert outcome.applied == ()

    def test_conflict_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level("INFO", logger="stylegate"):
            apply_fixes(SOURCE, [_v("a", (0, 5, "")), _v("b", (0, 5, ""))], unit="m.py")
        assert "conflicting fixes from a, b" in caplog.text
