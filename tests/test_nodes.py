"""Tests for stylegate.syntax.nodes — spans, nodes, and source units."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from stylegate.syntax.nodes import Node, NodeKind, SourceUnit, Span

if TYPE_CHECKING:
    from pathlib import Path

# ---------------------------------------------------------------------------
# Span
# ---------------------------------------------------------------------------


class TestSpanLocate:
    def test_first_line(self) -> None:
        span = Span.locate(b"ab\ncd", 0, 2)
        assert (span.line, span.column, span.end_line, span.end_column) == (1, 0, 1, 2)

    def test_second_line(self) -> None:
        span = Span.locate(b"ab\ncd", 3, 5)
        assert (span.line, span.column, span.end_line, span.end_column) == (2, 0, 2, 2)

    def test_span_crossing_newline(self) -> None:
        span = Span.locate(b"ab\ncd", 2, 3)
        assert (span.line, span.column) == (1, 2)
        assert (span.end_line, span.end_column) == (2, 0)

    def test_zero_width_at_end(self) -> None:
        span = Span.locate(b"x = 1", 5, 5)
        assert span.is_empty
        assert (span.line, span.column) == (1, 5)

    def test_columns_are_bytes(self) -> None:
        source = "é = 1".encode()
        span = Span.locate(source, 3, 4)
        assert span.column == 3

    @pytest.mark.parametrize(("start", "end"), [(-1, 2), (3, 2), (0, 6)])
    def test_out_of_range(self, start: int, end: int) -> None:
        with pytest.raises(ValueError, match="outside"):
            Span.locate(b"hello", start, end)


class TestSpanOverlaps:
    def test_shared_bytes(self) -> None:
        assert Span(0, 3).overlaps(Span(2, 5))
        assert Span(2, 5).overlaps(Span(0, 3))

    def test_adjacent_spans_do_not_overlap(self) -> None:
        assert not Span(0, 3).overlaps(Span(3, 5))

    def test_identical_spans_overlap(self) -> None:
        assert Span(1, 4).overlaps(Span(1, 4))

    def test_insertion_inside_span(self) -> None:
        assert Span(2, 2).overlaps(Span(0, 3))
        assert Span(0, 3).overlaps(Span(2, 2))

    def test_insertion_on_boundary(self) -> None:
        assert not Span(3, 3).overlaps(Span(0, 3))
        assert not Span(0, 0).overlaps(Span(0, 3))

    def test_two_insertions_same_offset(self) -> None:
        assert Span(3, 3).overlaps(Span(3, 3))

    def test_two_insertions_different_offsets(self) -> None:
        assert not Span(3, 3).overlaps(Span(4, 4))


class TestSpanContains:
    def test_contains_inner(self) -> None:
        assert Span(0, 10).contains(Span(2, 5))

    def test_contains_self(self) -> None:
        assert Span(2, 5).contains(Span(2, 5))

    def test_not_contains_escaping(self) -> None:
        assert not Span(2, 5).contains(Span(4, 6))


# ---------------------------------------------------------------------------
# Node
# ---------------------------------------------------------------------------


def _leaf(kind: NodeKind, start: int, end: int) -> Node:
    return Node(kind=kind, span=Span(start, end), native_type=kind.value)


class TestNode:
    def test_walk_is_preorder(self) -> None:
        a = _leaf(NodeKind.IDENTIFIER, 0, 1)
        b = _leaf(NodeKind.NUMBER, 4, 5)
        assign = Node(NodeKind.ASSIGNMENT, Span(0, 5), "assignment", children=(a, b))
        tail = _leaf(NodeKind.COMMENT, 6, 9)
        root = Node(NodeKind.MODULE, Span(0, 9), "module", children=(assign, tail))

        assert [n.kind for n in root.walk()] == [
            NodeKind.MODULE,
            NodeKind.ASSIGNMENT,
            NodeKind.IDENTIFIER,
            NodeKind.NUMBER,
            NodeKind.COMMENT,
        ]

    def test_find_all(self) -> None:
        a = _leaf(NodeKind.COMMENT, 0, 3)
        b = _leaf(NodeKind.COMMENT, 4, 7)
        root = Node(NodeKind.MODULE, Span(0, 7), "module", children=(a, b))
        assert root.find_all(NodeKind.COMMENT) == [a, b]

    def test_native_ignored_in_equality(self) -> None:
        one = Node(NodeKind.OTHER, Span(0, 1), "x", native=object())
        two = Node(NodeKind.OTHER, Span(0, 1), "x", native=object())
        assert one == two


# ---------------------------------------------------------------------------
# SourceUnit
# ---------------------------------------------------------------------------


class TestSourceUnit:
    def test_from_text_encodes(self) -> None:
        unit = SourceUnit.from_text("m.py", "x = 'é'\n", "python")
        assert unit.source == "x = 'é'\n".encode()

    def test_from_path_with_display(self, tmp_path: Path) -> None:
        path = tmp_path / "mod.py"
        path.write_bytes(b"pass\n")
        unit = SourceUnit.from_path(path, "python", display="mod.py")
        assert unit.path == "mod.py"
        assert unit.source == b"pass\n"

    def test_text_of_span(self) -> None:
        unit = SourceUnit.from_text("m.py", "abc def", "python")
        assert unit.text(Span(4, 7)) == "def"
