"""Uniform syntax model: spans, node kinds, nodes, and source units."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


class NodeKind(str, enum.Enum):
    """Language-agnostic tag for one syntactic construct."""

    MODULE = "module"
    CLASS = "class"
    FUNCTION = "function"
    LAMBDA = "lambda"
    BLOCK = "block"
    CONDITIONAL = "conditional"
    LOOP = "loop"
    TRY = "try"
    STATEMENT = "statement"
    IMPORT = "import"
    ASSIGNMENT = "assignment"
    CALL = "call"
    EXPRESSION = "expression"
    IDENTIFIER = "identifier"
    STRING = "string"
    NUMBER = "number"
    COMMENT = "comment"
    OTHER = "other"


@dataclass(frozen=True, order=True)
class Span:
    """Half-open byte range ``[start, end)`` with its line/column coordinates.

    Lines are 1-based; columns are 0-based byte offsets within the line
    (the tree-sitter convention).  Reports add one to the column.
    """

    start: int
    end: int
    line: int = 1
    column: int = 0
    end_line: int = 1
    end_column: int = 0

    @classmethod
    def locate(cls, source: bytes, start: int, end: int) -> Span:
        """Build a span from raw byte offsets, computing lines and columns."""
        if start < 0 or end < start or end > len(source):
            msg = f"span [{start}, {end}) is outside a source of {len(source)} bytes"
            raise ValueError(msg)
        line = source.count(b"\n", 0, start) + 1
        column = start - (source.rfind(b"\n", 0, start) + 1)
        end_line = line + source.count(b"\n", start, end)
        end_column = end - (source.rfind(b"\n", 0, end) + 1)
        return cls(
            start=start,
            end=end,
            line=line,
            column=column,
            end_line=end_line,
            end_column=end_column,
        )

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def contains(self, other: Span) -> bool:
        """Return True if *other* lies entirely within this span."""
        return self.start <= other.start and other.end <= self.end

    def overlaps(self, other: Span) -> bool:
        """Return True if the two spans share bytes or an insertion point.

        Two insertions at the same offset overlap.  An insertion that only
        touches the boundary of a non-empty span does not.
        """
        if self.is_empty and other.is_empty:
            return self.start == other.start
        if self.is_empty:
            return other.start < self.start < other.end
        if other.is_empty:
            return self.start < other.start < self.end
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class Node:
    """One construct of the uniform node graph.

    ``children`` are exclusively owned and kept in source order; nodes never
    reference their parent.  ``native`` is the front-end node the adapter
    built this from and takes no part in equality.
    """

    kind: NodeKind
    span: Span
    native_type: str
    children: tuple[Node, ...] = ()
    name: str | None = None
    native: Any = field(default=None, compare=False, repr=False)

    def walk(self) -> Iterator[Node]:
        """Yield this node and its descendants in pre-order."""
        stack: list[Node] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def find_all(self, kind: NodeKind) -> list[Node]:
        """Return every descendant (including self) of the given kind."""
        return [n for n in self.walk() if n.kind is kind]


@dataclass(frozen=True)
class SourceUnit:
    """One file or in-memory buffer submitted for analysis."""

    path: str
    source: bytes
    language: str

    @classmethod
    def from_text(cls, path: str, text: str, language: str) -> SourceUnit:
        return cls(path=path, source=text.encode("utf-8"), language=language)

    @classmethod
    def from_path(cls, path: Path, language: str, *, display: str | None = None) -> SourceUnit:
        """Read a unit from disk.  ``display`` overrides the reported path."""
        return cls(path=display or str(path), source=path.read_bytes(), language=language)

    def text(self, span: Span) -> str:
        """Decode the bytes covered by *span*."""
        return self.source[span.start : span.end].decode("utf-8", errors="replace")
