"""Syntax model adapter: tree-sitter parse trees -> uniform node graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tree_sitter import Parser

from stylegate.syntax.languages import get_language
from stylegate.syntax.nodes import Node, NodeKind, Span

if TYPE_CHECKING:
    from tree_sitter import Node as TSNode
    from tree_sitter import Tree

    from stylegate.syntax.languages import LanguageSpec
    from stylegate.syntax.nodes import SourceUnit

_NAMED_KINDS: frozenset[NodeKind] = frozenset({NodeKind.FUNCTION, NodeKind.CLASS})


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class MalformedInputError(Exception):
    """Raised when a source unit cannot be turned into a valid node graph."""

    def __init__(self, message: str, *, unit: str = "", line: int | None = None) -> None:
        super().__init__(message)
        self.unit = unit
        self.line = line


# ---------------------------------------------------------------------------
# Adaptation
# ---------------------------------------------------------------------------


@dataclass
class _Frame:
    native: TSNode
    span: Span
    natives: list[TSNode]
    index: int = 0
    built: list[Node] = field(default_factory=list)


def _native_span(native: TSNode) -> Span:
    # tree-sitter rows are 0-based; lines are 1-based.
    return Span(
        start=native.start_byte,
        end=native.end_byte,
        line=native.start_point.row + 1,
        column=native.start_point.column,
        end_line=native.end_point.row + 1,
        end_column=native.end_point.column,
    )


def _definition_name(native: TSNode, spec: LanguageSpec) -> str | None:
    """Extract a definition name via the grammar's name field.

    Go ``type_declaration`` keeps its name inside a ``type_spec`` child.
    """
    name_node = native.child_by_field_name(spec.name_field)
    if name_node is not None:
        return name_node.text.decode("utf-8") if name_node.text else None

    for child in native.children:
        if child.type == "type_spec":
            spec_name = child.child_by_field_name("name")
            if spec_name is not None:
                return spec_name.text.decode("utf-8") if spec_name.text else None

    return None


def _first_error(root: TSNode) -> TSNode | None:
    stack: list[TSNode] = [root]
    while stack:
        native = stack.pop()
        if native.type == "ERROR" or native.is_missing:
            return native
        if native.has_error:
            stack.extend(reversed(native.children))
    return None


def _new_frame(native: TSNode, span: Span | None = None) -> _Frame:
    return _Frame(
        native=native,
        span=span if span is not None else _native_span(native),
        natives=[c for c in native.children if c.is_named],
    )


def adapt_tree(tree: Tree, source: bytes, spec: LanguageSpec, *, unit: str = "") -> Node:
    """Translate a tree-sitter *tree* into a root :class:`Node`.

    The root span always covers the whole source so whole-unit rules can
    report on leading and trailing text.  Raises :class:`MalformedInputError`
    when the tree contains syntax errors or violates span nesting.
    """
    root = tree.root_node
    if root.has_error:
        bad = _first_error(root) or root
        line = bad.start_point.row + 1
        what = "missing token" if bad.is_missing else "syntax error"
        msg = f"{unit or '<buffer>'}:{line}:{bad.start_point.column + 1}: {what}"
        raise MalformedInputError(msg, unit=unit, line=line)

    stack: list[_Frame] = [_new_frame(root, Span.locate(source, 0, len(source)))]
    while True:
        frame = stack[-1]
        if frame.index < len(frame.natives):
            child = frame.natives[frame.index]
            frame.index += 1
            stack.append(_new_frame(child))
            continue

        stack.pop()
        node = _make_node(frame, spec)
        if not stack:
            return node

        parent = stack[-1]
        if not parent.span.contains(node.span):
            msg = (
                f"{unit or '<buffer>'}:{node.span.line}: {node.native_type} "
                f"escapes its parent {parent.native.type}"
            )
            raise MalformedInputError(msg, unit=unit, line=node.span.line)
        if parent.built and parent.built[-1].span.end > node.span.start:
            msg = f"{unit or '<buffer>'}:{node.span.line}: overlapping siblings"
            raise MalformedInputError(msg, unit=unit, line=node.span.line)
        parent.built.append(node)


def _make_node(frame: _Frame, spec: LanguageSpec) -> Node:
    native = frame.native
    kind = spec.kind_of(native.type)
    name = _definition_name(native, spec) if kind in _NAMED_KINDS else None
    return Node(
        kind=kind,
        span=frame.span,
        native_type=native.type,
        children=tuple(frame.built),
        name=name,
        native=native,
    )


def parse_unit(unit: SourceUnit) -> Node:
    """Parse *unit* with its tree-sitter grammar and adapt the result."""
    spec = get_language(unit.language)
    if spec is None:
        msg = f"{unit.path}: no grammar available for language '{unit.language}'"
        raise MalformedInputError(msg, unit=unit.path)

    try:
        unit.source.decode("utf-8")
    except UnicodeDecodeError as exc:
        msg = f"{unit.path}: source is not valid UTF-8 ({exc.reason} at byte {exc.start})"
        raise MalformedInputError(msg, unit=unit.path) from exc

    parser = Parser(spec.language)
    tree = parser.parse(unit.source)
    return adapt_tree(tree, unit.source, spec, unit=unit.path)
