"""Built-in rules mirroring the style guide's mechanical conventions.

Each rule is a declarative check over the uniform node kinds; anything
grammar-specific (comment markers, definition names) comes from the syntax
adapter.  Rules that fix return a :class:`Fix` from a separate generator so the
engine can isolate fix failures from detection.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from stylegate.rules.base import Fix, Severity, rule
from stylegate.syntax.languages import get_language
from stylegate.syntax.nodes import NodeKind, Span

if TYPE_CHECKING:
    from collections.abc import Iterator

    from stylegate.rules.base import RuleContext, Violation
    from stylegate.syntax.nodes import Node

_TRAILING_WS_RE = re.compile(rb"[ \t]+(?=\r?\n|\Z)")
_DIRECTIVE_RE = re.compile(r"^[A-Za-z][\w-]*:\S")
_SNAKE_CASE_RE = re.compile(r"^_*[a-z][a-z0-9]*(?:_[a-z0-9]+)*_*$")
_CAMEL_CASE_RE = re.compile(r"^_*[a-z][a-zA-Z0-9]*$")
_NAMING_PATTERNS: dict[str, re.Pattern[str]] = {
    "snake_case": _SNAKE_CASE_RE,
    "camelCase": _CAMEL_CASE_RE,
}

_NESTING_KINDS: frozenset[NodeKind] = frozenset(
    {NodeKind.CONDITIONAL, NodeKind.LOOP, NodeKind.TRY}
)
_SCOPE_KINDS: frozenset[NodeKind] = frozenset(
    {NodeKind.FUNCTION, NodeKind.LAMBDA, NodeKind.CLASS}
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _string_spans(root: Node) -> list[Span]:
    return [n.span for n in root.walk() if n.kind is NodeKind.STRING]


def _in_any(spans: list[Span], offset: int) -> bool:
    return any(s.start <= offset < s.end for s in spans)


def _tail_start(source: bytes) -> int | None:
    """Offset just past the line terminator that ends the last content line.

    ``None`` when the last content line has no terminator.
    """
    content_end = len(source.rstrip(b" \t\r\n"))
    eol = source.find(b"\n", content_end)
    return None if eol == -1 else eol + 1


def _delete(violation: Violation, ctx: RuleContext) -> Fix:
    return Fix.replace(violation.span, "", f"remove {ctx.rule_id.replace('-', ' ')}")


def _name_span(node: Node, ctx: RuleContext) -> Span:
    """Span of the definition's name identifier, or the node itself."""
    for child in node.children:
        if child.kind is NodeKind.IDENTIFIER and ctx.text(child) == node.name:
            return child.span
    return node.span


# ---------------------------------------------------------------------------
# Whole-unit text rules
# ---------------------------------------------------------------------------


@rule(
    "trailing-whitespace",
    description="Lines must not end with spaces or tabs.",
    scope="unit",
    fix=_delete,
)
def trailing_whitespace(root: Node, ctx: RuleContext) -> Iterator[Violation]:
    source = ctx.unit.source
    strings = _string_spans(root)
    tail = _tail_start(source)
    for match in _TRAILING_WS_RE.finditer(source):
        start = match.start()
        if tail is not None and start >= tail:
            # Blank lines after the last content line belong to final-newline.
            continue
        if _in_any(strings, start):
            continue
        yield ctx.violation(Span.locate(source, start, match.end()), "trailing whitespace")


def _fix_final_newline(violation: Violation, ctx: RuleContext) -> Fix:
    if violation.span.is_empty:
        newline = "\r\n" if b"\r\n" in ctx.unit.source else "\n"
        return Fix.replace(violation.span, newline, "add final newline")
    return Fix.replace(violation.span, "", "remove trailing blank lines")


@rule(
    "final-newline",
    description="Files end with exactly one newline.",
    scope="unit",
    fix=_fix_final_newline,
)
def final_newline(root: Node, ctx: RuleContext) -> Iterator[Violation]:
    source = ctx.unit.source
    if not source.strip():
        return
    tail = _tail_start(source)
    if tail is None:
        end = len(source)
        yield ctx.violation(Span.locate(source, end, end), "missing newline at end of file")
    elif tail < len(source):
        yield ctx.violation(
            Span.locate(source, tail, len(source)), "blank lines at end of file"
        )


@rule(
    "line-length",
    description="Lines stay within the configured width.",
    scope="unit",
    params={"max": 100, "ignore_urls": True},
)
def line_length(root: Node, ctx: RuleContext) -> Iterator[Violation]:
    limit = int(ctx.param("max"))  # type: ignore[call-overload]
    ignore_urls = bool(ctx.param("ignore_urls"))
    source = ctx.unit.source
    offset = 0
    for raw in source.split(b"\n"):
        line = raw.rstrip(b"\r").decode("utf-8", errors="replace")
        if len(line) > limit and not (ignore_urls and "://" in line):
            start = offset + len(line[:limit].encode("utf-8"))
            end = offset + len(raw.rstrip(b"\r"))
            yield ctx.violation(
                Span.locate(source, start, end),
                f"line too long ({len(line)} > {limit} characters)",
            )
        offset += len(raw) + 1


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


def _marker_length(text: str, markers: tuple[str, ...]) -> int | None:
    """Length of the leading comment marker run (``##``, ``///``), if any."""
    for marker in markers:
        if text.startswith(marker):
            run = len(marker)
            while run < len(text) and text[run] == marker[-1]:
                run += 1
            return run
    return None


def _insert_space(violation: Violation, ctx: RuleContext) -> Fix:
    return Fix.replace(violation.span, " ", "insert space after comment marker")


@rule(
    "comment-space",
    description="Comment text is separated from its marker by a space.",
    severity=Severity.INFO,
    kinds=[NodeKind.COMMENT],
    fix=_insert_space,
)
def comment_space(node: Node, ctx: RuleContext) -> Iterator[Violation]:
    spec = get_language(ctx.unit.language)
    if spec is None:
        return
    text = ctx.text(node)
    run = _marker_length(text, spec.comment_markers)
    if run is None:
        return
    if node.span.start == 0 and text.startswith("#!"):
        return
    rest = text[run:]
    if not rest or rest[0] in " \t!:" or _DIRECTIVE_RE.match(rest):
        return
    insert_at = node.span.start + len(text[:run].encode("utf-8"))
    yield ctx.violation(
        Span.locate(ctx.unit.source, insert_at, insert_at),
        "missing space after comment marker",
    )


@rule(
    "todo-owner",
    description="TODO-style comments name an owner, e.g. TODO(alice).",
    severity=Severity.INFO,
    kinds=[NodeKind.COMMENT],
    params={"tags": ["TODO", "FIXME"]},
    enabled_by_default=False,
)
def todo_owner(node: Node, ctx: RuleContext) -> Iterator[Violation]:
    tags = [str(t) for t in ctx.param("tags")]  # type: ignore[attr-defined]
    if not tags:
        return
    alternatives = b"|".join(re.escape(t.encode("utf-8")) for t in tags)
    pattern = re.compile(rb"\b(" + alternatives + rb")\b(?!\s*\()")
    raw = ctx.unit.source[node.span.start : node.span.end]
    for match in pattern.finditer(raw):
        start = node.span.start + match.start()
        tag = match.group(1).decode("utf-8")
        yield ctx.violation(
            Span.locate(ctx.unit.source, start, node.span.start + match.end()),
            f"{tag} without an owner; write {tag}(name)",
        )


# ---------------------------------------------------------------------------
# Literals
# ---------------------------------------------------------------------------


def _requote(violation: Violation, ctx: RuleContext) -> Fix:
    quote = str(ctx.param("quote"))
    body = ctx.text(violation.span)[1:-1]
    return Fix.replace(violation.span, f"{quote}{body}{quote}", f"use {quote} quotes")


@rule(
    "string-quotes",
    description="Simple string literals use the preferred quote character.",
    severity=Severity.INFO,
    kinds=[NodeKind.STRING],
    fix=_requote,
    params={"quote": '"'},
    param_choices={"quote": ('"', "'")},
)
def string_quotes(node: Node, ctx: RuleContext) -> Iterator[Violation]:
    # Requoting inside an f-string interpolation would clash with the outer quote.
    if ctx.inside(NodeKind.STRING):
        return
    preferred = str(ctx.param("quote"))
    other = "'" if preferred == '"' else '"'
    text = ctx.text(node)
    if len(text) < 2 or text[0] != other or text[-1] != other or text.startswith(other * 3):
        return
    body = text[1:-1]
    if preferred in body or other in body or "\\" in body:
        return
    yield ctx.violation(node, f"prefer {preferred} quotes for simple strings")


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


@rule(
    "function-naming",
    description="Function names follow the configured case style.",
    kinds=[NodeKind.FUNCTION],
    params={"style": "snake_case"},
    param_choices={"style": tuple(_NAMING_PATTERNS)},
)
def function_naming(node: Node, ctx: RuleContext) -> Iterator[Violation]:
    if not node.name:
        return
    style = str(ctx.param("style"))
    if _NAMING_PATTERNS[style].match(node.name):
        return
    yield ctx.violation(_name_span(node, ctx), f"function name '{node.name}' is not {style}")


@rule(
    "function-length",
    description="Functions stay short enough to read in one screen.",
    kinds=[NodeKind.FUNCTION],
    params={"max_lines": 60},
)
def function_length(node: Node, ctx: RuleContext) -> Iterator[Violation]:
    limit = int(ctx.param("max_lines"))  # type: ignore[call-overload]
    lines = node.span.end_line - node.span.line + 1
    if lines > limit:
        label = f"'{node.name}'" if node.name else "function"
        yield ctx.violation(
            _name_span(node, ctx) if node.name else node.span,
            f"{label} is {lines} lines long (max {limit})",
        )


# ---------------------------------------------------------------------------
# Control flow
# ---------------------------------------------------------------------------


def _is_else_if(node: Node, parent: Node | None) -> bool:
    return (
        node.kind is NodeKind.CONDITIONAL
        and parent is not None
        and parent.native_type == "else_clause"
        and len(parent.children) == 1
    )


@rule(
    "nesting-depth",
    description="Control flow is not nested deeper than the configured limit.",
    kinds=_NESTING_KINDS,
    params={"max": 4},
)
def nesting_depth(node: Node, ctx: RuleContext) -> Iterator[Violation]:
    limit = int(ctx.param("max"))  # type: ignore[call-overload]
    if _is_else_if(node, ctx.parent):
        return
    chain = (*ctx.ancestors, node)
    depth = 0
    for i in range(len(chain) - 1, -1, -1):
        current = chain[i]
        if current.kind in _SCOPE_KINDS:
            break
        if current.kind not in _NESTING_KINDS:
            continue
        if _is_else_if(current, chain[i - 1] if i > 0 else None):
            continue
        depth += 1
    # Only the first level past the limit reports, so one deep nest is one finding.
    if depth == limit + 1:
        yield ctx.violation(node, f"control flow nested {depth} levels deep (max {limit})")


@rule(
    "loop-closure",
    description="Closures are not defined inside loop bodies.",
    kinds=[NodeKind.FUNCTION, NodeKind.LAMBDA],
)
def loop_closure(node: Node, ctx: RuleContext) -> Iterator[Violation]:
    chain = (*ctx.ancestors, node)
    for i in range(len(chain) - 2, -1, -1):
        ancestor = chain[i]
        if ancestor.kind in _SCOPE_KINDS:
            return
        if ancestor.kind is NodeKind.LOOP and chain[i + 1].kind is NodeKind.BLOCK:
            yield ctx.violation(
                node,
                "closure defined inside a loop body captures loop variables by reference",
            )
            return


BUILTIN_RULES = (
    trailing_whitespace,
    final_newline,
    line_length,
    comment_space,
    todo_owner,
    string_quotes,
    function_naming,
    function_length,
    nesting_depth,
    loop_closure,
)
