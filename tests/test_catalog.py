"""Tests for stylegate.rules — rule model and catalog."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from stylegate.config import Configuration, RuleSettings
from stylegate.rules.base import Fix, Rule, RuleContext, Severity, rule
from stylegate.rules.catalog import RuleCatalog, RuleNotFoundError, build_default_catalog
from stylegate.syntax.nodes import Node, NodeKind, SourceUnit, Span

if TYPE_CHECKING:
    from collections.abc import Iterator

    from stylegate.rules.base import Violation


def _noop(node: Node, ctx: RuleContext) -> Iterator[Violation]:
    return iter(())


def _make(rule_id: str, **kwargs: object) -> Rule:
    kwargs.setdefault("kinds", frozenset({NodeKind.FUNCTION}))
    return Rule(id=rule_id, description=f"{rule_id} rule", check=_noop, **kwargs)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Severity
# ---------------------------------------------------------------------------


class TestSeverity:
    def test_ordering(self) -> None:
        assert Severity.ERROR.at_least(Severity.WARNING)
        assert Severity.WARNING.at_least(Severity.WARNING)
        assert not Severity.INFO.at_least(Severity.WARNING)

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("error", Severity.ERROR), ("WARN", Severity.WARNING), (" info ", Severity.INFO)],
    )
    def test_parse(self, raw: str, expected: Severity) -> None:
        assert Severity.parse(raw) is expected

    def test_parse_rejects_unknown(self) -> None:
        with pytest.raises(ValueError, match="invalid severity"):
            Severity.parse("fatal")


# ---------------------------------------------------------------------------
# Rule
# ---------------------------------------------------------------------------


class TestRule:
    def test_decorator_builds_rule(self) -> None:
        @rule("demo", description="Demo.", kinds=[NodeKind.COMMENT], params={"n": 1})
        def demo(node: Node, ctx: RuleContext) -> Iterator[Violation]:
            yield from ()

        assert isinstance(demo, Rule)
        assert demo.kinds == frozenset({NodeKind.COMMENT})
        assert demo.params["n"] == 1
        assert not demo.fixable

    def test_params_are_read_only(self) -> None:
        r = _make("ro", params={"n": 1})
        with pytest.raises(TypeError):
            r.params["n"] = 2  # type: ignore[index]

    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ValueError, match="non-empty"):
            _make(" ")

    def test_node_rule_needs_kinds(self) -> None:
        with pytest.raises(ValueError, match="at least one kind"):
            _make("k", kinds=frozenset())

    def test_unit_rule_takes_no_kinds(self) -> None:
        with pytest.raises(ValueError, match="do not subscribe"):
            _make("u", scope="unit")

    def test_bad_scope(self) -> None:
        with pytest.raises(ValueError, match="scope"):
            _make("s", scope="file")

    def test_choices_for_unknown_param(self) -> None:
        with pytest.raises(ValueError, match="unknown parameter"):
            _make("c", param_choices={"style": ("a", "b")})


# ---------------------------------------------------------------------------
# RuleContext
# ---------------------------------------------------------------------------


class TestRuleContext:
    def _context(self) -> tuple[RuleContext, Node, Node]:
        source = b"def f():\n    pass\n"
        unit = SourceUnit(path="m.py", source=source, language="python")
        name = Node(NodeKind.IDENTIFIER, Span.locate(source, 4, 5), "identifier")
        body = Node(NodeKind.BLOCK, Span.locate(source, 13, 17), "block")
        fn = Node(
            NodeKind.FUNCTION, Span.locate(source, 0, 17), "function_definition", (name, body), "f"
        )
        root = Node(NodeKind.MODULE, Span.locate(source, 0, len(source)), "module", (fn,))
        ctx = RuleContext(
            unit=unit,
            root=root,
            rule_id="demo",
            severity=Severity.ERROR,
            params={"n": 3},
            ancestors=(root, fn),
        )
        return ctx, name, body

    def test_parent_and_siblings(self) -> None:
        ctx, name, body = self._context()
        assert ctx.parent is not None
        assert ctx.parent.kind is NodeKind.FUNCTION
        assert ctx.siblings(name) == (body,)

    def test_inside_and_enclosing(self) -> None:
        ctx, _, _ = self._context()
        assert ctx.inside(NodeKind.FUNCTION)
        assert not ctx.inside(NodeKind.LOOP)
        enclosing = ctx.enclosing(NodeKind.MODULE)
        assert enclosing is not None
        assert enclosing.kind is NodeKind.MODULE

    def test_text_and_param(self) -> None:
        ctx, name, _ = self._context()
        assert ctx.text(name) == "f"
        assert ctx.param("n") == 3

    def test_violation_uses_context(self) -> None:
        ctx, name, _ = self._context()
        fix = Fix.replace(name.span, "g")
        v = ctx.violation(name, "bad name", fix=fix)
        assert (v.rule_id, v.severity, v.unit) == ("demo", Severity.ERROR, "m.py")
        assert v.span == name.span
        assert v.fixable


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class TestRuleCatalog:
    def test_order_and_lookup(self) -> None:
        catalog = RuleCatalog([_make("b"), _make("a")])
        assert catalog.ids == ("b", "a")
        assert catalog.rule_by_id("a").id == "a"
        assert "a" in catalog
        assert len(catalog) == 2

    def test_unknown_id(self) -> None:
        catalog = RuleCatalog([_make("a")])
        with pytest.raises(RuleNotFoundError) as excinfo:
            catalog.rule_by_id("zzz")
        assert excinfo.value.rule_id == "zzz"
        assert isinstance(excinfo.value, KeyError)

    def test_duplicate_ids_rejected(self) -> None:
        with pytest.raises(ValueError, match="Duplicate rule id 'a'"):
            RuleCatalog([_make("a"), _make("a")])

    def test_non_rule_rejected(self) -> None:
        with pytest.raises(TypeError):
            RuleCatalog(["nope"])  # type: ignore[list-item]

    def test_list_rules_uses_defaults(self) -> None:
        catalog = RuleCatalog([_make("on"), _make("off", enabled_by_default=False)])
        assert [r.id for r in catalog.list_rules()] == ["on"]

    def test_list_rules_with_config(self) -> None:
        catalog = RuleCatalog([_make("on"), _make("off", enabled_by_default=False)])
        config = Configuration(
            rules={"on": RuleSettings(enabled=False), "off": RuleSettings(enabled=True)}
        )
        assert [r.id for r in catalog.list_rules(config)] == ["off"]


class TestDefaultCatalog:
    def test_builtin_rules_present(self) -> None:
        catalog = build_default_catalog(include_plugins=False)
        assert catalog.ids == (
            "trailing-whitespace",
            "final-newline",
            "line-length",
            "comment-space",
            "todo-owner",
            "string-quotes",
            "function-naming",
            "function-length",
            "nesting-depth",
            "loop-closure",
        )

    def test_todo_owner_disabled_by_default(self) -> None:
        catalog = build_default_catalog(include_plugins=False)
        assert "todo-owner" not in [r.id for r in catalog.list_rules()]

    def test_fixable_rules(self) -> None:
        catalog = build_default_catalog(include_plugins=False)
        fixable = {r.id for r in catalog if r.fixable}
        assert fixable == {
            "trailing-whitespace",
            "final-newline",
            "comment-space",
            "string-quotes",
        }
