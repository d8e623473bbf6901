"""Shared test fixtures for Stylegate."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from stylegate.config import Configuration, RuleSettings
from stylegate.engine.traversal import RuleEngine
from stylegate.rules.catalog import build_default_catalog
from stylegate.syntax.nodes import SourceUnit

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from stylegate.engine.diagnostics import UnitResult
    from stylegate.rules.catalog import RuleCatalog


@pytest.fixture()
def catalog() -> RuleCatalog:
    """Built-in rules only, so installed plugins cannot leak into results."""
    return build_default_catalog(include_plugins=False)


@pytest.fixture()
def run_rule(catalog: RuleCatalog) -> Callable[..., UnitResult]:
    """Check a Python snippet with exactly one built-in rule enabled."""

    def _run(rule_id: str, text: str, **params: object) -> UnitResult:
        config = Configuration(
            rules={rule_id: RuleSettings(enabled=True, params=params)},
            select=(rule_id,),
        )
        config.validate(catalog)
        engine = RuleEngine(catalog, config)
        return engine.check(SourceUnit.from_text("sample.py", text, "python"))

    return _run


@pytest.fixture()
def py_project(tmp_path: Path) -> Path:
    """A small source tree with one clean and one dirty Python file."""
    project = tmp_path / "proj"
    (project / "pkg").mkdir(parents=True)
    (project / "clean.py").write_text("def ok():\n    return 1\n")
    (project / "pkg" / "dirty.py").write_text("x = 1   \n")
    return project
