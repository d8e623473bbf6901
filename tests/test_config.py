"""Tests for stylegate.config — YAML loading, discovery, and validation."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from stylegate.config import (
    Configuration,
    ConfigurationError,
    RuleSettings,
    discover_config,
    load_config,
    parse_config,
)
from stylegate.rules.base import Severity

if TYPE_CHECKING:
    from pathlib import Path

    from stylegate.rules.catalog import RuleCatalog


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParseConfig:
    def test_full_document(self) -> None:
        config = parse_config(
            {
                "version": 1,
                "fail_on": "error",
                "jobs": 4,
                "timeout": 30,
                "include": ["py"],
                "exclude": ["build/**"],
                "rules": {
                    "line-length": {"severity": "error", "params": {"max": 88}},
                    "todo-owner": {"enabled": False},
                },
            }
        )
        assert config.fail_on is Severity.ERROR
        assert config.jobs == 4
        assert config.timeout == 30.0
        assert config.include == (".py",)
        assert config.exclude == ("build/**",)
        assert config.rules["line-length"].severity is Severity.ERROR
        assert config.rules["line-length"].params == {"max": 88}
        assert config.rules["todo-owner"].enabled is False

    def test_empty_document_is_default(self) -> None:
        config = parse_config(None)
        assert config.fail_on is Severity.WARNING
        assert config.jobs == 1
        assert dict(config.rules) == {}

    def test_shorthand_entries(self) -> None:
        config = parse_config({"version": 1, "rules": {"a": True, "b": "info", "c": None}})
        assert config.rules["a"].enabled is True
        assert config.rules["b"].severity is Severity.INFO
        assert config.rules["c"] == RuleSettings()

    def test_missing_version(self) -> None:
        with pytest.raises(ConfigurationError, match="version"):
            parse_config({"rules": {}})

    def test_unsupported_version(self) -> None:
        with pytest.raises(ConfigurationError, match="unsupported version 2"):
            parse_config({"version": 2})

    def test_unknown_top_level_key(self) -> None:
        with pytest.raises(ConfigurationError, match="unknown keys"):
            parse_config({"version": 1, "rulez": {}})

    def test_bad_severity(self) -> None:
        with pytest.raises(ConfigurationError, match="invalid severity"):
            parse_config({"version": 1, "rules": {"a": {"severity": "fatal"}}})

    def test_bad_fail_on(self) -> None:
        with pytest.raises(ConfigurationError, match="fail_on"):
            parse_config({"version": 1, "fail_on": "sometimes"})

    @pytest.mark.parametrize("jobs", [0, -1, "many", True])
    def test_bad_jobs(self, jobs: object) -> None:
        with pytest.raises(ConfigurationError, match="jobs"):
            parse_config({"version": 1, "jobs": jobs})

    def test_bad_timeout(self) -> None:
        with pytest.raises(ConfigurationError, match="timeout"):
            parse_config({"version": 1, "timeout": 0})

    def test_enabled_must_be_bool(self) -> None:
        with pytest.raises(ConfigurationError, match="enabled"):
            parse_config({"version": 1, "rules": {"a": {"enabled": "yes"}}})

    def test_unknown_rule_key(self) -> None:
        with pytest.raises(ConfigurationError, match="unknown keys"):
            parse_config({"version": 1, "rules": {"a": {"level": "error"}}})

    def test_document_must_be_mapping(self) -> None:
        with pytest.raises(ConfigurationError, match="mapping"):
            parse_config(["version", 1])


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_load_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / ".stylegate.yml"
        path.write_text("version: 1\nfail_on: info\nrules:\n  line-length:\n    params: {max: 80}\n")
        config = load_config(path)
        assert config.fail_on is Severity.INFO
        assert config.rules["line-length"].params == {"max": 80}
        assert config.source == str(path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / ".stylegate.yml"
        path.write_text("version: 1\nrules: [unclosed\n")
        with pytest.raises(ConfigurationError, match="invalid YAML"):
            load_config(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="cannot read"):
            load_config(tmp_path / "absent.yml")

    def test_discover_walks_upward(self, tmp_path: Path) -> None:
        (tmp_path / ".stylegate.yml").write_text("version: 1\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert discover_config(nested) == (tmp_path / ".stylegate.yml").resolve()

    def test_discover_prefers_nearest(self, tmp_path: Path) -> None:
        (tmp_path / ".stylegate.yml").write_text("version: 1\n")
        nested = tmp_path / "a"
        nested.mkdir()
        (nested / ".stylegate.yaml").write_text("version: 1\n")
        assert discover_config(nested) == (nested / ".stylegate.yaml").resolve()


# ---------------------------------------------------------------------------
# Resolution and validation
# ---------------------------------------------------------------------------


class TestResolution:
    def test_severity_and_params_override(self, catalog: RuleCatalog) -> None:
        line_length = catalog.rule_by_id("line-length")
        config = Configuration(
            rules={"line-length": RuleSettings(severity=Severity.ERROR, params={"max": 88})}
        )
        assert config.severity_for(line_length) is Severity.ERROR
        assert config.params_for(line_length) == {"max": 88, "ignore_urls": True}

    def test_defaults_without_settings(self, catalog: RuleCatalog) -> None:
        line_length = catalog.rule_by_id("line-length")
        config = Configuration()
        assert config.severity_for(line_length) is Severity.WARNING
        assert config.params_for(line_length) == {"max": 100, "ignore_urls": True}
        assert config.is_enabled(line_length)

    def test_select_and_ignore(self, catalog: RuleCatalog) -> None:
        config = Configuration().with_overrides(
            select=["line-length", "todo-owner"], ignore=["line-length"]
        )
        enabled = [r.id for r in catalog.list_rules(config)]
        assert enabled == ["todo-owner"]

    def test_with_overrides_without_changes_returns_same(self) -> None:
        config = Configuration()
        assert config.with_overrides() is config

    def test_fail_on_override(self) -> None:
        config = Configuration().with_overrides(fail_on=Severity.ERROR, jobs=3)
        assert config.fail_on is Severity.ERROR
        assert config.jobs == 3


class TestValidate:
    def test_valid_configuration(self, catalog: RuleCatalog) -> None:
        config = Configuration(
            rules={
                "line-length": RuleSettings(params={"max": 120, "ignore_urls": False}),
                "function-naming": RuleSettings(params={"style": "camelCase"}),
                "todo-owner": RuleSettings(params={"tags": ["XXX"]}),
            }
        )
        config.validate(catalog)

    def test_unknown_rule(self, catalog: RuleCatalog) -> None:
        config = Configuration(rules={"no-such-rule": RuleSettings(enabled=True)})
        with pytest.raises(ConfigurationError, match="unknown rule 'no-such-rule'"):
            config.validate(catalog)

    def test_unknown_rule_in_select(self, catalog: RuleCatalog) -> None:
        config = Configuration(select=("nope",))
        with pytest.raises(ConfigurationError, match="unknown rule 'nope'"):
            config.validate(catalog)

    def test_unknown_param(self, catalog: RuleCatalog) -> None:
        config = Configuration(rules={"line-length": RuleSettings(params={"width": 80})})
        with pytest.raises(ConfigurationError, match="no parameter 'width'"):
            config.validate(catalog)

    def test_param_type_mismatch(self, catalog: RuleCatalog) -> None:
        config = Configuration(rules={"line-length": RuleSettings(params={"max": "80"})})
        with pytest.raises(ConfigurationError, match="must be int, got str"):
            config.validate(catalog)

    def test_bool_is_not_an_int(self, catalog: RuleCatalog) -> None:
        config = Configuration(rules={"line-length": RuleSettings(params={"max": True})})
        with pytest.raises(ConfigurationError, match="must be int"):
            config.validate(catalog)

    def test_param_choice(self, catalog: RuleCatalog) -> None:
        config = Configuration(rules={"function-naming": RuleSettings(params={"style": "kebab"})})
        with pytest.raises(ConfigurationError, match="must be one of"):
            config.validate(catalog)

    def test_error_names_source(self, catalog: RuleCatalog) -> None:
        config = Configuration(rules={"nope": RuleSettings()}, source="cfg.yml")
        with pytest.raises(ConfigurationError, match="^cfg.yml: "):
            config.validate(catalog)
