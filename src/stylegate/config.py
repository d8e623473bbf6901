"""Run configuration: parse ``.stylegate.yml``, validate it against the catalog."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import yaml

from stylegate.rules.base import Severity
from stylegate.rules.catalog import RuleNotFoundError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from stylegate.rules.base import Rule
    from stylegate.rules.catalog import RuleCatalog

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SUPPORTED_CONFIG_VERSIONS: frozenset[int] = frozenset({1})
CONFIG_FILENAMES: tuple[str, ...] = (".stylegate.yml", ".stylegate.yaml")
DEFAULT_FAIL_ON = Severity.WARNING
_TOP_LEVEL_KEYS: frozenset[str] = frozenset(
    {"version", "fail_on", "jobs", "timeout", "include", "exclude", "rules"}
)
_RULE_KEYS: frozenset[str] = frozenset({"enabled", "severity", "params"})


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigurationError(Exception):
    """Raised when the configuration is invalid; fatal for the whole run."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuleSettings:
    """Per-rule overrides.  ``None`` means "use the catalog default"."""

    enabled: bool | None = None
    severity: Severity | None = None
    params: Mapping[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))


@dataclass(frozen=True)
class Configuration:
    """Process-wide, read-only settings for one run."""

    rules: Mapping[str, RuleSettings] = field(default_factory=dict)
    fail_on: Severity = DEFAULT_FAIL_ON
    jobs: int = 1
    timeout: float | None = None
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    select: tuple[str, ...] = ()
    ignore: tuple[str, ...] = ()
    source: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", MappingProxyType(dict(self.rules)))

    def is_enabled(self, rule: Rule) -> bool:
        """Decide whether *rule* runs: ``ignore`` > ``select`` > settings > default."""
        if rule.id in self.ignore:
            return False
        if self.select:
            return rule.id in self.select
        settings = self.rules.get(rule.id)
        if settings is not None and settings.enabled is not None:
            return settings.enabled
        return rule.enabled_by_default

    def severity_for(self, rule: Rule) -> Severity:
        settings = self.rules.get(rule.id)
        if settings is not None and settings.severity is not None:
            return settings.severity
        return rule.severity

    def params_for(self, rule: Rule) -> dict[str, object]:
        settings = self.rules.get(rule.id)
        overrides = settings.params if settings is not None else {}
        return {**rule.params, **overrides}

    def with_overrides(
        self,
        *,
        select: Iterable[str] | None = None,
        ignore: Iterable[str] | None = None,
        fail_on: Severity | None = None,
        jobs: int | None = None,
        timeout: float | None = None,
    ) -> Configuration:
        """Return a copy with command-line overrides applied."""
        changes: dict[str, Any] = {}
        if select:
            changes["select"] = tuple(select)
        if ignore:
            changes["ignore"] = (*self.ignore, *ignore)
        if fail_on is not None:
            changes["fail_on"] = fail_on
        if jobs is not None:
            changes["jobs"] = jobs
        if timeout is not None:
            changes["timeout"] = timeout
        return dataclasses.replace(self, **changes) if changes else self

    def validate(self, catalog: RuleCatalog) -> None:
        """Check rule ids and parameters against *catalog*.

        Raises :class:`ConfigurationError` on the first problem found.
        """
        where = self.source or "configuration"
        for rule_id in (*self.select, *self.ignore):
            _lookup(catalog, rule_id, where)

        for rule_id, settings in self.rules.items():
            rule = _lookup(catalog, rule_id, where)
            for name, value in settings.params.items():
                if name not in rule.params:
                    known = sorted(rule.params) or "none"
                    msg = (
                        f"{where}: rule '{rule_id}' has no parameter '{name}' "
                        f"(known parameters: {known})"
                    )
                    raise ConfigurationError(msg)
                _check_param_type(rule, name, value, where)


def _lookup(catalog: RuleCatalog, rule_id: str, where: str) -> Rule:
    try:
        return catalog.rule_by_id(rule_id)
    except RuleNotFoundError as exc:
        msg = f"{where}: unknown rule '{rule_id}'"
        raise ConfigurationError(msg) from exc


def _check_param_type(rule: Rule, name: str, value: object, where: str) -> None:
    default = rule.params[name]
    expected: tuple[type, ...]
    if default is None:
        expected = (object,)
    elif isinstance(default, bool):
        expected = (bool,)
    elif isinstance(default, int):
        expected = (int,)
    elif isinstance(default, float):
        expected = (int, float)
    elif isinstance(default, (list, tuple)):
        expected = (list, tuple)
    else:
        expected = (type(default),)

    # bool is an int subclass; keep flags and counts apart.
    wrong_bool = isinstance(value, bool) and bool not in expected
    if wrong_bool or not isinstance(value, expected):
        names = "/".join(t.__name__ for t in expected)
        msg = (
            f"{where}: rule '{rule.id}' parameter '{name}' must be {names}, "
            f"got {type(value).__name__}"
        )
        raise ConfigurationError(msg)

    choices = rule.param_choices.get(name)
    if choices is not None and value not in choices:
        msg = (
            f"{where}: rule '{rule.id}' parameter '{name}' must be one of "
            f"{list(choices)}, got {value!r}"
        )
        raise ConfigurationError(msg)


# ---------------------------------------------------------------------------
# YAML parsing
# ---------------------------------------------------------------------------


def _parse_severity(value: object, context: str) -> Severity:
    try:
        return Severity.parse(value)
    except ValueError as exc:
        msg = f"{context}: {exc}"
        raise ConfigurationError(msg) from exc


def _parse_str_list(value: object, context: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list):
        msg = f"{context} must be a list of strings"
        raise ConfigurationError(msg)
    return tuple(str(item) for item in value)


def _parse_rule_settings(rule_id: str, data: object, where: str) -> RuleSettings:
    """Parse one ``rules:`` entry.

    Accepts a mapping, a bare boolean (enable/disable), or a bare severity.
    """
    context = f"{where}: rule '{rule_id}'"
    if isinstance(data, bool):
        return RuleSettings(enabled=data)
    if isinstance(data, str):
        return RuleSettings(severity=_parse_severity(data, context))
    if data is None:
        return RuleSettings()
    if not isinstance(data, dict):
        msg = f"{context} must be a mapping, a boolean, or a severity"
        raise ConfigurationError(msg)

    unknown = set(data) - _RULE_KEYS
    if unknown:
        msg = f"{context}: unknown keys {sorted(unknown)}, expected {sorted(_RULE_KEYS)}"
        raise ConfigurationError(msg)

    enabled_raw = data.get("enabled")
    if enabled_raw is not None and not isinstance(enabled_raw, bool):
        msg = f"{context}: 'enabled' must be a boolean"
        raise ConfigurationError(msg)

    severity_raw = data.get("severity")
    severity = _parse_severity(severity_raw, context) if severity_raw is not None else None

    params_raw = data.get("params", {})
    if params_raw is None:
        params_raw = {}
    if not isinstance(params_raw, dict):
        msg = f"{context}: 'params' must be a mapping"
        raise ConfigurationError(msg)

    return RuleSettings(
        enabled=enabled_raw,
        severity=severity,
        params={str(k): v for k, v in params_raw.items()},
    )


def parse_config(data: object, *, source: str | None = None) -> Configuration:
    """Build a :class:`Configuration` from an already-parsed YAML document."""
    where = source or "configuration"
    if data is None:
        return Configuration(source=source)
    if not isinstance(data, dict):
        msg = f"{where} must be a YAML mapping"
        raise ConfigurationError(msg)

    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        msg = f"{where}: unknown keys {sorted(unknown)}"
        raise ConfigurationError(msg)

    version = data.get("version")
    if version is None:
        msg = f"{where}: missing required 'version' field"
        raise ConfigurationError(msg)
    if version not in SUPPORTED_CONFIG_VERSIONS:
        expected = sorted(SUPPORTED_CONFIG_VERSIONS)
        msg = f"{where}: unsupported version {version}, expected one of {expected}"
        raise ConfigurationError(msg)

    fail_on = _parse_severity(data.get("fail_on", DEFAULT_FAIL_ON.value), f"{where}: fail_on")

    jobs = data.get("jobs", 1)
    if isinstance(jobs, bool) or not isinstance(jobs, int) or jobs < 1:
        msg = f"{where}: 'jobs' must be a positive integer"
        raise ConfigurationError(msg)

    timeout_raw = data.get("timeout")
    timeout: float | None = None
    if timeout_raw is not None:
        if isinstance(timeout_raw, bool) or not isinstance(timeout_raw, (int, float)):
            msg = f"{where}: 'timeout' must be a number of seconds"
            raise ConfigurationError(msg)
        if timeout_raw <= 0:
            msg = f"{where}: 'timeout' must be positive"
            raise ConfigurationError(msg)
        timeout = float(timeout_raw)

    include = tuple(
        ext if ext.startswith(".") else f".{ext}"
        for ext in _parse_str_list(data.get("include", []), f"{where}: 'include'")
    )
    exclude = _parse_str_list(data.get("exclude", []), f"{where}: 'exclude'")

    rules_raw = data.get("rules", {})
    if rules_raw is None:
        rules_raw = {}
    if not isinstance(rules_raw, dict):
        msg = f"{where}: 'rules' must be a mapping of rule id to settings"
        raise ConfigurationError(msg)

    rules = {
        str(rule_id): _parse_rule_settings(str(rule_id), settings, where)
        for rule_id, settings in rules_raw.items()
    }

    return Configuration(
        rules=rules,
        fail_on=fail_on,
        jobs=jobs,
        timeout=timeout,
        include=include,
        exclude=exclude,
        source=source,
    )


def load_config(path: Path) -> Configuration:
    """Read and parse a YAML configuration file.

    Raises :class:`ConfigurationError` on unreadable files, YAML syntax
    errors, or schema problems.
    """
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as exc:
        msg = f"cannot read configuration {path}: {exc}"
        raise ConfigurationError(msg) from exc
    except yaml.YAMLError as exc:
        msg = f"{path}: invalid YAML: {exc}"
        raise ConfigurationError(msg) from exc

    logger.debug("Loaded configuration from %s", path)
    return parse_config(data, source=str(path))


def discover_config(start: Path) -> Path | None:
    """Find the nearest configuration file in *start* or its parents."""
    current = start.resolve()
    for directory in (current, *current.parents):
        for name in CONFIG_FILENAMES:
            candidate = directory / name
            if candidate.is_file():
                return candidate
    return None
