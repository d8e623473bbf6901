"""Rule catalog: the ordered, read-only set of rules known to a run."""

from __future__ import annotations

import logging
import threading
from importlib.metadata import entry_points
from types import MappingProxyType
from typing import TYPE_CHECKING

from stylegate.rules.base import Rule

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from stylegate.config import Configuration

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "stylegate.rules"


class RuleNotFoundError(KeyError):
    """Raised when a rule id is not registered in the catalog."""

    def __init__(self, rule_id: str) -> None:
        super().__init__(rule_id)
        self.rule_id = rule_id

    def __str__(self) -> str:
        return f"unknown rule '{self.rule_id}'"


class RuleCatalog:
    """Immutable, ordered collection of rules indexed by id.

    Registration order is the dispatch order used by the engine.
    """

    def __init__(self, rules: Iterable[Rule]) -> None:
        ordered = tuple(rules)
        by_id: dict[str, Rule] = {}
        for r in ordered:
            if not isinstance(r, Rule):
                msg = f"catalog entries must be Rule objects, got {type(r).__name__}"
                raise TypeError(msg)
            if r.id in by_id:
                msg = f"Duplicate rule id '{r.id}'"
                raise ValueError(msg)
            by_id[r.id] = r
        self._rules = ordered
        self._by_id = MappingProxyType(by_id)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._by_id

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(r.id for r in self._rules)

    def rule_by_id(self, rule_id: str) -> Rule:
        """Return the rule registered under *rule_id*.

        Raises :class:`RuleNotFoundError` when the id is unknown.
        """
        try:
            return self._by_id[rule_id]
        except KeyError:
            raise RuleNotFoundError(rule_id) from None

    def list_rules(self, config: Configuration | None = None) -> tuple[Rule, ...]:
        """Return the enabled rules in catalog order.

        Without a configuration, each rule's ``enabled_by_default`` decides.
        """
        if config is None:
            return tuple(r for r in self._rules if r.enabled_by_default)
        return tuple(r for r in self._rules if config.is_enabled(r))


# ---------------------------------------------------------------------------
# Process-wide default catalog
# ---------------------------------------------------------------------------

_DEFAULT_CATALOG: RuleCatalog | None = None
_DEFAULT_LOCK = threading.Lock()


def _plugin_rules() -> list[Rule]:
    """Load rules published by installed packages under the entry-point group.

    An entry point may resolve to a single :class:`Rule` or an iterable of them.
    Plugins whose module cannot be imported are skipped with a warning.
    """
    rules: list[Rule] = []
    for ep in sorted(entry_points(group=ENTRY_POINT_GROUP), key=lambda e: e.name):
        try:
            loaded = ep.load()
        except ImportError as exc:
            logger.warning("Skipping rule plugin '%s': %s", ep.name, exc)
            continue
        if isinstance(loaded, Rule):
            rules.append(loaded)
            continue
        try:
            items = list(loaded)
        except TypeError:
            msg = f"Rule plugin '{ep.name}' must expose a Rule or an iterable of Rules"
            raise TypeError(msg) from None
        rules.extend(items)
    return rules


def build_default_catalog(*, include_plugins: bool = True) -> RuleCatalog:
    """Build a fresh catalog of the built-in rules plus installed plugins."""
    from stylegate.rules.builtin import BUILTIN_RULES

    rules: list[Rule] = list(BUILTIN_RULES)
    if include_plugins:
        rules.extend(_plugin_rules())
    return RuleCatalog(rules)


def default_catalog() -> RuleCatalog:
    """Return the process-wide catalog, building it on first use."""
    global _DEFAULT_CATALOG  # noqa: PLW0603
    if _DEFAULT_CATALOG is None:
        with _DEFAULT_LOCK:
            if _DEFAULT_CATALOG is None:
                _DEFAULT_CATALOG = build_default_catalog()
                logger.debug("Rule catalog initialised with %d rules", len(_DEFAULT_CATALOG))
    return _DEFAULT_CATALOG
