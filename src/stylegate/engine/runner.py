"""Run scheduler: discover and load units, run them, merge results in input order.

A run moves through ``IDLE -> LOADING -> TRAVERSING -> REPORTING -> IDLE``.
Configuration problems surface during ``LOADING`` before any unit is touched.
During ``TRAVERSING`` each unit is one task; failures stay inside the unit.
"""

from __future__ import annotations

import enum
import fnmatch
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Union

from stylegate.config import Configuration
from stylegate.engine.diagnostics import UnitError, UnitResult
from stylegate.engine.traversal import RuleEngine
from stylegate.fixer import apply_fixes
from stylegate.syntax.adapter import MalformedInputError
from stylegate.syntax.languages import language_for_extension
from stylegate.syntax.nodes import SourceUnit

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from stylegate.rules.base import Rule
    from stylegate.rules.catalog import RuleCatalog

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDE_DIRS: frozenset[str] = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".venv",
        "venv",
        ".tox",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        "__pycache__",
        "node_modules",
        "build",
        "dist",
        "target",
    }
)


class RunState(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    TRAVERSING = "traversing"
    REPORTING = "reporting"


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class CancelToken:
    """Cooperative cancellation, checked only before a unit starts.

    Trips on an explicit :meth:`cancel` or once the optional monotonic
    deadline passes.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False


# ---------------------------------------------------------------------------
# Unit discovery
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PendingUnit:
    """A unit on disk, read lazily by the worker that checks it."""

    path: Path
    display: str
    language: str

    def load(self) -> SourceUnit:
        return SourceUnit.from_path(self.path, self.language, display=self.display)


UnitInput = Union[SourceUnit, PendingUnit]


def _display_name(path: Path, base: Path | None) -> str:
    if base is not None:
        try:
            return path.relative_to(base).as_posix()
        except ValueError:
            pass
    return path.as_posix()


def _excluded(relative: str, patterns: tuple[str, ...]) -> bool:
    return any(
        fnmatch.fnmatch(relative, pat) or fnmatch.fnmatch(Path(relative).name, pat)
        for pat in patterns
    )


def discover_units(
    paths: Iterable[Path],
    config: Configuration | None = None,
    *,
    base: Path | None = None,
) -> list[PendingUnit]:
    """Expand files and directories into supported units, sorted by display path.

    Directories are scanned recursively, skipping VCS, virtualenv and build
    directories plus anything matching ``config.exclude``.  Files named
    explicitly are kept even when an exclude glob matches them.
    """
    config = config if config is not None else Configuration()
    found: dict[str, PendingUnit] = {}

    def _accept(file_path: Path, *, explicit: bool) -> None:
        ext = file_path.suffix
        if config.include and ext not in config.include:
            return
        language = language_for_extension(ext)
        if language is None:
            if explicit:
                logger.warning("Skipping %s: no parser available for '%s'", file_path, ext)
            return
        display = _display_name(file_path, base)
        if not explicit and _excluded(display, config.exclude):
            return
        found.setdefault(display, PendingUnit(file_path, display, language))

    for path in paths:
        if path.is_file():
            _accept(path, explicit=True)
            continue
        if not path.is_dir():
            logger.warning("Skipping %s: not a file or directory", path)
            continue
        for file_path in sorted(path.rglob("*")):
            relative_parts = file_path.relative_to(path).parts
            if any(part in DEFAULT_EXCLUDE_DIRS for part in relative_parts[:-1]):
                continue
            if file_path.is_file():
                _accept(file_path, explicit=False)

    return [found[name] for name in sorted(found)]


# ---------------------------------------------------------------------------
# Run result
# ---------------------------------------------------------------------------


@dataclass
class RunResult:
    """Merged outcome of one run, in input order."""

    results: list[UnitResult] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)
    rules: tuple[Rule, ...] = ()
    fix_mode: bool = False
    elapsed_ms: float = 0.0


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class Runner:
    """Drives one or more runs against a fixed catalog and configuration."""

    def __init__(self, catalog: RuleCatalog, config: Configuration | None = None) -> None:
        self.catalog = catalog
        self.config = config if config is not None else Configuration()
        self.state = RunState.IDLE
        self._engine: RuleEngine | None = None

    def _load(self) -> RuleEngine:
        self.state = RunState.LOADING
        try:
            self.config.validate(self.catalog)
            engine = RuleEngine(self.catalog, self.config)
        except Exception:
            self.state = RunState.IDLE
            raise
        logger.debug(
            "Loaded %d of %d rules (fail_on=%s, jobs=%d)",
            len(engine.rules),
            len(self.catalog),
            self.config.fail_on.value,
            self.config.jobs,
        )
        return engine

    def run_paths(
        self,
        paths: Iterable[Path],
        *,
        fix: bool = False,
        token: CancelToken | None = None,
        base: Path | None = None,
    ) -> RunResult:
        """Discover units under *paths* and run them."""
        units = discover_units(paths, self.config, base=base)
        return self.run(units, fix=fix, token=token)

    def run(
        self,
        units: Sequence[UnitInput],
        *,
        fix: bool = False,
        token: CancelToken | None = None,
    ) -> RunResult:
        """Check (and in fix mode, repair) every unit.

        Results come back sorted by unit path whatever order workers finish
        in.  Units not started before cancellation are listed in
        ``cancelled`` and contribute nothing else.
        """
        start = time.monotonic()
        engine = self._load()
        if token is None:
            token = CancelToken(self.config.timeout)

        ordered = sorted(units, key=_unit_name)
        self.state = RunState.TRAVERSING
        try:
            if self.config.jobs > 1 and len(ordered) > 1:
                with ThreadPoolExecutor(max_workers=self.config.jobs) as pool:
                    futures = [pool.submit(self._task, engine, u, fix, token) for u in ordered]
                    outcomes = [f.result() for f in futures]
            else:
                outcomes = [self._task(engine, u, fix, token) for u in ordered]
        finally:
            self.state = RunState.REPORTING

        result = RunResult(rules=engine.rules, fix_mode=fix)
        for unit_input, outcome in zip(ordered, outcomes):
            if outcome is None:
                result.cancelled.append(_unit_name(unit_input))
            else:
                result.results.append(outcome)
        if result.cancelled:
            logger.warning("Run cancelled; %d unit(s) not checked", len(result.cancelled))
        result.elapsed_ms = (time.monotonic() - start) * 1000
        self.state = RunState.IDLE
        return result

    def _task(
        self,
        engine: RuleEngine,
        unit_input: UnitInput,
        fix: bool,
        token: CancelToken,
    ) -> UnitResult | None:
        if token.cancelled:
            return None
        name = _unit_name(unit_input)
        try:
            unit = unit_input.load() if isinstance(unit_input, PendingUnit) else unit_input
        except OSError as exc:
            logger.error("Cannot read %s: %s", name, exc)
            return UnitResult(unit=name, diagnostics=(UnitError(name, "unreadable", str(exc)),))

        try:
            checked = engine.check(unit)
        except MalformedInputError as exc:
            logger.info("Skipping %s: %s", name, exc)
            error = UnitError(name, "malformed-input", str(exc), line=exc.line)
            return UnitResult(unit=name, diagnostics=(error,))

        if not fix or not any(v.fixable for v in checked.violations):
            return checked
        return self._fix_unit(engine, unit, unit_input, checked)

    def _fix_unit(
        self,
        engine: RuleEngine,
        unit: SourceUnit,
        unit_input: UnitInput,
        checked: UnitResult,
    ) -> UnitResult:
        outcome = apply_fixes(unit.source, checked.violations, unit=unit.path)
        if not outcome.changed:
            return replace(checked, fix_outcome=outcome)

        if isinstance(unit_input, PendingUnit):
            try:
                unit_input.path.write_bytes(outcome.source)
            except OSError as exc:
                # Nothing reached disk, so the first-pass findings stand unfixed.
                logger.error("Cannot write fixes to %s: %s", unit.path, exc)
                error = UnitError(unit.path, "unwritable", str(exc))
                return replace(checked, diagnostics=(*checked.diagnostics, error))
            logger.debug("Wrote %d fix(es) to %s", len(outcome.applied), unit_input.path)

        fixed = replace(unit, source=outcome.source)
        try:
            rechecked = engine.check(fixed)
        except MalformedInputError as exc:
            error = UnitError(unit.path, "malformed-input", f"after fixes: {exc}", line=exc.line)
            return UnitResult(unit=unit.path, diagnostics=(error,), fix_outcome=outcome)
        # Crashes from the first pass still count against the run.
        diagnostics = tuple(dict.fromkeys((*checked.diagnostics, *rechecked.diagnostics)))
        return replace(rechecked, diagnostics=diagnostics, fix_outcome=outcome)


def _unit_name(unit_input: UnitInput) -> str:
    return unit_input.display if isinstance(unit_input, PendingUnit) else unit_input.path
