"""Suite file runner.

Loads YAML suite files declaring diagnostic checks and simulation
scenarios, resolves the callables they reference, runs them through the
sandbox runners, and reports the results.

Suite file format::

    diagnostics:
      - name: config-validation
        description: Validate transparency configuration
        run: transparency_checks.py:config_is_valid

      - name: telemetry-connection
        description: Check telemetry connectivity
        run: transparency_checks.py:telemetry_reachable
        skip: true

    simulations:
      - name: low-load-scenario
        description: Simulate low event load
        input:
          events: 10
        run: transparency_checks.py:process_events
        validate: transparency_checks.py:is_transparent

Callable references are ``<target>:<attribute>``.  A target ending in
``.py`` is a file path relative to the suite file; anything else is an
importable module name.
"""

from __future__ import annotations

import hashlib
import importlib
import importlib.util
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any

import yaml

from transparency_sandbox.config import SandboxConfig
from transparency_sandbox.models import (
    DiagnosticOutcome,
    DiagnosticSummary,
    SimulationOutcome,
    SimulationSummary,
)
from transparency_sandbox.runner.diagnostics import DiagnosticCheck, DiagnosticRunner
from transparency_sandbox.runner.executor import RegistrationError
from transparency_sandbox.runner.simulation import SimulationRunner, SimulationScenario


class SuiteError(Exception):
    """Raised when a suite file is malformed or references a missing callable."""


@dataclass
class Suite:
    """Checks and scenarios loaded from one or more suite files."""

    diagnostics: list[DiagnosticCheck] = field(default_factory=list)
    simulations: list[SimulationScenario[Any, Any]] = field(default_factory=list)
    source_files: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.diagnostics) + len(self.simulations)

    def extend(self, other: Suite) -> None:
        self.diagnostics.extend(other.diagnostics)
        self.simulations.extend(other.simulations)
        self.source_files.extend(other.source_files)


@dataclass
class SuiteReport:
    """Results of running a suite."""

    diagnostics: list[DiagnosticOutcome] = field(default_factory=list)
    simulations: list[SimulationOutcome] = field(default_factory=list)

    @property
    def diagnostic_summary(self) -> DiagnosticSummary:
        return DiagnosticSummary(self.diagnostics)

    @property
    def simulation_summary(self) -> SimulationSummary:
        return SimulationSummary(self.simulations)

    @property
    def total(self) -> int:
        return len(self.diagnostics) + len(self.simulations)

    @property
    def failed(self) -> int:
        return self.diagnostic_summary.failed + self.simulation_summary.failed

    @property
    def all_passed(self) -> bool:
        return self.failed == 0 and self.total > 0


# --- Callable resolution ---

# resolved path -> (st_mtime_ns, module); an edited file is loaded again
_file_modules: dict[Path, tuple[int, ModuleType]] = {}


def resolve_callable(ref: str, base_dir: Path) -> Any:
    """Resolve a ``target:attribute`` reference to a callable.

    Raises:
        SuiteError: If the reference is malformed, the target cannot be
            loaded, or the attribute is missing or not callable.
    """
    if not isinstance(ref, str) or ref.count(":") != 1:
        raise SuiteError(f"Invalid callable reference {ref!r}: expected 'target:attribute'")

    target, attr = ref.split(":")
    if not target or not attr:
        raise SuiteError(f"Invalid callable reference {ref!r}: expected 'target:attribute'")

    module = _load_file_module(base_dir / target) if target.endswith(".py") else _import(target)

    obj: Any = module
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise SuiteError(f"{ref}: '{target}' has no attribute '{attr}'") from e

    if not callable(obj):
        raise SuiteError(f"{ref}: '{attr}' is not callable")
    return obj


def _import(module_name: str) -> ModuleType:
    try:
        return importlib.import_module(module_name)
    except ImportError as e:
        raise SuiteError(f"Cannot import module '{module_name}': {e}") from e


def _load_file_module(path: Path) -> ModuleType:
    path = path.resolve()
    if not path.is_file():
        raise SuiteError(f"Callable file not found: {path}")
    mtime_ns = path.stat().st_mtime_ns
    cached = _file_modules.get(path)
    if cached is not None and cached[0] == mtime_ns:
        return cached[1]

    digest = hashlib.sha256(str(path).encode()).hexdigest()[:12]
    spec = importlib.util.spec_from_file_location(f"_suite_{path.stem}_{digest}", path)
    if spec is None or spec.loader is None:
        raise SuiteError(f"Cannot load callables from {path}")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise SuiteError(f"Error loading {path}: {e}") from e

    _file_modules[path] = (mtime_ns, module)
    return module


# --- Loading ---


def load_suite_file(path: Path) -> Suite:
    """Load checks and scenarios from a YAML suite file.

    The file must be a mapping with a ``diagnostics:`` and/or
    ``simulations:`` key, each holding a list of entries.

    Raises:
        SuiteError: If the file is malformed.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SuiteError(f"Cannot read suite file {path}: {e}") from e
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise SuiteError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict) or not (data.keys() & {"diagnostics", "simulations"}):
        raise SuiteError(f"{path}: must have a top-level 'diagnostics' or 'simulations' key")

    base_dir = path.resolve().parent
    suite = Suite(source_files=[str(path)])

    for i, entry in enumerate(_entries(data, "diagnostics", path)):
        name = _require(entry, "name", f"diagnostic #{i + 1}", path)
        skip = entry.get("skip", False)
        if not isinstance(skip, bool):
            raise SuiteError(f"{path}: diagnostic '{name}' has non-boolean 'skip'")
        run = resolve_callable(_require(entry, "run", f"diagnostic '{name}'", path), base_dir)
        try:
            suite.diagnostics.append(DiagnosticCheck(
                name=name,
                description=entry.get("description", ""),
                run=run,
                skip=skip,
            ))
        except RegistrationError as e:
            raise SuiteError(f"{path}: {e}") from e

    for i, entry in enumerate(_entries(data, "simulations", path)):
        name = _require(entry, "name", f"simulation #{i + 1}", path)
        run = resolve_callable(_require(entry, "run", f"simulation '{name}'", path), base_dir)
        validate_ref = entry.get("validate")
        validate = resolve_callable(validate_ref, base_dir) if validate_ref else None
        try:
            suite.simulations.append(SimulationScenario(
                name=name,
                description=entry.get("description", ""),
                input=entry.get("input"),
                run=run,
                validate=validate,
            ))
        except RegistrationError as e:
            raise SuiteError(f"{path}: {e}") from e

    return suite


def load_suite_files(path: Path) -> Suite:
    """Load a suite from a file or directory.

    If ``path`` is a directory, all ``*.yaml`` and ``*.yml`` files are
    loaded in name order.

    Raises:
        SuiteError: If any file is malformed or path doesn't exist.
    """
    if not path.exists():
        raise SuiteError(f"Suite path not found: {path}")

    if path.is_file():
        return load_suite_file(path)

    files = sorted(
        p for p in [*path.glob("*.yaml"), *path.glob("*.yml")] if p.is_file()
    )
    if not files:
        raise SuiteError(f"No YAML suite files found in {path}")

    suite = Suite()
    for f in files:
        suite.extend(load_suite_file(f))
    return suite


def _entries(data: dict[str, Any], key: str, path: Path) -> list[dict[str, Any]]:
    raw = data.get(key) or []
    if not isinstance(raw, list):
        raise SuiteError(f"{path}: '{key}' must be a list")
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise SuiteError(f"{path}: {key} entry #{i + 1} must be a mapping")
    return raw


def _require(entry: dict[str, Any], key: str, label: str, path: Path) -> Any:
    value = entry.get(key)
    if not value:
        raise SuiteError(f"{path}: {label} missing '{key}'")
    return value


# --- Running ---


async def run_suite(suite: Suite, config: SandboxConfig | None = None) -> SuiteReport:
    """Run every check, then every scenario, and collect the outcomes."""
    config = config or SandboxConfig()
    report = SuiteReport()

    if suite.diagnostics:
        diagnostics = DiagnosticRunner(
            f"{config.app.name}-diagnostics",
            timeout_ms=config.sandbox.diagnostic_timeout_ms,
            log_level=config.app.log_level,
        )
        for check in suite.diagnostics:
            diagnostics.register_test(check)
        report.diagnostics = await diagnostics.run_all()

    if suite.simulations:
        simulations = SimulationRunner(
            f"{config.app.name}-simulations",
            timeout_ms=config.sandbox.simulation_timeout_ms,
            log_level=config.app.log_level,
        )
        for scenario in suite.simulations:
            simulations.register_scenario(scenario)
        report.simulations = await simulations.run_all()

    return report
