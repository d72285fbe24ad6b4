"""Sandboxed execution: the executor and the two batch runners.

Runners: DiagnosticRunner (pass/fail/skip checks), SimulationRunner
(input/output scenarios with optional validation).
"""

from transparency_sandbox.runner.diagnostics import (
    DiagnosticCheck,
    DiagnosticRunner,
    run_diagnostics,
)
from transparency_sandbox.runner.executor import (
    ExecutionError,
    ExecutionTimeoutError,
    RegistrationError,
    SandboxError,
    SandboxExecutor,
    run_in_sandbox,
)
from transparency_sandbox.runner.simulation import (
    ScenarioValidationError,
    SimulationRunner,
    SimulationScenario,
    run_simulations,
)

__all__ = [
    "DiagnosticCheck",
    "DiagnosticRunner",
    "ExecutionError",
    "ExecutionTimeoutError",
    "RegistrationError",
    "SandboxError",
    "SandboxExecutor",
    "ScenarioValidationError",
    "SimulationRunner",
    "SimulationScenario",
    "run_diagnostics",
    "run_in_sandbox",
    "run_simulations",
]
