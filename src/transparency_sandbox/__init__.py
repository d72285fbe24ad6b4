"""Transparency sandbox: deadline-bound execution of diagnostics and simulations."""

__version__ = "0.3.0"

from transparency_sandbox.config import (
    ConfigError,
    SandboxConfig,
    find_config,
    load_config,
    validate_config,
)
from transparency_sandbox.models import (
    DiagnosticOutcome,
    DiagnosticStatus,
    DiagnosticSummary,
    ErrorInfo,
    ErrorKind,
    ExecutionOutcome,
    LogLevel,
    SimulationOutcome,
    SimulationSummary,
)
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
from transparency_sandbox.telemetry import (
    configure_logging,
    get_logger,
    get_tracer,
    init_telemetry,
    shutdown_telemetry,
)

__all__ = [
    "ConfigError",
    "configure_logging",
    "DiagnosticCheck",
    "DiagnosticOutcome",
    "DiagnosticRunner",
    "DiagnosticStatus",
    "DiagnosticSummary",
    "ErrorInfo",
    "ErrorKind",
    "ExecutionError",
    "ExecutionOutcome",
    "ExecutionTimeoutError",
    "find_config",
    "get_logger",
    "get_tracer",
    "init_telemetry",
    "load_config",
    "LogLevel",
    "RegistrationError",
    "run_diagnostics",
    "run_in_sandbox",
    "run_simulations",
    "SandboxConfig",
    "SandboxError",
    "SandboxExecutor",
    "shutdown_telemetry",
    "ScenarioValidationError",
    "SimulationOutcome",
    "SimulationRunner",
    "SimulationScenario",
    "SimulationSummary",
    "validate_config",
    "__version__",
]
