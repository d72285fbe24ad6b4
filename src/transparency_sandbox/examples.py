"""Built-in transparency examples.

Three small demonstrations of the harness: a single sandboxed call, a
diagnostic run, and a simulation run.  ``transparency-sandbox demo``
runs all of them.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any

from transparency_sandbox.config import SandboxConfig
from transparency_sandbox.models import (
    DiagnosticOutcome,
    DiagnosticSummary,
    ExecutionOutcome,
    SimulationOutcome,
    SimulationSummary,
)
from transparency_sandbox.runner.diagnostics import DiagnosticCheck, run_diagnostics
from transparency_sandbox.runner.executor import run_in_sandbox
from transparency_sandbox.runner.simulation import SimulationScenario, run_simulations

logger = logging.getLogger(__name__)


@dataclass
class ExampleReport:
    """Everything produced by ``run_all_examples()``."""

    basic: ExecutionOutcome | None = None
    diagnostics: list[DiagnosticOutcome] = field(default_factory=list)
    simulations: list[SimulationOutcome] = field(default_factory=list)


async def example_basic_sandbox(
    rng: random.Random | None = None,
    *,
    timeout_ms: int | None = None,
) -> ExecutionOutcome:
    """Run a simulated transparency check in a one-shot sandbox."""
    logger.info("Running basic sandbox example...")
    rng = rng or random.Random()

    async def transparency_check() -> dict[str, Any]:
        score = rng.random()
        return {"transparent": score > 0.5, "score": score}

    outcome = await run_in_sandbox(
        "basic-example", transparency_check, timeout_ms=timeout_ms,
    )
    if outcome.succeeded:
        logger.info("Transparency check completed: %s", outcome.value)
    else:
        assert outcome.failure is not None
        logger.error("Transparency check failed: %s", outcome.failure.message)
    return outcome


async def _telemetry_connection() -> bool:
    await asyncio.sleep(0.1)
    return True


def transparency_checks() -> list[DiagnosticCheck]:
    return [
        DiagnosticCheck(
            name="config-validation",
            description="Validate transparency configuration",
            run=lambda: True,
        ),
        DiagnosticCheck(
            name="telemetry-connection",
            description="Check telemetry connectivity",
            run=_telemetry_connection,
        ),
        DiagnosticCheck(
            name="data-integrity",
            description="Verify data integrity",
            run=lambda: True,
        ),
    ]


async def example_transparency_diagnostics(
    *, timeout_ms: int | None = None,
) -> list[DiagnosticOutcome]:
    logger.info("Running transparency diagnostics...")
    kwargs = {} if timeout_ms is None else {"timeout_ms": timeout_ms}
    outcomes = await run_diagnostics(transparency_checks(), **kwargs)
    summary = DiagnosticSummary(outcomes)
    logger.info("Diagnostics completed: %d/%d passed", summary.passed, summary.total)
    return outcomes


async def _process_low_load(events: dict[str, int]) -> dict[str, Any]:
    await asyncio.sleep(0.05)
    return {"processed": events["events"], "transparent": True}


async def _process_high_load(events: dict[str, int]) -> dict[str, Any]:
    await asyncio.sleep(0.1)
    # transparency degrades under extreme load
    return {"processed": events["events"], "transparent": events["events"] < 10_000}


async def _process_with_limit(events: dict[str, int]) -> dict[str, Any]:
    if events["events"] < 10:
        return {"processed": events["events"], "transparent": True}
    raise RuntimeError("Too many events")


def transparency_scenarios() -> list[SimulationScenario[dict[str, int], dict[str, Any]]]:
    return [
        SimulationScenario(
            name="low-load-scenario",
            description="Simulate low event load",
            input={"events": 10},
            run=_process_low_load,
            validate=lambda out: out["processed"] > 0 and out["transparent"] is True,
        ),
        SimulationScenario(
            name="high-load-scenario",
            description="Simulate high event load",
            input={"events": 1000},
            run=_process_high_load,
            validate=lambda out: out["processed"] == 1000 and out["transparent"] is True,
        ),
        SimulationScenario(
            name="error-handling-scenario",
            description="Simulate error conditions",
            input={"events": 5},
            run=_process_with_limit,
            validate=lambda out: out["transparent"] is True,
        ),
    ]


async def example_transparency_simulations(
    *, timeout_ms: int | None = None,
) -> list[SimulationOutcome]:
    logger.info("Running transparency simulations...")
    kwargs = {} if timeout_ms is None else {"timeout_ms": timeout_ms}
    outcomes = await run_simulations(transparency_scenarios(), **kwargs)
    summary = SimulationSummary(outcomes)
    logger.info(
        "Simulations completed: %d/%d successful", summary.succeeded, summary.total,
    )
    return outcomes


async def run_all_examples(
    rng: random.Random | None = None,
    config: SandboxConfig | None = None,
) -> ExampleReport:
    """Run every example, using the timeouts from *config* when given."""
    logger.info("=== Running All Sandbox Examples ===")
    timeouts = (config or SandboxConfig()).sandbox
    report = ExampleReport()
    report.basic = await example_basic_sandbox(rng, timeout_ms=timeouts.timeout_ms)
    report.diagnostics = await example_transparency_diagnostics(
        timeout_ms=timeouts.diagnostic_timeout_ms,
    )
    report.simulations = await example_transparency_simulations(
        timeout_ms=timeouts.simulation_timeout_ms,
    )
    logger.info("=== All Examples Completed ===")
    return report
