"""Simulation runner for scenario testing.

A scenario feeds a fixed input to a callable and, optionally, checks
the output with a validator.  Scenarios run sequentially through one
shared ``SandboxExecutor``.  A validator that raises is treated as a
failed validation; its error is recorded on the outcome, never raised.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from transparency_sandbox.models import (
    ErrorInfo,
    ErrorKind,
    LogLevel,
    SimulationOutcome,
    SimulationSummary,
)
from transparency_sandbox.runner.executor import (
    RegistrationError,
    SandboxError,
    SandboxExecutor,
)

logger = logging.getLogger(__name__)

SIMULATION_TIMEOUT_MS = 120_000

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")


class ScenarioValidationError(SandboxError):
    """A scenario's validator raised while checking the output."""


@dataclass(frozen=True)
class SimulationScenario(Generic[InputT, OutputT]):
    """An input -> output scenario.

    ``run`` receives ``input`` and may return an awaitable.  ``validate``
    receives the output; only an exact ``True`` counts as validated.
    """

    name: str
    description: str
    input: InputT
    run: Callable[[InputT], Any]
    validate: Callable[[OutputT], Any] | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise RegistrationError("Simulation scenario requires a non-empty 'name'")
        if not callable(self.run):
            raise RegistrationError(f"Scenario '{self.name}': 'run' must be callable")
        if self.validate is not None and not callable(self.validate):
            raise RegistrationError(f"Scenario '{self.name}': 'validate' must be callable")


class SimulationRunner:
    """Runs registered simulation scenarios sequentially."""

    def __init__(
        self,
        name: str = "simulation-runner",
        *,
        timeout_ms: int = SIMULATION_TIMEOUT_MS,
        log_level: LogLevel | str = LogLevel.INFO,
        logger: logging.Logger | logging.LoggerAdapter[Any] | None = None,
    ) -> None:
        self._name = name
        self._scenarios: list[SimulationScenario[Any, Any]] = []
        self._sandbox = SandboxExecutor(
            name,
            timeout_ms=timeout_ms,
            log_level=log_level,
            logger=logger,
        )

    @property
    def name(self) -> str:
        return self._name

    def register_scenario(self, scenario: SimulationScenario[Any, Any]) -> None:
        if not isinstance(scenario, SimulationScenario):
            raise RegistrationError(
                f"Expected a SimulationScenario, got {type(scenario).__name__}"
            )
        self._scenarios.append(scenario)
        logger.debug("Registered simulation scenario: %s", scenario.name)

    async def run_all(self) -> list[SimulationOutcome]:
        """Run every registered scenario and return outcomes in order."""
        scenarios = list(self._scenarios)
        logger.info("Running %d simulation scenarios", len(scenarios))

        outcomes = [await self.run_scenario(scenario) for scenario in scenarios]

        summary = SimulationSummary(outcomes)
        logger.info(
            "Simulation scenarios completed: %d successful, %d failed (%d total)",
            summary.succeeded,
            summary.failed,
            summary.total,
        )
        return outcomes

    async def run_scenario(
        self, scenario: SimulationScenario[InputT, OutputT],
    ) -> SimulationOutcome:
        """Run one scenario, registered or not, and validate its output."""
        logger.info("Running scenario: %s", scenario.name)

        result = await self._sandbox.execute(lambda: scenario.run(scenario.input))

        if not result.succeeded:
            return SimulationOutcome(
                scenario_name=scenario.name,
                succeeded=False,
                failure=result.failure,
                elapsed_ms=result.elapsed_ms,
                logs=result.logs,
            )

        validated: bool | None = None
        validation_error: ErrorInfo | None = None
        if scenario.validate is not None:
            try:
                verdict = scenario.validate(result.value)
                if inspect.isawaitable(verdict):
                    verdict = await verdict
                validated = verdict is True
            except Exception as exc:
                logger.warning(
                    "Validation failed for scenario: %s (%s)", scenario.name, exc,
                )
                wrapped = ScenarioValidationError(str(exc) or type(exc).__name__)
                wrapped.__cause__ = exc
                validation_error = ErrorInfo.from_exception(wrapped, ErrorKind.VALIDATION)
                validated = False

        return SimulationOutcome(
            scenario_name=scenario.name,
            succeeded=validated is None or validated,
            output=result.value,
            elapsed_ms=result.elapsed_ms,
            validated=validated,
            validation_error=validation_error,
            logs=result.logs,
        )

    def get_scenario_count(self) -> int:
        return len(self._scenarios)


async def run_simulations(
    scenarios: Iterable[SimulationScenario[Any, Any]], **runner_kwargs: Any,
) -> list[SimulationOutcome]:
    """Register *scenarios* on a fresh runner and run them."""
    runner = SimulationRunner(**runner_kwargs)
    for scenario in scenarios:
        runner.register_scenario(scenario)
    return await runner.run_all()
