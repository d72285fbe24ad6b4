"""Diagnostic runner for transparency checks.

A check is a named callable returning ``True`` when the thing it probes
is healthy.  Checks run one at a time, in registration order, through a
single shared ``SandboxExecutor``; each produces exactly one
``DiagnosticOutcome``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from transparency_sandbox.models import (
    DiagnosticOutcome,
    DiagnosticStatus,
    DiagnosticSummary,
    LogLevel,
)
from transparency_sandbox.runner.executor import RegistrationError, SandboxExecutor

logger = logging.getLogger(__name__)

DIAGNOSTIC_TIMEOUT_MS = 60_000


@dataclass(frozen=True)
class DiagnosticCheck:
    """A single diagnostic check.

    ``run`` takes no arguments and returns a bool, or an awaitable
    resolving to one.  Only an exact ``True`` counts as a pass.
    """

    name: str
    description: str
    run: Callable[[], Any]
    skip: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise RegistrationError("Diagnostic check requires a non-empty 'name'")
        if not callable(self.run):
            raise RegistrationError(f"Diagnostic check '{self.name}': 'run' must be callable")


class DiagnosticRunner:
    """Runs registered diagnostic checks sequentially.

    Registration is a setup phase: register everything, then call
    ``run_all()``.  Duplicate names are allowed and reported separately.
    """

    def __init__(
        self,
        name: str = "diagnostic-runner",
        *,
        timeout_ms: int = DIAGNOSTIC_TIMEOUT_MS,
        log_level: LogLevel | str = LogLevel.INFO,
        logger: logging.Logger | logging.LoggerAdapter[Any] | None = None,
    ) -> None:
        self._name = name
        self._checks: list[DiagnosticCheck] = []
        self._sandbox = SandboxExecutor(
            name,
            timeout_ms=timeout_ms,
            log_level=log_level,
            logger=logger,
        )

    @property
    def name(self) -> str:
        return self._name

    def register_test(self, check: DiagnosticCheck) -> None:
        """Append a check; it runs after every check registered before it."""
        if not isinstance(check, DiagnosticCheck):
            raise RegistrationError(
                f"Expected a DiagnosticCheck, got {type(check).__name__}"
            )
        self._checks.append(check)
        logger.debug("Registered diagnostic test: %s", check.name)

    async def run_all(self) -> list[DiagnosticOutcome]:
        """Run every registered check and return outcomes in order."""
        checks = list(self._checks)
        logger.info("Running %d diagnostic tests", len(checks))

        outcomes: list[DiagnosticOutcome] = []
        for check in checks:
            if check.skip:
                outcomes.append(DiagnosticOutcome(
                    name=check.name,
                    status=DiagnosticStatus.SKIP,
                    message="Test skipped",
                    elapsed_ms=0,
                ))
                continue
            outcomes.append(await self._run_check(check))

        summary = DiagnosticSummary(outcomes)
        logger.info(
            "Diagnostic tests completed: %d passed, %d failed, %d skipped (%d total)",
            summary.passed,
            summary.failed,
            summary.skipped,
            summary.total,
        )
        return outcomes

    async def _run_check(self, check: DiagnosticCheck) -> DiagnosticOutcome:
        outcome = await self._sandbox.execute(check.run)

        if not outcome.succeeded:
            assert outcome.failure is not None
            return DiagnosticOutcome(
                name=check.name,
                status=DiagnosticStatus.FAIL,
                message=outcome.failure.message or "Test execution failed",
                elapsed_ms=outcome.elapsed_ms,
                metadata={"error": outcome.failure},
            )

        passed = outcome.value is True
        return DiagnosticOutcome(
            name=check.name,
            status=DiagnosticStatus.PASS if passed else DiagnosticStatus.FAIL,
            message="Test passed" if passed else "Test failed",
            elapsed_ms=outcome.elapsed_ms,
        )

    def get_test_count(self) -> int:
        return len(self._checks)


async def run_diagnostics(
    checks: Iterable[DiagnosticCheck], **runner_kwargs: Any,
) -> list[DiagnosticOutcome]:
    """Register *checks* on a fresh runner and run them."""
    runner = DiagnosticRunner(**runner_kwargs)
    for check in checks:
        runner.register_test(check)
    return await runner.run_all()
