"""Tests for SimulationRunner."""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import MagicMock

import pytest

from transparency_sandbox.models import ErrorKind, SimulationSummary
from transparency_sandbox.runner.executor import RegistrationError
from transparency_sandbox.runner.simulation import (
    ScenarioValidationError,
    SimulationRunner,
    SimulationScenario,
    run_simulations,
)


def _runner(**kwargs) -> SimulationRunner:
    kwargs.setdefault("logger", MagicMock(spec=logging.Logger))
    return SimulationRunner("test-simulations", **kwargs)


async def _add_five(data):
    await asyncio.sleep(0)
    return {"result": data["value"] + 5}


def _scenario(name="add-five", validate=None, run=_add_five, input=None):
    return SimulationScenario(
        name=name,
        description="adds five",
        input={"value": 5} if input is None else input,
        run=run,
        validate=validate,
    )


# --- SimulationScenario ---


class TestSimulationScenario:
    def test_empty_name_rejected(self):
        with pytest.raises(RegistrationError):
            _scenario(name="")

    def test_non_callable_run_rejected(self):
        with pytest.raises(RegistrationError, match="'run' must be callable"):
            _scenario(run="nope")

    def test_non_callable_validate_rejected(self):
        with pytest.raises(RegistrationError, match="'validate' must be callable"):
            _scenario(validate=True)


# --- run_all / run_scenario ---


class TestValidation:
    def test_validated_true(self):
        runner = _runner()
        runner.register_scenario(_scenario(validate=lambda out: out["result"] == 10))
        [outcome] = asyncio.run(runner.run_all())
        assert outcome.succeeded is True
        assert outcome.validated is True
        assert outcome.output == {"result": 10}
        assert outcome.failure is None

    def test_validated_false(self):
        runner = _runner()
        runner.register_scenario(_scenario(validate=lambda out: out["result"] == 999))
        [outcome] = asyncio.run(runner.run_all())
        assert outcome.succeeded is False
        assert outcome.validated is False
        assert outcome.output == {"result": 10}
        assert outcome.validation_error is None

    def test_validator_raises(self):
        def validate(out):
            raise KeyError("missing")

        runner = _runner()
        runner.register_scenario(_scenario(validate=validate))
        [outcome] = asyncio.run(runner.run_all())

        assert outcome.succeeded is False
        assert outcome.validated is False
        assert outcome.output == {"result": 10}
        error = outcome.validation_error
        assert error.kind is ErrorKind.VALIDATION
        assert error.error_type == "ScenarioValidationError"
        assert isinstance(error.exception, ScenarioValidationError)
        assert isinstance(error.exception.__cause__, KeyError)

    def test_no_validator(self):
        runner = _runner()
        runner.register_scenario(_scenario())
        [outcome] = asyncio.run(runner.run_all())
        assert outcome.succeeded is True
        assert outcome.validated is None

    def test_async_validator(self):
        async def validate(out):
            await asyncio.sleep(0)
            return out["result"] == 10

        runner = _runner()
        runner.register_scenario(_scenario(validate=validate))
        [outcome] = asyncio.run(runner.run_all())
        assert outcome.validated is True

    def test_truthy_verdict_is_not_validated(self):
        runner = _runner()
        runner.register_scenario(_scenario(validate=lambda out: out["result"]))
        [outcome] = asyncio.run(runner.run_all())
        assert outcome.validated is False
        assert outcome.succeeded is False

    def test_none_output_is_still_validated(self):
        seen = []

        def validate(out):
            seen.append(out)
            return out is None

        runner = _runner()
        runner.register_scenario(_scenario(run=lambda data: None, validate=validate))
        [outcome] = asyncio.run(runner.run_all())
        assert seen == [None]
        assert outcome.validated is True


class TestRunFailure:
    def test_run_raises(self):
        def run(data):
            raise RuntimeError("Too many events")

        validate = MagicMock(return_value=True)
        runner = _runner()
        runner.register_scenario(_scenario(run=run, validate=validate))
        [outcome] = asyncio.run(runner.run_all())

        assert outcome.succeeded is False
        assert outcome.output is None
        assert outcome.validated is None
        assert outcome.failure.kind is ErrorKind.EXECUTION
        assert outcome.failure.message == "Too many events"
        validate.assert_not_called()

    def test_run_times_out(self):
        async def run(data):
            await asyncio.sleep(1)

        runner = _runner(timeout_ms=20)
        runner.register_scenario(_scenario(run=run))
        [outcome] = asyncio.run(runner.run_all())
        assert outcome.failure.kind is ErrorKind.TIMEOUT

    def test_failure_does_not_stop_later_scenarios(self):
        def broken(data):
            raise RuntimeError("boom")

        runner = _runner()
        runner.register_scenario(_scenario(name="broken", run=broken))
        runner.register_scenario(_scenario(name="fine"))
        outcomes = asyncio.run(runner.run_all())
        assert [(o.scenario_name, o.succeeded) for o in outcomes] == [
            ("broken", False),
            ("fine", True),
        ]


class TestRunner:
    def test_counts(self):
        runner = _runner()
        assert runner.get_scenario_count() == 0
        runner.register_scenario(_scenario(name="a"))
        runner.register_scenario(_scenario(name="b"))
        assert runner.get_scenario_count() == 2

    def test_rejects_non_scenario(self):
        with pytest.raises(RegistrationError):
            _runner().register_scenario("not a scenario")

    def test_run_scenario_unregistered(self):
        runner = _runner()
        outcome = asyncio.run(runner.run_scenario(_scenario(validate=lambda o: o["result"] == 10)))
        assert outcome.succeeded
        assert runner.get_scenario_count() == 0

    def test_outcome_carries_logs(self):
        runner = _runner()
        outcome = asyncio.run(runner.run_scenario(_scenario()))
        assert outcome.logs[0] == "[INFO] Starting sandbox execution: test-simulations"

    def test_concurrent_scenarios_keep_own_logs(self):
        async def slow(data):
            await asyncio.sleep(0.05)
            return data

        async def both():
            runner = _runner()
            return await asyncio.gather(
                runner.run_scenario(_scenario(name="slow", run=slow)),
                runner.run_scenario(_scenario(name="fast")),
            )

        slow_outcome, fast_outcome = asyncio.run(both())
        assert slow_outcome.succeeded and fast_outcome.succeeded
        assert len(slow_outcome.logs) == 2
        assert len(fast_outcome.logs) == 2
        assert f'"duration": {slow_outcome.elapsed_ms}' in slow_outcome.logs[-1]
        assert f'"duration": {fast_outcome.elapsed_ms}' in fast_outcome.logs[-1]

    def test_summary_counts(self):
        runner = _runner()
        runner.register_scenario(_scenario(name="ok", validate=lambda o: True))
        runner.register_scenario(_scenario(name="bad", validate=lambda o: False))
        runner.register_scenario(_scenario(name="none"))
        outcomes = asyncio.run(runner.run_all())
        assert SimulationSummary(outcomes).counts() == {
            "total": 3, "successful": 2, "failed": 1,
        }


class TestRunSimulations:
    def test_convenience_wrapper(self):
        outcomes = asyncio.run(run_simulations(
            [_scenario(validate=lambda out: out["result"] == 10)],
            logger=MagicMock(spec=logging.Logger),
        ))
        assert outcomes[0].scenario_name == "add-five"
        assert outcomes[0].succeeded

    def test_validator_error_is_logged_as_warning(self, caplog):
        def validate(out):
            raise ValueError("schema mismatch")

        with caplog.at_level(logging.WARNING, logger="transparency_sandbox"):
            asyncio.run(run_simulations(
                [_scenario(validate=validate)],
                logger=MagicMock(spec=logging.Logger),
            ))
        assert any(
            "Validation failed for scenario: add-five" in r.getMessage()
            for r in caplog.records
        )
