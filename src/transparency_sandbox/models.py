"""Core data models for the transparency sandbox.

Defines the records produced by the harness:
- Error descriptions (what went wrong in a unit of work)
- Execution outcomes (one sandboxed call)
- Diagnostic outcomes (one classified check)
- Simulation outcomes (one scenario run, optionally validated)
- Summaries (aggregate counts over one run)

All records are immutable once created.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# --- Enums ---


class LogLevel(enum.StrEnum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @classmethod
    def _missing_(cls, value: object) -> LogLevel | None:
        if isinstance(value, str):
            lowered = value.lower()
            if lowered == "warning":
                return cls.WARN
            for member in cls:
                if member.value == lowered:
                    return member
        return None

    @property
    def severity(self) -> int:
        return _LEVEL_ORDER.index(self)

    @property
    def logging_level(self) -> int:
        """The matching stdlib ``logging`` level number."""
        return _STDLIB_LEVELS[self]

    def enables(self, level: LogLevel) -> bool:
        """Whether a message at *level* passes a minimum of ``self``."""
        return level.severity >= self.severity


_LEVEL_ORDER = [LogLevel.DEBUG, LogLevel.INFO, LogLevel.WARN, LogLevel.ERROR]

_STDLIB_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class ErrorKind(enum.StrEnum):
    TIMEOUT = "timeout"
    EXECUTION = "execution"
    VALIDATION = "validation"


class DiagnosticStatus(enum.StrEnum):
    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"


# --- Errors ---


class ErrorInfo(BaseModel):
    """Description of a failure captured inside the sandbox.

    The original exception object is kept for callers that want to
    inspect or re-raise it, but it is never serialized.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: ErrorKind
    message: str
    error_type: str = ""
    exception: BaseException | None = Field(default=None, exclude=True, repr=False)

    @classmethod
    def from_exception(cls, exc: BaseException, kind: ErrorKind) -> ErrorInfo:
        return cls(
            kind=kind,
            message=str(exc) or type(exc).__name__,
            error_type=type(exc).__name__,
            exception=exc,
        )


# --- Execution ---


class ExecutionOutcome(BaseModel):
    """Result of running one unit of work through the executor.

    Exactly one of ``value`` / ``failure`` is meaningful: a successful
    outcome never carries a failure, and a failed outcome never carries
    a value. ``None`` is a legitimate work result, so success is keyed
    on ``failure`` rather than on ``value``.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    succeeded: bool
    value: Any = None
    failure: ErrorInfo | None = None
    elapsed_ms: int = Field(default=0, ge=0)
    logs: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _value_xor_failure(self) -> ExecutionOutcome:
        if self.succeeded and self.failure is not None:
            raise ValueError("a successful outcome cannot carry a failure")
        if not self.succeeded:
            if self.failure is None:
                raise ValueError("a failed outcome must carry a failure")
            if self.value is not None:
                raise ValueError("a failed outcome cannot carry a value")
        return self

    def raise_for_failure(self) -> Any:
        """Return the value, or re-raise the captured failure.

        Timeouts surface as ``ExecutionTimeoutError``; anything else as
        ``ExecutionError`` chained from the original exception.
        """
        if self.succeeded:
            return self.value

        from transparency_sandbox.runner.executor import (
            ExecutionError,
            ExecutionTimeoutError,
        )

        assert self.failure is not None
        if self.failure.kind is ErrorKind.TIMEOUT:
            if isinstance(self.failure.exception, ExecutionTimeoutError):
                raise self.failure.exception
            raise ExecutionTimeoutError(self.failure.message)
        raise ExecutionError(self.failure.message) from self.failure.exception


# --- Diagnostics ---


class DiagnosticOutcome(BaseModel):
    """One check's classified result."""

    model_config = ConfigDict(frozen=True)

    name: str
    status: DiagnosticStatus
    message: str
    elapsed_ms: int = Field(default=0, ge=0)
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class DiagnosticSummary:
    """Aggregate counts over one diagnostic run."""

    outcomes: Sequence[DiagnosticOutcome] = field(default_factory=tuple)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def passed(self) -> int:
        return sum(1 for o in self.outcomes if o.status is DiagnosticStatus.PASS)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status is DiagnosticStatus.FAIL)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.status is DiagnosticStatus.SKIP)

    @property
    def all_passed(self) -> bool:
        return self.failed == 0 and self.total > 0

    def counts(self) -> dict[str, int]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
        }


# --- Simulations ---


class SimulationOutcome(BaseModel):
    """One scenario's classified result.

    ``validated`` is ``None`` when the scenario had no validator.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    scenario_name: str
    succeeded: bool
    output: Any = None
    failure: ErrorInfo | None = None
    elapsed_ms: int = Field(default=0, ge=0)
    validated: bool | None = None
    validation_error: ErrorInfo | None = None
    logs: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _output_xor_failure(self) -> SimulationOutcome:
        if self.failure is not None:
            if self.succeeded:
                raise ValueError("a successful outcome cannot carry a failure")
            if self.output is not None:
                raise ValueError("a failed outcome cannot carry an output")
            if self.validated is not None or self.validation_error is not None:
                raise ValueError("a failed run cannot have been validated")
            return self
        if self.succeeded != (self.validated is not False):
            raise ValueError("succeeded must agree with validated")
        if self.validation_error is not None and self.validated is not False:
            raise ValueError("a validation error implies validated=False")
        return self


@dataclass(frozen=True)
class SimulationSummary:
    """Aggregate counts over one simulation run."""

    outcomes: Sequence[SimulationOutcome] = field(default_factory=tuple)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.succeeded)

    @property
    def all_passed(self) -> bool:
        return self.failed == 0 and self.total > 0

    def counts(self) -> dict[str, int]:
        return {
            "total": self.total,
            "successful": self.succeeded,
            "failed": self.failed,
        }
