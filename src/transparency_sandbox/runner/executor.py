"""SandboxExecutor: runs one unit of work under a deadline.

The executor is the only boundary that turns exceptions into data:
whatever the work does (return, raise, hang), ``execute()`` returns an
``ExecutionOutcome`` rather than raising.  Work may be a plain callable or
return an awaitable; it runs in-process on the current event loop and
is raced against the deadline.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import json
import logging
import time
from collections.abc import Callable
from typing import Any

from opentelemetry.trace import Status, StatusCode

from transparency_sandbox.models import ErrorInfo, ErrorKind, ExecutionOutcome, LogLevel
from transparency_sandbox.telemetry import get_tracer

DEFAULT_TIMEOUT_MS = 30_000


class SandboxError(Exception):
    """Base class for sandbox errors."""


class ExecutionError(SandboxError):
    """Raised by ``ExecutionOutcome.raise_for_failure()`` when work failed."""


class ExecutionTimeoutError(ExecutionError, TimeoutError):
    """The deadline expired before the work settled."""

    def __init__(self, timeout_ms: int | str) -> None:
        if isinstance(timeout_ms, int):
            message = f"Sandbox execution timeout after {timeout_ms}ms"
        else:
            message = timeout_ms
        super().__init__(message)


class RegistrationError(SandboxError, ValueError):
    """Raised when a check or scenario is malformed."""


def _check_timeout(timeout_ms: object) -> None:
    if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int) or timeout_ms <= 0:
        raise ValueError(f"timeout_ms must be a positive integer, got {timeout_ms!r}")


async def _invoke(work: Callable[[], Any]) -> Any:
    result = work()
    if inspect.isawaitable(result):
        result = await result
    return result


def _discard(task: asyncio.Future[Any]) -> None:
    """Retrieve an abandoned task's result so it is never reported."""
    if not task.cancelled():
        task.exception()


class SandboxExecutor:
    """Runs units of work with a deadline and a per-call log trace.

    Each ``execute()`` call starts with an empty log buffer; the outcome
    carries a snapshot of it.  Every log line is buffered, but only lines
    at or above ``log_level`` are forwarded to ``logger``.  Forwarding
    failures never affect the outcome.
    """

    def __init__(
        self,
        name: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        log_level: LogLevel | str = LogLevel.INFO,
        isolated: bool = True,
        logger: logging.Logger | logging.LoggerAdapter[Any] | None = None,
    ) -> None:
        _check_timeout(timeout_ms)
        self._name = name
        self._timeout_ms = timeout_ms
        self._log_level = LogLevel(log_level)
        self._isolated = isolated
        self._logger = logger if logger is not None else logging.getLogger(__name__)
        self._logs: list[str] = []

        self._forward(
            LogLevel.INFO,
            f'Sandbox "{name}" initialized',
            {"timeout": timeout_ms, "isolated": isolated},
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    @property
    def log_level(self) -> LogLevel:
        return self._log_level

    @property
    def isolated(self) -> bool:
        return self._isolated

    def get_logs(self) -> list[str]:
        """Copy of the log buffer from the most recently started ``execute()``."""
        return list(self._logs)

    async def execute(
        self,
        work: Callable[[], Any],
        *,
        timeout_ms: int | None = None,
    ) -> ExecutionOutcome:
        """Run *work* to completion or until the deadline expires.

        Each call owns its own log buffer, so overlapping calls on one
        executor never see each other's lines.
        """
        if timeout_ms is not None:
            _check_timeout(timeout_ms)
        deadline_ms = timeout_ms if timeout_ms is not None else self._timeout_ms
        logs: list[str] = []
        self._logs = logs

        tracer = get_tracer(__name__)
        with tracer.start_as_current_span(
            "sandbox.execute",
            attributes={"sandbox.name": self._name, "sandbox.timeout_ms": deadline_ms},
        ) as span:
            self._log(logs, LogLevel.INFO, f"Starting sandbox execution: {self._name}")
            outcome = await self._race(work, deadline_ms, logs)
            span.set_attribute("sandbox.elapsed_ms", outcome.elapsed_ms)
            if outcome.failure is not None:
                span.set_attribute("sandbox.error_kind", outcome.failure.kind.value)
                span.set_status(Status(StatusCode.ERROR, outcome.failure.message))
            else:
                span.set_status(Status(StatusCode.OK))
        return outcome

    async def _race(
        self, work: Callable[[], Any], deadline_ms: int, logs: list[str],
    ) -> ExecutionOutcome:
        start = time.monotonic()
        task = asyncio.ensure_future(_invoke(work))
        try:
            done, _ = await asyncio.wait({task}, timeout=deadline_ms / 1000)
        except asyncio.CancelledError:
            task.cancel()
            task.add_done_callback(_discard)
            raise

        value: Any = None
        failure: ErrorInfo | None = None
        if task in done:
            if task.cancelled():
                failure = ErrorInfo(
                    kind=ErrorKind.EXECUTION,
                    message="Sandbox work was cancelled",
                    error_type="CancelledError",
                )
            elif task.exception() is not None:
                failure = ErrorInfo.from_exception(task.exception(), ErrorKind.EXECUTION)
            else:
                value = task.result()
        else:
            task.cancel()
            task.add_done_callback(_discard)
            failure = ErrorInfo.from_exception(
                ExecutionTimeoutError(deadline_ms), ErrorKind.TIMEOUT,
            )

        elapsed_ms = max(0, round((time.monotonic() - start) * 1000))

        if failure is None:
            self._log(
                logs,
                LogLevel.INFO,
                "Sandbox execution completed successfully",
                {"duration": elapsed_ms},
            )
            return ExecutionOutcome(
                succeeded=True,
                value=value,
                elapsed_ms=elapsed_ms,
                logs=tuple(logs),
            )

        self._log(logs, LogLevel.ERROR, "Sandbox execution failed", {"error": failure.message})
        return ExecutionOutcome(
            succeeded=False,
            failure=failure,
            elapsed_ms=elapsed_ms,
            logs=tuple(logs),
        )

    def _log(
        self,
        logs: list[str],
        level: LogLevel,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        entry = f"[{level.value.upper()}] {message}"
        if metadata:
            entry = f"{entry} {json.dumps(metadata, default=str)}"
        logs.append(entry)
        self._forward(level, message, metadata)

    def _forward(
        self, level: LogLevel, message: str, metadata: dict[str, Any] | None = None,
    ) -> None:
        if not self._log_level.enables(level):
            return
        context = {"sandbox": self._name, **(metadata or {})}
        with contextlib.suppress(Exception):
            self._logger.log(level.logging_level, message, extra={"context": context})


async def run_in_sandbox(
    name: str,
    work: Callable[[], Any],
    *,
    timeout_ms: int | None = None,
    log_level: LogLevel | str = LogLevel.INFO,
    isolated: bool = True,
    logger: logging.Logger | logging.LoggerAdapter[Any] | None = None,
) -> ExecutionOutcome:
    """Create a throwaway executor and run a single unit of work.

    ``timeout_ms`` defaults to ``DEFAULT_TIMEOUT_MS``.
    """
    sandbox = SandboxExecutor(
        name,
        timeout_ms=DEFAULT_TIMEOUT_MS if timeout_ms is None else timeout_ms,
        log_level=log_level,
        isolated=isolated,
        logger=logger,
    )
    return await sandbox.execute(work)
