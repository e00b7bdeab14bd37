"""
Execution contexts — separate WHAT (pure pipeline stages) from HOW (observability).

Pipeline stages are pure functions returning Result[T]. An ExecutionContext
runs a whole composed computation and adds cross-cutting behaviour around it
without the stages knowing:

    ctx = LoggingExecutionContext(operation="EncodeCredential")
    result = ctx.execute(lambda: to_barcode(record, key, ...))
"""

from __future__ import annotations

import time
from typing import Callable, Protocol, TypeVar, runtime_checkable

import structlog

from railway.failure import ErrorCode, FailureDescription
from railway.result import Failure, Result

T = TypeVar("T")
log = structlog.get_logger()


@runtime_checkable
class ExecutionContext(Protocol):
    """Anything with execute(computation) -> Result[T] is an execution context."""

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]: ...


class NoOpExecutionContext:
    """Passthrough execution context — runs the computation as is (tests, pure calls)."""

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        return computation()


class LoggingExecutionContext:
    """
    Execution context that logs start, duration, and outcome of a computation.

    An exception escaping the computation is a bug in a stage (stages are
    expected to return failures, not raise); it is logged and converted to
    UNKNOWN_ERROR so callers still receive a Result.

        ctx = LoggingExecutionContext(operation="DecodeCredential")
    """

    def __init__(
        self,
        inner: ExecutionContext | None = None,
        operation: str = "unknown",
    ) -> None:
        self._inner = inner or NoOpExecutionContext()
        self._operation = operation

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        log.debug("execution.started", operation=self._operation)
        start = time.monotonic()

        try:
            result = self._inner.execute(computation)
        except Exception as e:
            elapsed = time.monotonic() - start
            log.error(
                "execution.crashed",
                operation=self._operation,
                elapsed_seconds=round(elapsed, 3),
                error=str(e),
            )
            return Failure(
                FailureDescription(
                    ErrorCode.UNKNOWN_ERROR,
                    f"Execution failed: {e}",
                    e,
                )
            )

        elapsed = time.monotonic() - start
        if result.is_success():
            log.info(
                "execution.completed",
                operation=self._operation,
                elapsed_seconds=round(elapsed, 3),
            )
        else:
            failure = result.error()
            log.warning(
                "execution.failed",
                operation=self._operation,
                elapsed_seconds=round(elapsed, 3),
                error_code=failure.code.value,
                error_count=max(1, len(failure.details)),
            )
        return result
