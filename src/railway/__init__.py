"""
Railway-Oriented Programming (ROP) support for the PRC credential pipeline.

Explicit, composable error handling — pipeline stages return Result instead of raising.

    from railway import Result, ErrorCode

    def check_capacity(data: str) -> Result[str]:
        if len(data) > 4296:
            return Result.failure(ErrorCode.CAPACITY_EXCEEDED, "Data too large for QR code")
        return Result.success(data)
"""

from railway.result import Result, Success, Failure
from railway.failure import ErrorCode, FailureDescription
from railway.execution import (
    ExecutionContext,
    NoOpExecutionContext,
    LoggingExecutionContext,
)
from railway.assertions import ResultAssertions

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ExecutionContext",
    "NoOpExecutionContext",
    "LoggingExecutionContext",
    "ResultAssertions",
]
