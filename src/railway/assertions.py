"""
Test assertions for Result values.

    from railway import ErrorCode, ResultAssertions

    def test_rejects_long_family_name():
        result = validator.validate(record_with_long_name)
        ResultAssertions.assert_failure(result, ErrorCode.SCHEMA_VIOLATION)
        ResultAssertions.assert_details_contain(result, "/prc/fn")
"""

from __future__ import annotations

from typing import TypeVar

from railway.failure import ErrorCode, FailureDescription
from railway.result import Result

T = TypeVar("T")


def _suffix(message: str) -> str:
    return f" ({message})" if message else ""


def _require_failure(result: Result[T], message: str = "") -> FailureDescription:
    assert result.is_failure(), f"Expected Failure, got Success({result.value()!r}){_suffix(message)}"
    return result.error()


class ResultAssertions:
    """Assertions that print the whole FailureDescription when they trip."""

    @staticmethod
    def assert_success(result: Result[T], message: str = "") -> T:
        """Assert the Result is a Success and return the value."""
        if result.is_failure():
            error = result.error()
            raise AssertionError(
                f"Expected Success, got {error.code.value}: {error.describe()}{_suffix(message)}"
            )
        return result.value()

    @staticmethod
    def assert_failure(
        result: Result[T],
        expected_code: ErrorCode | None = None,
        message: str = "",
    ) -> FailureDescription:
        """Assert the Result is a Failure, optionally with `expected_code`, and return the description."""
        error = _require_failure(result, message)
        if expected_code is not None and error.code != expected_code:
            raise AssertionError(
                f"Expected {expected_code.value}, got {error.code.value}: {error.describe()}{_suffix(message)}"
            )
        return error

    @staticmethod
    def assert_failure_message_contains(result: Result[T], substring: str) -> None:
        """Case-insensitive check on the summary message."""
        error = _require_failure(result)
        assert substring.lower() in error.message.lower(), (
            f"{substring!r} not found in failure message {error.message!r}"
        )

    @staticmethod
    def assert_details_contain(result: Result[T], substring: str) -> None:
        """At least one violation detail must contain `substring`."""
        details = _require_failure(result).details
        assert any(substring in detail for detail in details), (
            f"{substring!r} not found in any detail of {details!r}"
        )
