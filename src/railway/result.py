"""
Result monad — the failure track the whole credential pipeline runs on.

A Result[T] is either Success(value: T) or Failure(error: FailureDescription).
Stages return Result and never raise for expected problems, so the encode
and decode paths read as a single chain:

    ┌──────────┐  flat_map  ┌──────────┐  flat_map  ┌──────────┐  flat_map  ┌─────────┐
    │ validate │──Success──▶│   sign   │──Success──▶│ compress │──Success──▶│ base45  │──▶ Result[T]
    └────┬─────┘            └────┬─────┘            └────┬─────┘            └────┬────┘
         │ Failure               │ Failure               │ Failure               │ Failure
         └───────────────────────┴───────────────────────┴───────────────────────┴──▶ Result[T]

A failing stage short-circuits everything after it, so a half-signed or
half-encoded value can never leak out of the pipeline.

Each track implements the operations itself: Success applies the function,
Failure hands its description on untouched.

    >>> Result.success(21).map(lambda x: x * 2).value()
    42
    >>> Result.failure(ErrorCode.CODEC_FAILURE, "bad input").map(lambda x: x * 2).is_failure()
    True
"""

from __future__ import annotations

from typing import Any, Callable, Generic, Optional, TypeVar

from railway.failure import ErrorCode, FailureDescription

T = TypeVar("T")
U = TypeVar("U")


class Result(Generic[T]):
    """Base of the two tracks. Build values with the static factories, not the subclasses."""

    __slots__ = ()

    def is_success(self) -> bool:
        return isinstance(self, Success)

    def is_failure(self) -> bool:
        return isinstance(self, Failure)

    def value(self) -> T:
        """Success value. Raises ValueError on a Failure; outside tests, prefer flat_map or match/case."""
        raise NotImplementedError

    def error(self) -> FailureDescription:
        """Failure description. Raises ValueError on a Success."""
        raise NotImplementedError

    def map(self, mapper: Callable[[T], U]) -> Result[U]:
        """Transform the success value."""
        raise NotImplementedError

    def flat_map(self, mapper: Callable[[T], Result[U]]) -> Result[U]:
        """
        Chain a Result-returning stage. This is the operator that connects the pipeline:

            codec.decode(data).flat_map(compressor.decompress).flat_map(verify)
        """
        raise NotImplementedError

    def ensure(
        self,
        predicate: Callable[[T], bool],
        error: FailureDescription | ErrorCode,
        message: str = "",
    ) -> Result[T]:
        """
        Turn a success whose value fails `predicate` into a failure.

            Result.success(key).ensure(lambda k: k.active, ErrorCode.SIGNING_FAILURE, "Key is retired")
        """
        description = FailureDescription(code=error, message=message) if isinstance(error, ErrorCode) else error
        return self.flat_map(lambda v: self if predicate(v) else Failure(description))

    def peek(self, action: Callable[[T], Any]) -> Result[T]:
        """Run a side effect (usually logging) on a success value."""
        return self

    def peek_failure(self, action: Callable[[FailureDescription], Any]) -> Result[T]:
        """Run a side effect on a failure description."""
        return self

    # ──────────────────────── Static Factories ────────────────────────

    @staticmethod
    def success(value: T) -> Result[T]:
        return Success(value)

    @staticmethod
    def failure_from(error: FailureDescription) -> Result[T]:
        return Failure(error)

    @staticmethod
    def failure(
        code: ErrorCode,
        message: str,
        exception: Optional[BaseException] = None,
        details: tuple[str, ...] | list[str] = (),
    ) -> Result[T]:
        """
        Build a failure; `details` carries one entry per violation.

            Result.failure(ErrorCode.CAPACITY_EXCEEDED, "Data too large for QR code")
            Result.failure(ErrorCode.INVARIANT_VIOLATION, "Business rules failed", details=errors)
        """
        return Failure(FailureDescription(code=code, message=message, exception=exception, details=tuple(details)))

    @staticmethod
    def from_computation(
        computation: Callable[[], T],
        error_code: ErrorCode,
        error_message: str,
    ) -> Result[T]:
        """
        Adapter-boundary guard: run `computation` and turn any exception it
        raises (zlib.error, jwt.InvalidTokenError, ValueError, ...) into a
        failure with `error_code`. The exception text is appended to the
        message and the exception itself is kept on the description.

            return Result.from_computation(
                lambda: zlib.compress(data, 9),
                ErrorCode.COMPRESSION_FAILURE,
                "Failed to compress token",
            )
        """
        try:
            value = computation()
        except Exception as e:
            return Result.failure(error_code, f"{error_message}: {e}", e)
        return Success(value)

    @staticmethod
    def from_optional(
        value: Optional[T],
        error_message: str,
        error_code: ErrorCode = ErrorCode.KEY_NOT_FOUND,
    ) -> Result[T]:
        """None becomes a failure; lookups default to KEY_NOT_FOUND."""
        if value is None:
            return Result.failure(error_code, error_message)
        return Success(value)

    def __bool__(self) -> bool:
        """`if result:` holds only on Success."""
        return self.is_success()


class Success(Result[T]):
    """The success track — wraps a value of type T."""

    __slots__ = ("_value",)
    __match_args__ = ("_value",)

    def __init__(self, value: T) -> None:
        if value is None:
            raise TypeError("Success value must not be None")
        self._value = value

    def value(self) -> T:
        return self._value

    def error(self) -> FailureDescription:
        raise ValueError(f"Cannot get error from a Success: {self._value!r}")

    def map(self, mapper: Callable[[T], U]) -> Result[U]:
        return Success(mapper(self._value))

    def flat_map(self, mapper: Callable[[T], Result[U]]) -> Result[U]:
        return mapper(self._value)

    def peek(self, action: Callable[[T], Any]) -> Result[T]:
        action(self._value)
        return self

    def __repr__(self) -> str:
        return f"Success({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Success):
            return self._value == other._value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(("Success", self._value))


class Failure(Result[T]):
    """The failure track — wraps a FailureDescription. Equality ignores timestamp and exception."""

    __slots__ = ("_error",)
    __match_args__ = ("_error",)

    def __init__(self, error: FailureDescription) -> None:
        if error is None:
            raise TypeError("Failure error must not be None")
        self._error = error

    def value(self) -> T:
        raise ValueError(f"Cannot get value from a Failure: {self._error.message}")

    def error(self) -> FailureDescription:
        return self._error

    def map(self, mapper: Callable[[T], U]) -> Result[U]:
        return Failure(self._error)

    def flat_map(self, mapper: Callable[[T], Result[U]]) -> Result[U]:
        return Failure(self._error)

    def peek_failure(self, action: Callable[[FailureDescription], Any]) -> Result[T]:
        action(self._error)
        return self

    def _key(self) -> tuple[ErrorCode, str]:
        return self._error.code, self._error.message

    def __repr__(self) -> str:
        return f"Failure({self._error.code.value}: {self._error.message!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Failure):
            return self._key() == other._key()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(("Failure", *self._key()))
