"""
Tests for the Result monad as the credential pipeline uses it.

Tests cover:
  - Success/Failure creation and introspection
  - map, flat_map, ensure transformations
  - Side effects (peek, peek_failure)
  - Static factories (from_computation, from_optional)
  - Pattern matching (match/case)
  - Equality and repr
"""

from __future__ import annotations

import zlib

import pytest

from railway import ErrorCode, Failure, FailureDescription, Result, Success


# ═══════════════════════════════════════════════════════════════
# 1. Creation & Introspection
# ═══════════════════════════════════════════════════════════════


class TestSuccessCreation:
    def test_success_wraps_value(self):
        result = Result.success(b"\x78\xda")
        assert result.is_success()
        assert not result.is_failure()
        assert result.value() == b"\x78\xda"

    def test_success_accepts_empty_values(self):
        assert Result.success("").value() == ""
        assert Result.success(()).value() == ()

    def test_success_rejects_none(self):
        with pytest.raises(TypeError, match="must not be None"):
            Success(None)

    def test_success_is_truthy(self):
        assert Result.success(42)


class TestFailureCreation:
    def test_failure_with_code_and_message(self):
        result = Result.failure(ErrorCode.CODEC_FAILURE, "invalid Base45 character")
        assert result.is_failure()
        assert result.error().code == ErrorCode.CODEC_FAILURE
        assert result.error().message == "invalid Base45 character"

    def test_failure_with_details_keeps_all_of_them(self):
        result = Result.failure(ErrorCode.SCHEMA_VIOLATION, "2 errors", details=["/prc/fn: a", "/prc/gn: b"])
        assert result.error().details == ("/prc/fn: a", "/prc/gn: b")

    def test_failure_from_description(self):
        desc = FailureDescription(ErrorCode.KEY_NOT_FOUND, "unknown kid")
        assert Result.failure_from(desc).error() == desc

    def test_failure_rejects_none(self):
        with pytest.raises(TypeError, match="must not be None"):
            Failure(None)

    def test_failure_is_falsy(self):
        assert not Result.failure(ErrorCode.CODEC_FAILURE, "bad")


class TestValueExtraction:
    def test_value_on_failure_raises(self):
        with pytest.raises(ValueError, match="Cannot get value from a Failure"):
            Result.failure(ErrorCode.KEY_NOT_FOUND, "missing").value()

    def test_error_on_success_raises(self):
        with pytest.raises(ValueError, match="Cannot get error from a Success"):
            Result.success(42).error()


# ═══════════════════════════════════════════════════════════════
# 2. Transformations
# ═══════════════════════════════════════════════════════════════


class TestMap:
    def test_map_transforms_success_value(self):
        assert Result.success(5).map(lambda x: x * 2).value() == 10

    def test_map_short_circuits_on_failure(self):
        calls = []
        result = Result.failure(ErrorCode.CODEC_FAILURE, "bad").map(calls.append)
        assert result.is_failure()
        assert calls == []


class TestFlatMap:
    def test_flat_map_chains_stages(self):
        result = (
            Result.success("token")
            .flat_map(lambda t: Result.success(t.encode()))
            .flat_map(lambda b: Result.success(len(b)))
        )
        assert result.value() == 5

    def test_first_failure_short_circuits_the_rest(self):
        later = []
        result = (
            Result.success("token")
            .flat_map(lambda _: Result.failure(ErrorCode.SIGNING_FAILURE, "retired key"))
            .flat_map(lambda v: Result.success(later.append(v) or v))
        )
        assert result.error().code == ErrorCode.SIGNING_FAILURE
        assert later == []


class TestEnsure:
    def test_ensure_passes_when_predicate_holds(self):
        assert Result.success(10).ensure(lambda v: v > 5, ErrorCode.CAPACITY_EXCEEDED, "too big").value() == 10

    def test_ensure_fails_with_given_code(self):
        result = Result.success(10).ensure(lambda v: v < 5, ErrorCode.CAPACITY_EXCEEDED, "too big")
        assert result.error().code == ErrorCode.CAPACITY_EXCEEDED
        assert result.error().message == "too big"

    def test_ensure_accepts_description(self):
        desc = FailureDescription(ErrorCode.SIGNING_FAILURE, "retired")
        assert Result.success(1).ensure(lambda _: False, desc).error() == desc


# ═══════════════════════════════════════════════════════════════
# 3. Side effects
# ═══════════════════════════════════════════════════════════════


class TestPeek:
    def test_peek_runs_on_success_only(self):
        seen = []
        Result.success(1).peek(seen.append)
        Result.failure(ErrorCode.CODEC_FAILURE, "x").peek(seen.append)
        assert seen == [1]

    def test_peek_failure_runs_on_failure_only(self):
        seen = []
        Result.success(1).peek_failure(seen.append)
        Result.failure(ErrorCode.CODEC_FAILURE, "x").peek_failure(lambda e: seen.append(e.code))
        assert seen == [ErrorCode.CODEC_FAILURE]


# ═══════════════════════════════════════════════════════════════
# 4. Factories
# ═══════════════════════════════════════════════════════════════


class TestFromComputation:
    def test_returns_success_when_no_exception(self):
        result = Result.from_computation(lambda: zlib.compress(b"x"), ErrorCode.COMPRESSION_FAILURE, "deflate")
        assert zlib.decompress(result.value()) == b"x"

    def test_library_exception_becomes_failure_with_code(self):
        result = Result.from_computation(
            lambda: zlib.decompress(b"not zlib"),
            ErrorCode.COMPRESSION_FAILURE,
            "Failed to decompress token",
        )
        error = result.error()
        assert error.code == ErrorCode.COMPRESSION_FAILURE
        assert error.message.startswith("Failed to decompress token: ")
        assert isinstance(error.exception, zlib.error)


class TestFromOptional:
    def test_value_becomes_success(self):
        assert Result.from_optional("k1", "missing").value() == "k1"

    def test_none_becomes_key_not_found_by_default(self):
        assert Result.from_optional(None, "missing").error().code == ErrorCode.KEY_NOT_FOUND

    def test_custom_code(self):
        result = Result.from_optional(None, "no kid", ErrorCode.VERIFICATION_FAILURE)
        assert result.error().code == ErrorCode.VERIFICATION_FAILURE


# ═══════════════════════════════════════════════════════════════
# 5. Pattern matching, equality, repr
# ═══════════════════════════════════════════════════════════════


class TestPatternMatching:
    def test_match_success_and_failure(self):
        def describe(result: Result[int]) -> str:
            match result:
                case Success(value):
                    return f"ok {value}"
                case Failure(error):
                    return f"err {error.code.value}"
            return "unreachable"

        assert describe(Result.success(3)) == "ok 3"
        assert describe(Result.failure(ErrorCode.CODEC_FAILURE, "x")) == "err CODEC_FAILURE"


class TestEqualityAndRepr:
    def test_successes_compare_by_value(self):
        assert Result.success(1) == Result.success(1)
        assert Result.success(1) != Result.success(2)

    def test_failures_compare_by_code_and_message(self):
        assert Result.failure(ErrorCode.CODEC_FAILURE, "x") == Result.failure(ErrorCode.CODEC_FAILURE, "x")
        assert Result.failure(ErrorCode.CODEC_FAILURE, "x") != Result.failure(ErrorCode.COMPRESSION_FAILURE, "x")

    def test_success_never_equals_failure(self):
        assert Result.success(1) != Result.failure(ErrorCode.CODEC_FAILURE, "1")

    def test_repr(self):
        assert repr(Result.success(1)) == "Success(1)"
        assert repr(Result.failure(ErrorCode.CODEC_FAILURE, "bad")) == "Failure(CODEC_FAILURE: 'bad')"
