"""
Failure description — structured error information for the failure track.

Every stage of the credential pipeline reports problems as a FailureDescription
instead of raising. The ErrorCode tells the calling workflow *what kind* of
problem happened (so it can render an actionable message), and `details`
carries the complete list of field-level violations when there is more than one.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique
from typing import Optional


@unique
class ErrorCode(Enum):
    """
    Structured error codes for the failure track.

    Grouped by who can act on them:
    - Caller-recoverable: SCHEMA_VIOLATION, INVARIANT_VIOLATION, CAPACITY_EXCEEDED
    - Trust failures: SIGNING_FAILURE, VERIFICATION_FAILURE, COMPRESSION_FAILURE, CODEC_FAILURE
    - Setup problems: KEY_MATERIAL_ERROR, KEY_NOT_FOUND, SCHEMA_UNAVAILABLE, CONFIGURATION_ERROR
    """

    # --- Caller can fix the input and retry ---
    SCHEMA_VIOLATION = "SCHEMA_VIOLATION"
    """Record is missing fields or breaks a length/format/enumeration constraint."""

    INVARIANT_VIOLATION = "INVARIANT_VIOLATION"
    """Cross-field business rule broken (date ordering, combined institution length)."""

    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    """Encoded data does not fit any QR version at the requested error-correction level."""

    # --- The credential cannot be produced or trusted ---
    SIGNING_FAILURE = "SIGNING_FAILURE"
    """Key material unusable for signing; never falls back to an unsigned token."""

    VERIFICATION_FAILURE = "VERIFICATION_FAILURE"
    """Malformed token, algorithm/key id mismatch or bad signature: do not trust."""

    COMPRESSION_FAILURE = "COMPRESSION_FAILURE"
    """Corrupt, truncated or oversized compressed stream."""

    CODEC_FAILURE = "CODEC_FAILURE"
    """Malformed Base45 input or an encoder output outside the QR alphabet."""

    # --- Setup / wiring problems ---
    KEY_MATERIAL_ERROR = "KEY_MATERIAL_ERROR"
    """Key pair could not be generated, loaded or matched to its algorithm."""

    KEY_NOT_FOUND = "KEY_NOT_FOUND"
    """No key material registered under the token's key id."""

    SCHEMA_UNAVAILABLE = "SCHEMA_UNAVAILABLE"
    """Schema document could not be loaded; validation refuses to run."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """Invalid setting or argument (unknown algorithm, unknown error-correction level)."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    """Unexpected/unclassified failures."""

    @property
    def recoverable(self) -> bool:
        """True when the caller can fix the input (re-entry, shorter fields, higher level)."""
        return self in _RECOVERABLE


_RECOVERABLE = frozenset(
    {
        ErrorCode.SCHEMA_VIOLATION,
        ErrorCode.INVARIANT_VIOLATION,
        ErrorCode.CAPACITY_EXCEEDED,
    }
)


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor carrying error code, message, violation details,
    optional exception, and timestamp.

    >>> desc = FailureDescription(ErrorCode.SCHEMA_VIOLATION, "Record is invalid", details=("/prc/fn: too long",))
    >>> desc.code
    <ErrorCode.SCHEMA_VIOLATION: 'SCHEMA_VIOLATION'>
    >>> desc.details
    ('/prc/fn: too long',)
    """

    code: ErrorCode
    message: str
    exception: Optional[BaseException] = field(default=None, repr=False)
    details: tuple[str, ...] = ()
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def describe(self) -> str:
        """One human-readable line per violation, prefixed by the summary message."""
        if not self.details:
            return self.message
        return "\n".join([self.message, *(f"  - {d}" for d in self.details)])

    def full_stack_trace(self) -> str:
        """Message plus the formatted exception chain, if an exception was captured."""
        if self.exception is None:
            return self.describe()
        tb = "".join(traceback.format_exception(type(self.exception), self.exception, self.exception.__traceback__))
        return f"{self.describe()}\n{tb}"
