"""
Ports — Protocol-based interfaces for the pipeline's stages.

These define WHAT the pipeline needs (contracts) without specifying HOW
it's done. Following hexagonal architecture:

  Domain ← Ports (protocols) ← Adapters (implementations)

Each port is a Protocol (structural typing), so adapters and test fakes
satisfy the contract simply by implementing the methods.

Encode path:  RecordValidator → TokenSigner → Compressor → TextCodec → CapacityPlanner
Decode path:  TextCodec → Compressor → TokenVerifier (→ RecordValidator)
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from railway.result import Result

from prc_codec.domain.models import (
    BarcodeArtifact,
    CredentialRecord,
    ErrorCorrectionLevel,
    KeyMaterial,
    SignedToken,
)


@runtime_checkable
class RecordValidator(Protocol):
    """
    Port: structural check of a record (required fields, lengths, patterns, enums).

    Returns Success(record) or Failure(SCHEMA_VIOLATION) listing every
    violation. Cross-field business rules are NOT checked here.
    """

    unchecked: bool

    def validate(self, record: CredentialRecord) -> Result[CredentialRecord]: ...

    def validate_payload(self, payload: Mapping[str, Any]) -> Result[Mapping[str, Any]]: ...


@runtime_checkable
class TokenSigner(Protocol):
    """Port: validate a record and sign it into a compact three-segment token."""

    def sign(self, record: CredentialRecord, key: KeyMaterial) -> Result[SignedToken]: ...


@runtime_checkable
class TokenVerifier(Protocol):
    """
    Port: verify a compact token against key material and return its record.

    Rejects algorithm or key id mismatches before touching the signature.
    """

    def verify(self, token: str, key: KeyMaterial) -> Result[CredentialRecord]: ...

    def inspect(self, token: str) -> Result[SignedToken]: ...


@runtime_checkable
class Compressor(Protocol):
    """Port: lossless compression of the token text and its exact inverse."""

    def compress(self, token: str) -> Result[bytes]: ...

    def decompress(self, data: bytes) -> Result[str]: ...


@runtime_checkable
class TextCodec(Protocol):
    """Port: bytes ↔ QR-alphanumeric-safe text."""

    def encode(self, data: bytes) -> Result[str]: ...

    def decode(self, text: str) -> Result[bytes]: ...


@runtime_checkable
class CapacityPlanner(Protocol):
    """Port: choose the smallest QR version that holds the encoded data."""

    def select_version(
        self, data: str, level: ErrorCorrectionLevel | str = ErrorCorrectionLevel.L
    ) -> Result[int]: ...

    def plan(
        self, data: str, level: ErrorCorrectionLevel | str = ErrorCorrectionLevel.L
    ) -> Result[BarcodeArtifact]: ...


@runtime_checkable
class KeyResolver(Protocol):
    """Port: look up key material (active or retired) by key id."""

    def resolve(self, kid: str) -> Result[KeyMaterial]: ...
