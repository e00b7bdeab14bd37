"""
JWT adapter — sign PRC records into compact tokens and verify them back.

Adapter layer — implements the TokenSigner and TokenVerifier ports using
PyJWT (with its cryptography backend).

Token layout:
  header  {"alg": <RS256|RS384|RS512|ES256>, "kid": <kid>, "typ": "JWT"}
  payload {"jti": <uuid4>, "sid": "eessi:prc:1.0", "prc": {...}, "rid"?: <url>}

No iat, exp or nbf claim is ever added; a PRC's validity lives in its own
sd/ed/xd dates, and every extra claim costs QR capacity.

Signing gates, in order:
  schema (SCHEMA_VIOLATION) → business rules (INVARIANT_VIOLATION) → key checks (SIGNING_FAILURE)

Verification gates, in order:
  compact form → header alg → header kid → signature   (all VERIFICATION_FAILURE)
  → payload schema (SCHEMA_VIOLATION)
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Mapping
from typing import Any

import jwt
import structlog
from jwt.utils import base64url_decode
from railway import ErrorCode
from railway.result import Result

from prc_codec.adapters.key_material import check_key_matches
from prc_codec.domain.models import DEFAULT_SCHEMA_ID, CredentialRecord, KeyMaterial, SignedToken
from prc_codec.domain.ports import RecordValidator
from prc_codec.domain.rules import check_business_rules

log = structlog.get_logger()

TOKEN_TYPE = "JWT"


def _new_jti() -> str:
    return str(uuid.uuid4())


def _signature_bytes(compact: str) -> bytes:
    return base64url_decode(compact.rsplit(".", 1)[-1].encode("ascii"))


class JwtTokenSigner:
    """Validate a record, then sign it with the given key material."""

    def __init__(
        self,
        validator: RecordValidator,
        schema_id: str = DEFAULT_SCHEMA_ID,
        jti_factory: Callable[[], str] = _new_jti,
    ) -> None:
        self._validator = validator
        self._schema_id = schema_id
        self._jti_factory = jti_factory

    def sign(self, record: CredentialRecord, key: KeyMaterial) -> Result[SignedToken]:
        return (
            self._validator.validate(record)
            .flat_map(check_business_rules)
            .flat_map(lambda valid: self._check_key(key).map(lambda _: valid))
            .flat_map(lambda valid: self._encode(valid, key))
        )

    def _check_key(self, key: KeyMaterial) -> Result[KeyMaterial]:
        def _checked() -> KeyMaterial:
            check_key_matches(key.algorithm, key.public_key)
            return key

        def _matching(_: KeyMaterial) -> Result[KeyMaterial]:
            return Result.from_computation(
                _checked,
                ErrorCode.SIGNING_FAILURE,
                f"Key {key.kid} does not match algorithm {key.algorithm.value}",
            )

        return (
            Result.success(key)
            .ensure(lambda k: k.private_key is not None, ErrorCode.SIGNING_FAILURE, f"Key {key.kid} has no private key")
            .ensure(lambda k: k.active, ErrorCode.SIGNING_FAILURE, f"Key {key.kid} is retired and cannot sign")
            .flat_map(_matching)
        )

    def _encode(self, record: CredentialRecord, key: KeyMaterial) -> Result[SignedToken]:
        payload = record.to_payload(self._jti_factory(), self._schema_id)
        header = {"alg": key.algorithm.value, "kid": key.kid, "typ": TOKEN_TYPE}

        return (
            Result.from_computation(
                lambda: jwt.encode(
                    payload,
                    key.private_key,
                    algorithm=key.algorithm.value,
                    headers={"kid": key.kid, "typ": TOKEN_TYPE},
                ),
                ErrorCode.SIGNING_FAILURE,
                f"Failed to sign token with {key.algorithm.value}",
            )
            .map(
                lambda compact: SignedToken(
                    compact=compact,
                    header=header,
                    payload=payload,
                    signature=_signature_bytes(compact),
                )
            )
            .peek(
                lambda token: log.info(
                    "signer.token_signed",
                    kid=key.kid,
                    jti=token.jti,
                    algorithm=key.algorithm.value,
                    token_length=len(token.compact),
                )
            )
        )


class JwtTokenVerifier:
    """Check a compact token's header, signature and payload against key material."""

    def __init__(self, validator: RecordValidator) -> None:
        self._validator = validator

    def verify(self, token: str, key: KeyMaterial) -> Result[CredentialRecord]:
        return (
            unverified_header(token)
            .flat_map(lambda header: _check_header(header, key))
            .flat_map(lambda _: self._decode(token, key))
            .flat_map(self._validator.validate_payload)
            .flat_map(
                lambda payload: Result.from_computation(
                    lambda: CredentialRecord.from_payload(payload),
                    ErrorCode.SCHEMA_VIOLATION,
                    "Token payload does not map to a credential record",
                )
            )
            .peek(lambda _: log.info("verifier.token_verified", kid=key.kid, algorithm=key.algorithm.value))
            .peek_failure(
                lambda err: log.warning("verifier.token_rejected", kid=key.kid, error_code=err.code.value)
            )
        )

    def inspect(self, token: str) -> Result[SignedToken]:
        """Decode header and payload WITHOUT checking the signature. Diagnostics only."""
        return Result.from_computation(
            lambda: jwt.decode_complete(token, options={"verify_signature": False}),
            ErrorCode.VERIFICATION_FAILURE,
            "Malformed token",
        ).map(
            lambda decoded: SignedToken(
                compact=token,
                header=decoded["header"],
                payload=decoded["payload"],
                signature=decoded["signature"],
            )
        )

    def _decode(self, token: str, key: KeyMaterial) -> Result[Mapping[str, Any]]:
        return Result.from_computation(
            lambda: jwt.decode(
                token,
                key.public_key,
                algorithms=[key.algorithm.value],
                options={"require": [], "verify_aud": False, "verify_iss": False},
            ),
            ErrorCode.VERIFICATION_FAILURE,
            "Token signature verification failed",
        )


def unverified_header(token: str) -> Result[Mapping[str, Any]]:
    """Read the header of a compact token without verifying anything."""
    if not isinstance(token, str) or token.count(".") != 2:
        return Result.failure(
            ErrorCode.VERIFICATION_FAILURE,
            "Malformed token: expected three dot-separated segments",
        )
    return Result.from_computation(
        lambda: jwt.get_unverified_header(token),
        ErrorCode.VERIFICATION_FAILURE,
        "Malformed token header",
    )


def _check_header(header: Mapping[str, Any], key: KeyMaterial) -> Result[Mapping[str, Any]]:
    alg = header.get("alg")
    if alg != key.algorithm.value:
        return Result.failure(
            ErrorCode.VERIFICATION_FAILURE,
            f"Token algorithm {alg!r} does not match key algorithm {key.algorithm.value!r}",
        )
    kid = header.get("kid")
    if kid != key.kid:
        return Result.failure(
            ErrorCode.VERIFICATION_FAILURE,
            f"Token kid {kid!r} does not match key kid {key.kid!r}",
        )
    return Result.success(header)
