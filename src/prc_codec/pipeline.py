"""
Pipeline — the ROP chains that turn a PRC into barcode data and back.

Domain layer — this is PURE BUSINESS LOGIC. No I/O, no key loading.
Every stage is injected as a port (Protocol interface).

Encode:

  signer.sign(record, key)            schema → business rules → JWT
    → compressor.compress(token)      zlib level 9
      → codec.encode(bytes)           Base45
        → planner.plan(data, level)   smallest QR version

Decode:

  codec.decode(data)
    → compressor.decompress(bytes)
      → verifier.verify(token, key)   header gate → signature → schema

Each stage returns Result[T]. The first failure short-circuits the rest,
so no partially built artifact is ever returned.
"""

from __future__ import annotations

from railway import ErrorCode
from railway.result import Result

from prc_codec.domain.models import (
    BarcodeArtifact,
    CredentialRecord,
    ErrorCorrectionLevel,
    KeyMaterial,
    PipelineReport,
    SignedToken,
)
from prc_codec.domain.ports import (
    CapacityPlanner,
    Compressor,
    KeyResolver,
    TextCodec,
    TokenSigner,
    TokenVerifier,
)


# ─────────────────────── Token ↔ barcode string ───────────────────────


def encode_token(
    token: str,
    compressor: Compressor,
    codec: TextCodec,
    planner: CapacityPlanner,
    level: ErrorCorrectionLevel | str = ErrorCorrectionLevel.L,
) -> Result[BarcodeArtifact]:
    """Compress, Base45-encode and size an already signed token."""
    return (
        compressor.compress(token)
        .flat_map(codec.encode)
        .flat_map(lambda data: planner.plan(data, level))
    )


def decode_token(
    data: str,
    codec: TextCodec,
    compressor: Compressor,
) -> Result[str]:
    """Base45-decode and inflate barcode data back into the compact token. Nothing is verified."""
    return codec.decode(data).flat_map(compressor.decompress)


# ─────────────────────── Record → barcode ───────────────────────


def to_barcode(
    record: CredentialRecord,
    key: KeyMaterial,
    signer: TokenSigner,
    compressor: Compressor,
    codec: TextCodec,
    planner: CapacityPlanner,
    level: ErrorCorrectionLevel | str = ErrorCorrectionLevel.L,
) -> Result[BarcodeArtifact]:
    """
    Sign `record` with `key` and turn the token into a barcode artifact.

    Validation and business rules run inside the signer, so an invalid
    record never reaches compression.
    """
    return signer.sign(record, key).flat_map(
        lambda token: encode_token(token.compact, compressor, codec, planner, level)
    )


def to_barcode_string(
    record: CredentialRecord,
    key: KeyMaterial,
    signer: TokenSigner,
    compressor: Compressor,
    codec: TextCodec,
    planner: CapacityPlanner,
    level: ErrorCorrectionLevel | str = ErrorCorrectionLevel.L,
) -> Result[str]:
    return to_barcode(record, key, signer, compressor, codec, planner, level).map(
        lambda artifact: artifact.data
    )


# ─────────────────────── Barcode → record ───────────────────────


def from_barcode_string(
    data: str,
    key: KeyMaterial,
    codec: TextCodec,
    compressor: Compressor,
    verifier: TokenVerifier,
) -> Result[CredentialRecord]:
    return decode_token(data, codec, compressor).flat_map(lambda token: verifier.verify(token, key))


def _resolve_signer_key(token: str, verifier: TokenVerifier, resolver: KeyResolver) -> Result[KeyMaterial]:
    return (
        verifier.inspect(token)
        .flat_map(
            lambda inspected: Result.from_optional(
                inspected.kid,
                "Token header carries no kid",
                ErrorCode.VERIFICATION_FAILURE,
            )
        )
        .flat_map(resolver.resolve)
    )


def from_barcode_string_with_key_ring(
    data: str,
    resolver: KeyResolver,
    codec: TextCodec,
    compressor: Compressor,
    verifier: TokenVerifier,
) -> Result[CredentialRecord]:
    """
    Decode and verify when the signing key is not known up front.

    The unverified header's kid only selects the candidate key; the full
    verification (alg, kid, signature, schema) still runs against it.
    Retired keys resolve too, so older printed credentials stay readable.
    """
    return decode_token(data, codec, compressor).flat_map(
        lambda token: _resolve_signer_key(token, verifier, resolver).flat_map(
            lambda key: verifier.verify(token, key)
        )
    )


def inspect_barcode_string(
    data: str,
    codec: TextCodec,
    compressor: Compressor,
    verifier: TokenVerifier,
) -> Result[SignedToken]:
    """Decode barcode data and show the token's header and payload without verifying them."""
    return decode_token(data, codec, compressor).flat_map(verifier.inspect)


# ─────────────────────── Self check ───────────────────────


def self_check(
    token: str,
    compressor: Compressor,
    codec: TextCodec,
    planner: CapacityPlanner,
    level: ErrorCorrectionLevel | str = ErrorCorrectionLevel.L,
) -> Result[PipelineReport]:
    """
    Push a token through encode and decode and report what happened.

    Any stage failure is returned as is. A clean run whose decoded token
    differs from the input is reported with `round_trip_ok=False`.
    """
    return compressor.compress(token).flat_map(
        lambda compressed: codec.encode(compressed).flat_map(
            lambda data: planner.plan(data, level).flat_map(
                lambda artifact: decode_token(artifact.data, codec, compressor).map(
                    lambda restored: PipelineReport(
                        token_length=len(token),
                        compressed_length=len(compressed),
                        encoded_length=artifact.length,
                        round_trip_ok=restored == token,
                        artifact=artifact,
                    )
                )
            )
        )
    )
