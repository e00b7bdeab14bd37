"""
Composition root — wires settings, schema, keys and adapters together.

This is the ONLY place where concrete adapter classes are instantiated.
The pipeline functions depend on Protocol interfaces only.

Responsibilities:
  1. Configure structlog
  2. Load the schema (fail fast, or the explicit unchecked mode)
  3. Read key files once
  4. Create the adapters and bind them into a PrcCodec facade whose
     operations run inside a LoggingExecutionContext
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

import structlog
from railway import ErrorCode, LoggingExecutionContext
from railway.result import Result

from prc_codec import pipeline
from prc_codec.adapters.base45 import Base45Codec
from prc_codec.adapters.compression import ZlibCompressor
from prc_codec.adapters.jwt_token import JwtTokenSigner, JwtTokenVerifier
from prc_codec.adapters.key_material import load_key_material, load_public_key_material
from prc_codec.adapters.key_ring import KeyRing
from prc_codec.adapters.qr_capacity import QrCapacityPlanner, QrStats
from prc_codec.adapters.schema_validator import JsonSchemaValidator, Schema, UncheckedValidator, create_validator
from prc_codec.config import AppSettings
from prc_codec.domain.models import (
    BarcodeArtifact,
    CredentialRecord,
    ErrorCorrectionLevel,
    KeyMaterial,
    PipelineReport,
    SignedToken,
)
from prc_codec.domain.ports import KeyResolver

log = structlog.get_logger()


def configure_structlog(log_level: str = "INFO", stream: TextIO | None = None) -> None:
    """
    Configure structlog for human-readable console output.

    `stream` defaults to stdout; the CLI passes stderr so log lines never
    mix with the barcode data it prints.

    Log lines carry event names, kids, jtis, lengths and error codes only;
    no personal data from the record is ever bound to a logger.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )


@dataclass(frozen=True, slots=True)
class PrcCodec:
    """
    The assembled pipeline: concrete adapters plus the configured keys.

    Immutable after construction and safe to share between threads.
    """

    validator: JsonSchemaValidator | UncheckedValidator
    signer: JwtTokenSigner
    verifier: JwtTokenVerifier
    compressor: ZlibCompressor
    codec: Base45Codec
    planner: QrCapacityPlanner
    level: ErrorCorrectionLevel = ErrorCorrectionLevel.L
    signing_key: KeyMaterial | None = field(default=None, repr=False)
    key_ring: KeyRing = field(default_factory=KeyRing)

    def _signing_key(self, key: KeyMaterial | None) -> Result[KeyMaterial]:
        return Result.from_optional(
            key if key is not None else self.signing_key,
            "No signing key configured (set SIGNING__PRIVATE_KEY_PATH)",
            ErrorCode.CONFIGURATION_ERROR,
        )

    def encode(self, record: CredentialRecord, key: KeyMaterial | None = None) -> Result[BarcodeArtifact]:
        ctx = LoggingExecutionContext(operation="EncodeCredential")
        return ctx.execute(
            lambda: self._signing_key(key).flat_map(
                lambda k: pipeline.to_barcode(
                    record, k, self.signer, self.compressor, self.codec, self.planner, self.level
                )
            )
        )

    def decode(self, data: str, resolver: KeyResolver | None = None) -> Result[CredentialRecord]:
        """Verify against `resolver` (default: the configured key ring) by the token's kid."""
        ctx = LoggingExecutionContext(operation="DecodeCredential")
        return ctx.execute(
            lambda: pipeline.from_barcode_string_with_key_ring(
                data, resolver if resolver is not None else self.key_ring, self.codec, self.compressor, self.verifier
            )
        )

    def decode_with_key(self, data: str, key: KeyMaterial) -> Result[CredentialRecord]:
        ctx = LoggingExecutionContext(operation="DecodeCredential")
        return ctx.execute(
            lambda: pipeline.from_barcode_string(data, key, self.codec, self.compressor, self.verifier)
        )

    def inspect(self, data: str) -> Result[SignedToken]:
        return pipeline.inspect_barcode_string(data, self.codec, self.compressor, self.verifier)

    def stats(self, data: str, level: ErrorCorrectionLevel | str | None = None) -> Result[QrStats]:
        return self.planner.stats(data, level if level is not None else self.level)

    def self_check(self, token: str) -> Result[PipelineReport]:
        ctx = LoggingExecutionContext(operation="SelfCheck")
        return ctx.execute(
            lambda: pipeline.self_check(token, self.compressor, self.codec, self.planner, self.level)
        )


def _load_schema(settings: AppSettings) -> Result[Schema]:
    if settings.schema_.path is not None:
        return Schema.load(settings.schema_.path)
    return Schema.bundled()


def _read_key_file(path: Path) -> Result[bytes]:
    return Result.from_computation(
        path.read_bytes,
        ErrorCode.KEY_MATERIAL_ERROR,
        f"Cannot read key file {path}",
    )


def _load_keys(settings: AppSettings) -> Result[tuple[KeyMaterial | None, KeyRing]]:
    """
    Read the configured key files once.

    The signing key's public half always joins the ring, so tokens this
    instance signs can be decoded by it too.
    """
    signing = settings.signing
    password = signing.key_password.get_secret_value().encode("utf-8") if signing.key_password else None

    private = _load_optional(
        signing.private_key_path,
        lambda pem: load_key_material(pem, signing.algorithm, signing.kid_namespace, password),
    )
    public = _load_optional(
        signing.public_key_path,
        lambda pem: load_public_key_material(pem, signing.algorithm, signing.kid_namespace),
    )
    return private.flat_map(
        lambda priv: public.map(
            lambda pub: (
                priv[0] if priv else None,
                KeyRing.of(m.verification_only() for m in priv + pub),
            )
        )
    )


def _load_optional(
    path: Path | None,
    loader: Callable[[bytes], Result[KeyMaterial]],
) -> Result[tuple[KeyMaterial, ...]]:
    """Zero or one key material, depending on whether `path` is configured."""
    if path is None:
        return Result.success(())
    return _read_key_file(path).flat_map(loader).map(lambda material: (material,))


def build_codec(settings: AppSettings) -> Result[PrcCodec]:
    """
    Assemble a PrcCodec from settings.

    Fails with SCHEMA_UNAVAILABLE when the schema cannot be loaded (unless
    SCHEMA__ALLOW_UNCHECKED is set), and with KEY_MATERIAL_ERROR when a
    configured key file is unreadable or does not match the algorithm.
    """
    validator_result = create_validator(_load_schema(settings), settings.schema_.allow_unchecked)

    return validator_result.flat_map(
        lambda validator: _load_keys(settings).map(
            lambda keys: PrcCodec(
                validator=validator,
                signer=JwtTokenSigner(validator, schema_id=settings.token.schema_id),
                verifier=JwtTokenVerifier(validator),
                compressor=ZlibCompressor(max_output_bytes=settings.token.max_token_bytes),
                codec=Base45Codec(),
                planner=QrCapacityPlanner(),
                level=settings.barcode.error_correction,
                signing_key=keys[0],
                key_ring=keys[1],
            )
        )
    ).peek(
        lambda codec: log.info(
            "app.codec_ready",
            algorithm=settings.signing.algorithm.value,
            level=codec.level.value,
            can_sign=codec.signing_key is not None,
            verification_keys=len(codec.key_ring),
            schema_checked=not codec.validator.unchecked,
        )
    )
