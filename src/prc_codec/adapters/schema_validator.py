"""
Schema validator adapter — structural validation with JSON Schema.

Adapter layer — implements the RecordValidator port using:
  - jsonschema (Draft 2020-12): required fields, lengths, patterns, enums, date formats
  - a `prc-birth-date` format: a real calendar date, where `00` stands for an
    unknown month or day

The schema document is loaded ONCE into an immutable Schema value by the
composition root and passed explicitly into the validator; there is no
module-level schema state.

Load failure is loud. `Schema.load()` returns Failure(SCHEMA_UNAVAILABLE) and
the composition root refuses to start. The only way around that is the
explicit UncheckedValidator, which flags itself (`unchecked = True`) and logs
a warning on every single call so a bypass can never go unnoticed.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from importlib import resources
from pathlib import Path
from typing import Any

import structlog
from jsonschema import Draft202012Validator, FormatChecker, ValidationError
from railway import ErrorCode
from railway.result import Result

from prc_codec.domain.models import CredentialRecord

log = structlog.get_logger()

BUNDLED_SCHEMA = "schema-prc-v1.json"
BIRTH_DATE_FORMAT = "prc-birth-date"


@dataclass(frozen=True, slots=True)
class Schema:
    """An immutable, already checked JSON Schema document for PRC payloads."""

    document: Mapping[str, Any] = field(repr=False)
    schema_id: str | None = None
    version: str | None = None

    @staticmethod
    def from_document(document: Mapping[str, Any]) -> Result[Schema]:
        """Wrap a parsed document after checking it is itself a valid 2020-12 schema."""
        return Result.from_computation(
            lambda: _checked(document),
            ErrorCode.SCHEMA_UNAVAILABLE,
            "Schema document is not a valid JSON Schema",
        )

    @staticmethod
    def load(path: Path | str) -> Result[Schema]:
        """Read and check a schema file. Any read/parse problem is SCHEMA_UNAVAILABLE."""
        schema_path = Path(path)
        return (
            Result.from_computation(
                lambda: json.loads(schema_path.read_text(encoding="utf-8")),
                ErrorCode.SCHEMA_UNAVAILABLE,
                f"Cannot load schema from {schema_path}",
            )
            .flat_map(Schema.from_document)
            .peek(lambda s: log.info("schema.loaded", path=str(schema_path), schema_id=s.schema_id))
            .peek_failure(lambda err: log.error("schema.load_failed", path=str(schema_path), error=err.message))
        )

    @staticmethod
    def bundled() -> Result[Schema]:
        """Load the schema shipped inside the package."""
        return Result.from_computation(
            lambda: json.loads(
                resources.files("prc_codec.schemas").joinpath(BUNDLED_SCHEMA).read_text(encoding="utf-8")
            ),
            ErrorCode.SCHEMA_UNAVAILABLE,
            "Cannot load bundled PRC schema",
        ).flat_map(Schema.from_document)


def _checked(document: Mapping[str, Any]) -> Schema:
    """Raises jsonschema.SchemaError (caught by the caller) for malformed schemas."""
    Draft202012Validator.check_schema(document)
    if "prc" not in document.get("$defs", {}):
        raise ValueError("schema has no '$defs/prc' definition")
    return Schema(
        document=document,
        schema_id=document.get("$id"),
        version=document.get("version"),
    )


def _is_birth_date(instance: object) -> bool:
    """`YYYY-MM-DD` naming a real day; `00` month or day means unknown. Raises ValueError otherwise."""
    if not isinstance(instance, str):
        return True
    year, month, day = (int(part) for part in instance.split("-"))
    date(year, month or 1, day or 1)
    return True


def _format_checker() -> FormatChecker:
    """The 2020-12 format checks plus `prc-birth-date`; the shared FORMAT_CHECKER is left untouched."""
    checker = FormatChecker(formats=())
    checker.checkers.update(Draft202012Validator.FORMAT_CHECKER.checkers)
    checker.checks(BIRTH_DATE_FORMAT, raises=ValueError)(_is_birth_date)
    return checker


def _format_error(error: ValidationError) -> str:
    pointer = "/" + "/".join(str(p) for p in error.absolute_path) if error.absolute_path else "/"
    return f"{pointer}: {error.message}"


def _collect_errors(validator: Draft202012Validator, instance: Any) -> list[str]:
    errors = sorted(validator.iter_errors(instance), key=lambda e: [str(p) for p in e.absolute_path])
    return [_format_error(e) for e in errors]


class JsonSchemaValidator:
    """
    Validate records and token payloads against a loaded Schema.

    Implements the RecordValidator port. Both compiled validators are built
    once in __init__ and are read-only afterwards, so one instance can be
    shared between threads.
    """

    unchecked = False

    def __init__(self, schema: Schema) -> None:
        self._schema = schema
        defs = schema.document.get("$defs", {})
        self._format_checker = _format_checker()
        self._payload_validator = Draft202012Validator(
            schema.document, format_checker=self._format_checker
        )
        record_schema: dict[str, Any] = {
            "$defs": defs,
            "type": "object",
            "properties": {
                "prc": {"$ref": "#/$defs/prc"},
            },
            "required": ["prc"],
        }
        if "rid" in defs:
            record_schema["properties"]["rid"] = {"$ref": "#/$defs/rid"}
        self._record_validator = Draft202012Validator(
            record_schema, format_checker=self._format_checker
        )

    @property
    def schema(self) -> Schema:
        return self._schema

    def validate(self, record: CredentialRecord) -> Result[CredentialRecord]:
        """
        Check a record's claims. Returns every violation in `details`,
        formatted as `<json-pointer>: <message>` (e.g. `/prc/fn: ... is too long`).
        """
        instance: dict[str, Any] = {"prc": record.to_claims()}
        if record.revocation_url is not None:
            instance["rid"] = record.revocation_url

        errors = _collect_errors(self._record_validator, instance)
        if errors:
            log.info("schema.record_invalid", error_count=len(errors))
            return Result.failure(
                ErrorCode.SCHEMA_VIOLATION,
                f"Credential record failed schema validation with {len(errors)} error(s)",
                details=errors,
            )
        return Result.success(record)

    def validate_payload(self, payload: Mapping[str, Any]) -> Result[Mapping[str, Any]]:
        """Check a complete token payload (jti, sid, prc, rid)."""
        errors = _collect_errors(self._payload_validator, payload)
        if errors:
            log.warning("schema.payload_invalid", error_count=len(errors))
            return Result.failure(
                ErrorCode.SCHEMA_VIOLATION,
                f"Token payload failed schema validation with {len(errors)} error(s)",
                details=errors,
            )
        return Result.success(payload)


class UncheckedValidator:
    """
    Explicit, visible bypass used only when schema loading failed AND the
    operator opted in with `SCHEMA__ALLOW_UNCHECKED=true`.

    Accepts everything, but flags itself and warns on every call.
    """

    unchecked = True

    def __init__(self, reason: str) -> None:
        self._reason = reason

    @property
    def reason(self) -> str:
        return self._reason

    def validate(self, record: CredentialRecord) -> Result[CredentialRecord]:
        log.warning("schema.validation_bypassed", target="record", reason=self._reason)
        return Result.success(record)

    def validate_payload(self, payload: Mapping[str, Any]) -> Result[Mapping[str, Any]]:
        log.warning("schema.validation_bypassed", target="payload", reason=self._reason)
        return Result.success(payload)


def create_validator(
    schema: Result[Schema],
    allow_unchecked: bool = False,
) -> Result[JsonSchemaValidator | UncheckedValidator]:
    """
    Build the validator the signer will use.

    A schema that failed to load stays a failure (SCHEMA_UNAVAILABLE) unless
    `allow_unchecked` is set, in which case the loud UncheckedValidator is
    returned instead.
    """
    if schema.is_success():
        return Result.success(JsonSchemaValidator(schema.value()))

    failure = schema.error()
    if not allow_unchecked:
        return Result.failure_from(failure)

    log.warning(
        "schema.unchecked_mode_enabled",
        reason=failure.message,
        message="PRC records will be signed WITHOUT structural validation",
    )
    return Result.success(UncheckedValidator(reason=failure.message))
