"""
Unit tests for the JSON Schema validator adapter.

Test categories:
  - Schema loading: bundled, from file, every failure → SCHEMA_UNAVAILABLE
  - Record validation: field constraints, all violations reported with pointers
  - Payload validation: jti/sid/prc/rid, no extra claims
  - Unchecked mode: explicit opt-in, warns on every call
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from railway import ErrorCode, Result, ResultAssertions
from structlog.testing import capture_logs

from prc_codec.adapters.schema_validator import (
    JsonSchemaValidator,
    Schema,
    UncheckedValidator,
    create_validator,
)
from prc_codec.domain.ports import RecordValidator
from tests.conftest import make_record

# ─────────────────────── Loading ───────────────────────


class TestSchemaLoading:
    def test_bundled_schema_loads(self, schema: Schema) -> None:
        assert schema.version == "1.0"
        assert schema.schema_id is not None
        assert "prc" in schema.document["$defs"]

    def test_load_from_file(self, tmp_path: Path, schema: Schema) -> None:
        path = tmp_path / "schema.json"
        path.write_text(json.dumps(schema.document), encoding="utf-8")
        loaded = ResultAssertions.assert_success(Schema.load(path))
        assert loaded.document == schema.document

    def test_missing_file(self, tmp_path: Path) -> None:
        result = Schema.load(tmp_path / "nope.json")
        ResultAssertions.assert_failure(result, ErrorCode.SCHEMA_UNAVAILABLE)

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "schema.json"
        path.write_text("{not json", encoding="utf-8")
        ResultAssertions.assert_failure(Schema.load(path), ErrorCode.SCHEMA_UNAVAILABLE)

    def test_invalid_schema_document(self) -> None:
        result = Schema.from_document({"type": 12})
        ResultAssertions.assert_failure(result, ErrorCode.SCHEMA_UNAVAILABLE)

    def test_schema_without_prc_definition(self) -> None:
        result = Schema.from_document({"type": "object"})
        ResultAssertions.assert_failure_message_contains(result, "$defs/prc")


# ─────────────────────── Record validation ───────────────────────


class TestRecordValidation:
    def test_reference_record_is_valid(self, validator: JsonSchemaValidator) -> None:
        record = make_record()
        assert ResultAssertions.assert_success(validator.validate(record)) is record

    def test_satisfies_port(self, validator: JsonSchemaValidator) -> None:
        assert isinstance(validator, RecordValidator)
        assert validator.unchecked is False

    def test_optional_fields_accepted(self, validator: JsonSchemaValidator) -> None:
        record = make_record(card_id="80276000", expiry_date="2024-12-31", revocation_url="https://prc.example.eu/r/1")
        ResultAssertions.assert_success(validator.validate(record))

    @pytest.mark.parametrize(
        ("overrides", "pointer"),
        [
            ({"issuing_country": "XX"}, "/prc/ic"),
            ({"family_name": "M" * 41}, "/prc/fn"),
            ({"given_name": "G" * 36}, "/prc/gn"),
            ({"given_name": ""}, "/prc/gn"),
            ({"date_of_birth": "1990-13-01"}, "/prc/dob"),
            ({"date_of_birth": "1990-02-30"}, "/prc/dob"),
            ({"date_of_birth": "1991-02-29"}, "/prc/dob"),
            ({"personal_id": "9" * 21}, "/prc/hi"),
            ({"institution_name": "N" * 22}, "/prc/in"),
            ({"institution_id": "123"}, "/prc/ii"),
            ({"institution_id": "12A4"}, "/prc/ii"),
            ({"card_id": "12-34"}, "/prc/ci"),
            ({"start_date": "01/01/2024"}, "/prc/sd"),
            ({"end_date": "2024-02-30"}, "/prc/ed"),
            ({"expiry_date": "2024-1-1"}, "/prc/xd"),
            ({"revocation_url": "ftp://prc.example.eu"}, "/rid"),
            ({"revocation_url": "https://x.eu/" + "a" * 250}, "/rid"),
        ],
    )
    def test_field_constraints(self, validator: JsonSchemaValidator, overrides: dict, pointer: str) -> None:
        result = validator.validate(make_record(**overrides))
        ResultAssertions.assert_failure(result, ErrorCode.SCHEMA_VIOLATION)
        ResultAssertions.assert_details_contain(result, f"{pointer}: ")

    @pytest.mark.parametrize("dob", ["1990-00-00", "1990-02-00", "1990-00-31", "1992-02-29"])
    def test_unknown_birth_date_parts_accepted(self, validator: JsonSchemaValidator, dob: str) -> None:
        ResultAssertions.assert_success(validator.validate(make_record(date_of_birth=dob)))

    def test_impossible_birth_date_is_a_schema_violation(self, validator: JsonSchemaValidator) -> None:
        """
        GIVEN a date of birth of 30 February
        WHEN validate is called
        THEN it is rejected as a format error on /prc/dob, not left to the business rules.
        """
        result = validator.validate(make_record(date_of_birth="1990-02-30"))
        error = ResultAssertions.assert_failure(result, ErrorCode.SCHEMA_VIOLATION)
        ResultAssertions.assert_details_contain(result, "/prc/dob: '1990-02-30' is not a 'prc-birth-date'")
        assert len(error.details) == 1

    def test_missing_required_field(self, validator: JsonSchemaValidator) -> None:
        result = validator.validate(make_record(personal_id=None))
        ResultAssertions.assert_failure(result, ErrorCode.SCHEMA_VIOLATION)
        ResultAssertions.assert_details_contain(result, "'hi' is a required property")

    def test_reports_every_violation(self, validator: JsonSchemaValidator) -> None:
        """
        GIVEN a record with three independent field violations
        WHEN validate is called
        THEN all three are listed in details, not only the first.
        """
        record = make_record(issuing_country="XX", family_name="M" * 41, institution_id="1")
        error = ResultAssertions.assert_failure(validator.validate(record), ErrorCode.SCHEMA_VIOLATION)
        assert len(error.details) == 3
        assert "3 error(s)" in error.message
        assert error.code.recoverable


# ─────────────────────── Payload validation ───────────────────────


class TestPayloadValidation:
    def test_valid_payload(self, validator: JsonSchemaValidator) -> None:
        payload = make_record().to_payload("b1f0c7e2-2a47-4b0b-9b1a-5d7c3c7e8f10")
        ResultAssertions.assert_success(validator.validate_payload(payload))

    def test_extra_claim_rejected(self, validator: JsonSchemaValidator) -> None:
        payload = {**make_record().to_payload("j"), "iat": 1700000000}
        result = validator.validate_payload(payload)
        ResultAssertions.assert_failure(result, ErrorCode.SCHEMA_VIOLATION)
        ResultAssertions.assert_details_contain(result, "iat")

    def test_bad_schema_id_rejected(self, validator: JsonSchemaValidator) -> None:
        payload = make_record().to_payload("j", schema_id="other:1")
        ResultAssertions.assert_details_contain(validator.validate_payload(payload), "/sid")

    @pytest.mark.parametrize(
        ("claim", "value", "pointer"),
        [
            ("ii", "1234\n", "/prc/ii"),
            ("ci", "80276000\n", "/prc/ci"),
            ("dob", "1990-05-12\n", "/prc/dob"),
            ("sd", "2024-01-01\n", "/prc/sd"),
            ("fn", "Muster\n", "/prc/fn"),
            ("in", " AOK Bayern", "/prc/in"),
        ],
    )
    def test_surrounding_whitespace_rejected(
        self, validator: JsonSchemaValidator, claim: str, value: str, pointer: str
    ) -> None:
        """
        GIVEN a payload claim with a trailing newline or leading blank
        WHEN validate_payload is called
        THEN it is a SCHEMA_VIOLATION; the record mapping would otherwise trim it away unnoticed.
        """
        payload = make_record().to_payload("j")
        payload["prc"][claim] = value
        result = validator.validate_payload(payload)
        ResultAssertions.assert_failure(result, ErrorCode.SCHEMA_VIOLATION)
        ResultAssertions.assert_details_contain(result, f"{pointer}: ")

    @pytest.mark.parametrize(("claim", "value"), [("sid", "eessi:prc:1.0\n"), ("rid", "https://prc.example.eu/r/1\n")])
    def test_trailing_newline_in_top_level_claim_rejected(
        self, validator: JsonSchemaValidator, claim: str, value: str
    ) -> None:
        payload = {**make_record().to_payload("j"), claim: value}
        ResultAssertions.assert_details_contain(validator.validate_payload(payload), f"/{claim}: ")

    def test_missing_jti_rejected(self, validator: JsonSchemaValidator) -> None:
        payload = make_record().to_payload("j")
        del payload["jti"]
        ResultAssertions.assert_details_contain(validator.validate_payload(payload), "'jti' is a required property")


# ─────────────────────── Unchecked mode ───────────────────────


def _unavailable() -> Result[Schema]:
    return Result.failure(ErrorCode.SCHEMA_UNAVAILABLE, "Cannot load schema from /missing.json")


class TestCreateValidator:
    def test_loaded_schema_gives_json_schema_validator(self, schema: Schema) -> None:
        validator = ResultAssertions.assert_success(create_validator(Result.success(schema)))
        assert isinstance(validator, JsonSchemaValidator)

    def test_load_failure_stays_failure_by_default(self) -> None:
        """
        GIVEN a schema that failed to load
        WHEN create_validator is called without the opt-in
        THEN the SCHEMA_UNAVAILABLE failure is returned (no silent always-valid fallback).
        """
        ResultAssertions.assert_failure(create_validator(_unavailable()), ErrorCode.SCHEMA_UNAVAILABLE)

    def test_opt_in_gives_loud_unchecked_validator(self) -> None:
        validator = ResultAssertions.assert_success(create_validator(_unavailable(), allow_unchecked=True))
        assert isinstance(validator, UncheckedValidator)
        assert validator.unchecked is True
        assert "missing.json" in validator.reason


class TestUncheckedValidator:
    def test_warns_on_every_call(self) -> None:
        validator = UncheckedValidator(reason="schema missing")
        with capture_logs() as logs:
            validator.validate(make_record(issuing_country="XX"))
            validator.validate(make_record())
            validator.validate_payload({"anything": True})
        bypassed = [e for e in logs if e["event"] == "schema.validation_bypassed"]
        assert len(bypassed) == 3
        assert all(e["log_level"] == "warning" for e in bypassed)

    def test_accepts_everything(self) -> None:
        record = make_record(family_name="M" * 99)
        assert UncheckedValidator(reason="r").validate(record).value() is record
