"""
Shared test fixtures for the prc-codec test suite.

Provides the reference PRC record (the DE / "Muster" scenario), the bundled
schema, a validator, and session-scoped key material. RSA generation is
slow, so keys are created once per session and shared read-only.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta
from typing import Any

import pytest
import structlog
from hypothesis import strategies as st
from railway import ResultAssertions

from prc_codec.adapters.key_material import generate_key_material
from prc_codec.adapters.schema_validator import JsonSchemaValidator, Schema
from prc_codec.domain.models import COUNTRY_CODES, CredentialRecord, KeyMaterial, SigningAlgorithm


@pytest.fixture(scope="session", autouse=True)
def _quiet_structlog() -> None:
    """Route log output nowhere; tests that inspect logs use structlog.testing.capture_logs."""
    structlog.configure(
        logger_factory=structlog.ReturnLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def sample_claims() -> dict[str, Any]:
    """The `prc` claim object of the reference record."""
    return {
        "ic": "DE",
        "fn": "Muster",
        "gn": "Max",
        "dob": "1990-05-12",
        "hi": "12345",
        "in": "AOK Bayern",
        "ii": "1234",
        "sd": "2024-01-01",
        "ed": "2024-06-01",
        "di": "2024-01-01",
    }


def make_record(**overrides: Any) -> CredentialRecord:
    """Reference record with selected attributes replaced."""
    return replace(CredentialRecord.from_claims(sample_claims()), **overrides)


_LETTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyzÄÖÜäöüßéèçñ-'"


def _text(max_size: int, alphabet: str = _LETTERS) -> st.SearchStrategy[str]:
    """One to `max_size` characters, words separated by single spaces, no surrounding blanks."""
    words = st.text(alphabet=alphabet, min_size=1, max_size=12)
    return st.lists(words, min_size=1, max_size=4).map(lambda ws: " ".join(ws)[:max_size].rstrip())


@st.composite
def credential_records(draw: st.DrawFn) -> CredentialRecord:
    """
    Records that pass the schema and every business rule.

    Dates are drawn so that dob <= sd <= di <= ed <= xd with sd < ed; the
    institution id and name together stay within 25 characters.
    """
    start = draw(st.dates(min_value=date(2000, 1, 1), max_value=date(2035, 12, 31)))
    end = start + timedelta(days=draw(st.integers(min_value=1, max_value=3650)))
    issued = start + timedelta(days=draw(st.integers(min_value=0, max_value=(end - start).days)))
    expiry = draw(st.none() | st.integers(min_value=0, max_value=365).map(lambda d: end + timedelta(days=d)))

    birth = draw(st.dates(min_value=date(1900, 1, 1), max_value=start)).isoformat()
    birth = draw(st.sampled_from([birth, birth[:8] + "00", birth[:5] + "00-00"]))

    institution_id = draw(st.from_regex(r"[0-9]{4,10}", fullmatch=True))
    institution_name = draw(_text(min(21, 25 - len(institution_id)), _LETTERS + "0123456789"))

    return CredentialRecord(
        issuing_country=draw(st.sampled_from(COUNTRY_CODES)),
        family_name=draw(_text(40)),
        given_name=draw(_text(35)),
        date_of_birth=birth,
        personal_id=draw(st.from_regex(r"[A-Z0-9]{1,20}", fullmatch=True)),
        institution_name=institution_name,
        institution_id=institution_id,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        issuance_date=issued.isoformat(),
        card_id=draw(st.none() | st.from_regex(r"[0-9]{1,20}", fullmatch=True)),
        expiry_date=expiry.isoformat() if expiry is not None else None,
        revocation_url=draw(st.none() | st.from_regex(r"https://[a-z]{1,20}\.eu/[A-Za-z0-9/]{0,40}", fullmatch=True)),
    )


@pytest.fixture()
def record() -> CredentialRecord:
    return make_record()


@pytest.fixture(scope="session")
def schema() -> Schema:
    return ResultAssertions.assert_success(Schema.bundled())


@pytest.fixture(scope="session")
def validator(schema: Schema) -> JsonSchemaValidator:
    return JsonSchemaValidator(schema)


def _generate(algorithm: SigningAlgorithm) -> KeyMaterial:
    return ResultAssertions.assert_success(generate_key_material(algorithm))


@pytest.fixture(scope="session")
def es256_key() -> KeyMaterial:
    return _generate(SigningAlgorithm.ES256)


@pytest.fixture(scope="session")
def other_es256_key() -> KeyMaterial:
    return _generate(SigningAlgorithm.ES256)


@pytest.fixture(scope="session")
def rs256_key() -> KeyMaterial:
    return _generate(SigningAlgorithm.RS256)


@pytest.fixture(scope="session")
def keys_by_algorithm(es256_key: KeyMaterial, rs256_key: KeyMaterial) -> dict[SigningAlgorithm, KeyMaterial]:
    """One key per algorithm; RS384/RS512 keys are only generated when a test asks for them."""
    return {
        SigningAlgorithm.ES256: es256_key,
        SigningAlgorithm.RS256: rs256_key,
        SigningAlgorithm.RS384: _generate(SigningAlgorithm.RS384),
        SigningAlgorithm.RS512: _generate(SigningAlgorithm.RS512),
    }
