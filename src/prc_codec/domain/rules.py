"""
Business rules — cross-field invariants a PRC must satisfy before it is signed.

These run as a second gate after the structural schema check. The schema
guarantees each field's own shape; these rules relate fields to each other:

  - start date < end date
  - start date <= issuance date <= end date
  - expiry date >= end date (when present)
  - date of birth <= start date (unknown `00` month/day counts as `01`)
  - len(institution id) + len(institution name) <= 25

Every broken rule is reported, not just the first, so the caller can show
all problems at once.
"""

from __future__ import annotations

from datetime import date

import structlog
from railway import ErrorCode
from railway.result import Result

from prc_codec.domain.models import CredentialRecord

log = structlog.get_logger()

MAX_INSTITUTION_LENGTH = 25


def _birth_date_for_comparison(dob: str) -> date:
    """Parse a date of birth, reading an unknown (`00`) month or day as `01`."""
    year, month, day = dob.split("-")
    return date(int(year), int(month) or 1, int(day) or 1)


def _date_rules(record: CredentialRecord) -> list[str]:
    errors: list[str] = []
    try:
        start = date.fromisoformat(record.start_date)
        end = date.fromisoformat(record.end_date)
        issued = date.fromisoformat(record.issuance_date)
        birth = _birth_date_for_comparison(record.date_of_birth)
        expiry = date.fromisoformat(record.expiry_date) if record.expiry_date else None
    except (TypeError, ValueError, AttributeError) as e:
        return [f"Date validation error: {e}"]

    if birth > start:
        errors.append("Date of birth must be before or equal to start date")
    if start >= end:
        errors.append("Start date must be before end date")
    if start > issued:
        errors.append("Start date must be before or equal to issuance date")
    if issued > end:
        errors.append("Issuance date must be before or equal to end date")
    if expiry is not None and expiry < end:
        errors.append("Expiry date must be after or equal to end date")
    return errors


def _institution_rules(record: CredentialRecord) -> list[str]:
    parts = (record.institution_id, record.institution_name)
    if any(part is not None and not isinstance(part, str) for part in parts):
        return ["Institution ID and name must be text"]
    combined = sum(len(part or "") for part in parts)
    if combined > MAX_INSTITUTION_LENGTH:
        return [
            "Combined institution ID and name length must not exceed "
            f"{MAX_INSTITUTION_LENGTH} characters (got {combined})"
        ]
    return []


def business_rule_violations(record: CredentialRecord) -> list[str]:
    """Return every broken business rule as a message; empty when the record is consistent."""
    return _date_rules(record) + _institution_rules(record)


def check_business_rules(record: CredentialRecord) -> Result[CredentialRecord]:
    """
    Gate a schema-valid record on its business invariants.

    Returns Success(record) unchanged, or Failure(INVARIANT_VIOLATION) with
    all violations in `details`.
    """
    errors = business_rule_violations(record)
    if errors:
        log.info("rules.violated", error_count=len(errors))
        return Result.failure(
            ErrorCode.INVARIANT_VIOLATION,
            f"Credential record breaks {len(errors)} business rule(s)",
            details=errors,
        )
    return Result.success(record)
