"""
Domain models — immutable value objects for PRC credentials and their encodings.

These are pure value objects with no behaviour beyond normalisation and
claim mapping. The abbreviated claim names (ic, fn, gn, ...) are the EESSI
PRC wire names; Python code uses the descriptive attribute names and
converts at the token boundary via to_claims()/from_claims().

All models are frozen dataclasses (immutable) following functional principles.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from datetime import date
from enum import Enum, unique
from typing import Any

type Claims = dict[str, Any]

DEFAULT_SCHEMA_ID = "eessi:prc:1.0"

COUNTRY_CODES: tuple[str, ...] = (
    "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR", "DE",
    "GR", "HU", "IE", "IT", "LV", "LT", "LU", "MT", "NL", "PL", "PT",
    "RO", "SK", "SI", "ES", "SE", "IS", "LI", "NO", "CH", "UK",
)


# ─────────────────────── Algorithms ───────────────────────


@dataclass(frozen=True, slots=True)
class AlgorithmProfile:
    """Key family and the key size / named curve a signing algorithm is pinned to."""

    family: str
    hash_name: str
    key_size: int | None = None
    curve: str | None = None


@unique
class SigningAlgorithm(Enum):
    """
    Signature algorithms accepted for PRC tokens.

    Each member is a tagged variant with its own pinned primitive; there is
    no class hierarchy. Generation uses the pinned key size, verification
    of externally supplied RSA keys accepts anything from 2048 bits up.
    """

    RS256 = "RS256"
    RS384 = "RS384"
    RS512 = "RS512"
    ES256 = "ES256"

    @property
    def profile(self) -> AlgorithmProfile:
        return _ALGORITHM_PROFILES[self]

    @property
    def family(self) -> str:
        return self.profile.family

    @property
    def key_size(self) -> int | None:
        return self.profile.key_size

    @property
    def curve(self) -> str | None:
        return self.profile.curve


_ALGORITHM_PROFILES: dict[SigningAlgorithm, AlgorithmProfile] = {
    SigningAlgorithm.RS256: AlgorithmProfile(family="RSA", hash_name="sha256", key_size=2048),
    SigningAlgorithm.RS384: AlgorithmProfile(family="RSA", hash_name="sha384", key_size=3072),
    SigningAlgorithm.RS512: AlgorithmProfile(family="RSA", hash_name="sha512", key_size=4096),
    SigningAlgorithm.ES256: AlgorithmProfile(family="EC", hash_name="sha256", curve="secp256r1"),
}


@unique
class ErrorCorrectionLevel(Enum):
    """QR error-correction levels, weakest (most capacity) first."""

    L = "L"
    M = "M"
    Q = "Q"
    H = "H"


# ─────────────────────── Credential Record ───────────────────────

_CLAIM_NAMES: dict[str, str] = {
    "issuing_country": "ic",
    "family_name": "fn",
    "given_name": "gn",
    "date_of_birth": "dob",
    "personal_id": "hi",
    "institution_name": "in",
    "institution_id": "ii",
    "card_id": "ci",
    "start_date": "sd",
    "end_date": "ed",
    "issuance_date": "di",
    "expiry_date": "xd",
}

_OPTIONAL_FIELDS = frozenset({"card_id", "expiry_date", "revocation_url"})


@dataclass(frozen=True, slots=True)
class CredentialRecord:
    """
    A Provisional Replacement Certificate as handed over by the record-collection
    subsystem.

    Dates are ISO `YYYY-MM-DD` strings, exactly as they travel in the token;
    `date_of_birth` may use `00` for an unknown month or day. Text fields are
    trimmed and empty optional fields collapse to None on construction, so a
    record survives an encode/decode round trip unchanged.

    No validation happens here: the schema validator and the business rules
    are separate gates run by the signer.
    """

    issuing_country: str
    family_name: str
    given_name: str
    date_of_birth: str
    personal_id: str
    institution_name: str
    institution_id: str
    start_date: str
    end_date: str
    issuance_date: str
    card_id: str | None = None
    expiry_date: str | None = None
    revocation_url: str | None = None

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, str):
                value = value.strip()
                if not value and f.name in _OPTIONAL_FIELDS:
                    value = None
                object.__setattr__(self, f.name, value)

    @property
    def holder_full_name(self) -> str:
        return f"{self.given_name} {self.family_name}"

    @property
    def official_id(self) -> str:
        """Issuer identity as `<country>:<institution id>`."""
        return f"{self.issuing_country}:{self.institution_id}"

    def to_claims(self) -> Claims:
        """
        Build the `prc` claim object.

        Fields that are None are left out entirely, so a missing required
        field shows up as a schema violation instead of a null value.
        """
        claims: Claims = {}
        for attr, claim in _CLAIM_NAMES.items():
            value = getattr(self, attr)
            if value is None:
                continue
            if isinstance(value, date):
                value = value.isoformat()
            claims[claim] = value
        return claims

    def to_payload(self, jti: str, schema_id: str = DEFAULT_SCHEMA_ID) -> Claims:
        """Full token payload: `{jti, sid, prc, rid?}`."""
        payload: Claims = {"jti": jti, "sid": schema_id, "prc": self.to_claims()}
        if self.revocation_url:
            payload["rid"] = self.revocation_url
        return payload

    @classmethod
    def from_claims(cls, prc: Mapping[str, Any], rid: str | None = None) -> CredentialRecord:
        """Rebuild a record from a `prc` claim object (abbreviated keys)."""
        kwargs = {attr: prc.get(claim) for attr, claim in _CLAIM_NAMES.items()}
        return cls(revocation_url=rid, **kwargs)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> CredentialRecord:
        """Rebuild a record from a verified token payload."""
        return cls.from_claims(payload.get("prc") or {}, payload.get("rid"))


# ─────────────────────── Key Material ───────────────────────


@dataclass(frozen=True, slots=True)
class KeyMaterial:
    """
    A signing identity owned by the certificate-management subsystem.

    The private key never leaves this object: it is excluded from repr and
    never serialized into tokens or logs. Verification-only material (for
    example a retired key loaded from its public PEM) has no private key.

    Material is never mutated. Rotation means creating new material;
    retirement returns a copy with `active=False` that still verifies tokens
    it signed earlier but refuses to sign new ones.
    """

    algorithm: SigningAlgorithm
    public_key: Any = field(repr=False)
    thumbprint: str
    kid: str
    private_key: Any = field(default=None, repr=False)
    active: bool = True

    @property
    def can_sign(self) -> bool:
        return self.active and self.private_key is not None

    def retire(self) -> KeyMaterial:
        return replace(self, active=False)

    def verification_only(self) -> KeyMaterial:
        """Copy without the private key, safe to hand to verifiers."""
        return replace(self, private_key=None)


# ─────────────────────── Signed Token ───────────────────────


@dataclass(frozen=True, slots=True)
class SignedToken:
    """
    A signed compact token: `base64url(header).base64url(payload).base64url(signature)`.

    `compact` is the authoritative form; header/payload are the decoded JSON
    objects kept alongside for logging and inspection.
    """

    compact: str = field(repr=False)
    header: Mapping[str, Any] = field(default_factory=dict)
    payload: Mapping[str, Any] = field(default_factory=dict, repr=False)
    signature: bytes = field(default=b"", repr=False)

    @property
    def jti(self) -> str | None:
        return self.payload.get("jti")

    @property
    def kid(self) -> str | None:
        return self.header.get("kid")

    @property
    def algorithm(self) -> str | None:
        return self.header.get("alg")

    @property
    def segments(self) -> tuple[str, str, str]:
        header, payload, signature = self.compact.split(".")
        return header, payload, signature


# ─────────────────────── Barcode Artifact ───────────────────────


@dataclass(frozen=True, slots=True)
class BarcodeArtifact:
    """
    What the pipeline hands to the external barcode renderer: a string that
    only uses the 45-symbol QR alphanumeric alphabet, and the smallest QR
    version that holds it at the chosen error-correction level.
    """

    data: str = field(repr=False)
    version: int
    error_correction: ErrorCorrectionLevel = ErrorCorrectionLevel.L

    @property
    def length(self) -> int:
        return len(self.data)

    @property
    def module_count(self) -> int:
        """Side length of the QR symbol in modules."""
        return 17 + self.version * 4

    @property
    def size(self) -> str:
        return f"{self.module_count}x{self.module_count}"


@dataclass(frozen=True, slots=True)
class PipelineReport:
    """Outcome of a token → barcode → token self-check."""

    token_length: int
    compressed_length: int
    encoded_length: int
    round_trip_ok: bool
    artifact: BarcodeArtifact

    @property
    def compression_ratio(self) -> float:
        """Token characters per barcode character (higher is better)."""
        return round(self.token_length / self.encoded_length, 2) if self.encoded_length else 0.0
