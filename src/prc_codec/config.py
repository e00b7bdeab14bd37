"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables
  - Fall back to .env file
  - Validate types and constraints at startup
  - Keep the key password out of logs and reprs (SecretStr)

Only AppSettings is a BaseSettings instance. Sub-settings are plain BaseModel
classes populated via env_nested_delimiter="__", so SIGNING__ALGORITHM maps
to signing.algorithm, SCHEMA__ALLOW_UNCHECKED to schema.allow_unchecked, etc.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from prc_codec.domain.models import DEFAULT_SCHEMA_ID, ErrorCorrectionLevel, SigningAlgorithm

# Resolve the .env file relative to the project root (two levels above the package),
# so settings load correctly regardless of the working directory at runtime.
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"

_SCHEMA_ID_RE = re.compile(r"^eessi:prc:\d+\.\d+$")
_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class SchemaSettings(BaseModel):
    """
    Where the PRC JSON Schema comes from.

    Without a path the schema bundled in the package is used. If the schema
    cannot be loaded the application refuses to start, unless
    `allow_unchecked` is set, which signs records WITHOUT structural
    validation and warns on every call.
    """

    path: Path | None = Field(default=None, description="Override for the bundled schema-prc-v1.json")
    allow_unchecked: bool = Field(default=False, description="Run without schema validation if loading fails")


class SigningSettings(BaseModel):
    """Signing algorithm and key files (PEM). Key files are read once at startup."""

    algorithm: SigningAlgorithm = Field(default=SigningAlgorithm.ES256)
    private_key_path: Path | None = Field(default=None, description="PKCS#8 PEM private key")
    public_key_path: Path | None = Field(default=None, description="SubjectPublicKeyInfo PEM public key")
    key_password: SecretStr | None = Field(default=None, description="Password of an encrypted private key")
    kid_namespace: str = Field(default="EESSI", min_length=1, description="Prefix of generated key ids")

    @field_validator("algorithm", mode="before")
    @classmethod
    def normalise_algorithm(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("kid_namespace")
    @classmethod
    def validate_namespace(cls, value: str) -> str:
        """The namespace is the first segment of the kid, so it may not contain a colon."""
        if ":" in value:
            raise ValueError(f"kid_namespace must not contain ':', got {value!r}")
        return value


class TokenSettings(BaseModel):
    schema_id: str = Field(default=DEFAULT_SCHEMA_ID, description="Value of the sid claim")
    max_token_bytes: int = Field(default=65536, ge=256, description="Ceiling for an inflated token")

    @field_validator("schema_id")
    @classmethod
    def validate_schema_id(cls, value: str) -> str:
        if not _SCHEMA_ID_RE.match(value):
            raise ValueError(f"schema_id must look like 'eessi:prc:<major>.<minor>', got {value!r}")
        return value


class BarcodeSettings(BaseModel):
    error_correction: ErrorCorrectionLevel = Field(default=ErrorCorrectionLevel.L)

    @field_validator("error_correction", mode="before")
    @classmethod
    def normalise_level(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value


class AppSettings(BaseSettings):
    """
    Root application settings — aggregates all sub-settings.

    Load order (highest priority first):
      1. Environment variables
      2. .env file
      3. Default values

    Every field has a default, so the CLI runs with no configuration at all
    (bundled schema, ES256, level L); signing still needs a key.
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    schema_: SchemaSettings = Field(default_factory=lambda: SchemaSettings(), alias="schema")
    signing: SigningSettings = Field(default_factory=lambda: SigningSettings())
    token: TokenSettings = Field(default_factory=lambda: TokenSettings())
    barcode: BarcodeSettings = Field(default_factory=lambda: BarcodeSettings())

    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got {value!r}")
        return level
