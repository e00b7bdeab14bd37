"""
prc-codec command line — key generation, encode, decode, inspect and QR stats.

Barcode data and JSON go to stdout, status lines and logs to stderr, so
commands compose in a shell:

    prc-codec keygen --out-dir keys
    SIGNING__PRIVATE_KEY_PATH=keys/prc-signing.pem prc-codec encode record.json | head -1 > prc.txt
    prc-codec decode --key-ring-dir keys "$(cat prc.txt)"
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click
import structlog
from pydantic import ValidationError
from railway import FailureDescription
from railway.result import Result

from prc_codec.adapters.key_material import (
    generate_key_material,
    load_key_material,
    private_pem,
    public_pem,
)
from prc_codec.adapters.key_ring import load_key_ring
from prc_codec.config import AppSettings
from prc_codec.domain.models import CredentialRecord, ErrorCorrectionLevel, SigningAlgorithm
from prc_codec.main import PrcCodec, build_codec, configure_structlog

log = structlog.get_logger()

_ALGORITHMS = click.Choice([a.value for a in SigningAlgorithm], case_sensitive=False)
_LEVELS = click.Choice([level.value for level in ErrorCorrectionLevel], case_sensitive=False)


def _fail(error: FailureDescription) -> click.ClickException:
    log.error("cli.command_failed", error_code=error.code.value, error_count=len(error.details))
    return click.ClickException(f"{error.code.value}: {error.describe()}")


def _unwrap[T](result: Result[T]) -> T:
    if result.is_failure():
        raise _fail(result.error())
    return result.value()


def _settings(ctx: click.Context) -> AppSettings:
    return ctx.find_object(AppSettings)


def _codec(ctx: click.Context) -> PrcCodec:
    return _unwrap(build_codec(_settings(ctx)))


def _read_data(data: str) -> str:
    """`-` reads the barcode string from stdin. Spaces are Base45 symbols, so only line endings are dropped."""
    if data == "-":
        return sys.stdin.read().rstrip("\r\n")
    return data


def _record_from_json(document: Any) -> CredentialRecord:
    """Accept either a bare claim object (`{"ic": ..., "rid"?: ...}`) or `{"prc": {...}, "rid"?: ...}`."""
    if not isinstance(document, dict):
        raise click.ClickException("Record JSON must be an object")
    if isinstance(document.get("prc"), dict):
        return CredentialRecord.from_payload(document)
    return CredentialRecord.from_claims(document, document.get("rid"))


def _record_to_json(record: CredentialRecord) -> str:
    document: dict[str, Any] = {"prc": record.to_claims()}
    if record.revocation_url is not None:
        document["rid"] = record.revocation_url
    return json.dumps(document, indent=2, ensure_ascii=False)


def load_settings() -> AppSettings:
    try:
        return AppSettings()
    except ValidationError as e:
        raise click.ClickException(f"Configuration error: {e}") from e


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Encode and verify EESSI Provisional Replacement Certificates as QR-ready strings."""
    if ctx.find_object(AppSettings) is None:
        ctx.obj = load_settings()


@cli.command("keygen")
@click.option("--algorithm", type=_ALGORITHMS, default=None, help="Signing algorithm (default: SIGNING__ALGORITHM).")
@click.option(
    "--out-dir",
    type=click.Path(file_okay=False, path_type=Path),
    required=True,
    help="Directory for the PEM files.",
)
@click.option("--name", default="prc-signing", show_default=True, help="Base name of the PEM files.")
@click.option("--namespace", default=None, help="kid namespace (default: SIGNING__KID_NAMESPACE).")
@click.pass_context
def keygen(ctx: click.Context, algorithm: str | None, out_dir: Path, name: str, namespace: str | None) -> None:
    """Generate a signing key pair, write <name>.pem and <name>.pub.pem, and print the kid."""
    settings = _settings(ctx)
    private_path = out_dir / f"{name}.pem"
    public_path = out_dir / f"{name}.pub.pem"
    for path in (private_path, public_path):
        if path.exists():
            raise click.ClickException(f"Refusing to overwrite {path}")

    password = settings.signing.key_password
    material = _unwrap(
        generate_key_material(
            algorithm or settings.signing.algorithm,
            namespace or settings.signing.kid_namespace,
        )
    )

    out_dir.mkdir(parents=True, exist_ok=True)
    private_path.write_bytes(
        private_pem(material, password.get_secret_value().encode("utf-8") if password else None)
    )
    private_path.chmod(0o600)
    public_path.write_bytes(public_pem(material))

    click.echo(f"Wrote {private_path} and {public_path}", err=True)
    click.echo(material.kid)


@cli.command("encode")
@click.argument("record_json", type=click.File("r", encoding="utf-8"))
@click.option(
    "--key",
    "key_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Private key PEM (default: SIGNING__PRIVATE_KEY_PATH).",
)
@click.option("--algorithm", type=_ALGORITHMS, default=None, help="Algorithm of --key.")
@click.pass_context
def encode(ctx: click.Context, record_json: Any, key_path: Path | None, algorithm: str | None) -> None:
    """Sign RECORD_JSON (a file, or - for stdin) and print the barcode string."""
    settings = _settings(ctx)
    try:
        document = json.load(record_json)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Record is not valid JSON: {e}") from e
    record = _record_from_json(document)

    codec = _codec(ctx)
    key = codec.signing_key
    if key_path is not None:
        password = settings.signing.key_password
        key = _unwrap(
            load_key_material(
                key_path.read_bytes(),
                algorithm or settings.signing.algorithm,
                settings.signing.kid_namespace,
                password.get_secret_value().encode("utf-8") if password else None,
            )
        )

    artifact = _unwrap(codec.encode(record, key))
    click.echo(artifact.data)
    click.echo(
        f"version {artifact.version} ({artifact.size}, level {artifact.error_correction.value}), "
        f"{artifact.length} characters",
        err=True,
    )
    if key is not None:
        click.echo(f"kid {key.kid}", err=True)


@cli.command("decode")
@click.argument("data")
@click.option(
    "--key-ring-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Directory of *.pub.pem verification keys (retired-*.pub.pem are retired).",
)
@click.option("--algorithm", type=_ALGORITHMS, default=None, help="Algorithm of the key ring keys.")
@click.pass_context
def decode(ctx: click.Context, data: str, key_ring_dir: Path | None, algorithm: str | None) -> None:
    """Verify barcode DATA (or - for stdin) and print the credential record as JSON."""
    settings = _settings(ctx)
    codec = _codec(ctx)
    ring = None
    if key_ring_dir is not None:
        ring = _unwrap(
            load_key_ring(key_ring_dir, algorithm or settings.signing.algorithm, settings.signing.kid_namespace)
        )
    record = _unwrap(codec.decode(_read_data(data), ring))
    click.echo(_record_to_json(record))


@cli.command("inspect")
@click.argument("data")
@click.pass_context
def inspect(ctx: click.Context, data: str) -> None:
    """Print the header and payload of barcode DATA WITHOUT verifying the signature."""
    token = _unwrap(_codec(ctx).inspect(_read_data(data)))
    click.echo("warning: signature NOT verified", err=True)
    click.echo(
        json.dumps({"header": dict(token.header), "payload": dict(token.payload)}, indent=2, ensure_ascii=False)
    )


@cli.command("stats")
@click.argument("data")
@click.option("--level", type=_LEVELS, default=None, help="Error correction level (default: BARCODE__ERROR_CORRECTION).")
@click.pass_context
def stats(ctx: click.Context, data: str, level: str | None) -> None:
    """Print the QR version and size DATA needs."""
    settings = _settings(ctx)
    qr = _unwrap(_codec(ctx).stats(_read_data(data), level or settings.barcode.error_correction))
    click.echo(
        json.dumps(
            {
                "length": qr.length,
                "version": qr.version,
                "error_correction": qr.error_correction.value,
                "capacity": qr.capacity,
                "modules": qr.module_count,
                "size": qr.size,
            },
            indent=2,
        )
    )


def main() -> None:
    """Console entry point: load settings, send logs to stderr, run the command."""
    try:
        settings = AppSettings()
    except ValidationError as e:
        print(f"FATAL: Configuration error: {e}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    configure_structlog(settings.log_level, stream=sys.stderr)
    cli(obj=settings)


if __name__ == "__main__":
    main()
