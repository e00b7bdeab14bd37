"""
Key material adapter — generate, load and identify PRC signing keys.

Adapter layer — uses cryptography (PyCA) for key generation and PEM
(de)serialisation, and PyJWT's algorithm helpers for JWK export.

Key identity:
  thumbprint = base64url(SHA-256(DER SubjectPublicKeyInfo)), no padding
  kid        = "<namespace>:x5t#S256:<thumbprint>"   e.g. "EESSI:x5t#S256:q3X..."

Generation uses the key size / curve each algorithm is pinned to.
Loading accepts externally produced keys as long as they match the
algorithm family: RSA keys of at least 2048 bits, EC keys on P-256.
"""

from __future__ import annotations

import base64
from typing import Any

import structlog
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from jwt.algorithms import ECAlgorithm, RSAAlgorithm
from railway import ErrorCode
from railway.result import Result

from prc_codec.domain.models import KeyMaterial, SigningAlgorithm

log = structlog.get_logger()

DEFAULT_NAMESPACE = "EESSI"
MIN_RSA_KEY_SIZE = 2048
RSA_PUBLIC_EXPONENT = 65537


# ─────────────────────── Identity ───────────────────────


def compute_thumbprint(public_key: Any) -> str:
    """base64url SHA-256 over the DER SubjectPublicKeyInfo, without padding."""
    spki = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    digest = hashes.Hash(hashes.SHA256())
    digest.update(spki)
    return base64.urlsafe_b64encode(digest.finalize()).rstrip(b"=").decode("ascii")


def build_kid(thumbprint: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}:x5t#S256:{thumbprint}"


# ─────────────────────── Key checks ───────────────────────


def check_key_matches(algorithm: SigningAlgorithm, public_key: Any, minimum_rsa_bits: int = MIN_RSA_KEY_SIZE) -> None:
    """
    Raise ValueError unless `public_key` suits `algorithm`.

    RSA algorithms need an RSA key of at least `minimum_rsa_bits`;
    ES256 needs an EC key on secp256r1 (P-256).
    """
    if algorithm.family == "RSA":
        if not isinstance(public_key, rsa.RSAPublicKey):
            raise ValueError(f"{algorithm.value} requires an RSA key, got {type(public_key).__name__}")
        if public_key.key_size < minimum_rsa_bits:
            raise ValueError(
                f"{algorithm.value} requires an RSA key of at least {minimum_rsa_bits} bits, "
                f"got {public_key.key_size}"
            )
        return

    if not isinstance(public_key, ec.EllipticCurvePublicKey):
        raise ValueError(f"{algorithm.value} requires an EC key, got {type(public_key).__name__}")
    if public_key.curve.name != algorithm.curve:
        raise ValueError(f"{algorithm.value} requires curve {algorithm.curve}, got {public_key.curve.name}")


def _material(
    algorithm: SigningAlgorithm,
    public_key: Any,
    private_key: Any = None,
    namespace: str = DEFAULT_NAMESPACE,
    active: bool = True,
) -> KeyMaterial:
    thumbprint = compute_thumbprint(public_key)
    return KeyMaterial(
        algorithm=algorithm,
        public_key=public_key,
        private_key=private_key,
        thumbprint=thumbprint,
        kid=build_kid(thumbprint, namespace),
        active=active,
    )


# ─────────────────────── Generate / load ───────────────────────


def _generate_private_key(algorithm: SigningAlgorithm) -> Any:
    if algorithm.family == "RSA":
        return rsa.generate_private_key(public_exponent=RSA_PUBLIC_EXPONENT, key_size=algorithm.key_size)
    return ec.generate_private_key(ec.SECP256R1())


def generate_key_material(
    algorithm: SigningAlgorithm | str = SigningAlgorithm.ES256,
    namespace: str = DEFAULT_NAMESPACE,
) -> Result[KeyMaterial]:
    """
    Create a fresh key pair for `algorithm`.

    This is a setup-time operation (RSA-4096 takes noticeably long); the
    encode/decode path only ever uses material created here or loaded below.
    """
    return (
        parse_algorithm(algorithm)
        .flat_map(
            lambda alg: Result.from_computation(
                lambda: _generate_private_key(alg),
                ErrorCode.KEY_MATERIAL_ERROR,
                f"Failed to generate {alg.value} key pair",
            ).map(lambda private: _material(alg, private.public_key(), private, namespace))
        )
        .peek(lambda m: log.info("keys.generated", algorithm=m.algorithm.value, kid=m.kid))
    )


def load_key_material(
    private_pem: bytes,
    algorithm: SigningAlgorithm | str,
    namespace: str = DEFAULT_NAMESPACE,
    password: bytes | None = None,
) -> Result[KeyMaterial]:
    """Load signing material from a PKCS#8 / traditional PEM private key."""

    def _load(alg: SigningAlgorithm) -> KeyMaterial:
        private = serialization.load_pem_private_key(private_pem, password=password)
        public = private.public_key()
        check_key_matches(alg, public)
        return _material(alg, public, private, namespace)

    return (
        parse_algorithm(algorithm)
        .flat_map(
            lambda alg: Result.from_computation(
                lambda: _load(alg),
                ErrorCode.KEY_MATERIAL_ERROR,
                f"Cannot load {alg.value} private key",
            )
        )
        .peek(lambda m: log.info("keys.loaded", algorithm=m.algorithm.value, kid=m.kid, signing=True))
    )


def load_public_key_material(
    public_pem: bytes,
    algorithm: SigningAlgorithm | str,
    namespace: str = DEFAULT_NAMESPACE,
    active: bool = True,
) -> Result[KeyMaterial]:
    """Load verification-only material from a SubjectPublicKeyInfo PEM."""

    def _load(alg: SigningAlgorithm) -> KeyMaterial:
        public = serialization.load_pem_public_key(public_pem)
        check_key_matches(alg, public)
        return _material(alg, public, None, namespace, active)

    return (
        parse_algorithm(algorithm)
        .flat_map(
            lambda alg: Result.from_computation(
                lambda: _load(alg),
                ErrorCode.KEY_MATERIAL_ERROR,
                f"Cannot load {alg.value} public key",
            )
        )
        .peek(lambda m: log.info("keys.loaded", algorithm=m.algorithm.value, kid=m.kid, signing=False))
    )


def parse_algorithm(algorithm: SigningAlgorithm | str) -> Result[SigningAlgorithm]:
    if isinstance(algorithm, SigningAlgorithm):
        return Result.success(algorithm)
    try:
        return Result.success(SigningAlgorithm(str(algorithm).strip().upper()))
    except ValueError:
        supported = ", ".join(a.value for a in SigningAlgorithm)
        return Result.failure(
            ErrorCode.CONFIGURATION_ERROR,
            f"Unsupported signing algorithm {algorithm!r}; expected one of {supported}",
        )


# ─────────────────────── Export ───────────────────────


def private_pem(material: KeyMaterial, password: bytes | None = None) -> bytes:
    """PKCS#8 PEM of the private key, encrypted when a password is given."""
    if material.private_key is None:
        raise ValueError(f"key {material.kid} has no private key")
    encryption: serialization.KeySerializationEncryption = (
        serialization.BestAvailableEncryption(password) if password else serialization.NoEncryption()
    )
    return material.private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    )


def public_pem(material: KeyMaterial) -> bytes:
    return material.public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def public_jwk(material: KeyMaterial) -> dict[str, Any]:
    """Public key as a JWK dict carrying `kid`, `alg` and `use: sig`."""
    exporter = RSAAlgorithm if material.algorithm.family == "RSA" else ECAlgorithm
    jwk: dict[str, Any] = exporter.to_jwk(material.public_key, as_dict=True)
    jwk.update(kid=material.kid, alg=material.algorithm.value, use="sig")
    return jwk
