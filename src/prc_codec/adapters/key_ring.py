"""
Key ring adapter — resolve active and retired key material by kid.

Adapter layer — implements the KeyResolver port.

Tokens printed on paper outlive the key that signed them, so a verifier
has to find retired material too. The ring is immutable: adding or
retiring a key returns a new ring.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

import structlog
from railway import ErrorCode
from railway.result import Result

from prc_codec.adapters.key_material import DEFAULT_NAMESPACE, load_public_key_material
from prc_codec.domain.models import KeyMaterial, SigningAlgorithm

log = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class KeyRing:
    _keys: MappingProxyType[str, KeyMaterial] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def of(cls, materials: Iterable[KeyMaterial]) -> KeyRing:
        return cls(MappingProxyType({m.kid: m for m in materials}))

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[KeyMaterial]:
        return iter(self._keys.values())

    def __contains__(self, kid: object) -> bool:
        return kid in self._keys

    def with_material(self, material: KeyMaterial) -> KeyRing:
        """New ring that also holds `material` (replacing any entry with the same kid)."""
        return KeyRing(MappingProxyType({**self._keys, material.kid: material}))

    def retire(self, kid: str) -> Result[KeyRing]:
        """New ring in which `kid` is kept for verification only."""
        return self.resolve(kid).map(
            lambda material: KeyRing(MappingProxyType({**self._keys, kid: material.retire()}))
        ).peek(lambda _: log.info("keyring.key_retired", kid=kid))

    def resolve(self, kid: str) -> Result[KeyMaterial]:
        return Result.from_optional(self._keys.get(kid), f"No key material for kid {kid!r}").peek_failure(
            lambda _: log.warning("keyring.kid_unknown", kid=kid, known=len(self._keys))
        )

    def active_signing_key(self) -> Result[KeyMaterial]:
        """The most recently added key that can still sign."""
        signing = [m for m in self._keys.values() if m.can_sign]
        if not signing:
            return Result.failure(ErrorCode.KEY_NOT_FOUND, "Key ring holds no active signing key")
        return Result.success(signing[-1])


def load_key_ring(
    directory: Path | str,
    algorithm: SigningAlgorithm | str,
    namespace: str = DEFAULT_NAMESPACE,
) -> Result[KeyRing]:
    """
    Build a verification ring from every `*.pub.pem` file in `directory`.

    Files whose name starts with `retired-` are loaded as retired material.
    A file that fails to load fails the whole ring.
    """
    folder = Path(directory)
    if not folder.is_dir():
        return Result.failure(ErrorCode.KEY_MATERIAL_ERROR, f"Key ring directory {folder} does not exist")

    ring = Result.success(KeyRing())
    for path in sorted(folder.glob("*.pub.pem")):
        active = not path.name.startswith("retired-")
        ring = ring.flat_map(
            lambda r, p=path, a=active: Result.from_computation(
                p.read_bytes, ErrorCode.KEY_MATERIAL_ERROR, f"Cannot read {p}"
            )
            .flat_map(lambda pem: load_public_key_material(pem, algorithm, namespace, active=a))
            .map(r.with_material)
        )
    return ring.peek(lambda r: log.info("keyring.loaded", directory=str(folder), keys=len(r)))
