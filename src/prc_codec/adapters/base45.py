"""
Base45 codec adapter — RFC 9285 over the QR alphanumeric alphabet.

Adapter layer — implements the TextCodec port.

Every two input bytes become three symbols, a trailing single byte becomes
two. Symbols come from the 45-character alphabet a QR code can store in
alphanumeric mode, so the output never needs byte mode:

    "AB"       → "BB8"
    "Hello!!"  → "%69 VD92EX0"

`b45encode` / `b45decode` are plain functions that raise ValueError;
`Base45Codec` wraps them onto the Result railway (CODEC_FAILURE).
"""

from __future__ import annotations

import re

import structlog
from railway import ErrorCode
from railway.result import Result

log = structlog.get_logger()

ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ $%*+-./:"

_INDEX = {char: i for i, char in enumerate(ALPHABET)}
_ALPHABET_RE = re.compile(r"^[0-9A-Z $%*+\-./:]*$")


def is_alphanumeric(text: str) -> bool:
    """True when every character of `text` is in the QR alphanumeric alphabet."""
    return bool(_ALPHABET_RE.match(text))


def b45encode(data: bytes) -> str:
    out: list[str] = []
    for i in range(0, len(data) - 1, 2):
        n = data[i] * 256 + data[i + 1]
        n, c = divmod(n, 45)
        e, d = divmod(n, 45)
        out.append(ALPHABET[c] + ALPHABET[d] + ALPHABET[e])
    if len(data) % 2:
        d, c = divmod(data[-1], 45)
        out.append(ALPHABET[c] + ALPHABET[d])
    return "".join(out)


def b45decode(text: str) -> bytes:
    """
    Decode Base45 text. Raises ValueError for a character outside the
    alphabet, a dangling single character, or a chunk that overflows its
    byte width (above 65535 for a triplet, above 255 for a pair).
    """
    try:
        values = [_INDEX[char] for char in text]
    except KeyError as e:
        raise ValueError(f"invalid Base45 character {e.args[0]!r}") from None

    if len(values) % 3 == 1:
        raise ValueError(f"invalid Base45 length {len(values)}: dangling single character")

    out = bytearray()
    for i in range(0, len(values), 3):
        chunk = values[i : i + 3]
        if len(chunk) == 3:
            n = chunk[0] + chunk[1] * 45 + chunk[2] * 45 * 45
            if n > 0xFFFF:
                raise ValueError(f"Base45 triplet at offset {i} decodes to {n}, above 65535")
            out.extend(divmod(n, 256))
        else:
            n = chunk[0] + chunk[1] * 45
            if n > 0xFF:
                raise ValueError(f"Base45 pair at offset {i} decodes to {n}, above 255")
            out.append(n)
    return bytes(out)


def _checked_encode(data: bytes) -> str:
    text = b45encode(data)
    if not is_alphanumeric(text):
        raise ValueError("encoded output contains characters outside the QR alphanumeric alphabet")
    return text


class Base45Codec:
    """Result-returning Base45 codec. Stateless and safe to share."""

    def encode(self, data: bytes) -> Result[str]:
        return Result.from_computation(
            lambda: _checked_encode(data),
            ErrorCode.CODEC_FAILURE,
            "Failed to Base45-encode data",
        ).peek(lambda text: log.debug("codec.encoded", input_bytes=len(data), output_chars=len(text)))

    def decode(self, text: str) -> Result[bytes]:
        return Result.from_computation(
            lambda: b45decode(text),
            ErrorCode.CODEC_FAILURE,
            "Failed to Base45-decode data",
        ).peek_failure(lambda err: log.warning("codec.decode_failed", input_chars=len(text), error=err.message))
