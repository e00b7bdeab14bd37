"""
Compression adapter — zlib DEFLATE between the signed token and Base45.

Adapter layer — implements the Compressor port using the standard zlib
module: level 9, default 15-bit window, zlib framing (RFC 1950). Any
conforming inflater can read the output.

Inflation is bounded by `max_output_bytes` so a crafted barcode cannot
expand into an arbitrarily large token, and the stream must end exactly
where the input ends: truncated streams and trailing bytes both fail.
"""

from __future__ import annotations

import zlib

import structlog
from railway import ErrorCode
from railway.result import Result

log = structlog.get_logger()

COMPRESSION_LEVEL = 9
DEFAULT_MAX_OUTPUT_BYTES = 65536


class ZlibCompressor:
    """Compress token text to zlib bytes and back."""

    def __init__(self, max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES) -> None:
        if max_output_bytes < 1:
            raise ValueError(f"max_output_bytes must be positive, got {max_output_bytes}")
        self._max_output_bytes = max_output_bytes

    @property
    def max_output_bytes(self) -> int:
        return self._max_output_bytes

    def compress(self, token: str) -> Result[bytes]:
        return Result.from_computation(
            lambda: zlib.compress(token.encode("utf-8"), COMPRESSION_LEVEL),
            ErrorCode.COMPRESSION_FAILURE,
            "Failed to compress token",
        ).peek(
            lambda data: log.debug("compression.deflated", input_bytes=len(token), output_bytes=len(data))
        )

    def decompress(self, data: bytes) -> Result[str]:
        return Result.from_computation(
            lambda: self._inflate(data),
            ErrorCode.COMPRESSION_FAILURE,
            "Failed to decompress token",
        ).peek_failure(
            lambda err: log.warning("compression.inflate_failed", input_bytes=len(data), error=err.message)
        )

    def _inflate(self, data: bytes) -> str:
        inflater = zlib.decompressobj()
        raw = inflater.decompress(data, self._max_output_bytes)
        if inflater.unconsumed_tail:
            raise ValueError(f"inflated token exceeds {self._max_output_bytes} bytes")
        if not inflater.eof:
            raise ValueError("compressed stream is truncated")
        if inflater.unused_data:
            raise ValueError(f"{len(inflater.unused_data)} trailing byte(s) after compressed stream")
        return raw.decode("utf-8")
