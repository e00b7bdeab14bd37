"""
QR capacity planner adapter — smallest QR version for a Base45 string.

Adapter layer — implements the CapacityPlanner port.

The table below is the alphanumeric-mode character capacity of QR versions
1–40 for each error-correction level (ISO/IEC 18004). The planner picks the
first version whose capacity is at least the data length. It never
truncates: data longer than version 40 holds is CAPACITY_EXCEEDED.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType

import structlog
from railway import ErrorCode
from railway.result import Result

from prc_codec.adapters.base45 import is_alphanumeric
from prc_codec.domain.models import BarcodeArtifact, ErrorCorrectionLevel

log = structlog.get_logger()

MAX_VERSION = 40

CAPACITY_TABLE: MappingProxyType[ErrorCorrectionLevel, tuple[int, ...]] = MappingProxyType({
    ErrorCorrectionLevel.L: (
        25, 47, 77, 114, 154, 195, 224, 279, 335, 395,
        468, 535, 619, 667, 758, 854, 938, 1046, 1153, 1249,
        1352, 1460, 1588, 1704, 1853, 1990, 2132, 2223, 2369, 2520,
        2677, 2840, 3009, 3183, 3351, 3537, 3729, 3927, 4087, 4296,
    ),
    ErrorCorrectionLevel.M: (
        20, 38, 61, 90, 122, 154, 178, 221, 262, 311,
        366, 419, 483, 528, 600, 656, 734, 816, 909, 970,
        1035, 1134, 1248, 1326, 1451, 1542, 1637, 1732, 1839, 1994,
        2113, 2238, 2369, 2506, 2632, 2780, 2894, 3054, 3220, 3391,
    ),
    ErrorCorrectionLevel.Q: (
        16, 29, 47, 67, 87, 108, 125, 157, 189, 221,
        259, 296, 352, 376, 426, 470, 531, 574, 644, 702,
        742, 823, 890, 963, 1041, 1094, 1172, 1263, 1322, 1429,
        1499, 1618, 1700, 1787, 1867, 1966, 2071, 2181, 2298, 2420,
    ),
    ErrorCorrectionLevel.H: (
        10, 20, 35, 50, 64, 84, 93, 122, 143, 174,
        200, 227, 259, 283, 321, 365, 408, 452, 493, 557,
        587, 640, 672, 744, 779, 864, 910, 958, 1016, 1080,
        1150, 1226, 1307, 1394, 1431, 1530, 1591, 1658, 1774, 1852,
    ),
})


def capacity(version: int, level: ErrorCorrectionLevel = ErrorCorrectionLevel.L) -> int:
    """Alphanumeric capacity of a single QR version (1–40)."""
    if not 1 <= version <= MAX_VERSION:
        raise ValueError(f"QR version must be between 1 and {MAX_VERSION}, got {version}")
    return CAPACITY_TABLE[level][version - 1]


def parse_level(level: ErrorCorrectionLevel | str) -> Result[ErrorCorrectionLevel]:
    """Accept an enum member or its letter (case-insensitive). Anything else is a configuration error."""
    if isinstance(level, ErrorCorrectionLevel):
        return Result.success(level)
    try:
        return Result.success(ErrorCorrectionLevel(str(level).strip().upper()))
    except ValueError:
        return Result.failure(
            ErrorCode.CONFIGURATION_ERROR,
            f"Unknown error correction level {level!r}; expected one of L, M, Q, H",
        )


@dataclass(frozen=True, slots=True)
class QrStats:
    """Size summary of the QR code a string needs."""

    length: int
    version: int
    error_correction: ErrorCorrectionLevel
    capacity: int
    module_count: int

    @property
    def size(self) -> str:
        return f"{self.module_count}x{self.module_count}"

    @property
    def utilisation(self) -> float:
        return round(self.length / self.capacity, 3)


class QrCapacityPlanner:
    """Pick QR versions from the fixed capacity table. Holds no mutable state."""

    def select_version(
        self, data: str, level: ErrorCorrectionLevel | str = ErrorCorrectionLevel.L
    ) -> Result[int]:
        return parse_level(level).flat_map(lambda lvl: self._select(len(data), lvl))

    def plan(
        self, data: str, level: ErrorCorrectionLevel | str = ErrorCorrectionLevel.L
    ) -> Result[BarcodeArtifact]:
        """
        Size `data` for a QR code and package it as a BarcodeArtifact.

        The data must already be in the alphanumeric alphabet; anything else
        would force byte mode and invalidate the capacity figures.
        """
        if not is_alphanumeric(data):
            return Result.failure(
                ErrorCode.CODEC_FAILURE,
                "Barcode data contains characters outside the QR alphanumeric alphabet",
            )
        return parse_level(level).flat_map(
            lambda lvl: self._select(len(data), lvl).map(
                lambda version: BarcodeArtifact(data=data, version=version, error_correction=lvl)
            )
        )

    def stats(
        self, data: str, level: ErrorCorrectionLevel | str = ErrorCorrectionLevel.L
    ) -> Result[QrStats]:
        return self.plan(data, level).map(
            lambda artifact: QrStats(
                length=artifact.length,
                version=artifact.version,
                error_correction=artifact.error_correction,
                capacity=capacity(artifact.version, artifact.error_correction),
                module_count=artifact.module_count,
            )
        )

    def _select(self, length: int, level: ErrorCorrectionLevel) -> Result[int]:
        capacities = CAPACITY_TABLE[level]
        for version, limit in enumerate(capacities, start=1):
            if length <= limit:
                log.debug("planner.version_selected", length=length, level=level.value, version=version)
                return Result.success(version)

        log.warning("planner.capacity_exceeded", length=length, level=level.value)
        return Result.failure(
            ErrorCode.CAPACITY_EXCEEDED,
            f"Data too large for QR code ({length} characters). "
            f"Maximum capacity for error correction level {level.value} is {capacities[-1]} characters.",
        )
