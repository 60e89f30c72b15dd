"""
Memory budget checks for simulation runs.

Compares the estimated field memory of a run with the RAM that is
available right now (psutil) and reports whether it fits.
"""

import logging
from dataclasses import dataclass

import psutil

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemoryEstimate:
    """Result of a memory budget check (bytes)."""
    required: int
    available: int
    safety_factor: float

    @property
    def fits(self) -> bool:
        return self.required <= self.available * self.safety_factor

    @property
    def required_mb(self) -> float:
        return self.required / (1024 ** 2)

    @property
    def available_mb(self) -> float:
        return self.available / (1024 ** 2)


def get_available_memory() -> int:
    """System available RAM in bytes."""
    return int(psutil.virtual_memory().available)


def check_memory_budget(required_bytes: int, safety_factor: float = 0.7,
                        label: str = "simulation") -> MemoryEstimate:
    """
    Check whether ``required_bytes`` fits in available RAM.

    Logs a warning when it does not; the caller decides whether to go on.
    """
    estimate = MemoryEstimate(
        required=int(required_bytes),
        available=get_available_memory(),
        safety_factor=safety_factor,
    )
    if estimate.fits:
        logger.debug(
            f"{label}: needs {estimate.required_mb:.1f} MB, "
            f"{estimate.available_mb:.0f} MB available"
        )
    else:
        logger.warning(
            f"{label}: estimated {estimate.required_mb:.1f} MB exceeds "
            f"{safety_factor:.0%} of available memory ({estimate.available_mb:.0f} MB)"
        )
    return estimate
