"""
Simulation grid definition produced by GridPlanner.
"""

from dataclasses import dataclass
from typing import Dict, Any, Tuple

import numpy as np


@dataclass(frozen=True)
class SimulationGrid:
    """
    Regular cubic-cell grid around the sample.

    Attributes:
        dims: Cell counts (nx, ny, nz); each even, within the grid limits
        spacing: Cell size in meters
        origin: Physical position of the corner of cell (0, 0, 0)
        source: Source cell (i, j, k)
        receiver: Receiver cell (i, j, k)
        test_axis: Unit propagation direction
        sample_length: Padded sample extent along the test axis (m)
        wavelength: Dominant wavelength used for the initial spacing (m)
        clamped: True if the grid budget forced a coarser spacing
    """
    dims: Tuple[int, int, int]
    spacing: float
    origin: Tuple[float, float, float]
    source: Tuple[int, int, int]
    receiver: Tuple[int, int, int]
    test_axis: Tuple[float, float, float]
    sample_length: float
    wavelength: float
    clamped: bool = False

    def __post_init__(self):
        if len(self.dims) != 3:
            raise ValueError(f"dims must have 3 entries, got {self.dims}")
        if self.spacing <= 0:
            raise ValueError(f"spacing must be positive, got {self.spacing}")
        for name, cell in (('source', self.source), ('receiver', self.receiver)):
            if any(c < 0 or c >= n for c, n in zip(cell, self.dims)):
                raise ValueError(f"{name} cell {cell} outside grid {self.dims}")

    @property
    def shape(self) -> Tuple[int, int, int]:
        return tuple(self.dims)

    @property
    def total_cells(self) -> int:
        nx, ny, nz = self.dims
        return nx * ny * nz

    @property
    def source_receiver_distance(self) -> float:
        """Straight-line source to receiver distance in meters."""
        delta = np.subtract(self.receiver, self.source)
        return float(np.linalg.norm(delta) * self.spacing)

    @property
    def dominant_axis(self) -> int:
        return int(np.argmax(np.abs(self.test_axis)))

    def cell_center(self, index) -> np.ndarray:
        """Physical position of the center of a cell."""
        return np.asarray(self.origin) + (np.asarray(index, dtype=np.float64) + 0.5) * self.spacing

    def cell_centers(self) -> np.ndarray:
        """Centers of every cell, shape (nx, ny, nz, 3)."""
        axes = [self.origin[a] + (np.arange(self.dims[a]) + 0.5) * self.spacing for a in range(3)]
        gx, gy, gz = np.meshgrid(*axes, indexing='ij')
        return np.stack([gx, gy, gz], axis=-1)

    def memory_bytes(self, n_fields: int = 5, itemsize: int = 8) -> int:
        """Estimated memory for ``n_fields`` grid-shaped arrays."""
        return self.total_cells * n_fields * itemsize

    def get_summary(self) -> str:
        nx, ny, nz = self.dims
        return (
            f"Grid {nx}x{ny}x{nz} ({self.total_cells:,} cells), "
            f"spacing {self.spacing * 1000:.4f} mm, "
            f"source {self.source}, receiver {self.receiver}, "
            f"distance {self.source_receiver_distance * 1000:.3f} mm"
            f"{' [clamped]' if self.clamped else ''}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'dims': list(self.dims),
            'spacing': self.spacing,
            'origin': list(self.origin),
            'source': list(self.source),
            'receiver': list(self.receiver),
            'test_axis': list(self.test_axis),
            'sample_length': self.sample_length,
            'wavelength': self.wavelength,
            'clamped': self.clamped,
        }
