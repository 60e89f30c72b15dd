"""
Velocity and density models on the simulation grid.

Both arrays share the grid shape. Cells default to air and are overwritten
with material values near the mesh; once built the arrays are read-only.
Includes line sampling used to derive the 1D propagation profile.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import logging

import numpy as np

logger = logging.getLogger(__name__)

AIR_VELOCITY = 343.0        # m/s
AIR_DENSITY = 1.2           # kg/m^3
AIR_VELOCITY_THRESHOLD = 500.0  # cells slower than this are treated as air


@dataclass
class VelocityModel:
    """
    Per-cell velocity (m/s) and density (kg/m^3).

    Attributes:
        velocity: Velocity cube, shape (nx, ny, nz)
        density: Density cube, same shape
        material_mask: True where the cell belongs to the sample
        material_velocity: Velocity assigned to material cells before
                           any stress perturbation
    """
    velocity: np.ndarray
    density: np.ndarray
    material_mask: np.ndarray
    material_velocity: float

    def __post_init__(self):
        if self.velocity.ndim != 3:
            raise ValueError(f"velocity must be 3D, got {self.velocity.ndim}D")
        if self.density.shape != self.velocity.shape:
            raise ValueError(
                f"density shape {self.density.shape} must match "
                f"velocity shape {self.velocity.shape}"
            )
        if self.material_mask.shape != self.velocity.shape:
            raise ValueError("material_mask shape must match velocity shape")
        for arr in (self.velocity, self.density, self.material_mask):
            arr.setflags(write=False)

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self.velocity.shape

    @property
    def n_material_cells(self) -> int:
        return int(np.count_nonzero(self.material_mask))

    @property
    def max_velocity(self) -> float:
        return float(self.velocity.max())

    def line_indices(self, start: np.ndarray, end: np.ndarray, n_points: int,
                     t_min: float = 0.0, t_max: float = 1.0) -> np.ndarray:
        """
        Cell indices of ``n_points`` samples along a straight line.

        The line is parameterised as ``start + t*(end - start)`` for t in
        [t_min, t_max]; samples outside the grid are clamped to its edge.

        Returns:
            Integer array of shape (n_points, 3)
        """
        start = np.asarray(start, dtype=np.float64)
        end = np.asarray(end, dtype=np.float64)
        t = np.linspace(t_min, t_max, n_points)
        points = start[None, :] + t[:, None] * (end - start)[None, :]
        idx = np.rint(points).astype(np.int64)
        upper = np.asarray(self.shape) - 1
        return np.clip(idx, 0, upper)

    def velocity_profile(self, start: np.ndarray, end: np.ndarray, n_points: int,
                         t_min: float = 0.0, t_max: float = 1.0,
                         air_replacement: Optional[float] = None) -> np.ndarray:
        """
        Velocities sampled along a line.

        If ``air_replacement`` is given, air cells take that value so the
        profile describes propagation through the sample only.
        """
        idx = self.line_indices(start, end, n_points, t_min, t_max)
        profile = self.velocity[idx[:, 0], idx[:, 1], idx[:, 2]].astype(np.float64)
        if air_replacement is not None:
            profile = np.where(profile < AIR_VELOCITY_THRESHOLD, air_replacement, profile)
        return profile

    def harmonic_mean_velocity(self, start: np.ndarray, end: np.ndarray,
                               air_replacement: float) -> float:
        """Travel-time averaged velocity between two cells."""
        n_points = int(np.ceil(np.linalg.norm(np.subtract(end, start)))) + 1
        profile = self.velocity_profile(start, end, max(n_points, 2),
                                        air_replacement=air_replacement)
        return float(len(profile) / np.sum(1.0 / profile))
