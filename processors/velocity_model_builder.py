"""
Velocity/density model construction from the sample mesh.

Every cell starts as air. Cells whose center lies within 1.5 cell sizes of
any mesh vertex take the material velocity and density. This nearest-vertex
proxy is not a solid voxelization: cells deep inside a coarse mesh, or near
concave regions, can stay air.

With a prior tri-axial breaking pressure the material cells are perturbed
by an estimated local stress: stiffening below 80% of the breaking
pressure, micro-crack softening above it.
"""

import logging
from typing import Optional

import numpy as np
from scipy.spatial import cKDTree

from models.material import Mesh
from models.simulation_config import TriaxialResult
from models.simulation_grid import SimulationGrid
from models.velocity_model import VelocityModel, AIR_VELOCITY, AIR_DENSITY

logger = logging.getLogger(__name__)

VERTEX_RADIUS_CELLS = 1.5

# Stress perturbation
CRACK_THRESHOLD = 0.8      # fraction of breaking pressure
STIFFENING_GAIN = 0.1
CRACK_SOFTENING = 1.0


def stress_velocity_multiplier(stress_ratio: np.ndarray) -> np.ndarray:
    """
    Velocity multiplier for local stress / breaking pressure.

    Rises as sqrt up to 1 + STIFFENING_GAIN at CRACK_THRESHOLD, then falls
    linearly.
    """
    s = np.clip(np.asarray(stress_ratio, dtype=np.float64), 0.0, None)
    below = 1.0 + STIFFENING_GAIN * np.sqrt(s / CRACK_THRESHOLD)
    above = 1.0 + STIFFENING_GAIN - CRACK_SOFTENING * (s - CRACK_THRESHOLD)
    return np.where(s <= CRACK_THRESHOLD, below, above)


class VelocityModelBuilder:
    """Builds VelocityModel instances for a planned grid."""

    def __init__(self, radius_cells: float = VERTEX_RADIUS_CELLS):
        self.radius_cells = radius_cells

    def build(
        self,
        grid: SimulationGrid,
        mesh: Mesh,
        material_velocity: float,
        material_density: float,
        triaxial: Optional[TriaxialResult] = None,
    ) -> VelocityModel:
        """
        Build the per-cell velocity and density arrays.

        Args:
            grid: Planned simulation grid
            mesh: Sample mesh
            material_velocity: Velocity of the sample for the run's wave type
            material_density: Sample density
            triaxial: Prior tri-axial result; a breaking pressure enables the
                      stress perturbation

        Returns:
            Read-only VelocityModel
        """
        if mesh.is_empty:
            raise ValueError("Cannot build a velocity model from an empty mesh")

        velocity = np.full(grid.shape, AIR_VELOCITY, dtype=np.float64)
        density = np.full(grid.shape, AIR_DENSITY, dtype=np.float64)

        mask = self.material_mask(grid, mesh)
        velocity[mask] = material_velocity
        density[mask] = material_density

        if triaxial is not None and triaxial.has_breaking_pressure:
            self._apply_stress_perturbation(grid, velocity, mask, triaxial.breaking_pressure)

        n_material = int(np.count_nonzero(mask))
        logger.info(
            f"Velocity model: {n_material:,}/{grid.total_cells:,} material cells "
            f"at {material_velocity:.0f} m/s"
        )
        if n_material == 0:
            logger.warning("No grid cell lies near a mesh vertex; model is all air")

        return VelocityModel(
            velocity=velocity,
            density=density,
            material_mask=mask,
            material_velocity=float(material_velocity),
        )

    def material_mask(self, grid: SimulationGrid, mesh: Mesh) -> np.ndarray:
        """Cells whose center is within ``radius_cells`` spacings of a vertex."""
        vertices = mesh.vertices()
        radius = self.radius_cells * grid.spacing
        mask = np.zeros(grid.shape, dtype=bool)

        # Only cells inside the vertex bounding box (plus radius) can match
        origin = np.asarray(grid.origin)
        dims = np.asarray(grid.dims)
        lo = np.floor((vertices.min(axis=0) - radius - origin) / grid.spacing - 0.5)
        hi = np.ceil((vertices.max(axis=0) + radius - origin) / grid.spacing - 0.5)
        lo = np.clip(lo.astype(np.int64), 0, dims - 1)
        hi = np.clip(hi.astype(np.int64), 0, dims - 1)
        if np.any(hi < lo):
            return mask

        axes = [origin[a] + (np.arange(lo[a], hi[a] + 1) + 0.5) * grid.spacing for a in range(3)]
        gx, gy, gz = np.meshgrid(*axes, indexing='ij')
        centers = np.stack([gx.ravel(), gy.ravel(), gz.ravel()], axis=1)

        tree = cKDTree(vertices)
        dist, _ = tree.query(centers, k=1, distance_upper_bound=radius * (1.0 + 1e-9),
                             workers=-1)
        near = np.isfinite(dist).reshape(gx.shape)
        mask[lo[0]:hi[0] + 1, lo[1]:hi[1] + 1, lo[2]:hi[2] + 1] = near
        return mask

    @staticmethod
    def _apply_stress_perturbation(grid: SimulationGrid, velocity: np.ndarray,
                                   mask: np.ndarray, breaking_pressure: float) -> None:
        center = (np.asarray(grid.dims) - 1) / 2.0
        max_distance = float(np.linalg.norm(center))
        idx = np.argwhere(mask)
        if idx.size == 0 or max_distance == 0:
            return

        normalized = np.linalg.norm(idx - center, axis=1) / max_distance
        stress_factor = 1.0 - 0.5 * normalized
        local_stress = breaking_pressure * stress_factor
        multiplier = stress_velocity_multiplier(local_stress / breaking_pressure)

        velocity[idx[:, 0], idx[:, 1], idx[:, 2]] *= multiplier
        logger.info(
            f"Stress perturbation (breaking pressure {breaking_pressure:.1f} MPa): "
            f"velocity multiplier {multiplier.min():.3f}-{multiplier.max():.3f}"
        )
