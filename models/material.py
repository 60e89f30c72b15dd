"""
Rock sample inputs: material record, triangle mesh and elastic properties.

The mesh is the digitized sample surface in physical units (meters). It is
only ever read: GridPlanner uses its bounding box and VelocityModelBuilder
uses its vertices.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Iterable, Sequence, Tuple
import logging

import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Material:
    """
    Material record of the digitized sample.

    Attributes:
        name: Free-text rock name, matched against the rock-type table
        density: Bulk density in kg/m^3
        confining_pressure: Confining pressure in MPa
    """
    name: str
    density: float
    confining_pressure: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'density': self.density,
            'confining_pressure': self.confining_pressure,
        }


@dataclass(frozen=True)
class Mesh:
    """
    Ordered triangle list.

    Attributes:
        triangles: Array of shape (n_triangles, 3, 3); triangle, vertex, xyz
    """
    triangles: np.ndarray = field(default_factory=lambda: np.zeros((0, 3, 3)))

    def __post_init__(self):
        tris = np.array(self.triangles, dtype=np.float64, copy=True)
        if tris.size == 0:
            tris = tris.reshape(0, 3, 3)
        if tris.ndim != 3 or tris.shape[1:] != (3, 3):
            raise ValueError(
                f"triangles must have shape (n, 3, 3), got {tris.shape}"
            )
        tris.setflags(write=False)
        object.__setattr__(self, 'triangles', tris)

    @classmethod
    def from_triangles(cls, triangles: Iterable[Sequence[Sequence[float]]]) -> 'Mesh':
        """Build a mesh from any nested sequence of three xyz vertices per triangle."""
        return cls(np.array(list(triangles), dtype=np.float64))

    @property
    def n_triangles(self) -> int:
        return int(self.triangles.shape[0])

    @property
    def is_empty(self) -> bool:
        return self.n_triangles == 0

    def vertices(self) -> np.ndarray:
        """Unique vertex positions, shape (n_vertices, 3)."""
        if self.is_empty:
            return np.zeros((0, 3))
        return np.unique(self.triangles.reshape(-1, 3), axis=0)

    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """Axis-aligned bounding box as (min_xyz, max_xyz)."""
        if self.is_empty:
            raise ValueError("Empty mesh has no bounds")
        flat = self.triangles.reshape(-1, 3)
        return flat.min(axis=0), flat.max(axis=0)


@dataclass(frozen=True)
class ElasticProperties:
    """
    Elastic properties of the sample, computed once per run.

    Moduli are in MPa, velocities in m/s. ``vp_vs_ratio`` is the ratio of
    the unclamped velocities so it can be recomputed from bulk modulus,
    shear modulus and density.
    """
    rock_type: str
    density: float
    young_modulus: float
    poisson_ratio: float
    bulk_modulus: float
    shear_modulus: float
    attenuation: float
    p_wave_velocity: float
    s_wave_velocity: float
    vp_vs_ratio: float
    from_triaxial: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'RockType': self.rock_type,
            'Density': self.density,
            'YoungModulus': self.young_modulus,
            'PoissonRatio': self.poisson_ratio,
            'BulkModulus': self.bulk_modulus,
            'ShearModulus': self.shear_modulus,
            'Attenuation': self.attenuation,
            'TheoreticalPWaveVelocity': self.p_wave_velocity,
            'TheoreticalSWaveVelocity': self.s_wave_velocity,
            'VpVsRatio': self.vp_vs_ratio,
        }
