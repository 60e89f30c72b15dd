"""
Explicit FDTD integrators.

Three interchangeable variants share one stepping protocol:

    inject(value)   add a source sample to the current field
    step()          dispatch one kernel, then rotate buffers
    sample()        read the current field at the receiver

- PWave1DIntegrator: symplectic update with a boundary damping ramp,
  dt = dx / (2.0 * v_max)
- SWave1DIntegrator: same stencil with shear velocity, no ramp,
  dt = dx / (2.1 * v_max)
- Isotropic3DIntegrator: second-order leapfrog with P or S Laplacian
  coefficients, dt = dx / (1.2 * sqrt(3) * v_max)

All three keep a 2-cell boundary at exactly zero.
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np

from models.simulation_config import WaveType
from processors.fdtd.compute_device import ComputeDevice, KernelId
from processors.fdtd.field_arena import FieldArena

logger = logging.getLogger(__name__)

BOUNDARY_CELLS = 2
RAMP_CELLS = 10
RAMP_STRENGTH = 0.9

P_WAVE_DAMPING_SCALE = 0.01   # times material attenuation
S_WAVE_DAMPING = 1e-4

MIN_LINE_POINTS = 200
MAX_LINE_POINTS = 200_000

# Laplacian coefficients (neighbor sum, center)
LAPLACIAN_COEFFICIENTS = {
    WaveType.P_WAVE: (1.0, 6.0),
    WaveType.S_WAVE: (0.8, 4.8),
}


@dataclass(frozen=True)
class LineGeometry:
    """
    Discretised source-receiver line for the 1D variants.

    The line extends half the separation beyond source and receiver, so the
    source sits at 25% and the receiver at 75% of it.
    """
    n_points: int
    dx: float
    source_index: int
    receiver_index: int

    @property
    def span(self) -> int:
        return self.receiver_index - self.source_index

    def parameter_range(self) -> Tuple[float, float]:
        """Line parameter t of the first and last point (source t=0, receiver t=1)."""
        return (-self.source_index / self.span,
                (self.n_points - 1 - self.source_index) / self.span)


def plan_line(distance: float, wavelength: float, points_per_wavelength: int = 12) -> LineGeometry:
    """Line geometry with at least ``points_per_wavelength`` points per wavelength."""
    if distance <= 0:
        raise ValueError(f"distance must be positive, got {distance}")
    span = int(math.ceil(distance * points_per_wavelength / wavelength))
    span = min(max(span, MIN_LINE_POINTS // 2), MAX_LINE_POINTS // 2)
    source = span // 2
    return LineGeometry(
        n_points=2 * span,
        dx=distance / span,
        source_index=source,
        receiver_index=source + span,
    )


def damping_ramp(n: int, width: int = RAMP_CELLS, strength: float = RAMP_STRENGTH) -> np.ndarray:
    """Linear ramp: ``strength`` at the edges, falling to zero ``width`` cells in."""
    ramp = np.zeros(n)
    width = min(width, n // 2)
    for i in range(width):
        value = strength * (1.0 - i / width)
        ramp[i] = value
        ramp[n - 1 - i] = value
    return ramp


class FDTDIntegrator(ABC):
    """Base class for the explicit integrators."""

    kernel: KernelId
    default_batch_size: int = 50
    archive_interval: int = 10

    def __init__(self, device: ComputeDevice, shape: Tuple[int, ...],
                 source: Tuple[int, ...], receiver: Tuple[int, ...],
                 dx: float, dt: float):
        if dx <= 0 or dt <= 0:
            raise ValueError(f"dx and dt must be positive, got dx={dx}, dt={dt}")
        self.device = device
        self.shape = tuple(shape)
        self.source = tuple(int(s) for s in source)
        self.receiver = tuple(int(r) for r in receiver)
        self.dx = dx
        self.dt = dt
        self.steps_taken = 0
        self.arena: Optional[FieldArena] = None

    @property
    def n_cells(self) -> int:
        return int(np.prod(self.shape))

    def inject(self, value: float) -> None:
        if value != 0.0:
            self.device.add_at(self.arena.current, self.source, value)

    def step(self) -> None:
        self.device.dispatch(self.kernel, self.shape, self._kernel_buffers(), self._kernel_params())
        self.arena.rotate()
        self.steps_taken += 1

    def sample(self) -> float:
        return self.device.read_at(self.arena.current, self.receiver)

    def snapshot(self) -> np.ndarray:
        """Host copy of the current field."""
        return self.device.download(self.arena.current)

    def boundary_mask(self) -> np.ndarray:
        """True for cells held at zero."""
        mask = np.zeros(self.shape, dtype=bool)
        for axis, n in enumerate(self.shape):
            index = [slice(None)] * len(self.shape)
            index[axis] = slice(0, BOUNDARY_CELLS)
            mask[tuple(index)] = True
            index[axis] = slice(n - BOUNDARY_CELLS, n)
            mask[tuple(index)] = True
        return mask

    @property
    def courant_number(self) -> float:
        return self.max_velocity * self.dt / self.dx

    @property
    @abstractmethod
    def max_velocity(self) -> float:
        """Fastest velocity in the medium."""

    @abstractmethod
    def _kernel_buffers(self) -> Dict[str, Any]:
        """Buffers for the next dispatch."""

    @abstractmethod
    def _kernel_params(self) -> Dict[str, float]:
        """Scalar kernel parameters."""

    def release(self) -> None:
        self.arena = None
        self.device.release()


class _Line1DIntegrator(FDTDIntegrator):
    """Shared state of the 1D variants: displacement ring plus velocity buffer."""

    courant_divisor: float = 2.0

    def __init__(self, device: ComputeDevice, velocity_profile: np.ndarray,
                 line: LineGeometry, damping_coeff: float):
        velocity_profile = np.asarray(velocity_profile, dtype=np.float64)
        if velocity_profile.shape != (line.n_points,):
            raise ValueError(
                f"velocity profile has {velocity_profile.shape} points, line has {line.n_points}"
            )
        if np.any(velocity_profile <= 0):
            raise ValueError("velocity profile must be positive")
        self._v_max = float(velocity_profile.max())
        dt = line.dx / (self.courant_divisor * self._v_max)
        super().__init__(device, (line.n_points,), (line.source_index,),
                         (line.receiver_index,), line.dx, dt)
        self.line = line
        self.damping_coeff = damping_coeff
        self.arena = FieldArena(device, self.shape, n_buffers=2)
        self._velocity = device.upload(velocity_profile)
        self._particle_velocity = device.allocate(self.shape)

    @property
    def max_velocity(self) -> float:
        return self._v_max

    def _kernel_params(self) -> Dict[str, float]:
        return {'dt': self.dt, 'dx': self.dx, 'damping_coeff': self.damping_coeff}


class PWave1DIntegrator(_Line1DIntegrator):
    """1D compressional integrator with a damping ramp at both ends."""

    kernel = KernelId.PWAVE_1D
    default_batch_size = 50
    archive_interval = 5
    courant_divisor = 2.0

    def __init__(self, device: ComputeDevice, velocity_profile: np.ndarray,
                 line: LineGeometry, attenuation: float):
        super().__init__(device, velocity_profile, line,
                         damping_coeff=P_WAVE_DAMPING_SCALE * attenuation)
        self.ramp = damping_ramp(line.n_points)
        self._ramp = device.upload(self.ramp)

    def _kernel_buffers(self) -> Dict[str, Any]:
        return {
            'u': self.arena.current,
            'v': self._particle_velocity,
            'velocity': self._velocity,
            'damping': self._ramp,
            'out': self.arena.next,
        }


class SWave1DIntegrator(_Line1DIntegrator):
    """1D shear integrator; boundary cells zeroed, no ramp."""

    kernel = KernelId.SWAVE_1D
    default_batch_size = 50
    archive_interval = 10
    courant_divisor = 2.1

    def __init__(self, device: ComputeDevice, velocity_profile: np.ndarray,
                 line: LineGeometry):
        super().__init__(device, velocity_profile, line, damping_coeff=S_WAVE_DAMPING)

    def _kernel_buffers(self) -> Dict[str, Any]:
        return {
            'u': self.arena.current,
            'v': self._particle_velocity,
            'velocity': self._velocity,
            'out': self.arena.next,
        }


class Isotropic3DIntegrator(FDTDIntegrator):
    """
    3D leapfrog integrator on the full velocity cube.

    Args:
        device: Compute device
        velocity: Velocity cube (m/s)
        spacing: Cell size (m)
        source: Source cell
        receiver: Receiver cell
        attenuation: Material attenuation used as the damping term
        wave_type: Selects the Laplacian coefficients
    """

    kernel = KernelId.ISOTROPIC_3D
    default_batch_size = 20
    archive_interval = 10
    courant_divisor = 1.2 * math.sqrt(3.0)

    def __init__(self, device: ComputeDevice, velocity: np.ndarray, spacing: float,
                 source: Tuple[int, int, int], receiver: Tuple[int, int, int],
                 attenuation: float, wave_type: WaveType = WaveType.P_WAVE):
        velocity = np.asarray(velocity, dtype=np.float64)
        if velocity.ndim != 3:
            raise ValueError(f"velocity must be 3D, got {velocity.ndim}D")
        if min(velocity.shape) <= 2 * BOUNDARY_CELLS:
            raise ValueError(f"grid {velocity.shape} too small for the boundary shell")
        self._v_max = float(velocity.max())
        dt = spacing / (self.courant_divisor * self._v_max)
        super().__init__(device, velocity.shape, source, receiver, spacing, dt)
        self.attenuation = attenuation
        self.wave_type = wave_type
        self.neighbor_coeff, self.center_coeff = LAPLACIAN_COEFFICIENTS[wave_type]
        self.arena = FieldArena(device, self.shape, n_buffers=3)
        self._velocity = device.upload(velocity)

    @property
    def max_velocity(self) -> float:
        return self._v_max

    def _kernel_buffers(self) -> Dict[str, Any]:
        return {
            'prev': self.arena.prev,
            'cur': self.arena.current,
            'next': self.arena.next,
            'velocity': self._velocity,
        }

    def _kernel_params(self) -> Dict[str, float]:
        return {
            'dt': self.dt,
            'dx': self.dx,
            'attenuation': self.attenuation,
            'neighbor_coeff': self.neighbor_coeff,
            'center_coeff': self.center_coeff,
            'boundary': BOUNDARY_CELLS,
        }
