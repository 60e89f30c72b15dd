"""
Grid planning for the acoustic simulation.

Chooses cell size and grid dimensions from the mesh extent and the
dominant wavelength, then clamps the grid to the configured budget.
Axes longer than ``max_dim`` cells are cut to ``max_dim`` at the same
spacing, so the grid covers the middle of the sample. Only the total cell
budget (``max_cells``) coarsens the spacing, and then it only grows.
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np

from models.simulation_config import GridLimits
from models.simulation_grid import SimulationGrid

logger = logging.getLogger(__name__)

BOUNDARY_CELLS = 2


class GridPlanner:
    """
    Plans SimulationGrid instances.

    Args:
        limits: Grid budget (defaults: 12 points per wavelength, 128 cells
                per axis, 8,388,608 cells total, at least 8 cells per axis)
    """

    def __init__(self, limits: Optional[GridLimits] = None):
        self.limits = limits or GridLimits()

    def plan(
        self,
        bounds: Tuple[Sequence[float], Sequence[float]],
        test_axis: Sequence[float],
        vp: float,
        vs: float,
        frequency_khz: float,
    ) -> SimulationGrid:
        """
        Plan the grid around a mesh bounding box.

        Args:
            bounds: (min_xyz, max_xyz) of the mesh in meters
            test_axis: Unit propagation direction
            vp: Theoretical P velocity (m/s)
            vs: Theoretical S velocity (m/s)
            frequency_khz: Source frequency in kHz

        Returns:
            SimulationGrid with source and receiver placed on the test axis
        """
        if frequency_khz <= 0:
            raise ValueError(f"frequency must be positive, got {frequency_khz} kHz")
        if min(vp, vs) <= 0:
            raise ValueError(f"velocities must be positive, got Vp={vp}, Vs={vs}")

        limits = self.limits
        lo = np.asarray(bounds[0], dtype=np.float64)
        hi = np.asarray(bounds[1], dtype=np.float64)
        axis = np.asarray(test_axis, dtype=np.float64)
        axis = axis / np.linalg.norm(axis)

        extent = np.maximum((hi - lo) * limits.padding, limits.min_extent)

        wavelength = min(vp, vs) / (frequency_khz * 1000.0)
        spacing = wavelength / limits.points_per_wavelength
        dims = np.ceil(extent / spacing).astype(np.int64)
        clamped = False

        # Per-axis limit: clamp the dims, keep the spacing
        if dims.max() > limits.max_dim:
            dims = np.minimum(dims, limits.max_dim)
            clamped = True

        # Total cell budget: shrink by the cube root of the overflow
        total = int(np.prod(np.maximum(dims, limits.min_dim)))
        if total > limits.max_cells:
            ratio = (total / limits.max_cells) ** (1.0 / 3.0)
            spacing *= ratio
            dims = np.minimum(np.ceil(extent / spacing).astype(np.int64), limits.max_dim)
            clamped = True

        dims = np.maximum(dims, limits.min_dim)
        dims = dims + (dims % 2)
        dims = np.minimum(dims, limits.max_dim)

        # Rounding up to even/min sizes can still overshoot the budget
        while int(np.prod(dims)) > limits.max_cells:
            largest = int(np.argmax(dims))
            if dims[largest] - 2 < limits.min_dim:
                break
            dims[largest] -= 2
            clamped = True

        dims_t = tuple(int(d) for d in dims)
        source, receiver = self._place_transducers(dims_t, axis)

        center = (lo + hi) / 2.0
        origin = center - np.asarray(dims_t) * spacing / 2.0
        sample_length = float(np.sum(np.abs(axis) * (hi - lo)))

        grid = SimulationGrid(
            dims=dims_t,
            spacing=float(spacing),
            origin=tuple(float(o) for o in origin),
            source=source,
            receiver=receiver,
            test_axis=tuple(float(a) for a in axis),
            sample_length=sample_length,
            wavelength=float(wavelength),
            clamped=clamped,
        )
        logger.info(grid.get_summary())
        return grid

    @staticmethod
    def _place_transducers(dims: Tuple[int, int, int],
                           axis: np.ndarray) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
        """
        Source at 25% and receiver at 75% along the test axis, centered on
        the other axes. Both stay inside the zeroed boundary shell.
        """
        dims_arr = np.asarray(dims)
        center = dims_arr // 2
        dominant = int(np.argmax(np.abs(axis)))
        half_span = dims_arr[dominant] // 4

        lower = np.full(3, BOUNDARY_CELLS)
        upper = dims_arr - BOUNDARY_CELLS - 1
        source = np.clip(np.rint(center - axis * half_span).astype(np.int64), lower, upper)
        receiver = np.clip(np.rint(center + axis * half_span).astype(np.int64), lower, upper)
        return tuple(int(s) for s in source), tuple(int(r) for r in receiver)
