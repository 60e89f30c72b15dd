"""
Tests for grid planning and transducer placement.
"""

import numpy as np
import pytest

GRANITE_VP = 5617.0
GRANITE_VS = 3272.0


class TestGridPlanner:
    """Tests for GridPlanner.plan."""

    def test_unclamped_grid(self, cube_mesh):
        """A 2 cm cube at 500 kHz fits the budget at 12 points per wavelength."""
        from processors.grid_planner import GridPlanner

        grid = GridPlanner().plan(cube_mesh.bounds(), [0, 0, 1],
                                  GRANITE_VP, GRANITE_VS, 500.0)

        assert not grid.clamped
        assert grid.dims == (40, 40, 40)
        assert grid.spacing * 12 == pytest.approx(GRANITE_VS / 500e3)
        assert grid.wavelength == pytest.approx(GRANITE_VS / 500e3)
        assert grid.source == (20, 20, 10)
        assert grid.receiver == (20, 20, 30)

    def test_grid_is_centered_on_mesh(self, cube_mesh):
        from processors.grid_planner import GridPlanner

        grid = GridPlanner().plan(cube_mesh.bounds(), [0, 0, 1],
                                  GRANITE_VP, GRANITE_VS, 500.0)
        center = np.asarray(grid.origin) + np.asarray(grid.dims) * grid.spacing / 2

        np.testing.assert_allclose(center, [0.01, 0.01, 0.01])

    def test_per_axis_clamp(self, slab_mesh):
        """A 0.5 m slab is cut to 128 cells along its long axes at unchanged spacing."""
        from processors.grid_planner import GridPlanner

        grid = GridPlanner().plan(slab_mesh.bounds(), [1, 0, 0],
                                  GRANITE_VP, GRANITE_VS, 500.0)

        assert grid.clamped
        assert grid.dims == (128, 128, 8)
        assert grid.spacing * 12 == pytest.approx(GRANITE_VS / 500e3)
        assert grid.total_cells < GridPlanner().limits.max_cells
        assert grid.source_receiver_distance == pytest.approx(64 * grid.spacing)
        assert grid.source == (32, 64, 4)
        assert grid.receiver == (96, 64, 4)
        assert grid.sample_length == pytest.approx(0.5)

    def test_spacing_follows_wavelength_within_budget(self, cube_mesh, slab_mesh):
        """Without a total-cell overflow the spacing stays at a twelfth of the wavelength."""
        from processors.grid_planner import GridPlanner

        planner = GridPlanner()
        for mesh in (cube_mesh, slab_mesh):
            for freq in (50.0, 500.0, 2000.0):
                grid = planner.plan(mesh.bounds(), [1, 0, 0], GRANITE_VP, GRANITE_VS, freq)
                assert grid.total_cells <= planner.limits.max_cells
                assert grid.spacing * 12 == pytest.approx(grid.wavelength)

    def test_total_cell_budget(self, cube_mesh):
        """Grids over max_cells are coarsened and trimmed to even dims within budget."""
        from models.simulation_config import GridLimits
        from processors.grid_planner import GridPlanner

        limits = GridLimits(max_dim=64, max_cells=20000)
        grid = GridPlanner(limits).plan(cube_mesh.bounds(), [0, 0, 1],
                                        GRANITE_VP, GRANITE_VS, 500.0)

        assert grid.clamped
        assert grid.total_cells <= 20000
        assert all(d % 2 == 0 and d >= 8 for d in grid.dims)
        assert grid.spacing > grid.wavelength / 12

    def test_invariants_across_inputs(self, cube_mesh, slab_mesh):
        """Dims stay even and within limits; transducers stay off the boundary."""
        from processors.grid_planner import GridPlanner

        planner = GridPlanner()
        for mesh in (cube_mesh, slab_mesh):
            for axis in ([1, 0, 0], [0, 1, 0], [0, 0, 1], [0.6, 0.8, 0.0]):
                for freq in (50.0, 500.0, 2000.0):
                    grid = planner.plan(mesh.bounds(), axis, GRANITE_VP, GRANITE_VS, freq)
                    assert all(d % 2 == 0 and 8 <= d <= 128 for d in grid.dims)
                    assert grid.total_cells <= planner.limits.max_cells
                    for cell in (grid.source, grid.receiver):
                        assert all(2 <= c <= d - 3 for c, d in zip(cell, grid.dims))
                    assert grid.source != grid.receiver

    def test_flat_axis_receiver_clamped(self, slab_mesh):
        """On an 8-cell axis the 75% receiver lands on the last interior cell."""
        from processors.grid_planner import GridPlanner

        grid = GridPlanner().plan(slab_mesh.bounds(), [0, 0, 1],
                                  GRANITE_VP, GRANITE_VS, 500.0)

        assert grid.dims[2] == 8
        assert grid.source[2] == 2
        assert grid.receiver[2] == 5

    def test_diagonal_axis_is_symmetric(self, cube_mesh):
        from processors.grid_planner import GridPlanner

        grid = GridPlanner().plan(cube_mesh.bounds(), [1, 1, 0],
                                  GRANITE_VP, GRANITE_VS, 500.0)
        center = np.asarray(grid.dims) // 2

        np.testing.assert_array_equal(
            np.asarray(grid.source) + np.asarray(grid.receiver), 2 * center)
        assert grid.source[0] < center[0] < grid.receiver[0]
        assert grid.source[1] < center[1] < grid.receiver[1]

    def test_source_receiver_distance(self, cube_mesh):
        from processors.grid_planner import GridPlanner

        grid = GridPlanner().plan(cube_mesh.bounds(), [0, 0, 1],
                                  GRANITE_VP, GRANITE_VS, 500.0)

        assert grid.source_receiver_distance == pytest.approx(20 * grid.spacing)

    def test_invalid_inputs(self, cube_mesh):
        from processors.grid_planner import GridPlanner

        planner = GridPlanner()
        with pytest.raises(ValueError, match="frequency"):
            planner.plan(cube_mesh.bounds(), [0, 0, 1], GRANITE_VP, GRANITE_VS, 0.0)
        with pytest.raises(ValueError, match="velocities"):
            planner.plan(cube_mesh.bounds(), [0, 0, 1], GRANITE_VP, 0.0, 500.0)


class TestSimulationGrid:
    """Tests for SimulationGrid helpers."""

    def test_cell_centers(self):
        from models.simulation_grid import SimulationGrid

        grid = SimulationGrid(dims=(8, 8, 8), spacing=0.5, origin=(0.0, 0.0, 0.0),
                              source=(2, 4, 4), receiver=(5, 4, 4),
                              test_axis=(1.0, 0.0, 0.0), sample_length=3.0,
                              wavelength=6.0)

        np.testing.assert_allclose(grid.cell_center((0, 0, 0)), [0.25, 0.25, 0.25])
        assert grid.cell_centers().shape == (8, 8, 8, 3)
        assert grid.memory_bytes(2, 4) == 512 * 8
        assert grid.dominant_axis == 0

    def test_transducer_outside_grid(self):
        from models.simulation_grid import SimulationGrid

        with pytest.raises(ValueError, match="receiver"):
            SimulationGrid(dims=(8, 8, 8), spacing=0.5, origin=(0.0, 0.0, 0.0),
                           source=(2, 4, 4), receiver=(8, 4, 4),
                           test_axis=(1.0, 0.0, 0.0), sample_length=3.0,
                           wavelength=6.0)
