"""
Pytest configuration and fixtures for the acoustic velocity tests.
"""
import numpy as np
import pytest
import tempfile
import shutil
from pathlib import Path

# Add project root to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture
def granite():
    """Granite sample at 10 MPa confining pressure."""
    from models.material import Material
    return Material(name="Granite", density=2650.0, confining_pressure=10.0)


@pytest.fixture
def slab_mesh():
    """Two-triangle 0.5 m x 0.5 m slab in the z=0 plane."""
    from models.material import Mesh
    return Mesh.from_triangles([
        [[0.0, 0.0, 0.0], [0.5, 0.0, 0.0], [0.5, 0.5, 0.0]],
        [[0.0, 0.0, 0.0], [0.5, 0.5, 0.0], [0.0, 0.5, 0.0]],
    ])


@pytest.fixture
def cube_mesh():
    """Closed 2 cm cube (12 triangles)."""
    from models.material import Mesh
    s = 0.02
    v = np.array([
        [0, 0, 0], [s, 0, 0], [s, s, 0], [0, s, 0],
        [0, 0, s], [s, 0, s], [s, s, s], [0, s, s],
    ], dtype=float)
    faces = [
        (0, 1, 2), (0, 2, 3), (4, 5, 6), (4, 6, 7),
        (0, 1, 5), (0, 5, 4), (2, 3, 7), (2, 7, 6),
        (1, 2, 6), (1, 6, 5), (0, 3, 7), (0, 7, 4),
    ]
    return Mesh(np.array([[v[a], v[b], v[c]] for a, b, c in faces]))


@pytest.fixture
def p_wave_config():
    """
    1D P-wave run along X at 500 kHz.

    A 128-cell axis at 12 points per wavelength spans only about three
    P wavelengths, where the wavelet lead-in dominates the pick. The
    coarser grid keeps the slab path near nine wavelengths long.
    """
    from models.simulation_config import AcousticSimulationConfig, GridLimits, WaveType
    return AcousticSimulationConfig(
        wave_type=WaveType.P_WAVE,
        frequency_khz=500.0,
        amplitude=1.0,
        energy=1.0,
        time_steps=100,
        test_axis="X",
        confining_pressure=10.0,
        compute_backend="cpu",
        grid_limits=GridLimits(points_per_wavelength=4),
    )


@pytest.fixture(scope="session")
def cpu_device():
    """Numba CPU device, compiled once per test session."""
    from processors.fdtd.compute_device import NumbaCPUDevice
    device = NumbaCPUDevice()
    device.warm_up()
    return device


@pytest.fixture(scope="session")
def torch_cpu_device():
    """Torch strategy on the torch CPU device."""
    import torch
    from processors.fdtd.compute_device import TorchDevice
    return TorchDevice(torch.device('cpu'))


@pytest.fixture
def impulse_trace():
    """Zero trace with a unit impulse at sample 120."""
    trace = np.zeros(400)
    trace[120] = 1.0
    return trace, 120


@pytest.fixture
def noisy_two_arrival_trace():
    """Weak noise, a P pulse at sample 200 and a stronger S pulse at sample 420."""
    np.random.seed(42)
    n = 800
    dt = 1e-7
    t = np.arange(n)
    trace = 1e-9 * np.random.randn(n)

    def pulse(center, width, amp):
        tau = (t - center) / width
        return amp * (1 - 2 * tau ** 2) * np.exp(-tau ** 2) * (t >= center - 3 * width)

    trace += pulse(212, 4.0, 0.3)
    trace += pulse(440, 6.0, 1.0)
    return trace, dt


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)
