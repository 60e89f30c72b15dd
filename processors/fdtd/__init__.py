"""
FDTD engine - explicit wave-equation integrators on pluggable compute devices.
"""
from .compute_device import (
    ComputeBackendError,
    ComputeDevice,
    KernelId,
    NumbaCPUDevice,
    TorchDevice,
    create_compute_device,
)
from .field_arena import FieldArena
from .integrators import (
    FDTDIntegrator,
    Isotropic3DIntegrator,
    LineGeometry,
    PWave1DIntegrator,
    SWave1DIntegrator,
    plan_line,
)
from .engine import FDTDEngine

__all__ = [
    'ComputeBackendError',
    'ComputeDevice',
    'KernelId',
    'NumbaCPUDevice',
    'TorchDevice',
    'create_compute_device',
    'FieldArena',
    'FDTDIntegrator',
    'Isotropic3DIntegrator',
    'LineGeometry',
    'PWave1DIntegrator',
    'SWave1DIntegrator',
    'plan_line',
    'FDTDEngine',
]
