"""Models package - simulation inputs, configuration and results."""
from .material import Material, Mesh, ElasticProperties
from .simulation_config import (
    AcousticSimulationConfig,
    ComputeBackend,
    GridLimits,
    TriaxialResult,
    WaveType,
    create_default_config,
    parse_test_axis,
)
from .simulation_grid import SimulationGrid
from .velocity_model import VelocityModel, AIR_VELOCITY, AIR_DENSITY
from .simulation_result import (
    InvalidStatusTransition,
    ReceiverTrace,
    SimulationProgress,
    SimulationResult,
    SimulationStatus,
    WavefieldArchive,
)
from .velocity_session import StoredMeasurement, VelocitySession

__all__ = [
    'Material',
    'Mesh',
    'ElasticProperties',
    'AcousticSimulationConfig',
    'ComputeBackend',
    'GridLimits',
    'TriaxialResult',
    'WaveType',
    'create_default_config',
    'parse_test_axis',
    'SimulationGrid',
    'VelocityModel',
    'AIR_VELOCITY',
    'AIR_DENSITY',
    'InvalidStatusTransition',
    'ReceiverTrace',
    'SimulationProgress',
    'SimulationResult',
    'SimulationStatus',
    'WavefieldArchive',
    'StoredMeasurement',
    'VelocitySession',
]
