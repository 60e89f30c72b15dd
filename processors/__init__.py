"""
Processors package - acoustic velocity simulation pipeline.
"""
from .material_properties import MaterialPropertyEstimator, MaterialValidationError, lookup_rock_type
from .source_wavelet import SourceWavelet, WaveSourceGenerator, ricker
from .grid_planner import GridPlanner
from .velocity_model_builder import VelocityModelBuilder, stress_velocity_multiplier
from .arrival_picker import ArrivalPick, ArrivalPicks, ArrivalPicker
from .result_assembler import ResultAssembler
from .acoustic_simulation import AcousticVelocitySimulation

__all__ = [
    'MaterialPropertyEstimator',
    'MaterialValidationError',
    'lookup_rock_type',
    'SourceWavelet',
    'WaveSourceGenerator',
    'ricker',
    'GridPlanner',
    'VelocityModelBuilder',
    'stress_velocity_multiplier',
    'ArrivalPick',
    'ArrivalPicks',
    'ArrivalPicker',
    'ResultAssembler',
    'AcousticVelocitySimulation',
]
