"""
Configuration for an acoustic velocity run.

Holds the run parameters (wave type, frequency, source amplitude/energy,
test axis), the optional prior tri-axial result and the grid budget.
Run-level validation is reported as a list of messages so a caller can
show every problem at once instead of failing on the first.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, List, Mapping, Sequence, Union

import numpy as np

logger = logging.getLogger(__name__)

MIN_TIME_STEPS = 10


class WaveType(Enum):
    """Wave mode excited by the source."""
    P_WAVE = "P-Wave"
    S_WAVE = "S-Wave"

    @classmethod
    def parse(cls, value: Union[str, 'WaveType']) -> 'WaveType':
        """Accept 'P-Wave', 'p', 'S_WAVE', etc."""
        if isinstance(value, WaveType):
            return value
        key = str(value).strip().lower().replace('_', '-')
        if key in ('p', 'p-wave', 'pwave', 'compressional'):
            return cls.P_WAVE
        if key in ('s', 's-wave', 'swave', 'shear'):
            return cls.S_WAVE
        raise ValueError(f"Unknown wave type: {value!r}")


class ComputeBackend(Enum):
    """Requested compute device."""
    AUTO = "auto"
    CPU = "cpu"
    GPU = "gpu"


_AXIS_ALIASES = {
    'x': (1.0, 0.0, 0.0), 'xaxis': (1.0, 0.0, 0.0), 'axisx': (1.0, 0.0, 0.0),
    'y': (0.0, 1.0, 0.0), 'yaxis': (0.0, 1.0, 0.0), 'axisy': (0.0, 1.0, 0.0),
    'z': (0.0, 0.0, 1.0), 'zaxis': (0.0, 0.0, 1.0), 'axisz': (0.0, 0.0, 1.0),
}

DEFAULT_AXIS = np.array([0.0, 0.0, 1.0])


def parse_test_axis(value: Union[str, Sequence[float], None]) -> np.ndarray:
    """
    Parse a test direction into a unit vector.

    Accepts axis names ("X", "y-axis", "axis_z"), comma separated triples
    ("1,0,0", "0.5, 0.5, 0") or a numeric sequence of length 3. Anything
    unusable falls back to +Z with a warning.
    """
    if value is None:
        logger.warning("No test axis given, using Z")
        return DEFAULT_AXIS.copy()

    if isinstance(value, str):
        key = value.strip().lower().replace('-', '').replace('_', '').replace(' ', '')
        if not key:
            logger.warning("Empty test axis, using Z")
            return DEFAULT_AXIS.copy()
        if key in _AXIS_ALIASES:
            return np.array(_AXIS_ALIASES[key])
        parts = key.split(',')
        if len(parts) != 3:
            logger.warning(f"Unknown test axis {value!r}, using Z")
            return DEFAULT_AXIS.copy()
        try:
            vec = np.array([float(p) for p in parts])
        except ValueError:
            logger.warning(f"Unknown test axis {value!r}, using Z")
            return DEFAULT_AXIS.copy()
    else:
        vec = np.asarray(value, dtype=np.float64).ravel()
        if vec.shape != (3,):
            logger.warning(f"Test axis must have 3 components, got {vec.shape}, using Z")
            return DEFAULT_AXIS.copy()

    norm = float(np.linalg.norm(vec))
    if not np.isfinite(norm) or norm < 1e-12:
        logger.warning(f"Degenerate test axis {value!r}, using Z")
        return DEFAULT_AXIS.copy()
    return vec / norm


def format_test_axis(axis: np.ndarray) -> str:
    """Short label for a direction: 'X', 'Y', 'Z' or 'a,b,c'."""
    for label, vec in (('X', (1.0, 0.0, 0.0)), ('Y', (0.0, 1.0, 0.0)), ('Z', (0.0, 0.0, 1.0))):
        if np.allclose(np.abs(axis), vec):
            return label
    return ','.join(f"{c:.3f}" for c in axis)


@dataclass(frozen=True)
class TriaxialResult:
    """
    Subset of a prior tri-axial compression test used by this run.

    Attributes:
        young_modulus: Young's modulus in MPa
        poisson_ratio: Poisson ratio
        breaking_pressure: Failure stress in MPa
        confining_pressure: Confining pressure of the tri-axial test in MPa
    """
    young_modulus: Optional[float] = None
    poisson_ratio: Optional[float] = None
    breaking_pressure: Optional[float] = None
    confining_pressure: Optional[float] = None

    @property
    def has_elastic_moduli(self) -> bool:
        return (self.young_modulus is not None and self.young_modulus > 0
                and self.poisson_ratio is not None)

    @property
    def has_breaking_pressure(self) -> bool:
        return self.breaking_pressure is not None and self.breaking_pressure > 0

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> Optional['TriaxialResult']:
        """Read the 'YoungModulus'/'PoissonRatio'/'BreakingPressure'/'ConfiningPressure' keys."""
        if not data:
            return None

        def _number(key: str) -> Optional[float]:
            value = data.get(key)
            if value is None:
                return None
            try:
                return float(value)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring non-numeric tri-axial value {key}={value!r}")
                return None

        return cls(
            young_modulus=_number('YoungModulus'),
            poisson_ratio=_number('PoissonRatio'),
            breaking_pressure=_number('BreakingPressure'),
            confining_pressure=_number('ConfiningPressure'),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'YoungModulus': self.young_modulus,
            'PoissonRatio': self.poisson_ratio,
            'BreakingPressure': self.breaking_pressure,
            'ConfiningPressure': self.confining_pressure,
        }
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class GridLimits:
    """
    Budget for the simulation grid.

    Attributes:
        points_per_wavelength: Target cells per dominant wavelength
        max_dim: Largest allowed cell count along any axis
        max_cells: Largest allowed total cell count
        min_dim: Smallest allowed cell count along any axis
        padding: Multiplier applied to the mesh extent
        min_extent: Floor for the padded extent of a flat axis (m)
    """
    points_per_wavelength: int = 12
    max_dim: int = 128
    max_cells: int = 8_388_608
    min_dim: int = 8
    padding: float = 1.05
    min_extent: float = 1e-3

    def __post_init__(self):
        if self.points_per_wavelength <= 0:
            raise ValueError(f"points_per_wavelength must be positive, got {self.points_per_wavelength}")
        if self.min_dim < 8 or self.min_dim % 2:
            raise ValueError(f"min_dim must be an even number >= 8, got {self.min_dim}")
        if self.max_dim < self.min_dim or self.max_dim % 2:
            raise ValueError(f"max_dim must be even and >= min_dim, got {self.max_dim}")
        if self.max_cells < self.min_dim ** 3:
            raise ValueError(f"max_cells must allow a min_dim^3 grid, got {self.max_cells}")
        if self.padding < 1.0:
            raise ValueError(f"padding must be >= 1, got {self.padding}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'points_per_wavelength': self.points_per_wavelength,
            'max_dim': self.max_dim,
            'max_cells': self.max_cells,
            'min_dim': self.min_dim,
            'padding': self.padding,
            'min_extent': self.min_extent,
        }


@dataclass
class AcousticSimulationConfig:
    """
    Parameters of one synthetic acoustic velocity test.

    Attributes:
        confining_pressure: Confining pressure in MPa
        wave_type: P-Wave or S-Wave
        time_steps: Minimum number of time steps
        frequency_khz: Source dominant frequency in kHz
        amplitude: Source peak amplitude
        energy: Source energy; the wavelet is scaled by sqrt(energy)
        test_axis: Propagation direction ("X", "Y", "Z" or "a,b,c")
        use_extended_time: Run five travel times instead of three
        triaxial_result: Optional prior tri-axial result map
        use_3d_propagation: Use the 3D integrator instead of the 1D line
        compute_backend: 'auto', 'cpu' or 'gpu'
        batch_size: Steps between progress reports (None = variant default)
        max_archived_frames: Cap on archived wavefield snapshots
        grid_limits: Grid budget
    """
    confining_pressure: float = 0.0
    wave_type: WaveType = WaveType.P_WAVE
    time_steps: int = 1000
    frequency_khz: float = 500.0
    amplitude: float = 1.0
    energy: float = 1.0
    test_axis: str = "Z"
    use_extended_time: bool = False
    triaxial_result: Optional[Dict[str, Any]] = None
    use_3d_propagation: bool = False
    compute_backend: ComputeBackend = ComputeBackend.AUTO
    batch_size: Optional[int] = None
    max_archived_frames: int = 200
    grid_limits: GridLimits = field(default_factory=GridLimits)

    def __post_init__(self):
        self.wave_type = WaveType.parse(self.wave_type)
        if not isinstance(self.compute_backend, ComputeBackend):
            self.compute_backend = ComputeBackend(str(self.compute_backend).lower())
        if isinstance(self.grid_limits, dict):
            self.grid_limits = GridLimits(**self.grid_limits)

    def validate(self) -> List[str]:
        """
        Validate run parameters.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not self.frequency_khz > 0:
            errors.append(f"Frequency must be positive, got {self.frequency_khz} kHz")
        if self.time_steps < MIN_TIME_STEPS:
            errors.append(
                f"Time steps must be at least {MIN_TIME_STEPS}, got {self.time_steps}"
            )
        if not self.amplitude > 0:
            errors.append(f"Amplitude must be positive, got {self.amplitude}")
        if self.energy < 0:
            errors.append(f"Energy must be non-negative, got {self.energy}")
        if self.confining_pressure < 0:
            errors.append(f"Confining pressure must be non-negative, got {self.confining_pressure}")
        if self.batch_size is not None and self.batch_size <= 0:
            errors.append(f"Batch size must be positive, got {self.batch_size}")

        return errors

    @property
    def is_p_wave(self) -> bool:
        return self.wave_type == WaveType.P_WAVE

    @property
    def frequency_hz(self) -> float:
        return self.frequency_khz * 1000.0

    @property
    def test_direction(self) -> np.ndarray:
        return parse_test_axis(self.test_axis)

    @property
    def triaxial(self) -> Optional[TriaxialResult]:
        return TriaxialResult.from_mapping(self.triaxial_result)

    def get_summary(self) -> str:
        """Get human-readable configuration summary."""
        return (
            f"Acoustic Config:\n"
            f"  Wave: {self.wave_type.value} at {self.frequency_khz} kHz, "
            f"amplitude {self.amplitude}, energy {self.energy}\n"
            f"  Axis: {self.test_axis}, confining pressure {self.confining_pressure} MPa\n"
            f"  Steps: >= {self.time_steps}"
            f"{' (extended)' if self.use_extended_time else ''}, "
            f"{'3D' if self.use_3d_propagation else '1D'} propagation\n"
            f"  Backend: {self.compute_backend.value}"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize configuration to dictionary."""
        return {
            'confining_pressure': self.confining_pressure,
            'wave_type': self.wave_type.value,
            'time_steps': self.time_steps,
            'frequency_khz': self.frequency_khz,
            'amplitude': self.amplitude,
            'energy': self.energy,
            'test_axis': self.test_axis,
            'use_extended_time': self.use_extended_time,
            'triaxial_result': dict(self.triaxial_result) if self.triaxial_result else None,
            'use_3d_propagation': self.use_3d_propagation,
            'compute_backend': self.compute_backend.value,
            'batch_size': self.batch_size,
            'max_archived_frames': self.max_archived_frames,
            'grid_limits': self.grid_limits.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'AcousticSimulationConfig':
        """Deserialize configuration from dictionary."""
        d = dict(d)
        wave_type = WaveType.parse(d.pop('wave_type', WaveType.P_WAVE.value))
        backend = ComputeBackend(d.pop('compute_backend', 'auto'))
        limits = GridLimits(**d.pop('grid_limits', {}))
        return cls(wave_type=wave_type, compute_backend=backend, grid_limits=limits, **d)

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> 'AcousticSimulationConfig':
        with open(path, 'r') as f:
            return cls.from_dict(json.load(f))

    def copy(self) -> 'AcousticSimulationConfig':
        return AcousticSimulationConfig.from_dict(self.to_dict())


def create_default_config(
    wave_type: Union[str, WaveType] = WaveType.P_WAVE,
    frequency_khz: float = 500.0,
    test_axis: str = "Z",
) -> AcousticSimulationConfig:
    """
    Create a run config with common defaults.

    Args:
        wave_type: P-Wave or S-Wave
        frequency_khz: Source frequency in kHz
        test_axis: Propagation direction

    Returns:
        AcousticSimulationConfig with default settings
    """
    return AcousticSimulationConfig(
        wave_type=WaveType.parse(wave_type),
        frequency_khz=frequency_khz,
        test_axis=test_axis,
    )
