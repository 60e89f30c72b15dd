"""
Run status, recorded data and the final result of an acoustic velocity run.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from types import MappingProxyType
from typing import Optional, Dict, Any, List, Mapping, Tuple

import numpy as np

logger = logging.getLogger(__name__)


class SimulationStatus(Enum):
    """Lifecycle of a simulation run."""
    NOT_INITIALIZED = auto()
    INITIALIZING = auto()
    READY = auto()
    RUNNING = auto()
    COMPLETED = auto()
    FAILED = auto()
    CANCELLED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES

    def can_transition_to(self, target: 'SimulationStatus') -> bool:
        return target in _ALLOWED_TRANSITIONS[self]


_TERMINAL_STATES = frozenset({
    SimulationStatus.COMPLETED,
    SimulationStatus.FAILED,
    SimulationStatus.CANCELLED,
})

_ALLOWED_TRANSITIONS = {
    SimulationStatus.NOT_INITIALIZED: {SimulationStatus.INITIALIZING},
    SimulationStatus.INITIALIZING: {SimulationStatus.READY, SimulationStatus.FAILED},
    SimulationStatus.READY: {SimulationStatus.RUNNING, SimulationStatus.CANCELLED},
    SimulationStatus.RUNNING: {
        SimulationStatus.COMPLETED,
        SimulationStatus.FAILED,
        SimulationStatus.CANCELLED,
    },
    SimulationStatus.COMPLETED: set(),
    SimulationStatus.FAILED: set(),
    SimulationStatus.CANCELLED: set(),
}


class InvalidStatusTransition(RuntimeError):
    """Raised on a status change the lifecycle does not allow."""

    def __init__(self, current: SimulationStatus, target: SimulationStatus):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move from {current.name} to {target.name}")


class StatusTracker:
    """Thread-safe holder of the current SimulationStatus."""

    def __init__(self):
        self._status = SimulationStatus.NOT_INITIALIZED
        self._lock = threading.Lock()
        self.history: List[Tuple[SimulationStatus, datetime]] = [
            (self._status, datetime.now())
        ]

    @property
    def status(self) -> SimulationStatus:
        return self._status

    def transition(self, target: SimulationStatus) -> None:
        with self._lock:
            if not self._status.can_transition_to(target):
                raise InvalidStatusTransition(self._status, target)
            logger.debug(f"Status {self._status.name} -> {target.name}")
            self._status = target
            self.history.append((target, datetime.now()))


class ReceiverTrace:
    """
    Receiver recording.

    Samples are appended one per time step; ``freeze()`` makes the trace
    read-only once stepping has finished.
    """

    def __init__(self, n_samples: int, dt: float):
        if n_samples <= 0:
            raise ValueError(f"n_samples must be positive, got {n_samples}")
        if dt <= 0:
            raise ValueError(f"dt must be positive, got {dt}")
        self.dt = dt
        self._data = np.zeros(n_samples, dtype=np.float64)
        self._count = 0
        self._frozen = False

    def append(self, value: float) -> None:
        if self._frozen:
            raise RuntimeError("Receiver trace is frozen")
        if self._count >= len(self._data):
            raise IndexError("Receiver trace is full")
        self._data[self._count] = value
        self._count += 1

    def freeze(self) -> None:
        self._frozen = True
        self._data.setflags(write=False)

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return self._count

    @property
    def capacity(self) -> int:
        return len(self._data)

    @property
    def samples(self) -> np.ndarray:
        """Recorded samples (read-only view)."""
        view = self._data[:self._count]
        view.setflags(write=False)
        return view

    @property
    def times(self) -> np.ndarray:
        return np.arange(self._count) * self.dt


class WavefieldArchive:
    """
    Wavefield snapshots keyed by simulation time.

    Snapshots past ``max_frames`` are dropped.
    """

    def __init__(self, max_frames: int = 200):
        self.max_frames = max_frames
        self._frames: Dict[float, np.ndarray] = {}
        self.dropped = 0

    def record(self, time: float, field_values: np.ndarray) -> bool:
        if len(self._frames) >= self.max_frames:
            if self.dropped == 0:
                logger.debug(f"Wavefield archive full at {self.max_frames} frames")
            self.dropped += 1
            return False
        frame = np.array(field_values, copy=True)
        frame.setflags(write=False)
        self._frames[float(time)] = frame
        return True

    @property
    def times(self) -> List[float]:
        return sorted(self._frames)

    def frame(self, time: float) -> np.ndarray:
        return self._frames[float(time)]

    def __len__(self) -> int:
        return len(self._frames)

    def __contains__(self, time: float) -> bool:
        return float(time) in self._frames


@dataclass(frozen=True)
class SimulationProgress:
    """Progress notification emitted at batch granularity."""
    simulation_id: str
    percent: float
    message: str
    step: int = 0
    total_steps: int = 0
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class SimulationResult:
    """
    Immutable outcome of a run.

    ``data`` holds the result map (measured/theoretical velocities,
    arrival times, moduli, time series). It is exposed as a read-only
    mapping and the arrays inside it are read-only.
    """
    simulation_id: str
    success: bool
    message: str
    status: SimulationStatus
    data: Mapping[str, Any] = field(default_factory=dict)
    validation_errors: Tuple[str, ...] = ()
    archive: Optional[WavefieldArchive] = field(default=None, compare=False, repr=False)
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        frozen = {}
        for key, value in dict(self.data).items():
            if isinstance(value, np.ndarray):
                value = np.array(value, copy=True)
                value.setflags(write=False)
            frozen[key] = value
        object.__setattr__(self, 'data', MappingProxyType(frozen))
        object.__setattr__(self, 'validation_errors', tuple(self.validation_errors))

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    @property
    def measured_p_velocity(self) -> Optional[float]:
        return self.data.get('MeasuredPWaveVelocity')

    @property
    def measured_s_velocity(self) -> Optional[float]:
        return self.data.get('MeasuredSWaveVelocity')

    @property
    def time_series(self) -> Optional[np.ndarray]:
        return self.data.get('TimeSeries')

    @classmethod
    def failure(cls, simulation_id: str, message: str,
                status: SimulationStatus = SimulationStatus.FAILED,
                validation_errors: Tuple[str, ...] = ()) -> 'SimulationResult':
        return cls(
            simulation_id=simulation_id,
            success=False,
            message=message,
            status=status,
            validation_errors=validation_errors,
        )

    def get_summary(self) -> str:
        if not self.success:
            return f"Simulation {self.simulation_id}: {self.message}"
        lines = [f"Simulation {self.simulation_id}: {self.message}"]
        for key in ('WaveType', 'MeasuredPWaveVelocity', 'MeasuredSWaveVelocity',
                    'TheoreticalPWaveVelocity', 'TheoreticalSWaveVelocity',
                    'CalculatedVpVsRatio', 'PWaveArrivalTime', 'SWaveArrivalTime',
                    'Runtime'):
            if key in self.data:
                value = self.data[key]
                lines.append(f"  {key}: {value:.6g}" if isinstance(value, float)
                             else f"  {key}: {value}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to plain types; arrays become lists."""
        data = {}
        for key, value in self.data.items():
            if isinstance(value, np.ndarray):
                value = value.tolist()
            data[key] = value
        return {
            'simulation_id': self.simulation_id,
            'success': self.success,
            'message': self.message,
            'status': self.status.name,
            'validation_errors': list(self.validation_errors),
            'created_at': self.created_at.isoformat(),
            'data': data,
        }
