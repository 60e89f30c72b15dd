"""
Per-sample measurement session.

Carries the last measured P and S velocities (and arrival times) from one
run to the next so a later S-wave run can report Vp/Vs against an earlier
P-wave measurement and vice versa. Pass one session per physical sample.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional, Dict, Any

from models.simulation_config import WaveType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredMeasurement:
    """Velocity and arrival time from a completed run."""
    velocity: float
    arrival_time: float


class VelocitySession:
    """
    Lock-guarded store of prior P/S measurements for one sample.

    Written only when a run completes successfully; read when a run is
    initialized.
    """

    def __init__(self, sample_id: str = "default"):
        self.sample_id = sample_id
        self._lock = threading.RLock()
        self._measurements: Dict[WaveType, StoredMeasurement] = {}

    def get(self, wave_type: WaveType) -> Optional[StoredMeasurement]:
        with self._lock:
            return self._measurements.get(wave_type)

    def store(self, wave_type: WaveType, velocity: float, arrival_time: float) -> None:
        if velocity <= 0 or arrival_time <= 0:
            logger.warning(
                f"Not storing {wave_type.value} measurement for {self.sample_id}: "
                f"velocity={velocity}, arrival={arrival_time}"
            )
            return
        with self._lock:
            self._measurements[wave_type] = StoredMeasurement(velocity, arrival_time)
        logger.info(
            f"Session {self.sample_id}: stored {wave_type.value} "
            f"velocity {velocity:.1f} m/s, arrival {arrival_time * 1e6:.3f} us"
        )

    @property
    def p_wave(self) -> Optional[StoredMeasurement]:
        return self.get(WaveType.P_WAVE)

    @property
    def s_wave(self) -> Optional[StoredMeasurement]:
        return self.get(WaveType.S_WAVE)

    def snapshot(self) -> Dict[WaveType, StoredMeasurement]:
        """Copy of the stored measurements, taken under the lock."""
        with self._lock:
            return dict(self._measurements)

    def clear(self) -> None:
        with self._lock:
            self._measurements.clear()

    def to_dict(self) -> Dict[str, Any]:
        snap = self.snapshot()
        return {
            'sample_id': self.sample_id,
            'measurements': {
                wave.value: {'velocity': m.velocity, 'arrival_time': m.arrival_time}
                for wave, m in snap.items()
            },
        }
