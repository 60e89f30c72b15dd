"""
Arrival-time picking on the receiver trace.

First arrival (P):
    1. Baseline noise energy = mean square of the first ~20 samples.
    2. Scan forward from the end of the baseline window. A sample triggers
       when the trailing 5-sample energy exceeds 2x baseline (floor 1e-15)
       or its amplitude exceeds 1e-6 of the trace maximum (floor 1e-20).
    3. The trigger is accepted only if the next 4 samples trigger too.

Secondary arrival (S):
    Search from max(P index + 10, 1.2 * P time / dt) for the first sample
    above 10% of the maximum after that point that stays above 5% for the
    next 4 samples.

A failed pick is not an error: the arrival falls back to
distance / theoretical velocity and the fallback is logged.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArrivalPick:
    """
    One arrival measurement.

    Attributes:
        index: Trace sample of the pick (None when the fallback was used)
        time: Arrival time in seconds
        velocity: distance / time in m/s
        used_fallback: True if the time came from the theoretical velocity
    """
    index: Optional[int]
    time: float
    velocity: float
    used_fallback: bool = False


@dataclass(frozen=True)
class ArrivalPicks:
    """P and S picks from one trace."""
    p_wave: ArrivalPick
    s_wave: ArrivalPick
    baseline_energy: float


class ArrivalPicker:
    """
    Energy-threshold arrival picker.

    Args:
        baseline_samples: Samples used for the noise estimate
        energy_window: Trailing window length for the energy detector
        sustain_samples: Samples that must keep triggering after a pick
    """

    ENERGY_FACTOR = 2.0
    ENERGY_FLOOR = 1e-15
    AMPLITUDE_FRACTION = 1e-6
    AMPLITUDE_FLOOR = 1e-20
    S_MIN_DELAY_SAMPLES = 10
    S_TIME_FACTOR = 1.2
    S_TRIGGER_FRACTION = 0.10
    S_SUSTAIN_FRACTION = 0.05

    def __init__(self, baseline_samples: int = 20, energy_window: int = 5,
                 sustain_samples: int = 4):
        self.baseline_samples = baseline_samples
        self.energy_window = energy_window
        self.sustain_samples = sustain_samples

    def baseline_energy(self, trace: np.ndarray) -> float:
        """Mean squared amplitude of the leading samples."""
        trace = np.asarray(trace, dtype=np.float64)
        n = self._baseline_count(len(trace))
        if n == 0:
            return 0.0
        return float(np.mean(trace[:n] ** 2))

    def _baseline_count(self, n_samples: int) -> int:
        return min(self.baseline_samples, max(1, n_samples // 10)) if n_samples else 0

    def window_energy(self, trace: np.ndarray) -> np.ndarray:
        """Trailing mean-square energy; the first samples average what is available."""
        squared = np.asarray(trace, dtype=np.float64) ** 2
        cumulative = np.concatenate(([0.0], np.cumsum(squared)))
        idx = np.arange(len(squared))
        lo = np.maximum(idx + 1 - self.energy_window, 0)
        return (cumulative[idx + 1] - cumulative[lo]) / (idx + 1 - lo)

    def find_first_arrival(self, trace: np.ndarray) -> Optional[int]:
        """Index of the first sustained trigger, or None."""
        trace = np.asarray(trace, dtype=np.float64)
        n = len(trace)
        if n <= self.sustain_samples + 1:
            return None

        baseline = self.baseline_energy(trace)
        energy_threshold = max(self.ENERGY_FACTOR * baseline, self.ENERGY_FLOOR)
        amplitude_threshold = max(self.AMPLITUDE_FRACTION * float(np.max(np.abs(trace))),
                                  self.AMPLITUDE_FLOOR)

        triggered = ((self.window_energy(trace) > energy_threshold) |
                     (np.abs(trace) > amplitude_threshold))
        sustained = sliding_window_view(triggered[1:], self.sustain_samples).all(axis=1)
        candidates = triggered[:n - self.sustain_samples] & sustained
        candidates[:self._baseline_count(n)] = False

        hits = np.flatnonzero(candidates)
        return int(hits[0]) if hits.size else None

    def find_secondary_arrival(self, trace: np.ndarray, start: int) -> Optional[int]:
        """Index of the first strong, sustained arrival at or after ``start``."""
        trace = np.abs(np.asarray(trace, dtype=np.float64))
        n = len(trace)
        if start >= n - self.sustain_samples:
            return None

        peak = float(trace[start:].max())
        if peak <= 0:
            return None
        trigger = trace > self.S_TRIGGER_FRACTION * peak
        above = trace > self.S_SUSTAIN_FRACTION * peak
        sustained = sliding_window_view(above[1:], self.sustain_samples).all(axis=1)
        candidates = trigger[:n - self.sustain_samples] & sustained
        candidates[:start] = False

        hits = np.flatnonzero(candidates)
        return int(hits[0]) if hits.size else None

    @staticmethod
    def _from_index(index: Optional[int], dt: float, distance: float,
                    fallback_velocity: float, label: str) -> ArrivalPick:
        if index is not None and index > 0:
            time = index * dt
            return ArrivalPick(index=index, time=time, velocity=distance / time)

        time = distance / fallback_velocity
        logger.warning(
            f"No {label} arrival detected; using theoretical "
            f"{fallback_velocity:.0f} m/s ({time * 1e6:.3f} us)"
        )
        return ArrivalPick(index=None, time=time, velocity=fallback_velocity, used_fallback=True)

    def pick_first_arrival(self, trace: np.ndarray, dt: float, distance: float,
                           fallback_velocity: float, label: str = "P-wave") -> ArrivalPick:
        """First-arrival pick with theoretical fallback."""
        index = self.find_first_arrival(trace)
        return self._from_index(index, dt, distance, fallback_velocity, label)

    def pick_secondary_arrival(self, trace: np.ndarray, dt: float, first: ArrivalPick,
                               distance: float, fallback_velocity: float,
                               label: str = "S-wave") -> ArrivalPick:
        """Later arrival pick, searched after the first arrival."""
        first_index = first.index if first.index is not None else int(first.time / dt)
        start = max(first_index + self.S_MIN_DELAY_SAMPLES,
                    int(self.S_TIME_FACTOR * first.time / dt))
        index = self.find_secondary_arrival(trace, start)
        return self._from_index(index, dt, distance, fallback_velocity, label)

    def pick(self, trace: np.ndarray, dt: float, distance: float,
             vp_theoretical: float, vs_theoretical: float) -> ArrivalPicks:
        """
        Pick P and S arrivals.

        Args:
            trace: Receiver samples
            dt: Sample interval in seconds
            distance: Source-receiver distance in meters
            vp_theoretical: Fallback P velocity
            vs_theoretical: Fallback S velocity

        Returns:
            ArrivalPicks with both measurements
        """
        if dt <= 0 or distance <= 0:
            raise ValueError(f"dt and distance must be positive, got dt={dt}, distance={distance}")
        trace = np.asarray(trace, dtype=np.float64)
        p_pick = self.pick_first_arrival(trace, dt, distance, vp_theoretical)
        s_pick = self.pick_secondary_arrival(trace, dt, p_pick, distance, vs_theoretical)
        logger.info(
            f"Picks: P {p_pick.time * 1e6:.3f} us ({p_pick.velocity:.0f} m/s"
            f"{', fallback' if p_pick.used_fallback else ''}), "
            f"S {s_pick.time * 1e6:.3f} us ({s_pick.velocity:.0f} m/s"
            f"{', fallback' if s_pick.used_fallback else ''})"
        )
        return ArrivalPicks(p_pick, s_pick, self.baseline_energy(trace))
