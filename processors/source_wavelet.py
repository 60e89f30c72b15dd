"""
Ricker source wavelet synthesis.

w(t) = (1 - 2*pi^2*f^2*t^2) * exp(-pi^2*f^2*t^2), with t measured from the
array midpoint. The wavelet is normalized to unit peak and scaled by
amplitude * sqrt(energy).
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)

WAVELET_PERIODS = 5.0  # wavelet spans this many dominant periods
MIN_WAVELET_SAMPLES = 3


@dataclass(frozen=True)
class SourceWavelet:
    """Generated wavelet; ``samples`` is read-only."""
    samples: np.ndarray
    dt: float
    frequency_hz: float
    peak_amplitude: float

    def __len__(self) -> int:
        return len(self.samples)

    def __getitem__(self, index: int) -> float:
        return float(self.samples[index])

    @property
    def times(self) -> np.ndarray:
        return np.arange(len(self.samples)) * self.dt


def ricker(n_samples: int, dt: float, frequency_hz: float) -> np.ndarray:
    """Unscaled Ricker wavelet centered on the array midpoint."""
    t = (np.arange(n_samples) - (n_samples - 1) / 2.0) * dt
    arg = (np.pi * frequency_hz * t) ** 2
    return (1.0 - 2.0 * arg) * np.exp(-arg)


class WaveSourceGenerator:
    """
    Builds the source wavelet for a run.

    Args:
        amplitude: Peak amplitude of the wavelet
        energy: Source energy; the wavelet is scaled by sqrt(energy)
    """

    def __init__(self, amplitude: float = 1.0, energy: float = 1.0):
        if amplitude <= 0:
            raise ValueError(f"amplitude must be positive, got {amplitude}")
        if energy < 0:
            raise ValueError(f"energy must be non-negative, got {energy}")
        self.amplitude = amplitude
        self.energy = energy

    @staticmethod
    def wavelet_length(dt: float, frequency_khz: float) -> int:
        """Number of samples covering WAVELET_PERIODS dominant periods."""
        frequency_hz = frequency_khz * 1000.0
        return max(MIN_WAVELET_SAMPLES, int(WAVELET_PERIODS / (frequency_hz * dt)))

    def generate(self, dt: float, frequency_khz: float,
                 n_samples: Optional[int] = None) -> SourceWavelet:
        """
        Generate the scaled wavelet.

        Args:
            dt: Time step in seconds
            frequency_khz: Dominant frequency in kHz
            n_samples: Wavelet length; defaults to ``wavelet_length``

        Returns:
            SourceWavelet with the samples and their peak absolute value
        """
        if dt <= 0:
            raise ValueError(f"dt must be positive, got {dt}")
        if frequency_khz <= 0:
            raise ValueError(f"frequency must be positive, got {frequency_khz} kHz")
        if n_samples is None:
            n_samples = self.wavelet_length(dt, frequency_khz)
        if n_samples <= 0:
            raise ValueError(f"n_samples must be positive, got {n_samples}")

        frequency_hz = frequency_khz * 1000.0
        samples = ricker(n_samples, dt, frequency_hz)

        peak = np.max(np.abs(samples))
        if peak > 0:
            samples = samples / peak
        samples = samples * (self.amplitude * np.sqrt(self.energy))
        samples.setflags(write=False)

        peak_amplitude = float(np.max(np.abs(samples)))
        logger.debug(
            f"Ricker wavelet: {n_samples} samples, f={frequency_khz} kHz, "
            f"dt={dt:.3e} s, peak={peak_amplitude:.4g}"
        )
        return SourceWavelet(samples, dt, frequency_hz, peak_amplitude)
