"""
Tests for Ricker source wavelet generation.
"""

import numpy as np
import pytest


class TestRicker:
    """Tests for the unscaled Ricker function."""

    def test_symmetric_with_unit_center(self):
        from processors.source_wavelet import ricker

        w = ricker(101, 1e-7, 500e3)

        assert w[50] == pytest.approx(1.0)
        np.testing.assert_allclose(w, w[::-1], atol=1e-15)

    def test_side_lobes_are_negative(self):
        from processors.source_wavelet import ricker

        w = ricker(201, 1e-8, 500e3)

        assert w.min() < 0
        assert w.min() == pytest.approx(-2.0 * np.exp(-1.5), rel=1e-2)


class TestWaveSourceGenerator:
    """Tests for WaveSourceGenerator."""

    def test_wavelet_length(self):
        from processors.source_wavelet import WaveSourceGenerator

        # 5 periods of 300 kHz at 0.1 us sampling
        assert WaveSourceGenerator.wavelet_length(1e-7, 300.0) == 166
        assert WaveSourceGenerator.wavelet_length(1e-3, 500.0) == 3

    def test_peak_scaled_by_amplitude_and_sqrt_energy(self):
        from processors.source_wavelet import WaveSourceGenerator

        wavelet = WaveSourceGenerator(amplitude=2.0, energy=4.0).generate(1e-7, 500.0)

        assert wavelet.peak_amplitude == pytest.approx(4.0)
        assert len(wavelet) == WaveSourceGenerator.wavelet_length(1e-7, 500.0)

    def test_linear_in_amplitude(self):
        from processors.source_wavelet import WaveSourceGenerator

        one = WaveSourceGenerator(amplitude=1.0).generate(1e-7, 250.0)
        three = WaveSourceGenerator(amplitude=3.0).generate(1e-7, 250.0)

        np.testing.assert_allclose(three.samples, 3.0 * one.samples)

    def test_zero_energy_gives_null_source(self):
        from processors.source_wavelet import WaveSourceGenerator

        wavelet = WaveSourceGenerator(energy=0.0).generate(1e-7, 500.0)

        assert wavelet.peak_amplitude == 0.0
        assert not np.any(wavelet.samples)

    def test_samples_are_read_only(self):
        from processors.source_wavelet import WaveSourceGenerator

        wavelet = WaveSourceGenerator().generate(1e-7, 500.0, n_samples=10)

        with pytest.raises(ValueError):
            wavelet.samples[0] = 1.0
        assert wavelet[0] == float(wavelet.samples[0])
        assert wavelet.times[-1] == pytest.approx(9e-7)

    def test_invalid_inputs(self):
        from processors.source_wavelet import WaveSourceGenerator

        with pytest.raises(ValueError):
            WaveSourceGenerator(amplitude=0.0)
        with pytest.raises(ValueError):
            WaveSourceGenerator(energy=-1.0)
        with pytest.raises(ValueError):
            WaveSourceGenerator().generate(0.0, 500.0)
        with pytest.raises(ValueError):
            WaveSourceGenerator().generate(1e-7, -5.0)
