"""
Tests for run configuration, test-axis parsing and tri-axial input.
"""

import json

import numpy as np
import pytest


class TestWaveType:
    """Tests for WaveType parsing."""

    @pytest.mark.parametrize("value", ["P-Wave", "p", "P_WAVE", "pwave", "compressional"])
    def test_parse_p_wave(self, value):
        from models.simulation_config import WaveType
        assert WaveType.parse(value) == WaveType.P_WAVE

    @pytest.mark.parametrize("value", ["S-Wave", "s", "S_WAVE", "shear"])
    def test_parse_s_wave(self, value):
        from models.simulation_config import WaveType
        assert WaveType.parse(value) == WaveType.S_WAVE

    def test_parse_unknown(self):
        from models.simulation_config import WaveType
        with pytest.raises(ValueError, match="Unknown wave type"):
            WaveType.parse("love")


class TestTestAxis:
    """Tests for parse_test_axis / format_test_axis."""

    def test_axis_names(self):
        """Axis names and aliases map to unit vectors."""
        from models.simulation_config import parse_test_axis

        np.testing.assert_array_equal(parse_test_axis("X"), [1, 0, 0])
        np.testing.assert_array_equal(parse_test_axis("y-axis"), [0, 1, 0])
        np.testing.assert_array_equal(parse_test_axis("axis_z"), [0, 0, 1])

    def test_vector_string_is_normalized(self):
        from models.simulation_config import parse_test_axis

        axis = parse_test_axis("1, 1, 0")

        assert np.linalg.norm(axis) == pytest.approx(1.0)
        np.testing.assert_allclose(axis, [np.sqrt(0.5), np.sqrt(0.5), 0.0])

    def test_sequence_input(self):
        from models.simulation_config import parse_test_axis

        np.testing.assert_allclose(parse_test_axis([0, 0, 3]), [0, 0, 1])

    @pytest.mark.parametrize("value", ["diagonal", "1,2", "a,b,c", "0,0,0", "", None])
    def test_unusable_axis_falls_back_to_z(self, value):
        """Anything unusable becomes +Z."""
        from models.simulation_config import parse_test_axis

        np.testing.assert_array_equal(parse_test_axis(value), [0, 0, 1])

    def test_format(self):
        from models.simulation_config import format_test_axis

        assert format_test_axis(np.array([0.0, 1.0, 0.0])) == "Y"
        assert format_test_axis(np.array([-1.0, 0.0, 0.0])) == "X"
        assert format_test_axis(np.array([0.6, 0.8, 0.0])) == "0.600,0.800,0.000"


class TestTriaxialResult:
    """Tests for reading a prior tri-axial result map."""

    def test_from_mapping(self):
        from models.simulation_config import TriaxialResult

        tri = TriaxialResult.from_mapping({
            'YoungModulus': 60000, 'PoissonRatio': '0.22', 'BreakingPressure': 180.0,
        })

        assert tri.young_modulus == 60000.0
        assert tri.poisson_ratio == 0.22
        assert tri.has_elastic_moduli
        assert tri.has_breaking_pressure
        assert tri.confining_pressure is None

    def test_empty_mapping(self):
        from models.simulation_config import TriaxialResult

        assert TriaxialResult.from_mapping(None) is None
        assert TriaxialResult.from_mapping({}) is None

    def test_non_numeric_values_are_ignored(self):
        from models.simulation_config import TriaxialResult

        tri = TriaxialResult.from_mapping({'YoungModulus': 'n/a', 'PoissonRatio': 0.3})

        assert tri.young_modulus is None
        assert not tri.has_elastic_moduli

    def test_non_positive_young_modulus(self):
        from models.simulation_config import TriaxialResult

        assert not TriaxialResult(young_modulus=0.0, poisson_ratio=0.25).has_elastic_moduli
        assert not TriaxialResult(breaking_pressure=-1.0).has_breaking_pressure


class TestGridLimits:
    """Tests for GridLimits validation."""

    def test_defaults(self):
        from models.simulation_config import GridLimits

        limits = GridLimits()

        assert limits.points_per_wavelength == 12
        assert limits.max_dim == 128
        assert limits.max_cells == 8_388_608
        assert limits.min_dim == 8

    def test_odd_max_dim_rejected(self):
        from models.simulation_config import GridLimits

        with pytest.raises(ValueError, match="max_dim"):
            GridLimits(max_dim=65)

    def test_min_dim_below_eight_rejected(self):
        from models.simulation_config import GridLimits

        with pytest.raises(ValueError, match="min_dim"):
            GridLimits(min_dim=6)

    def test_cell_budget_below_minimum_grid_rejected(self):
        from models.simulation_config import GridLimits

        with pytest.raises(ValueError, match="max_cells"):
            GridLimits(max_cells=100)


class TestAcousticSimulationConfig:
    """Tests for AcousticSimulationConfig."""

    def test_defaults_are_valid(self):
        from models.simulation_config import AcousticSimulationConfig, WaveType, ComputeBackend

        config = AcousticSimulationConfig()

        assert config.validate() == []
        assert config.wave_type == WaveType.P_WAVE
        assert config.compute_backend == ComputeBackend.AUTO
        assert config.frequency_hz == 500_000.0

    def test_string_enums_are_coerced(self):
        from models.simulation_config import AcousticSimulationConfig, WaveType, ComputeBackend

        config = AcousticSimulationConfig(wave_type="S-Wave", compute_backend="CPU")

        assert config.wave_type == WaveType.S_WAVE
        assert config.compute_backend == ComputeBackend.CPU
        assert not config.is_p_wave

    def test_validation_collects_all_errors(self):
        """Every invalid field is reported."""
        from models.simulation_config import AcousticSimulationConfig

        config = AcousticSimulationConfig(
            frequency_khz=0.0, time_steps=5, amplitude=-1.0, energy=-2.0,
            confining_pressure=-3.0, batch_size=0,
        )

        errors = config.validate()

        assert len(errors) == 6
        assert any("Frequency" in e for e in errors)
        assert any("Time steps" in e for e in errors)
        assert any("Amplitude" in e for e in errors)
        assert any("Energy" in e for e in errors)
        assert any("Confining pressure" in e for e in errors)
        assert any("Batch size" in e for e in errors)

    def test_zero_energy_is_valid(self):
        from models.simulation_config import AcousticSimulationConfig

        assert AcousticSimulationConfig(energy=0.0).validate() == []

    def test_test_direction(self):
        from models.simulation_config import AcousticSimulationConfig

        config = AcousticSimulationConfig(test_axis="Y")

        np.testing.assert_array_equal(config.test_direction, [0, 1, 0])

    def test_triaxial_property(self):
        from models.simulation_config import AcousticSimulationConfig

        config = AcousticSimulationConfig(triaxial_result={'BreakingPressure': 150})

        assert config.triaxial.breaking_pressure == 150.0
        assert AcousticSimulationConfig().triaxial is None

    def test_serialization_roundtrip(self):
        """to_dict/from_dict keeps every field."""
        from models.simulation_config import AcousticSimulationConfig, GridLimits

        config = AcousticSimulationConfig(
            wave_type="S-Wave", frequency_khz=250.0, test_axis="1,0,0",
            use_extended_time=True, use_3d_propagation=True,
            triaxial_result={'YoungModulus': 50000.0, 'PoissonRatio': 0.25},
            grid_limits=GridLimits(max_dim=64),
        )

        restored = AcousticSimulationConfig.from_dict(config.to_dict())

        assert restored.to_dict() == config.to_dict()
        assert restored.grid_limits.max_dim == 64

    def test_from_json_file(self, temp_dir):
        from models.simulation_config import AcousticSimulationConfig, WaveType

        path = temp_dir / "run.json"
        path.write_text(json.dumps({
            'wave_type': 'S-Wave', 'frequency_khz': 100.0, 'test_axis': 'X',
            'grid_limits': {'max_dim': 32},
        }))

        config = AcousticSimulationConfig.from_json_file(path)

        assert config.wave_type == WaveType.S_WAVE
        assert config.frequency_khz == 100.0
        assert config.grid_limits.max_dim == 32

    def test_copy_is_independent(self):
        from models.simulation_config import AcousticSimulationConfig

        config = AcousticSimulationConfig()
        clone = config.copy()
        clone.frequency_khz = 1.0

        assert config.frequency_khz == 500.0

    def test_summary(self):
        from models.simulation_config import create_default_config

        summary = create_default_config("S", 100.0, "X").get_summary()

        assert "S-Wave" in summary
        assert "100.0 kHz" in summary
        assert "Axis: X" in summary
