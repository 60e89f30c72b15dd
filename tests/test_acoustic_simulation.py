"""
End-to-end tests for AcousticVelocitySimulation.
"""

import numpy as np
import pytest


def _simulation(material, mesh, config, device, session=None):
    from processors.acoustic_simulation import AcousticVelocitySimulation
    return AcousticVelocitySimulation(material, mesh, config, session=session, device=device)


class TestEndToEnd:
    """Full runs on a 0.5 m granite slab."""

    def test_p_wave_velocity_within_tolerance(self, granite, slab_mesh, p_wave_config, cpu_device):
        from models.simulation_result import SimulationStatus
        from models.velocity_session import VelocitySession

        session = VelocitySession("slab")
        sim = _simulation(granite, slab_mesh, p_wave_config, cpu_device, session)

        result = sim.run()

        assert result.success, result.message
        assert result.status == SimulationStatus.COMPLETED
        theoretical = result['TheoreticalPWaveVelocity']
        measured = result['MeasuredPWaveVelocity']
        assert result['PWaveVelocitySource'] == 'measured'
        assert abs(measured - theoretical) / theoretical < 0.2
        assert result['CalculatedVpVsRatio'] == pytest.approx(
            measured / result['MeasuredSWaveVelocity'])
        assert session.p_wave.velocity == pytest.approx(measured)
        assert session.s_wave is None
        assert result['TimeSteps'] >= p_wave_config.time_steps
        assert result['ComputeBackend'] == cpu_device.name

    def test_status_history(self, granite, slab_mesh, p_wave_config, cpu_device):
        from models.simulation_result import SimulationStatus

        sim = _simulation(granite, slab_mesh, p_wave_config, cpu_device)
        sim.run()

        assert [s for s, _ in sim.status_history] == [
            SimulationStatus.NOT_INITIALIZED, SimulationStatus.INITIALIZING,
            SimulationStatus.READY, SimulationStatus.RUNNING, SimulationStatus.COMPLETED,
        ]

    def test_progress_is_monotonic(self, granite, slab_mesh, p_wave_config, cpu_device):
        sim = _simulation(granite, slab_mesh, p_wave_config, cpu_device)
        sim.run()

        percents = [e.percent for e in sim.drain_progress()]

        assert percents[0] == 0.0
        assert percents[-1] == 100.0
        assert percents == sorted(percents)
        assert sim.drain_progress() == []

    def test_session_carries_p_into_s_run(self, granite, slab_mesh, p_wave_config, cpu_device):
        """An S run after a P run on the same sample reports Vp/Vs from both."""
        from models.simulation_config import WaveType
        from models.velocity_session import VelocitySession

        session = VelocitySession("slab")
        p_result = _simulation(granite, slab_mesh, p_wave_config, cpu_device, session).run()

        s_config = p_wave_config.copy()
        s_config.wave_type = WaveType.S_WAVE
        s_result = _simulation(granite, slab_mesh, s_config, cpu_device, session).run()

        assert s_result.success, s_result.message
        assert s_result['WaveType'] == 'S-Wave'
        assert s_result['PWaveVelocitySource'] == 'stored'
        assert s_result['MeasuredPWaveVelocity'] == pytest.approx(p_result['MeasuredPWaveVelocity'])

        vs_theoretical = s_result['TheoreticalSWaveVelocity']
        vs = s_result['MeasuredSWaveVelocity']
        assert s_result['SWaveVelocitySource'] == 'measured'
        assert abs(vs - vs_theoretical) / vs_theoretical < 0.2
        assert s_result['CalculatedVpVsRatio'] == pytest.approx(
            p_result['MeasuredPWaveVelocity'] / vs)
        assert session.s_wave.velocity == pytest.approx(vs)

    def test_extended_time(self, granite, slab_mesh, p_wave_config, cpu_device):
        normal = _simulation(granite, slab_mesh, p_wave_config, cpu_device).run()
        config = p_wave_config.copy()
        config.use_extended_time = True
        extended = _simulation(granite, slab_mesh, config, cpu_device).run()

        ratio = extended['TimeSteps'] / normal['TimeSteps']
        assert ratio == pytest.approx(5.0 / 3.0, rel=0.01)

    def test_three_dimensional_run(self, granite, cube_mesh, cpu_device):
        from models.simulation_config import AcousticSimulationConfig

        config = AcousticSimulationConfig(use_3d_propagation=True, time_steps=20,
                                          test_axis="Z", max_archived_frames=5)
        sim = _simulation(granite, cube_mesh, config, cpu_device)

        result = sim.run()

        assert result.success, result.message
        assert result['GridDimensions'] == (40, 40, 40)
        assert len(result['TimeSeries']) == result['TimeSteps']
        assert np.all(np.isfinite(result['TimeSeries']))
        assert len(result.archive) == 5
        assert result.archive.frame(result.archive.times[0]).shape == (40, 40, 40)


class TestLifecycle:
    """Validation, cancellation and failure handling."""

    def test_validation_failure_never_runs(self, slab_mesh, p_wave_config, cpu_device):
        from models.material import Material
        from models.simulation_result import SimulationStatus

        sim = _simulation(Material("Granite", 0.0), slab_mesh, p_wave_config, cpu_device)

        result = sim.run()

        assert not result.success
        assert result.status == SimulationStatus.FAILED
        assert any("Density" in e for e in result.validation_errors)
        assert SimulationStatus.RUNNING not in [s for s, _ in sim.status_history]

    def test_empty_mesh_and_bad_config(self, granite, p_wave_config, cpu_device):
        from models.material import Mesh

        config = p_wave_config.copy()
        config.frequency_khz = -1.0
        sim = _simulation(granite, Mesh(), config, cpu_device)

        errors = sim.validate()

        assert "Mesh is empty" in errors
        assert any("Frequency" in e for e in errors)
        assert not sim.run().success

    def test_cancel_from_progress_listener(self, granite, slab_mesh, p_wave_config, cpu_device):
        """Cancelling mid-run ends in CANCELLED and leaves the session untouched."""
        from models.simulation_result import SimulationStatus
        from models.velocity_session import VelocitySession

        session = VelocitySession()
        sim = _simulation(granite, slab_mesh, p_wave_config, cpu_device, session)
        sim.add_progress_listener(lambda event: sim.cancel("stop") if event.step else None)

        result = sim.run()

        assert result.status == SimulationStatus.CANCELLED
        assert not result.success
        assert sim.status == SimulationStatus.CANCELLED
        assert session.p_wave is None

    def test_cancel_when_ready(self, granite, slab_mesh, p_wave_config, cpu_device):
        from models.simulation_result import SimulationStatus

        sim = _simulation(granite, slab_mesh, p_wave_config, cpu_device)
        assert sim.initialize()
        assert sim.status == SimulationStatus.READY

        sim.cancel()
        result = sim.run()

        assert result.status == SimulationStatus.CANCELLED
        assert SimulationStatus.RUNNING not in [s for s, _ in sim.status_history]

    def test_run_after_completion_returns_same_result(self, granite, slab_mesh,
                                                      p_wave_config, cpu_device):
        sim = _simulation(granite, slab_mesh, p_wave_config, cpu_device)
        first = sim.run()

        assert sim.run() is first

    def test_initialization_error(self, granite, slab_mesh, p_wave_config, cpu_device, monkeypatch):
        from models.simulation_result import SimulationStatus
        from processors import acoustic_simulation

        def broken(self, *args, **kwargs):
            raise RuntimeError("planner exploded")

        monkeypatch.setattr(acoustic_simulation.GridPlanner, "plan", broken)
        sim = _simulation(granite, slab_mesh, p_wave_config, cpu_device)

        result = sim.run()

        assert result.status == SimulationStatus.FAILED
        assert "planner exploded" in result.message

    def test_execution_error(self, granite, slab_mesh, p_wave_config, cpu_device, monkeypatch):
        from models.simulation_result import SimulationStatus
        from processors import acoustic_simulation

        def broken(self, *args, **kwargs):
            raise RuntimeError("kernel fault")

        monkeypatch.setattr(acoustic_simulation.FDTDEngine, "run", broken)
        sim = _simulation(granite, slab_mesh, p_wave_config, cpu_device)

        result = sim.run()

        assert result.status == SimulationStatus.FAILED
        assert result.message == "Simulation failed: kernel fault"


class TestBackgroundExecution:
    """Tests for start() on a worker thread."""

    def test_start_returns_future(self, granite, slab_mesh, p_wave_config, cpu_device):
        from models.simulation_result import SimulationStatus

        sim = _simulation(granite, slab_mesh, p_wave_config, cpu_device)
        completed = []
        sim.add_completion_listener(completed.append)

        future = sim.start()
        result = future.result(timeout=300)

        assert result.success, result.message
        assert sim.status == SimulationStatus.COMPLETED
        assert len(completed) == 1
        assert completed[0] is result

    def test_start_twice(self, granite, slab_mesh, p_wave_config, cpu_device):
        sim = _simulation(granite, slab_mesh, p_wave_config, cpu_device)
        future = sim.start()

        with pytest.raises(RuntimeError, match="already started"):
            sim.start()
        future.result(timeout=300)
