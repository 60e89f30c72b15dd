"""
Result assembly.

Packages the picks, theoretical values, moduli and receiver recording of a
run into an immutable SimulationResult. For each wave the reported
velocity is, in order of preference: this run's primary pick, the value
stored in the session by an earlier run, this run's secondary pick, then
the theoretical velocity. Vp/Vs is the ratio of the two reported values.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from models.material import ElasticProperties
from models.simulation_config import AcousticSimulationConfig, WaveType, format_test_axis
from models.simulation_grid import SimulationGrid
from models.simulation_result import (
    ReceiverTrace,
    SimulationResult,
    SimulationStatus,
    WavefieldArchive,
)
from models.velocity_session import StoredMeasurement
from processors.arrival_picker import ArrivalPick

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportedVelocity:
    """Velocity/arrival reported for one wave and where it came from."""
    velocity: float
    arrival_time: float
    source: str  # 'measured', 'stored', 'secondary' or 'theoretical'

    @property
    def is_fallback(self) -> bool:
        return self.source == 'theoretical'


def choose_velocity(primary: Optional[ArrivalPick], stored: Optional[StoredMeasurement],
                    secondary: Optional[ArrivalPick], theoretical: float,
                    distance: float) -> ReportedVelocity:
    """Apply the measured > stored > secondary > theoretical preference."""
    if primary is not None and not primary.used_fallback:
        return ReportedVelocity(primary.velocity, primary.time, 'measured')
    if stored is not None:
        return ReportedVelocity(stored.velocity, stored.arrival_time, 'stored')
    if secondary is not None and not secondary.used_fallback:
        return ReportedVelocity(secondary.velocity, secondary.time, 'secondary')
    return ReportedVelocity(theoretical, distance / theoretical, 'theoretical')


class ResultAssembler:
    """Builds the result map of a completed run."""

    def assemble(
        self,
        simulation_id: str,
        config: AcousticSimulationConfig,
        properties: ElasticProperties,
        grid: SimulationGrid,
        distance: float,
        trace: ReceiverTrace,
        primary: ArrivalPick,
        secondary: Optional[ArrivalPick],
        stored: Dict[WaveType, StoredMeasurement],
        runtime: float,
        wavelet_peak: float,
        backend_name: str,
        vs_used: Optional[float] = None,
        archive: Optional[WavefieldArchive] = None,
    ) -> SimulationResult:
        """
        Assemble the SimulationResult.

        Args:
            simulation_id: Run identifier
            config: Run configuration
            properties: Elastic properties of the sample
            grid: Simulation grid
            distance: Source-receiver distance used by the propagation
            trace: Frozen receiver trace
            primary: Pick of the wave excited by this run
            secondary: Later pick on the same trace (P-wave runs only)
            stored: Session measurements read when the run was initialized
            runtime: Wall-clock duration in seconds
            wavelet_peak: Peak source amplitude
            backend_name: Compute device name
            vs_used: Shear velocity used for the run if it was corrected
            archive: Wavefield snapshots
        """
        vs_theoretical = vs_used if vs_used is not None else properties.s_wave_velocity
        vp_theoretical = properties.p_wave_velocity

        if config.wave_type == WaveType.P_WAVE:
            p = choose_velocity(primary, stored.get(WaveType.P_WAVE), None,
                                vp_theoretical, distance)
            s = choose_velocity(None, stored.get(WaveType.S_WAVE), secondary,
                                vs_theoretical, distance)
        else:
            p = choose_velocity(None, stored.get(WaveType.P_WAVE), None,
                                vp_theoretical, distance)
            s = choose_velocity(primary, stored.get(WaveType.S_WAVE), None,
                                vs_theoretical, distance)

        vp_vs = p.velocity / s.velocity if s.velocity > 0 else 0.0

        samples = trace.samples
        times = trace.times
        total_energy, energy_loss, energy_loss_percent = self._energy_budget(
            samples, trace.dt, properties.density,
            p.velocity if config.is_p_wave else s.velocity, config.energy,
        )

        data = {
            'MeasuredPWaveVelocity': p.velocity,
            'MeasuredSWaveVelocity': s.velocity,
            'CalculatedVpVsRatio': vp_vs,
            'PWaveArrivalTime': p.arrival_time,
            'SWaveArrivalTime': s.arrival_time,
            'PWaveVelocitySource': p.source,
            'SWaveVelocitySource': s.source,
            'UsedPWaveFallback': p.is_fallback,
            'UsedSWaveFallback': s.is_fallback,
            'MaximumDisplacement': float(np.max(np.abs(samples))) if len(samples) else 0.0,
            'ConfiningPressure': config.confining_pressure,
            'WaveType': config.wave_type.value,
            'Frequency': config.frequency_khz,
            'Amplitude': config.amplitude,
            'Energy': config.energy,
            'TotalEnergy': total_energy,
            'EnergyLoss': energy_loss,
            'EnergyLossPercent': energy_loss_percent,
            'TestDirection': format_test_axis(np.asarray(grid.test_axis)),
            'TheoreticalPWaveVelocity': vp_theoretical,
            'TheoreticalSWaveVelocity': vs_theoretical,
            'TheoreticalVpVsRatio': properties.vp_vs_ratio,
            'SampleLength': grid.sample_length,
            'SourceReceiverDistance': distance,
            'YoungModulus': properties.young_modulus,
            'PoissonRatio': properties.poisson_ratio,
            'BulkModulus': properties.bulk_modulus,
            'ShearModulus': properties.shear_modulus,
            'Attenuation': properties.attenuation,
            'RockType': properties.rock_type,
            'TimeSeries': np.array(samples),
            'SimulationTimes': times,
            'TimeStep': trace.dt,
            'TimeSteps': len(samples),
            'WaveletPeakAmplitude': wavelet_peak,
            'GridDimensions': tuple(grid.dims),
            'GridSpacing': grid.spacing,
            'ComputeBackend': backend_name,
            'Runtime': runtime,
        }

        message = (
            f"{config.wave_type.value} simulation completed: "
            f"Vp={p.velocity:.0f} m/s ({p.source}), Vs={s.velocity:.0f} m/s ({s.source}), "
            f"Vp/Vs={vp_vs:.3f}"
        )
        logger.info(message)
        return SimulationResult(
            simulation_id=simulation_id,
            success=True,
            message=message,
            status=SimulationStatus.COMPLETED,
            data=data,
            archive=archive,
        )

    @staticmethod
    def _energy_budget(samples: np.ndarray, dt: float, density: float, velocity: float,
                       input_energy: float) -> Tuple[float, float, float]:
        """Receiver energy as integrated acoustic intensity (u^2 * rho * v) and loss."""
        intensity = samples ** 2 * density * velocity
        total = float(np.sum(intensity) * dt)
        loss = max(0.0, input_energy - total)
        percent = loss / input_energy * 100.0 if input_energy > 0 else 0.0
        return total, loss, percent
