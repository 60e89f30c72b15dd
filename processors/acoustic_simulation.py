"""
Acoustic velocity simulation run.

Orchestrates one synthetic acoustic test on a digitized rock sample:

    validate -> estimate elastic properties -> plan grid -> build velocity
    model -> generate source -> step FDTD -> pick arrivals -> assemble result

and owns the run lifecycle:

    NOT_INITIALIZED -> INITIALIZING -> READY -> RUNNING
        -> COMPLETED | FAILED | CANCELLED

A run can be executed synchronously with ``run()`` or on a worker thread
with ``start()``. Progress is published to callbacks and to a queue at
batch granularity. Cancellation is cooperative and checked every step.
"""

import logging
import math
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from models.material import Material, Mesh, ElasticProperties
from models.simulation_config import AcousticSimulationConfig, WaveType
from models.simulation_grid import SimulationGrid
from models.simulation_result import (
    SimulationProgress,
    SimulationResult,
    SimulationStatus,
    StatusTracker,
    WavefieldArchive,
)
from models.velocity_model import VelocityModel
from models.velocity_session import StoredMeasurement, VelocitySession
from processors.arrival_picker import ArrivalPick, ArrivalPicker
from processors.fdtd.compute_device import ComputeDevice, create_compute_device
from processors.fdtd.engine import FDTDEngine
from processors.fdtd.integrators import (
    FDTDIntegrator,
    Isotropic3DIntegrator,
    PWave1DIntegrator,
    SWave1DIntegrator,
    plan_line,
)
from processors.grid_planner import GridPlanner
from processors.material_properties import MaterialPropertyEstimator
from processors.result_assembler import ResultAssembler
from processors.source_wavelet import WaveSourceGenerator
from processors.velocity_model_builder import VelocityModelBuilder
from utils.cancellation import CancellationError, CancellationToken
from utils.memory_monitor import check_memory_budget

logger = logging.getLogger(__name__)

NORMAL_TRAVEL_FACTOR = 3.0
EXTENDED_TRAVEL_FACTOR = 5.0
SHEAR_CORRECTION = 0.6  # Vs used when the estimate is not below Vp

# Share of the progress bar taken by the stepping loop
STEPPING_PROGRESS_START = 5.0
STEPPING_PROGRESS_SPAN = 90.0

ProgressListener = Callable[[SimulationProgress], None]
CompletionListener = Callable[[SimulationResult], None]


class AcousticVelocitySimulation:
    """
    One synthetic acoustic velocity test.

    Args:
        material: Sample material
        mesh: Sample surface mesh in meters
        config: Run configuration (defaults if None)
        session: Measurement session of this sample; shared between the
                 P-wave and S-wave runs of the same sample
        device: Compute device to use instead of selecting one
        simulation_id: Identifier used in logs and results

    Example:
        >>> sim = AcousticVelocitySimulation(material, mesh, config, session)
        >>> result = sim.run()
        >>> result['MeasuredPWaveVelocity']
    """

    def __init__(
        self,
        material: Material,
        mesh: Mesh,
        config: Optional[AcousticSimulationConfig] = None,
        session: Optional[VelocitySession] = None,
        device: Optional[ComputeDevice] = None,
        simulation_id: Optional[str] = None,
    ):
        self.material = material
        self.mesh = mesh
        self.config = config or AcousticSimulationConfig()
        self.session = session if session is not None else VelocitySession()
        self.simulation_id = simulation_id or uuid4().hex[:8]

        self.device: Optional[ComputeDevice] = device
        self.properties: Optional[ElasticProperties] = None
        self.grid: Optional[SimulationGrid] = None
        self.velocity_model: Optional[VelocityModel] = None
        self.result: Optional[SimulationResult] = None

        self._tracker = StatusTracker()
        self._state_lock = threading.RLock()
        self._token = CancellationToken(self.simulation_id)
        self._stored: Dict[WaveType, StoredMeasurement] = {}
        self._primary_pick: Optional[ArrivalPick] = None
        self._integrator: Optional[FDTDIntegrator] = None

        self._progress_queue: "queue.Queue[SimulationProgress]" = queue.Queue()
        self._progress_listeners: List[ProgressListener] = []
        self._completion_listeners: List[CompletionListener] = []
        self._future: Optional[Future] = None

    # ------------------------------------------------------------------
    # Status and events
    # ------------------------------------------------------------------

    @property
    def status(self) -> SimulationStatus:
        return self._tracker.status

    @property
    def status_history(self):
        return list(self._tracker.history)

    @property
    def cancellation_token(self) -> CancellationToken:
        return self._token

    @property
    def progress_queue(self) -> "queue.Queue[SimulationProgress]":
        return self._progress_queue

    def add_progress_listener(self, listener: ProgressListener) -> None:
        self._progress_listeners.append(listener)

    def add_completion_listener(self, listener: CompletionListener) -> None:
        self._completion_listeners.append(listener)

    def drain_progress(self) -> List[SimulationProgress]:
        """All progress events queued so far."""
        events = []
        while True:
            try:
                events.append(self._progress_queue.get_nowait())
            except queue.Empty:
                return events

    def _emit_progress(self, percent: float, message: str, step: int = 0,
                       total_steps: int = 0) -> None:
        event = SimulationProgress(
            simulation_id=self.simulation_id,
            percent=max(0.0, min(100.0, percent)),
            message=message,
            step=step,
            total_steps=total_steps,
        )
        self._progress_queue.put(event)
        for listener in self._progress_listeners:
            listener(event)

    def _on_engine_progress(self, current: int, total: int, message: str) -> None:
        percent = STEPPING_PROGRESS_START + STEPPING_PROGRESS_SPAN * current / total
        self._emit_progress(percent, message, current, total)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def validate(self) -> List[str]:
        """
        Check inputs before anything is allocated.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []
        if not self.material.density > 0:
            errors.append(f"Density must be positive, got {self.material.density} kg/m^3")
        if self.mesh is None or self.mesh.is_empty:
            errors.append("Mesh is empty")
        errors.extend(self.config.validate())
        return errors

    def initialize(self) -> bool:
        """
        Validate inputs, estimate properties, select the device and plan the grid.

        Returns:
            True if the run is READY
        """
        with self._state_lock:
            self._tracker.transition(SimulationStatus.INITIALIZING)

        logger.info(f"Initializing simulation {self.simulation_id}\n{self.config.get_summary()}")
        errors = self.validate()
        if errors:
            message = "Validation failed: " + "; ".join(errors)
            logger.error(message)
            self._finish(SimulationResult.failure(
                self.simulation_id, message, SimulationStatus.FAILED, tuple(errors)))
            return False

        try:
            self.properties = MaterialPropertyEstimator().estimate(
                self.material, self.config.triaxial)
            self._stored = self.session.snapshot()
            if self.device is None:
                self.device = create_compute_device(self.config.compute_backend)
            self.grid = GridPlanner(self.config.grid_limits).plan(
                self.mesh.bounds(),
                self.config.test_direction,
                self.properties.p_wave_velocity,
                self.properties.s_wave_velocity,
                self.config.frequency_khz,
            )
            n_fields = 7 if self.config.use_3d_propagation else 3
            check_memory_budget(self.grid.memory_bytes(n_fields), label=f"simulation {self.simulation_id}")
        except Exception as e:
            logger.exception(f"Initialization of simulation {self.simulation_id} failed")
            self._finish(SimulationResult.failure(
                self.simulation_id, f"Initialization failed: {e}"))
            return False

        with self._state_lock:
            self._tracker.transition(SimulationStatus.READY)
        self._emit_progress(0.0, "Simulation initialized")
        return True

    def run(self) -> SimulationResult:
        """
        Execute the run on the calling thread.

        Returns:
            SimulationResult (also stored on ``self.result``)
        """
        if self.status == SimulationStatus.NOT_INITIALIZED:
            if not self.initialize():
                return self.result

        with self._state_lock:
            if self.status != SimulationStatus.READY:
                if self.result is not None:
                    return self.result
                return SimulationResult.failure(
                    self.simulation_id,
                    f"Cannot run simulation in status {self.status.name}",
                    self.status,
                )
            self._tracker.transition(SimulationStatus.RUNNING)

        start_time = time.perf_counter()
        try:
            result = self._execute(start_time)
        except CancellationError as e:
            logger.info(f"Simulation {self.simulation_id} cancelled: {e}")
            result = SimulationResult.failure(
                self.simulation_id, "Simulation cancelled", SimulationStatus.CANCELLED)
        except Exception as e:
            logger.exception(f"Simulation {self.simulation_id} failed")
            result = SimulationResult.failure(self.simulation_id, f"Simulation failed: {e}")
        finally:
            self._release()

        self._finish(result)
        return result

    def start(self) -> "Future[SimulationResult]":
        """Run on a worker thread; returns a Future of the result."""
        if self._future is not None:
            raise RuntimeError(f"Simulation {self.simulation_id} already started")
        executor = ThreadPoolExecutor(max_workers=1,
                                      thread_name_prefix=f"acoustic-{self.simulation_id}")
        self._future = executor.submit(self.run)
        executor.shutdown(wait=False)
        return self._future

    def cancel(self, message: Optional[str] = None) -> None:
        """Request cooperative cancellation."""
        self._token.cancel(message)
        with self._state_lock:
            if self.status == SimulationStatus.READY:
                self._finish(SimulationResult.failure(
                    self.simulation_id, "Simulation cancelled", SimulationStatus.CANCELLED))

    def _finish(self, result: SimulationResult) -> None:
        with self._state_lock:
            self._tracker.transition(result.status)
            self.result = result

        if result.status == SimulationStatus.COMPLETED and self._primary_pick is not None:
            if not self._primary_pick.used_fallback:
                self.session.store(self.config.wave_type, self._primary_pick.velocity,
                                   self._primary_pick.time)
        if result.success:
            self._emit_progress(100.0, "Simulation completed")

        for listener in self._completion_listeners:
            listener(result)

    def _release(self) -> None:
        if self._integrator is not None:
            self._integrator.release()
            self._integrator = None

    # ------------------------------------------------------------------
    # Numerical pipeline
    # ------------------------------------------------------------------

    def _execute(self, start_time: float) -> SimulationResult:
        config = self.config
        props = self.properties
        grid = self.grid
        is_p_wave = config.is_p_wave

        vp = props.p_wave_velocity
        vs = props.s_wave_velocity
        vs_used = None
        if vs >= vp:
            vs_used = SHEAR_CORRECTION * vp
            logger.warning(f"Vs ({vs:.0f}) >= Vp ({vp:.0f}); using Vs={vs_used:.0f} m/s")
            vs = vs_used
        run_velocity = vp if is_p_wave else vs

        self.velocity_model = VelocityModelBuilder().build(
            grid, self.mesh, run_velocity, props.density, config.triaxial)
        self._emit_progress(2.0, "Velocity model built")

        distance = grid.source_receiver_distance
        integrator, travel_velocity = self._create_integrator(run_velocity, distance)
        self._integrator = integrator

        factor = EXTENDED_TRAVEL_FACTOR if config.use_extended_time else NORMAL_TRAVEL_FACTOR
        travel_steps = int(math.ceil(factor * distance / travel_velocity / integrator.dt))
        total_steps = max(config.time_steps, travel_steps)

        wavelet = WaveSourceGenerator(config.amplitude, config.energy).generate(
            integrator.dt, config.frequency_khz)
        self._emit_progress(STEPPING_PROGRESS_START, "Source wavelet generated")

        archive = WavefieldArchive(config.max_archived_frames)
        engine = FDTDEngine(self._token, self._on_engine_progress)
        trace = engine.run(integrator, wavelet, total_steps, config.batch_size, archive)

        picker = ArrivalPicker()
        if is_p_wave:
            picks = picker.pick(trace.samples, trace.dt, distance, vp, vs)
            primary, secondary = picks.p_wave, picks.s_wave
        else:
            # Shear runs carry only the shear arrival
            primary = picker.pick_first_arrival(trace.samples, trace.dt, distance, vs,
                                                label="S-wave")
            secondary = None
        self._primary_pick = primary

        return ResultAssembler().assemble(
            simulation_id=self.simulation_id,
            config=config,
            properties=props,
            grid=grid,
            distance=distance,
            trace=trace,
            primary=primary,
            secondary=secondary,
            stored=self._stored,
            runtime=time.perf_counter() - start_time,
            wavelet_peak=wavelet.peak_amplitude,
            backend_name=self.device.name,
            vs_used=vs_used,
            archive=archive,
        )

    def _create_integrator(self, run_velocity: float,
                           distance: float) -> Tuple[FDTDIntegrator, float]:
        """Integrator for the configured variant and the velocity used for run length."""
        config = self.config
        grid = self.grid
        model = self.velocity_model

        if config.use_3d_propagation:
            integrator = Isotropic3DIntegrator(
                self.device, model.velocity, grid.spacing, grid.source, grid.receiver,
                self.properties.attenuation, config.wave_type)
            return integrator, run_velocity

        wavelength = run_velocity / config.frequency_hz
        line = plan_line(distance, wavelength, config.grid_limits.points_per_wavelength)
        t_min, t_max = line.parameter_range()
        profile = model.velocity_profile(grid.source, grid.receiver, line.n_points,
                                         t_min, t_max, air_replacement=run_velocity)

        if config.is_p_wave:
            mean_velocity = model.harmonic_mean_velocity(
                grid.source, grid.receiver, air_replacement=run_velocity)
            profile[:] = mean_velocity
            integrator = PWave1DIntegrator(self.device, profile, line,
                                           self.properties.attenuation)
            return integrator, mean_velocity

        segment = profile[line.source_index:line.receiver_index + 1]
        mean_velocity = float(len(segment) / (1.0 / segment).sum())
        return SWave1DIntegrator(self.device, profile, line), mean_velocity
