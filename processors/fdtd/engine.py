"""
Batched time stepping.

Runs an integrator for a fixed number of steps: inject the source sample,
step, record the receiver. Progress is reported once per batch and
cancellation is checked before every step. Batching only sets the progress
granularity; steps are never reordered or skipped.
"""

import logging
import time
from typing import Callable, Optional

from models.simulation_result import ReceiverTrace, WavefieldArchive
from processors.fdtd.integrators import FDTDIntegrator
from processors.source_wavelet import SourceWavelet
from utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)

# Progress callback signature: (current_step, total_steps, message)
ProgressCallback = Callable[[int, int, str], None]


class FDTDEngine:
    """
    Drives an FDTDIntegrator.

    Args:
        cancellation_token: Checked before each step; raises CancellationError
        progress_callback: Called after each batch with (step, total, message)
    """

    def __init__(self, cancellation_token: Optional[CancellationToken] = None,
                 progress_callback: Optional[ProgressCallback] = None):
        self.cancellation_token = cancellation_token
        self.progress_callback = progress_callback

    def _report_progress(self, current: int, total: int, message: str = "") -> None:
        if self.progress_callback is not None:
            self.progress_callback(current, total, message)

    def run(
        self,
        integrator: FDTDIntegrator,
        wavelet: SourceWavelet,
        total_steps: int,
        batch_size: Optional[int] = None,
        archive: Optional[WavefieldArchive] = None,
    ) -> ReceiverTrace:
        """
        Step ``integrator`` ``total_steps`` times.

        Args:
            integrator: Prepared integrator
            wavelet: Source samples, injected during the first len(wavelet) steps
            total_steps: Number of time steps
            batch_size: Steps per progress report (integrator default if None)
            archive: Receives a field snapshot every ``archive_interval`` steps

        Returns:
            Frozen ReceiverTrace with one sample per step

        Raises:
            CancellationError: If the token is cancelled during the run
        """
        if total_steps <= 0:
            raise ValueError(f"total_steps must be positive, got {total_steps}")
        batch_size = batch_size or integrator.default_batch_size
        interval = integrator.archive_interval
        trace = ReceiverTrace(total_steps, integrator.dt)
        n_source = len(wavelet)
        token = self.cancellation_token

        start_time = time.perf_counter()
        logger.info(
            f"Stepping {type(integrator).__name__}: {total_steps} steps, "
            f"dt={integrator.dt:.3e} s, Courant {integrator.courant_number:.3f}, "
            f"{integrator.n_cells:,} cells on {integrator.device.name}"
        )

        for batch_start in range(0, total_steps, batch_size):
            batch_end = min(batch_start + batch_size, total_steps)
            for step in range(batch_start, batch_end):
                if token is not None:
                    token.raise_if_cancelled(step)
                if step < n_source:
                    integrator.inject(wavelet[step])
                integrator.step()
                trace.append(integrator.sample())
                if archive is not None and step % interval == 0:
                    archive.record(step * integrator.dt, integrator.snapshot())

            self._report_progress(batch_end, total_steps,
                                  f"Time step {batch_end}/{total_steps}")
            logger.debug(f"Batch {batch_start}-{batch_end} done")

        trace.freeze()
        elapsed = time.perf_counter() - start_time
        logger.info(
            f"Stepping finished in {elapsed:.2f}s "
            f"({total_steps / max(elapsed, 1e-9):.0f} steps/s)"
        )
        return trace
