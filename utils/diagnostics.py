"""
Plain-text diagnostic dump of a run.

Writes the receiver recording as ``Time(ms),Displacement`` rows followed by
the run parameters. Meant for external tooling; not read back by this
package.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from models.simulation_grid import SimulationGrid
from models.simulation_result import SimulationResult

logger = logging.getLogger(__name__)


def write_diagnostic_dump(path: Union[str, Path], result: SimulationResult,
                          grid: Optional[SimulationGrid] = None) -> Path:
    """
    Write the dump for a successful result.

    Args:
        path: Output file
        result: Completed SimulationResult
        grid: Grid of the run, for the geometry block

    Returns:
        Path of the written file
    """
    if not result.success:
        raise ValueError(f"Cannot dump unsuccessful result: {result.message}")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    times = result['SimulationTimes']
    samples = result['TimeSeries']

    with open(path, 'w') as f:
        f.write("Time(ms),Displacement\n")
        for t, u in zip(times, samples):
            f.write(f"{t * 1000.0:.9f},{u:.9e}\n")

        f.write("\n# Parameters\n")
        f.write(f"WaveType,{result['WaveType']}\n")
        if grid is not None:
            nx, ny, nz = grid.dims
            f.write(f"GridSize,{nx}x{ny}x{nz}\n")
            f.write(f"GridSpacing(m),{grid.spacing:.9e}\n")
            f.write(f"SourcePosition,{grid.source[0]},{grid.source[1]},{grid.source[2]}\n")
            f.write(f"ReceiverPosition,{grid.receiver[0]},{grid.receiver[1]},{grid.receiver[2]}\n")
        f.write(f"SampleLength(m),{result['SampleLength']:.9e}\n")
        f.write(f"SourceReceiverDistance(m),{result['SourceReceiverDistance']:.9e}\n")
        f.write(f"Vp(m/s),{result['TheoreticalPWaveVelocity']:.3f}\n")
        f.write(f"Vs(m/s),{result['TheoreticalSWaveVelocity']:.3f}\n")
        f.write(f"MeasuredVp(m/s),{result['MeasuredPWaveVelocity']:.3f}\n")
        f.write(f"MeasuredVs(m/s),{result['MeasuredSWaveVelocity']:.3f}\n")
        f.write(f"Amplitude,{result['Amplitude']}\n")
        f.write(f"WaveletMaxAmplitude,{result['WaveletPeakAmplitude']:.9e}\n")

    logger.info(f"Diagnostic dump written to {path}")
    return path
