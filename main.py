#!/usr/bin/env python3
"""
Acoustic velocity test - headless entry point.

Runs one synthetic acoustic velocity test on a digitized rock sample and
prints the measured velocities.

Usage:
    python main.py config.json --mesh sample.npy --material Granite --density 2650
    python main.py config.json --mesh sample.npy --material Granite --density 2650 \\
        --wave-type S-Wave --dump run_dump.csv
"""
import argparse
import logging
import sys

import numpy as np

from models.material import Material, Mesh
from models.simulation_config import AcousticSimulationConfig, WaveType
from processors.acoustic_simulation import AcousticVelocitySimulation
from utils.diagnostics import write_diagnostic_dump

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synthetic acoustic velocity test")
    parser.add_argument('config', nargs='?', help="Run configuration (JSON)")
    parser.add_argument('--mesh', required=True,
                        help="Triangle array (.npy) with shape (n, 3, 3) in meters")
    parser.add_argument('--material', default='default', help="Rock name")
    parser.add_argument('--density', type=float, required=True, help="Density in kg/m^3")
    parser.add_argument('--wave-type', help="Override the configured wave type")
    parser.add_argument('--dump', help="Write a plain-text diagnostic dump here")
    parser.add_argument('--verbose', '-v', action='store_true', help="Debug logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
    )

    config = (AcousticSimulationConfig.from_json_file(args.config)
              if args.config else AcousticSimulationConfig())
    if args.wave_type:
        config.wave_type = WaveType.parse(args.wave_type)

    mesh = Mesh(np.load(args.mesh))
    material = Material(args.material, args.density, config.confining_pressure)

    simulation = AcousticVelocitySimulation(material, mesh, config)
    simulation.add_progress_listener(
        lambda event: logger.debug(f"{event.percent:5.1f}% {event.message}")
    )
    result = simulation.run()
    print(result.get_summary())

    if args.dump and result.success:
        write_diagnostic_dump(args.dump, result, simulation.grid)

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
