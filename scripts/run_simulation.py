#!/usr/bin/env python3
"""
Command-line entrypoint for FLUID-SPH simulations.

This script runs a headless 2D fluid simulation:
1. Load configuration (YAML/JSON) or use defaults
2. Lay out particles on a lattice or at random
3. Step the SPH pipeline with a fixed frame time
4. Refresh a packed particle buffer after every step, as a render loop would
5. Optionally re-read the tunable coefficients from the config file

Usage:
    python scripts/run_simulation.py
    python scripts/run_simulation.py --config configs/fluid_2d.yaml --steps 600
    python scripts/run_simulation.py --particles 800 --randomize --reload-every 120
    python scripts/run_simulation.py --help
"""

import argparse
import sys
from pathlib import Path
import numpy as np

# Add src to path if running from repository root
src_path = Path(__file__).parent.parent / "src"
if src_path.exists():
    sys.path.insert(0, str(src_path))

from fluid_sph.core import Simulation, SimulationConfig
from fluid_sph.io import ParticleBufferWriter, SnapshotExchange


def main():
    """Main entrypoint."""
    parser = argparse.ArgumentParser(
        description="Run a 2D SPH fluid simulation",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument("--config", "-c", type=str, default=None,
                        help="YAML/JSON configuration file")
    parser.add_argument("--steps", "-s", type=int, default=600,
                        help="Number of steps to run")
    parser.add_argument("--dt", type=float, default=None,
                        help="Frame time per step (defaults to config time_step)")

    # Overrides
    parser.add_argument("--particles", "-n", type=int, default=None,
                        help="Override particle count")
    parser.add_argument("--randomize", action="store_true",
                        help="Random placement instead of a lattice")
    parser.add_argument("--width", type=float, default=None,
                        help="Viewport width")
    parser.add_argument("--height", type=float, default=None,
                        help="Viewport height")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed")

    # Runtime
    parser.add_argument("--reload-every", type=int, default=0,
                        help="Re-read tunable parameters from --config every N steps (0 = never)")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Suppress verbose output")

    args = parser.parse_args()

    overrides = {"verbose": not args.quiet}
    if args.particles is not None:
        overrides["particle_count"] = args.particles
    if args.randomize:
        overrides["randomize"] = True
    if args.width is not None:
        overrides["viewport_width"] = args.width
    if args.height is not None:
        overrides["viewport_height"] = args.height
    if args.seed is not None:
        overrides["random_seed"] = args.seed

    if args.reload_every and args.config is None:
        parser.error("--reload-every needs --config")

    # Print banner
    if not args.quiet:
        print("=" * 70)
        print("FLUID-SPH: 2D smoothed particle hydrodynamics")
        print("=" * 70)
        print()

    exchange = SnapshotExchange()
    if args.config is not None:
        sim = Simulation.from_config_file(args.config, **overrides)
        sim.snapshot_exchange = exchange
    else:
        config = SimulationConfig(**overrides)
        sim = Simulation.from_config(config, snapshot_exchange=exchange)

    writer = ParticleBufferWriter(sim.particles.n_particles)
    writer.write_header(sim.particles.n_particles, sim.config.smooth_radius, sim.config.target_density)

    for _ in range(args.steps):
        sim.step(args.dt)

        # Render side: consume the published snapshot
        snap = exchange.latest()
        writer.write(snap.positions, snap.velocities, snap.smooth_radius, snap.target_density)

        if args.reload_every and sim.state.step % args.reload_every == 0:
            sim.reload_parameters()

        if not args.quiet and sim.state.step % sim.config.log_interval == 0:
            print(
                f"Step {sim.state.step:6d}  t={sim.state.time:.3f}  "
                f"E_kin={sim.particles.kinetic_energy():.4e}  "
                f"rho_max={sim.state.max_density:.4e}"
            )

    if not args.quiet:
        positions = sim.particles.get_positions()
        print("\n" + "=" * 70)
        print("Simulation complete!")
        print(f"Steps: {sim.state.step}  Simulated time: {sim.state.time:.3f}")
        if len(positions):
            print(f"Bounding box: {np.min(positions, axis=0)} - {np.max(positions, axis=0)}")
        print(f"Particle buffer: {len(writer.view())} bytes, snapshots: {exchange.published_count}")
        print("=" * 70)

    return 0


if __name__ == "__main__":
    sys.exit(main())
