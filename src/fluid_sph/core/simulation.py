"""
Simulation orchestrator for the FLUID-SPH framework.

This module implements the Simulation class that drives the per-step SPH
pipeline over a ParticleSystem:

    predict → rebuild index → density → pressure force
            → integrate velocity → integrate position → boundary

Each phase finishes for every particle before the next starts: the index is
built from the complete set of predicted positions, and pressure forces read
densities of neighbours, so the density pass must be complete first.

Design:
- Simulation orchestrates pluggable components (NeighbourSearch,
  TimeIntegrator, BoundaryCondition) passed in or built from the config
- Tunable coefficients can be reloaded between steps without touching
  particle arrays
"""

from typing import Any, Dict, Mapping, Optional, Tuple, Union
from dataclasses import dataclass, field
from pathlib import Path
import warnings
import math
import numpy as np
import numpy.typing as npt
import time as time_module
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from fluid_sph.core.interfaces import NeighbourSearch, TimeIntegrator, BoundaryCondition
from fluid_sph.sph import (
    ParticleSystem,
    SPHKernels2D,
    SpatialHashIndex,
    ViewportBoundary,
    initialize_particles,
    cell_size_for,
    compute_density_summation,
    compute_density_neighbours,
    compute_pressure_forces,
    compute_gravity_acceleration,
    pressure_acceleration,
)
from fluid_sph.integration import SymplecticEulerIntegrator
from fluid_sph.io.snapshot import ParticleSnapshot, SnapshotExchange


NDArrayFloat = npt.NDArray[np.float32]

# Coefficients that may change on reload
TUNABLE_PARAMETERS = (
    "smooth_radius",
    "collision_damping",
    "target_density",
    "pressure_multiplier",
    "gravity_acc_value",
)


class SimulationConfig(BaseModel):
    """
    Configuration for a 2D SPH fluid run with Pydantic validation.

    Attributes
    ----------
    particle_count : int
        Number of particles (fixed for the run).
    smooth_radius : float
        Kernel support radius; its integer truncation is the hash cell size.
    collision_damping : float
        Fraction of normal velocity kept after a wall bounce, in [0, 1].
    target_density : float
        Rest density ρ_0 of the pressure model.
    pressure_multiplier : float
        Pressure stiffness k in P = k (ρ − ρ_0).
    gravity_acc_value : float
        Vertical gravity coefficient (scaled by particle mass).
    start_point, stride, max_width, randomize
        Initial layout (init-only).
    """

    # Particles and initial layout (init-only)
    particle_count: int = Field(default=400, ge=0, description="Number of particles")
    start_point: Tuple[float, float] = Field(
        default=(100.0, 100.0), description="Lattice origin (x, y)"
    )
    stride: float = Field(default=10.0, gt=0.0, description="Lattice spacing")
    max_width: float = Field(default=400.0, gt=0.0, description="Lattice row width")
    randomize: bool = Field(default=False, description="Random placement instead of lattice")
    particle_mass: float = Field(default=100.0, gt=0.0, description="Uniform particle mass")

    # Fluid model (reloadable)
    smooth_radius: float = Field(default=35.0, gt=0.0, description="Smoothing radius")
    collision_damping: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Wall collision damping"
    )
    target_density: float = Field(default=1.0, description="Target (rest) density")
    pressure_multiplier: float = Field(default=20000.0, description="Pressure stiffness")
    gravity_acc_value: float = Field(default=9.8, description="Gravity coefficient")

    # Integration
    look_ahead_time: float = Field(
        default=1.0 / 120.0, ge=0.0, description="Look-ahead time for predicted positions"
    )
    time_step: float = Field(default=1.0 / 60.0, gt=0.0, description="Default step size")
    density_method: str = Field(
        default="bruteforce",
        description="Density summation: 'bruteforce' (all particles) or 'spatial_hash'"
    )

    # Viewport used when the caller does not supply one
    viewport_width: float = Field(default=800.0, gt=0.0, description="Viewport width")
    viewport_height: float = Field(default=600.0, gt=0.0, description="Viewport height")

    # Misc
    random_seed: Optional[int] = Field(
        default=42,
        description="Random seed for reproducibility"
    )
    log_interval: int = Field(default=100, ge=1, description="Steps between log lines in run()")
    verbose: bool = Field(
        default=True,
        description="Enable verbose logging"
    )

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",  # Raise error on unknown fields
    )

    @field_validator('density_method')
    @classmethod
    def validate_density_method(cls, v: str) -> str:
        """Validate density summation method."""
        valid_methods = ["bruteforce", "spatial_hash"]
        if v not in valid_methods:
            raise ValueError(f"density_method must be one of {valid_methods}, got '{v}'")
        return v

    @field_validator('smooth_radius', 'stride', 'max_width', 'look_ahead_time', 'time_step')
    @classmethod
    def validate_finite(cls, v: float) -> float:
        """Reject NaN/inf for geometric quantities."""
        if not math.isfinite(v):
            raise ValueError(f"value must be finite, got {v}")
        return v

    @model_validator(mode='after')
    def validate_configuration_consistency(self):
        """
        Cross-field validation to ensure parameter consistency.

        1. The lattice needs at least one column per row
        2. Smoothing radii below 1 give a clamped hash cell size
        3. Zero damping makes walls fully absorbing
        4. A lattice wider than the default viewport will be pushed back by the walls
        """
        # Rule 1: zero columns per row would leave the lattice undefined
        if not self.randomize and self.max_width < self.stride:
            raise ValueError(
                f"max_width ({self.max_width}) must be >= stride ({self.stride}) "
                "for lattice placement"
            )

        # Rule 2: integer truncation of the radius would give cell size 0
        if self.smooth_radius < 1.0:
            warnings.warn(
                f"smooth_radius={self.smooth_radius} truncates to a hash cell size of 0; "
                "cell size 1 will be used."
            )

        # Rule 3: fully absorbing walls
        if self.collision_damping == 0.0:
            warnings.warn(
                "collision_damping=0: particles hitting a wall lose all normal velocity."
            )

        # Rule 4: lattice outside the viewport
        if not self.randomize and self.start_point[0] + self.max_width > self.viewport_width:
            warnings.warn(
                f"Lattice rows reach x={self.start_point[0] + self.max_width}, beyond the "
                f"viewport width {self.viewport_width}; particles will be clamped on the first step."
            )

        return self

    def tunable_parameters(self) -> Dict[str, float]:
        """Current values of the reloadable coefficients."""
        return {name: getattr(self, name) for name in TUNABLE_PARAMETERS}


@dataclass
class SimulationState:
    """
    Current state of the simulation.
    """
    time: float = 0.0
    step: int = 0
    dt: float = 1.0 / 60.0

    # Per-step diagnostics
    boundary_collisions: int = 0
    max_density: float = 0.0
    mean_density: float = 0.0
    kinetic_energy: float = 0.0
    reload_count: int = 0

    # Timing diagnostics (seconds, last step)
    timing_predict: float = 0.0
    timing_index: float = 0.0
    timing_density: float = 0.0
    timing_pressure: float = 0.0
    timing_integration: float = 0.0
    timing_boundary: float = 0.0
    timing_total: float = 0.0

    # Timing
    wall_time_start: float = field(default_factory=time_module.time)
    wall_time_elapsed: float = 0.0

    # Snapshots
    snapshot_count: int = 0


class Simulation:
    """
    Main simulation orchestrator for FLUID-SPH.

    Architecture:
        Simulation orchestrates:
        - ParticleSystem (particle data, exclusively owned during a step)
        - SPHKernels2D (Poly6 / Spiky scaling factors)
        - NeighbourSearch (spatial hash over predicted positions)
        - TimeIntegrator (symplectic Euler)
        - BoundaryCondition (viewport walls)
        - Optional SnapshotExchange for concurrent readers

    Usage:
        >>> config = SimulationConfig(particle_count=200, gravity_acc_value=9.8)
        >>> sim = Simulation.from_config(config, viewport_extent=(800, 600))
        >>> for _ in range(100):
        ...     sim.step(1.0 / 60.0)
        >>> positions = sim.particles.get_positions()
    """

    def __init__(
        self,
        particles: ParticleSystem,
        config: Optional[SimulationConfig] = None,
        viewport_extent: Optional[Tuple[float, float]] = None,
        neighbour_search: Optional[NeighbourSearch] = None,
        integrator: Optional[TimeIntegrator] = None,
        boundary: Optional[BoundaryCondition] = None,
        rng: Optional[np.random.Generator] = None,
        snapshot_exchange: Optional[SnapshotExchange] = None,
        config_path: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize simulation.

        Parameters
        ----------
        particles : ParticleSystem
            Initial particle configuration.
        config : Optional[SimulationConfig]
            Simulation configuration. If None, uses defaults.
        viewport_extent : Optional[Tuple[float, float]]
            (width, height) of the domain. Defaults to the configured viewport.
        neighbour_search : Optional[NeighbourSearch]
            Neighbour index. Defaults to a SpatialHashIndex sized to the particles.
        integrator : Optional[TimeIntegrator]
            Time integrator. Defaults to SymplecticEulerIntegrator.
        boundary : Optional[BoundaryCondition]
            Domain boundary. Defaults to ViewportBoundary with the configured damping.
        rng : Optional[np.random.Generator]
            Random source for coincident-particle directions. Seeded from
            ``config.random_seed`` when None.
        snapshot_exchange : Optional[SnapshotExchange]
            If given, a snapshot is published after every completed step.
        config_path : Optional[str or Path]
            File the configuration came from; ``reload_parameters()`` re-reads it.
        """
        self.particles = particles
        self.config = config or SimulationConfig(particle_count=particles.n_particles)
        self.state = SimulationState(dt=self.config.time_step)
        self.config_path = Path(config_path) if config_path is not None else None

        self.rng = rng if rng is not None else np.random.default_rng(self.config.random_seed)

        self.kernels = SPHKernels2D(self.config.smooth_radius)
        self.neighbour_search = neighbour_search or SpatialHashIndex(particles.n_particles)
        self.integrator = integrator or SymplecticEulerIntegrator()
        self.boundary = boundary or ViewportBoundary(self.config.collision_damping)
        self.snapshot_exchange = snapshot_exchange

        if viewport_extent is None:
            viewport_extent = (self.config.viewport_width, self.config.viewport_height)
        self.viewport_extent = self._validate_extent(viewport_extent)

        # Validate configuration
        self._validate_config()

        # Log initialization
        if self.config.verbose:
            self._log("Initialized 2D SPH fluid simulation")
            self._log(f"  Particles: {self.particles.n_particles}")
            self._log(f"  Smoothing radius: {self.config.smooth_radius} "
                      f"(cell size {cell_size_for(self.config.smooth_radius)})")
            self._log(f"  Viewport: {self.viewport_extent[0]:g} x {self.viewport_extent[1]:g}")
            self._log(f"  Density method: {self.config.density_method}")

    @classmethod
    def from_config(
        cls,
        config: SimulationConfig,
        viewport_extent: Optional[Tuple[float, float]] = None,
        rng: Optional[np.random.Generator] = None,
        **kwargs: Any,
    ) -> "Simulation":
        """
        Create particles from the configured layout and wrap them in a Simulation.

        The same generator drives random placement and coincident-particle
        directions, so a seeded config reproduces a run exactly.
        """
        if viewport_extent is None:
            viewport_extent = (config.viewport_width, config.viewport_height)
        if rng is None:
            rng = np.random.default_rng(config.random_seed)

        particles = initialize_particles(
            config.particle_count,
            config.smooth_radius,
            config.start_point,
            config.stride,
            config.max_width,
            config.randomize,
            viewport_extent,
            mass=config.particle_mass,
            rng=rng,
        )
        return cls(particles, config=config, viewport_extent=viewport_extent, rng=rng, **kwargs)

    @classmethod
    def from_config_file(
        cls,
        filename: Union[str, Path],
        viewport_extent: Optional[Tuple[float, float]] = None,
        **overrides: Any,
    ) -> "Simulation":
        """
        Load a YAML/JSON configuration and build a Simulation from it.

        ``reload_parameters()`` without arguments re-reads the same file.
        """
        from fluid_sph.config.loaders import load_config

        config = load_config(filename, **overrides)
        return cls.from_config(config, viewport_extent=viewport_extent, config_path=filename)

    @staticmethod
    def _validate_extent(extent: Tuple[float, float]) -> Tuple[float, float]:
        width, height = extent
        if not (math.isfinite(width) and math.isfinite(height)) or width <= 0 or height <= 0:
            raise ValueError(f"viewport extent must be positive and finite, got {extent}")
        return float(width), float(height)

    def _validate_config(self):
        """
        Validate configuration and component compatibility.
        """
        if self.config.particle_count != self.particles.n_particles:
            raise ValueError(
                f"config.particle_count ({self.config.particle_count}) does not match "
                f"the particle system ({self.particles.n_particles})"
            )

        n_index = getattr(self.neighbour_search, "n_particles", self.particles.n_particles)
        if n_index != self.particles.n_particles:
            raise ValueError(
                f"neighbour index sized for {n_index} particles, "
                f"particle system has {self.particles.n_particles}"
            )

        if self.config.density_method == "bruteforce" and self.particles.n_particles > 20000:
            warnings.warn(
                f"Full-population density summation is O(N²); "
                f"{self.particles.n_particles} particles will be slow. "
                "Consider density_method='spatial_hash'."
            )

    def _log(self, message: str):
        """Log message if verbose."""
        if self.config.verbose:
            print(f"[t={self.state.time:.4f}] {message}")

    def update_viewport_extent(self, extent: Tuple[float, float]) -> None:
        """
        Set the viewport used by subsequent boundary resolution.

        Call between steps, e.g. after a window resize.
        """
        self.viewport_extent = self._validate_extent(extent)

    def reload_parameters(
        self,
        source: Optional[Union[SimulationConfig, Mapping[str, Any], str, Path]] = None,
    ) -> Dict[str, float]:
        """
        Reload the tunable coefficients and recompute kernel scaling factors.

        Only smooth_radius, collision_damping, target_density,
        pressure_multiplier and gravity_acc_value are taken from the source.
        Particle arrays and the particle count are never touched; the new
        values apply from the next step.

        Parameters
        ----------
        source : SimulationConfig, mapping, path, or None
            Where to read the coefficients. None re-reads the file the
            simulation was created from.

        Returns
        -------
        parameters : Dict[str, float]
            The coefficients now in effect.

        Raises
        ------
        ValueError
            If no source is available or the new values fail validation.
        """
        from fluid_sph.config.loaders import flatten_config, load_tunable_parameters

        if source is None:
            if self.config_path is None:
                raise ValueError(
                    "No configuration source: pass one explicitly or create the "
                    "simulation with Simulation.from_config_file()"
                )
            source = self.config_path

        if isinstance(source, SimulationConfig):
            tunables = source.tunable_parameters()
        elif isinstance(source, Mapping):
            flat = flatten_config(dict(source))
            tunables = {k: flat[k] for k in TUNABLE_PARAMETERS if k in flat}
        else:
            tunables = load_tunable_parameters(source)

        updated = self.config.model_dump()
        updated.update(tunables)
        with warnings.catch_warnings():
            # Layout warnings were already reported at construction
            warnings.filterwarnings("ignore", message="Lattice rows")
            self.config = SimulationConfig.model_validate(updated)

        self.kernels.set_smooth_radius(self.config.smooth_radius)
        if hasattr(self.boundary, "collision_damping"):
            self.boundary.collision_damping = self.config.collision_damping

        self.state.reload_count += 1
        if self.config.verbose:
            params = ", ".join(f"{k}={v:g}" for k, v in self.config.tunable_parameters().items())
            self._log(f"Reloaded parameters: {params}")

        return self.config.tunable_parameters()

    def compute_forces(self) -> Dict[str, NDArrayFloat]:
        """
        Run the force phases of the pipeline on the current state.

        Predicts positions, rebuilds the neighbour index, computes densities
        for all particles, then pressure forces.

        Returns
        -------
        accelerations : Dict[str, NDArrayFloat]
            'pressure' (F/ρ) and 'gravity' accelerations, shape (N, 2).
        """
        particles = self.particles
        config = self.config

        t0 = time_module.time()
        predicted = particles.predict_positions(config.look_ahead_time)
        self.state.timing_predict = time_module.time() - t0

        t0 = time_module.time()
        self.neighbour_search.build(predicted, config.smooth_radius)
        self.state.timing_index = time_module.time() - t0

        t0 = time_module.time()
        if config.density_method == "spatial_hash":
            particles.density[:] = compute_density_neighbours(
                predicted, particles.masses, self.kernels, self.neighbour_search
            )
        else:
            particles.density[:] = compute_density_summation(
                predicted, particles.masses, self.kernels
            )
        self.state.timing_density = time_module.time() - t0

        t0 = time_module.time()
        pressure_forces = compute_pressure_forces(
            predicted,
            particles.density,
            particles.masses,
            self.kernels,
            self.neighbour_search,
            config.target_density,
            config.pressure_multiplier,
            rng=self.rng,
        )
        self.state.timing_pressure = time_module.time() - t0

        return {
            'pressure': pressure_acceleration(pressure_forces, particles.density),
            'gravity': compute_gravity_acceleration(particles.masses, config.gravity_acc_value),
        }

    def step(self, dt: Optional[float] = None) -> None:
        """
        Advance simulation by one timestep.

        Parameters
        ----------
        dt : float, optional
            Step duration in seconds (e.g. the last frame time).
            Defaults to ``config.time_step``.

        Raises
        ------
        ValueError
            If dt is negative or not finite, or the step produced
            non-finite positions.
        """
        if dt is None:
            dt = self.config.time_step
        dt = float(dt)
        if not math.isfinite(dt) or dt < 0.0:
            raise ValueError(f"dt must be finite and >= 0, got {dt}")

        t0_step = time_module.time()

        forces = self.compute_forces()

        t0 = time_module.time()
        self.integrator.step(self.particles, dt, forces)
        self.state.timing_integration = time_module.time() - t0

        t0 = time_module.time()
        self.state.boundary_collisions = self.boundary.apply(self.particles, self.viewport_extent)
        self.state.timing_boundary = time_module.time() - t0

        if not np.all(np.isfinite(self.particles.positions)):
            self._log(f"ERROR: Non-finite particle positions after step {self.state.step + 1}")
            raise ValueError("Particle positions became NaN/inf")

        # Update time
        self.state.dt = dt
        self.state.time += dt
        self.state.step += 1

        if self.particles.n_particles > 0:
            self.state.max_density = float(np.max(self.particles.density))
            self.state.mean_density = float(np.mean(self.particles.density))

        if self.snapshot_exchange is not None:
            self.snapshot_exchange.publish(self.snapshot())

        self.state.timing_total = time_module.time() - t0_step

    def snapshot(self) -> ParticleSnapshot:
        """Value copy of positions, velocities and shared scalars at this step boundary."""
        self.state.snapshot_count += 1
        return ParticleSnapshot.capture(
            self.particles,
            step=self.state.step,
            sim_time=self.state.time,
            smooth_radius=self.config.smooth_radius,
            target_density=self.config.target_density,
        )

    def run(self, n_steps: int, dt: Optional[float] = None) -> SimulationState:
        """
        Run a fixed number of steps.

        Parameters
        ----------
        n_steps : int
            Number of steps to take.
        dt : float, optional
            Step size; defaults to ``config.time_step``.

        Returns
        -------
        state : SimulationState
            Final simulation state.
        """
        self._log("=" * 60)
        self._log("Starting simulation")
        self._log("=" * 60)

        for _ in range(n_steps):
            self.step(dt)

            # Periodic logging
            if self.state.step % self.config.log_interval == 0:
                self.state.kinetic_energy = self.particles.kinetic_energy()
                self._log(
                    f"Step {self.state.step:6d}  "
                    f"dt={self.state.dt:.2e}  "
                    f"E_kin={self.state.kinetic_energy:.6e}  "
                    f"rho_max={self.state.max_density:.4e}  "
                    f"walls={self.state.boundary_collisions}  "
                    f"step_time={self.state.timing_total * 1e3:.1f} ms"
                )

        # Summary
        self.state.kinetic_energy = self.particles.kinetic_energy()
        self.state.wall_time_elapsed = time_module.time() - self.state.wall_time_start
        self._log("=" * 60)
        self._log("Simulation complete")
        self._log(f"  Steps: {self.state.step}")
        self._log(f"  Final time: {self.state.time:.4f}")
        self._log(f"  Wall time: {self.state.wall_time_elapsed:.2f} s")
        self._log("=" * 60)

        return self.state
