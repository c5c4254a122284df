"""
Particle system management for 2D SPH fluid simulations.

This module implements the ParticleSystem class that owns all per-particle
arrays (positions, predicted positions, velocities, densities, masses) and the
``initialize_particles`` factory that lays particles out on a lattice or at
random inside the viewport.

Arrays are float32 so they can be handed to a render/GPU upload path without
conversion.
"""

from typing import Optional, Sequence, Tuple
import numpy as np
import numpy.typing as npt

from fluid_sph.ICs.layouts import GridLayout, UniformRandomLayout

# Type alias for clarity
NDArrayFloat = npt.NDArray[np.float32]

# Uniform particle mass used when none is configured
DEFAULT_PARTICLE_MASS = 100.0


class ParticleSystem:
    """
    Container for 2D SPH particle data.

    Attributes
    ----------
    n_particles : int
        Number of particles; fixed for the lifetime of the system.
    positions : NDArrayFloat, shape (N, 2)
        Authoritative particle positions.
    predicted_positions : NDArrayFloat, shape (N, 2)
        Look-ahead positions, rewritten at the start of every step.
    velocities : NDArrayFloat, shape (N, 2)
        Particle velocities.
    density : NDArrayFloat, shape (N,)
        Density from the most recent step.
    masses : NDArrayFloat, shape (N,)
        Particle masses. Read-only after construction.

    Notes
    -----
    The arrays are owned by the simulation step. External readers should
    use ``get_positions``/``get_velocities`` between steps, or a snapshot.
    """

    def __init__(
        self,
        n_particles: int,
        positions: Optional[NDArrayFloat] = None,
        velocities: Optional[NDArrayFloat] = None,
        masses: Optional[NDArrayFloat] = None,
    ):
        """
        Initialize particle system.

        Parameters
        ----------
        n_particles : int
            Number of particles (may be 0).
        positions : NDArrayFloat, shape (N, 2), optional
            Initial positions. If None, initialized to zeros.
        velocities : NDArrayFloat, shape (N, 2), optional
            Initial velocities. If None, initialized to zeros.
        masses : NDArrayFloat, shape (N,), optional
            Particle masses. If None, every particle gets DEFAULT_PARTICLE_MASS.
        """
        if n_particles < 0:
            raise ValueError(f"n_particles must be >= 0, got {n_particles}")
        self.n_particles = int(n_particles)

        # Primary state variables
        self.positions = (
            np.array(positions, dtype=np.float32) if positions is not None
            else np.zeros((n_particles, 2), dtype=np.float32)
        )
        self.velocities = (
            np.array(velocities, dtype=np.float32) if velocities is not None
            else np.zeros((n_particles, 2), dtype=np.float32)
        )
        self.masses = (
            np.array(masses, dtype=np.float32) if masses is not None
            else np.full(n_particles, DEFAULT_PARTICLE_MASS, dtype=np.float32)
        )

        # Step-local derived quantities
        self.predicted_positions = self.positions.copy()
        self.density = np.zeros(n_particles, dtype=np.float32)

        self._validate_shapes()

        # Mass is constant for the particle lifetime
        self.masses.setflags(write=False)

    def _validate_shapes(self) -> None:
        """Validate that all arrays have consistent shapes."""
        n = self.n_particles
        if self.positions.shape != (n, 2):
            raise ValueError(f"positions shape mismatch: {self.positions.shape}")
        if self.velocities.shape != (n, 2):
            raise ValueError(f"velocities shape mismatch: {self.velocities.shape}")
        if self.masses.shape != (n,):
            raise ValueError(f"masses shape mismatch: {self.masses.shape}")
        assert self.predicted_positions.shape == (n, 2)
        assert self.density.shape == (n,)

    def get_positions(self) -> NDArrayFloat:
        """Read-only view of particle positions."""
        view = self.positions.view()
        view.setflags(write=False)
        return view

    def get_velocities(self) -> NDArrayFloat:
        """Read-only view of particle velocities."""
        view = self.velocities.view()
        view.setflags(write=False)
        return view

    def get_masses(self) -> NDArrayFloat:
        """Get particle masses."""
        return self.masses

    def get_density(self) -> NDArrayFloat:
        """Get densities of the most recent step."""
        return self.density

    def predict_positions(self, look_ahead_time: float) -> NDArrayFloat:
        """
        Recompute look-ahead positions: x̂ = x + v × look_ahead_time.

        Returns
        -------
        predicted_positions : NDArrayFloat, shape (N, 2)
        """
        np.multiply(self.velocities, np.float32(look_ahead_time), out=self.predicted_positions)
        self.predicted_positions += self.positions
        return self.predicted_positions

    def kinetic_energy(self) -> float:
        """
        Compute total kinetic energy of the system.

        Returns
        -------
        E_kin : float
            Total kinetic energy: ∑ (1/2) m v².
        """
        v_squared = np.sum(self.velocities.astype(np.float64)**2, axis=1)
        return float(0.5 * np.sum(self.masses * v_squared))

    def total_mass(self) -> float:
        """Total mass ∑ m."""
        return float(np.sum(self.masses, dtype=np.float64))

    def center_of_mass(self) -> NDArrayFloat:
        """
        Compute center of mass position.

        Returns
        -------
        r_com : NDArrayFloat, shape (2,)
            Center of mass position (zeros for an empty system).
        """
        total_mass = self.total_mass()
        if total_mass == 0:
            return np.zeros(2, dtype=np.float32)
        return (np.sum(self.masses[:, np.newaxis] * self.positions, axis=0) / total_mass).astype(np.float32)

    def center_of_mass_velocity(self) -> NDArrayFloat:
        """Center of mass velocity, shape (2,)."""
        total_mass = self.total_mass()
        if total_mass == 0:
            return np.zeros(2, dtype=np.float32)
        return (np.sum(self.masses[:, np.newaxis] * self.velocities, axis=0) / total_mass).astype(np.float32)

    def __len__(self) -> int:
        return self.n_particles

    def __repr__(self) -> str:
        """String representation of particle system."""
        return (
            f"ParticleSystem(n_particles={self.n_particles}, "
            f"total_mass={self.total_mass():.3e}, "
            f"E_kin={self.kinetic_energy():.3e})"
        )


def initialize_particles(
    count: int,
    smooth_radius: float,
    start_point: Sequence[float],
    stride: float,
    max_width: float,
    randomize: bool,
    viewport_extent: Tuple[float, float],
    mass: float = DEFAULT_PARTICLE_MASS,
    rng: Optional[np.random.Generator] = None,
) -> ParticleSystem:
    """
    Allocate and lay out a particle system.

    Parameters
    ----------
    count : int
        Number of particles.
    smooth_radius : float
        Smoothing radius of the run; must be > 0.
    start_point : Sequence[float]
        Lattice origin (x, y); ignored when ``randomize``.
    stride : float
        Lattice spacing; ignored when ``randomize``.
    max_width : float
        Lattice row width, rounded down to a multiple of ``stride``.
    randomize : bool
        Place particles uniformly at random in the viewport instead of a lattice.
    viewport_extent : Tuple[float, float]
        (width, height) of the viewport, used for random placement.
    mass : float
        Uniform particle mass.
    rng : np.random.Generator, optional
        Random source for random placement. A fresh unseeded generator is used
        when None.

    Returns
    -------
    particles : ParticleSystem
        Particles at rest with uniform mass.
    """
    if smooth_radius <= 0:
        raise ValueError(f"smooth_radius must be > 0, got {smooth_radius}")

    if randomize:
        layout = UniformRandomLayout(viewport_extent, rng=rng)
    else:
        layout = GridLayout(start_point, stride, max_width)

    positions = layout.generate(count)
    masses = np.full(count, mass, dtype=np.float32)

    return ParticleSystem(count, positions=positions, masses=masses)
