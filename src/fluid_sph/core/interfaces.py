"""
Abstract base classes defining interfaces for pluggable FLUID-SPH modules.

This module establishes the contract that the simulation pipeline relies on,
so neighbour search, integration, boundary handling and initial layouts can be
swapped without touching the orchestrator.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, Tuple
import numpy as np
import numpy.typing as npt


# Type aliases for clarity
NDArrayFloat = npt.NDArray[np.float32]
NDArrayInt = npt.NDArray[np.int64]


class NeighbourSearch(ABC):
    """
    Abstract base class for per-step neighbour indices.

    Implementations: SpatialHashIndex (hash + sort + bucket scan).
    """

    @abstractmethod
    def build(self, positions: NDArrayFloat, smooth_radius: float) -> None:
        """
        Rebuild the index from scratch over the given positions.

        Parameters
        ----------
        positions : NDArrayFloat, shape (N, 2)
            Positions to index (the predicted positions of the current step).
        smooth_radius : float
            Interaction radius; determines the cell size.
        """
        pass

    @abstractmethod
    def neighbours(self, particle_index: int) -> Iterator[int]:
        """
        Lazily enumerate candidate neighbours of one particle.

        The sequence never contains ``particle_index`` itself but may contain
        particles outside the interaction radius; callers apply their own cutoff.

        Parameters
        ----------
        particle_index : int
            Index of the query particle.

        Returns
        -------
        neighbours : Iterator[int]
            Candidate neighbour indices.
        """
        pass

    def candidate_arrays(self, n_particles: int) -> Tuple[NDArrayInt, NDArrayInt]:
        """
        All candidate lists packed for compiled pair loops.

        Candidates of particle i are ``indices[offsets[i]:offsets[i + 1]]``,
        in the order ``neighbours(i)`` yields them.

        Parameters
        ----------
        n_particles : int
            Number of indexed particles.

        Returns
        -------
        indices : NDArrayInt, shape (M,)
        offsets : NDArrayInt, shape (N + 1,)
        """
        lists = [list(self.neighbours(i)) for i in range(n_particles)]
        offsets = np.zeros(n_particles + 1, dtype=np.int64)
        offsets[1:] = np.cumsum([len(c) for c in lists], dtype=np.int64)
        indices = np.fromiter(
            (j for c in lists for j in c), dtype=np.int64, count=int(offsets[-1])
        )
        return indices, offsets


class TimeIntegrator(ABC):
    """
    Abstract base class for time integration schemes.

    Implementations: SymplecticEulerIntegrator.
    """

    @abstractmethod
    def step(
        self,
        particles: Any,  # ParticleSystem type
        dt: float,
        forces: Dict[str, NDArrayFloat],
        **kwargs
    ) -> None:
        """
        Advance particle system by one timestep.

        Parameters
        ----------
        particles : ParticleSystem
            Particle system to evolve.
        dt : float
            Timestep.
        forces : Dict[str, NDArrayFloat]
            Dictionary of acceleration contributions (pressure, gravity).
        **kwargs : integrator-specific parameters.
        """
        pass


class BoundaryCondition(ABC):
    """
    Abstract base class for domain boundaries.

    Implementations: ViewportBoundary.
    """

    @abstractmethod
    def apply(self, particles: Any, extent: Tuple[float, float]) -> int:
        """
        Enforce the boundary on positions and velocities in place.

        Parameters
        ----------
        particles : ParticleSystem
            Particle system to correct.
        extent : Tuple[float, float]
            Domain (width, height); the domain is [0, width] x [0, height].

        Returns
        -------
        n_collisions : int
            Number of particle-axis collisions resolved.
        """
        pass


class ICGenerator(ABC):
    """
    Abstract base class for initial particle layouts.

    Implementations: GridLayout, UniformRandomLayout.
    """

    @abstractmethod
    def generate(self, n_particles: int, **kwargs) -> NDArrayFloat:
        """
        Generate initial particle positions.

        Parameters
        ----------
        n_particles : int
            Number of particles to place.
        **kwargs : layout-specific parameters.

        Returns
        -------
        positions : NDArrayFloat, shape (n_particles, 2)
            Initial positions.
        """
        pass
