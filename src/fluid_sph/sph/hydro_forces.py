"""
SPH density and pressure-force computation for the 2D fluid.

Density uses the Poly6 kernel and, by default, sums over the whole particle
population (the full O(N²) sum, parallelised with Numba). Pressure forces use
the SpikyPow2 derivative and run over the spatial hash neighbour candidates,
packed into (indices, offsets) arrays so the pair loop is compiled as well:

    P_i = k (ρ_i − ρ_0)
    F_i = ∑_j ½ (P_i + P_j) × dW₂(|x_j − x_i|) × m_j / ρ_j × (x_j − x_i)/|x_j − x_i|

The symmetric (shared) pressure keeps the pair forces equal and opposite.
Coincident particles get a random unit direction instead of a normalised
zero vector.

References
----------
.. [1] Müller, M., Charypar, D., & Gross, M. (2003), SCA '03, 154-159.
.. [2] Monaghan, J. J. (2005), "Smoothed particle hydrodynamics",
       Reports on Progress in Physics, 68, 1703.
"""

import math
from typing import Optional
import numpy as np
import numpy.typing as npt
from numba import njit, prange

from fluid_sph.core.interfaces import NeighbourSearch
from fluid_sph.sph.kernels import SPHKernels2D

# Type alias for clarity
NDArrayFloat = npt.NDArray[np.float32]

# Below this pair distance the direction is drawn at random
DIRECTION_EPSILON = float(np.finfo(np.float32).eps)


@njit(parallel=True, fastmath=True)
def _density_summation_numba(positions, masses, smooth_radius, scale_poly6):
    """Full-population Poly6 density summation (self term included)."""
    N = len(positions)
    density = np.zeros(N, dtype=np.float32)
    r2 = smooth_radius * smooth_radius

    for i in prange(N):
        pos_i_x = positions[i, 0]
        pos_i_y = positions[i, 1]

        rho = 0.0
        for j in range(N):
            dx = positions[j, 0] - pos_i_x
            dy = positions[j, 1] - pos_i_y
            d2 = dx*dx + dy*dy

            if d2 < r2:
                v = r2 - d2
                rho += masses[j] * scale_poly6 * v * v * v

        density[i] = rho

    return density


def compute_density_summation(
    positions: NDArrayFloat,
    masses: NDArrayFloat,
    kernels: SPHKernels2D,
) -> NDArrayFloat:
    """
    Compute ρ_i = ∑_j m_j W_poly6(|x_i − x_j|) over all particles.

    Parameters
    ----------
    positions : NDArrayFloat, shape (N, 2)
        Predicted positions.
    masses : NDArrayFloat, shape (N,)
        Particle masses.
    kernels : SPHKernels2D
        Kernel set providing the radius and Poly6 scaling factor.

    Returns
    -------
    density : NDArrayFloat, shape (N,)

    Notes
    -----
    The sum deliberately ignores the neighbour index. See
    ``compute_density_neighbours`` for the index-based variant.
    """
    positions = np.ascontiguousarray(positions, dtype=np.float32)
    masses = np.ascontiguousarray(masses, dtype=np.float32)
    return _density_summation_numba(
        positions, masses, float(kernels.smooth_radius), float(kernels.scale_poly6)
    )


@njit(parallel=True, fastmath=True)
def _density_neighbours_numba(positions, masses, neighbour_indices, neighbour_offsets,
                              smooth_radius, scale_poly6):
    """Poly6 density over packed neighbour candidates (self term included)."""
    N = len(positions)
    density = np.zeros(N, dtype=np.float32)
    r2 = smooth_radius * smooth_radius
    self_weight = scale_poly6 * r2 * r2 * r2

    for i in prange(N):
        pos_i_x = positions[i, 0]
        pos_i_y = positions[i, 1]

        rho = masses[i] * self_weight
        for k in range(neighbour_offsets[i], neighbour_offsets[i + 1]):
            j = neighbour_indices[k]
            dx = positions[j, 0] - pos_i_x
            dy = positions[j, 1] - pos_i_y
            d2 = dx*dx + dy*dy

            if d2 < r2:
                v = r2 - d2
                rho += masses[j] * scale_poly6 * v * v * v

        density[i] = rho

    return density


def compute_density_neighbours(
    positions: NDArrayFloat,
    masses: NDArrayFloat,
    kernels: SPHKernels2D,
    neighbour_search: NeighbourSearch,
) -> NDArrayFloat:
    """
    Density summation restricted to the neighbour index candidates.

    Same result as ``compute_density_summation`` whenever every particle
    within the smoothing radius lies in the searched cell block.

    Parameters
    ----------
    positions : NDArrayFloat, shape (N, 2)
        Predicted positions (the ones the index was built over).
    masses : NDArrayFloat, shape (N,)
        Particle masses.
    kernels : SPHKernels2D
        Kernel set.
    neighbour_search : NeighbourSearch
        Index built over ``positions`` this step.

    Returns
    -------
    density : NDArrayFloat, shape (N,)
    """
    positions = np.ascontiguousarray(positions, dtype=np.float64)
    masses = np.ascontiguousarray(masses, dtype=np.float64)
    neighbour_indices, neighbour_offsets = neighbour_search.candidate_arrays(len(positions))
    return _density_neighbours_numba(
        positions, masses, neighbour_indices, neighbour_offsets,
        float(kernels.smooth_radius), float(kernels.scale_poly6),
    )


def pressure_from_density(
    density: NDArrayFloat,
    target_density: float,
    pressure_multiplier: float,
) -> NDArrayFloat:
    """Linear equation of state P = k (ρ − ρ_0)."""
    return pressure_multiplier * (np.asarray(density, dtype=np.float64) - target_density)


def random_unit_vectors(n: int, rng: np.random.Generator) -> npt.NDArray[np.float64]:
    """n unit vectors with uniformly distributed angles, shape (n, 2)."""
    angles = rng.uniform(0.0, 2.0 * math.pi, n)
    return np.column_stack((np.cos(angles), np.sin(angles)))


@njit(parallel=True, fastmath=True)
def _pressure_forces_numba(positions, density, masses, pressure,
                           neighbour_indices, neighbour_offsets,
                           smooth_radius, scale_spiky_pow2, random_dirs, direction_epsilon):
    """Symmetric SpikyPow2 pressure force over packed neighbour candidates."""
    N = len(positions)
    forces = np.zeros((N, 2), dtype=np.float32)

    for i in prange(N):
        pos_i_x = positions[i, 0]
        pos_i_y = positions[i, 1]
        P_i = pressure[i]

        fx = 0.0
        fy = 0.0
        for k in range(neighbour_offsets[i], neighbour_offsets[i + 1]):
            j = neighbour_indices[k]
            dx = positions[j, 0] - pos_i_x
            dy = positions[j, 1] - pos_i_y
            distance = np.sqrt(dx*dx + dy*dy)
            if distance >= smooth_radius:
                continue

            # Coincident pair: direction drawn ahead of the loop
            if distance < direction_epsilon:
                dir_x = random_dirs[i, 0]
                dir_y = random_dirs[i, 1]
            else:
                dir_x = dx / distance
                dir_y = dy / distance

            slope = -2.0 * scale_spiky_pow2 * (smooth_radius - distance)
            magnitude = 0.5 * (P_i + pressure[j]) * slope * masses[j] / density[j]
            fx += magnitude * dir_x
            fy += magnitude * dir_y

        forces[i, 0] = fx
        forces[i, 1] = fy

    return forces


def compute_pressure_forces(
    positions: NDArrayFloat,
    density: NDArrayFloat,
    masses: NDArrayFloat,
    kernels: SPHKernels2D,
    neighbour_search: NeighbourSearch,
    target_density: float,
    pressure_multiplier: float,
    rng: Optional[np.random.Generator] = None,
) -> NDArrayFloat:
    """
    Symmetric pressure force on every particle.

    Parameters
    ----------
    positions : NDArrayFloat, shape (N, 2)
        Predicted positions.
    density : NDArrayFloat, shape (N,)
        Densities of this step, complete for all particles.
    masses : NDArrayFloat, shape (N,)
        Particle masses.
    kernels : SPHKernels2D
        Kernel set (SpikyPow2 derivative and smoothing radius).
    neighbour_search : NeighbourSearch
        Index built over ``positions`` this step.
    target_density : float
        Rest density ρ_0.
    pressure_multiplier : float
        Stiffness k.
    rng : np.random.Generator, optional
        Source of random directions for coincident particles. One unit
        vector per particle is drawn each call.

    Returns
    -------
    forces : NDArrayFloat, shape (N, 2)
        Pressure force (not yet divided by density).
    """
    if rng is None:
        rng = np.random.default_rng()

    n = len(positions)
    positions = np.ascontiguousarray(positions, dtype=np.float64)
    density = np.ascontiguousarray(density, dtype=np.float64)
    masses = np.ascontiguousarray(masses, dtype=np.float64)
    pressure = pressure_from_density(density, target_density, pressure_multiplier)
    random_dirs = random_unit_vectors(n, rng)
    neighbour_indices, neighbour_offsets = neighbour_search.candidate_arrays(n)

    return _pressure_forces_numba(
        positions, density, masses, pressure,
        neighbour_indices, neighbour_offsets,
        float(kernels.smooth_radius), float(kernels.scale_spiky_pow2),
        random_dirs, DIRECTION_EPSILON,
    )


def compute_gravity_acceleration(masses: NDArrayFloat, gravity_acc_value: float) -> NDArrayFloat:
    """
    Per-particle gravity term (0, g × m_i).

    The vertical term scales with particle mass.

    Returns
    -------
    accel : NDArrayFloat, shape (N, 2)
    """
    accel = np.zeros((len(masses), 2), dtype=np.float32)
    accel[:, 1] = gravity_acc_value * np.asarray(masses, dtype=np.float32)
    return accel


def pressure_acceleration(forces: NDArrayFloat, density: NDArrayFloat) -> NDArrayFloat:
    """
    Convert pressure forces to accelerations a = F / ρ.

    Particles with non-positive density (only possible with zero masses)
    get zero acceleration.
    """
    density = np.asarray(density, dtype=np.float32)
    accel = np.zeros_like(forces, dtype=np.float32)
    np.divide(forces, density[:, np.newaxis], out=accel, where=density[:, np.newaxis] > 0.0)
    return accel
