"""
SPH module: particles, kernels, spatial hash, pressure forces and boundaries.
"""

from .particles import ParticleSystem, initialize_particles, DEFAULT_PARTICLE_MASS
from .kernels import (
    SPHKernels2D,
    poly6_scaling_factor,
    spiky_pow3_scaling_factor,
    spiky_pow2_scaling_factor,
)
from .spatial_hash import (
    SpatialHashIndex,
    find_neighbours_bruteforce,
    cell_size_for,
    cell_coords,
    hash_cells,
)
from .hydro_forces import (
    compute_density_summation,
    compute_density_neighbours,
    pressure_from_density,
    compute_pressure_forces,
    compute_gravity_acceleration,
    pressure_acceleration,
    random_unit_vectors,
)
from .boundary import ViewportBoundary, resolve_boundary_collisions

__all__ = [
    # Particle management
    "ParticleSystem",
    "initialize_particles",
    "DEFAULT_PARTICLE_MASS",

    # Kernels
    "SPHKernels2D",
    "poly6_scaling_factor",
    "spiky_pow3_scaling_factor",
    "spiky_pow2_scaling_factor",

    # Neighbour search
    "SpatialHashIndex",
    "find_neighbours_bruteforce",
    "cell_size_for",
    "cell_coords",
    "hash_cells",

    # Density and pressure
    "compute_density_summation",
    "compute_density_neighbours",
    "pressure_from_density",
    "compute_pressure_forces",
    "compute_gravity_acceleration",
    "pressure_acceleration",
    "random_unit_vectors",

    # Boundaries
    "ViewportBoundary",
    "resolve_boundary_collisions",
]
