"""
FLUID-SPH: 2D smoothed particle hydrodynamics fluid simulation.

A small Python/Numba framework for interactive 2D fluid simulations: Poly6 and
Spiky kernels, a spatial hash neighbour index, a symmetric pressure model,
reflecting viewport walls and a packed particle buffer for render consumers.
"""

__version__ = "1.0.0"
__author__ = "FLUID-SPH Dev Team"

# Core imports for convenience
from fluid_sph.core.interfaces import (
    NeighbourSearch,
    TimeIntegrator,
    BoundaryCondition,
    ICGenerator,
)
from fluid_sph.core.simulation import (
    Simulation,
    SimulationConfig,
    SimulationState,
)

__all__ = [
    "NeighbourSearch",
    "TimeIntegrator",
    "BoundaryCondition",
    "ICGenerator",
    "Simulation",
    "SimulationConfig",
    "SimulationState",
]
