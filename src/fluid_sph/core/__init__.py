"""
Core module: interfaces and simulation orchestrator.
"""

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
    TUNABLE_PARAMETERS,
)

__all__ = [
    "NeighbourSearch",
    "TimeIntegrator",
    "BoundaryCondition",
    "ICGenerator",
    "Simulation",
    "SimulationConfig",
    "SimulationState",
    "TUNABLE_PARAMETERS",
]
