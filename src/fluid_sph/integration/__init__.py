"""
Integration module: time integrators.
"""

from fluid_sph.integration.symplectic_euler import SymplecticEulerIntegrator

__all__ = ["SymplecticEulerIntegrator"]
