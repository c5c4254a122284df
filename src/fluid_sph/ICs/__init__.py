"""
Initial conditions module: lattice and random particle layouts.
"""

from fluid_sph.ICs.layouts import GridLayout, UniformRandomLayout

__all__ = ["GridLayout", "UniformRandomLayout"]
