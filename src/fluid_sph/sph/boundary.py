"""
Viewport boundary handling.

Particles leaving the rectangle [0, width] × [0, height] are clamped back onto
the wall and the velocity component normal to that wall is reflected and
damped: v_axis ← −c × v_axis, with c ∈ [0, 1] the collision damping
(1 = perfectly elastic, 0 = fully absorbing). Axes are handled independently,
so a particle leaving through a corner bounces on both.
"""

from typing import Any, Tuple
import numpy as np

from fluid_sph.core.interfaces import BoundaryCondition, NDArrayFloat


def resolve_boundary_collisions(
    positions: NDArrayFloat,
    velocities: NDArrayFloat,
    extent: Tuple[float, float],
    collision_damping: float,
) -> int:
    """
    Clamp positions into the viewport and reflect velocities, in place.

    Parameters
    ----------
    positions : NDArrayFloat, shape (N, 2)
        Particle positions (modified in place).
    velocities : NDArrayFloat, shape (N, 2)
        Particle velocities (modified in place).
    extent : Tuple[float, float]
        Viewport (width, height).
    collision_damping : float
        Fraction of the normal velocity kept after a bounce.

    Returns
    -------
    n_collisions : int
        Number of particle-axis collisions resolved.
    """
    n_collisions = 0
    for axis, limit in enumerate(extent):
        coord = positions[:, axis]
        outside = (coord < 0.0) | (coord > limit)
        if not np.any(outside):
            continue

        np.clip(coord, 0.0, limit, out=coord)
        velocities[outside, axis] *= -collision_damping
        n_collisions += int(np.count_nonzero(outside))

    return n_collisions


class ViewportBoundary(BoundaryCondition):
    """
    Reflecting walls on the viewport rectangle.

    Attributes
    ----------
    collision_damping : float
        Fraction of the normal velocity kept after a bounce.
    """

    def __init__(self, collision_damping: float = 0.5):
        self.collision_damping = float(collision_damping)

    def apply(self, particles: Any, extent: Tuple[float, float]) -> int:
        """Resolve wall collisions for a ParticleSystem."""
        return resolve_boundary_collisions(
            particles.positions,
            particles.velocities,
            extent,
            self.collision_damping,
        )

    def __repr__(self) -> str:
        return f"ViewportBoundary(collision_damping={self.collision_damping})"
