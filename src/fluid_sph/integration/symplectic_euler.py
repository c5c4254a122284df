"""
Semi-implicit (symplectic) Euler time integrator.

Velocities are kicked first with the total acceleration, then positions drift
with the updated velocities:
    v^(n+1) = v^n + a^n dt
    x^(n+1) = x^n + v^(n+1) dt

First-order accurate but stable for stiff SPH pressure forces at interactive
frame rates, especially combined with look-ahead force evaluation.
"""

import numpy as np
from typing import Any, Dict
from fluid_sph.core.interfaces import TimeIntegrator, NDArrayFloat


class SymplecticEulerIntegrator(TimeIntegrator):
    """
    Kick-then-drift integrator.

    Notes
    -----
    All entries of the ``forces`` dict are accelerations of shape (N, 2)
    and are summed before the kick.
    """

    def step(
        self,
        particles: Any,
        dt: float,
        forces: Dict[str, NDArrayFloat],
        **kwargs
    ) -> None:
        """
        Advance particle velocities and positions in place.

        Parameters
        ----------
        particles : ParticleSystem
            Particle system with ``positions`` and ``velocities``.
        dt : float
            Timestep duration.
        forces : Dict[str, NDArrayFloat]
            Acceleration contributions, e.g. 'pressure' and 'gravity'.
        """
        total_accel = np.zeros_like(particles.velocities, dtype=np.float32)
        for accel in forces.values():
            if accel is not None:
                total_accel += accel.astype(np.float32, copy=False)

        dt = np.float32(dt)
        particles.velocities += total_accel * dt
        particles.positions += particles.velocities * dt
