"""
Tests for the symplectic Euler integrator.
"""

import numpy as np

from fluid_sph.integration import SymplecticEulerIntegrator
from fluid_sph.sph.particles import ParticleSystem


def test_kick_then_drift():
    particles = ParticleSystem(1, positions=[[10.0, 10.0]], velocities=[[1.0, 0.0]])
    forces = {
        'pressure': np.array([[2.0, 0.0]], dtype=np.float32),
        'gravity': np.array([[0.0, 4.0]], dtype=np.float32),
    }

    SymplecticEulerIntegrator().step(particles, 0.5, forces)

    # v = (1, 0) + (2, 4) * 0.5 = (2, 2); x = (10, 10) + (2, 2) * 0.5
    np.testing.assert_allclose(particles.velocities, [[2.0, 2.0]])
    np.testing.assert_allclose(particles.positions, [[11.0, 11.0]])


def test_zero_dt_is_identity():
    particles = ParticleSystem(2, positions=[[1.0, 2.0], [3.0, 4.0]], velocities=[[5.0, 6.0], [7.0, 8.0]])
    forces = {'gravity': np.full((2, 2), 100.0, dtype=np.float32)}

    SymplecticEulerIntegrator().step(particles, 0.0, forces)

    np.testing.assert_array_equal(particles.positions, [[1.0, 2.0], [3.0, 4.0]])
    np.testing.assert_array_equal(particles.velocities, [[5.0, 6.0], [7.0, 8.0]])


def test_none_entries_skipped():
    particles = ParticleSystem(1)
    SymplecticEulerIntegrator().step(particles, 1.0, {'pressure': None})
    np.testing.assert_array_equal(particles.velocities, 0.0)


def test_masses_untouched():
    particles = ParticleSystem(3, masses=[1.0, 2.0, 3.0])
    before = particles.masses.tobytes()
    SymplecticEulerIntegrator().step(particles, 0.1, {'gravity': np.ones((3, 2), dtype=np.float32)})
    assert particles.masses.tobytes() == before
