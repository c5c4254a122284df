"""
Tests for viewport boundary resolution.

Validates:
- Clamping and damped reflection per axis
- Corner exits bounce on both axes
- Particles inside the viewport are untouched
- ViewportBoundary wrapper and collision counting
"""

import numpy as np
import pytest

from fluid_sph.sph.boundary import resolve_boundary_collisions, ViewportBoundary
from fluid_sph.sph.particles import ParticleSystem


def test_left_wall_scenario():
    """Particle at (-5, 10) moving left bounces off x = 0 with half its speed."""
    positions = np.array([[-5.0, 10.0]], dtype=np.float32)
    velocities = np.array([[-3.0, 0.0]], dtype=np.float32)

    n = resolve_boundary_collisions(positions, velocities, (100.0, 100.0), 0.5)

    assert n == 1
    assert positions[0, 0] == 0.0
    assert velocities[0, 0] == 1.5
    assert positions[0, 1] == 10.0
    assert velocities[0, 1] == 0.0


def test_far_walls():
    positions = np.array([[120.0, 50.0], [50.0, 80.0]], dtype=np.float32)
    velocities = np.array([[4.0, 1.0], [0.0, 2.0]], dtype=np.float32)

    resolve_boundary_collisions(positions, velocities, (100.0, 60.0), 0.25)

    np.testing.assert_array_equal(positions, [[100.0, 50.0], [50.0, 60.0]])
    np.testing.assert_array_equal(velocities, [[-1.0, 1.0], [0.0, -0.5]])


def test_corner_bounces_on_both_axes():
    positions = np.array([[-1.0, 700.0]], dtype=np.float32)
    velocities = np.array([[-2.0, 8.0]], dtype=np.float32)

    n = resolve_boundary_collisions(positions, velocities, (800.0, 600.0), 0.5)

    assert n == 2
    np.testing.assert_array_equal(positions, [[0.0, 600.0]])
    np.testing.assert_array_equal(velocities, [[1.0, -4.0]])


def test_inside_untouched():
    positions = np.array([[0.0, 0.0], [100.0, 100.0], [50.0, 25.0]], dtype=np.float32)
    velocities = np.array([[-1.0, -1.0], [1.0, 1.0], [3.0, -3.0]], dtype=np.float32)
    before_pos, before_vel = positions.copy(), velocities.copy()

    n = resolve_boundary_collisions(positions, velocities, (100.0, 100.0), 0.5)

    assert n == 0
    np.testing.assert_array_equal(positions, before_pos)
    np.testing.assert_array_equal(velocities, before_vel)


@pytest.mark.parametrize("damping, expected", [(0.0, 0.0), (1.0, 3.0)])
def test_damping_limits(damping, expected):
    positions = np.array([[-5.0, 10.0]], dtype=np.float32)
    velocities = np.array([[-3.0, 0.0]], dtype=np.float32)
    resolve_boundary_collisions(positions, velocities, (100.0, 100.0), damping)
    assert velocities[0, 0] == expected


def test_empty():
    positions = np.zeros((0, 2), dtype=np.float32)
    velocities = np.zeros((0, 2), dtype=np.float32)
    assert resolve_boundary_collisions(positions, velocities, (100.0, 100.0), 0.5) == 0


def test_viewport_boundary_applies_to_particle_system():
    particles = ParticleSystem(1, positions=[[-5.0, 10.0]], velocities=[[-3.0, 0.0]])
    boundary = ViewportBoundary(collision_damping=0.5)

    assert boundary.apply(particles, (100.0, 100.0)) == 1
    np.testing.assert_array_equal(particles.positions, [[0.0, 10.0]])
    np.testing.assert_array_equal(particles.velocities, [[1.5, 0.0]])

    boundary.collision_damping = 1.0
    particles.positions[0, 0] = -1.0
    particles.velocities[0, 0] = -2.0
    boundary.apply(particles, (100.0, 100.0))
    assert particles.velocities[0, 0] == 2.0
