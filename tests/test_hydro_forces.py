"""
Tests for density summation and pressure forces.

Validates:
- Poly6 density summation (Numba) against a direct evaluation
- Index-based density agrees with the full summation
- Two-particle repulsion with its exact SpikyPow2 magnitude
- Equal and opposite pair forces
- Coincident particles get a finite random direction
- Compiled pair loop against a direct pair sum
- Zero-particle and isolated-particle edge cases
"""

import math
import numpy as np
import pytest

from fluid_sph.sph.kernels import SPHKernels2D
from fluid_sph.core.interfaces import NeighbourSearch
from fluid_sph.sph.spatial_hash import SpatialHashIndex, find_neighbours_bruteforce
from fluid_sph.sph.hydro_forces import (
    compute_density_summation,
    compute_density_neighbours,
    compute_pressure_forces,
    compute_gravity_acceleration,
    pressure_acceleration,
    pressure_from_density,
    random_unit_vectors,
)


def _indexed(positions, radius):
    index = SpatialHashIndex(len(positions))
    index.build(positions, radius)
    return index


class TestDensity:
    """Poly6 density summation."""

    def test_single_particle_self_density(self):
        kernels = SPHKernels2D(35.0)
        positions = np.array([[50.0, 50.0]], dtype=np.float32)
        masses = np.array([100.0], dtype=np.float32)

        density = compute_density_summation(positions, masses, kernels)
        expected = 100.0 * kernels.poly6(0.0)
        assert density[0] == pytest.approx(expected, rel=1e-5)

    def test_matches_direct_evaluation(self):
        rng = np.random.default_rng(0)
        positions = rng.uniform(0.0, 200.0, (60, 2)).astype(np.float32)
        masses = np.full(60, 100.0, dtype=np.float32)
        kernels = SPHKernels2D(35.0)

        density = compute_density_summation(positions, masses, kernels)

        pos64 = positions.astype(np.float64)
        for i in range(60):
            d = np.linalg.norm(pos64 - pos64[i], axis=1)
            expected = np.sum(masses * kernels.poly6(d))
            assert density[i] == pytest.approx(expected, rel=1e-4)

    def test_neighbour_density_agrees_with_summation(self):
        rng = np.random.default_rng(1)
        positions = rng.uniform(0.0, 300.0, (120, 2)).astype(np.float32)
        masses = np.full(120, 100.0, dtype=np.float32)
        kernels = SPHKernels2D(35.0)

        full = compute_density_summation(positions, masses, kernels)
        indexed = compute_density_neighbours(positions, masses, kernels, _indexed(positions, 35.0))
        np.testing.assert_allclose(indexed, full, rtol=1e-4)

    def test_far_particles_do_not_interact(self):
        kernels = SPHKernels2D(35.0)
        positions = np.array([[0.0, 0.0], [100.0, 0.0]], dtype=np.float32)
        masses = np.full(2, 100.0, dtype=np.float32)
        density = compute_density_summation(positions, masses, kernels)
        np.testing.assert_allclose(density, 100.0 * kernels.poly6(0.0), rtol=1e-5)

    def test_empty(self):
        kernels = SPHKernels2D(35.0)
        empty = np.zeros((0, 2), dtype=np.float32)
        masses = np.zeros(0, dtype=np.float32)
        assert compute_density_summation(empty, masses, kernels).shape == (0,)
        assert compute_density_neighbours(empty, masses, kernels, _indexed(empty, 35.0)).shape == (0,)


class TestPressureForces:
    """Symmetric pressure force."""

    def test_pressure_equation_of_state(self):
        pressure = pressure_from_density(np.array([1.0, 3.0, 0.5]), 1.0, 20000.0)
        np.testing.assert_allclose(pressure, [0.0, 40000.0, -10000.0])

    def test_two_particle_repulsion_exact(self):
        r, d, k, rho0, rho, m = 35.0, 10.0, 20000.0, 1.0, 2.0, 100.0
        kernels = SPHKernels2D(r)
        positions = np.array([[100.0, 100.0], [100.0 + d, 100.0]], dtype=np.float32)
        density = np.full(2, rho, dtype=np.float32)
        masses = np.full(2, m, dtype=np.float32)

        forces = compute_pressure_forces(
            positions, density, masses, kernels, _indexed(positions, r), rho0, k,
        )

        pressure = k * (rho - rho0)
        slope = -2.0 * 6.0 / (math.pi * r**4) * (r - d)
        expected = pressure * slope * m / rho  # along +x for particle 0

        assert expected < 0.0
        np.testing.assert_allclose(forces[0], [expected, 0.0], rtol=1e-5)
        np.testing.assert_allclose(forces[1], [-expected, 0.0], rtol=1e-5)

        # Repulsive: each force points away from the other particle
        assert forces[0, 0] < 0.0
        assert forces[1, 0] > 0.0

    def test_attraction_below_target_density(self):
        kernels = SPHKernels2D(35.0)
        positions = np.array([[100.0, 100.0], [100.0, 110.0]], dtype=np.float32)
        density = np.full(2, 0.5, dtype=np.float32)
        masses = np.full(2, 100.0, dtype=np.float32)

        forces = compute_pressure_forces(
            positions, density, masses, kernels, _indexed(positions, 35.0), 1.0, 20000.0,
        )
        assert forces[0, 1] > 0.0
        assert forces[1, 1] < 0.0

    def test_forces_equal_and_opposite(self):
        rng = np.random.default_rng(3)
        positions = rng.uniform(0.0, 150.0, (40, 2)).astype(np.float32)
        masses = np.full(40, 100.0, dtype=np.float32)
        kernels = SPHKernels2D(35.0)
        density = compute_density_summation(positions, masses, kernels)

        # Pair weights m_j / ρ_j are symmetric only for uniform density
        uniform = np.full(40, float(np.mean(density)), dtype=np.float32)
        forces = compute_pressure_forces(
            positions, uniform, masses, kernels, _indexed(positions, 35.0), 1.0, 20000.0,
        )
        total = np.sum(forces.astype(np.float64), axis=0)
        scale = np.max(np.abs(forces))
        assert scale > 0.0
        assert np.all(np.abs(total) <= 1e-4 * scale * len(positions))

    def test_out_of_range_candidates_ignored(self):
        kernels = SPHKernels2D(35.0)
        # Same cell row but 60 apart: adjacent cells, beyond the radius
        positions = np.array([[5.0, 5.0], [65.0, 5.0]], dtype=np.float32)
        density = np.full(2, 2.0, dtype=np.float32)
        masses = np.full(2, 100.0, dtype=np.float32)

        forces = compute_pressure_forces(
            positions, density, masses, kernels, _indexed(positions, 35.0), 1.0, 20000.0,
        )
        np.testing.assert_array_equal(forces, 0.0)

    def test_coincident_particles_finite(self):
        kernels = SPHKernels2D(35.0)
        positions = np.array([[50.0, 50.0], [50.0, 50.0]], dtype=np.float32)
        density = np.full(2, 2.0, dtype=np.float32)
        masses = np.full(2, 100.0, dtype=np.float32)

        forces = compute_pressure_forces(
            positions, density, masses, kernels, _indexed(positions, 35.0), 1.0, 20000.0,
            rng=np.random.default_rng(0),
        )
        assert np.all(np.isfinite(forces))

        # Magnitude is the d = 0 slope along a unit direction
        expected = abs(20000.0 * kernels.spiky_pow2_derivative(0.0) * 100.0 / 2.0)
        np.testing.assert_allclose(np.linalg.norm(forces, axis=1), expected, rtol=1e-5)

    def test_coincident_direction_seeded(self):
        kernels = SPHKernels2D(35.0)
        positions = np.array([[50.0, 50.0], [50.0, 50.0]], dtype=np.float32)
        density = np.full(2, 2.0, dtype=np.float32)
        masses = np.full(2, 100.0, dtype=np.float32)
        args = (positions, density, masses, kernels, _indexed(positions, 35.0), 1.0, 20000.0)

        a = compute_pressure_forces(*args, rng=np.random.default_rng(5))
        b = compute_pressure_forces(*args, rng=np.random.default_rng(5))
        np.testing.assert_array_equal(a, b)

    def test_coincident_uses_predrawn_directions(self):
        kernels = SPHKernels2D(35.0)
        positions = np.array([[50.0, 50.0], [50.0, 50.0]], dtype=np.float32)
        density = np.full(2, 2.0, dtype=np.float32)
        masses = np.full(2, 100.0, dtype=np.float32)

        forces = compute_pressure_forces(
            positions, density, masses, kernels, _indexed(positions, 35.0), 1.0, 20000.0,
            rng=np.random.default_rng(11),
        )

        directions = random_unit_vectors(2, np.random.default_rng(11))
        magnitude = 20000.0 * kernels.spiky_pow2_derivative(0.0) * 100.0 / 2.0
        np.testing.assert_allclose(forces, magnitude * directions, rtol=1e-5)

    def test_matches_direct_pair_sum(self):
        rng = np.random.default_rng(21)
        n, r, k, rho0 = 150, 35.0, 20000.0, 1.0
        positions = rng.uniform(0.0, 250.0, (n, 2)).astype(np.float32)
        masses = np.full(n, 100.0, dtype=np.float32)
        kernels = SPHKernels2D(r)
        density = compute_density_summation(positions, masses, kernels)

        forces = compute_pressure_forces(
            positions, density, masses, kernels, _indexed(positions, r), rho0, k,
        )

        pos64 = positions.astype(np.float64)
        rho64 = density.astype(np.float64)
        pressure = k * (rho64 - rho0)
        exact = find_neighbours_bruteforce(positions, r)
        for i in range(n):
            expected = np.zeros(2)
            for j in exact[i]:
                offset = pos64[j] - pos64[i]
                d = np.linalg.norm(offset)
                slope = kernels.spiky_pow2_derivative(d)
                expected += 0.5 * (pressure[i] + pressure[j]) * slope * 100.0 / rho64[j] * offset / d
            np.testing.assert_allclose(forces[i], expected, rtol=1e-3, atol=1e-3 * np.abs(expected).max() + 1e-6)

    def test_generic_neighbour_search(self):
        class ListNeighbours(NeighbourSearch):
            def build(self, positions, smooth_radius):
                self.lists = find_neighbours_bruteforce(positions, smooth_radius)

            def neighbours(self, particle_index):
                return iter(self.lists[particle_index].tolist())

        rng = np.random.default_rng(4)
        positions = rng.uniform(0.0, 150.0, (60, 2)).astype(np.float32)
        masses = np.full(60, 100.0, dtype=np.float32)
        kernels = SPHKernels2D(35.0)
        density = compute_density_summation(positions, masses, kernels)

        search = ListNeighbours()
        search.build(positions, 35.0)
        generic = compute_pressure_forces(
            positions, density, masses, kernels, search, 1.0, 20000.0,
        )
        hashed = compute_pressure_forces(
            positions, density, masses, kernels, _indexed(positions, 35.0), 1.0, 20000.0,
        )
        np.testing.assert_allclose(generic, hashed, rtol=1e-4, atol=1e-3)

        np.testing.assert_allclose(
            compute_density_neighbours(positions, masses, kernels, search), density, rtol=1e-4
        )

    def test_isolated_particle_zero_force(self):
        kernels = SPHKernels2D(35.0)
        positions = np.array([[50.0, 50.0]], dtype=np.float32)
        forces = compute_pressure_forces(
            positions,
            np.array([5.0], dtype=np.float32),
            np.array([100.0], dtype=np.float32),
            kernels,
            _indexed(positions, 35.0),
            1.0,
            20000.0,
        )
        np.testing.assert_array_equal(forces, [[0.0, 0.0]])

    def test_empty(self):
        kernels = SPHKernels2D(35.0)
        empty = np.zeros((0, 2), dtype=np.float32)
        forces = compute_pressure_forces(
            empty, np.zeros(0, np.float32), np.zeros(0, np.float32),
            kernels, _indexed(empty, 35.0), 1.0, 20000.0,
        )
        assert forces.shape == (0, 2)


class TestAccelerations:
    """Conversion of forces to accelerations."""

    def test_gravity_scales_with_mass(self):
        accel = compute_gravity_acceleration(np.array([1.0, 100.0], dtype=np.float32), -9.8)
        np.testing.assert_allclose(accel, [[0.0, -9.8], [0.0, -980.0]], rtol=1e-6)

    def test_pressure_acceleration_divides_by_density(self):
        forces = np.array([[4.0, -2.0], [1.0, 1.0]], dtype=np.float32)
        density = np.array([2.0, 0.0], dtype=np.float32)
        accel = pressure_acceleration(forces, density)
        np.testing.assert_allclose(accel, [[2.0, -1.0], [0.0, 0.0]])
