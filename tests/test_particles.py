"""
Tests for the particle store and initial layouts.

Validates:
- ParticleSystem allocation, dtypes and shape checks
- Read-only accessors and immutable masses
- Look-ahead prediction
- Lattice and random placement through initialize_particles
"""

import numpy as np
import pytest

from fluid_sph.sph.particles import ParticleSystem, initialize_particles, DEFAULT_PARTICLE_MASS
from fluid_sph.ICs.layouts import GridLayout, UniformRandomLayout


class TestParticleSystem:
    """ParticleSystem container behaviour."""

    def test_defaults(self):
        particles = ParticleSystem(5)
        assert len(particles) == 5
        assert particles.positions.shape == (5, 2)
        assert particles.velocities.shape == (5, 2)
        assert particles.predicted_positions.shape == (5, 2)
        assert particles.density.shape == (5,)
        assert particles.positions.dtype == np.float32
        np.testing.assert_array_equal(particles.masses, DEFAULT_PARTICLE_MASS)
        assert particles.get_density() is particles.density

    def test_shape_mismatch_rejected(self):
        with pytest.raises(ValueError, match="positions shape mismatch"):
            ParticleSystem(3, positions=np.zeros((2, 2)))
        with pytest.raises(ValueError, match="masses shape mismatch"):
            ParticleSystem(3, masses=np.ones(4))

    def test_negative_count_rejected(self):
        with pytest.raises(ValueError):
            ParticleSystem(-1)

    def test_empty_system(self):
        particles = ParticleSystem(0)
        assert particles.kinetic_energy() == 0.0
        assert particles.total_mass() == 0.0
        np.testing.assert_array_equal(particles.center_of_mass(), [0.0, 0.0])
        assert particles.predict_positions(0.01).shape == (0, 2)

    def test_accessors_are_read_only(self):
        particles = ParticleSystem(2, positions=[[1.0, 2.0], [3.0, 4.0]])
        positions = particles.get_positions()
        np.testing.assert_array_equal(positions, [[1.0, 2.0], [3.0, 4.0]])
        with pytest.raises(ValueError):
            positions[0, 0] = 9.0
        with pytest.raises(ValueError):
            particles.get_velocities()[0, 0] = 9.0

    def test_masses_immutable(self):
        particles = ParticleSystem(3)
        with pytest.raises(ValueError):
            particles.masses[0] = 1.0
        with pytest.raises(ValueError):
            particles.get_masses()[0] = 1.0
        np.testing.assert_array_equal(particles.get_masses(), DEFAULT_PARTICLE_MASS)

    def test_input_arrays_copied(self):
        positions = np.zeros((2, 2), dtype=np.float32)
        particles = ParticleSystem(2, positions=positions)
        positions[0, 0] = 5.0
        assert particles.positions[0, 0] == 0.0

    def test_predict_positions(self):
        particles = ParticleSystem(
            2,
            positions=[[10.0, 20.0], [0.0, 0.0]],
            velocities=[[60.0, -120.0], [0.0, 0.0]],
        )
        predicted = particles.predict_positions(1.0 / 120.0)

        np.testing.assert_allclose(predicted, [[10.5, 19.0], [0.0, 0.0]], rtol=1e-6)
        assert predicted is particles.predicted_positions
        # Authoritative state untouched
        np.testing.assert_array_equal(particles.positions, [[10.0, 20.0], [0.0, 0.0]])

    def test_diagnostics(self):
        particles = ParticleSystem(
            2,
            positions=[[0.0, 0.0], [2.0, 0.0]],
            velocities=[[1.0, 0.0], [-1.0, 0.0]],
            masses=[1.0, 3.0],
        )
        assert particles.total_mass() == pytest.approx(4.0)
        assert particles.kinetic_energy() == pytest.approx(2.0)
        np.testing.assert_allclose(particles.center_of_mass(), [1.5, 0.0])
        np.testing.assert_allclose(particles.center_of_mass_velocity(), [-0.5, 0.0])


class TestGridLayout:
    """Row-major lattice placement."""

    def test_rows_wrap_at_max_width(self):
        layout = GridLayout((100.0, 100.0), 10.0, 35.0)
        # 35 rounds down to 30 → 3 per row
        assert layout.per_row == 3

        positions = layout.generate(7)
        expected = [
            [100, 100], [110, 100], [120, 100],
            [100, 110], [110, 110], [120, 110],
            [100, 120],
        ]
        np.testing.assert_allclose(positions, expected)

    def test_extent(self):
        layout = GridLayout((0.0, 0.0), 10.0, 400.0)
        assert layout.per_row == 40
        assert layout.extent(85) == (390.0, 20.0)
        assert layout.extent(0) == (0.0, 0.0)

    def test_zero_columns_rejected(self):
        with pytest.raises(ValueError, match="at least one stride"):
            GridLayout((0.0, 0.0), 10.0, 5.0)

    def test_invalid_stride(self):
        with pytest.raises(ValueError, match="stride must be > 0"):
            GridLayout((0.0, 0.0), 0.0, 100.0)

    def test_start_point_components(self):
        with pytest.raises(ValueError, match="2 components"):
            GridLayout((0.0, 0.0, 0.0), 10.0, 100.0)


class TestUniformRandomLayout:
    """Random placement inside the viewport."""

    def test_inside_viewport(self):
        layout = UniformRandomLayout((800.0, 600.0), rng=np.random.default_rng(1))
        positions = layout.generate(2000)
        assert positions.dtype == np.float32
        assert np.all(positions[:, 0] >= 0.0) and np.all(positions[:, 0] < 800.0)
        assert np.all(positions[:, 1] >= 0.0) and np.all(positions[:, 1] < 600.0)

    def test_seeded_layout_reproducible(self):
        a = UniformRandomLayout((800.0, 600.0), rng=123).generate(50)
        b = UniformRandomLayout((800.0, 600.0), rng=123).generate(50)
        np.testing.assert_array_equal(a, b)

    def test_invalid_extent(self):
        with pytest.raises(ValueError, match="viewport extent must be positive"):
            UniformRandomLayout((0.0, 600.0))


class TestInitializeParticles:
    """Factory used by the simulation."""

    def test_lattice(self):
        particles = initialize_particles(
            count=6,
            smooth_radius=35.0,
            start_point=(100.0, 100.0),
            stride=10.0,
            max_width=20.0,
            randomize=False,
            viewport_extent=(800.0, 600.0),
        )
        assert particles.n_particles == 6
        np.testing.assert_allclose(particles.positions[2], [100.0, 110.0])
        np.testing.assert_allclose(particles.positions[3], [110.0, 110.0])
        np.testing.assert_array_equal(particles.velocities, 0.0)
        np.testing.assert_array_equal(particles.masses, 100.0)

    def test_random_uses_injected_generator(self):
        kwargs = dict(
            count=20, smooth_radius=35.0, start_point=(0.0, 0.0), stride=10.0,
            max_width=100.0, randomize=True, viewport_extent=(800.0, 600.0),
        )
        a = initialize_particles(rng=np.random.default_rng(9), **kwargs)
        b = initialize_particles(rng=np.random.default_rng(9), **kwargs)
        np.testing.assert_array_equal(a.positions, b.positions)

    def test_custom_mass(self):
        particles = initialize_particles(
            3, 35.0, (0.0, 0.0), 10.0, 100.0, False, (800.0, 600.0), mass=2.5
        )
        np.testing.assert_array_equal(particles.masses, np.float32(2.5))

    def test_zero_particles(self):
        particles = initialize_particles(0, 35.0, (0.0, 0.0), 10.0, 100.0, False, (800.0, 600.0))
        assert particles.n_particles == 0
        assert particles.positions.shape == (0, 2)

    def test_invalid_radius(self):
        with pytest.raises(ValueError, match="smooth_radius must be > 0"):
            initialize_particles(3, 0.0, (0.0, 0.0), 10.0, 100.0, False, (800.0, 600.0))
