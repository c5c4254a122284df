"""
Initial particle layouts for 2D fluid blocks.

Two generators are provided:
- GridLayout: row-major lattice starting at a corner point, wrapping to a new
  row once a maximum width is reached (a "dam break" block).
- UniformRandomLayout: positions drawn uniformly over the viewport.

The random layout takes an explicit numpy Generator (or seed) so that layouts
are reproducible in tests.
"""

import math
from typing import Optional, Sequence, Tuple, Union
import numpy as np

from fluid_sph.core.interfaces import ICGenerator, NDArrayFloat


class GridLayout(ICGenerator):
    """
    Row-major lattice of particles.

    Particle i sits at ``start_point + (col × stride, row × stride)`` with
    ``row = i // per_row`` and ``col = i % per_row``, where ``per_row`` is the
    number of strides that fit in ``max_width`` after it has been rounded down
    to a multiple of ``stride``.

    Attributes
    ----------
    start_point : NDArrayFloat, shape (2,)
        Position of particle 0.
    stride : float
        Spacing between neighbouring lattice points.
    max_width : float
        Row width, already rounded down to a multiple of stride.
    per_row : int
        Particles per row.
    """

    def __init__(self, start_point: Sequence[float], stride: float, max_width: float):
        """
        Parameters
        ----------
        start_point : Sequence[float]
            (x, y) of the first particle.
        stride : float
            Lattice spacing, must be > 0.
        max_width : float
            Maximum row width, must be >= stride.
        """
        if stride <= 0:
            raise ValueError(f"stride must be > 0, got {stride}")
        if len(start_point) != 2:
            raise ValueError(f"start_point must have 2 components, got {len(start_point)}")

        self.start_point = np.asarray(start_point, dtype=np.float32)
        self.stride = float(stride)
        self.max_width = float(max_width) - math.fmod(float(max_width), self.stride)
        self.per_row = int(self.max_width / self.stride)

        if self.per_row < 1:
            raise ValueError(
                f"max_width ({max_width}) must fit at least one stride ({stride})"
            )

    def generate(self, n_particles: int, **kwargs) -> NDArrayFloat:
        """
        Generate lattice positions.

        Parameters
        ----------
        n_particles : int
            Number of particles.

        Returns
        -------
        positions : NDArrayFloat, shape (n_particles, 2)
        """
        i = np.arange(n_particles)
        rows = i // self.per_row
        cols = i % self.per_row

        positions = np.empty((n_particles, 2), dtype=np.float32)
        positions[:, 0] = self.start_point[0] + cols * self.stride
        positions[:, 1] = self.start_point[1] + rows * self.stride
        return positions

    def extent(self, n_particles: int) -> Tuple[float, float]:
        """Far corner (x, y) of the lattice for ``n_particles``."""
        if n_particles == 0:
            return float(self.start_point[0]), float(self.start_point[1])
        n_rows = (n_particles - 1) // self.per_row + 1
        n_cols = min(n_particles, self.per_row)
        return (
            float(self.start_point[0] + (n_cols - 1) * self.stride),
            float(self.start_point[1] + (n_rows - 1) * self.stride),
        )


class UniformRandomLayout(ICGenerator):
    """
    Particles drawn uniformly over [0, width) × [0, height).

    Attributes
    ----------
    viewport_extent : Tuple[float, float]
        (width, height) of the placement region.
    rng : np.random.Generator
        Random source.
    """

    def __init__(
        self,
        viewport_extent: Tuple[float, float],
        rng: Optional[Union[np.random.Generator, int]] = None,
    ):
        """
        Parameters
        ----------
        viewport_extent : Tuple[float, float]
            (width, height), both > 0.
        rng : np.random.Generator or int, optional
            Generator or seed. None gives non-reproducible placement.
        """
        width, height = viewport_extent
        if width <= 0 or height <= 0:
            raise ValueError(f"viewport extent must be positive, got {viewport_extent}")

        self.viewport_extent = (float(width), float(height))
        self.rng = rng if isinstance(rng, np.random.Generator) else np.random.default_rng(rng)

    def generate(self, n_particles: int, **kwargs) -> NDArrayFloat:
        """
        Generate random positions.

        Returns
        -------
        positions : NDArrayFloat, shape (n_particles, 2)
        """
        width, height = self.viewport_extent
        positions = np.empty((n_particles, 2), dtype=np.float32)
        positions[:, 0] = self.rng.uniform(0.0, width, n_particles)
        positions[:, 1] = self.rng.uniform(0.0, height, n_particles)

        # float32 rounding can land exactly on the open upper bound
        np.minimum(positions[:, 0], np.nextafter(np.float32(width), np.float32(0)), out=positions[:, 0])
        np.minimum(positions[:, 1], np.nextafter(np.float32(height), np.float32(0)), out=positions[:, 1])
        return positions
