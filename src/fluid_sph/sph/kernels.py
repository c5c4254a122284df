"""
SPH smoothing kernels for 2D density and pressure estimation.

This module implements the three compactly supported kernels used by the
fluid solver (Müller et al. 2003, normalised for 2D):

    Poly6:      W(d, r) = 4 / (π r⁸) × (r² − d²)³
    SpikyPow3:  W(d, r) = 10 / (π r⁵) × (r − d)³
    SpikyPow2:  W(d, r) = 6 / (π r⁴) × (r − d)²

All kernels (and their derivatives) vanish for d ≥ r. The normalisation
factors depend only on the smoothing radius, so they are cached on the kernel
object and refreshed through ``set_smooth_radius``.

Every method accepts either a Python scalar (fast path used inside the
per-pair pressure loop) or a numpy array (vectorized path).

References
----------
.. [1] Müller, M., Charypar, D., & Gross, M. (2003), "Particle-based fluid
       simulation for interactive applications", SCA '03, 154-159.
.. [2] Clavet, S., Beaudoin, P., & Poulin, P. (2005), "Particle-based
       viscoelastic fluid simulation", SCA '05, 219-228.
"""

import math
from typing import Optional, Union
import numpy as np
import numpy.typing as npt

# Type alias for clarity
NDArrayFloat = npt.NDArray[np.float32]
ScalarOrArray = Union[float, NDArrayFloat]


def poly6_scaling_factor(smooth_radius: float) -> float:
    """Normalisation of the 2D Poly6 kernel, 4 / (π r⁸)."""
    return 4.0 / (math.pi * smooth_radius**8)


def spiky_pow3_scaling_factor(smooth_radius: float) -> float:
    """Normalisation of the 2D SpikyPow3 kernel, 10 / (π r⁵)."""
    return 10.0 / (math.pi * smooth_radius**5)


def spiky_pow2_scaling_factor(smooth_radius: float) -> float:
    """Normalisation of the 2D SpikyPow2 kernel, 6 / (π r⁴)."""
    return 6.0 / (math.pi * smooth_radius**4)


class SPHKernels2D:
    """
    Poly6 / Spiky kernel family with cached scaling factors.

    Attributes
    ----------
    smooth_radius : float
        Kernel support radius r (kernels vanish for d ≥ r).
    scale_poly6 : float
        4 / (π r⁸).
    scale_spiky_pow3 : float
        10 / (π r⁵).
    scale_spiky_pow2 : float
        6 / (π r⁴).

    Notes
    -----
    Methods take an optional ``radius`` so they can be called as W(d, r).
    The cached scaling factors always belong to ``smooth_radius``; passing
    a different radius only moves the cutoff.
    """

    def __init__(self, smooth_radius: float):
        """
        Initialize kernels for a smoothing radius.

        Parameters
        ----------
        smooth_radius : float
            Kernel support radius, must be > 0.
        """
        self.set_smooth_radius(smooth_radius)

    def set_smooth_radius(self, smooth_radius: float) -> None:
        """
        Change the support radius and recompute all scaling factors.

        Raises
        ------
        ValueError
            If ``smooth_radius`` is not a positive finite number.
        """
        smooth_radius = float(smooth_radius)
        if not math.isfinite(smooth_radius) or smooth_radius <= 0.0:
            raise ValueError(f"smooth_radius must be > 0, got {smooth_radius}")

        self.smooth_radius = smooth_radius
        self.scale_poly6 = poly6_scaling_factor(smooth_radius)
        self.scale_spiky_pow3 = spiky_pow3_scaling_factor(smooth_radius)
        self.scale_spiky_pow2 = spiky_pow2_scaling_factor(smooth_radius)

    def _radius(self, radius: Optional[float]) -> float:
        return self.smooth_radius if radius is None else radius

    def poly6(self, distance: ScalarOrArray, radius: Optional[float] = None) -> ScalarOrArray:
        """
        Poly6 kernel, used for density summation.

        Parameters
        ----------
        distance : float or NDArrayFloat
            Pair distance(s) d ≥ 0.
        radius : float, optional
            Support radius; defaults to ``smooth_radius``.

        Returns
        -------
        W : float or NDArrayFloat
            scale_poly6 × (r² − d²)³ for d < r, else 0.
        """
        r = self._radius(radius)
        if np.ndim(distance) == 0:
            d = float(distance)
            if d >= r:
                return 0.0
            v = r * r - d * d
            return self.scale_poly6 * v * v * v

        d = np.asarray(distance, dtype=np.float64)
        v = np.where(d < r, r * r - d * d, 0.0)
        return self.scale_poly6 * v**3

    def spiky_pow3(self, distance: ScalarOrArray, radius: Optional[float] = None) -> ScalarOrArray:
        """SpikyPow3 kernel: scale_spiky_pow3 × (r − d)³ for d < r, else 0."""
        r = self._radius(radius)
        if np.ndim(distance) == 0:
            d = float(distance)
            if d >= r:
                return 0.0
            v = r - d
            return self.scale_spiky_pow3 * v * v * v

        v = self._support(distance, r)
        return self.scale_spiky_pow3 * v**3

    def spiky_pow3_derivative(self, distance: ScalarOrArray, radius: Optional[float] = None) -> ScalarOrArray:
        """dW/dd of SpikyPow3: −3 × scale_spiky_pow3 × (r − d)² for d < r, else 0."""
        r = self._radius(radius)
        if np.ndim(distance) == 0:
            d = float(distance)
            if d >= r:
                return 0.0
            v = r - d
            return -3.0 * self.scale_spiky_pow3 * v * v

        v = self._support(distance, r)
        return -3.0 * self.scale_spiky_pow3 * v**2

    def spiky_pow2(self, distance: ScalarOrArray, radius: Optional[float] = None) -> ScalarOrArray:
        """SpikyPow2 kernel: scale_spiky_pow2 × (r − d)² for d < r, else 0."""
        r = self._radius(radius)
        if np.ndim(distance) == 0:
            d = float(distance)
            if d >= r:
                return 0.0
            v = r - d
            return self.scale_spiky_pow2 * v * v

        v = self._support(distance, r)
        return self.scale_spiky_pow2 * v**2

    def spiky_pow2_derivative(self, distance: ScalarOrArray, radius: Optional[float] = None) -> ScalarOrArray:
        """
        dW/dd of SpikyPow2, which sets the pressure force magnitude.

        Parameters
        ----------
        distance : float or NDArrayFloat
            Pair distance(s) d ≥ 0.
        radius : float, optional
            Support radius; defaults to ``smooth_radius``.

        Returns
        -------
        dW : float or NDArrayFloat
            −2 × scale_spiky_pow2 × (r − d) for d < r, else 0. Always ≤ 0.
        """
        r = self._radius(radius)
        if np.ndim(distance) == 0:
            d = float(distance)
            if d >= r:
                return 0.0
            return -2.0 * self.scale_spiky_pow2 * (r - d)

        v = self._support(distance, r)
        return -2.0 * self.scale_spiky_pow2 * v

    @staticmethod
    def _support(distance: NDArrayFloat, r: float) -> np.ndarray:
        """(r − d) inside the support, 0 outside."""
        d = np.asarray(distance, dtype=np.float64)
        return np.where(d < r, r - d, 0.0)

    def __repr__(self) -> str:
        return f"SPHKernels2D(smooth_radius={self.smooth_radius})"
