"""
Step-boundary snapshots for concurrent readers.

The simulation owns its particle arrays while a step runs. A render or upload
thread must never read them mid-step, so after each completed step the
simulation can publish a value copy into a SnapshotExchange; readers take the
latest published snapshot at their own pace.
"""

from dataclasses import dataclass, field
import threading
import time
from typing import Optional
import numpy as np
import numpy.typing as npt

# Type alias for clarity
NDArrayFloat = npt.NDArray[np.float32]


@dataclass(frozen=True)
class ParticleSnapshot:
    """
    Immutable copy of the consumer-facing simulation state.

    Attributes
    ----------
    step : int
        Number of completed steps when the snapshot was taken.
    time : float
        Simulated time.
    particle_count : int
    smooth_radius : float
    target_density : float
    positions : NDArrayFloat, shape (N, 2)
        Read-only copy.
    velocities : NDArrayFloat, shape (N, 2)
        Read-only copy.
    wall_time : float
        time.time() at capture.
    """
    step: int
    time: float
    particle_count: int
    smooth_radius: float
    target_density: float
    positions: NDArrayFloat
    velocities: NDArrayFloat
    wall_time: float = field(default_factory=time.time)

    @classmethod
    def capture(
        cls,
        particles,
        step: int,
        sim_time: float,
        smooth_radius: float,
        target_density: float,
    ) -> "ParticleSnapshot":
        """Copy positions and velocities out of a ParticleSystem."""
        positions = np.array(particles.positions, dtype=np.float32, copy=True)
        velocities = np.array(particles.velocities, dtype=np.float32, copy=True)
        positions.setflags(write=False)
        velocities.setflags(write=False)
        return cls(
            step=step,
            time=sim_time,
            particle_count=particles.n_particles,
            smooth_radius=float(smooth_radius),
            target_density=float(target_density),
            positions=positions,
            velocities=velocities,
        )


class SnapshotExchange:
    """
    Lock-protected slot holding the most recent snapshot.

    One writer (the simulation) publishes; any number of readers fetch.
    Readers always see a complete snapshot of a completed step.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._latest: Optional[ParticleSnapshot] = None
        self._published = 0

    def publish(self, snapshot: ParticleSnapshot) -> None:
        """Replace the current snapshot."""
        with self._lock:
            self._latest = snapshot
            self._published += 1

    def latest(self) -> Optional[ParticleSnapshot]:
        """Most recent snapshot, or None before the first publish."""
        with self._lock:
            return self._latest

    @property
    def published_count(self) -> int:
        """Total number of snapshots published so far."""
        with self._lock:
            return self._published
