"""
Packed particle buffer for render and GPU-compute consumers.

The byte layout is fixed and little-endian:

    offset 0   int32    particle_count
    offset 4   float32  smooth_radius
    offset 8   float32  target_density
    offset 12  4 bytes  padding
    offset 16  N × (float32, float32)  positions
    then       N × (float32, float32)  velocities

Shader-side structs depend on this exact ordering, so it is shared here as a
single header dtype plus offsets rather than re-derived by each consumer.
"""

from typing import Any, Dict, Union
import numpy as np
import numpy.typing as npt

# Type alias for clarity
NDArrayFloat = npt.NDArray[np.float32]

HEADER_DTYPE = np.dtype(
    [
        ("particle_count", "<i4"),
        ("smooth_radius", "<f4"),
        ("target_density", "<f4"),
        ("padding", "V4"),
    ]
)
HEADER_SIZE = HEADER_DTYPE.itemsize  # 16 bytes
VEC2_SIZE = 2 * np.dtype("<f4").itemsize

BufferLike = Union[bytes, bytearray, memoryview]


def particle_buffer_size(n_particles: int) -> int:
    """Total buffer size in bytes for ``n_particles``."""
    return HEADER_SIZE + 2 * VEC2_SIZE * n_particles


def particle_buffer_dtype(n_particles: int) -> np.dtype:
    """
    Structured dtype describing a whole buffer for ``n_particles``.

    ``np.frombuffer(data, dtype=particle_buffer_dtype(n), count=1)[0]``
    gives named access to every field.
    """
    return np.dtype(
        [
            ("particle_count", "<i4"),
            ("smooth_radius", "<f4"),
            ("target_density", "<f4"),
            ("padding", "V4"),
            ("positions", "<f4", (n_particles, 2)),
            ("velocities", "<f4", (n_particles, 2)),
        ]
    )


def positions_offset() -> int:
    """Byte offset of the positions block."""
    return HEADER_SIZE


def velocities_offset(n_particles: int) -> int:
    """Byte offset of the velocities block."""
    return HEADER_SIZE + VEC2_SIZE * n_particles


class ParticleBufferWriter:
    """
    Mapped-buffer style writer over a bytearray.

    ``write_header`` fills the whole header once at allocation time;
    ``write`` is called after every completed step and refreshes the scalar
    parameters and both vector blocks, leaving the particle count untouched.

    Attributes
    ----------
    n_particles : int
        Number of particles the buffer is sized for.
    buffer : bytearray
        Backing storage, ``particle_buffer_size(n_particles)`` bytes.
    """

    def __init__(self, n_particles: int):
        if n_particles < 0:
            raise ValueError(f"n_particles must be >= 0, got {n_particles}")
        self.n_particles = int(n_particles)
        self.buffer = bytearray(particle_buffer_size(self.n_particles))

    def _header(self) -> np.ndarray:
        return np.frombuffer(self.buffer, dtype=HEADER_DTYPE, count=1)

    def _block(self, offset: int) -> np.ndarray:
        return np.frombuffer(
            self.buffer, dtype="<f4", count=2 * self.n_particles, offset=offset
        ).reshape(self.n_particles, 2)

    def write_header(self, particle_count: int, smooth_radius: float, target_density: float) -> None:
        """Write particle count, smoothing radius and target density."""
        header = self._header()
        header["particle_count"] = particle_count
        header["smooth_radius"] = smooth_radius
        header["target_density"] = target_density

    def write(
        self,
        positions: NDArrayFloat,
        velocities: NDArrayFloat,
        smooth_radius: float,
        target_density: float,
    ) -> None:
        """
        Refresh the buffer after a step.

        Parameters
        ----------
        positions : NDArrayFloat, shape (N, 2)
            Particle positions.
        velocities : NDArrayFloat, shape (N, 2)
            Particle velocities.
        smooth_radius : float
            Current smoothing radius (may have changed on reload).
        target_density : float
            Current target density (may have changed on reload).
        """
        shape = (self.n_particles, 2)
        if np.shape(positions) != shape or np.shape(velocities) != shape:
            raise ValueError(
                f"expected positions/velocities of shape {shape}, got "
                f"{np.shape(positions)} and {np.shape(velocities)}"
            )

        header = self._header()
        header["smooth_radius"] = smooth_radius
        header["target_density"] = target_density

        if self.n_particles == 0:
            return
        self._block(positions_offset())[:] = positions
        self._block(velocities_offset(self.n_particles))[:] = velocities

    def view(self) -> memoryview:
        """Read-only memoryview for upload."""
        return memoryview(self.buffer).toreadonly()


def pack_particle_buffer(
    positions: NDArrayFloat,
    velocities: NDArrayFloat,
    smooth_radius: float,
    target_density: float,
) -> bytes:
    """
    Pack a complete particle buffer.

    Parameters
    ----------
    positions : NDArrayFloat, shape (N, 2)
    velocities : NDArrayFloat, shape (N, 2)
    smooth_radius : float
    target_density : float

    Returns
    -------
    data : bytes
        ``particle_buffer_size(N)`` bytes in the documented layout.
    """
    writer = ParticleBufferWriter(len(positions))
    writer.write_header(len(positions), smooth_radius, target_density)
    writer.write(positions, velocities, smooth_radius, target_density)
    return bytes(writer.buffer)


def unpack_particle_buffer(data: BufferLike) -> Dict[str, Any]:
    """
    Decode a packed particle buffer.

    Returns
    -------
    fields : Dict[str, Any]
        'particle_count', 'smooth_radius', 'target_density' scalars and
        'positions', 'velocities' float32 arrays of shape (N, 2).

    Raises
    ------
    ValueError
        If the buffer is shorter than the header or does not match the
        size implied by its particle count.
    """
    if len(data) < HEADER_SIZE:
        raise ValueError(f"buffer too small for header: {len(data)} bytes")

    header = np.frombuffer(data, dtype=HEADER_DTYPE, count=1)[0]
    n = int(header["particle_count"])
    if n < 0 or len(data) != particle_buffer_size(n):
        raise ValueError(
            f"buffer of {len(data)} bytes does not match particle_count={n}"
        )

    if n == 0:
        positions = np.zeros((0, 2), dtype=np.float32)
        velocities = np.zeros((0, 2), dtype=np.float32)
    else:
        positions = np.frombuffer(data, dtype="<f4", count=2 * n, offset=positions_offset()).reshape(n, 2)
        velocities = np.frombuffer(data, dtype="<f4", count=2 * n, offset=velocities_offset(n)).reshape(n, 2)

    return {
        'particle_count': n,
        'smooth_radius': float(header["smooth_radius"]),
        'target_density': float(header["target_density"]),
        'positions': positions.astype(np.float32),
        'velocities': velocities.astype(np.float32),
    }
