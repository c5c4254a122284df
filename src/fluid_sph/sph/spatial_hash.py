"""
Spatial hash neighbour index for 2D SPH particles.

Each step the index is rebuilt from scratch over the predicted positions:

1. every particle is binned into a square cell of side ``cell_size``;
2. the cell coordinates are hashed into ``[0, N)`` (N = particle count);
3. the (particle, key) entries are stably sorted by key;
4. a bucket table records, for every key present, the offset of its first
   entry in the sorted lookup.

A query walks the 3×3 block of cells around the particle, jumps to each cell's
bucket and scans forward while the key still matches. The table is sized to the
particle count rather than to the number of occupied cells, so distinct cells
can share a bucket; the scan then reports extra candidates, which callers
discard with their own distance cutoff. Buckets that received no particle
this step keep stale offsets from earlier builds; the key comparison at each
scanned position is what makes them safe.

References
----------
.. [1] Teschner, M. et al. (2003), "Optimized Spatial Hashing for Collision
       Detection of Deformable Objects", VMV '03, 47-54.
.. [2] Green, S. (2010), "Particle Simulation using CUDA", NVIDIA whitepaper.
"""

from typing import Iterator, List, Optional, Tuple
import numpy as np
import numpy.typing as npt
from numba import njit, prange

from fluid_sph.core.interfaces import NeighbourSearch

# Type aliases for clarity
NDArrayFloat = npt.NDArray[np.float32]
NDArrayInt = npt.NDArray[np.int64]

# Large odd multipliers of the cell hash (Teschner et al. 2003)
HASH_PRIME_X = 73856093
HASH_PRIME_Y = 83492791

# 3×3 cell neighbourhood, including the centre cell
NEIGHBOUR_OFFSETS = np.array(
    [(dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1)],
    dtype=np.int64,
)


def cell_size_for(smooth_radius: float) -> int:
    """
    Cell side length for a smoothing radius.

    The radius is truncated to an integer, which decides which particles
    share a cell. Radii below 1 would truncate to 0, so the cell size is
    clamped to at least 1.
    """
    return max(int(smooth_radius), 1)


def cell_coords(positions: NDArrayFloat, cell_size: float) -> NDArrayInt:
    """
    Integer cell coordinates floor(position / cell_size).

    Parameters
    ----------
    positions : NDArrayFloat, shape (N, 2) or (2,)
        Positions to bin.
    cell_size : float
        Cell side length.

    Returns
    -------
    cells : NDArrayInt, same leading shape as ``positions``
    """
    return np.floor(np.asarray(positions, dtype=np.float64) / cell_size).astype(np.int64)


def hash_cells(cells: NDArrayInt, table_size: int) -> NDArrayInt:
    """
    Hash cell coordinates into ``[0, table_size)``.

    key = (cx × 73856093 XOR cy × 83492791) mod table_size, with a
    non-negative modulo so negative cell coordinates stay in range.

    Parameters
    ----------
    cells : NDArrayInt, shape (..., 2)
        Cell coordinates.
    table_size : int
        Number of buckets, must be > 0.

    Returns
    -------
    keys : NDArrayInt, shape (...)
    """
    cells = np.asarray(cells, dtype=np.int64)
    raw = (cells[..., 0] * HASH_PRIME_X) ^ (cells[..., 1] * HASH_PRIME_Y)
    return np.mod(raw, table_size)


@njit
def _block_keys_numba(cx, cy, table_size, out):
    """Distinct bucket keys of the 3×3 block around cell (cx, cy); returns the count."""
    count = 0
    for dx in range(-1, 2):
        for dy in range(-1, 2):
            key = ((cx + dx) * HASH_PRIME_X ^ (cy + dy) * HASH_PRIME_Y) % table_size
            seen = False
            for k in range(count):
                if out[k] == key:
                    seen = True
                    break
            if not seen:
                out[count] = key
                count += 1
    return count


@njit(parallel=True)
def _gather_candidates_numba(sorted_keys, sorted_indices, bucket_starts, cells):
    """Walk the sorted lookup for every particle and pack the candidates."""
    N = len(sorted_keys)
    counts = np.zeros(N, dtype=np.int64)

    # Pass 1: candidate counts
    for i in prange(N):
        keys = np.empty(9, dtype=np.int64)
        n_keys = _block_keys_numba(cells[i, 0], cells[i, 1], N, keys)
        c = 0
        for k in range(n_keys):
            key = keys[k]
            offset = bucket_starts[key]
            while offset < N and sorted_keys[offset] == key:
                if sorted_indices[offset] != i:
                    c += 1
                offset += 1
        counts[i] = c

    offsets = np.zeros(N + 1, dtype=np.int64)
    for i in range(N):
        offsets[i + 1] = offsets[i] + counts[i]

    # Pass 2: fill
    indices = np.empty(offsets[N], dtype=np.int64)
    for i in prange(N):
        keys = np.empty(9, dtype=np.int64)
        n_keys = _block_keys_numba(cells[i, 0], cells[i, 1], N, keys)
        pos = offsets[i]
        for k in range(n_keys):
            key = keys[k]
            offset = bucket_starts[key]
            while offset < N and sorted_keys[offset] == key:
                j = sorted_indices[offset]
                if j != i:
                    indices[pos] = j
                    pos += 1
                offset += 1

    return indices, offsets


class SpatialHashIndex(NeighbourSearch):
    """
    Hash + sort + bucket-scan neighbour index.

    Attributes
    ----------
    n_particles : int
        Number of indexed particles; also the bucket-table size.
    cell_size : int
        Cell side length of the most recent build.

    Examples
    --------
    >>> index = SpatialHashIndex(len(positions))
    >>> index.build(positions, smooth_radius=35.0)
    >>> candidates = list(index.neighbours(0))
    """

    def __init__(self, n_particles: int):
        """
        Parameters
        ----------
        n_particles : int
            Number of particles the index will hold (may be 0).
        """
        if n_particles < 0:
            raise ValueError(f"n_particles must be >= 0, got {n_particles}")

        self.n_particles = int(n_particles)
        self.cell_size = 1
        self._built = False

        # Sorted lookup (key, particle) and bucket table
        self._sorted_keys = np.zeros(n_particles, dtype=np.int64)
        self._sorted_indices = np.arange(n_particles, dtype=np.int64)
        self._bucket_starts = np.zeros(n_particles, dtype=np.int64)
        self._cells = np.zeros((n_particles, 2), dtype=np.int64)

        # Plain-list mirrors for the per-query scan loop
        self._keys_list: List[int] = []
        self._indices_list: List[int] = []
        self._starts_list: List[int] = []

        # Packed candidates of the current build, gathered on first use
        self._candidates: Optional[Tuple[NDArrayInt, NDArrayInt]] = None

    def build(self, positions: NDArrayFloat, smooth_radius: float) -> None:
        """
        Rebuild the lookup from the given positions.

        Parameters
        ----------
        positions : NDArrayFloat, shape (N, 2)
            Predicted particle positions.
        smooth_radius : float
            Interaction radius; the cell size is its integer truncation.
        """
        positions = np.asarray(positions)
        if positions.shape != (self.n_particles, 2):
            raise ValueError(
                f"positions shape {positions.shape} does not match index size "
                f"({self.n_particles}, 2)"
            )

        self.cell_size = cell_size_for(smooth_radius)
        self._built = True
        self._candidates = None
        if self.n_particles == 0:
            return

        cells = cell_coords(positions, self.cell_size)
        keys = hash_cells(cells, self.n_particles)

        order = np.argsort(keys, kind="stable")
        sorted_keys = keys[order]

        # First entry of each run of equal keys
        run_starts = np.flatnonzero(np.r_[True, sorted_keys[1:] != sorted_keys[:-1]])
        self._bucket_starts[sorted_keys[run_starts]] = run_starts

        self._cells = cells
        self._sorted_keys = sorted_keys
        self._sorted_indices = order.astype(np.int64, copy=False)

        self._keys_list = sorted_keys.tolist()
        self._indices_list = self._sorted_indices.tolist()
        self._starts_list = self._bucket_starts.tolist()

    def neighbour_keys(self, particle_index: int) -> List[int]:
        """
        Distinct bucket keys of the 3×3 cell block around a particle.

        Offset cells that hash to the same bucket are reported once, so a
        shared bucket is scanned only once per query.
        """
        keys = hash_cells(self._cells[particle_index] + NEIGHBOUR_OFFSETS, self.n_particles)
        return list(dict.fromkeys(keys.tolist()))

    def neighbours(self, particle_index: int) -> Iterator[int]:
        """
        Lazily enumerate candidate neighbours of ``particle_index``.

        Every particle whose cell lies in the 3×3 block around the query
        particle's cell is produced exactly once, together with any particle
        from a distinct cell that shares one of those buckets. The query
        particle itself is skipped.

        Parameters
        ----------
        particle_index : int
            Query particle.

        Yields
        ------
        neighbour_index : int
        """
        if not self._built or self.n_particles == 0:
            return

        keys = self._keys_list
        indices = self._indices_list
        n = self.n_particles

        for key in self.neighbour_keys(particle_index):
            for offset in range(self._starts_list[key], n):
                if keys[offset] != key:
                    break
                neighbour_index = indices[offset]
                if neighbour_index != particle_index:
                    yield neighbour_index

    def candidate_arrays(self, n_particles: Optional[int] = None) -> Tuple[NDArrayInt, NDArrayInt]:
        """
        Candidates of every particle, packed as (indices, offsets).

        Candidates of particle i are ``indices[offsets[i]:offsets[i + 1]]``,
        in the order ``neighbours(i)`` yields them. The arrays are gathered
        by a compiled walk over the sorted lookup and cached until the next
        ``build``.

        Parameters
        ----------
        n_particles : int, optional
            Expected index size; must match ``n_particles`` when given.

        Returns
        -------
        indices : NDArrayInt, shape (M,)
        offsets : NDArrayInt, shape (N + 1,)
        """
        if n_particles is not None and n_particles != self.n_particles:
            raise ValueError(
                f"index holds {self.n_particles} particles, {n_particles} requested"
            )

        if not self._built or self.n_particles == 0:
            return np.zeros(0, dtype=np.int64), np.zeros(self.n_particles + 1, dtype=np.int64)

        if self._candidates is None:
            self._candidates = _gather_candidates_numba(
                self._sorted_keys, self._sorted_indices, self._bucket_starts, self._cells
            )
        return self._candidates

    def bucket_range(self, key: int) -> Tuple[int, int]:
        """
        (start, count) of the run holding ``key`` in the sorted lookup.

        A key with no particles this step gives count 0.
        """
        start = int(self._bucket_starts[key])
        count = 0
        while start + count < self.n_particles and self._sorted_keys[start + count] == key:
            count += 1
        return start, count

    @property
    def lookup_keys(self) -> NDArrayInt:
        """Sorted hash keys of the lookup (read-only)."""
        view = self._sorted_keys.view()
        view.setflags(write=False)
        return view

    @property
    def lookup_indices(self) -> NDArrayInt:
        """Particle indices of the lookup, in key order (read-only)."""
        view = self._sorted_indices.view()
        view.setflags(write=False)
        return view

    @property
    def bucket_starts(self) -> NDArrayInt:
        """Bucket table; entries of absent keys are stale (read-only)."""
        view = self._bucket_starts.view()
        view.setflags(write=False)
        return view

    def __repr__(self) -> str:
        return f"SpatialHashIndex(n_particles={self.n_particles}, cell_size={self.cell_size})"


def find_neighbours_bruteforce(
    positions: NDArrayFloat,
    radius: float,
) -> List[npt.NDArray[np.int64]]:
    """
    Exact neighbour lists by pairwise distance, O(N²).

    Exact neighbour sets used to check the hash index.

    Parameters
    ----------
    positions : NDArrayFloat, shape (N, 2)
        Particle positions.
    radius : float
        Neighbours satisfy |x_i − x_j| < radius, j ≠ i.

    Returns
    -------
    neighbour_lists : List[np.ndarray]
        Sorted neighbour indices per particle.
    """
    pos64 = np.asarray(positions, dtype=np.float64)
    neighbour_lists = []
    for i in range(len(pos64)):
        distances = np.linalg.norm(pos64 - pos64[i], axis=1)
        mask = distances < radius
        mask[i] = False
        neighbour_lists.append(np.flatnonzero(mask).astype(np.int64))
    return neighbour_lists
