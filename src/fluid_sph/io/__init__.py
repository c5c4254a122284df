"""
I/O module: packed particle buffers and step-boundary snapshots.
"""

from fluid_sph.io.particle_buffer import (
    ParticleBufferWriter,
    pack_particle_buffer,
    unpack_particle_buffer,
    particle_buffer_dtype,
    particle_buffer_size,
    HEADER_SIZE,
)
from fluid_sph.io.snapshot import ParticleSnapshot, SnapshotExchange

__all__ = [
    'ParticleBufferWriter',
    'pack_particle_buffer',
    'unpack_particle_buffer',
    'particle_buffer_dtype',
    'particle_buffer_size',
    'HEADER_SIZE',
    'ParticleSnapshot',
    'SnapshotExchange',
]
