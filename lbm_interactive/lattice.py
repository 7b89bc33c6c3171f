"""
D2Q9 Lattice Constants and Buffer Layout

Defines the D2Q9 lattice model and the per-cell channel layout of the
lattice buffers shared by every kernel.
"""
import numpy as np

# D2Q9 lattice velocities
#     6   2   5
#       \ | /
#     3 - 0 - 1
#       / | \
#     7   4   8
#
# Row index j grows with the pointer y coordinate, so "north" (EY = +1)
# points toward larger rows.

# Lattice velocity components
EX = np.array([0, 1, 0, -1, 0, 1, -1, -1, 1], dtype=np.int32)
EY = np.array([0, 0, 1, 0, -1, 1, 1, -1, -1], dtype=np.int32)

# Lattice weights
W = np.array([4/9, 1/9, 1/9, 1/9, 1/9, 1/36, 1/36, 1/36, 1/36], dtype=np.float64)

# Opposite direction indices (for bounce-back)
OPPOSITE = np.array([0, 3, 4, 1, 2, 7, 8, 5, 6], dtype=np.int32)

# Lattice sound speed squared
CS2 = 1.0 / 3.0
CS4 = CS2 * CS2

# Number of lattice velocities
Q = 9

# Structure of Arrays channel layout: f0..f8, rho, vx, vy
RHO = 9
VX = 10
VY = 11
CHANNELS = 12

# Storage precision of every accelerator-visible buffer
DTYPE = np.float32


def lattice_shape(width, height):
    """Shape of one lattice buffer for a width x height grid."""
    return (CHANNELS, height, width)
