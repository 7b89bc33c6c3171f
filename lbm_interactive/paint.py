"""
Density Injection

Rasterizes filled circles of a target value into the lattice's
user-input field. The paint kernel folds nonzero entries of the field
into the current lattice buffer on the next frame.
"""

import math

import numpy as np

from .device import workgroups_for
from .lattice import DTYPE

PAINT_RADIUS = 20.5
PAINT_VALUE = 1.0


def circle_cells(x, y, radius, width, height):
    """
    Grid cells whose centre lies within `radius` of (x, y).

    Uses squared distances, inclusive of the rim, and clamps to the grid.

    Parameters
    ----------
    x, y : float
        Circle centre in grid units (x = column, y = row)
    radius : float
        Circle radius in grid units
    width, height : int
        Grid dimensions

    Returns
    -------
    rows, cols : ndarray
        Row and column indices of the covered cells
    """
    empty = np.array([], dtype=np.intp)
    if radius < 0:
        return empty, empty

    i_min = max(math.floor(x - radius), 0)
    i_max = min(math.ceil(x + radius), width - 1)
    j_min = max(math.floor(y - radius), 0)
    j_max = min(math.ceil(y + radius), height - 1)

    if i_min > i_max or j_min > j_max:
        return empty, empty

    cols = np.arange(i_min, i_max + 1)
    rows = np.arange(j_min, j_max + 1)
    dist_sq = (cols[None, :] - x) ** 2 + (rows[:, None] - y) ** 2

    jj, ii = np.nonzero(dist_sq <= radius * radius)
    return rows[jj], cols[ii]


class DensityInjector:
    """
    Paints density into the lattice.

    The host keeps the whole injection field and re-uploads all of it on
    every paint() call, so the cost of a paint is bounded by the grid size
    rather than the brush size. The field is not cleared between paints:
    earlier circles stay in it and are uploaded again with later ones.

    Parameters
    ----------
    device : Device
        Accelerator owning the field buffer
    kernels : KernelSet
        Kernel collaborator providing "paint"
    params : ParameterState
        Shared simulation parameters
    lattice : LatticeState
        Double-buffered lattice (paints into the current buffer)
    """

    def __init__(self, device, kernels, params, lattice):
        self.device = device
        self.width = lattice.width
        self.height = lattice.height

        self.field = np.zeros((self.height, self.width), dtype=DTYPE)
        self.buffer = device.create_buffer(self.field.shape, DTYPE, label="user_input")

        self.pipeline = device.create_compute_pipeline(kernels, "paint")
        self.bind_group = device.create_bind_group(
            params.buffer, lattice.current, self.buffer, label="paint"
        )
        self.workgroups = workgroups_for(self.width, self.height)
        self.paint_count = 0

    def paint(self, x, y, radius=PAINT_RADIUS, value=PAINT_VALUE):
        """
        Write `value` into every cell of the circle and upload the field.

        Returns
        -------
        n_cells : int
            Number of cells written
        """
        rows, cols = circle_cells(x, y, radius, self.width, self.height)
        self.field[rows, cols] = value
        self.device.queue.write_buffer(self.buffer, self.field)
        self.paint_count += 1
        return len(rows)

    def run(self, encoder, dt):
        encoder.dispatch(self.pipeline, self.bind_group, self.workgroups)

    def clear(self):
        """Zero the injection field on the host and the device."""
        self.field[...] = 0.0
        self.device.queue.write_buffer(self.buffer, self.field)
