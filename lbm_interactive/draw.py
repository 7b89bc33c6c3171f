"""
Field Drawing

Maps the current lattice state to RGBA pixels with a matplotlib colormap.
"""

import numpy as np
from matplotlib.colors import LinearSegmentedColormap, Normalize

from .observables import lattice_fields, compute_velocity_magnitude, compute_vorticity

FIELD_RANGES = {
    "rho": (0.95, 2.0),
    "speed": (0.0, 0.2),
    "vorticity": (-0.05, 0.05),
}


def create_density_colormap():
    """Dark background with painted density rising through blue to white."""
    colors = [
        (0.02, 0.02, 0.08),  # Rest density
        (0.1, 0.3, 0.7),
        (0.4, 0.7, 1.0),
        (1.0, 1.0, 1.0),     # Freshly painted
    ]
    return LinearSegmentedColormap.from_list('density', colors, N=256)


def create_vorticity_colormap():
    """Create a custom colormap for vorticity (blue-white-red)."""
    colors = [
        (0.0, 0.2, 0.6),   # Dark blue (negative)
        (0.4, 0.6, 1.0),   # Light blue
        (1.0, 1.0, 1.0),   # White (zero)
        (1.0, 0.6, 0.4),   # Light red
        (0.6, 0.1, 0.1),   # Dark red (positive)
    ]
    return LinearSegmentedColormap.from_list('vorticity', colors, N=256)


class DrawPass:
    """
    Full-grid visualization of one lattice field.

    Parameters
    ----------
    device : Device
        Accelerator holding the lattice
    lattice : LatticeState
        Lattice whose current buffer is drawn
    field : str
        "rho", "speed" or "vorticity"
    vmin, vmax : float, optional
        Color range; defaults depend on the field
    surface : callable, optional
        Receives every drawn RGBA frame
    """

    def __init__(self, device, lattice, field="rho", vmin=None, vmax=None, surface=None):
        if field not in FIELD_RANGES:
            raise ValueError(f"field must be one of {tuple(FIELD_RANGES)}, got {field!r}")

        self.device = device
        self.lattice = lattice
        self.field = field
        self.surface = surface

        lo, hi = FIELD_RANGES[field]
        self.norm = Normalize(
            vmin=lo if vmin is None else vmin,
            vmax=hi if vmax is None else vmax,
            clip=True,
        )
        if field == "vorticity":
            self.cmap = create_vorticity_colormap()
        else:
            self.cmap = create_density_colormap()

        self.image = np.zeros((lattice.height, lattice.width, 4))

    def values(self, data):
        """Scalar field drawn from a host copy of the lattice buffer."""
        rho, ux, uy = lattice_fields(data)
        if self.field == "rho":
            return rho
        if self.field == "speed":
            return compute_velocity_magnitude(ux, uy)
        return compute_vorticity(ux, uy)

    def present(self):
        """Read the current buffer and map it to an RGBA image."""
        data = self.device.read_buffer(self.lattice.current)
        self.image = self.cmap(self.norm(self.values(data)))

        if self.surface is not None:
            self.surface(self.image)
        return self.image
