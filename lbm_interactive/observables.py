"""
Macroscopic Observable Extraction

Density, velocity, and derived quantities from lattice buffers.

In LBM, macroscopic quantities are moments of the distribution function:
    - Density (0th moment): rho = sum_i(f_i)
    - Momentum (1st moment): rho*u = sum_i(f_i * e_i)

The kernels also store rho, ux and uy alongside the distributions, so the
drawing pass can read them without recomputing moments.
"""

import numpy as np
from .lattice import EX, EY, Q, RHO, VX, VY


def lattice_fields(data):
    """
    Stored density and velocity of a lattice buffer.

    Parameters
    ----------
    data : ndarray
        Host copy of a lattice buffer, shape (CHANNELS, ny, nx)

    Returns
    -------
    rho, ux, uy : ndarray
        Fields of shape (ny, nx), float64
    """
    return (
        data[RHO].astype(np.float64),
        data[VX].astype(np.float64),
        data[VY].astype(np.float64),
    )


def compute_macroscopic(f):
    """
    Compute density and velocity from distribution functions.

    Parameters
    ----------
    f : ndarray
        Distribution functions, shape (Q, ny, nx) or a full lattice
        buffer (extra channels are ignored)

    Returns
    -------
    rho : ndarray
        Density field, shape (ny, nx)
    ux, uy : ndarray
        Velocity fields, shape (ny, nx)
    """
    f = np.asarray(f[:Q], dtype=np.float64)
    rho = np.sum(f, axis=0)

    rho_ux = np.tensordot(EX.astype(np.float64), f, axes=1)
    rho_uy = np.tensordot(EY.astype(np.float64), f, axes=1)

    # Avoid division by zero
    rho_safe = np.where(rho > 1e-10, rho, 1.0)

    return rho, rho_ux / rho_safe, rho_uy / rho_safe


def compute_total_mass(data):
    """Return total mass (conserved by collision and streaming)."""
    return float(np.sum(data[:Q], dtype=np.float64))


def compute_total_momentum(data):
    """Return total momentum (conserved for periodic boundaries)."""
    f = np.asarray(data[:Q], dtype=np.float64)
    mom_x = float(np.sum(f * EX[:, None, None]))
    mom_y = float(np.sum(f * EY[:, None, None]))
    return mom_x, mom_y


def compute_vorticity(ux, uy, dx=1.0):
    """
    Compute vorticity field using central differences.

    omega = du_y/dx - du_x/dy
    """
    duy_dx = (np.roll(uy, -1, axis=1) - np.roll(uy, 1, axis=1)) / (2.0 * dx)
    dux_dy = (np.roll(ux, -1, axis=0) - np.roll(ux, 1, axis=0)) / (2.0 * dx)

    return duy_dx - dux_dy


def compute_velocity_magnitude(ux, uy):
    """Compute velocity magnitude field |u| = sqrt(ux^2 + uy^2)."""
    return np.sqrt(ux**2 + uy**2)
