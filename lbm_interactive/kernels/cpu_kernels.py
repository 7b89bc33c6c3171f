"""
CPU Kernels

Numba-parallel implementations of the four kernel entry points. Every
kernel sweeps the whole grid, one logical thread per cell, over the
Structure of Arrays lattice buffer of shape (CHANNELS, ny, nx).

Entry points all take the parameter record first:
    collision(params, src, dst)
    streaming(params, src, dst)
    paint(params, lattice, field)
    velocity(params, lattice, stroke)
"""

import math

import numpy as np
from numba import njit, prange

from ..lattice import EX, EY, W, OPPOSITE, Q, RHO, VX, VY

# Largest speed the velocity kernel will leave in a cell (lattice units).
# Keeps the flow well below the lattice sound speed c_s = 0.577.
MAX_LATTICE_SPEED = 0.3

_EX = EX.astype(np.float64)
_EY = EY.astype(np.float64)


@njit(cache=True)
def cell_moments(lattice, j, i, ex, ey):
    """Density and velocity of one cell from its distributions."""
    rho = 0.0
    rho_ux = 0.0
    rho_uy = 0.0

    for k in range(9):
        f_k = lattice[k, j, i]
        rho += f_k
        rho_ux += f_k * ex[k]
        rho_uy += f_k * ey[k]

    if rho > 1e-10:
        return rho, rho_ux / rho, rho_uy / rho
    return rho, 0.0, 0.0


@njit(parallel=True, cache=True)
def collide_numba(src, dst, omega, ex, ey, w):
    """
    BGK collision toward the local equilibrium.

    f_out = f - omega * (f - f_eq), written to dst together with the
    pre-collision density and velocity.
    """
    q, ny, nx = Q, src.shape[1], src.shape[2]

    for j in prange(ny):
        for i in range(nx):
            rho, ux, uy = cell_moments(src, j, i, ex, ey)
            u_sq = ux * ux + uy * uy

            for k in range(q):
                eu = ex[k] * ux + ey[k] * uy
                f_eq = w[k] * rho * (1.0 + 3.0 * eu + 4.5 * eu * eu - 1.5 * u_sq)
                dst[k, j, i] = src[k, j, i] - omega * (src[k, j, i] - f_eq)

            dst[RHO, j, i] = rho
            dst[VX, j, i] = ux
            dst[VY, j, i] = uy


@njit(parallel=True, cache=True)
def stream_periodic_numba(src, dst, ex, ey):
    """
    Streaming with periodic boundaries (pull scheme).

    dst[k, j, i] = src[k, j - ey, i - ex], wrapped around the grid.
    """
    q, ny, nx = Q, src.shape[1], src.shape[2]

    for j in prange(ny):
        for i in range(nx):
            rho = 0.0
            rho_ux = 0.0
            rho_uy = 0.0

            for k in range(q):
                i_src = (i - int(ex[k]) + nx) % nx
                j_src = (j - int(ey[k]) + ny) % ny

                f_k = src[k, j_src, i_src]
                dst[k, j, i] = f_k
                rho += f_k
                rho_ux += f_k * ex[k]
                rho_uy += f_k * ey[k]

            dst[RHO, j, i] = rho
            if rho > 1e-10:
                dst[VX, j, i] = rho_ux / rho
                dst[VY, j, i] = rho_uy / rho
            else:
                dst[VX, j, i] = 0.0
                dst[VY, j, i] = 0.0


@njit(parallel=True, cache=True)
def stream_bounce_back_numba(src, dst, ex, ey, opposite):
    """
    Streaming with halfway bounce-back walls on all four domain edges.

    A population whose upstream neighbour lies outside the grid is
    replaced by the opposite population leaving the same cell.
    """
    q, ny, nx = Q, src.shape[1], src.shape[2]

    for j in prange(ny):
        for i in range(nx):
            rho = 0.0
            rho_ux = 0.0
            rho_uy = 0.0

            for k in range(q):
                i_src = i - int(ex[k])
                j_src = j - int(ey[k])

                if i_src >= 0 and i_src < nx and j_src >= 0 and j_src < ny:
                    f_k = src[k, j_src, i_src]
                else:
                    f_k = src[opposite[k], j, i]

                dst[k, j, i] = f_k
                rho += f_k
                rho_ux += f_k * ex[k]
                rho_uy += f_k * ey[k]

            dst[RHO, j, i] = rho
            if rho > 1e-10:
                dst[VX, j, i] = rho_ux / rho
                dst[VY, j, i] = rho_uy / rho
            else:
                dst[VX, j, i] = 0.0
                dst[VY, j, i] = 0.0


@njit(parallel=True, cache=True)
def paint_numba(lattice, field, ex, ey, w):
    """
    Fold painted density into the lattice.

    Cells with a positive field value are reset to the equilibrium at
    density 1 + value with their current velocity; the consumed field
    entry is zeroed.
    """
    q, ny, nx = Q, lattice.shape[1], lattice.shape[2]

    for j in prange(ny):
        for i in range(nx):
            value = field[j, i]
            if value > 0.0:
                _, ux, uy = cell_moments(lattice, j, i, ex, ey)
                rho = 1.0 + value
                u_sq = ux * ux + uy * uy

                for k in range(q):
                    eu = ex[k] * ux + ey[k] * uy
                    lattice[k, j, i] = w[k] * rho * (
                        1.0 + 3.0 * eu + 4.5 * eu * eu - 1.5 * u_sq
                    )

                lattice[RHO, j, i] = rho
                lattice[VX, j, i] = ux
                lattice[VY, j, i] = uy
                field[j, i] = 0.0


@njit(parallel=True, cache=True)
def velocity_numba(lattice, sx, sy, dx, dy, strength, radius, max_speed, ex, ey, w):
    """
    Add momentum along a stroke segment.

    Cells within `radius` of the segment (sx, sy) -> (sx + dx, sy + dy)
    get strength * (1 - d / radius) added along the unit stroke
    direction. The distributions are shifted by f_eq(u_new) - f_eq(u_old)
    so the non-equilibrium part of each cell is kept.
    """
    q, ny, nx = Q, lattice.shape[1], lattice.shape[2]
    length_sq = dx * dx + dy * dy
    length = math.sqrt(length_sq)
    dir_x = dx / length
    dir_y = dy / length

    for j in prange(ny):
        for i in range(nx):
            # Closest point of the segment to the cell
            t = ((i - sx) * dx + (j - sy) * dy) / length_sq
            t = min(max(t, 0.0), 1.0)
            px = sx + t * dx - i
            py = sy + t * dy - j
            dist = math.sqrt(px * px + py * py)

            if dist < radius:
                rho, ux_old, uy_old = cell_moments(lattice, j, i, ex, ey)
                weight = strength * (1.0 - dist / radius)
                ux_new = ux_old + weight * dir_x
                uy_new = uy_old + weight * dir_y

                speed = math.sqrt(ux_new * ux_new + uy_new * uy_new)
                if speed > max_speed:
                    ux_new *= max_speed / speed
                    uy_new *= max_speed / speed

                u_sq_old = ux_old * ux_old + uy_old * uy_old
                u_sq_new = ux_new * ux_new + uy_new * uy_new

                for k in range(q):
                    eu_old = ex[k] * ux_old + ey[k] * uy_old
                    eu_new = ex[k] * ux_new + ey[k] * uy_new
                    f_old = w[k] * rho * (1.0 + 3.0 * eu_old + 4.5 * eu_old * eu_old - 1.5 * u_sq_old)
                    f_new = w[k] * rho * (1.0 + 3.0 * eu_new + 4.5 * eu_new * eu_new - 1.5 * u_sq_new)
                    lattice[k, j, i] += f_new - f_old

                lattice[RHO, j, i] = rho
                lattice[VX, j, i] = ux_new
                lattice[VY, j, i] = uy_new


# =============================================================================
# Entry points
# =============================================================================

def collision(params, src, dst):
    """Collision entry point: reads src, writes dst."""
    omega = float(params["omega"][0])
    collide_numba(src, dst, omega, _EX, _EY, W)


def streaming_periodic(params, src, dst):
    """Streaming entry point with periodic boundaries."""
    stream_periodic_numba(src, dst, _EX, _EY)


def streaming_bounce_back(params, src, dst):
    """Streaming entry point with bounce-back walls."""
    stream_bounce_back_numba(src, dst, _EX, _EY, OPPOSITE)


def paint(params, lattice, field):
    """Paint entry point: folds and consumes the injection field."""
    paint_numba(lattice, field, _EX, _EY, W)


def velocity(params, lattice, stroke):
    """Velocity entry point: applies one stroke record."""
    sx, sy, ex_, ey_, strength, radius = (float(v) for v in stroke)
    dx = ex_ - sx
    dy = ey_ - sy

    # A cleared or degenerate stroke carries no direction
    if strength <= 0.0 or radius <= 0.0 or dx * dx + dy * dy == 0.0:
        return

    velocity_numba(
        lattice, sx, sy, dx, dy, strength, radius, MAX_LATTICE_SPEED, _EX, _EY, W
    )


STREAMING = {
    "periodic": streaming_periodic,
    "bounce_back": streaming_bounce_back,
}


def build_entry_points(boundary):
    """Entry point table for the given streaming boundary policy."""
    return {
        "collision": collision,
        "streaming": STREAMING[boundary],
        "paint": paint,
        "velocity": velocity,
    }
