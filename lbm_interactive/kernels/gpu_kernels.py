"""
GPU Kernels

CUDA implementations of the four kernel entry points using Numba.

2D thread indexing: x covers columns (i), y covers rows (j). Lattice
constants are resolved by small device functions since Numba has no
direct __constant__ memory support.
"""

import math

from numba import cuda

from ..lattice import RHO, VX, VY
from .cpu_kernels import MAX_LATTICE_SPEED


@cuda.jit(device=True)
def get_weight(i):
    """Get lattice weight for direction i."""
    if i == 0:
        return 4.0 / 9.0
    elif i < 5:
        return 1.0 / 9.0
    else:
        return 1.0 / 36.0


@cuda.jit(device=True)
def get_ex(i):
    """Get x-component of lattice velocity."""
    # EX = [0, 1, 0, -1, 0, 1, -1, -1, 1]
    if i == 0 or i == 2 or i == 4:
        return 0
    elif i == 1 or i == 5 or i == 8:
        return 1
    else:
        return -1


@cuda.jit(device=True)
def get_ey(i):
    """Get y-component of lattice velocity."""
    # EY = [0, 0, 1, 0, -1, 1, 1, -1, -1]
    if i == 0 or i == 1 or i == 3:
        return 0
    elif i == 2 or i == 5 or i == 6:
        return 1
    else:
        return -1


@cuda.jit(device=True)
def get_opposite(i):
    """Get opposite direction index."""
    # OPPOSITE = [0, 3, 4, 1, 2, 7, 8, 5, 6]
    if i == 0:
        return 0
    elif i < 3:
        return i + 2
    elif i < 5:
        return i - 2
    elif i < 7:
        return i + 2
    else:
        return i - 2


@cuda.jit(device=True)
def equilibrium(k, rho, ux, uy):
    """Second-order D2Q9 equilibrium for direction k."""
    eu = get_ex(k) * ux + get_ey(k) * uy
    u_sq = ux * ux + uy * uy
    return get_weight(k) * rho * (1.0 + 3.0 * eu + 4.5 * eu * eu - 1.5 * u_sq)


@cuda.jit(device=True)
def store_moments(lattice, j, i, rho, rho_ux, rho_uy):
    """Write density and velocity of one cell from its summed moments."""
    lattice[RHO, j, i] = rho
    if rho > 1e-10:
        lattice[VX, j, i] = rho_ux / rho
        lattice[VY, j, i] = rho_uy / rho
    else:
        lattice[VX, j, i] = 0.0
        lattice[VY, j, i] = 0.0


@cuda.jit
def collision_kernel(params, src, dst):
    """BGK collision: reads src, writes post-collision values to dst."""
    i, j = cuda.grid(2)
    nx = src.shape[2]
    ny = src.shape[1]

    if i < nx and j < ny:
        omega = params[0].omega

        rho = 0.0
        rho_ux = 0.0
        rho_uy = 0.0
        for k in range(9):
            f_k = src[k, j, i]
            rho += f_k
            rho_ux += f_k * get_ex(k)
            rho_uy += f_k * get_ey(k)

        if rho > 1e-10:
            ux = rho_ux / rho
            uy = rho_uy / rho
        else:
            ux = 0.0
            uy = 0.0

        for k in range(9):
            f_k = src[k, j, i]
            dst[k, j, i] = f_k - omega * (f_k - equilibrium(k, rho, ux, uy))

        dst[RHO, j, i] = rho
        dst[VX, j, i] = ux
        dst[VY, j, i] = uy


@cuda.jit
def streaming_periodic_kernel(params, src, dst):
    """Streaming with periodic boundaries (pull scheme)."""
    i, j = cuda.grid(2)
    nx = src.shape[2]
    ny = src.shape[1]

    if i < nx and j < ny:
        rho = 0.0
        rho_ux = 0.0
        rho_uy = 0.0

        for k in range(9):
            ex = get_ex(k)
            ey = get_ey(k)

            i_src = (i - ex + nx) % nx
            j_src = (j - ey + ny) % ny

            f_k = src[k, j_src, i_src]
            dst[k, j, i] = f_k
            rho += f_k
            rho_ux += f_k * ex
            rho_uy += f_k * ey

        store_moments(dst, j, i, rho, rho_ux, rho_uy)


@cuda.jit
def streaming_bounce_back_kernel(params, src, dst):
    """Streaming with halfway bounce-back walls on the domain edges."""
    i, j = cuda.grid(2)
    nx = src.shape[2]
    ny = src.shape[1]

    if i < nx and j < ny:
        rho = 0.0
        rho_ux = 0.0
        rho_uy = 0.0

        for k in range(9):
            ex = get_ex(k)
            ey = get_ey(k)

            i_src = i - ex
            j_src = j - ey

            if i_src >= 0 and i_src < nx and j_src >= 0 and j_src < ny:
                f_k = src[k, j_src, i_src]
            else:
                f_k = src[get_opposite(k), j, i]

            dst[k, j, i] = f_k
            rho += f_k
            rho_ux += f_k * ex
            rho_uy += f_k * ey

        store_moments(dst, j, i, rho, rho_ux, rho_uy)


@cuda.jit
def paint_kernel(params, lattice, field):
    """Reset painted cells to equilibrium at density 1 + value."""
    i, j = cuda.grid(2)
    nx = lattice.shape[2]
    ny = lattice.shape[1]

    if i < nx and j < ny:
        value = field[j, i]
        if value > 0.0:
            rho_old = 0.0
            rho_ux = 0.0
            rho_uy = 0.0
            for k in range(9):
                f_k = lattice[k, j, i]
                rho_old += f_k
                rho_ux += f_k * get_ex(k)
                rho_uy += f_k * get_ey(k)

            ux = 0.0
            uy = 0.0
            if rho_old > 1e-10:
                ux = rho_ux / rho_old
                uy = rho_uy / rho_old

            rho = 1.0 + value
            for k in range(9):
                lattice[k, j, i] = equilibrium(k, rho, ux, uy)

            lattice[RHO, j, i] = rho
            lattice[VX, j, i] = ux
            lattice[VY, j, i] = uy
            field[j, i] = 0.0


@cuda.jit
def velocity_kernel(params, lattice, stroke):
    """Add momentum to cells within the stroke radius of its segment."""
    i, j = cuda.grid(2)
    nx = lattice.shape[2]
    ny = lattice.shape[1]

    if i < nx and j < ny:
        sx = stroke[0]
        sy = stroke[1]
        dx = stroke[2] - sx
        dy = stroke[3] - sy
        strength = stroke[4]
        radius = stroke[5]
        length_sq = dx * dx + dy * dy

        if strength <= 0.0 or radius <= 0.0 or length_sq == 0.0:
            return

        length = math.sqrt(length_sq)
        t = ((i - sx) * dx + (j - sy) * dy) / length_sq
        t = min(max(t, 0.0), 1.0)
        px = sx + t * dx - i
        py = sy + t * dy - j
        dist = math.sqrt(px * px + py * py)

        if dist < radius:
            rho = 0.0
            rho_ux = 0.0
            rho_uy = 0.0
            for k in range(9):
                f_k = lattice[k, j, i]
                rho += f_k
                rho_ux += f_k * get_ex(k)
                rho_uy += f_k * get_ey(k)

            ux_old = 0.0
            uy_old = 0.0
            if rho > 1e-10:
                ux_old = rho_ux / rho
                uy_old = rho_uy / rho

            weight = strength * (1.0 - dist / radius)
            ux_new = ux_old + weight * dx / length
            uy_new = uy_old + weight * dy / length

            speed = math.sqrt(ux_new * ux_new + uy_new * uy_new)
            if speed > MAX_LATTICE_SPEED:
                ux_new = ux_new * MAX_LATTICE_SPEED / speed
                uy_new = uy_new * MAX_LATTICE_SPEED / speed

            for k in range(9):
                lattice[k, j, i] += (
                    equilibrium(k, rho, ux_new, uy_new)
                    - equilibrium(k, rho, ux_old, uy_old)
                )

            lattice[RHO, j, i] = rho
            lattice[VX, j, i] = ux_new
            lattice[VY, j, i] = uy_new


STREAMING = {
    "periodic": streaming_periodic_kernel,
    "bounce_back": streaming_bounce_back_kernel,
}


def build_entry_points(boundary):
    """Entry point table for the given streaming boundary policy."""
    return {
        "collision": collision_kernel,
        "streaming": STREAMING[boundary],
        "paint": paint_kernel,
        "velocity": velocity_kernel,
    }
