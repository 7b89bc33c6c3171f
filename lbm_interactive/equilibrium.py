"""
Equilibrium Distribution Functions

Maxwell-Boltzmann equilibrium for the D2Q9 lattice, and the equilibrium
state every lattice buffer starts from.

The equilibrium distribution is derived from the Maxwell-Boltzmann distribution
truncated to second order in velocity. For the D2Q9 lattice:

    f_i^eq = w_i * rho * [1 + (e_i · u)/c_s^2 + (e_i · u)^2/(2*c_s^4) - u^2/(2*c_s^2)]

where:
    - w_i are the lattice weights
    - e_i are the lattice velocities
    - c_s^2 = 1/3 is the lattice sound speed squared
    - rho is the density
    - u = (ux, uy) is the macroscopic velocity

At rest (rho = 1, u = 0) this reduces to f_i = w_i.
"""

import numpy as np
from .lattice import EX, EY, W, CS2, CS4, Q, RHO, VX, VY, DTYPE, lattice_shape


def compute_equilibrium(rho, ux, uy):
    """
    Compute equilibrium distribution for all lattice sites.
    
    Parameters
    ----------
    rho : ndarray
        Density field, shape (ny, nx)
    ux : ndarray
        X-velocity field, shape (ny, nx)
    uy : ndarray
        Y-velocity field, shape (ny, nx)
    
    Returns
    -------
    f_eq : ndarray
        Equilibrium distribution, shape (Q, ny, nx)
    """
    rho = np.asarray(rho, dtype=np.float64)
    ny, nx = rho.shape
    f_eq = np.zeros((Q, ny, nx), dtype=np.float64)
    
    u_sq = ux * ux + uy * uy
    
    for i in range(Q):
        eu = EX[i] * ux + EY[i] * uy
        f_eq[i] = W[i] * rho * (
            1.0 
            + eu / CS2 
            + (eu * eu) / (2.0 * CS4) 
            - u_sq / (2.0 * CS2)
        )
    
    return f_eq


def equilibrium_single_site(rho, ux, uy):
    """
    Compute equilibrium distribution for a single lattice site.
    
    Parameters
    ----------
    rho : float
        Density at the site
    ux : float
        X-velocity at the site
    uy : float
        Y-velocity at the site
    
    Returns
    -------
    f_eq : ndarray
        Equilibrium distribution, shape (Q,)
    """
    f_eq = np.zeros(Q, dtype=np.float64)
    u_sq = ux * ux + uy * uy
    
    for i in range(Q):
        eu = EX[i] * ux + EY[i] * uy
        f_eq[i] = W[i] * rho * (
            1.0 
            + eu / CS2 
            + (eu * eu) / (2.0 * CS4) 
            - u_sq / (2.0 * CS2)
        )
    
    return f_eq


def initial_lattice(width, height, rho=1.0, ux=0.0, uy=0.0):
    """
    Build a lattice buffer filled with a uniform equilibrium state.
    
    With the defaults every cell holds the D2Q9 weights, rho = 1 and
    zero velocity, which is the state a session starts from and
    returns to on reset.
    
    Parameters
    ----------
    width, height : int
        Grid dimensions
    rho : float
        Uniform density
    ux, uy : float
        Uniform velocity
    
    Returns
    -------
    data : ndarray
        Lattice buffer, shape (CHANNELS, height, width), float32
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"grid must be at least 1 x 1, got {width} x {height}")

    data = np.empty(lattice_shape(width, height), dtype=DTYPE)
    f_eq = equilibrium_single_site(rho, ux, uy)
    
    data[:Q] = f_eq[:, None, None]
    data[RHO] = rho
    data[VX] = ux
    data[VY] = uy
    
    return data
