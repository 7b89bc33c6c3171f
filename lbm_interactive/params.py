"""
Simulation Parameters

Elapsed time, viscosity and the BGK relaxation coefficient, published to
every kernel through one parameter buffer of six 4-byte slots:

    [width:u32, height:u32, time:f32, omega:f32, viscosity:f32, reserved:f32]

The relaxation time follows from the kinematic viscosity:

    tau = nu / (c_s^2 * dt) + 0.5 = 3 * nu + 0.5,    omega = 1 / tau

Stability requires tau > 0.5 (nu > 0), i.e. omega < 2.
"""

import math
import warnings
from collections import namedtuple

import numpy as np

PARAMS_DTYPE = np.dtype([
    ("width", np.uint32),
    ("height", np.uint32),
    ("time", np.float32),
    ("omega", np.float32),
    ("viscosity", np.float32),
    ("reserved", np.float32),
])

DEFAULT_VISCOSITY = 0.1

# Below this viscosity omega is within ~3% of the stability limit
MIN_STABLE_VISCOSITY = 0.005

SimParams = namedtuple("SimParams", ["width", "height", "time", "omega", "viscosity"])


def tau_from_viscosity(nu, dt=1.0, cs2=1.0/3.0):
    """
    Compute relaxation time from kinematic viscosity.

    tau = nu / (c_s^2 * dt) + 0.5
    """
    return nu / (cs2 * dt) + 0.5


def omega_from_viscosity(nu, dt=1.0, cs2=1.0/3.0):
    """
    Compute the BGK relaxation coefficient from kinematic viscosity.

    omega = 1 / (3 * nu + 0.5) for D2Q9 in lattice units.

    Parameters
    ----------
    nu : float
        Kinematic viscosity
    dt : float
        Time step (default 1.0 in lattice units)
    cs2 : float
        Sound speed squared (default 1/3)

    Returns
    -------
    omega : float
        Relaxation frequency
    """
    return 1.0 / tau_from_viscosity(nu, dt, cs2)


def viscosity_from_omega(omega, dt=1.0, cs2=1.0/3.0):
    """
    Compute kinematic viscosity from the relaxation coefficient.

    nu = c_s^2 * (1/omega - 0.5) * dt
    """
    if not 0.0 < omega < 2.0:
        raise ValueError(f"omega must be in (0, 2) for stability, got {omega}")
    return cs2 * (1.0 / omega - 0.5) * dt


def validate_viscosity(nu):
    """
    Validate that a viscosity gives a stable relaxation coefficient.

    Raises
    ------
    ValueError
        If nu is not finite or nu <= 0

    Returns
    -------
    nu : float
        Validated viscosity
    """
    nu = float(nu)
    if not math.isfinite(nu) or nu <= 0.0:
        raise ValueError(
            f"viscosity must be > 0 for stability (got {nu}). "
            f"This corresponds to omega < 2."
        )
    if nu < MIN_STABLE_VISCOSITY:
        warnings.warn(
            f"viscosity = {nu} gives omega = {omega_from_viscosity(nu):.4f}, "
            f"close to the stability limit 2."
        )
    return nu


def pack_params(params):
    """Pack SimParams into the accelerator-visible record layout."""
    record = np.zeros(1, dtype=PARAMS_DTYPE)
    record["width"] = params.width
    record["height"] = params.height
    record["time"] = params.time
    record["omega"] = params.omega
    record["viscosity"] = params.viscosity
    return record


def unpack_params(record):
    """Read SimParams back from a packed record."""
    return SimParams(
        int(record["width"][0]),
        int(record["height"][0]),
        float(record["time"][0]),
        float(record["omega"][0]),
        float(record["viscosity"][0]),
    )


class ParameterState:
    """
    Single writer of the shared parameter buffer.

    Every kernel reads the buffer; only advance() writes it, once per
    frame, so no reader ever holds values older than the current frame.

    Parameters
    ----------
    device : Device
        Accelerator owning the parameter buffer
    width, height : int
        Grid dimensions
    viscosity : float
        Initial kinematic viscosity
    """

    def __init__(self, device, width, height, viscosity=DEFAULT_VISCOSITY):
        self.device = device
        self.width = width
        self.height = height
        self.viscosity = validate_viscosity(viscosity)
        self.time_elapsed = 0.0

        self.buffer = device.create_buffer((1,), PARAMS_DTYPE, label="sim_params")
        self._params = SimParams(
            width, height, 0.0, omega_from_viscosity(self.viscosity), self.viscosity
        )
        device.queue.write_buffer(self.buffer, pack_params(self._params))

    @property
    def params(self):
        """The most recently published SimParams."""
        return self._params

    @property
    def omega(self):
        return self._params.omega

    def set_viscosity(self, value):
        """Store a new viscosity; it is published by the next advance()."""
        self.viscosity = validate_viscosity(value)

    def advance(self, dt):
        """
        Accumulate time, recompute omega and publish the parameter record.

        Parameters
        ----------
        dt : float
            Frame time step in seconds

        Returns
        -------
        params : SimParams
            The published record
        """
        self.time_elapsed += dt
        omega = omega_from_viscosity(self.viscosity)

        self._params = SimParams(
            self.width, self.height, self.time_elapsed, omega, self.viscosity
        )
        self.device.queue.write_buffer(self.buffer, pack_params(self._params))
        return self._params

    def run(self, encoder, dt):
        self.advance(dt)

    def reset(self):
        """Zero elapsed time (published with the next advance)."""
        self.time_elapsed = 0.0
