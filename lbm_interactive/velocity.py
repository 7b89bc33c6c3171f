"""
Velocity Injection

Turns pointer drags into one-shot momentum strokes.

Pointer samples overwrite a single slot; at most one stroke is applied per
frame, spanning from the previous anchor to the latest sample:

    strength = min(distance * STRENGTH_GAIN, MAX_STRENGTH)

Drags shorter than MOTION_THRESHOLD grid units apply nothing. The stroke
record is cleared on the device right after its dispatch, so it is never
applied twice.
"""

import math
from collections import namedtuple

import numpy as np

from .device import workgroups_for
from .lattice import DTYPE

MOTION_THRESHOLD = 1.0
STRENGTH_GAIN = 0.005
MAX_STRENGTH = 0.6
STROKE_RADIUS = 50.0


class VelocityStroke(namedtuple("VelocityStroke", [
        "start_x", "start_y", "end_x", "end_y", "strength", "radius"])):
    """One momentum stroke, laid out as the six-float device record."""

    __slots__ = ()

    @property
    def length(self):
        return math.hypot(self.end_x - self.start_x, self.end_y - self.start_y)

    def as_array(self):
        return np.array(self, dtype=DTYPE)


def stroke_strength(distance):
    """Linear response to drag length, capped to keep the flow stable."""
    return min(distance * STRENGTH_GAIN, MAX_STRENGTH)


class VelocityInjector:
    """
    Applies pointer strokes to the current lattice buffer.

    Parameters
    ----------
    device : Device
        Accelerator owning the stroke buffer
    kernels : KernelSet
        Kernel collaborator providing "velocity"
    params : ParameterState
        Shared simulation parameters
    lattice : LatticeState
        Double-buffered lattice
    radius : float
        Width of the stroke in grid units
    """

    def __init__(self, device, kernels, params, lattice, radius=STROKE_RADIUS):
        self.device = device
        self.radius = radius

        self.stroke_buffer = device.create_buffer((6,), DTYPE, label="velocity_input")
        self.pipeline = device.create_compute_pipeline(kernels, "velocity")
        self.bind_group = device.create_bind_group(
            params.buffer, lattice.current, self.stroke_buffer, label="velocity"
        )
        self.workgroups = workgroups_for(lattice.width, lattice.height)

        self.last_position = None
        self.current_position = None
        self.last_stroke = None
        self.stroke_count = 0

    def record_pointer(self, x, y):
        """
        Store the latest pointer position.

        Later samples overwrite earlier ones. Without an anchor yet, the
        sample being overwritten becomes the anchor.
        """
        if self.last_position is None and self.current_position is not None:
            self.last_position = self.current_position
        self.current_position = (float(x), float(y))

    def run(self, encoder, dt):
        """
        Record the velocity dispatch if the pointer moved far enough.

        Returns
        -------
        stroke : VelocityStroke or None
            The applied stroke, or None when the dispatch was skipped
        """
        last = self.last_position
        current = self.current_position
        self.last_position = current
        self.current_position = None

        if last is None or current is None:
            return None

        distance = math.hypot(current[0] - last[0], current[1] - last[1])
        if distance < MOTION_THRESHOLD:
            return None

        stroke = VelocityStroke(
            last[0], last[1], current[0], current[1],
            stroke_strength(distance), self.radius,
        )
        self.device.queue.write_buffer(self.stroke_buffer, stroke.as_array())

        encoder.dispatch(self.pipeline, self.bind_group, self.workgroups)
        encoder.clear_buffer(self.stroke_buffer)

        self.last_stroke = stroke
        self.stroke_count += 1
        return stroke

    def reset(self):
        """Forget pointer history."""
        self.last_position = None
        self.current_position = None
