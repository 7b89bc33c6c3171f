"""
LBM Stepper

Double-buffered collision + streaming on the accelerator.

The lattice owns two congruent buffers, A and B. Each step records two
dispatches into the frame's command encoder:

    1. collision:  reads A, writes B
    2. streaming:  reads B, writes A

so after the step A again holds the newest state, ready to be drawn and
to feed the next step. The role swap happens through the two bind groups
built once at construction; buffers are never copied or reallocated.
"""

from .device import workgroups_for
from .equilibrium import initial_lattice
from .lattice import DTYPE, lattice_shape


class LatticeState:
    """
    Owner of the two lattice buffers.

    Other components reference the buffers by role ("current" or "next")
    and only mutate them through kernel dispatches or reset().

    Parameters
    ----------
    device : Device
        Accelerator owning the buffers
    width, height : int
        Grid dimensions
    """

    ROLES = ("A", "B")

    def __init__(self, device, width, height):
        self.device = device
        self.width = width
        self.height = height
        self.initial_data = initial_lattice(width, height)

        self.buffers = {
            role: device.create_buffer(
                lattice_shape(width, height), DTYPE, label=f"lattice_{role}"
            )
            for role in self.ROLES
        }
        self.reset()

    @property
    def current(self):
        """Buffer holding the latest completed step."""
        return self.buffers["A"]

    @property
    def next(self):
        """Buffer written by collision within a step."""
        return self.buffers["B"]

    def reset(self):
        """Upload the rest-state equilibrium to both buffers."""
        for buffer in self.buffers.values():
            self.device.queue.write_buffer(buffer, self.initial_data)

    def read(self, role="A"):
        """Copy one buffer back to the host."""
        return self.device.read_buffer(self.buffers[role])


class LBMStepper:
    """
    Records one LBM timestep per frame.

    Parameters
    ----------
    device : Device
        Accelerator running the kernels
    kernels : KernelSet
        Kernel collaborator providing "collision" and "streaming"
    params : ParameterState
        Shared simulation parameters
    lattice : LatticeState
        Double-buffered lattice
    """

    def __init__(self, device, kernels, params, lattice):
        self.device = device
        self.params = params
        self.lattice = lattice
        self.boundary = kernels.boundary

        self.collision_pipeline = device.create_compute_pipeline(kernels, "collision")
        self.streaming_pipeline = device.create_compute_pipeline(kernels, "streaming")

        # Built once; stepping only repeats the dispatches
        self.collision_group = device.create_bind_group(
            params.buffer, lattice.current, lattice.next, label="collision"
        )
        self.streaming_group = device.create_bind_group(
            params.buffer, lattice.next, lattice.current, label="streaming"
        )

        self.workgroups = workgroups_for(lattice.width, lattice.height)
        self.step_count = 0

    def step(self, encoder, dt=0.0):
        """
        Record collision then streaming over the full grid.

        Exactly two dispatches are recorded whatever the value of dt.
        """
        encoder.dispatch(self.collision_pipeline, self.collision_group, self.workgroups)
        encoder.dispatch(self.streaming_pipeline, self.streaming_group, self.workgroups)
        self.step_count += 1

    def run(self, encoder, dt):
        self.step(encoder, dt)

    def get_current_buffer(self):
        """Buffer holding the most recently completed step's output."""
        return self.lattice.current

    def reset(self):
        """
        Restore the rest-state equilibrium and zero elapsed time.

        Only call between submissions, never while a frame is being
        recorded.
        """
        self.lattice.reset()
        self.params.reset()
        self.step_count = 0
