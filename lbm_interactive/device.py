"""
Accelerator Command Model

Buffers, compute pipelines, bind groups and ordered command submission
on top of Numba.

Work is recorded into a CommandEncoder and nothing runs until the sealed
CommandBuffer is submitted to the device queue. Inside one submission the
commands execute in the order they were recorded and each dispatch
completes before the next one starts, so a later dispatch always observes
everything an earlier one wrote.

Two devices are provided:
- HostDevice: NumPy buffers, kernels compiled with @njit(parallel=True)
- CudaDevice: numba.cuda device arrays, kernels compiled with @cuda.jit,
  launched on the default stream (which serializes launches)
"""

import math
import warnings
from collections import namedtuple

import numpy as np
from numba import cuda

from .lattice import DTYPE


# Threads per workgroup (CUDA block) in x and y
WORKGROUP_SIZE = (16, 16)

DEVICE_KINDS = ("auto", "cpu", "cuda")


class DeviceUnavailableError(RuntimeError):
    """The requested accelerator could not be acquired."""


ComputePipeline = namedtuple("ComputePipeline", ["entry_point", "kernel", "kind"])
BindGroup = namedtuple("BindGroup", ["buffers", "label"])

# Recorded commands
Dispatch = namedtuple("Dispatch", ["pipeline", "bind_group", "workgroups"])
ClearBuffer = namedtuple("ClearBuffer", ["buffer"])
CommandBuffer = namedtuple("CommandBuffer", ["commands"])


def workgroups_for(width, height, workgroup_size=WORKGROUP_SIZE):
    """Number of workgroups needed to cover a width x height grid."""
    return (
        math.ceil(width / workgroup_size[0]),
        math.ceil(height / workgroup_size[1]),
    )


def cuda_available():
    """Check if a CUDA device can be used."""
    return cuda.is_available()


class CommandEncoder:
    """
    Records dispatches and buffer clears for a single submission.

    The encoder only records. Call finish() to seal the recorded commands
    into a CommandBuffer, which is what the queue executes.
    """

    def __init__(self):
        self._commands = []
        self._finished = False

    def _record(self, command):
        if self._finished:
            raise RuntimeError("Cannot record into a finished command encoder")
        self._commands.append(command)

    def dispatch(self, pipeline, bind_group, workgroups):
        """Record a compute dispatch of `pipeline` over `workgroups`."""
        self._record(Dispatch(pipeline, bind_group, tuple(workgroups)))

    def clear_buffer(self, buffer):
        """Record zero-filling of `buffer`."""
        self._record(ClearBuffer(buffer))

    @property
    def commands(self):
        return tuple(self._commands)

    def finish(self):
        """Seal the encoder and return the recorded CommandBuffer."""
        if self._finished:
            raise RuntimeError("Command encoder already finished")
        self._finished = True
        return CommandBuffer(tuple(self._commands))


class Queue:
    """
    Device queue.

    write_buffer uploads immediately, so data written before submit() is
    visible to every command of that submission.
    """

    def __init__(self, device):
        self.device = device
        self.submit_count = 0

    def write_buffer(self, buffer, data):
        """Upload `data` into the whole of `buffer`."""
        data = np.asarray(data)
        if data.dtype != buffer.dtype:
            data = data.astype(buffer.dtype)
        if data.shape != buffer.shape:
            if data.size != buffer.size:
                raise ValueError(
                    f"Buffer holds {buffer.size} elements, got {data.size}"
                )
            data = data.reshape(buffer.shape)
        self.device.upload(buffer, np.ascontiguousarray(data))

    def submit(self, command_buffers):
        """Execute each command buffer's commands in recorded order."""
        for command_buffer in command_buffers:
            for command in command_buffer.commands:
                if isinstance(command, Dispatch):
                    self.device.launch(command)
                elif isinstance(command, ClearBuffer):
                    self.device.clear(command.buffer)
                else:
                    raise TypeError(f"Unknown command: {command!r}")
        self.submit_count += 1


class Device:
    """
    Base accelerator device.

    Subclasses provide buffer storage and kernel launching; everything
    else (pipelines, bind groups, encoders, the queue) is shared.
    """

    kind = None

    def __init__(self):
        self.queue = Queue(self)

    def create_buffer(self, shape, dtype=DTYPE, label=None):
        raise NotImplementedError

    def create_bind_group(self, *buffers, label=None):
        """Bind buffers in kernel argument order."""
        return BindGroup(tuple(buffers), label)

    def create_compute_pipeline(self, kernels, entry_point):
        """
        Create a compute pipeline for one kernel entry point.

        Parameters
        ----------
        kernels : KernelSet
            Kernel collaborator compiled for this device kind
        entry_point : str
            One of "collision", "streaming", "paint", "velocity"
        """
        if kernels.kind != self.kind:
            raise ValueError(
                f"{kernels.kind} kernels cannot run on a {self.kind} device"
            )
        if entry_point not in kernels:
            raise ValueError(f"Unknown kernel entry point: {entry_point}")
        return ComputePipeline(entry_point, kernels[entry_point], self.kind)

    def create_command_encoder(self):
        return CommandEncoder()

    def upload(self, buffer, data):
        raise NotImplementedError

    def clear(self, buffer):
        raise NotImplementedError

    def launch(self, dispatch):
        raise NotImplementedError

    def read_buffer(self, buffer):
        """Copy a buffer back to a host ndarray."""
        raise NotImplementedError

    def synchronize(self):
        """Wait for all submitted work to complete."""


class HostDevice(Device):
    """CPU device: NumPy buffers and Numba parallel kernels."""

    kind = "cpu"

    def create_buffer(self, shape, dtype=DTYPE, label=None):
        return np.zeros(shape, dtype=dtype)

    def upload(self, buffer, data):
        buffer[...] = data

    def clear(self, buffer):
        buffer[...] = np.zeros(buffer.shape, dtype=buffer.dtype)

    def launch(self, dispatch):
        # Host kernels cover the whole grid in one call; workgroups only
        # matter to the CUDA launch configuration.
        dispatch.pipeline.kernel(*dispatch.bind_group.buffers)

    def read_buffer(self, buffer):
        return buffer.copy()


class CudaDevice(Device):
    """GPU device: numba.cuda device arrays and CUDA kernels."""

    kind = "cuda"

    def __init__(self, workgroup_size=WORKGROUP_SIZE):
        if not cuda_available():
            raise DeviceUnavailableError("CUDA is not available")
        super().__init__()
        self.workgroup_size = tuple(workgroup_size)

    def create_buffer(self, shape, dtype=DTYPE, label=None):
        return cuda.to_device(np.zeros(shape, dtype=dtype))

    def upload(self, buffer, data):
        buffer.copy_to_device(data)

    def clear(self, buffer):
        buffer.copy_to_device(np.zeros(buffer.shape, dtype=buffer.dtype))

    def launch(self, dispatch):
        kernel = dispatch.pipeline.kernel
        kernel[dispatch.workgroups, self.workgroup_size](*dispatch.bind_group.buffers)

    def read_buffer(self, buffer):
        return buffer.copy_to_host()

    def synchronize(self):
        cuda.synchronize()


def create_device(kind="auto"):
    """
    Acquire an accelerator device.

    Parameters
    ----------
    kind : str
        "cuda" requires a GPU, "cpu" always uses the host, "auto" prefers
        CUDA and falls back to the host.

    Raises
    ------
    DeviceUnavailableError
        If "cuda" is requested and no CUDA device is usable
    ValueError
        If `kind` is not a known device kind
    """
    if kind not in DEVICE_KINDS:
        raise ValueError(f"device must be one of {DEVICE_KINDS}, got {kind!r}")

    if kind == "cpu":
        return HostDevice()
    if kind == "cuda":
        return CudaDevice()

    if cuda_available():
        return CudaDevice()

    warnings.warn("CUDA not available, running kernels on the CPU")
    return HostDevice()
