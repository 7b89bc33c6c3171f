"""
Compute Kernels

Replaceable per-cell kernel implementations behind four entry points:
collision, streaming, paint and velocity. The boundary policy of the
streaming kernel is chosen when the kernels are loaded.
"""

KERNEL_KINDS = ("cpu", "cuda")
BOUNDARIES = ("periodic", "bounce_back")
ENTRY_POINTS = ("collision", "streaming", "paint", "velocity")


class KernelSet(dict):
    """Entry point name -> kernel, compiled for one device kind."""

    def __init__(self, kind, boundary, entry_points):
        super().__init__(entry_points)
        self.kind = kind
        self.boundary = boundary

    def __repr__(self):
        return f"KernelSet(kind={self.kind!r}, boundary={self.boundary!r})"


def load_kernels(kind="cpu", boundary="periodic"):
    """
    Load the kernel collaborator for a device kind.
    
    Parameters
    ----------
    kind : str
        "cpu" (Numba parallel) or "cuda" (Numba CUDA)
    boundary : str
        Streaming boundary policy, "periodic" or "bounce_back"
    
    Returns
    -------
    kernels : KernelSet
    """
    if boundary not in BOUNDARIES:
        raise ValueError(f"boundary must be one of {BOUNDARIES}, got {boundary!r}")

    if kind == "cpu":
        from .cpu_kernels import build_entry_points
    elif kind == "cuda":
        from .gpu_kernels import build_entry_points
    else:
        raise ValueError(f"kind must be one of {KERNEL_KINDS}, got {kind!r}")

    entry_points = build_entry_points(boundary)
    return KernelSet(kind, boundary, {name: entry_points[name] for name in ENTRY_POINTS})
