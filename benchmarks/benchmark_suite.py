"""
Frame Benchmark Suite

Measures full interactive frames (parameter upload, paint and velocity
injection, collision + streaming) on the host and CUDA devices.
"""

import time
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lbm_interactive.app import FluidSession
from lbm_interactive.device import cuda_available

CUDA_AVAILABLE = cuda_available()

# Bytes touched per cell and step: 12 float32 channels read and written,
# once by collision and once by streaming
BYTES_PER_SITE = 12 * 4 * 2 * 2


def benchmark_frames(device, nx, ny, num_frames, warmup_frames=20, boundary="periodic"):
    """
    Benchmark full frames on one device.

    A pointer drag is recorded every frame so the velocity kernel runs
    too.

    Returns
    -------
    mlups : float
        Million Lattice Updates Per Second
    """
    session = FluidSession(nx, ny, device=device, boundary=boundary)
    session.click(nx / 2, ny / 2)

    # Warmup (JIT compilation)
    for frame in range(warmup_frames):
        session.drag(frame * 2.0, ny / 2)
        session.renderer.render(0.016)
    session.device.synchronize()

    start = time.perf_counter()
    for frame in range(num_frames):
        session.drag((frame * 2.0) % nx, ny / 2)
        session.renderer.render(0.016)
    session.device.synchronize()
    elapsed = time.perf_counter() - start

    return num_frames * nx * ny / elapsed / 1e6


def compute_memory_bandwidth(mlups, bytes_per_site=BYTES_PER_SITE):
    """Compute effective memory bandwidth (GB/s) from MLUPS."""
    return mlups * bytes_per_site / 1000


def run_full_benchmark(grid_sizes=None, num_frames=200):
    """
    Run the frame benchmark on every available device.
    """
    if grid_sizes is None:
        grid_sizes = [
            (64, 64),
            (128, 128),
            (256, 256),
            (512, 512),
            (1024, 1024),
        ]

    devices = ["cpu"] + (["cuda"] if CUDA_AVAILABLE else [])

    print("=" * 60)
    print("Interactive LBM Frame Benchmark")
    print("=" * 60)
    print(f"Frames: {num_frames}")
    print(f"CUDA Available: {CUDA_AVAILABLE}")
    print()

    results = {}
    for device in devices:
        print(f"Benchmarking {device}...")
        print("-" * 40)
        results[device] = {}
        for nx, ny in grid_sizes:
            mlups = benchmark_frames(device, nx, ny, num_frames)
            results[device][(nx, ny)] = mlups
            bandwidth = compute_memory_bandwidth(mlups)
            print(f"  {nx:4d} x {ny:4d}: {mlups:8.2f} MLUPS, {bandwidth:7.1f} GB/s")
        print()

    if "cuda" in results:
        print("=" * 60)
        print(f"{'Grid':<12} {'CPU':>10} {'CUDA':>10} {'Speedup':>10}")
        print("-" * 60)
        for nx, ny in grid_sizes:
            cpu = results["cpu"][(nx, ny)]
            gpu = results["cuda"][(nx, ny)]
            speedup = f"{gpu / cpu:.0f}x" if cpu > 0 else "N/A"
            print(f"{nx:4d}x{ny:<4d}    {cpu:>10.1f} {gpu:>10.1f} {speedup:>10}")
        print("=" * 60)

    return results


if __name__ == "__main__":
    run_full_benchmark()
