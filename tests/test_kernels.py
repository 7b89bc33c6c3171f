"""
Tests for the CPU kernel collaborator.

Validates each entry point against NumPy references and the conservation
laws every correct LBM kernel must honour.
"""

import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lbm_interactive.lattice import EX, EY, Q, RHO, VX, VY, CHANNELS
from lbm_interactive.equilibrium import compute_equilibrium, initial_lattice
from lbm_interactive.observables import (
    compute_macroscopic,
    compute_total_mass,
    compute_total_momentum,
)
from lbm_interactive.params import SimParams, pack_params
from lbm_interactive.kernels import load_kernels
from lbm_interactive.kernels.cpu_kernels import MAX_LATTICE_SPEED
from lbm_interactive.velocity import VelocityStroke


NX, NY = 32, 24


@pytest.fixture
def params():
    return pack_params(SimParams(NX, NY, 0.0, 1.25, 0.1))


@pytest.fixture
def kernels():
    return load_kernels("cpu", "periodic")


@pytest.fixture
def perturbed_lattice():
    """Non-equilibrium lattice buffer with smooth density and velocity."""
    rng = np.random.default_rng(42)
    X, Y = np.meshgrid(np.arange(NX), np.arange(NY))
    rho = 1.0 + 0.05 * np.sin(2 * np.pi * X / NX)
    ux = 0.03 * np.cos(2 * np.pi * Y / NY)
    uy = 0.02 * np.sin(2 * np.pi * X / NX)
    
    data = np.zeros((CHANNELS, NY, NX), dtype=np.float32)
    f = compute_equilibrium(rho, ux, uy)
    data[:Q] = f + 0.001 * rng.standard_normal(f.shape)
    return data


class TestCollision:
    """Test the BGK collision entry point."""
    
    def test_matches_numpy_bgk(self, params, kernels, perturbed_lattice):
        """dst = f - omega * (f - f_eq)."""
        src = perturbed_lattice
        dst = np.zeros_like(src)
        
        kernels["collision"](params, src, dst)
        
        rho, ux, uy = compute_macroscopic(src)
        f = src[:Q].astype(np.float64)
        expected = f - 1.25 * (f - compute_equilibrium(rho, ux, uy))
        
        np.testing.assert_allclose(dst[:Q], expected, rtol=1e-5, atol=1e-6)
        np.testing.assert_allclose(dst[RHO], rho, rtol=1e-5)
        np.testing.assert_allclose(dst[VX], ux, atol=1e-6)
        np.testing.assert_allclose(dst[VY], uy, atol=1e-6)
    
    def test_source_untouched(self, params, kernels, perturbed_lattice):
        """Collision reads src and writes only dst."""
        src = perturbed_lattice
        before = src.copy()
        
        kernels["collision"](params, src, np.zeros_like(src))
        
        np.testing.assert_array_equal(src, before)
    
    def test_conserves_mass_and_momentum(self, params, kernels, perturbed_lattice):
        """Collision conserves density and momentum at each cell."""
        src = perturbed_lattice
        dst = np.zeros_like(src)
        
        kernels["collision"](params, src, dst)
        
        assert np.isclose(compute_total_mass(dst), compute_total_mass(src), rtol=1e-6)
        np.testing.assert_allclose(
            compute_total_momentum(dst), compute_total_momentum(src), atol=1e-4
        )
    
    def test_rest_state_is_fixed_point(self, params, kernels):
        """Equilibrium at rest is unchanged by collision."""
        src = initial_lattice(NX, NY)
        dst = np.zeros_like(src)
        
        kernels["collision"](params, src, dst)
        
        np.testing.assert_allclose(dst, src, atol=1e-7)


class TestStreaming:
    """Test the streaming entry points."""
    
    def test_periodic_matches_roll(self, params, kernels, perturbed_lattice):
        """Pull streaming equals pushing each population along e_k."""
        src = perturbed_lattice
        dst = np.zeros_like(src)
        
        kernels["streaming"](params, src, dst)
        
        for k in range(Q):
            expected = np.roll(np.roll(src[k], EX[k], axis=1), EY[k], axis=0)
            np.testing.assert_array_equal(dst[k], expected)
    
    def test_periodic_refreshes_moments(self, params, kernels, perturbed_lattice):
        """Stored rho and velocity describe the streamed populations."""
        src = perturbed_lattice
        dst = np.zeros_like(src)
        
        kernels["streaming"](params, src, dst)
        rho, ux, uy = compute_macroscopic(dst)
        
        np.testing.assert_allclose(dst[RHO], rho, rtol=1e-5)
        np.testing.assert_allclose(dst[VX], ux, atol=1e-6)
        np.testing.assert_allclose(dst[VY], uy, atol=1e-6)
    
    def test_bounce_back_conserves_mass(self, params, perturbed_lattice):
        """Walls reflect populations, so no mass leaves the domain."""
        kernels = load_kernels("cpu", "bounce_back")
        src = perturbed_lattice
        dst = np.zeros_like(src)
        
        kernels["streaming"](params, src, dst)
        
        assert np.isclose(compute_total_mass(dst), compute_total_mass(src), rtol=1e-6)
    
    def test_bounce_back_reflects_at_wall(self, params, perturbed_lattice):
        """At the west wall the eastward population is the westward one reflected."""
        kernels = load_kernels("cpu", "bounce_back")
        src = perturbed_lattice
        dst = np.zeros_like(src)
        
        kernels["streaming"](params, src, dst)
        
        # Direction 1 (E) has no upstream neighbour at i = 0
        np.testing.assert_array_equal(dst[1, :, 0], src[3, :, 0])
        # Interior cells pull normally
        np.testing.assert_array_equal(dst[1, :, 5], src[1, :, 4])


class TestPaint:
    """Test the paint entry point."""
    
    def test_paints_and_consumes(self, params, kernels):
        """Painted cells reach density 1 + value and the field is zeroed."""
        lattice = initial_lattice(NX, NY)
        field = np.zeros((NY, NX), dtype=np.float32)
        field[5, 7] = 1.0
        
        kernels["paint"](params, lattice, field)
        
        assert np.isclose(np.sum(lattice[:Q, 5, 7]), 2.0, rtol=1e-6)
        assert np.isclose(lattice[RHO, 5, 7], 2.0)
        assert np.all(field == 0.0)
    
    def test_other_cells_untouched(self, params, kernels):
        """Cells with a zero field entry keep their state."""
        lattice = initial_lattice(NX, NY)
        before = lattice.copy()
        field = np.zeros((NY, NX), dtype=np.float32)
        field[5, 7] = 1.0
        
        kernels["paint"](params, lattice, field)
        lattice[:, 5, 7] = before[:, 5, 7]
        
        np.testing.assert_array_equal(lattice, before)


class TestVelocity:
    """Test the velocity entry point."""
    
    def stroke(self, strength=0.05, radius=4.0):
        return VelocityStroke(8.0, 12.0, 20.0, 12.0, strength, radius).as_array()
    
    def test_pushes_along_stroke(self, params, kernels):
        """Cells on the segment gain velocity in the stroke direction."""
        lattice = initial_lattice(NX, NY)
        
        kernels["velocity"](params, lattice, self.stroke())
        
        rho, ux, uy = compute_macroscopic(lattice)
        assert np.isclose(ux[12, 14], 0.05, rtol=1e-4)
        assert abs(uy[12, 14]) < 1e-6
        assert compute_total_momentum(lattice)[0] > 0.0
    
    def test_conserves_mass(self, params, kernels):
        """Momentum injection does not change density."""
        lattice = initial_lattice(NX, NY)
        
        kernels["velocity"](params, lattice, self.stroke())
        
        assert np.isclose(compute_total_mass(lattice), NX * NY, rtol=1e-6)
    
    def test_far_cells_untouched(self, params, kernels):
        """Cells beyond the radius keep their state."""
        lattice = initial_lattice(NX, NY)
        before = lattice.copy()
        
        kernels["velocity"](params, lattice, self.stroke(radius=4.0))
        
        np.testing.assert_array_equal(lattice[:, 0:6, :], before[:, 0:6, :])
        np.testing.assert_array_equal(lattice[:, :, 26:], before[:, :, 26:])
    
    def test_speed_capped(self, params, kernels):
        """No cell ends up faster than the lattice speed cap."""
        lattice = initial_lattice(NX, NY)
        
        for _ in range(5):
            kernels["velocity"](params, lattice, self.stroke(strength=0.6))
        
        _, ux, uy = compute_macroscopic(lattice)
        assert np.max(np.hypot(ux, uy)) <= MAX_LATTICE_SPEED + 1e-5
    
    def test_cleared_stroke_is_noop(self, params, kernels):
        """An all-zero stroke record changes nothing."""
        lattice = initial_lattice(NX, NY)
        before = lattice.copy()
        
        kernels["velocity"](params, lattice, np.zeros(6, dtype=np.float32))
        
        np.testing.assert_array_equal(lattice, before)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
