"""
Tests for the lattice state and the LBM stepper.

Validates the double-buffer scheme, the recorded dispatch order and the
conservation properties of full steps.
"""

import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lbm_interactive.device import HostDevice, Dispatch
from lbm_interactive.equilibrium import compute_equilibrium, initial_lattice
from lbm_interactive.kernels import load_kernels
from lbm_interactive.lattice import EX, EY, Q, RHO, VX, VY
from lbm_interactive.observables import (
    lattice_fields,
    compute_total_mass,
    compute_total_momentum,
)
from lbm_interactive.params import ParameterState
from lbm_interactive.simulate import LatticeState, LBMStepper


NX, NY = 32, 16


def build(boundary="periodic"):
    device = HostDevice()
    kernels = load_kernels("cpu", boundary)
    params = ParameterState(device, NX, NY)
    lattice = LatticeState(device, NX, NY)
    stepper = LBMStepper(device, kernels, params, lattice)
    return device, params, lattice, stepper


def submit_steps(device, stepper, n_steps):
    for _ in range(n_steps):
        encoder = device.create_command_encoder()
        stepper.step(encoder)
        device.queue.submit([encoder.finish()])


def perturb(device, lattice, bump=0.1):
    """Upload a smooth density bump with a shear flow."""
    X, Y = np.meshgrid(np.arange(NX), np.arange(NY))
    rho = 1.0 + bump * np.exp(-((X - NX / 2) ** 2 + (Y - NY / 2) ** 2) / 10.0)
    ux = 0.05 * np.sin(2 * np.pi * Y / NY)
    uy = np.zeros_like(ux)
    
    data = initial_lattice(NX, NY)
    data[:Q] = compute_equilibrium(rho, ux, uy)
    data[RHO] = rho
    data[VX] = ux
    data[VY] = uy
    device.queue.write_buffer(lattice.current, data)
    return data


class TestLatticeState:
    """Test buffer ownership and the initial state."""
    
    def test_rest_state(self):
        """Both buffers start at equilibrium with rho = 1 and u = 0."""
        device, _, lattice, _ = build()
        
        for role in LatticeState.ROLES:
            rho, ux, uy = lattice_fields(lattice.read(role))
            np.testing.assert_allclose(rho, 1.0)
            np.testing.assert_allclose(ux, 0.0)
            np.testing.assert_allclose(uy, 0.0)
    
    def test_buffers_distinct(self):
        """The two roles never alias the same storage."""
        _, _, lattice, _ = build()
        
        assert lattice.current is not lattice.next
        assert not np.shares_memory(lattice.current, lattice.next)
        assert lattice.current.shape == (12, NY, NX)


class TestStepRecording:
    """Test what one step records."""
    
    def test_two_dispatches_in_order(self):
        """Collision reads A and writes B, then streaming reads B and writes A."""
        device, params, lattice, stepper = build()
        encoder = device.create_command_encoder()
        
        stepper.step(encoder)
        commands = encoder.commands
        
        assert len(commands) == 2
        assert all(isinstance(c, Dispatch) for c in commands)
        collision, streaming = commands
        assert collision.pipeline.entry_point == "collision"
        assert streaming.pipeline.entry_point == "streaming"
        
        p, src, dst = collision.bind_group.buffers
        assert p is params.buffer and src is lattice.current and dst is lattice.next
        p, src, dst = streaming.bind_group.buffers
        assert p is params.buffer and src is lattice.next and dst is lattice.current
    
    def test_dispatch_count_ignores_dt(self):
        """Large and zero time steps both record exactly one step."""
        device, _, _, stepper = build()
        
        for dt in (0.0, 0.016, 10.0):
            encoder = device.create_command_encoder()
            stepper.run(encoder, dt)
            assert len(encoder.commands) == 2
    
    def test_bind_groups_reused(self):
        """Stepping repeats the dispatches with the same bind groups."""
        device, _, _, stepper = build()
        
        first = device.create_command_encoder()
        stepper.step(first)
        second = device.create_command_encoder()
        stepper.step(second)
        
        for a, b in zip(first.commands, second.commands):
            assert a.bind_group is b.bind_group
            assert a.pipeline is b.pipeline
    
    def test_grid_covered(self):
        """Workgroups of 16 x 16 cover the whole grid."""
        _, _, _, stepper = build()
        assert stepper.workgroups == (2, 1)


class TestStepExecution:
    """Test submitted steps."""
    
    def test_rest_state_is_steady(self):
        """A uniform fluid at rest stays at rest."""
        device, _, lattice, stepper = build()
        
        submit_steps(device, stepper, 5)
        
        rho, ux, uy = lattice_fields(lattice.read("A"))
        np.testing.assert_allclose(rho, 1.0, rtol=1e-6)
        np.testing.assert_allclose(ux, 0.0, atol=1e-7)
        np.testing.assert_allclose(uy, 0.0, atol=1e-7)
    
    def test_current_buffer_holds_latest_step(self):
        """After a step, A holds the streamed state and B the collided one."""
        device, params, lattice, stepper = build()
        start = perturb(device, lattice)
        
        submit_steps(device, stepper, 1)
        
        collided = lattice.read("B")
        current = device.read_buffer(stepper.get_current_buffer())
        for k in range(Q):
            expected = np.roll(np.roll(collided[k], EX[k], axis=1), EY[k], axis=0)
            np.testing.assert_array_equal(current[k], expected)
        assert not np.array_equal(current, start)
    
    def test_mass_conserved_periodic(self):
        """Total mass is unchanged by steps on a periodic domain."""
        device, _, lattice, stepper = build()
        perturb(device, lattice)
        mass0 = compute_total_mass(lattice.read("A"))
        
        submit_steps(device, stepper, 50)
        
        assert np.isclose(compute_total_mass(lattice.read("A")), mass0, rtol=1e-5)
    
    def test_momentum_conserved_periodic(self):
        """Total momentum is unchanged by steps on a periodic domain."""
        device, _, lattice, stepper = build()
        perturb(device, lattice)
        mom0 = compute_total_momentum(lattice.read("A"))
        
        submit_steps(device, stepper, 20)
        
        np.testing.assert_allclose(
            compute_total_momentum(lattice.read("A")), mom0, atol=1e-3
        )
    
    def test_mass_conserved_bounce_back(self):
        """Total mass is unchanged with walls on all edges."""
        device, _, lattice, stepper = build("bounce_back")
        perturb(device, lattice)
        mass0 = compute_total_mass(lattice.read("A"))
        
        submit_steps(device, stepper, 50)
        
        assert stepper.boundary == "bounce_back"
        assert np.isclose(compute_total_mass(lattice.read("A")), mass0, rtol=1e-5)
    
    def test_shear_decays(self):
        """Viscosity damps the shear flow."""
        device, _, lattice, stepper = build()
        perturb(device, lattice, bump=0.0)
        _, ux0, _ = lattice_fields(lattice.read("A"))
        
        submit_steps(device, stepper, 100)
        
        _, ux, _ = lattice_fields(lattice.read("A"))
        assert np.max(np.abs(ux)) < np.max(np.abs(ux0))
        assert np.all(np.isfinite(ux))


class TestReset:
    """Test returning to the rest state."""
    
    def test_reset_restores_initial_state(self):
        """reset() gives exactly the state after construction."""
        device, params, lattice, stepper = build()
        initial = lattice.read("A")
        perturb(device, lattice)
        submit_steps(device, stepper, 3)
        params.advance(0.5)
        
        stepper.reset()
        
        np.testing.assert_array_equal(lattice.read("A"), initial)
        np.testing.assert_array_equal(lattice.read("B"), initial)
        assert params.time_elapsed == 0.0
        assert stepper.step_count == 0
    
    def test_reset_keeps_buffers(self):
        """Reset writes into the existing buffers instead of reallocating."""
        _, _, lattice, stepper = build()
        a, b = lattice.current, lattice.next
        
        stepper.reset()
        
        assert lattice.current is a and lattice.next is b


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
