"""
Interactive Fluid Session

Wires the parameter state, lattice, injectors, stepper and drawing pass
into one frame loop, and maps user actions onto them:

    click   -> paint a circle of density
    drag    -> record pointer samples for a velocity stroke
    slider  -> set viscosity
    button  -> reset the simulation

run_interactive() opens a matplotlib window driving the session.
"""

import matplotlib.pyplot as plt
import matplotlib.animation as animation
from matplotlib.widgets import Button, Slider

from .device import Device, create_device
from .draw import DrawPass
from .kernels import load_kernels
from .observables import lattice_fields
from .paint import DensityInjector, PAINT_RADIUS, PAINT_VALUE
from .params import DEFAULT_VISCOSITY, ParameterState
from .renderer import Renderer
from .simulate import LatticeState, LBMStepper
from .velocity import VelocityInjector

DEFAULT_RESOLUTION = (256, 256)

# Fixed frame time step in seconds
FRAME_DT = 0.016


class FluidSession:
    """
    One interactive simulation.

    Parameters
    ----------
    width, height : int
        Grid resolution, fixed for the session
    viscosity : float
        Initial kinematic viscosity (lattice units)
    device : str or Device
        "auto", "cpu", "cuda", or an already acquired Device
    boundary : str
        Streaming boundary policy, "periodic" or "bounce_back"
    field : str
        Field shown by the drawing pass
    surface : callable, optional
        Receives each drawn RGBA frame
    """

    def __init__(self, width=DEFAULT_RESOLUTION[0], height=DEFAULT_RESOLUTION[1],
                 viscosity=DEFAULT_VISCOSITY, device="auto", boundary="periodic",
                 field="rho", surface=None):
        # Device acquisition fails before any component exists
        self.device = device if isinstance(device, Device) else create_device(device)
        self.kernels = load_kernels(self.device.kind, boundary)
        self.width = width
        self.height = height

        self.sim_params = ParameterState(self.device, width, height, viscosity)
        self.lattice = LatticeState(self.device, width, height)
        self.stepper = LBMStepper(self.device, self.kernels, self.sim_params, self.lattice)
        self.density = DensityInjector(self.device, self.kernels, self.sim_params, self.lattice)
        self.velocity = VelocityInjector(self.device, self.kernels, self.sim_params, self.lattice)
        self.draw = DrawPass(self.device, self.lattice, field=field, surface=surface)

        # Parameters, injections, then the step; drawing after submission
        self.renderer = Renderer(self.device, width, height)
        self.renderer.add_pipelines([
            self.sim_params,
            self.density,
            self.velocity,
            self.stepper,
        ])
        self.renderer.add_presenter(self.draw)

    def click(self, x, y):
        """Paint a density circle centred on (x, y)."""
        return self.density.paint(x, y, PAINT_RADIUS, PAINT_VALUE)

    def drag(self, x, y):
        """Record a pointer sample for the next velocity stroke."""
        self.velocity.record_pointer(x, y)

    def set_viscosity(self, value):
        self.sim_params.set_viscosity(value)

    def reset(self):
        """Return to the rest state with zero elapsed time."""
        self.stepper.reset()
        self.density.clear()
        self.velocity.reset()

    def frame(self, dt=FRAME_DT):
        """Record, submit and draw one frame."""
        return self.renderer.render(dt)

    def fields(self):
        """Host copies of the current density and velocity fields."""
        data = self.device.read_buffer(self.stepper.get_current_buffer())
        return lattice_fields(data)

    @property
    def time_elapsed(self):
        return self.sim_params.time_elapsed


def run_interactive(width=DEFAULT_RESOLUTION[0], height=DEFAULT_RESOLUTION[1],
                    viscosity=DEFAULT_VISCOSITY, device="auto", boundary="periodic",
                    field="rho", interval=16):
    """
    Open a window running the simulation.

    Click to paint density, move the mouse to push the fluid, use the
    slider to change viscosity and the button to reset.

    Parameters
    ----------
    width, height : int
        Grid resolution
    viscosity : float
        Initial kinematic viscosity
    device : str
        "auto", "cpu" or "cuda"
    boundary : str
        "periodic" or "bounce_back"
    field : str
        "rho", "speed" or "vorticity"
    interval : int
        Milliseconds between animation frames
    """
    session = FluidSession(width, height, viscosity, device, boundary, field)

    print(f"LBM session: {width} x {height}, device={session.device.kind}, "
          f"boundary={boundary}")
    print(f"Viscosity: {viscosity:.3f}, omega: {session.sim_params.omega:.4f}")

    fig, ax = plt.subplots(figsize=(7, 7.8))
    fig.subplots_adjust(bottom=0.18)
    # Default imshow extent puts cell (i, j) at data coordinates (i, j)
    im = ax.imshow(session.draw.present(), origin="upper", interpolation="nearest")
    ax.set_title("Click to paint density, move to push")
    ax.set_axis_off()

    ax_slider = fig.add_axes([0.2, 0.08, 0.5, 0.03])
    slider = Slider(ax_slider, "Viscosity", 0.005, 0.5, valinit=viscosity, valfmt="%.3f")

    ax_button = fig.add_axes([0.78, 0.065, 0.12, 0.055])
    button = Button(ax_button, "Reset")

    def on_click(event):
        if event.inaxes is not ax or event.xdata is None:
            return
        session.click(round(event.xdata), round(event.ydata))

    def on_move(event):
        if event.inaxes is not ax or event.xdata is None:
            return
        session.drag(event.xdata, event.ydata)

    def on_viscosity(value):
        try:
            session.set_viscosity(value)
        except ValueError as e:
            print(f"Ignoring viscosity: {e}")

    def on_reset(event):
        session.reset()
        print("Simulation reset")

    def animate(frame):
        session.frame(FRAME_DT)
        im.set_data(session.draw.image)
        return [im]

    fig.canvas.mpl_connect("button_press_event", on_click)
    fig.canvas.mpl_connect("motion_notify_event", on_move)
    slider.on_changed(on_viscosity)
    button.on_clicked(on_reset)

    anim = animation.FuncAnimation(fig, animate, interval=interval,
                                   blit=False, cache_frame_data=False)
    plt.show()

    print(f"Rendered {session.renderer.frame_count} frames, "
          f"simulated time {session.time_elapsed:.2f}s")
    return anim


if __name__ == "__main__":
    run_interactive()
