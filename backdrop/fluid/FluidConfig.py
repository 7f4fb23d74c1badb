"""Runtime configuration of the fluid backdrop."""

from dataclasses import dataclass

from ..ConfigBase import ConfigBase, config_field


@dataclass
class FluidConfig(ConfigBase):
    """Configuration for the fluid simulation and its presentation.

    Resolution changes are picked up at the start of the next frame. Capability
    negotiation may lower `dye_resolution` and switch off `shading`, `bloom`
    and `sunrays` on devices without linear filtering.
    """

    # Grid
    sim_resolution: int = config_field(
        128, min=16, max=1024, label="Sim Resolution",
        description="Short side of the velocity / pressure grid in texels")
    dye_resolution: int = config_field(
        1024, min=16, max=4096, label="Dye Resolution",
        description="Short side of the dye grid in texels")

    # Solver
    density_dissipation: float = config_field(
        1.0, min=0.0, max=10.0, description="Dye decay rate per second")
    velocity_dissipation: float = config_field(
        0.2, min=0.0, max=10.0, description="Velocity decay rate per second")
    pressure: float = config_field(
        0.8, min=0.0, max=1.0, description="Fraction of last frame's pressure kept as the solver's first guess")
    pressure_iterations: int = config_field(
        20, min=1, max=80, description="Jacobi iterations per frame")
    curl: float = config_field(
        30.0, min=0.0, max=100.0, description="Vorticity confinement strength")

    # Input
    splat_radius: float = config_field(
        0.25, min=0.01, max=1.0, description="Splat size, divided by 100 before use")
    splat_force: float = config_field(
        6000.0, min=0.0, max=20000.0, description="Pointer delta to velocity multiplier")

    # Presentation
    shading: bool = config_field(True, description="Lighting from the dye gradient")
    colorful: bool = config_field(True, description="Cycle pointer colors over time")
    color_update_speed: float = config_field(
        10.0, min=0.0, max=50.0, description="Color cycle timer increment per second")
    paused: bool = config_field(False, description="Skip the solver step, input still applies")
    back_color: tuple[int, int, int] = config_field(
        default_factory=lambda: (0, 0, 0), description="Background color, 0-255 per channel")
    transparent: bool = config_field(False, description="Skip the background fill and blending")
    bloom: bool = config_field(True, description="Composite a supplied bloom texture")
    sunrays: bool = config_field(False, description="Reserved for an external sunrays pass")

    startup_burst: bool = config_field(
        True, fixed=True, description="Queue a burst of random splats on creation")
