"""Fluid Simulation - 2D incompressible Navier-Stokes on render targets.

Fields:
    - velocity    (RG, double buffered)
    - dye         (RGBA, double buffered, own resolution)
    - pressure    (R, double buffered)
    - divergence  (R)
    - curl        (R)

Step pipeline:
    1. Curl of velocity
    2. Vorticity confinement force
    3. Divergence with reflecting walls
    4. Decay last frame's pressure
    5. Jacobi pressure iterations
    6. Subtract pressure gradient
    7. Advect velocity by itself
    8. Advect dye by velocity
"""

import logging

from ..gl.Device import Device, Capabilities, DeviceError
from ..gl.Fbo import Fbo, SwapFbo
from ..gl.Material import Keyword
from ..gl.Shader import Shader
from ..gl.Texture import Filter
from .FluidConfig import FluidConfig
from .Pointer import correct_radius
from .shaders import (
    Copy, Clear, Color, Splat, Advection, Divergence, Curl, Vorticity, Pressure, GradientSubtract
)


def get_resolution(resolution: int, width: int, height: int) -> tuple[int, int]:
    """Grid size for a canvas: the short side gets `resolution` texels, the long side keeps the aspect."""
    aspect: float = width / height
    if aspect < 1.0:
        aspect = 1.0 / aspect

    short_side: int = round(resolution)
    long_side: int = round(resolution * aspect)

    if width > height:
        return long_side, short_side
    return short_side, long_side


class FluidSimulation:
    """Owns the solver passes and field set. All drawing goes through `device`."""

    def __init__(self, device: Device, capabilities: Capabilities) -> None:
        self.device: Device = device
        self.capabilities: Capabilities = capabilities
        self.allocated: bool = False
        self.width: int = 0
        self.height: int = 0

        self._copy_shader = Copy(device)
        self._clear_shader = Clear(device)
        self._color_shader = Color(device)
        self._splat_shader = Splat(device)
        self._advection_shader = Advection(device)
        self._divergence_shader = Divergence(device)
        self._curl_shader = Curl(device)
        self._vorticity_shader = Vorticity(device)
        self._pressure_shader = Pressure(device)
        self._gradient_shader = GradientSubtract(device)

        self._velocity: SwapFbo | None = None
        self._dye: SwapFbo | None = None
        self._pressure: SwapFbo | None = None
        self._divergence: Fbo | None = None
        self._curl: Fbo | None = None

    @property
    def shaders(self) -> list[Shader]:
        return [self._copy_shader, self._clear_shader, self._color_shader, self._splat_shader,
                self._advection_shader, self._divergence_shader, self._curl_shader,
                self._vorticity_shader, self._pressure_shader, self._gradient_shader]

    @property
    def color_shader(self) -> Color:
        """Solid fill pass, shared with the presentation layer."""
        return self._color_shader

    @property
    def manual_filtering(self) -> bool:
        return not self.capabilities.linear_filtering

    # ---------- Allocation ----------
    def allocate(self, width: int, height: int, config: FluidConfig) -> None:
        self._advection_shader.allocate([Keyword.MANUAL_FILTERING] if self.manual_filtering else [])
        for shader in self.shaders:
            shader.allocate()

        self.init_framebuffers(width, height, config)
        self.allocated = True

    def init_framebuffers(self, width: int, height: int, config: FluidConfig) -> None:
        """Create or resize the field set for a canvas of width x height pixels.

        Velocity and dye keep their content through a copy pass, divergence,
        curl and pressure start from zero. Every new target is allocated before
        anything is released or the canvas size is stored, so an
        AllocationError leaves the previous field set in use.
        """
        sim_width, sim_height = get_resolution(config.sim_resolution, width, height)
        dye_width, dye_height = get_resolution(config.dye_resolution, width, height)

        caps: Capabilities = self.capabilities
        filtering: Filter = caps.filtering

        old_velocity: SwapFbo | None = self._velocity
        new_sim_size: bool = old_velocity is None or (old_velocity.width, old_velocity.height) != (sim_width, sim_height)
        velocity: SwapFbo | None = None

        created: list[Fbo | SwapFbo] = []
        try:
            divergence = Fbo(self.device, sim_width, sim_height, caps.r, Filter.NEAREST)
            created.append(divergence)
            curl = Fbo(self.device, sim_width, sim_height, caps.r, Filter.NEAREST)
            created.append(curl)
            pressure = SwapFbo(self.device, sim_width, sim_height, caps.r, Filter.NEAREST)
            created.append(pressure)
            if new_sim_size:
                velocity = SwapFbo(self.device, sim_width, sim_height, caps.rg, filtering)
                created.append(velocity)
            # last: resize() keeps the old pair when it raises
            if self._dye is None:
                dye = SwapFbo(self.device, dye_width, dye_height, caps.rgba, filtering)
            else:
                dye = self._dye.resize(dye_width, dye_height, self._copy_shader)
        except DeviceError:
            for target in created:
                target.deallocate()
            raise

        if velocity is not None:
            if old_velocity is not None:
                velocity.copy_from(old_velocity.read, self._copy_shader)
                old_velocity.deallocate()
            self._velocity = velocity

        self._release_scratch()
        self._dye = dye
        self._divergence = divergence
        self._curl = curl
        self._pressure = pressure
        self.width = width
        self.height = height

        logging.debug(f"FluidSimulation framebuffers: sim {sim_width}x{sim_height}, dye {dye_width}x{dye_height}")

    def _release_scratch(self) -> None:
        if self._divergence is not None:
            self._divergence.deallocate()
        if self._curl is not None:
            self._curl.deallocate()
        if self._pressure is not None:
            self._pressure.deallocate()
        self._divergence = None
        self._curl = None
        self._pressure = None

    def deallocate(self) -> None:
        self._release_scratch()
        if self._velocity is not None:
            self._velocity.deallocate()
        if self._dye is not None:
            self._dye.deallocate()
        self._velocity = None
        self._dye = None
        for shader in self.shaders:
            shader.deallocate()
        self.allocated = False

    # ---------- Fields ----------
    @property
    def velocity(self) -> SwapFbo:
        if self._velocity is None:
            raise RuntimeError("FluidSimulation is not allocated")
        return self._velocity

    @property
    def dye(self) -> SwapFbo:
        if self._dye is None:
            raise RuntimeError("FluidSimulation is not allocated")
        return self._dye

    @property
    def pressure(self) -> SwapFbo:
        if self._pressure is None:
            raise RuntimeError("FluidSimulation is not allocated")
        return self._pressure

    @property
    def divergence(self) -> Fbo:
        if self._divergence is None:
            raise RuntimeError("FluidSimulation is not allocated")
        return self._divergence

    @property
    def curl(self) -> Fbo:
        if self._curl is None:
            raise RuntimeError("FluidSimulation is not allocated")
        return self._curl

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    # ---------- Update ----------
    def step(self, dt: float, config: FluidConfig) -> None:
        velocity: SwapFbo = self.velocity
        dye: SwapFbo = self.dye
        pressure: SwapFbo = self.pressure
        divergence: Fbo = self.divergence
        curl: Fbo = self.curl
        texel_size: tuple[float, float] = velocity.texel_size

        self.device.set_blending(False)

        # Vorticity confinement
        curl.begin()
        self._curl_shader.use(velocity.read, texel_size)
        curl.end()

        velocity.begin()
        self._vorticity_shader.use(velocity.read, curl, texel_size, config.curl, dt)
        velocity.end()
        velocity.swap()

        # Pressure projection
        divergence.begin()
        self._divergence_shader.use(velocity.read, texel_size)
        divergence.end()

        pressure.begin()
        self._clear_shader.use(pressure.read, config.pressure)
        pressure.end()
        pressure.swap()

        for _ in range(config.pressure_iterations):
            pressure.begin()
            self._pressure_shader.use(pressure.read, divergence, texel_size)
            pressure.end()
            pressure.swap()

        velocity.begin()
        self._gradient_shader.use(pressure.read, velocity.read, texel_size)
        velocity.end()
        velocity.swap()

        # Advection
        manual: bool = self.manual_filtering
        velocity.begin()
        self._advection_shader.use(velocity.read, velocity.read, texel_size, dt, config.velocity_dissipation,
                                   dye_texel_size=texel_size if manual else None)
        velocity.end()
        velocity.swap()

        dye.begin()
        self._advection_shader.use(velocity.read, dye.read, texel_size, dt, config.density_dissipation,
                                   dye_texel_size=dye.texel_size if manual else None)
        dye.end()
        dye.swap()

    def splat(self, x: float, y: float, dx: float, dy: float,
              color: tuple[float, float, float], config: FluidConfig) -> None:
        """Add a velocity impulse (dx, dy) and a dye blob at (x, y) in [0,1] texture space."""
        velocity: SwapFbo = self.velocity
        dye: SwapFbo = self.dye
        aspect: float = self.aspect_ratio
        radius: float = correct_radius(config.splat_radius / 100.0, aspect)

        self.device.set_blending(False)

        velocity.begin()
        self._splat_shader.use(velocity.read, aspect, x, y, (dx, dy, 0.0), radius)
        velocity.end()
        velocity.swap()

        dye.begin()
        self._splat_shader.use(dye.read, aspect, x, y, color, radius)
        dye.end()
        dye.swap()

    def reset(self) -> None:
        """Zero every field, keeping the allocation."""
        self.device.set_blending(False)
        targets: list[Fbo] = [self.divergence, self.curl]
        for swap_fbo in (self.velocity, self.dye, self.pressure):
            targets.extend(swap_fbo.fbos)
        for fbo in targets:
            fbo.begin()
            self._color_shader.use(0.0, 0.0, 0.0, 0.0)
            fbo.end()
