"""Fluid Background - frame driver around FluidSimulation.

Owns configuration, pointers, pending input and the presentation pass. An
external loop (window, headless runner, test) calls advance(dt) and then
render() once per frame.
"""

import logging
from dataclasses import dataclass

import numpy as np

from ..gl.Device import Device, Capabilities
from ..gl.Fbo import Fbo, SwapFbo
from ..gl.Material import Keyword
from ..gl.Shader import Shader
from .ColorGenerator import ColorGenerator
from .FluidConfig import FluidConfig
from .FluidSimulation import FluidSimulation
from .Pointer import Pointer
from .shaders import Display

MAX_DT: float = 1.0 / 60.0
LOW_POWER_DYE_RESOLUTION: int = 512
BURST_COLOR_BOOST: float = 10.0
BURST_FORCE: float = 1000.0


@dataclass
class PendingSplat:
    x: float
    y: float
    dx: float
    dy: float
    color: tuple[float, float, float]


class FluidBackground:

    def __init__(self, device: Device, width: int, height: int, config: FluidConfig | None = None,
                 low_power: bool = False, rng: np.random.Generator | None = None) -> None:
        self.device: Device = device
        self.config: FluidConfig = config if config is not None else FluidConfig()
        self.colors: ColorGenerator = ColorGenerator(rng)
        self.width: int = width
        self.height: int = height

        self.capabilities: Capabilities = device.capabilities()
        self._apply_capabilities(low_power)

        self.pointers: list[Pointer] = [Pointer()]
        self.splat_stack: list[int] = []
        self.pending_splats: list[PendingSplat] = []
        self._pending_size: tuple[int, int] | None = None
        self._resolution_changed: bool = False

        self.simulation = FluidSimulation(device, self.capabilities)
        self.simulation.allocate(width, height, self.config)
        self._resolutions: tuple[int, int] = (self.config.sim_resolution, self.config.dye_resolution)

        self._display_shader = Display(device)
        self._display_shader.allocate()

        self._unwatch = [
            self.config.watch(self._on_resolution_changed, 'sim_resolution'),
            self.config.watch(self._on_resolution_changed, 'dye_resolution'),
        ]

        if self.config.startup_burst:
            self.queue_burst(int(self.colors.random() * 20) + 5)

    def _apply_capabilities(self, low_power: bool) -> None:
        config: FluidConfig = self.config
        linear: bool = self.capabilities.linear_filtering
        if low_power or not linear:
            config.dye_resolution = LOW_POWER_DYE_RESOLUTION
        if not linear:
            logging.warning("Linear filtering unsupported, disabling shading, bloom and sunrays")
            config.shading = False
            config.bloom = False
            config.sunrays = False

    def _on_resolution_changed(self, _value: int) -> None:
        self._resolution_changed = True

    @property
    def shaders(self) -> list[Shader]:
        return self.simulation.shaders + [self._display_shader]

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    def deallocate(self) -> None:
        for unwatch in self._unwatch:
            unwatch()
        self._unwatch.clear()
        self._display_shader.deallocate()
        self.simulation.deallocate()

    # ---------- Frame ----------
    def advance(self, dt: float) -> None:
        """Run one frame: resize, shader reload, colors, input, then the solver step."""
        dt = min(dt, MAX_DT)
        config: FluidConfig = self.config

        self._update_framebuffers()

        for shader in self.shaders:
            shader.reload()

        if config.colorful:
            self.colors.update(dt, self.pointers, config.color_update_speed)

        self.apply_inputs()

        if not config.paused:
            self.simulation.step(dt, config)

    def _update_framebuffers(self) -> None:
        """Reallocate for a pending resize or resolution change.

        The new size is committed only after every target was created, so a
        failed reallocation stays pending and raises again on the next frame.
        """
        width, height = self._pending_size if self._pending_size is not None else (self.width, self.height)
        resolutions: tuple[int, int] = (self.config.sim_resolution, self.config.dye_resolution)
        resized: bool = self._pending_size is not None or (self._resolution_changed and resolutions != self._resolutions)
        if not resized:
            self._resolution_changed = False
            return

        self.simulation.init_framebuffers(width, height, self.config)

        if self._pending_size is not None:
            self.device.resize_screen(width, height)
        self.width, self.height = width, height
        self._resolutions = resolutions
        self._pending_size = None
        self._resolution_changed = False

    def apply_inputs(self) -> None:
        """At most one queued burst, then injected splats, then one splat per moved pointer."""
        if self.splat_stack:
            self.multiple_splats(self.splat_stack.pop())

        pending: list[PendingSplat] = self.pending_splats
        self.pending_splats = []
        for splat in pending:
            self.simulation.splat(splat.x, splat.y, splat.dx, splat.dy, splat.color, self.config)

        for pointer in self.pointers:
            if pointer.moved:
                pointer.moved = False
                self.splat_pointer(pointer)

    def splat_pointer(self, pointer: Pointer) -> None:
        dx: float = pointer.delta_x * self.config.splat_force
        dy: float = pointer.delta_y * self.config.splat_force
        self.simulation.splat(pointer.texcoord_x, pointer.texcoord_y, dx, dy, pointer.color, self.config)

    def multiple_splats(self, amount: int) -> None:
        for _ in range(amount):
            r, g, b = self.colors.generate()
            color = (r * BURST_COLOR_BOOST, g * BURST_COLOR_BOOST, b * BURST_COLOR_BOOST)
            x: float = self.colors.random()
            y: float = self.colors.random()
            dx: float = BURST_FORCE * (self.colors.random() - 0.5)
            dy: float = BURST_FORCE * (self.colors.random() - 0.5)
            self.simulation.splat(x, y, dx, dy, color, self.config)

    # ---------- Input ----------
    def inject_splat(self, x: float, y: float, dx: float, dy: float, color: tuple[float, float, float]) -> None:
        """Queue a splat for the next advance()."""
        self.pending_splats.append(PendingSplat(x, y, dx, dy, color))

    def queue_burst(self, count: int) -> None:
        """Queue `count` random splats; advance() applies one queued burst per frame."""
        self.splat_stack.append(count)

    def on_resize(self, width: int, height: int) -> None:
        """Record a canvas resize, applied at the start of the next advance()."""
        if width <= 0 or height <= 0:
            return
        if (width, height) == (self.width, self.height) and self._pending_size is None:
            return
        self._pending_size = (width, height)

    def _find_pointer(self, pointer_id: int) -> Pointer | None:
        for pointer in self.pointers:
            if pointer.id == pointer_id:
                return pointer
        return None

    def pointer_down(self, pointer_id: int, x: float, y: float) -> None:
        pointer: Pointer | None = self._find_pointer(pointer_id)
        if pointer is None:
            pointer = next((p for p in self.pointers if not p.down), None)
        if pointer is None:
            pointer = Pointer()
            self.pointers.append(pointer)
        pointer.press(pointer_id, x, y, self.colors.generate())

    def pointer_move(self, pointer_id: int, x: float, y: float) -> None:
        pointer: Pointer | None = self._find_pointer(pointer_id)
        if pointer is not None:
            pointer.move(x, y, self.aspect_ratio)

    def pointer_up(self, pointer_id: int) -> None:
        pointer: Pointer | None = self._find_pointer(pointer_id)
        if pointer is not None:
            pointer.release()

    # ---------- Output ----------
    def current_dye_buffer(self) -> SwapFbo:
        return self.simulation.dye

    def render(self, target: Fbo | None = None, bloom: Fbo | None = None) -> None:
        """Present the dye into `target` (None = screen)."""
        config: FluidConfig = self.config
        self.device.set_blending(not config.transparent)

        if target is None:
            width, height = self.device.screen_size
            self.device.bind_target(None, width, height)
        else:
            width, height = target.width, target.height
            target.begin()

        if not config.transparent:
            r, g, b = config.back_color
            self.simulation.color_shader.use(r / 255.0, g / 255.0, b / 255.0, 1.0)

        keywords: list[Keyword] = []
        if config.shading:
            keywords.append(Keyword.SHADING)
        if config.bloom and bloom is not None:
            keywords.append(Keyword.BLOOM)
        self._display_shader.set_keywords(keywords)
        self._display_shader.use(self.simulation.dye.read, (1.0 / width, 1.0 / height), bloom)

        if target is not None:
            target.end()
