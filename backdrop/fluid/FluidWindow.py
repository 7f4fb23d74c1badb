import glfw
import logging

from ..gl.RenderWindow import RenderWindow
from ..gl.Shader import Shader
from .FluidBackground import FluidBackground
from .FluidConfig import FluidConfig

MOUSE_POINTER_ID: int = 0


class FluidWindow(RenderWindow):
    """Interactive window: the mouse stirs the fluid.

    Keys: space pauses, B queues a burst, R clears all fields.
    """

    def __init__(self, width: int, height: int, config: FluidConfig, fps: float | None = None,
                 hot_reload: bool = False, low_power: bool = False) -> None:
        super().__init__(width, height, "Fluid Backdrop", fps=fps)
        self.config: FluidConfig = config
        self.hot_reload: bool = hot_reload
        self.low_power: bool = low_power
        self.background: FluidBackground | None = None

    def allocate(self) -> None:
        if self.device is None:
            return
        self.background = FluidBackground(self.device, self.framebuffer_width, self.framebuffer_height,
                                          self.config, low_power=self.low_power)
        if self.hot_reload:
            Shader.enable_hot_reload()

    def deallocate(self) -> None:
        if self.hot_reload:
            Shader.disable_hot_reload()
        if self.background is not None:
            self.background.deallocate()
            self.background = None

    def draw(self, dt: float) -> None:
        if self.background is None:
            return
        self.background.advance(dt)
        self.background.render()

    def on_resize(self, width: int, height: int) -> None:
        if self.background is not None:
            self.background.on_resize(width, height)

    def on_pointer_down(self, x: float, y: float) -> None:
        if self.background is not None:
            self.background.pointer_down(MOUSE_POINTER_ID, x, y)

    def on_pointer_move(self, x: float, y: float) -> None:
        if self.background is not None:
            self.background.pointer_move(MOUSE_POINTER_ID, x, y)

    def on_pointer_up(self) -> None:
        if self.background is not None:
            self.background.pointer_up(MOUSE_POINTER_ID)

    def on_key(self, key: int) -> None:
        if self.background is None:
            return
        if key == glfw.KEY_SPACE:
            self.config.paused = not self.config.paused
            logging.info(f"Paused: {self.config.paused}")
        elif key == glfw.KEY_B:
            self.background.queue_burst(int(self.background.colors.random() * 20) + 5)
        elif key == glfw.KEY_R:
            self.background.simulation.reset()
