import glfw
import logging
import time
from threading import Thread, Lock, current_thread
from typing import Callable, Optional

from .GLDevice import GLDevice
from .Utils import FpsCounter, FrameClock


class RenderWindow():
    """GLFW window with an OpenGL 3.3 core context and a render thread.

    Subclasses override allocate(), deallocate() and draw(dt). Cursor input is
    forwarded in normalized coordinates: x in [0,1] left to right, y in [0,1]
    bottom to top.
    """

    def __init__(self, width: int, height: int, name: str, v_sync: bool = True, fps: float | None = None) -> None:
        self.window_width: int = width
        self.window_height: int = height
        self.framebuffer_width: int = width
        self.framebuffer_height: int = height
        self.v_sync: bool = v_sync
        self.frame_interval: None | int = None
        if fps and fps > 0:
            self.frame_interval = int((1.0 / fps) * 1_000_000_000)
            self.v_sync = False  # Disable v-sync if we are controlling FPS manually
        self.window_name: str = name
        self.fps = FpsCounter()
        self.clock = FrameClock()

        self.device: GLDevice | None = None
        self.main_window: Optional[glfw._GLFWwindow] = None
        self.render_thread: Thread | None = None
        self.callback_lock = Lock()
        self.exit_callbacks: set[Callable[[], None]] = set()

    @property
    def is_running(self) -> bool:
        return self.render_thread is not None and self.render_thread.is_alive()

    def start(self) -> None:
        if self.render_thread is None or not self.render_thread.is_alive():
            self.render_thread = Thread(target=self.run, daemon=False)
            self.render_thread.start()

    def stop(self) -> None:
        if not self.render_thread or not self.render_thread.is_alive():
            return
        if current_thread() is self.render_thread:
            return

        if self.main_window:
            glfw.set_window_should_close(self.main_window, True)
            glfw.post_empty_event()

        self.render_thread.join(timeout=2.0)
        if self.render_thread.is_alive():
            logging.warning("Render thread didn't stop gracefully")

    def run(self) -> None:
        """Render thread entry point."""
        if not glfw.init():
            logging.error("Failed to initialize GLFW")
            self.notify_exit_callbacks()
            return
        try:
            self._setup_window()
            self.device = GLDevice(self.framebuffer_width, self.framebuffer_height)
            self.allocate()
            self._main_loop()
        except Exception:
            logging.exception("Error in render thread")
        finally:
            self.deallocate()
            if self.device is not None:
                self.device.deallocate()
                self.device = None
            self._cleanup()

    def _setup_window(self) -> None:
        glfw.window_hint(glfw.CONTEXT_VERSION_MAJOR, 3)
        glfw.window_hint(glfw.CONTEXT_VERSION_MINOR, 3)
        glfw.window_hint(glfw.OPENGL_PROFILE, glfw.OPENGL_CORE_PROFILE)
        glfw.window_hint(glfw.OPENGL_FORWARD_COMPAT, glfw.TRUE)
        glfw.window_hint(glfw.RESIZABLE, glfw.TRUE)

        self.main_window = glfw.create_window(self.window_width, self.window_height, self.window_name, None, None)
        if not self.main_window:
            raise RuntimeError("Failed to create GLFW window")

        glfw.make_context_current(self.main_window)
        glfw.swap_interval(1 if self.v_sync else 0)
        self.framebuffer_width, self.framebuffer_height = glfw.get_framebuffer_size(self.main_window)

        glfw.set_framebuffer_size_callback(self.main_window, self.framebuffer_size_callback)
        glfw.set_window_size_callback(self.main_window, self.window_size_callback)
        glfw.set_key_callback(self.main_window, self.key_callback)
        glfw.set_cursor_pos_callback(self.main_window, self.cursor_pos_callback)
        glfw.set_mouse_button_callback(self.main_window, self.mouse_button_callback)

    def _main_loop(self) -> None:
        next_frame_time = time.time_ns()
        while not glfw.window_should_close(self.main_window):
            self.draw_main_window()
            glfw.poll_events()

            if not self.v_sync and self.frame_interval:
                next_frame_time += self.frame_interval
                now: int = time.time_ns()
                remaining: int = next_frame_time - now
                if remaining > 0:
                    time.sleep(remaining / 1_000_000_000)
                elif -remaining > self.frame_interval:
                    # behind schedule, restart the cadence instead of catching up
                    logging.debug(f"Frame time exceeded by {-remaining / 1_000_000:.1f} ms")
                    next_frame_time = now

    def _cleanup(self) -> None:
        if self.main_window:
            glfw.destroy_window(self.main_window)
            self.main_window = None
        glfw.terminate()
        self.notify_exit_callbacks()

    def draw_main_window(self) -> None:
        glfw.set_window_title(self.main_window,
                              f'{self.window_name} - FPS: {self.fps.get_fps()} (Min: {self.fps.get_min_fps()})')
        self.draw(self.clock.tick())
        glfw.swap_buffers(self.main_window)
        self.fps.tick()

    # OVERRIDES
    def allocate(self) -> None:
        """Create GPU resources, called on the render thread once the context is current."""

    def deallocate(self) -> None:
        """Release GPU resources."""

    def draw(self, dt: float) -> None:
        pass

    def on_resize(self, width: int, height: int) -> None:
        pass

    def on_pointer_down(self, x: float, y: float) -> None:
        pass

    def on_pointer_move(self, x: float, y: float) -> None:
        pass

    def on_pointer_up(self) -> None:
        pass

    def on_key(self, key: int) -> None:
        pass

    # CALLBACKS
    def framebuffer_size_callback(self, window, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            return
        self.framebuffer_width = width
        self.framebuffer_height = height
        self.on_resize(width, height)

    def window_size_callback(self, window, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            return
        self.window_width = width
        self.window_height = height

    def normalized_cursor(self) -> tuple[float, float]:
        x, y = glfw.get_cursor_pos(self.main_window)
        return x / self.window_width, 1.0 - y / self.window_height

    def cursor_pos_callback(self, window, x: float, y: float) -> None:
        self.on_pointer_move(x / self.window_width, 1.0 - y / self.window_height)

    def mouse_button_callback(self, window, button: int, action: int, mods: int) -> None:
        if button != glfw.MOUSE_BUTTON_LEFT:
            return
        if action == glfw.PRESS:
            self.on_pointer_down(*self.normalized_cursor())
        elif action == glfw.RELEASE:
            self.on_pointer_up()

    def key_callback(self, window, key: int, scancode: int, action: int, mods: int) -> None:
        if action != glfw.PRESS:
            return
        if key == glfw.KEY_ESCAPE:
            glfw.set_window_should_close(window, True)
            return
        self.on_key(key)

    def add_exit_callback(self, callback: Callable[[], None]) -> None:
        with self.callback_lock:
            self.exit_callbacks.add(callback)

    def notify_exit_callbacks(self) -> None:
        with self.callback_lock:
            callbacks = list(self.exit_callbacks)
        for callback in callbacks:
            callback()
