import time
import inspect
import threading
import logging
from pathlib import Path
from typing import Iterable

from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler

from .Device import Device, DeviceError, ShaderCompileError, ReferenceKernel
from .Material import Material, Keyword


class FileModifiedHandler(FileSystemEventHandler):
    def __init__(self, callback):
        self.callback = callback
        self.last_modified: float = time.time()

    def on_modified(self, event):
        if time.time() - self.last_modified < 0.5:
            return
        self.last_modified = time.time()
        if not event.is_directory:
            self.callback(event.src_path)


def monitor_path(path, callback):
    event_handler = FileModifiedHandler(callback)
    observer = Observer()
    observer.schedule(event_handler, path=path, recursive=False)
    observer.start()
    return observer


class Shader():
    """Base class for a full-screen pass.

    Sources are looked up next to the subclass file: `<classname>.frag` is
    required, `<classname>.vert` is optional and defaults to BASE_VERTEX_SHADER.
    Subclasses implement `use(...)` (bind, set uniforms, attach inputs, draw) and
    a static `reference(frag)` kernel that the numpy device evaluates instead of GLSL.
    """

    # Class-level hot-reload management (one observer per directory)
    _directory_observers = {}  # {Path: Observer}
    _hot_reload_enabled = False
    _monitored_shaders = []
    _observer_lock = threading.Lock()

    VERTEX_SUFFIX = '.vert'
    FRAGMENT_SUFFIX = '.frag'

    # Neighbour coordinates are offset by one texel of the target (texelSize uniform)
    BASE_VERTEX_SHADER = """#version 330 core

layout(location = 0) in vec2 aPosition;

uniform vec2 texelSize;

out vec2 vUv;
out vec2 vL;
out vec2 vR;
out vec2 vT;
out vec2 vB;

void main() {
    vUv = aPosition * 0.5 + 0.5;
    vL = vUv - vec2(texelSize.x, 0.0);
    vR = vUv + vec2(texelSize.x, 0.0);
    vT = vUv + vec2(0.0, texelSize.y);
    vB = vUv - vec2(0.0, texelSize.y);
    gl_Position = vec4(aPosition, 0.0, 1.0);
}
"""

    reference: ReferenceKernel | None = None

    def __init__(self, device: Device, shader_name: str = '') -> None:
        self.device: Device = device
        self.allocated: bool = False
        self.shader_name: str = shader_name or self.__class__.__name__
        self.material: Material | None = None
        self.need_reload: bool = False
        self._reload_lock = threading.Lock()

        shader_name_normalized = self.shader_name.lower()
        self.shader_dir: Path = Path(inspect.getfile(self.__class__)).resolve().parent
        self.vertex_file_path = self._find_shader_file(self.shader_dir, shader_name_normalized, self.VERTEX_SUFFIX)
        self.fragment_file_path = self._find_shader_file(self.shader_dir, shader_name_normalized, self.FRAGMENT_SUFFIX)

    def allocate(self, keywords: Iterable[Keyword] = ()) -> None:
        """Compile the program for `keywords`. Safe to call multiple times."""
        if self.allocated:
            return

        with Shader._observer_lock:
            if self not in Shader._monitored_shaders:
                Shader._monitored_shaders.append(self)
            if Shader._hot_reload_enabled:
                Shader._watch_directory(self.shader_dir)

        vertex_source, fragment_source = self._load_sources()
        material = Material(self.device, self.shader_name, vertex_source, fragment_source, self.reference)
        material.set_keywords(keywords)
        self.material = material
        self.allocated = True

    def deallocate(self) -> None:
        self.allocated = False

        with Shader._observer_lock:
            if self in Shader._monitored_shaders:
                Shader._monitored_shaders.remove(self)

        if self.material is not None:
            self.material.deallocate()
        self.material = None

    def reload(self) -> bool:
        """Recompile if a source file changed. On failure the previous programs stay in use."""
        if not self.need_reload:
            return False

        with self._reload_lock:
            self.need_reload = False
            if self.material is None:
                return False
            try:
                vertex_source, fragment_source = self._load_sources()
                self.material.reload(vertex_source, fragment_source)
            except DeviceError as e:
                logging.error(f"{self.shader_name} reload failed, keeping previous program: {e}")
                return False
            logging.info(f"{self.shader_name} reloaded successfully")
            return True

    def _on_file_changed(self, file_path: Path) -> None:
        if file_path in (self.vertex_file_path, self.fragment_file_path):
            self.need_reload = True

    def _load_sources(self) -> tuple[str, str]:
        vertex_source: str = ''
        if self.vertex_file_path:
            vertex_source = self.read_shader_source(self.vertex_file_path)
        if not vertex_source:
            vertex_source = self.BASE_VERTEX_SHADER

        fragment_source: str = ''
        if self.fragment_file_path:
            fragment_source = self.read_shader_source(self.fragment_file_path)
        if not fragment_source:
            log = f"{self.shader_name}: no fragment source {self.shader_name.lower()}{self.FRAGMENT_SUFFIX} in {self.shader_dir}"
            logging.error(log)
            raise ShaderCompileError(self.shader_name, log)
        return vertex_source, fragment_source

    # PROGRAM STATE
    @property
    def program(self) -> int:
        if self.material is None or self.material.active_program is None:
            raise RuntimeError(f"{self.shader_name} is not allocated")
        return self.material.active_program

    def set_keywords(self, keywords: Iterable[Keyword]) -> None:
        if self.material is None:
            raise RuntimeError(f"{self.shader_name} is not allocated")
        self.material.set_keywords(keywords)

    def bind(self) -> None:
        if self.material is None:
            raise RuntimeError(f"{self.shader_name} is not allocated")
        self.material.bind()

    def uniform_f(self, name: str, *values: float) -> None:
        self.device.set_uniform_f(self.program, name, *values)

    def uniform_i(self, name: str, value: int) -> None:
        self.device.set_uniform_i(self.program, name, value)

    def draw(self) -> None:
        self.device.draw_quad()

    # STATIC METHODS
    @staticmethod
    def read_shader_source(filename: Path) -> str:
        try:
            with open(filename, 'r') as file:
                return file.read()
        except FileNotFoundError:
            return ''

    @staticmethod
    def _find_shader_file(shader_dir: Path, shader_name_normalized: str, suffix: str) -> Path | None:
        shader_path = shader_dir / f"{shader_name_normalized}{suffix}"
        return shader_path if shader_path.exists() else None

    # CLASS METHODS FOR HOT-RELOAD MANAGEMENT
    @classmethod
    def enable_hot_reload(cls) -> None:
        """Watch the directory of every registered shader and mark edited ones for reload."""
        with cls._observer_lock:
            cls._hot_reload_enabled = True
            for shader in cls._monitored_shaders:
                cls._watch_directory(shader.shader_dir)
            if cls._directory_observers:
                logging.info(f"Hot-reload enabled for {len(cls._directory_observers)} directories")

    @classmethod
    def _watch_directory(cls, shader_dir: Path) -> None:
        if shader_dir not in cls._directory_observers:
            observer = monitor_path(str(shader_dir), cls._on_any_file_changed)
            cls._directory_observers[shader_dir] = observer
            logging.info(f"Watching shader directory: {shader_dir}")

    @classmethod
    def disable_hot_reload(cls) -> None:
        with cls._observer_lock:
            cls._hot_reload_enabled = False
            for observer in cls._directory_observers.values():
                observer.stop()
                observer.join(timeout=2.0)
            cls._directory_observers.clear()
            logging.info("Hot-reload disabled")

    @classmethod
    def _on_any_file_changed(cls, filepath: str) -> None:
        file_path = Path(filepath).resolve()
        with cls._observer_lock:
            for shader in cls._monitored_shaders:
                shader._on_file_changed(file_path)
