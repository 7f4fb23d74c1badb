"""CPU reference implementation of the device capability.

Render targets are float32 numpy arrays laid out (height, width, channels) with
row 0 at the bottom, matching OpenGL texture coordinates. Programs cannot run
GLSL, so every fragment shader is compiled together with a reference kernel
that evaluates the same math over the whole target at once. Keywords are read
back from the composed source text, so variants behave exactly like the
preprocessor-driven GLSL ones.

Used for headless runs and as the test device.
"""

from __future__ import annotations

import itertools
import re
from dataclasses import dataclass, field

import numpy as np

from .Device import (Device, ShaderKind, AllocationError, ShaderCompileError, ProgramLinkError,
                     FeedbackLoopError, ReferenceKernel)
from .Texture import Filter, TextureFormat

DEFINE_PATTERN = re.compile(r'^\s*#define\s+(\w+)', re.MULTILINE)


@dataclass(frozen=True)
class DrawCall:
    """One full-screen quad: program name, destination (None = screen) and sampled targets."""
    program: str
    target: int | None
    sampled: tuple[int, ...]


@dataclass
class _Target:
    data: np.ndarray
    fmt: TextureFormat
    filtering: Filter

    @property
    def width(self) -> int:
        return self.data.shape[1]

    @property
    def height(self) -> int:
        return self.data.shape[0]


@dataclass
class _Shader:
    kind: ShaderKind
    name: str
    defines: frozenset[str]
    reference: ReferenceKernel | None


@dataclass
class _Program:
    name: str
    fragment: _Shader
    uniforms: dict[str, tuple] = field(default_factory=dict)


def sample(data: np.ndarray, filtering: Filter, u: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Sample with clamp-to-edge addressing, returning RGBA like a GL sampler (missing channels 0, alpha 1)."""
    height, width, channels = data.shape
    if filtering == Filter.LINEAR:
        s: np.ndarray = u * width - 0.5
        t: np.ndarray = v * height - 0.5
        x0: np.ndarray = np.floor(s)
        y0: np.ndarray = np.floor(t)
        fx: np.ndarray = (s - x0)[..., None]
        fy: np.ndarray = (t - y0)[..., None]
        x0i = np.clip(x0.astype(np.int64), 0, width - 1)
        x1i = np.clip(x0.astype(np.int64) + 1, 0, width - 1)
        y0i = np.clip(y0.astype(np.int64), 0, height - 1)
        y1i = np.clip(y0.astype(np.int64) + 1, 0, height - 1)
        bottom = data[y0i, x0i] * (1.0 - fx) + data[y0i, x1i] * fx
        top = data[y1i, x0i] * (1.0 - fx) + data[y1i, x1i] * fx
        texels: np.ndarray = bottom * (1.0 - fy) + top * fy
    else:
        xi = np.clip(np.floor(u * width).astype(np.int64), 0, width - 1)
        yi = np.clip(np.floor(v * height).astype(np.int64), 0, height - 1)
        texels = data[yi, xi]

    result: np.ndarray = np.zeros(texels.shape[:-1] + (4,), dtype=np.float32)
    result[..., 3] = 1.0
    result[..., :channels] = texels
    return result


class Fragment:
    """Evaluation context handed to a reference kernel for one draw.

    `u` and `v` hold the texture coordinate of every destination texel centre,
    which is what `vUv` interpolates to in the base vertex shader.
    """

    def __init__(self, device: NumpyDevice, program: _Program, width: int, height: int,
                 destination: int | None) -> None:
        self.width: int = width
        self.height: int = height
        self.defines: frozenset[str] = program.fragment.defines
        self.u, self.v = np.meshgrid((np.arange(width, dtype=np.float32) + 0.5) / width,
                                     (np.arange(height, dtype=np.float32) + 0.5) / height)
        self.sampled: list[int] = []
        self._device: NumpyDevice = device
        self._program: _Program = program
        self._destination: int | None = destination

    def defined(self, keyword: str) -> bool:
        return keyword in self.defines

    def neighbours(self) -> tuple[tuple[np.ndarray, np.ndarray], ...]:
        """vL, vR, vT, vB as computed by the base vertex shader from `texelSize`."""
        tx, ty = self._program.uniforms.get('texelSize', (0.0, 0.0))
        u, v = self.u, self.v
        return (u - tx, v), (u + tx, v), (u, v + ty), (u, v - ty)

    def vec4(self, r, g=0.0, b=0.0, a=1.0) -> np.ndarray:
        """Assemble a (height, width, 4) output from per-channel arrays or scalars."""
        out: np.ndarray = np.empty((self.height, self.width, 4), dtype=np.float32)
        out[..., 0] = r
        out[..., 1] = g
        out[..., 2] = b
        out[..., 3] = a
        return out

    def uniform(self, name: str):
        """Uniform value: a float for scalars, a tuple for vectors. Unset uniforms read as 0 like in GL."""
        values: tuple = self._program.uniforms.get(name, (0.0,))
        return values[0] if len(values) == 1 else values

    def texture(self, sampler: str, u: np.ndarray, v: np.ndarray) -> np.ndarray:
        slot = int(self.uniform(sampler))
        handle: int | None = self._device._units.get(slot)
        if handle is None or handle not in self._device._targets:
            result = np.zeros(u.shape + (4,), dtype=np.float32)
            result[..., 3] = 1.0
            return result
        if handle == self._destination:
            raise FeedbackLoopError(f"{self._program.name}: '{sampler}' samples the bound destination {handle}")
        if handle not in self.sampled:
            self.sampled.append(handle)
        target: _Target = self._device._targets[handle]
        filtering: Filter = target.filtering if self._device.supports_linear_filtering else Filter.NEAREST
        return sample(target.data, filtering, u, v)


class NumpyDevice(Device):

    def __init__(self, screen_width: int = 256, screen_height: int = 256,
                 linear_filtering: bool = True,
                 formats: set[TextureFormat] | None = None,
                 max_texture_size: int = 8192,
                 record_draws: bool = False) -> None:
        self._linear_filtering: bool = linear_filtering
        self._formats: set[TextureFormat] = set(TextureFormat) if formats is None else set(formats)
        self._max_texture_size: int = max_texture_size
        self._ids = itertools.count(1)

        self._targets: dict[int, _Target] = {}
        self._shaders: dict[int, _Shader] = {}
        self._programs: dict[int, _Program] = {}
        self._units: dict[int, int] = {}
        self._current_program: int | None = None
        self._current_target: int | None = None
        self._blending: bool = False
        self._screen: _Target = self._make_screen(screen_width, screen_height)

        self.record_draws: bool = record_draws
        self.draws: list[DrawCall] = []

    @staticmethod
    def _make_screen(width: int, height: int) -> _Target:
        return _Target(np.zeros((height, width, 4), dtype=np.float32), TextureFormat.RGBA8, Filter.NEAREST)

    def resize_screen(self, width: int, height: int) -> None:
        self._screen = self._make_screen(width, height)

    @property
    def screen_size(self) -> tuple[int, int]:
        return self._screen.width, self._screen.height

    @property
    def target_count(self) -> int:
        return len(self._targets)

    # ---------- Render targets ----------
    def create_target(self, width: int, height: int, fmt: TextureFormat, filtering: Filter) -> int:
        if width <= 0 or height <= 0 or max(width, height) > self._max_texture_size:
            raise AllocationError(f"Invalid render target size {width}x{height} (max {self._max_texture_size})")
        if fmt not in self._formats:
            raise AllocationError(f"Format {fmt.name} is not renderable")
        handle: int = next(self._ids)
        self._targets[handle] = _Target(np.zeros((height, width, fmt.channels), dtype=np.float32), fmt, filtering)
        return handle

    def destroy_target(self, handle: int) -> None:
        self._targets.pop(handle, None)
        for slot in [s for s, h in self._units.items() if h == handle]:
            del self._units[slot]

    def supports_format(self, fmt: TextureFormat) -> bool:
        return fmt in self._formats

    @property
    def supports_linear_filtering(self) -> bool:
        return self._linear_filtering

    def read_pixels(self, handle: int | None) -> np.ndarray:
        target: _Target = self._screen if handle is None else self._targets[handle]
        result = np.zeros((target.height, target.width, 4), dtype=np.float32)
        result[..., 3] = 1.0
        result[..., :target.fmt.channels] = target.data
        return result

    def write_pixels(self, handle: int, data: np.ndarray) -> None:
        """Upload (height, width, >=channels) data into a target."""
        target: _Target = self._targets[handle]
        target.data[...] = np.asarray(data, dtype=np.float32)[..., :target.fmt.channels]

    # ---------- Programs ----------
    def compile_shader(self, kind: ShaderKind, source: str, name: str = '',
                       reference: ReferenceKernel | None = None) -> int:
        if not source.strip():
            raise ShaderCompileError(name, f"{name}: empty shader source")
        if kind == ShaderKind.FRAGMENT and reference is None:
            raise ShaderCompileError(name, f"{name}: no reference kernel for fragment shader")
        handle: int = next(self._ids)
        self._shaders[handle] = _Shader(kind, name, frozenset(DEFINE_PATTERN.findall(source)), reference)
        return handle

    def link_program(self, vertex: int, fragment: int, name: str = '') -> int:
        vs: _Shader | None = self._shaders.get(vertex)
        fs: _Shader | None = self._shaders.get(fragment)
        if vs is None or vs.kind != ShaderKind.VERTEX:
            raise ProgramLinkError(name, f"{name}: missing vertex shader")
        if fs is None or fs.kind != ShaderKind.FRAGMENT:
            raise ProgramLinkError(name, f"{name}: missing fragment shader")
        handle: int = next(self._ids)
        self._programs[handle] = _Program(name or fs.name, fs)
        return handle

    def delete_shader(self, shader: int) -> None:
        self._shaders.pop(shader, None)

    def delete_program(self, program: int) -> None:
        self._programs.pop(program, None)
        if self._current_program == program:
            self._current_program = None

    def use_program(self, program: int) -> None:
        self._current_program = program

    def set_uniform_f(self, program: int, name: str, *values: float) -> None:
        self._programs[program].uniforms[name] = tuple(float(v) for v in values)

    def set_uniform_i(self, program: int, name: str, value: int) -> None:
        self._programs[program].uniforms[name] = (int(value),)

    # ---------- Drawing ----------
    def bind_texture(self, slot: int, handle: int) -> None:
        self._units[slot] = handle

    def bind_target(self, handle: int | None, width: int, height: int) -> None:
        if handle is not None and handle not in self._targets:
            raise ValueError(f"Unknown render target {handle}")
        self._current_target = handle

    def draw_quad(self) -> None:
        if self._current_program is None:
            raise RuntimeError("draw_quad without an active program")
        program: _Program = self._programs[self._current_program]
        target: _Target = self._screen if self._current_target is None else self._targets[self._current_target]

        fragment = Fragment(self, program, target.width, target.height, self._current_target)
        color: np.ndarray = np.broadcast_to(
            np.asarray(program.fragment.reference(fragment), dtype=np.float32),  # type: ignore[misc]
            (target.height, target.width, 4))

        if self._blending:
            destination: np.ndarray = self.read_pixels(self._current_target)
            color = color + destination * (1.0 - color[..., 3:4])

        channels: int = target.fmt.channels
        if target.fmt.is_float:
            target.data[...] = color[..., :channels]
        else:
            target.data[...] = np.clip(color[..., :channels], 0.0, 1.0)

        if self.record_draws:
            self.draws.append(DrawCall(program.name, self._current_target, tuple(fragment.sampled)))

    def set_blending(self, enabled: bool) -> None:
        self._blending = enabled
