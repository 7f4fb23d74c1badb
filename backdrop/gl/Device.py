"""Abstract GPU capability used by the simulation core.

A device owns render targets (texture + draw destination), compiles and links
shader programs and draws full-screen quads. Everything above this layer talks
in integer handles, so the same pipeline runs on OpenGL (GLDevice) or on the
numpy reference implementation (NumpyDevice).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable

import numpy as np

from .Texture import Filter, TextureFormat, FORMAT_FALLBACK, HALF_FLOAT_TIER, FLOAT_TIER


class ShaderKind(Enum):
    VERTEX =    'vertex'
    FRAGMENT =  'fragment'


class DeviceError(Exception):
    """Base class for fatal device failures."""


class AllocationError(DeviceError):
    """Texture or render target could not be created."""


class ShaderCompileError(DeviceError):
    """Shader compilation failed. `log` holds the compiler output verbatim."""

    def __init__(self, name: str, log: str) -> None:
        super().__init__(log)
        self.name: str = name
        self.log: str = log


class ProgramLinkError(DeviceError):
    """Program linking failed. `log` holds the linker output verbatim."""

    def __init__(self, name: str, log: str) -> None:
        super().__init__(log)
        self.name: str = name
        self.log: str = log


class FeedbackLoopError(DeviceError):
    """A draw sampled the texture it was rendering into."""


@dataclass(frozen=True)
class Capabilities:
    """Result of the one-time capability negotiation."""
    r: TextureFormat
    rg: TextureFormat
    rgba: TextureFormat
    linear_filtering: bool

    @property
    def filtering(self) -> Filter:
        return Filter.LINEAR if self.linear_filtering else Filter.NEAREST


# Reference kernel signature used by NumpyDevice: fragment context -> (h, w, 4) array
ReferenceKernel = Callable[..., np.ndarray]


class Device(ABC):

    # ---------- Render targets ----------
    @abstractmethod
    def create_target(self, width: int, height: int, fmt: TextureFormat, filtering: Filter) -> int:
        """Allocate a zero-cleared render target. Raises AllocationError."""

    @abstractmethod
    def destroy_target(self, handle: int) -> None: ...

    @abstractmethod
    def supports_format(self, fmt: TextureFormat) -> bool: ...

    @property
    @abstractmethod
    def supports_linear_filtering(self) -> bool: ...

    @abstractmethod
    def read_pixels(self, handle: int | None) -> np.ndarray:
        """Return target contents as float32 (height, width, 4), row 0 at the bottom."""

    # ---------- Programs ----------
    @abstractmethod
    def compile_shader(self, kind: ShaderKind, source: str, name: str = '',
                       reference: ReferenceKernel | None = None) -> int:
        """Compile shader source. Raises ShaderCompileError."""

    @abstractmethod
    def link_program(self, vertex: int, fragment: int, name: str = '') -> int:
        """Link a vertex and fragment shader. Raises ProgramLinkError."""

    @abstractmethod
    def delete_shader(self, shader: int) -> None: ...

    @abstractmethod
    def delete_program(self, program: int) -> None: ...

    @abstractmethod
    def use_program(self, program: int) -> None: ...

    @abstractmethod
    def set_uniform_f(self, program: int, name: str, *values: float) -> None: ...

    @abstractmethod
    def set_uniform_i(self, program: int, name: str, value: int) -> None: ...

    # ---------- Drawing ----------
    @abstractmethod
    def bind_texture(self, slot: int, handle: int) -> None: ...

    @abstractmethod
    def bind_target(self, handle: int | None, width: int, height: int) -> None:
        """Route subsequent draws into `handle` (None = screen) and set the viewport."""

    @abstractmethod
    def draw_quad(self) -> None: ...

    @abstractmethod
    def set_blending(self, enabled: bool) -> None:
        """Toggle ONE, ONE_MINUS_SRC_ALPHA blending."""

    @property
    @abstractmethod
    def screen_size(self) -> tuple[int, int]: ...

    @abstractmethod
    def resize_screen(self, width: int, height: int) -> None:
        """Update the default framebuffer size after a window resize."""

    # ---------- Capability negotiation ----------
    def get_supported_format(self, fmt: TextureFormat) -> TextureFormat | None:
        """Return `fmt` or the nearest wider renderable format, None if there is none."""
        if self.supports_format(fmt):
            return fmt
        wider: TextureFormat | None = FORMAT_FALLBACK.get(fmt)
        if wider is None:
            return None
        return self.get_supported_format(wider)

    def capabilities(self) -> Capabilities:
        for tier in (HALF_FLOAT_TIER, FLOAT_TIER):
            formats = [self.get_supported_format(fmt) for fmt in tier]
            if all(f is not None for f in formats):
                r, rg, rgba = formats
                if tier is not HALF_FLOAT_TIER:
                    logging.info("Half float render targets unavailable, using 32 bit float")
                return Capabilities(r, rg, rgba, self.supports_linear_filtering)  # type: ignore[arg-type]

        logging.warning("No float render targets available, simulation runs at 8 bit precision")
        return Capabilities(TextureFormat.RGBA8, TextureFormat.RGBA8, TextureFormat.RGBA8,
                            self.supports_linear_filtering)
