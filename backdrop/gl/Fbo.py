from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .Device import Device
from .Texture import Filter, TextureFormat

if TYPE_CHECKING:
    from .Shader import Shader


class Fbo():
    """Single render target: one texture plus its draw destination.

    Storage is allocated (and cleared to zero) in the constructor and never
    changes size. AllocationError from the device propagates unchanged.
    """

    def __init__(self, device: Device, width: int, height: int, fmt: TextureFormat, filtering: Filter) -> None:
        self.device: Device = device
        self.width: int = width
        self.height: int = height
        self.format: TextureFormat = fmt
        self.filtering: Filter = filtering
        self.handle: int = device.create_target(width, height, fmt, filtering)
        self.allocated: bool = True

    @property
    def texel_size(self) -> tuple[float, float]:
        return 1.0 / self.width, 1.0 / self.height

    def attach(self, slot: int) -> int:
        """Bind for sampling at texture unit `slot`, returns the slot for the sampler uniform."""
        self.device.bind_texture(slot, self.handle)
        return slot

    def begin(self) -> None:
        self.device.bind_target(self.handle, self.width, self.height)

    def end(self) -> None:
        width, height = self.device.screen_size
        self.device.bind_target(None, width, height)

    def deallocate(self) -> None:
        if not self.allocated: return
        self.allocated = False
        self.device.destroy_target(self.handle)

    def __repr__(self) -> str:
        return f"Fbo({self.handle}, {self.width}x{self.height}, {self.format.name})"


class SwapFbo():
    """Two render targets with exchangeable read/write roles (ping-pong).

    Roles are two plain indices into `fbos`; swap() exchanges the indices and
    never touches texture contents.
    """

    def __init__(self, device: Device, width: int, height: int, fmt: TextureFormat, filtering: Filter) -> None:
        self.device: Device = device
        self.width: int = width
        self.height: int = height
        self.format: TextureFormat = fmt
        self.filtering: Filter = filtering
        first = Fbo(device, width, height, fmt, filtering)
        try:
            second = Fbo(device, width, height, fmt, filtering)
        except Exception:
            first.deallocate()
            raise
        self.fbos: list[Fbo] = [first, second]
        self.read_index: int = 0
        self.write_index: int = 1

    @property
    def read(self) -> Fbo:
        return self.fbos[self.read_index]

    @property
    def write(self) -> Fbo:
        return self.fbos[self.write_index]

    @property
    def texel_size(self) -> tuple[float, float]:
        return 1.0 / self.width, 1.0 / self.height

    def swap(self) -> None:
        self.read_index, self.write_index = self.write_index, self.read_index

    def begin(self) -> None:
        """Draw into the write target."""
        self.write.begin()

    def end(self) -> None:
        self.write.end()

    def resize(self, width: int, height: int, copy_shader: Shader) -> SwapFbo:
        """Reallocate at a new size, carrying the read contents over with a copy pass.

        GPU storage cannot grow in place, so a new pair is allocated, the old
        read target is drawn into it and the old pair is released. On
        AllocationError the pair is left untouched.
        """
        if width == self.width and height == self.height:
            return self

        old_fbos: list[Fbo] = self.fbos
        old_read: Fbo = self.read

        new_read = Fbo(self.device, width, height, self.format, self.filtering)
        try:
            new_write = Fbo(self.device, width, height, self.format, self.filtering)
        except Exception:
            new_read.deallocate()
            raise

        self.fbos = [new_read, new_write]
        self.read_index = 0
        self.write_index = 1
        self.copy_from(old_read, copy_shader)

        for fbo in old_fbos:
            fbo.deallocate()
        logging.debug(f"SwapFbo resized {self.width}x{self.height} -> {width}x{height}")
        self.width = width
        self.height = height
        return self

    def copy_from(self, source: Fbo, copy_shader: Shader) -> None:
        """Draw `source` into the read target, scaling it to this size."""
        self.read.begin()
        copy_shader.use(source)
        self.read.end()

    def deallocate(self) -> None:
        for fbo in self.fbos:
            fbo.deallocate()

    def __repr__(self) -> str:
        return f"SwapFbo(read={self.read.handle}, write={self.write.handle}, {self.width}x{self.height})"
