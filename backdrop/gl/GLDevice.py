"""OpenGL implementation of the device capability (PyOpenGL).

Requires a current OpenGL 3.3+ context, created by the window layer.
"""

import ctypes
import logging

import numpy as np
from OpenGL.GL import *  # type: ignore
from OpenGL.error import GLError

from .Device import Device, ShaderKind, AllocationError, ShaderCompileError, ProgramLinkError, ReferenceKernel
from .Texture import Filter, TextureFormat


def get_internal_format(fmt: TextureFormat) -> Constant:
    if fmt == TextureFormat.R16F:       return GL_R16F
    if fmt == TextureFormat.RG16F:      return GL_RG16F
    if fmt == TextureFormat.RGBA16F:    return GL_RGBA16F
    if fmt == TextureFormat.R32F:       return GL_R32F
    if fmt == TextureFormat.RG32F:      return GL_RG32F
    if fmt == TextureFormat.RGBA32F:    return GL_RGBA32F
    return GL_RGBA8


def get_format(fmt: TextureFormat) -> Constant:
    """Pixel transfer format for glTexImage2D."""
    if fmt.channels == 1: return GL_RED
    if fmt.channels == 2: return GL_RG
    return GL_RGBA


def get_data_type(fmt: TextureFormat) -> Constant:
    if fmt.bits == 16: return GL_HALF_FLOAT
    if fmt.bits == 32: return GL_FLOAT
    return GL_UNSIGNED_BYTE


def get_filter(filtering: Filter) -> Constant:
    return GL_LINEAR if filtering == Filter.LINEAR else GL_NEAREST


def _decode_log(log) -> str:
    if isinstance(log, bytes):
        return log.decode('utf-8', errors='replace')
    return str(log)


class GLDevice(Device):
    """Render targets are (texture, framebuffer) pairs, keyed by texture id."""

    def __init__(self, screen_width: int, screen_height: int, linear_filtering: bool = True) -> None:
        self._screen_width: int = screen_width
        self._screen_height: int = screen_height
        # Float textures are filterable in core profile 3.0+, the flag exists for testing degraded paths
        self._linear_filtering: bool = linear_filtering
        self._framebuffers: dict[int, int] = {}
        self._sizes: dict[int, tuple[int, int]] = {}
        self._uniform_cache: dict[int, dict[str, int]] = {}
        self._max_texture_size: int = int(glGetIntegerv(GL_MAX_TEXTURE_SIZE))

        self._vao: int = 0
        self._vbo: int = 0
        self._ebo: int = 0
        self._setup_quad()

        logging.info(f"OpenGL {_decode_log(glGetString(GL_VERSION))}, max texture size {self._max_texture_size}")

    def _setup_quad(self) -> None:
        vertices = np.array([-1, -1, -1, 1, 1, 1, 1, -1], dtype=np.float32)
        indices = np.array([0, 1, 2, 0, 2, 3], dtype=np.uint16)

        self._vao = glGenVertexArrays(1)
        glBindVertexArray(self._vao)

        self._vbo = glGenBuffers(1)
        glBindBuffer(GL_ARRAY_BUFFER, self._vbo)
        glBufferData(GL_ARRAY_BUFFER, vertices.nbytes, vertices, GL_STATIC_DRAW)

        self._ebo = glGenBuffers(1)
        glBindBuffer(GL_ELEMENT_ARRAY_BUFFER, self._ebo)
        glBufferData(GL_ELEMENT_ARRAY_BUFFER, indices.nbytes, indices, GL_STATIC_DRAW)

        glVertexAttribPointer(0, 2, GL_FLOAT, GL_FALSE, 0, ctypes.c_void_p(0))
        glEnableVertexAttribArray(0)

    def deallocate(self) -> None:
        for handle in list(self._framebuffers):
            self.destroy_target(handle)
        glDeleteBuffers(2, [self._vbo, self._ebo])
        glDeleteVertexArrays(1, [self._vao])

    def resize_screen(self, width: int, height: int) -> None:
        self._screen_width = width
        self._screen_height = height

    @property
    def screen_size(self) -> tuple[int, int]:
        return self._screen_width, self._screen_height

    # ---------- Render targets ----------
    def create_target(self, width: int, height: int, fmt: TextureFormat, filtering: Filter) -> int:
        if width <= 0 or height <= 0 or max(width, height) > self._max_texture_size:
            raise AllocationError(f"Invalid render target size {width}x{height} (max {self._max_texture_size})")

        tex_id: int = 0
        fbo_id: int = 0
        try:
            glActiveTexture(GL_TEXTURE0)
            tex_id = glGenTextures(1)
            glBindTexture(GL_TEXTURE_2D, tex_id)
            glTexParameteri(GL_TEXTURE_2D, GL_TEXTURE_MIN_FILTER, get_filter(filtering))
            glTexParameteri(GL_TEXTURE_2D, GL_TEXTURE_MAG_FILTER, get_filter(filtering))
            glTexParameteri(GL_TEXTURE_2D, GL_TEXTURE_WRAP_S, GL_CLAMP_TO_EDGE)
            glTexParameteri(GL_TEXTURE_2D, GL_TEXTURE_WRAP_T, GL_CLAMP_TO_EDGE)
            glTexImage2D(GL_TEXTURE_2D, 0, get_internal_format(fmt), width, height, 0,
                         get_format(fmt), get_data_type(fmt), None)

            fbo_id = glGenFramebuffers(1)
            glBindFramebuffer(GL_FRAMEBUFFER, fbo_id)
            glFramebufferTexture2D(GL_FRAMEBUFFER, GL_COLOR_ATTACHMENT0, GL_TEXTURE_2D, tex_id, 0)
            status = glCheckFramebufferStatus(GL_FRAMEBUFFER)
            if status != GL_FRAMEBUFFER_COMPLETE:
                raise AllocationError(f"Framebuffer incomplete for {fmt.name} {width}x{height} (status {status})")

            glViewport(0, 0, width, height)
            glClearColor(0.0, 0.0, 0.0, 0.0)
            glClear(GL_COLOR_BUFFER_BIT)
        except GLError as e:
            self._release(tex_id, fbo_id)
            raise AllocationError(f"Failed to allocate {fmt.name} {width}x{height}: {e}") from e
        except AllocationError:
            self._release(tex_id, fbo_id)
            raise
        finally:
            glBindFramebuffer(GL_FRAMEBUFFER, 0)
            glBindTexture(GL_TEXTURE_2D, 0)

        self._framebuffers[tex_id] = fbo_id
        self._sizes[tex_id] = (width, height)
        return tex_id

    @staticmethod
    def _release(tex_id: int, fbo_id: int) -> None:
        if fbo_id:
            glDeleteFramebuffers(1, [fbo_id])
        if tex_id:
            glDeleteTextures(1, [tex_id])

    def destroy_target(self, handle: int) -> None:
        fbo_id: int | None = self._framebuffers.pop(handle, None)
        self._sizes.pop(handle, None)
        if fbo_id is None:
            return
        self._release(handle, fbo_id)

    def supports_format(self, fmt: TextureFormat) -> bool:
        try:
            handle: int = self.create_target(4, 4, fmt, Filter.NEAREST)
        except AllocationError:
            return False
        self.destroy_target(handle)
        return True

    @property
    def supports_linear_filtering(self) -> bool:
        return self._linear_filtering

    def read_pixels(self, handle: int | None) -> np.ndarray:
        if handle is None:
            width, height = self.screen_size
            glBindFramebuffer(GL_FRAMEBUFFER, 0)
        else:
            width, height = self._sizes[handle]
            glBindFramebuffer(GL_FRAMEBUFFER, self._framebuffers[handle])
        data = glReadPixels(0, 0, width, height, GL_RGBA, GL_FLOAT)
        glBindFramebuffer(GL_FRAMEBUFFER, 0)
        if isinstance(data, bytes):
            return np.frombuffer(data, dtype=np.float32).reshape(height, width, 4).copy()
        return np.asarray(data, dtype=np.float32).reshape(height, width, 4)

    # ---------- Programs ----------
    def compile_shader(self, kind: ShaderKind, source: str, name: str = '',
                       reference: ReferenceKernel | None = None) -> int:
        shader: int = glCreateShader(GL_VERTEX_SHADER if kind == ShaderKind.VERTEX else GL_FRAGMENT_SHADER)
        glShaderSource(shader, source)
        glCompileShader(shader)
        if glGetShaderiv(shader, GL_COMPILE_STATUS) != GL_TRUE:
            log: str = _decode_log(glGetShaderInfoLog(shader))
            glDeleteShader(shader)
            logging.error(f"{name} {kind.value.upper()} SHADER ERROR: {log}")
            raise ShaderCompileError(name, log)
        return shader

    def link_program(self, vertex: int, fragment: int, name: str = '') -> int:
        program: int = glCreateProgram()
        glAttachShader(program, vertex)
        glAttachShader(program, fragment)
        glBindAttribLocation(program, 0, "aPosition")
        glLinkProgram(program)
        if glGetProgramiv(program, GL_LINK_STATUS) != GL_TRUE:
            log: str = _decode_log(glGetProgramInfoLog(program))
            glDeleteProgram(program)
            logging.error(f"{name} PROGRAM LINKING ERROR: {log}")
            raise ProgramLinkError(name, log)
        self._uniform_cache[program] = {}
        return program

    def delete_shader(self, shader: int) -> None:
        glDeleteShader(shader)

    def delete_program(self, program: int) -> None:
        self._uniform_cache.pop(program, None)
        glDeleteProgram(program)

    def use_program(self, program: int) -> None:
        glUseProgram(program)

    def _uniform_location(self, program: int, name: str) -> int:
        cache: dict[str, int] = self._uniform_cache.setdefault(program, {})
        if name not in cache:
            cache[name] = glGetUniformLocation(program, name)
        return cache[name]

    def set_uniform_f(self, program: int, name: str, *values: float) -> None:
        loc: int = self._uniform_location(program, name)
        if loc < 0:
            return  # optimized out by the compiler
        if len(values) == 1:    glUniform1f(loc, *values)
        elif len(values) == 2:  glUniform2f(loc, *values)
        elif len(values) == 3:  glUniform3f(loc, *values)
        elif len(values) == 4:  glUniform4f(loc, *values)
        else:
            raise ValueError(f"Unsupported uniform size {len(values)} for '{name}'")

    def set_uniform_i(self, program: int, name: str, value: int) -> None:
        loc: int = self._uniform_location(program, name)
        if loc >= 0:
            glUniform1i(loc, value)

    # ---------- Drawing ----------
    def bind_texture(self, slot: int, handle: int) -> None:
        glActiveTexture(GL_TEXTURE0 + slot)
        glBindTexture(GL_TEXTURE_2D, handle)

    def bind_target(self, handle: int | None, width: int, height: int) -> None:
        glBindFramebuffer(GL_FRAMEBUFFER, 0 if handle is None else self._framebuffers[handle])
        glViewport(0, 0, width, height)

    def draw_quad(self) -> None:
        glBindVertexArray(self._vao)
        glDrawElements(GL_TRIANGLES, 6, GL_UNSIGNED_SHORT, ctypes.c_void_p(0))

    def set_blending(self, enabled: bool) -> None:
        if enabled:
            glBlendFunc(GL_ONE, GL_ONE_MINUS_SRC_ALPHA)
            glEnable(GL_BLEND)
        else:
            glDisable(GL_BLEND)
