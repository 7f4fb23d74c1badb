"""Shader program cache keyed by feature keywords.

Each distinct keyword set compiles exactly once: the keywords become
`#define` lines in front of the shared fragment body and the linked program
is kept for the lifetime of the material.
"""

import logging
from enum import Enum
from typing import Iterable

from .Device import Device, DeviceError, ShaderKind, ReferenceKernel


class Keyword(Enum):
    SHADING =           'SHADING'
    BLOOM =             'BLOOM'
    MANUAL_FILTERING =  'MANUAL_FILTERING'


VariantKey = tuple[Keyword, ...]


def variant_key(keywords: Iterable[Keyword]) -> VariantKey:
    """Canonical key: unique keywords in name order."""
    return tuple(sorted(set(keywords), key=lambda k: k.value))


def add_keywords(source: str, key: VariantKey) -> str:
    """Prepend one #define per keyword to the shader body (after #version, which must stay first)."""
    if not key:
        return source
    defines: str = ''.join(f'#define {keyword.value}\n' for keyword in key)
    stripped: str = source.lstrip()
    if stripped.startswith('#version'):
        version, _, body = stripped.partition('\n')
        return f'{version}\n{defines}{body}'
    return defines + source


class Material:
    def __init__(self, device: Device, name: str, vertex_source: str, fragment_source: str,
                 reference: ReferenceKernel | None = None) -> None:
        self.device: Device = device
        self.name: str = name
        self.vertex_source: str = vertex_source
        self.fragment_source: str = fragment_source
        self.reference: ReferenceKernel | None = reference

        self.programs: dict[VariantKey, int] = {}
        self.active_program: int | None = None
        self.keywords: VariantKey = ()
        self._vertex_shader: int | None = None

    def _vertex(self) -> int:
        if self._vertex_shader is None:
            self._vertex_shader = self.device.compile_shader(ShaderKind.VERTEX, self.vertex_source, self.name)
        return self._vertex_shader

    def _create_program(self, key: VariantKey, vertex_shader: int, fragment_source: str) -> int:
        fragment: int = self.device.compile_shader(
            ShaderKind.FRAGMENT, add_keywords(fragment_source, key), self.name, self.reference)
        try:
            return self.device.link_program(vertex_shader, fragment, self.name)
        finally:
            self.device.delete_shader(fragment)

    def set_keywords(self, keywords: Iterable[Keyword]) -> int:
        """Select (compiling on first use) the program for this keyword set."""
        key: VariantKey = variant_key(keywords)
        program: int | None = self.programs.get(key)
        if program is None:
            program = self._create_program(key, self._vertex(), self.fragment_source)
            self.programs[key] = program
            logging.debug(f"{self.name}: compiled variant {[k.value for k in key]}")
        self.keywords = key
        self.active_program = program
        return program

    def bind(self) -> None:
        if self.active_program is None:
            self.set_keywords(self.keywords)
        self.device.use_program(self.active_program)  # type: ignore[arg-type]

    def reload(self, vertex_source: str, fragment_source: str) -> None:
        """Recompile every cached variant from new sources, all or nothing."""
        new_vertex: int = self.device.compile_shader(ShaderKind.VERTEX, vertex_source, self.name)
        new_programs: dict[VariantKey, int] = {}
        try:
            for key in self.programs:
                new_programs[key] = self._create_program(key, new_vertex, fragment_source)
        except DeviceError:
            for program in new_programs.values():
                self.device.delete_program(program)
            self.device.delete_shader(new_vertex)
            raise

        self._delete_programs()
        self.vertex_source = vertex_source
        self.fragment_source = fragment_source
        self._vertex_shader = new_vertex
        self.programs = new_programs
        self.active_program = new_programs.get(self.keywords)

    def _delete_programs(self) -> None:
        for program in self.programs.values():
            self.device.delete_program(program)
        self.programs.clear()
        if self._vertex_shader is not None:
            self.device.delete_shader(self._vertex_shader)
            self._vertex_shader = None

    def deallocate(self) -> None:
        self._delete_programs()
        self.active_program = None
