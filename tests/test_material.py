"""Keyword variant cache."""

from unittest import mock

import pytest

from backdrop.gl.Device import ShaderCompileError, ProgramLinkError, ShaderKind
from backdrop.gl.Material import Material, Keyword, variant_key, add_keywords
from backdrop.gl.NumpyDevice import NumpyDevice
from backdrop.gl.Shader import Shader

FRAGMENT = "#version 330 core\nout vec4 fragColor;\nvoid main() { fragColor = vec4(1.0); }\n"


def white(frag):
    return frag.vec4(1.0, 1.0, 1.0)


@pytest.fixture
def device():
    return NumpyDevice(4, 4)


@pytest.fixture
def material(device):
    mat = Material(device, "White", Shader.BASE_VERTEX_SHADER, FRAGMENT, white)
    yield mat
    mat.deallocate()


def fragment_compiles(spy):
    return [c for c in spy.call_args_list if c.args[0] == ShaderKind.FRAGMENT]


class TestVariantKey:

    def test_sorted_and_unique(self):
        assert variant_key([Keyword.SHADING, Keyword.BLOOM, Keyword.SHADING]) == (Keyword.BLOOM, Keyword.SHADING)

    def test_order_independent(self):
        assert variant_key([Keyword.SHADING, Keyword.BLOOM]) == variant_key([Keyword.BLOOM, Keyword.SHADING])

    def test_empty(self):
        assert variant_key([]) == ()


class TestAddKeywords:

    def test_defines_follow_version_line(self):
        source = add_keywords(FRAGMENT, (Keyword.BLOOM, Keyword.SHADING))
        lines = source.splitlines()
        assert lines[0] == "#version 330 core"
        assert lines[1] == "#define BLOOM"
        assert lines[2] == "#define SHADING"
        assert lines[3] == "out vec4 fragColor;"

    def test_prepends_without_version(self):
        assert add_keywords("void main() {}", (Keyword.SHADING,)) == "#define SHADING\nvoid main() {}"

    def test_no_keywords_leaves_source(self):
        assert add_keywords(FRAGMENT, ()) is FRAGMENT


class TestMaterialCache:

    def test_same_keywords_compile_once(self, device, material):
        with mock.patch.object(device, "compile_shader", wraps=device.compile_shader) as spy:
            first = material.set_keywords([Keyword.SHADING, Keyword.BLOOM])
            second = material.set_keywords([Keyword.BLOOM, Keyword.SHADING])
        assert first == second
        assert len(fragment_compiles(spy)) == 1

    def test_each_variant_compiles_once(self, device, material):
        with mock.patch.object(device, "compile_shader", wraps=device.compile_shader) as spy:
            plain = material.set_keywords([])
            shaded = material.set_keywords([Keyword.SHADING])
            again = material.set_keywords([])
        assert plain != shaded
        assert again == plain
        assert len(fragment_compiles(spy)) == 2
        assert len(material.programs) == 2

    def test_active_program_follows_keywords(self, material):
        shaded = material.set_keywords([Keyword.SHADING])
        assert material.active_program == shaded
        assert material.keywords == (Keyword.SHADING,)

    def test_compile_error_log_is_verbatim(self, device, material):
        log = "0:12(3): error: `foo' undeclared\n"
        with mock.patch.object(device, "compile_shader", side_effect=ShaderCompileError("White", log)):
            with pytest.raises(ShaderCompileError) as info:
                material.set_keywords([Keyword.SHADING])
        assert info.value.log == log
        assert material.programs == {}

    def test_link_error_log_is_verbatim(self, device, material):
        log = "error: fragment input vUv not written by vertex shader"
        with mock.patch.object(device, "link_program", side_effect=ProgramLinkError("White", log)):
            with pytest.raises(ProgramLinkError) as info:
                material.set_keywords([])
        assert info.value.log == log


class TestMaterialReload:

    def test_reload_recompiles_every_variant(self, material):
        material.set_keywords([])
        shaded = material.set_keywords([Keyword.SHADING])
        material.reload(Shader.BASE_VERTEX_SHADER, FRAGMENT + "\n")
        assert set(material.programs) == {(), (Keyword.SHADING,)}
        assert material.active_program == material.programs[(Keyword.SHADING,)]
        assert material.active_program != shaded

    def test_failed_reload_keeps_previous_programs(self, material):
        material.set_keywords([])
        material.set_keywords([Keyword.SHADING])
        before = dict(material.programs)
        with pytest.raises(ShaderCompileError):
            material.reload(Shader.BASE_VERTEX_SHADER, "")
        assert material.programs == before
        assert material.fragment_source == FRAGMENT
