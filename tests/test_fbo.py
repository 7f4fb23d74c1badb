"""Render targets and ping-pong pairs."""

import numpy as np
import pytest

from backdrop.gl.Device import AllocationError
from backdrop.gl.Fbo import Fbo, SwapFbo
from backdrop.gl.NumpyDevice import NumpyDevice
from backdrop.gl.Texture import Filter, TextureFormat
from backdrop.fluid.shaders import Copy

from conftest import fill


class TestFbo:

    def test_allocated_cleared_to_zero(self, device):
        fbo = Fbo(device, 8, 4, TextureFormat.RGBA16F, Filter.LINEAR)
        pixels = device.read_pixels(fbo.handle)
        assert pixels.shape == (4, 8, 4)
        assert np.all(pixels[..., :3] == 0.0)

    def test_texel_size(self, device):
        fbo = Fbo(device, 8, 4, TextureFormat.RG16F, Filter.NEAREST)
        assert fbo.texel_size == (1.0 / 8, 1.0 / 4)

    def test_attach_returns_slot(self, device):
        fbo = Fbo(device, 4, 4, TextureFormat.R16F, Filter.NEAREST)
        assert fbo.attach(3) == 3

    def test_oversized_allocation_raises(self):
        device = NumpyDevice(max_texture_size=64)
        with pytest.raises(AllocationError):
            Fbo(device, 128, 128, TextureFormat.RGBA16F, Filter.LINEAR)

    def test_unsupported_format_raises(self):
        device = NumpyDevice(formats={TextureFormat.RGBA8})
        with pytest.raises(AllocationError):
            Fbo(device, 8, 8, TextureFormat.R16F, Filter.NEAREST)

    def test_deallocate_twice_is_harmless(self, device):
        fbo = Fbo(device, 4, 4, TextureFormat.R16F, Filter.NEAREST)
        fbo.deallocate()
        fbo.deallocate()
        assert device.target_count == 0


class TestSwapFbo:

    def test_read_and_write_are_distinct(self, device):
        pair = SwapFbo(device, 4, 4, TextureFormat.RG16F, Filter.LINEAR)
        assert pair.read is not pair.write
        assert pair.read.handle != pair.write.handle

    def test_swap_exchanges_roles_without_touching_contents(self, device):
        pair = SwapFbo(device, 4, 4, TextureFormat.RG16F, Filter.LINEAR)
        read, write = pair.read, pair.write
        fill(device, read.handle, (0.25, 0.5, 0.0, 1.0))
        before_read = device.read_pixels(read.handle)
        before_write = device.read_pixels(write.handle)

        pair.swap()

        assert pair.read is write
        assert pair.write is read
        np.testing.assert_array_equal(device.read_pixels(read.handle), before_read)
        np.testing.assert_array_equal(device.read_pixels(write.handle), before_write)

    def test_double_swap_restores_assignment(self, device):
        pair = SwapFbo(device, 4, 4, TextureFormat.R16F, Filter.NEAREST)
        read, write = pair.read, pair.write
        pair.swap()
        pair.swap()
        assert pair.read is read
        assert pair.write is write

    def test_allocation_failure_leaves_nothing_behind(self):
        device = NumpyDevice(max_texture_size=16)
        with pytest.raises(AllocationError):
            SwapFbo(device, 32, 32, TextureFormat.RGBA16F, Filter.LINEAR)
        assert device.target_count == 0


class TestSwapFboResize:

    @pytest.fixture
    def copy_shader(self, device):
        shader = Copy(device)
        shader.allocate()
        yield shader
        shader.deallocate()

    def test_resize_preserves_content(self, device, copy_shader):
        pair = SwapFbo(device, 8, 8, TextureFormat.RGBA16F, Filter.LINEAR)
        fill(device, pair.read.handle, (0.2, 0.4, 0.6, 1.0))

        pair.resize(16, 12, copy_shader)

        assert (pair.width, pair.height) == (16, 12)
        assert pair.texel_size == (1.0 / 16, 1.0 / 12)
        pixels = device.read_pixels(pair.read.handle)
        assert pixels.shape == (12, 16, 4)
        np.testing.assert_allclose(pixels[..., :3], np.broadcast_to([0.2, 0.4, 0.6], (12, 16, 3)), atol=1e-6)

    def test_resize_releases_old_targets(self, device, copy_shader):
        pair = SwapFbo(device, 8, 8, TextureFormat.RGBA16F, Filter.LINEAR)
        old_handles = {pair.read.handle, pair.write.handle}

        pair.resize(4, 4, copy_shader)

        assert device.target_count == 2
        assert old_handles.isdisjoint({pair.read.handle, pair.write.handle})
        for handle in old_handles:
            with pytest.raises(KeyError):
                device.read_pixels(handle)

    def test_same_size_resize_is_noop(self, device, copy_shader):
        pair = SwapFbo(device, 8, 8, TextureFormat.RGBA16F, Filter.LINEAR)
        handles = (pair.read.handle, pair.write.handle)
        assert pair.resize(8, 8, copy_shader) is pair
        assert (pair.read.handle, pair.write.handle) == handles

    def test_failed_resize_keeps_pair(self):
        limited = NumpyDevice(32, 32, max_texture_size=16)
        shader = Copy(limited)
        shader.allocate()
        pair = SwapFbo(limited, 8, 8, TextureFormat.RGBA16F, Filter.LINEAR)
        fill(limited, pair.read.handle, 0.5)
        handles = (pair.read.handle, pair.write.handle)

        with pytest.raises(AllocationError):
            pair.resize(32, 8, shader)

        assert (pair.width, pair.height) == (8, 8)
        assert (pair.read.handle, pair.write.handle) == handles
        assert limited.target_count == 2
        np.testing.assert_allclose(limited.read_pixels(pair.read.handle), 0.5)
        shader.deallocate()

    def test_copy_leaves_write_target(self, device, copy_shader):
        source = Fbo(device, 4, 4, TextureFormat.RGBA16F, Filter.LINEAR)
        fill(device, source.handle, 1.0)
        pair = SwapFbo(device, 4, 4, TextureFormat.RGBA16F, Filter.LINEAR)

        pair.copy_from(source, copy_shader)

        assert np.all(device.read_pixels(pair.read.handle) == 1.0)
        assert np.all(device.read_pixels(pair.write.handle)[..., :3] == 0.0)
