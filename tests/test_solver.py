"""FluidSimulation: grid sizing, pass ordering and the numerical behaviour of one step."""

import numpy as np
import pytest

from backdrop.gl.Device import AllocationError, FeedbackLoopError
from backdrop.gl.Material import Keyword
from backdrop.gl.NumpyDevice import NumpyDevice
from backdrop.gl.Texture import Filter
from backdrop.fluid.FluidConfig import FluidConfig
from backdrop.fluid.FluidSimulation import FluidSimulation, get_resolution
from backdrop.fluid.shaders import Divergence, GradientSubtract, Pressure

from conftest import fill, channel


def divergence_of(device, simulation):
    shader = Divergence(device)
    shader.allocate()
    simulation.divergence.begin()
    shader.use(simulation.velocity.read, simulation.velocity.texel_size)
    simulation.divergence.end()
    shader.deallocate()
    return channel(device, simulation.divergence.handle)


class TestResolution:

    @pytest.mark.parametrize("resolution, width, height, expected", [
        (128, 1280, 720, (228, 128)),
        (128, 720, 1280, (128, 228)),
        (128, 500, 500, (128, 128)),
        (64, 300, 100, (192, 64)),
    ])
    def test_short_side_gets_resolution(self, resolution, width, height, expected):
        assert get_resolution(resolution, width, height) == expected

    def test_field_sizes(self, device):
        config = FluidConfig(sim_resolution=16, dye_resolution=32, startup_burst=False)
        sim = FluidSimulation(device, device.capabilities())
        sim.allocate(64, 32, config)
        assert (sim.velocity.width, sim.velocity.height) == (32, 16)
        assert (sim.pressure.width, sim.pressure.height) == (32, 16)
        assert (sim.divergence.width, sim.divergence.height) == (32, 16)
        assert (sim.dye.width, sim.dye.height) == (64, 32)
        sim.deallocate()

    def test_fields_require_allocation(self, device):
        sim = FluidSimulation(device, device.capabilities())
        with pytest.raises(RuntimeError):
            sim.velocity
        with pytest.raises(RuntimeError):
            sim.step(0.016, FluidConfig(startup_burst=False))


class TestStep:

    def test_pass_order(self, device, simulation, fluid_config):
        fluid_config.pressure_iterations = 3
        device.draws.clear()
        simulation.step(0.016, fluid_config)

        assert [draw.program for draw in device.draws] == [
            "Curl", "Vorticity", "Divergence", "Clear",
            "Pressure", "Pressure", "Pressure",
            "GradientSubtract", "Advection", "Advection",
        ]

    def test_no_pass_samples_its_target(self, device, simulation, fluid_config):
        device.draws.clear()
        simulation.step(0.016, fluid_config)
        for draw in device.draws:
            assert draw.target not in draw.sampled

    def test_jacobi_targets_alternate(self, device, simulation, fluid_config):
        fluid_config.pressure_iterations = 4
        device.draws.clear()
        simulation.step(0.016, fluid_config)

        targets = [draw.target for draw in device.draws if draw.program == "Pressure"]
        assert len(set(targets)) == 2
        assert targets[0] == targets[2] and targets[1] == targets[3]
        assert targets[0] != targets[1]

    def test_sampling_destination_is_rejected(self, device, simulation):
        shader = Pressure(device)
        shader.allocate()
        pressure = simulation.pressure
        pressure.read.begin()
        with pytest.raises(FeedbackLoopError):
            shader.use(pressure.read, simulation.divergence, pressure.texel_size)
        pressure.read.end()
        shader.deallocate()

    def test_step_disables_blending(self, device, simulation, fluid_config):
        device.set_blending(True)
        simulation.step(0.016, fluid_config)
        assert device._blending is False

    def test_dye_dissipation(self, device, simulation, fluid_config):
        fluid_config.density_dissipation = 1.0
        fill(device, simulation.dye.read.handle, (1.0, 1.0, 1.0, 1.0))

        simulation.step(0.016, fluid_config)

        dye = device.read_pixels(simulation.dye.read.handle)[..., :3]
        np.testing.assert_allclose(dye, 1.0 / 1.016, rtol=1e-5)

    def test_still_fluid_stays_still(self, device, simulation, fluid_config):
        simulation.step(0.016, fluid_config)
        assert np.all(channel(device, simulation.velocity.read.handle, 0) == 0.0)
        assert np.all(channel(device, simulation.pressure.read.handle, 0) == 0.0)


class TestProjection:

    def test_reflecting_walls(self, device, simulation):
        fill(device, simulation.velocity.read.handle, (1.0, 0.0, 0.0, 1.0))
        div = divergence_of(device, simulation)

        np.testing.assert_allclose(div[:, 0], 1.0)
        np.testing.assert_allclose(div[:, -1], -1.0)
        np.testing.assert_allclose(div[:, 1:-1], 0.0, atol=1e-6)

    def test_projection_reduces_divergence(self, device, simulation, fluid_config, rng):
        fluid_config.curl = 0.0
        fluid_config.pressure = 0.0
        fluid_config.velocity_dissipation = 0.0
        fluid_config.pressure_iterations = 20

        noise = np.zeros((32, 32, 4), dtype=np.float32)
        noise[..., :2] = rng.uniform(-1.0, 1.0, (32, 32, 2))
        device.write_pixels(simulation.velocity.read.handle, noise)
        before = np.abs(divergence_of(device, simulation)).mean()

        simulation.step(1e-4, fluid_config)
        after = np.abs(divergence_of(device, simulation)).mean()

        assert after < 0.9 * before

    def test_projection_reduces_divergence_of_splat(self, device, simulation, fluid_config):
        fluid_config.curl = 0.0
        fluid_config.pressure = 0.0
        fluid_config.velocity_dissipation = 0.0
        fluid_config.pressure_iterations = 20

        simulation.splat(0.5, 0.5, 100.0, 0.0, (0.0, 0.0, 0.0), fluid_config)
        before = np.abs(divergence_of(device, simulation)).mean()

        simulation.step(1e-4, fluid_config)
        after = np.abs(divergence_of(device, simulation)).mean()

        assert after < 0.75 * before

    def test_gradient_matches_divergence_stencil(self, device, simulation):
        """A linear pressure ramp removes half its central difference from velocity."""
        ramp = np.zeros((32, 32, 4), dtype=np.float32)
        ramp[..., 0] = np.arange(32, dtype=np.float32)[None, :]
        device.write_pixels(simulation.pressure.read.handle, ramp)

        shader = GradientSubtract(device)
        shader.allocate()
        simulation.velocity.begin()
        shader.use(simulation.pressure.read, simulation.velocity.read, simulation.velocity.texel_size)
        simulation.velocity.end()
        shader.deallocate()

        velocity = device.read_pixels(simulation.velocity.write.handle)
        np.testing.assert_allclose(velocity[:, 1:-1, 0], -1.0)
        np.testing.assert_allclose(velocity[..., 1], 0.0)


class TestSplat:

    def test_splat_is_localized(self, device, simulation, fluid_config):
        simulation.splat(0.5, 0.5, 100.0, 0.0, (1.0, 0.0, 0.0), fluid_config)

        red = channel(device, simulation.dye.read.handle, 0)
        speed = np.hypot(channel(device, simulation.velocity.read.handle, 0),
                         channel(device, simulation.velocity.read.handle, 1))
        u = (np.arange(32) + 0.5) / 32
        distance = np.hypot(u[None, :] - 0.5, u[:, None] - 0.5)
        length_scale = np.sqrt(fluid_config.splat_radius / 100.0)

        assert red[15, 15] > 0.5
        assert np.all(red[distance > 5 * length_scale] < 1e-6)
        assert np.all(speed[distance > 5 * length_scale] < 1e-6)

    def test_splat_adds_velocity(self, device, simulation, fluid_config):
        simulation.splat(0.5, 0.5, 100.0, -50.0, (0.0, 0.0, 0.0), fluid_config)

        velocity = device.read_pixels(simulation.velocity.read.handle)
        assert velocity[15, 15, 0] > 50.0
        assert velocity[15, 15, 1] < -25.0
        assert np.all(channel(device, simulation.dye.read.handle, 0) == 0.0)

    def test_splat_accumulates(self, device, simulation, fluid_config):
        simulation.splat(0.5, 0.5, 0.0, 0.0, (1.0, 0.0, 0.0), fluid_config)
        once = channel(device, simulation.dye.read.handle, 0).copy()
        simulation.splat(0.5, 0.5, 0.0, 0.0, (1.0, 0.0, 0.0), fluid_config)
        twice = channel(device, simulation.dye.read.handle, 0)
        np.testing.assert_allclose(twice, 2.0 * once, rtol=1e-5)


class TestLifecycle:

    def test_reset_zeroes_every_field(self, device, simulation, fluid_config):
        simulation.splat(0.5, 0.5, 100.0, 100.0, (1.0, 1.0, 1.0), fluid_config)
        simulation.step(0.016, fluid_config)
        simulation.reset()

        targets = [simulation.divergence, simulation.curl]
        for pair in (simulation.velocity, simulation.dye, simulation.pressure):
            targets.extend(pair.fbos)
        for fbo in targets:
            data = device.read_pixels(fbo.handle)[..., :fbo.format.channels]
            assert np.all(data == 0.0), fbo

    def test_resize_keeps_dye_and_clears_pressure(self, device, simulation):
        fill(device, simulation.dye.read.handle, (0.5, 0.25, 0.0, 1.0))
        fill(device, simulation.pressure.read.handle, 3.0)

        smaller = FluidConfig(sim_resolution=16, dye_resolution=16, startup_burst=False)
        simulation.init_framebuffers(32, 32, smaller)

        assert (simulation.dye.width, simulation.dye.height) == (16, 16)
        dye = device.read_pixels(simulation.dye.read.handle)
        np.testing.assert_allclose(dye[..., 0], 0.5)
        np.testing.assert_allclose(dye[..., 1], 0.25)
        assert np.all(channel(device, simulation.pressure.read.handle) == 0.0)
        assert simulation.divergence.width == 16

    def test_failed_reallocation_keeps_fields(self, fluid_config):
        device = NumpyDevice(32, 32, max_texture_size=100)
        fluid_config.dye_resolution = 64
        sim = FluidSimulation(device, device.capabilities())
        sim.allocate(32, 32, fluid_config)
        fill(device, sim.dye.read.handle, (0.5, 0.0, 0.0, 1.0))
        fields = (sim.velocity, sim.dye, sim.pressure, sim.divergence, sim.curl)
        handles = [fbo.handle for pair in fields[:3] for fbo in pair.fbos]
        targets = device.target_count

        with pytest.raises(AllocationError):
            sim.init_framebuffers(64, 32, fluid_config)

        assert (sim.velocity, sim.dye, sim.pressure, sim.divergence, sim.curl) == fields
        assert [fbo.handle for pair in fields[:3] for fbo in pair.fbos] == handles
        assert (sim.width, sim.height) == (32, 32)
        assert (sim.dye.width, sim.velocity.width) == (64, 32)
        assert device.target_count == targets
        np.testing.assert_allclose(channel(device, sim.dye.read.handle), 0.5)
        sim.deallocate()

    def test_same_sim_size_keeps_velocity(self, simulation, fluid_config):
        velocity = simulation.velocity
        handles = (velocity.read.handle, velocity.write.handle)
        fluid_config.dye_resolution = 16

        simulation.init_framebuffers(32, 32, fluid_config)

        assert simulation.velocity is velocity
        assert (velocity.read.handle, velocity.write.handle) == handles
        assert simulation.dye.width == 16

    def test_deallocate_releases_targets(self, device, fluid_config):
        sim = FluidSimulation(device, device.capabilities())
        sim.allocate(32, 32, fluid_config)
        assert device.target_count == 8
        sim.deallocate()
        assert device.target_count == 0


class TestManualFilteringDevice:

    @pytest.fixture
    def manual_simulation(self, fluid_config):
        device = NumpyDevice(32, 32, linear_filtering=False, record_draws=True)
        sim = FluidSimulation(device, device.capabilities())
        sim.allocate(32, 32, fluid_config)
        yield sim
        sim.deallocate()

    def test_advection_uses_manual_variant(self, manual_simulation):
        assert manual_simulation.manual_filtering
        assert manual_simulation._advection_shader.material.keywords == (Keyword.MANUAL_FILTERING,)

    def test_targets_are_nearest(self, manual_simulation):
        assert manual_simulation.velocity.filtering == Filter.NEAREST
        assert manual_simulation.dye.filtering == Filter.NEAREST

    def test_step_runs(self, manual_simulation, fluid_config):
        manual_simulation.splat(0.5, 0.5, 100.0, 0.0, (1.0, 0.0, 0.0), fluid_config)
        manual_simulation.step(0.016, fluid_config)
        dye = channel(manual_simulation.device, manual_simulation.dye.read.handle)
        assert np.isfinite(dye).all()
        assert dye.max() > 0.0
