"""Pytest fixtures for the fluid backdrop, all running on the numpy reference device."""

import numpy as np
import pytest

from backdrop.gl.NumpyDevice import NumpyDevice
from backdrop.fluid.FluidBackground import FluidBackground
from backdrop.fluid.FluidConfig import FluidConfig
from backdrop.fluid.FluidSimulation import FluidSimulation


@pytest.fixture
def device():
    """Square 32x32 canvas with every format and linear filtering available."""
    return NumpyDevice(32, 32, record_draws=True)


@pytest.fixture
def fluid_config():
    return FluidConfig(sim_resolution=32, dye_resolution=32, startup_burst=False)


@pytest.fixture
def simulation(device, fluid_config):
    sim = FluidSimulation(device, device.capabilities())
    sim.allocate(32, 32, fluid_config)
    yield sim
    sim.deallocate()


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def background_factory(rng):
    """Build a FluidBackground on a fresh device; deallocated after the test."""
    created = []

    def make(width=32, height=32, config=None, **device_kwargs):
        dev = NumpyDevice(width, height, record_draws=True, **device_kwargs)
        if config is None:
            config = FluidConfig(sim_resolution=32, dye_resolution=32, startup_burst=False)
        bg = FluidBackground(dev, width, height, config, rng=rng)
        created.append(bg)
        return bg

    yield make
    for bg in created:
        bg.deallocate()


def fill(device, handle, value):
    """Fill a target with a constant (per-channel tuple or scalar)."""
    data = device.read_pixels(handle)
    data[...] = np.asarray(value, dtype=np.float32)
    device.write_pixels(handle, data)


def channel(device, handle, index=0):
    return device.read_pixels(handle)[..., index]
