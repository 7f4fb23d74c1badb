"""ConfigBase behaviour through FluidConfig."""

from dataclasses import dataclass

import pytest

from backdrop.ConfigBase import ConfigBase, config_field
from backdrop.fluid.FluidConfig import FluidConfig


class TestAssignment:

    def test_defaults(self):
        config = FluidConfig()
        assert config.sim_resolution == 128
        assert config.dye_resolution == 1024
        assert config.pressure_iterations == 20
        assert config.back_color == (0, 0, 0)
        assert config.startup_burst

    def test_fixed_field_is_init_only(self):
        config = FluidConfig(startup_burst=False)
        assert not config.startup_burst
        with pytest.raises(AttributeError):
            config.startup_burst = True

    def test_undeclared_attribute_raises(self):
        config = FluidConfig()
        with pytest.raises(AttributeError):
            config.sim_resolutoin = 64

    def test_out_of_range_warns(self):
        with pytest.warns(UserWarning, match="outside"):
            FluidConfig(curl=500.0)


class TestWatch:

    def test_any_change_notifies(self):
        config = FluidConfig()
        changes = []
        config.watch(lambda: changes.append(config.curl))
        config.curl = 10.0
        config.paused = True
        assert changes == [10.0, 10.0]

    def test_attribute_watch_receives_value(self):
        config = FluidConfig()
        values = []
        config.watch(values.append, 'dye_resolution')
        config.dye_resolution = 256
        assert values == [256]

    def test_unwatch(self):
        config = FluidConfig()
        values = []
        unwatch = config.watch(values.append, 'sim_resolution')
        config.sim_resolution = 64
        unwatch()
        config.sim_resolution = 32
        assert values == [64]

    def test_watch_unknown_attribute_raises(self):
        with pytest.raises(AttributeError):
            FluidConfig().watch(print, 'viscosity')


class TestInfo:

    def test_field_metadata(self):
        info = FluidConfig().info('pressure_iterations')
        assert info['label'] == "Pressure Iterations"
        assert info['default'] == 20
        assert (info['min'], info['max']) == (1, 80)
        assert info['fixed'] is False

    def test_factory_default_and_current_value(self):
        config = FluidConfig()
        config.back_color = (10, 20, 30)
        info = config.info()
        assert info['back_color']['default'] == (0, 0, 0)
        assert info['back_color']['value'] == (10, 20, 30)
        assert info['startup_burst']['fixed'] is True

    def test_unknown_attribute_raises(self):
        with pytest.raises(AttributeError):
            FluidConfig().info('viscosity')

    def test_help_text_has_range_and_default(self):
        text = FluidConfig().help_text('sim_resolution')
        assert text == "Short side of the velocity / pressure grid in texels [16-1024] (default: 128)"

    def test_help_text_without_range(self):
        assert FluidConfig().help_text('paused') == "Skip the solver step, input still applies (default: False)"

    def test_help_text_falls_back_to_label(self):

        @dataclass
        class SplatConfig(ConfigBase):
            splat_radius: float = config_field(0.25, min=0.01, max=1.0)

        assert SplatConfig().help_text('splat_radius') == "Splat Radius [0.01-1.0] (default: 0.25)"
