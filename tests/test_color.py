"""Color generation and the pointer recolor timer."""

import numpy as np
import pytest

from backdrop.fluid.ColorGenerator import COLOR_SCALE, ColorGenerator, hsv_to_rgb, wrap
from backdrop.fluid.Pointer import Pointer


class TestHsv:

    @pytest.mark.parametrize("hue, expected", [
        (0.0, (1.0, 0.0, 0.0)),
        (1.0 / 6.0, (1.0, 1.0, 0.0)),
        (1.0 / 3.0, (0.0, 1.0, 0.0)),
        (0.5, (0.0, 1.0, 1.0)),
        (2.0 / 3.0, (0.0, 0.0, 1.0)),
        (5.0 / 6.0, (1.0, 0.0, 1.0)),
        (1.0, (1.0, 0.0, 0.0)),
    ])
    def test_primary_hues(self, hue, expected):
        assert hsv_to_rgb(hue, 1.0, 1.0) == pytest.approx(expected, abs=1e-9)

    def test_value_scales_output(self):
        assert hsv_to_rgb(0.25, 1.0, 0.5) == pytest.approx((0.25, 0.5, 0.0))

    def test_zero_saturation_is_grey(self):
        assert hsv_to_rgb(0.7, 0.0, 0.3) == pytest.approx((0.3, 0.3, 0.3))


class TestWrap:

    @pytest.mark.parametrize("value, expected", [
        (0.3, 0.3),
        (1.3, 0.3),
        (2.0, 0.0),
        (-0.25, 0.75),
    ])
    def test_unit_range(self, value, expected):
        assert wrap(value, 0.0, 1.0) == pytest.approx(expected)

    def test_offset_range(self):
        assert wrap(7.5, 2.0, 4.0) == pytest.approx(3.5)

    def test_empty_range_returns_lower_bound(self):
        assert wrap(5.0, 3.0, 3.0) == 3.0

    def test_accumulated_value_stays_in_range(self):
        value = 0.0
        for _ in range(1000):
            value = wrap(value + 0.37, 0.0, 1.0)
            assert 0.0 <= value < 1.0


class TestColorGenerator:

    def test_generate_is_scaled(self, rng):
        colors = ColorGenerator(rng)
        for _ in range(100):
            color = colors.generate()
            assert max(color) == pytest.approx(COLOR_SCALE)
            assert min(color) == pytest.approx(0.0, abs=1e-12)

    def test_seeded_generators_agree(self):
        first = ColorGenerator(np.random.default_rng(7))
        second = ColorGenerator(np.random.default_rng(7))
        assert [first.generate() for _ in range(5)] == [second.generate() for _ in range(5)]

    def test_random_is_unit_interval(self, rng):
        colors = ColorGenerator(rng)
        values = [colors.random() for _ in range(200)]
        assert all(0.0 <= value < 1.0 for value in values)

    def test_update_below_threshold_keeps_colors(self, rng):
        colors = ColorGenerator(rng)
        pointer = Pointer()
        assert colors.update(0.05, [pointer], 10.0) is False
        assert pointer.color == (30.0, 0.0, 300.0)
        assert colors.timer == pytest.approx(0.5)

    def test_update_recolors_and_wraps(self, rng):
        colors = ColorGenerator(rng)
        pointers = [Pointer(), Pointer()]
        colors.timer = 0.9
        assert colors.update(0.02, pointers, 10.0) is True
        assert colors.timer == pytest.approx(0.1)
        for pointer in pointers:
            assert max(pointer.color) == pytest.approx(COLOR_SCALE)

    def test_update_counts_cycles(self, rng):
        colors = ColorGenerator(rng)
        recolors = sum(colors.update(0.125, [], 2.0) for _ in range(60))
        assert recolors == 15
        assert 0.0 <= colors.timer < 1.0
