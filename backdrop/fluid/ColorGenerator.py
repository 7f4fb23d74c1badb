"""Random dye colors and the timer that cycles pointer colors."""

import math
from typing import Iterable

import numpy as np

from .Pointer import Pointer

COLOR_SCALE: float = 0.15


def hsv_to_rgb(h: float, s: float, v: float) -> tuple[float, float, float]:
    i: int = math.floor(h * 6)
    f: float = h * 6 - i
    p: float = v * (1 - s)
    q: float = v * (1 - f * s)
    t: float = v * (1 - (1 - f) * s)

    sextant: int = i % 6
    if sextant == 0: return v, t, p
    if sextant == 1: return q, v, p
    if sextant == 2: return p, v, t
    if sextant == 3: return p, q, v
    if sextant == 4: return t, p, v
    return v, p, q


def wrap(value: float, lo: float, hi: float) -> float:
    span: float = hi - lo
    if span == 0:
        return lo
    return (value - lo) % span + lo


class ColorGenerator:
    """Fully saturated random hues at low intensity.

    Pass a seeded numpy Generator for reproducible output.
    """

    def __init__(self, rng: np.random.Generator | None = None) -> None:
        self.rng: np.random.Generator = rng if rng is not None else np.random.default_rng()
        self.timer: float = 0.0

    def random(self) -> float:
        return float(self.rng.random())

    def generate(self) -> tuple[float, float, float]:
        r, g, b = hsv_to_rgb(self.random(), 1.0, 1.0)
        return r * COLOR_SCALE, g * COLOR_SCALE, b * COLOR_SCALE

    def update(self, dt: float, pointers: Iterable[Pointer], speed: float) -> bool:
        """Advance the timer, recolor every pointer when it passes 1. Returns True on recolor."""
        self.timer += dt * speed
        if self.timer < 1.0:
            return False
        self.timer = wrap(self.timer, 0.0, 1.0)
        for pointer in pointers:
            pointer.color = self.generate()
        return True
