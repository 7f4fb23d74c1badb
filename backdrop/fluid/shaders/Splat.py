"""Splat shader - add a gaussian blob of a vector or color to a field.

    out = base + exp(-|p|^2 / radius) * color,   p = (vUv - point) * (aspect, 1)

The falloff is in squared distance, so `radius` is an area-like parameter:
the blob drops to e^-1 at distance sqrt(radius).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ...gl.Fbo import Fbo
from ...gl.Shader import Shader

if TYPE_CHECKING:
    from ...gl.NumpyDevice import Fragment


class Splat(Shader):

    def use(self, target: Fbo, aspect: float, x: float, y: float,
            color: tuple[float, float, float], radius: float) -> None:
        """Args:
            target: Field the splat is added to (velocity or dye)
            aspect: Canvas width / height
            x, y: Splat centre in [0,1] texture space
            color: Added value, (dx, dy, 0) for velocity or rgb for dye
            radius: Aspect corrected gaussian radius
        """
        self.bind()
        self.uniform_i("uTarget", target.attach(0))
        self.uniform_f("aspectRatio", aspect)
        self.uniform_f("point", x, y)
        self.uniform_f("color", *color)
        self.uniform_f("radius", radius)
        self.draw()

    @staticmethod
    def reference(frag: Fragment) -> np.ndarray:
        point_x, point_y = frag.uniform("point")
        px: np.ndarray = (frag.u - point_x) * frag.uniform("aspectRatio")
        py: np.ndarray = frag.v - point_y
        falloff: np.ndarray = np.exp(-(px * px + py * py) / frag.uniform("radius"))
        base: np.ndarray = frag.texture("uTarget", frag.u, frag.v)
        r, g, b = frag.uniform("color")
        return frag.vec4(base[..., 0] + falloff * r, base[..., 1] + falloff * g, base[..., 2] + falloff * b)
