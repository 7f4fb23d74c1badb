"""Pressure shader - one Jacobi iteration of the pressure Poisson equation."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ...gl.Fbo import Fbo
from ...gl.Shader import Shader

if TYPE_CHECKING:
    from ...gl.NumpyDevice import Fragment


class Pressure(Shader):

    def use(self, pressure: Fbo, divergence: Fbo, texel_size: tuple[float, float]) -> None:
        """Args:
            pressure: Previous iterate (read side of the pressure pair)
            divergence: Velocity divergence
            texel_size: Texel size of the velocity grid
        """
        self.bind()
        self.uniform_f("texelSize", *texel_size)
        self.uniform_i("uDivergence", divergence.attach(0))
        self.uniform_i("uPressure", pressure.attach(1))
        self.draw()

    @staticmethod
    def reference(frag: Fragment) -> np.ndarray:
        vL, vR, vT, vB = frag.neighbours()
        L = frag.texture("uPressure", *vL)[..., 0]
        R = frag.texture("uPressure", *vR)[..., 0]
        T = frag.texture("uPressure", *vT)[..., 0]
        B = frag.texture("uPressure", *vB)[..., 0]
        divergence = frag.texture("uDivergence", frag.u, frag.v)[..., 0]
        return frag.vec4((L + R + B + T - divergence) * 0.25)
