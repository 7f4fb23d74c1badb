"""GradientSubtract shader - project velocity by removing the pressure gradient."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ...gl.Fbo import Fbo
from ...gl.Shader import Shader

if TYPE_CHECKING:
    from ...gl.NumpyDevice import Fragment


class GradientSubtract(Shader):

    def use(self, pressure: Fbo, velocity: Fbo, texel_size: tuple[float, float]) -> None:
        self.bind()
        self.uniform_f("texelSize", *texel_size)
        self.uniform_i("uPressure", pressure.attach(0))
        self.uniform_i("uVelocity", velocity.attach(1))
        self.draw()

    @staticmethod
    def reference(frag: Fragment) -> np.ndarray:
        vL, vR, vT, vB = frag.neighbours()
        L = frag.texture("uPressure", *vL)[..., 0]
        R = frag.texture("uPressure", *vR)[..., 0]
        T = frag.texture("uPressure", *vT)[..., 0]
        B = frag.texture("uPressure", *vB)[..., 0]
        velocity = frag.texture("uVelocity", frag.u, frag.v)
        return frag.vec4(velocity[..., 0] - 0.5 * (R - L), velocity[..., 1] - 0.5 * (T - B))
