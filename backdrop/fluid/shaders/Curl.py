"""Curl shader - scalar vorticity of the velocity field."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ...gl.Fbo import Fbo
from ...gl.Shader import Shader

if TYPE_CHECKING:
    from ...gl.NumpyDevice import Fragment


class Curl(Shader):

    def use(self, velocity: Fbo, texel_size: tuple[float, float]) -> None:
        self.bind()
        self.uniform_f("texelSize", *texel_size)
        self.uniform_i("uVelocity", velocity.attach(0))
        self.draw()

    @staticmethod
    def reference(frag: Fragment) -> np.ndarray:
        vL, vR, vT, vB = frag.neighbours()
        L = frag.texture("uVelocity", *vL)[..., 1]
        R = frag.texture("uVelocity", *vR)[..., 1]
        T = frag.texture("uVelocity", *vT)[..., 0]
        B = frag.texture("uVelocity", *vB)[..., 0]
        return frag.vec4(0.5 * (R - L - T + B))
