"""Divergence shader - central difference of the velocity field.

Neighbours outside the domain are replaced by the negated centre component,
which reflects velocity at the walls (no flow through the boundary).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ...gl.Fbo import Fbo
from ...gl.Shader import Shader

if TYPE_CHECKING:
    from ...gl.NumpyDevice import Fragment


class Divergence(Shader):

    def use(self, velocity: Fbo, texel_size: tuple[float, float]) -> None:
        self.bind()
        self.uniform_f("texelSize", *texel_size)
        self.uniform_i("uVelocity", velocity.attach(0))
        self.draw()

    @staticmethod
    def reference(frag: Fragment) -> np.ndarray:
        vL, vR, vT, vB = frag.neighbours()
        L: np.ndarray = frag.texture("uVelocity", *vL)[..., 0]
        R: np.ndarray = frag.texture("uVelocity", *vR)[..., 0]
        T: np.ndarray = frag.texture("uVelocity", *vT)[..., 1]
        B: np.ndarray = frag.texture("uVelocity", *vB)[..., 1]

        C: np.ndarray = frag.texture("uVelocity", frag.u, frag.v)
        L = np.where(vL[0] < 0.0, -C[..., 0], L)
        R = np.where(vR[0] > 1.0, -C[..., 0], R)
        T = np.where(vT[1] > 1.0, -C[..., 1], T)
        B = np.where(vB[1] < 0.0, -C[..., 1], B)

        return frag.vec4(0.5 * (R - L + T - B))
